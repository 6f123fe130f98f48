"""
Remote store over a PostgREST endpoint (e.g. a Supabase project).

Same operations as remote_store.SqlRemoteStore. Filters are sent as PostgREST
query parameters (`user_id=eq.<id>`, `deleted_at=is.null`, `timestamp=gt.<n>`)
and writes ask for the stored rows back with `Prefer: return=representation`.
"""

from typing import Any, Dict, List, Optional

import requests

from flashcards.remote_store import SOFT_DELETE_TABLES, RemoteStoreError
from util.logging_util import setup_logger

logger = setup_logger(__name__)

REQUEST_TIMEOUT_SECONDS = 10


class RestRemoteStore:
    """Remote rows for one user, read and written over HTTP."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        access_token: Optional[str] = None,
        user_id: Optional[str] = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.access_token = access_token
        self.user_id = user_id
        self.timeout = timeout

    def _headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _request(self, method: str, path: str, params=None, json=None, prefer=None):
        url = f"{self.base_url}{path}"
        try:
            response = requests.request(
                method,
                url,
                params=params,
                json=json,
                headers=self._headers(prefer),
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise RemoteStoreError(f"{method} {path} failed: {e}") from e
        if not response.content:
            return None
        return response.json()

    def get_user_id(self) -> Optional[str]:
        """The configured user, or the owner of the access token.

        Returns None when there is no signed-in session.
        """
        if self.user_id:
            return self.user_id
        if not self.access_token:
            return None

        user = self._request("GET", "/auth/v1/user")
        if user:
            self.user_id = user.get("id")
        return self.user_id

    def select_rows(self, table: str, user_id: str, active_only: bool = False) -> List[Dict[str, Any]]:
        params = {"select": "*", "user_id": f"eq.{user_id}"}
        if active_only and table in SOFT_DELETE_TABLES:
            params["deleted_at"] = "is.null"
        return self._request("GET", f"/rest/v1/{table}", params=params) or []

    def select_single(self, table: str, row_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        params = {"select": "*", "id": f"eq.{row_id}", "user_id": f"eq.{user_id}"}
        rows = self._request("GET", f"/rest/v1/{table}", params=params) or []
        return rows[0] if rows else None

    def insert_row(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        # Leave id out so the database generates one
        body = {k: v for k, v in row.items() if not (k == "id" and not v)}
        rows = self._request(
            "POST", f"/rest/v1/{table}", json=body, prefer="return=representation"
        )
        if not rows:
            raise RemoteStoreError(f"Insert into {table} returned no row")
        return rows[0]

    def update_rows(self, table: str, patch: Dict[str, Any], **match) -> int:
        params = {column: f"eq.{value}" for column, value in match.items()}
        rows = self._request(
            "PATCH", f"/rest/v1/{table}", params=params, json=patch, prefer="return=representation"
        )
        return len(rows or [])

    def max_value(self, table: str, column: str, user_id: str) -> Optional[Any]:
        params = {
            "select": column,
            "user_id": f"eq.{user_id}",
            "order": f"{column}.desc",
            "limit": 1,
        }
        rows = self._request("GET", f"/rest/v1/{table}", params=params) or []
        return rows[0][column] if rows else None

    def select_greater_than(self, table: str, column: str, value: Any, user_id: str) -> List[Dict[str, Any]]:
        params = {
            "select": "*",
            "user_id": f"eq.{user_id}",
            column: f"gt.{value}",
            "order": f"{column}.asc",
        }
        return self._request("GET", f"/rest/v1/{table}", params=params) or []
