"""
Remote store for cloud sync, backed by any SQLAlchemy database.

The remote schema is per-user and snake_case: every row carries a user_id,
decks and cards carry a nullable deleted_at soft-delete marker, and ids are
generated by the store when an insert does not supply one. Foreign keys
(cards -> decks, card_reviews/study_logs -> cards) are enforced, so inserting a
row that references a missing parent fails.

RestRemoteStore in rest_remote.py exposes the same operations over HTTP.
"""

import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    BigInteger,
    Column,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from util.logging_util import setup_logger

logger = setup_logger(__name__)


class RemoteStoreError(Exception):
    """Raised when the remote store rejects or fails a request."""


metadata = MetaData()

decks_table = Table(
    "decks",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("name", String(255), nullable=False),
    Column("description", Text, nullable=True),
    Column("cards_count", Integer, nullable=False, default=0),
    Column("created_at", BigInteger, nullable=False),
    Column("updated_at", BigInteger, nullable=False),
    Column("deleted_at", BigInteger, nullable=True),
)

cards_table = Table(
    "cards",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("deck_id", String(36), ForeignKey("decks.id"), nullable=False),
    Column("front", Text, nullable=False),
    Column("back", Text, nullable=False),
    Column("created_at", BigInteger, nullable=False),
    Column("updated_at", BigInteger, nullable=False),
    Column("deleted_at", BigInteger, nullable=True),
)

card_reviews_table = Table(
    "card_reviews",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("card_id", String(36), ForeignKey("cards.id"), nullable=False),
    Column("ease_factor", Float, nullable=False),
    Column("interval", Float, nullable=False),
    Column("repetitions", Integer, nullable=False),
    Column("next_review", BigInteger, nullable=False),
    Column("last_review", BigInteger, nullable=True),
    Column("state", String(20), nullable=True),
    Column("created_at", BigInteger, nullable=True),
    Column("updated_at", BigInteger, nullable=True),
)

study_logs_table = Table(
    "study_logs",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("card_id", String(36), ForeignKey("cards.id"), nullable=False),
    Column("rating", Integer, nullable=False),
    Column("time_spent", Integer, nullable=False, default=0),
    Column("timestamp", BigInteger, nullable=False, index=True),
)

# Tables that carry the deleted_at soft-delete marker
SOFT_DELETE_TABLES = {"decks", "cards"}


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_remote_engine(url: str, **kwargs) -> Engine:
    """Create an engine for the remote database.

    SQLite does not enforce foreign keys unless asked to on every connection.
    """
    engine = create_engine(url, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def create_remote_schema(engine: Engine):
    metadata.create_all(engine)


class SqlRemoteStore:
    """Remote rows for one user, read and written through SQLAlchemy Core."""

    def __init__(self, engine: Engine, user_id: Optional[str]):
        self.engine = engine
        self.user_id = user_id

    def get_user_id(self) -> Optional[str]:
        return self.user_id

    def _table(self, name: str) -> Table:
        try:
            return metadata.tables[name]
        except KeyError:
            raise RemoteStoreError(f"Unknown remote table: {name}") from None

    def select_rows(self, table: str, user_id: str, active_only: bool = False) -> List[Dict[str, Any]]:
        """All rows of a table owned by user_id.

        With active_only, soft-deleted rows (deleted_at set) are left out.
        """
        t = self._table(table)
        stmt = select(t).where(t.c.user_id == user_id)
        if active_only and table in SOFT_DELETE_TABLES:
            stmt = stmt.where(t.c.deleted_at.is_(None))
        return self._fetch_all(stmt)

    def select_single(self, table: str, row_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        t = self._table(table)
        stmt = select(t).where(t.c.id == row_id, t.c.user_id == user_id)
        rows = self._fetch_all(stmt)
        return rows[0] if rows else None

    def insert_row(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a row and return it as stored, including its id."""
        t = self._table(table)
        values = dict(row)
        if not values.get("id"):
            values["id"] = str(uuid.uuid4())
        try:
            with self.engine.begin() as conn:
                conn.execute(insert(t).values(**values))
                stored = conn.execute(select(t).where(t.c.id == values["id"])).mappings().one()
                return dict(stored)
        except SQLAlchemyError as e:
            raise RemoteStoreError(f"Insert into {table} failed: {e}") from e

    def update_rows(self, table: str, patch: Dict[str, Any], **match) -> int:
        """Apply patch to every row whose columns equal the match values."""
        t = self._table(table)
        stmt = update(t).values(**patch)
        for column, value in match.items():
            stmt = stmt.where(t.c[column] == value)
        try:
            with self.engine.begin() as conn:
                return conn.execute(stmt).rowcount
        except SQLAlchemyError as e:
            raise RemoteStoreError(f"Update of {table} failed: {e}") from e

    def max_value(self, table: str, column: str, user_id: str) -> Optional[Any]:
        t = self._table(table)
        stmt = select(func.max(t.c[column])).where(t.c.user_id == user_id)
        try:
            with self.engine.connect() as conn:
                return conn.execute(stmt).scalar()
        except SQLAlchemyError as e:
            raise RemoteStoreError(f"Query of {table} failed: {e}") from e

    def select_greater_than(self, table: str, column: str, value: Any, user_id: str) -> List[Dict[str, Any]]:
        t = self._table(table)
        stmt = select(t).where(t.c.user_id == user_id, t.c[column] > value).order_by(t.c[column])
        return self._fetch_all(stmt)

    def _fetch_all(self, stmt) -> List[Dict[str, Any]]:
        try:
            with self.engine.connect() as conn:
                return [dict(row) for row in conn.execute(stmt).mappings().all()]
        except SQLAlchemyError as e:
            raise RemoteStoreError(f"Remote query failed: {e}") from e
