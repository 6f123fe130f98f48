"""
Environment-driven configuration for the flashcards system.

Values are read from the process environment, after loading a `.env` file
from the working directory if one exists.
"""

import os
from typing import Optional

from dotenv import load_dotenv

from flashcards.constants import DB_NAME, SYNC_INTERVAL_SECONDS

load_dotenv()


def get_db_path() -> str:
    """Path of the local SQLite database file."""
    return os.getenv("FLASHCARDS_DB_PATH", DB_NAME)


def get_remote_db_url() -> Optional[str]:
    """SQLAlchemy URL of the remote database, if one is configured."""
    return os.getenv("FLASHCARDS_REMOTE_DB_URL") or None


def get_supabase_url() -> Optional[str]:
    return os.getenv("FLASHCARDS_SUPABASE_URL") or None


def get_supabase_key() -> Optional[str]:
    return os.getenv("FLASHCARDS_SUPABASE_KEY") or None


def get_access_token() -> Optional[str]:
    return os.getenv("FLASHCARDS_ACCESS_TOKEN") or None


def get_user_id() -> Optional[str]:
    """Id of the signed-in user; None means there is no session to sync."""
    return os.getenv("FLASHCARDS_USER_ID") or None


def get_sync_interval_seconds() -> int:
    value = os.getenv("FLASHCARDS_SYNC_INTERVAL_SECONDS")
    if not value:
        return SYNC_INTERVAL_SECONDS
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(
            f"FLASHCARDS_SYNC_INTERVAL_SECONDS must be an integer, got {value!r}"
        ) from e
