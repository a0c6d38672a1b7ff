"""
Whitelist storage backed by a local SQLite file.

One row per allowed Telegram user. The admin is never stored here,
admin rights come from BOT_ADMIN_ID.

All methods are blocking; async callers go through asyncio.to_thread.
"""

import sqlite3
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List

from .logging_config import bot_logger as logger

DEFAULT_LIST_LIMIT = 100

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    telegram_id   INTEGER PRIMARY KEY,
    created_at    TEXT NOT NULL,
    last_activity TEXT NOT NULL
);
"""


class AuthStoreError(Exception):
    """Whitelist lookup or update failed."""


@dataclass(frozen=True)
class UserRecord:
    telegram_id: int
    created_at: str
    last_activity: str


def _utcnow() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class UserStore:
    """SQLite whitelist. Writes are serialized with a lock."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._lock = threading.Lock()
        try:
            if db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(db_path, check_same_thread=False)
            self._conn.execute(SCHEMA)
            self._conn.commit()
        except (OSError, sqlite3.Error) as e:
            raise AuthStoreError(f"open sqlite db {db_path}: {e}") from e

        logger.info(f"User store opened at {db_path}")

    def is_member(self, telegram_id: int) -> bool:
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT 1 FROM users WHERE telegram_id = ?", (telegram_id,)
                ).fetchone()
        except sqlite3.Error as e:
            raise AuthStoreError(f"lookup user {telegram_id}: {e}") from e
        return row is not None

    def add_user(self, telegram_id: int) -> None:
        """Insert a user, or refresh last_activity if already present."""
        now = _utcnow()
        try:
            with self._lock:
                self._conn.execute(
                    """
                    INSERT INTO users (telegram_id, created_at, last_activity)
                    VALUES (?, ?, ?)
                    ON CONFLICT(telegram_id) DO UPDATE SET last_activity = excluded.last_activity
                    """,
                    (telegram_id, now, now),
                )
                self._conn.commit()
        except sqlite3.Error as e:
            raise AuthStoreError(f"add user {telegram_id}: {e}") from e

    def touch(self, telegram_id: int) -> None:
        """Update last_activity. Does nothing for users not in the table."""
        try:
            with self._lock:
                self._conn.execute(
                    "UPDATE users SET last_activity = ? WHERE telegram_id = ?",
                    (_utcnow(), telegram_id),
                )
                self._conn.commit()
        except sqlite3.Error as e:
            raise AuthStoreError(f"touch user {telegram_id}: {e}") from e

    def list_users(self, limit: int = DEFAULT_LIST_LIMIT) -> List[UserRecord]:
        """Return up to `limit` users, oldest first."""
        if limit <= 0:
            limit = DEFAULT_LIST_LIMIT
        try:
            with self._lock:
                rows = self._conn.execute(
                    """
                    SELECT telegram_id, created_at, last_activity
                    FROM users
                    ORDER BY created_at ASC, telegram_id ASC
                    LIMIT ?
                    """,
                    (limit,),
                ).fetchall()
        except sqlite3.Error as e:
            raise AuthStoreError(f"list users: {e}") from e
        return [UserRecord(*row) for row in rows]

    def close(self) -> None:
        with self._lock:
            self._conn.close()
