"""SQLite-backed persistence for users."""
from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

from .models import User

logger = logging.getLogger("userservice.database")


class StoreError(RuntimeError):
    """Raised when the underlying SQLite driver reports an error."""


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the users database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return Path("data.db").resolve(strict=False)


class Database:
    """Simple wrapper around SQLite for persisting users.

    A single instance is shared by every request handler. Each statement runs
    on its own short-lived connection so that locking is left to SQLite.
    """

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self._path, check_same_thread=False)
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        # Integers outside SQLite's 64-bit range raise OverflowError on bind.
        except (sqlite3.Error, OverflowError) as exc:
            raise StoreError(str(exc)) from exc
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create the users table if it does not already exist."""

        with self._connect() as conn:
            conn.execute(
                "CREATE TABLE IF NOT EXISTS users (id INTEGER PRIMARY KEY, name TEXT, email TEXT)"
            )

    # ------------------------------------------------------------------
    # User management
    # ------------------------------------------------------------------
    def list_users(self) -> List[User]:
        with self._connect() as conn:
            rows = conn.execute("SELECT id, name, email FROM users").fetchall()
        return [self._row_to_user(row) for row in rows]

    def get_user(self, user_id: int) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, name, email FROM users WHERE id = ?",
                (user_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def create_user(self, name: str, email: str) -> User:
        """Insert a new user and return it with the id assigned by SQLite."""

        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO users (name, email) VALUES (?, ?)",
                (name, email),
            )
            user_id = cursor.lastrowid

        if user_id is None:
            raise StoreError("SQLite did not report the id of the inserted row")

        logger.info("Created user #%s", user_id)
        return User(id=user_id, name=name, email=email)

    def update_user(self, user_id: int, *, name: str, email: str) -> bool:
        """Overwrite name and email for ``user_id``.

        Returns ``True`` when a row matched. A missing row is not an error.
        """

        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE users SET name = ?, email = ? WHERE id = ?",
                (name, email, user_id),
            )
        return cursor.rowcount > 0

    def delete_user(self, user_id: int) -> bool:
        """Remove ``user_id``; returns ``True`` when a row was deleted."""

        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
        return cursor.rowcount > 0

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(id=int(row["id"]), name=row["name"], email=row["email"])


__all__ = ["Database", "StoreError", "resolve_database_path"]
