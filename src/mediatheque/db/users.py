# ABOUTME: Repository for local users: add, list, and resolve by name.
# ABOUTME: Overlay and ownership rows reference users.id.

import sqlite3
from dataclasses import dataclass

from mediatheque.db.catalog import DuplicateEntryError
from mediatheque.db.connection import transaction


@dataclass(frozen=True)
class User:
    id: int
    name: str
    created_at: str


class UserRepository:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def add(self, name: str) -> User:
        """Create a user.

        Raises:
            ValueError: If the name is blank.
            DuplicateEntryError: If a user with this name already exists.
        """
        name = name.strip()
        if not name:
            raise ValueError("User name is required")
        try:
            with transaction(self._conn):
                cursor = self._conn.execute("INSERT INTO users (name) VALUES (?)", (name,))
        except sqlite3.IntegrityError as exc:
            raise DuplicateEntryError(f"User '{name}' already exists") from exc
        user = self.get(cursor.lastrowid)  # type: ignore[arg-type]
        assert user is not None
        return user

    def get(self, user_id: int) -> User | None:
        row = self._conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return User(row["id"], row["name"], row["created_at"]) if row else None

    def get_by_name(self, name: str) -> User | None:
        row = self._conn.execute("SELECT * FROM users WHERE name = ?", (name.strip(),)).fetchone()
        return User(row["id"], row["name"], row["created_at"]) if row else None

    def resolve_id(self, name: str | None) -> int | None:
        """Local id for a user name; None for a blank or unknown name."""
        if not name or not name.strip():
            return None
        user = self.get_by_name(name)
        return user.id if user else None

    def list_all(self) -> list[User]:
        cursor = self._conn.execute("SELECT * FROM users ORDER BY name")
        return [User(row["id"], row["name"], row["created_at"]) for row in cursor.fetchall()]
