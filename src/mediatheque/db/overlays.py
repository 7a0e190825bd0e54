# ABOUTME: Repository for per-(entity, user) overlay rows on each catalog table.
# ABOUTME: Ensure-row, partial update, and flag toggles; never touches the shared catalog rows.

import sqlite3
from dataclasses import dataclass
from typing import Any

from mediatheque.db.connection import transaction
from mediatheque.db.mapping import UserOverlay, overlay_value_to_column, row_to_overlay

COMMON_FIELDS = (
    "status",
    "score",
    "started_on",
    "finished_on",
    "is_favorite",
    "is_hidden",
    "notes",
    "labels",
    "display_preferences",
)

TOGGLE_FLAGS = ("is_favorite", "is_hidden")


@dataclass(frozen=True)
class OverlayTable:
    """Identifiers for one overlay table and the catalog table it extends."""

    name: str
    entity_table: str
    entity_column: str
    default_status: str
    statuses: tuple[str, ...]
    extra_fields: tuple[str, ...] = ()

    @property
    def fields(self) -> frozenset[str]:
        return frozenset(COMMON_FIELDS + self.extra_fields)


_READING_STATUSES = ("to-read", "reading", "read", "on-hold", "abandoned")
_WATCHING_STATUSES = ("to-watch", "watching", "watched", "on-hold", "abandoned")

BOOK_OVERLAY = OverlayTable(
    name="book_user_data",
    entity_table="books",
    entity_column="book_id",
    default_status="to-read",
    statuses=_READING_STATUSES,
)

SERIES_OVERLAY = OverlayTable(
    name="series_user_data",
    entity_table="series",
    entity_column="series_id",
    default_status="to-read",
    statuses=_READING_STATUSES,
    extra_fields=("volumes_read", "chapters_read", "completion_tag", "tag_is_manual"),
)

MOVIE_OVERLAY = OverlayTable(
    name="movie_user_data",
    entity_table="movies",
    entity_column="movie_id",
    default_status="to-watch",
    statuses=_WATCHING_STATUSES,
)

TV_OVERLAY = OverlayTable(
    name="tv_show_user_data",
    entity_table="tv_shows",
    entity_column="show_id",
    default_status="to-watch",
    statuses=_WATCHING_STATUSES,
    extra_fields=("episodes_watched",),
)

OVERLAY_TABLES = (BOOK_OVERLAY, SERIES_OVERLAY, MOVIE_OVERLAY, TV_OVERLAY)


class OverlayRepository:
    """CRUD for one overlay table, chosen from OVERLAY_TABLES."""

    def __init__(self, conn: sqlite3.Connection, table: OverlayTable) -> None:
        if table not in OVERLAY_TABLES:
            raise ValueError(f"Unknown overlay table: {table.name}")
        self._conn = conn
        self.table = table

    def entity_exists(self, entity_id: int) -> bool:
        cursor = self._conn.execute(
            f"SELECT 1 FROM {self.table.entity_table} WHERE id = ?", (entity_id,)
        )
        return cursor.fetchone() is not None

    def ensure(self, entity_id: int, user_id: int) -> bool:
        """Create the default overlay row if missing. Returns True if it was created."""
        with transaction(self._conn):
            cursor = self._conn.execute(
                f"INSERT INTO {self.table.name} ({self.table.entity_column}, user_id, status) "
                f"VALUES (?, ?, ?) ON CONFLICT({self.table.entity_column}, user_id) DO NOTHING",
                (entity_id, user_id, self.table.default_status),
            )
        return cursor.rowcount > 0

    def get(self, entity_id: int, user_id: int) -> UserOverlay | None:
        cursor = self._conn.execute(
            f"SELECT * FROM {self.table.name} WHERE {self.table.entity_column} = ? AND user_id = ?",
            (entity_id, user_id),
        )
        row = cursor.fetchone()
        return row_to_overlay(row, self.table.entity_column) if row else None

    def update(self, entity_id: int, user_id: int, fields: dict[str, Any]) -> bool:
        """Write only the given fields; everything else keeps its current value.

        Returns False when no overlay row exists for the pair.

        Raises:
            ValueError: On a field this overlay table does not have.
        """
        if not fields:
            return self.get(entity_id, user_id) is not None
        unknown = set(fields) - self.table.fields
        if unknown:
            raise ValueError(f"Unknown overlay fields for {self.table.name}: {sorted(unknown)}")

        assignments = [f"{name} = ?" for name in fields]
        assignments.append("updated_at = CURRENT_TIMESTAMP")
        values = [overlay_value_to_column(name, value) for name, value in fields.items()]
        with transaction(self._conn):
            cursor = self._conn.execute(
                f"UPDATE {self.table.name} SET {', '.join(assignments)} "
                f"WHERE {self.table.entity_column} = ? AND user_id = ?",
                [*values, entity_id, user_id],
            )
        return cursor.rowcount > 0

    def toggle(self, entity_id: int, user_id: int, flag: str) -> bool:
        """Flip a boolean flag on an existing row and return its new value."""
        if flag not in TOGGLE_FLAGS:
            raise ValueError(f"Not a toggle flag: {flag}")
        with transaction(self._conn):
            cursor = self._conn.execute(
                f"SELECT {flag} FROM {self.table.name} "
                f"WHERE {self.table.entity_column} = ? AND user_id = ?",
                (entity_id, user_id),
            )
            row = cursor.fetchone()
            if row is None:
                raise ValueError(f"No overlay row for entity {entity_id} and user {user_id}")
            new_value = not bool(row[0])
            self.update(entity_id, user_id, {flag: new_value})
        return new_value

    def count(self, entity_id: int, user_id: int) -> int:
        cursor = self._conn.execute(
            f"SELECT COUNT(*) FROM {self.table.name} "
            f"WHERE {self.table.entity_column} = ? AND user_id = ?",
            (entity_id, user_id),
        )
        return cursor.fetchone()[0]

    def list_for_user(self, user_id: int) -> list[UserOverlay]:
        cursor = self._conn.execute(
            f"SELECT * FROM {self.table.name} WHERE user_id = ? ORDER BY {self.table.entity_column}",
            (user_id,),
        )
        return [row_to_overlay(row, self.table.entity_column) for row in cursor.fetchall()]
