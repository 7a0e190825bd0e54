# ABOUTME: Ownership links (volume owners, book owners) and per-user volume read marks.
# ABOUTME: Costs are split across current owners when computed, never stored divided.

import sqlite3
from collections.abc import Iterable
from dataclasses import dataclass

from mediatheque.db.connection import transaction


@dataclass(frozen=True)
class OwnedVolume:
    volume_id: int
    series_id: int
    number: int
    price: float
    owner_count: int

    @property
    def cost_per_owner(self) -> float:
        return split_cost(self.price, self.owner_count)


def split_cost(price: float | None, owner_count: int) -> float:
    """Even share of ``price`` for one of ``owner_count`` owners."""
    if not price or owner_count <= 0:
        return 0.0
    return price / owner_count


class OwnershipRepository:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    # --- volume owners ---

    def volume_owner_ids(self, volume_id: int) -> list[int]:
        cursor = self._conn.execute(
            "SELECT user_id FROM volume_owners WHERE volume_id = ? ORDER BY user_id", (volume_id,)
        )
        return [row["user_id"] for row in cursor.fetchall()]

    def set_volume_owners(
        self,
        volume_id: int,
        user_ids: Iterable[int],
        purchased_on: str | None = None,
    ) -> int:
        """Replace a volume's owners.

        Owners set on volume 1 are copied to sibling volumes that have no
        owners yet, in the same transaction. Returns the number of siblings
        that received owners.
        """
        user_ids = sorted(set(user_ids))
        volume = self._conn.execute(
            "SELECT id, series_id, number FROM series_volumes WHERE id = ?", (volume_id,)
        ).fetchone()
        if volume is None:
            raise ValueError(f"Volume with id {volume_id} not found")

        with transaction(self._conn):
            self._replace_owners(volume_id, user_ids, purchased_on)
            if volume["number"] != 1 or not user_ids:
                return 0
            siblings = self._conn.execute(
                "SELECT v.id FROM series_volumes v "
                "WHERE v.series_id = ? AND v.id != ? "
                "AND NOT EXISTS (SELECT 1 FROM volume_owners o WHERE o.volume_id = v.id)",
                (volume["series_id"], volume_id),
            ).fetchall()
            for sibling in siblings:
                self._replace_owners(sibling["id"], user_ids, purchased_on)
        return len(siblings)

    def _replace_owners(self, volume_id: int, user_ids: list[int], purchased_on: str | None) -> None:
        self._conn.execute("DELETE FROM volume_owners WHERE volume_id = ?", (volume_id,))
        self._conn.executemany(
            "INSERT INTO volume_owners (volume_id, user_id, purchased_on) VALUES (?, ?, ?)",
            [(volume_id, user_id, purchased_on) for user_id in user_ids],
        )

    def owned_volumes(self, user_id: int) -> list[OwnedVolume]:
        """Volumes a user owns, with the current owner count of each."""
        cursor = self._conn.execute(
            "SELECT v.id, v.series_id, v.number, v.price, "
            "(SELECT COUNT(*) FROM volume_owners c WHERE c.volume_id = v.id) AS owner_count "
            "FROM series_volumes v JOIN volume_owners o ON o.volume_id = v.id "
            "WHERE o.user_id = ? ORDER BY v.series_id, v.number",
            (user_id,),
        )
        return [
            OwnedVolume(row["id"], row["series_id"], row["number"], row["price"] or 0.0, row["owner_count"])
            for row in cursor.fetchall()
        ]

    # --- book owners ---

    def set_book_owner(
        self, book_id: int, user_id: int, price: float = 0.0, purchased_on: str | None = None
    ) -> None:
        """Record that a user owns a book at the price they paid."""
        with transaction(self._conn):
            self._conn.execute(
                "INSERT INTO book_owners (book_id, user_id, price, purchased_on) VALUES (?, ?, ?, ?) "
                "ON CONFLICT(book_id, user_id) DO UPDATE SET "
                "price = excluded.price, purchased_on = excluded.purchased_on",
                (book_id, user_id, price, purchased_on),
            )

    def remove_book_owner(self, book_id: int, user_id: int) -> bool:
        with transaction(self._conn):
            cursor = self._conn.execute(
                "DELETE FROM book_owners WHERE book_id = ? AND user_id = ?", (book_id, user_id)
            )
        return cursor.rowcount > 0

    def book_owners(self, book_id: int) -> dict[int, float]:
        """Owner user id -> price that owner paid."""
        cursor = self._conn.execute(
            "SELECT user_id, price FROM book_owners WHERE book_id = ? ORDER BY user_id", (book_id,)
        )
        return {row["user_id"]: row["price"] for row in cursor.fetchall()}

    def user_spending(self, user_id: int) -> float:
        """Total a user has spent: own book prices plus their share of each owned volume."""
        books = self._conn.execute(
            "SELECT COALESCE(SUM(price), 0) FROM book_owners WHERE user_id = ?", (user_id,)
        ).fetchone()[0]
        volumes = sum(volume.cost_per_owner for volume in self.owned_volumes(user_id))
        return float(books) + volumes

    # --- volume reads ---

    def mark_volume_read(self, volume_id: int, user_id: int, read_on: str | None = None) -> None:
        with transaction(self._conn):
            self._conn.execute(
                "INSERT INTO volume_reads (volume_id, user_id, read_on) VALUES (?, ?, ?) "
                "ON CONFLICT(volume_id, user_id) DO UPDATE SET read_on = excluded.read_on",
                (volume_id, user_id, read_on),
            )

    def unmark_volume_read(self, volume_id: int, user_id: int) -> None:
        with transaction(self._conn):
            self._conn.execute(
                "DELETE FROM volume_reads WHERE volume_id = ? AND user_id = ?", (volume_id, user_id)
            )

    def volume_read_counts(self, series_id: int, user_id: int) -> tuple[int, int]:
        """(volumes read by the user, volumes in the series)."""
        row = self._conn.execute(
            "SELECT COUNT(r.volume_id) AS read_count, COUNT(v.id) AS total "
            "FROM series_volumes v "
            "LEFT JOIN volume_reads r ON r.volume_id = v.id AND r.user_id = ? "
            "WHERE v.series_id = ?",
            (user_id, series_id),
        ).fetchone()
        return row["read_count"], row["total"]
