# ABOUTME: Typed repositories for the shared catalog tables (books, series, movies, tv shows).
# ABOUTME: Upserts are keyed by each table's external-id uniqueness constraint.

import logging
import sqlite3
from dataclasses import dataclass
from typing import Any, ClassVar

from mediatheque.db.connection import transaction
from mediatheque.db.mapping import LibraryEntry, row_to_entry

logger = logging.getLogger(__name__)


class DuplicateEntryError(Exception):
    """Raised when a write collides with a row that already holds the same identity."""


@dataclass(frozen=True)
class TableSpec:
    """Identifiers of one catalog table.

    Every SQL identifier a repository emits comes from one of the specs
    below, never from caller input.
    """

    name: str
    key: tuple[str, ...]
    columns: tuple[str, ...]
    # Unique columns that move to the newest row on conflict.
    secondary_unique: tuple[str, ...] = ()

    @property
    def writable(self) -> frozenset[str]:
        return frozenset(self.key + self.columns)


BOOKS = TableSpec(
    name="books",
    key=("source_id", "source_name"),
    columns=(
        "title", "original_title", "subtitle", "main_author", "authors", "publisher",
        "release_date", "page_count", "language", "book_type", "genres", "synopsis",
        "cover_url", "isbn10", "isbn13", "source_url", "preview_url", "buy_url",
        "maturity_rating", "community_score", "community_votes", "suggested_price",
        "currency",
    ),
)

SERIES = TableSpec(
    name="series",
    key=("source_id", "source_name"),
    columns=(
        "title", "original_title", "media_type", "authors", "publisher", "release_date",
        "language", "genres", "synopsis", "cover_url", "isbn10", "isbn13", "source_url",
        "page_count", "nb_volumes", "nb_chapters", "community_score", "community_votes",
    ),
)

MOVIES = TableSpec(
    name="movies",
    key=("tmdb_id",),
    columns=(
        "imdb_id", "title", "original_title", "tagline", "synopsis", "status",
        "release_date", "runtime", "budget", "revenue", "vote_average", "vote_count",
        "popularity", "adult", "genres", "keywords", "spoken_languages", "companies",
        "countries", "homepage", "poster_url", "backdrop_url", "credits", "videos",
        "images", "watch_providers", "external_ids", "translations", "raw_data",
        "last_synced",
    ),
    secondary_unique=("imdb_id",),
)

TV_SHOWS = TableSpec(
    name="tv_shows",
    key=("tmdb_id",),
    columns=(
        "tvmaze_id", "imdb_id", "title", "original_title", "tagline", "synopsis",
        "status", "show_type", "nb_seasons", "nb_episodes", "episode_runtime",
        "first_air_date", "last_air_date", "next_episode", "last_episode", "genres",
        "keywords", "spoken_languages", "companies", "countries", "networks",
        "network_name", "homepage", "poster_url", "backdrop_url", "credits", "images",
        "videos", "watch_providers", "external_ids", "translations", "raw_data",
        "last_synced",
    ),
    secondary_unique=("tvmaze_id",),
)

TV_SEASONS = TableSpec(
    name="tv_seasons",
    key=("show_id", "season_number"),
    columns=(
        "tmdb_id", "title", "synopsis", "air_date", "nb_episodes", "poster_url",
        "raw_data", "last_synced",
    ),
)

TV_EPISODES = TableSpec(
    name="tv_episodes",
    key=("show_id", "season_number", "episode_number"),
    columns=(
        "season_id", "tmdb_id", "title", "synopsis", "air_date", "runtime",
        "vote_average", "vote_count", "still_url", "raw_data",
    ),
)


def upsert_row(conn: sqlite3.Connection, spec: TableSpec, row: dict[str, Any]) -> int:
    """Insert ``row`` or overwrite every non-key column of the existing row.

    Returns the local primary key, which never changes across upserts of the
    same key. ``updated_at`` is refreshed on conflict.

    Raises:
        ValueError: If a key column is missing or a column is not writable.
    """
    unknown = set(row) - spec.writable
    if unknown:
        raise ValueError(f"Unknown columns for {spec.name}: {sorted(unknown)}")
    missing = [column for column in spec.key if row.get(column) in (None, "")]
    if missing:
        raise ValueError(f"Missing key columns for {spec.name}: {missing}")

    columns = [column for column in spec.key + spec.columns if column in row]
    updates = [f"{column} = excluded.{column}" for column in columns if column not in spec.key]
    updates.append("updated_at = CURRENT_TIMESTAMP")
    key_clause = " AND ".join(f"{column} = :{column}" for column in spec.key)

    with transaction(conn):
        for column in spec.secondary_unique:
            if row.get(column) is not None:
                _release_secondary(conn, spec, column, row, key_clause)
        conn.execute(
            f"INSERT INTO {spec.name} ({', '.join(columns)}) "
            f"VALUES ({', '.join(':' + column for column in columns)}) "
            f"ON CONFLICT({', '.join(spec.key)}) DO UPDATE SET {', '.join(updates)}",
            row,
        )
        found = conn.execute(f"SELECT id FROM {spec.name} WHERE {key_clause}", row).fetchone()
    return found["id"]


def _release_secondary(
    conn: sqlite3.Connection,
    spec: TableSpec,
    column: str,
    row: dict[str, Any],
    key_clause: str,
) -> None:
    """Clear ``column`` on any other row already holding the incoming value."""
    cursor = conn.execute(
        f"UPDATE {spec.name} SET {column} = NULL "
        f"WHERE {column} = :{column} AND NOT ({key_clause})",
        row,
    )
    if cursor.rowcount:
        logger.info(
            "Cleared %s=%s from %d older %s row(s)", column, row[column], cursor.rowcount, spec.name
        )


class _EntityRepository:
    """Shared read/delete helpers for one catalog table."""

    SPEC: ClassVar[TableSpec]
    DOMAIN: ClassVar[str]
    ORDER_BY: ClassVar[str] = "title COLLATE NOCASE"

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def upsert(self, row: dict[str, Any]) -> int:
        return upsert_row(self._conn, self.SPEC, row)

    def get(self, entity_id: int) -> sqlite3.Row | None:
        cursor = self._conn.execute(f"SELECT * FROM {self.SPEC.name} WHERE id = ?", (entity_id,))
        return cursor.fetchone()

    def exists(self, entity_id: int) -> bool:
        return self.get(entity_id) is not None

    def list_all(self) -> list[LibraryEntry]:
        cursor = self._conn.execute(f"SELECT * FROM {self.SPEC.name} ORDER BY {self.ORDER_BY}")
        return [row_to_entry(row, self.DOMAIN) for row in cursor.fetchall()]

    def delete(self, entity_id: int) -> None:
        """Delete an entity; overlays, owners and children go with it.

        Raises:
            ValueError: If the entity does not exist.
        """
        with transaction(self._conn):
            cursor = self._conn.execute(
                f"DELETE FROM {self.SPEC.name} WHERE id = ?", (entity_id,)
            )
        if cursor.rowcount == 0:
            raise ValueError(f"{self.DOMAIN} entry with id {entity_id} not found")


class _SourceKeyedRepository(_EntityRepository):
    """Tables keyed by (source_id, source_name) with ISBN lookups."""

    def get_by_source(self, source_id: str, source_name: str) -> sqlite3.Row | None:
        cursor = self._conn.execute(
            f"SELECT * FROM {self.SPEC.name} WHERE source_id = ? AND source_name = ?",
            (source_id, source_name),
        )
        return cursor.fetchone()

    def find_existing(
        self,
        source_id: str | None,
        source_name: str | None,
        isbn10: str | None = None,
        isbn13: str | None = None,
    ) -> int | None:
        """Local id matching the source pair, else isbn10, else isbn13."""
        cursor = self._conn.execute(
            f"SELECT id FROM {self.SPEC.name} "
            "WHERE (source_id = ? AND source_name = ?) OR isbn10 = ? OR isbn13 = ? "
            "ORDER BY CASE WHEN source_id = ? AND source_name = ? THEN 0 "
            "WHEN isbn10 = ? THEN 1 ELSE 2 END LIMIT 1",
            (source_id, source_name, isbn10, isbn13, source_id, source_name, isbn10),
        )
        row = cursor.fetchone()
        return row["id"] if row else None


class BookRepository(_SourceKeyedRepository):
    SPEC = BOOKS
    DOMAIN = "books"

    def search(self, query: str) -> list[LibraryEntry]:
        """Full-text search across title, authors, and synopsis, best matches first."""
        cursor = self._conn.execute(
            "SELECT books.* FROM books "
            "JOIN books_fts ON books.id = books_fts.rowid "
            "WHERE books_fts MATCH ? "
            "ORDER BY books_fts.rank",
            (query,),
        )
        return [row_to_entry(row, self.DOMAIN) for row in cursor.fetchall()]


class SeriesRepository(_SourceKeyedRepository):
    SPEC = SERIES
    DOMAIN = "series"

    def list_by_media_type(self, media_type: str) -> list[LibraryEntry]:
        cursor = self._conn.execute(
            f"SELECT * FROM series WHERE media_type = ? ORDER BY {self.ORDER_BY}", (media_type,)
        )
        return [row_to_entry(row, media_type) for row in cursor.fetchall()]

    # --- volumes ---

    def add_volume(
        self,
        series_id: int,
        number: int,
        *,
        title: str | None = None,
        isbn: str | None = None,
        price: float | None = None,
        release_date: str | None = None,
        cover_url: str | None = None,
    ) -> int:
        """Create or refresh the volume ``number`` of a series; returns its id."""
        if not self.exists(series_id):
            raise ValueError(f"series entry with id {series_id} not found")
        with transaction(self._conn):
            self._conn.execute(
                "INSERT INTO series_volumes (series_id, number, title, isbn, price, release_date, cover_url) "
                "VALUES (?, ?, ?, ?, COALESCE(?, 0), ?, ?) "
                "ON CONFLICT(series_id, number) DO UPDATE SET "
                "title = COALESCE(excluded.title, title), isbn = COALESCE(excluded.isbn, isbn), "
                "price = COALESCE(?, price), release_date = COALESCE(excluded.release_date, release_date), "
                "cover_url = COALESCE(excluded.cover_url, cover_url)",
                (series_id, number, title, isbn, price, release_date, cover_url, price),
            )
            row = self._conn.execute(
                "SELECT id FROM series_volumes WHERE series_id = ? AND number = ?",
                (series_id, number),
            ).fetchone()
        return row["id"]

    def get_volume(self, volume_id: int) -> sqlite3.Row | None:
        cursor = self._conn.execute("SELECT * FROM series_volumes WHERE id = ?", (volume_id,))
        return cursor.fetchone()

    def list_volumes(self, series_id: int) -> list[sqlite3.Row]:
        cursor = self._conn.execute(
            "SELECT * FROM series_volumes WHERE series_id = ? ORDER BY number", (series_id,)
        )
        return cursor.fetchall()

    def set_volume_price(self, volume_id: int, price: float) -> int:
        """Set a volume's price; volume 1's price also fills siblings priced 0.

        Returns the number of sibling volumes that received the price.
        """
        volume = self.get_volume(volume_id)
        if volume is None:
            raise ValueError(f"Volume with id {volume_id} not found")
        with transaction(self._conn):
            self._conn.execute("UPDATE series_volumes SET price = ? WHERE id = ?", (price, volume_id))
            if volume["number"] != 1 or not price:
                return 0
            cursor = self._conn.execute(
                "UPDATE series_volumes SET price = ? "
                "WHERE series_id = ? AND id != ? AND (price IS NULL OR price = 0)",
                (price, volume["series_id"], volume_id),
            )
        return cursor.rowcount


class MovieRepository(_EntityRepository):
    SPEC = MOVIES
    DOMAIN = "movies"

    def get_by_tmdb_id(self, tmdb_id: int) -> sqlite3.Row | None:
        return self._conn.execute("SELECT * FROM movies WHERE tmdb_id = ?", (tmdb_id,)).fetchone()

    def find_existing(self, tmdb_id: int | str | None) -> int | None:
        if tmdb_id in (None, ""):
            return None
        row = self.get_by_tmdb_id(int(tmdb_id))
        return row["id"] if row else None


class TvShowRepository(_EntityRepository):
    SPEC = TV_SHOWS
    DOMAIN = "tv"

    def get_by_tmdb_id(self, tmdb_id: int) -> sqlite3.Row | None:
        return self._conn.execute("SELECT * FROM tv_shows WHERE tmdb_id = ?", (tmdb_id,)).fetchone()

    def find_existing(self, tmdb_id: int | str | None) -> int | None:
        if tmdb_id in (None, ""):
            return None
        row = self.get_by_tmdb_id(int(tmdb_id))
        return row["id"] if row else None

    def find_by_tvmaze_id(self, tvmaze_id: int | str | None) -> int | None:
        if tvmaze_id in (None, ""):
            return None
        row = self._conn.execute(
            "SELECT id FROM tv_shows WHERE tvmaze_id = ?", (int(tvmaze_id),)
        ).fetchone()
        return row["id"] if row else None

    def upsert_season(self, row: dict[str, Any]) -> int:
        return upsert_row(self._conn, TV_SEASONS, row)

    def upsert_episode(self, row: dict[str, Any]) -> int:
        return upsert_row(self._conn, TV_EPISODES, row)

    def list_seasons(self, show_id: int) -> list[sqlite3.Row]:
        cursor = self._conn.execute(
            "SELECT * FROM tv_seasons WHERE show_id = ? ORDER BY season_number", (show_id,)
        )
        return cursor.fetchall()

    def count_episodes(self, show_id: int) -> int:
        cursor = self._conn.execute("SELECT COUNT(*) FROM tv_episodes WHERE show_id = ?", (show_id,))
        return cursor.fetchone()[0]
