# ABOUTME: Unit tests for database schema creation, migrations and connection management.
# ABOUTME: Validates catalog and overlay tables, FTS5, WAL mode, foreign keys, and transactions.

import sqlite3
from pathlib import Path

import pytest

from mediatheque.db.connection import get_schema_version, open_database, transaction
from mediatheque.db.schema import LATEST_VERSION, SCHEMA_V1


def _columns(conn: sqlite3.Connection, table: str) -> set[str]:
    return {row[1] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()}


def _tables(conn: sqlite3.Connection) -> set[str]:
    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type IN ('table', 'view')")
    return {row[0] for row in cursor.fetchall()}


class TestOpenDatabase:
    """Tests for open_database() connection factory."""

    def test_creates_database_file(self, db_path: Path) -> None:
        conn = open_database(db_path)
        conn.close()
        assert db_path.exists()

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        nested = tmp_path / "deep" / "nested" / "library.db"
        conn = open_database(nested)
        conn.close()
        assert nested.exists()

    def test_wal_mode_and_foreign_keys(self, conn: sqlite3.Connection) -> None:
        assert conn.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
        assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1

    def test_rows_support_column_access(self, conn: sqlite3.Connection) -> None:
        row = conn.execute("SELECT 1 AS one").fetchone()
        assert row["one"] == 1

    def test_creates_every_table(self, conn: sqlite3.Connection) -> None:
        expected = {
            "users",
            "books",
            "books_fts",
            "series",
            "series_volumes",
            "movies",
            "tv_shows",
            "tv_seasons",
            "tv_episodes",
            "book_user_data",
            "series_user_data",
            "movie_user_data",
            "tv_show_user_data",
            "volume_owners",
            "volume_reads",
            "book_owners",
            "schema_version",
        }
        assert expected <= _tables(conn)

    def test_catalog_identity_columns(self, conn: sqlite3.Connection) -> None:
        assert {"source_id", "source_name", "isbn10", "isbn13"} <= _columns(conn, "books")
        assert {"source_id", "source_name", "media_type", "nb_volumes"} <= _columns(conn, "series")
        assert {"tmdb_id", "imdb_id", "translations", "last_synced"} <= _columns(conn, "movies")
        assert {"tmdb_id", "tvmaze_id", "network_name", "next_episode"} <= _columns(conn, "tv_shows")

    def test_overlay_progress_columns(self, conn: sqlite3.Connection) -> None:
        series = _columns(conn, "series_user_data")
        assert {"volumes_read", "chapters_read", "completion_tag", "tag_is_manual"} <= series
        assert "episodes_watched" in _columns(conn, "tv_show_user_data")
        assert "completion_tag" not in _columns(conn, "book_user_data")

    def test_reopening_keeps_data(self, db_path: Path) -> None:
        conn = open_database(db_path)
        conn.execute("INSERT INTO users (name) VALUES ('alice')")
        conn.commit()
        conn.close()

        conn = open_database(db_path)
        assert conn.execute("SELECT COUNT(*) FROM users").fetchone()[0] == 1
        conn.close()


class TestMigrations:
    def test_new_database_is_at_latest_version(self, conn: sqlite3.Connection) -> None:
        assert get_schema_version(conn) == LATEST_VERSION == 2

    def test_v1_database_is_upgraded(self, db_path: Path) -> None:
        """A database created before ownership tracking gains the V2 tables."""
        legacy = sqlite3.connect(str(db_path))
        legacy.executescript(SCHEMA_V1)
        legacy.close()

        conn = open_database(db_path)
        assert get_schema_version(conn) == 2
        assert {"volume_owners", "volume_reads", "book_owners"} <= _tables(conn)
        conn.close()

    def test_migrations_run_once(self, db_path: Path) -> None:
        open_database(db_path).close()
        conn = open_database(db_path)
        versions = [row[0] for row in conn.execute("SELECT version FROM schema_version")]
        conn.close()
        assert versions == [1, 2]


class TestFullTextSearch:
    def test_fts_follows_inserts_and_deletes(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            "INSERT INTO books (title, authors, source_id, source_name) "
            "VALUES ('Le Petit Prince', '[\"Saint-Exupéry\"]', 'b1', 'bnf')"
        )
        hits = conn.execute("SELECT rowid FROM books_fts WHERE books_fts MATCH 'prince'").fetchall()
        assert len(hits) == 1

        conn.execute("DELETE FROM books WHERE source_id = 'b1'")
        hits = conn.execute("SELECT rowid FROM books_fts WHERE books_fts MATCH 'prince'").fetchall()
        assert hits == []


class TestTransaction:
    def test_commits_on_success(self, conn: sqlite3.Connection) -> None:
        with transaction(conn):
            conn.execute("INSERT INTO users (name) VALUES ('alice')")
        assert not conn.in_transaction
        assert conn.execute("SELECT COUNT(*) FROM users").fetchone()[0] == 1

    def test_rolls_back_on_error(self, conn: sqlite3.Connection) -> None:
        with pytest.raises(RuntimeError):
            with transaction(conn):
                conn.execute("INSERT INTO users (name) VALUES ('alice')")
                raise RuntimeError("boom")
        assert conn.execute("SELECT COUNT(*) FROM users").fetchone()[0] == 0

    def test_nested_blocks_join_the_outer_transaction(self, conn: sqlite3.Connection) -> None:
        with pytest.raises(RuntimeError):
            with transaction(conn):
                with transaction(conn):
                    conn.execute("INSERT INTO users (name) VALUES ('alice')")
                assert conn.in_transaction
                raise RuntimeError("outer failure")
        assert conn.execute("SELECT COUNT(*) FROM users").fetchone()[0] == 0

    def test_foreign_key_cascade(self, conn: sqlite3.Connection) -> None:
        with transaction(conn):
            conn.execute("INSERT INTO users (name) VALUES ('alice')")
            conn.execute(
                "INSERT INTO books (title, source_id, source_name) VALUES ('Dune', 'g', 'google_books')"
            )
            conn.execute("INSERT INTO book_user_data (book_id, user_id) VALUES (1, 1)")
        with transaction(conn):
            conn.execute("DELETE FROM books WHERE id = 1")
        assert conn.execute("SELECT COUNT(*) FROM book_user_data").fetchone()[0] == 0
