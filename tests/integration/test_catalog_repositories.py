# ABOUTME: Integration tests for catalog upserts, lookups, search and cascading deletes.
# ABOUTME: Runs against a real SQLite library database with the full schema.

import sqlite3

import pytest

from mediatheque.db.catalog import (
    BookRepository,
    MovieRepository,
    SeriesRepository,
    TvShowRepository,
)
from mediatheque.db.mapping import record_to_book_row, record_to_series_row
from mediatheque.db.overlays import BOOK_OVERLAY, OverlayRepository
from mediatheque.db.users import User
from mediatheque.metadata.types import CanonicalMediaRecord


def _movie(tmdb_id: int, title: str, imdb_id: str | None = None) -> dict:
    return {"tmdb_id": tmdb_id, "title": title, "imdb_id": imdb_id}


class TestBookUpsert:
    def test_same_source_key_updates_in_place(
        self, conn: sqlite3.Connection, dune_record: CanonicalMediaRecord
    ) -> None:
        books = BookRepository(conn)
        first = books.upsert(record_to_book_row(dune_record, "novel"))

        dune_record.title = "Dune (édition collector)"
        second = books.upsert(record_to_book_row(dune_record, "novel"))

        assert first == second
        assert conn.execute("SELECT COUNT(*) FROM books").fetchone()[0] == 1
        assert books.get(first)["title"] == "Dune (édition collector)"

    def test_missing_key_is_rejected(self, conn: sqlite3.Connection) -> None:
        with pytest.raises(ValueError, match="Missing key columns"):
            BookRepository(conn).upsert({"source_id": "", "source_name": "bnf", "title": "x"})

    def test_unknown_column_is_rejected(self, conn: sqlite3.Connection) -> None:
        with pytest.raises(ValueError, match="Unknown columns"):
            BookRepository(conn).upsert(
                {"source_id": "a", "source_name": "bnf", "title": "x", "title; DROP TABLE books": 1}
            )

    def test_find_existing_prefers_source_pair_then_isbns(
        self, conn: sqlite3.Connection, dune_record: CanonicalMediaRecord
    ) -> None:
        books = BookRepository(conn)
        local_id = books.upsert(record_to_book_row(dune_record, "novel"))

        assert books.find_existing("gb-dune", "google_books") == local_id
        assert books.find_existing("other", "bnf", isbn10="2266320483") == local_id
        assert books.find_existing("other", "bnf", isbn13="9782266320481") == local_id
        assert books.find_existing("other", "bnf", isbn10="0000000000") is None

    def test_full_text_search(self, conn: sqlite3.Connection, dune_record: CanonicalMediaRecord) -> None:
        books = BookRepository(conn)
        books.upsert(record_to_book_row(dune_record, "novel"))

        hits = books.search("Arrakis")
        assert [entry.title for entry in hits] == ["Dune"]
        assert hits[0].authors == ["Frank Herbert"]
        assert books.search("Tolkien") == []

    def test_delete_cascades_to_overlays(
        self, conn: sqlite3.Connection, dune_record: CanonicalMediaRecord, alice: User
    ) -> None:
        books = BookRepository(conn)
        local_id = books.upsert(record_to_book_row(dune_record, "novel"))
        OverlayRepository(conn, BOOK_OVERLAY).ensure(local_id, alice.id)

        books.delete(local_id)

        assert not books.exists(local_id)
        assert conn.execute("SELECT COUNT(*) FROM book_user_data").fetchone()[0] == 0

    def test_delete_unknown_id(self, conn: sqlite3.Connection) -> None:
        with pytest.raises(ValueError, match="books entry with id 99 not found"):
            BookRepository(conn).delete(99)


class TestSeries:
    def test_list_by_media_type(
        self, conn: sqlite3.Connection, asterix_record: CanonicalMediaRecord
    ) -> None:
        series = SeriesRepository(conn)
        series.upsert(record_to_series_row(asterix_record, "bd"))

        assert [entry.title for entry in series.list_by_media_type("bd")] == ["Astérix le Gaulois"]
        assert series.list_by_media_type("manga") == []

    def test_volumes_are_keyed_by_number(
        self, conn: sqlite3.Connection, asterix_record: CanonicalMediaRecord
    ) -> None:
        series = SeriesRepository(conn)
        series_id = series.upsert(record_to_series_row(asterix_record, "bd"))

        first = series.add_volume(series_id, 1, title="Astérix le Gaulois")
        again = series.add_volume(series_id, 1, price=9.9)

        assert first == again
        volume = series.get_volume(first)
        assert volume["title"] == "Astérix le Gaulois"
        assert volume["price"] == 9.9

    def test_refresh_without_price_keeps_price(
        self, conn: sqlite3.Connection, asterix_record: CanonicalMediaRecord
    ) -> None:
        series = SeriesRepository(conn)
        series_id = series.upsert(record_to_series_row(asterix_record, "bd"))

        volume_id = series.add_volume(series_id, 1, price=9.9)
        series.add_volume(series_id, 1, title="Astérix le Gaulois")

        volume = series.get_volume(volume_id)
        assert volume["price"] == 9.9
        assert volume["title"] == "Astérix le Gaulois"

    def test_new_volume_without_price_is_zero(
        self, conn: sqlite3.Connection, asterix_record: CanonicalMediaRecord
    ) -> None:
        series = SeriesRepository(conn)
        series_id = series.upsert(record_to_series_row(asterix_record, "bd"))

        volume_id = series.add_volume(series_id, 4)

        assert series.get_volume(volume_id)["price"] == 0

    def test_volume_for_unknown_series(self, conn: sqlite3.Connection) -> None:
        with pytest.raises(ValueError, match="series entry with id 5 not found"):
            SeriesRepository(conn).add_volume(5, 1)

    def test_first_volume_price_fills_unpriced_siblings(
        self, conn: sqlite3.Connection, asterix_record: CanonicalMediaRecord
    ) -> None:
        series = SeriesRepository(conn)
        series_id = series.upsert(record_to_series_row(asterix_record, "bd"))
        first = series.add_volume(series_id, 1)
        series.add_volume(series_id, 2)
        series.add_volume(series_id, 3, price=12.5)

        assert series.set_volume_price(first, 10.95) == 1

        prices = [volume["price"] for volume in series.list_volumes(series_id)]
        assert prices == [10.95, 10.95, 12.5]

    def test_other_volume_price_stays_local(
        self, conn: sqlite3.Connection, asterix_record: CanonicalMediaRecord
    ) -> None:
        series = SeriesRepository(conn)
        series_id = series.upsert(record_to_series_row(asterix_record, "bd"))
        series.add_volume(series_id, 1)
        second = series.add_volume(series_id, 2)

        assert series.set_volume_price(second, 8.0) == 0
        assert [volume["price"] for volume in series.list_volumes(series_id)] == [0, 8.0]


class TestScreenTables:
    def test_movie_upsert_keeps_local_id(self, conn: sqlite3.Connection) -> None:
        movies = MovieRepository(conn)
        first = movies.upsert(_movie(438631, "Dune"))
        second = movies.upsert(_movie(438631, "Dune : Première partie"))

        assert first == second
        assert movies.get_by_tmdb_id(438631)["title"] == "Dune : Première partie"
        assert movies.find_existing("438631") == first
        assert movies.find_existing(None) is None

    def test_imdb_id_moves_to_the_newest_row(self, conn: sqlite3.Connection) -> None:
        """Two TMDb entries claiming one IMDb id: the latest write keeps it."""
        movies = MovieRepository(conn)
        older = movies.upsert(_movie(1, "Old listing", imdb_id="tt1160419"))
        newer = movies.upsert(_movie(2, "New listing", imdb_id="tt1160419"))

        assert movies.get(older)["imdb_id"] is None
        assert movies.get(newer)["imdb_id"] == "tt1160419"

    def test_tvmaze_id_moves_to_the_newest_row(self, conn: sqlite3.Connection) -> None:
        shows = TvShowRepository(conn)
        older = shows.upsert({"tmdb_id": 10, "title": "Duplicate", "tvmaze_id": 82})
        newer = shows.upsert({"tmdb_id": 1399, "title": "Game of Thrones", "tvmaze_id": 82})

        assert shows.get(older)["tvmaze_id"] is None
        assert shows.find_by_tvmaze_id("82") == newer

    def test_show_delete_cascades_to_seasons_and_episodes(self, conn: sqlite3.Connection) -> None:
        shows = TvShowRepository(conn)
        show_id = shows.upsert({"tmdb_id": 1399, "title": "Game of Thrones"})
        season_id = shows.upsert_season({"show_id": show_id, "season_number": 1})
        shows.upsert_episode(
            {"show_id": show_id, "season_number": 1, "episode_number": 1, "season_id": season_id}
        )
        assert shows.count_episodes(show_id) == 1

        shows.delete(show_id)

        assert conn.execute("SELECT COUNT(*) FROM tv_seasons").fetchone()[0] == 0
        assert conn.execute("SELECT COUNT(*) FROM tv_episodes").fetchone()[0] == 0

    def test_list_entries_use_tmdb_as_source(self, conn: sqlite3.Connection) -> None:
        MovieRepository(conn).upsert({**_movie(438631, "Dune"), "release_date": "2021-09-15"})

        [entry] = MovieRepository(conn).list_all()

        assert entry.domain == "movies"
        assert entry.source_name == "tmdb"
        assert entry.source_id == "438631"
        assert entry.release_date == "2021-09-15"
