# ABOUTME: Integration tests for the MediaLibrary facade over real repositories and fake HTTP.
# ABOUTME: Covers merged search with the in-library flag, import, sync, delete and volumes.

import sqlite3

import pytest

from mediatheque.core.library import DUPLICATE_ENTRY_MESSAGE, MediaLibrary
from mediatheque.core.overlay import UserContext
from mediatheque.db.users import User
from mediatheque.metadata.types import CanonicalMediaRecord, MediaDomain, SourceName
from mediatheque.sources.google_books import GoogleBooksClient
from mediatheque.sources.http import SourceFetchError
from mediatheque.sources.open_library import OpenLibraryClient
from mediatheque.sources.tmdb import TmdbClient
from mediatheque.sources.tvmaze import TvMazeClient
from mediatheque.sync.engine import SyncResult
from tests.fixtures.fake_http import FakeHttpClient
from tests.fixtures.google_books_responses import DUNE_VOLUME, SEARCH_RESPONSE
from tests.fixtures.tmdb_responses import (
    MOVIE_DETAILS,
    TV_DETAILS,
    TV_SEARCH,
    TV_SEASON_1,
    TV_SEASON_2,
)
from tests.fixtures.tvmaze_responses import SEARCH_RESPONSE as TVMAZE_SEARCH
from tests.fixtures.tvmaze_responses import SHOW, SHOW_WITH_NEXT_EPISODE

ALICE = UserContext("alice")


@pytest.fixture
def http() -> FakeHttpClient:
    return FakeHttpClient(
        {
            "/v1/volumes": SEARCH_RESPONSE,
            "/v1/volumes/gb-dune": DUNE_VOLUME,
            "/v1/volumes/broken": SourceFetchError("HTTP 503", status=503),
            "openlibrary.org/search.json": SourceFetchError("HTTP 503", status=503),
            "/movie/438631": MOVIE_DETAILS,
            "/search/tv": TV_SEARCH,
            "/tv/1399": TV_DETAILS,
            "/tv/1399/season/1": TV_SEASON_1,
            "/tv/1399/season/2": TV_SEASON_2,
            "/search/shows": TVMAZE_SEARCH,
            "/lookup/shows": SHOW,
            "/shows/82": SHOW_WITH_NEXT_EPISODE,
        }
    )


@pytest.fixture
def library(conn: sqlite3.Connection, http: FakeHttpClient) -> MediaLibrary:
    clients = {
        SourceName.GOOGLE_BOOKS: GoogleBooksClient(http),
        SourceName.OPEN_LIBRARY: OpenLibraryClient(http),
        SourceName.TMDB: TmdbClient(http, api_key="k"),
        SourceName.TVMAZE: TvMazeClient(http),
    }
    return MediaLibrary(conn, clients)


class TestSearch:
    def test_blank_query_makes_no_calls(self, library: MediaLibrary, http: FakeHttpClient) -> None:
        result = library.search("   ")
        assert result.hits == []
        assert result.total_results == 0
        assert http.calls == []

    def test_failed_source_is_reported(self, library: MediaLibrary) -> None:
        result = library.search("dune", MediaDomain.BOOKS)

        assert [hit.record.external_id for hit in result.hits] == ["gb-dune", "gb-asterix"]
        assert result.failed_sources == [SourceName.OPEN_LIBRARY]
        assert result.total_results == 57
        assert result.total_pages == 3

    def test_imported_items_are_flagged(self, library: MediaLibrary, alice: User) -> None:
        imported = library.import_item("gb-dune", SourceName.GOOGLE_BOOKS, MediaDomain.BOOKS, ALICE)

        result = library.search("dune", MediaDomain.BOOKS, SourceName.GOOGLE_BOOKS)

        dune, asterix = result.hits
        assert dune.in_library and dune.local_id == imported.local_id
        assert not asterix.in_library and asterix.local_id is None

    def test_tvmaze_hits_match_synced_shows(self, library: MediaLibrary) -> None:
        library.sync_item(MediaDomain.TV, 1399)

        result = library.search("thrones", MediaDomain.TV, SourceName.TVMAZE)

        flags = {hit.record.external_id: hit.in_library for hit in result.hits}
        assert flags == {"82": True, "44778": False}

    def test_cross_source_title_duplicates_collapse(self, library: MediaLibrary) -> None:
        result = library.search("thrones", MediaDomain.TV)

        assert [(hit.record.source_name, hit.record.external_id) for hit in result.hits] == [
            (SourceName.TMDB, "1399"),
            (SourceName.TVMAZE, "44778"),
        ]


class TestImport:
    def test_import_creates_entry_and_overlay(
        self, conn: sqlite3.Connection, library: MediaLibrary, alice: User
    ) -> None:
        outcome = library.import_item("gb-dune", "google_books", "books", ALICE)

        assert outcome.success
        assert not outcome.already_exists
        overlay = library.overlays.get_overlay("books", outcome.local_id, ALICE)
        assert overlay is not None and overlay.status == "to-read"

    def test_reimport_refreshes_in_place(
        self, conn: sqlite3.Connection, library: MediaLibrary, alice: User
    ) -> None:
        first = library.import_item("gb-dune", "google_books", "books", ALICE)
        second = library.import_item("gb-dune", "google_books", "books", ALICE)

        assert second.success and second.already_exists
        assert second.local_id == first.local_id
        assert conn.execute("SELECT COUNT(*) FROM books").fetchone()[0] == 1
        assert conn.execute("SELECT COUNT(*) FROM book_user_data").fetchone()[0] == 1

    def test_import_without_user_skips_overlay(
        self, conn: sqlite3.Connection, library: MediaLibrary
    ) -> None:
        outcome = library.import_item("gb-dune", "google_books", "books")

        assert outcome.success
        assert conn.execute("SELECT COUNT(*) FROM book_user_data").fetchone()[0] == 0

    def test_unknown_user(self, library: MediaLibrary) -> None:
        outcome = library.import_item("gb-dune", "google_books", "books", UserContext("zoe"))
        assert not outcome.success
        assert outcome.error == "Unknown user 'zoe'"

    def test_source_failure_is_an_error_envelope(
        self, conn: sqlite3.Connection, library: MediaLibrary
    ) -> None:
        outcome = library.import_item("broken", "google_books", "books")

        assert not outcome.success
        assert outcome.error == "HTTP 503"
        assert conn.execute("SELECT COUNT(*) FROM books").fetchone()[0] == 0

    def test_storage_collision_message(
        self, library: MediaLibrary, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def collide(*args, **kwargs):
            raise sqlite3.IntegrityError("UNIQUE constraint failed: books.isbn13")

        monkeypatch.setattr(library.sync, "upsert", collide)

        outcome = library.import_item("gb-dune", "google_books", "books")

        assert outcome.error == DUPLICATE_ENTRY_MESSAGE

    def test_unconfigured_source(self, library: MediaLibrary) -> None:
        outcome = library.import_item("ark:/12148/cb1", "bnf", "bd")
        assert outcome.error == "Source bnf is not configured"

    def test_blank_id_raises(self, library: MediaLibrary) -> None:
        with pytest.raises(ValueError, match="external_id is required"):
            library.import_item("  ", "google_books", "books")

    def test_movie_import_syncs_full_details(self, library: MediaLibrary, alice: User) -> None:
        outcome = library.import_item("438631", "tmdb", "movies", ALICE)

        assert outcome.success
        row = library.sync.movies.get(outcome.local_id)
        assert row["imdb_id"] == "tt1160419"
        assert library.overlays.get_overlay("movies", outcome.local_id, ALICE).status == "to-watch"

    def test_tv_import_brings_seasons(self, library: MediaLibrary, alice: User) -> None:
        outcome = library.import_item("1399", "tmdb", "tv", ALICE)

        assert outcome.success
        assert len(library.sync.tv_shows.list_seasons(outcome.local_id)) == 2

    def test_screen_imports_need_tmdb_ids(self, library: MediaLibrary) -> None:
        assert library.import_item("82", "tvmaze", "tv").error == (
            "Movies and TV shows are imported from TMDb"
        )
        assert library.import_item("abc", "tmdb", "movies").error == "Invalid TMDb id: abc"


class TestSyncItem:
    def test_sync_returns_the_result(self, library: MediaLibrary) -> None:
        result = library.sync_item("movies", 438631)

        assert result.success
        assert isinstance(result.value, SyncResult)
        assert library.find_local("movies", "tmdb", "438631") == result.value.local_id

    def test_only_screen_domains(self, library: MediaLibrary) -> None:
        result = library.sync_item("books", 1)
        assert result.error == "Only movies and tv can be synced, not books"

    def test_fetch_failure(self, library: MediaLibrary, http: FakeHttpClient) -> None:
        http.json_responses["/movie/500"] = SourceFetchError("HTTP 500", status=500)
        assert library.sync_item("movies", 500).error == "HTTP 500"


class TestCatalogOperations:
    def test_delete(self, library: MediaLibrary, alice: User) -> None:
        outcome = library.import_item("gb-dune", "google_books", "books", ALICE)

        assert library.delete("books", outcome.local_id).success
        assert library.list_entries("books") == []
        assert library.delete("books", outcome.local_id).error == (
            f"books entry with id {outcome.local_id} not found"
        )

    def test_delete_requires_an_id(self, library: MediaLibrary) -> None:
        with pytest.raises(ValueError):
            library.delete("books", None)

    def test_users(self, library: MediaLibrary) -> None:
        assert library.add_user("alice").success
        assert library.add_user("alice").error == "User 'alice' already exists"
        assert library.add_user(" ").error == "User name is required"
        assert [user.name for user in library.list_users()] == ["alice"]

    def test_volumes_and_spending(
        self,
        conn: sqlite3.Connection,
        library: MediaLibrary,
        asterix_record: CanonicalMediaRecord,
        alice: User,
        bob: User,
    ) -> None:
        series_id = library.sync.upsert(asterix_record, "bd")
        first = library.add_volume(series_id, 1).value
        library.add_volume(series_id, 2)
        assert library.add_volume(series_id, 1, price=9.0).success

        assert library.set_volume_owners(first, ["alice", "bob"]).value == 1
        assert library.user_spending(ALICE).value == pytest.approx(9.0)
        assert library.set_volume_owners(first, ["carol"]).error == "Unknown user 'carol'"
        assert library.add_volume(999, 1).error == "series entry with id 999 not found"

    def test_book_owner(self, library: MediaLibrary, alice: User) -> None:
        outcome = library.import_item("gb-dune", "google_books", "books", ALICE)

        assert library.set_book_owner(outcome.local_id, ALICE, 12.9).success
        assert library.user_spending(ALICE).value == pytest.approx(12.9)
        assert library.set_book_owner(outcome.local_id, UserContext()).error == "No current user"
        assert library.set_book_owner(404, ALICE).error == "books entry with id 404 not found"
