# ABOUTME: End-to-end tests for the mediatheque CLI.
# ABOUTME: Drives commands through Click's CliRunner against a temp database and fake catalogs.

from pathlib import Path

import pytest
from click.testing import CliRunner

from mediatheque.cli import cli
from mediatheque.config import Settings
from mediatheque.core.library import MediaLibrary
from mediatheque.sources.http import SourceFetchError
from tests.fixtures.fake_http import FakeHttpClient
from tests.fixtures.google_books_responses import ASTERIX_VOLUME, DUNE_VOLUME, SEARCH_RESPONSE
from tests.fixtures.tmdb_responses import MOVIE_DETAILS, TV_DETAILS, TV_SEASON_1, TV_SEASON_2
from tests.fixtures.tvmaze_responses import SHOW, SHOW_WITH_NEXT_EPISODE


@pytest.fixture
def fake_http(monkeypatch: pytest.MonkeyPatch) -> FakeHttpClient:
    """Route every catalog call of the CLI to canned responses."""
    fake = FakeHttpClient(
        {
            "/v1/volumes": SEARCH_RESPONSE,
            "/v1/volumes/gb-dune": DUNE_VOLUME,
            "/v1/volumes/gb-asterix": ASTERIX_VOLUME,
            "/v1/volumes/broken": SourceFetchError("HTTP 503", status=503),
            "openlibrary.org/search.json": SourceFetchError("HTTP 503", status=503),
            "/movie/438631": MOVIE_DETAILS,
            "/tv/1399": TV_DETAILS,
            "/tv/1399/season/1": TV_SEASON_1,
            "/tv/1399/season/2": TV_SEASON_2,
            "/lookup/shows": SHOW,
            "/shows/82": SHOW_WITH_NEXT_EPISODE,
        },
        text_responses={"catalogue.bnf.fr": SourceFetchError("HTTP 503", status=503)},
    )
    settings = Settings.from_env({"TMDB_API_KEY": "k"})
    monkeypatch.setattr("mediatheque.cli.options.load_settings", lambda: settings)
    monkeypatch.setenv("COLUMNS", "200")

    original = MediaLibrary.from_settings

    def from_settings(conn, settings, *, http=None):
        return original(conn, settings, http=fake)

    monkeypatch.setattr(MediaLibrary, "from_settings", staticmethod(from_settings))
    return fake


@pytest.fixture
def db(tmp_path: Path) -> list[str]:
    return ["--db", str(tmp_path / "e2e.db")]


@pytest.fixture
def run(fake_http: FakeHttpClient, db: list[str]):
    """Invoke the CLI with the test database appended to the arguments."""
    runner = CliRunner()

    def invoke(*args: str):
        return runner.invoke(cli, [*args, *db])

    return invoke


@pytest.fixture
def alice(run) -> str:
    result = run("user", "add", "alice")
    assert result.exit_code == 0
    return "alice"


class TestUserCommands:
    def test_add_and_list(self, run) -> None:
        result = run("user", "add", "alice")
        assert result.exit_code == 0
        assert "Added user alice (#1)." in result.output

        result = run("user", "ls")
        assert result.exit_code == 0
        assert "alice" in result.output

    def test_duplicate_user(self, run, alice: str) -> None:
        result = run("user", "add", "alice")
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_empty_user_list(self, run) -> None:
        assert "No users yet." in run("user", "ls").output


class TestSearchCommand:
    def test_blank_query(self, run, fake_http: FakeHttpClient) -> None:
        result = run("search", "  ")
        assert result.exit_code == 0
        assert "No results found." in result.output
        assert fake_http.calls == []

    def test_results_and_failed_source(self, run) -> None:
        result = run("search", "dune")

        assert result.exit_code == 0
        assert "gb-dune" in result.output
        assert "gb-asterix" in result.output
        assert "open_library did not answer" in result.output
        assert "2 shown, 57 total" in result.output

    def test_local_marker_after_import(self, run, alice: str) -> None:
        run("import", "gb-dune", "-s", "google_books", "--user", alice)

        result = run("search", "dune", "-s", "google_books")

        assert "#1" in result.output


class TestImportCommand:
    def test_import_then_refresh(self, run, alice: str) -> None:
        result = run("import", "gb-dune", "-s", "google_books", "--user", alice)
        assert result.exit_code == 0
        assert "Imported books entry #1." in result.output

        result = run("import", "gb-dune", "-s", "google_books", "--user", alice)
        assert result.exit_code == 0
        assert "Refreshed existing books entry #1." in result.output

    def test_import_failure(self, run) -> None:
        result = run("import", "broken", "-s", "google_books")
        assert result.exit_code == 1
        assert "Import failed: HTTP 503" in result.output

    def test_import_for_unknown_user(self, run) -> None:
        result = run("import", "gb-dune", "-s", "google_books", "--user", "zoe")
        assert result.exit_code == 1
        assert "Unknown user 'zoe'" in result.output

    def test_source_is_required(self, run) -> None:
        assert run("import", "gb-dune").exit_code == 2


class TestOverlayCommands:
    @pytest.fixture(autouse=True)
    def imported(self, run, alice: str) -> None:
        assert run("import", "gb-dune", "-s", "google_books", "--user", alice).exit_code == 0

    def test_status_with_score(self, run) -> None:
        result = run("status", "1", "read", "--score", "8", "--finished", "2024-05-01", "--user", "alice")
        assert result.exit_code == 0
        assert "books #1 is now read." in result.output

        listing = run("ls", "--user", "alice")
        assert "Dune" in listing.output
        assert "read" in listing.output

    def test_status_not_valid_for_domain(self, run) -> None:
        result = run("status", "1", "watched", "--user", "alice")
        assert result.exit_code == 1
        assert "Invalid status: watched" in result.output

    def test_favorite_toggles(self, run) -> None:
        assert "added to favorites" in run("favorite", "1", "--user", "alice").output
        assert "removed from favorites" in run("favorite", "1", "--user", "alice").output

    def test_no_current_user(self, run, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("MEDIATHEQUE_USER", raising=False)
        result = run("favorite", "1")
        assert result.exit_code == 1
        assert "No current user" in result.output

    def test_unknown_entry(self, run) -> None:
        result = run("favorite", "9", "--user", "alice")
        assert result.exit_code == 1
        assert "books entry with id 9 not found" in result.output

    def test_labels(self, run) -> None:
        run("label", "add", "1", "prêté", "--color", "#ef4444", "--user", "alice")
        result = run("label", "add", "1", "relire", "--user", "alice")
        assert "Labels: prêté, relire" in result.output

        result = run("label", "rm", "1", "prêté", "--user", "alice")
        assert "Labels: relire" in result.output

    def test_hidden_entries_leave_the_listing(self, run) -> None:
        assert "now hidden" in run("hide", "1", "--user", "alice").output

        assert "No books in the library." in run("ls", "--user", "alice").output
        assert "Dune" in run("ls", "--user", "alice", "--all").output

    def test_rm(self, run) -> None:
        result = run("rm", "1", "-y")
        assert result.exit_code == 0
        assert "Deleted books #1." in result.output
        assert "No books in the library." in run("ls").output

    def test_rm_asks_first(self, run) -> None:
        result = run("rm", "1")
        assert result.exit_code == 1
        assert "Dune" in run("ls").output

    def test_rm_unknown(self, run) -> None:
        result = run("rm", "5", "-y")
        assert result.exit_code == 1
        assert "books entry with id 5 not found" in result.output

    def test_own_book_and_spending(self, run) -> None:
        result = run("own", "book", "1", "--price", "12.5", "--user", "alice")
        assert result.exit_code == 0
        assert "Book #1 owned (12.50)." in result.output

        assert "Total spent: 12.50" in run("own", "spent", "--user", "alice").output


class TestSeriesCommands:
    @pytest.fixture(autouse=True)
    def series(self, run, alice: str) -> None:
        run("user", "add", "bob")
        result = run("import", "gb-asterix", "-s", "google_books", "-d", "bd", "--user", alice)
        assert "Imported bd entry #1." in result.output

    def test_volumes_owners_and_spending(self, run) -> None:
        run("volume", "add", "1", "1")
        run("volume", "add", "1", "2")
        result = run("volume", "add", "1", "1", "--price", "10")
        assert "Volume 1 of series #1 is #1." in result.output

        result = run("own", "volume", "1", "-o", "alice", "-o", "bob")
        assert result.exit_code == 0
        assert "Also applied to 1 other volume(s)." in result.output

        assert "Total spent: 10.00" in run("own", "spent", "--user", "alice").output

    def test_unknown_owner(self, run) -> None:
        run("volume", "add", "1", "1")
        result = run("own", "volume", "1", "-o", "carol")
        assert result.exit_code == 1
        assert "Unknown user 'carol'" in result.output

    def test_reading_and_tags(self, run) -> None:
        run("volume", "add", "1", "1")
        run("volume", "add", "1", "2")

        result = run("volume", "read", "1", "--user", "alice")
        assert "tag: in-progress" in result.output

        result = run("tag", "1", "abandoned", "--user", "alice")
        assert "Series #1 tag: abandoned" in result.output

        result = run("progress", "1", "-d", "bd", "--volumes", "2", "--user", "alice")
        assert result.exit_code == 0
        assert "Tag: abandoned" in result.output

        result = run("volume", "read", "2", "--user", "alice")
        assert "tag: abandoned" in result.output

        result = run("tag", "1", "auto", "--user", "alice")
        assert "Series #1 tag: completed" in result.output

    def test_progress_needs_a_counter(self, run) -> None:
        result = run("progress", "1", "-d", "bd", "--user", "alice")
        assert result.exit_code == 2

    def test_listing_shows_the_tag(self, run) -> None:
        run("progress", "1", "-d", "bd", "--chapters", "3", "--user", "alice")
        result = run("ls", "-d", "bd", "--user", "alice")
        assert "Astérix" in result.output
        assert "in-progress" in result.output


class TestSyncCommands:
    def test_sync_movie(self, run) -> None:
        result = run("sync", "movie", "438631")
        assert result.exit_code == 0
        assert "Synced movie tmdb:438631 as #1" in result.output
        assert "Dune" in run("ls", "-d", "movies").output

    def test_sync_tv(self, run) -> None:
        result = run("sync", "tv", "1399")
        assert result.exit_code == 0
        assert "(2 season(s), 4 episode(s))" in result.output

    def test_sync_failure(self, run, fake_http: FakeHttpClient) -> None:
        fake_http.json_responses["/movie/7"] = SourceFetchError("HTTP 500", status=500)
        result = run("sync", "movie", "7")
        assert result.exit_code == 1
        assert "Sync failed: HTTP 500" in result.output
