# ABOUTME: Shared pytest fixtures for mediatheque tests.
# ABOUTME: Provides a fresh library database, sample users, and canned catalog records.

import sqlite3
from pathlib import Path

import pytest

from mediatheque.db.connection import open_database
from mediatheque.db.users import User, UserRepository
from mediatheque.metadata.types import CanonicalMediaRecord, SourceName


@pytest.fixture
def fixtures_dir() -> Path:
    """Path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "library.db"


@pytest.fixture
def conn(db_path: Path) -> sqlite3.Connection:
    """An open library database with the full schema applied."""
    connection = open_database(db_path)
    yield connection
    connection.close()


@pytest.fixture
def alice(conn: sqlite3.Connection) -> User:
    return UserRepository(conn).add("alice")


@pytest.fixture
def bob(conn: sqlite3.Connection) -> User:
    return UserRepository(conn).add("bob")


@pytest.fixture
def dune_record() -> CanonicalMediaRecord:
    """A Google Books record with both ISBNs."""
    return CanonicalMediaRecord(
        external_id="gb-dune",
        source_name=SourceName.GOOGLE_BOOKS,
        title="Dune",
        authors=["Frank Herbert"],
        publisher="Pocket",
        release_date="2021-01-01",
        language="fr",
        synopsis="Sur la planète Arrakis, Paul Atréides affronte son destin.",
        categories=["Science Fiction"],
        isbn10="2266320483",
        isbn13="9782266320481",
        price=12.9,
        currency="EUR",
    )


@pytest.fixture
def asterix_record() -> CanonicalMediaRecord:
    """A BnF album record for a BD series."""
    return CanonicalMediaRecord(
        external_id="ark:/12148/cb34567890",
        source_name=SourceName.BNF,
        title="Astérix le Gaulois",
        authors=["Goscinny, René", "Uderzo, Albert"],
        publisher="Hachette (Paris)",
        release_date="1961-01-01",
        language="fre",
        categories=["Bandes dessinées"],
        isbn10="2012100017",
    )
