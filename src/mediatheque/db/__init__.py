# ABOUTME: Public API for the mediatheque library database layer.
# ABOUTME: Exports connection management, typed repositories, and row types.

from mediatheque.db.catalog import (
    BookRepository,
    DuplicateEntryError,
    MovieRepository,
    SeriesRepository,
    TvShowRepository,
)
from mediatheque.db.connection import DEFAULT_DB_PATH, open_database, transaction
from mediatheque.db.mapping import Label, LibraryEntry, UserOverlay
from mediatheque.db.overlays import OverlayRepository
from mediatheque.db.ownership import OwnershipRepository
from mediatheque.db.users import User, UserRepository

__all__ = [
    "DEFAULT_DB_PATH",
    "BookRepository",
    "DuplicateEntryError",
    "Label",
    "LibraryEntry",
    "MovieRepository",
    "OverlayRepository",
    "OwnershipRepository",
    "SeriesRepository",
    "TvShowRepository",
    "User",
    "UserOverlay",
    "UserRepository",
    "open_database",
    "transaction",
]
