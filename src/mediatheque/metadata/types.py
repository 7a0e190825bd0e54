# ABOUTME: Canonical media record and source/domain enums.
# ABOUTME: CanonicalMediaRecord is the interchange format between sources, merger, and sync engine.

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SourceName(str, Enum):
    """External catalogs a record can come from."""

    GOOGLE_BOOKS = "google_books"
    OPEN_LIBRARY = "open_library"
    BNF = "bnf"
    TMDB = "tmdb"
    TVMAZE = "tvmaze"


class MediaDomain(str, Enum):
    """Search/import contexts, each with its own local entity table."""

    BOOKS = "books"
    BD = "bd"
    COMICS = "comics"
    MOVIES = "movies"
    TV = "tv"


RawItem = dict[str, Any]


@dataclass
class CanonicalMediaRecord:
    """Source-agnostic normalized representation of one catalog item.

    Every field is independently nullable: a record with only a title, or
    only an ISBN, is still a valid record. Records are built fresh per API
    response item and discarded after merge or upsert.
    """

    external_id: str | None = None
    source_name: SourceName | None = None
    title: str | None = None
    original_title: str | None = None
    subtitle: str | None = None
    authors: list[str] = field(default_factory=list)
    publisher: str | None = None
    release_date: str | None = None
    language: str | None = None
    synopsis: str | None = None
    categories: list[str] = field(default_factory=list)
    isbn10: str | None = None
    isbn13: str | None = None
    cover_url: str | None = None
    detail_url: str | None = None
    community_score: float | None = None
    community_votes: int | None = None
    page_count: int | None = None
    price: float | None = None
    currency: str | None = None
    preview_url: str | None = None
    buy_url: str | None = None
    maturity_rating: str | None = None
    # Source-specific nested payloads (credits, images, providers, ...).
    extras: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def main_author(self) -> str | None:
        return self.authors[0] if self.authors else None

    @property
    def isbn(self) -> str | None:
        """Preferred ISBN for equivalence checks: 13 first, else 10."""
        return self.isbn13 or self.isbn10

    @property
    def source_key(self) -> tuple[str, str] | None:
        """The (source name, external id) pair, or None if either is missing."""
        if self.source_name is None or not self.external_id:
            return None
        return (self.source_name.value, self.external_id)

    @property
    def year(self) -> int | None:
        if self.release_date and self.release_date[:4].isdigit():
            return int(self.release_date[:4])
        return None
