# ABOUTME: SourceClient protocol defining the contract for external catalogs.
# ABOUTME: Google Books, Open Library, BnF, TMDb and TV Maze clients all implement this.

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from mediatheque.metadata.types import RawItem, SourceName

DEFAULT_MAX_RESULTS = 20


@dataclass(frozen=True)
class SearchOptions:
    """Per-call search knobs.

    max_results falls back to the source's own default when None.
    language restricts results where the source supports it.
    """

    max_results: int | None = None
    language: str | None = None
    page: int = 1


@dataclass
class SearchPage:
    """One page of raw results plus the catalog-reported total."""

    items: list[RawItem] = field(default_factory=list)
    total_results: int = 0

    @classmethod
    def empty(cls) -> "SearchPage":
        return cls(items=[], total_results=0)


def is_blank(query: str | None) -> bool:
    """Whether a query is empty after trimming (short-circuits without I/O)."""
    return not query or not query.strip()


@runtime_checkable
class SourceClient(Protocol):
    """Protocol for catalog lookup services.

    search/search_page return raw items only; the normalizer owns the
    mapping to CanonicalMediaRecord. Blank queries return an empty result
    without touching the network.
    """

    @property
    def name(self) -> SourceName: ...

    def search(self, query: str, options: SearchOptions | None = None) -> list[RawItem]: ...

    def search_page(self, query: str, options: SearchOptions | None = None) -> SearchPage: ...

    def get_by_id(self, item_id: str) -> RawItem: ...
