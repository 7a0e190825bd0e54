# ABOUTME: Best-effort multi-source fan-out and the cross-source deduplicating merger.
# ABOUTME: Equivalence is (source, id), then ISBN, then case-insensitive title; first source wins.

import logging
import math
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from mediatheque.metadata.normalizer import normalize_items
from mediatheque.metadata.policies import DomainPolicy
from mediatheque.metadata.types import CanonicalMediaRecord, SourceName
from mediatheque.sources.http import SourceError
from mediatheque.sources.provider import (
    DEFAULT_MAX_RESULTS,
    SearchOptions,
    SearchPage,
    SourceClient,
)

logger = logging.getLogger(__name__)


@dataclass
class SourceOutcome:
    """What one source contributed to a fan-out round."""

    source: SourceName
    page: SearchPage = field(default_factory=SearchPage.empty)
    error: Exception | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


def _search_one(client: SourceClient, query: str, options: SearchOptions) -> SourceOutcome:
    try:
        return SourceOutcome(source=client.name, page=client.search_page(query, options))
    except SourceError as exc:
        logger.warning("Source %s failed for %r: %s", client.name.value, query, exc)
        return SourceOutcome(source=client.name, error=exc)
    except Exception as exc:
        logger.exception("Source %s crashed for %r", client.name.value, query)
        return SourceOutcome(source=client.name, error=exc)


def fan_out(
    clients: Sequence[SourceClient],
    query: str,
    options: SearchOptions | None = None,
) -> list[SourceOutcome]:
    """Query every client concurrently and wait for all of them.

    A failing source yields an empty outcome carrying its error; it never
    cancels or delays its siblings. Outcomes keep the order of ``clients``.
    """
    options = options or SearchOptions()
    if not clients:
        return []
    if len(clients) == 1:
        return [_search_one(clients[0], query, options)]
    with ThreadPoolExecutor(max_workers=len(clients)) as executor:
        futures = [executor.submit(_search_one, client, query, options) for client in clients]
        return [future.result() for future in futures]


def _title_key(title: str | None) -> str | None:
    if not title:
        return None
    key = title.strip().casefold()
    return key or None


class ResultMerger:
    """Accumulates records from sources in priority order, dropping duplicates.

    Once a slot is filled, a later duplicate from any source never replaces it.
    """

    def __init__(self) -> None:
        self._records: list[CanonicalMediaRecord] = []
        self._source_keys: set[tuple[str, str]] = set()
        self._isbns: set[str] = set()
        self._titles: set[str] = set()

    @property
    def records(self) -> list[CanonicalMediaRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def is_duplicate(self, record: CanonicalMediaRecord) -> bool:
        source_key = record.source_key
        if source_key is not None and source_key in self._source_keys:
            return True
        if record.isbn and record.isbn in self._isbns:
            return True
        title = _title_key(record.title)
        return title is not None and title in self._titles

    def add(self, record: CanonicalMediaRecord) -> bool:
        """Append ``record`` unless an equivalent one is already present."""
        if self.is_duplicate(record):
            return False
        self._records.append(record)
        if record.source_key is not None:
            self._source_keys.add(record.source_key)
        if record.isbn:
            self._isbns.add(record.isbn)
        title = _title_key(record.title)
        if title is not None:
            self._titles.add(title)
        return True

    def extend(self, records: Iterable[CanonicalMediaRecord]) -> int:
        return sum(1 for record in records if self.add(record))


@dataclass
class SearchHit:
    """A merged record annotated against the local library."""

    record: CanonicalMediaRecord
    in_library: bool = False
    local_id: int | None = None


@dataclass
class MergedSearch:
    hits: list[SearchHit]
    total_results: int
    total_pages: int
    failed_sources: list[SourceName] = field(default_factory=list)


LibraryLookup = Callable[[CanonicalMediaRecord], int | None]


def merge_outcomes(
    outcomes: Sequence[SourceOutcome],
    policy: DomainPolicy,
    result_cap: int,
) -> tuple[list[CanonicalMediaRecord], int]:
    """Normalize, filter and merge outcomes; returns (records, reported total)."""
    merger = ResultMerger()
    reported_total = 0
    for outcome in outcomes:
        records = [
            record
            for record in normalize_items(outcome.page.items, outcome.source)
            if policy.accepts(record)
        ]
        merger.extend(records[:result_cap])
        if policy.predicate is None:
            reported_total = max(reported_total, outcome.page.total_results)
    return merger.records, reported_total


def merged_search(
    clients: Sequence[SourceClient],
    query: str,
    policy: DomainPolicy,
    *,
    result_cap: int = DEFAULT_MAX_RESULTS,
    page: int = 1,
    lookup: LibraryLookup | None = None,
) -> MergedSearch:
    """Fan out, normalize, classify, deduplicate and annotate one search.

    ``clients`` must already be in the policy's source order.
    """
    options = SearchOptions(
        max_results=result_cap * policy.over_fetch,
        language=policy.language,
        page=page,
    )
    outcomes = fan_out(clients, query, options)
    records, reported_total = merge_outcomes(outcomes, policy, result_cap)

    hits = []
    for record in records:
        local_id = lookup(record) if lookup else None
        hits.append(SearchHit(record=record, in_library=local_id is not None, local_id=local_id))

    total = max(reported_total, len(hits))
    return MergedSearch(
        hits=hits,
        total_results=total,
        total_pages=math.ceil(total / result_cap) if result_cap else 0,
        failed_sources=[outcome.source for outcome in outcomes if outcome.failed],
    )
