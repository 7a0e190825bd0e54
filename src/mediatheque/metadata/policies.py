# ABOUTME: Per-domain search policy table: ordered sources, language, over-fetch, classifier.
# ABOUTME: Source order here is the merge precedence; earlier sources keep duplicate slots.

from collections.abc import Callable
from dataclasses import dataclass, replace

from mediatheque.metadata.classify import is_bd, is_comic, is_french
from mediatheque.metadata.types import CanonicalMediaRecord, MediaDomain, SourceName


def _is_french_comic(record: CanonicalMediaRecord) -> bool:
    return is_comic(record) and is_french(record)


@dataclass(frozen=True)
class DomainPolicy:
    """How one search context queries and filters the catalogs.

    ``over_fetch`` multiplies the result cap sent to each source when a
    classifier will discard part of the results.
    """

    domain: MediaDomain
    sources: tuple[SourceName, ...]
    language: str | None = None
    over_fetch: int = 1
    predicate: Callable[[CanonicalMediaRecord], bool] | None = None

    def restricted_to(self, source: SourceName) -> "DomainPolicy":
        """The same policy limited to a single source."""
        if source not in self.sources:
            raise ValueError(f"{source.value} is not a source for {self.domain.value}")
        return replace(self, sources=(source,))

    def accepts(self, record: CanonicalMediaRecord) -> bool:
        return self.predicate is None or self.predicate(record)


DOMAIN_POLICIES: dict[MediaDomain, DomainPolicy] = {
    MediaDomain.BOOKS: DomainPolicy(
        domain=MediaDomain.BOOKS,
        sources=(SourceName.GOOGLE_BOOKS, SourceName.OPEN_LIBRARY, SourceName.BNF),
        language="fr",
    ),
    MediaDomain.BD: DomainPolicy(
        domain=MediaDomain.BD,
        sources=(SourceName.BNF, SourceName.GOOGLE_BOOKS),
        language="fr",
        over_fetch=2,
        predicate=is_bd,
    ),
    MediaDomain.COMICS: DomainPolicy(
        domain=MediaDomain.COMICS,
        sources=(SourceName.GOOGLE_BOOKS,),
        language="fr",
        over_fetch=2,
        predicate=_is_french_comic,
    ),
    MediaDomain.MOVIES: DomainPolicy(
        domain=MediaDomain.MOVIES,
        sources=(SourceName.TMDB,),
    ),
    MediaDomain.TV: DomainPolicy(
        domain=MediaDomain.TV,
        sources=(SourceName.TMDB, SourceName.TVMAZE),
    ),
}


def policy_for(domain: MediaDomain | str, source: SourceName | str | None = None) -> DomainPolicy:
    """Look up a domain's policy, optionally narrowed to one source ("all" keeps every source)."""
    policy = DOMAIN_POLICIES[MediaDomain(domain)]
    if source is None or source == "all":
        return policy
    return policy.restricted_to(SourceName(source))
