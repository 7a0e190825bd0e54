# ABOUTME: MediaLibrary facade: search, import, sync, delete, users and ownership for callers.
# ABOUTME: Returns success/error envelopes for expected failures; a missing id raises ValueError.

import logging
import sqlite3
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from mediatheque.config import Settings
from mediatheque.core.overlay import OperationResult, OverlayManager, UserContext, overlay_table_for
from mediatheque.db.catalog import DuplicateEntryError
from mediatheque.db.connection import transaction
from mediatheque.db.mapping import LibraryEntry
from mediatheque.db.overlays import OverlayRepository
from mediatheque.db.ownership import OwnershipRepository
from mediatheque.db.users import User, UserRepository
from mediatheque.metadata.merge import LibraryLookup, MergedSearch, merged_search
from mediatheque.metadata.normalizer import normalize
from mediatheque.metadata.policies import DomainPolicy, policy_for
from mediatheque.metadata.types import CanonicalMediaRecord, MediaDomain, SourceName
from mediatheque.sources.bnf import BnfClient
from mediatheque.sources.google_books import GoogleBooksClient
from mediatheque.sources.http import MediathequeHttpClient, SourceError
from mediatheque.sources.open_library import OpenLibraryClient
from mediatheque.sources.provider import DEFAULT_MAX_RESULTS, SourceClient, is_blank
from mediatheque.sources.tmdb import TmdbClient
from mediatheque.sources.translation import GroqTranslator
from mediatheque.sources.tvmaze import TvMazeClient
from mediatheque.sync.engine import StoredCallback, SyncEngine, SyncResult, TargetTable
from mediatheque.sync.enrichment import SynopsisEnricher

logger = logging.getLogger(__name__)

DUPLICATE_ENTRY_MESSAGE = "Entry already present in the collection"

_TARGETS = {
    MediaDomain.BOOKS: TargetTable.BOOKS,
    MediaDomain.BD: TargetTable.BD,
    MediaDomain.COMICS: TargetTable.COMICS,
    MediaDomain.MOVIES: TargetTable.MOVIES,
    MediaDomain.TV: TargetTable.TV,
}

_SERIES_MEDIA_TYPES = {MediaDomain.BD: "bd", MediaDomain.COMICS: "comic"}


@dataclass
class ImportOutcome:
    success: bool
    local_id: int | None = None
    already_exists: bool = False
    error: str | None = None


class MediaLibrary:
    """Entry point used by the CLI (or any other front end).

    ``clients`` maps each source to its client; a source without a client
    is left out of searches.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        clients: Mapping[SourceName, SourceClient] | None = None,
        *,
        enricher: SynopsisEnricher | None = None,
        http: MediathequeHttpClient | None = None,
    ) -> None:
        self._conn = conn
        self._clients = dict(clients or {})
        self._http = http
        tmdb = self._clients.get(SourceName.TMDB)
        tvmaze = self._clients.get(SourceName.TVMAZE)
        self.sync = SyncEngine(
            conn,
            tmdb=tmdb if isinstance(tmdb, TmdbClient) else None,
            tvmaze=tvmaze if isinstance(tvmaze, TvMazeClient) else None,
            enricher=enricher,
        )
        self.overlays = OverlayManager(conn)
        self.users = UserRepository(conn)
        self.ownership = OwnershipRepository(conn)

    @classmethod
    def from_settings(
        cls,
        conn: sqlite3.Connection,
        settings: Settings,
        *,
        http: MediathequeHttpClient | None = None,
    ) -> "MediaLibrary":
        """Wire every source client, the translator and the enricher from settings."""
        http = http or MediathequeHttpClient()
        clients: dict[SourceName, SourceClient] = {
            SourceName.GOOGLE_BOOKS: GoogleBooksClient(
                http, api_key=settings.google_books_api_key, default_language=settings.translate_to
            ),
            SourceName.OPEN_LIBRARY: OpenLibraryClient(http),
            SourceName.BNF: BnfClient(http),
            SourceName.TMDB: TmdbClient(
                http,
                api_key=settings.tmdb_api_key,
                api_token=settings.tmdb_api_token,
                language=settings.tmdb_language,
                region=settings.tmdb_region,
            ),
            SourceName.TVMAZE: TvMazeClient(http),
        }
        translator = GroqTranslator(http, api_key=settings.groq_api_key, model=settings.groq_model)
        enricher = SynopsisEnricher(
            translator,
            target_language=settings.translate_to,
            fallback_language=settings.fallback_language,
            auto_translate=settings.auto_translate,
        )
        return cls(conn, clients, enricher=enricher, http=http)

    def close(self) -> None:
        if self._http is not None:
            self._http.close()

    def __enter__(self) -> "MediaLibrary":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # --- search ---

    def _clients_for(self, policy: DomainPolicy) -> list[SourceClient]:
        clients = []
        for source in policy.sources:
            client = self._clients.get(source)
            if client is None:
                logger.debug("No client for %s, skipping", source.value)
                continue
            if isinstance(client, TmdbClient):
                client = client.for_kind("tv" if policy.domain is MediaDomain.TV else "movie")
            clients.append(client)
        return clients

    def _lookup_for(self, domain: MediaDomain) -> LibraryLookup:
        if domain is MediaDomain.BOOKS or domain in _SERIES_MEDIA_TYPES:
            repository = self.sync.books if domain is MediaDomain.BOOKS else self.sync.series

            def lookup(record: CanonicalMediaRecord) -> int | None:
                return repository.find_existing(
                    record.external_id,
                    record.source_name.value if record.source_name else None,
                    record.isbn10,
                    record.isbn13,
                )

            return lookup

        def lookup_screen(record: CanonicalMediaRecord) -> int | None:
            if record.source_name is SourceName.TMDB:
                if domain is MediaDomain.MOVIES:
                    return self.sync.movies.find_existing(record.external_id)
                return self.sync.tv_shows.find_existing(record.external_id)
            if record.source_name is SourceName.TVMAZE:
                return self.sync.tv_shows.find_by_tvmaze_id(record.external_id)
            return None

        return lookup_screen

    def search(
        self,
        query: str,
        domain: MediaDomain | str = MediaDomain.BOOKS,
        source: SourceName | str | None = None,
        *,
        result_cap: int = DEFAULT_MAX_RESULTS,
        page: int = 1,
    ) -> MergedSearch:
        """Search the external catalogs of ``domain`` and flag what is already local.

        A blank query returns an empty result without any network call.
        """
        domain = MediaDomain(domain)
        if is_blank(query):
            return MergedSearch(hits=[], total_results=0, total_pages=0)
        policy = policy_for(domain, source)
        return merged_search(
            self._clients_for(policy),
            query.strip(),
            policy,
            result_cap=result_cap,
            page=page,
            lookup=self._lookup_for(domain),
        )

    # --- import and sync ---

    def find_local(self, domain: MediaDomain | str, source: SourceName | str, external_id: str) -> int | None:
        domain, source = MediaDomain(domain), SourceName(source)
        if domain is MediaDomain.BOOKS:
            row = self.sync.books.get_by_source(external_id, source.value)
        elif domain in _SERIES_MEDIA_TYPES:
            row = self.sync.series.get_by_source(external_id, source.value)
        elif source is SourceName.TMDB:
            repository = self.sync.movies if domain is MediaDomain.MOVIES else self.sync.tv_shows
            return repository.find_existing(external_id) if external_id.isdigit() else None
        elif source is SourceName.TVMAZE:
            return self.sync.tv_shows.find_by_tvmaze_id(external_id) if external_id.isdigit() else None
        else:
            return None
        return row["id"] if row else None

    def _overlay_hook(self, domain: MediaDomain, user_id: int | None) -> StoredCallback | None:
        if user_id is None:
            return None
        repository = OverlayRepository(self._conn, overlay_table_for(domain.value))

        def ensure(local_id: int) -> None:
            repository.ensure(local_id, user_id)

        return ensure

    def import_item(
        self,
        external_id: str,
        source: SourceName | str,
        domain: MediaDomain | str,
        user: UserContext | None = None,
    ) -> ImportOutcome:
        """Fetch one item from its source, upsert it, and give the user an overlay row.

        The upsert and the overlay row commit together. Movies and TV shows
        are imported from TMDb with their full details (and TV seasons).

        Raises:
            ValueError: If ``external_id`` is missing.
        """
        if not external_id or not str(external_id).strip():
            raise ValueError("external_id is required")
        external_id = str(external_id).strip()
        source, domain = SourceName(source), MediaDomain(domain)
        user_id = self.users.resolve_id(user.name) if user else None
        if user and user.name and user_id is None:
            return ImportOutcome(success=False, error=f"Unknown user '{user.name}'")

        existing = self.find_local(domain, source, external_id)
        on_stored = self._overlay_hook(domain, user_id)
        try:
            if domain in (MediaDomain.MOVIES, MediaDomain.TV):
                if source is not SourceName.TMDB:
                    return ImportOutcome(success=False, error="Movies and TV shows are imported from TMDb")
                if not external_id.isdigit():
                    return ImportOutcome(success=False, error=f"Invalid TMDb id: {external_id}")
                local_id = self._sync_tmdb(domain, int(external_id), on_stored).local_id
            else:
                client = self._clients.get(source)
                if client is None:
                    return ImportOutcome(success=False, error=f"Source {source.value} is not configured")
                record = normalize(client.get_by_id(external_id), source)
                local_id = self.sync.upsert(record, _TARGETS[domain], on_stored=on_stored)
        except SourceError as exc:
            logger.warning("Import of %s:%s failed: %s", source.value, external_id, exc)
            return ImportOutcome(success=False, error=str(exc))
        except (sqlite3.IntegrityError, DuplicateEntryError) as exc:
            logger.warning("Import of %s:%s collided: %s", source.value, external_id, exc)
            return ImportOutcome(success=False, error=DUPLICATE_ENTRY_MESSAGE)

        return ImportOutcome(success=True, local_id=local_id, already_exists=existing is not None)

    def _sync_tmdb(
        self,
        domain: MediaDomain,
        tmdb_id: int,
        on_stored: StoredCallback | None,
        include_episodes: bool = True,
    ) -> SyncResult:
        if domain is MediaDomain.MOVIES:
            return self.sync.sync_movie(tmdb_id, on_stored=on_stored)
        return self.sync.sync_tv_show(tmdb_id, include_episodes=include_episodes, on_stored=on_stored)

    def sync_item(
        self, domain: MediaDomain | str, tmdb_id: int, *, include_episodes: bool = True
    ) -> OperationResult:
        """Refresh a movie or TV show from TMDb; ``value`` is the SyncResult."""
        domain = MediaDomain(domain)
        if domain not in (MediaDomain.MOVIES, MediaDomain.TV):
            return OperationResult.fail(f"Only movies and tv can be synced, not {domain.value}")
        try:
            return OperationResult.ok(self._sync_tmdb(domain, tmdb_id, None, include_episodes))
        except SourceError as exc:
            logger.warning("Sync of %s tmdb:%s failed: %s", domain.value, tmdb_id, exc)
            return OperationResult.fail(str(exc))
        except (sqlite3.IntegrityError, DuplicateEntryError):
            return OperationResult.fail(DUPLICATE_ENTRY_MESSAGE)

    # --- catalog ---

    def list_entries(self, domain: MediaDomain | str) -> list[LibraryEntry]:
        domain = MediaDomain(domain)
        if domain is MediaDomain.BOOKS:
            return self.sync.books.list_all()
        if domain in _SERIES_MEDIA_TYPES:
            return self.sync.series.list_by_media_type(_SERIES_MEDIA_TYPES[domain])
        if domain is MediaDomain.MOVIES:
            return self.sync.movies.list_all()
        return self.sync.tv_shows.list_all()

    def delete(self, domain: MediaDomain | str, entity_id: int) -> OperationResult:
        """Delete an entry along with every overlay, owner and child row."""
        if entity_id is None:
            raise ValueError("entity_id is required")
        domain = MediaDomain(domain)
        repository = {
            MediaDomain.BOOKS: self.sync.books,
            MediaDomain.BD: self.sync.series,
            MediaDomain.COMICS: self.sync.series,
            MediaDomain.MOVIES: self.sync.movies,
            MediaDomain.TV: self.sync.tv_shows,
        }[domain]
        try:
            repository.delete(entity_id)
        except ValueError as exc:
            return OperationResult.fail(str(exc))
        return OperationResult.ok()

    # --- users and ownership ---

    def add_user(self, name: str) -> OperationResult:
        try:
            return OperationResult.ok(self.users.add(name))
        except (ValueError, DuplicateEntryError) as exc:
            return OperationResult.fail(str(exc))

    def list_users(self) -> list[User]:
        return self.users.list_all()

    def _user_ids(self, names: Iterable[str]) -> list[int] | OperationResult:
        ids = []
        for name in names:
            user_id = self.users.resolve_id(name)
            if user_id is None:
                return OperationResult.fail(f"Unknown user '{name}'")
            ids.append(user_id)
        return ids

    def set_volume_owners(
        self, volume_id: int, user_names: Iterable[str], purchased_on: str | None = None
    ) -> OperationResult:
        """Replace a volume's owners; ``value`` counts sibling volumes that inherited them."""
        user_ids = self._user_ids(user_names)
        if isinstance(user_ids, OperationResult):
            return user_ids
        try:
            return OperationResult.ok(self.ownership.set_volume_owners(volume_id, user_ids, purchased_on))
        except ValueError as exc:
            return OperationResult.fail(str(exc))

    def set_book_owner(
        self, book_id: int, user: UserContext, price: float = 0.0, purchased_on: str | None = None
    ) -> OperationResult:
        user_id = self.users.resolve_id(user.name)
        if user_id is None:
            return OperationResult.fail("No current user" if not user.name else f"Unknown user '{user.name}'")
        if not self.sync.books.exists(book_id):
            return OperationResult.fail(f"books entry with id {book_id} not found")
        self.ownership.set_book_owner(book_id, user_id, price, purchased_on)
        return OperationResult.ok()

    def user_spending(self, user: UserContext) -> OperationResult:
        user_id = self.users.resolve_id(user.name)
        if user_id is None:
            return OperationResult.fail("No current user" if not user.name else f"Unknown user '{user.name}'")
        return OperationResult.ok(self.ownership.user_spending(user_id))

    def add_volume(
        self, series_id: int, number: int, *, price: float | None = None, title: str | None = None
    ) -> OperationResult:
        """Add or refresh a series volume; volume 1's price propagates to unpriced siblings."""
        try:
            with transaction(self._conn):
                volume_id = self.sync.series.add_volume(series_id, number, title=title, price=price)
                if price:
                    self.sync.series.set_volume_price(volume_id, price)
        except ValueError as exc:
            return OperationResult.fail(str(exc))
        return OperationResult.ok(volume_id)
