# ABOUTME: Sync Upsert Engine: writes canonical records into their catalog table by external id.
# ABOUTME: Also syncs full TMDb movies and TV shows (seasons, episodes, TV Maze schedule).

import logging
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from mediatheque.db.catalog import (
    BookRepository,
    MovieRepository,
    SeriesRepository,
    TvShowRepository,
)
from mediatheque.db.connection import transaction
from mediatheque.db.mapping import record_to_book_row, record_to_series_row, to_json
from mediatheque.metadata.classify import book_type_for
from mediatheque.metadata.normalizer import normalize_tmdb, tmdb_image_url
from mediatheque.metadata.types import CanonicalMediaRecord, SourceName
from mediatheque.sources.http import ItemNotFoundError
from mediatheque.sources.tmdb import TmdbClient
from mediatheque.sources.tvmaze import TvMazeClient
from mediatheque.sync.enrichment import SynopsisChoice, SynopsisEnricher, TvMazeInfo, lookup_tvmaze

logger = logging.getLogger(__name__)

StoredCallback = Callable[[int], None]


class TargetTable(str, Enum):
    """Local entity tables a canonical record can be upserted into."""

    BOOKS = "books"
    BD = "bd"
    COMICS = "comics"
    MANGA = "manga"
    MOVIES = "movies"
    TV = "tv"


_SERIES_MEDIA_TYPES = {
    TargetTable.BD: "bd",
    TargetTable.COMICS: "comic",
    TargetTable.MANGA: "manga",
}


@dataclass
class SyncResult:
    local_id: int
    tmdb_id: int | None = None
    seasons: int = 0
    episodes: int = 0
    synopsis_source: str = "tmdb"

    @property
    def used_translation(self) -> bool:
        return self.synopsis_source == "groq"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _first(values: Any) -> Any:
    return values[0] if isinstance(values, list) and values else None


def _keywords(extras: dict[str, Any]) -> Any:
    keywords = extras.get("keywords") or {}
    if isinstance(keywords, dict):
        return keywords.get("keywords") or keywords.get("results")
    return keywords


def _translations_meta(extras: dict[str, Any], requested: str, choice: SynopsisChoice) -> str | None:
    available = (extras.get("translations") or {}).get("translations")
    return to_json({"requested": requested, "available": available, "source": choice.source})


def movie_row(
    record: CanonicalMediaRecord,
    choice: SynopsisChoice,
    *,
    requested_language: str,
    synced_at: str,
) -> dict[str, Any]:
    """Storage columns for a TMDb movie record."""
    extras = record.extras
    external_ids = extras.get("external_ids") or {}
    return {
        "tmdb_id": int(record.external_id),  # type: ignore[arg-type]
        "imdb_id": extras.get("imdb_id") or external_ids.get("imdb_id") or None,
        "title": record.title or "",
        "original_title": record.original_title,
        "tagline": extras.get("tagline") or None,
        "synopsis": choice.text,
        "status": extras.get("status"),
        "release_date": record.release_date,
        "runtime": extras.get("runtime"),
        "budget": extras.get("budget"),
        "revenue": extras.get("revenue"),
        "vote_average": record.community_score,
        "vote_count": record.community_votes,
        "popularity": extras.get("popularity"),
        "adult": 1 if extras.get("adult") else 0,
        "genres": to_json(record.categories),
        "keywords": to_json(_keywords(extras)),
        "spoken_languages": to_json(extras.get("spoken_languages")),
        "companies": to_json(extras.get("production_companies")),
        "countries": to_json(extras.get("production_countries")),
        "homepage": extras.get("homepage") or None,
        "poster_url": record.cover_url,
        "backdrop_url": tmdb_image_url(extras.get("backdrop_path")),
        "credits": to_json(extras.get("credits")),
        "videos": to_json(extras.get("videos")),
        "images": to_json(extras.get("images")),
        "watch_providers": to_json(extras.get("watch/providers")),
        "external_ids": to_json(external_ids or None),
        "translations": _translations_meta(extras, requested_language, choice),
        "raw_data": to_json(extras.get("raw")),
        "last_synced": synced_at,
    }


def tv_show_row(
    record: CanonicalMediaRecord,
    choice: SynopsisChoice,
    *,
    requested_language: str,
    synced_at: str,
    tvmaze: TvMazeInfo | None = None,
) -> dict[str, Any]:
    """Storage columns for a TMDb TV show record, with optional TV Maze data."""
    extras = record.extras
    external_ids = extras.get("external_ids") or {}
    networks = extras.get("networks") or []
    network_name = tvmaze.network if tvmaze and tvmaze.network else None
    if network_name is None and networks:
        network_name = networks[0].get("name")
    return {
        "tmdb_id": int(record.external_id),  # type: ignore[arg-type]
        "tvmaze_id": tvmaze.id if tvmaze else None,
        "imdb_id": external_ids.get("imdb_id") or None,
        "title": record.title or "",
        "original_title": record.original_title,
        "tagline": extras.get("tagline") or None,
        "synopsis": choice.text,
        "status": extras.get("status"),
        "show_type": extras.get("type"),
        "nb_seasons": extras.get("number_of_seasons"),
        "nb_episodes": extras.get("number_of_episodes"),
        "episode_runtime": _first(extras.get("episode_run_time")),
        "first_air_date": record.release_date,
        "last_air_date": extras.get("last_air_date"),
        "next_episode": to_json(
            extras.get("next_episode_to_air") or (tvmaze.next_episode if tvmaze else None)
        ),
        "last_episode": to_json(
            extras.get("last_episode_to_air") or (tvmaze.previous_episode if tvmaze else None)
        ),
        "genres": to_json(record.categories),
        "keywords": to_json(_keywords(extras)),
        "spoken_languages": to_json(extras.get("spoken_languages")),
        "companies": to_json(extras.get("production_companies")),
        "countries": to_json(extras.get("production_countries")),
        "networks": to_json(networks or None),
        "network_name": network_name,
        "homepage": extras.get("homepage") or (tvmaze.url if tvmaze else None),
        "poster_url": record.cover_url,
        "backdrop_url": tmdb_image_url(extras.get("backdrop_path")),
        "credits": to_json(extras.get("credits")),
        "images": to_json(extras.get("images")),
        "videos": to_json(extras.get("videos")),
        "watch_providers": to_json(extras.get("watch/providers")),
        "external_ids": to_json(external_ids or None),
        "translations": _translations_meta(extras, requested_language, choice),
        "raw_data": to_json(extras.get("raw")),
        "last_synced": synced_at,
    }


def season_row(season: dict[str, Any], show_id: int, choice: SynopsisChoice, synced_at: str) -> dict[str, Any]:
    episodes = season.get("episodes")
    return {
        "show_id": show_id,
        "season_number": season["season_number"],
        "tmdb_id": season.get("id"),
        "title": season.get("name"),
        "synopsis": choice.text,
        "air_date": season.get("air_date"),
        "nb_episodes": len(episodes) if isinstance(episodes, list) and episodes else season.get("episode_count"),
        "poster_url": tmdb_image_url(season.get("poster_path")),
        "raw_data": to_json({**season, "translation_source": choice.source}),
        "last_synced": synced_at,
    }


def episode_row(episode: dict[str, Any], show_id: int, season_id: int | None) -> dict[str, Any]:
    return {
        "show_id": show_id,
        "season_number": episode["season_number"],
        "episode_number": episode["episode_number"],
        "season_id": season_id,
        "tmdb_id": episode.get("id"),
        "title": episode.get("name"),
        "synopsis": episode.get("overview") or None,
        "air_date": episode.get("air_date"),
        "runtime": episode.get("runtime"),
        "vote_average": episode.get("vote_average"),
        "vote_count": episode.get("vote_count"),
        "still_url": tmdb_image_url(episode.get("still_path")),
        "raw_data": to_json(episode),
    }


class SyncEngine:
    """Create-or-update catalog rows from canonical records.

    Network work (enrichment, season fetches) happens before the write
    transaction opens; everything written for one item commits together.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        *,
        tmdb: TmdbClient | None = None,
        tvmaze: TvMazeClient | None = None,
        enricher: SynopsisEnricher | None = None,
    ) -> None:
        self._conn = conn
        self._tmdb = tmdb
        self._tvmaze = tvmaze
        self._enricher = enricher or SynopsisEnricher()
        self.books = BookRepository(conn)
        self.series = SeriesRepository(conn)
        self.movies = MovieRepository(conn)
        self.tv_shows = TvShowRepository(conn)

    def upsert(
        self,
        record: CanonicalMediaRecord,
        target: TargetTable | str,
        *,
        on_stored: StoredCallback | None = None,
    ) -> int:
        """Upsert ``record`` into ``target`` and return the local primary key.

        ``on_stored`` runs inside the same transaction with the local id.

        Raises:
            ValueError: If the record has no external id or source.
        """
        target = TargetTable(target)
        if not record.external_id or record.source_name is None:
            raise ValueError("Cannot upsert a record without an external id and source")

        if target in (TargetTable.MOVIES, TargetTable.TV):
            return self._upsert_tmdb(record, target, on_stored=on_stored)

        if target is TargetTable.BOOKS:
            row = record_to_book_row(record, book_type_for(record.categories))
            repository: BookRepository | SeriesRepository = self.books
        else:
            row = record_to_series_row(record, _SERIES_MEDIA_TYPES[target])
            repository = self.series

        with transaction(self._conn):
            local_id = repository.upsert(row)
            if on_stored is not None:
                on_stored(local_id)
        logger.debug("Upserted %s %s -> %d", target.value, record.source_key, local_id)
        return local_id

    def _upsert_tmdb(
        self,
        record: CanonicalMediaRecord,
        target: TargetTable,
        *,
        choice: SynopsisChoice | None = None,
        tvmaze: TvMazeInfo | None = None,
        on_stored: StoredCallback | None = None,
    ) -> int:
        if record.source_name is not SourceName.TMDB:
            raise ValueError(f"{target.value} entries must come from TMDb, got {record.source_name}")
        if choice is None:
            hint = "movies" if target is TargetTable.MOVIES else "TV series"
            choice = self._choose_synopsis(record, hint)
        synced_at = _now()
        language = self._enricher.target_language
        with transaction(self._conn):
            if target is TargetTable.MOVIES:
                row = movie_row(record, choice, requested_language=language, synced_at=synced_at)
                local_id = self.movies.upsert(row)
            else:
                row = tv_show_row(
                    record, choice, requested_language=language, synced_at=synced_at, tvmaze=tvmaze
                )
                local_id = self.tv_shows.upsert(row)
            if on_stored is not None:
                on_stored(local_id)
        logger.info("Synced %s tmdb:%s (synopsis from %s)", target.value, record.external_id, choice.source)
        return local_id

    def _choose_synopsis(self, record: CanonicalMediaRecord, domain_hint: str) -> SynopsisChoice:
        translations = (record.extras.get("translations") or {}).get("translations")
        return self._enricher.enrich(
            record.synopsis,
            translations,
            original_language=record.language,
            domain_hint=domain_hint,
        )

    def _require_tmdb(self) -> TmdbClient:
        if self._tmdb is None:
            raise ValueError("TMDb client is not configured")
        return self._tmdb

    def sync_movie(self, tmdb_id: int, *, on_stored: StoredCallback | None = None) -> SyncResult:
        """Fetch a TMDb movie with all appended data and upsert it.

        Raises:
            ItemNotFoundError: If TMDb has no such movie.
        """
        details = self._require_tmdb().get_movie_details(tmdb_id)
        if not details:
            raise ItemNotFoundError(f"TMDb movie {tmdb_id} not found")
        record = normalize_tmdb({**details, "media_type": "movie"})
        choice = self._choose_synopsis(record, "movies")
        local_id = self._upsert_tmdb(record, TargetTable.MOVIES, choice=choice, on_stored=on_stored)
        return SyncResult(local_id=local_id, tmdb_id=int(tmdb_id), synopsis_source=choice.source)

    def sync_tv_show(
        self,
        tmdb_id: int,
        *,
        include_episodes: bool = True,
        on_stored: StoredCallback | None = None,
    ) -> SyncResult:
        """Fetch a TMDb show, enrich it from TV Maze, and upsert it with its seasons.

        Seasons with a negative number are skipped. Seasons that TMDb cannot
        return are skipped as well.
        """
        tmdb = self._require_tmdb()
        details = tmdb.get_tv_details(tmdb_id)
        if not details:
            raise ItemNotFoundError(f"TMDb show {tmdb_id} not found")
        record = normalize_tmdb({**details, "media_type": "tv"})
        choice = self._choose_synopsis(record, "TV series")

        tvmaze = None
        if self._tvmaze is not None:
            tvmaze = lookup_tvmaze(self._tvmaze, details.get("external_ids"))

        seasons: list[tuple[dict[str, Any], SynopsisChoice]] = []
        if include_episodes:
            for summary in details.get("seasons") or []:
                number = summary.get("season_number")
                if number is None or number < 0:
                    continue
                season = tmdb.get_tv_season(tmdb_id, number)
                if not season:
                    continue
                season = {**season, "season_number": season.get("season_number", number)}
                season_choice = self._enricher.enrich(
                    season.get("overview"), domain_hint="TV series seasons"
                )
                seasons.append((season, season_choice))

        synced_at = _now()
        episodes_written = 0
        with transaction(self._conn):
            local_id = self._upsert_tmdb(
                record, TargetTable.TV, choice=choice, tvmaze=tvmaze, on_stored=on_stored
            )
            for season, season_choice in seasons:
                season_id = self.tv_shows.upsert_season(
                    season_row(season, local_id, season_choice, synced_at)
                )
                for episode in season.get("episodes") or []:
                    if episode.get("season_number") is None or episode.get("episode_number") is None:
                        continue
                    self.tv_shows.upsert_episode(episode_row(episode, local_id, season_id))
                    episodes_written += 1

        logger.info(
            "Synced tv tmdb:%s with %d season(s), %d episode(s)", tmdb_id, len(seasons), episodes_written
        )
        return SyncResult(
            local_id=local_id,
            tmdb_id=int(tmdb_id),
            seasons=details.get("number_of_seasons") or len(seasons),
            episodes=episodes_written or details.get("number_of_episodes") or 0,
            synopsis_source=choice.source,
        )
