# ABOUTME: Synopsis fallback chain and TV Maze schedule enrichment for TMDb items.
# ABOUTME: Enrichment never raises into the upsert; the original text is kept when all else fails.

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

from mediatheque.sources.http import SourceError
from mediatheque.sources.translation import Translator
from mediatheque.sources.tvmaze import TvMazeClient

logger = logging.getLogger(__name__)

MIN_SYNOPSIS_LENGTH = 20
MIN_TRANSLATABLE_LENGTH = 10


@dataclass(frozen=True)
class SynopsisChoice:
    """Final synopsis text plus the strategy that supplied it.

    ``source`` is ``tmdb``, ``tmdb_<lang>`` or ``groq``.
    """

    text: str | None
    source: str = "tmdb"

    @property
    def translated(self) -> bool:
        return self.source == "groq"


def _usable(text: str | None, minimum: int = MIN_SYNOPSIS_LENGTH) -> bool:
    return bool(text) and len(text.strip()) >= minimum  # type: ignore[union-attr]


def translation_overview(entries: list[dict[str, Any]] | None, language: str) -> str | None:
    """Overview of the TMDb translation entry tagged ``language``, if any."""
    for entry in entries or []:
        if isinstance(entry, dict) and entry.get("iso_639_1") == language:
            overview = (entry.get("data") or {}).get("overview")
            if overview:
                return overview
    return None


class SynopsisEnricher:
    """Fill in missing or too-short synopses.

    Order: the target-language TMDb translation, the fallback-language TMDb
    translation, then a machine translation of the original-language text.
    """

    def __init__(
        self,
        translator: Translator | None = None,
        *,
        target_language: str = "fr",
        fallback_language: str = "en",
        auto_translate: bool = True,
    ) -> None:
        self._translator = translator
        self.target_language = target_language
        self._fallback_language = fallback_language
        self._auto_translate = auto_translate

    def enrich(
        self,
        synopsis: str | None,
        translations: list[dict[str, Any]] | None = None,
        *,
        original_language: str | None = None,
        domain_hint: str = "",
    ) -> SynopsisChoice:
        if _usable(synopsis):
            return SynopsisChoice(synopsis, "tmdb")

        for language in (self.target_language, self._fallback_language):
            candidate = translation_overview(translations, language)
            # TMDb translations must be strictly longer than the threshold.
            if candidate and len(candidate.strip()) > MIN_SYNOPSIS_LENGTH:
                logger.debug("Using TMDb %s translation for synopsis", language)
                return SynopsisChoice(candidate, f"tmdb_{language}")

        source_text = synopsis
        if original_language:
            source_text = translation_overview(translations, original_language) or synopsis
        translated = self._machine_translate(source_text, domain_hint)
        if translated is not None:
            return SynopsisChoice(translated, "groq")
        return SynopsisChoice(synopsis, "tmdb")

    def _machine_translate(self, text: str | None, domain_hint: str) -> str | None:
        if not self._auto_translate or self._translator is None or not self._translator.available:
            return None
        if not _usable(text, MIN_TRANSLATABLE_LENGTH):
            return None
        result = self._translator.translate(text, self.target_language, domain_hint)  # type: ignore[arg-type]
        if result.success and result.text:
            logger.info("Synopsis machine-translated to %s", self.target_language)
            return result.text
        logger.debug("Machine translation unavailable: %s", result.error)
        return None


@dataclass(frozen=True)
class TvMazeInfo:
    id: int
    url: str | None = None
    network: str | None = None
    timezone: str | None = None
    next_episode: dict[str, Any] | None = None
    previous_episode: dict[str, Any] | None = None


def next_future_episode(episodes: list[dict[str, Any]], today: date) -> dict[str, Any] | None:
    """Earliest regular episode airing today or later."""
    upcoming = []
    for episode in episodes:
        if episode.get("type") == "significant_special" or episode.get("number") is None:
            continue
        try:
            airdate = date.fromisoformat(episode.get("airdate") or "")
        except ValueError:
            continue
        if airdate >= today:
            upcoming.append((airdate, episode))
    upcoming.sort(key=lambda pair: pair[0])
    return upcoming[0][1] if upcoming else None


def lookup_tvmaze(
    client: TvMazeClient,
    external_ids: dict[str, Any] | None,
    *,
    today: date | None = None,
) -> TvMazeInfo | None:
    """Find the TV Maze counterpart of a TMDb show by IMDb or TheTVDB id.

    Returns None when there is no usable id, no match, or TV Maze fails.
    """
    ids = external_ids or {}
    imdb, thetvdb = ids.get("imdb_id"), ids.get("tvdb_id")
    if not imdb and not thetvdb:
        return None
    try:
        show = client.lookup_show(imdb=imdb, thetvdb=thetvdb)
        if show is None:
            return None
        embedded = show.get("_embedded") or {}
        next_episode = embedded.get("nextepisode")
        if next_episode is None:
            next_episode = next_future_episode(
                client.get_episodes(show["id"]), today or date.today()
            )
    except (SourceError, KeyError, TypeError) as exc:
        logger.warning("TV Maze enrichment failed: %s", exc)
        return None

    channel = show.get("network") or show.get("webChannel") or {}
    return TvMazeInfo(
        id=show["id"],
        url=show.get("officialSite") or show.get("url"),
        network=channel.get("name"),
        timezone=(channel.get("country") or {}).get("timezone") or channel.get("timezone"),
        next_episode=next_episode,
        previous_episode=embedded.get("previousepisode"),
    )
