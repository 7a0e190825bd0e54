# ABOUTME: TV Maze client: show search, show lookup by external id, episode lists.
# ABOUTME: Used as a search source for TV and to enrich TMDb shows with schedule data.

import logging
from typing import Any

from mediatheque.metadata.types import RawItem, SourceName
from mediatheque.sources.http import HttpClient, ItemNotFoundError, SourceFetchError
from mediatheque.sources.provider import SearchOptions, SearchPage, is_blank

logger = logging.getLogger(__name__)

_TVMAZE_BASE = "https://api.tvmaze.com"


class TvMazeClient:
    """Client for the public TV Maze API (no authentication)."""

    def __init__(self, http_client: HttpClient) -> None:
        self._http = http_client

    @property
    def name(self) -> SourceName:
        return SourceName.TVMAZE

    def search(self, query: str, options: SearchOptions | None = None) -> list[RawItem]:
        return self.search_page(query, options).items

    def search_page(self, query: str, options: SearchOptions | None = None) -> SearchPage:
        if is_blank(query):
            return SearchPage.empty()
        options = options or SearchOptions()
        data = self._http.get_json(f"{_TVMAZE_BASE}/search/shows", params={"q": query.strip()})
        shows = [
            entry["show"]
            for entry in data or []
            if isinstance(entry, dict) and isinstance(entry.get("show"), dict)
        ]
        total = len(shows)
        if options.max_results:
            shows = shows[: options.max_results]
        return SearchPage(items=shows, total_results=total)

    def get_by_id(self, item_id: str) -> RawItem:
        if not item_id:
            raise ValueError("TV Maze show id is required")
        show = self.get_show(item_id)
        if show is None:
            raise ItemNotFoundError(f"TV Maze show {item_id} not found")
        return show

    def get_show(
        self, show_id: int | str, embed: tuple[str, ...] = ("nextepisode", "previousepisode")
    ) -> RawItem | None:
        params = [("embed[]", value) for value in embed]
        return self._get_or_none(f"{_TVMAZE_BASE}/shows/{show_id}", params)

    def lookup_show(self, *, imdb: str | None = None, thetvdb: int | str | None = None) -> RawItem | None:
        """Resolve a show from an IMDb or TheTVDB id; None when TV Maze has no match."""
        if imdb:
            params = {"imdb": imdb}
        elif thetvdb:
            params = {"thetvdb": thetvdb}
        else:
            return None
        found = self._get_or_none(f"{_TVMAZE_BASE}/lookup/shows", params)
        if found is None:
            return None
        # The lookup endpoint does not honour embed[], so refetch with embeds.
        return self.get_show(found["id"]) or found

    def get_episodes(self, show_id: int | str, *, include_specials: bool = False) -> list[RawItem]:
        params = {"specials": 1} if include_specials else None
        data = self._http.get_json(f"{_TVMAZE_BASE}/shows/{show_id}/episodes", params=params)
        return [ep for ep in data or [] if isinstance(ep, dict)]

    def _get_or_none(self, url: str, params: Any) -> RawItem | None:
        try:
            data = self._http.get_json(url, params=params)
        except SourceFetchError as exc:
            if exc.status == 404:
                return None
            raise
        return data if isinstance(data, dict) else None
