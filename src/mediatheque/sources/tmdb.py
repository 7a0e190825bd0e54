# ABOUTME: TMDb v3 client for movie and TV search, details and season lookups.
# ABOUTME: Authenticates with a bearer token when present, otherwise an api_key query parameter.

import logging
from typing import Any

from mediatheque.metadata.types import RawItem, SourceName
from mediatheque.sources.http import (
    HttpClient,
    ItemNotFoundError,
    SourceError,
    SourceParseError,
)
from mediatheque.sources.provider import SearchOptions, SearchPage, is_blank

logger = logging.getLogger(__name__)

_TMDB_BASE = "https://api.themoviedb.org/3"

# TMDb pages are fixed at 20 results.
TMDB_PAGE_SIZE = 20

DETAIL_APPENDS = (
    "credits",
    "videos",
    "images",
    "keywords",
    "watch/providers",
    "external_ids",
    "translations",
)


class TmdbConfigurationError(SourceError):
    """Raised when neither an API key nor a bearer token is configured."""


class TmdbClient:
    """Client for The Movie Database.

    ``kind`` selects the catalog half served by search/get_by_id so one
    class covers both the movie and the tv source slots.
    """

    def __init__(
        self,
        http_client: HttpClient,
        *,
        api_key: str | None = None,
        api_token: str | None = None,
        language: str = "fr-FR",
        region: str | None = "FR",
        kind: str = "movie",
    ) -> None:
        if kind not in ("movie", "tv"):
            raise ValueError(f"kind must be 'movie' or 'tv', got {kind!r}")
        self._http = http_client
        self._api_key = api_key
        self._api_token = api_token
        self._language = language
        self._region = region
        self.kind = kind

    @property
    def name(self) -> SourceName:
        return SourceName.TMDB

    @property
    def configured(self) -> bool:
        return bool(self._api_key or self._api_token)

    def for_kind(self, kind: str) -> "TmdbClient":
        """Same credentials, other catalog half."""
        return TmdbClient(
            self._http,
            api_key=self._api_key,
            api_token=self._api_token,
            language=self._language,
            region=self._region,
            kind=kind,
        )

    def search(self, query: str, options: SearchOptions | None = None) -> list[RawItem]:
        return self.search_page(query, options).items

    def search_page(self, query: str, options: SearchOptions | None = None) -> SearchPage:
        if is_blank(query):
            return SearchPage.empty()
        options = options or SearchOptions()
        data = self._get(
            f"/search/{self.kind}",
            {
                "query": query.strip(),
                "page": max(options.page, 1),
                "language": options.language or self._language,
                "region": self._region if self.kind == "movie" else None,
                "include_adult": False,
            },
        )
        if data is None:
            return SearchPage.empty()
        results = [item for item in data.get("results") or [] if isinstance(item, dict)]
        if options.max_results:
            results = results[: options.max_results]
        for item in results:
            item.setdefault("media_type", self.kind)
        return SearchPage(items=results, total_results=int(data.get("total_results") or 0))

    def get_by_id(self, item_id: str) -> RawItem:
        if not item_id:
            raise ValueError("TMDb id is required")
        if self.kind == "movie":
            details = self.get_movie_details(item_id)
        else:
            details = self.get_tv_details(item_id)
        if details is None:
            raise ItemNotFoundError(f"TMDb {self.kind} {item_id} not found")
        return details

    def get_movie_details(self, tmdb_id: int | str) -> RawItem | None:
        return self._details(f"/movie/{tmdb_id}", "movie")

    def get_tv_details(self, tmdb_id: int | str) -> RawItem | None:
        return self._details(f"/tv/{tmdb_id}", "tv")

    def get_tv_season(self, tmdb_id: int | str, season_number: int) -> RawItem | None:
        return self._get(
            f"/tv/{tmdb_id}/season/{season_number}", {"language": self._language}
        )

    def _details(self, path: str, media_type: str) -> RawItem | None:
        data = self._get(
            path,
            {
                "language": self._language,
                "append_to_response": ",".join(DETAIL_APPENDS),
                "include_image_language": f"{self._language.split('-')[0]},en,null",
            },
        )
        if data is not None:
            data.setdefault("media_type", media_type)
        return data

    def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any] | None:
        if not self.configured:
            raise TmdbConfigurationError("No TMDb API key or token configured")
        headers: dict[str, str] = {"Accept": "application/json"}
        if self._api_token:
            headers["Authorization"] = f"Bearer {self._api_token}"
        else:
            params = {**params, "api_key": self._api_key}
        data = self._http.get_json(f"{_TMDB_BASE}{path}", params=params, headers=headers)
        if data is None:
            return None
        if not isinstance(data, dict):
            raise SourceParseError(self.name.value, f"unexpected payload for {path}")
        return data
