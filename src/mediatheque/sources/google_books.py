# ABOUTME: Google Books catalog client (volumes search and volume lookup).
# ABOUTME: Returns raw volume resources; mapping lives in metadata.normalizer.

import logging
from typing import Any

from mediatheque.metadata.types import RawItem, SourceName
from mediatheque.sources.http import HttpClient, ItemNotFoundError, SourceParseError
from mediatheque.sources.provider import (
    DEFAULT_MAX_RESULTS,
    SearchOptions,
    SearchPage,
    is_blank,
)

logger = logging.getLogger(__name__)

_GB_BASE = "https://www.googleapis.com/books/v1"
# The volumes endpoint rejects maxResults above 40.
_MAX_PAGE_SIZE = 40


class GoogleBooksClient:
    """Source client backed by the Google Books v1 API.

    No key is required for public volume search; when one is configured it
    is sent as the ``key`` query parameter.
    """

    def __init__(
        self,
        http_client: HttpClient,
        *,
        api_key: str | None = None,
        default_language: str | None = "fr",
    ) -> None:
        self._http = http_client
        self._api_key = api_key
        self._default_language = default_language

    @property
    def name(self) -> SourceName:
        return SourceName.GOOGLE_BOOKS

    def search(self, query: str, options: SearchOptions | None = None) -> list[RawItem]:
        return self.search_page(query, options).items

    def search_page(self, query: str, options: SearchOptions | None = None) -> SearchPage:
        if is_blank(query):
            return SearchPage.empty()
        options = options or SearchOptions()
        limit = min(options.max_results or DEFAULT_MAX_RESULTS, _MAX_PAGE_SIZE)
        params: dict[str, Any] = {
            "q": query.strip(),
            "maxResults": limit,
            "startIndex": (max(options.page, 1) - 1) * limit or None,
            "langRestrict": options.language or self._default_language,
            "key": self._api_key,
        }
        data = self._http.get_json(f"{_GB_BASE}/volumes", params=params)
        if data is None:
            return SearchPage.empty()
        if not isinstance(data, dict):
            raise SourceParseError(self.name.value, "unexpected volumes payload")

        items = [item for item in data.get("items") or [] if isinstance(item, dict)]
        total = data.get("totalItems") or 0
        logger.debug("Google Books returned %d items for %r", len(items), query)
        return SearchPage(items=items, total_results=int(total))

    def get_by_id(self, item_id: str) -> RawItem:
        if not item_id:
            raise ValueError("Google Books volume id is required")
        data = self._http.get_json(
            f"{_GB_BASE}/volumes/{item_id}", params={"key": self._api_key}
        )
        if not data:
            raise ItemNotFoundError(f"Google Books volume {item_id} not found")
        if not isinstance(data, dict):
            raise SourceParseError(self.name.value, "unexpected volume payload")
        return data
