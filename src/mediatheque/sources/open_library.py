# ABOUTME: Open Library catalog client built on the search.json endpoint.
# ABOUTME: Single-work lookup reuses search with a key: query so both paths yield search docs.

import logging

from mediatheque.metadata.types import RawItem, SourceName
from mediatheque.sources.http import HttpClient, ItemNotFoundError, SourceParseError
from mediatheque.sources.provider import (
    DEFAULT_MAX_RESULTS,
    SearchOptions,
    SearchPage,
    is_blank,
)

logger = logging.getLogger(__name__)

_OL_BASE = "https://openlibrary.org"


class OpenLibraryClient:
    """Source client backed by the Open Library search API.

    Open Library has no language restriction on search, so
    ``SearchOptions.language`` is ignored.
    """

    def __init__(self, http_client: HttpClient) -> None:
        self._http = http_client

    @property
    def name(self) -> SourceName:
        return SourceName.OPEN_LIBRARY

    def search(self, query: str, options: SearchOptions | None = None) -> list[RawItem]:
        return self.search_page(query, options).items

    def search_page(self, query: str, options: SearchOptions | None = None) -> SearchPage:
        if is_blank(query):
            return SearchPage.empty()
        options = options or SearchOptions()
        params = {
            "q": query.strip(),
            "limit": options.max_results or DEFAULT_MAX_RESULTS,
            "page": options.page if options.page > 1 else None,
        }
        data = self._http.get_json(f"{_OL_BASE}/search.json", params=params)
        return self._parse_page(data)

    def get_by_id(self, item_id: str) -> RawItem:
        """Fetch one work by its key (``OL123W`` or ``/works/OL123W``)."""
        if not item_id:
            raise ValueError("Open Library work id is required")
        work_key = item_id if item_id.startswith("/works/") else f"/works/{item_id}"
        data = self._http.get_json(
            f"{_OL_BASE}/search.json", params={"q": f"key:{work_key}", "limit": 1}
        )
        page = self._parse_page(data)
        if not page.items:
            raise ItemNotFoundError(f"Open Library work {item_id} not found")
        return page.items[0]

    def _parse_page(self, data: object) -> SearchPage:
        if data is None:
            return SearchPage.empty()
        if not isinstance(data, dict):
            raise SourceParseError(self.name.value, "unexpected search payload")
        if data.get("error"):
            raise SourceParseError(self.name.value, str(data["error"]))
        docs = [doc for doc in data.get("docs") or [] if isinstance(doc, dict)]
        total = data.get("numFound") or data.get("num_found") or len(docs)
        return SearchPage(items=docs, total_results=int(total))
