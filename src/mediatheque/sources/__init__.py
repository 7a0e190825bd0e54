# ABOUTME: Source clients for the external catalogs and the translation collaborator.
# ABOUTME: Exports the HTTP error hierarchy and the SourceClient protocol.

from mediatheque.sources.http import (
    HttpClient,
    ItemNotFoundError,
    MediathequeHttpClient,
    SourceError,
    SourceFetchError,
    SourceParseError,
)
from mediatheque.sources.provider import SearchOptions, SearchPage, SourceClient

__all__ = [
    "HttpClient",
    "ItemNotFoundError",
    "MediathequeHttpClient",
    "SearchOptions",
    "SearchPage",
    "SourceClient",
    "SourceError",
    "SourceFetchError",
    "SourceParseError",
]
