# ABOUTME: Metadata package: canonical record types, per-source normalizers, and classifiers.
# ABOUTME: Fan-out and merging live in mediatheque.metadata.merge.

from mediatheque.metadata.normalizer import normalize, normalize_items
from mediatheque.metadata.types import CanonicalMediaRecord, MediaDomain, RawItem, SourceName

__all__ = [
    "CanonicalMediaRecord",
    "MediaDomain",
    "RawItem",
    "SourceName",
    "normalize",
    "normalize_items",
]
