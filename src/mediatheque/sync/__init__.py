# ABOUTME: Sync package: upserts canonical records and full TMDb items into the local catalog.
# ABOUTME: Re-exports the engine and the synopsis enricher.

from mediatheque.sync.engine import SyncEngine, SyncResult, TargetTable
from mediatheque.sync.enrichment import SynopsisChoice, SynopsisEnricher, TvMazeInfo, lookup_tvmaze

__all__ = [
    "SyncEngine",
    "SyncResult",
    "SynopsisChoice",
    "SynopsisEnricher",
    "TargetTable",
    "TvMazeInfo",
    "lookup_tvmaze",
]
