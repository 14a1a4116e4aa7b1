"""
SarkariFeed Processing Module
=============================

Ingestion run components: feed fetching, record merging and the
orchestrator that ties a run together.
"""

from .feed_fetcher import FeedFetcher
from .record_upserter import RecordUpserter
from .pipeline import IngestionPipeline, RunSummary, FeedRunResult

__all__ = [
    'FeedFetcher',
    'RecordUpserter',
    'IngestionPipeline',
    'RunSummary',
    'FeedRunResult',
]
