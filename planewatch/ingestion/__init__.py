"""
Data ingestion layer.

Polls the position feed, filters it by aircraft model and detects
newly arrived aircraft.
"""

from planewatch.ingestion.feed_client import PositionFeedClient
from planewatch.ingestion.novelty import NoveltyDetector
from planewatch.ingestion.pipeline import WatchPipeline
from planewatch.ingestion.taxonomy import OTHERS, Taxonomy, TaxonomyFilter

__all__ = [
    'PositionFeedClient',
    'NoveltyDetector',
    'WatchPipeline',
    'OTHERS',
    'Taxonomy',
    'TaxonomyFilter',
]
