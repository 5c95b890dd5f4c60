"""
Naver Place Rank Tracker

Keyword rank measurement on the Naver Place mobile listing with:
- Playwright-based browser automation (mobile profile)
- Checkpoint pagination up to rank 300 with early exit
- Profile-page review counters
- Keyword-grouped, chunked batch runs with same-day snapshot reuse

Main modules:
- batch_orchestrator: Batch run (grouping, chunking, persistence)
- place_collector: Listing pagination
- place_reviews: Profile-page review counters
- place_parse: Rendered-state extraction rules
- snapshot_cache: Same-day snapshot reuse
"""

__version__ = "0.1.0"
__author__ = "place-rank-tracker"

from scrape_place.batch_orchestrator import BatchOrchestrator
from scrape_place.place_collector import PaginationCollector
from scrape_place.place_config import PlaceConfig
from scrape_place.place_reviews import DetailReviewFetcher
from scrape_place.place_session import NavigationError, PlaceBrowser, SessionOpenError
from scrape_place.snapshot_cache import SnapshotCache

__all__ = [
    "BatchOrchestrator",
    "PaginationCollector",
    "PlaceConfig",
    "DetailReviewFetcher",
    "PlaceBrowser",
    "NavigationError",
    "SessionOpenError",
    "SnapshotCache",
]
