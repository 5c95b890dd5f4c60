"""
Same-day snapshot reuse.

A keyword measured successfully today (by any owner) is not scraped again;
its stored ranking is reused for every target of the keyword. A ranking whose
pagination stopped early is only reused when it already ranks every requested
place.
"""

from datetime import date
from typing import Iterable, Optional

from runner.logging_setup import get_logger
from scrape_place.place_types import DEFAULT_TIMEZONE, FullRankingResult, local_today, normalize_keyword

logger = get_logger("snapshot_cache")


class SnapshotCache:
    """Read side of the daily snapshot table, keyed by (normalized keyword, day)."""

    def __init__(self, store, timezone: str = DEFAULT_TIMEZONE):
        self.store = store
        self.timezone = timezone

    def today(self) -> date:
        return local_today(self.timezone)

    def is_fresh(self, snapshot_date: date) -> bool:
        """A snapshot is reusable only on the calendar day it was measured."""
        return snapshot_date == self.today()

    def lookup_today(self, keyword: str, place_ids: Optional[Iterable[str]] = None) -> Optional[FullRankingResult]:
        """
        Today's successful ranking of a keyword, if any.

        Store errors are logged and treated as a miss.

        Args:
            keyword: Search keyword (normalized before lookup)
            place_ids: Places the caller needs ranked; an early-stopped
                ranking missing any of them is a miss
        """
        normalized = normalize_keyword(keyword)
        try:
            result = self.store.get_today_snapshot(normalized, self.today())
        except Exception as e:
            logger.warning(f"Snapshot lookup for '{normalized}' failed, scraping instead: {e}")
            return None

        if result is None or not result.success or not self.is_fresh(result.measured_date):
            return None

        if result.stopped_early and place_ids and not result.ranks_all(place_ids):
            logger.info(f"Today's snapshot for '{normalized}' stopped before reaching every target, scraping again")
            return None

        logger.info(f"Reusing today's snapshot for '{normalized}' ({result.total_results} entries)")
        return result
