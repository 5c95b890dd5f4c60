"""
Review counter fetcher for place profile pages.

Visits https://m.place.naver.com/place/<id>/home for each place, one at a
time in a single tab, and reads the visitor/blog review counters.
"""

from typing import Dict, Iterable, List, Optional

from runner.logging_setup import get_logger
from scrape_place.place_config import PlaceConfig
from scrape_place.place_parse import REVIEW_MARKER_SELECTOR, REVIEW_SNAPSHOT_JS, extract_review_counts
from scrape_place.place_session import PlaceSession
from scrape_place.place_stealth import human_delay, settle
from scrape_place.place_types import ReviewDetail

logger = get_logger("place_reviews")


class DetailReviewFetcher:
    """Sequential profile-page visitor."""

    def __init__(self, browser, config: Optional[PlaceConfig] = None):
        self.browser = browser
        self.config = config or PlaceConfig()

    def build_profile_url(self, place_id: str) -> str:
        return f"{self.config.place_url}/{place_id}/home"

    async def fetch_many(self, place_ids: Iterable[str]) -> Dict[str, ReviewDetail]:
        """
        Fetch review counters for several places with one session.

        Places that fail are logged and left out of the map.

        Args:
            place_ids: Place ids (duplicates and empty values are ignored)

        Returns:
            Dict of place_id -> ReviewDetail

        Raises:
            SessionOpenError: If the session cannot be opened
        """
        unique_ids: List[str] = []
        for place_id in place_ids:
            if place_id and place_id not in unique_ids:
                unique_ids.append(place_id)

        if not unique_ids:
            return {}

        logger.info(f"Fetching review counters for {len(unique_ids)} place(s)")

        details: Dict[str, ReviewDetail] = {}
        session = await self.browser.new_session()
        try:
            for index, place_id in enumerate(unique_ids):
                try:
                    details[place_id] = await self._fetch(session, place_id)
                except Exception as e:
                    logger.warning(f"Review counters for place {place_id} failed: {e}")

                if index < len(unique_ids) - 1:
                    await human_delay(self.config.review.min_delay, self.config.review.max_delay)
        finally:
            await session.close()

        logger.info(f"Review counters fetched: {len(details)}/{len(unique_ids)}")
        return details

    async def fetch_one(self, place_id: str) -> Optional[ReviewDetail]:
        """Fetch counters for a single place in its own session."""
        details = await self.fetch_many([place_id])
        return details.get(place_id)

    async def _fetch(self, session: PlaceSession, place_id: str) -> ReviewDetail:
        review = self.config.review

        await session.navigate(
            self.build_profile_url(place_id),
            wait_until="domcontentloaded",
            timeout_ms=review.navigation_timeout_ms,
        )
        await settle(review.initial_settle)

        if not await session.wait_for_marker(REVIEW_MARKER_SELECTOR, review.marker_timeout_ms):
            logger.debug(f"Review section marker missing for place {place_id}, continuing")

        await settle(review.post_marker_settle)

        page_state = await session.evaluate(REVIEW_SNAPSHOT_JS)
        visitor, blog = extract_review_counts(page_state or {})

        logger.debug(f"Place {place_id}: visitor={visitor}, blog={blog}")
        return ReviewDetail(place_id=place_id, visitor_review_count=visitor, blog_review_count=blog)
