"""
Naver Place listing collector.

Scrolls a keyword's mobile listing in checkpoint stages (100, 200, 300) and
returns the ranked organic entries. Stops early once every requested place is
found at or below a reached checkpoint, or when the listing stops growing.
"""

import asyncio
from typing import Iterable, List, Optional, Tuple, Union
from urllib.parse import urlencode

from runner.logging_setup import get_logger
from scrape_place.place_config import PlaceConfig
from scrape_place.place_parse import (
    LIST_MARKER_SELECTOR,
    LISTING_SNAPSHOT_JS,
    SCROLL_TO_BOTTOM_JS,
    ScrollContainerMissing,
    extract_rankings,
)
from scrape_place.place_session import NavigationError, PlaceSession
from scrape_place.place_stealth import settle
from scrape_place.place_types import FullRankingResult, RankedEntity, local_today

logger = get_logger("place_collector")

PlaceIds = Union[str, Iterable[str], None]


class PaginationCollector:
    """
    Collects the full ranking of one keyword.

    The browser only needs a `new_session()` coroutine returning a
    PlaceSession-like object, so tests can drive the state machine with a fake.
    """

    def __init__(self, browser, config: Optional[PlaceConfig] = None):
        self.browser = browser
        self.config = config or PlaceConfig()

    def build_list_url(self, keyword: str) -> str:
        params = {
            "query": keyword,
            "x": self.config.browser.longitude,
            "y": self.config.browser.latitude,
            "level": "top",
        }
        return f"{self.config.list_url}?{urlencode(params)}"

    async def collect(self, keyword: str, target_place_ids: PlaceIds = None) -> FullRankingResult:
        """
        Collect the ranking of a keyword.

        Args:
            keyword: Search keyword
            target_place_ids: Place id, or several place ids of one keyword
                group. Pagination ends early only once all of them are found;
                target_rank is the rank of the first one.

        Returns:
            FullRankingResult (success=False with a readable error on failure)

        Raises:
            SessionOpenError: If no browser session can be opened
        """
        measured_date = local_today(self.config.batch.timezone)
        url = self.build_list_url(keyword)
        place_ids = _as_id_list(target_place_ids)

        session = await self.browser.new_session()

        try:
            logger.info(f"Collecting '{keyword}' (targets={', '.join(place_ids) or '-'})")
            await self._open_listing(session, url)

            rankings, stopped_early = await self._paginate(session, keyword, place_ids)
            target_rank = _find_rank(rankings, place_ids[0]) if place_ids else None

            result = FullRankingResult(
                keyword=keyword,
                measured_date=measured_date,
                rankings=rankings,
                target_rank=target_rank,
                stopped_early=stopped_early,
            )
            result.validate()

            logger.info(
                f"Collected '{keyword}': {result.total_results} entries, "
                f"target rank={target_rank if target_rank else 'not ranked'}"
            )
            return result


        except NavigationError as e:
            logger.warning(f"'{keyword}': {e}")
            return FullRankingResult.failure(keyword, measured_date, str(e))

        except ScrollContainerMissing as e:
            logger.warning(f"'{keyword}': {e}")
            return FullRankingResult.failure(keyword, measured_date, str(e))

        except Exception as e:
            logger.error(f"Error collecting '{keyword}': {e}", exc_info=True)
            reason = str(e).splitlines()[0] if str(e) else type(e).__name__
            return FullRankingResult.failure(keyword, measured_date, f"Collection failed: {reason}")

        finally:
            await session.close()

    async def _open_listing(self, session: PlaceSession, url: str) -> None:
        collector = self.config.collector

        await session.navigate(url, wait_until="domcontentloaded", timeout_ms=collector.navigation_timeout_ms)
        await settle(collector.initial_settle)

        if not await session.wait_for_marker(LIST_MARKER_SELECTOR, collector.list_marker_timeout_ms):
            logger.debug("List marker did not appear, continuing")

        await settle(collector.post_marker_settle)


    async def _extract(self, session: PlaceSession) -> List[RankedEntity]:
        state = await session.evaluate(LISTING_SNAPSHOT_JS)
        return extract_rankings(state, max_depth=self.config.collector.max_depth)

    async def _scroll(self, session: PlaceSession) -> None:
        if not await session.evaluate(SCROLL_TO_BOTTOM_JS):
            raise ScrollContainerMissing("Scroll container disappeared while scrolling")

    async def _paginate(
        self,
        session: PlaceSession,
        keyword: str,
        place_ids: List[str],
    ) -> Tuple[List[RankedEntity], bool]:
        """
        Checkpoint state machine.

        Returns:
            Tuple of (rankings, stopped early because every place was found)
        """
        collector = self.config.collector
        previous_count = 0
        stable_count = 0
        rankings: List[RankedEntity] = []

        for checkpoint in collector.checkpoints:
            logger.debug(f"'{keyword}': loading up to {checkpoint} entries")

            for attempt in range(1, collector.max_attempts + 1):
                rankings = await self._extract(session)
                current_count = len(rankings)

                logger.debug(f"[{attempt}/{collector.max_attempts}] {current_count} entries loaded (goal {checkpoint})")

                if current_count >= checkpoint:
                    if place_ids and _all_ranked(rankings, place_ids):
                        logger.info(f"'{keyword}': all targets found within {checkpoint}, stopping early")
                        return rankings, True
                    break

                await self._scroll(session)
                await asyncio.sleep(collector.get_scroll_wait(current_count))

                if current_count == previous_count:
                    stable_count += 1
                    stable_limit = (
                        collector.stable_polls_below_checkpoint
                        if current_count < checkpoint
                        else collector.stable_polls_at_checkpoint
                    )
                    if stable_count >= stable_limit:
                        logger.info(f"'{keyword}': listing stopped growing at {current_count} entries")
                        return await self._extract(session), False
                else:
                    stable_count = 0

                previous_count = current_count

        return await self._extract(session), False


def _as_id_list(place_ids: PlaceIds) -> List[str]:
    if not place_ids:
        return []
    if isinstance(place_ids, str):
        return [place_ids]
    return list(dict.fromkeys(place_id for place_id in place_ids if place_id))


def _all_ranked(rankings: List[RankedEntity], place_ids: List[str]) -> bool:
    ranked = {entity.place_id for entity in rankings}
    return all(place_id in ranked for place_id in place_ids)


def _find_rank(rankings: List[RankedEntity], place_id: Optional[str]) -> Optional[int]:
    if not place_id:
        return None
    for entity in rankings:
        if entity.place_id == place_id:
            return entity.rank
    return None
