"""
Batch orchestrator for daily rank measurement.

Flow of one run:
1. Load active targets and group them by normalized keyword
2. Split the distinct keywords into chunks of `concurrency_limit`
3. Per chunk: fetch review counters for every target place once, then
   process all keyword groups of the chunk concurrently
4. Per keyword group: reuse today's snapshot or collect the ranking once,
   then persist a target-specific result for every target of the group
5. Close the run log with the final counters
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from runner.logging_setup import get_logger
from scrape_place.place_config import PlaceConfig
from scrape_place.place_session import SessionOpenError
from scrape_place.place_types import (
    BatchRunSummary,
    FullRankingResult,
    ReviewDetail,
    ScrapeTarget,
    TargetOutcome,
    normalize_keyword,
)
from scrape_place.snapshot_cache import SnapshotCache

logger = get_logger("batch_orchestrator")


def group_by_keyword(targets: Sequence[ScrapeTarget]) -> Dict[str, List[ScrapeTarget]]:
    """Group targets by normalized keyword, keeping first-seen order."""
    groups: Dict[str, List[ScrapeTarget]] = {}
    for target in targets:
        groups.setdefault(normalize_keyword(target.keyword), []).append(target)
    return groups


def chunk(items: Sequence, size: int) -> List[list]:
    """Split items into consecutive lists of at most `size` elements."""
    if size < 1:
        raise ValueError("chunk size must be at least 1")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


@dataclass
class KeywordGroupResult:
    """Outcome of one keyword group."""

    keyword: str
    success: bool = False
    reused: bool = False
    outcomes: List[TargetOutcome] = field(default_factory=list)

    @property
    def scraped_fresh(self) -> bool:
        return self.success and not self.reused


class BatchOrchestrator:
    """
    Runs one batch measurement.

    Collaborators:
        store: KeywordStore (targets, snapshots, run log)
        collector: PaginationCollector
        fetcher: DetailReviewFetcher
    """

    def __init__(
        self,
        store,
        collector,
        fetcher,
        config: Optional[PlaceConfig] = None,
        cache: Optional[SnapshotCache] = None,
    ):
        self.store = store
        self.collector = collector
        self.fetcher = fetcher
        self.config = config or PlaceConfig()
        self.cache = cache or SnapshotCache(store, self.config.batch.timezone)

    async def run(
        self,
        targets: Optional[Sequence[ScrapeTarget]] = None,
        trigger_type: Optional[str] = None,
    ) -> BatchRunSummary:
        """
        Measure every target.

        Args:
            targets: Targets to measure (default: the store's active targets)
            trigger_type: scheduled, manual or api (default from config)

        Returns:
            BatchRunSummary

        Raises:
            SessionOpenError: If the browser cannot provide sessions (run aborted)
        """
        trigger_type = trigger_type or self.config.batch.trigger_type
        concurrency = self.config.batch.concurrency_limit
        started = time.monotonic()

        if targets is None:
            targets = self.store.list_active_targets()

        summary = BatchRunSummary(total_targets=len(targets))
        if not targets:
            logger.info("No keywords to measure")
            return summary

        groups = group_by_keyword(targets)
        keywords = list(groups)
        summary.unique_keywords = len(keywords)

        logger.info("=" * 80)
        logger.info("Batch run started")
        logger.info(f"Targets: {summary.total_targets}")
        logger.info(f"Unique keywords: {summary.unique_keywords} (duplicates skipped: {summary.duplicates_skipped})")
        logger.info(f"Concurrency: {concurrency}")
        logger.info("=" * 80)

        try:
            summary.run_log_id = self.store.create_run_log(len(targets), trigger_type)
        except Exception as e:
            logger.warning(f"Could not create run log, continuing without it: {e}")

        chunks = chunk(keywords, concurrency)

        try:
            for index, chunk_keywords in enumerate(chunks, 1):
                logger.info(f"Chunk {index}/{len(chunks)}: {len(chunk_keywords)} keyword(s)")

                place_ids = []
                for keyword in chunk_keywords:
                    for target in groups[keyword]:
                        if target.place_id and target.place_id not in place_ids:
                            place_ids.append(target.place_id)

                shared_reviews = await self.fetcher.fetch_many(place_ids) if place_ids else {}

                results = await asyncio.gather(
                    *(self.process_keyword_group(keyword, groups[keyword], shared_reviews)
                      for keyword in chunk_keywords),
                    return_exceptions=True,
                )

                fatal: Optional[BaseException] = None
                scraped_fresh = False

                for keyword, result in zip(chunk_keywords, results):
                    if isinstance(result, SessionOpenError):
                        fatal = fatal or result
                        continue
                    if isinstance(result, BaseException):
                        logger.error(f"Keyword group '{keyword}' crashed: {result}", exc_info=result)
                        result = self._failed_group(keyword, groups[keyword], f"Processing failed: {result}")

                    for outcome in result.outcomes:
                        summary.record(outcome)
                    if result.reused:
                        summary.reused_keyword_count += 1
                    elif result.success:
                        summary.fresh_keyword_count += 1
                        scraped_fresh = True

                if fatal is not None:
                    raise fatal

                logger.info(
                    f"Chunk {index} done (running total: {summary.processed_count} ok, "
                    f"{summary.failed_count} failed)"
                )

                delay = self.config.batch.inter_chunk_delay
                if index < len(chunks) and scraped_fresh and delay > 0:
                    logger.debug(f"Waiting {delay:.1f}s before next chunk")
                    await asyncio.sleep(delay)

        except Exception as e:
            logger.error(f"Batch run aborted: {e}")
            self._close_run_log(summary, "failed", error_message=str(e))
            raise

        elapsed = time.monotonic() - started

        logger.info("=" * 80)
        logger.info("Batch run complete")
        logger.info(f"Fresh keywords: {summary.fresh_keyword_count}")
        logger.info(f"Reused snapshots: {summary.reused_keyword_count}")
        logger.info(f"Saved: {summary.processed_count} ok, {summary.failed_count} failed")
        logger.info(f"Elapsed: {elapsed:.1f}s")
        logger.info("=" * 80)

        self._close_run_log(summary, "completed", metadata={
            "totalTargets": summary.total_targets,
            "uniqueKeywords": summary.unique_keywords,
            "newlyScraped": summary.fresh_keyword_count,
            "snapshotsReused": summary.reused_keyword_count,
            "duplicatesSkipped": summary.duplicates_skipped,
            "concurrency": concurrency,
        })

        return summary

    async def process_keyword_group(
        self,
        keyword: str,
        targets: List[ScrapeTarget],
        shared_reviews: Optional[Dict[str, ReviewDetail]] = None,
    ) -> KeywordGroupResult:
        """
        Measure one keyword for all of its targets.

        Args:
            keyword: Normalized keyword
            targets: Targets sharing the keyword
            shared_reviews: Review counters fetched for the chunk; when None the
                group fetches counters for its own targets

        Returns:
            KeywordGroupResult
        """
        group = KeywordGroupResult(keyword=keyword)
        logger.info(f"Keyword '{keyword}': {len(targets)} target(s)")

        place_ids = [target.place_id for target in targets if target.place_id]

        result = self.cache.lookup_today(keyword, place_ids)
        if result is not None:
            group.reused = True
        else:
            result = await self.collector.collect(keyword, place_ids)

            if not result.success:
                logger.error(f"Keyword '{keyword}' failed: {result.error}")
                for target in targets:
                    try:
                        self.store.upsert_snapshot(target, result)
                    except Exception as e:
                        logger.warning(f"Could not record failure for {target.label}: {e}")
                return self._failed_group(keyword, targets, result.error)

        group.success = True

        reviews = shared_reviews
        if reviews is None:
            reviews = await self.fetcher.fetch_many(place_ids) if place_ids else {}

        merged = result.with_review_details(reviews)

        for target in targets:
            detail = reviews.get(target.place_id) if target.place_id else None
            target_result = merged.for_target(target, detail)

            try:
                self.store.upsert_snapshot(target, target_result)
                self.store.touch_target_timestamp(target.keyword_id)
            except Exception as e:
                logger.error(f"Saving {target.label} for '{keyword}' failed: {e}")
                group.outcomes.append(self._outcome(target, target_result, success=False, reused=group.reused,
                                                    error=f"Save failed: {e}"))
                continue

            rank_info = f"rank {target_result.target_rank}" if target_result.target_rank else "not ranked"
            logger.info(
                f"  {target.label}: {rank_info} "
                f"(visitor={target_result.target_visitor_review_count}, "
                f"blog={target_result.target_blog_review_count})"
                f"{' [reused]' if group.reused else ''}"
            )
            group.outcomes.append(self._outcome(target, target_result, success=True, reused=group.reused))

        return group

    @staticmethod
    def _outcome(
        target: ScrapeTarget,
        result: FullRankingResult,
        success: bool,
        reused: bool,
        error: Optional[str] = None,
    ) -> TargetOutcome:
        return TargetOutcome(
            keyword_id=target.keyword_id,
            keyword=target.keyword,
            client_name=target.client_name,
            place_id=target.place_id,
            success=success,
            rank=result.target_rank,
            visitor_review_count=result.target_visitor_review_count,
            blog_review_count=result.target_blog_review_count,
            total_results=result.total_results,
            reused=reused,
            error=error,
        )

    @staticmethod
    def _failed_group(keyword: str, targets: List[ScrapeTarget], error: Optional[str]) -> KeywordGroupResult:
        group = KeywordGroupResult(keyword=keyword)
        for target in targets:
            group.outcomes.append(TargetOutcome(
                keyword_id=target.keyword_id,
                keyword=target.keyword,
                client_name=target.client_name,
                place_id=target.place_id,
                success=False,
                error=error,
            ))
        return group

    def _close_run_log(self, summary: BatchRunSummary, status: str, error_message: Optional[str] = None,
                       metadata: Optional[dict] = None) -> None:
        if summary.run_log_id is None:
            return
        try:
            self.store.update_run_log(
                summary.run_log_id,
                processed_count=summary.processed_count,
                failed_count=summary.failed_count,
                status=status,
                error_message=error_message,
                metadata=metadata,
            )
        except Exception as e:
            logger.warning(f"Could not update run log {summary.run_log_id}: {e}")
