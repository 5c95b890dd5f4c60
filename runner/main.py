#!/usr/bin/env python3
"""
Main CLI runner for place-rank-tracker.

This script orchestrates the daily measurement:
- Loading active keywords from the database
- Collecting Naver Place rankings (one scrape per distinct keyword)
- Fetching review counters of the tracked places
- Saving one snapshot per keyword and day
"""

import argparse
import asyncio
import sys
from datetime import datetime
from zoneinfo import ZoneInfo

from db.database_manager import DatabaseManager
from db.init_db import init_database
from db.keyword_service import KeywordStore
from runner.logging_setup import get_logger, setup_logging
from scrape_place.batch_orchestrator import BatchOrchestrator
from scrape_place.place_collector import PaginationCollector
from scrape_place.place_config import PlaceConfig
from scrape_place.place_reviews import DetailReviewFetcher
from scrape_place.place_session import PlaceBrowser
from scrape_place.place_types import BatchRunSummary, ScrapeTarget


# Initialize logger
logger = get_logger("main")


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="place-rank-tracker: Measure Naver Place keyword rankings",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Scheduled batch run over all active keywords
  python -m runner.main --batch

  # Manual run for one owner's keywords
  python -m runner.main --batch --user-id 7d1c... --trigger manual

  # Smoke test a single keyword in a visible browser
  python -m runner.main --keyword "강남 맛집" --place-id 1234567 --headed

  # Create the database schema
  python -m runner.main --init-db
        """,
    )

    # Mode selection
    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "--batch",
        action="store_true",
        help="Measure all active keywords (default)",
    )
    mode_group.add_argument(
        "--keyword",
        type=str,
        help="Collect the ranking of a single keyword and print it (nothing is saved)",
    )
    mode_group.add_argument(
        "--init-db",
        action="store_true",
        help="Create the database tables and exit",
    )

    # Batch options
    batch_group = parser.add_argument_group("Batch Options")
    batch_group.add_argument(
        "--user-id",
        type=str,
        help="Only measure this owner's keywords",
    )
    batch_group.add_argument(
        "--concurrency",
        type=int,
        help="Keyword groups processed at the same time (default: PLACE_CONCURRENCY_LIMIT or 3)",
    )
    batch_group.add_argument(
        "--trigger",
        type=str,
        choices=["scheduled", "manual", "api"],
        default="scheduled",
        help="Trigger type recorded in the run log (default: scheduled)",
    )

    # Single keyword options
    single_group = parser.add_argument_group("Single Keyword Options")
    single_group.add_argument(
        "--place-id",
        type=str,
        help="Place whose rank and review counters are reported",
    )

    # Browser options
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Show the browser window",
    )

    args = parser.parse_args(argv)

    if args.concurrency is not None and args.concurrency < 1:
        parser.error("--concurrency must be at least 1")
    if args.place_id and not args.keyword:
        parser.error("--place-id requires --keyword")

    return args


def build_config(args) -> PlaceConfig:
    """Environment configuration with command-line overrides applied."""
    config = PlaceConfig.from_env()

    if args.concurrency:
        config.batch.concurrency_limit = args.concurrency
    if args.headed:
        config.browser.headless = False
    config.batch.trigger_type = args.trigger

    if not config.validate():
        raise ValueError(f"Invalid configuration: {config.summary()}")

    return config


async def run_batch(args, config: PlaceConfig) -> BatchRunSummary:
    """
    Run the batch measurement.

    Args:
        args: Parsed command-line arguments
        config: Place configuration

    Returns:
        BatchRunSummary
    """
    db_manager = DatabaseManager(config.database_url)
    try:
        health = db_manager.get_connection_health()
        if not health["connected"]:
            raise RuntimeError(f"Database unavailable: {health['error']}")

        store = KeywordStore(db_manager.SessionLocal, config.batch.timezone)

        targets = None
        if args.user_id:
            targets = store.list_targets_for_user(args.user_id)
            logger.info(f"Owner {args.user_id}: {len(targets)} keyword(s)")

        async with PlaceBrowser(config.browser) as browser:
            orchestrator = BatchOrchestrator(
                store=store,
                collector=PaginationCollector(browser, config),
                fetcher=DetailReviewFetcher(browser, config),
                config=config,
            )
            return await orchestrator.run(targets=targets, trigger_type=args.trigger)
    finally:
        db_manager.close()


async def run_single(args, config: PlaceConfig) -> bool:
    """
    Collect one keyword and log the result.

    Returns:
        True if the collection succeeded
    """
    async with PlaceBrowser(config.browser) as browser:
        result = await PaginationCollector(browser, config).collect(args.keyword, args.place_id)

        if not result.success:
            logger.error(f"Collection failed: {result.error}")
            return False

        logger.info(f"Collected {result.total_results} entries for '{args.keyword}'")
        for entity in result.rankings[:10]:
            logger.info(f"  {entity.rank:3d}. {entity.name} ({entity.place_id})")

        if args.place_id:
            detail = await DetailReviewFetcher(browser, config).fetch_one(args.place_id)
            target = ScrapeTarget(keyword_id=0, keyword=args.keyword, place_id=args.place_id)
            target_result = result.for_target(target, detail)

            rank = target_result.target_rank
            logger.info(f"Place {args.place_id}: {'rank ' + str(rank) if rank else 'not ranked within 300'}")
            logger.info(f"  Visitor reviews: {target_result.target_visitor_review_count}")
            logger.info(f"  Blog reviews:    {target_result.target_blog_review_count}")

    return True


def log_summary(summary: BatchRunSummary) -> None:
    logger.info("=" * 70)
    logger.info("FINAL RESULT")
    logger.info("=" * 70)
    logger.info(f"Saved:            {summary.processed_count}")
    logger.info(f"Failed:           {summary.failed_count}")
    logger.info(f"Fresh keywords:   {summary.fresh_keyword_count}")
    logger.info(f"Reused snapshots: {summary.reused_keyword_count}")

    failures = [outcome for outcome in summary.per_target_results if not outcome.success]
    if failures:
        logger.info("")
        logger.info("Failures:")
        for outcome in failures:
            logger.info(f"  {outcome.keyword} / {outcome.client_name or outcome.place_id}: {outcome.error}")

    logger.info("=" * 70)


def _log_name(args) -> str:
    if args.init_db:
        return "init-db"
    if args.keyword:
        return "single"
    return "batch"


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    exit_code = 0

    try:
        config = build_config(args)
        setup_logging(config.log_level, config.log_dir, log_name=_log_name(args))

        now = datetime.now(ZoneInfo(config.batch.timezone))
        logger.info("=" * 70)
        logger.info("place-rank-tracker - Naver Place Rank Measurement")
        logger.info(f"Run time: {now:%Y-%m-%d %H:%M:%S} ({config.batch.timezone})")
        logger.info("=" * 70)
        logger.info(f"Config: {config.summary()}")
        logger.info("")

        if args.init_db:
            tables = init_database(config.database_url)
            logger.info(f"DB ready ({', '.join(tables)})")

        elif args.keyword:
            if not asyncio.run(run_single(args, config)):
                exit_code = 1

        else:
            summary = asyncio.run(run_batch(args, config))
            log_summary(summary)
            exit_code = summary.exit_code()

    except KeyboardInterrupt:
        logger.warning("")
        logger.warning("Interrupted by user (Ctrl+C)")
        exit_code = 130

    except Exception as e:
        logger.error("")
        logger.error("=" * 70)
        logger.error("FATAL ERROR")
        logger.error("=" * 70)
        logger.error(f"{e}", exc_info=True)
        logger.error("=" * 70)
        exit_code = 1

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
