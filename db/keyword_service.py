"""
Keyword store - targets, daily snapshots and run logs.

All reads and writes of the batch run go through KeywordStore, which wraps a
SQLAlchemy sessionmaker. Each method runs in its own short transaction.
"""

from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any, Dict, Generator, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from db.models import Customer, CustomerKeyword, KeywordAnalysisSnapshot, ScrapingLog
from runner.logging_setup import get_logger
from scrape_place.place_types import (
    FullRankingResult,
    RankedEntity,
    ScrapeTarget,
    local_today,
    normalize_keyword,
)

logger = get_logger("keyword_service")


RUN_STATUSES = ("running", "completed", "failed")
TRIGGER_TYPES = ("scheduled", "manual", "api")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class KeywordStore:
    """Persistence collaborator of the batch orchestrator."""

    def __init__(self, session_factory: sessionmaker, timezone_name: Optional[str] = None):
        self.session_factory = session_factory
        self.timezone_name = timezone_name

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _today(self) -> date:
        if self.timezone_name:
            return local_today(self.timezone_name)
        return local_today()

    # ------------------------------------------------------------------
    # Targets
    # ------------------------------------------------------------------

    def _target_query(self):
        return (
            select(CustomerKeyword, Customer)
            .join(Customer, CustomerKeyword.customer_id == Customer.id)
            .where(
                CustomerKeyword.is_active.is_(True),
                CustomerKeyword.deleted_at.is_(None),
                Customer.place_id.is_not(None),
            )
            .order_by(CustomerKeyword.created_at, CustomerKeyword.id)
        )

    @staticmethod
    def _to_target(keyword: CustomerKeyword, customer: Customer) -> ScrapeTarget:
        return ScrapeTarget(
            keyword_id=keyword.id,
            keyword=keyword.keyword,
            place_id=customer.place_id,
            customer_id=customer.id,
            user_id=customer.user_id or keyword.user_id,
            client_name=customer.client_name,
            business_type=customer.business_type,
        )

    def list_active_targets(self, measured_date: Optional[date] = None) -> List[ScrapeTarget]:
        """
        Active keywords of customers with a place id, oldest first.

        Keywords that already have a successful snapshot for the day are
        excluded; failed measurements are retried.

        Args:
            measured_date: Day to check (default: today in the pinned timezone)

        Returns:
            List of ScrapeTarget
        """
        measured_date = measured_date or self._today()

        measured_today = (
            select(KeywordAnalysisSnapshot.customer_keyword_id)
            .where(
                KeywordAnalysisSnapshot.measured_date == measured_date,
                KeywordAnalysisSnapshot.success.is_(True),
            )
        )

        with self._session() as session:
            rows = session.execute(self._target_query()).all()
            targets = [self._to_target(keyword, customer) for keyword, customer in rows]
            done_ids = set(session.execute(measured_today).scalars().all())

        pending = [target for target in targets if target.keyword_id not in done_ids]

        logger.info(
            f"Active keywords: {len(targets)} total, {len(pending)} pending "
            f"({len(targets) - len(pending)} already measured on {measured_date})"
        )
        return pending

    def list_targets_for_user(self, user_id: str) -> List[ScrapeTarget]:
        """Active keywords of one owner's customers (no same-day filter)."""
        query = self._target_query().where(Customer.user_id == user_id)

        with self._session() as session:
            rows = session.execute(query).all()
            return [self._to_target(keyword, customer) for keyword, customer in rows]

    def touch_target_timestamp(self, keyword_id: int) -> None:
        with self._session() as session:
            keyword = session.get(CustomerKeyword, keyword_id)
            if keyword is None:
                logger.warning(f"Keyword {keyword_id} not found, timestamp not updated")
                return
            keyword.updated_at = _utcnow()

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def get_today_snapshot(self, keyword: str, measured_date: Optional[date] = None) -> Optional[FullRankingResult]:
        """
        Most recently updated successful snapshot of a keyword for the day.

        Any owner's snapshot matches; only the shared ranking is returned
        (target fields unset).
        """
        measured_date = measured_date or self._today()

        query = (
            select(KeywordAnalysisSnapshot)
            .where(
                KeywordAnalysisSnapshot.keyword == normalize_keyword(keyword),
                KeywordAnalysisSnapshot.measured_date == measured_date,
                KeywordAnalysisSnapshot.success.is_(True),
            )
            .order_by(KeywordAnalysisSnapshot.updated_at.desc(), KeywordAnalysisSnapshot.id.desc())
            .limit(1)
        )

        with self._session() as session:
            snapshot = session.execute(query).scalars().first()
            if snapshot is None:
                return None

            return FullRankingResult(
                keyword=keyword,
                measured_date=snapshot.measured_date,
                rankings=[RankedEntity.from_dict(item) for item in (snapshot.rankings or [])],
                stopped_early=bool((snapshot.extra_metadata or {}).get("stopped_early")),
            )

    def upsert_snapshot(self, target: ScrapeTarget, result: FullRankingResult) -> int:
        """
        Write a target's measurement for the result's day.

        Updates the (keyword id, day) row in place if it exists, else inserts.

        Returns:
            Snapshot id
        """
        with self._session() as session:
            snapshot = session.execute(
                select(KeywordAnalysisSnapshot).where(
                    KeywordAnalysisSnapshot.customer_keyword_id == target.keyword_id,
                    KeywordAnalysisSnapshot.measured_date == result.measured_date,
                )
            ).scalars().first()

            if snapshot is None:
                snapshot = KeywordAnalysisSnapshot(
                    customer_keyword_id=target.keyword_id,
                    measured_date=result.measured_date,
                )
                session.add(snapshot)

            snapshot.user_id = target.user_id
            snapshot.keyword = target.normalized_keyword
            snapshot.total_results = result.total_results
            snapshot.rankings = [entity.to_dict() for entity in result.rankings]
            snapshot.target_rank = result.target_rank
            snapshot.visitor_review_count = result.target_visitor_review_count or 0
            snapshot.blog_review_count = result.target_blog_review_count or 0
            snapshot.success = result.success
            snapshot.error = result.error
            snapshot.extra_metadata = {
                "keyword": target.keyword,
                "place_id": target.place_id,
                "client_name": target.client_name,
                "customer_id": target.customer_id,
                "business_type": target.business_type,
                "success": result.success,
                "error": result.error,
                "stopped_early": result.stopped_early,
                "scraped_at": _utcnow().isoformat(),
            }
            snapshot.updated_at = _utcnow()

            session.flush()
            return snapshot.id

    def get_recent_ranking_history(self, keyword_id: int, limit: int = 30) -> List[Dict[str, Any]]:
        """Latest daily measurements of a keyword, newest first."""
        query = (
            select(KeywordAnalysisSnapshot)
            .where(KeywordAnalysisSnapshot.customer_keyword_id == keyword_id)
            .order_by(KeywordAnalysisSnapshot.measured_date.desc())
            .limit(limit)
        )

        with self._session() as session:
            return [
                {
                    "id": snapshot.id,
                    "customer_keyword_id": snapshot.customer_keyword_id,
                    "measured_date": snapshot.measured_date,
                    "target_rank": snapshot.target_rank,
                    "visitor_review_count": snapshot.visitor_review_count,
                    "blog_review_count": snapshot.blog_review_count,
                    "total_results": snapshot.total_results,
                    "success": snapshot.success,
                    "error": snapshot.error,
                }
                for snapshot in session.execute(query).scalars().all()
            ]

    # ------------------------------------------------------------------
    # Run logs
    # ------------------------------------------------------------------

    def create_run_log(self, total_targets: int, trigger_type: str = "scheduled") -> int:
        """Open a run log in 'running' state and return its id."""
        if trigger_type not in TRIGGER_TYPES:
            raise ValueError(f"Unknown trigger type: {trigger_type}")

        with self._session() as session:
            log = ScrapingLog(
                started_at=_utcnow(),
                total_keywords=total_targets,
                processed_count=0,
                failed_count=0,
                status="running",
                trigger_type=trigger_type,
                extra_metadata={},
            )
            session.add(log)
            session.flush()
            return log.id

    def update_run_log(
        self,
        run_log_id: int,
        processed_count: int,
        failed_count: int,
        status: str,
        error_message: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        started_at: Optional[datetime] = None,
    ) -> None:
        """Close a run log with its final counts."""
        if status not in RUN_STATUSES:
            raise ValueError(f"Unknown run status: {status}")

        with self._session() as session:
            log = session.get(ScrapingLog, run_log_id)
            if log is None:
                logger.warning(f"Run log {run_log_id} not found")
                return

            completed_at = _utcnow()
            started = started_at or log.started_at

            log.completed_at = completed_at
            log.processed_count = processed_count
            log.failed_count = failed_count
            log.status = status
            log.error_message = error_message
            log.execution_time_ms = int((completed_at - started).total_seconds() * 1000)
            log.extra_metadata = metadata or {}

    def get_recent_run_logs(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Latest run logs, newest first."""
        query = select(ScrapingLog).order_by(ScrapingLog.started_at.desc(), ScrapingLog.id.desc()).limit(limit)

        with self._session() as session:
            return [
                {
                    "id": log.id,
                    "started_at": log.started_at,
                    "completed_at": log.completed_at,
                    "total_keywords": log.total_keywords,
                    "processed_count": log.processed_count,
                    "failed_count": log.failed_count,
                    "status": log.status,
                    "trigger_type": log.trigger_type,
                    "error_message": log.error_message,
                    "execution_time_ms": log.execution_time_ms,
                    "metadata": log.extra_metadata,
                }
                for log in session.execute(query).scalars().all()
            ]
