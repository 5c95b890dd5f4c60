"""
Pytest configuration and shared fixtures for place-rank-tracker tests.

Provides an in-memory database, a keyword store, fast (zero-wait)
configuration, fake browser sessions that replay a listing and fake
collaborators for the batch orchestrator.
"""

import asyncio
from datetime import datetime

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from db.keyword_service import KeywordStore
from db.models import Base, Customer, CustomerKeyword, KeywordAnalysisSnapshot, ScrapingLog
from scrape_place.batch_orchestrator import BatchOrchestrator
from scrape_place.place_collector import PaginationCollector
from scrape_place.place_config import CollectorConfig, PlaceConfig, ReviewConfig
from scrape_place.place_parse import LISTING_SNAPSHOT_JS, REVIEW_SNAPSHOT_JS, SCROLL_TO_BOTTOM_JS
from scrape_place.place_session import NavigationError
from scrape_place.place_types import FullRankingResult, RankedEntity, ScrapeTarget, local_today


# Test markers
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "acceptance: marks tests as acceptance scenario tests"
    )


# Database fixtures
@pytest.fixture
def session_factory():
    """Create in-memory SQLite database shared by every session of a test."""
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)

    yield sessionmaker(bind=engine, autoflush=False)

    engine.dispose()


@pytest.fixture
def store(session_factory):
    return KeywordStore(session_factory)


def seed_keyword(
    session_factory,
    keyword,
    place_id="1001",
    user_id="user-a",
    client_name="Test Shop",
    is_active=True,
    deleted=False,
    business_type="restaurant",
):
    """Insert a customer with one keyword and return the matching ScrapeTarget."""
    session = session_factory()
    try:
        customer = Customer(
            user_id=user_id,
            client_name=client_name,
            place_id=place_id,
            business_type=business_type,
            extra_fields={},
        )
        session.add(customer)
        session.flush()

        customer_keyword = CustomerKeyword(
            customer_id=customer.id,
            keyword=keyword,
            is_active=is_active,
            deleted_at=datetime(2024, 1, 1) if deleted else None,
        )
        session.add(customer_keyword)
        session.commit()

        return ScrapeTarget(
            keyword_id=customer_keyword.id,
            keyword=keyword,
            place_id=place_id,
            customer_id=customer.id,
            user_id=user_id,
            client_name=client_name,
            business_type=business_type,
        )
    finally:
        session.close()


@pytest.fixture
def fast_config():
    """Configuration with every wait set to zero."""
    config = PlaceConfig()
    config.collector = CollectorConfig(
        scroll_waits=((100, 0.0), (200, 0.0), (300, 0.0)),
        scroll_wait_beyond=0.0,
        initial_settle=0.0,
        post_marker_settle=0.0,
    )
    config.review = ReviewConfig(
        initial_settle=0.0,
        post_marker_settle=0.0,
        min_delay=0.0,
        max_delay=0.0,
    )
    config.batch.inter_chunk_delay = 0.0
    return config


# Fake browser
def make_item(place_id, name=None, is_ad=False, in_new_open=False, kind="restaurant", review_text=None, text=None):
    """One listing entry as returned by the listing snapshot script."""
    return {
        "href": f"/{kind}/{place_id}?entry=pll",
        "name": name if name is not None else f"Place {place_id}",
        "category": "한식",
        "text": text if text is not None else f"Place {place_id}\n한식",
        "review_text": review_text,
        "is_ad": is_ad,
        "in_new_open": in_new_open,
    }


def make_listing(count, start=1):
    return [make_item(str(place_id)) for place_id in range(start, start + count)]


class FakeSession:
    """
    Replays an infinite-scroll listing and profile pages.

    Each scroll loads `page_size` more listing items. Profile pages are looked
    up by the place id in the last navigated URL.
    """

    def __init__(
        self,
        items=None,
        initial=20,
        page_size=20,
        container=True,
        navigation_error=None,
        profiles=None,
        failing_profiles=(),
    ):
        self.items = items or []
        self.loaded = min(initial, len(self.items))
        self.page_size = page_size
        self.container = container
        self.navigation_error = navigation_error
        self.profiles = profiles or {}
        self.failing_profiles = set(failing_profiles)

        self.visited = []
        self.loaded_at_scroll = []
        self.closed = False

    @property
    def scrolls(self):
        return len(self.loaded_at_scroll)

    async def navigate(self, url, wait_until="domcontentloaded", timeout_ms=30000):
        self.visited.append(url)
        if self.navigation_error:
            raise NavigationError(self.navigation_error)
        for place_id in self.failing_profiles:
            if f"/place/{place_id}/" in url:
                raise NavigationError(f"Navigation timed out after {timeout_ms}ms")

    async def wait_for_marker(self, selector, timeout_ms):
        return True

    async def evaluate(self, script, arg=None):
        if script == LISTING_SNAPSHOT_JS:
            return {"container": self.container, "items": self.items[:self.loaded]}

        if script == SCROLL_TO_BOTTOM_JS:
            if not self.container:
                return False
            self.loaded_at_scroll.append(self.loaded)
            self.loaded = min(len(self.items), self.loaded + self.page_size)
            return True

        if script == REVIEW_SNAPSHOT_JS:
            place_id = self.visited[-1].rstrip("/").split("/")[-2]
            return self.profiles.get(place_id, {"links": [], "body_text": ""})

        raise AssertionError(f"Unexpected script: {script[:40]}")

    async def close(self):
        self.closed = True


class FakeBrowser:
    """Hands out pre-built sessions (or a fresh one from a factory)."""

    def __init__(self, sessions=None, factory=None):
        self.sessions = list(sessions or [])
        self.factory = factory
        self.opened = []

    async def new_session(self):
        if self.sessions:
            session = self.sessions.pop(0)
        else:
            session = self.factory()
        self.opened.append(session)
        return session


def run(coro):
    """Drive a coroutine from a plain test function."""
    return asyncio.run(coro)


# Fake orchestrator collaborators
class FakeCollector:
    """Returns a fixed ranking per keyword and tracks concurrency."""

    def __init__(self, rankings=None, failures=None, delay=0.0, error=None):
        self.rankings = rankings or {}
        self.failures = failures or {}
        self.delay = delay
        self.error = error
        self.calls = []
        self.active = 0
        self.max_active = 0

    async def collect(self, keyword, target_place_ids=None):
        self.calls.append((keyword, list(target_place_ids or [])))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error:
                raise self.error

            today = local_today()
            if keyword in self.failures:
                return FullRankingResult.failure(keyword, today, self.failures[keyword])

            place_ids = self.rankings.get(keyword, ["100", "200", "300"])
            return FullRankingResult(
                keyword=keyword,
                measured_date=today,
                rankings=[
                    RankedEntity(rank=rank, place_id=place_id, name=f"Place {place_id}",
                                 review_count=rank * 10)
                    for rank, place_id in enumerate(place_ids, 1)
                ],
            )
        finally:
            self.active -= 1


class FakeFetcher:
    def __init__(self, details=None):
        self.details = details or {}
        self.calls = []

    async def fetch_many(self, place_ids):
        place_ids = list(place_ids)
        self.calls.append(place_ids)
        return {place_id: self.details[place_id] for place_id in place_ids if place_id in self.details}


def snapshots(session_factory):
    session = session_factory()
    try:
        rows = session.execute(select(KeywordAnalysisSnapshot).order_by(KeywordAnalysisSnapshot.id)).scalars().all()
        return [
            {
                "keyword_id": row.customer_keyword_id,
                "rankings": row.rankings,
                "target_rank": row.target_rank,
                "visitor": row.visitor_review_count,
                "blog": row.blog_review_count,
                "success": row.success,
                "error": row.error,
            }
            for row in rows
        ]
    finally:
        session.close()


def run_logs(session_factory):
    session = session_factory()
    try:
        return [
            (log.status, log.processed_count, log.failed_count, log.extra_metadata, log.error_message)
            for log in session.execute(select(ScrapingLog).order_by(ScrapingLog.id)).scalars().all()
        ]
    finally:
        session.close()


def make_orchestrator(store, fast_config, collector=None, fetcher=None, concurrency=3):
    fast_config.batch.concurrency_limit = concurrency
    return BatchOrchestrator(store, collector or FakeCollector(), fetcher or FakeFetcher(), fast_config)


def listing_collector(fast_config, count=300):
    browser = FakeBrowser(factory=lambda: FakeSession(items=make_listing(count)))
    return browser, PaginationCollector(browser, fast_config)


def collect_listing(config, session, keyword="강남 맛집", target=None):
    """Run the real collector against one fake session."""
    collector = PaginationCollector(FakeBrowser([session]), config)
    return run(collector.collect(keyword, target))
