"""
Place Rank Tracker - Configuration Management

Centralized configuration for Naver Place ranking collection.

Features:
- Playwright browser settings (mobile profile)
- Checkpoint/scroll pacing for the listing collector
- Profile-page pacing for the review fetcher
- Batch concurrency and inter-chunk delay
- Pinned timezone for calendar-day boundaries
"""

import os
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from dotenv import load_dotenv

from scrape_place.place_types import DEFAULT_TIMEZONE, MAX_RANK_DEPTH


# Load environment
load_dotenv()


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key, "").lower()
    if value in ("true", "1", "yes", "on"):
        return True
    if value in ("false", "0", "no", "off"):
        return False
    return default


def _running_in_ci() -> bool:
    return bool(os.getenv("CI") or os.getenv("GITHUB_ACTIONS"))


@dataclass
class BrowserConfig:
    """Playwright browser configuration."""

    # Headless in CI, visible browser on a local dev box
    headless: bool = True

    browser_args: List[str] = field(default_factory=lambda: [
        "--disable-dev-shm-usage",
        "--disable-gpu",
        "--no-sandbox",
        "--disable-setuid-sandbox",
    ])

    # The mobile listing only renders its infinite list on a phone-sized viewport
    viewport_width: int = 390
    viewport_height: int = 844

    locale: str = "ko-KR"

    # Listing is searched around Seoul City Hall
    longitude: float = 126.9783882
    latitude: float = 37.5666103

    user_agents: List[str] = field(default_factory=lambda: [
        "Mozilla/5.0 (iPhone; CPU iPhone OS 16_6 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/16.6 Mobile/15E148 Safari/604.1",
        "Mozilla/5.0 (iPhone; CPU iPhone OS 17_1 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Mobile/15E148 Safari/604.1",
        "Mozilla/5.0 (iPhone; CPU iPhone OS 17_4 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Mobile/15E148 Safari/604.1",
    ])

    def get_random_user_agent(self) -> str:
        """Get a random user agent."""
        return random.choice(self.user_agents)

    def get_viewport(self) -> Dict[str, int]:
        return {"width": self.viewport_width, "height": self.viewport_height}


@dataclass
class CollectorConfig:
    """Listing pagination behavior."""

    checkpoints: Tuple[int, ...] = (100, 200, 300)
    max_attempts: int = 20

    # Consecutive unchanged polls before the list is considered exhausted
    stable_polls_below_checkpoint: int = 3
    stable_polls_at_checkpoint: int = 2

    max_depth: int = MAX_RANK_DEPTH

    # (upper count bound, seconds) - wait after each scroll grows with depth
    scroll_waits: Tuple[Tuple[int, float], ...] = ((100, 0.8), (200, 1.2), (300, 1.5))
    scroll_wait_beyond: float = 2.0

    navigation_timeout_ms: int = 30000
    list_marker_timeout_ms: int = 5000
    initial_settle: float = 1.0
    post_marker_settle: float = 0.5

    def get_scroll_wait(self, current_count: int) -> float:
        """Seconds to wait after a scroll, given how many entries are loaded."""
        for bound, wait in self.scroll_waits:
            if current_count < bound:
                return wait
        return self.scroll_wait_beyond


@dataclass
class ReviewConfig:
    """Profile page (review counter) behavior."""

    navigation_timeout_ms: int = 15000
    marker_timeout_ms: int = 3000
    initial_settle: float = 1.5
    post_marker_settle: float = 0.5

    # Delay between consecutive profiles within one fetch (seconds)
    min_delay: float = 2.0
    max_delay: float = 3.0


@dataclass
class BatchConfig:
    """Batch orchestration settings."""

    # Simultaneous browser sessions (keyword groups per chunk)
    concurrency_limit: int = 3

    # Pause after a chunk that scraped at least one keyword fresh (seconds)
    inter_chunk_delay: float = 3.0

    trigger_type: str = "scheduled"

    timezone: str = DEFAULT_TIMEZONE


@dataclass
class PlaceConfig:
    """
    Master configuration for the place rank tracker.

    Combines all sub-configurations with defaults tuned to stay below the
    listing service's anti-automation thresholds.
    """

    browser: BrowserConfig = field(default_factory=BrowserConfig)
    collector: CollectorConfig = field(default_factory=CollectorConfig)
    review: ReviewConfig = field(default_factory=ReviewConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)

    database_url: Optional[str] = None
    log_level: str = "INFO"
    log_dir: Optional[str] = "logs"

    list_url: str = "https://m.place.naver.com/place/list"
    place_url: str = "https://m.place.naver.com/place"

    @classmethod
    def from_env(cls) -> "PlaceConfig":
        """
        Create configuration from environment variables.

        Returns:
            PlaceConfig instance
        """
        config = cls()

        config.browser.headless = _env_bool("PLACE_HEADLESS", True)
        if _running_in_ci():
            config.browser.headless = True

        if os.getenv("PLACE_CONCURRENCY_LIMIT"):
            config.batch.concurrency_limit = int(os.getenv("PLACE_CONCURRENCY_LIMIT"))

        if os.getenv("PLACE_INTER_CHUNK_DELAY"):
            config.batch.inter_chunk_delay = float(os.getenv("PLACE_INTER_CHUNK_DELAY"))

        if os.getenv("PLACE_TIMEZONE"):
            config.batch.timezone = os.getenv("PLACE_TIMEZONE")

        if os.getenv("PLACE_DETAIL_DELAY_MIN"):
            config.review.min_delay = float(os.getenv("PLACE_DETAIL_DELAY_MIN"))

        if os.getenv("PLACE_DETAIL_DELAY_MAX"):
            config.review.max_delay = float(os.getenv("PLACE_DETAIL_DELAY_MAX"))

        config.database_url = os.getenv("DATABASE_URL")
        config.log_level = os.getenv("LOG_LEVEL", config.log_level).upper()
        config.log_dir = os.getenv("LOG_DIR", config.log_dir) or None

        return config

    def validate(self) -> bool:
        """
        Validate configuration.

        Returns:
            True if valid, False otherwise
        """
        if self.batch.concurrency_limit < 1:
            return False

        if self.review.min_delay > self.review.max_delay:
            return False

        checkpoints = list(self.collector.checkpoints)
        if not checkpoints or checkpoints != sorted(checkpoints):
            return False
        if checkpoints[-1] > self.collector.max_depth:
            return False

        return True

    def summary(self) -> Dict[str, object]:
        """
        Get configuration summary for logging.

        Returns:
            Dict with the settings that shape a run
        """
        return {
            "headless": self.browser.headless,
            "concurrency_limit": self.batch.concurrency_limit,
            "inter_chunk_delay": self.batch.inter_chunk_delay,
            "checkpoints": list(self.collector.checkpoints),
            "max_attempts": self.collector.max_attempts,
            "detail_delay": (self.review.min_delay, self.review.max_delay),
            "timezone": self.batch.timezone,
            "database_configured": bool(self.database_url),
            "log_level": self.log_level,
        }
