"""
Place Rank Tracker - Stealth & Pacing Utilities

Anti-detection measures for the mobile listing and profile pages.

Features:
- Mobile Safari user agent and phone viewport
- Korean locale headers
- playwright-stealth evasions (webdriver, languages, platform)
- Chrome automation flag cleanup
- Random timing variations between requests
"""

import asyncio
import random
from typing import Dict, List

from playwright_stealth import Stealth

from scrape_place.place_config import BrowserConfig


def get_extra_http_headers() -> Dict[str, str]:
    """Request headers a Korean mobile Safari sends."""
    return {
        "Accept-Language": "ko-KR,ko;q=0.9,en-US;q=0.8,en;q=0.7",
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    }


def get_playwright_context_params(config: BrowserConfig) -> Dict:
    """
    Get Playwright context parameters for a mobile session.

    Args:
        config: Browser configuration

    Returns:
        Dict of parameters to pass to browser.new_context()
    """
    return {
        "user_agent": config.get_random_user_agent(),
        "viewport": config.get_viewport(),
        "locale": config.locale,
        "is_mobile": True,
        "has_touch": True,
        "device_scale_factor": 3,
        "extra_http_headers": get_extra_http_headers(),
    }


def get_stealth(config: BrowserConfig) -> Stealth:
    """
    playwright-stealth evasions matched to the mobile Korean profile.

    Args:
        config: Browser configuration

    Returns:
        Stealth instance to apply to every new page
    """
    return Stealth(
        navigator_platform_override="iPhone",
        navigator_languages_override=(config.locale, config.locale.split("-")[0]),
    )


def get_playwright_init_scripts() -> List[str]:
    """
    Get JavaScript init scripts for markers playwright-stealth leaves alone.

    Returns:
        List of JavaScript code snippets to inject
    """
    scripts = []

    # Remove Chrome automation flags
    scripts.append("""
        delete window.cdc_adoQpoasnfa76pfcZLmcfl_Array;
        delete window.cdc_adoQpoasnfa76pfcZLmcfl_Promise;
        delete window.cdc_adoQpoasnfa76pfcZLmcfl_Symbol;
    """)

    return scripts


def get_random_delay(min_seconds: float = 2.0, max_seconds: float = 3.0) -> float:
    """
    Get a random delay between two requests.

    Args:
        min_seconds: Minimum delay
        max_seconds: Maximum delay

    Returns:
        Delay in seconds
    """
    if max_seconds <= min_seconds:
        return max(0.0, min_seconds)
    return random.uniform(min_seconds, max_seconds)


async def human_delay(min_seconds: float = 2.0, max_seconds: float = 3.0) -> None:
    """Sleep for a random human-like interval."""
    delay = get_random_delay(min_seconds, max_seconds)
    if delay > 0:
        await asyncio.sleep(delay)


async def settle(seconds: float) -> None:
    """Fixed wait for the page to finish rendering; no-op for zero."""
    if seconds > 0:
        await asyncio.sleep(seconds)
