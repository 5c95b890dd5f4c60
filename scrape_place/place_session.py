"""
Playwright browser sessions for the place rank tracker.

A PlaceBrowser owns one Chromium process for the duration of a run. Each
PlaceSession is an isolated context with a single tab, owned by exactly one
task at a time (a keyword group's collector or the review fetcher).

Usage:
    async with PlaceBrowser(config.browser) as browser:
        session = await browser.new_session()
        try:
            await session.navigate(url, timeout_ms=30000)
            state = await session.evaluate(SCRIPT)
        finally:
            await session.close()
"""

from typing import Any, Optional

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Page,
    Playwright,
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError,
)

from runner.logging_setup import get_logger
from scrape_place.place_config import BrowserConfig
from scrape_place.place_stealth import get_playwright_context_params, get_playwright_init_scripts, get_stealth

logger = get_logger("place_session")


class SessionOpenError(RuntimeError):
    """The browser or a browser context could not be created."""


class NavigationError(RuntimeError):
    """A page could not be reached within its timeout."""


class PlaceSession:
    """One browser context with a single active tab."""

    def __init__(self, context: BrowserContext, page: Page):
        self.context = context
        self.page = page

    async def navigate(self, url: str, wait_until: str = "domcontentloaded", timeout_ms: int = 30000) -> None:
        """
        Navigate the tab.

        Raises:
            NavigationError: With a readable reason on timeout or network error
        """
        try:
            await self.page.goto(url, wait_until=wait_until, timeout=timeout_ms)
        except PlaywrightTimeoutError:
            raise NavigationError(f"Navigation timed out after {timeout_ms}ms") from None
        except PlaywrightError as e:
            reason = str(e).splitlines()[0] if str(e) else type(e).__name__
            raise NavigationError(f"Navigation failed: {reason}") from None

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        """Run a script in the page and return its JSON-serializable result."""
        if arg is None:
            return await self.page.evaluate(script)
        return await self.page.evaluate(script, arg)

    async def wait_for_marker(self, selector: str, timeout_ms: int) -> bool:
        """
        Best-effort wait for a selector.

        Returns:
            True if the selector appeared, False on timeout (never raises)
        """
        try:
            await self.page.wait_for_selector(selector, timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            return False
        except PlaywrightError as e:
            logger.debug(f"Marker wait for {selector} failed: {e}")
            return False

    async def close(self) -> None:
        """Close resources in order: page -> context."""
        try:
            await self.page.close()
        except Exception as e:
            logger.debug(f"Error closing page: {e}")

        try:
            await self.context.close()
        except Exception as e:
            logger.debug(f"Error closing context: {e}")


class PlaceBrowser:
    """Chromium instance shared by every session of a run."""

    def __init__(self, config: Optional[BrowserConfig] = None):
        self.config = config or BrowserConfig()
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self) -> None:
        """
        Launch Chromium.

        Raises:
            SessionOpenError: If Playwright or the browser cannot start
        """
        try:
            self.playwright = await async_playwright().start()
            self.browser = await self.playwright.chromium.launch(
                headless=self.config.headless,
                args=self.config.browser_args,
            )
        except Exception as e:
            await self.close()
            raise SessionOpenError(f"Failed to launch browser: {e}") from e

        logger.info(f"Browser launched (headless={self.config.headless})")

    async def new_session(self) -> PlaceSession:
        """
        Open a fresh context and tab.

        Raises:
            SessionOpenError: If the browser is not running or refuses a context
        """
        if self.browser is None or not self.browser.is_connected():
            raise SessionOpenError("Browser is not running")

        try:
            context = await self.browser.new_context(**get_playwright_context_params(self.config))
            for script in get_playwright_init_scripts():
                await context.add_init_script(script)
            page = await context.new_page()
            await get_stealth(self.config).apply_stealth_async(page)
        except PlaywrightError as e:
            raise SessionOpenError(f"Failed to open browser session: {e}") from e

        page.on("console", lambda msg: logger.debug(f"PAGE {msg.type.upper()}: {msg.text}"))

        return PlaceSession(context, page)

    async def close(self) -> None:
        if self.browser is not None:
            try:
                await self.browser.close()
            except Exception as e:
                logger.debug(f"Error closing browser: {e}")
            self.browser = None

        if self.playwright is not None:
            try:
                await self.playwright.stop()
            except Exception as e:
                logger.debug(f"Error stopping Playwright: {e}")
            self.playwright = None
