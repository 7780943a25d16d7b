"""Headless browser lifecycle for the sync.

One ``BrowserSession`` owns one Playwright browser, context and page. The
walker and the detail fetcher take turns on the same page; nothing here is
thread-safe and nothing needs to be.
"""

from typing import Optional

from playwright.sync_api import Browser, BrowserContext, Page, Playwright, sync_playwright
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PWTimeout

from catalog_sync.config import (
    BROWSER_HEADLESS,
    BROWSER_USER_AGENT,
    NAVIGATION_TIMEOUT_MS,
)
from catalog_sync.logging_config import get_logger

__all__ = [
    "NavigationError",
    "BrowserSession",
]

logger = get_logger("browser")

LAUNCH_ARGS = ["--no-sandbox", "--disable-setuid-sandbox", "--disable-dev-shm-usage"]


class NavigationError(Exception):
    """A page load or navigation failed or timed out."""

    def __init__(self, url: str, message: str, timed_out: bool = False):
        super().__init__(f"{message} ({url})")
        self.url = url
        self.timed_out = timed_out


class BrowserSession:
    """Owns the Playwright browser and the single working page.

    Usage:
        with BrowserSession() as session:
            session.goto("https://rebike.com/de/city-e-bikes?page=1")
            html = session.content()
    """

    def __init__(
        self,
        headless: bool = BROWSER_HEADLESS,
        user_agent: str = BROWSER_USER_AGENT,
        navigation_timeout_ms: int = NAVIGATION_TIMEOUT_MS,
        locale: str = "de-DE",
    ):
        self.headless = headless
        self.user_agent = user_agent
        self.navigation_timeout_ms = navigation_timeout_ms
        self.locale = locale
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    def __enter__(self) -> "BrowserSession":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_started(self) -> bool:
        return self._browser is not None

    @property
    def page(self) -> Page:
        if self._page is None:
            self.new_page()
        return self._page

    def start(self) -> None:
        """Launch the browser and open a context with our user agent."""
        if self.is_started:
            return
        logger.info(f"Launching browser (headless={self.headless})")
        self._playwright = sync_playwright().start()
        self._browser = self._playwright.chromium.launch(headless=self.headless, args=LAUNCH_ARGS)
        self._context = self._browser.new_context(
            locale=self.locale,
            user_agent=self.user_agent,
            viewport={"width": 1920, "height": 1080},
        )

    def new_page(self) -> Page:
        """Replace the working page with a fresh one."""
        if not self.is_started:
            self.start()
        self._close_page()
        self._page = self._context.new_page()
        self._page.set_default_navigation_timeout(self.navigation_timeout_ms)
        return self._page

    def goto(self, url: str, timeout_ms: Optional[int] = None, wait_until: str = "networkidle") -> None:
        """Navigate the working page.

        Raises:
            NavigationError: On timeout or any navigation failure
        """
        timeout = timeout_ms if timeout_ms is not None else self.navigation_timeout_ms
        try:
            self.page.goto(url, wait_until=wait_until, timeout=timeout)
        except PWTimeout as e:
            raise NavigationError(url, f"Timed out after {timeout} ms", timed_out=True) from e
        except PlaywrightError as e:
            raise NavigationError(url, f"Navigation failed: {e}") from e

    def wait_for_selector(self, selector: str, timeout_ms: int) -> bool:
        """Wait for a selector; False if it never appeared within the bound."""
        try:
            self.page.wait_for_selector(selector, timeout=timeout_ms)
            return True
        except PWTimeout:
            return False

    def content(self) -> str:
        return self.page.content()

    def _close_page(self) -> None:
        if self._page is None:
            return
        try:
            self._page.close()
        except PlaywrightError as e:
            logger.debug(f"Ignoring error while closing page: {e}")
        self._page = None

    def close(self) -> None:
        """Tear down page, context, browser and the Playwright driver."""
        self._close_page()
        for resource in (self._context, self._browser):
            if resource is None:
                continue
            try:
                resource.close()
            except PlaywrightError as e:
                logger.debug(f"Ignoring error during browser shutdown: {e}")
        self._context = None
        self._browser = None
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None
