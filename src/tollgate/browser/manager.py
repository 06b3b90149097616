"""
Browser lifetime management.

BrowserManager owns one Playwright browser for the duration of a task:

    with BrowserManager(headless=True) as manager:
        page = manager.get_page()

The browser is launched lazily on the first get_page() call. Every call
checks liveness: a disconnected browser is relaunched, and a closed page is
replaced, so callers never hold a stale handle.
"""

import logging

from playwright.sync_api import Browser, BrowserContext, Page, Playwright, sync_playwright
from playwright.sync_api import Error as PlaywrightError

from tollgate.errors import BrowserLaunchError

logger = logging.getLogger(__name__)


class BrowserManager:
    """
    Lazily launched, self-healing Chromium handle.

    Attributes:
        headless: Launch without a visible window
        viewport: Viewport size for new pages
    """

    def __init__(
        self,
        headless: bool = False,
        viewport_width: int = 1280,
        viewport_height: int = 800,
    ) -> None:
        self.headless = headless
        self.viewport = {"width": viewport_width, "height": viewport_height}
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    @property
    def is_running(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    def get_page(self) -> Page:
        """
        Return a live page, launching or relaunching the browser if needed.

        Raises:
            BrowserLaunchError: If Playwright cannot start the browser
        """
        context = self._context
        if not self.is_running or context is None:
            if self._browser is not None:
                logger.warning("Browser disconnected, relaunching")
            context = self._launch()

        if self._page is None or self._page.is_closed():
            self._page = context.new_page()

        return self._page

    def _launch(self) -> BrowserContext:
        self._discard()
        try:
            if self._playwright is None:
                self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(headless=self.headless)
            context = self._browser.new_context(viewport=self.viewport)
        except PlaywrightError as e:
            raise BrowserLaunchError(underlying_error=str(e)) from e
        self._context = context
        logger.info("Launched Chromium (headless=%s)", self.headless)
        return context

    def _discard(self) -> None:
        self._page = None
        self._context = None
        self._browser = None

    def close(self) -> None:
        """Close the browser and stop Playwright. Safe to call twice."""
        browser, playwright = self._browser, self._playwright
        self._discard()
        self._playwright = None

        if browser is not None:
            try:
                browser.close()
            except PlaywrightError as e:
                logger.warning("Error closing browser: %s", e)
        if playwright is not None:
            playwright.stop()
        logger.debug("Browser closed")

    def __enter__(self) -> "BrowserManager":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
