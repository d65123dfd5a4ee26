"""
Playwright browser lifecycle.

One ``BrowserManager`` owns one launched browser. Every exploration run
gets its own context (isolated cookies and storage) and page through
``new_driver``.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Playwright,
)

from ui_explorer.browser.playwright_driver import PlaywrightDriver
from ui_explorer.config.settings import BrowserSettings
from ui_explorer.core.exceptions import BrowserError
from ui_explorer.utils.logging import get_logger

logger = get_logger(__name__)


class BrowserManager:
    """
    Launches a browser and hands out drivers bound to fresh pages.

    Example:
        >>> async with BrowserManager(settings.browser) as manager:
        ...     driver = await manager.new_driver()
        ...     await driver.open("https://example.com")
    """

    def __init__(self, settings: BrowserSettings) -> None:
        self.settings = settings
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._contexts: list[BrowserContext] = []

    @property
    def is_running(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def start(self) -> None:
        """
        Launch the configured browser type.

        Raises:
            BrowserError: If Playwright or the browser fails to start
        """
        if self._browser is not None:
            logger.warning("Browser already started, skipping launch")
            return

        name = self.settings.browser_type
        logger.info(f"Launching {name} (headless={self.settings.headless})")
        try:
            self._playwright = await async_playwright().start()
            launcher = getattr(self._playwright, name)
            self._browser = await launcher.launch(headless=self.settings.headless)
        except Exception as e:
            await self._shutdown()
            raise BrowserError(
                f"Failed to launch browser: {e}",
                details={"browser_type": name},
            ) from e

    async def stop(self) -> None:
        """Close contexts, the browser and Playwright. Safe to repeat."""
        await self._shutdown()
        logger.info("Browser stopped")

    async def _shutdown(self) -> None:
        for context in self._contexts:
            await self._close_quietly(context.close, "browser context")
        self._contexts.clear()

        if self._browser is not None:
            await self._close_quietly(self._browser.close, "browser")
            self._browser = None

        if self._playwright is not None:
            await self._close_quietly(self._playwright.stop, "Playwright")
            self._playwright = None

    @staticmethod
    async def _close_quietly(close: Any, what: str) -> None:
        try:
            await close()
        except Exception as e:
            logger.warning(f"Error closing {what}: {e}")

    def _context_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {
            "viewport": {
                "width": self.settings.viewport_width,
                "height": self.settings.viewport_height,
            },
            "ignore_https_errors": self.settings.ignore_https_errors,
        }
        if self.settings.user_agent:
            options["user_agent"] = self.settings.user_agent
        return options

    async def new_context(self) -> BrowserContext:
        """
        Create an isolated context with the configured viewport and timeouts.

        Raises:
            BrowserError: If the browser is not started or refuses the context
        """
        if self._browser is None:
            raise BrowserError("Browser not started. Call start() first.")

        try:
            context = await self._browser.new_context(**self._context_options())
        except Exception as e:
            raise BrowserError(f"Failed to create browser context: {e}") from e

        context.set_default_timeout(self.settings.timeout_ms)
        context.set_default_navigation_timeout(self.settings.navigation_timeout_ms)
        self._contexts.append(context)
        return context

    async def new_driver(self) -> PlaywrightDriver:
        context = await self.new_context()
        page = await context.new_page()
        logger.debug("Opened page for a new exploration run")
        return PlaywrightDriver(page, self.settings)

    async def __aenter__(self) -> "BrowserManager":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()


@asynccontextmanager
async def create_browser(settings: BrowserSettings) -> AsyncGenerator[BrowserManager, None]:
    """Start a manager for the duration of the block."""
    manager = BrowserManager(settings)
    try:
        await manager.start()
        yield manager
    finally:
        await manager.stop()
