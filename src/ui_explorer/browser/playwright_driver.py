"""
Playwright implementation of the ``BrowserDriver`` interface.

Wraps a single Playwright ``Page`` and translates Playwright failures
into the explorer's exception hierarchy so that the exploration loop
can tell a dead browser from a missing element.
"""

import asyncio
import json
import re
import time

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ui_explorer.browser import scripts
from ui_explorer.browser.driver import (
    ActionOutcome,
    PageSnapshot,
    StabilityResult,
    detect_action_outcome,
)
from ui_explorer.config.settings import BrowserSettings
from ui_explorer.core.exceptions import (
    ActionError,
    BrowserCrashedError,
    BrowserError,
    ElementNotFoundError,
    MultipleMatchError,
    NavigationError,
)
from ui_explorer.utils.hashing import short_hash
from ui_explorer.utils.logging import get_logger

logger = get_logger(__name__)

_STRICT_MODE = re.compile(r"resolved to (\d+) elements")
_CLOSED_MARKERS = ("target closed", "has been closed", "crashed", "disconnected")

POLL_INTERVAL_MS = 100


class PlaywrightDriver:
    """
    Browser driver backed by a Playwright page.

    Example:
        >>> async with BrowserManager(settings.browser) as manager:
        ...     driver = await manager.new_driver()
        ...     await driver.open("https://example.com")
        ...     snapshot = await driver.take_page_snapshot()
    """

    def __init__(self, page: Page, settings: BrowserSettings | None = None) -> None:
        self.page = page
        self.settings = settings or BrowserSettings()

    # =========================================================================
    # Navigation
    # =========================================================================

    async def open(self, url: str) -> None:
        """
        Navigate to URL and wait for the DOM to be ready.

        Raises:
            NavigationError: If navigation fails, times out or returns >= 400
            BrowserCrashedError: If the page or browser is gone
        """
        start_time = time.perf_counter()

        try:
            logger.debug(f"Navigating to: {url}")
            response = await self.page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self.settings.navigation_timeout_ms,
            )
        except PlaywrightTimeoutError as e:
            raise NavigationError(
                f"Navigation timeout: {e}",
                url=url,
                retry_after=10.0,
            ) from e
        except PlaywrightError as e:
            error_msg = str(e)
            if self._is_closed(error_msg):
                raise BrowserCrashedError(
                    f"Browser closed during navigation: {error_msg}",
                    details={"url": url},
                ) from e
            if any(x in error_msg.lower() for x in ["net::", "dns", "connection"]):
                raise NavigationError(
                    f"Network error: {error_msg}",
                    url=url,
                    retry_after=5.0,
                ) from e
            raise NavigationError(f"Navigation failed: {error_msg}", url=url) from e

        elapsed = (time.perf_counter() - start_time) * 1000
        logger.debug(f"Navigation complete in {elapsed:.0f}ms")

        if response and response.status >= 400:
            raise NavigationError(
                f"HTTP {response.status} error",
                url=url,
                status_code=response.status,
                retry_after=5.0 if response.status == 429 else None,
            )

    async def get_current_url(self) -> str:
        return self.page.url

    async def get_links(self) -> list[str]:
        """Absolute hrefs of all navigable anchors on the page."""
        raw = await self.eval(scripts.GET_LINKS_SCRIPT)
        try:
            links = json.loads(raw)
        except json.JSONDecodeError:
            return []
        return [link for link in links if isinstance(link, str)]

    # =========================================================================
    # Interactions
    # =========================================================================

    async def click(self, selector: str) -> None:
        try:
            await self.page.click(selector, timeout=self.settings.action_timeout_ms)
        except PlaywrightError as e:
            raise self._translate(e, selector, "click") from e

    async def fill(self, selector: str, value: str) -> None:
        try:
            await self.page.fill(selector, value, timeout=self.settings.action_timeout_ms)
        except PlaywrightError as e:
            raise self._translate(e, selector, "fill") from e

    async def hover(self, selector: str) -> None:
        try:
            await self.page.hover(selector, timeout=self.settings.action_timeout_ms)
        except PlaywrightError as e:
            raise self._translate(e, selector, "hover") from e

    async def press(self, key: str, selector: str | None = None) -> None:
        try:
            if selector:
                await self.page.press(selector, key, timeout=self.settings.action_timeout_ms)
            else:
                await self.page.keyboard.press(key)
        except PlaywrightError as e:
            raise self._translate(e, selector, "press") from e

    async def select(self, selector: str, value: str) -> None:
        try:
            await self.page.select_option(
                selector, value, timeout=self.settings.action_timeout_ms
            )
        except PlaywrightError as e:
            raise self._translate(e, selector, "select") from e

    # =========================================================================
    # Inspection
    # =========================================================================

    async def eval(self, script: str) -> str:
        """
        Evaluate a script and return its result as a string.

        Non-string results are JSON-encoded; ``None`` becomes ``""``.
        """
        try:
            result = await self.page.evaluate(script)
        except PlaywrightError as e:
            raise self._translate(e, None, "eval") from e

        if result is None:
            return ""
        if isinstance(result, str):
            return result
        return json.dumps(result)

    async def snapshot(self) -> str:
        """Accessibility tree of the page body as YAML-like text."""
        try:
            return await self.page.locator("body").aria_snapshot()
        except PlaywrightError as e:
            raise self._translate(e, "body", "snapshot") from e

    async def screenshot(self, path: str) -> None:
        try:
            await self.page.screenshot(path=path, full_page=True)
        except PlaywrightError as e:
            raise self._translate(e, None, "screenshot") from e

    async def set_viewport_size(self, width: int, height: int) -> None:
        await self.page.set_viewport_size({"width": width, "height": height})

    async def wait_for_stability(
        self, window_ms: int = 300, timeout_ms: int = 5000
    ) -> StabilityResult:
        """
        Poll the DOM until it holds still for ``window_ms``.

        A failed probe (typically a navigation tearing down the execution
        context) counts as activity.
        """
        start = time.monotonic()
        last_change = start
        previous: str | None = None
        interval = max(min(POLL_INTERVAL_MS, window_ms), 10) / 1000

        while True:
            now = time.monotonic()
            if (now - last_change) * 1000 >= window_ms and previous is not None:
                return StabilityResult(
                    is_stable=True,
                    waited_ms=(now - start) * 1000,
                    reason="dom_quiet",
                )
            if (now - start) * 1000 >= timeout_ms:
                return StabilityResult(
                    is_stable=False,
                    waited_ms=(now - start) * 1000,
                    reason="timeout",
                )

            try:
                current = await self.page.evaluate(scripts.DOM_ACTIVITY_SCRIPT)
            except PlaywrightError as e:
                if self._is_closed(str(e)):
                    raise BrowserCrashedError(f"Browser closed while waiting: {e}") from e
                current = None

            if current is None or current != previous:
                last_change = time.monotonic()
            previous = current
            await asyncio.sleep(interval)

    async def take_page_snapshot(self) -> PageSnapshot:
        raw = await self.eval(scripts.PAGE_SNAPSHOT_SCRIPT)
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise BrowserError(
                "Page snapshot script returned invalid JSON",
                details={"url": self.page.url},
            ) from e

        return PageSnapshot(
            url=data.get("url") or self.page.url,
            dom_hash=short_hash(data.get("domSignature", "")),
            visible_text_hash=short_hash(data.get("visibleText", "")),
            interactive_state_hash=short_hash(data.get("interactiveState", "")),
            element_count=int(data.get("elementCount", 0)),
            text_length=int(data.get("textLength", 0)),
            dialog_count=int(data.get("dialogCount", 0)),
        )

    def detect_action_outcome(
        self, before: PageSnapshot, after: PageSnapshot
    ) -> ActionOutcome:
        return detect_action_outcome(before, after)

    async def close(self) -> None:
        """Close the page. Safe to call more than once."""
        if self.page.is_closed():
            return
        try:
            await self.page.close()
        except PlaywrightError as e:
            logger.warning(f"Error closing page: {e}")

    # =========================================================================
    # Error translation
    # =========================================================================

    @staticmethod
    def _is_closed(message: str) -> bool:
        lowered = message.lower()
        return any(marker in lowered for marker in _CLOSED_MARKERS)

    def _translate(
        self,
        error: PlaywrightError,
        selector: str | None,
        action_type: str,
    ) -> BrowserError:
        """Map a Playwright error onto the exception hierarchy."""
        message = str(error)

        if self._is_closed(message):
            return BrowserCrashedError(
                f"Browser closed during {action_type}: {message}",
                details={"selector": selector} if selector else None,
            )

        strict = _STRICT_MODE.search(message)
        if strict and selector:
            count = int(strict.group(1))
            return MultipleMatchError(
                f'Selector "{selector}" matched {count} elements',
                selector=selector,
                match_count=count,
                action_type=action_type,
            )

        if isinstance(error, PlaywrightTimeoutError):
            return ElementNotFoundError(
                f"Element not found (timeout): {message.splitlines()[0]}",
                selector=selector,
                action_type=action_type,
            )

        return ActionError(
            f"{action_type} failed: {message.splitlines()[0] if message else action_type}",
            selector=selector,
            action_type=action_type,
        )
