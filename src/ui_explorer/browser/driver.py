"""
Browser driver interface used by the exploration engine.

The engine talks to the browser only through ``BrowserDriver``. Any
object with these coroutines works: the Playwright adapter in
``playwright_driver``, a remote automation service, or an in-memory
fake in tests.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable


class OutcomeType(str, Enum):
    """Observable effect of a single action."""

    URL_CHANGED = "url_changed"
    DIALOG_OPENED = "dialog_opened"
    DOM_CHANGED = "dom_changed"
    NO_CHANGE = "no_change"


@dataclass(frozen=True)
class StabilityResult:
    """Result of waiting for the page to stop changing."""

    is_stable: bool
    waited_ms: float
    reason: str = ""


@dataclass(frozen=True)
class PageSnapshot:
    """
    Cheap before/after picture of the page around one action.

    Hashes are opaque; only equality matters.
    """

    url: str
    dom_hash: str
    visible_text_hash: str = ""
    interactive_state_hash: str = ""
    element_count: int = 0
    text_length: int = 0
    dialog_count: int = 0
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ActionOutcome:
    """What an action visibly did."""

    type: OutcomeType
    details: str
    success: bool


def detect_action_outcome(before: PageSnapshot, after: PageSnapshot) -> ActionOutcome:
    """
    Compare two snapshots and report the most significant change.

    Precedence: URL change, then a newly opened dialog, then DOM
    structure, visible text and form control state. Anything else is
    ``no_change`` and counts as an unsuccessful action.

    Example:
        >>> before = PageSnapshot(url="https://a.com/1", dom_hash="x")
        >>> after = PageSnapshot(url="https://a.com/2", dom_hash="x")
        >>> detect_action_outcome(before, after).type
        <OutcomeType.URL_CHANGED: 'url_changed'>
    """
    if before.url != after.url:
        return ActionOutcome(
            type=OutcomeType.URL_CHANGED,
            details=f"Navigated from {before.url} to {after.url}",
            success=True,
        )

    if after.dialog_count > before.dialog_count:
        return ActionOutcome(
            type=OutcomeType.DIALOG_OPENED,
            details=f"Dialog count went from {before.dialog_count} to {after.dialog_count}",
            success=True,
        )

    if before.dom_hash != after.dom_hash:
        delta = after.element_count - before.element_count
        return ActionOutcome(
            type=OutcomeType.DOM_CHANGED,
            details=f"DOM structure changed ({delta:+d} elements)",
            success=True,
        )

    if before.visible_text_hash != after.visible_text_hash:
        return ActionOutcome(
            type=OutcomeType.DOM_CHANGED,
            details="Visible text content changed",
            success=True,
        )

    if before.interactive_state_hash != after.interactive_state_hash:
        return ActionOutcome(
            type=OutcomeType.DOM_CHANGED,
            details="Form control state changed",
            success=True,
        )

    return ActionOutcome(
        type=OutcomeType.NO_CHANGE,
        details="No observable change",
        success=False,
    )


@runtime_checkable
class BrowserDriver(Protocol):
    """
    Coroutine interface over a live, already-opened browser session.

    Implementations raise ``BrowserError`` subclasses on failure; the
    message text is what ``classify_error`` inspects.
    """

    async def open(self, url: str) -> None: ...

    async def click(self, selector: str) -> None: ...

    async def fill(self, selector: str, value: str) -> None: ...

    async def hover(self, selector: str) -> None: ...

    async def press(self, key: str, selector: str | None = None) -> None: ...

    async def select(self, selector: str, value: str) -> None: ...

    async def eval(self, script: str) -> str: ...

    async def snapshot(self) -> str: ...

    async def screenshot(self, path: str) -> None: ...

    async def get_current_url(self) -> str: ...

    async def get_links(self) -> list[str]: ...

    async def set_viewport_size(self, width: int, height: int) -> None: ...

    async def wait_for_stability(
        self, window_ms: int = 300, timeout_ms: int = 5000
    ) -> StabilityResult: ...

    async def take_page_snapshot(self) -> PageSnapshot: ...

    def detect_action_outcome(
        self, before: PageSnapshot, after: PageSnapshot
    ) -> ActionOutcome: ...

    async def close(self) -> None: ...
