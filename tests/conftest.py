"""
Shared pytest fixtures for UI Explorer tests.

Provides reusable fixtures for:
- An in-memory browser driver serving canned pages
- Candidate and edge builders
- Settings and per-run trackers
- Global state isolation
"""

import json
from dataclasses import dataclass, field
from typing import Any

import pytest

from ui_explorer.browser import scripts
from ui_explorer.browser.driver import (
    ActionOutcome,
    PageSnapshot,
    StabilityResult,
    detect_action_outcome,
)
from ui_explorer.config import Settings, reset_settings
from ui_explorer.exploration.action_selector import ActionType, ElementInfo
from ui_explorer.exploration.budget import BudgetTracker
from ui_explorer.exploration.coverage import CoverageTracker
from ui_explorer.exploration.graph import EdgeAction, GraphEdge, generate_edge_id
from ui_explorer.exploration.state import StateTracker
from ui_explorer.utils.hashing import short_hash
from ui_explorer.utils.logging import reset_logging
from ui_explorer.utils.metrics import Metrics

BASE_URL = "https://shop.test/"


@pytest.fixture(autouse=True)
def reset_global_state():
    """
    Reset process-wide state before and after each test.

    Metrics, cached settings and logging handlers are global.
    """
    Metrics.reset()
    reset_settings()
    yield
    Metrics.reset()
    reset_settings()
    reset_logging()


# =============================================================================
# Candidate builders
# =============================================================================


def link(selector: str, text: str, href: str) -> dict[str, Any]:
    """Raw candidate payload for an anchor, as the extraction script emits it."""
    return {
        "selector": selector,
        "actionType": "click",
        "element": {"tagName": "a", "text": text, "href": href},
    }


def button(selector: str, text: str, **element: Any) -> dict[str, Any]:
    return {
        "selector": selector,
        "actionType": "click",
        "element": {"tagName": "button", "text": text, **element},
    }


def text_input(selector: str, input_type: str = "text", **element: Any) -> dict[str, Any]:
    return {
        "selector": selector,
        "actionType": "fill",
        "element": {"tagName": "input", "type": input_type, **element},
    }


def make_edge(
    selector: str,
    text: str = "",
    tag_name: str = "a",
    href: str = "",
    action_type: ActionType = ActionType.CLICK,
    node_id: str = "node-1",
    **element: Any,
) -> GraphEdge:
    """Build a pending graph edge around a synthetic element."""
    return GraphEdge(
        id=generate_edge_id(node_id, selector, action_type),
        source_node_id=node_id,
        action=EdgeAction(
            type=action_type,
            selector=selector,
            element=ElementInfo(tag_name=tag_name, text=text, href=href, **element),
        ),
    )


# =============================================================================
# Fake browser
# =============================================================================


@dataclass
class FakePage:
    """A canned page: its candidates and what clicking them does."""

    url: str
    candidates: list[dict[str, Any]] = field(default_factory=list)
    navigations: dict[str, str] = field(default_factory=dict)
    submissions: dict[str, str] = field(default_factory=dict)
    dom: str = ""
    text: str = ""
    title: str = ""
    summary: str = ""
    forms: list[str] = field(default_factory=list)
    dialogs: list[str] = field(default_factory=list)


class FakeBrowser:
    """
    In-memory ``BrowserDriver``.

    Pages are keyed by exact URL; clicking a selector listed in the
    page's ``navigations`` moves to the target URL, and pressing Enter in
    a field listed in ``submissions`` does the same. Filled values are
    part of the page state until the next ``open``. Every driver call
    is appended to ``calls``.
    """

    def __init__(self, pages: list[FakePage], start_url: str = "about:blank") -> None:
        self.pages = {p.url: p for p in pages}
        self.current_url = start_url
        self.filled: dict[str, str] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.failures: dict[str, Exception] = {}
        self.open_failures: dict[int, Exception] = {}
        self.focused: str | None = None
        self.eval_failures: dict[str, Exception] = {}

    @property
    def page(self) -> FakePage:
        return self.pages.get(self.current_url) or FakePage(url=self.current_url)

    def fail_on(self, selector: str, error: Exception) -> None:
        """Make every action on ``selector`` raise ``error``."""
        self.failures[selector] = error

    def fail_open(self, call_number: int, error: Exception) -> None:
        """Make the ``call_number``-th call to ``open`` (1-based) raise ``error``."""
        self.open_failures[call_number] = error

    def _check(self, selector: str | None) -> None:
        if selector is not None and selector in self.failures:
            raise self.failures[selector]

    def _form_state(self) -> str:
        return json.dumps(self.filled, sort_keys=True)

    async def open(self, url: str) -> None:
        self.calls.append(("open", url))
        error = self.open_failures.get(len(self.calls_of("open")))
        if error is not None:
            raise error
        self.current_url = url
        self.filled = {}
        self.focused = None

    async def click(self, selector: str) -> None:
        self.calls.append(("click", selector))
        self._check(selector)
        target = self.page.navigations.get(selector)
        if target is not None:
            self.current_url = target
            self.filled = {}

    async def fill(self, selector: str, value: str) -> None:
        self.calls.append(("fill", selector, value))
        self._check(selector)
        self.filled[selector] = value
        self.focused = selector

    async def hover(self, selector: str) -> None:
        self.calls.append(("hover", selector))
        self._check(selector)

    async def press(self, key: str, selector: str | None = None) -> None:
        self.calls.append(("press", key, selector))
        self._check(selector)
        target = self.page.submissions.get(selector or self.focused or "")
        if key == "Enter" and target is not None:
            self.current_url = target
            self.filled = {}

    async def select(self, selector: str, value: str) -> None:
        self.calls.append(("select", selector, value))
        self._check(selector)

    async def eval(self, script: str) -> str:
        if script in self.eval_failures:
            raise self.eval_failures[script]

        page = self.page
        if script == scripts.DOM_STRUCTURE_SCRIPT:
            return page.dom or f"dom:{page.url}"
        if script == scripts.VISIBLE_TEXT_SCRIPT:
            return page.text
        if script == scripts.FORM_STATE_SCRIPT:
            return self._form_state()
        if script == scripts.DIALOG_STATE_SCRIPT:
            return json.dumps(page.dialogs)
        if script == scripts.EXTRACT_CANDIDATES_SCRIPT:
            return json.dumps(page.candidates)
        if script == scripts.DETECT_DIALOGS_SCRIPT:
            return json.dumps(page.dialogs)
        if script == scripts.DETECT_FORMS_SCRIPT:
            return json.dumps(page.forms)
        if script == scripts.DOM_SUMMARY_SCRIPT:
            return page.summary
        if script == scripts.GET_TITLE_SCRIPT:
            return page.title
        if script == scripts.DETECT_SEARCH_SCRIPT:
            return "true" if any(
                c["element"].get("type") == "search" for c in page.candidates
            ) else "false"
        if script == scripts.HAS_VISIBLE_FORMS_SCRIPT:
            return "true" if page.forms else "false"
        if script == scripts.COUNT_INTERACTIVE_SCRIPT:
            return str(len(page.candidates))
        return ""

    async def snapshot(self) -> str:
        return f"- document: {self.page.title}"

    async def screenshot(self, path: str) -> None:
        self.calls.append(("screenshot", path))

    async def get_current_url(self) -> str:
        return self.current_url

    async def get_links(self) -> list[str]:
        return [c["element"]["href"] for c in self.page.candidates if c["element"].get("href")]

    async def set_viewport_size(self, width: int, height: int) -> None:
        self.calls.append(("viewport", width, height))

    async def wait_for_stability(
        self, window_ms: int = 300, timeout_ms: int = 5000
    ) -> StabilityResult:
        return StabilityResult(is_stable=True, waited_ms=0.0, reason="dom_quiet")

    async def take_page_snapshot(self) -> PageSnapshot:
        page = self.page
        return PageSnapshot(
            url=self.current_url,
            dom_hash=short_hash((page.dom or page.url) + self._form_state()),
            visible_text_hash=short_hash(page.text),
            interactive_state_hash=short_hash(self._form_state()),
            element_count=len(page.candidates),
            dialog_count=len(page.dialogs),
        )

    def detect_action_outcome(self, before: PageSnapshot, after: PageSnapshot) -> ActionOutcome:
        return detect_action_outcome(before, after)

    async def close(self) -> None:
        self.calls.append(("close",))

    def calls_of(self, name: str) -> list[tuple[Any, ...]]:
        return [c for c in self.calls if c[0] == name]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def two_link_site() -> list[FakePage]:
    """Home page with two navigation links to leaf pages."""
    return [
        FakePage(
            url=BASE_URL,
            title="Shop",
            candidates=[
                link("#pricing", "Pricing", "/pricing"),
                link("#features", "Features", "/features"),
            ],
            navigations={
                "#pricing": "https://shop.test/pricing",
                "#features": "https://shop.test/features",
            },
        ),
        FakePage(url="https://shop.test/pricing", title="Pricing"),
        FakePage(url="https://shop.test/features", title="Features"),
    ]


@pytest.fixture
def fake_browser(two_link_site: list[FakePage]) -> FakeBrowser:
    return FakeBrowser(two_link_site)


@pytest.fixture
def test_settings() -> Settings:
    """Settings with short waits suitable for unit tests."""
    return Settings(
        explorer={"stability_wait_ms": 0, "stability_timeout_ms": 100},
        navigator={"enabled": False},
    )


@pytest.fixture
def coverage() -> CoverageTracker:
    return CoverageTracker()


@pytest.fixture
def state_tracker() -> StateTracker:
    return StateTracker()


@pytest.fixture
def budget() -> BudgetTracker:
    return BudgetTracker()
