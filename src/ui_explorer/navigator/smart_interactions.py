"""
Smart interactions: meaningful values for search boxes and form fields.

A fill action on a search box, login field, filter or generic form
input gets a value from the decision engine when one is available and
from deterministic defaults otherwise. An ``interaction_hint`` already
attached to the edge always wins and skips the engine. The plan that
was applied is returned so a path can be replayed exactly.
"""

import asyncio
from typing import TYPE_CHECKING

from ui_explorer.browser.driver import BrowserDriver
from ui_explorer.core.error_classifier import is_blocking_error
from ui_explorer.exploration.action_selector import ActionType, ElementInfo
from ui_explorer.exploration.graph import GraphEdge
from ui_explorer.navigator.models import (
    InteractionType,
    SmartInteractionPlan,
    SmartInteractionRequest,
    SmartInteractionResult,
)
from ui_explorer.utils.logging import get_logger

if TYPE_CHECKING:
    from ui_explorer.navigator.decision_engine import DecisionEngine

logger = get_logger(__name__)

SEARCH_KEYWORDS = ["search", "find", "query", "look for"]
FILTER_KEYWORDS = ["filter", "sort", "select", "choose"]
LOGIN_KEYWORDS = ["login", "signin", "sign in"]


# ============================================================================
# Detection
# ============================================================================


def detect_interaction_type(edge: GraphEdge) -> InteractionType | None:
    """
    Classify the field behind ``edge``.

    Checks run search, filter, login, then generic form; non-fill
    actions that match nothing return None.
    """
    element = edge.action.element
    combined = " ".join(
        [
            edge.action.selector.lower(),
            element.placeholder.lower(),
            element.aria_label.lower(),
            element.text.lower(),
        ]
    )

    if (
        element.type == "search"
        or element.role == "searchbox"
        or any(kw in combined for kw in SEARCH_KEYWORDS)
    ):
        return InteractionType.SEARCH

    if (
        element.tag_name.lower() == "select"
        or element.role in ("combobox", "listbox")
        or any(kw in combined for kw in FILTER_KEYWORDS)
    ):
        return InteractionType.FILTER

    if element.type == "password" or any(kw in combined for kw in LOGIN_KEYWORDS):
        return InteractionType.LOGIN

    if edge.action.type == ActionType.FILL:
        return InteractionType.FORM

    return None


def needs_smart_interaction(edge: GraphEdge) -> bool:
    return edge.action.type == ActionType.FILL and detect_interaction_type(edge) is not None


def build_interaction_request(
    edge: GraphEdge,
    dom_summary: str,
    url: str,
) -> SmartInteractionRequest | None:
    interaction_type = detect_interaction_type(edge)
    if interaction_type is None:
        return None
    element = edge.action.element
    return SmartInteractionRequest(
        type=interaction_type,
        url=url,
        selector=edge.action.selector,
        dom_summary=dom_summary,
        element_type=element.type or element.tag_name,
        placeholder=element.placeholder,
        aria_label=element.aria_label,
    )


# ============================================================================
# Default values
# ============================================================================


def generate_search_query(dom_summary: str) -> str:
    """Pick a query that fits the apparent site content."""
    summary = dom_summary.lower()
    if "product" in summary or "shop" in summary:
        return "shoes"
    if "document" in summary or "docs" in summary:
        return "getting started"
    if "article" in summary or "blog" in summary:
        return "latest news"
    if "user" in summary or "people" in summary:
        return "john"
    if "video" in summary or "movie" in summary:
        return "popular"
    return "test search query"


def generate_login_value(hint: str) -> str:
    if "email" in hint:
        return "test@example.com"
    if "password" in hint:
        return "TestPassword123!"
    if "username" in hint or "user" in hint:
        return "testuser"
    return "test@example.com"


def generate_form_value(hint: str, element_type: str) -> str:
    """Fake but plausible value for a form field."""
    if "email" in hint or element_type == "email":
        return "test@example.com"
    if "password" in hint or element_type == "password":
        return "TestPassword123!"
    if "phone" in hint or "tel" in hint or element_type == "tel":
        return "555-123-4567"
    if "first name" in hint:
        return "John"
    if "last name" in hint:
        return "Doe"
    if "name" in hint:
        return "John Doe"
    if "address" in hint or "street" in hint:
        return "123 Test Street"
    if "city" in hint:
        return "Test City"
    if "zip" in hint or "postal" in hint:
        return "12345"
    if "country" in hint:
        return "United States"
    if "state" in hint:
        return "California"
    if "url" in hint or "website" in hint or element_type == "url":
        return "https://example.com"
    if "number" in hint or "quantity" in hint or element_type == "number":
        return "42"
    if "date" in hint or element_type == "date":
        return "2024-01-15"
    return "Test Value"


def get_default_interaction(request: SmartInteractionRequest) -> SmartInteractionPlan:
    """Deterministic plan used when no LLM value is available."""
    hint = f"{request.placeholder} {request.aria_label}".lower()

    if request.type == InteractionType.SEARCH:
        return SmartInteractionPlan(
            value=generate_search_query(request.dom_summary),
            wait_for_ms=1500,
            expectation="Search results should appear",
            press_enter_after=True,
        )
    if request.type == InteractionType.LOGIN:
        return SmartInteractionPlan(
            value=generate_login_value(hint),
            wait_for_ms=500,
            expectation="Form should accept input",
            press_enter_after=False,
        )
    if request.type == InteractionType.FILTER:
        return SmartInteractionPlan(
            value="",
            wait_for_ms=1000,
            expectation="Filter should be applied",
            press_enter_after=False,
        )
    return SmartInteractionPlan(
        value=generate_form_value(hint, request.element_type),
        wait_for_ms=300,
        expectation="Form should accept input",
        press_enter_after=False,
    )


def get_test_value(element: ElementInfo) -> str:
    """Value for a plain fill action, keyed on input type and label text."""
    kind = element.type.lower()
    name = f"{element.text} {element.placeholder} {element.aria_label}".lower()

    if kind == "email" or "email" in name:
        return "test@example.com"
    if kind == "password" or "password" in name:
        return "TestPassword123!"
    if kind == "tel" or "phone" in name or "tel" in name:
        return "555-123-4567"
    if kind == "url" or "url" in name or "website" in name:
        return "https://example.com"
    if kind == "number":
        return "42"
    if kind == "search" or "search" in name or "query" in name:
        return "test search query"
    if "name" in name:
        if "first" in name:
            return "John"
        if "last" in name:
            return "Doe"
        return "John Doe"
    if "address" in name or "street" in name:
        return "123 Test Street"
    if "city" in name:
        return "Test City"
    if "zip" in name or "postal" in name:
        return "12345"
    return "Test Value"


# ============================================================================
# Execution
# ============================================================================


async def execute_smart_interaction(
    driver: BrowserDriver,
    edge: GraphEdge,
    dom_summary: str,
    url: str,
    engine: "DecisionEngine | None" = None,
    stability_window_ms: int = 300,
    stability_timeout_ms: int = 5000,
) -> SmartInteractionResult:
    """
    Fill the field behind ``edge`` with a synthesized value.

    Skippable driver errors are captured in the result; blocking ones
    (a closed or crashed browser) propagate.
    """
    request = build_interaction_request(edge, dom_summary, url)
    if request is None:
        return SmartInteractionResult(
            success=False,
            value="",
            error="Could not determine interaction type",
        )

    if edge.interaction_hint:
        plan = get_default_interaction(request)
        plan.value = edge.interaction_hint
    elif engine is not None:
        plan = await engine.generate_smart_interaction(request)
    else:
        plan = get_default_interaction(request)

    try:
        before = await driver.take_page_snapshot()
        await apply_interaction_plan(
            driver, edge.action.selector, plan, stability_window_ms, stability_timeout_ms
        )
        after = await driver.take_page_snapshot()
    except Exception as e:
        if is_blocking_error(e):
            raise
        logger.warning(f"Smart {request.type.value} interaction failed on {edge.action.selector}: {e}")
        return SmartInteractionResult(success=False, value=plan.value, error=str(e), plan=plan)

    return SmartInteractionResult(
        success=True,
        value=plan.value,
        state_changed=before.dom_hash != after.dom_hash or before.url != after.url,
        plan=plan,
    )


async def apply_interaction_plan(
    driver: BrowserDriver,
    selector: str,
    plan: SmartInteractionPlan,
    stability_window_ms: int = 300,
    stability_timeout_ms: int = 5000,
) -> None:
    """Type ``plan.value`` into ``selector``, submit if planned, then let the page settle."""
    await driver.fill(selector, plan.value)
    if plan.press_enter_after:
        await driver.press("Enter")

    await asyncio.sleep(plan.wait_for_ms / 1000)
    await driver.wait_for_stability(stability_window_ms, stability_timeout_ms)
