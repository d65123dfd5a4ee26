"""
Tests for search and form value synthesis.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tests.conftest import BASE_URL, FakeBrowser, FakePage, make_edge, text_input
from ui_explorer.core.exceptions import BrowserCrashedError, ElementNotFoundError
from ui_explorer.exploration.action_selector import ActionType, ElementInfo
from ui_explorer.navigator.models import InteractionType, SmartInteractionPlan
from ui_explorer.navigator.smart_interactions import (
    build_interaction_request,
    detect_interaction_type,
    execute_smart_interaction,
    generate_search_query,
    get_default_interaction,
    get_test_value,
    needs_smart_interaction,
)


def fill_edge(selector: str = "#q", input_type: str = "text", **element):
    return make_edge(
        selector,
        tag_name="input",
        action_type=ActionType.FILL,
        type=input_type,
        **element,
    )


@pytest.fixture
def search_page() -> FakeBrowser:
    page = FakePage(
        url=BASE_URL,
        summary="product catalog",
        candidates=[text_input("#q", "search", placeholder="Search products")],
    )
    return FakeBrowser([page], start_url=BASE_URL)


@pytest.fixture
def no_sleep():
    with patch(
        "ui_explorer.navigator.smart_interactions.asyncio.sleep", new=AsyncMock()
    ) as sleep:
        yield sleep


class TestDetection:
    """Field classification order: search, filter, login, form."""

    @pytest.mark.parametrize(
        "edge,expected",
        [
            (fill_edge(input_type="search"), InteractionType.SEARCH),
            (fill_edge(role="searchbox"), InteractionType.SEARCH),
            (fill_edge(placeholder="Find a store"), InteractionType.SEARCH),
            (make_edge("#sort", tag_name="select", action_type=ActionType.SELECT), InteractionType.FILTER),
            (fill_edge("#pw", input_type="password"), InteractionType.LOGIN),
            (fill_edge("#user", aria_label="Sign in name"), InteractionType.LOGIN),
            (fill_edge("#email", input_type="email"), InteractionType.FORM),
            (make_edge("#go", "Go", tag_name="button"), None),
        ],
    )
    def test_detect(self, edge, expected):
        assert detect_interaction_type(edge) == expected

    def test_only_fill_actions_need_smart_values(self):
        assert needs_smart_interaction(fill_edge(input_type="search"))
        assert not needs_smart_interaction(
            make_edge("#sort", tag_name="select", action_type=ActionType.SELECT)
        )

    def test_build_request(self):
        """Element type falls back to the tag name."""
        edge = fill_edge("#q", input_type="", placeholder="Search")

        request = build_interaction_request(edge, "docs site", BASE_URL)

        assert request.type == InteractionType.SEARCH
        assert request.element_type == "input"
        assert request.placeholder == "Search"
        assert request.selector == "#q"

    def test_build_request_for_plain_click(self):
        assert build_interaction_request(make_edge("#go", "Go", "button"), "", BASE_URL) is None


class TestDefaults:
    """Deterministic values used without an LLM."""

    @pytest.mark.parametrize(
        "summary,query",
        [
            ("Product catalog", "shoes"),
            ("Documentation index", "getting started"),
            ("Company blog", "latest news"),
            ("People directory", "john"),
            ("Movie listings", "popular"),
            ("Welcome", "test search query"),
        ],
    )
    def test_search_query(self, summary, query):
        assert generate_search_query(summary) == query

    def test_search_plan_presses_enter(self):
        request = build_interaction_request(fill_edge(input_type="search"), "shop", BASE_URL)

        plan = get_default_interaction(request)

        assert plan.value == "shoes"
        assert plan.press_enter_after is True
        assert plan.wait_for_ms == 1500

    def test_login_plan(self):
        request = build_interaction_request(
            fill_edge("#pw", input_type="password", placeholder="Password"), "", BASE_URL
        )

        plan = get_default_interaction(request)

        assert plan.value == "TestPassword123!"
        assert plan.press_enter_after is False

    def test_form_plan(self):
        request = build_interaction_request(
            fill_edge("#phone", input_type="tel", placeholder="Phone"), "", BASE_URL
        )

        assert get_default_interaction(request).value == "555-123-4567"

    def test_filter_plan_has_empty_value(self):
        request = build_interaction_request(
            make_edge("#sort", tag_name="select", action_type=ActionType.SELECT), "", BASE_URL
        )

        plan = get_default_interaction(request)

        assert plan.value == ""
        assert plan.wait_for_ms == 1000

    @pytest.mark.parametrize(
        "element,value",
        [
            (ElementInfo(tag_name="input", type="email"), "test@example.com"),
            (ElementInfo(tag_name="input", type="number"), "42"),
            (ElementInfo(tag_name="input", placeholder="First name"), "John"),
            (ElementInfo(tag_name="input", placeholder="Last name"), "Doe"),
            (ElementInfo(tag_name="input", aria_label="Website"), "https://example.com"),
            (ElementInfo(tag_name="input", placeholder="Postal code"), "12345"),
            (ElementInfo(tag_name="textarea"), "Test Value"),
        ],
    )
    def test_plain_fill_values(self, element, value):
        assert get_test_value(element) == value


class TestExecution:
    """Tests for executing a smart interaction against a driver."""

    @pytest.mark.asyncio
    async def test_search_fills_and_submits(self, search_page, no_sleep):
        edge = fill_edge("#q", input_type="search", placeholder="Search products")

        result = await execute_smart_interaction(search_page, edge, "product catalog", BASE_URL)

        assert result.success is True
        assert result.value == "shoes"
        assert result.state_changed is True
        assert ("fill", "#q", "shoes") in search_page.calls
        assert ("press", "Enter", None) in search_page.calls
        no_sleep.assert_awaited_once_with(1.5)

    @pytest.mark.asyncio
    async def test_interaction_hint_wins(self, search_page, no_sleep):
        """A hint on the edge is used as is; the engine is not asked."""
        engine = MagicMock()
        engine.generate_smart_interaction = AsyncMock()
        edge = fill_edge("#q", input_type="search")
        edge.interaction_hint = "running shoes"

        result = await execute_smart_interaction(
            search_page, edge, "product catalog", BASE_URL, engine=engine
        )

        assert result.value == "running shoes"
        assert result.plan.press_enter_after is True
        assert ("fill", "#q", "running shoes") in search_page.calls
        engine.generate_smart_interaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_engine_supplies_plan(self, search_page, no_sleep):
        engine = MagicMock()
        engine.generate_smart_interaction = AsyncMock(
            return_value=SmartInteractionPlan(
                value="boots", wait_for_ms=0, expectation="", press_enter_after=False
            )
        )
        edge = fill_edge("#q", input_type="search")

        result = await execute_smart_interaction(
            search_page, edge, "product catalog", BASE_URL, engine=engine
        )

        assert result.value == "boots"
        assert search_page.calls_of("press") == []
        engine.generate_smart_interaction.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_skippable_failure_is_reported(self, search_page, no_sleep):
        search_page.fail_on("#q", ElementNotFoundError("No element matches #q", selector="#q"))
        edge = fill_edge("#q", input_type="search")

        result = await execute_smart_interaction(search_page, edge, "shop", BASE_URL)

        assert result.success is False
        assert "No element matches" in result.error

    @pytest.mark.asyncio
    async def test_blocking_failure_propagates(self, search_page, no_sleep):
        search_page.fail_on("#q", BrowserCrashedError("Target closed"))
        edge = fill_edge("#q", input_type="search")

        with pytest.raises(BrowserCrashedError):
            await execute_smart_interaction(search_page, edge, "shop", BASE_URL)

    @pytest.mark.asyncio
    async def test_unclassifiable_edge(self, search_page):
        result = await execute_smart_interaction(
            search_page, make_edge("#go", "Go", tag_name="button"), "", BASE_URL
        )

        assert result.success is False
        assert result.error == "Could not determine interaction type"
        assert search_page.calls == []
