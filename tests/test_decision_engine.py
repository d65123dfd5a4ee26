"""
Tests for heuristic-first decision making with LLM escalation.
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from tests.conftest import BASE_URL, make_edge
from ui_explorer.config import APILLMSettings, NavigatorSettings
from ui_explorer.core.exceptions import APIAuthenticationError, APIConnectionError, APILLMError
from ui_explorer.exploration.action_selector import ActionType
from ui_explorer.exploration.graph import GraphNode
from ui_explorer.llm.client import ChatClient
from ui_explorer.navigator.decision_engine import DecisionEngine, create_decision_engine
from ui_explorer.navigator.models import DecisionContext, DecisionSource
from ui_explorer.navigator.smart_interactions import build_interaction_request
from ui_explorer.utils.metrics import Metrics


def llm_reply(**payload) -> str:
    return json.dumps(payload)


@pytest.fixture
def chat_client() -> MagicMock:
    client = MagicMock()
    client.complete = AsyncMock()
    return client


@pytest.fixture
def api_settings() -> APILLMSettings:
    return APILLMSettings(retry_delay_seconds=0, max_retries=0, max_ai_retries=0)


@pytest.fixture
def engine(chat_client, api_settings) -> DecisionEngine:
    return DecisionEngine(chat_client, NavigatorSettings(), api_settings)


@pytest.fixture
def uncertain_context() -> DecisionContext:
    """Two look-alike elements the heuristic cannot tell apart."""
    edges = [
        make_edge("#alpha", "Alpha", tag_name="div"),
        make_edge("#beta", "Beta", tag_name="div"),
    ]
    node = GraphNode(id="node-1", url=BASE_URL, actions=edges)
    return DecisionContext(node=node, pending_edges=list(edges))


class TestHeuristicTier:
    @pytest.mark.asyncio
    async def test_no_pending_edges(self, engine):
        node = GraphNode(id="node-1", url=BASE_URL)

        result = await engine.select_action(DecisionContext(node=node, pending_edges=[]))

        assert result.branch_exhausted is True
        assert result.top_action is None
        assert result.exhausted_reason == "No pending actions"

    @pytest.mark.asyncio
    async def test_confident_heuristic_skips_llm(self, engine, chat_client):
        """A single option is decided without calling the model."""
        edge = make_edge("#only", "Alpha", tag_name="div")
        node = GraphNode(id="node-1", url=BASE_URL, actions=[edge])

        result = await engine.select_action(DecisionContext(node=node, pending_edges=[edge]))

        assert result.top_action is edge
        assert result.source == DecisionSource.HEURISTIC
        assert result.all_decisions[0].priority == 10
        chat_client.complete.assert_not_awaited()
        assert engine.get_stats()["heuristic_decisions"] == 1
        assert Metrics.get().get_counter("heuristic_decisions") == 1


class TestLLMEscalation:
    """Tests for the escalation path and its fallbacks."""

    @pytest.mark.asyncio
    async def test_llm_choice_applied(self, engine, chat_client, uncertain_context):
        """Unknown IDs are dropped and priorities clamped to 1-10."""
        beta = uncertain_context.pending_edges[1]
        chat_client.complete.return_value = llm_reply(
            decisions=[
                {"actionId": "e_bogus", "priority": 9, "rationale": "not a real id"},
                {"actionId": beta.id, "priority": 14, "rationale": "looks promising"},
            ]
        )

        result = await engine.select_action(uncertain_context)

        assert result.source == DecisionSource.LLM
        assert result.top_action is beta
        assert [d.action_id for d in result.all_decisions] == [beta.id]
        assert beta.llm_priority == 10.0
        assert beta.llm_rationale == "looks promising"
        assert engine.get_stats()["ai_escalations"] == 1

    @pytest.mark.asyncio
    async def test_compact_prompt_uses_short_timeout(
        self, engine, chat_client, uncertain_context, api_settings
    ):
        alpha = uncertain_context.pending_edges[0]
        chat_client.complete.return_value = llm_reply(decisions=[{"actionId": alpha.id}])

        await engine.select_action(uncertain_context)

        system, user = chat_client.complete.call_args.args
        assert "TOP CANDIDATES (2)" in user
        assert "multiple_viable_candidates" in user
        assert chat_client.complete.call_args.kwargs["timeout_s"] == api_settings.ai_timeout_seconds

    @pytest.mark.asyncio
    async def test_full_prompt_without_heuristic_tier(self, chat_client, api_settings, uncertain_context):
        engine = DecisionEngine(
            chat_client, NavigatorSettings(enable_heuristic_first=False), api_settings
        )
        alpha = uncertain_context.pending_edges[0]
        chat_client.complete.return_value = llm_reply(decisions=[{"actionId": alpha.id}])

        result = await engine.select_action(uncertain_context)

        user = chat_client.complete.call_args.args[1]
        assert "AVAILABLE UNEXPLORED ACTIONS (2)" in user
        assert chat_client.complete.call_args.kwargs["timeout_s"] == api_settings.timeout_seconds
        assert result.top_action is alpha

    @pytest.mark.asyncio
    async def test_interaction_hint_copied_to_edge(self, chat_client, api_settings):
        engine = DecisionEngine(
            chat_client, NavigatorSettings(heuristic_confidence_threshold=80), api_settings
        )
        search = make_edge("#q", tag_name="input", action_type=ActionType.FILL, type="search")
        other = make_edge("#alpha", "Alpha", tag_name="div")
        node = GraphNode(id="node-1", url=BASE_URL, actions=[search, other])
        chat_client.complete.return_value = llm_reply(
            decisions=[{"actionId": search.id, "priority": 8, "interactionHint": "red shoes"}]
        )

        result = await engine.select_action(
            DecisionContext(node=node, pending_edges=[other, search])
        )

        assert result.top_action is search
        assert result.interaction_hint == "red shoes"
        assert search.interaction_hint == "red shoes"

    @pytest.mark.asyncio
    async def test_branch_exhausted_by_llm(self, engine, chat_client, uncertain_context):
        chat_client.complete.return_value = llm_reply(
            decisions=[], branchExhausted=True, exhaustedReason="Only decorative elements"
        )

        result = await engine.select_action(uncertain_context)

        assert result.branch_exhausted is True
        assert result.top_action is None
        assert result.exhausted_reason == "Only decorative elements"
        assert result.source == DecisionSource.LLM

    @pytest.mark.asyncio
    async def test_malformed_response_falls_back(self, engine, chat_client, uncertain_context):
        """Unparsable output falls back to the best heuristic candidate."""
        chat_client.complete.return_value = "I think you should click Alpha."

        result = await engine.select_action(uncertain_context)

        assert result.source == DecisionSource.FALLBACK
        assert result.top_action is uncertain_context.pending_edges[0]
        stats = engine.get_stats()
        assert stats["failures"] == 1
        assert stats["fallbacks"] == 1
        assert Metrics.get().get_counter("llm_fallbacks") == 1

    @pytest.mark.asyncio
    async def test_no_usable_ids_falls_back(self, engine, chat_client, uncertain_context):
        chat_client.complete.return_value = llm_reply(decisions=[{"actionId": "e_unknown"}])

        result = await engine.select_action(uncertain_context)

        assert result.source == DecisionSource.FALLBACK
        assert result.top_action is not None

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self, engine, chat_client, uncertain_context):
        chat_client.complete.side_effect = asyncio.TimeoutError()

        result = await engine.select_action(uncertain_context)

        assert result.source == DecisionSource.FALLBACK
        assert engine.get_stats()["failures"] == 1

    @pytest.mark.asyncio
    async def test_llm_disabled(self, chat_client, api_settings, uncertain_context):
        engine = DecisionEngine(chat_client, NavigatorSettings(enabled=False), api_settings)

        result = await engine.select_action(uncertain_context)

        assert result.source == DecisionSource.FALLBACK
        assert result.top_action is not None
        chat_client.complete.assert_not_awaited()
        assert engine.get_stats()["ai_escalations"] == 0

    @pytest.mark.asyncio
    async def test_transient_error_retried(self, chat_client, uncertain_context):
        """Connection errors are retried up to the configured count."""
        engine = DecisionEngine(
            chat_client,
            NavigatorSettings(),
            APILLMSettings(retry_delay_seconds=0, max_ai_retries=1),
        )
        alpha = uncertain_context.pending_edges[0]
        chat_client.complete.side_effect = [
            APIConnectionError("API server error: 502"),
            llm_reply(decisions=[{"actionId": alpha.id, "priority": 7}]),
        ]

        result = await engine.select_action(uncertain_context)

        assert result.source == DecisionSource.LLM
        assert chat_client.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_auth_error_not_retried(self, chat_client, uncertain_context):
        engine = DecisionEngine(
            chat_client,
            NavigatorSettings(),
            APILLMSettings(retry_delay_seconds=0, max_ai_retries=3),
        )
        chat_client.complete.side_effect = APIAuthenticationError("API rejected credentials")

        result = await engine.select_action(uncertain_context)

        assert result.source == DecisionSource.FALLBACK
        assert chat_client.complete.await_count == 1

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, chat_client, uncertain_context):
        engine = DecisionEngine(
            chat_client,
            NavigatorSettings(),
            APILLMSettings(retry_delay_seconds=0, max_ai_retries=3),
        )
        chat_client.complete.side_effect = APILLMError("API request failed: 400")

        result = await engine.select_action(uncertain_context)

        assert result.source == DecisionSource.FALLBACK
        assert chat_client.complete.await_count == 1

    @pytest.mark.asyncio
    async def test_malformed_output_retried(self, chat_client, uncertain_context):
        engine = DecisionEngine(
            chat_client,
            NavigatorSettings(),
            APILLMSettings(retry_delay_seconds=0, max_ai_retries=1),
        )
        alpha = uncertain_context.pending_edges[0]
        chat_client.complete.side_effect = ["not json", llm_reply(decisions=[{"actionId": alpha.id}])]

        result = await engine.select_action(uncertain_context)

        assert result.source == DecisionSource.LLM
        assert result.top_action is alpha


class TestSmartInteractionGeneration:
    @pytest.fixture
    def search_request(self):
        edge = make_edge("#q", tag_name="input", action_type=ActionType.FILL, type="search")
        return build_interaction_request(edge, "product catalog", BASE_URL)

    @pytest.mark.asyncio
    async def test_llm_values_merged_with_defaults(self, engine, chat_client, search_request):
        """Missing fields in the response fall back to the default plan."""
        chat_client.complete.return_value = llm_reply(value="trail shoes", waitForMs=2000)

        plan = await engine.generate_smart_interaction(search_request)

        assert plan.value == "trail shoes"
        assert plan.wait_for_ms == 2000
        assert plan.press_enter_after is True

    @pytest.mark.asyncio
    async def test_disabled_uses_defaults(self, chat_client, api_settings, search_request):
        engine = DecisionEngine(
            chat_client, NavigatorSettings(smart_interactions=False), api_settings
        )

        plan = await engine.generate_smart_interaction(search_request)

        assert plan.value == "shoes"
        chat_client.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_uses_defaults(self, engine, chat_client, search_request):
        chat_client.complete.return_value = "not json"

        plan = await engine.generate_smart_interaction(search_request)

        assert plan.value == "shoes"
        assert plan.wait_for_ms == 1500


class TestEngineSetup:
    def test_no_key_means_no_llm(self):
        engine = create_decision_engine(None)

        assert engine.chat_client is None
        assert engine.llm_enabled is False

    def test_key_builds_client(self):
        engine = create_decision_engine("sk-test", api_settings=APILLMSettings(model_name="m"))

        assert isinstance(engine.chat_client, ChatClient)
        assert engine.chat_client.settings.model_name == "m"
        assert engine.llm_enabled is True

    @pytest.mark.asyncio
    async def test_reset_stats(self, engine, uncertain_context, chat_client):
        chat_client.complete.return_value = "garbage"
        await engine.select_action(uncertain_context)

        engine.reset_stats()

        assert engine.get_stats() == {
            "heuristic_decisions": 0,
            "ai_escalations": 0,
            "failures": 0,
            "fallbacks": 0,
            "total_decisions": 0,
        }
        assert "llm_enabled=True" in repr(engine)
