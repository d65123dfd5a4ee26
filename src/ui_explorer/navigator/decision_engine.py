"""
Decision engine: heuristic-first action selection with LLM escalation.

Decisions are made in two tiers:

1. Heuristic analysis (always, when enabled): deterministic rules with
   a confidence score; accepted when above the configured threshold.
2. LLM escalation: a compact prompt over the top candidates (or the
   full-context prompt when the heuristic tier is disabled).

Any LLM failure falls back to the best heuristic candidate, so a
decision is always produced.
"""

import asyncio
from typing import TypeVar

from pydantic import BaseModel

from ui_explorer.config.settings import (
    ActionSelectorSettings,
    APILLMSettings,
    NavigatorSettings,
)
from ui_explorer.core.exceptions import (
    APIAuthenticationError,
    LLMError,
    LLMResponseError,
    UIExplorerError,
    get_retry_delay,
    is_retryable,
)
from ui_explorer.exploration.graph import GraphEdge
from ui_explorer.llm.client import ChatClient
from ui_explorer.navigator.heuristic import HeuristicAnalyzer, split_edges
from ui_explorer.navigator.models import (
    ActionDecision,
    DecisionContext,
    DecisionResult,
    DecisionSource,
    HeuristicDecisionType,
    HeuristicResult,
    LLMDecisionResponse,
    SmartInteractionPlan,
    SmartInteractionRequest,
    SmartInteractionResponse,
    parse_llm_json,
)
from ui_explorer.navigator.prompts import (
    build_action_selection_messages,
    build_compact_action_selection_messages,
    build_smart_interaction_messages,
)
from ui_explorer.navigator.smart_interactions import get_default_interaction
from ui_explorer.utils.logging import get_logger
from ui_explorer.utils.metrics import increment_heuristic_decisions, increment_llm_fallbacks
from ui_explorer.utils.urls import normalize_url

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _empty_stats() -> dict[str, int]:
    return {
        "heuristic_decisions": 0,
        "ai_escalations": 0,
        "failures": 0,
        "fallbacks": 0,
        "total_decisions": 0,
    }


class DecisionEngine:
    """
    Chooses the next edge to explore from a graph node.

    Example:
        >>> engine = DecisionEngine(ChatClient.from_settings(settings.api_llm))
        >>> result = await engine.select_action(context)
        >>> if not result.branch_exhausted:
        ...     await execute(result.top_action)
    """

    def __init__(
        self,
        chat_client: ChatClient | None = None,
        settings: NavigatorSettings | None = None,
        api_settings: APILLMSettings | None = None,
        heuristic: HeuristicAnalyzer | None = None,
        selector_settings: ActionSelectorSettings | None = None,
    ) -> None:
        """
        Initialize decision engine.

        Args:
            chat_client: LLM client; None disables escalation
            settings: Heuristic and escalation configuration
            api_settings: Timeouts and retry policy for LLM calls
            heuristic: Analyzer override, mostly for tests
            selector_settings: Scoring weights for the heuristic tier
        """
        self.chat_client = chat_client
        self.settings = settings or NavigatorSettings()
        self.api_settings = api_settings or (
            chat_client.settings if chat_client is not None else APILLMSettings()
        )
        self.heuristic = heuristic or HeuristicAnalyzer(self.settings, selector_settings)
        self._stats = _empty_stats()

        logger.info(
            f"DecisionEngine initialized (llm_enabled={self.llm_enabled}, "
            f"heuristic_first={self.settings.enable_heuristic_first})"
        )

    @property
    def llm_enabled(self) -> bool:
        return self.settings.enabled and self.chat_client is not None

    async def select_action(self, context: DecisionContext) -> DecisionResult:
        """
        Pick the next edge among ``context.pending_edges``.

        Returns:
            DecisionResult whose ``top_action`` is one of the pending
            edges, or a branch-exhausted result when none remain
        """
        self._stats["total_decisions"] += 1

        if not context.pending_edges:
            return DecisionResult(
                top_action=None,
                branch_exhausted=True,
                exhausted_reason="No pending actions",
            )

        node = context.node
        visited = set(context.visited_urls)
        visited.add(normalize_url(node.url))
        _, explored = split_edges(node.actions)

        heuristic_result: HeuristicResult | None = None
        if self.settings.enable_heuristic_first:
            heuristic_result = self.heuristic.analyze(
                node, context.pending_edges, explored, visited
            )
            if self.heuristic.should_accept(heuristic_result):
                self._stats["heuristic_decisions"] += 1
                increment_heuristic_decisions()
                logger.debug(
                    f"Heuristic decision ({heuristic_result.confidence}): {heuristic_result.reason}"
                )
                return self._from_heuristic(heuristic_result, context.pending_edges)

        candidates = self.heuristic.get_top_candidates_for_ai(
            context.pending_edges,
            visited,
            node.url,
            n=self.settings.max_ai_candidates,
        )

        if not self.llm_enabled:
            return self._fallback(candidates, "LLM disabled")

        self._stats["ai_escalations"] += 1

        try:
            if heuristic_result is not None:
                messages = build_compact_action_selection_messages(
                    node, candidates, heuristic_result, context.coverage
                )
                response = await self._request(
                    messages,
                    LLMDecisionResponse,
                    timeout_s=self.api_settings.ai_timeout_seconds,
                    retries=self.api_settings.max_ai_retries,
                )
            else:
                messages = build_action_selection_messages(
                    node,
                    context.pending_edges,
                    explored,
                    context.coverage,
                    context.recent_history,
                )
                response = await self._request(
                    messages,
                    LLMDecisionResponse,
                    timeout_s=self.api_settings.timeout_seconds,
                    retries=self.api_settings.max_retries,
                )
            return self._from_llm(response, context.pending_edges)

        except (UIExplorerError, asyncio.TimeoutError) as e:
            self._stats["failures"] += 1
            logger.warning(f"LLM decision failed at {node.url}: {e or type(e).__name__}")
            return self._fallback(candidates, "LLM failure")

    def _from_heuristic(
        self,
        result: HeuristicResult,
        pending_edges: list[GraphEdge],
    ) -> DecisionResult:
        if result.decision == HeuristicDecisionType.BACKTRACK:
            return DecisionResult(
                top_action=None,
                branch_exhausted=True,
                exhausted_reason=result.reason,
            )

        edge = next(e for e in pending_edges if e.id == result.selected_edge_id)
        decision = ActionDecision(
            action_id=edge.id,
            priority=result.confidence / 10,
            rationale=f"Heuristic: {result.reason}",
        )
        return DecisionResult(
            top_action=edge,
            all_decisions=[decision],
            source=DecisionSource.HEURISTIC,
        )

    def _from_llm(
        self,
        response: LLMDecisionResponse,
        pending_edges: list[GraphEdge],
    ) -> DecisionResult:
        by_id = {e.id: e for e in pending_edges}

        valid: list[ActionDecision] = []
        for decision in response.decisions:
            if decision.action_id not in by_id:
                logger.debug(f"Dropping unknown action id from LLM: {decision.action_id}")
                continue
            decision.priority = min(10.0, max(1.0, decision.priority))
            valid.append(decision)
        valid.sort(key=lambda d: d.priority, reverse=True)

        if not valid:
            if response.branch_exhausted:
                return DecisionResult(
                    top_action=None,
                    branch_exhausted=True,
                    exhausted_reason=response.exhausted_reason or "LLM reported branch exhausted",
                    source=DecisionSource.LLM,
                )
            raise LLMResponseError("Response contained no usable decisions")

        top = valid[0]
        edge = by_id[top.action_id]
        edge.llm_priority = top.priority
        edge.llm_rationale = top.rationale
        if top.interaction_hint:
            edge.interaction_hint = top.interaction_hint

        return DecisionResult(
            top_action=edge,
            all_decisions=valid,
            interaction_hint=top.interaction_hint,
            source=DecisionSource.LLM,
        )

    def _fallback(self, candidates: list[GraphEdge], why: str) -> DecisionResult:
        self._stats["fallbacks"] += 1
        increment_llm_fallbacks()

        if not candidates:
            return DecisionResult(
                top_action=None,
                branch_exhausted=True,
                exhausted_reason=f"{why}, no candidates",
                source=DecisionSource.FALLBACK,
            )

        edge = candidates[0]
        return DecisionResult(
            top_action=edge,
            all_decisions=[
                ActionDecision(action_id=edge.id, priority=5, rationale=f"Fallback: {why}")
            ],
            source=DecisionSource.FALLBACK,
        )

    async def _request(
        self,
        messages: dict[str, str],
        model: type[ModelT],
        timeout_s: float,
        retries: int,
    ) -> ModelT:
        """Call the LLM with retries; the whole exchange is time-bounded."""
        delay = self.api_settings.retry_delay_seconds
        overall = timeout_s * (retries + 1) + sum(delay * 2**i for i in range(retries))
        return await asyncio.wait_for(
            self._request_with_retries(messages, model, timeout_s, retries),
            timeout=overall,
        )

    async def _request_with_retries(
        self,
        messages: dict[str, str],
        model: type[ModelT],
        timeout_s: float,
        retries: int,
    ) -> ModelT:
        last_error: LLMError | None = None

        for attempt in range(retries + 1):
            try:
                content = await self.chat_client.complete(
                    messages["system"], messages["user"], timeout_s=timeout_s
                )
                return parse_llm_json(content, model)
            except APIAuthenticationError:
                raise
            except LLMError as e:
                last_error = e
                # only transient API failures and malformed output are retried
                if attempt == retries or not (is_retryable(e) or isinstance(e, LLMResponseError)):
                    break
                wait = get_retry_delay(
                    e, default=self.api_settings.retry_delay_seconds * 2**attempt
                )
                logger.debug(f"LLM attempt {attempt + 1} failed ({e}), retrying in {wait:.1f}s")
                await asyncio.sleep(wait)

        raise last_error

    async def generate_smart_interaction(
        self,
        request: SmartInteractionRequest,
    ) -> SmartInteractionPlan:
        """
        Value and follow-up for a search or form field.

        Falls back to deterministic defaults when smart interactions are
        disabled or the LLM call fails.
        """
        default = get_default_interaction(request)
        if not (self.settings.smart_interactions and self.llm_enabled):
            return default

        try:
            response = await self._request(
                build_smart_interaction_messages(request),
                SmartInteractionResponse,
                timeout_s=self.api_settings.ai_timeout_seconds,
                retries=self.api_settings.max_ai_retries,
            )
        except (UIExplorerError, asyncio.TimeoutError) as e:
            logger.warning(f"Smart interaction generation failed, using defaults: {e}")
            return default

        return SmartInteractionPlan(
            value=response.value or default.value,
            wait_for_ms=response.wait_for_ms,
            expectation=response.expectation,
            press_enter_after=(
                response.press_enter_after
                if response.press_enter_after is not None
                else default.press_enter_after
            ),
        )

    def get_stats(self) -> dict[str, int]:
        return dict(self._stats)

    def reset_stats(self) -> None:
        self._stats = _empty_stats()

    def __repr__(self) -> str:
        return (
            f"DecisionEngine("
            f"llm_enabled={self.llm_enabled}, "
            f"decisions={self._stats['total_decisions']}, "
            f"escalations={self._stats['ai_escalations']})"
        )


def create_decision_engine(
    api_key: str | None,
    settings: NavigatorSettings | None = None,
    api_settings: APILLMSettings | None = None,
    chat_client: ChatClient | None = None,
) -> DecisionEngine:
    """Build an engine; without a key or client the LLM tier stays off."""
    api_settings = api_settings or APILLMSettings()
    if chat_client is None and api_key:
        chat_client = ChatClient(api_key, api_settings)
    return DecisionEngine(chat_client, settings, api_settings)
