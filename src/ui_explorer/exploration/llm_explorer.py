"""
LLM-guided graph explorer.

Models the application as a graph of UI states and walks it depth
first with an explicit stack. At every node the decision engine
(heuristic first, LLM when uncertain) picks the next edge or declares
the branch exhausted. The browser has no undo, so every stack frame
carries a ``return_action`` that replays the path from the start page.
A frame whose path can no longer be replayed is abandoned and the
explorer falls back to the frame below it.
"""

import time
import uuid
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from ui_explorer.browser import scripts
from ui_explorer.browser.driver import BrowserDriver
from ui_explorer.config.settings import ExplorerSettings, NavigatorSettings, Settings
from ui_explorer.core.error_classifier import is_blocking_error
from ui_explorer.exploration.action_selector import ActionType, extract_action_candidates
from ui_explorer.exploration.budget import BudgetTracker
from ui_explorer.exploration.coverage import (
    ActionCoverageOutcome,
    CoverageTracker,
    collect_page_coverage,
)
from ui_explorer.exploration.explorer import (
    ExplorationCallbacks,
    emit_log,
    invoke_callback,
)
from ui_explorer.exploration.graph import (
    EdgeStatus,
    ExplorationGraph,
    GraphEdge,
    GraphNode,
    NodeMetadata,
    StackFrame,
    candidate_to_edge,
)
from ui_explorer.exploration.state import (
    StateFingerprint,
    StateTracker,
    capture_state_fingerprint,
)
from ui_explorer.llm.client import ChatClient
from ui_explorer.navigator.decision_engine import DecisionEngine, create_decision_engine
from ui_explorer.navigator.models import (
    CoverageContext,
    DecisionContext,
    HistoryEntry,
    InteractionType,
    SmartInteractionPlan,
)
from ui_explorer.navigator.smart_interactions import (
    apply_interaction_plan,
    detect_interaction_type,
    execute_smart_interaction,
    get_test_value,
    needs_smart_interaction,
)
from ui_explorer.utils.logging import get_logger_with_context
from ui_explorer.utils.metrics import increment_exploration_steps
from ui_explorer.utils.urls import get_hostname, is_same_domain, resolve_url

ReturnAction = Callable[[], Awaitable[None]]


@dataclass
class EdgeExecution:
    """What happened when one edge was taken."""

    success: bool
    state_changed: bool = False
    had_gain: bool = False
    error: str | None = None


@dataclass
class LLMExplorationResult:
    graph: ExplorationGraph
    total_steps: int
    termination_reason: str
    duration_ms: float
    unique_urls: int
    unique_states: int
    history: list[HistoryEntry] = field(default_factory=list)


class LLMExplorer:
    """
    Depth-first explorer over an ``ExplorationGraph``.

    Termination reasons: ``manual_stop``, the budget's exhaustion
    reason (for example ``max_steps_reached``), ``exploration_complete``
    when the stack empties, or ``error``.

    Example:
        >>> explorer = create_llm_explorer(driver, coverage, state, budget, api_key)
        >>> result = await explorer.explore("https://example.com")
        >>> print(result.graph.get_stats())
    """

    def __init__(
        self,
        browser: BrowserDriver,
        coverage: CoverageTracker,
        state: StateTracker,
        budget: BudgetTracker,
        decision_engine: DecisionEngine,
        settings: ExplorerSettings | None = None,
        navigator_settings: NavigatorSettings | None = None,
    ) -> None:
        self.browser = browser
        self.coverage = coverage
        self.state = state
        self.budget = budget
        self.decision_engine = decision_engine
        self.settings = settings or ExplorerSettings()
        self.navigator_settings = navigator_settings or NavigatorSettings()

        self.graph = ExplorationGraph()
        self.run_id = uuid.uuid4().hex[:8]
        self._log = get_logger_with_context(__name__, run=self.run_id)

        self._stopped = False
        self._stack: list[StackFrame] = []
        self._history: list[HistoryEntry] = []
        self._applied_plans: dict[str, SmartInteractionPlan] = {}
        self._total_steps = 0
        self._search_count = 0
        self._base_domain: str | None = self.settings.base_domain

    def _emit(self, callbacks: ExplorationCallbacks | None, message: str, level: str = "info") -> None:
        emit_log(callbacks, message, level, log=self._log)

    # ------------------------------------------------------------------
    # Page capture
    # ------------------------------------------------------------------

    async def _eval(self, script: str, default: str) -> str:
        try:
            return await self.browser.eval(script)
        except Exception as e:
            if is_blocking_error(e):
                raise
            return default

    def _is_internal(self, url: str) -> bool:
        if not self._base_domain:
            return True
        return is_same_domain(url, self._base_domain)

    async def capture_node(
        self,
        url: str,
        depth: int = 0,
        is_main_entry: bool = False,
    ) -> tuple[GraphNode, StateFingerprint]:
        """
        Build a graph node for the current page.

        Disabled elements and links leaving the base domain do not
        become edges.
        """
        fingerprint = await capture_state_fingerprint(self.browser, url)

        dom_summary = await self._eval(scripts.DOM_SUMMARY_SCRIPT, "")
        title = await self._eval(scripts.GET_TITLE_SCRIPT, "")
        has_search = await self._eval(scripts.DETECT_SEARCH_SCRIPT, "false")
        has_forms = await self._eval(scripts.HAS_VISIBLE_FORMS_SCRIPT, "false")
        interactive = await self._eval(scripts.COUNT_INTERACTIVE_SCRIPT, "0")

        try:
            interactive_count = int(interactive)
        except ValueError:
            interactive_count = 0

        node = GraphNode(
            id=fingerprint.combined_hash,
            url=url,
            title=title,
            dom_summary=dom_summary,
            depth=depth,
            metadata=NodeMetadata(
                has_search_box=has_search.strip().lower() == "true",
                has_forms=has_forms.strip().lower() == "true",
                is_main_entry_point=is_main_entry,
                interactive_element_count=interactive_count,
            ),
        )

        for candidate in await extract_action_candidates(self.browser):
            if candidate.element.is_disabled:
                continue
            href = candidate.element.href
            if href:
                target = resolve_url(href, url)
                if target is not None and not self._is_internal(target):
                    continue
            node.actions.append(candidate_to_edge(candidate, node.id))

        return node, fingerprint

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def _perform(self, edge: GraphEdge) -> None:
        """Run the raw driver action for ``edge`` and wait for the page."""
        action = edge.action
        action_type = ActionType(action.type)

        if action_type == ActionType.FILL:
            value = edge.interaction_hint or action.value or get_test_value(action.element)
            action.value = value
            await self.browser.fill(action.selector, value)
        elif action_type == ActionType.HOVER:
            await self.browser.hover(action.selector)
        elif action_type == ActionType.PRESS:
            await self.browser.press("Enter", action.selector)
        else:
            await self.browser.click(action.selector)

        await self.browser.wait_for_stability(
            self.settings.stability_wait_ms,
            self.settings.stability_timeout_ms,
        )

    async def _execute_edge(
        self,
        edge: GraphEdge,
        node: GraphNode,
        callbacks: ExplorationCallbacks | None,
    ) -> EdgeExecution:
        """
        Take ``edge`` and measure its effect.

        Skippable failures come back as ``success=False``; blocking
        driver errors propagate.
        """
        before = await self.browser.take_page_snapshot()
        url = await self.browser.get_current_url()
        coverage_before = self.coverage.take_snapshot(self._total_steps)

        try:
            if needs_smart_interaction(edge):
                result = await execute_smart_interaction(
                    self.browser,
                    edge,
                    node.dom_summary,
                    url,
                    self.decision_engine,
                    self.settings.stability_wait_ms,
                    self.settings.stability_timeout_ms,
                )
                edge.action.value = result.value
                if result.plan is not None:
                    self._applied_plans[edge.id] = result.plan
                if not result.success:
                    self._emit(callbacks, f"Smart interaction failed: {result.error}", "warn")
                    return EdgeExecution(success=False, error=result.error)
                if detect_interaction_type(edge) == InteractionType.SEARCH:
                    self._search_count += 1
            else:
                await self._perform(edge)
        except Exception as e:
            if is_blocking_error(e):
                raise
            self._emit(callbacks, f"Action failed: {e}", "warn")
            self.coverage.record_url_with_error(url)
            return EdgeExecution(success=False, error=str(e))

        after = await self.browser.take_page_snapshot()
        new_url = await self.browser.get_current_url()

        self.coverage.record_element_interaction(edge.action.selector)
        await collect_page_coverage(self.browser, self.coverage, new_url)
        gain = self.coverage.calculate_gain(coverage_before)
        self.coverage.record_action_outcome(
            ActionCoverageOutcome(
                action_type=ActionType(edge.action.type).value,
                gain=gain,
                step_index=self._total_steps,
                selector=edge.action.selector,
                value=edge.action.value,
            )
        )

        return EdgeExecution(
            success=True,
            state_changed=before.dom_hash != after.dom_hash or before.url != after.url,
            had_gain=gain.has_gain,
        )

    async def _replay(self, edge: GraphEdge) -> None:
        """Repeat ``edge`` exactly as it was first taken."""
        plan = self._applied_plans.get(edge.id)
        if plan is None:
            await self._perform(edge)
            return
        await apply_interaction_plan(
            self.browser,
            edge.action.selector,
            plan,
            self.settings.stability_wait_ms,
            self.settings.stability_timeout_ms,
        )

    def _compose_return(self, parent_return: ReturnAction, edge: GraphEdge) -> ReturnAction:
        """Return recipe for a child frame: back to the parent, then replay ``edge``."""

        async def return_action() -> None:
            await parent_return()
            await self._replay(edge)

        return return_action

    def _abandon(self, frame: StackFrame) -> None:
        """Pop ``frame`` and skip whatever it still had pending."""
        for edge in frame.pending_edges:
            if edge.status == EdgeStatus.PENDING:
                self.graph.update_edge(frame.node_id, edge.id, status=EdgeStatus.SKIPPED)
        self._stack.pop()

    async def _restore(self, callbacks: ExplorationCallbacks | None) -> StackFrame | None:
        """
        Bring the browser back to the state of the top frame.

        Frames that cannot be reached after a skippable failure are
        abandoned until one can; None when the stack runs out.
        """
        while self._stack:
            frame = self._stack[-1]
            try:
                await frame.return_action()
                return frame
            except Exception as e:
                if is_blocking_error(e):
                    raise
                self._emit(
                    callbacks,
                    f"Could not return to depth {frame.depth}, abandoning it: {e}",
                    "warn",
                )
                self._abandon(frame)
        return None

    def _coverage_context(self, depth: int) -> CoverageContext:
        stats = self.coverage.get_stats()
        return CoverageContext(
            url_count=stats.total_urls,
            form_count=stats.total_forms,
            search_count=self._search_count,
            total_steps=self._total_steps,
            current_depth=depth,
        )

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    async def explore(
        self,
        start_url: str,
        callbacks: ExplorationCallbacks | None = None,
    ) -> LLMExplorationResult:
        """
        Explore from ``start_url`` until done, stopped or out of budget.

        Never raises; failures end the run with ``error``.
        """
        started = time.monotonic()
        reason = "exploration_complete"

        invoke_callback(callbacks, "on_start")

        try:
            await self.browser.open(start_url)

            if self._base_domain is None:
                self._base_domain = get_hostname(start_url)
            self._emit(callbacks, f"Base domain set to: {self._base_domain}")

            root, fingerprint = await self.capture_node(start_url, depth=0, is_main_entry=True)
            self.graph.add_node(root)
            self.state.record_state(fingerprint)
            await collect_page_coverage(self.browser, self.coverage, start_url)

            self._emit(callbacks, f"Starting LLM-guided exploration at {start_url}")
            self._emit(callbacks, f"Found {len(root.actions)} initial actions")

            async def return_to_start() -> None:
                await self.browser.open(start_url)

            self._stack = [
                StackFrame(
                    node_id=root.id,
                    pending_edges=list(root.actions),
                    depth=0,
                    return_action=return_to_start,
                )
            ]

            reason = await self._run(callbacks)
            self._emit(callbacks, f"Exploration finished: {reason}")

        except Exception as e:
            self._emit(callbacks, f"Exploration error: {e}", "error")
            invoke_callback(callbacks, "on_error", e, self._total_steps)
            reason = "error"

        result = LLMExplorationResult(
            graph=self.graph,
            total_steps=self._total_steps,
            termination_reason=reason,
            duration_ms=(time.monotonic() - started) * 1000,
            unique_urls=self.coverage.get_stats().total_urls,
            unique_states=self.graph.get_stats().total_nodes,
            history=list(self._history),
        )
        invoke_callback(callbacks, "on_complete", result)
        return result

    async def _run(self, callbacks: ExplorationCallbacks | None) -> str:
        window = self.navigator_settings.history_window

        while True:
            if self._stopped:
                return "manual_stop"
            if not self._stack:
                return "exploration_complete"

            frame = self._stack[-1]
            self.budget.set_unique_states(len(self.graph))
            self.budget.set_depth(frame.depth)
            if not self.budget.can_continue():
                exhausted = self.budget.get_status().exhaustion_reason
                return exhausted.value if exhausted else "budget_exhausted"

            node = self.graph.get_node(frame.node_id)
            if node is None:
                self._emit(callbacks, "Node not found, backtracking", "warn")
                self._stack.pop()
                continue

            pending = [e for e in frame.pending_edges if e.status == EdgeStatus.PENDING]
            decision = await self.decision_engine.select_action(
                DecisionContext(
                    node=node,
                    pending_edges=pending,
                    coverage=self._coverage_context(frame.depth),
                    recent_history=self._history[-window:],
                    visited_urls=self.coverage.get_metrics().unique_urls,
                )
            )

            if decision.branch_exhausted or decision.top_action is None:
                await self._exhaust_frame(frame, node, pending, decision.exhausted_reason, callbacks)
                continue

            edge = decision.top_action
            invoke_callback(callbacks, "on_before_action", edge, frame.depth)
            label = edge.action.element.text[:30] or edge.action.selector
            self._emit(
                callbacks,
                f'Executing: {ActionType(edge.action.type).value} on "{label}" '
                f"({decision.source.value})",
            )

            execution = await self._execute_edge(edge, node, callbacks)
            self._total_steps += 1
            increment_exploration_steps()

            self.graph.update_edge(
                node.id,
                edge.id,
                status=EdgeStatus.EXPLORED if execution.success else EdgeStatus.FAILED,
                attempt_count=edge.attempt_count + 1,
                last_attempt_at=time.time(),
                last_error=execution.error,
            )
            frame.pending_edges = [e for e in frame.pending_edges if e.id != edge.id]
            self.budget.record_step(execution.had_gain)

            current_url = await self.browser.get_current_url()
            new_state = False

            if execution.success and execution.state_changed:
                new_state = await self._follow(frame, node, edge, current_url, callbacks)

            self._history.append(
                HistoryEntry(
                    url=current_url,
                    action=f'{ActionType(edge.action.type).value} "{edge.action.element.text[:20] or edge.action.selector}"',
                    new_state=new_state,
                )
            )
            invoke_callback(callbacks, "on_after_action", edge, execution.success, new_state)

    async def _exhaust_frame(
        self,
        frame: StackFrame,
        node: GraphNode,
        pending: list[GraphEdge],
        reason: str | None,
        callbacks: ExplorationCallbacks | None,
    ) -> None:
        """Skip what is left at this node, pop it and return to the parent."""
        self._emit(callbacks, f"Branch exhausted at depth {frame.depth}: {reason or 'no actions'}")

        for edge in pending:
            self.graph.update_edge(node.id, edge.id, status=EdgeStatus.SKIPPED)
        self._stack.pop()

        if not self._stack:
            return

        parent_node = self.graph.get_node(self._stack[-1].node_id)
        if parent_node is not None:
            self._emit(
                callbacks, f"Backtracking to {parent_node.url} (depth {self._stack[-1].depth})"
            )

        restored = await self._restore(callbacks)
        if restored is None:
            return
        restored_node = self.graph.get_node(restored.node_id)
        if restored_node is not None:
            invoke_callback(callbacks, "on_backtrack", restored_node.url, restored.depth)

    async def _follow(
        self,
        frame: StackFrame,
        node: GraphNode,
        edge: GraphEdge,
        current_url: str,
        callbacks: ExplorationCallbacks | None,
    ) -> bool:
        """
        Handle a state-changing action. Returns True if a new node was pushed.
        """
        if not self._is_internal(current_url):
            self._emit(callbacks, "Navigated to external domain, returning", "warn")
            await self._restore(callbacks)
            return False

        if frame.depth + 1 >= self.settings.max_depth:
            self._emit(callbacks, f"Max depth reached ({self.settings.max_depth}), returning")
            await self._restore(callbacks)
            return False

        child, fingerprint = await self.capture_node(current_url, depth=frame.depth + 1)

        if self.graph.has_node(child.id):
            self.graph.update_edge(node.id, edge.id, target_node_id=child.id)
            self.state.record_state(fingerprint)
            if child.id != node.id:
                self.graph.record_visit(child.id)
                await self._restore(callbacks)
            return False

        self.graph.add_node(child)
        self.state.record_state(fingerprint)
        self.graph.update_edge(node.id, edge.id, target_node_id=child.id)
        self._emit(callbacks, f"Discovered new state: {child.url} ({len(child.actions)} actions)")

        self._stack.append(
            StackFrame(
                node_id=child.id,
                pending_edges=list(child.actions),
                depth=frame.depth + 1,
                return_action=self._compose_return(frame.return_action, edge),
            )
        )
        return True

    def stop(self, reason: str | None = None) -> None:
        """Ask the loop to halt before its next iteration."""
        self._stopped = True
        self.budget.stop(reason)

    def get_history(self) -> list[HistoryEntry]:
        return list(self._history)

    def get_depth(self) -> int:
        return self._stack[-1].depth if self._stack else 0


def create_llm_explorer(
    browser: BrowserDriver,
    coverage: CoverageTracker,
    state: StateTracker,
    budget: BudgetTracker,
    api_key: str | None,
    config: Settings | None = None,
    chat_client: ChatClient | None = None,
) -> LLMExplorer:
    """
    Build a graph explorer with its decision engine.

    Without an API key or client the engine runs heuristics only.
    """
    config = config or Settings()
    engine = create_decision_engine(
        api_key,
        settings=config.navigator,
        api_settings=config.api_llm,
        chat_client=chat_client,
    )
    return LLMExplorer(
        browser,
        coverage,
        state,
        budget,
        engine,
        settings=config.explorer,
        navigator_settings=config.navigator,
    )
