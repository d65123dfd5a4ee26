"""
Coverage-guided exploration engine.

Walks a web application one action at a time: extract candidate
actions from the live page, pick a beam of the best ones, let the
heuristic gate (and optionally the decision engine) choose, execute,
then measure what changed. New states deepen the walk; dead ends,
external links and the depth limit backtrack by re-opening a saved URL
and resuming with the alternatives left untried there. A saved page that
no longer loads is skipped in favour of the one before it.
"""

import logging
import random
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from ui_explorer.browser.driver import ActionOutcome, BrowserDriver
from ui_explorer.config.settings import (
    ActionSelectorSettings,
    ExplorerSettings,
    NavigatorSettings,
    Settings,
)
from ui_explorer.core.error_classifier import classify_error, is_blocking_error
from ui_explorer.exploration.action_selector import (
    ActionCandidate,
    ActionSelector,
    ActionType,
    build_scoring_context,
    extract_action_candidates,
)
from ui_explorer.exploration.budget import BudgetTracker, ExhaustionReason
from ui_explorer.exploration.coverage import (
    ActionCoverageOutcome,
    CoverageGain,
    CoverageSnapshot,
    CoverageTracker,
    collect_page_coverage,
)
from ui_explorer.exploration.graph import GraphNode, candidate_to_edge
from ui_explorer.exploration.state import (
    StateFingerprint,
    StateTracker,
    capture_state_fingerprint,
)
from ui_explorer.navigator.decision_engine import DecisionEngine
from ui_explorer.navigator.heuristic import HeuristicAnalyzer
from ui_explorer.navigator.models import (
    CoverageContext,
    DecisionContext,
    HeuristicDecisionType,
    HeuristicResult,
)
from ui_explorer.navigator.smart_interactions import get_test_value
from ui_explorer.utils.logging import get_logger, get_logger_with_context
from ui_explorer.utils.metrics import increment_exploration_steps
from ui_explorer.utils.urls import get_hostname, is_same_domain, normalize_url, resolve_url

logger = get_logger(__name__)

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


# ============================================================================
# Types
# ============================================================================


class ExplorerState(str, Enum):
    RUNNING = "running"
    BACKTRACKING = "backtracking"
    TERMINATED = "terminated"


class TerminationReason(str, Enum):
    """Why an exploration run ended."""

    BUDGET_EXHAUSTED = "budget_exhausted"
    NO_ACTIONS_AVAILABLE = "no_actions_available"
    COVERAGE_COMPLETE = "coverage_complete"
    MAX_DEPTH_REACHED = "max_depth_reached"
    ERROR = "error"
    MANUAL_STOP = "manual_stop"


@dataclass
class ExplorationStep:
    """One executed action and everything observed around it."""

    index: int
    action: ActionCandidate
    url_before: str
    url_after: str
    state_before: StateFingerprint
    state_after: StateFingerprint
    coverage_gain: CoverageGain
    outcome: ActionOutcome
    success: bool
    error: str | None = None
    screenshot_path: str | None = None
    decision: HeuristicResult | None = None
    timestamp: float = field(default_factory=time.time)

    @property
    def changed_state(self) -> bool:
        return self.state_after.combined_hash != self.state_before.combined_hash


@dataclass
class ExplorationResult:
    steps: list[ExplorationStep]
    coverage_snapshot: CoverageSnapshot
    termination_reason: TerminationReason
    duration_ms: float
    unique_states: int
    unique_urls: int
    budget_reason: ExhaustionReason | None = None


@dataclass
class ExplorationCallbacks:
    """
    Optional progress hooks.

    The beam explorer calls ``on_before_action(candidate, step_index)``
    and ``on_after_action(step)``; the graph explorer calls
    ``on_before_action(edge, depth)`` and
    ``on_after_action(edge, success, new_state)``. ``on_backtrack``
    receives the URL returned to and its depth.

    Exceptions raised by a callback are logged and never interrupt
    exploration.
    """

    on_start: Callable[[], Any] | None = None
    on_before_action: Callable[..., Any] | None = None
    on_after_action: Callable[..., Any] | None = None
    on_backtrack: Callable[[str, int], Any] | None = None
    on_complete: Callable[[Any], Any] | None = None
    on_error: Callable[[Exception, int], Any] | None = None
    on_log: Callable[[str, str], Any] | None = None


def invoke_callback(callbacks: ExplorationCallbacks | None, name: str, *args: Any) -> None:
    """Call ``callbacks.<name>(*args)`` if set, logging any exception."""
    if callbacks is None:
        return
    callback = getattr(callbacks, name)
    if callback is None:
        return
    try:
        callback(*args)
    except Exception as e:
        logger.warning(f"Callback {name} raised: {e}")


def emit_log(
    callbacks: ExplorationCallbacks | None,
    message: str,
    level: str = "info",
    log: logging.Logger | logging.LoggerAdapter = logger,
) -> None:
    """Send ``message`` to the module logger and to ``on_log``."""
    log.log(LOG_LEVELS.get(level, logging.INFO), message)
    invoke_callback(callbacks, "on_log", message, level)


@dataclass
class BacktrackFrame:
    """A page to come back to, with the alternatives left untried there."""

    url: str
    fingerprint: StateFingerprint
    remaining_actions: list[ActionCandidate]
    depth: int


# ============================================================================
# Explorer
# ============================================================================


class Explorer:
    """
    Beam-search explorer over the live page.

    Trackers are owned by exactly one explorer for one run.

    Example:
        >>> explorer = create_explorer(driver, CoverageTracker(), StateTracker(), BudgetTracker())
        >>> result = await explorer.explore("https://example.com")
        >>> print(result.termination_reason, len(result.steps))
    """

    def __init__(
        self,
        browser: BrowserDriver,
        coverage: CoverageTracker,
        state: StateTracker,
        budget: BudgetTracker,
        settings: ExplorerSettings | None = None,
        decision_engine: DecisionEngine | None = None,
        selector_settings: ActionSelectorSettings | None = None,
        navigator_settings: NavigatorSettings | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.browser = browser
        self.coverage = coverage
        self.state = state
        self.budget = budget
        self.settings = settings or ExplorerSettings()
        self.decision_engine = decision_engine

        self.action_selector = ActionSelector(selector_settings)
        self.heuristic = HeuristicAnalyzer(navigator_settings, selector_settings)
        self._rng = rng or random.Random()
        self.run_id = uuid.uuid4().hex[:8]
        self._log = get_logger_with_context(__name__, run=self.run_id)

        self.status = ExplorerState.RUNNING
        self._depth = 0
        self._step_index = 0
        self._stopped = False
        self._stop_reason: str | None = None
        self._base_domain: str | None = self.settings.base_domain
        self._start_url = ""
        self._current_url = ""
        self._backtrack_stack: list[BacktrackFrame] = []
        self._alternatives: list[ActionCandidate] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def explore(
        self,
        start_url: str | None = None,
        callbacks: ExplorationCallbacks | None = None,
    ) -> ExplorationResult:
        """
        Run until the budget, the page or the stop flag ends it.

        Never raises; failures end the run with ``TerminationReason.ERROR``.

        Args:
            start_url: Page to open first; defaults to the current page
            callbacks: Progress hooks
        """
        started = time.monotonic()
        steps: list[ExplorationStep] = []
        reason = TerminationReason.BUDGET_EXHAUSTED
        budget_reason: ExhaustionReason | None = None
        self.status = ExplorerState.RUNNING

        invoke_callback(callbacks, "on_start")

        try:
            if start_url:
                await self.browser.open(start_url)

            self._current_url = await self.browser.get_current_url()
            self._start_url = self._current_url
            await collect_page_coverage(self.browser, self.coverage, self._current_url)

            if self._base_domain is None:
                self._base_domain = get_hostname(self._current_url)
            self._emit(callbacks, f"Base domain set to: {self._base_domain}")

            current_state = await capture_state_fingerprint(self.browser, self._current_url)
            self.state.record_state(current_state)
            self._emit(callbacks, f"Starting exploration at {self._current_url}")

            while True:
                if self._stopped:
                    reason = TerminationReason.MANUAL_STOP
                    break

                self.budget.set_unique_states(self.state.get_unique_state_count())
                self.budget.set_depth(self._depth)
                if not self.budget.can_continue():
                    reason = TerminationReason.BUDGET_EXHAUSTED
                    budget_reason = self.budget.get_status().exhaustion_reason
                    break

                candidates = await extract_action_candidates(self.browser)
                if not candidates:
                    self._emit(callbacks, "No action candidates found", "warn")
                    if await self._backtrack(callbacks):
                        continue
                    reason = TerminationReason.NO_ACTIONS_AVAILABLE
                    break

                beam = self._resume_alternatives(candidates) or self.select_next_actions(
                    candidates, self.settings.beam_width
                )
                if not beam:
                    self._emit(callbacks, "No promising actions to try", "warn")
                    if await self._backtrack(callbacks):
                        continue
                    reason = TerminationReason.COVERAGE_COMPLETE
                    break

                action, decision = await self._decide(beam, current_state)
                invoke_callback(callbacks, "on_before_action", action, self._step_index)

                try:
                    step = await self.execute_step(action)
                except Exception as e:
                    if is_blocking_error(e):
                        self._emit(callbacks, f"Blocking browser error: {e}", "error")
                        invoke_callback(callbacks, "on_error", e, self._step_index)
                        reason = TerminationReason.ERROR
                        break
                    self._emit(callbacks, f"Action failed: {e}", "error")
                    invoke_callback(callbacks, "on_error", e, self._step_index)
                    self.action_selector.record_attempt(action.selector, action.action_type)
                    self._step_index += 1
                    continue

                step.decision = decision
                steps.append(step)
                self._step_index += 1
                invoke_callback(callbacks, "on_after_action", step)

                self.budget.record_step(step.coverage_gain.has_gain)
                self._current_url = await self.browser.get_current_url()

                if self._base_domain and not is_same_domain(self._current_url, self._base_domain):
                    self._emit(
                        callbacks,
                        f"Navigated to external domain {get_hostname(self._current_url)}, backtracking",
                        "warn",
                    )
                    if await self._backtrack(callbacks) or await self._return_to_start(callbacks):
                        continue
                    reason = TerminationReason.NO_ACTIONS_AVAILABLE
                    break

                if step.changed_state:
                    if self.settings.enable_backtracking and len(beam) > 1:
                        self._backtrack_stack.append(
                            BacktrackFrame(
                                url=step.url_before,
                                fingerprint=step.state_before,
                                remaining_actions=[c for c in beam if c is not action],
                                depth=self._depth,
                            )
                        )
                    self._depth += 1
                current_state = step.state_after

                if self._depth >= self.settings.max_depth:
                    self._emit(callbacks, f"Max depth {self.settings.max_depth} reached")
                    if not await self._backtrack(callbacks):
                        reason = TerminationReason.MAX_DEPTH_REACHED
                        break

        except Exception as e:
            self._emit(callbacks, f"Exploration error: {e}", "error")
            invoke_callback(callbacks, "on_error", e, self._step_index)
            reason = TerminationReason.ERROR

        self.status = ExplorerState.TERMINATED
        metrics = self.coverage.get_metrics()
        result = ExplorationResult(
            steps=steps,
            coverage_snapshot=self.coverage.take_snapshot(self._step_index),
            termination_reason=reason,
            duration_ms=(time.monotonic() - started) * 1000,
            unique_states=self.state.get_unique_state_count(),
            unique_urls=len(metrics.unique_urls),
            budget_reason=budget_reason,
        )
        self._emit(
            callbacks,
            f"Exploration finished: {reason.value} after {len(steps)} steps, "
            f"{result.unique_states} states",
        )
        invoke_callback(callbacks, "on_complete", result)
        return result

    def select_next_actions(
        self,
        candidates: list[ActionCandidate],
        n: int | None = None,
    ) -> list[ActionCandidate]:
        """Top ``n`` candidates according to the configured strategy."""
        context = build_scoring_context(self.coverage, self._current_url, self._base_domain)
        width = n or self.settings.beam_width
        selector = self.action_selector
        strategy = self.settings.strategy

        if strategy == "coverage_guided":
            return selector.select_top_actions(candidates, context, width)

        eligible = [
            c
            for c in selector.rank_actions(candidates, context)
            if not c.element.is_disabled
            and selector.get_attempt_count(c.selector, c.action_type)
            < selector.settings.max_retries
        ]

        if strategy == "breadth_first":
            visited = {normalize_url(u) for u in context.visited_urls}
            fresh = []
            for c in eligible:
                target = resolve_url(c.element.href, self._current_url) if c.element.href else None
                if target and normalize_url(target) not in visited:
                    fresh.append(c)
            return fresh[:width]

        if strategy == "depth_first":
            unvisited = [c for c in eligible if not c.was_attempted]
            return unvisited[:1]

        shuffled = list(eligible)
        self._rng.shuffle(shuffled)
        return shuffled[:width]

    async def execute_step(self, action: ActionCandidate) -> ExplorationStep:
        """
        Execute ``action`` and observe its effect.

        Non-blocking action failures are recorded on the step; blocking
        ones propagate.
        """
        timestamp = time.time()
        url_before = await self.browser.get_current_url()
        state_before = await capture_state_fingerprint(self.browser, url_before)
        coverage_before = self.coverage.take_snapshot(self._step_index)
        snapshot_before = await self.browser.take_page_snapshot()

        success = True
        error: str | None = None
        value: str | None = None

        try:
            value = await self._perform(action)
            await self.browser.wait_for_stability(
                self.settings.stability_wait_ms,
                self.settings.stability_timeout_ms,
            )
            self.coverage.record_element_interaction(action.selector)
        except Exception as e:
            if is_blocking_error(e):
                raise
            classification = classify_error(e)
            success = False
            error = classification.message
            self.coverage.record_url_with_error(url_before)
            logger.debug(
                f"Action {action.action_type.value} on {action.selector} failed "
                f"({classification.severity.value}): {error}"
            )

        screenshot_path = await self._screenshot() if self.settings.screenshot_on_action else None

        url_after = await self.browser.get_current_url()
        state_after = await capture_state_fingerprint(self.browser, url_after)
        snapshot_after = await self.browser.take_page_snapshot()

        await collect_page_coverage(self.browser, self.coverage, url_after)
        gain = self.coverage.calculate_gain(coverage_before)

        self.state.record_transition(
            state_before,
            state_after,
            action.action_type.value,
            selector=action.selector,
            value=value,
        )
        self.action_selector.record_attempt(action.selector, action.action_type)

        outcome = self.browser.detect_action_outcome(snapshot_before, snapshot_after)
        self.coverage.record_action_outcome(
            ActionCoverageOutcome(
                action_type=action.action_type.value,
                gain=gain,
                step_index=self._step_index,
                selector=action.selector,
                value=value,
            )
        )
        increment_exploration_steps()

        return ExplorationStep(
            index=self._step_index,
            action=action,
            url_before=url_before,
            url_after=url_after,
            state_before=state_before,
            state_after=state_after,
            coverage_gain=gain,
            outcome=outcome,
            success=success,
            error=error,
            screenshot_path=screenshot_path,
            timestamp=timestamp,
        )

    def stop(self, reason: str | None = None) -> None:
        """Ask the loop to halt before its next iteration."""
        self._stopped = True
        self._stop_reason = reason
        self.budget.stop(reason)

    def get_depth(self) -> int:
        return self._depth

    def reset(self) -> None:
        self.status = ExplorerState.RUNNING
        self._depth = 0
        self._step_index = 0
        self._stopped = False
        self._stop_reason = None
        self._backtrack_stack.clear()
        self._alternatives = []
        self._base_domain = self.settings.base_domain
        self._start_url = ""
        self._current_url = ""
        self.action_selector.reset()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _decide(
        self,
        beam: list[ActionCandidate],
        current: StateFingerprint,
    ) -> tuple[ActionCandidate, HeuristicResult]:
        """Let the heuristic gate, then the decision engine, choose from ``beam``."""
        node = GraphNode(id=current.combined_hash, url=self._current_url)
        edges = [candidate_to_edge(c, node.id) for c in beam]
        node.actions = edges
        by_edge = {e.id: c for e, c in zip(edges, beam)}
        visited = {normalize_url(u) for u in self.coverage.get_metrics().unique_urls}

        result = self.heuristic.analyze(node, edges, [], visited)
        if (
            self.heuristic.should_accept(result)
            and result.decision == HeuristicDecisionType.SELECT_ACTION
        ):
            logger.debug(f"Heuristic chose {result.selected_edge_id} ({result.reason})")
            return by_edge[result.selected_edge_id], result

        if self.decision_engine is not None:
            decision = await self.decision_engine.select_action(
                DecisionContext(
                    node=node,
                    pending_edges=edges,
                    coverage=CoverageContext(
                        url_count=len(visited),
                        form_count=len(self.coverage.get_metrics().unique_forms),
                        search_count=self.coverage.get_action_type_count(ActionType.FILL.value),
                        total_steps=self._step_index,
                        current_depth=self._depth,
                    ),
                    visited_urls=visited,
                )
            )
            if decision.top_action is not None:
                return by_edge[decision.top_action.id], result

        return beam[0], result

    def _emit(self, callbacks: ExplorationCallbacks | None, message: str, level: str = "info") -> None:
        emit_log(callbacks, message, level, log=self._log)

    async def _perform(self, action: ActionCandidate) -> str | None:
        """Dispatch ``action`` to the driver; returns the value typed, if any."""
        selector = action.selector
        action_type = ActionType(action.action_type)

        if action_type == ActionType.FILL:
            value = get_test_value(action.element)
            await self.browser.fill(selector, value)
            return value
        if action_type == ActionType.HOVER:
            await self.browser.hover(selector)
        elif action_type == ActionType.PRESS:
            await self.browser.press("Enter", selector)
        else:
            # select opens the control; option choice is left to the page
            await self.browser.click(selector)
        return None

    async def _screenshot(self) -> str | None:
        path = self.settings.screenshot_dir / f"step_{self._step_index:04d}.png"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            await self.browser.screenshot(str(path))
        except Exception as e:
            if is_blocking_error(e):
                raise
            logger.debug(f"Screenshot failed: {e}")
            return None
        return str(path)

    def _resume_alternatives(self, candidates: list[ActionCandidate]) -> list[ActionCandidate]:
        """
        Live candidates matching the alternatives saved with the page just
        backtracked to. Consumed once; empty when nothing matches.
        """
        if not self._alternatives:
            return []
        saved = {(c.selector, c.action_type) for c in self._alternatives}
        self._alternatives = []

        selector = self.action_selector
        return [
            c
            for c in candidates
            if (c.selector, c.action_type) in saved
            and not c.element.is_disabled
            and selector.get_attempt_count(c.selector, c.action_type)
            < selector.settings.max_retries
        ]

    async def _reopen(self, url: str, callbacks: ExplorationCallbacks | None) -> bool:
        """Navigate to ``url``. Skippable failures are logged and return False."""
        try:
            await self.browser.open(url)
        except Exception as e:
            if is_blocking_error(e):
                raise
            self._emit(callbacks, f"Could not reopen {url}: {e}", "warn")
            return False
        return True

    async def _backtrack(self, callbacks: ExplorationCallbacks | None) -> bool:
        """Re-open the most recent reachable saved page. False when there is none."""
        if not self.settings.enable_backtracking:
            return False

        self.status = ExplorerState.BACKTRACKING
        try:
            while self._backtrack_stack:
                frame = self._backtrack_stack.pop()
                self._emit(callbacks, f"Backtracking to {frame.url}")
                if not await self._reopen(frame.url, callbacks):
                    continue
                self._current_url = frame.url
                self._depth = frame.depth
                self._alternatives = frame.remaining_actions
                invoke_callback(callbacks, "on_backtrack", frame.url, frame.depth)
                return True
            return False
        finally:
            self.status = ExplorerState.RUNNING

    async def _return_to_start(self, callbacks: ExplorationCallbacks | None) -> bool:
        self._emit(callbacks, f"Returning to start page {self._start_url}")
        if not await self._reopen(self._start_url, callbacks):
            return False
        self._current_url = self._start_url
        self._depth = 0
        invoke_callback(callbacks, "on_backtrack", self._start_url, 0)
        return True


def create_explorer(
    browser: BrowserDriver,
    coverage: CoverageTracker,
    state: StateTracker,
    budget: BudgetTracker,
    config: Settings | None = None,
    decision_engine: DecisionEngine | None = None,
) -> Explorer:
    """Build an explorer bound to one set of per-run trackers."""
    config = config or Settings()
    return Explorer(
        browser,
        coverage,
        state,
        budget,
        settings=config.explorer,
        decision_engine=decision_engine,
        selector_settings=config.action_selector,
        navigator_settings=config.navigator,
    )


def format_exploration_result(result: ExplorationResult) -> str:
    lines = [
        f"Exploration completed: {result.termination_reason.value}",
        f"Duration: {result.duration_ms / 1000:.1f}s",
        f"Steps: {len(result.steps)}",
        f"Unique states: {result.unique_states}",
        f"Unique URLs: {result.unique_urls}",
    ]
    if result.budget_reason is not None:
        lines.append(f"Budget: {result.budget_reason.value}")
    return "\n".join(lines)
