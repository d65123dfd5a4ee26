"""
Exploration budget: step, state, depth and time ceilings plus stagnation.

The budget tracker is the single authority on whether a run may
continue. It never raises; callers ask ``can_continue()`` at the top of
each iteration and read ``get_status().exhaustion_reason`` when it says
no.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Literal

from ui_explorer.config.settings import BudgetSettings
from ui_explorer.utils.logging import get_logger

logger = get_logger(__name__)


class ExhaustionReason(str, Enum):
    """Why the budget refuses further steps, in precedence order."""

    MANUAL_STOP = "manual_stop"
    MAX_STEPS_REACHED = "max_steps_reached"
    MAX_STATES_REACHED = "max_states_reached"
    MAX_DEPTH_REACHED = "max_depth_reached"
    STAGNATION_DETECTED = "stagnation_detected"
    TIME_LIMIT_EXCEEDED = "time_limit_exceeded"


class BudgetEventType(str, Enum):
    STEP_RECORDED = "step_recorded"
    COVERAGE_GAINED = "coverage_gained"
    DEPTH_CHANGED = "depth_changed"
    BUDGET_WARNING = "budget_warning"
    BUDGET_EXHAUSTED = "budget_exhausted"


@dataclass
class BudgetEvent:
    type: BudgetEventType
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


@dataclass
class BudgetStatus:
    """Snapshot of budget consumption."""

    steps_used: int
    unique_states: int
    current_depth: int
    steps_since_last_gain: int
    elapsed_ms: float
    can_continue: bool
    remaining_percent: float
    exhaustion_reason: ExhaustionReason | None = None


class BudgetTracker:
    """
    Tracks resource usage for one exploration run.

    Example:
        >>> budget = BudgetTracker(BudgetSettings(max_total_steps=50))
        >>> while budget.can_continue():
        ...     gained = await run_one_step()
        ...     budget.record_step(gained)
        >>> budget.get_status().exhaustion_reason
    """

    def __init__(
        self,
        settings: BudgetSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize budget tracker.

        Args:
            settings: Budget ceilings; defaults apply when omitted
            clock: Monotonic clock in seconds, injectable for tests
        """
        self.settings = settings or BudgetSettings()
        self._clock = clock
        self._start = clock()
        self._steps_used = 0
        self._unique_states = 0
        self._current_depth = 0
        self._steps_since_last_gain = 0
        self._manually_stopped = False
        self._manual_stop_reason: str | None = None
        self._events: list[BudgetEvent] = []

    def _elapsed_ms(self) -> float:
        return (self._clock() - self._start) * 1000

    def _add_event(self, event_type: BudgetEventType, **details: Any) -> None:
        self._events.append(BudgetEvent(type=event_type, details=details))

    def _check_exhaustion(self) -> ExhaustionReason | None:
        s = self.settings
        if self._manually_stopped:
            return ExhaustionReason.MANUAL_STOP
        if self._steps_used >= s.max_total_steps:
            return ExhaustionReason.MAX_STEPS_REACHED
        if self._unique_states >= s.max_unique_states:
            return ExhaustionReason.MAX_STATES_REACHED
        if self._current_depth >= s.max_depth:
            return ExhaustionReason.MAX_DEPTH_REACHED
        if self._steps_since_last_gain >= s.stagnation_threshold:
            return ExhaustionReason.STAGNATION_DETECTED
        if s.max_time_ms is not None and self._elapsed_ms() >= s.max_time_ms:
            return ExhaustionReason.TIME_LIMIT_EXCEEDED
        return None

    def _remaining_percent(self) -> float:
        """Remaining share of the most constrained dimension, 0-100."""
        s = self.settings
        percents = [
            (s.max_total_steps - self._steps_used) / s.max_total_steps * 100,
            (s.max_unique_states - self._unique_states) / s.max_unique_states * 100,
            (s.stagnation_threshold - self._steps_since_last_gain)
            / s.stagnation_threshold
            * 100,
        ]
        if s.max_time_ms is not None:
            percents.append((s.max_time_ms - self._elapsed_ms()) / s.max_time_ms * 100)
        return max(0.0, min(100.0, min(percents)))

    def record_step(self, had_coverage_gain: bool) -> None:
        """Count one executed action and whether it added coverage."""
        self._steps_used += 1

        if had_coverage_gain:
            self._steps_since_last_gain = 0
            gains = sum(1 for e in self._events if e.type == BudgetEventType.COVERAGE_GAINED)
            self._add_event(
                BudgetEventType.COVERAGE_GAINED,
                steps_used=self._steps_used,
                total_gains=gains + 1,
            )
        else:
            self._steps_since_last_gain += 1

        self._add_event(
            BudgetEventType.STEP_RECORDED,
            steps_used=self._steps_used,
            had_coverage_gain=had_coverage_gain,
            steps_since_last_gain=self._steps_since_last_gain,
        )

        remaining = self._remaining_percent()
        if 10 < remaining <= 20:
            self._add_event(
                BudgetEventType.BUDGET_WARNING,
                message="Budget running low (20% remaining)",
                remaining_percent=remaining,
            )
        elif 0 < remaining <= 10:
            self._add_event(
                BudgetEventType.BUDGET_WARNING,
                message="Budget critical (10% remaining)",
                remaining_percent=remaining,
            )

        reason = self._check_exhaustion()
        if reason is not None:
            logger.info(f"Budget exhausted: {reason.value} after {self._steps_used} steps")
            self._add_event(
                BudgetEventType.BUDGET_EXHAUSTED,
                reason=reason.value,
                steps_used=self._steps_used,
                unique_states=self._unique_states,
                elapsed_ms=self._elapsed_ms(),
            )

    def set_depth(self, depth: int) -> None:
        previous = self._current_depth
        self._current_depth = depth
        if depth != previous:
            self._add_event(
                BudgetEventType.DEPTH_CHANGED,
                previous_depth=previous,
                new_depth=depth,
            )

    def set_unique_states(self, count: int) -> None:
        self._unique_states = count

    def can_continue(self) -> bool:
        return self._check_exhaustion() is None

    def stop(self, reason: str | None = None) -> None:
        """Stop the run; ``can_continue`` is False from now on."""
        self._manually_stopped = True
        self._manual_stop_reason = reason
        self._add_event(
            BudgetEventType.BUDGET_EXHAUSTED,
            reason=ExhaustionReason.MANUAL_STOP.value,
            manual_stop_reason=reason,
            steps_used=self._steps_used,
            unique_states=self._unique_states,
            elapsed_ms=self._elapsed_ms(),
        )

    def get_status(self) -> BudgetStatus:
        reason = self._check_exhaustion()
        return BudgetStatus(
            steps_used=self._steps_used,
            unique_states=self._unique_states,
            current_depth=self._current_depth,
            steps_since_last_gain=self._steps_since_last_gain,
            elapsed_ms=self._elapsed_ms(),
            can_continue=reason is None,
            remaining_percent=self._remaining_percent(),
            exhaustion_reason=reason,
        )

    def get_remaining(self, dimension: Literal["steps", "states", "time"]) -> float:
        """
        Units left in one dimension.

        Time is in milliseconds; an unlimited time budget reports infinity.
        """
        s = self.settings
        if dimension == "steps":
            return max(0, s.max_total_steps - self._steps_used)
        if dimension == "states":
            return max(0, s.max_unique_states - self._unique_states)
        if dimension == "time":
            if s.max_time_ms is None:
                return float("inf")
            return max(0.0, s.max_time_ms - self._elapsed_ms())
        return 0

    def get_events(self) -> list[BudgetEvent]:
        return list(self._events)

    def get_config(self) -> BudgetSettings:
        return self.settings.model_copy()

    @property
    def manual_stop_reason(self) -> str | None:
        return self._manual_stop_reason

    def reset(self) -> None:
        """Zero all counters and restart the clock."""
        self._start = self._clock()
        self._steps_used = 0
        self._unique_states = 0
        self._current_depth = 0
        self._steps_since_last_gain = 0
        self._manually_stopped = False
        self._manual_stop_reason = None
        self._events.clear()


# =============================================================================
# Budget utilities
# =============================================================================


def estimate_budget(page_count: int, steps_per_page: int = 5) -> dict[str, int]:
    """
    Rough budget for a site of ``page_count`` pages.

    Returns:
        Keyword arguments for ``BudgetSettings``
    """
    return {
        "max_total_steps": page_count * steps_per_page * 2,
        "max_unique_states": page_count * 3,
        "max_time_ms": max(300000, page_count * 30000),
    }


_REASON_MESSAGES = {
    ExhaustionReason.MAX_STEPS_REACHED: "Maximum steps reached",
    ExhaustionReason.MAX_STATES_REACHED: "Maximum unique states reached",
    ExhaustionReason.STAGNATION_DETECTED: "No coverage gain detected (stagnation)",
    ExhaustionReason.MAX_DEPTH_REACHED: "Maximum exploration depth reached",
    ExhaustionReason.TIME_LIMIT_EXCEEDED: "Time limit exceeded",
    ExhaustionReason.MANUAL_STOP: "Manually stopped",
}


def format_exhaustion_reason(reason: ExhaustionReason | str) -> str:
    try:
        return _REASON_MESSAGES[ExhaustionReason(reason)]
    except ValueError:
        return str(reason)


def format_budget_status(status: BudgetStatus) -> str:
    lines = [
        f"Steps: {status.steps_used} ({status.remaining_percent:.0f}% budget remaining)",
        f"Unique States: {status.unique_states}",
        f"Depth: {status.current_depth}",
        f"Elapsed: {status.elapsed_ms / 1000:.1f}s",
    ]

    if status.steps_since_last_gain > 0:
        lines.append(f"Steps without gain: {status.steps_since_last_gain}")

    if not status.can_continue and status.exhaustion_reason:
        lines.append(f"Status: Stopped ({format_exhaustion_reason(status.exhaustion_reason)})")
    else:
        lines.append("Status: Active")

    return "\n".join(lines)
