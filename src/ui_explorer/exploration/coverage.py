"""
Coverage accounting for an exploration run.

Tracks the distinct things exploration has reached (pages, forms,
dialogs, element interactions, network requests, console errors) and
measures how much each action added. Marginal gain drives stagnation
detection in the budget and action-type preference in scoring.
"""

import copy
import json
import re
import time
from dataclasses import dataclass, field

from ui_explorer.browser import scripts
from ui_explorer.browser.driver import BrowserDriver
from ui_explorer.utils.logging import get_logger
from ui_explorer.utils.urls import normalize_url

logger = get_logger(__name__)

_LINE_COL = re.compile(r":\d+:\d+")


@dataclass
class CoverageMetrics:
    """Sets of distinct covered items."""

    unique_urls: set[str] = field(default_factory=set)
    unique_dialogs: set[str] = field(default_factory=set)
    unique_forms: set[str] = field(default_factory=set)
    unique_network_requests: set[str] = field(default_factory=set)
    unique_console_errors: set[str] = field(default_factory=set)
    interacted_elements: set[str] = field(default_factory=set)
    urls_with_forms: set[str] = field(default_factory=set)
    urls_with_errors: set[str] = field(default_factory=set)


@dataclass
class CoverageSnapshot:
    """Point-in-time copy of coverage, used as a gain baseline."""

    metrics: CoverageMetrics
    step_index: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class CoverageGain:
    """What became covered between a snapshot and now."""

    new_urls: list[str] = field(default_factory=list)
    new_dialogs: list[str] = field(default_factory=list)
    new_forms: list[str] = field(default_factory=list)
    new_network_requests: list[str] = field(default_factory=list)
    new_console_errors: list[str] = field(default_factory=list)
    new_elements: list[str] = field(default_factory=list)

    @property
    def total_gain(self) -> int:
        return (
            len(self.new_urls)
            + len(self.new_dialogs)
            + len(self.new_forms)
            + len(self.new_network_requests)
            + len(self.new_console_errors)
            + len(self.new_elements)
        )

    @property
    def has_gain(self) -> bool:
        return self.total_gain > 0


@dataclass
class ActionCoverageOutcome:
    """Coverage gain attributed to one executed action."""

    action_type: str
    gain: CoverageGain
    step_index: int
    selector: str | None = None
    value: str | None = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class CoverageStats:
    """Totals plus a 0-100 coverage score."""

    total_urls: int
    total_dialogs: int
    total_forms: int
    total_network_requests: int
    total_console_errors: int
    total_interactions: int
    urls_with_forms: int
    urls_with_errors: int
    coverage_score: float


@dataclass
class CoverageRecommendation:
    type: str
    priority: int
    message: str


class CoverageTracker:
    """
    Accumulates coverage for one exploration run.

    All ``record_*`` methods return True when the item was new.

    Example:
        >>> coverage = CoverageTracker()
        >>> before = coverage.take_snapshot(step_index=0)
        >>> coverage.record_url("https://example.com/pricing")
        True
        >>> coverage.calculate_gain(before).has_gain
        True
    """

    def __init__(self) -> None:
        self._metrics = CoverageMetrics()
        self._outcomes: list[ActionCoverageOutcome] = []

    @staticmethod
    def _add(target: set[str], item: str) -> bool:
        is_new = item not in target
        target.add(item)
        return is_new

    def record_url(self, url: str) -> bool:
        return self._add(self._metrics.unique_urls, normalize_url(url))

    def record_dialog(self, dialog_id: str) -> bool:
        return self._add(self._metrics.unique_dialogs, dialog_id)

    def record_form(self, form_id: str) -> bool:
        return self._add(self._metrics.unique_forms, form_id)

    def record_network_request(self, method: str, url: str) -> bool:
        return self._add(
            self._metrics.unique_network_requests,
            f"{method.upper()} {normalize_url(url)}",
        )

    def record_console_error(self, message: str) -> bool:
        normalized = _LINE_COL.sub("", message)[:200]
        return self._add(self._metrics.unique_console_errors, normalized)

    def record_element_interaction(self, selector: str) -> bool:
        return self._add(self._metrics.interacted_elements, selector.lower().strip())

    def record_url_with_form(self, url: str) -> bool:
        return self._add(self._metrics.urls_with_forms, normalize_url(url))

    def record_url_with_error(self, url: str) -> bool:
        return self._add(self._metrics.urls_with_errors, normalize_url(url))

    def take_snapshot(self, step_index: int) -> CoverageSnapshot:
        return CoverageSnapshot(metrics=self.get_metrics(), step_index=step_index)

    def calculate_gain(self, previous: CoverageSnapshot) -> CoverageGain:
        """Strict set difference between current coverage and ``previous``."""
        now, then = self._metrics, previous.metrics
        return CoverageGain(
            new_urls=sorted(now.unique_urls - then.unique_urls),
            new_dialogs=sorted(now.unique_dialogs - then.unique_dialogs),
            new_forms=sorted(now.unique_forms - then.unique_forms),
            new_network_requests=sorted(
                now.unique_network_requests - then.unique_network_requests
            ),
            new_console_errors=sorted(now.unique_console_errors - then.unique_console_errors),
            new_elements=sorted(now.interacted_elements - then.interacted_elements),
        )

    def record_action_outcome(self, outcome: ActionCoverageOutcome) -> None:
        self._outcomes.append(outcome)

    def get_action_outcomes(self) -> list[ActionCoverageOutcome]:
        return list(self._outcomes)

    def get_metrics(self) -> CoverageMetrics:
        """Deep copy of the current coverage sets."""
        return copy.deepcopy(self._metrics)

    def get_stats(self) -> CoverageStats:
        m = self._metrics
        url_score = min(len(m.unique_urls) * 5, 40)
        dialog_score = min(len(m.unique_dialogs) * 5, 15)
        form_score = min(len(m.unique_forms) * 5, 20)
        interaction_score = min(len(m.interacted_elements) * 0.5, 25)

        return CoverageStats(
            total_urls=len(m.unique_urls),
            total_dialogs=len(m.unique_dialogs),
            total_forms=len(m.unique_forms),
            total_network_requests=len(m.unique_network_requests),
            total_console_errors=len(m.unique_console_errors),
            total_interactions=len(m.interacted_elements),
            urls_with_forms=len(m.urls_with_forms),
            urls_with_errors=len(m.urls_with_errors),
            coverage_score=min(100, url_score + dialog_score + form_score + interaction_score),
        )

    def get_most_effective_action_types(self) -> list[tuple[str, float, int]]:
        """
        Average coverage gain per action type.

        Returns:
            List of (action_type, avg_gain, count), best first
        """
        totals: dict[str, list[int]] = {}
        for outcome in self._outcomes:
            entry = totals.setdefault(outcome.action_type, [0, 0])
            entry[0] += outcome.gain.total_gain
            entry[1] += 1

        ranked = [
            (action_type, total / count if count else 0.0, count)
            for action_type, (total, count) in totals.items()
        ]
        ranked.sort(key=lambda item: item[1], reverse=True)
        return ranked

    def get_action_type_count(self, action_type: str) -> int:
        return sum(1 for o in self._outcomes if o.action_type == action_type)

    def reset(self) -> None:
        self._metrics = CoverageMetrics()
        self._outcomes.clear()


# =============================================================================
# Page collection and reporting helpers
# =============================================================================


def _parse_string_list(raw: str) -> list[str]:
    data = json.loads(raw)
    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON list, got {type(data).__name__}")
    return [str(item) for item in data]


async def collect_page_coverage(
    driver: BrowserDriver,
    tracker: CoverageTracker,
    current_url: str,
) -> None:
    """
    Record the current page, its dialogs and its forms.

    Script failures are logged and otherwise ignored; the URL is always
    recorded.
    """
    tracker.record_url(current_url)

    try:
        for dialog in _parse_string_list(await driver.eval(scripts.DETECT_DIALOGS_SCRIPT)):
            tracker.record_dialog(dialog)

        forms = _parse_string_list(await driver.eval(scripts.DETECT_FORMS_SCRIPT))
        for form in forms:
            tracker.record_form(form)
        if forms:
            tracker.record_url_with_form(current_url)
    except Exception as e:
        logger.debug(f"Coverage collection incomplete for {current_url}: {e}")


def get_coverage_recommendations(tracker: CoverageTracker) -> list[CoverageRecommendation]:
    """Suggest where exploration should focus next, highest priority first."""
    stats = tracker.get_stats()
    recommendations: list[CoverageRecommendation] = []

    if stats.total_forms > stats.urls_with_forms:
        recommendations.append(
            CoverageRecommendation(
                type="explore_forms",
                priority=8,
                message=f"{stats.total_forms - stats.urls_with_forms} forms not yet interacted with",
            )
        )

    if stats.total_dialogs == 0:
        recommendations.append(
            CoverageRecommendation(
                type="find_dialogs",
                priority=6,
                message="No dialogs/modals discovered yet - look for modal triggers",
            )
        )

    if stats.coverage_score < 50:
        recommendations.append(
            CoverageRecommendation(
                type="increase_breadth",
                priority=7,
                message="Coverage is low - explore more pages and interactions",
            )
        )

    effective = tracker.get_most_effective_action_types()
    if effective and effective[0][1] > 2:
        recommendations.append(
            CoverageRecommendation(
                type="focus_action_type",
                priority=5,
                message=f'"{effective[0][0]}" actions are most effective - prioritize them',
            )
        )

    recommendations.sort(key=lambda r: r.priority, reverse=True)
    return recommendations


def format_coverage_stats(stats: CoverageStats) -> str:
    return "\n".join(
        [
            f"URLs: {stats.total_urls}",
            f"Forms: {stats.total_forms} ({stats.urls_with_forms} pages with forms)",
            f"Dialogs: {stats.total_dialogs}",
            f"Interactions: {stats.total_interactions}",
            f"Network Requests: {stats.total_network_requests}",
            f"Console Errors: {stats.total_console_errors}",
            f"Coverage Score: {stats.coverage_score:.0f}/100",
        ]
    )
