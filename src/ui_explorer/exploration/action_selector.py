"""
Action candidate extraction and multi-factor scoring.

Every interactive element on the page becomes an ``ActionCandidate``.
Candidates are scored on four 0-10 terms (novelty, business
criticality, risk, branch factor), combined with configurable weights
and decayed for repeated attempts. The explorer takes the best few.
"""

import json
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from ui_explorer.browser import scripts
from ui_explorer.browser.driver import BrowserDriver
from ui_explorer.config.settings import ActionSelectorSettings
from ui_explorer.exploration.coverage import CoverageTracker
from ui_explorer.utils.logging import get_logger
from ui_explorer.utils.urls import is_same_domain, normalize_url, resolve_url

logger = get_logger(__name__)


class ActionType(str, Enum):
    CLICK = "click"
    FILL = "fill"
    HOVER = "hover"
    PRESS = "press"
    SELECT = "select"


# ============================================================================
# Keyword tables
# ============================================================================

CTA_KEYWORDS = [
    "sign up", "signup", "register", "create account",
    "get started", "try free", "start free",
    "buy now", "purchase", "checkout", "add to cart",
    "subscribe", "upgrade", "pro", "premium",
    "download", "install", "get app",
    "contact", "book", "schedule", "demo",
    "submit", "send", "confirm", "save",
    "next", "continue", "proceed",
]

NAV_KEYWORDS = [
    "home", "about", "contact", "pricing", "features",
    "products", "services", "blog", "news",
    "support", "help", "faq", "docs", "documentation",
    "login", "logout", "sign in", "sign out",
    "account", "profile", "settings", "dashboard",
]

EXPANDABLE_KEYWORDS = [
    "show more", "see more", "read more", "view more",
    "expand", "collapse", "toggle", "details",
    "dropdown", "menu", "accordion",
]

DESTRUCTIVE_KEYWORDS = [
    "delete", "remove", "destroy", "erase", "deactivate",
    "unsubscribe", "cancel subscription", "close account",
    "log out", "logout", "sign out", "reset",
]


def _has_keyword(text: str, keywords: list[str]) -> bool:
    return any(kw in text for kw in keywords)


# ============================================================================
# Candidate types
# ============================================================================


@dataclass
class ElementInfo:
    """Metadata about the element behind a candidate action."""

    tag_name: str
    text: str = ""
    role: str = ""
    href: str = ""
    type: str = ""
    form_id: str = ""
    placeholder: str = ""
    aria_label: str = ""
    is_disabled: bool = False
    has_empty_required_input: bool = False
    enables_submit_button: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ElementInfo":
        """Build from the camelCase payload of the extraction script."""
        return cls(
            tag_name=str(data.get("tagName", "")),
            text=str(data.get("text") or ""),
            role=str(data.get("role") or ""),
            href=str(data.get("href") or ""),
            type=str(data.get("type") or ""),
            form_id=str(data.get("formId") or ""),
            placeholder=str(data.get("placeholder") or ""),
            aria_label=str(data.get("ariaLabel") or ""),
            is_disabled=bool(data.get("isDisabled", False)),
            has_empty_required_input=bool(data.get("hasEmptyRequiredInput", False)),
            enables_submit_button=bool(data.get("enablesSubmitButton", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "tag_name": self.tag_name,
            "text": self.text,
            "role": self.role,
            "href": self.href,
            "type": self.type,
            "form_id": self.form_id,
            "placeholder": self.placeholder,
            "aria_label": self.aria_label,
            "is_disabled": self.is_disabled,
            "has_empty_required_input": self.has_empty_required_input,
            "enables_submit_button": self.enables_submit_button,
        }


@dataclass
class ScoreBreakdown:
    novelty: float = 0.0
    business_criticality: float = 0.0
    risk: float = 0.0
    branch_factor: float = 0.0


@dataclass
class ActionCandidate:
    """
    One possible action on the current page.

    Scoring fields are filled in by ``ActionSelector.score_action``;
    candidates are rebuilt from the page every cycle.
    """

    selector: str
    action_type: ActionType
    element: ElementInfo
    priority_score: float = 0.0
    score_breakdown: ScoreBreakdown = field(default_factory=ScoreBreakdown)
    was_attempted: bool = False
    decay_factor: float = 1.0


@dataclass
class ScoringContext:
    """What exploration has already covered, as seen by the scorer."""

    current_url: str
    visited_urls: set[str] = field(default_factory=set)
    submitted_forms: set[str] = field(default_factory=set)
    opened_dialogs: set[str] = field(default_factory=set)
    interacted_elements: set[str] = field(default_factory=set)
    action_type_counts: dict[str, int] = field(default_factory=dict)
    base_domain: str | None = None


# ============================================================================
# Scoring terms
# ============================================================================


def _clamp(score: float) -> float:
    return max(0.0, min(10.0, score))


def _is_form_like(element: ElementInfo) -> bool:
    return element.tag_name.lower() == "form" or element.type == "submit"


def _is_button(element: ElementInfo) -> bool:
    return element.tag_name.lower() == "button" or element.role == "button"


def calculate_novelty(candidate: ActionCandidate, context: ScoringContext) -> float:
    """Potential to reach URLs, forms or panels not yet covered."""
    element = candidate.element
    text = element.text.lower()
    score = 0.0

    if element.href:
        if context.base_domain and not is_same_domain(
            resolve_url(element.href, context.current_url) or element.href,
            context.base_domain,
        ):
            return 0.0

        target = resolve_url(element.href, context.current_url)
        if target is None:
            score += 3
        elif normalize_url(target) not in context.visited_urls:
            score += 8
        else:
            score += 1

    if _is_form_like(element):
        form_id = element.form_id or candidate.selector
        if form_id not in context.submitted_forms:
            score += 7

    if _has_keyword(text, EXPANDABLE_KEYWORDS):
        score += 5

    if candidate.selector.lower().strip() in context.interacted_elements:
        score -= 4

    return _clamp(score)


def calculate_business_criticality(candidate: ActionCandidate) -> float:
    element = candidate.element
    text = element.text.lower()

    if _has_keyword(text, CTA_KEYWORDS):
        return 10.0
    if _is_form_like(element):
        return 8.0
    if _is_button(element):
        return 6.0
    if _has_keyword(text, NAV_KEYWORDS):
        return 5.0
    if element.tag_name.lower() == "a":
        return 4.0
    return 3.0


def calculate_risk(candidate: ActionCandidate) -> float:
    """
    Likelihood that the action surfaces a bug.

    Destructive wording forces the score to zero so that exploration
    does not delete data or end its own session.
    """
    element = candidate.element
    tag = element.tag_name.lower()
    text = element.text.lower()

    if _has_keyword(text, DESTRUCTIVE_KEYWORDS):
        return 0.0
    if _is_form_like(element) or candidate.action_type == ActionType.FILL:
        return 8.0
    if _is_button(element):
        return 6.0
    if _has_keyword(text, EXPANDABLE_KEYWORDS):
        return 5.0
    if tag == "a":
        return 4.0
    if tag in ("input", "select", "textarea"):
        return 5.0
    return 3.0


def calculate_branch_factor(candidate: ActionCandidate) -> float:
    """Expected number of new states reachable through the action."""
    element = candidate.element
    tag = element.tag_name.lower()

    if tag == "form" or candidate.action_type == ActionType.FILL:
        return 5.0
    if _has_keyword(element.text.lower(), EXPANDABLE_KEYWORDS):
        return 4.0
    if element.href and not element.href.startswith("#"):
        return 3.0
    if _is_button(element):
        return 3.0
    return 2.0


# ============================================================================
# Selector
# ============================================================================


class ActionSelector:
    """
    Scores, ranks and filters action candidates.

    Attempt counts are kept per (action type, selector) and decay the
    score geometrically; once a pair reaches ``max_retries`` it is no
    longer selected.

    Example:
        >>> selector = ActionSelector(settings.action_selector)
        >>> context = build_scoring_context(coverage, url)
        >>> best = selector.select_top_actions(candidates, context, n=3)
    """

    def __init__(self, settings: ActionSelectorSettings | None = None) -> None:
        self.settings = settings or ActionSelectorSettings()
        self._attempts: dict[str, int] = {}

    @staticmethod
    def _attempt_key(selector: str, action_type: ActionType | str) -> str:
        return f"{ActionType(action_type).value}:{selector}"

    def get_attempt_count(self, selector: str, action_type: ActionType | str) -> int:
        return self._attempts.get(self._attempt_key(selector, action_type), 0)

    def record_attempt(self, selector: str, action_type: ActionType | str) -> None:
        key = self._attempt_key(selector, action_type)
        self._attempts[key] = self._attempts.get(key, 0) + 1

    def score_action(self, candidate: ActionCandidate, context: ScoringContext) -> ActionCandidate:
        """Return a scored copy of ``candidate``."""
        s = self.settings
        breakdown = ScoreBreakdown(
            novelty=calculate_novelty(candidate, context),
            business_criticality=calculate_business_criticality(candidate),
            risk=calculate_risk(candidate),
            branch_factor=calculate_branch_factor(candidate),
        )

        base = (
            breakdown.novelty * s.novelty_weight
            + breakdown.business_criticality * s.business_criticality_weight
            + breakdown.risk * s.risk_weight
            + breakdown.branch_factor * s.branch_factor_weight
        )

        if candidate.element.is_disabled:
            base = 0.01
        if candidate.element.enables_submit_button:
            # Fill the input before trying its disabled submit button
            base += 5

        attempts = self.get_attempt_count(candidate.selector, candidate.action_type)
        decay = s.decay_rate**attempts
        type_count = context.action_type_counts.get(ActionType(candidate.action_type).value, 0)
        type_decay = 0.9 if type_count > 10 else 1.0

        priority = base * decay * type_decay * 10
        if candidate.element.is_disabled:
            priority = min(priority, 0.1)

        return replace(
            candidate,
            priority_score=priority,
            score_breakdown=breakdown,
            was_attempted=attempts > 0,
            decay_factor=decay,
        )

    def rank_actions(
        self,
        candidates: list[ActionCandidate],
        context: ScoringContext,
    ) -> list[ActionCandidate]:
        scored = [self.score_action(c, context) for c in candidates]
        scored.sort(key=lambda c: c.priority_score, reverse=True)
        return scored

    def select_top_actions(
        self,
        candidates: list[ActionCandidate],
        context: ScoringContext,
        n: int,
    ) -> list[ActionCandidate]:
        """
        Best ``n`` candidates that are enabled and under the retry limit.
        """
        ranked = self.rank_actions(candidates, context)
        eligible = [
            c
            for c in ranked
            if not c.element.is_disabled
            and self.get_attempt_count(c.selector, c.action_type) < self.settings.max_retries
        ]
        return eligible[:n]

    def get_config(self) -> ActionSelectorSettings:
        return self.settings.model_copy()

    def reset(self) -> None:
        self._attempts.clear()


# ============================================================================
# Helpers
# ============================================================================


def _candidate_from_raw(raw: dict[str, Any]) -> ActionCandidate:
    return ActionCandidate(
        selector=str(raw["selector"]),
        action_type=ActionType(raw.get("actionType", "click")),
        element=ElementInfo.from_dict(raw.get("element") or {}),
    )


async def extract_action_candidates(driver: BrowserDriver) -> list[ActionCandidate]:
    """
    Extract interactive elements from the current page.

    Returns at most 100 candidates, unique by selector. Script failure
    or malformed output yields an empty list.
    """
    try:
        raw = json.loads(await driver.eval(scripts.EXTRACT_CANDIDATES_SCRIPT))
        if not isinstance(raw, list):
            raise ValueError(f"Expected a JSON list, got {type(raw).__name__}")

        candidates: list[ActionCandidate] = []
        seen: set[str] = set()
        for item in raw:
            candidate = _candidate_from_raw(item)
            if candidate.selector in seen:
                continue
            seen.add(candidate.selector)
            candidates.append(candidate)
            if len(candidates) >= 100:
                break
        return candidates

    except Exception as e:
        logger.warning(f"Failed to extract action candidates: {e}")
        return []


def build_scoring_context(
    coverage: CoverageTracker,
    current_url: str,
    base_domain: str | None = None,
) -> ScoringContext:
    metrics = coverage.get_metrics()

    type_counts: dict[str, int] = {}
    for outcome in coverage.get_action_outcomes():
        type_counts[outcome.action_type] = type_counts.get(outcome.action_type, 0) + 1

    return ScoringContext(
        current_url=current_url,
        visited_urls=metrics.unique_urls,
        submitted_forms=metrics.unique_forms,
        opened_dialogs=metrics.unique_dialogs,
        interacted_elements=metrics.interacted_elements,
        action_type_counts=type_counts,
        base_domain=base_domain,
    )


def format_candidate(candidate: ActionCandidate) -> str:
    b = candidate.score_breakdown
    action = ActionType(candidate.action_type).value
    return "\n".join(
        [
            f'[{action}] {candidate.element.tag_name} "{candidate.element.text[:30]}"',
            f"  Score: {candidate.priority_score:.1f} "
            f"(N:{b.novelty:g} B:{b.business_criticality:g} R:{b.risk:g} F:{b.branch_factor:g})",
            f"  Selector: {candidate.selector}",
        ]
    )
