"""
Heuristic analyzer: the fast, deterministic decision tier.

Clear-cut choices (a single option, a dominant score, a call-to-action
button, a navigation link to a new page) are decided here with a
confidence score. Anything below the acceptance threshold is reported
as ``uncertain`` and may be escalated to the LLM.
"""

from ui_explorer.config.settings import ActionSelectorSettings, NavigatorSettings
from ui_explorer.exploration.action_selector import (
    ActionCandidate,
    ActionSelector,
    ScoringContext,
)
from ui_explorer.exploration.graph import EdgeStatus, GraphEdge, GraphNode
from ui_explorer.navigator.models import HeuristicDecisionType, HeuristicResult
from ui_explorer.utils.logging import get_logger
from ui_explorer.utils.urls import normalize_url, resolve_url

logger = get_logger(__name__)

CTA_KEYWORDS = [
    "sign up", "signup", "register", "create account",
    "get started", "try free", "start free",
    "buy now", "purchase", "checkout", "add to cart",
    "subscribe", "upgrade", "pro", "premium",
    "download", "install", "get app",
    "contact", "book", "schedule", "demo",
    "submit", "send", "confirm", "save",
    "next", "continue", "proceed",
    "login", "log in", "sign in",
]

NAV_KEYWORDS = [
    "home", "about", "contact", "pricing", "features",
    "products", "services", "blog", "news",
    "support", "help", "faq", "docs", "documentation",
    "dashboard", "account", "profile", "settings",
]


def is_cta_button(edge: GraphEdge) -> bool:
    element = edge.action.element
    is_button = element.tag_name.lower() == "button" or element.role == "button"
    text = element.text.lower()
    return is_button and any(kw in text for kw in CTA_KEYWORDS)


def is_navigation_link(edge: GraphEdge) -> bool:
    element = edge.action.element
    is_link = element.tag_name.lower() == "a" or bool(element.href)
    text = element.text.lower()
    return is_link and any(kw in text for kw in NAV_KEYWORDS)


def leads_to_novel_url(edge: GraphEdge, visited_urls: set[str], current_url: str) -> bool:
    """True if the edge links to a URL not in ``visited_urls`` (normalized)."""
    href = edge.action.element.href
    if not href:
        return False
    target = resolve_url(href, current_url)
    if target is None:
        return False
    return normalize_url(target) not in visited_urls


def edge_to_candidate(edge: GraphEdge) -> ActionCandidate:
    return ActionCandidate(
        selector=edge.action.selector,
        action_type=edge.action.type,
        element=edge.action.element,
        was_attempted=edge.attempt_count > 0,
    )


class HeuristicAnalyzer:
    """
    Rule-based decision maker over a node's pending edges.

    Rules are evaluated in a fixed order and the first match wins:

    1. no pending edges: backtrack (100)
    2. one pending edge: take it (100)
    3. dominant score: top > 30 and >= ratio x second (95)
    4. top edge is a CTA button (90)
    5. top edge is a navigation link to a new URL (85)
    6. top > 20 and links to a new URL (80)
    7. top > 25 and >= 1.5 x second (75)

    Otherwise the result is ``uncertain`` with confidence 0.

    Example:
        >>> analyzer = HeuristicAnalyzer(settings.navigator)
        >>> result = analyzer.analyze(node, pending, explored, visited_urls)
        >>> if analyzer.should_accept(result):
        ...     edge_id = result.selected_edge_id
    """

    def __init__(
        self,
        settings: NavigatorSettings | None = None,
        selector_settings: ActionSelectorSettings | None = None,
    ) -> None:
        self.settings = settings or NavigatorSettings()
        self._selector = ActionSelector(selector_settings)

    def _rank(
        self,
        edges: list[GraphEdge],
        current_url: str,
        visited_urls: set[str],
        interacted: set[str] | None = None,
    ) -> list[ActionCandidate]:
        context = ScoringContext(
            current_url=current_url,
            visited_urls=visited_urls,
            interacted_elements=interacted or set(),
        )
        return self._selector.rank_actions([edge_to_candidate(e) for e in edges], context)

    def analyze(
        self,
        node: GraphNode,
        pending_edges: list[GraphEdge],
        explored_edges: list[GraphEdge],
        visited_urls: set[str],
    ) -> HeuristicResult:
        if not pending_edges:
            return HeuristicResult(
                decision=HeuristicDecisionType.BACKTRACK,
                confidence=100,
                reason="no_pending_actions",
            )

        if len(pending_edges) == 1:
            return HeuristicResult(
                decision=HeuristicDecisionType.SELECT_ACTION,
                confidence=100,
                reason="only_option",
                selected_edge_id=pending_edges[0].id,
                candidate_count=1,
            )

        interacted = {e.action.selector.lower().strip() for e in explored_edges}
        ranked = self._rank(pending_edges, node.url, visited_urls, interacted)

        top = ranked[0]
        top_score = top.priority_score
        second_score = ranked[1].priority_score if len(ranked) > 1 else 0.0
        ratio = top_score / second_score if second_score > 0 else float("inf")
        count = len(pending_edges)

        top_edge = next(
            (
                e
                for e in pending_edges
                if e.action.selector == top.selector and e.action.type == top.action_type
            ),
            None,
        )
        if top_edge is None:
            return HeuristicResult(
                decision=HeuristicDecisionType.UNCERTAIN,
                confidence=0,
                reason="edge_not_found",
                candidate_count=count,
            )

        def select(confidence: int, reason: str, pattern: str | None = None) -> HeuristicResult:
            return HeuristicResult(
                decision=HeuristicDecisionType.SELECT_ACTION,
                confidence=confidence,
                reason=reason,
                selected_edge_id=top_edge.id,
                score_ratio=ratio,
                candidate_count=count,
                matched_pattern=pattern,
            )

        if top_score > 30 and top_score >= self.settings.dominant_score_ratio * second_score:
            return select(95, "dominant_score")

        if is_cta_button(top_edge):
            return select(90, "cta_button", "cta")

        novel = leads_to_novel_url(top_edge, visited_urls, node.url)

        if novel and is_navigation_link(top_edge):
            return select(85, "navigation_to_new_url", "nav_link")

        if top_score > 20 and novel:
            return select(80, "novel_url_exploration")

        if top_score > 25 and top_score >= 1.5 * second_score:
            return select(75, "high_score_clear_leader")

        logger.debug(
            f"No heuristic rule matched at {node.url}: top={top_score:.1f}, second={second_score:.1f}"
        )
        return HeuristicResult(
            decision=HeuristicDecisionType.UNCERTAIN,
            confidence=0,
            reason="multiple_viable_candidates",
            score_ratio=ratio,
            candidate_count=count,
        )

    def should_accept(self, result: HeuristicResult) -> bool:
        return result.confidence >= self.settings.heuristic_confidence_threshold

    def get_top_candidates_for_ai(
        self,
        pending_edges: list[GraphEdge],
        visited_urls: set[str],
        current_url: str,
        n: int = 5,
    ) -> list[GraphEdge]:
        """Best ``n`` pending edges by score, in ranked order."""
        ranked = self._rank(pending_edges, current_url, visited_urls)
        by_key = {(e.action.selector, e.action.type): e for e in pending_edges}
        top: list[GraphEdge] = []
        for candidate in ranked[:n]:
            edge = by_key.get((candidate.selector, candidate.action_type))
            if edge is not None:
                top.append(edge)
        return top


def split_edges(edges: list[GraphEdge]) -> tuple[list[GraphEdge], list[GraphEdge]]:
    """Split a node's edges into (pending, explored-or-failed)."""
    pending = [e for e in edges if e.status == EdgeStatus.PENDING]
    attempted = [e for e in edges if e.status in (EdgeStatus.EXPLORED, EdgeStatus.FAILED)]
    return pending, attempted
