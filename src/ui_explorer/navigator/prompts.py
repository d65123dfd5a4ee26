"""
Prompts for LLM-guided navigation and smart interactions.
"""

from urllib.parse import urljoin, urlparse

from ui_explorer.exploration.graph import GraphEdge, GraphNode
from ui_explorer.llm.prompt_templates import PromptTemplate
from ui_explorer.navigator.models import (
    CoverageContext,
    HeuristicResult,
    HistoryEntry,
    InteractionType,
    SmartInteractionRequest,
)

_DECISION_FORMAT = (
    "Respond with valid JSON in this exact format:\n"
    "{{\n"
    '  "decisions": [\n'
    "    {{\n"
    '      "actionId": "<edge_id>",\n'
    '      "priority": <1-10>,\n'
    '      "rationale": "<brief reason>",\n'
    '      "interactionHint": "<optional: value for search/form fields>"\n'
    "    }}\n"
    "  ],\n"
    '  "branchExhausted": <true if no valuable actions remain>,\n'
    '  "exhaustedReason": "<optional: why branch is exhausted>",\n'
    '  "observations": "<optional: notable observations about the page>"\n'
    "}}"
)


def _interaction_format(wait_hint: str, press_enter: str) -> str:
    return (
        "Respond with valid JSON:\n"
        "{{\n"
        '  "value": "<value to enter>",\n'
        f'  "waitForMs": <time to wait afterwards, typically {wait_hint}>,\n'
        '  "expectation": "<what should happen after the interaction>",\n'
        f'  "pressEnterAfter": {press_enter}\n'
        "}}"
    )


class NavigatorPrompts:
    """Prompt templates for the decision engine."""

    ACTION_SELECTION = PromptTemplate(
        name="action_selection",
        system=(
            "You are an expert web testing agent that explores websites systematically "
            "to maximize coverage. Your goal is to discover all pages, test all interactive "
            "elements and identify potential issues. You decide which actions to prioritize "
            "based on their potential to discover new functionality. "
            "Always respond with valid JSON matching the specified format."
        ),
        user=(
            "You are exploring a website to discover all pages and test all interactive elements.\n\n"
            "CURRENT PAGE:\n"
            "  URL: {url}\n"
            "  Title: {title}\n"
            "  Has Search Box: {has_search_box}\n"
            "  Has Forms: {has_forms}\n"
            "  Interactive Elements: {interactive_count}\n\n"
            "PAGE ELEMENTS SUMMARY:\n{dom_summary}\n\n"
            "AVAILABLE UNEXPLORED ACTIONS ({pending_count}):\n{pending}\n\n"
            "ALREADY EXPLORED FROM THIS PAGE ({explored_count}):\n{explored}\n\n"
            "RECENT EXPLORATION HISTORY:\n{history}\n\n"
            "COVERAGE STATS:\n"
            "  URLs visited: {url_count}\n"
            "  Forms interacted: {form_count}\n"
            "  Searches performed: {search_count}\n"
            "  Total steps: {total_steps}\n"
            "  Current depth: {current_depth}\n\n"
            "TASK: Prioritize the available actions. Consider:\n"
            "1. Actions leading to NEW pages (high priority), especially navigation links\n"
            "2. Search boxes and forms (high priority), which need smart input values\n"
            "3. Main navigation menu items (medium priority)\n"
            "4. Buttons that might open modals or change state (medium priority)\n"
            "5. External links or already-visited URLs (low priority, can skip)\n"
            "6. Disabled elements (skip)\n\n"
            'For search boxes and form inputs, provide an "interactionHint" with a realistic test value.\n\n'
            + _DECISION_FORMAT
            + "\n\nOrder decisions by priority (highest first). "
            "Include at least the top 5 actions if available."
        ),
    )

    COMPACT_ACTION_SELECTION = PromptTemplate(
        name="compact_action_selection",
        system=(
            "You are a web testing agent choosing the next action while exploring a website. "
            "A rule-based pre-filter could not decide between the candidates below. "
            "Pick the action most likely to reveal new pages or functionality. "
            "Always respond with valid JSON matching the specified format."
        ),
        user=(
            "PAGE: {url} ({title})\n"
            "Search box: {has_search_box} | Forms: {has_forms}\n\n"
            "TOP CANDIDATES ({candidate_count}):\n{candidates}\n\n"
            "Pre-filter note: {heuristic_reason}\n"
            "Progress: {url_count} URLs, {total_steps} steps, depth {current_depth}\n\n"
            + _DECISION_FORMAT
        ),
    )

    SEARCH_INTERACTION = PromptTemplate(
        name="search_interaction",
        system=(
            "You are an expert web testing agent generating realistic test data for "
            "form fields and search boxes. Generate appropriate, realistic values that "
            "would effectively test the functionality. "
            "Always respond with valid JSON matching the specified format."
        ),
        user=(
            "You are testing a website's search functionality.\n\n"
            "PAGE: {url}\n"
            'ELEMENT: {element_type} with selector "{selector}"\n'
            "PLACEHOLDER: {placeholder}\n"
            "ARIA-LABEL: {aria_label}\n\n"
            "PAGE CONTEXT:\n{dom_summary}\n\n"
            "Generate a realistic search query that tests the search, fits the apparent "
            "site content and is likely to return results.\n\n"
            + _interaction_format("1500-3000", "<true/false>")
        ),
    )

    FORM_INTERACTION = PromptTemplate(
        name="form_interaction",
        system=SEARCH_INTERACTION.system,
        user=(
            "You are testing a website form.\n\n"
            "PAGE: {url}\n"
            'ELEMENT: {element_type} with selector "{selector}"\n'
            "PLACEHOLDER: {placeholder}\n"
            "ARIA-LABEL: {aria_label}\n\n"
            "PAGE CONTEXT:\n{dom_summary}\n\n"
            "Generate an appropriate test value for this field. Use the placeholder and "
            "label hints and realistic but fake test data.\n\n"
            + _interaction_format("300-500", "false")
        ),
    )

    FILTER_INTERACTION = PromptTemplate(
        name="filter_interaction",
        system=SEARCH_INTERACTION.system,
        user=(
            "You are testing a website's filter or dropdown.\n\n"
            "PAGE: {url}\n"
            'ELEMENT: {element_type} with selector "{selector}"\n'
            "ARIA-LABEL: {aria_label}\n\n"
            "PAGE CONTEXT:\n{dom_summary}\n\n"
            "Suggest a value to select or type to test this filter.\n\n"
            + _interaction_format("1000-2000", "false")
        ),
    )


# ============================================================================
# Formatting helpers
# ============================================================================


def format_edges(edges: list[GraphEdge], max_edges: int = 15) -> str:
    """Numbered one-line-per-edge listing, labelled by edge ID."""
    lines = []
    for i, edge in enumerate(edges[:max_edges], start=1):
        action = edge.action
        element = action.element
        label = (element.text or element.aria_label or element.placeholder or action.selector)[:60]
        href = ""
        if element.href:
            href = f" -> {urlparse(urljoin('http://example.com', element.href)).path}"
        kind = f" ({element.type})" if element.type else ""
        lines.append(
            f"  {i}. [{edge.id}] {action.type.value.upper()} {element.tag_name}{kind}: "
            f'"{label}"{href}'
        )

    if len(edges) > max_edges:
        lines.append(f"  ... and {len(edges) - max_edges} more actions")

    return "\n".join(lines) if lines else "  (None yet)"


def format_history(history: list[HistoryEntry]) -> str:
    if not history:
        return "  (No recent history)"
    return "\n".join(
        f"  {i}. {entry.action} on {entry.url} [{'NEW' if entry.new_state else 'same'}]"
        for i, entry in enumerate(history[-5:], start=1)
    )


def build_action_selection_messages(
    node: GraphNode,
    pending_edges: list[GraphEdge],
    explored_edges: list[GraphEdge],
    coverage: CoverageContext,
    recent_history: list[HistoryEntry],
) -> dict[str, str]:
    """System and user prompts for a full-context decision."""
    return NavigatorPrompts.ACTION_SELECTION.format(
        url=node.url,
        title=node.title,
        has_search_box=node.metadata.has_search_box,
        has_forms=node.metadata.has_forms,
        interactive_count=node.metadata.interactive_element_count,
        dom_summary=node.dom_summary or "(unavailable)",
        pending_count=len(pending_edges),
        pending=format_edges(pending_edges),
        explored_count=len(explored_edges),
        explored=format_edges(explored_edges, max_edges=5),
        history=format_history(recent_history),
        url_count=coverage.url_count,
        form_count=coverage.form_count,
        search_count=coverage.search_count,
        total_steps=coverage.total_steps,
        current_depth=coverage.current_depth,
    )


def build_compact_action_selection_messages(
    node: GraphNode,
    candidates: list[GraphEdge],
    heuristic: HeuristicResult,
    coverage: CoverageContext,
) -> dict[str, str]:
    """Shorter prompt used when the heuristic tier escalates."""
    return NavigatorPrompts.COMPACT_ACTION_SELECTION.format(
        url=node.url,
        title=node.title or "untitled",
        has_search_box=node.metadata.has_search_box,
        has_forms=node.metadata.has_forms,
        candidate_count=len(candidates),
        candidates=format_edges(candidates),
        heuristic_reason=heuristic.reason,
        url_count=coverage.url_count,
        total_steps=coverage.total_steps,
        current_depth=coverage.current_depth,
    )


def build_smart_interaction_messages(request: SmartInteractionRequest) -> dict[str, str]:
    if request.type == InteractionType.SEARCH:
        template = NavigatorPrompts.SEARCH_INTERACTION
    elif request.type == InteractionType.FILTER:
        template = NavigatorPrompts.FILTER_INTERACTION
    else:
        template = NavigatorPrompts.FORM_INTERACTION

    return template.format(
        url=request.url,
        element_type=request.element_type,
        selector=request.selector,
        placeholder=request.placeholder or "(none)",
        aria_label=request.aria_label or "(none)",
        dom_summary=request.dom_summary[:500],
    )
