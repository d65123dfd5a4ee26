"""
Navigator module for UI Explorer.

Heuristic-first decision layer: deterministic rules decide clear-cut
cases, the LLM is consulted only when they are not confident, and
search/form fields get synthesized input values.
"""

from ui_explorer.navigator.models import (
    DecisionContext,
    DecisionResult,
    DecisionSource,
    HeuristicDecisionType,
    HeuristicResult,
    InteractionType,
    SmartInteractionRequest,
)
from ui_explorer.navigator.heuristic import HeuristicAnalyzer
from ui_explorer.navigator.decision_engine import DecisionEngine, create_decision_engine
from ui_explorer.navigator.smart_interactions import (
    apply_interaction_plan,
    detect_interaction_type,
    execute_smart_interaction,
    get_default_interaction,
    needs_smart_interaction,
)

__all__ = [
    "DecisionContext",
    "DecisionResult",
    "DecisionSource",
    "HeuristicDecisionType",
    "HeuristicResult",
    "InteractionType",
    "SmartInteractionRequest",
    "HeuristicAnalyzer",
    "DecisionEngine",
    "create_decision_engine",
    "apply_interaction_plan",
    "detect_interaction_type",
    "execute_smart_interaction",
    "get_default_interaction",
    "needs_smart_interaction",
]
