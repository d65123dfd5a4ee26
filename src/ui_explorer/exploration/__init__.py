"""
Exploration module for UI Explorer.

Provides the per-run trackers and the two search loops:
- State fingerprinting and deduplication
- Coverage and budget accounting
- Multi-factor action scoring
- Exploration graph
- Beam-search and LLM-guided graph explorers
"""

from ui_explorer.exploration.state import (
    StateFingerprint,
    StateTracker,
    capture_state_fingerprint,
    fingerprint_similarity,
)
from ui_explorer.exploration.coverage import (
    CoverageGain,
    CoverageSnapshot,
    CoverageTracker,
    collect_page_coverage,
)
from ui_explorer.exploration.budget import (
    BudgetStatus,
    BudgetTracker,
    ExhaustionReason,
)
from ui_explorer.exploration.action_selector import (
    ActionCandidate,
    ActionSelector,
    ActionType,
    ElementInfo,
    extract_action_candidates,
)
from ui_explorer.exploration.graph import (
    EdgeStatus,
    ExplorationGraph,
    GraphEdge,
    GraphNode,
    NodeStatus,
)
from ui_explorer.exploration.explorer import (
    ExplorationCallbacks,
    ExplorationResult,
    ExplorationStep,
    Explorer,
    TerminationReason,
    create_explorer,
)
from ui_explorer.exploration.llm_explorer import (
    LLMExplorationResult,
    LLMExplorer,
    create_llm_explorer,
)

__all__ = [
    # State
    "StateFingerprint",
    "StateTracker",
    "capture_state_fingerprint",
    "fingerprint_similarity",
    # Coverage
    "CoverageGain",
    "CoverageSnapshot",
    "CoverageTracker",
    "collect_page_coverage",
    # Budget
    "BudgetStatus",
    "BudgetTracker",
    "ExhaustionReason",
    # Actions
    "ActionCandidate",
    "ActionSelector",
    "ActionType",
    "ElementInfo",
    "extract_action_candidates",
    # Graph
    "EdgeStatus",
    "ExplorationGraph",
    "GraphEdge",
    "GraphNode",
    "NodeStatus",
    # Explorers
    "ExplorationCallbacks",
    "ExplorationResult",
    "ExplorationStep",
    "Explorer",
    "TerminationReason",
    "create_explorer",
    "LLMExplorationResult",
    "LLMExplorer",
    "create_llm_explorer",
]
