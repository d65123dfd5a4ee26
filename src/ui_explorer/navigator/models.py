"""
Data types for the decision layer.

LLM responses are validated with pydantic before anything acts on
them; the remaining types are plain dataclasses passed between the
explorers, the heuristic analyzer and the decision engine.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ui_explorer.core.exceptions import LLMResponseError
from ui_explorer.exploration.graph import GraphEdge, GraphNode

ModelT = TypeVar("ModelT", bound=BaseModel)


# ============================================================================
# LLM response schemas
# ============================================================================


class ActionDecision(BaseModel):
    """One prioritized action returned by the model."""

    model_config = ConfigDict(populate_by_name=True)

    action_id: str = Field(alias="actionId")
    priority: float = Field(default=5)
    rationale: str = ""
    interaction_hint: str | None = Field(default=None, alias="interactionHint")


class LLMDecisionResponse(BaseModel):
    """Schema of an action-selection response."""

    model_config = ConfigDict(populate_by_name=True)

    decisions: list[ActionDecision] = Field(default_factory=list)
    branch_exhausted: bool = Field(default=False, alias="branchExhausted")
    exhausted_reason: str | None = Field(default=None, alias="exhaustedReason")
    observations: str | None = None


class SmartInteractionResponse(BaseModel):
    """Schema of a value-synthesis response for a search or form field."""

    model_config = ConfigDict(populate_by_name=True)

    value: str = ""
    wait_for_ms: int = Field(default=1500, ge=0, le=10000, alias="waitForMs")
    expectation: str = "Page should update"
    press_enter_after: bool | None = Field(default=None, alias="pressEnterAfter")


def strip_code_fences(content: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    text = content.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def parse_llm_json(content: str, model: type[ModelT]) -> ModelT:
    """
    Parse and validate a model response.

    Raises:
        LLMResponseError: Content is not JSON or does not match ``model``
    """
    try:
        data = json.loads(strip_code_fences(content))
    except json.JSONDecodeError as e:
        raise LLMResponseError(f"Response is not valid JSON: {e}", raw_response=content) from e

    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise LLMResponseError(
            f"Response does not match {model.__name__} schema",
            raw_response=content,
            details={"errors": e.error_count()},
        ) from e


# ============================================================================
# Decision types
# ============================================================================


class HeuristicDecisionType(str, Enum):
    SELECT_ACTION = "select_action"
    BACKTRACK = "backtrack"
    UNCERTAIN = "uncertain"


@dataclass
class HeuristicResult:
    decision: HeuristicDecisionType
    confidence: int
    reason: str
    selected_edge_id: str | None = None
    score_ratio: float | None = None
    candidate_count: int = 0
    matched_pattern: str | None = None


class DecisionSource(str, Enum):
    HEURISTIC = "heuristic"
    LLM = "llm"
    FALLBACK = "fallback"


@dataclass
class DecisionResult:
    """
    Outcome of one ``DecisionEngine.select_action`` call.

    ``top_action`` is None exactly when ``branch_exhausted`` is set.
    """

    top_action: GraphEdge | None
    all_decisions: list[ActionDecision] = field(default_factory=list)
    branch_exhausted: bool = False
    exhausted_reason: str | None = None
    interaction_hint: str | None = None
    source: DecisionSource = DecisionSource.HEURISTIC


@dataclass
class CoverageContext:
    url_count: int = 0
    form_count: int = 0
    search_count: int = 0
    total_steps: int = 0
    current_depth: int = 0


@dataclass
class HistoryEntry:
    url: str
    action: str
    new_state: bool


@dataclass
class DecisionContext:
    """Everything the decision layer sees for one choice."""

    node: GraphNode
    pending_edges: list[GraphEdge]
    coverage: CoverageContext = field(default_factory=CoverageContext)
    recent_history: list[HistoryEntry] = field(default_factory=list)
    visited_urls: set[str] = field(default_factory=set)


# ============================================================================
# Smart interactions
# ============================================================================


class InteractionType(str, Enum):
    SEARCH = "search"
    FORM = "form"
    FILTER = "filter"
    LOGIN = "login"


@dataclass
class SmartInteractionRequest:
    type: InteractionType
    url: str
    selector: str
    dom_summary: str = ""
    element_type: str = ""
    placeholder: str = ""
    aria_label: str = ""


@dataclass
class SmartInteractionPlan:
    """Resolved value and follow-up for a smart interaction."""

    value: str
    wait_for_ms: int
    expectation: str
    press_enter_after: bool


@dataclass
class SmartInteractionResult:
    success: bool
    value: str
    state_changed: bool = False
    error: str | None = None
    plan: SmartInteractionPlan | None = None
