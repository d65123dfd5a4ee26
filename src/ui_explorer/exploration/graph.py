"""
Exploration graph for graph-backed traversal.

Nodes are unique UI states keyed by fingerprint hash; edges are the
actions available from a node. Edges refer to their target by node ID
only, and a node's exploration status is always derived from its edges.
"""

import dataclasses
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

from ui_explorer.exploration.action_selector import ActionCandidate, ActionType, ElementInfo
from ui_explorer.utils.hashing import short_hash
from ui_explorer.utils.logging import get_logger

logger = get_logger(__name__)


class NodeStatus(str, Enum):
    UNEXPLORED = "unexplored"
    PARTIAL = "partial"
    EXHAUSTED = "exhausted"


class EdgeStatus(str, Enum):
    PENDING = "pending"
    EXPLORED = "explored"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class NodeMetadata:
    has_search_box: bool = False
    has_forms: bool = False
    is_main_entry_point: bool = False
    interactive_element_count: int = 0


@dataclass
class EdgeAction:
    type: ActionType
    selector: str
    element: ElementInfo
    value: str | None = None


@dataclass
class GraphEdge:
    """
    An action available from a node.

    ``target_node_id`` stays None until the action has been executed
    and led somewhere known.
    """

    id: str
    source_node_id: str
    action: EdgeAction
    target_node_id: str | None = None
    status: EdgeStatus = EdgeStatus.PENDING
    attempt_count: int = 0
    llm_priority: float | None = None
    llm_rationale: str | None = None
    interaction_hint: str | None = None
    last_error: str | None = None
    last_attempt_at: float | None = None


@dataclass
class GraphNode:
    """A unique UI state and the actions leaving it."""

    id: str
    url: str
    title: str = ""
    dom_summary: str = ""
    actions: list[GraphEdge] = field(default_factory=list)
    visit_count: int = 1
    exploration_status: NodeStatus = NodeStatus.UNEXPLORED
    depth: int = 0
    metadata: NodeMetadata = field(default_factory=NodeMetadata)
    discovered_at: float = field(default_factory=time.time)
    last_visited_at: float = field(default_factory=time.time)


@dataclass
class StackFrame:
    """
    One level of the depth-first traversal.

    ``return_action`` re-establishes this frame's page by replaying
    navigation from the root.
    """

    node_id: str
    pending_edges: list[GraphEdge]
    depth: int
    return_action: Callable[[], Awaitable[None]]


@dataclass
class GraphStats:
    total_nodes: int = 0
    exhausted_nodes: int = 0
    partial_nodes: int = 0
    unexplored_nodes: int = 0
    total_edges: int = 0
    explored_edges: int = 0
    pending_edges: int = 0
    failed_edges: int = 0
    skipped_edges: int = 0
    max_depth: int = 0
    avg_edges_per_node: float = 0.0


def _plain_dict(items: list[tuple[str, Any]]) -> dict[str, Any]:
    return {k: v.value if isinstance(v, Enum) else v for k, v in items}


def generate_edge_id(source_node_id: str, selector: str, action_type: ActionType | str) -> str:
    """Deterministic edge ID from source node, action type and selector."""
    action = ActionType(action_type).value
    return "e_" + short_hash(f"{source_node_id}:{action}:{selector}", length=12)


def calculate_exploration_status(edges: list[GraphEdge]) -> NodeStatus:
    """
    Derive a node's status from its edges.

    Skipped edges count as neither pending nor explored.
    """
    if not edges:
        return NodeStatus.EXHAUSTED

    pending = sum(1 for e in edges if e.status == EdgeStatus.PENDING)
    attempted = sum(1 for e in edges if e.status in (EdgeStatus.EXPLORED, EdgeStatus.FAILED))

    if pending == 0:
        return NodeStatus.EXHAUSTED
    if attempted == 0:
        return NodeStatus.UNEXPLORED
    return NodeStatus.PARTIAL


def candidate_to_edge(candidate: ActionCandidate, source_node_id: str) -> GraphEdge:
    return GraphEdge(
        id=generate_edge_id(source_node_id, candidate.selector, candidate.action_type),
        source_node_id=source_node_id,
        action=EdgeAction(
            type=ActionType(candidate.action_type),
            selector=candidate.selector,
            element=dataclasses.replace(candidate.element),
        ),
    )


class ExplorationGraph:
    """
    Node and edge store for one exploration run.

    Example:
        >>> graph = ExplorationGraph()
        >>> graph.add_node(GraphNode(id=fp.combined_hash, url=url))
        >>> graph.add_edge(fp.combined_hash, candidate_to_edge(candidate, fp.combined_hash))
        >>> graph.get_pending_edges(fp.combined_hash)
    """

    def __init__(self) -> None:
        self._nodes: dict[str, GraphNode] = {}

    def add_node(self, node: GraphNode) -> None:
        """Add ``node`` unless a node with its ID already exists."""
        if node.id in self._nodes:
            return
        node.exploration_status = calculate_exploration_status(node.actions)
        self._nodes[node.id] = node

    def get_node(self, node_id: str) -> GraphNode | None:
        return self._nodes.get(node_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def update_node(self, node_id: str, **updates: Any) -> None:
        node = self._nodes.get(node_id)
        if node is None:
            return
        for key, value in updates.items():
            setattr(node, key, value)
        if "actions" in updates:
            node.exploration_status = calculate_exploration_status(node.actions)

    def record_visit(self, node_id: str) -> None:
        node = self._nodes.get(node_id)
        if node is None:
            return
        node.visit_count += 1
        node.last_visited_at = time.time()

    def add_edge(self, node_id: str, edge: GraphEdge) -> None:
        """Attach ``edge`` to a node; re-adding an existing ID is a no-op."""
        node = self._nodes.get(node_id)
        if node is None:
            return
        if any(e.id == edge.id for e in node.actions):
            return
        node.actions.append(edge)
        node.exploration_status = calculate_exploration_status(node.actions)

    def get_edge(self, node_id: str, edge_id: str) -> GraphEdge | None:
        node = self._nodes.get(node_id)
        if node is None:
            return None
        return next((e for e in node.actions if e.id == edge_id), None)

    def update_edge(self, node_id: str, edge_id: str, **updates: Any) -> None:
        node = self._nodes.get(node_id)
        if node is None:
            return
        edge = self.get_edge(node_id, edge_id)
        if edge is None:
            return
        for key, value in updates.items():
            setattr(edge, key, value)
        node.exploration_status = calculate_exploration_status(node.actions)

    def get_pending_edges(self, node_id: str) -> list[GraphEdge]:
        node = self._nodes.get(node_id)
        if node is None:
            return []
        return [e for e in node.actions if e.status == EdgeStatus.PENDING]

    def get_all_nodes(self) -> list[GraphNode]:
        return list(self._nodes.values())

    def get_stats(self) -> GraphStats:
        nodes = list(self._nodes.values())
        edges = [e for n in nodes for e in n.actions]

        def count_nodes(status: NodeStatus) -> int:
            return sum(1 for n in nodes if n.exploration_status == status)

        def count_edges(status: EdgeStatus) -> int:
            return sum(1 for e in edges if e.status == status)

        return GraphStats(
            total_nodes=len(nodes),
            exhausted_nodes=count_nodes(NodeStatus.EXHAUSTED),
            partial_nodes=count_nodes(NodeStatus.PARTIAL),
            unexplored_nodes=count_nodes(NodeStatus.UNEXPLORED),
            total_edges=len(edges),
            explored_edges=count_edges(EdgeStatus.EXPLORED),
            pending_edges=count_edges(EdgeStatus.PENDING),
            failed_edges=count_edges(EdgeStatus.FAILED),
            skipped_edges=count_edges(EdgeStatus.SKIPPED),
            max_depth=max((n.depth for n in nodes), default=0),
            avg_edges_per_node=len(edges) / len(nodes) if nodes else 0.0,
        )

    def export(self) -> dict[str, list[dict[str, Any]]]:
        """Plain-dict copy of all nodes, suitable for JSON."""
        return {
            "nodes": [
                dataclasses.asdict(n, dict_factory=_plain_dict) for n in self._nodes.values()
            ]
        }

    def clear(self) -> None:
        self._nodes.clear()

    def __len__(self) -> int:
        return len(self._nodes)
