"""Graph projector — canonical (registry, tree) to positioned nodes + edges.

Depth-first from root at depth 0. The column counter advances once per leaf
placement (a condition, a missing-condition placeholder, or an empty group);
``x = column * COLUMN_WIDTH`` and ``y = depth * ROW_HEIGHT``. Each node id is
emitted at most once and each (source, target) edge at most once, even when
malformed input repeats an id.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from strategy_model import Condition, ConditionRef, LogicGroup, LogicNode
from ui.services.node_actions import condition_callbacks, group_callbacks, missing_callbacks

logger = logging.getLogger(__name__)

ROW_HEIGHT = 180
COLUMN_WIDTH = 320
NODE_WIDTH = 280
NODE_HEIGHT = 132
EDGE_THICKNESS = 2

NODE_CONDITION = "condition"
NODE_GROUP = "group"
NODE_MISSING = "missing"


@dataclass
class FlowNode:
    id: str
    kind: str
    x: int
    y: int
    depth: int
    parent_id: Optional[str] = None
    condition: Optional[Condition] = None
    group: Optional[LogicGroup] = None
    callbacks: Dict[str, Callable] = field(default_factory=dict)

    @property
    def is_root(self) -> bool:
        return self.kind == NODE_GROUP and self.parent_id is None


@dataclass(frozen=True)
class FlowEdge:
    source: str
    target: str

    @property
    def id(self) -> str:
        return f"{self.source}-{self.target}"


@dataclass
class GraphProjection:
    nodes: List[FlowNode] = field(default_factory=list)
    edges: List[FlowEdge] = field(default_factory=list)

    def node(self, node_id: str) -> Optional[FlowNode]:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    @property
    def width(self) -> int:
        return max((n.x for n in self.nodes), default=0) + COLUMN_WIDTH

    @property
    def height(self) -> int:
        return max((n.y for n in self.nodes), default=0) + ROW_HEIGHT


def _node_id(node: LogicNode) -> Optional[str]:
    if isinstance(node, ConditionRef):
        return node.ref
    return node.id


def project_graph(registry: Sequence[Condition], tree: LogicGroup,
                  actions=None) -> GraphProjection:
    """Project the logic tree for the visual canvas.

    ``actions`` is the editor session (or any object with the same mutator
    methods); when given, every node carries callbacks bound to its id.
    """
    by_id = {c.id: c for c in registry}
    projection = GraphProjection()
    visited_nodes: Set[str] = set()
    visited_edges: Set[Tuple[str, str]] = set()
    column = 0

    def add_edge(source: str, target: str):
        if (source, target) in visited_edges:
            return
        visited_edges.add((source, target))
        projection.edges.append(FlowEdge(source=source, target=target))

    def traverse(node: LogicNode, parent_id: Optional[str], depth: int):
        nonlocal column
        node_id = _node_id(node)
        if not node_id:
            logger.debug("Skipping group without id at depth %d", depth)
            return
        if node_id in visited_nodes:
            logger.warning("Duplicate node id %s in logic tree, skipped", node_id)
            return
        visited_nodes.add(node_id)
        x, y = column * COLUMN_WIDTH, depth * ROW_HEIGHT

        if isinstance(node, ConditionRef):
            condition = by_id.get(node_id)
            if condition is not None:
                projection.nodes.append(FlowNode(
                    id=node_id, kind=NODE_CONDITION, x=x, y=y, depth=depth,
                    parent_id=parent_id, condition=condition,
                    callbacks=condition_callbacks(actions, node_id),
                ))
            else:
                projection.nodes.append(FlowNode(
                    id=node_id, kind=NODE_MISSING, x=x, y=y, depth=depth,
                    parent_id=parent_id,
                    callbacks=missing_callbacks(actions, node_id),
                ))
            column += 1
            return

        projection.nodes.append(FlowNode(
            id=node_id, kind=NODE_GROUP, x=x, y=y, depth=depth,
            parent_id=parent_id, group=node,
            callbacks=group_callbacks(actions, node_id, is_root=parent_id is None),
        ))
        if parent_id:
            add_edge(parent_id, node_id)

        if not node.children:
            column += 1
            return
        for child in node.children:
            child_id = _node_id(child)
            if child_id:
                add_edge(node_id, child_id)
                traverse(child, node_id, depth + 1)

    traverse(tree, None, 0)
    return projection


def elbow_segments(source: FlowNode, target: FlowNode) -> List[Tuple[int, int, int, int]]:
    """Connector from the bottom of ``source`` to the top of ``target``.

    Returns (left, top, width, height) rectangles: down, across, down.
    """
    sx = source.x + NODE_WIDTH // 2
    tx = target.x + NODE_WIDTH // 2
    top = source.y + NODE_HEIGHT
    bottom = target.y
    mid = top + (bottom - top) // 2
    t = EDGE_THICKNESS
    return [
        (sx, top, t, mid - top),
        (min(sx, tx), mid, abs(tx - sx) + t, t),
        (tx, mid, t, bottom - mid),
    ]
