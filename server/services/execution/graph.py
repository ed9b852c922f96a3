"""Structural validation of workflow graphs.

validate_graph() is the only way to obtain a ValidatedGraph, so the scheduler can
rely on: exactly one trigger, unique node ids, no dangling edges, no cycles and
unambiguous condition branches.
"""

from collections import defaultdict
from typing import Dict, List, Tuple

from core.logging import get_logger
from constants import BRANCH_VALUES
from .errors import (
    NoTriggerNode,
    MultipleTriggerNodes,
    DuplicateNodeId,
    DanglingEdge,
    CyclicGraph,
    AmbiguousBranch,
    InvalidBranchTag,
)
from .models import Edge, Node, NodeKind, ValidatedGraph, WorkflowGraph

logger = get_logger(__name__)


def validate_graph(graph: WorkflowGraph) -> ValidatedGraph:
    """Check graph structure and build the scheduler indexes.

    Args:
        graph: Workflow graph to validate

    Returns:
        ValidatedGraph with node map, edge lists and topological order

    Raises:
        GraphError: one of the structural error subclasses
    """
    nodes_by_id: Dict[str, Node] = {}
    for node in graph.nodes:
        if node.id in nodes_by_id:
            raise DuplicateNodeId(node.id)
        nodes_by_id[node.id] = node

    triggers = [node.id for node in graph.nodes if node.kind == NodeKind.TRIGGER]
    if not triggers:
        raise NoTriggerNode()
    if len(triggers) > 1:
        raise MultipleTriggerNodes(triggers)

    outgoing: Dict[str, List[Edge]] = defaultdict(list)
    incoming: Dict[str, List[Edge]] = defaultdict(list)

    for edge in graph.edges:
        if edge.source not in nodes_by_id:
            raise DanglingEdge(edge.id, edge.source)
        if edge.target not in nodes_by_id:
            raise DanglingEdge(edge.id, edge.target)
        outgoing[edge.source].append(edge)
        incoming[edge.target].append(edge)

    for node_id, edges in outgoing.items():
        _check_branch_tags(nodes_by_id[node_id], edges)

    order = _topological_order(list(nodes_by_id), outgoing)

    logger.debug("Graph validated",
                 trigger=triggers[0],
                 node_count=len(nodes_by_id),
                 edge_count=len(graph.edges))

    return ValidatedGraph(
        graph=graph,
        trigger_id=triggers[0],
        nodes_by_id=nodes_by_id,
        outgoing={k: tuple(v) for k, v in outgoing.items()},
        incoming={k: tuple(v) for k, v in incoming.items()},
        topological_order=order,
    )


def _check_branch_tags(node: Node, edges: List[Edge]) -> None:
    """Branch tags are only legal on edges leaving a condition node."""
    for edge in edges:
        if edge.branch is None:
            continue
        if node.kind != NodeKind.CONDITION:
            raise InvalidBranchTag(edge.id, f"source {node.id} is not a condition node")
        if edge.branch not in BRANCH_VALUES:
            raise InvalidBranchTag(edge.id, f"expected 'true' or 'false', got {edge.branch!r}")

    if node.kind != NodeKind.CONDITION:
        return

    tags = [edge.branch for edge in edges]
    tagged = [t for t in tags if t is not None]
    if tagged and len(tagged) != len(tags):
        raise AmbiguousBranch(node.id, "mixes tagged and untagged edges")
    if len(set(tagged)) != len(tagged):
        duplicate = next(t for t in tagged if tagged.count(t) > 1)
        raise AmbiguousBranch(node.id, f"more than one '{duplicate}' edge")


def _topological_order(node_ids: List[str],
                       outgoing: Dict[str, List[Edge]]) -> Tuple[str, ...]:
    """Kahn's algorithm; raises CyclicGraph with the nodes left over."""
    in_degree: Dict[str, int] = {node_id: 0 for node_id in node_ids}
    for edges in outgoing.values():
        for edge in edges:
            in_degree[edge.target] += 1

    queue = [node_id for node_id in node_ids if in_degree[node_id] == 0]
    order: List[str] = []

    while queue:
        node_id = queue.pop(0)
        order.append(node_id)
        for edge in outgoing.get(node_id, ()):
            in_degree[edge.target] -= 1
            if in_degree[edge.target] == 0:
                queue.append(edge.target)

    if len(order) != len(node_ids):
        remaining = [node_id for node_id in node_ids if node_id not in set(order)]
        logger.warning("Cycle detected", remaining=remaining)
        raise CyclicGraph(remaining)

    return tuple(order)
