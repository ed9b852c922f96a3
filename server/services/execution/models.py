"""Execution engine state models.

Graph input types are immutable dataclasses; ExecutionState is the one mutable
structure of a run and is owned by the scheduler's controller coroutine.
All result models are JSON-serializable for the recorder and the HTTP layer.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional, Set, Tuple

from constants import (
    NODE_KIND_TRIGGER,
    NODE_KIND_ACTION,
    NODE_KIND_CONDITION,
    NODE_KIND_TRANSFORM,
)


class NodeKind(str, Enum):
    """Closed set of node variants."""
    TRIGGER = NODE_KIND_TRIGGER
    ACTION = NODE_KIND_ACTION
    CONDITION = NODE_KIND_CONDITION
    TRANSFORM = NODE_KIND_TRANSFORM


class NodeStatus(str, Enum):
    """Node execution states.

    State transitions:
        PENDING -> RUNNING -> SUCCESS
                           -> ERROR
                           -> CANCELLED
    A node that is never reached stays PENDING.
    """
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"


class ExecutionStatus(str, Enum):
    """Workflow execution states."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"


class EdgeResolution(str, Enum):
    """How an edge was settled once its source finished (or was skipped)."""
    TAKEN = "taken"
    DEAD_BRANCH = "dead_branch"    # Condition chose the other branch
    DEAD_ERROR = "dead_error"      # Source (or an ancestor) failed


@dataclass(frozen=True)
class Node:
    """One vertex of the workflow graph."""
    id: str
    kind: NodeKind
    label: str = ""
    step_id: Optional[str] = None        # trigger/action
    condition: Any = None                # condition nodes
    transform_type: Optional[str] = None  # transform nodes
    config: Dict[str, Any] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        """Human readable name for logs."""
        if self.label:
            return self.label
        if self.kind in (NodeKind.TRIGGER, NodeKind.ACTION) and self.step_id:
            return self.step_id
        if self.kind == NodeKind.TRANSFORM and self.transform_type:
            return self.transform_type
        return self.kind.value

    def meta(self) -> Dict[str, Any]:
        """Node metadata passed to the recorder."""
        return {
            "node_id": self.id,
            "node_name": self.display_name,
            "node_type": self.kind.value,
            "step_id": self.step_id,
        }


@dataclass(frozen=True)
class Edge:
    """Directed link between two nodes, optionally tagged with a condition branch."""
    id: str
    source: str
    target: str
    branch: Optional[str] = None


@dataclass(frozen=True)
class WorkflowGraph:
    """Immutable input to one execution."""
    nodes: Tuple[Node, ...]
    edges: Tuple[Edge, ...]

    @classmethod
    def create(cls, nodes: List[Node], edges: List[Edge]) -> "WorkflowGraph":
        return cls(nodes=tuple(nodes), edges=tuple(edges))


@dataclass(frozen=True)
class ValidatedGraph:
    """A graph that passed structural validation, with lookup indexes.

    Only services.execution.graph.validate_graph constructs this.
    """
    graph: WorkflowGraph
    trigger_id: str
    nodes_by_id: Dict[str, Node]
    outgoing: Dict[str, Tuple[Edge, ...]]
    incoming: Dict[str, Tuple[Edge, ...]]
    topological_order: Tuple[str, ...]

    def node(self, node_id: str) -> Node:
        return self.nodes_by_id[node_id]

    @property
    def trigger(self) -> Node:
        return self.nodes_by_id[self.trigger_id]


@dataclass
class ExecutionState:
    """Mutable state of one run, owned exclusively by the scheduler.

    pending_incoming counts incoming edges not yet resolved; taken_incoming counts
    the resolved ones that were taken; error_blocked holds nodes with at least one
    incoming edge that died because of an upstream failure.
    """
    execution_id: str
    outputs: Dict[str, Any] = field(default_factory=dict)
    status: Dict[str, NodeStatus] = field(default_factory=dict)
    pending_incoming: Dict[str, int] = field(default_factory=dict)
    taken_incoming: Dict[str, int] = field(default_factory=dict)
    error_blocked: Set[str] = field(default_factory=set)
    unreached: Set[str] = field(default_factory=set)
    overall: ExecutionStatus = ExecutionStatus.PENDING
    errors: List[Dict[str, Any]] = field(default_factory=list)
    started_order: List[str] = field(default_factory=list)
    last_output: Any = None
    started_at: float = field(default_factory=time.time)
    completed_at: Optional[float] = None

    @classmethod
    def create(cls, execution_id: str, graph: ValidatedGraph) -> "ExecutionState":
        state = cls(execution_id=execution_id)
        for node_id in graph.topological_order:
            state.status[node_id] = NodeStatus.PENDING
            state.pending_incoming[node_id] = len(graph.incoming.get(node_id, ()))
            state.taken_incoming[node_id] = 0
        return state

    def try_start(self, node_id: str) -> bool:
        """Transition pending -> running exactly once."""
        if self.status.get(node_id) != NodeStatus.PENDING:
            return False
        self.status[node_id] = NodeStatus.RUNNING
        self.started_order.append(node_id)
        return True

    def nodes_with_status(self, status: NodeStatus) -> List[str]:
        return [node_id for node_id, s in self.status.items() if s == status]

    def has_errors(self) -> bool:
        return any(s == NodeStatus.ERROR for s in self.status.values())

    @property
    def duration_ms(self) -> int:
        end = self.completed_at or time.time()
        return int((end - self.started_at) * 1000)


@dataclass
class NodeOutcome:
    """What a node task hands back to the controller at its join point."""
    node_id: str
    success: bool
    output: Any = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    branch: Optional[str] = None
    duration_ms: int = 0


@dataclass
class ExecutionResult:
    """Final outcome of one workflow run."""
    execution_id: str
    status: ExecutionStatus
    outputs: Dict[str, Any] = field(default_factory=dict)
    node_statuses: Dict[str, NodeStatus] = field(default_factory=dict)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    unreached: List[str] = field(default_factory=list)
    started_order: List[str] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def success(self) -> bool:
        return self.status == ExecutionStatus.SUCCESS

    @classmethod
    def from_state(cls, state: ExecutionState) -> "ExecutionResult":
        return cls(
            execution_id=state.execution_id,
            status=state.overall,
            outputs=dict(state.outputs),
            node_statuses=dict(state.status),
            errors=list(state.errors),
            unreached=sorted(state.unreached),
            started_order=list(state.started_order),
            duration_ms=state.duration_ms,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "success": self.success,
            "execution_id": self.execution_id,
            "status": self.status.value,
            "outputs": self.outputs,
            "node_statuses": {k: v.value for k, v in self.node_statuses.items()},
            "errors": self.errors,
            "unreached": self.unreached,
            "duration_ms": self.duration_ms,
        }
