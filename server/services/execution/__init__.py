"""Execution engine package.

Workflow graph execution with:
- Structural validation before any state exists (graph.py)
- Continuous scheduling of ready nodes with dead-path elimination (executor.py)
- Sandboxed condition expressions with JavaScript semantics (conditions.py)
- Pluggable execution recording (recorder.py)

Only the dependency-free modules are re-exported here; import the executor and
the condition sandbox from their modules, since both depend on
services.parameter_resolver, which in turn imports this package's errors.
"""

from .models import (
    NodeKind,
    NodeStatus,
    ExecutionStatus,
    EdgeResolution,
    Node,
    Edge,
    WorkflowGraph,
    ValidatedGraph,
    ExecutionState,
    NodeOutcome,
    ExecutionResult,
)
from .errors import (
    WorkflowEngineError,
    GraphError,
    NoTriggerNode,
    MultipleTriggerNodes,
    DuplicateNodeId,
    DanglingEdge,
    CyclicGraph,
    AmbiguousBranch,
    InvalidBranchTag,
    TemplateResolutionError,
    UnknownNode,
    FieldNotFound,
    ConditionValidationError,
    ConditionEvalError,
    StepError,
    TransformError,
    CancellationError,
)
from .graph import validate_graph

__all__ = [
    # Models
    "NodeKind",
    "NodeStatus",
    "ExecutionStatus",
    "EdgeResolution",
    "Node",
    "Edge",
    "WorkflowGraph",
    "ValidatedGraph",
    "ExecutionState",
    "NodeOutcome",
    "ExecutionResult",
    # Errors
    "WorkflowEngineError",
    "GraphError",
    "NoTriggerNode",
    "MultipleTriggerNodes",
    "DuplicateNodeId",
    "DanglingEdge",
    "CyclicGraph",
    "AmbiguousBranch",
    "InvalidBranchTag",
    "TemplateResolutionError",
    "UnknownNode",
    "FieldNotFound",
    "ConditionValidationError",
    "ConditionEvalError",
    "StepError",
    "TransformError",
    "CancellationError",
    # Graph
    "validate_graph",
]
