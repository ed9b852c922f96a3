"""Execution engine exception taxonomy.

Structural errors (GraphError) are raised before a run starts and reach the caller.
Everything else is node-local: the scheduler catches it, marks the node as failed
and keeps running independent branches.
"""

from typing import List, Optional


class WorkflowEngineError(Exception):
    """Base class for all execution engine errors."""

    code = "engine_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"code": self.code, "error": self.message}


# =============================================================================
# STRUCTURAL ERRORS
# =============================================================================

class GraphError(WorkflowEngineError):
    """Graph shape is invalid; no execution state is created."""

    code = "invalid_graph"


class NoTriggerNode(GraphError):
    code = "no_trigger_node"

    def __init__(self):
        super().__init__("Workflow has no trigger node")


class MultipleTriggerNodes(GraphError):
    code = "multiple_trigger_nodes"

    def __init__(self, node_ids: List[str]):
        super().__init__(f"Workflow has more than one trigger node: {', '.join(node_ids)}")
        self.node_ids = node_ids


class DuplicateNodeId(GraphError):
    code = "duplicate_node_id"

    def __init__(self, node_id: str):
        super().__init__(f"Duplicate node id: {node_id}")
        self.node_id = node_id


class DanglingEdge(GraphError):
    code = "dangling_edge"

    def __init__(self, edge_id: str, missing: str):
        super().__init__(f"Edge {edge_id} references unknown node: {missing}")
        self.edge_id = edge_id
        self.missing = missing


class CyclicGraph(GraphError):
    code = "cyclic_graph"

    def __init__(self, node_ids: List[str]):
        super().__init__(f"Cycle detected between nodes: {', '.join(sorted(node_ids))}")
        self.node_ids = node_ids


class AmbiguousBranch(GraphError):
    code = "ambiguous_branch"

    def __init__(self, node_id: str, detail: str):
        super().__init__(f"Condition node {node_id} has ambiguous outgoing edges: {detail}")
        self.node_id = node_id


class InvalidBranchTag(GraphError):
    code = "invalid_branch_tag"

    def __init__(self, edge_id: str, detail: str):
        super().__init__(f"Edge {edge_id} has an invalid branch tag: {detail}")
        self.edge_id = edge_id


# =============================================================================
# NODE-LOCAL ERRORS
# =============================================================================

class TemplateResolutionError(WorkflowEngineError):
    """A {{@nodeId:Label.field}} reference could not be resolved."""

    code = "template_resolution_error"

    def __init__(self, message: str, node_id: str, field_path: Optional[str] = None):
        super().__init__(message)
        self.node_id = node_id
        self.field_path = field_path


class UnknownNode(TemplateResolutionError):
    code = "unknown_node"

    def __init__(self, node_id: str):
        super().__init__(f"Referenced node has no output: {node_id}", node_id)


class FieldNotFound(TemplateResolutionError):
    code = "field_not_found"

    def __init__(self, node_id: str, field_path: str, detail: str = ""):
        message = f"Field '{field_path}' not found in output of node {node_id}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message, node_id, field_path)


class ConditionValidationError(WorkflowEngineError):
    """Condition expression was rejected before evaluation."""

    code = "condition_validation_error"


class ConditionEvalError(WorkflowEngineError):
    """A validated condition failed while being evaluated."""

    code = "condition_eval_error"


class StepError(WorkflowEngineError):
    """Opaque failure reported by a step implementation."""

    code = "step_error"


class TransformError(WorkflowEngineError):
    code = "transform_error"


class CancellationError(WorkflowEngineError):
    """The run was cancelled; no further nodes start."""

    code = "cancelled"
