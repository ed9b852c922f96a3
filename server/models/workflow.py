"""Pydantic models for workflow graphs with discriminated unions.

Request bodies are parsed into one model per node kind (selected by the `kind`
field) and converted to the engine's immutable dataclasses with to_graph().
"""

from typing import Literal, Union, Annotated, Optional, Dict, Any, List
from pydantic import BaseModel, Field

from constants import DEFAULT_TRIGGER_TYPE
from services.execution.models import Edge, Node, NodeKind, WorkflowGraph


# =============================================================================
# NODE MODELS
# =============================================================================

class BaseNodeModel(BaseModel):
    """Fields shared by all node kinds."""
    model_config = {"populate_by_name": True}

    id: str = Field(min_length=1)
    label: str = ""
    config: Dict[str, Any] = Field(default_factory=dict)


class TriggerNodeModel(BaseNodeModel):
    """Workflow starting point."""
    kind: Literal["trigger"]
    step_id: str = Field(default=DEFAULT_TRIGGER_TYPE, alias="stepId")

    def to_node(self) -> Node:
        return Node(id=self.id, kind=NodeKind.TRIGGER, label=self.label,
                    step_id=self.step_id, config=self.config)


class ActionNodeModel(BaseNodeModel):
    """Invokes a registered step."""
    kind: Literal["action"]
    step_id: str = Field(alias="stepId", min_length=1)

    def to_node(self) -> Node:
        return Node(id=self.id, kind=NodeKind.ACTION, label=self.label,
                    step_id=self.step_id, config=self.config)


class ConditionNodeModel(BaseNodeModel):
    """Branches on a boolean expression."""
    kind: Literal["condition"]
    condition: Union[bool, str, None] = None

    def to_node(self) -> Node:
        return Node(id=self.id, kind=NodeKind.CONDITION, label=self.label,
                    condition=self.condition, config=self.config)


class TransformNodeModel(BaseNodeModel):
    """Applies a named transform to its resolved config."""
    kind: Literal["transform"]
    transform_type: str = Field(alias="transformType", min_length=1)

    def to_node(self) -> Node:
        return Node(id=self.id, kind=NodeKind.TRANSFORM, label=self.label,
                    transform_type=self.transform_type, config=self.config)


NodeModel = Annotated[
    Union[TriggerNodeModel, ActionNodeModel, ConditionNodeModel, TransformNodeModel],
    Field(discriminator="kind"),
]


class EdgeModel(BaseModel):
    """Directed edge, optionally tagged with a condition branch."""
    model_config = {"populate_by_name": True}

    id: Optional[str] = None
    source: str
    target: str
    branch: Optional[str] = Field(default=None, alias="sourceHandle")


# =============================================================================
# REQUEST MODELS
# =============================================================================

class WorkflowGraphRequest(BaseModel):
    """Workflow graph as sent by clients."""
    model_config = {"populate_by_name": True}

    nodes: List[NodeModel]
    edges: List[EdgeModel] = Field(default_factory=list)

    def to_graph(self) -> WorkflowGraph:
        nodes = [node.to_node() for node in self.nodes]
        edges = [
            Edge(id=edge.id or f"e{index}-{edge.source}-{edge.target}",
                 source=edge.source, target=edge.target, branch=edge.branch)
            for index, edge in enumerate(self.edges)
        ]
        return WorkflowGraph.create(nodes, edges)


class ExecuteWorkflowRequest(WorkflowGraphRequest):
    """Graph plus the payload for its trigger."""
    trigger_input: Dict[str, Any] = Field(default_factory=dict, alias="triggerInput")
    workflow_id: Optional[str] = Field(default=None, alias="workflowId")
