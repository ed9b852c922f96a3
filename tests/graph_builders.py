"""Small constructors for test graphs."""

from services.execution.models import Edge, Node, NodeKind, WorkflowGraph


def trigger(node_id="t", step_id="manual", **config):
    return Node(id=node_id, kind=NodeKind.TRIGGER, step_id=step_id, config=config)


def action(node_id, step_id="echo", label="", **config):
    return Node(id=node_id, kind=NodeKind.ACTION, step_id=step_id, label=label, config=config)


def condition(node_id, expr):
    return Node(id=node_id, kind=NodeKind.CONDITION, condition=expr)


def transform(node_id, transform_type, **config):
    return Node(id=node_id, kind=NodeKind.TRANSFORM, transform_type=transform_type, config=config)


def edge(source, target, branch=None):
    return Edge(id=f"{source}->{target}:{branch or ''}", source=source, target=target, branch=branch)


def graph(nodes, edges):
    return WorkflowGraph.create(nodes, edges)
