"""Flowsmith Schemas Package - Workflow graph input schemas."""

from .workflow import (
    Node,
    Edge,
    NodePort,
    NodeCategory,
    NodeType,
    parse_graph,
)

__all__ = [
    "Node",
    "Edge",
    "NodePort",
    "NodeCategory",
    "NodeType",
    "parse_graph",
]
