"""
Flowsmith Workflow Schema

Node and edge definitions as authored in the visual editor.
The compiler does not care how they were persisted, only that they match these shapes.
"""

from __future__ import annotations
from typing import Dict, List, Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from enum import Enum


TRIGGER_PREFIX = "trigger-"


# =============================================================================
# Enums
# =============================================================================

class NodeCategory(str, Enum):
    """Where a node's implementation comes from."""
    CORE = "core"
    DEFAULT_LIB = "default-lib"
    EXTERNAL_LIB = "external-lib"


class NodeType(str, Enum):
    """Role of a node in the graph."""
    TRIGGER = "trigger"
    ACTION = "action"


# =============================================================================
# Ports
# =============================================================================

class NodePort(BaseModel):
    """A custom input or output port declared by a node."""
    id: str
    label: Optional[str] = None
    type: str = "control"


# =============================================================================
# Node
# =============================================================================

class Node(BaseModel):
    """
    A single node of a workflow graph.

    Accepts the editor's camelCase payload (type, nodeType, isStructural,
    properties, customOutputs) as well as the snake_case field names.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    kind: str = Field(default="unknown", alias="type")
    node_type: Optional[NodeType] = Field(default=None, alias="nodeType")
    is_structural: Optional[bool] = Field(default=None, alias="isStructural")
    category: Optional[NodeCategory] = None
    config: Dict[str, Any] = Field(default_factory=dict, alias="properties")
    custom_inputs: List[NodePort] = Field(default_factory=list, alias="customInputs")
    custom_outputs: List[NodePort] = Field(default_factory=list, alias="customOutputs")
    secrets: List[str] = Field(default_factory=list)

    @field_validator("kind")
    @classmethod
    def validate_kind(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Node kind must not be empty")
        return v

    @property
    def is_trigger(self) -> bool:
        """A trigger is declared by nodeType or by the trigger- kind prefix."""
        return self.node_type == NodeType.TRIGGER or self.kind.startswith(TRIGGER_PREFIX)


# =============================================================================
# Edge
# =============================================================================

class Edge(BaseModel):
    """A directed connection between two nodes, optionally port-qualified."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    source: str
    target: str
    source_port: Optional[str] = Field(default=None, alias="sourceHandle")
    target_port: Optional[str] = Field(default=None, alias="targetHandle")


def parse_graph(nodes: List[Any], edges: List[Any]) -> tuple:
    """Coerce raw dicts (or already-built models) into Node and Edge lists."""
    parsed_nodes = [n if isinstance(n, Node) else Node.model_validate(n) for n in nodes]
    parsed_edges = [e if isinstance(e, Edge) else Edge.model_validate(e) for e in edges]
    return parsed_nodes, parsed_edges
