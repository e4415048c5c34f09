"""
Flowsmith Compiler Types

Pipeline-stage values passed between the analyzer, the generator and the
compiler facade, plus the compiler's error taxonomy.
"""

from __future__ import annotations
from typing import Dict, List, Any, Optional
from dataclasses import dataclass, field

from ..environment import EnvironmentVariables
from ..schemas.workflow import Edge, NodePort


# =============================================================================
# Analyzed Graph
# =============================================================================

@dataclass
class AnalyzedNode:
    """A node hydrated with its resolved metadata and neighbours."""
    id: str
    kind: str
    node_type: str
    data: Dict[str, Any]
    is_structural: bool
    category: str
    inputs: List[str] = field(default_factory=list)
    outputs: List[str] = field(default_factory=list)
    secrets: List[str] = field(default_factory=list)
    custom_outputs: List[NodePort] = field(default_factory=list)
    has_type_metadata: bool = True

    @property
    def is_trigger(self) -> bool:
        return self.node_type == "trigger"


@dataclass
class AnalyzedGraph:
    """Validated and annotated workflow graph."""
    nodes: List[AnalyzedNode]
    edges: List[Edge]
    entry_point: str
    has_loops: bool
    max_depth: int

    def get_node(self, node_id: str) -> Optional[AnalyzedNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def outgoing(self, node_id: str) -> List[Edge]:
        """Edges leaving a node, in input order."""
        return [e for e in self.edges if e.source == node_id]

    def port_target(self, node_id: str, port: str) -> Optional[str]:
        """Target of the first edge leaving `node_id` through `port`."""
        for edge in self.edges:
            if edge.source == node_id and edge.source_port == port:
                return edge.target
        return None

    def next_target(self, node_id: str) -> Optional[str]:
        """Target of the first edge leaving `node_id`, whatever its port."""
        for edge in self.edges:
            if edge.source == node_id:
                return edge.target
        return None


# =============================================================================
# Generated Code
# =============================================================================

@dataclass
class GeneratedCode:
    """Source text of one request handler and its declared interface."""
    code: str
    imports: List[str] = field(default_factory=list)
    exports: List[str] = field(default_factory=lambda: ["default"])
    used_nodes: List[str] = field(default_factory=list)


# =============================================================================
# Compilation Result
# =============================================================================

@dataclass
class CompilationMetadata:
    node_count: int
    edge_count: int
    has_loops: bool
    max_depth: int
    bundle_time_ms: Optional[int] = None


@dataclass
class CompilationResult:
    """Outcome of WorkflowCompiler.compile / compile_and_bundle."""
    success: bool
    code: Optional[str] = None
    bundle: Optional[str] = None
    bundle_size: Optional[int] = None
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    metadata: Optional[CompilationMetadata] = None
    environment_variables: Optional[EnvironmentVariables] = None
    used_nodes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """camelCase rendering used by the HTTP API."""
        metadata = None
        if self.metadata is not None:
            metadata = {
                "nodeCount": self.metadata.node_count,
                "edgeCount": self.metadata.edge_count,
                "hasLoops": self.metadata.has_loops,
                "maxDepth": self.metadata.max_depth,
                "bundleTime": self.metadata.bundle_time_ms,
            }
        return {
            "success": self.success,
            "code": self.code,
            "bundle": self.bundle,
            "bundleSize": self.bundle_size,
            "error": self.error,
            "warnings": list(self.warnings),
            "metadata": metadata,
            "environmentVariables": (
                self.environment_variables.to_dict() if self.environment_variables else None
            ),
        }


@dataclass
class BuildMetadata:
    """Metadata handed to deployment packaging."""
    workflow_id: str
    workflow_name: str
    build_timestamp: str
    bundle_size: int
    node_count: int
    edge_count: int
    has_loops: bool
    max_depth: int
    environment_variables: EnvironmentVariables
    bundle_time_ms: Optional[int] = None
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workflowId": self.workflow_id,
            "workflowName": self.workflow_name,
            "buildTimestamp": self.build_timestamp,
            "bundleSize": self.bundle_size,
            "nodeCount": self.node_count,
            "edgeCount": self.edge_count,
            "hasLoops": self.has_loops,
            "maxDepth": self.max_depth,
            "bundleTime": self.bundle_time_ms,
            "environmentVariables": self.environment_variables.to_dict(),
            "warnings": list(self.warnings),
        }


# =============================================================================
# Compilation Errors
# =============================================================================

class CompilationError(Exception):
    """Error during workflow analysis or code generation."""

    code = "COMPILATION_ERROR"

    def __init__(self, message: str, nodes: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.nodes = nodes


class NoEntryPointError(CompilationError):
    code = "NO_ENTRY_POINT"

    def __init__(self, message: str = "No trigger node found in workflow"):
        super().__init__(message)


class CyclicGraphError(CompilationError):
    code = "CYCLIC_GRAPH"

    def __init__(self, message: str = "Graph contains cycles, cannot determine execution order",
                 nodes: Optional[List[str]] = None):
        super().__init__(message, nodes)


class UnsupportedTriggerError(CompilationError):
    code = "UNSUPPORTED_TRIGGER"

    def __init__(self, kind: str):
        super().__init__(f"Unsupported trigger type: {kind}")
        self.kind = kind
