"""
Flowsmith API Routes

FastAPI endpoints over the workflow compiler:
- Health
- Node catalogue
- Compile / Validate
- Compile and bundle
"""

from __future__ import annotations
from typing import Dict, Any, Optional, List
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from .. import __version__
from ..bundler.registry import default_registry
from ..compiler.workflow_compiler import WorkflowCompiler
from ..nodes.definitions import NODE_DEFINITIONS


# =============================================================================
# API Models
# =============================================================================

class CompileRequest(BaseModel):
    """A workflow graph as produced by the visual editor."""
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "nodes": [
                    {"id": "trigger", "type": "trigger-manual", "nodeType": "trigger"},
                    {
                        "id": "fetch",
                        "type": "http-request",
                        "properties": {"method": "GET", "url": "https://example.com/{{ input.path }}"},
                    },
                ],
                "edges": [{"id": "e1", "source": "trigger", "target": "fetch"}],
            }
        },
    )

    nodes: List[Dict[str, Any]] = Field(default_factory=list, description="Workflow nodes")
    edges: List[Dict[str, Any]] = Field(default_factory=list, description="Workflow edges")


class BundleRequest(CompileRequest):
    """Compile-and-bundle request."""
    workflow_id: Optional[str] = Field(default=None, alias="workflowId")
    workflow_name: Optional[str] = Field(default=None, alias="workflowName")
    minify: Optional[bool] = Field(default=None, description="Strip docstrings (default: config)")


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    timestamp: str


class NodeInfo(BaseModel):
    """A node kind known to the compiler."""
    name: str
    title: str
    node_type: str
    category: str
    structural: bool
    outputs: List[str]
    secrets: List[str]
    bundled: bool


class ValidateResponse(BaseModel):
    """Validation outcome."""
    valid: bool
    error: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    metadata: Optional[Dict[str, Any]] = None


# =============================================================================
# Router
# =============================================================================

router = APIRouter(prefix="/api/v1", tags=["Flowsmith Compiler"])

# Compiler singleton (will be injected in production)
_compiler: Optional[WorkflowCompiler] = None


def get_compiler() -> WorkflowCompiler:
    """Get or create the compiler instance."""
    global _compiler
    if _compiler is None:
        _compiler = WorkflowCompiler()
    return _compiler


# =============================================================================
# Endpoints
# =============================================================================

@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Check if the compiler service is running.",
)
async def health_check():
    return HealthResponse(
        status="healthy",
        version=__version__,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@router.get(
    "/nodes",
    response_model=List[NodeInfo],
    summary="List Node Kinds",
    description="Node kinds with their ports, secrets and runtime availability.",
)
async def list_nodes():
    registry = default_registry()
    return [
        NodeInfo(
            name=d.name,
            title=d.title,
            node_type=d.node_type,
            category=d.category,
            structural=d.is_structural,
            outputs=list(d.outputs),
            secrets=list(d.secrets),
            bundled=registry.has_node(d.name),
        )
        for d in NODE_DEFINITIONS.values()
    ]


@router.post(
    "/compile",
    summary="Compile Workflow",
    description="Compile a workflow graph into handler source.",
)
async def compile_workflow(
    request: CompileRequest,
    compiler: WorkflowCompiler = Depends(get_compiler),
):
    result = compiler.compile(request.nodes, request.edges)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error)
    return result.to_dict()


@router.post(
    "/validate",
    response_model=ValidateResponse,
    summary="Validate Workflow",
    description="Check a workflow graph without returning code.",
)
async def validate_workflow(
    request: CompileRequest,
    compiler: WorkflowCompiler = Depends(get_compiler),
):
    result = compiler.validate(request.nodes, request.edges)
    payload = result.to_dict()
    return ValidateResponse(
        valid=result.success,
        error=result.error,
        warnings=result.warnings,
        metadata=payload["metadata"],
    )


@router.post(
    "/bundle",
    summary="Compile and Bundle Workflow",
    description="Compile a workflow graph and bundle it into one deployable script.",
)
async def bundle_workflow(
    request: BundleRequest,
    compiler: WorkflowCompiler = Depends(get_compiler),
):
    result = await compiler.compile_and_bundle(
        request.nodes,
        request.edges,
        workflow_id=request.workflow_id,
        minify=request.minify,
    )
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error)

    payload = result.to_dict()
    if result.bundle is not None and request.workflow_id and request.workflow_name:
        metadata = compiler.get_build_metadata(result, request.workflow_name, request.workflow_id)
        payload["buildMetadata"] = metadata.to_dict()
    return payload
