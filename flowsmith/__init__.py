"""
Flowsmith - Workflow Compiler

Compiles visual automations (directed graphs of typed nodes) into one
deployable, self-contained Python request handler:

    GraphAnalyzer -> CodeGenerator -> WorkflowBundler

Flowsmith never executes workflows itself; only the produced bundles do.
"""

__version__ = "0.1.0"

from .compiler import (
    CodeGenerator,
    CompilationError,
    CompilationResult,
    GraphAnalyzer,
    WorkflowCompiler,
    workflow_compiler,
)
from .bundler import BundleOptions, BundleResult, WorkflowBundler
from .schemas import Edge, Node

__all__ = [
    "CodeGenerator",
    "CompilationError",
    "CompilationResult",
    "GraphAnalyzer",
    "WorkflowCompiler",
    "workflow_compiler",
    "BundleOptions",
    "BundleResult",
    "WorkflowBundler",
    "Edge",
    "Node",
]
