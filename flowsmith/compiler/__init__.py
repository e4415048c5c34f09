"""Flowsmith Compiler Module - Graph analysis, code generation and the compiler facade."""

from .graph_types import (
    AnalyzedGraph,
    AnalyzedNode,
    BuildMetadata,
    CompilationError,
    CompilationMetadata,
    CompilationResult,
    CyclicGraphError,
    GeneratedCode,
    NoEntryPointError,
    UnsupportedTriggerError,
)
from .graph_analyzer import GraphAnalyzer, analyze
from .code_generator import CodeGenerator, StructuralKind, generate
from .workflow_compiler import WorkflowCompiler, workflow_compiler

__all__ = [
    "AnalyzedGraph",
    "AnalyzedNode",
    "BuildMetadata",
    "CompilationError",
    "CompilationMetadata",
    "CompilationResult",
    "CyclicGraphError",
    "GeneratedCode",
    "NoEntryPointError",
    "UnsupportedTriggerError",
    "GraphAnalyzer",
    "analyze",
    "CodeGenerator",
    "StructuralKind",
    "generate",
    "WorkflowCompiler",
    "workflow_compiler",
]
