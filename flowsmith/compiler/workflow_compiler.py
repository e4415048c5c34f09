"""
Flowsmith Workflow Compiler

Facade over the pipeline: GraphAnalyzer -> CodeGenerator -> WorkflowBundler.

Stage failures come back as unsuccessful CompilationResults; non-fatal
findings are collected as warnings.
"""

from __future__ import annotations
from typing import Any, List, Optional
from datetime import datetime, timezone
import logging
import time
import uuid

from ..bundler.workflow_bundler import BundleOptions, WorkflowBundler
from ..environment import EnvironmentVariables
from ..nodes.definitions import validate_properties
from .code_generator import CodeGenerator
from .graph_analyzer import GraphAnalyzer
from .graph_types import (
    AnalyzedGraph,
    BuildMetadata,
    CompilationError,
    CompilationMetadata,
    CompilationResult,
)


logger = logging.getLogger(__name__)


class WorkflowCompiler:
    """
    Compiles visual workflow graphs into request handlers and bundles.

    Features:
    - Graph analysis (entry point, loops, depth)
    - Disconnected node, loop and configuration warnings
    - Deterministic code generation
    - Optional bundling into one deployable script
    """

    def __init__(self, bundler: Optional[WorkflowBundler] = None):
        self.version = "1.0.0"
        self._bundler = bundler

    @property
    def bundler(self) -> WorkflowBundler:
        if self._bundler is None:
            self._bundler = WorkflowBundler()
        return self._bundler

    def compile(self, nodes: List[Any], edges: List[Any]) -> CompilationResult:
        """Compile a workflow graph into handler source."""
        if not nodes:
            return CompilationResult(success=False, error="Workflow must contain at least one node")

        try:
            analyzer = GraphAnalyzer(nodes, edges)
            analyzed = analyzer.analyze()
        except (CompilationError, ValueError) as e:
            logger.warning(f"Graph analysis failed: {e}")
            return CompilationResult(success=False, error=f"Graph analysis failed: {e}")

        warnings = self._collect_warnings(analyzer, analyzed)

        try:
            generated = CodeGenerator(analyzed).generate()
        except CompilationError as e:
            logger.warning(f"Code generation failed: {e}")
            return CompilationResult(success=False, error=f"Code generation failed: {e}")
        except RecursionError:
            # Arms of nested if/switch/for nodes recurse in the generator
            logger.warning(f"Code generation failed: graph too deep ({analyzed.max_depth} levels)")
            return CompilationResult(success=False, error="Code generation failed: graph too deep")

        logger.info(
            f"Compiled workflow: {len(nodes)} nodes, {len(edges)} edges, "
            f"{len(generated.used_nodes)} node kinds, {len(warnings)} warnings"
        )

        return CompilationResult(
            success=True,
            code=generated.code,
            warnings=warnings,
            metadata=CompilationMetadata(
                node_count=len(nodes),
                edge_count=len(edges),
                has_loops=analyzed.has_loops,
                max_depth=analyzed.max_depth,
            ),
            used_nodes=list(generated.used_nodes),
        )

    def validate(self, nodes: List[Any], edges: List[Any]) -> CompilationResult:
        """Compile without returning code."""
        result = self.compile(nodes, edges)
        result.code = None
        return result

    async def compile_and_bundle(
        self,
        nodes: List[Any],
        edges: List[Any],
        workflow_id: Optional[str] = None,
        minify: Optional[bool] = None,
    ) -> CompilationResult:
        """
        Compile, then bundle for deployment.

        A bundling failure does not fail the call: it becomes a warning and
        the compiled code is still returned.
        """
        result = self.compile(nodes, edges)
        if not result.success or not result.code:
            return result

        started = time.monotonic()
        bundle = await self.bundler.bundle(BundleOptions(
            workflow_id=workflow_id or str(uuid.uuid4()),
            generated_code=result.code,
            used_nodes=list(result.used_nodes),
            minify=minify,
        ))
        bundle_time_ms = int((time.monotonic() - started) * 1000)

        if not bundle.success:
            result.warnings.append(f"Bundling failed: {bundle.error}")
            return result

        result.bundle = bundle.bundle_code
        result.bundle_size = bundle.bundle_size
        result.environment_variables = bundle.environment_variables
        result.warnings.extend(bundle.warnings)
        if result.metadata is not None:
            result.metadata.bundle_time_ms = bundle_time_ms
        return result

    def get_build_metadata(
        self,
        result: CompilationResult,
        workflow_name: str,
        workflow_id: str,
    ) -> BuildMetadata:
        """Describe a bundled compilation for deployment packaging."""
        if not result.success or result.bundle is None or result.metadata is None:
            raise ValueError("Build metadata requires a successfully bundled compilation")

        return BuildMetadata(
            workflow_id=workflow_id,
            workflow_name=workflow_name,
            build_timestamp=datetime.now(timezone.utc).isoformat(),
            bundle_size=result.bundle_size or 0,
            node_count=result.metadata.node_count,
            edge_count=result.metadata.edge_count,
            has_loops=result.metadata.has_loops,
            max_depth=result.metadata.max_depth,
            environment_variables=result.environment_variables or EnvironmentVariables(),
            bundle_time_ms=result.metadata.bundle_time_ms,
            warnings=list(result.warnings),
        )

    # =========================================================================
    # Warnings
    # =========================================================================

    def _collect_warnings(self, analyzer: GraphAnalyzer, analyzed: AnalyzedGraph) -> List[str]:
        warnings: List[str] = []

        disconnected = analyzer.find_unreachable(analyzed.entry_point)
        if disconnected:
            warnings.append(
                f"Found {len(disconnected)} disconnected node(s): {', '.join(disconnected)}"
            )

        if analyzed.has_loops:
            warnings.append("Workflow contains loops - make sure loop conditions are properly defined")

        for node in analyzed.nodes:
            if not node.has_type_metadata:
                warnings.append(f"Node {node.id} is missing type definition")
                continue
            problem = validate_properties(node.kind, node.data)
            if problem:
                warnings.append(f"Node {node.id} has invalid configuration: {problem}")

        return warnings


# Singleton instance
workflow_compiler = WorkflowCompiler()
