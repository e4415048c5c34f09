"""
Flowsmith Workflow Bundler

Turns a generated handler into one deployable, self-contained script.

Features:
- Pre-flight checks (empty input, workflow id, node runtime availability)
- Build in a worker thread under a timeout
- Environment variable scan and descriptive comment header
- Bundle-shape heuristics reported as warnings
- Transient build input always removed
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
import asyncio
import logging
import os
import re
import time
import uuid

from async_timeout import timeout as async_timeout

from ..config import get_config
from ..environment import EnvironmentVariables, analyze_environment_variables
from ..nodes.definitions import STRUCTURAL_KINDS
from .build_engine import BuildEngine, BuildOutput
from .errors import (
    BundleError,
    BundleTimeoutError,
    EmptyInputError,
    MissingRuntimesError,
    MissingWorkflowIdError,
)
from .registry import RuntimeRegistry, default_registry


logger = logging.getLogger(__name__)


DEFAULT_EXPORT_MARKER = "default ="
FETCH_MARKER = "async def fetch"
ENV_NAME = re.compile(r"\benv\b")
_SAFE_NAME = re.compile(r"[^A-Za-z0-9_-]")


@dataclass
class BundleOptions:
    """Inputs of one bundle run."""
    workflow_id: str
    generated_code: str
    used_nodes: List[str] = field(default_factory=list)
    minify: Optional[bool] = None


@dataclass
class BundleResult:
    """Outcome of WorkflowBundler.bundle; failures never raise."""
    success: bool
    bundle_code: Optional[str] = None
    bundle_size: Optional[int] = None
    warnings: List[str] = field(default_factory=list)
    environment_variables: Optional[EnvironmentVariables] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "bundleCode": self.bundle_code,
            "bundleSize": self.bundle_size,
            "warnings": list(self.warnings),
            "environmentVariables": (
                self.environment_variables.to_dict() if self.environment_variables else None
            ),
            "error": self.error,
        }


def bundle_header(env_vars: EnvironmentVariables, third_party: Optional[List[str]] = None) -> str:
    """Comment block describing what a deployed bundle expects."""
    lines = [
        "# Workflow bundle",
        "#",
        "# Environment variables expected:",
    ]
    if env_vars.workflow_id:
        lines.append("# - WORKFLOW_ID: Unique workflow identifier")
    if env_vars.secrets:
        lines.append("# - Secrets: " + ", ".join(f"SECRET_{s}" for s in env_vars.secrets))
    if not env_vars.workflow_id and not env_vars.secrets:
        lines.append("# - None required")
    if third_party:
        lines.append("#")
        lines.append("# Python packages required: " + ", ".join(third_party))
    lines.extend([
        "#",
        "# Deploy: load this file and call default.fetch(request, env, ctx)",
    ])
    return "\n".join(lines) + "\n"


def check_bundle_format(code: str, env_vars: EnvironmentVariables) -> List[str]:
    """Heuristic shape checks; findings are warnings, never failures."""
    warnings = []
    if DEFAULT_EXPORT_MARKER not in code:
        warnings.append("Bundle may not be loadable (missing 'default' handler object)")
    if FETCH_MARKER not in code:
        warnings.append("Bundle may not be loadable (missing 'async def fetch' handler)")
    needs_env = env_vars.workflow_id or bool(env_vars.secrets)
    if needs_env and not ENV_NAME.search(code):
        warnings.append(
            "Bundle uses environment variables but 'env' parameter may have been removed"
        )
    return warnings


class WorkflowBundler:
    """
    Bundles generated handlers with their runtime support code.

    Args:
        registry: Runtime registry (default: the runtimes shipped with flowsmith)
        build_dir: Directory for the transient build input (default: config)
        timeout: Build timeout in seconds (default: config)
    """

    def __init__(
        self,
        registry: Optional[RuntimeRegistry] = None,
        build_dir: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        config = get_config().bundler
        self.registry = registry or default_registry()
        self.build_dir = build_dir or config.build_dir
        self.timeout = timeout if timeout is not None else config.timeout_seconds
        self.default_minify = config.minify

    async def bundle(self, options: BundleOptions) -> BundleResult:
        started = time.monotonic()
        try:
            self._preflight(options)
        except BundleError as e:
            logger.warning(f"Bundle rejected for workflow {options.workflow_id!r}: {e.message}")
            return BundleResult(success=False, error=e.message, error_code=e.code)

        minify = self.default_minify if options.minify is None else options.minify
        entry_path = os.path.join(
            self.build_dir, f"workflow-{_SAFE_NAME.sub('_', options.workflow_id)}-{uuid.uuid4()}.py"
        )

        try:
            with open(entry_path, "w", encoding="utf-8") as f:
                f.write(options.generated_code)

            logger.info(f"Starting bundle for workflow {options.workflow_id}")
            output = await self._build(entry_path, minify)

            env_vars = analyze_environment_variables(options.generated_code)
            bundle_code = bundle_header(env_vars, output.third_party) + "\n" + output.text
            warnings = check_bundle_format(output.text, env_vars)

            size = len(bundle_code.encode("utf-8"))
            elapsed_ms = int((time.monotonic() - started) * 1000)
            logger.info(f"Bundle completed in {elapsed_ms}ms, size: {size} bytes")
            if warnings:
                logger.warning(f"Bundle warnings for workflow {options.workflow_id}: {warnings}")

            return BundleResult(
                success=True,
                bundle_code=bundle_code,
                bundle_size=size,
                warnings=warnings,
                environment_variables=env_vars,
            )

        except BundleError as e:
            logger.error(f"Bundling failed for workflow {options.workflow_id}: {e.message}")
            return BundleResult(success=False, error=e.message, error_code=e.code)
        except Exception as e:
            logger.exception(f"Bundling failed for workflow {options.workflow_id}: {e}")
            return BundleResult(success=False, error=f"Bundling failed: {e}", error_code="BUILD_FAILED")

        finally:
            try:
                if os.path.exists(entry_path):
                    os.remove(entry_path)
            except OSError as cleanup_error:
                logger.warning(f"Failed to clean up temp file {entry_path}: {cleanup_error}")

    def _preflight(self, options: BundleOptions) -> None:
        if not options.generated_code or not options.generated_code.strip():
            raise EmptyInputError()
        if not options.workflow_id:
            raise MissingWorkflowIdError()

        kinds = [
            kind for kind in dict.fromkeys(options.used_nodes)
            if not kind.startswith("trigger-") and kind not in STRUCTURAL_KINDS
        ]
        missing = self.registry.missing_nodes(kinds)
        if missing:
            raise MissingRuntimesError(missing)

    async def _build(self, entry_path: str, minify: bool) -> BuildOutput:
        """Run the build engine in a worker thread under the configured timeout."""
        engine = BuildEngine(self.registry)
        loop = asyncio.get_event_loop()
        try:
            async with async_timeout(self.timeout):
                return await loop.run_in_executor(None, engine.build, entry_path, minify)
        except asyncio.TimeoutError as e:
            raise BundleTimeoutError(self.timeout) from e
