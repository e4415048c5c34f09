"""
Flowsmith Bundler

Packs a generated handler and its runtime support code into one script.
"""

from .errors import (
    BuildFailedError,
    BundleError,
    BundleTimeoutError,
    EmptyInputError,
    MissingRuntimesError,
    MissingWorkflowIdError,
    ModuleNotFoundBundleError,
)
from .registry import RuntimeProvider, RuntimeRegistry, default_registry
from .build_engine import BuildEngine, BuildOutput
from .workflow_bundler import (
    BundleOptions,
    BundleResult,
    EnvironmentVariables,
    WorkflowBundler,
    analyze_environment_variables,
)

__all__ = [
    "BuildFailedError",
    "BundleError",
    "BundleTimeoutError",
    "EmptyInputError",
    "MissingRuntimesError",
    "MissingWorkflowIdError",
    "ModuleNotFoundBundleError",
    "RuntimeProvider",
    "RuntimeRegistry",
    "default_registry",
    "BuildEngine",
    "BuildOutput",
    "BundleOptions",
    "BundleResult",
    "EnvironmentVariables",
    "WorkflowBundler",
    "analyze_environment_variables",
]
