"""
Bundler errors.

Each carries a stable `code`; WorkflowBundler turns them into failed
BundleResults rather than letting them propagate.
"""

from typing import List, Optional


class BundleError(Exception):
    """Base class for bundling failures."""

    code = "BUNDLE_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class EmptyInputError(BundleError):
    code = "EMPTY_INPUT"

    def __init__(self, message: str = "Generated code is empty"):
        super().__init__(message)


class MissingWorkflowIdError(BundleError):
    code = "MISSING_WORKFLOW_ID"

    def __init__(self, message: str = "Workflow ID is required"):
        super().__init__(message)


class MissingRuntimesError(BundleError):
    code = "MISSING_RUNTIMES"

    def __init__(self, kinds: List[str]):
        super().__init__(f"Missing node runtimes: {', '.join(kinds)}")
        self.kinds = kinds


class ModuleNotFoundBundleError(BundleError):
    code = "MODULE_NOT_FOUND"

    def __init__(self, name: str, importer: Optional[str] = None):
        where = f" (imported by {importer})" if importer else ""
        super().__init__(f"Cannot resolve module '{name}'{where}")
        self.name = name
        self.importer = importer


class BuildFailedError(BundleError):
    code = "BUILD_FAILED"


class BundleTimeoutError(BundleError):
    code = "BUNDLE_TIMEOUT"

    def __init__(self, seconds: float):
        super().__init__(f"Bundling timed out after {seconds:g}s")
        self.seconds = seconds
