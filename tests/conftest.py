"""Shared fixtures: a runtime registry with test node kinds and a bundle loader."""

import pytest

from flowsmith.bundler.registry import RuntimeProvider, default_registry
from flowsmith.bundler.workflow_bundler import WorkflowBundler
from flowsmith.compiler.workflow_compiler import WorkflowCompiler
from flowsmith.config import reset_config


ECHO_RUNTIME = '''
"""Echo node: returns its resolved properties and the `token` secret."""

from node_base import NodeExecutionError


async def execute(props, secrets):
    if props.get("fail"):
        raise NodeExecutionError("echo failed", "echo")
    return {"props": props, "secret": secrets.get("token")}


def unused_helper():
    return "never bundled"
'''


@pytest.fixture(autouse=True)
def fresh_config():
    reset_config()
    yield
    reset_config()


@pytest.fixture
def registry():
    registry = default_registry()
    registry.register_node("echo", RuntimeProvider("tests.echo_runtime", source=ECHO_RUNTIME))
    return registry


@pytest.fixture
def bundler(registry, tmp_path):
    return WorkflowBundler(registry=registry, build_dir=str(tmp_path), timeout=30)


@pytest.fixture
def compiler(bundler):
    return WorkflowCompiler(bundler=bundler)


@pytest.fixture
def load_bundle():
    """Execute bundle text in a fresh namespace and return its `default` handler."""
    def load(bundle_code):
        namespace = {"__name__": "workflow_bundle"}
        exec(compile(bundle_code, "<bundle>", "exec"), namespace)
        return namespace["default"]
    return load
