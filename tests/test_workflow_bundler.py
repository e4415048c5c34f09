"""
Workflow Bundler Tests

Validates:
- Pre-flight failures (empty code, workflow id, missing runtimes)
- Module resolution failures and build failures
- Timeout handling
- Environment scan, comment header and result contract
- Transient file cleanup on every path
- Tree-shaking and minify
"""

import time

import pytest

from flowsmith.bundler.registry import RuntimeProvider
from flowsmith.bundler.workflow_bundler import (
    BundleOptions,
    WorkflowBundler,
    analyze_environment_variables,
    bundle_header,
    check_bundle_format,
)
from flowsmith.compiler.code_generator import generate
from flowsmith.compiler.graph_analyzer import analyze


def _handler_code(nodes, edges):
    return generate(analyze(nodes, edges))


@pytest.fixture
def echo_handler():
    return _handler_code(
        [
            {"id": "trigger", "type": "trigger-manual"},
            {"id": "say", "type": "echo", "secrets": ["token"], "properties": {"text": "{{ input.name }}"}},
        ],
        [{"source": "trigger", "target": "say"}],
    )


# =============================================================================
# Pre-flight
# =============================================================================

class TestPreflight:
    """Failures detected before anything is built."""

    @pytest.mark.asyncio
    async def test_empty_code(self, bundler, tmp_path):
        result = await bundler.bundle(BundleOptions(workflow_id="wf", generated_code="   "))
        assert result.success is False
        assert result.error == "Generated code is empty"
        assert result.error_code == "EMPTY_INPUT"
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_missing_workflow_id(self, bundler):
        result = await bundler.bundle(BundleOptions(workflow_id="", generated_code="x = 1\n"))
        assert result.error == "Workflow ID is required"
        assert result.error_code == "MISSING_WORKFLOW_ID"

    @pytest.mark.asyncio
    async def test_missing_runtimes_aggregated(self, bundler, tmp_path):
        result = await bundler.bundle(BundleOptions(
            workflow_id="wf",
            generated_code="x = 1\n",
            used_nodes=["http-request", "nonexistent-node", "if", "trigger-manual", "merge", "another-node"],
        ))
        assert result.success is False
        assert result.error_code == "MISSING_RUNTIMES"
        assert result.error == "Missing node runtimes: nonexistent-node, another-node"
        assert list(tmp_path.iterdir()) == []


# =============================================================================
# Build Failures
# =============================================================================

class TestBuildFailures:
    """Resolution and build errors come back as results."""

    @pytest.mark.asyncio
    async def test_unregistered_logical_import(self, bundler, tmp_path):
        result = await bundler.bundle(BundleOptions(
            workflow_id="wf",
            generated_code="from nodes_ghost.runtime import execute as ghost_runtime\n",
        ))
        assert result.error_code == "MODULE_NOT_FOUND"
        assert "nodes_ghost.runtime" in result.error
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_unregistered_internal_import(self, bundler):
        result = await bundler.bundle(BundleOptions(
            workflow_id="wf",
            generated_code="from flowsmith.compiler import workflow_compiler\n",
        ))
        assert result.error_code == "MODULE_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_unresolvable_external_import(self, bundler):
        result = await bundler.bundle(BundleOptions(
            workflow_id="wf",
            generated_code="import flowsmith_surely_missing_module_xyz\n",
        ))
        assert result.error_code == "MODULE_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_syntax_error(self, bundler, tmp_path):
        result = await bundler.bundle(BundleOptions(workflow_id="wf", generated_code="def broken(:\n"))
        assert result.error_code == "BUILD_FAILED"
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_unknown_runtime_name(self, bundler):
        result = await bundler.bundle(BundleOptions(
            workflow_id="wf",
            generated_code="from workflow_runtime import no_such_helper\n",
        ))
        assert result.error_code == "BUILD_FAILED"
        assert "no_such_helper" in result.error

    @pytest.mark.asyncio
    async def test_star_import_rejected(self, bundler):
        result = await bundler.bundle(BundleOptions(
            workflow_id="wf",
            generated_code="from workflow_runtime import *\n",
        ))
        assert result.error_code == "BUILD_FAILED"

    @pytest.mark.asyncio
    async def test_timeout(self, registry, tmp_path, monkeypatch, echo_handler):
        class SlowEngine:
            def __init__(self, registry):
                pass

            def build(self, entry_path, minify=True):
                time.sleep(1)

        monkeypatch.setattr("flowsmith.bundler.workflow_bundler.BuildEngine", SlowEngine)
        bundler = WorkflowBundler(registry=registry, build_dir=str(tmp_path), timeout=0.05)

        result = await bundler.bundle(BundleOptions(
            workflow_id="wf", generated_code=echo_handler.code, used_nodes=echo_handler.used_nodes,
        ))
        assert result.success is False
        assert result.error_code == "BUNDLE_TIMEOUT"
        assert list(tmp_path.iterdir()) == []


# =============================================================================
# Successful Bundles
# =============================================================================

class TestBundle:
    """Tests for successful bundling."""

    @pytest.mark.asyncio
    async def test_bundle_contract(self, bundler, echo_handler, tmp_path):
        result = await bundler.bundle(BundleOptions(
            workflow_id="wf-123", generated_code=echo_handler.code, used_nodes=echo_handler.used_nodes,
        ))
        assert result.success is True, result.error
        assert result.bundle_size == len(result.bundle_code.encode("utf-8"))
        assert result.environment_variables.workflow_id is True
        assert result.environment_variables.secrets == ["token"]
        assert result.warnings == []
        assert list(tmp_path.iterdir()) == []

        data = result.to_dict()
        assert set(data) == {"success", "bundleCode", "bundleSize", "warnings", "environmentVariables", "error"}
        assert data["environmentVariables"] == {"workflowId": True, "secrets": ["token"]}

    @pytest.mark.asyncio
    async def test_bundle_header(self, bundler, echo_handler):
        result = await bundler.bundle(BundleOptions(
            workflow_id="wf", generated_code=echo_handler.code, used_nodes=echo_handler.used_nodes,
        ))
        assert result.bundle_code.startswith("# Workflow bundle\n")
        assert "# - WORKFLOW_ID: Unique workflow identifier" in result.bundle_code
        assert "# - Secrets: SECRET_token" in result.bundle_code

    @pytest.mark.asyncio
    async def test_bundle_is_self_contained(self, bundler, echo_handler):
        result = await bundler.bundle(BundleOptions(
            workflow_id="wf", generated_code=echo_handler.code, used_nodes=echo_handler.used_nodes,
        ))
        code = result.bundle_code
        assert "from workflow_runtime" not in code
        assert "from nodes_echo" not in code
        assert "_bundle_require('flowsmith.runtime.context')" in code
        compile(code, "<bundle>", "exec")

    @pytest.mark.asyncio
    async def test_unused_definitions_are_shaken(self, bundler, echo_handler):
        result = await bundler.bundle(BundleOptions(
            workflow_id="wf", generated_code=echo_handler.code, used_nodes=echo_handler.used_nodes,
        ))
        assert "never bundled" not in result.bundle_code
        assert "def verify_signature" not in result.bundle_code

    @pytest.mark.asyncio
    async def test_minify_strips_docstrings(self, bundler, echo_handler):
        options = dict(workflow_id="wf", generated_code=echo_handler.code, used_nodes=echo_handler.used_nodes)
        minified = await bundler.bundle(BundleOptions(minify=True, **options))
        plain = await bundler.bundle(BundleOptions(minify=False, **options))
        marker = "Echo node: returns its resolved properties"
        assert marker not in minified.bundle_code
        assert marker in plain.bundle_code
        assert minified.bundle_size < plain.bundle_size

    @pytest.mark.asyncio
    async def test_third_party_packages_listed(self, bundler):
        generated = _handler_code(
            [
                {"id": "trigger", "type": "trigger-manual"},
                {"id": "call", "type": "http-request", "properties": {"url": "https://example.com"}},
            ],
            [{"source": "trigger", "target": "call"}],
        )
        result = await bundler.bundle(BundleOptions(
            workflow_id="wf", generated_code=generated.code, used_nodes=generated.used_nodes,
        ))
        assert result.success is True, result.error
        assert "# Python packages required: aiohttp" in result.bundle_code

    @pytest.mark.asyncio
    async def test_inline_provider_relative_import(self, registry, tmp_path):
        registry.register_internal(RuntimeProvider("acme.helpers", source="def shout(text):\n    return text.upper()\n"))
        registry.register_node("acme", RuntimeProvider(
            "acme.runtime",
            source="from .helpers import shout\n\n\nasync def execute(props, secrets):\n    return shout(props['text'])\n",
        ))
        bundler = WorkflowBundler(registry=registry, build_dir=str(tmp_path))
        result = await bundler.bundle(BundleOptions(
            workflow_id="wf",
            generated_code="from nodes_acme.runtime import execute\ndefault = execute\n",
            used_nodes=["acme"],
        ))
        assert result.success is True, result.error
        assert "_bundle_require('acme.helpers').shout" in result.bundle_code


# =============================================================================
# Environment Scan
# =============================================================================

class TestEnvironmentScan:
    """Tests for environment variable detection and the header text."""

    def test_detects_both_quote_styles(self):
        env = analyze_environment_variables("env['WORKFLOW_ID']\nenv.get(\"SECRET_a\")\nenv.get('SECRET_b')\n")
        assert env.workflow_id is True
        assert env.secrets == ["a", "b"]

    def test_no_variables(self):
        env = analyze_environment_variables("x = 1\n")
        assert env.workflow_id is False
        assert "# - None required" in bundle_header(env)

    def test_format_warnings(self):
        env = analyze_environment_variables("env.get('WORKFLOW_ID')")
        warnings = check_bundle_format("x = 1\n", env)
        assert len(warnings) == 3
