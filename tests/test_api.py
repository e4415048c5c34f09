"""
API Tests

Validates:
- Health and node catalogue endpoints
- Compile / validate status codes and payload shape
- Compile-and-bundle with build metadata
"""

import pytest
from fastapi.testclient import TestClient

from flowsmith.api.routes import get_compiler
from flowsmith.main import app


GRAPH = {
    "nodes": [
        {"id": "trigger", "type": "trigger-manual", "nodeType": "trigger"},
        {"id": "say", "type": "echo", "secrets": ["token"], "properties": {"text": "{{ input.name }}"}},
    ],
    "edges": [{"id": "e1", "source": "trigger", "target": "say"}],
}


@pytest.fixture
def client(compiler):
    app.dependency_overrides[get_compiler] = lambda: compiler
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestServiceEndpoints:
    """Tests for health and the node catalogue."""

    def test_root(self, client):
        assert client.get("/").json()["health"] == "/api/v1/health"

    def test_health(self, client):
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_nodes(self, client):
        nodes = {n["name"]: n for n in client.get("/api/v1/nodes").json()}
        assert nodes["http-request"]["bundled"] is True
        assert nodes["if"]["structural"] is True
        assert nodes["if"]["bundled"] is False
        assert nodes["send-email"]["secrets"] == ["apiKey"]


class TestCompileEndpoints:
    """Tests for compile and validate."""

    def test_compile(self, client):
        response = client.post("/api/v1/compile", json=GRAPH)
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert "class WorkflowHandler:" in data["code"]
        assert data["bundle"] is None
        assert data["metadata"]["nodeCount"] == 2
        assert data["warnings"] == ["Node say is missing type definition"]

    def test_compile_failure_is_400(self, client):
        response = client.post("/api/v1/compile", json={"nodes": [{"id": "a", "type": "code"}], "edges": []})
        assert response.status_code == 400
        assert response.json()["detail"] == "Graph analysis failed: No trigger node found in workflow"

    def test_validate(self, client):
        data = client.post("/api/v1/validate", json=GRAPH).json()
        assert data["valid"] is True
        assert data["metadata"]["edgeCount"] == 1

    def test_validate_reports_failure_without_error_status(self, client):
        response = client.post("/api/v1/validate", json={"nodes": [], "edges": []})
        assert response.status_code == 200
        assert response.json()["valid"] is False


class TestBundleEndpoint:
    """Tests for compile-and-bundle."""

    def test_bundle_with_build_metadata(self, client):
        response = client.post(
            "/api/v1/bundle",
            json={**GRAPH, "workflowId": "wf-1", "workflowName": "Greeter"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["bundle"].startswith("# Workflow bundle\n")
        assert data["bundleSize"] == len(data["bundle"].encode("utf-8"))
        assert data["environmentVariables"] == {"workflowId": True, "secrets": ["token"]}
        assert data["buildMetadata"]["workflowName"] == "Greeter"

    def test_bundle_without_name_has_no_build_metadata(self, client):
        data = client.post("/api/v1/bundle", json=GRAPH).json()
        assert data["bundle"] is not None
        assert "buildMetadata" not in data

    def test_bundle_compile_failure_is_400(self, client):
        response = client.post("/api/v1/bundle", json={"nodes": [], "edges": []})
        assert response.status_code == 400
