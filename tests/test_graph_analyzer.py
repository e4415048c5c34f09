"""
Graph Analyzer Tests

Validates:
- Entry point resolution
- Loop detection and depth estimation
- Node hydration from explicit fields and node definitions
- Execution order and reachability helpers
"""

import pytest

from flowsmith.compiler.graph_analyzer import GraphAnalyzer, analyze
from flowsmith.compiler.graph_types import CyclicGraphError, NoEntryPointError


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def linear_graph():
    nodes = [
        {"id": "t", "type": "trigger-manual", "nodeType": "trigger"},
        {"id": "a", "type": "http-request", "properties": {"url": "https://example.com"}},
        {"id": "b", "type": "code", "properties": {"code": "return 1"}},
    ]
    edges = [
        {"id": "e1", "source": "t", "target": "a"},
        {"id": "e2", "source": "a", "target": "b"},
    ]
    return nodes, edges


@pytest.fixture
def branching_graph():
    nodes = [
        {"id": "t", "type": "trigger-webhook"},
        {"id": "check", "type": "if", "properties": {"condition": "input.ok"}},
        {"id": "yes", "type": "code"},
        {"id": "no", "type": "code"},
        {"id": "join", "type": "merge"},
        {"id": "after", "type": "code"},
    ]
    edges = [
        {"source": "t", "target": "check"},
        {"source": "check", "target": "yes", "sourceHandle": "true"},
        {"source": "check", "target": "no", "sourceHandle": "false"},
        {"source": "yes", "target": "join"},
        {"source": "no", "target": "join"},
        {"source": "join", "target": "after"},
    ]
    return nodes, edges


# =============================================================================
# Entry Point
# =============================================================================

class TestEntryPoint:
    """Tests for trigger resolution."""

    def test_trigger_found_by_node_type(self, linear_graph):
        analyzed = analyze(*linear_graph)
        assert analyzed.entry_point == "t"

    def test_trigger_found_by_kind_prefix(self):
        analyzed = analyze(
            [{"id": "x", "type": "code"}, {"id": "cron", "type": "trigger-cron"}],
            [{"source": "cron", "target": "x"}],
        )
        assert analyzed.entry_point == "cron"

    def test_first_trigger_in_input_order_wins(self):
        analyzed = analyze(
            [
                {"id": "first", "type": "trigger-manual"},
                {"id": "second", "type": "trigger-webhook"},
            ],
            [],
        )
        assert analyzed.entry_point == "first"

    def test_missing_trigger_raises(self):
        with pytest.raises(NoEntryPointError) as exc_info:
            analyze([{"id": "a", "type": "code"}], [])
        assert exc_info.value.code == "NO_ENTRY_POINT"
        assert "No trigger node found" in str(exc_info.value)


# =============================================================================
# Structure
# =============================================================================

class TestStructure:
    """Tests for loop detection and depth estimation."""

    def test_acyclic_graph_has_no_loops(self, linear_graph):
        analyzed = analyze(*linear_graph)
        assert analyzed.has_loops is False
        assert analyzed.max_depth == 2

    def test_cycle_is_reported_not_rejected(self):
        nodes = [
            {"id": "t", "type": "trigger-manual"},
            {"id": "a", "type": "code"},
            {"id": "b", "type": "code"},
        ]
        edges = [
            {"source": "t", "target": "a"},
            {"source": "a", "target": "b"},
            {"source": "b", "target": "a"},
        ]
        analyzed = analyze(nodes, edges)
        assert analyzed.has_loops is True
        assert analyzed.max_depth <= len(nodes)

    def test_self_loop_terminates(self):
        analyzed = analyze(
            [{"id": "t", "type": "trigger-manual"}, {"id": "a", "type": "code"}],
            [{"source": "t", "target": "a"}, {"source": "a", "target": "a"}],
        )
        assert analyzed.has_loops is True
        assert analyzed.max_depth <= 2

    def test_depth_takes_longest_relaxed_path(self, branching_graph):
        analyzed = analyze(*branching_graph)
        # t -> check -> yes -> join -> after
        assert analyzed.max_depth == 4

    def test_long_chain(self):
        nodes = [{"id": "t", "type": "trigger-manual"}] + [
            {"id": f"n{i}", "type": "code"} for i in range(1500)
        ]
        edges = [{"source": "t", "target": "n0"}] + [
            {"source": f"n{i}", "target": f"n{i + 1}"} for i in range(1499)
        ]
        analyzed = analyze(nodes, edges)
        assert analyzed.has_loops is False
        assert analyzed.max_depth == 1500

    def test_long_cycle_detected(self):
        nodes = [{"id": "t", "type": "trigger-manual"}] + [
            {"id": f"n{i}", "type": "code"} for i in range(1500)
        ]
        edges = [{"source": "t", "target": "n0"}] + [
            {"source": f"n{i}", "target": f"n{(i + 1) % 1500}"} for i in range(1500)
        ]
        assert analyze(nodes, edges).has_loops is True

    def test_analyze_is_idempotent(self, branching_graph):
        analyzer = GraphAnalyzer(*branching_graph)
        first = analyzer.analyze()
        second = analyzer.analyze()
        assert first.entry_point == second.entry_point == "t"
        assert first.has_loops == second.has_loops
        assert first.max_depth == second.max_depth
        assert [n.id for n in first.nodes] == [n.id for n in second.nodes]
        assert first.nodes == second.nodes


# =============================================================================
# Hydration
# =============================================================================

class TestHydration:
    """Tests for per-node metadata."""

    def test_neighbours_recorded(self, branching_graph):
        analyzed = analyze(*branching_graph)
        join = analyzed.get_node("join")
        assert join.inputs == ["yes", "no"]
        assert join.outputs == ["after"]

    def test_known_kind_filled_from_definition(self, branching_graph):
        analyzed = analyze(*branching_graph)
        check = analyzed.get_node("check")
        assert check.is_structural is True
        assert check.category == "core"
        assert [p.id for p in check.custom_outputs] == ["true", "false"]
        assert check.has_type_metadata is True

    def test_unknown_kind_defaults(self):
        analyzed = analyze(
            [{"id": "t", "type": "trigger-manual"}, {"id": "x", "type": "acme-widget"}],
            [{"source": "t", "target": "x"}],
        )
        node = analyzed.get_node("x")
        assert node.node_type == "action"
        assert node.is_structural is False
        assert node.category == "external-lib"
        assert node.has_type_metadata is False

    def test_explicit_fields_win(self):
        analyzed = analyze(
            [
                {"id": "t", "type": "trigger-manual"},
                {"id": "x", "type": "if", "isStructural": False, "category": "external-lib"},
            ],
            [],
        )
        node = analyzed.get_node("x")
        assert node.is_structural is False
        assert node.category == "external-lib"

    def test_secrets_from_definition(self):
        analyzed = analyze(
            [{"id": "t", "type": "trigger-manual"}, {"id": "mail", "type": "send-email"}],
            [{"source": "t", "target": "mail"}],
        )
        assert analyzed.get_node("mail").secrets == ["apiKey"]

    def test_trigger_marked_by_role(self, linear_graph):
        analyzed = analyze(*linear_graph)
        assert analyzed.get_node("t").is_trigger is True
        assert analyzed.get_node("a").is_trigger is False


# =============================================================================
# Auxiliary Tooling
# =============================================================================

class TestAuxiliaryTooling:
    """Tests for execution order, control flow structure and reachability."""

    def test_execution_order(self, linear_graph):
        assert GraphAnalyzer(*linear_graph).get_execution_order() == ["t", "a", "b"]

    def test_execution_order_rejects_cycles(self):
        analyzer = GraphAnalyzer(
            [{"id": "t", "type": "trigger-manual"}, {"id": "a", "type": "code"}, {"id": "b", "type": "code"}],
            [{"source": "t", "target": "a"}, {"source": "a", "target": "b"}, {"source": "b", "target": "a"}],
        )
        with pytest.raises(CyclicGraphError) as exc_info:
            analyzer.get_execution_order()
        assert exc_info.value.code == "CYCLIC_GRAPH"
        assert set(exc_info.value.nodes) == {"a", "b"}

    def test_execution_order_ignores_dangling_edges(self, linear_graph):
        nodes, edges = linear_graph
        edges = edges + [{"source": "ghost", "target": "a"}, {"source": "b", "target": "missing"}]
        analyzer = GraphAnalyzer(nodes, edges)
        assert analyzer.get_execution_order() == ["t", "a", "b"]
        assert analyzer.get_predecessors("a") == ["t"]

    def test_control_flow_structure(self, branching_graph):
        structure = GraphAnalyzer(*branching_graph).get_control_flow_structure()
        assert set(structure) == {"check", "join"}
        ports = {p["id"]: p["targets"] for p in structure["check"]["outputs"]}
        assert ports == {"true": ["yes"], "false": ["no"]}

    def test_find_unreachable(self, linear_graph):
        nodes, edges = linear_graph
        nodes = nodes + [{"id": "orphan", "type": "code"}]
        assert GraphAnalyzer(nodes, edges).find_unreachable("t") == ["orphan"]
