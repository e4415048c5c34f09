"""
Flowsmith Graph Analyzer

Validates and annotates a raw node/edge graph before code generation.

Features:
- Entry point (trigger) resolution
- Cycle detection (diagnostic only)
- Depth estimation
- Per-node hydration (kind, role, structural flag, category, neighbours)
- Topological execution order for auxiliary tooling
"""

from __future__ import annotations
from typing import Dict, Iterator, List, Any, Optional, Set, Tuple
from collections import deque
import logging

from ..nodes.definitions import STRUCTURAL_KINDS, get_definition
from ..schemas.workflow import Edge, Node, NodePort, parse_graph
from .graph_types import AnalyzedGraph, AnalyzedNode, CyclicGraphError, NoEntryPointError


logger = logging.getLogger(__name__)


class GraphAnalyzer:
    """
    Analyzes a workflow graph.

    Cycles are tolerated: they are reported through `has_loops` and never
    block analysis. Only `get_execution_order` rejects them.
    """

    def __init__(self, nodes: List[Any], edges: List[Any]):
        parsed_nodes, parsed_edges = parse_graph(nodes, edges)
        self._nodes: Dict[str, Node] = {n.id: n for n in parsed_nodes}
        self._edges: List[Edge] = parsed_edges
        self._analyzed: Dict[str, AnalyzedNode] = {}

        self._successors: Dict[str, List[str]] = {}
        self._predecessors: Dict[str, List[str]] = {}
        for edge in self._edges:
            if edge.source not in self._nodes or edge.target not in self._nodes:
                continue
            self._successors.setdefault(edge.source, []).append(edge.target)
            self._predecessors.setdefault(edge.target, []).append(edge.source)

    def analyze(self) -> AnalyzedGraph:
        """Analyze the graph. Raises NoEntryPointError without a trigger node."""
        entry_point = self._find_entry_point()
        if entry_point is None:
            raise NoEntryPointError()

        has_loops = self._detect_cycles()
        max_depth = self._calculate_max_depth(entry_point)

        self._analyzed.clear()
        for node in self._nodes.values():
            self._analyze_node(node)

        logger.debug(
            f"Analyzed {len(self._nodes)} nodes, entry={entry_point}, "
            f"loops={has_loops}, depth={max_depth}"
        )

        return AnalyzedGraph(
            nodes=list(self._analyzed.values()),
            edges=list(self._edges),
            entry_point=entry_point,
            has_loops=has_loops,
            max_depth=max_depth,
        )

    # =========================================================================
    # Structure
    # =========================================================================

    def _find_entry_point(self) -> Optional[str]:
        for node in self._nodes.values():
            if node.is_trigger:
                return node.id
        return None

    def _detect_cycles(self) -> bool:
        """Detect cycles using DFS with an explicit stack of (node, successors) frames."""
        visited: Set[str] = set()
        rec_stack: Set[str] = set()

        for root in self._nodes:
            if root in visited:
                continue
            visited.add(root)
            rec_stack.add(root)
            stack: List[Tuple[str, Iterator[str]]] = [(root, iter(self._successors.get(root, [])))]

            while stack:
                node_id, successors = stack[-1]
                neighbor = next(successors, None)
                if neighbor is None:
                    stack.pop()
                    rec_stack.discard(node_id)
                elif neighbor in rec_stack:
                    return True
                elif neighbor not in visited:
                    visited.add(neighbor)
                    rec_stack.add(neighbor)
                    stack.append((neighbor, iter(self._successors.get(neighbor, []))))
        return False

    def _calculate_max_depth(self, start_id: str) -> int:
        """
        Estimate the depth of the graph from the entry node.

        Breadth-first relaxation: depth(successor) = max(recorded, depth + 1).
        This is a heuristic, not a longest-path computation. On cyclic graphs
        depths are capped at the node count so the relaxation terminates.
        """
        limit = max(len(self._nodes), 1)
        depths: Dict[str, int] = {start_id: 0}
        queue = deque([start_id])
        max_depth = 0

        while queue:
            current = queue.popleft()
            current_depth = depths[current]
            max_depth = max(max_depth, current_depth)

            for successor in self._successors.get(current, []):
                candidate = current_depth + 1
                if candidate > limit:
                    continue
                if successor not in depths or depths[successor] < candidate:
                    depths[successor] = candidate
                    queue.append(successor)

        return max_depth

    def _analyze_node(self, node: Node) -> AnalyzedNode:
        if node.id in self._analyzed:
            return self._analyzed[node.id]

        definition = get_definition(node.kind)

        if node.is_trigger:
            node_type = "trigger"
        elif definition is not None:
            node_type = definition.node_type
        else:
            node_type = "action"

        if node.is_structural is not None:
            is_structural = node.is_structural
        elif definition is not None:
            is_structural = definition.is_structural
        else:
            is_structural = node.kind in STRUCTURAL_KINDS

        if node.category is not None:
            category = node.category.value
        elif definition is not None:
            category = definition.category
        else:
            category = "external-lib"

        custom_outputs = list(node.custom_outputs)
        if not custom_outputs and definition is not None:
            custom_outputs = [NodePort(id=port) for port in definition.outputs]

        analyzed = AnalyzedNode(
            id=node.id,
            kind=node.kind,
            node_type=node_type,
            data=dict(node.config),
            is_structural=is_structural,
            category=category,
            inputs=self.get_predecessors(node.id),
            outputs=self.get_successors(node.id),
            secrets=list(node.secrets or (definition.secrets if definition else [])),
            custom_outputs=custom_outputs,
            has_type_metadata=node.node_type is not None or definition is not None,
        )

        self._analyzed[node.id] = analyzed
        return analyzed

    def get_successors(self, node_id: str) -> List[str]:
        return list(self._successors.get(node_id, []))

    def get_predecessors(self, node_id: str) -> List[str]:
        return list(self._predecessors.get(node_id, []))

    # =========================================================================
    # Auxiliary Tooling
    # =========================================================================

    def get_execution_order(self) -> List[str]:
        """Topological sort using Kahn's algorithm."""
        in_degree: Dict[str, int] = {node_id: 0 for node_id in self._nodes}
        for targets in self._successors.values():
            for target in targets:
                in_degree[target] += 1

        queue = deque([node_id for node_id, degree in in_degree.items() if degree == 0])
        order: List[str] = []

        while queue:
            current = queue.popleft()
            order.append(current)
            for successor in self._successors.get(current, []):
                in_degree[successor] -= 1
                if in_degree[successor] == 0:
                    queue.append(successor)

        if len(order) != len(in_degree):
            remaining = [node_id for node_id in in_degree if node_id not in order]
            raise CyclicGraphError(nodes=remaining)

        return order

    def get_control_flow_structure(self) -> Dict[str, Any]:
        """Declared output ports of every structural node and their targets."""
        if not self._analyzed:
            for node in self._nodes.values():
                self._analyze_node(node)

        structure: Dict[str, Any] = {}
        for node in self._analyzed.values():
            if not node.is_structural:
                continue
            structure[node.id] = {
                "type": node.kind,
                "outputs": [
                    {
                        "id": port.id,
                        "label": port.label,
                        "targets": [
                            e.target for e in self._edges
                            if e.source == node.id and e.source_port == port.id
                        ],
                    }
                    for port in node.custom_outputs
                ],
            }
        return structure

    def find_unreachable(self, start: str) -> List[str]:
        """Node ids not reachable from `start`, in input order."""
        visited = {start}
        queue = deque([start])

        while queue:
            current = queue.popleft()
            for neighbor in self._successors.get(current, []):
                if neighbor not in visited:
                    visited.add(neighbor)
                    queue.append(neighbor)

        return [node_id for node_id in self._nodes if node_id not in visited]


def analyze(nodes: List[Any], edges: List[Any]) -> AnalyzedGraph:
    """Analyze a node/edge graph."""
    return GraphAnalyzer(nodes, edges).analyze()
