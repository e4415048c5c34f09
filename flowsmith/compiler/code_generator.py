"""
Flowsmith Code Generator

Turns an AnalyzedGraph into the Python source of one request handler.

The generated module imports only from the logical runtime vocabulary
(`workflow_runtime`, `workflow_runtime.logger`, `nodes_<kind>.runtime`) and
exposes `default`, an object with `async def fetch(self, request, env, ctx)`.
Generation is a pure function of the graph: identical input gives
byte-identical output.
"""

from __future__ import annotations
from typing import Dict, FrozenSet, List, Optional, Set
from enum import Enum
import logging
import pprint

from ..abi import LOGGER_MODULE, RUNTIME_MODULE, kind_identifier, node_module
from ..nodes.definitions import TRIGGER_KINDS
from .graph_types import AnalyzedGraph, AnalyzedNode, GeneratedCode, NoEntryPointError, UnsupportedTriggerError


logger = logging.getLogger(__name__)


INTERPOLATION_MARKER = "{{"
CRON_PATH = "/__cron"
CRON_METHOD = "POST"

_ALWAYS_IMPORTED = {"create_context", "create_json_response", "handle_error", "new_id"}


# =============================================================================
# Code Writer
# =============================================================================

class CodeWriter:
    """Indented line accumulator that counts emitted statements."""

    def __init__(self, indent: int = 0):
        self._lines: List[str] = []
        self._indent = indent
        self.statements = 0

    def writeln(self, line: str = "") -> "CodeWriter":
        if line:
            self._lines.append("    " * self._indent + line)
            if not line.lstrip().startswith("#"):
                self.statements += 1
        else:
            self._lines.append("")
        return self

    def blank(self) -> "CodeWriter":
        if self._lines and self._lines[-1] != "":
            self._lines.append("")
        return self

    def extend(self, other: "CodeWriter") -> "CodeWriter":
        """Append another writer's lines verbatim (they carry their own indentation)."""
        self._lines.extend(other.lines())
        self.statements += other.statements
        return self

    def lines(self) -> List[str]:
        return list(self._lines)

    def comment(self, text: str) -> "CodeWriter":
        return self.writeln("# " + " ".join(text.split()))

    def push(self) -> "CodeWriter":
        self._indent += 1
        return self

    def pop(self) -> "CodeWriter":
        self._indent = max(0, self._indent - 1)
        return self

    def result(self) -> str:
        return "\n".join(self._lines)


# =============================================================================
# Structural Kinds
# =============================================================================

class StructuralKind(str, Enum):
    """Closed set of control-flow constructs the generator understands."""
    IF = "if"
    SWITCH = "switch"
    FOR = "for"
    MERGE = "merge"
    UNKNOWN = "unknown"

    @classmethod
    def of(cls, kind: str) -> "StructuralKind":
        try:
            structural = cls(kind)
        except ValueError:
            return cls.UNKNOWN
        return structural


# =============================================================================
# Code Generator
# =============================================================================

class CodeGenerator:
    """
    Generates the request handler for an analyzed workflow.

    The walk starts at the trigger's successor. Sequences are followed in a
    loop; only the arms of structural nodes nest. A frozenset of the node
    ids on the current path travels with the walk: a node already on the
    path is not emitted again (this is what stops cycles), and sibling
    branches never see each other's nodes.

    Everything after a merge node is emitted once, as a local coroutine
    `continue_<merge>()` defined at the top of `fetch`, and every branch
    reaching the merge awaits it. A continuation never calls one whose body
    is still being generated, so continuations cannot recurse at run time.
    """

    def __init__(self, analyzed: AnalyzedGraph):
        self.analyzed = analyzed
        self._nodes: Dict[str, AnalyzedNode] = {n.id: n for n in analyzed.nodes}
        self._var_names: Dict[str, str] = {}
        self._aliases: Dict[str, str] = {}
        self._node_imports: List[str] = []
        self._runtime_names: Set[str] = set()
        self._continuations: Dict[str, Optional[CodeWriter]] = {}
        self._open_merges: List[str] = []

    def generate(self) -> GeneratedCode:
        entry = self._nodes.get(self.analyzed.entry_point)
        if entry is None:
            raise NoEntryPointError("Entry point node not found")
        if entry.kind not in TRIGGER_KINDS:
            raise UnsupportedTriggerError(entry.kind)

        self._reset()

        body = CodeWriter(indent=3)
        self._emit_trigger(entry, body)

        start = self._first_successor(entry.id)
        if start is not None:
            body.blank()
            body.comment("Workflow execution flow")
            self._emit_node(start, frozenset({entry.id}), body)

        code = self._assemble(body)
        imports = [RUNTIME_MODULE, LOGGER_MODULE] + list(self._node_imports)

        logger.debug(f"Generated handler for entry {entry.id}: {len(code)} chars, {len(self._aliases)} node kinds")

        return GeneratedCode(
            code=code,
            imports=imports,
            exports=["default"],
            used_nodes=list(self._aliases.keys()),
        )

    def _reset(self) -> None:
        self._aliases.clear()
        self._node_imports.clear()
        self._continuations.clear()
        self._open_merges.clear()
        self._runtime_names = set(_ALWAYS_IMPORTED)
        self._var_names.clear()
        taken: Set[str] = set()
        for node in self.analyzed.nodes:
            base = kind_identifier(node.id)
            candidate = base
            suffix = 1
            while candidate in taken:
                candidate = f"{base}_{suffix}"
                suffix += 1
            taken.add(candidate)
            self._var_names[node.id] = candidate

    # =========================================================================
    # Module Assembly
    # =========================================================================

    def _assemble(self, body: CodeWriter) -> str:
        w = CodeWriter()
        w.writeln('"""Workflow request handler generated by flowsmith. Do not edit by hand."""')
        w.blank()
        w.writeln(f"from {RUNTIME_MODULE} import (")
        w.push()
        for name in sorted(self._runtime_names):
            w.writeln(f"{name},")
        w.pop()
        w.writeln(")")
        w.writeln(f"from {LOGGER_MODULE} import Logger")
        for kind in self._aliases:
            w.writeln(f"from {node_module(kind)} import execute as {self._aliases[kind]}")
        w.blank()
        w.writeln()
        w.writeln("class WorkflowHandler:")
        w.push()
        w.writeln('"""Handles requests arriving through the workflow trigger."""')
        w.blank()
        w.writeln("async def fetch(self, request, env, ctx):")
        w.push()
        w.writeln('workflow_id = env.get("WORKFLOW_ID") or new_id()')
        w.writeln("execution_id = new_id()")
        w.writeln("logger = Logger(workflow_id, execution_id)")
        w.writeln("context = create_context(workflow_id, execution_id)")
        secret_names = self._secret_names()
        if secret_names:
            w.writeln("secrets = {")
            w.push()
            for name in secret_names:
                w.writeln(f"{name!r}: env.get({'SECRET_' + name!r}),")
            w.pop()
            w.writeln("}")
        else:
            w.writeln("secrets = {}")
        w.blank()

        w.writeln("try:")
        w.push()
        for merge_id, continuation in self._continuations.items():
            w.writeln(f"async def {self._continuation_name(merge_id)}():")
            w.extend(continuation)
            w.blank()
        w.extend(body)
        w.blank()
        w.writeln("return create_json_response(")
        w.writeln('    {"success": True, "result": context.result(), "logs": logger.get_logs()}, 200')
        w.writeln(")")
        w.pop()
        w.writeln("except Exception as error:")
        w.push()
        w.writeln('logger.error("Workflow execution failed", error)')
        w.writeln("return create_json_response(")
        w.writeln("    {")
        w.writeln('        "success": False,')
        w.writeln('        "error": handle_error(error, context.current_step),')
        w.writeln('        "logs": logger.get_logs(),')
        w.writeln("    },")
        w.writeln("    500,")
        w.writeln(")")
        w.pop()
        w.pop()
        w.pop()
        w.blank()
        w.writeln()
        w.writeln("default = WorkflowHandler()")
        return w.result() + "\n"

    def _secret_names(self) -> List[str]:
        names: Set[str] = set()
        for node in self.analyzed.nodes:
            if node.kind in self._aliases:
                names.update(node.secrets)
        return sorted(names)

    def _use(self, *names: str) -> None:
        self._runtime_names.update(names)

    # =========================================================================
    # Trigger Prologues
    # =========================================================================

    def _emit_trigger(self, node: AnalyzedNode, w: CodeWriter) -> None:
        w.comment(f"Trigger: {node.id} ({node.kind})")
        if node.kind == "trigger-manual":
            self._emit_manual_trigger(node, w)
        elif node.kind == "trigger-webhook":
            self._emit_webhook_trigger(node, w)
        else:
            self._emit_cron_trigger(node, w)

    def _emit_unauthorized(self, w: CodeWriter, code: str, message: str, status: int) -> None:
        self._use("create_error_response")
        w.writeln(f"return create_error_response({code!r}, {message!r}, {status}, logger.get_logs())")

    def _emit_manual_trigger(self, node: AnalyzedNode, w: CodeWriter) -> None:
        self._use("bearer_token", "parse_json_body", "now_iso")
        w.writeln("if bearer_token(request) is None:")
        w.push()
        self._emit_unauthorized(w, "UNAUTHORIZED", "Missing or malformed bearer token", 401)
        w.pop()
        w.writeln('context.variables["input"] = parse_json_body(request)')
        w.writeln('context.variables["triggeredAt"] = now_iso()')

    def _emit_webhook_trigger(self, node: AnalyzedNode, w: CodeWriter) -> None:
        props = node.data
        methods = [str(m).upper() for m in (props.get("methods") or ["POST"])]
        auth_mode = props.get("authMode") or "public"

        w.writeln(f"if request.method not in {sorted(set(methods))!r}:")
        w.push()
        self._emit_unauthorized(w, "METHOD_NOT_ALLOWED", "Method not allowed", 405)
        w.pop()

        if auth_mode == "frontend":
            self._use("bearer_token")
            w.writeln("if bearer_token(request) is None:")
            w.push()
            self._emit_unauthorized(w, "UNAUTHORIZED", "Missing or malformed bearer token", 401)
            w.pop()
        elif props.get("verifySignature"):
            ref = props.get("secretKeyRef")
            if not ref:
                self._emit_unauthorized(w, "WEBHOOK_MISCONFIGURED", "Webhook signing secret is not configured", 500)
                return
            self._use("verify_signature")
            w.writeln(f"signing_secret = env.get({'SECRET_' + str(ref)!r})")
            w.writeln("if not signing_secret:")
            w.push()
            self._emit_unauthorized(w, "WEBHOOK_MISCONFIGURED", "Webhook signing secret is not configured", 500)
            w.pop()
            w.writeln('if not verify_signature(signing_secret, request.body, request.header("x-webhook-signature")):')
            w.push()
            self._emit_unauthorized(w, "INVALID_SIGNATURE", "Missing or invalid webhook signature", 401)
            w.pop()

        self._use("read_body")
        w.writeln('context.variables["input"] = read_body(request)')
        w.writeln('context.variables["headers"] = dict(request.headers)')
        w.writeln('context.variables["query"] = dict(request.query)')
        w.writeln('context.variables["method"] = request.method')

    def _emit_cron_trigger(self, node: AnalyzedNode, w: CodeWriter) -> None:
        props = node.data
        self._use("parse_json_body", "now_iso")
        w.writeln(f"if request.method != {CRON_METHOD!r} or request.path != {CRON_PATH!r}:")
        w.push()
        self._emit_unauthorized(w, "NOT_FOUND", "Not found", 404)
        w.pop()
        w.writeln('context.variables["input"] = parse_json_body(request)')
        w.writeln('context.variables["scheduledAt"] = now_iso()')
        w.writeln(f'context.variables["schedule"] = {str(props.get("schedule") or "* * * * *")!r}')

        condition = props.get("condition")
        if isinstance(condition, str) and condition.strip():
            self._use("evaluate_expression", "create_empty_response")
            w.writeln(f"if not evaluate_expression({condition!r}, context):")
            w.push()
            w.writeln('logger.info("Cron condition is false, skipping run")')
            w.writeln("return create_empty_response(204)")
            w.pop()

    # =========================================================================
    # Traversal
    # =========================================================================

    def _first_successor(self, node_id: str) -> Optional[str]:
        for edge in self.analyzed.outgoing(node_id):
            target = self._nodes.get(edge.target)
            if target is not None and not target.is_trigger:
                return edge.target
        return None

    def _emit_node(self, node_id: Optional[str], path: FrozenSet[str], w: CodeWriter) -> None:
        """Emit `node_id` and what follows it; sequences loop, only arms nest."""
        while node_id is not None and node_id not in path:
            node = self._nodes.get(node_id)
            if node is None:
                return
            path = path | {node_id}

            w.blank()
            w.comment(f"Node: {node.id} ({node.kind})")
            w.writeln(f"logger.info({'Executing node ' + node.id!r})")

            if node.is_trigger:
                w.comment("Trigger nodes only start a workflow")
                node_id = self.analyzed.next_target(node.id)
            elif node.is_structural:
                node_id = self._emit_structural(node, path, w)
            else:
                self._emit_action(node, w)
                node_id = self.analyzed.next_target(node.id)

    def _emit_branch(self, target: Optional[str], path: FrozenSet[str], w: CodeWriter) -> None:
        w.push()
        before = w.statements
        self._emit_node(target, path, w)
        if w.statements == before:
            w.writeln("pass")
        w.pop()

    def _emit_structural(self, node: AnalyzedNode, path: FrozenSet[str], w: CodeWriter) -> Optional[str]:
        """Emit a control-flow node; returns the node the sequence continues with."""
        structural = StructuralKind.of(node.kind)
        if structural is StructuralKind.IF:
            self._emit_if(node, path, w)
        elif structural is StructuralKind.SWITCH:
            return self._emit_switch(node, path, w)
        elif structural is StructuralKind.FOR:
            return self._emit_for(node, path, w)
        elif structural is StructuralKind.MERGE:
            self._emit_merge(node, w)
        else:
            w.comment(f"Unsupported structural node type: {node.kind}")
            return self.analyzed.next_target(node.id)
        return None

    def _emit_if(self, node: AnalyzedNode, path: FrozenSet[str], w: CodeWriter) -> None:
        self._use("evaluate_expression")
        var = f"condition_{self._var_names[node.id]}"
        condition = str(node.data.get("condition") or "False")

        w.writeln(f"{var} = evaluate_expression({condition!r}, context)")
        w.writeln(f"if {var}:")
        self._emit_branch(self.analyzed.port_target(node.id, "true"), path, w)
        w.writeln("else:")
        self._emit_branch(self.analyzed.port_target(node.id, "false"), path, w)

    def _emit_switch(self, node: AnalyzedNode, path: FrozenSet[str], w: CodeWriter) -> Optional[str]:
        self._use("evaluate_expression")
        var = f"switch_value_{self._var_names[node.id]}"
        expression = str(node.data.get("expression") or "''")
        cases = [
            str(case.get("value")) if isinstance(case, dict) else str(case)
            for case in (node.data.get("cases") or [])
        ]

        w.writeln(f"{var} = evaluate_expression({expression!r}, context)")
        default_target = self.analyzed.port_target(node.id, "default")
        if not cases:
            return default_target

        for index, value in enumerate(cases):
            keyword = "if" if index == 0 else "elif"
            w.writeln(f"{keyword} str({var}) == {value!r}:")
            self._emit_branch(self.analyzed.port_target(node.id, value), path, w)
        w.writeln("else:")
        self._emit_branch(default_target, path, w)
        return None

    def _emit_for(self, node: AnalyzedNode, path: FrozenSet[str], w: CodeWriter) -> Optional[str]:
        self._use("evaluate_expression")
        name = self._var_names[node.id]
        iterator = str(node.data.get("iterator") or "[]")
        item_variable = str(node.data.get("itemVariable") or "item")
        batch_size = node.data.get("batchSize") or 1
        if not isinstance(batch_size, int) or isinstance(batch_size, bool) or batch_size < 1:
            batch_size = 1

        items = f"items_{name}"
        index = f"index_{name}"
        w.writeln(f"{items} = list(evaluate_expression({iterator!r}, context) or [])")
        w.writeln(f"for {index} in range(0, len({items}), {batch_size}):")
        w.push()
        if batch_size == 1:
            w.writeln(f"context.variables[{item_variable!r}] = {items}[{index}]")
        else:
            w.writeln(f"context.variables[{item_variable!r}] = {items}[{index}:{index} + {batch_size}]")
        w.writeln(f"context.variables[{item_variable + 'Index'!r}] = {index}")
        self._emit_node(self.analyzed.port_target(node.id, "body"), path, w)
        w.pop()
        # `done` sees only the path up to the loop, not the nodes of its body
        return self.analyzed.port_target(node.id, "done")

    # =========================================================================
    # Merge Continuations
    # =========================================================================

    def _continuation_name(self, merge_id: str) -> str:
        return f"continue_{self._var_names[merge_id]}"

    def _emit_merge(self, node: AnalyzedNode, w: CodeWriter) -> None:
        if node.id not in self._continuations:
            self._build_continuation(node)
        w.writeln(f"await {self._continuation_name(node.id)}()")

    def _build_continuation(self, node: AnalyzedNode) -> None:
        # Slot reserved first so definitions come out in first-reached order
        self._continuations[node.id] = None
        self._open_merges.append(node.id)

        # Body of `async def` nested in fetch's try block
        body = CodeWriter(indent=4)
        self._emit_node(self.analyzed.next_target(node.id), frozenset(self._open_merges), body)
        if body.statements == 0:
            body.writeln("pass")

        self._open_merges.pop()
        self._continuations[node.id] = body


    # =========================================================================
    # Action Nodes
    # =========================================================================

    def _alias_for(self, kind: str) -> str:
        alias = self._aliases.get(kind)
        if alias is not None:
            return alias
        base = f"{kind_identifier(kind)}_runtime"
        candidate = base
        suffix = 1
        existing = set(self._aliases.values())
        while candidate in existing:
            candidate = f"{base}{suffix}"
            suffix += 1
        self._aliases[kind] = candidate
        module = node_module(kind)
        if module not in self._node_imports:
            self._node_imports.append(module)
        return candidate

    def _emit_action(self, node: AnalyzedNode, w: CodeWriter) -> None:
        alias = self._alias_for(node.kind)
        name = self._var_names[node.id]
        props = f"props_{name}"
        result = f"result_{name}"

        w.writeln(f"context.current_step = {node.id!r}")
        literal = pprint.pformat(node.data, indent=1, width=88, sort_dicts=False)
        if _has_interpolation(node.data):
            self._use("interpolate_config")
            self._write_literal(w, f"{props} = interpolate_config(", literal, ", context)")
        else:
            self._write_literal(w, f"{props} = ", literal, "")
        w.writeln(f"{result} = await {alias}({props}, secrets)")
        w.writeln(f"context.set_result({node.id!r}, {result})")
        w.writeln(f"logger.info({'Node ' + node.id + ' completed'!r})")

    @staticmethod
    def _write_literal(w: CodeWriter, prefix: str, literal: str, suffix: str) -> None:
        lines = literal.splitlines()
        if len(lines) == 1:
            w.writeln(f"{prefix}{lines[0]}{suffix}")
            return
        w.writeln(f"{prefix}{lines[0]}")
        w.push()
        for line in lines[1:-1]:
            w.writeln(line)
        w.writeln(f"{lines[-1]}{suffix}")
        w.pop()


def _has_interpolation(value) -> bool:
    if isinstance(value, str):
        return INTERPOLATION_MARKER in value
    if isinstance(value, dict):
        return any(_has_interpolation(v) for v in value.values())
    if isinstance(value, list):
        return any(_has_interpolation(v) for v in value)
    return False


def generate(analyzed: AnalyzedGraph) -> GeneratedCode:
    """Generate handler source for an analyzed graph."""
    return CodeGenerator(analyzed).generate()
