"""
Flowsmith Build Engine

Produces one self-contained Python script from an entry module.

Features:
- Import resolution through the RuntimeRegistry (logical and concrete names)
- Embedded modules loaded lazily by an in-bundle `_bundle_require`
- Tree-shaking of unused top-level definitions in embedded modules
- Optional docstring stripping (minify)
- Final syntax check of the produced text
"""

from __future__ import annotations
from typing import Dict, List, Optional, Set
from dataclasses import dataclass, field
import ast
import importlib.util
import logging
import sys

from .errors import BuildFailedError, ModuleNotFoundBundleError
from .registry import RuntimeRegistry


logger = logging.getLogger(__name__)


REQUIRE = "_bundle_require"

LOADER_TEMPLATE = '''\
import types as _bundle_types

_BUNDLE_SOURCES = {sources}
_BUNDLE_CACHE = {{}}


def {require}(name):
    module = _BUNDLE_CACHE.get(name)
    if module is None:
        module = _bundle_types.ModuleType(name)
        module.__dict__["{require}"] = {require}
        _BUNDLE_CACHE[name] = module
        exec(compile(_BUNDLE_SOURCES[name], "<bundle:" + name + ">", "exec"), module.__dict__)
    return module
'''


@dataclass
class BuildOutput:
    """Result of one build."""
    text: str
    embedded: List[str] = field(default_factory=list)
    external: List[str] = field(default_factory=list)

    @property
    def third_party(self) -> List[str]:
        """External top-level modules that are not part of the standard library."""
        stdlib = sys.stdlib_module_names
        return [name for name in self.external if name not in stdlib]


@dataclass
class _EmbeddedModule:
    name: str
    tree: ast.Module
    requested: Set[str] = field(default_factory=set)
    opaque: bool = False


def _require_call(module: str) -> ast.Call:
    return ast.Call(func=ast.Name(id=REQUIRE, ctx=ast.Load()), args=[ast.Constant(value=module)], keywords=[])


def _assign(target: str, value: ast.expr) -> ast.Assign:
    return ast.Assign(targets=[ast.Name(id=target, ctx=ast.Store())], value=value)


# =============================================================================
# Import Rewriting
# =============================================================================

class _ImportRewriter(ast.NodeTransformer):
    """Replaces imports served by the registry with `_bundle_require` lookups."""

    def __init__(self, engine: "BuildEngine", module: Optional[str]):
        self.engine = engine
        self.module = module
        self.future: List[ast.ImportFrom] = []

    @property
    def importer(self) -> str:
        return self.module or "<entry>"

    def _absolute(self, name: Optional[str], level: int) -> str:
        if not level:
            return name or ""
        if self.module is None:
            raise BuildFailedError("Relative imports are not allowed in the entry module")
        package = self.module.rpartition(".")[0]
        try:
            return importlib.util.resolve_name("." * level + (name or ""), package)
        except (ImportError, ValueError) as e:
            raise BuildFailedError(f"Bad relative import in {self.module}: {e}") from e

    def visit_ImportFrom(self, node: ast.ImportFrom):
        if node.module == "__future__" and not node.level:
            if self.module is None:
                self.future.append(node)
                return None
            return node

        name = self._absolute(node.module, node.level)
        target = self.engine.resolve(name, self.importer)
        if target is None:
            return node

        statements = []
        for alias in node.names:
            if alias.name == "*":
                raise BuildFailedError(f"Star import of {name} in {self.importer} cannot be bundled")
            self.engine.request(target, alias.name)
            value = ast.Attribute(value=_require_call(target), attr=alias.name, ctx=ast.Load())
            statements.append(_assign(alias.asname or alias.name, value))
        return [ast.copy_location(s, node) for s in statements]

    def visit_Import(self, node: ast.Import):
        kept = []
        statements = []
        for alias in node.names:
            target = self.engine.resolve(alias.name, self.importer)
            if target is None:
                kept.append(alias)
                continue
            if alias.asname is None and "." in alias.name:
                raise BuildFailedError(
                    f"'import {alias.name}' in {self.importer} needs an alias to be bundled"
                )
            self.engine.request(target, None)
            statements.append(_assign(alias.asname or alias.name, _require_call(target)))

        if kept:
            statements.insert(0, ast.Import(names=kept))
        return [ast.copy_location(s, node) for s in statements]


# =============================================================================
# Tree Shaking / Minify
# =============================================================================

_DEFINITIONS = (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)


def _referenced_names(node: ast.AST) -> Set[str]:
    return {n.id for n in ast.walk(node) if isinstance(n, ast.Name)}


def shake(tree: ast.Module, roots: Set[str]) -> List[str]:
    """
    Remove top-level functions and classes that nothing references.

    Every non-definition statement is kept and its names become roots, as
    are the names importers pull out of the module. Returns removed names.
    """
    definitions: Dict[str, List[ast.stmt]] = {}
    live = set(roots)
    for stmt in tree.body:
        if isinstance(stmt, _DEFINITIONS):
            definitions.setdefault(stmt.name, []).append(stmt)
        else:
            live |= _referenced_names(stmt)

    pending = [name for name in live if name in definitions]
    kept: Set[str] = set()
    while pending:
        name = pending.pop()
        if name in kept:
            continue
        kept.add(name)
        for stmt in definitions[name]:
            for ref in _referenced_names(stmt):
                if ref in definitions and ref not in kept:
                    pending.append(ref)

    removed = sorted(set(definitions) - kept)
    tree.body = [
        stmt for stmt in tree.body
        if not isinstance(stmt, _DEFINITIONS) or stmt.name in kept
    ]
    return removed


def _bound_names(tree: ast.Module) -> Set[str]:
    names: Set[str] = set()
    for stmt in tree.body:
        if isinstance(stmt, _DEFINITIONS):
            names.add(stmt.name)
        elif isinstance(stmt, (ast.Assign, ast.AnnAssign, ast.AugAssign)):
            targets = stmt.targets if isinstance(stmt, ast.Assign) else [stmt.target]
            for target in targets:
                names |= {n.id for n in ast.walk(target) if isinstance(n, ast.Name)}
        elif isinstance(stmt, (ast.Import, ast.ImportFrom)):
            names |= {(alias.asname or alias.name).split(".")[0] for alias in stmt.names}
    return names


def strip_docstrings(tree: ast.Module) -> None:
    """Drop module, class and function docstrings."""
    for node in ast.walk(tree):
        if not isinstance(node, (ast.Module,) + _DEFINITIONS):
            continue
        body = node.body
        if (
            body
            and isinstance(body[0], ast.Expr)
            and isinstance(body[0].value, ast.Constant)
            and isinstance(body[0].value.value, str)
        ):
            body.pop(0)
            if not body and not isinstance(node, ast.Module):
                body.append(ast.Pass())


# =============================================================================
# Build Engine
# =============================================================================

class BuildEngine:
    """Builds a bundle from an entry file; one instance per build."""

    def __init__(self, registry: RuntimeRegistry):
        self.registry = registry
        self._modules: Dict[str, _EmbeddedModule] = {}
        self._queue: List[str] = []
        self._external: List[str] = []

    def resolve(self, name: str, importer: str) -> Optional[str]:
        """
        Provider module for an import, or None when it stays a plain import.

        Raises ModuleNotFoundBundleError for unregistered internal names and
        for external names default resolution cannot find.
        """
        target = self.registry.resolve(name)
        if target is not None:
            return target
        if self.registry.is_internal_name(name):
            raise ModuleNotFoundBundleError(name, importer)

        top = name.split(".")[0]
        try:
            spec = importlib.util.find_spec(top)
        except (ImportError, ValueError):
            spec = None
        if spec is None:
            raise ModuleNotFoundBundleError(name, importer)
        if top not in self._external:
            self._external.append(top)
        return None

    def request(self, module: str, attr: Optional[str]) -> None:
        """Record that `module` is imported, whole (attr None) or for one name."""
        if module not in self._modules:
            try:
                source = self.registry.provider(module).load_source()
            except (LookupError, OSError) as e:
                raise BuildFailedError(f"Cannot read runtime module {module}: {e}") from e
            self._modules[module] = _EmbeddedModule(module, self._parse(source, module))
            self._queue.append(module)

        embedded = self._modules[module]
        if attr is None:
            embedded.opaque = True
        else:
            embedded.requested.add(attr)

    def build(self, entry_path: str, minify: bool = True) -> BuildOutput:
        with open(entry_path, "r", encoding="utf-8") as f:
            entry_source = f.read()
        entry = self._parse(entry_source, entry_path)

        rewriter = _ImportRewriter(self, None)
        entry = ast.fix_missing_locations(rewriter.visit(entry))

        processed: Set[str] = set()
        while self._queue:
            name = self._queue.pop(0)
            if name in processed:
                continue
            processed.add(name)
            embedded = self._modules[name]
            embedded.tree = ast.fix_missing_locations(_ImportRewriter(self, name).visit(embedded.tree))

        sources: Dict[str, str] = {}
        for name, embedded in self._modules.items():
            missing = sorted(embedded.requested - _bound_names(embedded.tree))
            if missing:
                raise BuildFailedError(f"Module {name} does not define: {', '.join(missing)}")
            if not embedded.opaque:
                removed = shake(embedded.tree, embedded.requested)
                if removed:
                    logger.debug(f"Tree-shaken from {name}: {', '.join(removed)}")
            if minify:
                strip_docstrings(embedded.tree)
            sources[name] = ast.unparse(embedded.tree) + "\n"

        if minify:
            strip_docstrings(entry)

        text = self._assemble(rewriter.future, sources, entry)

        try:
            compile(text, "<bundle>", "exec")
        except SyntaxError as e:
            raise BuildFailedError(f"Bundle is not valid Python: {e}") from e

        logger.debug(
            f"Built bundle: {len(text)} chars, embedded={list(sources)}, external={self._external}"
        )
        return BuildOutput(
            text=text,
            embedded=list(sources),
            external=list(self._external),
        )

    @staticmethod
    def _parse(source: str, origin: str) -> ast.Module:
        try:
            return ast.parse(source, filename=origin)
        except SyntaxError as e:
            raise BuildFailedError(f"Syntax error in {origin}: {e}") from e

    @staticmethod
    def _assemble(future: List[ast.ImportFrom], sources: Dict[str, str], entry: ast.Module) -> str:
        parts = []
        if future:
            parts.append("\n".join(ast.unparse(node) for node in future) + "\n")

        literal = "{\n" + "".join(f"    {name!r}: {text!r},\n" for name, text in sources.items()) + "}"
        parts.append(LOADER_TEMPLATE.format(sources=literal, require=REQUIRE))
        parts.append(ast.unparse(entry) + "\n")
        return "\n\n".join(parts)
