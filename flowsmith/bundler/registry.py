"""
Runtime registry.

Maps the logical import vocabulary used by generated handlers
(`workflow_runtime`, `workflow_runtime.logger`, `node_base`,
`nodes_<kind>.runtime`) to the provider modules whose source gets embedded
into bundles.
"""

from __future__ import annotations
from typing import Dict, Iterable, List, Optional
from dataclasses import dataclass
import importlib.util
import logging

from ..abi import LOGGER_MODULE, NODE_BASE_MODULE, RUNTIME_MODULE, node_module


logger = logging.getLogger(__name__)


INTERNAL_PACKAGE = "flowsmith"


@dataclass
class RuntimeProvider:
    """
    A module that can be embedded into a bundle.

    `source` may be given inline (useful for tests and third-party runtimes);
    otherwise the source file of the importable module `module` is read.
    """
    module: str
    source: Optional[str] = None

    def load_source(self) -> str:
        if self.source is not None:
            return self.source
        spec = importlib.util.find_spec(self.module)
        if spec is None or not spec.origin or not spec.origin.endswith(".py"):
            raise LookupError(f"No Python source found for provider module {self.module}")
        with open(spec.origin, "r", encoding="utf-8") as f:
            return f.read()


class RuntimeRegistry:
    """
    Registry of logical specifiers and concrete provider modules.

    Provider modules may import one another by their concrete name
    (`flowsmith.runtime.expressions`); those are registered as internal
    providers without a logical specifier.
    """

    def __init__(self):
        self._logical: Dict[str, str] = {}
        self._providers: Dict[str, RuntimeProvider] = {}
        self._node_kinds: Dict[str, str] = {}

    def register(self, specifier: str, provider: RuntimeProvider) -> None:
        """Bind a logical specifier to a provider module."""
        self._logical[specifier] = provider.module
        self._providers[provider.module] = provider

    def register_internal(self, provider: RuntimeProvider) -> None:
        """Register a provider reachable only by its concrete module name."""
        self._providers[provider.module] = provider

    def register_node(self, kind: str, provider: RuntimeProvider) -> None:
        """Register the runtime of a node kind under `nodes_<kind>.runtime`."""
        specifier = node_module(kind)
        for other, other_spec in self._node_kinds.items():
            if other != kind and other_spec == specifier:
                raise ValueError(f"Node kinds {other!r} and {kind!r} share the import name {specifier}")
        self._node_kinds[kind] = specifier
        self.register(specifier, provider)

    def has_node(self, kind: str) -> bool:
        return kind in self._node_kinds

    def node_kinds(self) -> List[str]:
        return sorted(self._node_kinds)

    def missing_nodes(self, kinds: Iterable[str]) -> List[str]:
        return [kind for kind in kinds if not self.has_node(kind)]

    def resolve(self, name: str) -> Optional[str]:
        """
        Resolve an import name to the provider module that embeds it.

        Returns None when the name is not served by the registry.
        """
        if name in self._logical:
            return self._logical[name]
        if name in self._providers:
            return name
        return None

    def provider(self, module: str) -> RuntimeProvider:
        return self._providers[module]

    def is_internal_name(self, name: str) -> bool:
        """Names that must never fall through to default resolution."""
        top = name.split(".")[0]
        return (
            top == RUNTIME_MODULE
            or top == NODE_BASE_MODULE
            or top.startswith("nodes_")
            or top == INTERNAL_PACKAGE
        )


# =============================================================================
# Default Registry
# =============================================================================

NODE_RUNTIMES = {
    "http-request": "flowsmith.nodes.http_request.runtime",
    "code": "flowsmith.nodes.code.runtime",
    "send-email": "flowsmith.nodes.resend.send_email.runtime",
    "resend-send-email": "flowsmith.nodes.resend.send_email.runtime",
}


def default_registry() -> RuntimeRegistry:
    """Registry of the runtimes that ship with flowsmith."""
    registry = RuntimeRegistry()
    registry.register(RUNTIME_MODULE, RuntimeProvider("flowsmith.runtime.context"))
    registry.register(LOGGER_MODULE, RuntimeProvider("flowsmith.runtime.logger"))
    registry.register(NODE_BASE_MODULE, RuntimeProvider("flowsmith.nodes.base"))
    registry.register_internal(RuntimeProvider("flowsmith.runtime.expressions"))

    for kind, module in NODE_RUNTIMES.items():
        registry.register_node(kind, RuntimeProvider(module))

    logger.debug(f"Default runtime registry: {', '.join(registry.node_kinds())}")
    return registry
