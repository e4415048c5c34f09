"""
Logical import vocabulary of generated handlers.

Generated code imports only these names; the bundler's runtime registry
maps them to the modules that implement them.
"""

import re


RUNTIME_MODULE = "workflow_runtime"
LOGGER_MODULE = "workflow_runtime.logger"
NODE_BASE_MODULE = "node_base"


def kind_identifier(kind: str) -> str:
    """Python identifier fragment for a node kind (`send-email` -> `send_email`)."""
    ident = re.sub(r"[^0-9a-zA-Z]+", "_", kind).strip("_").lower()
    if not ident:
        ident = "node"
    if ident[0].isdigit():
        ident = f"n{ident}"
    return ident


def node_module(kind: str) -> str:
    """Logical import specifier of a node kind's runtime."""
    return f"nodes_{kind_identifier(kind)}.runtime"
