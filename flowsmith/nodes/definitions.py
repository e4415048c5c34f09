"""
Flowsmith Node Definitions

Static metadata for the node kinds shipped with Flowsmith: role, category,
control ports, declared secrets and a pydantic model for the node's properties.

The compiler uses these to hydrate sanitized nodes (nodes that only carry a
kind) and to warn about invalid configuration. Runtime behaviour lives in the
per-kind runtime modules, not here.
"""

from __future__ import annotations
from typing import Dict, List, Literal, Optional, Type
from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field, ValidationError


# =============================================================================
# Property Models
# =============================================================================

class _Properties(BaseModel):
    model_config = ConfigDict(extra="allow")


class IfProperties(_Properties):
    condition: str = Field(..., min_length=1)


class SwitchCase(_Properties):
    value: str
    label: Optional[str] = None


class SwitchProperties(_Properties):
    expression: str = Field(..., min_length=1)
    cases: List[SwitchCase] = Field(default_factory=list)


class ForProperties(_Properties):
    iterator: str = Field(..., min_length=1)
    itemVariable: str = "item"
    batchSize: Optional[int] = Field(default=None, ge=1)


class MergeProperties(_Properties):
    pass


class ManualTriggerProperties(_Properties):
    pass


class WebhookTriggerProperties(_Properties):
    path: str = "/"
    methods: List[Literal["GET", "POST", "PUT", "PATCH", "DELETE"]] = Field(default_factory=lambda: ["POST"])
    authMode: Literal["public", "frontend"] = "public"
    verifySignature: bool = False
    secretKeyRef: Optional[str] = None


class CronTriggerProperties(_Properties):
    schedule: str = "* * * * *"
    condition: Optional[str] = None


class HeaderEntry(_Properties):
    key: str
    value: str


class HttpRequestProperties(_Properties):
    method: Literal["GET", "POST", "PUT", "DELETE", "PATCH"]
    url: str = Field(..., min_length=1)
    headers: List[HeaderEntry] = Field(default_factory=list)
    body: Optional[str] = None
    timeout: int = Field(default=30000, ge=1)


class CodeProperties(_Properties):
    code: str = Field(..., min_length=1)
    inputVariables: List[str] = Field(default_factory=list)


class SendEmailProperties(_Properties):
    toEmail: str = Field(..., min_length=3)
    fromEmail: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)


# =============================================================================
# Node Definition
# =============================================================================

@dataclass(frozen=True)
class NodeDefinition:
    """Metadata describing one node kind."""
    name: str
    title: str
    node_type: str
    category: str
    properties: Type[BaseModel]
    is_structural: bool = False
    outputs: List[str] = field(default_factory=list)
    secrets: List[str] = field(default_factory=list)


STRUCTURAL_KINDS = ("if", "switch", "for", "merge")
TRIGGER_KINDS = ("trigger-manual", "trigger-webhook", "trigger-cron")


NODE_DEFINITIONS: Dict[str, NodeDefinition] = {
    d.name: d
    for d in [
        NodeDefinition("trigger-manual", "Manual Trigger", "trigger", "core",
                       ManualTriggerProperties, outputs=["output"]),
        NodeDefinition("trigger-webhook", "Webhook", "trigger", "core",
                       WebhookTriggerProperties, outputs=["output"]),
        NodeDefinition("trigger-cron", "Schedule", "trigger", "core",
                       CronTriggerProperties, outputs=["output"]),
        NodeDefinition("if", "If", "action", "core", IfProperties,
                       is_structural=True, outputs=["true", "false"]),
        NodeDefinition("switch", "Switch", "action", "core", SwitchProperties,
                       is_structural=True),
        NodeDefinition("for", "For Loop", "action", "core", ForProperties,
                       is_structural=True, outputs=["body", "done"]),
        NodeDefinition("merge", "Merge", "action", "core", MergeProperties,
                       is_structural=True, outputs=["output"]),
        NodeDefinition("http-request", "HTTP Request", "action", "default-lib",
                       HttpRequestProperties),
        NodeDefinition("code", "Code", "action", "core", CodeProperties),
        NodeDefinition("send-email", "Resend send email", "action", "default-lib",
                       SendEmailProperties, secrets=["apiKey"]),
        NodeDefinition("resend-send-email", "Resend send email", "action", "default-lib",
                       SendEmailProperties, secrets=["apiKey"]),
    ]
}


def get_definition(kind: str) -> Optional[NodeDefinition]:
    """Look up the definition for a node kind, if Flowsmith ships one."""
    return NODE_DEFINITIONS.get(kind)


def _is_interpolated(value) -> bool:
    return isinstance(value, str) and "{{" in value


def validate_properties(kind: str, properties: Dict) -> Optional[str]:
    """
    Validate a node's properties against its kind's model.

    Returns:
        None when valid or when the kind is unknown, else a short error message.
        Fields holding an interpolation marker are resolved at run time and
        are not type-checked here.
    """
    definition = get_definition(kind)
    if definition is None:
        return None

    try:
        definition.properties.model_validate(properties)
    except ValidationError as e:
        problems = [
            err for err in e.errors()
            if not (err["loc"] and _is_interpolated(properties.get(err["loc"][0])))
        ]
        if problems:
            first = problems[0]
            location = ".".join(str(part) for part in first["loc"]) or "properties"
            return f"{location}: {first['msg']}"
    return None
