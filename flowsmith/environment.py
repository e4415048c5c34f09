"""
Environment variables read by generated handlers.

Shared by the compiler results and the bundler, which scans handler source
for `WORKFLOW_ID` and `SECRET_<name>` reads.
"""

from typing import Any, Dict, List
from dataclasses import dataclass, field
import re


WORKFLOW_ID_PATTERN = re.compile(r"""env(?:\.get\(\s*|\[\s*)["']WORKFLOW_ID["']""")
SECRET_PATTERN = re.compile(r"""["']SECRET_([A-Za-z0-9_]+)["']""")


@dataclass
class EnvironmentVariables:
    """Environment variables a bundle reads at run time."""
    workflow_id: bool = False
    secrets: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"workflowId": self.workflow_id, "secrets": list(self.secrets)}


def analyze_environment_variables(code: str) -> EnvironmentVariables:
    """Find WORKFLOW_ID and SECRET_<name> reads in handler source."""
    secrets: List[str] = []
    for match in SECRET_PATTERN.finditer(code):
        if match.group(1) not in secrets:
            secrets.append(match.group(1))
    return EnvironmentVariables(
        workflow_id=bool(WORKFLOW_ID_PATTERN.search(code)),
        secrets=secrets,
    )
