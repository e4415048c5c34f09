"""
Execution logger for generated workflow handlers.

Collects structured entries that are returned in the response envelope and
mirrors each of them to the standard logging module.
"""

import logging
import time
from typing import Any, Dict, List, Optional


_log = logging.getLogger("flowsmith.workflow")


class Logger:
    """Per-execution log collector."""

    def __init__(self, workflow_id: str, execution_id: str):
        self.workflow_id = workflow_id
        self.execution_id = execution_id
        self._entries: List[Dict[str, Any]] = []

    def info(self, message: str, data: Any = None) -> None:
        self._record("info", message, data)
        _log.info(f"[{self.execution_id}] {message}")

    def debug(self, message: str, data: Any = None) -> None:
        self._record("debug", message, data)
        _log.debug(f"[{self.execution_id}] {message}")

    def warn(self, message: str, data: Any = None) -> None:
        self._record("warn", message, data)
        _log.warning(f"[{self.execution_id}] {message}")

    def error(self, message: str, error: Optional[Any] = None) -> None:
        if isinstance(error, BaseException):
            data = {"message": str(error), "type": type(error).__name__}
        else:
            data = error
        self._record("error", message, data)
        _log.error(f"[{self.execution_id}] {message}: {data}")

    def _record(self, level: str, message: str, data: Any) -> None:
        self._entries.append({
            "timestamp": int(time.time() * 1000),
            "level": level,
            "message": message,
            "data": data,
            "workflowId": self.workflow_id,
            "executionId": self.execution_id,
        })

    def get_logs(self) -> List[Dict[str, Any]]:
        return list(self._entries)
