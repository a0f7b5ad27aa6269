"""Result types for plan execution."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from stackplan.graph.models import NodeHandle


@dataclass
class ApplyResult:
    """Outcome of driving a provisioning executor over a plan."""

    realized: list[NodeHandle] = field(default_factory=list)
    failed: dict[NodeHandle, str] = field(default_factory=dict)
    skipped: list[NodeHandle] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        """Whether every step was realized."""
        return not self.failed and not self.skipped

    def to_dict(self) -> dict[str, Any]:
        return {
            "realized": [str(h) for h in self.realized],
            "failed": {str(h): reason for h, reason in self.failed.items()},
            "skipped": [str(h) for h in self.skipped],
            "duration_seconds": self.duration_seconds,
            "success": self.success,
        }


class ResultCollector:
    """Aggregates step outcomes; safe to call from worker threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._result = ApplyResult()

    def record(self, handle: NodeHandle) -> None:
        with self._lock:
            self._result.realized.append(handle)

    def record_error(self, handle: NodeHandle, error: Exception) -> None:
        with self._lock:
            self._result.failed[handle] = f"{type(error).__name__}: {error}"

    def record_skipped(self, handle: NodeHandle) -> None:
        with self._lock:
            self._result.skipped.append(handle)

    def blocked(self, handles: tuple[NodeHandle, ...] | list[NodeHandle]) -> bool:
        """Whether any of ``handles`` failed or was skipped."""
        with self._lock:
            return any(h in self._result.failed or h in self._result.skipped for h in handles)

    def finalize(self, duration: float) -> ApplyResult:
        """Return the final result with duration set."""
        self._result.duration_seconds = duration
        return self._result
