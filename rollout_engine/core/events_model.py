"""Timeline event models for the rollout engine."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from threading import Lock
from typing import Any, Callable, Dict, Iterator, List, Optional
from uuid import uuid4


class EventSeverity(Enum):
    """Severity of a timeline event."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


@dataclass(frozen=True)
class DeploymentEvent:
    """Single entry in a deployment timeline."""

    deployment_id: str
    severity: EventSeverity
    phase: str
    message: str
    details: Optional[Dict[str, Any]] = None
    id: str = field(default_factory=lambda: f"event_{uuid4().hex[:12]}")
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    sequence: int = 0


class EventLog:
    """
    Append-only, ordered history of one deployment.

    Ordering is creation order; every appended event receives a
    monotonically increasing ``sequence`` number. An optional listener
    receives each event after it was recorded (notification fan-out).
    """

    def __init__(
        self,
        deployment_id: str,
        listener: Optional[Callable[[DeploymentEvent], None]] = None,
    ):
        self._deployment_id = deployment_id
        self._events: List[DeploymentEvent] = []
        self._lock = Lock()
        self._listener = listener

    def append(
        self,
        severity: EventSeverity,
        phase: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> DeploymentEvent:
        with self._lock:
            event = DeploymentEvent(
                deployment_id=self._deployment_id,
                severity=severity,
                phase=phase,
                message=message,
                details=details,
                sequence=len(self._events),
            )
            self._events.append(event)

        if self._listener is not None:
            self._listener(event)
        return event

    def attach_listener(self, listener: Callable[[DeploymentEvent], None]) -> None:
        self._listener = listener

    def snapshot(self) -> List[DeploymentEvent]:
        """Copy of the events recorded so far."""
        with self._lock:
            return list(self._events)

    def last(self) -> Optional[DeploymentEvent]:
        with self._lock:
            return self._events[-1] if self._events else None

    def filter(self, severity: EventSeverity) -> List[DeploymentEvent]:
        return [e for e in self.snapshot() if e.severity == severity]

    def __iter__(self) -> Iterator[DeploymentEvent]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
