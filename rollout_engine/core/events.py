"""Event emitters (notification sinks) for deployment timelines."""

import logging
from abc import ABC, abstractmethod
from typing import Iterable, List

import requests

from rollout_engine.core.events_model import DeploymentEvent, EventSeverity

logger = logging.getLogger(__name__)


_LOG_LEVELS = {
    EventSeverity.INFO: logging.INFO,
    EventSeverity.SUCCESS: logging.INFO,
    EventSeverity.WARNING: logging.WARNING,
    EventSeverity.ERROR: logging.ERROR,
}


class EventEmitter(ABC):
    """Abstract event emitter."""

    @abstractmethod
    def emit(self, events: Iterable[DeploymentEvent]) -> None:
        """Emit one or more events."""
        pass


class LoggingEventEmitter(EventEmitter):
    """Mirrors timeline events to the log."""

    def emit(self, events: Iterable[DeploymentEvent]) -> None:
        for event in events:
            logger.log(
                _LOG_LEVELS[event.severity],
                f"[{event.deployment_id}] {event.phase}: {event.message}",
            )


class RecordingEventEmitter(EventEmitter):
    """Keeps every emitted event in memory."""

    def __init__(self):
        self.events: List[DeploymentEvent] = []

    def emit(self, events: Iterable[DeploymentEvent]) -> None:
        self.events.extend(events)


class WebhookEventEmitter(EventEmitter):
    """
    Posts events to a webhook URL.

    Delivery failures are logged and dropped so a broken receiver can
    never stall a rollout.
    """

    def __init__(self, url: str, timeout: int = 5):
        self.url = url
        self.timeout = timeout

    def emit(self, events: Iterable[DeploymentEvent]) -> None:
        for event in events:
            payload = {
                "id": event.id,
                "deployment_id": event.deployment_id,
                "timestamp": event.timestamp.isoformat(),
                "type": event.severity.value,
                "phase": event.phase,
                "message": event.message,
                "details": event.details,
            }
            try:
                response = requests.post(self.url, json=payload, timeout=self.timeout)
                response.raise_for_status()
            except requests.exceptions.RequestException as e:
                logger.warning(f"[{event.deployment_id}] Webhook delivery to {self.url} failed: {e}")


class MultiEventEmitter(EventEmitter):
    """Fan-out to multiple emitters."""

    def __init__(self, emitters: Iterable[EventEmitter]):
        self._emitters = list(emitters)

    def emit(self, events: Iterable[DeploymentEvent]) -> None:
        events = list(events)
        for emitter in self._emitters:
            emitter.emit(events)


class NullEventEmitter(EventEmitter):
    """No-op emitter (used when events are not needed)."""

    def emit(self, events: Iterable[DeploymentEvent]) -> None:
        pass
