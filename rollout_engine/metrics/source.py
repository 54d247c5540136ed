# rollout_engine/metrics/source.py
"""Metrics sampling for deployments under observation."""

import logging
from abc import ABC, abstractmethod

from rollout_engine.core.errors import StrategyExecutionError
from rollout_engine.core.events_model import EventSeverity
from rollout_engine.core.models import Deployment, MetricsSnapshot

logger = logging.getLogger(__name__)


class MetricsProvider(ABC):
    """Telemetry backend contract."""

    @abstractmethod
    def sample(self, deployment_id: str) -> MetricsSnapshot:
        """Current error rate / latency / throughput for the live traffic mix."""
        raise NotImplementedError


class StaticMetricsProvider(MetricsProvider):
    """Always reports the same snapshot."""

    def __init__(self, snapshot: MetricsSnapshot | None = None):
        self._snapshot = snapshot or MetricsSnapshot()

    def sample(self, deployment_id: str) -> MetricsSnapshot:
        return self._snapshot


class MetricsSource:
    """
    Samples the provider once per monitoring window and records the
    snapshot on the deployment.
    """

    def __init__(self, provider: MetricsProvider):
        self._provider = provider

    def sample(self, deployment: Deployment, phase: str = "Monitoring") -> MetricsSnapshot:
        try:
            snapshot = self._provider.sample(deployment.id)
        except Exception as e:
            raise StrategyExecutionError(f"Metrics sampling failed: {e}", phase=phase) from e

        deployment.metrics = snapshot
        deployment.add_event(
            EventSeverity.INFO,
            f"Metrics: {snapshot.error_rate:.2f}% errors, "
            f"{snapshot.latency.p95:.0f}ms p95 latency",
            phase=phase,
            details={
                "error_rate": snapshot.error_rate,
                "latency_p50": snapshot.latency.p50,
                "latency_p95": snapshot.latency.p95,
                "latency_p99": snapshot.latency.p99,
                "requests_per_second": snapshot.requests_per_second,
                "success_rate": snapshot.success_rate,
            },
        )
        logger.debug(f"[{deployment.id}] sampled metrics {snapshot}")
        return snapshot
