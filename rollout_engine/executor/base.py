# rollout_engine/executor/base.py
"""Strategy executor contract and shared phase helpers."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from rollout_engine.config import EngineSettings
from rollout_engine.core.errors import (
    HealthCheckFailed,
    ProvisioningError,
    ThresholdExceeded,
)
from rollout_engine.core.events_model import EventSeverity
from rollout_engine.core.models import (
    Deployment,
    DeploymentConfig,
    DeploymentStrategy,
    MetricsSnapshot,
)
from rollout_engine.executor.control import ExecutionControl
from rollout_engine.executor.provisioning import ProvisioningActions
from rollout_engine.health_checker.checker import HealthChecker, HealthReport
from rollout_engine.metrics.source import MetricsSource
from rollout_engine.rollback.controller import RollbackController
from rollout_engine.traffic.manager import TrafficManager

logger = logging.getLogger(__name__)


@dataclass
class ExecutionContext:
    """Everything one strategy run touches."""

    deployment: Deployment
    config: DeploymentConfig
    settings: EngineSettings
    control: ExecutionControl
    traffic: TrafficManager
    health: HealthChecker
    metrics: MetricsSource
    rollback: RollbackController
    provisioner: ProvisioningActions
    phase_plan: List[str]


class StrategyExecutor(ABC):
    """
    One deployment strategy.

    ``run`` drives the phases and returns normally on success. Failures
    are raised as StrategyExecutionError subclasses; the owning task
    decides about status and rollback.
    """

    strategy: DeploymentStrategy
    estimated_minutes: float = 10
    completion_message: str = "Deployment completed successfully"

    @abstractmethod
    def phases(self, config: DeploymentConfig, settings: EngineSettings) -> List[str]:
        raise NotImplementedError

    @abstractmethod
    def initial_traffic_split(self, config: DeploymentConfig) -> Dict[str, int]:
        raise NotImplementedError

    def estimate_minutes(self, config: DeploymentConfig, settings: EngineSettings) -> float:
        return self.estimated_minutes

    @abstractmethod
    def run(self, ctx: ExecutionContext) -> None:
        raise NotImplementedError

    # -------------------------
    # PHASE HELPERS
    # -------------------------

    def enter_phase(self, ctx: ExecutionContext, phase: str) -> None:
        """Phase boundary: honours pause/cancel/rollback, then moves on."""
        ctx.control.checkpoint()
        ctx.deployment.enter_phase(phase)
        ctx.deployment.add_event(EventSeverity.INFO, f"Phase started: {phase}", phase=phase)
        logger.info(f"[{ctx.deployment.id}] ▶️  {phase}")

    def mark_phase_progress(self, ctx: ExecutionContext) -> None:
        """Progress as the share of planned phases finished, current one included."""
        plan = ctx.phase_plan
        current = ctx.deployment.progress.current_phase
        if not plan or current not in plan:
            return
        ctx.deployment.advance_progress((plan.index(current) + 1) * 100 / len(plan))

    def provision(self, ctx: ExecutionContext, action: Callable[..., None], *args, **kwargs) -> None:
        phase = ctx.deployment.progress.current_phase
        try:
            action(ctx.deployment.id, *args, **kwargs)
        except ProvisioningError as e:
            e.phase = e.phase or phase
            raise
        except Exception as e:
            raise ProvisioningError(f"Provisioning failed: {e}", phase=phase) from e

    def require_healthy(
        self,
        ctx: ExecutionContext,
        target: str,
        version: Optional[str] = None,
        update_counts: bool = True,
    ) -> HealthReport:
        """Run the configured checks against ``target``; raise on any failure."""
        deployment = ctx.deployment
        report = ctx.health.run(deployment, ctx.config.health_checks, target=target, version=version)

        if update_counts:
            total = deployment.health.total
            deployment.health.healthy = total if report.healthy else 0
            deployment.health.unhealthy = 0 if report.healthy else total

        if not report.healthy:
            names = ", ".join(c.name for c in report.failed)
            raise HealthCheckFailed(
                f"{target} failed health checks: {names}",
                phase=deployment.progress.current_phase,
            )
        return report

    def monitor(self, ctx: ExecutionContext, seconds: float) -> MetricsSnapshot:
        """Observe for ``seconds`` (interruptible), then sample metrics."""
        ctx.control.sleep(seconds)
        return ctx.metrics.sample(ctx.deployment, phase=ctx.deployment.progress.current_phase)

    def enforce_thresholds(self, ctx: ExecutionContext) -> None:
        deployment = ctx.deployment
        if ctx.rollback.should_rollback(deployment, ctx.config):
            deployment.add_event(
                EventSeverity.WARNING,
                f"Rollback threshold breached: {deployment.rollback_reason}",
            )
            raise ThresholdExceeded(
                deployment.rollback_reason,
                phase=deployment.progress.current_phase,
            )
