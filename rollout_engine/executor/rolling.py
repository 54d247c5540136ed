# rollout_engine/executor/rolling.py
"""Rolling update: replace replicas one at a time."""

import logging
from typing import Dict, List

from rollout_engine.config import EngineSettings
from rollout_engine.core.errors import HealthCheckFailed
from rollout_engine.core.events_model import EventSeverity
from rollout_engine.core.models import DeploymentConfig, DeploymentStrategy
from rollout_engine.executor.base import ExecutionContext, StrategyExecutor

logger = logging.getLogger(__name__)


class RollingExecutor(StrategyExecutor):
    strategy = DeploymentStrategy.ROLLING
    estimated_minutes = 5
    completion_message = "Rolling update completed successfully"

    def phases(self, config: DeploymentConfig, settings: EngineSettings) -> List[str]:
        total = config.application.replicas
        return [f"Update Replica {i}/{total}" for i in range(1, total + 1)]

    def initial_traffic_split(self, config: DeploymentConfig) -> Dict[str, int]:
        return {"previous": 100, "current": 0}

    def run(self, ctx: ExecutionContext) -> None:
        deployment = ctx.deployment
        params = ctx.config.strategy_config
        total = ctx.config.application.replicas
        wait = ctx.settings.scaled(ctx.settings.replica_update_wait_seconds)

        deployment.health.healthy = 0
        deployment.health.unhealthy = 0
        logger.info(
            f"[{deployment.id}] rolling {total} replicas "
            f"(max_surge={params.max_surge}, max_unavailable={params.max_unavailable})"
        )

        for i in range(1, total + 1):
            self.enter_phase(ctx, f"Update Replica {i}/{total}")
            self.provision(ctx, ctx.provisioner.update_replica, ctx.config.application, i)
            deployment.add_event(EventSeverity.INFO, f"Updated replica {i}/{total}")

            ctx.control.sleep(wait)

            report = ctx.health.run(
                deployment,
                ctx.config.health_checks,
                target=f"replica-{i}",
            )
            if not report.healthy:
                deployment.health.unhealthy = total - deployment.health.healthy
                raise HealthCheckFailed(
                    f"Replica {i} failed health checks",
                    phase=deployment.progress.current_phase,
                )

            deployment.health.healthy = i
            deployment.health.unhealthy = 0
            ctx.traffic.shift("previous", "current", i * 100 // total)
            deployment.advance_progress(i * 100 / total)
