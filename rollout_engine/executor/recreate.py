# rollout_engine/executor/recreate.py
"""Recreate: stop the old version, then start the new one."""

from typing import Dict, List

from rollout_engine.config import EngineSettings
from rollout_engine.core.events_model import EventSeverity
from rollout_engine.core.models import DeploymentConfig, DeploymentStrategy
from rollout_engine.executor.base import ExecutionContext, StrategyExecutor


class RecreateExecutor(StrategyExecutor):
    strategy = DeploymentStrategy.RECREATE
    estimated_minutes = 3
    completion_message = "Recreate deployment completed successfully"

    def phases(self, config: DeploymentConfig, settings: EngineSettings) -> List[str]:
        return ["Terminate Old Version", "Deploy New Version", "Health Check"]

    def initial_traffic_split(self, config: DeploymentConfig) -> Dict[str, int]:
        return {"previous": 100, "current": 0}

    def run(self, ctx: ExecutionContext) -> None:
        deployment = ctx.deployment
        previous = deployment.version.previous

        self.enter_phase(ctx, "Terminate Old Version")
        if previous:
            self.provision(ctx, ctx.provisioner.terminate_version, previous, role="previous")
            deployment.add_event(EventSeverity.WARNING, f"Terminated {previous} (downtime begins)")
        self.mark_phase_progress(ctx)

        self.enter_phase(ctx, "Deploy New Version")
        self.provision(
            ctx,
            ctx.provisioner.deploy_version,
            ctx.config.application,
            deployment.version.target,
            role="current",
        )
        deployment.add_event(EventSeverity.INFO, f"Deployed {deployment.version.target}")
        self.mark_phase_progress(ctx)

        self.enter_phase(ctx, "Health Check")
        self.require_healthy(ctx, target="current")
        ctx.traffic.set_split({"previous": 0, "current": 100})
        deployment.add_event(EventSeverity.SUCCESS, "New version healthy, serving 100% of traffic")
        self.mark_phase_progress(ctx)
