# rollout_engine/executor/shadow.py
"""Shadow: mirror production traffic to the new version without serving it."""

from typing import Dict, List

from rollout_engine.config import EngineSettings
from rollout_engine.core.events_model import EventSeverity
from rollout_engine.core.models import DeploymentConfig, DeploymentStrategy
from rollout_engine.executor.base import ExecutionContext, StrategyExecutor


class ShadowExecutor(StrategyExecutor):
    strategy = DeploymentStrategy.SHADOW
    estimated_minutes = 20
    completion_message = "Shadow deployment completed successfully"

    def phases(self, config: DeploymentConfig, settings: EngineSettings) -> List[str]:
        return ["Deploy Shadow", "Health Check Shadow", "Mirror Traffic", "Compare Results"]

    def initial_traffic_split(self, config: DeploymentConfig) -> Dict[str, int]:
        # The shadow never serves user traffic; mirroring is not a split.
        return {"stable": 100, "shadow": 0}

    def run(self, ctx: ExecutionContext) -> None:
        deployment = ctx.deployment

        self.enter_phase(ctx, "Deploy Shadow")
        self.provision(
            ctx,
            ctx.provisioner.deploy_version,
            ctx.config.application,
            deployment.version.target,
            role="shadow",
        )
        deployment.add_event(EventSeverity.INFO, "Shadow version deployed")
        self.mark_phase_progress(ctx)

        self.enter_phase(ctx, "Health Check Shadow")
        self.require_healthy(ctx, target="shadow")
        self.mark_phase_progress(ctx)

        self.enter_phase(ctx, "Mirror Traffic")
        deployment.add_event(
            EventSeverity.INFO,
            "Mirroring production traffic to shadow",
            details={"mirrored_percentage": 100},
        )
        self.monitor(ctx, ctx.settings.scaled(ctx.settings.shadow_compare_window_seconds))
        self.mark_phase_progress(ctx)

        self.enter_phase(ctx, "Compare Results")
        self.enforce_thresholds(ctx)
        deployment.add_event(EventSeverity.SUCCESS, "Shadow responses within thresholds")
        self.mark_phase_progress(ctx)
