# rollout_engine/executor/canary.py
"""Canary: shift traffic to the new version in increments, watching metrics."""

from typing import Dict, List

from rollout_engine.config import EngineSettings
from rollout_engine.core.events_model import EventSeverity
from rollout_engine.core.models import DeploymentConfig, DeploymentStrategy
from rollout_engine.executor.base import ExecutionContext, StrategyExecutor


def canary_steps(config: DeploymentConfig, settings: EngineSettings) -> List[int]:
    """
    Traffic percentages the canary walks through, ending at 100.

    Starting from 0, each step is ``min(previous + increment, 100)``.
    ``canary_percentage`` is validated but does not shift the walk.
    """
    params = config.strategy_config
    increment = params.increment_percentage or settings.default_canary_increment
    current = 0

    steps = []
    while current < 100:
        current = min(current + increment, 100)
        steps.append(current)
    return steps


def step_minutes(config: DeploymentConfig, settings: EngineSettings) -> float:
    duration = config.strategy_config.canary_duration
    return settings.default_canary_duration_minutes if duration is None else duration


class CanaryExecutor(StrategyExecutor):
    strategy = DeploymentStrategy.CANARY
    completion_message = "Canary deployment completed successfully"

    def phases(self, config: DeploymentConfig, settings: EngineSettings) -> List[str]:
        return ["Deploy Canary", "Health Check Canary"] + [
            f"Canary {step}%" for step in canary_steps(config, settings)
        ]

    def initial_traffic_split(self, config: DeploymentConfig) -> Dict[str, int]:
        return {"stable": 100, "canary": 0}

    def estimate_minutes(self, config: DeploymentConfig, settings: EngineSettings) -> float:
        return step_minutes(config, settings) * len(canary_steps(config, settings))

    def run(self, ctx: ExecutionContext) -> None:
        deployment = ctx.deployment
        settings = ctx.settings

        self.enter_phase(ctx, "Deploy Canary")
        self.provision(
            ctx,
            ctx.provisioner.deploy_version,
            ctx.config.application,
            deployment.version.target,
            role="canary",
        )
        deployment.add_event(EventSeverity.INFO, "Canary version deployed (0% traffic)")

        self.enter_phase(ctx, "Health Check Canary")
        self.require_healthy(ctx, target="canary")
        deployment.add_event(EventSeverity.SUCCESS, "Canary passed health checks")

        wait = settings.scaled_minutes(step_minutes(ctx.config, settings))
        for step in canary_steps(ctx.config, settings):
            self.enter_phase(ctx, f"Canary {step}%")
            ctx.traffic.shift("stable", "canary", step)
            deployment.advance_progress(step)
            deployment.add_event(
                EventSeverity.INFO,
                f"Canary traffic increased to {step}%",
                details={"canary_percentage": step},
            )
            self.monitor(ctx, wait)
            self.enforce_thresholds(ctx)
