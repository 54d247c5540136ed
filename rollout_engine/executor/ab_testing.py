# rollout_engine/executor/ab_testing.py
"""A/B testing: run all variants at fixed percentages for an observation window."""

import logging
from typing import Dict, List

from rollout_engine.config import EngineSettings
from rollout_engine.core.events_model import EventSeverity
from rollout_engine.core.models import DeploymentConfig, DeploymentStrategy
from rollout_engine.executor.base import ExecutionContext, StrategyExecutor
from rollout_engine.rollback.controller import breach_reason

logger = logging.getLogger(__name__)

DEFAULT_VARIANTS = {"A": 50, "B": 50}


def variant_split(config: DeploymentConfig) -> Dict[str, int]:
    return dict(config.strategy_config.variant_percentages or DEFAULT_VARIANTS)


class ABTestingExecutor(StrategyExecutor):
    """
    Variants are assumed pre-approved: a metrics breach at the end of the
    window is reported, but it does not abort or roll back the test.
    """

    strategy = DeploymentStrategy.AB_TESTING
    estimated_minutes = 15
    completion_message = "A/B test deployment completed successfully"

    def phases(self, config: DeploymentConfig, settings: EngineSettings) -> List[str]:
        return ["Deploy Variants", "Monitor Variants", "Analyze Results"]

    def initial_traffic_split(self, config: DeploymentConfig) -> Dict[str, int]:
        names = list(variant_split(config))
        return {name: (100 if i == 0 else 0) for i, name in enumerate(names)}

    def run(self, ctx: ExecutionContext) -> None:
        deployment = ctx.deployment
        variants = variant_split(ctx.config)

        self.enter_phase(ctx, "Deploy Variants")
        for name in variants:
            self.provision(
                ctx,
                ctx.provisioner.deploy_version,
                ctx.config.application,
                deployment.version.target,
                role=f"variant-{name}",
            )
        self.require_healthy(ctx, target="variants")
        ctx.traffic.set_split(variants)
        deployment.add_event(
            EventSeverity.INFO,
            f"Variants deployed: {', '.join(f'{k}={v}%' for k, v in variants.items())}",
            details={"variants": variants},
        )
        self.mark_phase_progress(ctx)

        self.enter_phase(ctx, "Monitor Variants")
        self.monitor(ctx, ctx.settings.scaled(ctx.settings.ab_monitor_window_seconds))
        self.mark_phase_progress(ctx)

        self.enter_phase(ctx, "Analyze Results")
        reason = breach_reason(deployment.metrics, ctx.config.rollback_policy)
        if reason:
            deployment.rollback_reason = reason
            logger.warning(f"[{deployment.id}] A/B metrics breached policy: {reason}")
            deployment.add_event(
                EventSeverity.WARNING,
                f"Variant metrics breached rollback policy: {reason}",
            )
        else:
            deployment.add_event(EventSeverity.INFO, "Variant metrics within thresholds")
        self.mark_phase_progress(ctx)
