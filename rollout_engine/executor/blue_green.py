# rollout_engine/executor/blue_green.py
"""Blue-green: stand up green next to blue, then switch all traffic at once."""

import logging
from typing import Dict, List

from rollout_engine.config import EngineSettings
from rollout_engine.core.events_model import EventSeverity
from rollout_engine.core.models import DeploymentConfig, DeploymentStrategy
from rollout_engine.executor.base import ExecutionContext, StrategyExecutor

logger = logging.getLogger(__name__)


class BlueGreenExecutor(StrategyExecutor):
    strategy = DeploymentStrategy.BLUE_GREEN
    estimated_minutes = 10
    completion_message = "Blue-green deployment completed successfully"

    def phases(self, config: DeploymentConfig, settings: EngineSettings) -> List[str]:
        params = config.strategy_config
        phases = ["Deploy Green", "Health Check Green"]
        if params.traffic_switch_delay:
            phases.append("Wait Before Switch")
        phases += ["Switch Traffic", "Monitor"]
        if not params.keep_old_version:
            phases.append("Cleanup Blue")
        return phases

    def initial_traffic_split(self, config: DeploymentConfig) -> Dict[str, int]:
        return {"blue": 100, "green": 0}

    def run(self, ctx: ExecutionContext) -> None:
        deployment = ctx.deployment
        params = ctx.config.strategy_config
        target = deployment.version.target

        self.enter_phase(ctx, "Deploy Green")
        self.provision(ctx, ctx.provisioner.deploy_version, ctx.config.application, target, role="green")
        deployment.add_event(EventSeverity.INFO, f"Green environment deployed with {target}")
        self.mark_phase_progress(ctx)

        # Green takes no traffic until it is known healthy.
        self.enter_phase(ctx, "Health Check Green")
        self.require_healthy(ctx, target="green")
        deployment.add_event(EventSeverity.SUCCESS, "Green environment passed health checks")
        self.mark_phase_progress(ctx)

        if params.traffic_switch_delay:
            self.enter_phase(ctx, "Wait Before Switch")
            ctx.control.sleep(ctx.settings.scaled_minutes(params.traffic_switch_delay))
            self.mark_phase_progress(ctx)

        self.enter_phase(ctx, "Switch Traffic")
        ctx.traffic.set_split({"blue": 0, "green": 100})
        deployment.add_event(EventSeverity.SUCCESS, "Traffic switched to green (100%)")
        self.mark_phase_progress(ctx)

        self.enter_phase(ctx, "Monitor")
        self.monitor(ctx, ctx.settings.scaled(ctx.settings.monitor_window_seconds))
        self.enforce_thresholds(ctx)
        self.mark_phase_progress(ctx)

        if not params.keep_old_version:
            self.enter_phase(ctx, "Cleanup Blue")
            ctx.control.sleep(ctx.settings.scaled(ctx.settings.cleanup_wait_seconds))
            if deployment.version.previous:
                self.provision(
                    ctx,
                    ctx.provisioner.terminate_version,
                    deployment.version.previous,
                    role="blue",
                )
            deployment.add_event(EventSeverity.INFO, "Blue environment cleaned up")
            self.mark_phase_progress(ctx)
        else:
            logger.info(f"[{deployment.id}] keeping blue environment for manual cleanup")
