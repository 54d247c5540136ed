# rollout_engine/orchestrator/deployment_engine.py
"""Deployment engine - lifecycle, control signals and queries."""

import logging
import threading
from dataclasses import dataclass
from datetime import timedelta
from threading import Lock
from typing import Any, Dict, Iterable, List, Mapping, Optional

from rollout_engine.config import EngineSettings
from rollout_engine.core.errors import (
    ConfigNotFound,
    DeploymentInterrupted,
    DeploymentNotFound,
    RollbackFailed,
    StrategyExecutionError,
    ThresholdExceeded,
)
from rollout_engine.core.events import EventEmitter, NullEventEmitter
from rollout_engine.core.events_model import EventSeverity
from rollout_engine.core.models import (
    ACTIVE_STATUSES,
    Deployment,
    DeploymentConfig,
    DeploymentStatus,
    FeatureFlag,
    Progress,
    RollbackResult,
    TrafficTarget,
    VersionInfo,
)
from rollout_engine.core.repository import ConfigRepository, DeploymentRepository
from rollout_engine.core.state_machine import DeploymentStateMachine
from rollout_engine.core.validation import (
    validate_deployment_config,
    validate_traffic_targets,
)
from rollout_engine.executor.base import ExecutionContext, StrategyExecutor
from rollout_engine.executor.control import ExecutionControl
from rollout_engine.executor.provisioning import ProvisioningActions
from rollout_engine.executor.registry import get_executor
from rollout_engine.feature_flags.service import FeatureFlagService
from rollout_engine.health_checker.checker import HealthChecker
from rollout_engine.health_checker.probes import ProbeExecutor
from rollout_engine.metrics.source import MetricsProvider, MetricsSource
from rollout_engine.rollback.controller import RollbackController
from rollout_engine.traffic.manager import TrafficManager

logger = logging.getLogger(__name__)

AUTO_ROLLBACK_REASON = "Automatic rollback due to deployment failure"
CANCEL_REASON = "Deployment cancelled by user"
MANUAL_ROLLBACK_REASON = "Manual rollback requested"


@dataclass
class _Run:
    """Engine-side handle on one deployment and its owning task."""

    deployment: Deployment
    config: DeploymentConfig
    executor: StrategyExecutor
    control: ExecutionControl
    traffic: TrafficManager
    baseline_split: Dict[str, int]
    thread: Optional[threading.Thread] = None

    def is_running(self) -> bool:
        return self.thread is not None and self.thread.is_alive()


class DeploymentEngine:
    """
    Drives deployments through their strategy, one thread per deployment.

    Flow of ``deploy``:
    1. Resolve the config and the strategy executor
    2. Create the Deployment record (IN_PROGRESS, phases, initial split)
    3. Start the owning thread, which runs the strategy and finalizes
       the status (SUCCESSFUL / FAILED / ROLLED_BACK)

    Pause, resume, cancel and rollback are cooperative signals; the
    owning thread observes them at phase boundaries and suspension points.
    """

    def __init__(
        self,
        *,
        settings: EngineSettings,
        config_repo: ConfigRepository,
        deployment_repo: DeploymentRepository,
        flag_service: FeatureFlagService,
        probe_executor: ProbeExecutor,
        metrics_provider: MetricsProvider,
        provisioner: ProvisioningActions,
        emitter: Optional[EventEmitter] = None,
    ):
        self.settings = settings
        self._configs = config_repo
        self._deployments = deployment_repo
        self._flags = flag_service
        self._provisioner = provisioner
        self._emitter = emitter or NullEventEmitter()

        self._health_checker = HealthChecker(probe_executor)
        self._metrics = MetricsSource(metrics_provider)
        self._rollback = RollbackController(provisioner)

        self._runs: Dict[str, _Run] = {}
        self._runs_lock = Lock()

    # =========================================================
    # CONFIGS
    # =========================================================

    def create_deployment_config(self, config: DeploymentConfig) -> DeploymentConfig:
        validate_deployment_config(config)
        self._configs.create(config)
        if config.feature_flags:
            self._flags.register_missing(config.feature_flags)
        logger.info(
            f"[engine] config created: {config.id} "
            f"({config.strategy.value}, {config.application.name}:{config.application.version})"
        )
        return config

    def get_deployment_config(self, config_id: str) -> Optional[DeploymentConfig]:
        return self._configs.get(config_id)

    def list_deployment_configs(self) -> List[DeploymentConfig]:
        return list(self._configs.list_all())

    # =========================================================
    # DEPLOY
    # =========================================================

    def deploy(self, config_id: str) -> Deployment:
        config = self._configs.get(config_id)
        if config is None:
            raise ConfigNotFound(f"Deployment config {config_id} not found")

        executor = get_executor(config.strategy)
        phases = executor.phases(config, self.settings)
        previous = config.application.previous_version or self._last_successful_version(config)

        deployment = Deployment(
            config_id=config.id,
            strategy=config.strategy,
            environment=config.environment,
            application_name=config.application.name,
            version=VersionInfo(
                current=previous or config.application.version,
                target=config.application.version,
                previous=previous,
            ),
            progress=Progress(phases_remaining=list(phases)),
            traffic_split=executor.initial_traffic_split(config),
        )
        deployment.health.total = config.application.replicas
        deployment.timeline.attach_listener(self._notify)

        DeploymentStateMachine.transition(deployment, DeploymentStatus.IN_PROGRESS)
        deployment.estimated_completion_at = deployment.started_at + timedelta(
            minutes=executor.estimate_minutes(config, self.settings)
        )
        deployment.add_event(
            EventSeverity.INFO,
            "Deployment started",
            phase="Initialization",
            details={
                "strategy": config.strategy.value,
                "environment": config.environment.value,
                "version": config.application.version,
                "phases": phases,
            },
        )

        traffic = TrafficManager(deployment)
        run = _Run(
            deployment=deployment,
            config=config,
            executor=executor,
            control=ExecutionControl(deployment),
            traffic=traffic,
            baseline_split=traffic.snapshot(),
        )
        self._deployments.create(deployment)
        with self._runs_lock:
            self._runs[deployment.id] = run

        run.thread = threading.Thread(
            target=self._execute,
            args=(run, phases),
            name=f"deploy-{deployment.id}",
            daemon=True,
        )
        run.thread.start()

        logger.info(
            f"[engine] 🚀 deployment {deployment.id} started "
            f"({config.strategy.value}, {len(phases)} phases)"
        )
        return deployment

    def _last_successful_version(self, config: DeploymentConfig) -> Optional[str]:
        candidates = [
            d for d in self._deployments.list_by_status([DeploymentStatus.SUCCESSFUL])
            if d.application_name == config.application.name
            and d.environment == config.environment
        ]
        if not candidates:
            return None
        latest = max(candidates, key=lambda d: d.completed_at or d.started_at)
        return latest.version.target

    # -------------------------
    # OWNING TASK
    # -------------------------

    def _execute(self, run: _Run, phases: List[str]) -> None:
        deployment = run.deployment
        ctx = ExecutionContext(
            deployment=deployment,
            config=run.config,
            settings=self.settings,
            control=run.control,
            traffic=run.traffic,
            health=self._health_checker,
            metrics=self._metrics,
            rollback=self._rollback,
            provisioner=self._provisioner,
            phase_plan=phases,
        )

        try:
            try:
                run.executor.run(ctx)
            except StrategyExecutionError as e:
                self._handle_failure(run, e)
            except DeploymentInterrupted:
                raise
            except Exception as e:
                logger.error(f"[engine] {deployment.id} crashed: {e}", exc_info=True)
                self._handle_failure(
                    run,
                    StrategyExecutionError(
                        f"Unexpected error: {e}",
                        phase=deployment.progress.current_phase,
                    ),
                )
            else:
                self._complete(run)
        except DeploymentInterrupted as e:
            logger.info(f"[engine] {deployment.id} interrupted: {e.reason}")
            self._run_rollback(run, e.reason)
        except Exception as e:
            # Nothing may leave the deployment non-terminal once its task exits
            logger.error(f"[engine] task for {deployment.id} crashed: {e}", exc_info=True)
            if run.control.abort():
                deployment.error_message = f"Deployment task crashed: {e}"
                deployment.add_event(EventSeverity.ERROR, f"Deployment task crashed: {e}")

        logger.info(f"[engine] deployment {deployment.id} finished: {deployment.status.value}")

    def _complete(self, run: _Run) -> None:
        deployment = run.deployment
        if not run.control.finish(DeploymentStatus.SUCCESSFUL):
            return
        deployment.version.current = deployment.version.target
        deployment.advance_progress(100)
        deployment.add_event(EventSeverity.SUCCESS, run.executor.completion_message)
        logger.info(f"[engine] ✅ {deployment.id} successful")

    def _handle_failure(self, run: _Run, error: StrategyExecutionError) -> None:
        """
        Mark the deployment FAILED, then decide on rollback.

        A metric threshold breach always rolls back, even when
        ``auto_rollback`` is off: the policy's thresholds are themselves
        the rollback trigger. Any other failure rolls back only under
        ``auto_rollback``; otherwise it waits for a manual rollback.
        """
        deployment = run.deployment
        if not run.control.finish(DeploymentStatus.FAILED):
            return

        deployment.error_message = str(error)
        deployment.add_event(
            EventSeverity.ERROR,
            f"Deployment failed: {error}",
            phase=error.phase,
        )
        logger.error(f"[engine] ❌ {deployment.id} failed in {error.phase}: {error}")

        if isinstance(error, ThresholdExceeded):
            self._run_rollback(run, error.reason)
        elif run.config.rollback_policy.auto_rollback:
            self._run_rollback(run, AUTO_ROLLBACK_REASON)
        else:
            deployment.add_event(
                EventSeverity.WARNING,
                "Automatic rollback disabled; awaiting manual rollback",
            )

    def _run_rollback(self, run: _Run, reason: str) -> Optional[RollbackResult]:
        try:
            return self._rollback.rollback(
                run.deployment,
                run.config,
                run.traffic,
                run.baseline_split,
                reason,
            )
        except Exception as e:
            logger.error(f"[engine] rollback of {run.deployment.id} failed: {e}", exc_info=True)
            run.deployment.add_event(
                EventSeverity.ERROR,
                f"Rollback failed: {e}",
                phase="Rollback",
            )
            return None

    def _notify(self, event) -> None:
        try:
            self._emitter.emit([event])
        except Exception as e:
            logger.error(f"[engine] event emitter failed: {e}", exc_info=True)

    # =========================================================
    # CONTROL
    # =========================================================

    def pause(self, deployment_id: str) -> bool:
        return self._get_run(deployment_id).control.pause()

    def resume(self, deployment_id: str) -> bool:
        return self._get_run(deployment_id).control.resume()

    def cancel(self, deployment_id: str) -> bool:
        """Flip to CANCELLED now; the owning task then reverts traffic."""
        run = self._get_run(deployment_id)
        if not run.control.cancel(CANCEL_REASON):
            return False
        if not run.is_running():
            self._run_rollback(run, CANCEL_REASON)
        return True

    def rollback(
        self,
        deployment_id: str,
        reason: str = MANUAL_ROLLBACK_REASON,
    ) -> RollbackResult:
        run = self._get_run(deployment_id)

        if run.control.request_rollback(reason):
            run.thread.join(self.settings.join_timeout_seconds)
            if run.deployment.rollback_result is None:
                raise RollbackFailed(
                    f"Deployment {deployment_id} did not stop within "
                    f"{self.settings.join_timeout_seconds}s"
                )
            return run.deployment.rollback_result

        # Not active any more: wait for the owning task to settle, then revert here.
        if run.is_running():
            run.thread.join(self.settings.join_timeout_seconds)
        return self._rollback.rollback(
            run.deployment,
            run.config,
            run.traffic,
            run.baseline_split,
            reason,
        )

    def update_traffic_split(
        self,
        deployment_id: str,
        targets: Iterable[TrafficTarget],
    ) -> Dict[str, int]:
        """Operator override of the split; the sum is the caller's responsibility."""
        run = self._get_run(deployment_id)
        targets = list(targets)
        validate_traffic_targets(targets)
        split = run.traffic.update_traffic_split(targets)
        run.deployment.add_event(
            EventSeverity.INFO,
            "Traffic split updated",
            details={"traffic_split": split},
        )
        return split

    # =========================================================
    # QUERIES
    # =========================================================

    def get_deployment(self, deployment_id: str) -> Optional[Deployment]:
        return self._deployments.get(deployment_id)

    def get_all_deployments(self) -> List[Deployment]:
        return list(self._deployments.list_all())

    def get_active_deployments(self) -> List[Deployment]:
        return list(self._deployments.list_by_status(ACTIVE_STATUSES))

    def wait_for(self, deployment_id: str, timeout: Optional[float] = None) -> Deployment:
        """Block until the owning task is done (or ``timeout`` passes)."""
        run = self._get_run(deployment_id)
        if run.thread is not None:
            run.thread.join(timeout)
        return run.deployment

    def shutdown(self, cancel_active: bool = True, timeout: Optional[float] = None) -> None:
        with self._runs_lock:
            runs = list(self._runs.values())

        logger.info(f"[engine] shutting down ({len(runs)} tracked deployments)")
        for run in runs:
            if cancel_active and run.deployment.is_active:
                run.control.cancel("Engine shutting down")
        for run in runs:
            if run.thread is not None:
                run.thread.join(timeout or self.settings.join_timeout_seconds)

    def _get_run(self, deployment_id: str) -> _Run:
        with self._runs_lock:
            run = self._runs.get(deployment_id)
        if run is None:
            raise DeploymentNotFound(f"Deployment {deployment_id} not found")
        return run

    # =========================================================
    # FEATURE FLAGS
    # =========================================================

    def create_feature_flag(self, flag: FeatureFlag) -> FeatureFlag:
        return self._flags.create_feature_flag(flag)

    def toggle_feature_flag(self, flag_id: str, enabled: bool) -> bool:
        return self._flags.toggle_feature_flag(flag_id, enabled)

    def evaluate_feature_flag(
        self,
        flag_key: str,
        user_id: str,
        context: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        return self._flags.evaluate(flag_key, user_id, context)

    @property
    def feature_flags(self) -> FeatureFlagService:
        return self._flags
