# rollout_engine/rollback/controller.py
"""Rollback decisions from live metrics, and the revert itself."""

import logging
import time
from threading import Lock
from typing import Dict, Mapping, Optional

from rollout_engine.core.errors import InvalidStateTransition, RollbackFailed
from rollout_engine.core.events_model import EventSeverity
from rollout_engine.core.models import (
    Deployment,
    DeploymentConfig,
    DeploymentStatus,
    DeploymentStrategy,
    MetricsSnapshot,
    RollbackPolicy,
    RollbackResult,
)
from rollout_engine.core.state_machine import ROLLBACK_ELIGIBLE, DeploymentStateMachine
from rollout_engine.executor.provisioning import ProvisioningActions
from rollout_engine.traffic.manager import TrafficManager

logger = logging.getLogger(__name__)


def breach_reason(metrics: MetricsSnapshot, policy: RollbackPolicy) -> Optional[str]:
    """Human-readable description of the first breached threshold, if any."""
    if metrics.error_rate > policy.error_threshold:
        return (
            f"Error rate {metrics.error_rate:.2f}% exceeded threshold "
            f"{policy.error_threshold}%"
        )
    if metrics.latency.p95 > policy.latency_threshold:
        return (
            f"P95 latency {metrics.latency.p95:.0f}ms exceeded threshold "
            f"{policy.latency_threshold}ms"
        )
    return None


class RollbackController:
    """
    Compares metrics to the rollback policy and reverts deployments.

    Rollback is idempotent: a deployment that already carries a rollback
    result gets that result back without any further mutation.
    """

    def __init__(self, provisioner: ProvisioningActions):
        self._provisioner = provisioner
        self._locks: Dict[str, Lock] = {}
        self._locks_guard = Lock()

    # -------------------------
    # DECISION
    # -------------------------

    def should_rollback(self, deployment: Deployment, config: DeploymentConfig) -> bool:
        """True iff the last sampled metrics breach the policy; records the reason."""
        reason = breach_reason(deployment.metrics, config.rollback_policy)
        if reason is None:
            return False
        deployment.rollback_reason = reason
        return True

    # -------------------------
    # REVERT
    # -------------------------

    def rollback(
        self,
        deployment: Deployment,
        config: DeploymentConfig,
        traffic: TrafficManager,
        baseline_split: Mapping[str, int],
        reason: str,
    ) -> RollbackResult:
        with self._lock_for(deployment.id):
            if deployment.rollback_result is not None:
                logger.info(f"[{deployment.id}] already rolled back, returning prior result")
                return deployment.rollback_result

            cancelled = deployment.status == DeploymentStatus.CANCELLED
            if not cancelled and deployment.status not in ROLLBACK_ELIGIBLE:
                raise InvalidStateTransition(
                    f"Cannot roll back deployment {deployment.id} "
                    f"in {deployment.status.value} state"
                )

            logger.info(f"[{deployment.id}] 🔄 Rolling back: {reason}")
            started = time.monotonic()
            deployment.add_event(
                EventSeverity.WARNING,
                f"Starting rollback: {reason}",
                phase="Rollback",
            )

            success = True
            try:
                self._revert(deployment, config)
            except RollbackFailed as e:
                success = False
                logger.error(f"[{deployment.id}] Rollback action failed: {e}")
                deployment.add_event(
                    EventSeverity.ERROR,
                    f"Rollback action failed: {e}",
                    phase="Rollback",
                )

            traffic.set_split(baseline_split)
            deployment.reset_progress()
            if deployment.version.previous:
                deployment.version.current = deployment.version.previous
            deployment.rollback_reason = reason

            if not cancelled:
                DeploymentStateMachine.transition(deployment, DeploymentStatus.ROLLED_BACK)
            deployment.rollback_available = False

            if success:
                deployment.add_event(
                    EventSeverity.SUCCESS,
                    "Rollback completed successfully",
                    phase="Rollback",
                )
            else:
                deployment.add_event(
                    EventSeverity.ERROR,
                    "Rollback completed with errors; traffic reverted, instances may need cleanup",
                    phase="Rollback",
                )

            result = RollbackResult(
                deployment_id=deployment.id,
                success=success,
                rolled_back_to=deployment.version.previous or "previous",
                reason=reason,
                duration=time.monotonic() - started,
                affected_instances=deployment.health.total,
                timeline=deployment.timeline.snapshot(),
            )
            deployment.rollback_result = result
            logger.info(
                f"[{deployment.id}] rollback finished (success={success}, "
                f"{result.duration:.2f}s)"
            )
            return result

    def _revert(self, deployment: Deployment, config: DeploymentConfig) -> None:
        """Tear down the new version; Recreate also restores the old one."""
        try:
            self._provisioner.terminate_version(
                deployment.id, deployment.version.target, role="rollout"
            )
            if (
                deployment.strategy == DeploymentStrategy.RECREATE
                and deployment.version.previous
            ):
                self._provisioner.deploy_version(
                    deployment.id,
                    config.application,
                    deployment.version.previous,
                    role="previous",
                )
        except Exception as e:
            raise RollbackFailed(str(e)) from e

    def _lock_for(self, deployment_id: str) -> Lock:
        with self._locks_guard:
            lock = self._locks.get(deployment_id)
            if lock is None:
                lock = self._locks[deployment_id] = Lock()
            return lock
