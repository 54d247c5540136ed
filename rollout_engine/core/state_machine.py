#rollout_engine\core\state_machine.py

from datetime import datetime, timezone

from rollout_engine.core.errors import InvalidStateTransition
from rollout_engine.core.models import Deployment, DeploymentStatus


ALLOWED_TRANSITIONS = {
    DeploymentStatus.PENDING: {
        DeploymentStatus.IN_PROGRESS,
        DeploymentStatus.FAILED,
        DeploymentStatus.CANCELLED,
    },
    DeploymentStatus.IN_PROGRESS: {
        DeploymentStatus.PAUSED,
        DeploymentStatus.SUCCESSFUL,
        DeploymentStatus.FAILED,
        DeploymentStatus.ROLLED_BACK,
        DeploymentStatus.CANCELLED,
    },
    DeploymentStatus.PAUSED: {
        DeploymentStatus.IN_PROGRESS,
        DeploymentStatus.FAILED,
        DeploymentStatus.ROLLED_BACK,
        DeploymentStatus.CANCELLED,
    },
    DeploymentStatus.FAILED: {
        DeploymentStatus.ROLLED_BACK,
    },
}

# States a rollback may start from
ROLLBACK_ELIGIBLE = frozenset({
    DeploymentStatus.PENDING,
    DeploymentStatus.IN_PROGRESS,
    DeploymentStatus.PAUSED,
    DeploymentStatus.FAILED,
})


class DeploymentStateMachine:
    @staticmethod
    def can_transition(current: DeploymentStatus, new_status: DeploymentStatus) -> bool:
        return new_status in ALLOWED_TRANSITIONS.get(current, set())

    @staticmethod
    def transition(
        deployment: Deployment,
        new_status: DeploymentStatus,
        *,
        now: datetime | None = None,
    ) -> Deployment:
        now = now or datetime.now(timezone.utc)

        current = deployment.status

        if current == new_status:
            return deployment

        allowed = ALLOWED_TRANSITIONS.get(current, set())
        if new_status not in allowed:
            raise InvalidStateTransition(
                f"Cannot transition deployment {deployment.id} "
                f"from {current.value} to {new_status.value}"
            )

        # Timestamp semantics
        if new_status == DeploymentStatus.IN_PROGRESS and current == DeploymentStatus.PENDING:
            deployment.started_at = now

        elif new_status in (
            DeploymentStatus.SUCCESSFUL,
            DeploymentStatus.FAILED,
            DeploymentStatus.ROLLED_BACK,
            DeploymentStatus.CANCELLED,
        ):
            deployment.completed_at = now

        deployment.status = new_status
        deployment.rollback_available = new_status in ROLLBACK_ELIGIBLE
        return deployment
