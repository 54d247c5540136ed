#rollout_engine\executor\control.py

"""Cooperative control signals between the engine and an owning task."""

import logging
from threading import Condition
from typing import Optional, Tuple

from rollout_engine.core.errors import DeploymentInterrupted
from rollout_engine.core.events_model import EventSeverity
from rollout_engine.core.models import Deployment, DeploymentStatus
from rollout_engine.core.state_machine import DeploymentStateMachine

logger = logging.getLogger(__name__)


class ExecutionControl:
    """
    Pause / resume / cancel / rollback signalling for one deployment.

    Status flips happen synchronously under the condition's lock. The
    owning task observes them only at ``checkpoint()`` (phase boundaries)
    and while suspended in ``sleep()``.
    """

    def __init__(self, deployment: Deployment):
        self._deployment = deployment
        self._cond = Condition()
        self._interrupt: Optional[Tuple[str, bool]] = None

    @property
    def interrupted(self) -> bool:
        with self._cond:
            return self._interrupt is not None

    # -------------------------
    # ENGINE SIDE
    # -------------------------

    def pause(self) -> bool:
        with self._cond:
            if self._deployment.status != DeploymentStatus.IN_PROGRESS:
                return False
            DeploymentStateMachine.transition(self._deployment, DeploymentStatus.PAUSED)

        self._deployment.add_event(EventSeverity.WARNING, "Deployment paused")
        logger.info(f"[{self._deployment.id}] paused")
        return True

    def resume(self) -> bool:
        with self._cond:
            if self._deployment.status != DeploymentStatus.PAUSED:
                return False
            DeploymentStateMachine.transition(self._deployment, DeploymentStatus.IN_PROGRESS)
            self._cond.notify_all()

        self._deployment.add_event(EventSeverity.INFO, "Deployment resumed")
        logger.info(f"[{self._deployment.id}] resumed")
        return True

    def cancel(self, reason: str = "Deployment cancelled by user") -> bool:
        with self._cond:
            if self._deployment.is_terminal:
                return False
            DeploymentStateMachine.transition(self._deployment, DeploymentStatus.CANCELLED)
            self._interrupt = (reason, True)
            self._cond.notify_all()

        self._deployment.add_event(EventSeverity.WARNING, "Deployment cancelled")
        logger.info(f"[{self._deployment.id}] cancelled")
        return True

    def request_rollback(self, reason: str) -> bool:
        """Ask the owning task to stop and roll back."""
        with self._cond:
            if not self._deployment.is_active:
                return False
            if self._interrupt is None:
                self._interrupt = (reason, False)
            self._cond.notify_all()

        logger.info(f"[{self._deployment.id}] rollback requested: {reason}")
        return True

    # -------------------------
    # TASK SIDE
    # -------------------------

    def checkpoint(self) -> None:
        """Phase boundary: block while paused, raise if interrupted."""
        with self._cond:
            while True:
                self._raise_if_interrupted()
                if self._deployment.status != DeploymentStatus.PAUSED:
                    return
                self._cond.wait()

    def sleep(self, seconds: float) -> None:
        """Suspension point that wakes early on cancel or rollback."""
        with self._cond:
            if seconds > 0:
                self._cond.wait_for(lambda: self._interrupt is not None, timeout=seconds)
            self._raise_if_interrupted()

    def finish(self, status: DeploymentStatus) -> bool:
        """
        Terminal transition by the owning task.

        A pending cancel or rollback wins: it is raised instead, so the
        task proceeds to rollback. A paused deployment is held here until
        resumed when ``status`` is not reachable from PAUSED. Returns False
        if already terminal.
        """
        with self._cond:
            while True:
                self._raise_if_interrupted()
                if self._deployment.is_terminal:
                    return False
                if (
                    self._deployment.status != DeploymentStatus.PAUSED
                    or DeploymentStateMachine.can_transition(DeploymentStatus.PAUSED, status)
                ):
                    break
                self._cond.wait()
            DeploymentStateMachine.transition(self._deployment, status)
            return True

    def abort(self) -> bool:
        """Force FAILED after the owning task crashed; False if already terminal."""
        with self._cond:
            if self._deployment.is_terminal:
                return False
            DeploymentStateMachine.transition(self._deployment, DeploymentStatus.FAILED)
            self._cond.notify_all()
            return True

    def _raise_if_interrupted(self) -> None:
        if self._interrupt is not None:
            reason, cancelled = self._interrupt
            raise DeploymentInterrupted(reason, cancelled=cancelled)
