# rollout_engine/health_checker/checker.py
"""
Health Checker - runs a deployment's probes and aggregates the outcome.

Retry policy belongs to each HealthCheck and is applied by the probe
executor; the checker runs every check exactly once per call.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from rollout_engine.core.events_model import EventSeverity
from rollout_engine.core.models import CheckStatus, Deployment, HealthCheck
from rollout_engine.health_checker.probes import ProbeContext, ProbeExecutor, ProbeResult

logger = logging.getLogger(__name__)


@dataclass
class HealthReport:
    """Aggregate result: healthy iff every check passed."""
    target: str
    checks: List[CheckStatus] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return all(c.status == "passing" for c in self.checks)

    @property
    def failed(self) -> List[CheckStatus]:
        return [c for c in self.checks if c.status != "passing"]

    def summary(self) -> str:
        if self.healthy:
            return f"{len(self.checks)} check(s) passing on {self.target}"
        names = ", ".join(c.name for c in self.failed)
        return f"{len(self.failed)}/{len(self.checks)} check(s) failing on {self.target}: {names}"


class HealthChecker:
    """
    Evaluates a list of HealthCheck specs against a deployment.

    Per-check results are written to ``deployment.health.checks`` and
    each failure is appended to the timeline as a warning. A probe that
    raises counts as a failed check.
    """

    def __init__(self, probe_executor: ProbeExecutor):
        self._probes = probe_executor

    def run(
        self,
        deployment: Deployment,
        checks: Sequence[HealthCheck],
        target: str = "all",
        version: Optional[str] = None,
    ) -> HealthReport:
        context = ProbeContext(
            deployment_id=deployment.id,
            version=version or deployment.version.target,
            target=target,
        )
        report = HealthReport(target=target)

        for check in checks:
            result = self._run_one(check, context)
            status = CheckStatus(
                name=check.name,
                status="passing" if result.passed else "failing",
                message=result.message,
            )
            report.checks.append(status)

            if not result.passed:
                logger.warning(
                    f"[{deployment.id}] Health check '{check.name}' failed on {target}: "
                    f"{result.message}"
                )
                deployment.add_event(
                    EventSeverity.WARNING,
                    f"Health check failed: {check.name}",
                    phase="Health Check",
                    details={"target": target, "message": result.message},
                )

        self._record(deployment, report.checks)
        logger.info(f"[{deployment.id}] {report.summary()}")
        return report

    def _run_one(self, check: HealthCheck, context: ProbeContext) -> ProbeResult:
        try:
            return self._probes.run_probe(check, context)
        except Exception as e:
            logger.error(
                f"[{context.deployment_id}] Probe '{check.name}' raised: {e}",
                exc_info=True,
            )
            return ProbeResult(False, f"Probe error: {e}")

    @staticmethod
    def _record(deployment: Deployment, statuses: List[CheckStatus]) -> None:
        """Latest status per check name, keeping first-seen order."""
        by_name = {c.name: c for c in deployment.health.checks}
        for status in statuses:
            by_name[status.name] = status
        deployment.health.checks = list(by_name.values())
