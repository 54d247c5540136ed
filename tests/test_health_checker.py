"""Test health check aggregation and metrics sampling."""

import pytest

from rollout_engine.core.errors import StrategyExecutionError
from rollout_engine.core.events_model import EventSeverity
from rollout_engine.core.models import (
    Deployment,
    DeploymentStrategy,
    EnvironmentType,
    HealthCheck,
    VersionInfo,
)
from rollout_engine.health_checker.checker import HealthChecker
from rollout_engine.health_checker.probes import ProbeExecutor
from rollout_engine.metrics.source import MetricsProvider, MetricsSource, StaticMetricsProvider


@pytest.fixture
def deployment():
    return Deployment(
        config_id="config_1",
        strategy=DeploymentStrategy.BLUE_GREEN,
        environment=EnvironmentType.STAGING,
        version=VersionInfo(current="1.0.0", target="2.0.0"),
    )


@pytest.fixture
def checks():
    return [
        HealthCheck(name="http-ready", endpoint="http://shop-api/health"),
        HealthCheck(name="tcp-port", kind="tcp", port=8080),
    ]


class ExplodingProbe(ProbeExecutor):
    def run_probe(self, check, context):
        raise RuntimeError("probe crashed")


class TestHealthChecker:

    def test_all_passing_is_healthy(self, probes, deployment, checks):
        report = HealthChecker(probes).run(deployment, checks, target="green")

        assert report.healthy
        assert [c.status for c in deployment.health.checks] == ["passing", "passing"]
        assert probes.calls == [("http-ready", "green"), ("tcp-port", "green")]

    def test_one_failure_makes_report_unhealthy(self, probes, deployment, checks):
        probes.fail_checks.add("tcp-port")

        report = HealthChecker(probes).run(deployment, checks, target="green")

        assert not report.healthy
        assert [c.name for c in report.failed] == ["tcp-port"]

    def test_failure_is_logged_as_warning_event(self, probes, deployment, checks):
        probes.fail_checks.add("http-ready")

        HealthChecker(probes).run(deployment, checks, target="canary")

        warnings = deployment.timeline.filter(EventSeverity.WARNING)
        assert [e.message for e in warnings] == ["Health check failed: http-ready"]
        assert warnings[0].details["target"] == "canary"

    def test_probe_exception_counts_as_failure(self, deployment, checks):
        report = HealthChecker(ExplodingProbe()).run(deployment, checks)

        assert not report.healthy
        assert all(c.message.startswith("Probe error") for c in report.checks)

    def test_latest_status_per_check_is_kept(self, probes, deployment, checks):
        checker = HealthChecker(probes)
        probes.fail_checks.add("http-ready")
        checker.run(deployment, checks)

        probes.fail_checks.clear()
        checker.run(deployment, checks)

        assert len(deployment.health.checks) == 2
        assert all(c.status == "passing" for c in deployment.health.checks)

    def test_no_checks_is_healthy(self, probes, deployment):
        assert HealthChecker(probes).run(deployment, []).healthy


class BrokenProvider(MetricsProvider):
    def sample(self, deployment_id):
        raise ConnectionError("prometheus unreachable")


class TestMetricsSource:

    def test_sample_records_snapshot_and_event(self, deployment, make_metrics):
        snapshot = make_metrics(error_rate=2.5, p95=300)
        source = MetricsSource(StaticMetricsProvider(snapshot))

        assert source.sample(deployment, phase="Monitor") == snapshot
        assert deployment.metrics == snapshot
        event = deployment.timeline.last()
        assert event.message == "Metrics: 2.50% errors, 300ms p95 latency"
        assert event.phase == "Monitor"

    def test_provider_failure_becomes_execution_error(self, deployment):
        with pytest.raises(StrategyExecutionError, match="Metrics sampling failed") as exc:
            MetricsSource(BrokenProvider()).sample(deployment, phase="Monitor")

        assert exc.value.phase == "Monitor"
