#tests\conftest.py

"""Pytest configuration and fixtures."""

import threading
from typing import List, Tuple

import pytest

from rollout_engine.config import EngineSettings
from rollout_engine.container import build_engine
from rollout_engine.core.events import RecordingEventEmitter
from rollout_engine.core.models import (
    ApplicationSpec,
    DeploymentConfig,
    DeploymentStrategy,
    EnvironmentType,
    HealthCheck,
    LatencyPercentiles,
    MetricsSnapshot,
    RollbackPolicy,
    StrategyParameters,
)
from rollout_engine.executor.provisioning import ProvisioningActions
from rollout_engine.health_checker.probes import ProbeContext, ProbeExecutor, ProbeResult
from rollout_engine.metrics.source import MetricsProvider


# ============================================
# FAKE COLLABORATORS
# ============================================

class FakeProbeExecutor(ProbeExecutor):
    """
    Passes every check unless its name or target is marked as failing.

    Checks against a target in ``hold_targets`` block until ``release``
    is set, so tests can act while a health check phase is running.
    """

    def __init__(self):
        self.fail_targets = set()
        self.fail_checks = set()
        self.hold_targets = set()
        self.entered = threading.Event()
        self.release = threading.Event()
        self.calls: List[Tuple[str, str]] = []
        self._lock = threading.Lock()

    def run_probe(self, check: HealthCheck, context: ProbeContext) -> ProbeResult:
        with self._lock:
            self.calls.append((check.name, context.target))
        if context.target in self.hold_targets:
            self.entered.set()
            self.release.wait(5)
        if context.target in self.fail_targets or check.name in self.fail_checks:
            return ProbeResult(False, f"{check.name} failed on {context.target}")
        return ProbeResult(True, "ok")


class FakeMetricsProvider(MetricsProvider):
    """Returns queued snapshots in order, then keeps repeating the last one."""

    def __init__(self, *snapshots: MetricsSnapshot):
        self.snapshots = list(snapshots) or [healthy_metrics()]
        self.samples = 0

    def queue(self, *snapshots: MetricsSnapshot) -> None:
        self.snapshots = list(snapshots)
        self.samples = 0

    def sample(self, deployment_id: str) -> MetricsSnapshot:
        snapshot = self.snapshots[min(self.samples, len(self.snapshots) - 1)]
        self.samples += 1
        return snapshot


class RecordingProvisioner(ProvisioningActions):
    """Records every provisioning call as a tuple."""

    def __init__(self):
        self.actions: List[tuple] = []

    def deploy_version(self, deployment_id, application, version, role) -> None:
        self.actions.append(("deploy", version, role))

    def update_replica(self, deployment_id, application, replica_index) -> None:
        self.actions.append(("update", replica_index))

    def terminate_version(self, deployment_id, version, role) -> None:
        self.actions.append(("terminate", version, role))


class GatedProvisioner(RecordingProvisioner):
    """Blocks inside deploy_version until released, so tests can act mid-phase."""

    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def deploy_version(self, deployment_id, application, version, role) -> None:
        super().deploy_version(deployment_id, application, version, role)
        self.entered.set()
        self.release.wait(5)


def healthy_metrics() -> MetricsSnapshot:
    return MetricsSnapshot(
        error_rate=0.1,
        latency=LatencyPercentiles(p50=40, p95=120, p99=250),
        requests_per_second=350,
        success_rate=99.9,
    )


def metrics_with(error_rate: float = 0.1, p95: float = 120) -> MetricsSnapshot:
    return MetricsSnapshot(
        error_rate=error_rate,
        latency=LatencyPercentiles(p50=p95 / 2, p95=p95, p99=p95 * 2),
        requests_per_second=350,
        success_rate=100 - error_rate,
    )


# ============================================
# FIXTURES
# ============================================

@pytest.fixture
def settings():
    """Settings with every wait disabled."""
    return EngineSettings(_env_file=None, time_scale=0, join_timeout_seconds=5)


@pytest.fixture
def make_metrics():
    return metrics_with


@pytest.fixture
def probes():
    executor = FakeProbeExecutor()
    yield executor
    executor.release.set()


@pytest.fixture
def metrics():
    return FakeMetricsProvider()


@pytest.fixture
def provisioner():
    return RecordingProvisioner()


@pytest.fixture
def gated_provisioner():
    provisioner = GatedProvisioner()
    yield provisioner
    provisioner.release.set()


@pytest.fixture
def recorder():
    return RecordingEventEmitter()


@pytest.fixture
def make_engine(settings, probes, metrics, recorder):
    """Factory so a test can swap in its own provisioner."""
    engines = []

    def _make(provisioner):
        engine = build_engine(
            settings,
            probe_executor=probes,
            metrics_provider=metrics,
            provisioner=provisioner,
            emitters=[recorder],
        )
        engines.append(engine)
        return engine

    yield _make

    for engine in engines:
        engine.shutdown(timeout=5)


@pytest.fixture
def engine(make_engine, provisioner):
    return make_engine(provisioner)


@pytest.fixture
def make_config():
    """Build a DeploymentConfig with two always-configured health checks."""

    def _make(
        strategy=DeploymentStrategy.BLUE_GREEN,
        *,
        version="2.0.0",
        previous_version="1.0.0",
        replicas=1,
        strategy_config=None,
        rollback_policy=None,
        health_checks=None,
        feature_flags=None,
        environment=EnvironmentType.PRODUCTION,
    ):
        return DeploymentConfig(
            name=f"shop-api {strategy.value}",
            strategy=strategy,
            environment=environment,
            application=ApplicationSpec(
                name="shop-api",
                version=version,
                image=f"registry.local/shop-api:{version}",
                replicas=replicas,
                previous_version=previous_version,
            ),
            strategy_config=strategy_config or StrategyParameters(),
            health_checks=health_checks if health_checks is not None else [
                HealthCheck(name="http-ready", endpoint="http://shop-api/health"),
                HealthCheck(name="tcp-port", kind="tcp", port=8080),
            ],
            rollback_policy=rollback_policy or RollbackPolicy(),
            feature_flags=feature_flags or [],
        )

    return _make


@pytest.fixture
def run_to_end(engine):
    """Create the config, deploy it and wait for the owning task to finish."""

    def _run(config, target_engine=None):
        target_engine = target_engine or engine
        target_engine.create_deployment_config(config)
        deployment = target_engine.deploy(config.id)
        target_engine.wait_for(deployment.id, timeout=10)
        return deployment

    return _run
