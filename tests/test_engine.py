#tests\test_engine.py

"""Test deployment engine lifecycle, control signals and queries."""

import threading
import time
from datetime import timedelta

import pytest

from rollout_engine.core.errors import (
    ConfigNotFound,
    DeploymentNotFound,
    InvalidStateTransition,
    InvalidStrategyParameters,
)
from rollout_engine.core.models import (
    DeploymentStatus,
    DeploymentStrategy,
    FeatureFlag,
    RollbackPolicy,
    StrategyParameters,
    TargetingRule,
    TrafficTarget,
)


def wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


class ExplodingProvisioner:
    def deploy_version(self, deployment_id, application, version, role):
        raise RuntimeError("quota exceeded")

    def update_replica(self, deployment_id, application, replica_index):
        raise RuntimeError("quota exceeded")

    def terminate_version(self, deployment_id, version, role):
        pass


# ============================================
# CONFIGS / DEPLOY
# ============================================

class TestConfigs:

    def test_create_and_get(self, engine, make_config):
        config = engine.create_deployment_config(make_config())

        assert engine.get_deployment_config(config.id) is config
        assert engine.list_deployment_configs() == [config]

    def test_invalid_config_rejected(self, engine, make_config):
        config = make_config(
            DeploymentStrategy.AB_TESTING,
            strategy_config=StrategyParameters(variant_percentages={"A": 90, "B": 20}),
        )
        with pytest.raises(InvalidStrategyParameters):
            engine.create_deployment_config(config)

    def test_config_flags_are_registered(self, engine, make_config):
        flag = FeatureFlag(key="new-cart", enabled=True, targeting=TargetingRule(user_ids=["u1"], percentage=0))
        engine.create_deployment_config(make_config(feature_flags=[flag]))

        assert engine.evaluate_feature_flag("new-cart", "u1") is True
        assert engine.evaluate_feature_flag("new-cart", "u2") is False


class TestDeploy:

    def test_unknown_config(self, engine):
        with pytest.raises(ConfigNotFound):
            engine.deploy("config_missing")

    def test_initial_state(self, make_engine, gated_provisioner, make_config):
        """The record is IN_PROGRESS with the strategy's starting split."""
        engine = make_engine(gated_provisioner)
        config = engine.create_deployment_config(make_config(DeploymentStrategy.CANARY))

        deployment = engine.deploy(config.id)
        assert gated_provisioner.entered.wait(5)

        assert deployment.status == DeploymentStatus.IN_PROGRESS
        assert deployment.traffic_split == {"stable": 100, "canary": 0}
        assert deployment.health.total == 1
        first = deployment.timeline.snapshot()[0]
        assert first.phase == "Initialization"
        assert first.message == "Deployment started"
        assert engine.get_active_deployments() == [deployment]

        gated_provisioner.release.set()
        engine.wait_for(deployment.id, timeout=5)
        assert engine.get_active_deployments() == []

    def test_each_deploy_gets_a_fresh_id(self, engine, make_config):
        config = engine.create_deployment_config(make_config())

        first = engine.deploy(config.id)
        second = engine.deploy(config.id)
        engine.wait_for(first.id, 5)
        engine.wait_for(second.id, 5)

        assert first.id != second.id
        assert len(engine.get_all_deployments()) == 2

    def test_estimated_completion(self, engine, make_config):
        config = engine.create_deployment_config(make_config(
            DeploymentStrategy.CANARY,
            strategy_config=StrategyParameters(increment_percentage=25, canary_duration=2),
        ))

        deployment = engine.deploy(config.id)

        expected = deployment.started_at + timedelta(minutes=8)
        assert deployment.estimated_completion_at == expected

    def test_previous_version_from_last_success(self, engine, make_config, run_to_end):
        first = run_to_end(make_config(version="2.0.0", previous_version=None))
        assert first.status == DeploymentStatus.SUCCESSFUL

        second = run_to_end(make_config(version="2.1.0", previous_version=None))

        assert second.version.previous == "2.0.0"
        assert second.version.current == "2.1.0"

    def test_provisioning_error_fails_deployment(self, make_engine, make_config, run_to_end):
        engine = make_engine(ExplodingProvisioner())

        deployment = run_to_end(make_config(), target_engine=engine)

        assert deployment.status == DeploymentStatus.ROLLED_BACK
        assert "Provisioning failed: quota exceeded" in deployment.error_message

    def test_events_reach_the_emitter(self, run_to_end, make_config, recorder):
        deployment = run_to_end(make_config())

        emitted = [e.message for e in recorder.events if e.deployment_id == deployment.id]
        assert emitted == [e.message for e in deployment.timeline]
        assert emitted[0] == "Deployment started"

    def test_crash_outside_strategy_still_ends_terminal(
        self, engine, make_config, run_to_end, monkeypatch
    ):
        def broken_completion(run):
            raise RuntimeError("repository unavailable")

        monkeypatch.setattr(engine, "_complete", broken_completion)

        deployment = run_to_end(make_config())

        assert deployment.status == DeploymentStatus.FAILED
        assert deployment.completed_at is not None
        assert deployment.error_message == "Deployment task crashed: repository unavailable"
        assert deployment.timeline[-1].message == "Deployment task crashed: repository unavailable"


# ============================================
# CONTROL
# ============================================

class TestPauseResume:

    def test_pause_holds_next_phase_until_resume(
        self, make_engine, gated_provisioner, make_config, probes
    ):
        """Paused mid-phase: the current phase finishes, the next one waits."""
        engine = make_engine(gated_provisioner)
        config = engine.create_deployment_config(make_config(DeploymentStrategy.BLUE_GREEN))
        deployment = engine.deploy(config.id)
        assert gated_provisioner.entered.wait(5)

        assert engine.pause(deployment.id) is True
        assert deployment.status == DeploymentStatus.PAUSED

        gated_provisioner.release.set()
        time.sleep(0.2)

        assert deployment.status == DeploymentStatus.PAUSED
        assert deployment.progress.current_phase == "Deploy Green"
        assert probes.calls == []

        assert engine.resume(deployment.id) is True
        engine.wait_for(deployment.id, timeout=5)

        assert deployment.status == DeploymentStatus.SUCCESSFUL
        messages = [e.message for e in deployment.timeline]
        assert messages.index("Deployment paused") < messages.index("Deployment resumed")

    def test_pause_in_last_phase_holds_completion(self, engine, make_config, probes):
        """Paused during the final health check: success waits for resume."""
        probes.hold_targets.add("current")
        config = engine.create_deployment_config(make_config(DeploymentStrategy.RECREATE))
        deployment = engine.deploy(config.id)
        assert probes.entered.wait(5)

        assert engine.pause(deployment.id) is True
        probes.release.set()
        time.sleep(0.2)

        assert deployment.status == DeploymentStatus.PAUSED
        assert deployment.completed_at is None

        assert engine.resume(deployment.id) is True
        engine.wait_for(deployment.id, timeout=5)

        assert deployment.status == DeploymentStatus.SUCCESSFUL
        assert deployment.traffic_split == {"previous": 0, "current": 100}
        assert deployment.version.current == "2.0.0"

    def test_pause_during_final_canary_window(self, settings, make_engine, provisioner, make_config):
        settings.time_scale = 0.5
        engine = make_engine(provisioner)
        config = engine.create_deployment_config(
            make_config(
                DeploymentStrategy.CANARY,
                strategy_config=StrategyParameters(increment_percentage=50, canary_duration=0.01),
            )
        )
        deployment = engine.deploy(config.id)
        assert wait_until(lambda: deployment.progress.current_phase == "Canary 100%")

        assert engine.pause(deployment.id) is True
        time.sleep(0.6)

        assert deployment.status == DeploymentStatus.PAUSED

        assert engine.resume(deployment.id) is True
        engine.wait_for(deployment.id, timeout=5)

        assert deployment.status == DeploymentStatus.SUCCESSFUL
        assert deployment.traffic_split == {"stable": 0, "canary": 100}

    def test_pause_only_from_in_progress(self, engine, make_config, run_to_end):
        deployment = run_to_end(make_config())

        assert engine.pause(deployment.id) is False
        assert engine.resume(deployment.id) is False

    def test_resume_requires_paused(self, make_engine, gated_provisioner, make_config):
        engine = make_engine(gated_provisioner)
        config = engine.create_deployment_config(make_config())
        deployment = engine.deploy(config.id)

        assert engine.resume(deployment.id) is False
        gated_provisioner.release.set()

    def test_unknown_deployment(self, engine):
        with pytest.raises(DeploymentNotFound):
            engine.pause("deploy_missing")


class TestCancel:

    def test_cancel_reverts_traffic_and_stays_cancelled(
        self, make_engine, gated_provisioner, make_config
    ):
        engine = make_engine(gated_provisioner)
        config = engine.create_deployment_config(make_config(DeploymentStrategy.CANARY))
        deployment = engine.deploy(config.id)
        assert gated_provisioner.entered.wait(5)

        assert engine.cancel(deployment.id) is True
        assert deployment.status == DeploymentStatus.CANCELLED

        gated_provisioner.release.set()
        engine.wait_for(deployment.id, timeout=5)

        assert deployment.status == DeploymentStatus.CANCELLED
        assert deployment.traffic_split == {"stable": 100, "canary": 0}
        assert deployment.rollback_result is not None
        assert deployment.rollback_result.reason == "Deployment cancelled by user"
        assert ("terminate", "2.0.0", "rollout") in gated_provisioner.actions

    def test_cancel_rolls_back_even_without_auto_rollback(
        self, make_engine, gated_provisioner, make_config
    ):
        engine = make_engine(gated_provisioner)
        config = engine.create_deployment_config(
            make_config(rollback_policy=RollbackPolicy(auto_rollback=False))
        )
        deployment = engine.deploy(config.id)
        assert gated_provisioner.entered.wait(5)

        engine.cancel(deployment.id)
        gated_provisioner.release.set()
        engine.wait_for(deployment.id, timeout=5)

        assert deployment.rollback_result is not None

    def test_cancel_paused_deployment(self, make_engine, gated_provisioner, make_config):
        engine = make_engine(gated_provisioner)
        config = engine.create_deployment_config(make_config())
        deployment = engine.deploy(config.id)
        assert gated_provisioner.entered.wait(5)

        engine.pause(deployment.id)
        gated_provisioner.release.set()
        assert engine.cancel(deployment.id) is True

        engine.wait_for(deployment.id, timeout=5)
        assert deployment.status == DeploymentStatus.CANCELLED
        assert deployment.traffic_split == {"blue": 100, "green": 0}

    def test_cancel_finished_deployment(self, engine, make_config, run_to_end):
        deployment = run_to_end(make_config())

        assert engine.cancel(deployment.id) is False
        assert deployment.status == DeploymentStatus.SUCCESSFUL


class TestManualRollback:

    def test_rollback_of_running_deployment(self, make_engine, gated_provisioner, make_config):
        engine = make_engine(gated_provisioner)
        config = engine.create_deployment_config(make_config(DeploymentStrategy.CANARY))
        deployment = engine.deploy(config.id)
        assert gated_provisioner.entered.wait(5)

        threading.Timer(0.1, gated_provisioner.release.set).start()
        result = engine.rollback(deployment.id, "Customer complaints")

        assert result.reason == "Customer complaints"
        assert deployment.status == DeploymentStatus.ROLLED_BACK
        assert deployment.traffic_split == {"stable": 100, "canary": 0}

    def test_rollback_of_failed_deployment(self, engine, make_config, run_to_end, probes):
        probes.fail_targets.add("green")
        deployment = run_to_end(make_config(rollback_policy=RollbackPolicy(auto_rollback=False)))
        assert deployment.status == DeploymentStatus.FAILED

        result = engine.rollback(deployment.id, "Operator decision")

        assert deployment.status == DeploymentStatus.ROLLED_BACK
        assert result.rolled_back_to == "1.0.0"
        assert deployment.traffic_split == {"blue": 100, "green": 0}

    def test_rollback_twice_returns_same_result(self, engine, make_config, run_to_end, probes):
        probes.fail_targets.add("green")
        deployment = run_to_end(make_config(rollback_policy=RollbackPolicy(auto_rollback=False)))

        first = engine.rollback(deployment.id, "one")
        second = engine.rollback(deployment.id, "two")

        assert second is first
        assert second.rolled_back_to == first.rolled_back_to

    def test_successful_deployment_cannot_roll_back(self, engine, make_config, run_to_end):
        deployment = run_to_end(make_config())

        with pytest.raises(InvalidStateTransition):
            engine.rollback(deployment.id, "too late")


class TestTrafficOverride:

    def test_update_traffic_split(self, engine, make_config, run_to_end):
        deployment = run_to_end(make_config())

        split = engine.update_traffic_split(
            deployment.id,
            [TrafficTarget(version="blue", percentage=10), TrafficTarget(version="green", percentage=90)],
        )

        assert split == {"blue": 10, "green": 90}
        assert deployment.timeline.last().message == "Traffic split updated"

    def test_unknown_deployment(self, engine):
        with pytest.raises(DeploymentNotFound):
            engine.update_traffic_split("deploy_missing", [])


class TestShutdown:

    def test_shutdown_cancels_active(self, make_engine, gated_provisioner, make_config):
        engine = make_engine(gated_provisioner)
        config = engine.create_deployment_config(make_config())
        deployment = engine.deploy(config.id)
        assert gated_provisioner.entered.wait(5)

        threading.Timer(0.1, gated_provisioner.release.set).start()
        engine.shutdown(timeout=5)

        assert deployment.status == DeploymentStatus.CANCELLED
        assert wait_until(lambda: deployment.rollback_result is not None)
