"""Test the admin API end to end against an in-process engine."""

import pytest
from fastapi.testclient import TestClient

from rollout_engine.api.main import create_app


@pytest.fixture
def client(engine):
    return TestClient(create_app(engine))


@pytest.fixture
def config_payload():
    return {
        "name": "shop-api canary",
        "strategy": "canary",
        "environment": "production",
        "application": {
            "name": "shop-api",
            "version": "2.0.0",
            "image": "registry.local/shop-api:2.0.0",
            "replicas": 2,
            "previous_version": "1.0.0",
        },
        "strategy_config": {"increment_percentage": 50},
        "health_checks": [
            {"name": "http-ready", "endpoint": "http://shop-api/health"},
        ],
        "rollback_policy": {"error_threshold": 2.0},
        "feature_flags": [
            {"key": "new-checkout", "enabled": True, "targeting": {"percentage": 100}},
        ],
    }


def create_config(client, payload):
    response = client.post("/configs/", json=payload)
    assert response.status_code == 201
    return response.json()


def run_deployment(client, engine, config_id):
    response = client.post("/deployments/", json={"config_id": config_id})
    assert response.status_code == 202
    deployment_id = response.json()["id"]
    engine.wait_for(deployment_id, timeout=10)
    return deployment_id


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


# ============================================
# CONFIGS
# ============================================

class TestConfigRoutes:

    def test_create_and_fetch(self, client, config_payload):
        created = create_config(client, config_payload)

        assert created["strategy"] == "canary"
        assert created["feature_flag_keys"] == ["new-checkout"]
        assert created["health_checks"][0]["name"] == "http-ready"

        fetched = client.get(f"/configs/{created['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["application"]["replicas"] == 2
        assert len(client.get("/configs/").json()) == 1

    def test_missing_config(self, client):
        assert client.get("/configs/config_missing").status_code == 404

    def test_invalid_strategy_parameters(self, client, config_payload):
        config_payload["strategy"] = "ab_testing"
        config_payload["strategy_config"] = {"variant_percentages": {"A": 70, "B": 20}}

        response = client.post("/configs/", json=config_payload)

        assert response.status_code == 422
        assert response.json()["error"] == "InvalidStrategyParameters"

    def test_unknown_strategy_is_rejected_by_schema(self, client, config_payload):
        config_payload["strategy"] = "big_bang"
        assert client.post("/configs/", json=config_payload).status_code == 422


# ============================================
# DEPLOYMENTS
# ============================================

class TestDeploymentRoutes:

    def test_deploy_runs_to_success(self, client, engine, config_payload):
        config = create_config(client, config_payload)

        deployment_id = run_deployment(client, engine, config["id"])
        body = client.get(f"/deployments/{deployment_id}").json()

        assert body["status"] == "successful"
        assert body["traffic_split"] == {"stable": 0, "canary": 100}
        assert body["progress"]["percentage"] == 100
        assert body["version"]["current"] == "2.0.0"
        assert body["timeline"][0]["message"] == "Deployment started"
        assert body["metrics"]["latency_p95"] == 120

    def test_deploy_unknown_config(self, client):
        response = client.post("/deployments/", json={"config_id": "config_missing"})

        assert response.status_code == 404
        assert response.json()["error"] == "ConfigNotFound"

    def test_list_and_active(self, client, engine, config_payload):
        config = create_config(client, config_payload)
        run_deployment(client, engine, config["id"])

        assert len(client.get("/deployments/").json()) == 1
        assert client.get("/deployments/active").json() == []

    def test_missing_deployment(self, client):
        assert client.get("/deployments/deploy_missing").status_code == 404
        assert client.post("/deployments/deploy_missing/pause").status_code == 404

    def test_pause_finished_deployment_is_not_accepted(self, client, engine, config_payload):
        config = create_config(client, config_payload)
        deployment_id = run_deployment(client, engine, config["id"])

        body = client.post(f"/deployments/{deployment_id}/pause").json()

        assert body == {"deployment_id": deployment_id, "accepted": False, "status": "successful"}

    def test_rollback_failed_deployment(self, client, engine, config_payload, probes):
        probes.fail_targets.add("canary")
        config_payload["rollback_policy"]["auto_rollback"] = False
        config = create_config(client, config_payload)
        deployment_id = run_deployment(client, engine, config["id"])

        response = client.post(
            f"/deployments/{deployment_id}/rollback",
            json={"reason": "Operator decision"},
        )

        assert response.status_code == 200
        assert response.json()["reason"] == "Operator decision"
        assert response.json()["rolled_back_to"] == "1.0.0"
        assert client.get(f"/deployments/{deployment_id}").json()["status"] == "rolled_back"

    def test_rollback_without_body_uses_default_reason(self, client, engine, config_payload, probes):
        probes.fail_targets.add("canary")
        config_payload["rollback_policy"]["auto_rollback"] = False
        config = create_config(client, config_payload)
        deployment_id = run_deployment(client, engine, config["id"])

        response = client.post(f"/deployments/{deployment_id}/rollback")

        assert response.json()["reason"] == "Manual rollback requested"

    def test_rollback_successful_deployment_conflicts(self, client, engine, config_payload):
        config = create_config(client, config_payload)
        deployment_id = run_deployment(client, engine, config["id"])

        response = client.post(f"/deployments/{deployment_id}/rollback")

        assert response.status_code == 409
        assert response.json()["error"] == "InvalidStateTransition"

    def test_traffic_override(self, client, engine, config_payload):
        config = create_config(client, config_payload)
        deployment_id = run_deployment(client, engine, config["id"])

        response = client.put(
            f"/deployments/{deployment_id}/traffic",
            json={"targets": [{"version": "stable", "percentage": 30}, {"version": "canary", "percentage": 70}]},
        )

        assert response.status_code == 200
        assert response.json()["traffic_split"] == {"stable": 30, "canary": 70}

    def test_traffic_override_needs_targets(self, client):
        response = client.put("/deployments/deploy_1/traffic", json={"targets": []})
        assert response.status_code == 422


# ============================================
# FEATURE FLAGS
# ============================================

class TestFeatureFlagRoutes:

    @pytest.fixture
    def flag(self, client):
        response = client.post(
            "/feature-flags/",
            json={
                "key": "dark-mode",
                "enabled": True,
                "targeting": {"user_ids": ["alice"], "percentage": 0},
                "variants": [{"name": "dim", "percentage": 100}],
            },
        )
        assert response.status_code == 201
        return response.json()

    def test_create_defaults_name_to_key(self, flag):
        assert flag["name"] == "dark-mode"

    def test_duplicate_key(self, client, flag):
        response = client.post("/feature-flags/", json={"key": "dark-mode"})
        assert response.status_code == 422

    def test_evaluate_with_variant(self, client, flag):
        allowed = client.post("/feature-flags/dark-mode/evaluate", json={"user_id": "alice"}).json()
        denied = client.post("/feature-flags/dark-mode/evaluate", json={"user_id": "bob"}).json()

        assert allowed == {"flag_key": "dark-mode", "user_id": "alice", "enabled": True, "variant": "dim"}
        assert denied["enabled"] is False
        assert denied["variant"] is None

    def test_toggle(self, client, flag):
        response = client.post(f"/feature-flags/{flag['id']}/toggle", json={"enabled": False})

        assert response.json()["enabled"] is False
        evaluated = client.post("/feature-flags/dark-mode/evaluate", json={"user_id": "alice"}).json()
        assert evaluated["enabled"] is False

    def test_toggle_missing_flag(self, client):
        response = client.post("/feature-flags/flag_missing/toggle", json={"enabled": True})
        assert response.status_code == 404

    def test_patch_only_touches_sent_fields(self, client, flag):
        response = client.patch(f"/feature-flags/{flag['id']}", json={"description": "Darker UI"})

        body = response.json()
        assert body["description"] == "Darker UI"
        assert body["enabled"] is True
        assert body["targeting"]["user_ids"] == ["alice"]

    def test_delete(self, client, flag):
        assert client.delete(f"/feature-flags/{flag['id']}").status_code == 204
        assert client.get(f"/feature-flags/{flag['id']}").status_code == 404
        assert client.delete(f"/feature-flags/{flag['id']}").status_code == 404

    def test_unknown_flag_evaluates_false(self, client):
        body = client.post("/feature-flags/nope/evaluate", json={"user_id": "alice"}).json()
        assert body["enabled"] is False
