#rollout_engine\container.py

"""Dependency injection container - wires all services together."""

from typing import List, Optional

from rollout_engine.config import EngineSettings
from rollout_engine.core.events import (
    EventEmitter,
    LoggingEventEmitter,
    MultiEventEmitter,
    WebhookEventEmitter,
)
from rollout_engine.executor.provisioning import (
    NullProvisioner,
    ProvisioningActions,
    RuntimeAgentProvisioner,
)
from rollout_engine.feature_flags.service import FeatureFlagService
from rollout_engine.health_checker.probes import ProbeDispatcher, ProbeExecutor
from rollout_engine.infrastructure.memory.repository import (
    InMemoryConfigRepository,
    InMemoryDeploymentRepository,
    InMemoryFeatureFlagRepository,
)
from rollout_engine.metrics.source import MetricsProvider, StaticMetricsProvider
from rollout_engine.orchestrator.deployment_engine import DeploymentEngine


def build_engine(
    settings: Optional[EngineSettings] = None,
    *,
    probe_executor: Optional[ProbeExecutor] = None,
    metrics_provider: Optional[MetricsProvider] = None,
    provisioner: Optional[ProvisioningActions] = None,
    emitters: Optional[List[EventEmitter]] = None,
) -> DeploymentEngine:
    """Build a DeploymentEngine; any collaborator can be swapped in."""
    settings = settings or EngineSettings()

    # ============================================
    # REPOSITORIES
    # ============================================

    config_repository = InMemoryConfigRepository()
    deployment_repository = InMemoryDeploymentRepository()
    flag_repository = InMemoryFeatureFlagRepository()

    # ============================================
    # EVENTS
    # ============================================

    if emitters is None:
        emitters = [LoggingEventEmitter()]
        if settings.notification_webhook_url:
            emitters.append(WebhookEventEmitter(settings.notification_webhook_url))

    # ============================================
    # COLLABORATORS
    # ============================================

    if provisioner is None:
        if settings.runtime_agent_url:
            provisioner = RuntimeAgentProvisioner(
                settings.runtime_agent_url,
                timeout=settings.runtime_agent_timeout,
            )
        else:
            provisioner = NullProvisioner()

    # ============================================
    # SERVICES
    # ============================================

    return DeploymentEngine(
        settings=settings,
        config_repo=config_repository,
        deployment_repo=deployment_repository,
        flag_service=FeatureFlagService(flag_repository),
        probe_executor=probe_executor or ProbeDispatcher(),
        metrics_provider=metrics_provider or StaticMetricsProvider(),
        provisioner=provisioner,
        emitter=MultiEventEmitter(emitters),
    )
