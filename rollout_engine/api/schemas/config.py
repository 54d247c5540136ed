import dataclasses
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from rollout_engine.api.schemas.feature_flag import FeatureFlagCreateRequest
from rollout_engine.core.models import (
    ApplicationSpec,
    DeploymentConfig,
    DeploymentStrategy,
    EnvironmentType,
    HealthCheck,
    NotificationTargets,
    ResourceLimits,
    RollbackPolicy,
    StrategyParameters,
)


class ResourceLimitsModel(BaseModel):
    cpu: str = "0.5"
    memory: str = "512Mi"
    disk: Optional[str] = None


class ApplicationModel(BaseModel):
    name: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)
    image: str = Field(..., min_length=1, description="Container image (e.g., 'shop/api:2.0.0')")
    replicas: int = Field(default=1, ge=1)
    resources: ResourceLimitsModel = Field(default_factory=ResourceLimitsModel)
    previous_version: Optional[str] = None


class StrategyParametersModel(BaseModel):
    canary_percentage: Optional[int] = None
    canary_duration: Optional[float] = Field(default=None, description="Minutes per canary step")
    increment_percentage: Optional[int] = None
    traffic_switch_delay: Optional[float] = Field(default=None, description="Minutes")
    keep_old_version: bool = False
    max_surge: Optional[int] = None
    max_unavailable: Optional[int] = None
    variant_percentages: Dict[str, int] = Field(default_factory=dict)


class HealthCheckModel(BaseModel):
    name: str = Field(..., min_length=1)
    kind: str = "http"
    endpoint: Optional[str] = None
    method: str = "GET"
    expected_status: List[int] = Field(default_factory=lambda: [200])
    expected_body: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    host: str = "localhost"
    port: Optional[int] = None
    command: Optional[str] = None
    interval: float = 10
    timeout: float = 5
    success_threshold: int = 1
    failure_threshold: int = 3
    initial_delay: float = 0
    retries: int = 0
    id: Optional[str] = None


class RollbackPolicyModel(BaseModel):
    auto_rollback: bool = True
    error_threshold: float = 5.0
    latency_threshold: float = 1000.0
    rollback_timeout: float = 10


class NotificationTargetsModel(BaseModel):
    slack: List[str] = Field(default_factory=list)
    email: List[str] = Field(default_factory=list)
    webhook: List[str] = Field(default_factory=list)


class DeploymentConfigCreateRequest(BaseModel):
    """Create deployment config request."""
    name: str = Field(..., min_length=1, max_length=255)
    strategy: DeploymentStrategy
    environment: EnvironmentType
    application: ApplicationModel
    strategy_config: StrategyParametersModel = Field(default_factory=StrategyParametersModel)
    health_checks: List[HealthCheckModel] = Field(default_factory=list)
    rollback_policy: RollbackPolicyModel = Field(default_factory=RollbackPolicyModel)
    feature_flags: List[FeatureFlagCreateRequest] = Field(default_factory=list)
    notifications: NotificationTargetsModel = Field(default_factory=NotificationTargetsModel)
    created_by: str = "api"

    def to_domain(self) -> DeploymentConfig:
        app = self.application
        return DeploymentConfig(
            name=self.name,
            strategy=self.strategy,
            environment=self.environment,
            application=ApplicationSpec(
                name=app.name,
                version=app.version,
                image=app.image,
                replicas=app.replicas,
                resources=ResourceLimits(**app.resources.model_dump()),
                previous_version=app.previous_version,
            ),
            strategy_config=StrategyParameters(**self.strategy_config.model_dump()),
            health_checks=[
                HealthCheck(**hc.model_dump(exclude_none=True)) for hc in self.health_checks
            ],
            rollback_policy=RollbackPolicy(**self.rollback_policy.model_dump()),
            feature_flags=[f.to_domain() for f in self.feature_flags],
            notifications=NotificationTargets(**self.notifications.model_dump()),
            created_by=self.created_by,
        )


class DeploymentConfigResponse(BaseModel):
    """Deployment config response."""
    id: str
    name: str
    strategy: str
    environment: str
    application: ApplicationModel
    strategy_config: StrategyParametersModel
    health_checks: List[HealthCheckModel]
    rollback_policy: RollbackPolicyModel
    feature_flag_keys: List[str]
    notifications: NotificationTargetsModel
    created_by: str
    created_at: datetime

    @classmethod
    def from_domain(cls, config: DeploymentConfig) -> "DeploymentConfigResponse":
        return cls(
            id=config.id,
            name=config.name,
            strategy=config.strategy.value,
            environment=config.environment.value,
            application=ApplicationModel(**dataclasses.asdict(config.application)),
            strategy_config=StrategyParametersModel(**dataclasses.asdict(config.strategy_config)),
            health_checks=[HealthCheckModel(**dataclasses.asdict(hc)) for hc in config.health_checks],
            rollback_policy=RollbackPolicyModel(**dataclasses.asdict(config.rollback_policy)),
            feature_flag_keys=[f.key for f in config.feature_flags],
            notifications=NotificationTargetsModel(**dataclasses.asdict(config.notifications)),
            created_by=config.created_by,
            created_at=config.created_at,
        )
