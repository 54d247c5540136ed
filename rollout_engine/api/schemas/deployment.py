from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from rollout_engine.core.events_model import DeploymentEvent
from rollout_engine.core.models import Deployment, RollbackResult, TrafficTarget


class DeployRequest(BaseModel):
    config_id: str = Field(..., min_length=1)


class RollbackRequest(BaseModel):
    reason: Optional[str] = None


class TrafficTargetModel(BaseModel):
    version: str = Field(..., min_length=1)
    percentage: int = Field(..., ge=0, le=100)
    weight: Optional[int] = None

    def to_domain(self) -> TrafficTarget:
        return TrafficTarget(version=self.version, percentage=self.percentage, weight=self.weight)


class TrafficSplitRequest(BaseModel):
    targets: List[TrafficTargetModel] = Field(..., min_length=1)


class TrafficSplitResponse(BaseModel):
    deployment_id: str
    traffic_split: Dict[str, int]


class ControlResponse(BaseModel):
    deployment_id: str
    accepted: bool
    status: str


class EventResponse(BaseModel):
    id: str
    sequence: int
    timestamp: datetime
    severity: str
    phase: str
    message: str
    details: Optional[Dict[str, Any]] = None

    @classmethod
    def from_domain(cls, event: DeploymentEvent) -> "EventResponse":
        return cls(
            id=event.id,
            sequence=event.sequence,
            timestamp=event.timestamp,
            severity=event.severity.value,
            phase=event.phase,
            message=event.message,
            details=event.details,
        )


class ProgressResponse(BaseModel):
    percentage: float
    current_phase: str
    phases_completed: List[str]
    phases_remaining: List[str]


class CheckStatusResponse(BaseModel):
    name: str
    status: str
    message: str


class HealthResponse(BaseModel):
    healthy: int
    unhealthy: int
    total: int
    checks: List[CheckStatusResponse]


class MetricsResponse(BaseModel):
    error_rate: float
    latency_p50: float
    latency_p95: float
    latency_p99: float
    requests_per_second: float
    success_rate: float


class VersionResponse(BaseModel):
    current: str
    target: str
    previous: Optional[str]


class RollbackResultResponse(BaseModel):
    deployment_id: str
    success: bool
    rolled_back_to: str
    reason: str
    duration: float
    affected_instances: int
    timeline: List[EventResponse]

    @classmethod
    def from_domain(cls, result: RollbackResult) -> "RollbackResultResponse":
        return cls(
            deployment_id=result.deployment_id,
            success=result.success,
            rolled_back_to=result.rolled_back_to,
            reason=result.reason,
            duration=result.duration,
            affected_instances=result.affected_instances,
            timeline=[EventResponse.from_domain(e) for e in result.timeline],
        )


class DeploymentResponse(BaseModel):
    """Deployment response."""
    id: str
    config_id: str
    application_name: str
    strategy: str
    environment: str
    status: str
    version: VersionResponse
    progress: ProgressResponse
    traffic_split: Dict[str, int]
    health: HealthResponse
    metrics: MetricsResponse
    timeline: List[EventResponse]
    started_at: datetime
    completed_at: Optional[datetime]
    estimated_completion_at: Optional[datetime]
    rollback_available: bool
    rollback_reason: Optional[str]
    rollback_result: Optional[RollbackResultResponse]
    error_message: Optional[str]

    @classmethod
    def from_domain(cls, deployment: Deployment) -> "DeploymentResponse":
        progress = deployment.progress
        health = deployment.health
        metrics = deployment.metrics
        return cls(
            id=deployment.id,
            config_id=deployment.config_id,
            application_name=deployment.application_name,
            strategy=deployment.strategy.value,
            environment=deployment.environment.value,
            status=deployment.status.value,
            version=VersionResponse(
                current=deployment.version.current,
                target=deployment.version.target,
                previous=deployment.version.previous,
            ),
            progress=ProgressResponse(
                percentage=progress.percentage,
                current_phase=progress.current_phase,
                phases_completed=list(progress.phases_completed),
                phases_remaining=list(progress.phases_remaining),
            ),
            traffic_split=dict(deployment.traffic_split),
            health=HealthResponse(
                healthy=health.healthy,
                unhealthy=health.unhealthy,
                total=health.total,
                checks=[
                    CheckStatusResponse(name=c.name, status=c.status, message=c.message)
                    for c in list(health.checks)
                ],
            ),
            metrics=MetricsResponse(
                error_rate=metrics.error_rate,
                latency_p50=metrics.latency.p50,
                latency_p95=metrics.latency.p95,
                latency_p99=metrics.latency.p99,
                requests_per_second=metrics.requests_per_second,
                success_rate=metrics.success_rate,
            ),
            timeline=[EventResponse.from_domain(e) for e in deployment.timeline.snapshot()],
            started_at=deployment.started_at,
            completed_at=deployment.completed_at,
            estimated_completion_at=deployment.estimated_completion_at,
            rollback_available=deployment.rollback_available,
            rollback_reason=deployment.rollback_reason,
            rollback_result=(
                RollbackResultResponse.from_domain(deployment.rollback_result)
                if deployment.rollback_result is not None else None
            ),
            error_message=deployment.error_message,
        )
