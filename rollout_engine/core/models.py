"""Core domain models (configs, deployments, feature flags)."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from rollout_engine.core.events_model import DeploymentEvent, EventLog, EventSeverity


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:12]}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================
# ENUMS
# ============================================

class DeploymentStrategy(Enum):
    """Progressive delivery strategy."""
    BLUE_GREEN = "blue_green"
    CANARY = "canary"
    ROLLING = "rolling"
    RECREATE = "recreate"
    AB_TESTING = "ab_testing"
    SHADOW = "shadow"


class DeploymentStatus(Enum):
    """Deployment state machine."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    SUCCESSFUL = "successful"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"
    CANCELLED = "cancelled"


class EnvironmentType(Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    QA = "qa"
    PREVIEW = "preview"


TERMINAL_STATUSES = frozenset({
    DeploymentStatus.SUCCESSFUL,
    DeploymentStatus.FAILED,
    DeploymentStatus.ROLLED_BACK,
    DeploymentStatus.CANCELLED,
})

ACTIVE_STATUSES = frozenset({
    DeploymentStatus.IN_PROGRESS,
    DeploymentStatus.PAUSED,
})


# ============================================
# DEPLOYMENT CONFIG
# ============================================

@dataclass(frozen=True)
class ResourceLimits:
    """Resource limits for one replica."""
    cpu: str = "0.5"  # cores
    memory: str = "512Mi"
    disk: Optional[str] = None


@dataclass(frozen=True)
class ApplicationSpec:
    """What is being rolled out."""
    name: str
    version: str
    image: str
    replicas: int = 1
    resources: ResourceLimits = field(default_factory=ResourceLimits)
    previous_version: Optional[str] = None


@dataclass(frozen=True)
class StrategyParameters:
    """Strategy-specific knobs; only the ones for the chosen strategy are read."""

    # Canary
    canary_percentage: Optional[int] = None  # informational, steps follow the increment
    canary_duration: Optional[float] = None  # minutes per step
    increment_percentage: Optional[int] = None

    # Blue-green
    traffic_switch_delay: Optional[float] = None  # minutes
    keep_old_version: bool = False

    # Rolling
    max_surge: Optional[int] = None
    max_unavailable: Optional[int] = None

    # A/B testing, variant name -> percentage
    variant_percentages: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class HealthCheck:
    """Probe descriptor. Stateless, evaluated repeatedly."""
    name: str
    kind: str = "http"  # "http", "tcp", "command", "grpc"

    # http
    endpoint: Optional[str] = None
    method: str = "GET"
    expected_status: List[int] = field(default_factory=lambda: [200])
    expected_body: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)

    # tcp / grpc
    host: str = "localhost"
    port: Optional[int] = None

    # command
    command: Optional[str] = None

    interval: float = 10  # seconds
    timeout: float = 5  # seconds
    success_threshold: int = 1
    failure_threshold: int = 3
    initial_delay: float = 0
    retries: int = 0

    id: str = field(default_factory=lambda: new_id("check"))


@dataclass(frozen=True)
class RollbackPolicy:
    auto_rollback: bool = True
    error_threshold: float = 5.0  # percent
    latency_threshold: float = 1000.0  # p95, ms
    rollback_timeout: float = 10  # minutes


@dataclass(frozen=True)
class NotificationTargets:
    slack: List[str] = field(default_factory=list)
    email: List[str] = field(default_factory=list)
    webhook: List[str] = field(default_factory=list)


# ============================================
# FEATURE FLAGS
# ============================================

@dataclass
class TargetingRule:
    percentage: Optional[float] = None  # 0-100
    user_ids: List[str] = field(default_factory=list)
    user_groups: List[str] = field(default_factory=list)
    countries: List[str] = field(default_factory=list)
    platforms: List[str] = field(default_factory=list)


@dataclass
class FlagVariant:
    name: str
    percentage: float
    config: Any = None


@dataclass
class FeatureFlag:
    """Named gate; mutated by toggle/update, removed only by explicit delete."""
    key: str
    name: str = ""
    description: str = ""
    enabled: bool = False
    targeting: TargetingRule = field(default_factory=TargetingRule)
    variants: List[FlagVariant] = field(default_factory=list)
    expires_at: Optional[datetime] = None

    id: str = field(default_factory=lambda: new_id("flag"))
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or utcnow()) >= self.expires_at


@dataclass(frozen=True)
class DeploymentConfig:
    """Rollout definition. Immutable once stored."""
    name: str
    strategy: DeploymentStrategy
    environment: EnvironmentType
    application: ApplicationSpec

    strategy_config: StrategyParameters = field(default_factory=StrategyParameters)
    health_checks: List[HealthCheck] = field(default_factory=list)
    rollback_policy: RollbackPolicy = field(default_factory=RollbackPolicy)
    feature_flags: List[FeatureFlag] = field(default_factory=list)
    notifications: NotificationTargets = field(default_factory=NotificationTargets)

    created_by: str = "system"
    id: str = field(default_factory=lambda: new_id("config"))
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


# ============================================
# DEPLOYMENT
# ============================================

@dataclass
class VersionInfo:
    current: str
    target: str
    previous: Optional[str] = None


@dataclass
class Progress:
    percentage: float = 0.0
    current_phase: str = "Initializing"
    phases_completed: List[str] = field(default_factory=list)
    phases_remaining: List[str] = field(default_factory=list)


@dataclass
class CheckStatus:
    name: str
    status: str  # "passing", "failing", "unknown"
    message: str = ""


@dataclass
class HealthSnapshot:
    healthy: int = 0
    unhealthy: int = 0
    total: int = 0
    checks: List[CheckStatus] = field(default_factory=list)


@dataclass(frozen=True)
class LatencyPercentiles:
    p50: float = 0.0
    p95: float = 0.0
    p99: float = 0.0


@dataclass(frozen=True)
class MetricsSnapshot:
    error_rate: float = 0.0  # percent
    latency: LatencyPercentiles = field(default_factory=LatencyPercentiles)
    requests_per_second: float = 0.0
    success_rate: float = 100.0  # percent


@dataclass(frozen=True)
class TrafficTarget:
    version: str
    percentage: int
    weight: Optional[int] = None


@dataclass(frozen=True)
class RollbackResult:
    deployment_id: str
    success: bool
    rolled_back_to: str
    reason: str
    duration: float  # seconds
    affected_instances: int
    timeline: List[DeploymentEvent] = field(default_factory=list)


@dataclass
class Deployment:
    """Mutable execution record, owned by its executing task."""

    config_id: str
    strategy: DeploymentStrategy
    environment: EnvironmentType
    version: VersionInfo
    application_name: str = ""

    status: DeploymentStatus = DeploymentStatus.PENDING
    progress: Progress = field(default_factory=Progress)
    traffic_split: Dict[str, int] = field(default_factory=dict)
    health: HealthSnapshot = field(default_factory=HealthSnapshot)
    metrics: MetricsSnapshot = field(default_factory=MetricsSnapshot)

    id: str = field(default_factory=lambda: new_id("deploy"))
    timeline: EventLog = None  # type: ignore[assignment]

    started_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    estimated_completion_at: Optional[datetime] = None

    rollback_available: bool = False
    rollback_reason: Optional[str] = None
    rollback_result: Optional[RollbackResult] = None
    error_message: Optional[str] = None

    def __post_init__(self):
        if self.timeline is None:
            self.timeline = EventLog(self.id)

    # -------------------------
    # TIMELINE
    # -------------------------

    def add_event(
        self,
        severity: EventSeverity,
        message: str,
        phase: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> DeploymentEvent:
        return self.timeline.append(
            severity,
            phase or self.progress.current_phase,
            message,
            details,
        )

    # -------------------------
    # PROGRESS
    # -------------------------

    def enter_phase(self, phase: str) -> None:
        """Close the current phase and make ``phase`` current."""
        progress = self.progress
        if progress.current_phase and progress.current_phase != "Initializing":
            progress.phases_completed.append(progress.current_phase)
        if phase in progress.phases_remaining:
            progress.phases_remaining.remove(phase)
        progress.current_phase = phase

    def advance_progress(self, percentage: float) -> None:
        """Raise progress; never moves backwards."""
        clamped = max(0.0, min(100.0, float(percentage)))
        if clamped > self.progress.percentage:
            self.progress.percentage = clamped

    def reset_progress(self) -> None:
        self.progress.percentage = 0.0

    # -------------------------
    # STATE
    # -------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def duration_seconds(self) -> float:
        end_time = self.completed_at or utcnow()
        return (end_time - self.started_at).total_seconds()
