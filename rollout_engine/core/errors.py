# rollout_engine/core/errors.py

# -----------------------------
# Base Errors
# -----------------------------

class RolloutEngineError(Exception):
    """Base class for all rollout engine errors."""
    pass


# -----------------------------
# Lookup Errors
# -----------------------------

class ConfigNotFound(RolloutEngineError):
    pass


class DeploymentNotFound(RolloutEngineError):
    pass


class FeatureFlagNotFound(RolloutEngineError):
    pass


class RecordAlreadyExists(RolloutEngineError):
    pass


# -----------------------------
# Validation Errors
# -----------------------------

class InvalidStrategyParameters(RolloutEngineError):
    """Strategy parameters are malformed (e.g. percentages not summing to 100)."""
    pass


class InvalidFeatureFlag(RolloutEngineError):
    """Duplicate key, out-of-range percentage or bad variant weights."""
    pass


class InvalidStateTransition(RolloutEngineError):
    """Illegal deployment status change attempted."""
    pass


# -----------------------------
# Execution Errors
# -----------------------------

class StrategyExecutionError(RolloutEngineError):
    """Wraps any failure of a strategy phase."""

    def __init__(self, message: str, phase: str | None = None):
        super().__init__(message)
        self.phase = phase


class HealthCheckFailed(StrategyExecutionError):
    pass


class ThresholdExceeded(StrategyExecutionError):
    """Live metrics breached the rollback policy."""

    def __init__(self, reason: str, phase: str | None = None):
        super().__init__(reason, phase)
        self.reason = reason


class ProvisioningError(StrategyExecutionError):
    pass


class DeploymentInterrupted(RolloutEngineError):
    """Raised inside the owning task when a cancel or rollback was requested."""

    def __init__(self, reason: str, cancelled: bool = False):
        super().__init__(reason)
        self.reason = reason
        self.cancelled = cancelled


# -----------------------------
# Rollback Errors
# -----------------------------

class RollbackFailed(RolloutEngineError):
    pass
