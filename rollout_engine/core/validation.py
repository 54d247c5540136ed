#rollout_engine\core\validation.py
from rollout_engine.core.models import (
    DeploymentConfig,
    DeploymentStrategy,
    FeatureFlag,
    TrafficTarget,
)
from rollout_engine.core.errors import InvalidFeatureFlag, InvalidStrategyParameters


HEALTH_CHECK_KINDS = {"http", "tcp", "command", "grpc"}


def _check_percentage(value, name: str, error=InvalidStrategyParameters) -> None:
    if value is None:
        return
    if value < 0 or value > 100:
        raise error(f"{name} must be between 0 and 100 (got {value})")


def validate_deployment_config(config: DeploymentConfig) -> None:
    # -------------------------
    # Identity
    # -------------------------
    if not config.id:
        raise InvalidStrategyParameters("config id is required")

    if not config.name:
        raise InvalidStrategyParameters("config name is required")

    # -------------------------
    # Application
    # -------------------------
    app = config.application
    if not app.name or not app.version or not app.image:
        raise InvalidStrategyParameters(
            "application name, version and image are required"
        )

    if app.replicas < 1:
        raise InvalidStrategyParameters("application.replicas must be at least 1")

    # -------------------------
    # Strategy parameters
    # -------------------------
    params = config.strategy_config

    if config.strategy == DeploymentStrategy.CANARY:
        _check_percentage(params.canary_percentage, "canary_percentage")
        _check_percentage(params.increment_percentage, "increment_percentage")
        if params.increment_percentage is not None and params.increment_percentage <= 0:
            raise InvalidStrategyParameters("increment_percentage must be positive")
        if params.canary_duration is not None and params.canary_duration < 0:
            raise InvalidStrategyParameters("canary_duration must not be negative")

    elif config.strategy == DeploymentStrategy.BLUE_GREEN:
        if params.traffic_switch_delay is not None and params.traffic_switch_delay < 0:
            raise InvalidStrategyParameters("traffic_switch_delay must not be negative")

    elif config.strategy == DeploymentStrategy.ROLLING:
        if params.max_surge is not None and params.max_surge < 0:
            raise InvalidStrategyParameters("max_surge must not be negative")
        if params.max_unavailable is not None and params.max_unavailable < 0:
            raise InvalidStrategyParameters("max_unavailable must not be negative")

    elif config.strategy == DeploymentStrategy.AB_TESTING:
        variants = params.variant_percentages
        if variants:
            if len(variants) < 2:
                raise InvalidStrategyParameters("A/B testing needs at least two variants")
            for name, pct in variants.items():
                _check_percentage(pct, f"variant '{name}'")
            total = sum(variants.values())
            if total != 100:
                raise InvalidStrategyParameters(
                    f"variant percentages must sum to 100 (got {total})"
                )

    # -------------------------
    # Health checks
    # -------------------------
    for check in config.health_checks:
        if check.kind not in HEALTH_CHECK_KINDS:
            raise InvalidStrategyParameters(
                f"health check '{check.name}' has unknown kind '{check.kind}'"
            )
        if check.timeout <= 0:
            raise InvalidStrategyParameters(
                f"health check '{check.name}' timeout must be positive"
            )

    # -------------------------
    # Rollback policy
    # -------------------------
    policy = config.rollback_policy
    _check_percentage(policy.error_threshold, "rollback_policy.error_threshold")
    if policy.latency_threshold <= 0:
        raise InvalidStrategyParameters("rollback_policy.latency_threshold must be positive")


def validate_feature_flag(flag: FeatureFlag) -> None:
    if not flag.key:
        raise InvalidFeatureFlag("feature flag key is required")

    _check_percentage(
        flag.targeting.percentage, "targeting.percentage", error=InvalidFeatureFlag
    )

    if flag.variants:
        for variant in flag.variants:
            _check_percentage(
                variant.percentage, f"variant '{variant.name}'", error=InvalidFeatureFlag
            )
        total = sum(v.percentage for v in flag.variants)
        if total != 100:
            raise InvalidFeatureFlag(
                f"variant percentages must sum to 100 (got {total})"
            )


def validate_traffic_targets(targets: list[TrafficTarget]) -> None:
    """Per-target sanity only; the total is the caller's concern."""
    for target in targets:
        if not target.version:
            raise InvalidStrategyParameters("traffic target version is required")
        _check_percentage(target.percentage, f"traffic target '{target.version}'")
