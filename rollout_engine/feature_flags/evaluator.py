# rollout_engine/feature_flags/evaluator.py
"""Percentage / allowlist / context targeting for feature flags."""

import hashlib
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

from rollout_engine.core.models import FeatureFlag, FlagVariant, TargetingRule


def bucket(user_id: str, flag_key: str, salt: str = "") -> int:
    """Stable bucket in [0, 100) for a user and flag."""
    token = f"{user_id}:{flag_key}{salt}".encode("utf-8")
    digest = hashlib.md5(token).digest()
    return int.from_bytes(digest[:8], "big") % 100


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


def _matches(allowed: Iterable[str], values: list) -> bool:
    allowed = set(allowed)
    return any(v in allowed for v in values)


class FeatureFlagEvaluator:
    """
    Stateless evaluation of a flag for a user.

    Order: missing/disabled/expired -> False; allowlisted user -> True;
    unmatched group/country/platform restriction -> False; percentage
    bucket when a percentage is set; otherwise on.
    """

    def evaluate(
        self,
        flag: Optional[FeatureFlag],
        user_id: str,
        context: Optional[Mapping[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        if flag is None or not flag.enabled or flag.is_expired(now):
            return False

        targeting = flag.targeting
        if user_id in targeting.user_ids:
            return True

        if not self._context_allows(targeting, context or {}):
            return False

        if targeting.percentage is not None:
            return bucket(user_id, flag.key) < targeting.percentage

        return True

    def select_variant(
        self,
        flag: Optional[FeatureFlag],
        user_id: str,
        now: Optional[datetime] = None,
    ) -> Optional[FlagVariant]:
        """Weighted, deterministic variant pick for A/B config delivery."""
        if flag is None or not flag.enabled or flag.is_expired(now) or not flag.variants:
            return None

        point = bucket(user_id, flag.key, salt=":variant")
        cumulative = 0.0
        for variant in flag.variants:
            cumulative += variant.percentage
            if point < cumulative:
                return variant
        return flag.variants[-1]

    @staticmethod
    def _context_allows(targeting: TargetingRule, context: Mapping[str, Any]) -> bool:
        if targeting.user_groups:
            groups = _as_list(context.get("groups")) + _as_list(context.get("group"))
            if not _matches(targeting.user_groups, groups):
                return False
        if targeting.countries:
            if not _matches(targeting.countries, _as_list(context.get("country"))):
                return False
        if targeting.platforms:
            if not _matches(targeting.platforms, _as_list(context.get("platform"))):
                return False
        return True
