"""Feature flag service - admin operations and evaluation."""

import dataclasses
import logging
from threading import Lock
from typing import Any, Iterable, List, Mapping, Optional

from rollout_engine.core.errors import FeatureFlagNotFound
from rollout_engine.core.models import FeatureFlag, FlagVariant, utcnow
from rollout_engine.core.repository import FeatureFlagRepository
from rollout_engine.core.validation import validate_feature_flag
from rollout_engine.feature_flags.evaluator import FeatureFlagEvaluator

logger = logging.getLogger(__name__)


class FeatureFlagService:
    """
    Single-writer flag administration with lock-free reads.

    Writes replace the stored flag with an updated copy, so a concurrent
    evaluation sees either the old or the new flag, never a mix.
    """

    def __init__(
        self,
        repository: FeatureFlagRepository,
        evaluator: Optional[FeatureFlagEvaluator] = None,
    ):
        self._repo = repository
        self._evaluator = evaluator or FeatureFlagEvaluator()
        self._write_lock = Lock()

    # -------------------------
    # CREATE
    # -------------------------

    def create_feature_flag(self, flag: FeatureFlag) -> FeatureFlag:
        validate_feature_flag(flag)
        with self._write_lock:
            self._repo.create(flag)
        logger.info(f"🚩 Feature flag created: {flag.key} ({flag.id})")
        return flag

    def register_missing(self, flags: Iterable[FeatureFlag]) -> List[FeatureFlag]:
        """Create the flags whose key is not registered yet."""
        created = []
        for flag in flags:
            if self._repo.get_by_key(flag.key) is None:
                created.append(self.create_feature_flag(flag))
        return created

    # -------------------------
    # MUTATE
    # -------------------------

    def toggle_feature_flag(self, flag_id: str, enabled: bool) -> bool:
        with self._write_lock:
            flag = self._repo.get(flag_id)
            if flag is None:
                return False
            self._repo.update(
                dataclasses.replace(flag, enabled=enabled, updated_at=utcnow())
            )
        logger.info(f"🚩 Feature flag {flag.key}: {'enabled' if enabled else 'disabled'}")
        return True

    def update_feature_flag(self, flag_id: str, **changes: Any) -> FeatureFlag:
        changes.pop("id", None)
        changes.pop("created_at", None)
        changes.pop("updated_at", None)
        with self._write_lock:
            flag = self._repo.get(flag_id)
            if flag is None:
                raise FeatureFlagNotFound(f"Feature flag {flag_id} not found")
            updated = dataclasses.replace(flag, **changes, updated_at=utcnow())
            validate_feature_flag(updated)
            self._repo.update(updated)
        logger.info(f"🚩 Feature flag updated: {updated.key} ({', '.join(changes) or 'no changes'})")
        return updated

    def delete_feature_flag(self, flag_id: str) -> bool:
        """Destructive and irreversible."""
        with self._write_lock:
            deleted = self._repo.delete(flag_id)
        if deleted:
            logger.warning(f"🚩 Feature flag {flag_id} deleted")
        return deleted

    # -------------------------
    # READ
    # -------------------------

    def get_feature_flag(self, flag_id: str) -> Optional[FeatureFlag]:
        return self._repo.get(flag_id)

    def get_feature_flag_by_key(self, key: str) -> Optional[FeatureFlag]:
        return self._repo.get_by_key(key)

    def list_feature_flags(self) -> List[FeatureFlag]:
        return list(self._repo.list_all())

    # -------------------------
    # EVALUATE
    # -------------------------

    def evaluate(
        self,
        flag_key: str,
        user_id: str,
        context: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        return self._evaluator.evaluate(self._repo.get_by_key(flag_key), user_id, context)

    def evaluate_variant(self, flag_key: str, user_id: str) -> Optional[FlagVariant]:
        return self._evaluator.select_variant(self._repo.get_by_key(flag_key), user_id)
