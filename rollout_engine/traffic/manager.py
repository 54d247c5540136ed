# rollout_engine/traffic/manager.py
"""Traffic split ownership for a single deployment."""

import logging
from threading import RLock
from typing import Dict, Iterable, Mapping

from rollout_engine.core.models import Deployment, TrafficTarget

logger = logging.getLogger(__name__)


class TrafficManager:
    """
    Owns the ``traffic_split`` map of one deployment.

    Writes are serialized; readers get copies. The manager does not
    validate that the split sums to 100, callers staging a multi-key
    change use ``set_split`` to replace the whole map at once.
    """

    def __init__(self, deployment: Deployment):
        self._deployment = deployment
        self._lock = RLock()

    @property
    def deployment_id(self) -> str:
        return self._deployment.id

    def update_traffic_split(self, targets: Iterable[TrafficTarget]) -> Dict[str, int]:
        """Apply each target directly, last writer wins per key."""
        with self._lock:
            split = self._deployment.traffic_split
            for target in targets:
                split[target.version] = target.percentage
            logger.debug(f"[{self.deployment_id}] traffic split now {split}")
            return dict(split)

    def set_split(self, split: Mapping[str, int]) -> Dict[str, int]:
        """Replace the whole split in one step."""
        with self._lock:
            self._deployment.traffic_split = dict(split)
            logger.debug(f"[{self.deployment_id}] traffic split set to {split}")
            return dict(split)

    def shift(self, from_key: str, to_key: str, to_percentage: int) -> Dict[str, int]:
        """Two-way split: ``to_key`` gets ``to_percentage``, ``from_key`` the rest."""
        to_percentage = max(0, min(100, int(to_percentage)))
        with self._lock:
            split = dict(self._deployment.traffic_split)
            split[to_key] = to_percentage
            split[from_key] = 100 - to_percentage
            self._deployment.traffic_split = split
            return dict(split)

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._deployment.traffic_split)

    def total(self) -> int:
        with self._lock:
            return sum(self._deployment.traffic_split.values())
