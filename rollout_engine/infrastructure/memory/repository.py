# rollout_engine/infrastructure/memory/repository.py

from threading import Lock
from typing import Iterable

from rollout_engine.core.repository import (
    ConfigRepository,
    DeploymentRepository,
    FeatureFlagRepository,
)
from rollout_engine.core.models import (
    Deployment,
    DeploymentConfig,
    DeploymentStatus,
    FeatureFlag,
)
from rollout_engine.core.errors import (
    FeatureFlagNotFound,
    InvalidFeatureFlag,
    RecordAlreadyExists,
)


class InMemoryConfigRepository(ConfigRepository):
    def __init__(self):
        self._store: dict[str, DeploymentConfig] = {}
        self._lock = Lock()
    def create(self, config: DeploymentConfig) -> None:
        with self._lock:
            if config.id in self._store:
                raise RecordAlreadyExists(f"Config {config.id} already exists")
            self._store[config.id] = config
    def get(self, config_id: str) -> DeploymentConfig | None:
        return self._store.get(config_id)
    def list_all(self) -> Iterable[DeploymentConfig]:
        return list(self._store.values())


class InMemoryDeploymentRepository(DeploymentRepository):
    def __init__(self):
        self._store: dict[str, Deployment] = {}
        self._lock = Lock()
    def create(self, deployment: Deployment) -> None:
        with self._lock:
            if deployment.id in self._store:
                raise RecordAlreadyExists(f"Deployment {deployment.id} already exists")
            self._store[deployment.id] = deployment
    def get(self, deployment_id: str) -> Deployment | None:
        return self._store.get(deployment_id)
    def list_all(self) -> Iterable[Deployment]:
        return list(self._store.values())
    def list_by_status(
        self,
        statuses: Iterable[DeploymentStatus],
    ) -> Iterable[Deployment]:
        wanted = set(statuses)
        return [d for d in list(self._store.values()) if d.status in wanted]


class InMemoryFeatureFlagRepository(FeatureFlagRepository):
    def __init__(self):
        self._store: dict[str, FeatureFlag] = {}
        self._by_key: dict[str, str] = {}
        self._lock = Lock()
    def create(self, flag: FeatureFlag) -> None:
        with self._lock:
            if flag.id in self._store:
                raise RecordAlreadyExists(f"Feature flag {flag.id} already exists")
            if flag.key in self._by_key:
                raise InvalidFeatureFlag(f"Feature flag key '{flag.key}' is already in use")
            self._store[flag.id] = flag
            self._by_key[flag.key] = flag.id
    def get(self, flag_id: str) -> FeatureFlag | None:
        return self._store.get(flag_id)
    def get_by_key(self, key: str) -> FeatureFlag | None:
        flag_id = self._by_key.get(key)
        if flag_id is None:
            return None
        return self._store.get(flag_id)
    def update(self, flag: FeatureFlag) -> None:
        with self._lock:
            stored = self._store.get(flag.id)
            if stored is None:
                raise FeatureFlagNotFound(f"Feature flag {flag.id} not found")
            if stored.key != flag.key:
                owner = self._by_key.get(flag.key)
                if owner is not None and owner != flag.id:
                    raise InvalidFeatureFlag(f"Feature flag key '{flag.key}' is already in use")
                del self._by_key[stored.key]
                self._by_key[flag.key] = flag.id
            self._store[flag.id] = flag
    def delete(self, flag_id: str) -> bool:
        with self._lock:
            flag = self._store.pop(flag_id, None)
            if flag is None:
                return False
            self._by_key.pop(flag.key, None)
            return True
    def list_all(self) -> Iterable[FeatureFlag]:
        return list(self._store.values())
