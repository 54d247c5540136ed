# rollout_engine/core/repository.py

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from rollout_engine.core.models import (
    Deployment,
    DeploymentConfig,
    DeploymentStatus,
    FeatureFlag,
)


class ConfigRepository(ABC):
    """
    Storage contract for deployment configs.
    """

    @abstractmethod
    def create(self, config: DeploymentConfig) -> None:
        """
        Persist a new config.
        Must fail if the id already exists.
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, config_id: str) -> Optional[DeploymentConfig]:
        """
        Fetch config by id.
        Returns None if not found.
        """
        raise NotImplementedError

    @abstractmethod
    def list_all(self) -> Iterable[DeploymentConfig]:
        raise NotImplementedError


class DeploymentRepository(ABC):
    """
    Storage contract for deployment records.
    """

    @abstractmethod
    def create(self, deployment: Deployment) -> None:
        """
        Register a new deployment.
        Must fail if the id already exists.
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, deployment_id: str) -> Optional[Deployment]:
        raise NotImplementedError

    @abstractmethod
    def list_all(self) -> Iterable[Deployment]:
        """All deployments in creation order."""
        raise NotImplementedError

    @abstractmethod
    def list_by_status(
        self,
        statuses: Iterable[DeploymentStatus],
    ) -> Iterable[Deployment]:
        raise NotImplementedError


class FeatureFlagRepository(ABC):
    """
    Storage contract for feature flags.
    """

    @abstractmethod
    def create(self, flag: FeatureFlag) -> None:
        """
        Persist a new flag.
        Must fail if the id or the key already exists.
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, flag_id: str) -> Optional[FeatureFlag]:
        raise NotImplementedError

    @abstractmethod
    def get_by_key(self, key: str) -> Optional[FeatureFlag]:
        raise NotImplementedError

    @abstractmethod
    def update(self, flag: FeatureFlag) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, flag_id: str) -> bool:
        """
        Physically remove a flag.
        Returns False if it did not exist.
        """
        raise NotImplementedError

    @abstractmethod
    def list_all(self) -> Iterable[FeatureFlag]:
        raise NotImplementedError
