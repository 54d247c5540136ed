# rollout_engine/executor/provisioning.py
"""Provisioning actions invoked at phase boundaries."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict

import requests

from rollout_engine.core.errors import ProvisioningError
from rollout_engine.core.models import ApplicationSpec

logger = logging.getLogger(__name__)


class ProvisioningActions(ABC):
    """Compute platform contract. Each call blocks until the platform is done."""

    @abstractmethod
    def deploy_version(
        self,
        deployment_id: str,
        application: ApplicationSpec,
        version: str,
        role: str,
    ) -> None:
        """Bring up ``version`` under ``role`` (e.g. "green", "canary", "variant-B")."""
        raise NotImplementedError

    @abstractmethod
    def update_replica(
        self,
        deployment_id: str,
        application: ApplicationSpec,
        replica_index: int,
    ) -> None:
        """Replace one replica with ``application.version``."""
        raise NotImplementedError

    @abstractmethod
    def terminate_version(self, deployment_id: str, version: str, role: str) -> None:
        raise NotImplementedError


class NullProvisioner(ProvisioningActions):
    """Logs the requested actions and does nothing else."""

    def deploy_version(self, deployment_id, application, version, role) -> None:
        logger.info(f"[{deployment_id}] deploy {application.name}:{version} as {role}")

    def update_replica(self, deployment_id, application, replica_index) -> None:
        logger.info(
            f"[{deployment_id}] update replica {replica_index} of {application.name} "
            f"to {application.version}"
        )

    def terminate_version(self, deployment_id, version, role) -> None:
        logger.info(f"[{deployment_id}] terminate {version} ({role})")


class RuntimeAgentProvisioner(ProvisioningActions):
    """Client for a runtime agent exposing rollout endpoints over HTTP."""

    def __init__(self, agent_url: str, timeout: int = 30):
        """
        Initialize client.

        Args:
            agent_url: Base URL of runtime agent (e.g., "http://10.0.1.10:9000")
            timeout: Request timeout in seconds
        """
        self.base_url = agent_url.rstrip('/')
        self.timeout = timeout

    def deploy_version(self, deployment_id, application, version, role) -> None:
        self._post(
            deployment_id,
            "/versions",
            {
                "deployment_id": deployment_id,
                "application": application.name,
                "image": application.image,
                "version": version,
                "role": role,
                "replicas": application.replicas,
                "resources": {
                    "cpu": application.resources.cpu,
                    "memory": application.resources.memory,
                    "disk": application.resources.disk,
                },
            },
        )

    def update_replica(self, deployment_id, application, replica_index) -> None:
        self._post(
            deployment_id,
            f"/applications/{application.name}/replicas/{replica_index}",
            {
                "deployment_id": deployment_id,
                "image": application.image,
                "version": application.version,
            },
        )

    def terminate_version(self, deployment_id, version, role) -> None:
        self._post(
            deployment_id,
            "/versions/terminate",
            {"deployment_id": deployment_id, "version": version, "role": role},
        )

    def _post(self, deployment_id: str, path: str, payload: Dict[str, Any]) -> None:
        url = f"{self.base_url}{path}"
        logger.info(f"[{deployment_id}] POST {url}")
        try:
            response = requests.post(url, json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout:
            raise ProvisioningError(f"Runtime agent timeout after {self.timeout}s")
        except requests.exceptions.ConnectionError:
            raise ProvisioningError(f"Cannot connect to runtime agent at {self.base_url}")

        if response.status_code >= 400:
            raise ProvisioningError(
                f"Runtime agent rejected {path}: HTTP {response.status_code} {response.text}"
            )
