# rollout_engine/health_checker/probes.py
"""
Probe executors - the transport side of health checking.

The engine only depends on ``ProbeExecutor``; the HTTP/TCP/command
implementations here are the defaults wired by the container.
"""

import logging
import shlex
import socket
import subprocess
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

import requests

from rollout_engine.core.models import HealthCheck

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProbeContext:
    """Where a probe is aimed."""
    deployment_id: str
    version: str
    target: str = "all"  # e.g. "green", "canary", "replica-2"


@dataclass(frozen=True)
class ProbeResult:
    passed: bool
    message: str


class ProbeExecutor(ABC):
    """Runs a single health check probe."""

    @abstractmethod
    def run_probe(self, check: HealthCheck, context: ProbeContext) -> ProbeResult:
        raise NotImplementedError


class RetryingProbeExecutor(ProbeExecutor):
    """Honours ``initial_delay`` and ``retries`` of the check around ``_probe_once``."""

    def run_probe(self, check: HealthCheck, context: ProbeContext) -> ProbeResult:
        if check.initial_delay > 0:
            time.sleep(check.initial_delay)

        attempts = max(1, check.retries + 1)
        result = ProbeResult(False, "probe not attempted")
        for attempt in range(1, attempts + 1):
            result = self._probe_once(check, context)
            if result.passed:
                return result
            if attempt < attempts:
                logger.debug(
                    f"[{context.deployment_id}] {check.name} attempt {attempt}/{attempts} "
                    f"failed: {result.message}"
                )
                time.sleep(check.interval)
        return result

    @abstractmethod
    def _probe_once(self, check: HealthCheck, context: ProbeContext) -> ProbeResult:
        raise NotImplementedError


class HttpProbeExecutor(RetryingProbeExecutor):
    """HTTP probe: status must be in ``expected_status`` and body must match."""

    def _probe_once(self, check: HealthCheck, context: ProbeContext) -> ProbeResult:
        if not check.endpoint:
            return ProbeResult(False, "No endpoint configured")

        try:
            response = requests.request(
                check.method,
                check.endpoint,
                headers=check.headers or None,
                timeout=check.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.warning(f"[{context.deployment_id}] ❌ HTTP check error: {e}")
            return ProbeResult(False, f"HTTP error: {e}")

        if response.status_code not in check.expected_status:
            return ProbeResult(
                False,
                f"{check.endpoint} returned {response.status_code}",
            )

        if check.expected_body and check.expected_body not in response.text:
            return ProbeResult(False, f"{check.endpoint} body did not match")

        return ProbeResult(True, f"{check.endpoint} returned {response.status_code}")


class TcpProbeExecutor(RetryingProbeExecutor):
    """TCP probe: connect must succeed within ``timeout``."""

    def _probe_once(self, check: HealthCheck, context: ProbeContext) -> ProbeResult:
        if check.port is None:
            return ProbeResult(False, "No port configured")

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.settimeout(check.timeout)
            result = sock.connect_ex((check.host, check.port))
        except OSError as e:
            return ProbeResult(False, f"TCP error: {e}")
        finally:
            sock.close()

        if result == 0:
            return ProbeResult(True, f"{check.host}:{check.port} reachable")
        return ProbeResult(False, f"{check.host}:{check.port} unreachable (errno {result})")


class CommandProbeExecutor(RetryingProbeExecutor):
    """Command probe: exit code 0 means healthy."""

    def _probe_once(self, check: HealthCheck, context: ProbeContext) -> ProbeResult:
        if not check.command:
            return ProbeResult(False, "No command configured")

        try:
            completed = subprocess.run(
                shlex.split(check.command),
                capture_output=True,
                text=True,
                timeout=check.timeout,
            )
        except subprocess.TimeoutExpired:
            return ProbeResult(False, f"Command timed out after {check.timeout}s")
        except OSError as e:
            return ProbeResult(False, f"Command error: {e}")

        if completed.returncode == 0:
            return ProbeResult(True, "Command exited 0")
        return ProbeResult(False, f"Command exited {completed.returncode}")


class ProbeDispatcher(ProbeExecutor):
    """Routes a check to the executor registered for its kind."""

    def __init__(self, executors: Optional[Dict[str, ProbeExecutor]] = None):
        self._executors = executors if executors is not None else {
            "http": HttpProbeExecutor(),
            "tcp": TcpProbeExecutor(),
            "command": CommandProbeExecutor(),
        }

    def run_probe(self, check: HealthCheck, context: ProbeContext) -> ProbeResult:
        executor = self._executors.get(check.kind)
        if executor is None:
            return ProbeResult(False, f"Unsupported health check kind: {check.kind}")
        return executor.run_probe(check, context)
