# rollout_engine/executor/registry.py
"""Strategy -> executor lookup, resolved once per deploy."""

from typing import Dict

from rollout_engine.core.errors import InvalidStrategyParameters
from rollout_engine.core.models import DeploymentStrategy
from rollout_engine.executor.ab_testing import ABTestingExecutor
from rollout_engine.executor.base import StrategyExecutor
from rollout_engine.executor.blue_green import BlueGreenExecutor
from rollout_engine.executor.canary import CanaryExecutor
from rollout_engine.executor.recreate import RecreateExecutor
from rollout_engine.executor.rolling import RollingExecutor
from rollout_engine.executor.shadow import ShadowExecutor

EXECUTORS: Dict[DeploymentStrategy, StrategyExecutor] = {
    executor.strategy: executor
    for executor in (
        BlueGreenExecutor(),
        CanaryExecutor(),
        RollingExecutor(),
        ABTestingExecutor(),
        RecreateExecutor(),
        ShadowExecutor(),
    )
}


def get_executor(strategy: DeploymentStrategy) -> StrategyExecutor:
    try:
        return EXECUTORS[strategy]
    except KeyError:
        raise InvalidStrategyParameters(f"No executor for strategy {strategy}")
