from __future__ import annotations

from pathlib import Path

from cosmwasm_simulate.config import SimulateConfig
from cosmwasm_simulate.constants import ENGINE_MOCK, RUNNER_BINARY_NAME
from cosmwasm_simulate.engine.base import ExecutionEngine
from cosmwasm_simulate.engine.mock import MockEngine
from cosmwasm_simulate.engine.runner import RunnerEngine


def create_engine(config: SimulateConfig) -> ExecutionEngine:
    """
    Select the engine binding named by the configuration.

    Raises:
        BinaryNotFoundError: If the runner engine is selected but its binary
            cannot be located.
    """
    if config.engine == ENGINE_MOCK:
        return MockEngine()
    return RunnerEngine(config.runner_bin or Path(RUNNER_BINARY_NAME))
