"""
Flowrunner - Pytest Configuration
=================================

Shared fixtures for engine and API tests.
"""

import asyncio
from typing import Any, Dict, List

import pytest

from core.config import Settings
from services.execution.executor import WorkflowExecutor
from services.execution.recorder import InMemoryRecorder
from services.node_executor import NodeExecutor
from services.transforms import TransformRegistry


# =============================================================================
# Test Steps
# =============================================================================

async def echo_step(node_id: str, step_id: str, parameters: Dict[str, Any],
                    context: Dict[str, Any]) -> Dict[str, Any]:
    """Succeeds with its resolved parameters as output."""
    return {"success": True, "result": dict(parameters)}


async def fail_step(node_id: str, step_id: str, parameters: Dict[str, Any],
                    context: Dict[str, Any]) -> Dict[str, Any]:
    return {"success": False, "error": parameters.get("message", "boom")}


async def raise_step(node_id: str, step_id: str, parameters: Dict[str, Any],
                     context: Dict[str, Any]) -> Dict[str, Any]:
    raise RuntimeError("step exploded")


class StepJournal:
    """Records which nodes started and finished, in order."""

    def __init__(self):
        self.started: List[str] = []
        self.finished: List[str] = []
        self.max_in_flight = 0
        self._in_flight = 0

    async def sleep_step(self, node_id: str, step_id: str, parameters: Dict[str, Any],
                         context: Dict[str, Any]) -> Dict[str, Any]:
        self.started.append(node_id)
        self._in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self._in_flight)
        try:
            await asyncio.sleep(float(parameters.get("seconds", 0.05)))
        finally:
            self._in_flight -= 1
        self.finished.append(node_id)
        return {"success": True, "result": {"node": node_id, **parameters}}


# =============================================================================
# Engine Fixtures
# =============================================================================

@pytest.fixture
def settings() -> Settings:
    return Settings(
        step_timeout=5.0,
        max_concurrent_steps=16,
        cancel_in_flight_steps=True,
        execution_history_limit=50,
    )


@pytest.fixture
def journal() -> StepJournal:
    return StepJournal()


@pytest.fixture
def node_executor(settings, journal) -> NodeExecutor:
    executor = NodeExecutor(settings=settings)
    executor.register("echo", echo_step)
    executor.register("fail", fail_step)
    executor.register("raise", raise_step)
    executor.register("sleep", journal.sleep_step)
    return executor


@pytest.fixture
def recorder(settings) -> InMemoryRecorder:
    return InMemoryRecorder(history_limit=settings.execution_history_limit)


@pytest.fixture
def workflow_executor(node_executor, settings, recorder) -> WorkflowExecutor:
    return WorkflowExecutor(
        node_executor=node_executor,
        settings=settings,
        recorder=recorder,
        transforms=TransformRegistry(),
    )
