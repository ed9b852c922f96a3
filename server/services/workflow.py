"""Workflow Service - Facade for workflow validation and execution.

This is a thin facade that delegates to specialized modules:
- validate_graph: Structural validation
- WorkflowExecutor: Parallel orchestration of one run
- NodeExecutor: Step invocation
- ExecutionRecorder: Execution history and node logs

Runs are submitted as background tasks so the HTTP layer can return an
execution id immediately and poll status and logs afterwards.
"""

import asyncio
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, Any, List, Optional, TYPE_CHECKING

from core.logging import get_logger
from services.execution.graph import validate_graph
from services.execution.executor import WorkflowExecutor
from services.execution.models import ExecutionResult, ValidatedGraph, WorkflowGraph
from services.transforms import TransformRegistry

if TYPE_CHECKING:
    from core.config import Settings
    from services.node_executor import NodeExecutor
    from services.execution.recorder import ExecutionRecorderProtocol

logger = get_logger(__name__)


@dataclass
class ActiveRun:
    """A submitted run that has not finished yet."""
    execution_id: str
    workflow_id: Optional[str]
    task: asyncio.Task
    cancel_event: asyncio.Event
    node_ids: List[str]


class WorkflowService:
    """Workflow validation and execution service.

    Thin facade delegating to specialized modules for:
    - Graph validation (validate_graph)
    - Workflow orchestration (WorkflowExecutor)
    - Execution history (ExecutionRecorder)
    """

    def __init__(
        self,
        settings: "Settings",
        node_executor: "NodeExecutor",
        recorder: "ExecutionRecorderProtocol",
        transforms: Optional[TransformRegistry] = None,
    ):
        self.settings = settings
        self.recorder = recorder
        self._executor = WorkflowExecutor(
            node_executor=node_executor,
            settings=settings,
            recorder=recorder,
            transforms=transforms,
        )
        self._runs: Dict[str, ActiveRun] = {}
        self._results: "OrderedDict[str, ExecutionResult]" = OrderedDict()

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def validate(self, graph: WorkflowGraph) -> ValidatedGraph:
        """Validate graph structure; raises GraphError."""
        return validate_graph(graph)

    # =========================================================================
    # EXECUTION
    # =========================================================================

    async def start_execution(
        self,
        graph: WorkflowGraph,
        trigger_input: Any = None,
        workflow_id: Optional[str] = None,
    ) -> str:
        """Validate synchronously, then run in the background.

        Returns:
            The execution id, before the run has made any progress

        Raises:
            GraphError: the graph is structurally invalid
        """
        validated = validate_graph(graph)
        execution_id = str(uuid.uuid4())
        cancel_event = asyncio.Event()

        task = asyncio.create_task(
            self._executor.execute_workflow(
                validated,
                trigger_input=trigger_input,
                execution_id=execution_id,
                cancel_event=cancel_event,
                workflow_id=workflow_id,
            ),
            name=f"execution_{execution_id}"
        )
        self._runs[execution_id] = ActiveRun(
            execution_id=execution_id,
            workflow_id=workflow_id,
            task=task,
            cancel_event=cancel_event,
            node_ids=list(validated.topological_order),
        )
        task.add_done_callback(lambda t: self._on_run_done(execution_id, t))

        logger.info("Execution submitted", execution_id=execution_id, workflow_id=workflow_id)
        return execution_id

    async def execute_and_wait(
        self,
        graph: WorkflowGraph,
        trigger_input: Any = None,
        workflow_id: Optional[str] = None,
    ) -> ExecutionResult:
        """Run a workflow and wait for its result."""
        execution_id = await self.start_execution(graph, trigger_input, workflow_id)
        return await self.wait_for(execution_id)

    async def wait_for(self, execution_id: str,
                       timeout: Optional[float] = None) -> Optional[ExecutionResult]:
        """Wait for a submitted run; None if the id is unknown."""
        run = self._runs.get(execution_id)
        if run is None:
            return self._results.get(execution_id)
        try:
            return await asyncio.wait_for(asyncio.shield(run.task), timeout=timeout)
        except asyncio.CancelledError:
            if run.task.cancelled():
                return self._results.get(execution_id)
            raise

    def _on_run_done(self, execution_id: str, task: asyncio.Task) -> None:
        self._runs.pop(execution_id, None)
        if task.cancelled():
            logger.info("Execution task cancelled", execution_id=execution_id)
            return
        error = task.exception()
        if error is not None:
            logger.error("Execution crashed", execution_id=execution_id, error=str(error))
            return
        self._results[execution_id] = task.result()
        while len(self._results) > self.settings.execution_history_limit:
            self._results.popitem(last=False)

    async def cancel_execution(self, execution_id: str) -> bool:
        """Signal cancellation; True if the run was still active."""
        run = self._runs.get(execution_id)
        if run is None:
            return False
        run.cancel_event.set()
        logger.info("Execution cancel requested", execution_id=execution_id)
        return True

    def get_active_executions(self) -> List[str]:
        return list(self._runs)

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def get_status(self, execution_id: str) -> Optional[Dict[str, Any]]:
        """Overall status plus one status per node."""
        execution = await self.recorder.get_execution(execution_id)
        if execution is not None:
            return {
                "status": execution["status"],
                "node_statuses": await self.recorder.get_node_statuses(execution_id),
            }

        # Submitted but not yet recorded, or recording disabled
        run = self._runs.get(execution_id)
        if run is not None:
            return {
                "status": "running",
                "node_statuses": [{"node_id": n, "status": "pending"} for n in run.node_ids],
            }
        result = self._results.get(execution_id)
        if result is not None:
            return {
                "status": result.status.value,
                "node_statuses": [
                    {"node_id": n, "status": s.value} for n, s in result.node_statuses.items()
                ],
            }
        return None

    async def get_logs(self, execution_id: str) -> Optional[Dict[str, Any]]:
        """Execution row and per-node log rows."""
        execution = await self.recorder.get_execution(execution_id)
        if execution is None:
            return None
        return {
            "execution": execution,
            "logs": await self.recorder.get_logs(execution_id),
        }

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def shutdown(self) -> None:
        """Cancel every active run and wait for them to finish."""
        runs = list(self._runs.values())
        if not runs:
            return
        logger.info("Cancelling active executions", count=len(runs))
        for run in runs:
            run.cancel_event.set()
        await asyncio.gather(*(run.task for run in runs), return_exceptions=True)
