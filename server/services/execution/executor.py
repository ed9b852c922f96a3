"""Workflow executor with continuous scheduling and dead-path elimination.

Implements:
- One controller coroutine per run that owns ExecutionState
- One asyncio task per node, joined with asyncio.wait(FIRST_COMPLETED)
- Fan-out of sibling branches and fan-in that waits for every incoming edge
- Condition branching: the untaken branch is marked dead, and a node whose
  incoming edges are all dead is never started
- Node-local failures: only causally downstream nodes are skipped
- Cooperative cancellation through an asyncio.Event
"""

import asyncio
import copy
import time
import uuid
from collections import deque
from typing import Dict, Any, List, Optional, Set, Tuple, Union, TYPE_CHECKING

from core.logging import execution_context, get_logger, log_execution_time
from constants import BRANCH_TRUE, BRANCH_FALSE, DEFAULT_TRIGGER_TYPE
from services.parameter_resolver import ParameterResolver
from services.transforms import TransformRegistry
from .conditions import evaluate_condition_node
from .errors import WorkflowEngineError, StepError, CancellationError
from .graph import validate_graph
from .models import (
    Edge,
    EdgeResolution,
    ExecutionResult,
    ExecutionState,
    ExecutionStatus,
    Node,
    NodeKind,
    NodeOutcome,
    NodeStatus,
    ValidatedGraph,
    WorkflowGraph,
)
from .recorder import ExecutionRecorderProtocol, NullRecorder

if TYPE_CHECKING:
    from core.config import Settings
    from services.node_executor import NodeExecutor

logger = get_logger(__name__)

CANCELLED_MESSAGE = "Execution cancelled"


class WorkflowExecutor:
    """Executes workflow graphs with parallel branches.

    Features:
    - Isolated ExecutionState per run, mutated only at completion join points
    - Sibling branches run concurrently, bounded by max_concurrent_steps
    - Every started node gets a start and a complete log row via the recorder
    - Unreached nodes stay pending and have no log rows
    """

    def __init__(self,
                 node_executor: "NodeExecutor",
                 settings: "Settings",
                 recorder: Optional[ExecutionRecorderProtocol] = None,
                 transforms: Optional[TransformRegistry] = None,
                 resolver: Optional[ParameterResolver] = None):
        """Initialize executor.

        Args:
            node_executor: Step invoker for trigger and action nodes
            settings: Execution engine settings (concurrency, cancellation)
            recorder: Execution recorder; recording is disabled when omitted
            transforms: Transform registry for transform nodes
            resolver: Template resolver
        """
        self.node_executor = node_executor
        self.settings = settings
        self.recorder = recorder or NullRecorder()
        self.transforms = transforms or TransformRegistry()
        self.resolver = resolver or ParameterResolver()

    # =========================================================================
    # EXECUTION ENTRY POINT
    # =========================================================================

    async def execute_workflow(self,
                               graph: Union[WorkflowGraph, ValidatedGraph],
                               trigger_input: Any = None,
                               execution_id: Optional[str] = None,
                               cancel_event: Optional[asyncio.Event] = None,
                               workflow_id: Optional[str] = None) -> ExecutionResult:
        """Execute a workflow graph to completion.

        Args:
            graph: Graph to run; validated here unless already a ValidatedGraph
            trigger_input: Payload exposed as the trigger node's output
            execution_id: Identifier for the run (generated when omitted)
            cancel_event: Set it to stop the run; no further node starts
            workflow_id: Owning workflow, passed through to steps and the recorder

        Returns:
            ExecutionResult with per-node statuses, outputs and errors

        Raises:
            GraphError: the graph is structurally invalid (no state is created)
            asyncio.CancelledError: the calling task was cancelled
        """
        validated = graph if isinstance(graph, ValidatedGraph) else validate_graph(graph)

        execution_id = execution_id or str(uuid.uuid4())
        cancel_event = cancel_event or asyncio.Event()
        trigger_input = {} if trigger_input is None else trigger_input

        state = ExecutionState.create(execution_id, validated)
        state.overall = ExecutionStatus.RUNNING

        with execution_context(execution_id, workflow_id):
            logger.info("Starting workflow execution",
                        node_count=len(validated.nodes_by_id),
                        trigger=validated.trigger_id)

            await self._record("on_execution_start", execution_id, workflow_id,
                               list(validated.topological_order), trigger_input)

            try:
                cancelled = await self._schedule(validated, state, trigger_input,
                                                 cancel_event, workflow_id)
            except asyncio.CancelledError:
                await self._finish(validated, state, cancelled=True)
                raise

            await self._finish(validated, state, cancelled=cancelled)
        return ExecutionResult.from_state(state)

    # =========================================================================
    # CONTINUOUS SCHEDULING
    # =========================================================================

    async def _schedule(self, validated: ValidatedGraph, state: ExecutionState,
                        trigger_input: Any, cancel_event: asyncio.Event,
                        workflow_id: Optional[str]) -> bool:
        """Controller loop. Returns True when the run was cancelled."""
        semaphore = asyncio.Semaphore(self.settings.max_concurrent_steps)
        task_to_node: Dict[asyncio.Task, str] = {}
        pending_tasks: Set[asyncio.Task] = set()

        def create_node_task(node_id: str) -> None:
            # Check-and-set happens here, in the controller, so a node starts once
            if not state.try_start(node_id):
                return
            node = validated.node(node_id)
            task = asyncio.create_task(
                self._run_node(node, dict(state.outputs), trigger_input,
                               state.execution_id, workflow_id, semaphore),
                name=f"node_{node_id}"
            )
            task_to_node[task] = node_id
            pending_tasks.add(task)
            logger.debug("Scheduled node", execution_id=state.execution_id, node_id=node_id)

        cancel_waiter = asyncio.create_task(cancel_event.wait(), name="cancel_waiter")

        try:
            if cancel_event.is_set():
                return True

            create_node_task(validated.trigger_id)

            while pending_tasks:
                done, _ = await asyncio.wait(
                    pending_tasks | {cancel_waiter},
                    return_when=asyncio.FIRST_COMPLETED
                )

                for task in done:
                    if task is cancel_waiter:
                        continue
                    pending_tasks.discard(task)
                    outcome: NodeOutcome = task.result()
                    newly_ready = self._complete_node(validated, state, outcome)

                    if cancel_event.is_set():
                        continue
                    for ready_id in newly_ready:
                        create_node_task(ready_id)
                        logger.debug("Scheduled dependent node",
                                     node_id=ready_id,
                                     triggered_by=outcome.node_id)

                if cancel_event.is_set():
                    await self._stop_in_flight(state, pending_tasks, task_to_node)
                    return True

            return False

        except asyncio.CancelledError:
            logger.info("Execution task cancelled",
                        execution_id=state.execution_id,
                        in_flight=len(pending_tasks))
            for task in pending_tasks:
                task.cancel()
            await self._drain(state, pending_tasks, task_to_node)
            raise

        finally:
            cancel_waiter.cancel()

    async def _stop_in_flight(self, state: ExecutionState,
                              pending_tasks: Set[asyncio.Task],
                              task_to_node: Dict[asyncio.Task, str]) -> None:
        """Stop or wait out running nodes after a cancellation request."""
        if not pending_tasks:
            return

        logger.info("Execution cancelled, stopping in-flight nodes",
                    execution_id=state.execution_id,
                    pending_count=len(pending_tasks),
                    cancel_in_flight=self.settings.cancel_in_flight_steps)

        if self.settings.cancel_in_flight_steps:
            for task in pending_tasks:
                task.cancel()

        await self._drain(state, pending_tasks, task_to_node)

    async def _drain(self, state: ExecutionState,
                     pending_tasks: Set[asyncio.Task],
                     task_to_node: Dict[asyncio.Task, str]) -> None:
        """Await the given tasks and mark their nodes cancelled; results are discarded."""
        if pending_tasks:
            await asyncio.wait(pending_tasks, return_when=asyncio.ALL_COMPLETED)
        for task in pending_tasks:
            node_id = task_to_node[task]
            if state.status.get(node_id) == NodeStatus.RUNNING:
                state.status[node_id] = NodeStatus.CANCELLED
                logger.info("Cancelled running node", node_id=node_id)
        pending_tasks.clear()

    # =========================================================================
    # JOIN POINT: EDGE RESOLUTION
    # =========================================================================

    def _complete_node(self, validated: ValidatedGraph, state: ExecutionState,
                       outcome: NodeOutcome) -> List[str]:
        """Apply a finished node's outcome and return nodes that became ready."""
        node = validated.node(outcome.node_id)
        outgoing = validated.outgoing.get(node.id, ())

        if outcome.success:
            state.status[node.id] = NodeStatus.SUCCESS
            state.outputs[node.id] = outcome.output
            state.last_output = outcome.output
            logger.info("Node completed", node_id=node.id, duration_ms=outcome.duration_ms)

            resolutions = []
            for edge in outgoing:
                if node.kind == NodeKind.CONDITION:
                    # Untagged edges leaving a condition follow the true branch
                    taken = (edge.branch or BRANCH_TRUE) == outcome.branch
                else:
                    taken = True
                resolutions.append(
                    (edge, EdgeResolution.TAKEN if taken else EdgeResolution.DEAD_BRANCH)
                )
        else:
            state.status[node.id] = NodeStatus.ERROR
            state.errors.append({
                "node_id": node.id,
                "node_name": node.display_name,
                "code": outcome.error_code,
                "error": outcome.error,
                "timestamp": time.time(),
            })
            logger.error("Node failed", node_id=node.id, error=outcome.error)
            resolutions = [(edge, EdgeResolution.DEAD_ERROR) for edge in outgoing]

        return self._resolve_edges(validated, state, resolutions)

    def _resolve_edges(self, validated: ValidatedGraph, state: ExecutionState,
                       resolutions: List[Tuple[Edge, EdgeResolution]]) -> List[str]:
        """Settle edges, propagating death through nodes that can no longer run."""
        ready: List[str] = []
        queue = deque(resolutions)

        while queue:
            edge, resolution = queue.popleft()
            target = edge.target

            state.pending_incoming[target] -= 1
            if resolution == EdgeResolution.TAKEN:
                state.taken_incoming[target] += 1
            elif resolution == EdgeResolution.DEAD_ERROR:
                state.error_blocked.add(target)

            if state.pending_incoming[target] > 0:
                continue
            if state.status[target] != NodeStatus.PENDING:
                continue

            if state.taken_incoming[target] > 0 and target not in state.error_blocked:
                ready.append(target)
                continue

            # Permanently unreached: its outgoing edges die with the same cause
            cause = (EdgeResolution.DEAD_ERROR if target in state.error_blocked
                     else EdgeResolution.DEAD_BRANCH)
            state.unreached.add(target)
            logger.debug("Node unreached", node_id=target, cause=cause.value)
            for out_edge in validated.outgoing.get(target, ()):
                queue.append((out_edge, cause))

        return ready

    # =========================================================================
    # NODE TASK
    # =========================================================================

    async def _run_node(self, node: Node, outputs: Dict[str, Any], trigger_input: Any,
                        execution_id: str, workflow_id: Optional[str],
                        semaphore: asyncio.Semaphore) -> NodeOutcome:
        """Run one node. Never touches ExecutionState; only cancellation escapes."""
        start_time = time.time()

        try:
            node_input = self._prepare_input(node, outputs, trigger_input)
        except WorkflowEngineError as e:
            logger.warning("Node input resolution failed",
                           execution_id=execution_id,
                           node_id=node.id,
                           references=self.resolver.find_references(node.config),
                           code=e.code)
            log_id = await self._record_node_start(execution_id, node, node.config)
            return await self._node_failed(log_id, node, start_time, e.message, e.code)
        except Exception as e:
            logger.error("Node input preparation failed", node_id=node.id, error=str(e))
            log_id = await self._record_node_start(execution_id, node, node.config)
            return await self._node_failed(log_id, node, start_time,
                                           str(e) or type(e).__name__, "internal_error")

        log_id = await self._record_node_start(execution_id, node, node_input)

        try:
            branch = None
            if node.kind == NodeKind.CONDITION:
                result = evaluate_condition_node(node.condition, outputs, self.resolver)
                output: Any = {"result": result}
                branch = BRANCH_TRUE if result else BRANCH_FALSE

            elif node.kind == NodeKind.TRANSFORM:
                output = self.transforms.apply(node.transform_type or "", node_input)

            else:
                step_id = node.step_id or DEFAULT_TRIGGER_TYPE
                context = {
                    "node_id": node.id,
                    "execution_id": execution_id,
                    "workflow_id": workflow_id,
                    "trigger_input": copy.deepcopy(trigger_input),
                }
                async with semaphore:
                    step_result = await self.node_executor.invoke(step_id, node_input, context)
                if not step_result.get("success"):
                    raise StepError(step_result.get("error") or f"Step {step_id} failed")
                output = step_result.get("result")

        except asyncio.CancelledError:
            await self._record("on_node_complete", log_id, NodeStatus.CANCELLED.value,
                               None, CANCELLED_MESSAGE, self._elapsed_ms(start_time))
            raise
        except WorkflowEngineError as e:
            return await self._node_failed(log_id, node, start_time, e.message, e.code)
        except Exception as e:
            logger.error("Node exception", node_id=node.id, error=str(e))
            return await self._node_failed(log_id, node, start_time,
                                           str(e) or type(e).__name__, "internal_error")

        duration_ms = self._elapsed_ms(start_time)
        await self._record("on_node_complete", log_id, NodeStatus.SUCCESS.value,
                           output, None, duration_ms)
        return NodeOutcome(node_id=node.id, success=True, output=output,
                           branch=branch, duration_ms=duration_ms)

    def _prepare_input(self, node: Node, outputs: Dict[str, Any], trigger_input: Any) -> Any:
        """Resolve templates in the node config."""
        if node.kind == NodeKind.CONDITION:
            return {"condition": node.condition}
        if node.kind == NodeKind.TRIGGER:
            # The trigger's own config may reference the incoming payload
            outputs = {**outputs, node.id: trigger_input}
        return self.resolver.resolve(node.config, outputs)

    async def _node_failed(self, log_id: Optional[str], node: Node, start_time: float,
                           error: str, code: Optional[str]) -> NodeOutcome:
        duration_ms = self._elapsed_ms(start_time)
        await self._record("on_node_complete", log_id, NodeStatus.ERROR.value,
                           None, error, duration_ms)
        return NodeOutcome(node_id=node.id, success=False, error=error,
                           error_code=code, duration_ms=duration_ms)

    @staticmethod
    def _elapsed_ms(start_time: float) -> int:
        return int((time.time() - start_time) * 1000)

    # =========================================================================
    # COMPLETION
    # =========================================================================

    async def _finish(self, validated: ValidatedGraph, state: ExecutionState,
                      cancelled: bool) -> None:
        state.completed_at = time.time()
        state.unreached = set(state.nodes_with_status(NodeStatus.PENDING))

        if cancelled:
            state.overall = ExecutionStatus.CANCELLED
            state.errors.append({
                **CancellationError(CANCELLED_MESSAGE).to_dict(),
                "timestamp": state.completed_at,
            })
        elif state.has_errors():
            state.overall = ExecutionStatus.ERROR
        else:
            state.overall = ExecutionStatus.SUCCESS

        first_error = state.errors[0]["error"] if state.errors else None
        await self._record("on_execution_complete", state.execution_id, state.overall.value,
                           state.last_output, first_error, state.duration_ms)

        log_execution_time(logger, "workflow_execution", state.started_at, state.completed_at,
                           execution_id=state.execution_id,
                           status=state.overall.value,
                           started=len(state.started_order),
                           unreached=len(state.unreached),
                           total=len(validated.nodes_by_id))

    # =========================================================================
    # RECORDER
    # =========================================================================

    async def _record_node_start(self, execution_id: str, node: Node,
                                 node_input: Any) -> Optional[str]:
        return await self._record("on_node_start", execution_id, node.meta(), node_input)

    async def _record(self, method: str, *args) -> Any:
        """Call the recorder; failures are logged and never fail the run."""
        try:
            return await getattr(self.recorder, method)(*args)
        except Exception as e:
            logger.warning("Recorder call failed", method=method, error=str(e))
            return None
