"""Execution recorder - persists run and per-node log rows.

The scheduler talks to the recorder only through ExecutionRecorderProtocol.
Recorder failures are never allowed to fail a run; the executor logs and
ignores them.

Usage:
    from services.execution.recorder import InMemoryRecorder, NullRecorder

    recorder = InMemoryRecorder(history_limit=500)
    log_id = await recorder.on_node_start(execution_id, node.meta(), resolved_input)
    await recorder.on_node_complete(log_id, "success", output=result, duration_ms=12)
"""

import uuid
from collections import OrderedDict
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Dict, Any, List, Optional, Protocol

import orjson

from core.logging import get_logger
from services.redaction import redact_sensitive_data

logger = get_logger(__name__)


def snapshot(value: Any) -> Any:
    """Redact and detach a value so later mutation cannot change the log row."""
    if value is None:
        return None
    try:
        return orjson.loads(orjson.dumps(redact_sensitive_data(value), default=str))
    except (orjson.JSONEncodeError, TypeError) as e:
        logger.warning("Value is not JSON serializable, storing repr", error=str(e))
        return repr(value)


@dataclass
class ExecutionRecord:
    """One row per workflow run."""
    id: str
    workflow_id: Optional[str]
    status: str
    input: Any = None
    output: Any = None
    error: Optional[str] = None
    node_ids: List[str] = field(default_factory=list)
    started_at: str = field(default_factory=lambda: datetime.now().isoformat())
    completed_at: Optional[str] = None
    duration_ms: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("node_ids")
        return data


@dataclass
class NodeLogRecord:
    """One row per started node."""
    id: str
    execution_id: str
    node_id: str
    node_name: str
    node_type: str
    status: str
    input: Any = None
    output: Any = None
    error: Optional[str] = None
    started_at: str = field(default_factory=lambda: datetime.now().isoformat())
    completed_at: Optional[str] = None
    duration_ms: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ExecutionRecorderProtocol(Protocol):
    """Protocol for execution recorders (enables duck typing)."""

    async def on_execution_start(self, execution_id: str, workflow_id: Optional[str],
                                 node_ids: List[str], trigger_input: Any) -> None:
        ...

    async def on_node_start(self, execution_id: str, node_meta: Dict[str, Any],
                            node_input: Any) -> Optional[str]:
        """Create a running log row and return its handle."""
        ...

    async def on_node_complete(self, log_id: Optional[str], status: str,
                               output: Any = None, error: Optional[str] = None,
                               duration_ms: int = 0) -> None:
        ...

    async def on_execution_complete(self, execution_id: str, status: str,
                                    output: Any = None, error: Optional[str] = None,
                                    duration_ms: int = 0) -> None:
        ...

    async def get_execution(self, execution_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def get_node_statuses(self, execution_id: str) -> List[Dict[str, Any]]:
        ...

    async def get_logs(self, execution_id: str) -> List[Dict[str, Any]]:
        ...


class NullRecorder:
    """No-op recorder.

    Null Object pattern: every write succeeds silently, every read is empty.
    """

    async def on_execution_start(self, execution_id, workflow_id, node_ids, trigger_input):
        logger.debug("Recording disabled", execution_id=execution_id)

    async def on_node_start(self, execution_id, node_meta, node_input):
        return None

    async def on_node_complete(self, log_id, status, output=None, error=None, duration_ms=0):
        return None

    async def on_execution_complete(self, execution_id, status, output=None, error=None,
                                    duration_ms=0):
        return None

    async def get_execution(self, execution_id):
        return None

    async def get_node_statuses(self, execution_id):
        return []

    async def get_logs(self, execution_id):
        return []


class InMemoryRecorder:
    """Keeps the most recent executions and their node logs in process memory.

    Inputs and outputs are redacted and snapshotted on write. When more than
    history_limit executions are held, the oldest are evicted with their logs.
    """

    def __init__(self, history_limit: int = 500):
        self.history_limit = history_limit
        self._executions: "OrderedDict[str, ExecutionRecord]" = OrderedDict()
        self._logs: Dict[str, List[NodeLogRecord]] = {}
        self._log_index: Dict[str, NodeLogRecord] = {}

    async def on_execution_start(self, execution_id: str, workflow_id: Optional[str],
                                 node_ids: List[str], trigger_input: Any) -> None:
        self._executions[execution_id] = ExecutionRecord(
            id=execution_id,
            workflow_id=workflow_id,
            status="running",
            input=snapshot(trigger_input),
            node_ids=list(node_ids),
        )
        self._logs[execution_id] = []
        self._evict()

    async def on_node_start(self, execution_id: str, node_meta: Dict[str, Any],
                            node_input: Any) -> Optional[str]:
        if execution_id not in self._executions:
            logger.warning("Node started for unknown execution",
                           execution_id=execution_id, node_id=node_meta.get("node_id"))
            return None

        record = NodeLogRecord(
            id=uuid.uuid4().hex,
            execution_id=execution_id,
            node_id=node_meta["node_id"],
            node_name=node_meta.get("node_name", node_meta["node_id"]),
            node_type=node_meta.get("node_type", ""),
            status="running",
            input=snapshot(node_input),
        )
        self._logs[execution_id].append(record)
        self._log_index[record.id] = record
        return record.id

    async def on_node_complete(self, log_id: Optional[str], status: str,
                               output: Any = None, error: Optional[str] = None,
                               duration_ms: int = 0) -> None:
        record = self._log_index.get(log_id) if log_id else None
        if record is None:
            return
        record.status = status
        record.output = snapshot(output)
        record.error = error
        record.completed_at = datetime.now().isoformat()
        record.duration_ms = duration_ms

    async def on_execution_complete(self, execution_id: str, status: str,
                                    output: Any = None, error: Optional[str] = None,
                                    duration_ms: int = 0) -> None:
        record = self._executions.get(execution_id)
        if record is None:
            return
        record.status = status
        record.output = snapshot(output)
        record.error = error
        record.completed_at = datetime.now().isoformat()
        record.duration_ms = duration_ms

    async def get_execution(self, execution_id: str) -> Optional[Dict[str, Any]]:
        record = self._executions.get(execution_id)
        return record.to_dict() if record else None

    async def get_node_statuses(self, execution_id: str) -> List[Dict[str, Any]]:
        """Latest status per node; nodes without a log row report pending."""
        record = self._executions.get(execution_id)
        if record is None:
            return []

        latest: Dict[str, str] = {}
        for log in self._logs.get(execution_id, []):
            latest[log.node_id] = log.status

        return [
            {"node_id": node_id, "status": latest.get(node_id, "pending")}
            for node_id in record.node_ids
        ]

    async def get_logs(self, execution_id: str) -> List[Dict[str, Any]]:
        return [log.to_dict() for log in self._logs.get(execution_id, [])]

    def _evict(self) -> None:
        while len(self._executions) > self.history_limit:
            execution_id, _ = self._executions.popitem(last=False)
            for log in self._logs.pop(execution_id, []):
                self._log_index.pop(log.id, None)
            logger.debug("Evicted execution from history", execution_id=execution_id)
