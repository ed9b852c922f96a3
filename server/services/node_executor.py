"""Node Executor - Step invocation with handler dispatch.

Uses a registry pattern for clean handler dispatch without if-else chains.
Every handler has the signature:

    async def handler(node_id, step_id, parameters, context) -> Dict

and returns {"success": True, "result": ...} or {"success": False, "error": ...}.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from typing import Dict, Any, Optional, Callable, Awaitable, TYPE_CHECKING

from core.logging import get_logger
from constants import WORKFLOW_TRIGGER_TYPES
from services.execution.errors import StepError
from services.handlers import (
    handle_trigger,
    handle_http_request,
    handle_log,
    handle_delay,
)

if TYPE_CHECKING:
    from core.config import Settings

logger = get_logger(__name__)

StepHandler = Callable[[str, str, Dict[str, Any], Dict[str, Any]], Awaitable[Dict[str, Any]]]
CredentialProvider = Callable[[str, Dict[str, Any]], Awaitable[Any]]


@dataclass
class StepResult:
    """Standardized step result."""
    success: bool
    node_id: str
    step_id: str
    result: Any = None
    error: Optional[str] = None
    execution_time: float = 0.0
    timestamp: str = ""

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "success": self.success,
            "node_id": self.node_id,
            "node_type": self.step_id,
            "execution_time": self.execution_time,
            "timestamp": self.timestamp or datetime.now().isoformat(),
        }
        if self.success:
            d["result"] = self.result
        else:
            d["error"] = self.error
        return d


class NodeExecutor:
    """Invokes trigger and action steps using registry-based dispatch."""

    def __init__(
        self,
        settings: "Settings",
        credential_provider: Optional[CredentialProvider] = None,
    ):
        self.settings = settings
        self._credential_provider = credential_provider
        self._handlers = self._build_handler_registry()

    def _build_handler_registry(self) -> Dict[str, StepHandler]:
        """Build handler registry with settings bound via partial."""
        registry: Dict[str, StepHandler] = {
            # Utility
            'log': handle_log,
            'delay': handle_delay,
            # HTTP
            'httpRequest': partial(handle_http_request,
                                   default_timeout=self.settings.http_request_timeout),
        }

        # Register triggers
        for step_id in WORKFLOW_TRIGGER_TYPES:
            registry[step_id] = handle_trigger

        return registry

    def register(self, step_id: str, handler: StepHandler) -> None:
        """Add or replace the handler for a step id."""
        self._handlers[step_id] = handler
        logger.debug("Registered step handler", step_id=step_id)

    def has_step(self, step_id: str) -> bool:
        return step_id in self._handlers

    async def invoke(
        self,
        step_id: str,
        parameters: Dict[str, Any],
        context: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Invoke one step with the resolved parameters.

        Enforces the step timeout (config "timeout" overrides the default) and turns
        every handler exception into a failure result. Cancellation propagates.

        Args:
            step_id: Registered step identifier
            parameters: Node config with templates already resolved
            context: Execution context (node_id, execution_id, workflow_id, trigger_input)

        Returns:
            Dict with success and result or error
        """
        start_time = time.time()
        node_id = context.get('node_id', '')

        if not self.has_step(step_id):
            logger.warning("Unknown step", node_id=node_id, step_id=step_id)
            return StepResult(False, node_id, step_id, error=f"Unknown step: {step_id}",
                              execution_time=time.time() - start_time).to_dict()
        handler = self._handlers[step_id]

        timeout = self._step_timeout(parameters)

        try:
            handler_ctx = {**context, "start_time": start_time}
            if self._credential_provider:
                handler_ctx["credentials"] = await self._credential_provider(step_id, context)

            result = await asyncio.wait_for(
                handler(node_id, step_id, parameters, handler_ctx),
                timeout=timeout,
            )

        except asyncio.TimeoutError:
            logger.error("Step timed out", node_id=node_id, step_id=step_id, timeout=timeout)
            return StepResult(False, node_id, step_id,
                              error=f"Step {step_id} timed out after {timeout:g} seconds",
                              execution_time=time.time() - start_time).to_dict()
        except StepError as e:
            logger.warning("Step reported failure", node_id=node_id, step_id=step_id, error=e.message)
            return StepResult(False, node_id, step_id, error=e.message,
                              execution_time=time.time() - start_time).to_dict()
        except Exception as e:
            logger.error("Step execution error", node_id=node_id, step_id=step_id, error=str(e))
            return StepResult(False, node_id, step_id, error=str(e) or type(e).__name__,
                              execution_time=time.time() - start_time).to_dict()

        if not isinstance(result, dict) or "success" not in result:
            # Bare return value from a custom handler
            return StepResult(True, node_id, step_id, result=result,
                              execution_time=time.time() - start_time).to_dict()
        return result

    def _step_timeout(self, parameters: Dict[str, Any]) -> float:
        override = parameters.get('timeout') if isinstance(parameters, dict) else None
        if override is not None:
            try:
                value = float(override)
            except (TypeError, ValueError):
                logger.warning("Ignoring invalid step timeout", timeout=override)
            else:
                if value > 0:
                    return value
        return self.settings.step_timeout
