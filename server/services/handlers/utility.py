"""Utility node handlers - Log, Delay."""

import asyncio
import time
from datetime import datetime
from typing import Dict, Any
from core.logging import get_logger

logger = get_logger(__name__)

LOG_LEVELS = ('debug', 'info', 'warning', 'error')


async def handle_log(
    node_id: str,
    node_type: str,
    parameters: Dict[str, Any],
    context: Dict[str, Any]
) -> Dict[str, Any]:
    """Write a message to the server log and pass it on as output.

    Args:
        node_id: The node ID
        node_type: The node type (log)
        parameters: Resolved parameters with message and optional level
        context: Execution context

    Returns:
        Execution result dict echoing the message
    """
    start_time = time.time()
    message = parameters.get('message', '')
    level = str(parameters.get('level', 'info')).lower()
    if level not in LOG_LEVELS:
        level = 'info'

    getattr(logger, level)("[Log] Workflow message",
                           node_id=node_id,
                           execution_id=context.get('execution_id'),
                           message=message)

    return {
        "success": True,
        "node_id": node_id,
        "node_type": "log",
        "result": {
            "message": message,
            "level": level,
            "logged_at": datetime.now().isoformat(),
        },
        "execution_time": time.time() - start_time,
        "timestamp": datetime.now().isoformat()
    }


async def handle_delay(
    node_id: str,
    node_type: str,
    parameters: Dict[str, Any],
    context: Dict[str, Any]
) -> Dict[str, Any]:
    """Wait for a duration, then pass through.

    Cancellation is not caught here, so cancelling the run stops the wait.

    Args:
        node_id: The node ID
        node_type: The node type (delay)
        parameters: Resolved parameters with duration and unit
        context: Execution context

    Returns:
        Execution result dict with timing info
    """
    start_time = time.time()

    try:
        duration = float(parameters.get('duration', 1))
    except (TypeError, ValueError):
        return {
            "success": False,
            "node_id": node_id,
            "node_type": "delay",
            "error": f"Invalid duration: {parameters.get('duration')!r}",
            "execution_time": time.time() - start_time,
            "timestamp": datetime.now().isoformat()
        }

    unit = parameters.get('unit', 'seconds')
    match unit:
        case 'milliseconds':
            wait_seconds = duration / 1000
        case 'minutes':
            wait_seconds = duration * 60
        case _:
            wait_seconds = duration

    logger.info("[Delay] Starting wait", node_id=node_id, wait_seconds=wait_seconds)
    await asyncio.sleep(wait_seconds)

    elapsed_ms = int((time.time() - start_time) * 1000)
    return {
        "success": True,
        "node_id": node_id,
        "node_type": "delay",
        "result": {
            "elapsed_ms": elapsed_ms,
            "duration": duration,
            "unit": unit,
        },
        "execution_time": time.time() - start_time,
        "timestamp": datetime.now().isoformat()
    }
