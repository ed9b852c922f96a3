"""Trigger node handlers - manual, webhook and schedule starting points."""

import json
import time
from datetime import datetime
from typing import Dict, Any
from core.logging import get_logger

logger = get_logger(__name__)


def _webhook_mock_request(parameters: Dict[str, Any], node_id: str) -> Dict[str, Any]:
    """Parse the webhookMockRequest config used for test runs without a payload."""
    mock = parameters.get('webhookMockRequest')
    if not mock:
        return {}
    if isinstance(mock, dict):
        return mock
    try:
        data = json.loads(mock)
    except (TypeError, json.JSONDecodeError) as e:
        logger.warning("Failed to parse webhook mock request", node_id=node_id, error=str(e))
        return {}
    if not isinstance(data, dict):
        logger.warning("Webhook mock request is not an object", node_id=node_id)
        return {}
    return data


async def handle_trigger(
    node_id: str,
    node_type: str,
    parameters: Dict[str, Any],
    context: Dict[str, Any]
) -> Dict[str, Any]:
    """Handle trigger node execution.

    The trigger's output is {triggered, timestamp} merged with the trigger input.
    A webhook trigger run without input falls back to its webhookMockRequest.

    Args:
        node_id: The node ID
        node_type: The trigger step id (manual, webhook, schedule)
        parameters: Resolved parameters
        context: Execution context with trigger_input

    Returns:
        Execution result dict with trigger data
    """
    start_time = time.time()
    trigger_input = context.get('trigger_input') or {}

    trigger_data: Dict[str, Any] = {
        "triggered": True,
        "timestamp": int(start_time * 1000),
    }

    if node_type == 'webhook' and not trigger_input:
        mock_data = _webhook_mock_request(parameters, node_id)
        if mock_data:
            logger.info("Using webhook mock request", node_id=node_id, keys=list(mock_data.keys()))
        trigger_data.update(mock_data)
    elif isinstance(trigger_input, dict):
        trigger_data.update(trigger_input)
    else:
        trigger_data["input"] = trigger_input

    logger.info("Trigger fired", node_id=node_id, node_type=node_type,
                execution_id=context.get('execution_id'))

    return {
        "success": True,
        "node_id": node_id,
        "node_type": node_type,
        "result": trigger_data,
        "execution_time": time.time() - start_time,
        "timestamp": datetime.now().isoformat()
    }
