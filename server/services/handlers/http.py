"""HTTP node handlers - HTTP Request."""

import json
import time
from datetime import datetime
from typing import Any, Dict, Optional

import httpx

from core.logging import get_logger

logger = get_logger(__name__)

BODY_METHODS = ('POST', 'PUT', 'PATCH', 'DELETE')


def _parse_headers(headers: Any) -> Dict[str, str]:
    """Headers may be given as an object or as a JSON string."""
    if isinstance(headers, dict):
        return {str(k): str(v) for k, v in headers.items()}
    if not headers:
        return {}
    try:
        parsed = json.loads(headers)
    except (TypeError, json.JSONDecodeError):
        return {}
    return {str(k): str(v) for k, v in parsed.items()} if isinstance(parsed, dict) else {}


def _failure(node_id: str, error: str, start_time: float,
             status: Optional[int] = None) -> Dict[str, Any]:
    result = {
        "success": False,
        "node_id": node_id,
        "node_type": "httpRequest",
        "error": error,
        "execution_time": time.time() - start_time,
        "timestamp": datetime.now().isoformat()
    }
    if status is not None:
        result["status"] = status
    return result


async def handle_http_request(
    node_id: str,
    node_type: str,
    parameters: Dict[str, Any],
    context: Dict[str, Any],
    default_timeout: float = 30.0,
) -> Dict[str, Any]:
    """Handle HTTP request node execution.

    Args:
        node_id: The node ID
        node_type: The node type (httpRequest)
        parameters: Resolved parameters (url, method, headers, body, requestTimeout)
        context: Execution context
        default_timeout: Request timeout when the node does not set one

    Returns:
        Execution result dict with response data
    """
    start_time = time.time()

    url = parameters.get('url') or parameters.get('endpoint') or ''
    method = str(parameters.get('method') or parameters.get('httpMethod') or 'GET').upper()
    headers = _parse_headers(parameters.get('headers') or parameters.get('httpHeaders'))
    body = parameters.get('body', parameters.get('httpBody'))
    timeout = float(parameters.get('requestTimeout', default_timeout))

    if not url:
        return _failure(node_id, "HTTP request failed: URL is required", start_time)

    request_kwargs: Dict[str, Any] = {'method': method, 'url': url, 'headers': headers}

    # Objects are sent as JSON; strings that parse as JSON are too
    if method in BODY_METHODS and body not in (None, '', {}):
        if isinstance(body, (dict, list)):
            request_kwargs['json'] = body
        else:
            try:
                request_kwargs['json'] = json.loads(body)
            except (TypeError, json.JSONDecodeError):
                request_kwargs['content'] = str(body)

    logger.info("[HTTP Request] Executing", node_id=node_id, method=method, url=url)

    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.request(**request_kwargs)
    except httpx.TimeoutException:
        logger.error("HTTP request timed out", node_id=node_id, url=url)
        return _failure(node_id, f"Request timed out after {timeout:g} seconds", start_time)
    except httpx.HTTPError as e:
        logger.error("HTTP request failed", node_id=node_id, error=str(e))
        return _failure(node_id, f"HTTP request failed: {e}", start_time)

    if response.status_code >= 400:
        return _failure(
            node_id,
            f"HTTP request failed with status {response.status_code}: {response.text}",
            start_time,
            status=response.status_code,
        )

    if 'application/json' in response.headers.get('content-type', ''):
        try:
            response_data = response.json()
        except ValueError:
            response_data = response.text
    else:
        response_data = response.text

    return {
        "success": True,
        "node_id": node_id,
        "node_type": "httpRequest",
        "result": {
            "status": response.status_code,
            "data": response_data,
            "headers": dict(response.headers),
            "url": str(response.url),
            "method": method,
        },
        "execution_time": time.time() - start_time,
        "timestamp": datetime.now().isoformat()
    }
