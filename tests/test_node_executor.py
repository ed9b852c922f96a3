"""
Step invoker tests
==================

NodeExecutor dispatch, timeouts and the built-in step handlers.
"""

import asyncio
import json
from functools import partial

import httpx
import pytest

from core.config import Settings
from services.execution.errors import StepError
from services.handlers import http as http_handlers
from services.node_executor import NodeExecutor


def ctx(node_id="n1", **extra):
    return {"node_id": node_id, "execution_id": "run-1", "workflow_id": None, **extra}


# =============================================================================
# Dispatch
# =============================================================================

class TestInvoke:

    @pytest.mark.asyncio
    async def test_registered_handler(self, node_executor):
        result = await node_executor.invoke("echo", {"a": 1}, ctx())
        assert result == {"success": True, "result": {"a": 1}}

    @pytest.mark.asyncio
    async def test_unknown_step(self, node_executor):
        result = await node_executor.invoke("nope", {}, ctx())
        assert result["success"] is False
        assert result["error"] == "Unknown step: nope"
        assert not node_executor.has_step("nope")

    @pytest.mark.asyncio
    async def test_exception_becomes_failure(self, node_executor):
        result = await node_executor.invoke("raise", {}, ctx())
        assert result["success"] is False
        assert result["error"] == "step exploded"

    @pytest.mark.asyncio
    async def test_step_error_message(self, node_executor):
        async def refuse(node_id, step_id, parameters, context):
            raise StepError("quota exceeded")

        node_executor.register("refuse", refuse)
        result = await node_executor.invoke("refuse", {}, ctx())
        assert result["error"] == "quota exceeded"

    @pytest.mark.asyncio
    async def test_bare_return_value_is_wrapped(self, node_executor):
        async def answer(node_id, step_id, parameters, context):
            return 42

        node_executor.register("answer", answer)
        result = await node_executor.invoke("answer", {}, ctx())
        assert result["success"] is True
        assert result["result"] == 42
        assert result["node_id"] == "n1"

    @pytest.mark.asyncio
    async def test_default_timeout(self):
        executor = NodeExecutor(settings=Settings(step_timeout=0.05))

        async def hang(node_id, step_id, parameters, context):
            await asyncio.sleep(5)

        executor.register("hang", hang)
        result = await executor.invoke("hang", {}, ctx())
        assert result["error"] == "Step hang timed out after 0.05 seconds"

    @pytest.mark.asyncio
    async def test_timeout_override(self, node_executor, journal):
        result = await node_executor.invoke("sleep", {"seconds": 1, "timeout": "0.05"}, ctx())
        assert result["success"] is False
        assert "timed out" in result["error"]

    @pytest.mark.asyncio
    async def test_invalid_timeout_override_ignored(self, node_executor):
        result = await node_executor.invoke("sleep", {"seconds": 0, "timeout": "soon"}, ctx())
        assert result["success"] is True

    @pytest.mark.asyncio
    async def test_credentials_passed_to_handler(self, settings):
        seen = {}

        async def provider(step_id, context):
            return {"token": f"secret-for-{step_id}"}

        async def needs_credentials(node_id, step_id, parameters, context):
            seen.update(context)
            return {"success": True, "result": None}

        executor = NodeExecutor(settings=settings, credential_provider=provider)
        executor.register("private", needs_credentials)
        await executor.invoke("private", {}, ctx())

        assert seen["credentials"] == {"token": "secret-for-private"}
        assert seen["execution_id"] == "run-1"


# =============================================================================
# Triggers
# =============================================================================

class TestTriggers:

    @pytest.mark.asyncio
    async def test_manual_trigger_merges_input(self, node_executor):
        result = await node_executor.invoke("manual", {}, ctx(trigger_input={"a": 1}))
        assert result["result"]["triggered"] is True
        assert result["result"]["a"] == 1
        assert isinstance(result["result"]["timestamp"], int)

    @pytest.mark.asyncio
    async def test_non_object_input(self, node_executor):
        result = await node_executor.invoke("schedule", {}, ctx(trigger_input=[1, 2]))
        assert result["result"]["input"] == [1, 2]

    @pytest.mark.asyncio
    async def test_webhook_falls_back_to_mock_request(self, node_executor):
        params = {"webhookMockRequest": '{"body": {"id": 7}, "method": "POST"}'}
        result = await node_executor.invoke("webhook", params, ctx(trigger_input={}))
        assert result["result"]["body"] == {"id": 7}
        assert result["result"]["method"] == "POST"

    @pytest.mark.asyncio
    async def test_webhook_mock_ignored_with_real_input(self, node_executor):
        params = {"webhookMockRequest": '{"body": {"id": 7}}'}
        result = await node_executor.invoke("webhook", params, ctx(trigger_input={"body": "real"}))
        assert result["result"]["body"] == "real"

    @pytest.mark.asyncio
    async def test_webhook_invalid_mock(self, node_executor):
        result = await node_executor.invoke(
            "webhook", {"webhookMockRequest": "{not json"}, ctx(trigger_input={})
        )
        assert result["success"] is True
        assert set(result["result"]) == {"triggered", "timestamp"}


# =============================================================================
# Utility steps
# =============================================================================

class TestUtilitySteps:

    @pytest.mark.asyncio
    async def test_log(self, node_executor):
        result = await node_executor.invoke("log", {"message": "hi", "level": "LOUD"}, ctx())
        assert result["result"]["message"] == "hi"
        assert result["result"]["level"] == "info"

    @pytest.mark.asyncio
    async def test_delay_milliseconds(self, node_executor):
        result = await node_executor.invoke(
            "delay", {"duration": 10, "unit": "milliseconds"}, ctx()
        )
        assert result["success"] is True
        assert result["result"]["unit"] == "milliseconds"

    @pytest.mark.asyncio
    async def test_delay_invalid_duration(self, node_executor):
        result = await node_executor.invoke("delay", {"duration": "later"}, ctx())
        assert result["success"] is False
        assert "Invalid duration" in result["error"]


# =============================================================================
# HTTP step
# =============================================================================

@pytest.fixture
def mock_http(monkeypatch):
    """Route the HTTP step through an httpx.MockTransport; returns the seen requests."""
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path == "/missing":
            return httpx.Response(404, text="not here")
        return httpx.Response(200, json={"path": request.url.path, "method": request.method})

    monkeypatch.setattr(
        http_handlers.httpx, "AsyncClient",
        partial(httpx.AsyncClient, transport=httpx.MockTransport(handler)),
    )
    return requests


class TestHttpStep:

    @pytest.mark.asyncio
    async def test_json_response(self, node_executor, mock_http):
        result = await node_executor.invoke(
            "httpRequest",
            {"url": "https://api.test/items", "method": "post", "body": {"name": "x"},
             "headers": '{"X-Trace": "1"}'},
            ctx(),
        )

        assert result["success"] is True
        assert result["result"]["status"] == 200
        assert result["result"]["data"] == {"path": "/items", "method": "POST"}
        sent = mock_http[0]
        assert sent.headers["X-Trace"] == "1"
        assert json.loads(sent.content) == {"name": "x"}

    @pytest.mark.asyncio
    async def test_error_status(self, node_executor, mock_http):
        result = await node_executor.invoke("httpRequest", {"url": "https://api.test/missing"}, ctx())
        assert result["success"] is False
        assert result["error"] == "HTTP request failed with status 404: not here"
        assert result["status"] == 404

    @pytest.mark.asyncio
    async def test_missing_url(self, node_executor):
        result = await node_executor.invoke("httpRequest", {}, ctx())
        assert result["error"] == "HTTP request failed: URL is required"
