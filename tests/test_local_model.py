"""Tests for the local model channel."""

from __future__ import annotations

import json

import httpx
import pytest

from codegennie.ai.errors import LocalModelError
from codegennie.ai.local_model import LocalModelClient

_URL = "http://ollama.test/api/generate"


def _client(handler) -> LocalModelClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return LocalModelClient(_URL, "codellama:7b", completion_temperature=0.2, client=http)


@pytest.mark.asyncio
async def test_generate_code_sends_non_streaming_request() -> None:
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"response": "  function add(a, b) { return a + b; }\n"})

    client = _client(handler)

    code = await client.generate_code("add two numbers", "javascript")

    assert code == "function add(a, b) { return a + b; }"
    assert seen[0]["model"] == "codellama:7b"
    assert seen[0]["stream"] is False
    assert 'Comment: "add two numbers"' in seen[0]["prompt"]
    assert "options" not in seen[0]


@pytest.mark.asyncio
async def test_generate_code_connection_refused_has_hint() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(LocalModelError, match="Could not connect to Ollama"):
        await _client(handler).generate_code("anything", "python")


@pytest.mark.asyncio
async def test_generate_code_error_status() -> None:
    client = _client(lambda request: httpx.Response(404, text="model not found"))

    with pytest.raises(LocalModelError, match="404"):
        await client.generate_code("anything", "python")


@pytest.mark.asyncio
async def test_generate_code_rejects_invalid_body() -> None:
    client = _client(lambda request: httpx.Response(200, json={"unexpected": 1}))

    with pytest.raises(LocalModelError, match="invalid response"):
        await client.generate_code("anything", "python")


@pytest.mark.asyncio
async def test_suggest_uses_single_line_options() -> None:
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"response": "return total\n"})

    suggestion = await _client(handler).suggest("def total(items):\n    ", "python")

    assert suggestion == "return total"
    assert seen[0]["options"] == {"stop": ["\n"], "temperature": 0.2}
    assert "<CODE_CONTEXT>\ndef total(items):\n    \n</CODE_CONTEXT>" in seen[0]["prompt"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "handler",
    [
        lambda request: httpx.Response(500, json={"error": "boom"}),
        lambda request: httpx.Response(200, text="not json"),
    ],
)
async def test_suggest_degrades_to_empty(handler) -> None:
    assert await _client(handler).suggest("const value = compute(", "javascript") == ""


@pytest.mark.asyncio
async def test_suggest_network_failure_is_empty() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    assert await _client(handler).suggest("const value = compute(", "javascript") == ""
