"""Backend transports carrying ``{action, prompt}`` requests.

``HttpBackendTransport`` talks to the ``/api/analyze`` endpoint of a remote
backend. ``ModelBackendTransport`` plays that backend's role in-process by
calling an OpenAI-compatible model directly; both honour the same contract:
return the ``result`` payload or raise a :class:`DispatchError` subclass.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping

import httpx
from openai import APIConnectionError, APIStatusError, OpenAIError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .ai_types import DispatchAction, Severity
from .client import AIClient
from .errors import BackendError, MalformedPayloadError, TransportError
from .prompts import strip_code_fences

__all__ = ["HttpBackendTransport", "ModelBackendTransport", "ANALYZE_ENDPOINT"]

LOGGER = logging.getLogger(__name__)
ANALYZE_ENDPOINT = "/api/analyze"


class HttpBackendTransport:
    """POSTs dispatch requests to a CodeGennie backend over HTTP."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float | None = 90.0,
        max_retries: int = 3,
        retry_min_seconds: float = 0.5,
        retry_max_seconds: float = 6.0,
        endpoint: str = ANALYZE_ENDPOINT,
        headers: Mapping[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._max_retries = max(1, int(max_retries))
        self._retry_min_seconds = retry_min_seconds
        self._retry_max_seconds = retry_max_seconds
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers=dict(headers or {}),
        )

    async def send(self, action: DispatchAction, prompt: str) -> Any:
        request = {"action": DispatchAction(action).value, "prompt": prompt}
        async for attempt in self._retrying():
            with attempt:
                response = await self._post(request)
        return self._unwrap(response, request["action"])

    async def _post(self, request: Mapping[str, str]) -> httpx.Response:
        try:
            return await self._client.post(self._endpoint, json=request)
        except httpx.TransportError as exc:
            LOGGER.debug("Backend request %s failed to send: %s", request["action"], exc)
            raise TransportError(
                message=f"Could not reach the AI backend: {exc}",
                action=request["action"],
            ) from exc

    def _unwrap(self, response: httpx.Response, action: str) -> Any:
        body = _json_or_none(response)
        if not response.is_success:
            message = None
            if isinstance(body, Mapping):
                message = body.get("error")
            raise BackendError(
                message=str(message or f"HTTP {response.status_code}"),
                action=action,
                status_code=response.status_code,
            )
        if not isinstance(body, Mapping) or "result" not in body:
            raise MalformedPayloadError(
                message="Backend response did not contain a result.",
                action=action,
                details={"status_code": response.status_code},
            )
        return body["result"]

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(self._max_retries),
            wait=wait_exponential(multiplier=self._retry_min_seconds, max=self._retry_max_seconds),
            retry=retry_if_exception_type(TransportError),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


_ISSUE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "line": {"type": "integer"},
        "column": {"type": "integer"},
        "endLine": {"type": "integer"},
        "endColumn": {"type": "integer"},
        "message": {"type": "string"},
        "severity": {"type": "string", "enum": [item.value for item in Severity]},
    },
    "required": ["line", "column", "endLine", "endColumn", "message", "severity"],
    "additionalProperties": False,
}

_BUG_REPORT_FORMAT: dict[str, Any] = {
    "type": "json_schema",
    "json_schema": {
        "name": "bug_report",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {"issues": {"type": "array", "items": _ISSUE_SCHEMA}},
            "required": ["issues"],
            "additionalProperties": False,
        },
    },
}

_TEST_SUITE_FORMAT: dict[str, Any] = {
    "type": "json_schema",
    "json_schema": {
        "name": "test_suite",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {"testCode": {"type": "string"}},
            "required": ["testCode"],
            "additionalProperties": False,
        },
    },
}

_TEXT_ACTIONS = frozenset(
    {
        DispatchAction.ANALYZE,
        DispatchAction.QUICK_FIX,
        DispatchAction.FIX_ALL,
        DispatchAction.RUN_CODE,
    }
)


class ModelBackendTransport:
    """Answers dispatch requests in-process using an OpenAI-compatible model."""

    def __init__(self, client: AIClient) -> None:
        self._client = client

    async def send(self, action: DispatchAction, prompt: str) -> Any:
        if not action or not prompt:
            raise BackendError(
                message="Missing required fields: action, prompt",
                action=str(action or ""),
                status_code=400,
            )
        try:
            kind = DispatchAction(action)
        except ValueError:
            raise BackendError(message="Unknown action", action=str(action), status_code=400) from None

        try:
            if kind in _TEXT_ACTIONS:
                return await self._client.complete(prompt)
            if kind is DispatchAction.FIND_BUGS:
                text = await self._client.complete(prompt, response_format=_BUG_REPORT_FORMAT)
                return _parse_bug_report(text, kind)
            text = await self._client.complete(prompt, response_format=_TEST_SUITE_FORMAT)
            return _parse_json(text, kind)
        except APIStatusError as exc:
            raise BackendError(message=exc.message, action=kind.value, status_code=exc.status_code) from exc
        except APIConnectionError as exc:
            raise TransportError(message=f"Could not reach the model provider: {exc}", action=kind.value) from exc
        except OpenAIError as exc:
            raise BackendError(message=str(exc) or "An unknown error occurred", action=kind.value) from exc

    async def aclose(self) -> None:
        await self._client.aclose()


def _parse_json(text: str, action: DispatchAction) -> Any:
    try:
        return json.loads(strip_code_fences(text))
    except json.JSONDecodeError as exc:
        raise MalformedPayloadError(
            message=f"Model returned invalid JSON for {action.value}.",
            action=action.value,
        ) from exc


def _parse_bug_report(text: str, action: DispatchAction) -> Any:
    data = _parse_json(text, action)
    if isinstance(data, Mapping) and "issues" in data:
        return data["issues"]
    return data
