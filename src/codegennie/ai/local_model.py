"""Client for the local code-generation channel (Ollama ``/api/generate``)."""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from ..editor.languages import Language
from .errors import LocalModelError
from .prompts import comment_to_code_prompt, completion_prompt

__all__ = ["LocalModelClient"]

LOGGER = logging.getLogger(__name__)
_CONNECT_HINT = "Could not connect to Ollama. Please ensure it is running and reachable at {url}."


class LocalModelClient:
    """Issues ``{model, prompt, stream: false}`` requests and reads ``response``.

    ``suggest`` never raises: any failure degrades to an empty suggestion.
    ``generate_code`` raises :class:`LocalModelError` so explicit actions can
    report the problem.
    """

    def __init__(
        self,
        url: str,
        model: str,
        *,
        timeout: float | None = 90.0,
        completion_temperature: float = 0.2,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._model = model
        self._completion_temperature = completion_temperature
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def model(self) -> str:
        return self._model

    async def generate_code(self, instruction: str, language: Language | str) -> str:
        prompt = comment_to_code_prompt(instruction, Language.parse(language))
        try:
            response = await self._client.post(self._url, json=self._payload(prompt))
        except httpx.ConnectError as exc:
            raise LocalModelError(message=_CONNECT_HINT.format(url=self._url)) from exc
        except httpx.HTTPError as exc:
            raise LocalModelError(message=f"Local model request failed: {exc}") from exc
        if not response.is_success:
            raise LocalModelError(
                message=f"Local model request failed with status {response.status_code}: {response.text}",
                details={"status_code": response.status_code},
            )
        text = _response_text(response)
        if text is None:
            raise LocalModelError(message="Received an invalid response structure from the local model.")
        return text.strip()

    async def suggest(self, context: str, language: Language | str) -> str:
        prompt = completion_prompt(context, Language.parse(language))
        options = {"stop": ["\n"], "temperature": self._completion_temperature}
        try:
            response = await self._client.post(self._url, json=self._payload(prompt, options=options))
        except httpx.HTTPError as exc:
            LOGGER.debug("Completion request failed: %s", exc)
            return ""
        if not response.is_success:
            LOGGER.debug("Completion request failed with status %s", response.status_code)
            return ""
        return (_response_text(response) or "").strip()

    def _payload(self, prompt: str, *, options: Mapping[str, Any] | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {"model": self._model, "prompt": prompt, "stream": False}
        if options:
            payload["options"] = dict(options)
        return payload

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _response_text(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, Mapping) and isinstance(body.get("response"), str):
        return body["response"]
    return None
