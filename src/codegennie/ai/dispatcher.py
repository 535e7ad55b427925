"""Request Dispatcher: one categorized AI request in, one typed result out."""

from __future__ import annotations

import logging
import time
from typing import Any, Mapping, Sequence

from ..editor.languages import Language
from .ai_types import BackendTransport, DispatchAction, Issue
from .errors import DispatchError, MalformedPayloadError
from .prompts import fix_all_prompt, quick_fix_prompt, run_code_prompt, strip_code_fences

__all__ = ["RequestDispatcher"]

LOGGER = logging.getLogger(__name__)


class RequestDispatcher:
    """Stateless facade validating backend payloads into typed results.

    Every method either returns the typed payload for its action or raises a
    :class:`~codegennie.ai.errors.DispatchError`.
    """

    def __init__(self, transport: BackendTransport) -> None:
        self._transport = transport

    @property
    def transport(self) -> BackendTransport:
        return self._transport

    async def dispatch(self, action: DispatchAction, prompt: str) -> Any:
        """Send a raw request and return the untyped ``result`` payload."""

        started = time.perf_counter()
        LOGGER.debug("Dispatching %s (%d prompt chars)", action.value, len(prompt))
        try:
            result = await self._transport.send(action, prompt)
        except DispatchError as exc:
            LOGGER.debug("Dispatch %s failed: %s", action.value, exc)
            raise
        LOGGER.debug("Dispatch %s finished in %.1f ms", action.value, (time.perf_counter() - started) * 1000)
        return result

    async def analyze(self, prompt: str) -> str:
        return _expect_text(await self.dispatch(DispatchAction.ANALYZE, prompt), DispatchAction.ANALYZE)

    async def find_bugs(self, prompt: str) -> list[Issue]:
        payload = await self.dispatch(DispatchAction.FIND_BUGS, prompt)
        if not isinstance(payload, list):
            raise MalformedPayloadError(
                message="Bug report was not a list of issues.",
                action=DispatchAction.FIND_BUGS.value,
            )
        issues: list[Issue] = []
        for index, item in enumerate(payload):
            if not isinstance(item, Mapping):
                raise MalformedPayloadError(
                    message=f"Bug report entry {index} is not an object.",
                    action=DispatchAction.FIND_BUGS.value,
                )
            try:
                issues.append(Issue.from_payload(item))
            except (TypeError, ValueError) as exc:
                raise MalformedPayloadError(
                    message=f"Bug report entry {index} is invalid: {exc}",
                    action=DispatchAction.FIND_BUGS.value,
                ) from exc
        return issues

    async def generate_tests(self, prompt: str) -> str:
        payload = await self.dispatch(DispatchAction.GENERATE_TESTS, prompt)
        test_code = payload.get("testCode") if isinstance(payload, Mapping) else None
        if not isinstance(test_code, str):
            raise MalformedPayloadError(
                message="Generated tests did not include a testCode string.",
                action=DispatchAction.GENERATE_TESTS.value,
            )
        return test_code

    async def quick_fix(self, snippet: str, issue: Issue, language: Language) -> str:
        prompt = quick_fix_prompt(snippet, issue, language)
        payload = await self.dispatch(DispatchAction.QUICK_FIX, prompt)
        return strip_code_fences(_expect_text(payload, DispatchAction.QUICK_FIX), language)

    async def fix_all(self, code: str, issues: Sequence[Issue], language: Language) -> str:
        prompt = fix_all_prompt(code, issues, language)
        payload = await self.dispatch(DispatchAction.FIX_ALL, prompt)
        return strip_code_fences(_expect_text(payload, DispatchAction.FIX_ALL), language)

    async def run_code(self, code: str, language: Language) -> str:
        payload = await self.dispatch(DispatchAction.RUN_CODE, run_code_prompt(code, language))
        return _expect_text(payload, DispatchAction.RUN_CODE)

    async def aclose(self) -> None:
        await self._transport.aclose()


def _expect_text(payload: Any, action: DispatchAction) -> str:
    if payload is None:
        return ""
    if not isinstance(payload, str):
        raise MalformedPayloadError(message=f"Expected text from {action.value}.", action=action.value)
    return payload
