"""Shared test fakes for the transport and local-model protocols.

Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable

from codegennie.ai.ai_types import DispatchAction


class FakeTransport:
    """Scriptable ``BackendTransport``.

    ``results`` maps an action to its payload, to an exception instance that
    is raised, or to a callable receiving the prompt. :meth:`hold` returns an
    event that keeps requests of that action in flight until it is set.
    """

    def __init__(self, results: dict[DispatchAction, Any] | None = None) -> None:
        self.results: dict[DispatchAction, Any] = dict(results or {})
        self.calls: list[tuple[DispatchAction, str]] = []
        self.gates: dict[DispatchAction, asyncio.Event] = {}
        self.closed = False

    def hold(self, action: DispatchAction) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates[action] = gate
        return gate

    def prompts(self, action: DispatchAction) -> list[str]:
        return [prompt for called, prompt in self.calls if called is action]

    async def send(self, action: DispatchAction, prompt: str) -> Any:
        self.calls.append((action, prompt))
        gate = self.gates.get(action)
        if gate is not None:
            await gate.wait()
        result = self.results.get(action)
        if isinstance(result, BaseException):
            raise result
        if callable(result):
            return result(prompt)
        return result

    async def aclose(self) -> None:
        self.closed = True


class FakeLocalModel:
    """Scriptable ``LocalModelProtocol`` recording every request."""

    def __init__(
        self,
        *,
        suggestion: str | Callable[[str], str] = "",
        generated: str | BaseException = "",
    ) -> None:
        self.suggestion = suggestion
        self.generated = generated
        self.suggest_calls: list[tuple[str, str]] = []
        self.generate_calls: list[tuple[str, str]] = []
        self.generate_gate: asyncio.Event | None = None
        self.suggest_gate: asyncio.Event | None = None
        self.closed = False

    async def suggest(self, context: str, language: str) -> str:
        self.suggest_calls.append((context, language))
        if self.suggest_gate is not None:
            await self.suggest_gate.wait()
        if callable(self.suggestion):
            return self.suggestion(context)
        return self.suggestion

    async def generate_code(self, instruction: str, language: str) -> str:
        self.generate_calls.append((instruction, language))
        if self.generate_gate is not None:
            await self.generate_gate.wait()
        if isinstance(self.generated, BaseException):
            raise self.generated
        return self.generated

    async def aclose(self) -> None:
        self.closed = True


async def wait_for_calls(counter: Callable[[], int], expected: int = 1, *, attempts: int = 200) -> None:
    """Poll the loop until ``counter()`` reaches ``expected``."""

    for _ in range(attempts):
        if counter() >= expected:
            return
        await asyncio.sleep(0.005)
    raise AssertionError(f"expected {expected} call(s), saw {counter()}")
