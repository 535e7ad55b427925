"""Inline completion suggestions from the local model channel."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable

from ..ai.ai_types import LocalModelProtocol
from ..editor.languages import Language
from ..editor.line_edits import join_lines, split_lines
from .scheduler import COMPLETION_KEY, DebounceScheduler

__all__ = ["Suggestion", "CompletionProvider", "context_until"]

LOGGER = logging.getLogger(__name__)

SUGGESTION_LABEL = "AI Suggestion"


@dataclass(slots=True, frozen=True)
class Suggestion:
    """Text to insert at the cursor; the range is zero-width."""

    text: str
    line: int
    column: int
    label: str = SUGGESTION_LABEL

    @property
    def range(self) -> tuple[int, int, int, int]:
        return (self.line, self.column, self.line, self.column)


def context_until(text: str, line: int, column: int) -> str:
    """Return the text from the buffer start up to the 1-indexed cursor position."""

    lines = split_lines(text)
    if line < 1:
        return ""
    if line > len(lines):
        return text
    head = lines[: line - 1]
    head.append(lines[line - 1][: max(0, column - 1)])
    return join_lines(head)


class CompletionProvider:
    """Debounced, threshold-gated completion requests.

    Every :meth:`request` returns a future that always settles: with a
    :class:`Suggestion`, or with ``None`` when the context is too short, the
    model has nothing to offer, the request failed, or a newer request
    superseded it.
    """

    def __init__(
        self,
        local_model: LocalModelProtocol,
        scheduler: DebounceScheduler,
        *,
        language: Callable[[], Language],
        debounce_seconds: float = 0.75,
        min_context: int = 10,
        on_busy: Callable[[bool], None] | None = None,
    ) -> None:
        self._local_model = local_model
        self._scheduler = scheduler
        self._language = language
        self._debounce_seconds = debounce_seconds
        self._min_context = min_context
        self._on_busy = on_busy
        self._pending: asyncio.Future[Suggestion | None] | None = None
        self._generation = 0
        self._in_flight = 0
        self._tasks: set[asyncio.Task[None]] = set()

    def request(self, text: str, line: int, column: int) -> "asyncio.Future[Suggestion | None]":
        self._supersede()
        self._generation += 1
        generation = self._generation
        future: asyncio.Future[Suggestion | None] = asyncio.get_running_loop().create_future()
        self._pending = future
        self._scheduler.schedule(
            COMPLETION_KEY,
            self._debounce_seconds,
            lambda: self._start(future, generation, text or "", line, column),
        )
        return future

    def cancel(self) -> None:
        """Drop the pending request; its future resolves to ``None``."""

        self._scheduler.cancel(COMPLETION_KEY)
        self._generation += 1
        self._supersede()

    async def aclose(self) -> None:
        self.cancel()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _supersede(self) -> None:
        if self._pending is not None:
            _settle(self._pending, None)
            self._pending = None

    def _start(
        self,
        future: "asyncio.Future[Suggestion | None]",
        generation: int,
        text: str,
        line: int,
        column: int,
    ) -> None:
        task = asyncio.ensure_future(self._resolve(future, generation, text, line, column))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _resolve(
        self,
        future: "asyncio.Future[Suggestion | None]",
        generation: int,
        text: str,
        line: int,
        column: int,
    ) -> None:
        if future.done():
            return
        context = context_until(text, line, column)
        if len(context.strip()) < self._min_context:
            _settle(future, None)
            return

        self._in_flight += 1
        if self._in_flight == 1:
            self._set_busy(True)
        try:
            reply = await self._local_model.suggest(context, self._language().value)
        except Exception as exc:
            LOGGER.debug("Failed to get AI suggestions: %s", exc)
            reply = ""
        finally:
            self._in_flight -= 1
            if self._in_flight == 0:
                self._set_busy(False)

        if generation != self._generation:
            LOGGER.debug("Dropping completion for superseded request %d", generation)
            _settle(future, None)
            return
        if self._pending is future:
            self._pending = None
        reply = (reply or "").strip()
        _settle(future, Suggestion(text=reply, line=line, column=column) if reply else None)

    def _set_busy(self, value: bool) -> None:
        if self._on_busy is not None:
            self._on_busy(value)


def _settle(future: "asyncio.Future[Suggestion | None]", value: Suggestion | None) -> None:
    if not future.done():
        future.set_result(value)
