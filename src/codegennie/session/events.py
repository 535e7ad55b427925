"""Session events and the bus that carries them to a UI.

The orchestrator never talks to widgets directly; it publishes the events
below and a front end (the CLI, a web view, tests) subscribes to the ones it
renders.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, DefaultDict, Generic, TypeVar
from weakref import WeakMethod

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all session events."""


@dataclass(slots=True)
class BufferChanged(Event):
    """The buffer text changed.

    ``source`` is one of ``open``, ``edit``, ``language``, ``quick_fix``,
    ``fix_all`` or ``generate``.
    """

    text: str
    version_id: int
    source: str


@dataclass(slots=True)
class LanguageChanged(Event):
    language: str


@dataclass(slots=True)
class IssuesReplaced(Event):
    """The issue set was swapped wholesale (possibly for an empty one)."""

    issues: tuple[Any, ...]
    markers: tuple[Any, ...]
    version_id: int | None


@dataclass(slots=True)
class OutputChanged(Event):
    """One of the output fields (``ai_output``, ``code_output``, ``test_code``, ``test_results``) changed."""

    field: str
    value: Any


@dataclass(slots=True)
class FlagChanged(Event):
    name: str
    value: bool


@dataclass(slots=True)
class ErrorRaised(Event):
    """An explicit action failed; ``message`` is what the error banner shows."""

    message: str


_QUIET_EVENT_TYPES: set[type] = {FlagChanged}


class EventBus(Generic[E]):
    """A typed publish-subscribe bus.

    Bound-method handlers are held through weak references so that a
    discarded view unsubscribes itself. Not thread-safe: publish from the
    event loop thread only.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Register ``handler`` for events of exactly ``event_type``."""

        self._handlers[event_type].append(_HandlerRef.create(handler))
        logger.debug("Subscribed handler %s to event type %s", _handler_name(handler), event_type.__name__)

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler``; unknown handlers are ignored."""

        handlers = self._handlers.get(event_type)
        if handlers is None:
            return
        for index, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(index)
                return

    def publish(self, event: E) -> None:
        """Invoke every handler in registration order.

        A handler that raises is logged; the remaining handlers still run.
        """

        event_type = type(event)
        handlers = self._handlers.get(event_type)
        if not handlers:
            return
        if event_type not in _QUIET_EVENT_TYPES:
            logger.debug("Publishing %s to %d handler(s)", event_type.__name__, len(handlers))

        dead_indices: list[int] = []
        for index, handler_ref in enumerate(list(handlers)):
            handler = handler_ref.resolve()
            if handler is None:
                dead_indices.append(index)
                continue
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s raised exception for event %s",
                    _handler_name(handler),
                    event_type.__name__,
                )
        for index in reversed(dead_indices):
            handlers.pop(index)

    def clear(self) -> None:
        self._handlers.clear()

    def handler_count(self, event_type: type[E] | None = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    """Weak reference for bound methods, strong reference for everything else."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: Any, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> "_HandlerRef":
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref
        return self._ref()

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        return resolved is not None and resolved == handler


def _handler_name(handler: Handler) -> str:
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        return f"{type(handler.__self__).__name__}.{handler.__func__.__name__}"
    return getattr(handler, "__name__", repr(handler))


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "BufferChanged",
    "LanguageChanged",
    "IssuesReplaced",
    "OutputChanged",
    "FlagChanged",
    "ErrorRaised",
]
