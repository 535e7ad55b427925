"""Per-key debounce timers on the asyncio event loop."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict

__all__ = ["DebounceScheduler", "DIAGNOSTICS_KEY", "COMPLETION_KEY"]

LOGGER = logging.getLogger(__name__)

DIAGNOSTICS_KEY = "diagnostics"
COMPLETION_KEY = "completion"


class DebounceScheduler:
    """Coalesces bursts of triggers into one delayed callback per key.

    Scheduling a key that already has a pending callback cancels it and
    restarts the delay from zero, so only the last call of a burst fires.
    Callbacks run on the loop thread; the handle leaves the table before the
    callback is invoked, so a callback may reschedule its own key.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._handles: Dict[str, asyncio.TimerHandle] = {}

    def schedule(self, key: str, delay_seconds: float, callback: Callable[[], None]) -> None:
        self.cancel(key)
        loop = self._loop or asyncio.get_running_loop()
        handle = loop.call_later(max(0.0, float(delay_seconds)), self._fire, key, callback)
        self._handles[key] = handle
        LOGGER.debug("Scheduled %s in %.2fs", key, delay_seconds)

    def cancel(self, key: str) -> bool:
        """Cancel the pending callback for ``key``; returns whether one existed."""

        handle = self._handles.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> None:
        for key in list(self._handles):
            self.cancel(key)

    def pending(self, key: str) -> bool:
        return key in self._handles

    def pending_keys(self) -> tuple[str, ...]:
        return tuple(self._handles)

    def _fire(self, key: str, callback: Callable[[], None]) -> None:
        self._handles.pop(key, None)
        try:
            callback()
        except Exception:
            LOGGER.exception("Debounced callback for %s failed", key)
