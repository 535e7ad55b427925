"""Session orchestration: debounce timers, diagnostics, completion and the orchestrator."""

from .completion import CompletionProvider, Suggestion
from .diagnostics import DiagnosticsReconciler, Marker, MarkerSeverity
from .events import (
    BufferChanged,
    ErrorRaised,
    Event,
    EventBus,
    FlagChanged,
    IssuesReplaced,
    LanguageChanged,
    OutputChanged,
)
from .orchestrator import SessionOrchestrator
from .scheduler import COMPLETION_KEY, DIAGNOSTICS_KEY, DebounceScheduler
from .state import OperationFlags, SessionOutputs

__all__ = [
    "BufferChanged",
    "COMPLETION_KEY",
    "CompletionProvider",
    "DIAGNOSTICS_KEY",
    "DebounceScheduler",
    "DiagnosticsReconciler",
    "ErrorRaised",
    "Event",
    "EventBus",
    "FlagChanged",
    "IssuesReplaced",
    "LanguageChanged",
    "Marker",
    "MarkerSeverity",
    "OperationFlags",
    "OutputChanged",
    "SessionOrchestrator",
    "SessionOutputs",
    "Suggestion",
]
