"""Shared typing contracts for AI requests and their typed results."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Protocol

__all__ = [
    "DispatchAction",
    "Severity",
    "Issue",
    "TestStatus",
    "TestResult",
    "BackendTransport",
    "LocalModelProtocol",
]


class DispatchAction(str, Enum):
    """Request categories understood by the AI backend."""

    ANALYZE = "analyze"
    FIND_BUGS = "findBugs"
    GENERATE_TESTS = "generateTests"
    QUICK_FIX = "getQuickFix"
    FIX_ALL = "fixAllBugs"
    RUN_CODE = "runCode"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    @classmethod
    def coerce(cls, value: Any) -> "Severity":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.INFO


@dataclass(slots=True, frozen=True)
class Issue:
    """A reported defect anchored to a 1-indexed span; ``end_column`` is exclusive."""

    start_line: int
    start_column: int
    end_line: int
    end_column: int
    message: str
    severity: Severity = Severity.INFO

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Issue":
        """Build an issue from the backend's ``line/column/endLine/endColumn`` keys.

        Raises ``ValueError`` / ``TypeError`` when a coordinate is missing or not numeric.
        """

        start_line = _first_present(payload, "line", "startLine", "start_line")
        start_column = _first_present(payload, "column", "startColumn", "start_column")
        end_line = _first_present(payload, "endLine", "end_line", default=start_line)
        end_column = _first_present(payload, "endColumn", "end_column", default=start_column)
        return cls(
            start_line=int(start_line),
            start_column=int(start_column),
            end_line=int(end_line),
            end_column=int(end_column),
            message=str(payload.get("message", "")),
            severity=Severity.coerce(payload.get("severity", Severity.INFO.value)),
        )


_MISSING = object()


def _first_present(payload: Mapping[str, Any], *keys: str, default: Any = _MISSING) -> Any:
    for key in keys:
        value = payload.get(key)
        if value is not None:
            return value
    if default is _MISSING or default is None:
        raise ValueError(f"issue payload is missing '{keys[0]}'")
    return default


class TestStatus(str, Enum):
    __test__ = False

    PASS = "pass"
    FAIL = "fail"


@dataclass(slots=True, frozen=True)
class TestResult:
    """Outcome of one generated check."""

    __test__ = False

    name: str
    status: TestStatus
    message: str | None = None

    @property
    def passed(self) -> bool:
        return self.status is TestStatus.PASS


class BackendTransport(Protocol):
    """Carries one ``{action, prompt}`` request to the AI backend."""

    async def send(self, action: DispatchAction, prompt: str) -> Any:
        """Return the backend's ``result`` payload or raise a ``DispatchError``."""
        ...

    async def aclose(self) -> None:
        ...


class LocalModelProtocol(Protocol):
    """The local code-generation channel used for completion and comment-to-code."""

    async def suggest(self, context: str, language: str) -> str:
        ...

    async def generate_code(self, instruction: str, language: str) -> str:
        ...
