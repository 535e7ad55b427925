"""Error taxonomy for dispatch, local model and sandbox failures.

``str(error)`` is always the bare human-readable message so that callers can
show it verbatim; the machine-readable ``error_code`` travels in
:meth:`CodeGennieError.to_dict`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class ErrorCode:
    """Constants for error codes attached to failures."""

    TRANSPORT = "transport_error"
    BACKEND = "backend_error"
    MALFORMED_PAYLOAD = "malformed_payload"
    LOCAL_MODEL = "local_model_error"
    SANDBOX = "sandbox_error"
    STALE_RESULT = "stale_result"


@dataclass
class CodeGennieError(Exception):
    """Base class for all errors surfaced by the assistant."""

    message: str
    error_code: str = "internal_error"
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"error": self.error_code, "message": self.message}
        if self.details:
            result["details"] = dict(self.details)
        return result


@dataclass
class DispatchError(CodeGennieError):
    """A categorized AI request did not produce a usable result."""

    action: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.action:
            result["action"] = self.action
        return result


@dataclass
class TransportError(DispatchError):
    """The backend could not be reached (connection refused, timeout, ...)."""

    error_code: str = field(default=ErrorCode.TRANSPORT)


@dataclass
class BackendError(DispatchError):
    """The backend answered with a non-2xx status and an error message."""

    error_code: str = field(default=ErrorCode.BACKEND)
    status_code: int = 500

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["status_code"] = self.status_code
        return result


@dataclass
class MalformedPayloadError(DispatchError):
    """The backend answered successfully but the payload has the wrong shape."""

    error_code: str = field(default=ErrorCode.MALFORMED_PAYLOAD)


@dataclass
class StaleResultError(CodeGennieError):
    """A result arrived for a buffer snapshot that no longer exists."""

    error_code: str = field(default=ErrorCode.STALE_RESULT)


@dataclass
class LocalModelError(CodeGennieError):
    """The local code-generation channel failed."""

    error_code: str = field(default=ErrorCode.LOCAL_MODEL)


@dataclass
class SandboxError(CodeGennieError):
    """The JavaScript engine could not be started or crashed outside user code."""

    error_code: str = field(default=ErrorCode.SANDBOX)


__all__ = [
    "ErrorCode",
    "CodeGennieError",
    "DispatchError",
    "TransportError",
    "BackendError",
    "MalformedPayloadError",
    "StaleResultError",
    "LocalModelError",
    "SandboxError",
]
