"""AI request plumbing: prompts, dispatcher, transports and the local model channel."""

from .ai_types import DispatchAction, Issue, Severity, TestResult, TestStatus
from .client import AIClient, ClientSettings
from .dispatcher import RequestDispatcher
from .local_model import LocalModelClient
from .transports import HttpBackendTransport, ModelBackendTransport

__all__ = [
    "AIClient",
    "ClientSettings",
    "DispatchAction",
    "HttpBackendTransport",
    "Issue",
    "LocalModelClient",
    "ModelBackendTransport",
    "RequestDispatcher",
    "Severity",
    "TestResult",
    "TestStatus",
]
