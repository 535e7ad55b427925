"""Local code execution."""

from .sandbox import (
    EXECUTION_ERROR_PREFIX,
    NO_OUTPUT_MESSAGE,
    TEST_RUNNER_ERROR,
    ExecutionResult,
    JavaScriptSandbox,
)

__all__ = [
    "EXECUTION_ERROR_PREFIX",
    "NO_OUTPUT_MESSAGE",
    "TEST_RUNNER_ERROR",
    "ExecutionResult",
    "JavaScriptSandbox",
]
