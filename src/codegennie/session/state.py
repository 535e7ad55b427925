"""Session state models: operation flags and output fields.

These dataclasses hold the observable state of a session. The orchestrator
mutates them and publishes the change through the event bus.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any

from ..ai.ai_types import TestResult

__all__ = [
    "OperationFlags",
    "SessionOutputs",
    "RUN_PLACEHOLDER",
    "INITIAL_RUN_PLACEHOLDER",
    "NO_BUGS_MESSAGE",
    "TESTS_GENERATED_MESSAGE",
]

INITIAL_RUN_PLACEHOLDER = 'Click "Run Code" to see the output here.'
RUN_PLACEHOLDER = 'Click "Run" to see the output here.'
NO_BUGS_MESSAGE = "No bugs found! The code appears to be robust."
TESTS_GENERATED_MESSAGE = (
    "### Tests Generated\n\n"
    "For JavaScript, you can click 'Run Tests'. For other languages, copy the generated "
    "test code into your local test environment."
)


@dataclass(slots=True)
class OperationFlags:
    """Busy flags, one per action category.

    Attributes:
        loading: An explicit sidebar action is in flight.
        bug_scanning: A live diagnostics scan is in flight.
        fixing: A quick fix or auto-fix is in flight.
        generating: Comment-to-code generation is in flight.
        executing: The buffer is being run.
        test_running: Generated tests are being run.
        suggesting: An inline completion request is in flight.
    """

    loading: bool = False
    bug_scanning: bool = False
    fixing: bool = False
    generating: bool = False
    executing: bool = False
    test_running: bool = False
    suggesting: bool = False

    @property
    def locked(self) -> bool:
        """True while any action that should disable the action buttons runs."""
        return self.loading or self.generating or self.fixing or self.executing

    def as_dict(self) -> dict[str, bool]:
        return {item.name: getattr(self, item.name) for item in fields(self)}

    def reset(self) -> list[str]:
        """Clear every flag and return the names that were set."""
        raised = [name for name, value in self.as_dict().items() if value]
        for name in raised:
            setattr(self, name, False)
        return raised


@dataclass(slots=True)
class SessionOutputs:
    """Artifacts produced by the most recent actions."""

    ai_output: str = ""
    code_output: str = INITIAL_RUN_PLACEHOLDER
    test_code: str = ""
    test_results: list[TestResult] = field(default_factory=list)
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {item.name: getattr(self, item.name) for item in fields(self)}
