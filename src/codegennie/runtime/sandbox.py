"""Isolated JavaScript evaluation backed by an embedded V8 engine.

Every call builds a fresh V8 context. User code runs inside a function whose
``console`` and ``window`` parameters are objects owned by that call, so
captured output and generated test definitions come back as return values
instead of leaking through shared globals.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from py_mini_racer import JSEvalException, JSOOMException, JSTimeoutException, MiniRacer

from ..ai.ai_types import TestResult, TestStatus
from ..ai.errors import SandboxError

__all__ = [
    "ExecutionResult",
    "JavaScriptSandbox",
    "NO_OUTPUT_MESSAGE",
    "EXECUTION_ERROR_PREFIX",
    "TEST_RUNNER_ERROR",
]

LOGGER = logging.getLogger(__name__)

NO_OUTPUT_MESSAGE = "Code executed without errors and with no console output."
EXECUTION_ERROR_PREFIX = "Execution Error:"
TEST_RUNNER_ERROR = "Test Runner Error"

_PRELUDE = r"""
function __cgFormat(value) {
  return typeof value === "object" ? JSON.stringify(value, null, 2) : String(value);
}
function __cgJoin(args, format) {
  return Array.prototype.map.call(args, format).join(" ");
}
function __cgConsole(logs) {
  var log = function () { logs.push(__cgJoin(arguments, __cgFormat)); };
  return {
    log: log,
    info: log,
    debug: log,
    warn: function () { logs.push("WARN: " + __cgJoin(arguments, String)); },
    error: function () { logs.push("ERROR: " + __cgJoin(arguments, String)); }
  };
}
function __cgDescribe(error) {
  return error instanceof Error ? error.message : String(error);
}
"""

_EVALUATE_TEMPLATE = r"""
(function (source) {
  var logs = [];
  var console = __cgConsole(logs);
  try {
    new Function("console", "window", source)(console, {});
    return JSON.stringify({ logs: logs, error: null });
  } catch (error) {
    return JSON.stringify({ logs: logs, error: __cgDescribe(error) });
  }
})(%s)
"""

_RUN_TESTS_TEMPLATE = r"""
(function (source, testSource) {
  var logs = [];
  var console = __cgConsole(logs);
  var sandbox = {};
  var results = [];
  delete globalThis.generatedTests;
  try {
    new Function("console", "window", source + "\n\n" + testSource)(console, sandbox);
    var tests = sandbox.generatedTests !== undefined ? sandbox.generatedTests : globalThis.generatedTests;
    if (!Array.isArray(tests)) {
      throw new Error("Generated test suite ('generatedTests') is not available or not an array.");
    }
    for (var i = 0; i < tests.length; i++) {
      var test = tests[i] || {};
      try {
        test.fn();
        results.push({ name: String(test.name), status: "pass" });
      } catch (error) {
        results.push({ name: String(test.name), status: "fail", message: __cgDescribe(error) });
      }
    }
  } catch (error) {
    results.push({ name: "%s", status: "fail", message: __cgDescribe(error) });
  } finally {
    delete globalThis.generatedTests;
  }
  return JSON.stringify({ results: results, logs: logs });
})(%s, %s)
"""


@dataclass(slots=True, frozen=True)
class ExecutionResult:
    """Captured console lines plus the error message when evaluation threw."""

    logs: tuple[str, ...] = ()
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def render(self) -> str:
        """Return the text shown in the output pane."""

        if self.error is not None:
            return f"{EXECUTION_ERROR_PREFIX}\n{self.error}"
        if self.logs:
            return "\n".join(self.logs)
        return NO_OUTPUT_MESSAGE


class JavaScriptSandbox:
    """Evaluates buffers and generated test suites with time and memory limits."""

    def __init__(
        self,
        *,
        timeout_seconds: float | None = 5.0,
        max_memory: int | None = None,
        context_factory: Callable[[], MiniRacer] = MiniRacer,
    ) -> None:
        self._timeout_seconds = timeout_seconds if timeout_seconds and timeout_seconds > 0 else None
        self._max_memory = max_memory if max_memory and max_memory > 0 else None
        self._context_factory = context_factory

    def evaluate(self, source: str) -> ExecutionResult:
        """Run ``source`` and return its console output; never raises for user errors."""

        script = _EVALUATE_TEMPLATE % json.dumps(source)
        try:
            payload = self._run(script)
        except _EngineLimitError as exc:
            return ExecutionResult(error=str(exc))
        logs = tuple(str(line) for line in payload.get("logs") or ())
        error = payload.get("error")
        return ExecutionResult(logs=logs, error=None if error is None else str(error))

    def run_tests(self, source: str, test_code: str) -> list[TestResult]:
        """Evaluate ``source`` followed by ``test_code`` and invoke each generated test."""

        script = _RUN_TESTS_TEMPLATE % (TEST_RUNNER_ERROR, json.dumps(source), json.dumps(test_code))
        try:
            payload = self._run(script)
        except _EngineLimitError as exc:
            return [TestResult(name=TEST_RUNNER_ERROR, status=TestStatus.FAIL, message=str(exc))]
        results: list[TestResult] = []
        for entry in payload.get("results") or ():
            status = TestStatus.PASS if entry.get("status") == TestStatus.PASS.value else TestStatus.FAIL
            results.append(
                TestResult(name=str(entry.get("name", "")), status=status, message=entry.get("message"))
            )
        return results

    async def aevaluate(self, source: str) -> ExecutionResult:
        """Awaitable :meth:`evaluate`.

        The engine enforces its time limit only outside a running event loop,
        so evaluation happens on a worker thread.
        """

        return await asyncio.to_thread(self.evaluate, source)

    async def arun_tests(self, source: str, test_code: str) -> list[TestResult]:
        return await asyncio.to_thread(self.run_tests, source, test_code)

    def _run(self, script: str) -> Mapping[str, Any]:
        try:
            context = self._context_factory()
        except Exception as exc:
            raise SandboxError(message=f"JavaScript engine unavailable: {exc}") from exc
        try:
            if self._max_memory is not None:
                context.set_hard_memory_limit(self._max_memory)
            context.eval(_PRELUDE)
            raw = context.eval(script, timeout_sec=self._timeout_seconds)
        except JSTimeoutException as exc:
            LOGGER.debug("JavaScript evaluation timed out: %s", exc)
            raise _EngineLimitError(f"Execution timed out after {self._timeout_seconds:g}s.") from exc
        except JSOOMException as exc:
            LOGGER.debug("JavaScript evaluation ran out of memory: %s", exc)
            raise _EngineLimitError("Execution exceeded the sandbox memory limit.") from exc
        except JSEvalException as exc:
            raise _EngineLimitError(str(exc).strip() or exc.__class__.__name__) from exc
        finally:
            context.close()
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise SandboxError(message="JavaScript engine returned an unreadable result.") from exc
        if not isinstance(payload, Mapping):
            raise SandboxError(message="JavaScript engine returned an unexpected result.")
        return payload


class _EngineLimitError(Exception):
    """Engine-level failure (timeout, OOM, uncaught engine error) rendered as user-facing text."""
