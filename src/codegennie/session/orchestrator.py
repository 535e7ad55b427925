"""Session orchestrator domain service.

Owns the editor buffer, the selected language, the operation flags and the
output fields, and exposes every user-facing action. Results of AI requests
are merged back only while the buffer snapshot (and the session epoch) they
were computed against is still current; every state change is published on
the event bus.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Sequence

from ..ai.ai_types import DispatchAction, Issue, LocalModelProtocol, Severity, TestResult, TestStatus
from ..ai.dispatcher import RequestDispatcher
from ..ai.errors import LocalModelError, StaleResultError
from ..ai.prompts import ACTIONS, get_action
from ..editor.document_model import BufferSnapshot, DocumentBuffer
from ..editor.languages import Language
from ..editor.line_edits import LineRangeError, extract_comment_prompt, insert_line, replace_line_range, slice_lines
from ..runtime.sandbox import TEST_RUNNER_ERROR, JavaScriptSandbox
from ..services.settings import Settings
from .completion import CompletionProvider, Suggestion
from .diagnostics import DiagnosticsReconciler, Marker
from .events import (
    BufferChanged,
    ErrorRaised,
    EventBus,
    FlagChanged,
    IssuesReplaced,
    LanguageChanged,
    OutputChanged,
)
from .scheduler import DIAGNOSTICS_KEY, DebounceScheduler
from .state import NO_BUGS_MESSAGE, RUN_PLACEHOLDER, TESTS_GENERATED_MESSAGE, OperationFlags, SessionOutputs

__all__ = ["SessionOrchestrator", "AUTOFIX_START", "AUTOFIX_NO_BUGS", "AUTOFIX_FIXED"]

LOGGER = logging.getLogger(__name__)

AUTOFIX_START = "Starting Auto-Fix process..."
AUTOFIX_NO_BUGS = "No bugs found."
AUTOFIX_FOUND = "Found {count} bugs. Asking AI to fix them..."
AUTOFIX_FIXED = "AI has fixed the code. Now running it..."
EXECUTION_FAILED_PREFIX = "Execution failed:"
_BUFFER_CHANGED = "The code changed while the AI was working; the result was discarded."
_QUICK_FIX_SEVERITIES = (Severity.ERROR, Severity.WARNING)


class SessionOrchestrator:
    """Top-level state machine of one editing session.

    Explicit actions (``trigger_action``, ``run_code``, ``apply_quick_fix``,
    ``auto_fix_all``, ``generate_from_comment``) report failures in
    ``outputs.error`` and never raise. Live diagnostics and completions fail
    silently. Each action category has its own busy flag; a second call of
    the same category while the flag is set is ignored.
    """

    def __init__(
        self,
        dispatcher: RequestDispatcher,
        *,
        local_model: LocalModelProtocol | None = None,
        sandbox: JavaScriptSandbox | None = None,
        settings: Settings | None = None,
        event_bus: EventBus | None = None,
        scheduler: DebounceScheduler | None = None,
        language: Language | str | None = None,
        owns_clients: bool = True,
    ) -> None:
        """Initialize the session.

        Args:
            dispatcher: Dispatcher for the categorized AI requests.
            local_model: Local code-generation channel; completion and
                comment-to-code are unavailable without it.
            sandbox: JavaScript sandbox; built from ``settings`` when omitted.
            settings: Runtime settings; defaults when omitted.
            event_bus: Bus the state changes are published on.
            scheduler: Debounce timer table shared with the completion provider.
            language: Initial language; ``settings.default_language`` when omitted.
            owns_clients: Whether :meth:`aclose` closes the dispatcher and local model.
        """
        self._settings = settings or Settings()
        self._dispatcher = dispatcher
        self._local_model = local_model
        self._sandbox = sandbox or JavaScriptSandbox(
            timeout_seconds=self._settings.execution_timeout,
            max_memory=self._settings.execution_max_memory,
        )
        self._bus = event_bus or EventBus()
        self._scheduler = scheduler or DebounceScheduler()
        self._owns_clients = owns_clients

        initial = Language.parse(language or self._settings.default_language)
        self._buffer = DocumentBuffer.for_language(initial)
        self._reconciler = DiagnosticsReconciler()
        self._flags = OperationFlags()
        self._outputs = SessionOutputs()
        self._selected_action = ACTIONS[0].id
        self._epoch = 0
        self._tasks: set[asyncio.Task[Any]] = set()
        self._completion: CompletionProvider | None = None
        if local_model is not None:
            self._completion = CompletionProvider(
                local_model,
                self._scheduler,
                language=lambda: self._buffer.language,
                debounce_seconds=self._settings.completion_debounce,
                min_context=self._settings.completion_min_context,
                on_busy=lambda busy: self._set_flag("suggesting", busy),
            )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def events(self) -> EventBus:
        return self._bus

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def buffer(self) -> DocumentBuffer:
        return self._buffer

    @property
    def text(self) -> str:
        return self._buffer.text

    @property
    def language(self) -> Language:
        return self._buffer.language

    @property
    def flags(self) -> OperationFlags:
        return self._flags

    @property
    def outputs(self) -> SessionOutputs:
        return self._outputs

    @property
    def issues(self) -> tuple[Issue, ...]:
        return self._reconciler.issues

    @property
    def markers(self) -> tuple[Marker, ...]:
        return self._reconciler.markers

    @property
    def selected_action(self) -> str:
        return self._selected_action

    @property
    def scheduler(self) -> DebounceScheduler:
        return self._scheduler

    @property
    def completion(self) -> CompletionProvider | None:
        return self._completion

    # ------------------------------------------------------------------
    # Buffer and language
    # ------------------------------------------------------------------

    def change_language(self, language: Language | str) -> None:
        """Load the starter program of ``language`` and reset all derived state.

        Results of requests still in flight are discarded when they arrive.
        """
        new_language = Language.parse(language)
        self._epoch += 1
        self._scheduler.cancel_all()
        if self._completion is not None:
            self._completion.cancel()
        for name in self._flags.reset():
            self._bus.publish(FlagChanged(name=name, value=False))

        version = self._buffer.reset(new_language)
        self._selected_action = ACTIONS[0].id
        self._replace_issues((), None)
        self._set_output("ai_output", "")
        self._set_output("code_output", RUN_PLACEHOLDER)
        self._set_output("test_code", "")
        self._set_output("test_results", [])
        self._set_error(None)

        LOGGER.debug("Language changed to %s (epoch %d)", new_language.value, self._epoch)
        self._bus.publish(LanguageChanged(language=new_language.value))
        self._bus.publish(BufferChanged(text=self._buffer.text, version_id=version, source="language"))

    def edit_buffer(self, text: str | None) -> int:
        """Replace the buffer with the user's text and re-arm the diagnostics timer."""
        version = self._apply_buffer(text or "", source="edit")
        self._scheduler.schedule(DIAGNOSTICS_KEY, self._settings.diagnostics_debounce, self._on_diagnostics_due)
        return version

    def load_text(self, text: str, language: Language | str | None = None) -> int:
        """Open ``text`` (optionally switching language first) without scheduling a scan."""
        if language is not None and Language.parse(language) is not self._buffer.language:
            self.change_language(language)
        return self._apply_buffer(text or "", source="open")

    def request_completion(self, line: int, column: int) -> "asyncio.Future[Suggestion | None]":
        """Ask for an inline suggestion at the 1-indexed cursor position."""
        if self._completion is None:
            future: asyncio.Future[Suggestion | None] = asyncio.get_running_loop().create_future()
            future.set_result(None)
            return future
        return self._completion.request(self._buffer.text, line, column)

    def quick_fix_candidates(self, line: int | None = None) -> list[Issue]:
        """Issues offered as quick fixes: errors and warnings, optionally on ``line``."""
        return [
            issue
            for issue in self._reconciler.issues
            if issue.severity in _QUICK_FIX_SEVERITIES
            and (line is None or issue.start_line <= line <= issue.end_line)
        ]

    # ------------------------------------------------------------------
    # Live diagnostics
    # ------------------------------------------------------------------

    async def run_live_diagnostics(self, snapshot: BufferSnapshot | None = None) -> None:
        """Scan ``snapshot`` for bugs and replace the issue set if it is still current."""
        snapshot = snapshot or self._buffer.snapshot()
        if snapshot.is_blank():
            self._replace_issues((), snapshot.version_id)
            return

        epoch = self._epoch
        self._set_flag("bug_scanning", True)
        self._set_output("ai_output", "")
        try:
            prompt = _bugs_prompt(snapshot)
            issues = await self._dispatcher.find_bugs(prompt)
        except Exception as exc:
            LOGGER.debug("Live analysis failed: %s", exc)
            return
        finally:
            self._release("bug_scanning", epoch)

        if not self._is_current(snapshot, epoch):
            LOGGER.debug("Discarding diagnostics for stale version %d", snapshot.version_id)
            return
        self._replace_issues(issues, snapshot.version_id)

    def _on_diagnostics_due(self) -> None:
        self._spawn(self.run_live_diagnostics(self._buffer.snapshot()))

    # ------------------------------------------------------------------
    # Explicit actions
    # ------------------------------------------------------------------

    async def trigger_action(self, action_id: str) -> None:
        """Run one of the sidebar actions (explain, refactor, docs, bugs, tests)."""
        if self._flags.loading:
            LOGGER.debug("Ignoring %s: an action is already running", action_id)
            return
        action = get_action(action_id)
        snapshot = self._buffer.snapshot()
        if action is None:
            LOGGER.warning("Unknown action: %s", action_id)
            return
        if not snapshot.text:
            return

        epoch = self._epoch
        self._selected_action = action.id
        self._set_flag("loading", True)
        self._set_error(None)
        self._set_output("ai_output", "")
        self._replace_issues((), None)
        self._set_output("test_code", "")
        self._set_output("test_results", [])

        try:
            prompt = action.prompt(snapshot.text, snapshot.language)
            if action.dispatch is DispatchAction.FIND_BUGS:
                issues = await self._dispatcher.find_bugs(prompt)
                if self._epoch != epoch:
                    return
                if self._buffer.is_current(snapshot):
                    self._replace_issues(issues, snapshot.version_id)
                else:
                    LOGGER.debug("Buffer changed during bug scan; markers not applied")
                self._set_output("ai_output", "" if issues else NO_BUGS_MESSAGE)
            elif action.dispatch is DispatchAction.GENERATE_TESTS:
                test_code = await self._dispatcher.generate_tests(prompt)
                if self._epoch != epoch:
                    return
                self._set_output("test_code", test_code)
                self._set_output("ai_output", TESTS_GENERATED_MESSAGE)
            else:
                result = await self._dispatcher.analyze(prompt)
                if self._epoch != epoch:
                    return
                self._set_output("ai_output", result)
        except Exception as exc:
            if self._epoch == epoch:
                LOGGER.warning("Action %s failed: %s", action.id, exc)
                self._fail(str(exc))
        finally:
            self._release("loading", epoch)

    async def run_code(self) -> None:
        """Execute the buffer: locally for JavaScript, through the model otherwise."""
        if self._flags.executing:
            LOGGER.debug("Ignoring run request: code is already executing")
            return
        snapshot = self._buffer.snapshot()
        epoch = self._epoch
        if snapshot.language.supports_local_execution:
            await self._run_locally(snapshot, epoch)
            return

        self._set_flag("executing", True)
        self._set_output("code_output", "")
        try:
            output = await self._dispatcher.run_code(snapshot.text, snapshot.language)
        except Exception as exc:
            LOGGER.warning("Remote execution failed: %s", exc)
            output = f"{EXECUTION_FAILED_PREFIX}\n{exc}"
        finally:
            self._release("executing", epoch)
        if self._epoch == epoch:
            self._set_output("code_output", output)

    async def _run_locally(self, snapshot: BufferSnapshot, epoch: int) -> None:
        self._set_flag("executing", True)
        try:
            result = await self._sandbox.aevaluate(snapshot.text)
            output = result.render()
        except Exception as exc:
            LOGGER.warning("Sandbox failure: %s", exc)
            output = f"{EXECUTION_FAILED_PREFIX}\n{exc}"
        finally:
            self._release("executing", epoch)
        if self._epoch == epoch:
            self._set_output("code_output", output)

    async def run_tests(self) -> list[TestResult]:
        """Run the generated JavaScript test suite against the current buffer."""
        test_code = self._outputs.test_code
        if not test_code or self._buffer.language is not Language.JAVASCRIPT:
            return []
        if self._flags.test_running:
            LOGGER.debug("Ignoring test run: tests are already running")
            return []
        epoch = self._epoch
        self._set_flag("test_running", True)
        try:
            results = await self._sandbox.arun_tests(self._buffer.text, test_code)
        except Exception as exc:
            LOGGER.warning("Test run failed: %s", exc)
            results = [TestResult(name=TEST_RUNNER_ERROR, status=TestStatus.FAIL, message=str(exc))]
        finally:
            self._release("test_running", epoch)
        if self._epoch != epoch:
            return []
        self._set_output("test_results", results)
        return results

    async def generate_from_comment(self, prompt: str, line_number: int) -> None:
        """Generate code for ``prompt`` and insert it as a new line at index ``line_number``."""
        if self._flags.generating:
            LOGGER.debug("Ignoring generation request: generation already running")
            return

        epoch = self._epoch
        language = self._buffer.language
        self._set_flag("generating", True)
        self._set_error(None)
        try:
            if self._local_model is None:
                raise LocalModelError(message="No local model is configured for code generation.")
            generated = await self._local_model.generate_code(prompt, language.value)
            if self._epoch != epoch:
                LOGGER.debug("Dropping generated code: language changed")
                return
            try:
                new_text = insert_line(self._buffer.text, line_number, generated)
            except LineRangeError as exc:
                LOGGER.info("Dropping generated code: %s", exc)
                return
            self._apply_buffer(new_text, source="generate")
            self._scheduler.schedule(
                DIAGNOSTICS_KEY, self._settings.diagnostics_debounce, self._on_diagnostics_due
            )
        except Exception as exc:
            if self._epoch == epoch:
                LOGGER.warning("Code generation failed: %s", exc)
                self._fail(str(exc))
        finally:
            self._release("generating", epoch)

    async def generate_from_comment_line(self, line_number: int) -> bool:
        """Generate code from the comment on 1-indexed ``line_number``.

        Returns ``False`` without doing anything when that line is not a
        comment with an instruction in it.
        """
        if self._flags.generating:
            return False
        lines = self._buffer.snapshot().lines
        if line_number < 1 or line_number > len(lines):
            return False
        prompt = extract_comment_prompt(lines[line_number - 1])
        if prompt is None:
            return False
        await self.generate_from_comment(prompt, line_number)
        return True

    async def apply_quick_fix(self, issue: Issue) -> None:
        """Replace the lines of ``issue`` with the model's fix, then rescan."""
        if self._flags.fixing:
            LOGGER.debug("Ignoring quick fix: a fix is already running")
            return

        epoch = self._epoch
        snapshot = self._buffer.snapshot()
        self._set_flag("fixing", True)
        self._set_error(None)
        try:
            snippet = slice_lines(snapshot.text, issue.start_line, issue.end_line)
            fixed = await self._dispatcher.quick_fix(snippet, issue, snapshot.language)
            if self._epoch != epoch:
                return
            if not self._buffer.is_current(snapshot):
                raise StaleResultError(message=_BUFFER_CHANGED)
            new_text = replace_line_range(snapshot.text, issue.start_line, issue.end_line, fixed)
            self._apply_buffer(new_text, source="quick_fix")
            self._scheduler.cancel(DIAGNOSTICS_KEY)
            await self.run_live_diagnostics(self._buffer.snapshot())
        except Exception as exc:
            if self._epoch == epoch:
                LOGGER.warning("Quick fix failed: %s", exc)
                self._set_error(str(exc))
        finally:
            self._release("fixing", epoch)

    async def auto_fix_all(self) -> None:
        """Find every bug, have the model fix them all, then run the result."""
        if self._flags.fixing:
            LOGGER.debug("Ignoring auto-fix: a fix is already running")
            return

        epoch = self._epoch
        snapshot = self._buffer.snapshot()
        self._set_flag("fixing", True)
        self._set_error(None)
        self._set_output("ai_output", AUTOFIX_START)
        try:
            issues = await self._dispatcher.find_bugs(_bugs_prompt(snapshot))
            if self._epoch != epoch:
                return
            if not issues:
                self._set_output("ai_output", AUTOFIX_NO_BUGS)
                await self.run_code()
                return

            self._set_output("ai_output", AUTOFIX_FOUND.format(count=len(issues)))
            fixed = await self._dispatcher.fix_all(snapshot.text, issues, snapshot.language)
            if self._epoch != epoch:
                return
            if not self._buffer.is_current(snapshot):
                raise StaleResultError(message=_BUFFER_CHANGED)
            self._apply_buffer(fixed, source="fix_all")
            self._scheduler.cancel(DIAGNOSTICS_KEY)
            self._replace_issues((), None)
            self._set_output("ai_output", AUTOFIX_FIXED)

            await asyncio.sleep(self._settings.autofix_run_delay)
            if self._epoch == epoch:
                await self.run_code()
        except Exception as exc:
            if self._epoch == epoch:
                LOGGER.warning("Auto-fix failed: %s", exc)
                self._fail(str(exc))
        finally:
            self._release("fixing", epoch)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def wait_idle(self) -> None:
        """Wait until every background task spawned by a timer has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        self._scheduler.cancel_all()
        if self._completion is not None:
            await self._completion.aclose()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        if self._owns_clients:
            await self._dispatcher.aclose()
            aclose = getattr(self._local_model, "aclose", None)
            if aclose is not None:
                await aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _spawn(self, coro: Awaitable[Any]) -> asyncio.Task[Any]:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("Background task failed", exc_info=exc)

    def _is_current(self, snapshot: BufferSnapshot, epoch: int) -> bool:
        return self._epoch == epoch and self._buffer.is_current(snapshot)

    def _apply_buffer(self, text: str, *, source: str) -> int:
        version = self._buffer.update_text(text)
        self._bus.publish(BufferChanged(text=text, version_id=version, source=source))
        return version

    def _replace_issues(self, issues: Sequence[Issue], version_id: int | None) -> None:
        markers = self._reconciler.replace(issues, version_id)
        self._bus.publish(
            IssuesReplaced(issues=self._reconciler.issues, markers=markers, version_id=version_id)
        )

    def _set_flag(self, name: str, value: bool) -> None:
        if getattr(self._flags, name) == value:
            return
        setattr(self._flags, name, value)
        self._bus.publish(FlagChanged(name=name, value=value))

    def _release(self, name: str, epoch: int) -> None:
        # A language switch already cleared the flag; a newer action may own it now.
        if self._epoch == epoch:
            self._set_flag(name, False)

    def _set_output(self, field: str, value: Any) -> None:
        setattr(self._outputs, field, value)
        self._bus.publish(OutputChanged(field=field, value=value))

    def _set_error(self, message: str | None) -> None:
        self._outputs.error = message
        if message is not None:
            self._bus.publish(ErrorRaised(message=message))

    def _fail(self, message: str) -> None:
        self._set_error(message)
        self._set_output("ai_output", "")


def _bugs_prompt(snapshot: BufferSnapshot) -> str:
    action = get_action("bugs")
    assert action is not None
    return action.prompt(snapshot.text, snapshot.language)
