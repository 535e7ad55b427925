"""Command-line front end for a CodeGennie session."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, get_args, get_origin, get_type_hints

from .ai.ai_types import BackendTransport
from .ai.client import AIClient, ClientSettings
from .ai.dispatcher import RequestDispatcher
from .ai.local_model import LocalModelClient
from .ai.prompts import ACTION_IDS
from .ai.transports import HttpBackendTransport, ModelBackendTransport
from .editor.languages import Language
from .runtime.sandbox import JavaScriptSandbox
from .services.settings import BACKEND_CHOICES, Settings, SettingsStore, redact_secret
from .session.orchestrator import SessionOrchestrator
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_LOGGER = logging.getLogger(__name__)

COMMANDS: tuple[str, ...] = ("run", *ACTION_IDS, "fix", "autofix", "generate")


def configure_logging(debug: bool = False, *, secrets: Sequence[str] = (), force: bool = False) -> None:
    """Configure file logging; mirror to stderr only when debugging."""

    level = logging_utils.resolve_level(debug)
    logging_utils.setup_logging(level, console=debug, secrets=secrets, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        settings = active_store.load(overrides=overrides)
    except (OSError, ValueError) as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        settings = Settings()
    return settings


def build_transport(settings: Settings) -> BackendTransport:
    """Return the backend transport selected by ``settings.backend``."""

    if settings.backend == "model":
        return ModelBackendTransport(AIClient(ClientSettings.from_settings(settings)))
    return HttpBackendTransport(
        settings.backend_url,
        timeout=settings.request_timeout,
        max_retries=settings.max_retries,
        retry_min_seconds=settings.retry_min_seconds,
        retry_max_seconds=settings.retry_max_seconds,
        headers=settings.default_headers,
    )


def build_session(settings: Settings, language: Language | None = None) -> SessionOrchestrator:
    """Wire the dispatcher, local model channel and sandbox into a session."""

    local_model = LocalModelClient(
        settings.local_model_url,
        settings.local_model,
        timeout=settings.request_timeout,
        completion_temperature=settings.completion_temperature,
    )
    sandbox = JavaScriptSandbox(
        timeout_seconds=settings.execution_timeout,
        max_memory=settings.execution_max_memory,
    )
    return SessionOrchestrator(
        RequestDispatcher(build_transport(settings)),
        local_model=local_model,
        sandbox=sandbox,
        settings=settings,
        language=language,
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the `codegennie` console script."""

    parser = _build_parser()
    args = parser.parse_args(argv)

    debug = args.debug or _env_flag("CODEGENNIE_DEBUG", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("CODEGENNIE_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return 2
    if args.backend:
        cli_overrides["backend"] = args.backend

    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)
    if settings.api_key or settings.debug_logging:
        debug = debug or settings.debug_logging
        configure_logging(debug, secrets=(settings.api_key,), force=True)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return 0

    if args.command is None:
        parser.print_usage(sys.stderr)
        print("codegennie: error: a command is required", file=sys.stderr)
        return 2

    try:
        language = _resolve_language(args.language, args.file)
        text = Path(args.file).read_text(encoding="utf-8") if args.file else None
    except (OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    session = build_session(settings, language)
    return asyncio.run(_run_command(session, args, text))


async def _run_command(session: SessionOrchestrator, args: argparse.Namespace, text: str | None) -> int:
    out = sys.stdout
    try:
        if text is not None:
            session.load_text(text)
        await _execute(session, args.command, args.line, out)
        if args.write and args.file and session.outputs.error is None:
            Path(args.file).write_text(session.text, encoding="utf-8")
            _LOGGER.info("Wrote %s", args.file)
    finally:
        await session.aclose()

    if session.outputs.error:
        print(f"Error: {session.outputs.error}", file=sys.stderr)
        return 1
    return 0


async def _execute(session: SessionOrchestrator, command: str, line: int | None, out: TextIO) -> None:
    if command == "run":
        await session.run_code()
        _emit(out, session.outputs.code_output)
    elif command in ("explain", "refactor", "docs"):
        await session.trigger_action(command)
        _emit(out, session.outputs.ai_output)
    elif command == "bugs":
        await session.trigger_action(command)
        for issue in session.issues:
            _emit(out, f"L{issue.start_line}:{issue.start_column} [{issue.severity.value}] {issue.message}")
        _emit(out, session.outputs.ai_output)
    elif command == "tests":
        await session.trigger_action(command)
        _emit(out, session.outputs.test_code)
        for result in await session.run_tests():
            suffix = f": {result.message}" if result.message else ""
            _emit(out, f"{'PASS' if result.passed else 'FAIL'} {result.name}{suffix}")
    elif command == "fix":
        await session.run_live_diagnostics()
        candidates = session.quick_fix_candidates(line)
        if not candidates:
            where = f" on line {line}" if line is not None else ""
            _emit(out, f"No fixable issues found{where}.")
            return
        await session.apply_quick_fix(candidates[0])
        _emit(out, session.text)
    elif command == "autofix":
        await session.auto_fix_all()
        _emit(out, session.outputs.ai_output)
        _emit(out, session.text)
        _emit(out, session.outputs.code_output)
    elif command == "generate":
        if line is None:
            session.outputs.error = "generate requires --line N pointing at a comment line."
            return
        if not await session.generate_from_comment_line(line):
            session.outputs.error = f"Line {line} is not a comment with an instruction."
            return
        _emit(out, session.text)


def _emit(out: TextIO, text: str | None) -> None:
    if text:
        out.write(text.rstrip("\n") + "\n")


def _resolve_language(name: str | None, path: str | None) -> Language | None:
    if name:
        return Language.parse(name)
    if path:
        return Language.from_path(path)
    return None


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codegennie",
        description="Explain, refactor, document, debug, test and run code with an AI backend.",
    )
    parser.add_argument(
        "--settings",
        dest="settings_path",
        metavar="PATH",
        help="Override the default ~/.codegennie/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this run (repeatable).",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument("--backend", choices=BACKEND_CHOICES, help="Where AI requests are sent.")
    parser.add_argument("--language", help="Source language; inferred from FILE when omitted.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging on stderr.")
    parser.add_argument("--line", type=int, metavar="N", help="Target line for 'fix' and 'generate'.")
    parser.add_argument("--write", action="store_true", help="Write the resulting buffer back to FILE.")
    parser.add_argument("command", nargs="?", choices=COMMANDS, help="Action to run.")
    parser.add_argument("file", nargs="?", help="Source file; the language starter program when omitted.")
    return parser


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        overrides[key] = _coerce_value(type_hints.get(key, fields[key].type), raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    target = _resolve_annotation(annotation)

    if target is str or target is Any:
        return raw_value
    if target is bool:
        return _parse_bool(raw_value)
    if target is int:
        return int(raw_value, 10)
    if target is float:
        return float(raw_value)
    if raw_value.lower() in {"none", "null"}:
        return None
    if target is dict:
        try:
            value = json.loads(raw_value or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Dict overrides must be valid JSON objects") from exc
        if not isinstance(value, dict):
            raise ValueError("Dict overrides must be valid JSON objects")
        return value
    return raw_value


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin is dict:
        return origin
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    return args[0] if args else origin


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    payload = asdict(settings)
    payload["api_key"] = redact_secret(settings.api_key)
    metadata = {
        "path": str(store.path),
        "secret_backend": store.vault.name,
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": sorted(name for name in os.environ if name.startswith("CODEGENNIE_")),
        "log_path": str(logging_utils.get_log_path() or ""),
    }
    json.dump({"settings": payload, "meta": metadata}, destination, indent=2)
    destination.write("\n")
