"""Tests for the command-line front end."""

from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

from codegennie import app
from codegennie.ai.ai_types import DispatchAction
from codegennie.ai.dispatcher import RequestDispatcher
from codegennie.ai.errors import BackendError
from codegennie.ai.transports import HttpBackendTransport, ModelBackendTransport
from codegennie.editor.languages import Language
from codegennie.runtime.sandbox import JavaScriptSandbox
from codegennie.services.settings import SecretVault, Settings, SettingsStore
from codegennie.session.orchestrator import SessionOrchestrator
from tests.helpers import FakeLocalModel, FakeTransport


@pytest.fixture
def fake_backend(monkeypatch: pytest.MonkeyPatch, fast_settings: Settings) -> FakeTransport:
    transport = FakeTransport()

    def _build_session(settings: Settings, language: Language | None = None) -> SessionOrchestrator:
        return SessionOrchestrator(
            RequestDispatcher(transport),
            local_model=FakeLocalModel(generated="const total = a + b;"),
            sandbox=JavaScriptSandbox(timeout_seconds=2.0),
            settings=fast_settings,
            language=language,
        )

    monkeypatch.setattr(app, "build_session", _build_session)
    return transport


def _run(tmp_path: Path, *argv: str) -> int:
    return app.main(["--settings", str(tmp_path / "settings.json"), *argv])


# =============================================================================
# Overrides and settings
# =============================================================================


def test_coerce_cli_overrides_casts_types() -> None:
    overrides = app._coerce_cli_overrides(
        [
            "max_retries=5",
            "temperature=0.1",
            "debug_logging=on",
            "organization=acme",
            'default_headers={"X-Team": "a"}',
            "model=gpt-x",
        ]
    )

    assert overrides == {
        "max_retries": 5,
        "temperature": 0.1,
        "debug_logging": True,
        "organization": "acme",
        "default_headers": {"X-Team": "a"},
        "model": "gpt-x",
    }


def test_string_overrides_are_taken_verbatim() -> None:
    assert app._coerce_cli_overrides(["organization=none", "model= gpt-x "]) == {"organization": "none", "model": "gpt-x"}


def test_null_override_leaves_non_string_setting_unchanged(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert app._coerce_cli_overrides(["default_headers=null"]) == {"default_headers": None}
    assert _run(tmp_path, "--set", "default_headers=null", "--dump-settings") == 0

    assert json.loads(capsys.readouterr().out)["settings"]["default_headers"] == {}


@pytest.mark.parametrize("entry", ["unknown_field=1", "no-equals", "=1", "debug_logging=maybe", "default_headers=[1]"])
def test_coerce_cli_overrides_rejects_bad_entries(entry: str) -> None:
    with pytest.raises(ValueError):
        app._coerce_cli_overrides([entry])


def test_main_rejects_invalid_override(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "--set", "bogus=1", "run") == 2
    assert "Invalid --set override" in capsys.readouterr().err


def test_dump_settings_redacts_api_key(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json", vault=SecretVault(key_path=tmp_path / "key"))
    buffer = io.StringIO()

    app._dump_settings(Settings(api_key="sk-123456"), store, overrides={"model": "x"}, stream=buffer)

    payload = json.loads(buffer.getvalue())
    assert payload["settings"]["api_key"] == "sk*****56"
    assert payload["meta"]["secret_backend"] == "fernet"
    assert payload["meta"]["cli_overrides"] == ["model"]
    assert payload["meta"]["path"] == str(tmp_path / "settings.json")


def test_main_dump_settings_applies_backend_flag(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "--backend", "model", "--set", "model=gpt-x", "--dump-settings") == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["settings"]["backend"] == "model"
    assert payload["settings"]["model"] == "gpt-x"
    assert payload["meta"]["cli_overrides"] == ["backend", "model"]


@pytest.mark.asyncio
async def test_build_transport_follows_backend_setting() -> None:
    http = app.build_transport(Settings(backend="http", backend_url="http://backend.test"))
    model = app.build_transport(Settings(backend="model", api_key="sk-test"))

    assert isinstance(http, HttpBackendTransport)
    assert isinstance(model, ModelBackendTransport)
    await http.aclose()
    await model.aclose()


def test_main_requires_command(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path) == 2
    assert "a command is required" in capsys.readouterr().err


# =============================================================================
# Commands
# =============================================================================


def test_run_executes_javascript_file(
    fake_backend: FakeTransport, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    source = tmp_path / "hello.js"
    source.write_text("console.log('hi from file');\n", encoding="utf-8")

    assert _run(tmp_path, "run", str(source)) == 0

    assert capsys.readouterr().out == "hi from file\n"
    assert fake_backend.calls == []


def test_explain_prints_ai_output(
    fake_backend: FakeTransport, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    fake_backend.results[DispatchAction.ANALYZE] = "It prints a greeting."

    assert _run(tmp_path, "explain") == 0

    assert capsys.readouterr().out == "It prints a greeting.\n"


def test_backend_failure_exits_with_error(
    fake_backend: FakeTransport, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    fake_backend.results[DispatchAction.ANALYZE] = BackendError(message="backend down", status_code=503)

    assert _run(tmp_path, "docs") == 1

    assert "Error: backend down" in capsys.readouterr().err


def test_bugs_lists_issue_locations(
    fake_backend: FakeTransport, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    fake_backend.results[DispatchAction.FIND_BUGS] = [
        {"line": 2, "column": 3, "endLine": 2, "endColumn": 8, "message": "undefined name", "severity": "error"}
    ]

    assert _run(tmp_path, "bugs") == 0

    assert "L2:3 [error] undefined name" in capsys.readouterr().out


def test_generate_requires_line(fake_backend: FakeTransport, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "generate") == 1
    assert "requires --line" in capsys.readouterr().err


def test_generate_writes_file(fake_backend: FakeTransport, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    source = tmp_path / "sum.js"
    source.write_text("// add a and b\nconsole.log(total);", encoding="utf-8")

    assert _run(tmp_path, "--line", "1", "--write", "generate", str(source)) == 0

    expected = "// add a and b\nconst total = a + b;\nconsole.log(total);"
    assert source.read_text(encoding="utf-8") == expected
    assert capsys.readouterr().out == expected + "\n"


def test_fix_reports_when_line_has_no_issue(
    fake_backend: FakeTransport, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    fake_backend.results[DispatchAction.FIND_BUGS] = []

    assert _run(tmp_path, "--line", "4", "fix") == 0

    assert capsys.readouterr().out == "No fixable issues found on line 4.\n"


def test_unreadable_file_exits_with_usage_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "run", str(tmp_path / "missing.js")) == 2
    assert capsys.readouterr().err.startswith("Error:")
