"""Shared pytest fixtures."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from codegennie.ai.dispatcher import RequestDispatcher
from codegennie.runtime.sandbox import JavaScriptSandbox
from codegennie.services.settings import Settings
from codegennie.session.events import EventBus
from codegennie.session.orchestrator import SessionOrchestrator
from tests.helpers import FakeLocalModel, FakeTransport


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in list(os.environ):
        if name.startswith("CODEGENNIE_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CODEGENNIE_LOG_DIR", str(tmp_path / "logs"))


@pytest.fixture
def fast_settings() -> Settings:
    return Settings(
        diagnostics_debounce=0.01,
        completion_debounce=0.01,
        autofix_run_delay=0.0,
        execution_timeout=2.0,
    )


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def local_model() -> FakeLocalModel:
    return FakeLocalModel()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def session(
    transport: FakeTransport,
    local_model: FakeLocalModel,
    fast_settings: Settings,
    event_bus: EventBus,
) -> SessionOrchestrator:
    return SessionOrchestrator(
        RequestDispatcher(transport),
        local_model=local_model,
        sandbox=JavaScriptSandbox(timeout_seconds=fast_settings.execution_timeout),
        settings=fast_settings,
        event_bus=event_bus,
        language="javascript",
    )
