"""Tests for the error taxonomy."""

from __future__ import annotations

from codegennie.ai.errors import BackendError, DispatchError, ErrorCode, MalformedPayloadError, TransportError


def test_str_is_bare_message() -> None:
    error = BackendError(message="boom", action="analyze", status_code=502)

    assert str(error) == "boom"
    assert isinstance(error, DispatchError)


def test_to_dict_includes_code_action_and_status() -> None:
    error = BackendError(message="boom", action="analyze", status_code=502)

    assert error.to_dict() == {
        "error": ErrorCode.BACKEND,
        "message": "boom",
        "action": "analyze",
        "status_code": 502,
    }


def test_subclasses_carry_their_codes() -> None:
    assert TransportError(message="down").error_code == ErrorCode.TRANSPORT
    assert MalformedPayloadError(message="bad", details={"k": 1}).to_dict()["details"] == {"k": 1}
