"""Tests for line-array buffer edits."""

from __future__ import annotations

import pytest

from codegennie.editor.line_edits import (
    LineRangeError,
    extract_comment_prompt,
    insert_line,
    replace_line_range,
    slice_lines,
)


def test_slice_lines_is_one_indexed_and_inclusive() -> None:
    assert slice_lines("a\nb\nc\nd", 2, 3) == "b\nc"
    assert slice_lines("a\nb", 2, 9) == "b"


def test_replace_line_range_keeps_other_lines_byte_identical() -> None:
    text = "keep\r\nold one\nold two\n\ttail  "

    result = replace_line_range(text, 2, 3, "new")

    assert result == "keep\r\nnew\n\ttail  "


def test_replace_clamps_end_past_last_line() -> None:
    assert replace_line_range("a\nb\nc", 3, 10, "C") == "a\nb\nC"


def test_replacement_may_span_several_lines() -> None:
    assert replace_line_range("a\nb\nc", 2, 2, "b1\nb2") == "a\nb1\nb2\nc"


@pytest.mark.parametrize(("start", "end"), [(0, 1), (5, 5), (3, 2)])
def test_invalid_ranges_raise(start: int, end: int) -> None:
    with pytest.raises(LineRangeError) as excinfo:
        replace_line_range("a\nb\nc", start, end, "x")

    assert excinfo.value.total_lines == 3


def test_insert_line_uses_zero_based_index() -> None:
    assert insert_line("// comment\ncall()", 1, "generated()") == "// comment\ngenerated()\ncall()"
    assert insert_line("a", 1, "b") == "a\nb"
    assert insert_line("a", 0, "b") == "b\na"


def test_insert_line_out_of_range_raises() -> None:
    with pytest.raises(LineRangeError):
        insert_line("a\nb", 3, "c")


@pytest.mark.parametrize(
    ("line", "expected"),
    [
        ("// sort the list", "sort the list"),
        ("    # read the file", "read the file"),
        ("-- select all users", "select all users"),
        ("/* add two numbers */", "add two numbers"),
        ("//", None),
        ("const a = 1; // trailing", None),
        ("", None),
    ],
)
def test_extract_comment_prompt(line: str, expected: str | None) -> None:
    assert extract_comment_prompt(line) == expected
