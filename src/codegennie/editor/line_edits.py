"""Line-array edits applied to buffer text.

Lines are split on ``"\\n"`` only so that untouched lines (including any
``"\\r"``) survive an edit byte-for-byte.
"""

from __future__ import annotations

import re

__all__ = [
    "LineRangeError",
    "split_lines",
    "join_lines",
    "slice_lines",
    "replace_line_range",
    "insert_line",
    "extract_comment_prompt",
]

_COMMENT_PREFIX_RE = re.compile(r"^\s*(//|#|--|/\*)")
_BLOCK_COMMENT_SUFFIX_RE = re.compile(r"\*/$")


class LineRangeError(ValueError):
    """Raised when a line range does not exist in the target text."""

    def __init__(self, message: str, *, line: int, total_lines: int) -> None:
        super().__init__(message)
        self.line = line
        self.total_lines = total_lines


def split_lines(text: str) -> list[str]:
    return text.split("\n")


def join_lines(lines: list[str]) -> str:
    return "\n".join(lines)


def _validate_range(lines: list[str], start_line: int, end_line: int) -> int:
    total = len(lines)
    if start_line < 1 or start_line > total:
        raise LineRangeError(
            f"start line {start_line} is outside the buffer (1-{total})",
            line=start_line,
            total_lines=total,
        )
    if end_line < start_line:
        raise LineRangeError(
            f"end line {end_line} precedes start line {start_line}",
            line=end_line,
            total_lines=total,
        )
    return min(end_line, total)


def slice_lines(text: str, start_line: int, end_line: int) -> str:
    """Return lines ``start_line..end_line`` (1-indexed, inclusive) joined by newlines."""

    lines = split_lines(text)
    end = _validate_range(lines, start_line, end_line)
    return join_lines(lines[start_line - 1 : end])


def replace_line_range(text: str, start_line: int, end_line: int, replacement: str) -> str:
    """Replace lines ``start_line..end_line`` with ``replacement``.

    ``end_line`` past the last line is clamped, so at most ``end - start + 1``
    lines are removed.
    """

    lines = split_lines(text)
    end = _validate_range(lines, start_line, end_line)
    return join_lines(lines[: start_line - 1] + [replacement] + lines[end:])


def insert_line(text: str, index: int, content: str) -> str:
    """Insert ``content`` as a new line before the 0-based line ``index``."""

    lines = split_lines(text)
    if index < 0 or index > len(lines):
        raise LineRangeError(
            f"insertion index {index} is outside the buffer (0-{len(lines)})",
            line=index,
            total_lines=len(lines),
        )
    lines.insert(index, content)
    return join_lines(lines)


def extract_comment_prompt(line: str) -> str | None:
    """Return the instruction text of a comment line, or ``None`` if it is not one."""

    stripped = (line or "").strip()
    if not stripped or not _COMMENT_PREFIX_RE.match(stripped):
        return None
    prompt = _COMMENT_PREFIX_RE.sub("", stripped, count=1)
    prompt = _BLOCK_COMMENT_SUFFIX_RE.sub("", prompt).strip()
    return prompt or None
