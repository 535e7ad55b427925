"""Editor buffer model, languages and line edits."""

from .document_model import BufferSnapshot, DocumentBuffer
from .languages import DEFAULT_LANGUAGE, EXECUTABLE_LANGUAGE, Language
from .line_edits import (
    LineRangeError,
    extract_comment_prompt,
    insert_line,
    replace_line_range,
    slice_lines,
    split_lines,
)

__all__ = [
    "BufferSnapshot",
    "DocumentBuffer",
    "Language",
    "DEFAULT_LANGUAGE",
    "EXECUTABLE_LANGUAGE",
    "LineRangeError",
    "extract_comment_prompt",
    "insert_line",
    "replace_line_range",
    "slice_lines",
    "split_lines",
]
