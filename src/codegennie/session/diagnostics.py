"""Diagnostics Reconciler: the issue set and its editor markers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Sequence

from ..ai.ai_types import Issue, Severity

__all__ = ["Marker", "MarkerSeverity", "DiagnosticsReconciler", "to_markers"]

LOGGER = logging.getLogger(__name__)


class MarkerSeverity(IntEnum):
    """Severity scale used by the editor widget."""

    INFO = 2
    WARNING = 4
    ERROR = 8

    @classmethod
    def from_severity(cls, severity: Severity | str) -> "MarkerSeverity":
        return _SEVERITY_MAP.get(Severity.coerce(severity), cls.INFO)


_SEVERITY_MAP = {
    Severity.ERROR: MarkerSeverity.ERROR,
    Severity.WARNING: MarkerSeverity.WARNING,
    Severity.INFO: MarkerSeverity.INFO,
}


@dataclass(slots=True, frozen=True)
class Marker:
    start_line_number: int
    start_column: int
    end_line_number: int
    end_column: int
    message: str
    severity: int

    @classmethod
    def from_issue(cls, issue: Issue) -> "Marker":
        return cls(
            start_line_number=issue.start_line,
            start_column=issue.start_column,
            end_line_number=issue.end_line,
            end_column=issue.end_column,
            message=issue.message,
            severity=int(MarkerSeverity.from_severity(issue.severity)),
        )


def to_markers(issues: Iterable[Issue]) -> tuple[Marker, ...]:
    """Map issues to markers one-to-one; spans are copied and order is kept."""

    return tuple(Marker.from_issue(issue) for issue in issues)


class DiagnosticsReconciler:
    """Owns the current issue set and the markers derived from it.

    The set is only ever swapped as a whole: a new scan result replaces the
    previous one, never merges into it.
    """

    def __init__(self) -> None:
        self._issues: tuple[Issue, ...] = ()
        self._markers: tuple[Marker, ...] = ()
        self._version_id: int | None = None

    @property
    def issues(self) -> tuple[Issue, ...]:
        return self._issues

    @property
    def markers(self) -> tuple[Marker, ...]:
        return self._markers

    @property
    def version_id(self) -> int | None:
        """Snapshot id of the buffer the current issues were reported against."""

        return self._version_id

    def replace(self, issues: Sequence[Issue], version_id: int | None = None) -> tuple[Marker, ...]:
        self._issues = tuple(issues)
        self._markers = to_markers(self._issues)
        self._version_id = version_id
        LOGGER.debug("Issue set replaced: %d issue(s) for version %s", len(self._issues), version_id)
        return self._markers

    def clear(self) -> None:
        self._issues = ()
        self._markers = ()
        self._version_id = None

    def to_markers(self, issues: Iterable[Issue]) -> tuple[Marker, ...]:
        return to_markers(issues)

    def __len__(self) -> int:
        return len(self._issues)
