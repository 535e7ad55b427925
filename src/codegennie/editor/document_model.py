"""Dataclasses representing the editor buffer and its snapshots."""

from __future__ import annotations

from dataclasses import dataclass

from .languages import DEFAULT_LANGUAGE, Language

__all__ = ["BufferSnapshot", "DocumentBuffer"]


@dataclass(slots=True, frozen=True)
class BufferSnapshot:
    """Immutable view of the buffer captured when a request is dispatched."""

    text: str
    version_id: int
    language: Language

    @property
    def lines(self) -> list[str]:
        return self.text.split("\n")

    def is_blank(self) -> bool:
        return not self.text.strip()


@dataclass(slots=True)
class DocumentBuffer:
    """The single mutable source buffer owned by a session.

    ``version_id`` increases on every mutation and doubles as the snapshot id
    attached to outgoing requests.
    """

    text: str = ""
    language: Language = DEFAULT_LANGUAGE
    version_id: int = 1

    @classmethod
    def for_language(cls, language: Language) -> "DocumentBuffer":
        return cls(text=language.starter_code, language=language)

    def update_text(self, new_text: str) -> int:
        """Replace the text and return the new version id."""

        self.text = new_text
        self.version_id += 1
        return self.version_id

    def reset(self, language: Language) -> int:
        """Load ``language``'s starter program; the version id still moves forward."""

        self.language = language
        return self.update_text(language.starter_code)

    def snapshot(self) -> BufferSnapshot:
        return BufferSnapshot(text=self.text, version_id=self.version_id, language=self.language)

    def is_current(self, snapshot: BufferSnapshot) -> bool:
        return snapshot.version_id == self.version_id
