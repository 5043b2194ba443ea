from __future__ import annotations
from typing import Optional


class SusError(ValueError):
    """Base class for fatal chart errors. Carries the offending line when known."""

    def __init__(self, message: str, line_no: Optional[int] = None, line: Optional[str] = None):
        self.message = message
        self.line_no = line_no
        self.line = line
        super().__init__(self._render())

    def _render(self) -> str:
        if self.line_no:
            text = f"line {self.line_no}: {self.message}"
            if self.line:
                text += f" ({self.line.strip()!r})"
            return text
        return self.message


class MalformedLine(SusError):
    pass


class UndefinedAnchor(SusError):
    """A measure→beat or beat→seconds mapping was requested without anchors."""


class UndefinedTempoIndex(UndefinedAnchor):
    """A tempo reference names a tempo-table index that was never declared."""


class UnpairedSlideFragment(SusError):
    pass


class UnsupportedNoteFamily(SusError):
    pass
