"""Document surface contract and the in-memory implementation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable


def _utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""

    return datetime.now(timezone.utc)


@runtime_checkable
class DocumentSurface(Protocol):
    """Editable document consumed by the orchestration layer."""

    def get_text(self) -> str:
        """Return the document as plain text without leading/trailing whitespace."""
        ...

    def append_text(self, text: str) -> None:
        """Append ``text`` at the end of the document and reveal it."""
        ...

    def focus(self) -> None:
        """Give input focus to the document, caret at the end."""
        ...


@dataclass(slots=True)
class TextDocument:
    """Headless document surface with version tracking.

    Every mutation bumps ``version_id``. Files are read and written without
    newline translation, so a document keeps the line endings it was loaded with.
    """

    text: str = ""
    path: Optional[Path] = None
    version_id: int = 1
    dirty: bool = False
    caret: int = 0
    focused: bool = False
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        self.caret = len(self.text)

    @classmethod
    def from_path(cls, path: Path | str, *, encoding: str = "utf-8") -> "TextDocument":
        target = Path(path).expanduser()
        with target.open("r", encoding=encoding, newline="") as handle:
            return cls(text=handle.read(), path=target)

    def get_text(self) -> str:
        return self.text.strip()

    def append_text(self, text: str) -> None:
        if not text:
            return
        self.update_text(self.text + text)
        self.caret = len(self.text)

    def focus(self) -> None:
        self.caret = len(self.text)
        self.focused = True

    def update_text(self, new_text: str) -> None:
        """Replace the document text and mark it dirty."""

        self.text = new_text
        self.dirty = True
        self.updated_at = _utcnow()
        self.version_id += 1

    def save(self, path: Path | str | None = None, *, encoding: str = "utf-8") -> Path:
        """Write the text to ``path`` (or the path it was loaded from)."""

        target = Path(path).expanduser() if path is not None else self.path
        if target is None:
            raise ValueError("TextDocument has no path to save to")
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = target.with_suffix(target.suffix + ".tmp")
        tmp_path.write_text(self.text, encoding=encoding, newline="")
        tmp_path.replace(target)
        self.path = target
        self.dirty = False
        return target


__all__ = ["DocumentSurface", "TextDocument"]
