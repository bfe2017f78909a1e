"""Qt document surface backed by a ``QPlainTextEdit``."""

from __future__ import annotations

import logging

from PySide6.QtGui import QTextCursor
from PySide6.QtWidgets import QPlainTextEdit, QWidget

LOGGER = logging.getLogger(__name__)


class EditorSurface:
    """Adapt a plain-text editor widget to the document surface contract.

    Appends go through a ``QTextCursor`` so each continuation lands on the
    editor's own undo stack as a single step.
    """

    def __init__(self, editor: QPlainTextEdit | None = None, *, parent: QWidget | None = None) -> None:
        self._editor = editor or QPlainTextEdit(parent)
        self._editor.setPlaceholderText("Start writing your story...")

    @property
    def widget(self) -> QPlainTextEdit:
        return self._editor

    def get_text(self) -> str:
        return self._editor.toPlainText().strip()

    def set_text(self, text: str) -> None:
        self._editor.setPlainText(text)

    def append_text(self, text: str) -> None:
        if not text:
            return
        cursor = self._editor.textCursor()
        cursor.movePosition(QTextCursor.MoveOperation.End)
        cursor.insertText(text)
        self._editor.setTextCursor(cursor)
        self._editor.ensureCursorVisible()
        LOGGER.debug("EditorSurface: appended %d chars", len(text))

    def focus(self) -> None:
        cursor = self._editor.textCursor()
        cursor.movePosition(QTextCursor.MoveOperation.End)
        self._editor.setTextCursor(cursor)
        self._editor.setFocus()


__all__ = ["EditorSurface"]
