"""Main application window.

Presentation only: the window renders machine state received through the
event bus and forwards button presses to the
:class:`~chronicle.orchestration.GenerationController`.
"""

from __future__ import annotations

import logging

from PySide6.QtCore import Qt
from PySide6.QtGui import QFont
from PySide6.QtWidgets import (
    QFrame,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from ..errors import ValidationError
from ..events import EventBus, NoticePosted, StateChanged
from ..orchestration import GenerationController, GenerationMode, MachineSnapshot
from ..services.settings import Settings
from .editor_surface import EditorSurface

LOGGER = logging.getLogger(__name__)

WINDOW_TITLE = "Chronicle AI Editor"
CONTINUE_LABEL = "Continue Writing"
BUSY_LABEL = "AI is writing..."
FALLBACK_ERROR = "Something went wrong."
STATUS_READY = "Ready"
STATUS_BUSY = "Thinking..."


class MainWindow(QMainWindow):
    """Editor window with a continue button, error banner and status footer."""

    def __init__(
        self,
        controller: GenerationController,
        surface: EditorSurface,
        event_bus: EventBus,
        *,
        settings: Settings | None = None,
    ) -> None:
        super().__init__()
        self._controller = controller
        self._surface = surface
        self._bus = event_bus
        self._settings = settings or Settings()

        self.setWindowTitle(WINDOW_TITLE)
        self.resize(960, 720)
        self._build_ui()

        self._bus.subscribe(StateChanged, self._on_state_changed)
        self._bus.subscribe(NoticePosted, self._on_notice)
        self.render(controller.machine.snapshot)

    # ------------------------------------------------------------------
    # Widgets
    # ------------------------------------------------------------------

    @property
    def continue_button(self) -> QPushButton:
        return self._continue_button

    @property
    def dismiss_button(self) -> QPushButton:
        return self._dismiss_button

    @property
    def error_banner(self) -> QFrame:
        return self._error_banner

    @property
    def error_label(self) -> QLabel:
        return self._error_label

    @property
    def status_label(self) -> QLabel:
        return self._status_label

    def _build_ui(self) -> None:
        central = QWidget(self)
        layout = QVBoxLayout(central)
        layout.setContentsMargins(24, 24, 24, 24)
        layout.setSpacing(12)

        title = QLabel(WINDOW_TITLE, central)
        title_font = title.font()
        title_font.setPointSize(title_font.pointSize() + 10)
        title_font.setBold(True)
        title.setFont(title_font)
        title.setAlignment(Qt.AlignmentFlag.AlignCenter)
        subtitle = QLabel("Write, and let AI seamlessly continue your thoughts.", central)
        subtitle.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(title)
        layout.addWidget(subtitle)

        self._error_banner = QFrame(central)
        self._error_banner.setObjectName("errorBanner")
        self._error_banner.setStyleSheet(
            "#errorBanner { background: #fef2f2; border-left: 4px solid #ef4444; }"
        )
        banner_layout = QHBoxLayout(self._error_banner)
        self._error_label = QLabel("", self._error_banner)
        self._error_label.setWordWrap(True)
        self._error_label.setStyleSheet("color: #b91c1c;")
        self._dismiss_button = QPushButton("Dismiss", self._error_banner)
        self._dismiss_button.setFlat(True)
        self._dismiss_button.clicked.connect(self._on_dismiss_clicked)
        banner_layout.addWidget(self._error_label, 1)
        banner_layout.addWidget(self._dismiss_button)
        layout.addWidget(self._error_banner)

        toolbar = QHBoxLayout()
        toolbar.addStretch(1)
        self._continue_button = QPushButton(CONTINUE_LABEL, central)
        self._continue_button.clicked.connect(self._on_continue_clicked)
        toolbar.addWidget(self._continue_button)
        layout.addLayout(toolbar)

        editor = self._surface.widget
        editor.setParent(central)
        editor.setFont(QFont(self._settings.font_family, self._settings.font_size))
        layout.addWidget(editor, 1)

        self._status_label = QLabel(STATUS_READY, central)
        self._status_label.setAlignment(Qt.AlignmentFlag.AlignRight)
        layout.addWidget(self._status_label)

        self.setCentralWidget(central)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self, snapshot: MachineSnapshot) -> None:
        """Reflect ``snapshot`` in the button, banner and footer."""
        busy = snapshot.mode is GenerationMode.GENERATING
        failed = snapshot.mode is GenerationMode.FAILURE

        self._continue_button.setEnabled(not busy)
        self._continue_button.setText(BUSY_LABEL if busy else CONTINUE_LABEL)
        self._status_label.setText(STATUS_BUSY if busy else STATUS_READY)

        self._error_label.setText(snapshot.context.error or FALLBACK_ERROR)
        self._error_banner.setHidden(not failed)

    def _on_state_changed(self, event: StateChanged) -> None:
        self.render(MachineSnapshot(state=event.current, context=event.context))

    def _on_notice(self, event: NoticePosted) -> None:
        QMessageBox.information(self, WINDOW_TITLE, event.message)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _on_continue_clicked(self) -> None:
        try:
            self._controller.trigger_generation()
        except ValidationError as exc:
            LOGGER.debug("Generation request rejected: %s", exc)
            self._bus.publish(NoticePosted(message=exc.message))

    def _on_dismiss_clicked(self) -> None:
        self._controller.dismiss_error()
        self._surface.focus()


__all__ = ["MainWindow"]
