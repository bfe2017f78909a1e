"""User-facing entry point into the generation machine."""

from __future__ import annotations

import logging

from ..documents.surface import DocumentSurface
from ..errors import EmptyDocumentError
from .machine import GenerationMachine
from .models import Generate, GenerationMode, Retry

LOGGER = logging.getLogger(__name__)


class GenerationController:
    """Translate user actions into machine events and expose state for display.

    Holds no orchestration state of its own; every property reads the machine.
    """

    def __init__(self, machine: GenerationMachine, surface: DocumentSurface) -> None:
        self._machine = machine
        self._surface = surface

    @property
    def machine(self) -> GenerationMachine:
        return self._machine

    @property
    def mode(self) -> GenerationMode:
        return self._machine.mode

    @property
    def busy(self) -> bool:
        return self._machine.mode is GenerationMode.GENERATING

    @property
    def has_error(self) -> bool:
        return self._machine.mode is GenerationMode.FAILURE

    @property
    def error_message(self) -> str | None:
        return self._machine.context.error

    @property
    def last_generated_text(self) -> str | None:
        return self._machine.context.last_generated_text

    def trigger_generation(self) -> bool:
        """Request a continuation of the current document text.

        Returns:
            True if the machine accepted the request, False if one is
            already running.

        Raises:
            EmptyDocumentError: If the document holds no non-whitespace text.
                The machine is not touched.
        """
        text = (self._surface.get_text() or "").strip()
        if not text:
            LOGGER.debug("GenerationController: refusing to generate from an empty document")
            raise EmptyDocumentError()
        return self._machine.send(Generate(current_text=text))

    def dismiss_error(self) -> bool:
        """Acknowledge the current failure. A no-op unless the machine has failed."""
        return self._machine.send(Retry())


__all__ = ["GenerationController"]
