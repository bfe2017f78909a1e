"""Bridge between machine transitions and the imperative document surface."""

from __future__ import annotations

import logging
from typing import Callable

from ..documents.surface import DocumentSurface
from .machine import GenerationMachine
from .models import Generating, Idle, MachineState, OrchestrationContext

LOGGER = logging.getLogger(__name__)


class DocumentSyncBridge:
    """Append each successful continuation to the document exactly once.

    The bridge is edge-triggered: it reacts to the ``Generating -> Idle``
    transition only. ``last_generated_text`` stays set in the context after a
    success, so it is never consulted outside that edge. The id of the last
    inserted request is remembered so a repeated edge for it is skipped.
    """

    def __init__(self, machine: GenerationMachine, surface: DocumentSurface) -> None:
        self._machine = machine
        self._surface = surface
        self._last_request_id: str | None = None
        self._unsubscribe: Callable[[], None] | None = machine.subscribe(self._on_transition)

    @property
    def attached(self) -> bool:
        return self._unsubscribe is not None

    def detach(self) -> None:
        """Stop observing the machine."""
        if self._unsubscribe is None:
            return
        self._unsubscribe()
        self._unsubscribe = None

    def _on_transition(
        self,
        previous: MachineState,
        current: MachineState,
        context: OrchestrationContext,
    ) -> None:
        if not isinstance(previous, Generating) or not isinstance(current, Idle):
            return
        text = context.last_generated_text
        if text is None:
            return
        request_id = previous.request.request_id
        if request_id == self._last_request_id:
            LOGGER.debug("DocumentSyncBridge: request %s already inserted", request_id)
            return
        self._last_request_id = request_id
        LOGGER.debug(
            "DocumentSyncBridge: appending %d chars from request %s",
            len(text),
            request_id,
        )
        self._surface.append_text(text)
        self._surface.focus()


__all__ = ["DocumentSyncBridge"]
