"""Generation state machine.

Single source of truth for continuation requests. The machine accepts
:class:`~chronicle.orchestration.models.Generate` only while idle or failed,
runs exactly one provider call per accepted request as an asyncio task, and
reports every transition to its listeners in the order it was applied.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import deque
from typing import Any, Callable, Protocol

from ..errors import EMPTY_RESULT_MESSAGE
from ..events import (
    ErrorDismissed,
    EventBus,
    GenerationFailed,
    GenerationStarted,
    GenerationSucceeded,
    StateChanged,
)
from .models import (
    Failure,
    Generate,
    Generating,
    GenerationMode,
    GenerationRequest,
    Idle,
    MachineEvent,
    MachineSnapshot,
    MachineState,
    OrchestrationContext,
    Retry,
)

LOGGER = logging.getLogger(__name__)

UNKNOWN_ERROR_MESSAGE = "An unknown error occurred"

TransitionListener = Callable[[MachineState, MachineState, OrchestrationContext], None]


class ContinuationService(Protocol):
    """Anything able to continue a piece of text."""

    async def generate(self, current_text: str) -> str:
        ...


class GenerationMachine:
    """Finite-state controller for AI continuations.

    States:
        - ``Idle``: accepts ``Generate``.
        - ``Generating``: accepts nothing from the user; waits for the provider.
        - ``Failure``: accepts ``Retry`` (back to idle) and ``Generate``.

    Events Emitted:
        - GenerationStarted: When a request enters ``generating``
        - GenerationSucceeded: When the provider returned text
        - GenerationFailed: When the provider call failed
        - ErrorDismissed: When a failure is acknowledged via ``Retry``
        - StateChanged: After every transition
    """

    def __init__(
        self,
        service: ContinuationService,
        *,
        event_bus: EventBus | None = None,
    ) -> None:
        """Initialize the machine in ``Idle`` with an empty context.

        Args:
            service: Continuation provider adapter invoked once per request.
            event_bus: Bus receiving lifecycle events. A private bus is created
                when omitted.
        """
        self._service = service
        self._bus = event_bus if event_bus is not None else EventBus()
        self._snapshot = MachineSnapshot(state=Idle(), context=OrchestrationContext())
        self._listeners: list[TransitionListener] = []
        self._pending: deque[tuple[MachineState, MachineState, OrchestrationContext]] = deque()
        self._notifying = False
        self._task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def snapshot(self) -> MachineSnapshot:
        """State and context as one consistent value."""
        return self._snapshot

    @property
    def state(self) -> MachineState:
        return self._snapshot.state

    @property
    def context(self) -> OrchestrationContext:
        return self._snapshot.context

    @property
    def mode(self) -> GenerationMode:
        return self._snapshot.state.mode

    def matches(self, mode: GenerationMode | str) -> bool:
        return self._snapshot.matches(mode)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: TransitionListener) -> Callable[[], None]:
        """Register ``listener(previous, current, context)`` for every transition.

        Returns a callable that removes the listener again.
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            self.unsubscribe(listener)

        return _unsubscribe

    def unsubscribe(self, listener: TransitionListener) -> None:
        with contextlib.suppress(ValueError):
            self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def accepts(self, event: MachineEvent) -> bool:
        """Return True when ``event`` is accepted in the current state."""
        state = self._snapshot.state
        if isinstance(event, Generate):
            return isinstance(state, (Idle, Failure))
        if isinstance(event, Retry):
            return isinstance(state, Failure)
        return False

    def send(self, event: MachineEvent) -> bool:
        """Deliver ``event`` to the machine.

        Events not accepted in the current state are ignored, which is how a
        ``Generate`` arriving during ``generating`` is rejected.

        Returns:
            True if the event caused a transition.

        Raises:
            RuntimeError: If a ``Generate`` is accepted while no asyncio event
                loop is running; the machine is left unchanged.
        """
        if not self.accepts(event):
            LOGGER.debug(
                "GenerationMachine: ignoring %s in state %s",
                type(event).__name__,
                self.mode.value,
            )
            return False

        if isinstance(event, Generate):
            self._start(event)
        else:
            self._dismiss()
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def join(self) -> None:
        """Wait until the in-flight provider call, if any, has been settled."""
        task = self._task
        if task is None or task.done():
            return
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def aclose(self) -> None:
        """Cancel the in-flight provider call. Used at shutdown only."""
        task = self._task
        if task is None or task.done():
            return
        LOGGER.debug("GenerationMachine: cancelling in-flight request on shutdown")
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _start(self, event: Generate) -> None:
        loop = asyncio.get_running_loop()
        request = GenerationRequest(current_text=event.current_text)
        self._transition(Generating(request), self.context.with_error(None))
        self._bus.publish(
            GenerationStarted(request_id=request.request_id, prompt_length=len(request.current_text))
        )
        self._task = loop.create_task(self._invoke(request), name=request.request_id)

    def _dismiss(self) -> None:
        self._transition(Idle(), self.context.with_error(None))
        self._bus.publish(ErrorDismissed())

    async def _invoke(self, request: GenerationRequest) -> None:
        LOGGER.debug(
            "GenerationMachine: invoking provider, request_id=%s, text_length=%d",
            request.request_id,
            len(request.current_text),
        )
        try:
            result: Any = await self._service.generate(request.current_text)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._complete_failure(request, _error_message(exc))
            return

        if not isinstance(result, str) or not result.strip():
            self._complete_failure(request, EMPTY_RESULT_MESSAGE)
            return
        self._complete_success(request, result)

    def _complete_success(self, request: GenerationRequest, text: str) -> None:
        if not self._is_current(request):
            return
        LOGGER.debug(
            "GenerationMachine: request succeeded, request_id=%s, length=%d",
            request.request_id,
            len(text),
        )
        self._transition(Idle(), self.context.with_result(text))
        self._bus.publish(GenerationSucceeded(request_id=request.request_id, text=text))

    def _complete_failure(self, request: GenerationRequest, error: str) -> None:
        if not self._is_current(request):
            return
        LOGGER.warning(
            "GenerationMachine: request failed, request_id=%s, error=%s",
            request.request_id,
            error,
        )
        self._transition(Failure(error), self.context.with_error(error))
        self._bus.publish(GenerationFailed(request_id=request.request_id, error=error))

    def _is_current(self, request: GenerationRequest) -> bool:
        state = self._snapshot.state
        if isinstance(state, Generating) and state.request.request_id == request.request_id:
            return True
        LOGGER.debug("GenerationMachine: discarding outcome of stale request %s", request.request_id)
        return False

    def _transition(self, target: MachineState, context: OrchestrationContext) -> None:
        previous = self._snapshot.state
        self._snapshot = MachineSnapshot(state=target, context=context)
        LOGGER.debug(
            "GenerationMachine: %s -> %s",
            previous.mode.value,
            target.mode.value,
        )
        self._pending.append((previous, target, context))
        if self._notifying:
            # A listener sent an event; it is delivered after the current one.
            return
        self._notifying = True
        try:
            while self._pending:
                self._notify(*self._pending.popleft())
        finally:
            self._notifying = False

    def _notify(
        self,
        previous: MachineState,
        current: MachineState,
        context: OrchestrationContext,
    ) -> None:
        for listener in list(self._listeners):
            try:
                listener(previous, current, context)
            except Exception:
                LOGGER.exception("Transition listener %r raised", listener)
        self._bus.publish(StateChanged(previous=previous, current=current, context=context))


def _error_message(exc: BaseException) -> str:
    message = str(exc).strip()
    return message or UNKNOWN_ERROR_MESSAGE


__all__ = [
    "ContinuationService",
    "GenerationMachine",
    "TransitionListener",
    "UNKNOWN_ERROR_MESSAGE",
    "EMPTY_RESULT_MESSAGE",
]
