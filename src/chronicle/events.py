"""Event bus infrastructure for decoupled component communication.

The generation machine publishes its lifecycle here so the desktop shell,
the headless runner and tests can observe it without holding references to
one another.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Generic,
    TypeVar,
)
from weakref import WeakMethod, ref

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from typing import DefaultDict

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all events published on the :class:`EventBus`.

    Example::

        @dataclass(slots=True)
        class GenerationFailed(Event):
            request_id: str
            error: str
    """

    pass


# =============================================================================
# Generation Events
# =============================================================================


@dataclass(slots=True)
class GenerationStarted(Event):
    """Emitted when the machine enters ``generating``.

    Attributes:
        request_id: Identifier of the request snapshot being processed.
        prompt_length: Character count of the document text sent to the provider.
    """

    request_id: str
    prompt_length: int


@dataclass(slots=True)
class GenerationSucceeded(Event):
    """Emitted when the provider returned a continuation.

    Attributes:
        request_id: Identifier of the completed request.
        text: The generated continuation.
    """

    request_id: str
    text: str


@dataclass(slots=True)
class GenerationFailed(Event):
    """Emitted when the provider call failed.

    Attributes:
        request_id: Identifier of the failed request.
        error: Normalized, user-facing error message.
    """

    request_id: str
    error: str


@dataclass(slots=True)
class ErrorDismissed(Event):
    """Emitted when the user acknowledges a failure."""

    pass


@dataclass(slots=True)
class StateChanged(Event):
    """Emitted once per machine transition, after it has been applied.

    Attributes:
        previous: Machine state before the transition.
        current: Machine state after the transition.
        context: Orchestration context after the transition.
    """

    previous: Any
    current: Any
    context: Any


@dataclass(slots=True)
class NoticePosted(Event):
    """Emitted when a notice should be shown to the user.

    Attributes:
        message: The notice text to display.
    """

    message: str


class EventBus(Generic[E]):
    """A typed publish-subscribe event bus.

    Handlers are stored as weak references where possible (bound methods) so
    that a window or bridge going away does not keep receiving events.

    Example::

        bus = EventBus()
        bus.subscribe(GenerationFailed, lambda event: print(event.error))
        bus.publish(GenerationFailed(request_id="gen-1", error="rate limited"))

    Thread Safety:
        Not thread-safe. Publish and subscribe from the event loop thread.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Register ``handler`` for events of exactly ``event_type``.

        Subscribing the same handler twice results in two invocations per event.
        """
        handler_ref = _HandlerRef.create(handler)
        self._handlers[event_type].append(handler_ref)
        logger.debug(
            "Subscribed handler %s to event type %s",
            _handler_name(handler),
            event_type.__name__,
        )

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler``; unknown handlers are ignored."""
        handlers = self._handlers.get(event_type)
        if handlers is None:
            return

        for i, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(i)
                logger.debug(
                    "Unsubscribed handler %s from event type %s",
                    _handler_name(handler),
                    event_type.__name__,
                )
                return

    def publish(self, event: E) -> None:
        """Invoke every handler for ``type(event)`` synchronously, in registration order.

        A handler raising an exception is logged and does not prevent the
        remaining handlers from running.
        """
        event_type = type(event)
        handlers = self._handlers.get(event_type)

        if not handlers:
            logger.debug("No handlers for event type %s", event_type.__name__)
            return

        logger.debug(
            "Publishing %s to %d handler(s)",
            event_type.__name__,
            len(handlers),
        )

        dead_indices: list[int] = []

        # Iterate over a copy so handlers may unsubscribe while being notified.
        for i, handler_ref in enumerate(list(handlers)):
            handler = handler_ref.resolve()
            if handler is None:
                dead_indices.append(i)
                continue

            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s raised exception for event %s",
                    _handler_name(handler),
                    event_type.__name__,
                )

        for i in reversed(dead_indices):
            if i < len(handlers) and handlers[i].resolve() is None:
                handlers.pop(i)


class _HandlerRef:
    """Handler reference: weak for bound methods, strong for plain callables."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: WeakMethod | ref | Handler, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> _HandlerRef:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref  # type: ignore[return-value]
        return self._ref()  # type: ignore[operator]

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        if resolved is None:
            return False
        return resolved == handler


def _handler_name(handler: Handler) -> str:
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        cls_name = type(handler.__self__).__name__
        return f"{cls_name}.{handler.__func__.__name__}"
    if hasattr(handler, "__name__"):
        return handler.__name__
    return repr(handler)


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "GenerationStarted",
    "GenerationSucceeded",
    "GenerationFailed",
    "ErrorDismissed",
    "StateChanged",
    "NoticePosted",
]
