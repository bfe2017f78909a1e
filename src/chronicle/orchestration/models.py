"""State and context models for the generation state machine.

The machine state is a tagged variant over :class:`Idle`,
:class:`Generating` and :class:`Failure`. Only ``Generating`` carries a
request, so a second in-flight request has no representation.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Union


def _utcnow() -> datetime:
    """Return current UTC time."""
    return datetime.now(timezone.utc)


def _new_request_id() -> str:
    return f"gen-{uuid.uuid4().hex[:8]}"


class GenerationMode(Enum):
    """Tag of the machine state.

    Values:
        IDLE: Resting state; a generation may be requested.
        GENERATING: A continuation request is in flight.
        FAILURE: The last request failed; the error awaits dismissal.
    """

    IDLE = "idle"
    GENERATING = "generating"
    FAILURE = "failure"


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    """Snapshot of the document text at the moment a generation was triggered."""

    current_text: str
    request_id: str = field(default_factory=_new_request_id)
    created_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True, slots=True)
class Idle:
    mode = GenerationMode.IDLE


@dataclass(frozen=True, slots=True)
class Generating:
    request: GenerationRequest
    mode = GenerationMode.GENERATING


@dataclass(frozen=True, slots=True)
class Failure:
    error: str
    mode = GenerationMode.FAILURE


MachineState = Union[Idle, Generating, Failure]


@dataclass(frozen=True, slots=True)
class OrchestrationContext:
    """Data owned by the machine describing the last error and last result.

    Attributes:
        error: Human-readable reason of the last failure, if unacknowledged.
        last_generated_text: Most recent successful continuation.
    """

    error: str | None = None
    last_generated_text: str | None = None

    def with_error(self, error: str | None) -> "OrchestrationContext":
        return replace(self, error=error)

    def with_result(self, text: str) -> "OrchestrationContext":
        return replace(self, last_generated_text=text, error=None)


@dataclass(frozen=True, slots=True)
class MachineSnapshot:
    """Consistent pairing of state and context, as observed at one instant."""

    state: MachineState
    context: OrchestrationContext

    @property
    def mode(self) -> GenerationMode:
        return self.state.mode

    def matches(self, mode: GenerationMode | str) -> bool:
        """Return True when the snapshot is in ``mode`` (enum or its string value)."""
        if isinstance(mode, str):
            return self.state.mode.value == mode
        return self.state.mode is mode


@dataclass(frozen=True, slots=True)
class Generate:
    """User request to continue the document from ``current_text``."""

    current_text: str


@dataclass(frozen=True, slots=True)
class Retry:
    """User acknowledgement of a failure; returns the machine to idle."""


MachineEvent = Union[Generate, Retry]


__all__ = [
    "GenerationMode",
    "GenerationRequest",
    "Idle",
    "Generating",
    "Failure",
    "MachineState",
    "OrchestrationContext",
    "MachineSnapshot",
    "Generate",
    "Retry",
    "MachineEvent",
]
