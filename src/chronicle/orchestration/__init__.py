"""Generation orchestration: state machine, document bridge and entry point."""

from __future__ import annotations

from .bridge import DocumentSyncBridge
from .controller import GenerationController
from .machine import (
    EMPTY_RESULT_MESSAGE,
    UNKNOWN_ERROR_MESSAGE,
    ContinuationService,
    GenerationMachine,
    TransitionListener,
)
from .models import (
    Failure,
    Generate,
    Generating,
    GenerationMode,
    GenerationRequest,
    Idle,
    MachineSnapshot,
    MachineState,
    OrchestrationContext,
    Retry,
)

__all__ = [
    "DocumentSyncBridge",
    "GenerationController",
    "GenerationMachine",
    "ContinuationService",
    "TransitionListener",
    "EMPTY_RESULT_MESSAGE",
    "UNKNOWN_ERROR_MESSAGE",
    "Failure",
    "Generate",
    "Generating",
    "GenerationMode",
    "GenerationRequest",
    "Idle",
    "MachineSnapshot",
    "MachineState",
    "OrchestrationContext",
    "Retry",
]
