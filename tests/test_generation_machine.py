"""Tests for the generation state machine."""

from __future__ import annotations

import asyncio

import pytest

from chronicle.errors import ContinuationError
from chronicle.events import (
    ErrorDismissed,
    Event,
    EventBus,
    GenerationFailed,
    GenerationStarted,
    GenerationSucceeded,
    StateChanged,
)
from chronicle.orchestration import (
    EMPTY_RESULT_MESSAGE,
    UNKNOWN_ERROR_MESSAGE,
    Failure,
    Generate,
    Generating,
    GenerationMachine,
    GenerationMode,
    Idle,
    OrchestrationContext,
    Retry,
)
from tests.helpers import FakeContinuationService


def _mode_pairs(transitions: list[tuple]) -> list[tuple[str, str]]:
    return [(previous.mode.value, current.mode.value) for previous, current, _ in transitions]


@pytest.fixture
def transitions() -> list[tuple]:
    return []


def _machine(service: FakeContinuationService, transitions: list[tuple], bus: EventBus | None = None) -> GenerationMachine:
    machine = GenerationMachine(service, event_bus=bus)
    machine.subscribe(lambda previous, current, context: transitions.append((previous, current, context)))
    return machine


async def _fail(machine: GenerationMachine, service: FakeContinuationService, message: str = "boom") -> None:
    service.error = ContinuationError(message)
    machine.send(Generate("Some text"))
    await machine.join()
    service.error = None


# =============================================================================
# Initialization Tests
# =============================================================================


class TestInitialState:
    """Tests for the machine's starting point."""

    def test_starts_idle_with_empty_context(self) -> None:
        machine = GenerationMachine(FakeContinuationService())

        assert machine.state == Idle()
        assert machine.mode is GenerationMode.IDLE
        assert machine.context == OrchestrationContext(error=None, last_generated_text=None)
        assert machine.matches("idle")

    def test_creates_private_bus_when_none_given(self) -> None:
        machine = GenerationMachine(FakeContinuationService())
        assert isinstance(machine.event_bus, EventBus)


# =============================================================================
# Generate Tests
# =============================================================================


class TestGenerate:
    """Tests for the Generate event."""

    @pytest.mark.asyncio
    async def test_generate_from_idle_enters_generating(self, transitions: list[tuple]) -> None:
        service = FakeContinuationService(hold=True)
        machine = _machine(service, transitions)

        accepted = machine.send(Generate("Once upon a time"))

        assert accepted is True
        assert isinstance(machine.state, Generating)
        assert machine.state.request.current_text == "Once upon a time"
        assert machine.state.request.request_id.startswith("gen-")
        assert machine.context.error is None
        assert _mode_pairs(transitions) == [("idle", "generating")]

        service.release()
        await machine.join()

    @pytest.mark.asyncio
    async def test_success_sets_last_generated_text(self, transitions: list[tuple]) -> None:
        service = FakeContinuationService(response=" turning orange.")
        machine = _machine(service, transitions)

        machine.send(Generate("The sky was"))
        await machine.join()

        assert machine.state == Idle()
        assert machine.context.last_generated_text == " turning orange."
        assert machine.context.error is None
        assert service.calls == ["The sky was"]
        assert _mode_pairs(transitions) == [("idle", "generating"), ("generating", "idle")]

    @pytest.mark.asyncio
    async def test_generate_while_generating_is_ignored(self, transitions: list[tuple]) -> None:
        service = FakeContinuationService(hold=True)
        machine = _machine(service, transitions)
        machine.send(Generate("first"))
        first_request = machine.state.request

        assert machine.accepts(Generate("second")) is False
        assert machine.send(Generate("second")) is False
        assert machine.state.request == first_request

        service.release()
        await machine.join()

        assert service.calls == ["first"]
        assert len(transitions) == 2

    @pytest.mark.asyncio
    async def test_retry_while_generating_is_ignored(self) -> None:
        service = FakeContinuationService(hold=True)
        machine = GenerationMachine(service)
        machine.send(Generate("text"))

        assert machine.send(Retry()) is False
        assert machine.mode is GenerationMode.GENERATING

        service.release()
        await machine.join()

    def test_generate_without_running_loop_leaves_machine_untouched(self) -> None:
        service = FakeContinuationService()
        machine = GenerationMachine(service)

        with pytest.raises(RuntimeError):
            machine.send(Generate("text"))

        assert machine.state == Idle()
        assert service.calls == []


# =============================================================================
# Failure Tests
# =============================================================================


class TestFailure:
    """Tests for provider failures and recovery."""

    @pytest.mark.asyncio
    async def test_failure_records_error_and_keeps_last_text(self) -> None:
        service = FakeContinuationService(response=" first result")
        machine = GenerationMachine(service)
        machine.send(Generate("Draft"))
        await machine.join()

        service.error = ContinuationError("rate limited")
        machine.send(Generate("Draft first result"))
        await machine.join()

        assert machine.state == Failure("rate limited")
        assert machine.context.error == "rate limited"
        assert machine.context.last_generated_text == " first result"

    @pytest.mark.asyncio
    async def test_exception_without_message_uses_fallback(self) -> None:
        service = FakeContinuationService(error=RuntimeError())
        machine = GenerationMachine(service)

        machine.send(Generate("Draft"))
        await machine.join()

        assert machine.context.error == UNKNOWN_ERROR_MESSAGE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", ["", "   \n", None])
    async def test_empty_result_is_a_failure(self, response: object) -> None:
        service = FakeContinuationService(response=response)
        machine = GenerationMachine(service)

        machine.send(Generate("Draft"))
        await machine.join()

        assert machine.mode is GenerationMode.FAILURE
        assert machine.context.error == EMPTY_RESULT_MESSAGE
        assert machine.context.last_generated_text is None

    @pytest.mark.asyncio
    async def test_retry_returns_to_idle_without_calling_provider(self, transitions: list[tuple]) -> None:
        service = FakeContinuationService()
        machine = _machine(service, transitions)
        await _fail(machine, service)
        calls_before = list(service.calls)

        assert machine.send(Retry()) is True

        assert machine.state == Idle()
        assert machine.context.error is None
        assert service.calls == calls_before
        assert _mode_pairs(transitions)[-1] == ("failure", "idle")

    @pytest.mark.asyncio
    async def test_generate_from_failure_skips_idle(self, transitions: list[tuple]) -> None:
        service = FakeContinuationService()
        machine = _machine(service, transitions)
        await _fail(machine, service)
        service.hold = True

        machine.send(Generate("Try again"))

        assert isinstance(machine.state, Generating)
        assert machine.context.error is None
        assert _mode_pairs(transitions)[-1] == ("failure", "generating")

        service.release()
        await machine.join()
        assert machine.state == Idle()

    def test_retry_in_idle_is_a_noop(self, transitions: list[tuple]) -> None:
        machine = _machine(FakeContinuationService(), transitions)
        before = machine.snapshot

        assert machine.send(Retry()) is False

        assert machine.snapshot == before
        assert transitions == []


# =============================================================================
# Listener & Event Bus Tests
# =============================================================================


class TestNotifications:
    """Tests for transition listeners and published events."""

    @pytest.mark.asyncio
    async def test_publishes_lifecycle_events_on_success(self, event_bus: EventBus) -> None:
        events: list[Event] = []
        for event_type in (GenerationStarted, GenerationSucceeded, StateChanged):
            event_bus.subscribe(event_type, events.append)
        machine = GenerationMachine(FakeContinuationService(response=" more"), event_bus=event_bus)

        machine.send(Generate("Text"))
        await machine.join()

        assert [type(event) for event in events] == [
            StateChanged,
            GenerationStarted,
            StateChanged,
            GenerationSucceeded,
        ]
        assert events[1].prompt_length == len("Text")
        assert events[3].text == " more"
        assert events[1].request_id == events[3].request_id

    @pytest.mark.asyncio
    async def test_publishes_failure_and_dismissal(self, event_bus: EventBus) -> None:
        failures: list[GenerationFailed] = []
        dismissals: list[ErrorDismissed] = []
        event_bus.subscribe(GenerationFailed, failures.append)
        event_bus.subscribe(ErrorDismissed, dismissals.append)
        service = FakeContinuationService()
        machine = GenerationMachine(service, event_bus=event_bus)

        await _fail(machine, service, "quota exceeded")
        machine.send(Retry())

        assert [event.error for event in failures] == ["quota exceeded"]
        assert len(dismissals) == 1

    @pytest.mark.asyncio
    async def test_listener_sees_consistent_context(self) -> None:
        seen: list[tuple[str, str | None]] = []
        machine = GenerationMachine(FakeContinuationService(response=" end"))

        def listener(previous, current, context) -> None:
            # The machine's own snapshot is already updated when listeners run.
            assert machine.context == context
            seen.append((current.mode.value, context.last_generated_text))

        machine.subscribe(listener)
        machine.send(Generate("Text"))
        await machine.join()

        assert seen == [("generating", None), ("idle", " end")]

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block_others(self) -> None:
        received: list[str] = []
        machine = GenerationMachine(FakeContinuationService())

        def broken(previous, current, context) -> None:
            raise ValueError("listener bug")

        machine.subscribe(broken)
        machine.subscribe(lambda previous, current, context: received.append(current.mode.value))
        machine.send(Generate("Text"))
        await machine.join()

        assert received == ["generating", "idle"]

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_notifications(self) -> None:
        received: list[str] = []
        machine = GenerationMachine(FakeContinuationService())
        unsubscribe = machine.subscribe(lambda previous, current, context: received.append(current.mode.value))

        unsubscribe()
        machine.send(Generate("Text"))
        await machine.join()

        assert received == []

    @pytest.mark.asyncio
    async def test_nested_sends_are_delivered_in_order(self) -> None:
        service = FakeContinuationService(error=ContinuationError("nope"))
        machine = GenerationMachine(service)
        order: list[tuple[str, str]] = []

        def auto_dismiss(previous, current, context) -> None:
            order.append((previous.mode.value, current.mode.value))
            if isinstance(current, Failure):
                machine.send(Retry())

        def recorder(previous, current, context) -> None:
            order.append(("recorder", current.mode.value))

        machine.subscribe(auto_dismiss)
        machine.subscribe(recorder)
        machine.send(Generate("Text"))
        await machine.join()

        assert order == [
            ("idle", "generating"),
            ("recorder", "generating"),
            ("generating", "failure"),
            ("recorder", "failure"),
            ("failure", "idle"),
            ("recorder", "idle"),
        ]


# =============================================================================
# Lifecycle Tests
# =============================================================================


class TestLifecycle:
    """Tests for join/aclose."""

    @pytest.mark.asyncio
    async def test_join_without_request_returns_immediately(self) -> None:
        machine = GenerationMachine(FakeContinuationService())
        await asyncio.wait_for(machine.join(), timeout=1)

    @pytest.mark.asyncio
    async def test_aclose_cancels_in_flight_call(self) -> None:
        service = FakeContinuationService(hold=True)
        machine = GenerationMachine(service)
        machine.send(Generate("Text"))
        await asyncio.sleep(0)

        await machine.aclose()

        assert machine.mode is GenerationMode.GENERATING
        assert machine.context.last_generated_text is None
