import pytest

from dealwithit.core.workflow import (
    INVALID_IMAGE_WARNING,
    TRANSITIONS,
    InvalidTransitionError,
    WorkflowEvent,
    WorkflowState,
    WorkflowStateMachine,
)


def machine_in(state: WorkflowState) -> WorkflowStateMachine:
    return WorkflowStateMachine(state)


def test_starts_at_start():
    assert WorkflowStateMachine().state is WorkflowState.START


def test_happy_path():
    machine = WorkflowStateMachine()
    for event, expected in [
        (WorkflowEvent.IMAGE_SUPPLIED, WorkflowState.LOADING),
        (WorkflowEvent.IMAGE_ACCEPTED, WorkflowState.DETECTING),
        (WorkflowEvent.FACES_DETECTED, WorkflowState.READY),
        (WorkflowEvent.RENDER_DISPATCHED, WorkflowState.GENERATING),
        (WorkflowEvent.RENDER_COMPLETED, WorkflowState.DONE),
        (WorkflowEvent.RESULT_DISMISSED, WorkflowState.READY),
        (WorkflowEvent.IMAGE_REMOVED, WorkflowState.START),
    ]:
        assert machine.fire(event) is expected
        assert machine.state is expected


def test_rejected_image_returns_to_start_with_warning():
    machine = machine_in(WorkflowState.LOADING)
    machine.fire(WorkflowEvent.IMAGE_REJECTED, warning=INVALID_IMAGE_WARNING)
    assert machine.state is WorkflowState.START
    assert machine.warning == INVALID_IMAGE_WARNING


def test_warning_is_cleared_by_next_transition():
    machine = machine_in(WorkflowState.LOADING)
    machine.fire(WorkflowEvent.IMAGE_REJECTED, warning=INVALID_IMAGE_WARNING)
    machine.fire(WorkflowEvent.IMAGE_SUPPLIED)
    assert machine.warning is None


def test_render_failure_and_cancel_return_to_ready():
    for event in (WorkflowEvent.RENDER_FAILED, WorkflowEvent.RENDER_CANCELLED):
        machine = machine_in(WorkflowState.GENERATING)
        machine.fire(event)
        assert machine.state is WorkflowState.READY


@pytest.mark.parametrize("state", list(WorkflowState))
def test_reset_from_any_state(state):
    machine = machine_in(state)
    assert machine.can_fire(WorkflowEvent.RESET)
    assert machine.fire(WorkflowEvent.RESET) is WorkflowState.START


@pytest.mark.parametrize("state", list(WorkflowState))
def test_undefined_transitions_raise(state):
    machine = machine_in(state)
    for event in WorkflowEvent:
        if event is WorkflowEvent.RESET or (state, event) in TRANSITIONS:
            continue
        assert not machine.can_fire(event)
        with pytest.raises(InvalidTransitionError):
            machine.fire(event)
        assert machine.state is state


def test_only_ready_is_editable():
    for state in WorkflowState:
        assert machine_in(state).is_editable is (state is WorkflowState.READY)


def test_dispatch_only_from_ready():
    for state in WorkflowState:
        allowed = machine_in(state).can_fire(WorkflowEvent.RENDER_DISPATCHED)
        assert allowed is (state is WorkflowState.READY)
