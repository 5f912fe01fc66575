"""Editing session lifecycle.

START -> LOADING -> DETECTING -> READY <-> GENERATING -> DONE -> READY,
with RESET returning to START from anywhere.
"""

import logging
from enum import Enum
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)

INVALID_IMAGE_WARNING = "The file could not be loaded - make sure it's a valid image file."


class WorkflowError(Exception):
    """Base exception for workflow errors."""
    pass


class InvalidTransitionError(WorkflowError):
    """Exception raised when an event is not allowed in the current state."""
    pass


class WorkflowState(str, Enum):
    START = "START"
    LOADING = "LOADING"
    DETECTING = "DETECTING"
    READY = "READY"
    GENERATING = "GENERATING"
    DONE = "DONE"


class WorkflowEvent(str, Enum):
    IMAGE_SUPPLIED = "IMAGE_SUPPLIED"
    IMAGE_ACCEPTED = "IMAGE_ACCEPTED"
    IMAGE_REJECTED = "IMAGE_REJECTED"
    FACES_DETECTED = "FACES_DETECTED"
    DETECTION_FAILED = "DETECTION_FAILED"
    IMAGE_REMOVED = "IMAGE_REMOVED"
    RENDER_DISPATCHED = "RENDER_DISPATCHED"
    RENDER_COMPLETED = "RENDER_COMPLETED"
    RENDER_FAILED = "RENDER_FAILED"
    RENDER_CANCELLED = "RENDER_CANCELLED"
    RESULT_DISMISSED = "RESULT_DISMISSED"
    RESET = "RESET"


TRANSITIONS: Dict[Tuple[WorkflowState, WorkflowEvent], WorkflowState] = {
    (WorkflowState.START, WorkflowEvent.IMAGE_SUPPLIED): WorkflowState.LOADING,
    (WorkflowState.LOADING, WorkflowEvent.IMAGE_ACCEPTED): WorkflowState.DETECTING,
    (WorkflowState.LOADING, WorkflowEvent.IMAGE_REJECTED): WorkflowState.START,
    (WorkflowState.DETECTING, WorkflowEvent.FACES_DETECTED): WorkflowState.READY,
    (WorkflowState.DETECTING, WorkflowEvent.DETECTION_FAILED): WorkflowState.START,
    (WorkflowState.READY, WorkflowEvent.IMAGE_REMOVED): WorkflowState.START,
    (WorkflowState.READY, WorkflowEvent.RENDER_DISPATCHED): WorkflowState.GENERATING,
    (WorkflowState.GENERATING, WorkflowEvent.RENDER_COMPLETED): WorkflowState.DONE,
    (WorkflowState.GENERATING, WorkflowEvent.RENDER_FAILED): WorkflowState.READY,
    (WorkflowState.GENERATING, WorkflowEvent.RENDER_CANCELLED): WorkflowState.READY,
    (WorkflowState.DONE, WorkflowEvent.RESULT_DISMISSED): WorkflowState.READY,
}


class WorkflowStateMachine:
    """Holds the single active workflow state of one editing session."""

    def __init__(self, state: WorkflowState = WorkflowState.START):
        self.state = state
        self.warning: Optional[str] = None

    @property
    def is_editable(self) -> bool:
        return self.state is WorkflowState.READY

    def can_fire(self, event: WorkflowEvent) -> bool:
        return event is WorkflowEvent.RESET or (self.state, event) in TRANSITIONS

    def fire(self, event: WorkflowEvent, warning: Optional[str] = None) -> WorkflowState:
        """Apply ``event`` and return the new state.

        Args:
            event: The event to apply.
            warning: User-visible message to attach to the new state.

        Raises:
            InvalidTransitionError: If ``event`` is not defined for the current state.
        """
        if event is WorkflowEvent.RESET:
            target = WorkflowState.START
        else:
            target = TRANSITIONS.get((self.state, event))
            if target is None:
                raise InvalidTransitionError(f"Cannot apply {event.value} in state {self.state.value}")
        logger.info(f"Workflow {self.state.value} -> {target.value} on {event.value}")
        self.state = target
        self.warning = warning
        return target
