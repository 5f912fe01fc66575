"""Dispatches render jobs and applies worker notifications.

Notifications are only applied when the owner calls :meth:`RenderCoordinator.pump`,
so the workflow state is never touched from the worker's side.
"""

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Optional

from ..models.domain import RenderConfigurationError, RenderJob, RenderResult
from .worker import RenderChannel, job_message
from .workflow import WorkflowEvent, WorkflowState, WorkflowStateMachine

logger = logging.getLogger(__name__)

WORKER_STOPPED_MESSAGE = "The render worker stopped unexpectedly."


@dataclass(frozen=True)
class RenderHandle:
    job_id: str
    submitted_at: float
    revision: int


class RenderCoordinator:
    """Owns the lifecycle of render jobs for one editing session."""

    def __init__(self, workflow: WorkflowStateMachine, channel: RenderChannel):
        self.workflow = workflow
        self.channel = channel
        self.active: Optional[RenderHandle] = None
        self.progress = 0
        self.result: Optional[RenderResult] = None
        self.result_revision: Optional[int] = None
        self.failure: Optional[str] = None
        self.success_count = 0

    def dispatch(self, job: RenderJob, revision: int = 0) -> Optional[RenderHandle]:
        """Validate and submit ``job``.

        Returns ``None`` without touching any state when the workflow is not
        READY, the job has no overlays or its configuration is out of bounds.
        """
        if self.workflow.state is not WorkflowState.READY:
            logger.warning(f"Render rejected in state {self.workflow.state.value}")
            return None
        if not job.overlays:
            logger.warning("Render rejected: no overlays")
            return None
        try:
            job.configuration.validate()
        except RenderConfigurationError as e:
            logger.warning(f"Render rejected: {str(e)}")
            return None

        handle = RenderHandle(job_id=uuid.uuid4().hex, submitted_at=time.time(), revision=revision)
        self.workflow.fire(WorkflowEvent.RENDER_DISPATCHED)
        self.active = handle
        self.progress = 0
        self.failure = None
        self.channel.submit(job_message(handle.job_id, job))
        logger.info(f"Dispatched render job {handle.job_id} with {len(job.overlays)} overlay(s)")
        return handle

    def cancel(self) -> bool:
        """Abort the running job; nothing it sends afterwards is applied."""
        if self.active is None or self.workflow.state is not WorkflowState.GENERATING:
            return False
        job_id = self.active.job_id
        self.channel.cancel(job_id)
        self.active = None
        self.progress = 0
        self.workflow.fire(WorkflowEvent.RENDER_CANCELLED)
        logger.info(f"Cancelled render job {job_id}")
        return True

    def pump(self, timeout: float = 0.0) -> int:
        """Apply every pending worker message and return how many were applied.

        ``timeout`` bounds the wait for the first message only.
        """
        applied = 0
        message = self.channel.receive(timeout)
        while message is not None:
            if self.handle_message(message):
                applied += 1
            message = self.channel.receive()
        if (
            self.active is not None
            and self.workflow.state is WorkflowState.GENERATING
            and not self.channel.is_alive()
        ):
            self._fail(WORKER_STOPPED_MESSAGE)
        return applied

    def wait(self, timeout: float = 30.0, poll_interval: float = 0.1) -> WorkflowState:
        """Pump until the active job ends or ``timeout`` elapses."""
        deadline = time.monotonic() + timeout
        while self.workflow.state is WorkflowState.GENERATING and time.monotonic() < deadline:
            self.pump(min(poll_interval, max(deadline - time.monotonic(), 0.0)))
        return self.workflow.state

    def handle_message(self, message: dict) -> bool:
        """Apply one worker message; stale or unknown messages are dropped."""
        if self.active is None or message.get('jobId') != self.active.job_id:
            logger.debug(f"Dropping {message.get('type')} for inactive job {message.get('jobId')}")
            return False

        message_type = message.get('type')
        if message_type == 'PROGRESS':
            progress = int(round(min(max(float(message['progress']), 0.0), 100.0)))
            self.progress = max(self.progress, progress)
            return True
        if message_type == 'RESULT':
            self.result = RenderResult(
                final_asset=message['gifBlob'],
                preview_data_url=message['resultDataUrl'],
            )
            self.result_revision = self.active.revision
            self.success_count += 1
            self.progress = 100
            self.active = None
            self.workflow.fire(WorkflowEvent.RENDER_COMPLETED)
            logger.info(f"Render finished, {self.success_count} success(es) this session")
            return True
        if message_type == 'FAILURE':
            self._fail(message.get('error') or "Rendering failed.")
            return True

        logger.warning(f"Ignoring worker message type {message_type!r}")
        return False

    def _fail(self, error: str) -> None:
        logger.error(f"Render job {self.active.job_id} failed: {error}")
        self.failure = error
        self.active = None
        self.progress = 0
        self.workflow.fire(WorkflowEvent.RENDER_FAILED, warning=error)

    def is_result_current(self, revision: int) -> bool:
        return self.result is not None and self.result_revision == revision

    def reset(self) -> None:
        """Forget the active job and failure; used when the session restarts."""
        if self.active is not None:
            self.channel.cancel(self.active.job_id)
        self.active = None
        self.progress = 0
        self.failure = None
