"""Render worker loop and the channels that carry messages to and from it.

The worker only ever sees plain message dicts (pickled when it lives in
another process), so it shares no mutable state with the editing session.
Each direction is a one-way queue: jobs and cancellations go in, progress,
results, failures and cancellation acknowledgements come out.
"""

import logging
import multiprocessing
import queue
import threading
from collections import deque
from typing import Deque, Optional, Set

from ..models.domain import RenderJob, RenderResult
from ..models.types import (
    CancelledMessage,
    CancelMessage,
    FailureMessage,
    JobMessage,
    ProgressMessage,
    ResultMessage,
)
from .renderer import RenderCancelled, render_job

logger = logging.getLogger(__name__)

WORKER_BACKENDS = ("process", "thread")


def job_message(job_id: str, job: RenderJob) -> JobMessage:
    metrics = None
    if job.display_metrics is not None:
        metrics = {
            'renderedWidth': job.display_metrics.rendered_width,
            'renderedHeight': job.display_metrics.rendered_height,
        }
    return {
        'type': 'JOB',
        'jobId': job_id,
        'configurationOptions': job.configuration.to_dict(),
        'overlayList': [overlay.to_dict() for overlay in job.overlays],
        'imageTransformOptions': job.image_options.to_dict(),
        'sourceImageDisplayMetrics': metrics,
        'sourceImageFile': job.source_image,
    }


def cancel_message(job_id: str) -> CancelMessage:
    return {'type': 'CANCEL', 'jobId': job_id}


def progress_message(job_id: str, progress: float) -> ProgressMessage:
    return {'type': 'PROGRESS', 'jobId': job_id, 'progress': progress}


def result_message(job_id: str, result: RenderResult) -> ResultMessage:
    return {
        'type': 'RESULT',
        'jobId': job_id,
        'gifBlob': result.final_asset,
        'resultDataUrl': result.preview_data_url,
    }


def failure_message(job_id: str, error: str) -> FailureMessage:
    return {'type': 'FAILURE', 'jobId': job_id, 'error': error}


def cancelled_message(job_id: str) -> CancelledMessage:
    return {'type': 'CANCELLED', 'jobId': job_id}


def run_worker(inbox, outbox) -> None:
    """Process job messages from ``inbox`` until a ``None`` sentinel arrives.

    Messages that arrive while a job is running are inspected between
    frames: a CANCEL for the running job aborts it, anything else is kept
    for after the job.
    """
    pending: Deque[Optional[dict]] = deque()
    cancelled: Set[str] = set()

    while True:
        message = pending.popleft() if pending else inbox.get()
        if message is None:
            break
        if message.get('type') == 'CANCEL':
            cancelled.add(message['jobId'])
            continue
        if message.get('type') != 'JOB':
            logger.warning(f"Ignoring unknown worker message type {message.get('type')!r}")
            continue

        job_id = message['jobId']
        if job_id in cancelled:
            cancelled.discard(job_id)
            outbox.put(cancelled_message(job_id))
            continue

        def should_cancel() -> bool:
            while True:
                try:
                    incoming = inbox.get_nowait()
                except queue.Empty:
                    return False
                if incoming is not None and incoming.get('type') == 'CANCEL':
                    if incoming['jobId'] == job_id:
                        return True
                    cancelled.add(incoming['jobId'])
                else:
                    pending.append(incoming)

        def on_progress(progress: float) -> None:
            outbox.put(progress_message(job_id, progress))

        try:
            result = render_job(message, on_progress=on_progress, should_cancel=should_cancel)
        except RenderCancelled:
            logger.info(f"Job {job_id} cancelled")
            outbox.put(cancelled_message(job_id))
            continue
        except Exception as e:
            logger.exception(f"Job {job_id} failed")
            outbox.put(failure_message(job_id, str(e)))
            continue
        outbox.put(result_message(job_id, result))


class RenderChannel:
    """Two one-way queues around a worker running ``run_worker``.

    The worker is started lazily on the first submission.
    """

    def __init__(self):
        self._inbox = None
        self._outbox = None
        self._worker = None

    def _start(self) -> None:
        raise NotImplementedError

    def is_alive(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def submit(self, message: JobMessage) -> None:
        if not self.is_alive():
            self._start()
        self._inbox.put(message)

    def cancel(self, job_id: str) -> None:
        if self._inbox is not None:
            self._inbox.put(cancel_message(job_id))

    def receive(self, timeout: float = 0.0) -> Optional[dict]:
        """Next worker message, or ``None`` if nothing arrived within ``timeout``."""
        if self._outbox is None:
            return None
        try:
            if timeout > 0:
                return self._outbox.get(timeout=timeout)
            return self._outbox.get_nowait()
        except queue.Empty:
            return None

    def close(self, timeout: float = 5.0) -> None:
        if self._worker is None:
            return
        if self._worker.is_alive():
            self._inbox.put(None)
            self._worker.join(timeout)
        self._worker = None


class ProcessRenderChannel(RenderChannel):
    """Runs the worker in a separate process."""

    def __init__(self, start_method: str = "spawn"):
        super().__init__()
        self._context = multiprocessing.get_context(start_method)

    def _start(self) -> None:
        self._inbox = self._context.Queue()
        self._outbox = self._context.Queue()
        self._worker = self._context.Process(
            target=run_worker,
            args=(self._inbox, self._outbox),
            name="dealwithit-render-worker",
            daemon=True,
        )
        self._worker.start()
        logger.info(f"Started render worker process {self._worker.pid}")

    def close(self, timeout: float = 5.0) -> None:
        worker = self._worker
        super().close(timeout)
        if worker is not None and worker.is_alive():
            logger.warning("Render worker did not stop, terminating it")
            worker.terminate()


class ThreadRenderChannel(RenderChannel):
    """Runs the worker in a daemon thread of the current process."""

    def _start(self) -> None:
        self._inbox = queue.Queue()
        self._outbox = queue.Queue()
        self._worker = threading.Thread(
            target=run_worker,
            args=(self._inbox, self._outbox),
            name="dealwithit-render-worker",
            daemon=True,
        )
        self._worker.start()


def create_channel(backend: str = "process", start_method: str = "spawn") -> RenderChannel:
    if backend == "process":
        return ProcessRenderChannel(start_method)
    if backend == "thread":
        return ThreadRenderChannel()
    raise ValueError(f"Unknown worker backend {backend!r}, expected one of {WORKER_BACKENDS}")
