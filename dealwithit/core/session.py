"""One editing session: a source image, its overlays and its render jobs.

All methods are meant to be called from a single thread (the HTTP event
loop); the only suspension point is face detection, which runs in a worker
thread and is serialized per session.
"""

import asyncio
import logging
import random
import uuid
from typing import List, Optional

from ..models.domain import (
    DisplayMetrics,
    FlipAxis,
    ImageTransformOptions,
    Overlay,
    RenderConfiguration,
    RenderJob,
)
from ..utils.image import ImageProcessingError, decode_image_bytes
from ..utils.messages import (
    NORMAL_MODE,
    detect_mode,
    generate_output_filename,
    get_success_message,
)
from .coordinator import RenderCoordinator, RenderHandle
from .geometry import resolve_overlays
from .overlays import OverlayCollection
from .styles import StyleCatalog, catalog as default_catalog
from .worker import RenderChannel
from .workflow import (
    INVALID_IMAGE_WARNING,
    InvalidTransitionError,
    WorkflowEvent,
    WorkflowState,
    WorkflowStateMachine,
)

logger = logging.getLogger(__name__)


class EditingSession:
    """Glue between the workflow, the overlay collection and the coordinator."""

    def __init__(
        self,
        channel: RenderChannel,
        catalog: StyleCatalog = default_catalog,
        configuration: Optional[RenderConfiguration] = None,
        rng: Optional[random.Random] = None,
        shutdown_timeout: float = 5.0,
    ):
        self.id = uuid.uuid4().hex
        self.catalog = catalog
        self.rng = rng or random.Random()
        self.shutdown_timeout = shutdown_timeout
        self.workflow = WorkflowStateMachine()
        self.overlays = OverlayCollection(catalog=catalog)
        self.image_options = ImageTransformOptions()
        self.configuration = configuration or RenderConfiguration()
        self.coordinator = RenderCoordinator(self.workflow, channel)
        self.mode = NORMAL_MODE
        self.filename = ""
        self.source_image: Optional[bytes] = None
        self.natural_size = None
        self.display_metrics: Optional[DisplayMetrics] = None
        self._image = None
        self._options_revision = 0
        self._detection_lock = asyncio.Lock()

    @property
    def state(self) -> WorkflowState:
        return self.workflow.state

    @property
    def revision(self) -> int:
        return self.overlays.revision + self._options_revision

    @property
    def result_is_current(self) -> bool:
        return self.coordinator.is_result_current(self.revision)

    @property
    def success_message(self) -> Optional[str]:
        if self.coordinator.success_count == 0:
            return None
        return get_success_message(self.coordinator.success_count, self.mode)

    @property
    def output_filename(self) -> str:
        return generate_output_filename(self.filename)

    def _clear_image(self) -> None:
        self.source_image = None
        self._image = None
        self.natural_size = None
        self.display_metrics = None
        self.image_options = ImageTransformOptions()
        self._options_revision += 1
        self.overlays.clear()

    def load_image(
        self,
        data: bytes,
        filename: str = "",
        display_metrics: Optional[DisplayMetrics] = None,
    ) -> bool:
        """Accept a new source image.

        Returns:
            True when the image decoded and detection may start, False when it
            was rejected (the session is back at START with a warning).

        Raises:
            InvalidTransitionError: If the session is not at START.
        """
        self.workflow.fire(WorkflowEvent.IMAGE_SUPPLIED)
        self.filename = filename
        self.mode = detect_mode(filename)
        try:
            image = decode_image_bytes(data)
        except ImageProcessingError as e:
            logger.warning(f"Rejected input image {filename!r}: {str(e)}")
            self._clear_image()
            self.workflow.fire(WorkflowEvent.IMAGE_REJECTED, warning=INVALID_IMAGE_WARNING)
            return False

        self._clear_image()
        self.source_image = bytes(data)
        self._image = image
        self.natural_size = (image.shape[1], image.shape[0])
        self.display_metrics = display_metrics
        self.workflow.fire(WorkflowEvent.IMAGE_ACCEPTED)
        return True

    def _scale(self):
        natural_width, natural_height = self.natural_size
        if self.display_metrics is None:
            return 1.0, 1.0
        return (
            self.display_metrics.rendered_width / natural_width,
            self.display_metrics.rendered_height / natural_height,
        )

    async def detect_faces(self, detector) -> List[Overlay]:
        """Run face detection on the loaded image and place the initial overlays.

        A detector failure is handled like an unreadable image: the session
        goes back to START with a warning and an empty list is returned.
        """
        async with self._detection_lock:
            if self.state is not WorkflowState.DETECTING:
                raise InvalidTransitionError(f"Cannot detect faces in state {self.state.value}")
            image = self._image
            try:
                faces = await asyncio.to_thread(detector.estimate_faces, image)
            except Exception as e:
                logger.warning(f"Face detection failed: {str(e)}")
                if self.state is WorkflowState.DETECTING and self._image is image:
                    self._clear_image()
                    self.workflow.fire(WorkflowEvent.DETECTION_FAILED, warning=INVALID_IMAGE_WARNING)
                return []

            if self.state is not WorkflowState.DETECTING or self._image is not image:
                logger.info("Session changed during detection, discarding faces")
                return []

            scale_x, scale_y = self._scale()
            overlays = resolve_overlays(faces, scale_x, scale_y, self.catalog, self.rng)
            self.overlays.replace(overlays)
            self.workflow.fire(WorkflowEvent.FACES_DETECTED)
            return self.overlays.snapshot()

    def remove_image(self) -> None:
        self.workflow.fire(WorkflowEvent.IMAGE_REMOVED)
        self._clear_image()

    def reset(self) -> None:
        self.coordinator.reset()
        self._clear_image()
        self.filename = ""
        self.mode = NORMAL_MODE
        self.workflow.fire(WorkflowEvent.RESET)

    def toggle_image_flip(self, axis: FlipAxis) -> None:
        self.image_options = self.image_options.toggled(FlipAxis(axis))
        self._options_revision += 1

    def render(self, configuration: Optional[RenderConfiguration] = None) -> Optional[RenderHandle]:
        """Snapshot the session and dispatch it; ``None`` when rejected.

        A configuration passed here becomes the session's configuration once
        the job is accepted.
        """
        configuration = configuration or self.configuration
        if self.source_image is None:
            logger.warning("Render rejected: no source image")
            return None
        job = RenderJob.snapshot(
            self.source_image,
            self.image_options,
            self.overlays,
            configuration,
            self.display_metrics,
        )
        handle = self.coordinator.dispatch(job, revision=self.revision)
        if handle is not None:
            self.configuration = configuration
        return handle

    def poll(self, timeout: float = 0.0) -> int:
        return self.coordinator.pump(timeout)

    def cancel_render(self) -> bool:
        return self.coordinator.cancel()

    def dismiss_result(self) -> None:
        self.workflow.fire(WorkflowEvent.RESULT_DISMISSED)

    def close(self) -> None:
        self.coordinator.reset()
        self.coordinator.channel.close(self.shutdown_timeout)
