"""Frame compositing and GIF encoding for one render job.

Overlays slide into place from just above the top edge of the image,
moving linearly from ``y = -height`` to their final position over the
frame sequence; x, size, direction and flips stay fixed.
"""

import io
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import cv2
import numpy as np
from PIL import Image

from ..models.domain import (
    Direction,
    ImageTransformOptions,
    LoopMode,
    Overlay,
    RenderConfiguration,
    RenderResult,
)
from ..models.types import JobMessage
from ..utils.image import (
    alpha_composite,
    decode_image_bytes,
    encode_data_url,
    fit_within,
    flip_image,
)
from .styles import StyleCatalog, catalog as default_catalog

logger = logging.getLogger(__name__)

COMPOSITING_SHARE = 90.0
PROGRESS_STEPS = 10
# half of the 256 GIF palette slots; the other half mirrors it
PALETTE_COLORS = 128

ProgressCallback = Callable[[float], None]
CancelCheck = Callable[[], bool]


class RenderError(Exception):
    """Exception raised when a job cannot be composited or encoded."""
    pass


class RenderCancelled(Exception):
    """Raised inside the renderer when the job was cancelled mid-flight."""
    pass


@dataclass(frozen=True)
class Sprite:
    image: np.ndarray
    x: int
    final_y: int

    @property
    def start_y(self) -> int:
        return -self.image.shape[0]

    def y_at(self, t: float) -> int:
        """Vertical position at animation progress ``t`` in [0, 1]."""
        if t >= 1.0:
            return self.final_y
        return int(round(self.start_y + (self.final_y - self.start_y) * t))


def animation_progress(index: int, frame_count: int) -> float:
    return index / (frame_count - 1)


def gif_loop_options(configuration: RenderConfiguration) -> dict:
    """Pillow ``save`` keywords for the configured loop mode.

    The GIF loop count is the number of repeats after the first play, and
    omitting it entirely plays the animation once.
    """
    loop = configuration.loop
    if loop.mode is LoopMode.INFINITE:
        return {'loop': 0}
    if loop.mode is LoopMode.FINITE and loop.count > 1:
        return {'loop': loop.count - 1}
    return {}


def build_sprite(
    overlay: Overlay,
    ratio_x: float,
    ratio_y: float,
    catalog: StyleCatalog = default_catalog,
) -> Sprite:
    """Prepare an overlay's asset at output resolution.

    Sideways directions rotate the overlay's box about its centre, so the
    glasses keep their proportions instead of being squashed.
    """
    width = overlay.size.width * ratio_x
    height = overlay.size.height * ratio_y
    center_x = overlay.position.x * ratio_x + width / 2
    center_y = overlay.position.y * ratio_y + height / 2
    if overlay.direction in (Direction.LEFT, Direction.RIGHT):
        width, height = height, width

    target = (max(1, int(round(width))), max(1, int(round(height))))
    asset = catalog.asset(
        overlay.style,
        overlay.direction,
        overlay.flip_horizontal,
        overlay.flip_vertical,
    )
    image = cv2.resize(asset, target, interpolation=cv2.INTER_NEAREST)
    return Sprite(
        image=image,
        x=int(round(center_x - target[0] / 2)),
        final_y=int(round(center_y - target[1] / 2)),
    )


def composite_frames(
    background: np.ndarray,
    sprites: Sequence[Sprite],
    frame_count: int,
    on_progress: Optional[ProgressCallback] = None,
    should_cancel: Optional[CancelCheck] = None,
) -> List[np.ndarray]:
    frames = []
    step = max(1, frame_count // PROGRESS_STEPS)
    for index in range(frame_count):
        if should_cancel is not None and should_cancel():
            raise RenderCancelled()
        t = animation_progress(index, frame_count)
        frame = background.copy()
        for sprite in sprites:
            alpha_composite(frame, sprite.image, sprite.x, sprite.y_at(t))
        frames.append(frame)
        done = index + 1
        if on_progress is not None and (done % step == 0 or done == frame_count):
            on_progress(COMPOSITING_SHARE * done / frame_count)
    return frames


def shared_palette(rgb_frames: Sequence[np.ndarray]) -> List[int]:
    """Adaptive palette for the whole animation, stored twice.

    Entries ``i`` and ``i ^ PALETTE_COLORS`` hold the same colour, so a frame
    can differ from its predecessor in index data without any visible change.
    """
    sample = Image.fromarray(np.vstack(rgb_frames))
    colors = sample.quantize(colors=PALETTE_COLORS, dither=Image.Dither.NONE).getpalette()
    colors = colors[:PALETTE_COLORS * 3]
    colors += [0] * (PALETTE_COLORS * 3 - len(colors))
    return colors + colors


def palette_frames(frames: Sequence[np.ndarray]) -> List[Image.Image]:
    """Convert BGR frames to palette images no two consecutive of which are equal.

    Pillow's GIF writer folds a frame identical to the previous one into it,
    which would drop frames and merge their delays.
    """
    rgb_frames = [cv2.cvtColor(frame, cv2.COLOR_BGR2RGB) for frame in frames]
    palette = shared_palette(rgb_frames)
    reference = Image.new("P", (1, 1))
    reference.putpalette(palette)

    images = []
    previous = None
    for rgb in rgb_frames:
        quantized = Image.fromarray(rgb).quantize(palette=reference, dither=Image.Dither.NONE)
        indices = np.asarray(quantized) % PALETTE_COLORS
        if previous is not None and np.array_equal(indices, previous):
            indices[0, 0] ^= PALETTE_COLORS
        previous = indices
        image = Image.fromarray(indices.astype(np.uint8))
        image.putpalette(palette)
        images.append(image)
    return images


def encode_gif(frames: Sequence[np.ndarray], configuration: RenderConfiguration) -> bytes:
    images = palette_frames(frames)
    buffer = io.BytesIO()
    images[0].save(
        buffer,
        format="GIF",
        save_all=True,
        append_images=images[1:],
        duration=configuration.frame_delays(),
        disposal=1,
        optimize=False,
        **gif_loop_options(configuration),
    )
    return buffer.getvalue()


def _display_size(message: JobMessage, natural: Tuple[int, int]) -> Tuple[float, float]:
    metrics = message.get('sourceImageDisplayMetrics')
    if metrics and metrics.get('renderedWidth') and metrics.get('renderedHeight'):
        return float(metrics['renderedWidth']), float(metrics['renderedHeight'])
    return float(natural[0]), float(natural[1])


def render_job(
    message: JobMessage,
    on_progress: Optional[ProgressCallback] = None,
    should_cancel: Optional[CancelCheck] = None,
    catalog: StyleCatalog = default_catalog,
) -> RenderResult:
    """Composite and encode one job message into a GIF.

    Args:
        message: The job as sent over the worker channel.
        on_progress: Receives a percentage at a bounded cadence.
        should_cancel: Polled between frames; a true result aborts the job.
        catalog: Style catalog the overlays refer to.

    Returns:
        The encoded GIF and its data URL preview.

    Raises:
        RenderCancelled: If ``should_cancel`` returned true.
        RenderError: If anything else goes wrong.
    """
    try:
        configuration = RenderConfiguration.from_dict(message['configurationOptions'])
        configuration.validate()
        options = ImageTransformOptions(
            flip_horizontal=bool(message['imageTransformOptions']['flipHorizontal']),
            flip_vertical=bool(message['imageTransformOptions']['flipVertical']),
        )
        overlays = [Overlay.from_dict(item) for item in message['overlayList']]

        source = decode_image_bytes(message['sourceImageFile'])
        source = flip_image(source, options.flip_horizontal, options.flip_vertical)
        natural_height, natural_width = source.shape[:2]
        output_size = fit_within(natural_width, natural_height, configuration.output_max_dimension)
        background = cv2.resize(source, output_size, interpolation=cv2.INTER_AREA)

        rendered_width, rendered_height = _display_size(message, (natural_width, natural_height))
        ratio_x = output_size[0] / rendered_width
        ratio_y = output_size[1] / rendered_height
        sprites = [build_sprite(overlay, ratio_x, ratio_y, catalog) for overlay in overlays]

        logger.info(
            f"Rendering {configuration.frame_count} frames at {output_size[0]}x{output_size[1]} "
            f"with {len(sprites)} overlay(s)"
        )
        frames = composite_frames(
            background, sprites, configuration.frame_count, on_progress, should_cancel
        )
        gif_blob = encode_gif(frames, configuration)
    except RenderCancelled:
        raise
    except Exception as e:
        raise RenderError(f"Failed to render job: {str(e)}") from e

    if on_progress is not None:
        on_progress(100.0)
    return RenderResult(final_asset=gif_blob, preview_data_url=encode_data_url(gif_blob))
