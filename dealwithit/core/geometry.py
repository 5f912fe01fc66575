"""Initial overlay placement from detected face keypoints.

Keypoints arrive in detector (natural image) space; overlays live in the
space the image is displayed at, hence the ``scale_x``/``scale_y`` factors
(``rendered / natural`` per axis).
"""

import logging
import math
import random
from typing import List, Optional, Sequence, Tuple

from ..models.domain import MIN_OVERLAY_DIMENSION, Overlay, Point, Size
from .styles import StyleCatalog, catalog as default_catalog

logger = logging.getLogger(__name__)

Keypoint = Tuple[float, float]
Face = Sequence[Keypoint]

LEFT_EYE = 0
RIGHT_EYE = 1
NOSE_TIP = 2

DEFAULT_POSITION = Point(10.0, 10.0)


def default_overlay(style: Optional[str] = None, catalog: StyleCatalog = default_catalog) -> Overlay:
    """Overlay at the library default placement, used when no face is found."""
    style_name = style or catalog.default_style
    return Overlay(
        style=style_name,
        position=DEFAULT_POSITION,
        size=catalog.get(style_name).reference_size,
    )


def eyes_distance(face: Face, scale_x: float = 1.0, scale_y: float = 1.0) -> float:
    """Inter-eye distance in display space."""
    (x0, y0), (x1, y1) = face[LEFT_EYE], face[RIGHT_EYE]
    return math.sqrt((scale_y * (y0 - y1)) ** 2 + (scale_x * (x0 - x1)) ** 2)


def place_overlay(
    face: Face,
    style: str,
    scale_x: float = 1.0,
    scale_y: float = 1.0,
    catalog: StyleCatalog = default_catalog,
) -> Overlay:
    """Size and position one overlay of ``style`` on ``face``.

    The overlay is scaled uniformly by the ratio between the face's
    inter-eye distance and the style's reference one, then shifted so the
    style's anchor lands on the nose x / eye line y. Both coordinates are
    kept non-negative.
    """
    glasses = catalog.get(style)
    reference_size = glasses.reference_size
    glasses_scale = eyes_distance(face, scale_x, scale_y) / glasses.reference_eyes_distance
    size = Size(
        max(reference_size.width * glasses_scale, MIN_OVERLAY_DIMENSION),
        max(reference_size.height * glasses_scale, MIN_OVERLAY_DIMENSION),
    )

    eye_y = face[LEFT_EYE][1]
    nose_x = face[NOSE_TIP][0]
    nose_y = abs(face[LEFT_EYE][1] - face[RIGHT_EYE][1]) / 2
    anchor = glasses.anchor_offset
    glasses_scale_x = size.width / reference_size.width
    glasses_scale_y = size.height / reference_size.height
    position = Point(
        abs(nose_x * scale_x - anchor.x * glasses_scale_x),
        abs((eye_y + nose_y) * scale_y - anchor.y * glasses_scale_y),
    )
    return Overlay(style=style, position=position, size=size)


def resolve_overlays(
    faces: Sequence[Face],
    scale_x: float = 1.0,
    scale_y: float = 1.0,
    catalog: StyleCatalog = default_catalog,
    rng: Optional[random.Random] = None,
) -> List[Overlay]:
    """Produce the initial overlay list for a set of detected faces.

    Args:
        faces: Detected faces, each a list of ``(x, y)`` keypoints with the
            two eyes at indices 0 and 1 and the nose tip at index 2.
        scale_x: Rendered width divided by natural width.
        scale_y: Rendered height divided by natural height.
        catalog: Style catalog to draw reference geometry from.
        rng: Random source for the styles of additional faces.

    Returns:
        One overlay per usable face, or a single default overlay when there
        are none.
    """
    usable = [face for face in faces if len(face) > NOSE_TIP]
    if len(usable) < len(faces):
        logger.warning(f"Skipping {len(faces) - len(usable)} face(s) with missing keypoints")
    if not usable:
        logger.info("No faces detected, using default placement")
        return [default_overlay(catalog=catalog)]

    rng = rng or random.Random()
    overlays = []
    for index, face in enumerate(usable):
        style = catalog.default_style if index == 0 else catalog.random_style(rng)
        overlays.append(place_overlay(face, style, scale_x, scale_y, catalog))
    logger.info(f"Placed {len(overlays)} overlay(s) on detected faces")
    return overlays
