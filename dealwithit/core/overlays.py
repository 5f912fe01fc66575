"""Ordered, id-addressed collection of overlays.

Overlays are kept in an arena keyed by id, with the display/stacking order
held separately as a list of ids. Every operation addresses overlays by id;
an unknown id means the caller holds a stale reference and the call is a
silent no-op.
"""

import logging
import math
from typing import Dict, Iterable, Iterator, List, Optional

from ..models.domain import (
    MIN_OVERLAY_DIMENSION,
    Direction,
    FlipAxis,
    Overlay,
    Point,
    Size,
)
from .geometry import default_overlay
from .styles import StyleCatalog, catalog as default_catalog

logger = logging.getLogger(__name__)


class OverlayCollection:
    """Mutable overlay list with exclusive selection and explicit ordering."""

    def __init__(self, overlays: Iterable[Overlay] = (), catalog: StyleCatalog = default_catalog):
        self.catalog = catalog
        self._arena: Dict[str, Overlay] = {}
        self._order: List[str] = []
        self.revision = 0
        for overlay in overlays:
            self._insert(overlay)

    def __len__(self) -> int:
        return len(self._order)

    def __iter__(self) -> Iterator[Overlay]:
        return (self._arena[overlay_id] for overlay_id in self._order)

    def __contains__(self, overlay_id: object) -> bool:
        return overlay_id in self._arena

    @property
    def ids(self) -> List[str]:
        return list(self._order)

    @property
    def selected(self) -> Optional[Overlay]:
        return next((overlay for overlay in self if overlay.is_selected), None)

    def get(self, overlay_id: str) -> Optional[Overlay]:
        return self._arena.get(overlay_id)

    def snapshot(self) -> List[Overlay]:
        """Independent copies in collection order."""
        return [overlay.copy() for overlay in self]

    def _insert(self, overlay: Overlay) -> None:
        if overlay.id in self._arena:
            raise ValueError(f"Duplicate overlay id {overlay.id}")
        if overlay.is_selected and self.selected is not None:
            overlay.is_selected = False
        overlay.size = _clamp_size(overlay.size)
        self._arena[overlay.id] = overlay
        self._order.append(overlay.id)

    def _touch(self) -> None:
        self.revision += 1

    def replace(self, overlays: Iterable[Overlay]) -> None:
        """Swap the whole collection, e.g. after a fresh face detection."""
        self._arena.clear()
        self._order.clear()
        for overlay in overlays:
            self._insert(overlay)
        self._touch()

    def clear(self) -> None:
        self.replace(())

    def add(self, overlay: Optional[Overlay] = None) -> Overlay:
        """Append ``overlay`` (a default-placed one when omitted) and return it."""
        overlay = overlay or default_overlay(catalog=self.catalog)
        self._insert(overlay)
        self._touch()
        logger.debug(f"Added overlay {overlay.id}")
        return overlay

    def remove(self, overlay_id: str) -> bool:
        if overlay_id not in self._arena:
            return False
        del self._arena[overlay_id]
        self._order.remove(overlay_id)
        self._touch()
        logger.debug(f"Removed overlay {overlay_id}")
        return True

    def move(self, overlay_id: str, delta: Point) -> bool:
        """Shift an overlay by a drag delta."""
        overlay = self._arena.get(overlay_id)
        if overlay is None:
            return False
        overlay.position = Point(overlay.position.x + delta.x, overlay.position.y + delta.y)
        self._touch()
        return True

    def place(self, overlay_id: str, position: Point) -> bool:
        overlay = self._arena.get(overlay_id)
        if overlay is None:
            return False
        overlay.position = position
        self._touch()
        return True

    def set_size(self, overlay_id: str, size: Size) -> bool:
        """Resize an overlay; non-positive dimensions are clamped to the floor."""
        overlay = self._arena.get(overlay_id)
        if overlay is None:
            return False
        overlay.size = _clamp_size(size)
        self._touch()
        return True

    def set_style(self, overlay_id: str, style: str) -> bool:
        """Apply another style.

        Raises:
            UnknownStyleError: If ``style`` is not in the catalog.
        """
        overlay = self._arena.get(overlay_id)
        if overlay is None:
            return False
        self.catalog.get(style)
        overlay.style = style
        self._touch()
        return True

    def set_direction(self, overlay_id: str, direction: Direction) -> bool:
        overlay = self._arena.get(overlay_id)
        if overlay is None:
            return False
        overlay.direction = Direction(direction)
        self._touch()
        return True

    def toggle_flip(self, overlay_id: str, axis: FlipAxis) -> bool:
        overlay = self._arena.get(overlay_id)
        if overlay is None:
            return False
        if FlipAxis(axis) is FlipAxis.HORIZONTAL:
            overlay.flip_horizontal = not overlay.flip_horizontal
        else:
            overlay.flip_vertical = not overlay.flip_vertical
        self._touch()
        return True

    def select(self, overlay_id: str) -> bool:
        """Exclusive selection toggle.

        Every other overlay is deselected; the target becomes selected unless
        it already was, in which case nothing stays selected.
        """
        target = self._arena.get(overlay_id)
        if target is None:
            return False
        was_selected = target.is_selected
        for overlay in self._arena.values():
            overlay.is_selected = False
        target.is_selected = not was_selected
        self._touch()
        return True

    def reorder(self, old_id: str, new_id: str) -> bool:
        """Move ``old_id`` to the slot currently held by ``new_id``."""
        if old_id not in self._arena or new_id not in self._arena:
            return False
        new_index = self._order.index(new_id)
        self._order.remove(old_id)
        self._order.insert(new_index, old_id)
        self._touch()
        return True

    def to_list(self) -> List[dict]:
        return [overlay.to_dict() for overlay in self]


def _clamp_dimension(value: float) -> float:
    value = float(value)
    if not math.isfinite(value) or value < MIN_OVERLAY_DIMENSION:
        return MIN_OVERLAY_DIMENSION
    return value


def _clamp_size(size: Size) -> Size:
    return Size(_clamp_dimension(size.width), _clamp_dimension(size.height))
