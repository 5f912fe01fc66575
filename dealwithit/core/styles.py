"""Pixel-art glasses style catalog.

Every style is drawn procedurally from a cell grid, so no asset files have
to ship with the package. All built-in styles share the same horizontal
frame proportions (lens width and bridge width in cells), which keeps the
placement scale linear in the inter-eye distance whatever style a face gets.
"""

import random
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

import cv2
import numpy as np

from ..models.domain import Direction, Point, Size

LENS_WIDTH_CELLS = 8
BRIDGE_WIDTH_CELLS = 2

# BGRA
BLACK = (0, 0, 0, 255)
WHITE = (255, 255, 255, 255)


class UnknownStyleError(KeyError):
    """Exception raised when a style reference is not in the catalog."""
    pass


@dataclass(frozen=True)
class GlassesStyle:
    name: str
    lens_height: int
    cell: int = 8
    frame_color: Tuple[int, int, int, int] = BLACK
    highlight_color: Tuple[int, int, int, int] = WHITE
    highlights: Tuple[Tuple[int, int], ...] = ((0, 2), (1, 1))

    @property
    def columns(self) -> int:
        return 2 * LENS_WIDTH_CELLS + BRIDGE_WIDTH_CELLS

    @property
    def rows(self) -> int:
        return 1 + self.lens_height

    @property
    def reference_size(self) -> Size:
        return Size(float(self.columns * self.cell), float(self.rows * self.cell))

    @property
    def reference_eyes_distance(self) -> float:
        """Distance between the two lens centres, in reference pixels."""
        return float((LENS_WIDTH_CELLS + BRIDGE_WIDTH_CELLS) * self.cell)

    @property
    def anchor_offset(self) -> Point:
        """Point of the asset that sits on the eye line above the nose."""
        return Point(
            self.columns * self.cell / 2.0,
            (1 + self.lens_height / 2.0) * self.cell,
        )

    def cell_mask(self) -> np.ndarray:
        """Draw the style on its cell grid as a BGRA array."""
        grid = np.zeros((self.rows, self.columns, 4), dtype=np.uint8)
        grid[0, :] = self.frame_color
        lens_starts = (0, LENS_WIDTH_CELLS + BRIDGE_WIDTH_CELLS)
        for row in range(self.lens_height):
            # the last lens row is rounded off by one cell on each side
            inset = 1 if row == self.lens_height - 1 and self.lens_height > 1 else 0
            for start in lens_starts:
                grid[1 + row, start + inset:start + LENS_WIDTH_CELLS - inset] = self.frame_color
        for start in lens_starts:
            for row, col in self.highlights:
                if row < self.lens_height and col < LENS_WIDTH_CELLS:
                    grid[1 + row, start + col] = self.highlight_color
        return grid


BUILTIN_STYLES: Tuple[GlassesStyle, ...] = (
    GlassesStyle(name="classic", lens_height=3),
    GlassesStyle(name="slim", lens_height=2, highlights=((0, 1),)),
    GlassesStyle(name="bold", lens_height=4, highlights=((0, 2), (0, 3), (1, 1), (2, 1))),
    GlassesStyle(
        name="neon",
        lens_height=3,
        frame_color=(180, 40, 255, 255),
        highlight_color=(255, 255, 0, 255),
    ),
)


class StyleCatalog:
    """Lookup of glasses styles and their renderable assets."""

    def __init__(self, styles: Iterable[GlassesStyle], default: str):
        self._styles: Dict[str, GlassesStyle] = {style.name: style for style in styles}
        if default not in self._styles:
            raise UnknownStyleError(default)
        self.default_style = default
        self._reference_assets: Dict[str, np.ndarray] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._styles

    @property
    def names(self) -> List[str]:
        return list(self._styles)

    def get(self, name: str) -> GlassesStyle:
        try:
            return self._styles[name]
        except KeyError:
            raise UnknownStyleError(name) from None

    def random_style(self, rng: random.Random) -> str:
        return rng.choice(self.names)

    def reference_asset(self, name: str) -> np.ndarray:
        """Style drawn at its reference size, facing up, unflipped."""
        if name not in self._reference_assets:
            style = self.get(name)
            size = style.reference_size
            self._reference_assets[name] = cv2.resize(
                style.cell_mask(),
                (int(size.width), int(size.height)),
                interpolation=cv2.INTER_NEAREST,
            )
        return self._reference_assets[name]

    def asset(
        self,
        name: str,
        direction: Direction = Direction.UP,
        flip_horizontal: bool = False,
        flip_vertical: bool = False,
    ) -> np.ndarray:
        """Return the BGRA asset for a direction/flip combination.

        Flips are applied before the rotation, so a horizontally flipped
        overlay stays mirrored along its own axis whatever its direction.
        """
        asset = self.reference_asset(name).copy()
        if flip_horizontal and flip_vertical:
            asset = cv2.flip(asset, -1)
        elif flip_horizontal:
            asset = cv2.flip(asset, 1)
        elif flip_vertical:
            asset = cv2.flip(asset, 0)

        if direction is Direction.RIGHT:
            asset = cv2.rotate(asset, cv2.ROTATE_90_CLOCKWISE)
        elif direction is Direction.DOWN:
            asset = cv2.rotate(asset, cv2.ROTATE_180)
        elif direction is Direction.LEFT:
            asset = cv2.rotate(asset, cv2.ROTATE_90_COUNTERCLOCKWISE)
        return asset

    def describe(self) -> List[dict]:
        listing = []
        for style in self._styles.values():
            listing.append({
                'name': style.name,
                'default': style.name == self.default_style,
                'referenceSize': {
                    'width': style.reference_size.width,
                    'height': style.reference_size.height,
                },
                'referenceEyesDistance': style.reference_eyes_distance,
                'anchorOffset': {'x': style.anchor_offset.x, 'y': style.anchor_offset.y},
            })
        return listing


# Create global catalog instance
catalog = StyleCatalog(BUILTIN_STYLES, default="classic")
