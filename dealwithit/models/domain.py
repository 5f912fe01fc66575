"""Domain entities for overlay editing and rendering.

Overlays are mutable (they are edited in place by the collection model),
everything that crosses the worker boundary is a frozen snapshot.
"""

import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Tuple

MIN_OVERLAY_DIMENSION = 1.0


class RenderConfigurationError(ValueError):
    """Exception raised when a render configuration is out of bounds."""
    pass


class Direction(str, Enum):
    """Rotation applied to the overlay asset."""
    UP = "up"
    RIGHT = "right"
    DOWN = "down"
    LEFT = "left"


class FlipAxis(str, Enum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"


class LoopMode(str, Enum):
    INFINITE = "infinite"
    OFF = "off"
    FINITE = "finite"


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Size:
    width: float
    height: float


def _as_bool(value, name: str) -> bool:
    """Return ``value`` if it is a real boolean."""
    if not isinstance(value, bool):
        raise ValueError(f"{name} must be true or false, got {value!r}")
    return value


def new_overlay_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Overlay:
    style: str
    position: Point = Point(0.0, 0.0)
    size: Size = Size(1.0, 1.0)
    direction: Direction = Direction.UP
    flip_horizontal: bool = False
    flip_vertical: bool = False
    is_selected: bool = False
    id: str = field(default_factory=new_overlay_id)

    def copy(self) -> "Overlay":
        return replace(self)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "position": {"x": self.position.x, "y": self.position.y},
            "size": {"width": self.size.width, "height": self.size.height},
            "style": self.style,
            "direction": self.direction.value,
            "flipHorizontal": self.flip_horizontal,
            "flipVertical": self.flip_vertical,
            "isSelected": self.is_selected,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Overlay":
        return cls(
            id=data["id"],
            style=data["style"],
            position=Point(float(data["position"]["x"]), float(data["position"]["y"])),
            size=Size(float(data["size"]["width"]), float(data["size"]["height"])),
            direction=Direction(data.get("direction", Direction.UP.value)),
            flip_horizontal=bool(data.get("flipHorizontal", False)),
            flip_vertical=bool(data.get("flipVertical", False)),
            is_selected=bool(data.get("isSelected", False)),
        )


@dataclass(frozen=True)
class ImageTransformOptions:
    flip_horizontal: bool = False
    flip_vertical: bool = False

    def toggled(self, axis: FlipAxis) -> "ImageTransformOptions":
        if axis is FlipAxis.HORIZONTAL:
            return replace(self, flip_horizontal=not self.flip_horizontal)
        return replace(self, flip_vertical=not self.flip_vertical)

    def to_dict(self) -> dict:
        return {"flipHorizontal": self.flip_horizontal, "flipVertical": self.flip_vertical}


@dataclass(frozen=True)
class FinalFrameDelay:
    enabled: bool = True
    value_ms: int = 1000


@dataclass(frozen=True)
class LoopSettings:
    mode: LoopMode = LoopMode.INFINITE
    count: int = 5


@dataclass(frozen=True)
class RenderConfiguration:
    frame_count: int = 15
    frame_delay_ms: int = 100
    final_frame_delay: FinalFrameDelay = FinalFrameDelay()
    loop: LoopSettings = LoopSettings()
    output_max_dimension: int = 160

    def validate(self) -> None:
        """Check every field against its bounds.

        Raises:
            RenderConfigurationError: Listing every violated bound.
        """
        problems: List[str] = []
        if self.frame_count < 2:
            problems.append(f"frame_count must be >= 2, got {self.frame_count}")
        if self.frame_delay_ms < 0:
            problems.append(f"frame_delay_ms must be >= 0, got {self.frame_delay_ms}")
        if self.final_frame_delay.value_ms < 10:
            problems.append(
                f"final_frame_delay.value_ms must be >= 10, got {self.final_frame_delay.value_ms}"
            )
        if self.loop.mode is LoopMode.FINITE and self.loop.count < 1:
            problems.append(f"loop.count must be >= 1 for finite loops, got {self.loop.count}")
        if self.output_max_dimension < 1:
            problems.append(
                f"output_max_dimension must be >= 1, got {self.output_max_dimension}"
            )
        if problems:
            raise RenderConfigurationError("; ".join(problems))

    def frame_delays(self) -> List[int]:
        """Per-frame delays in milliseconds, the last one possibly lingering."""
        delays = [self.frame_delay_ms] * self.frame_count
        if self.final_frame_delay.enabled:
            delays[-1] = self.final_frame_delay.value_ms
        return delays

    def to_dict(self) -> dict:
        return {
            "numberOfFrames": self.frame_count,
            "frameDelay": self.frame_delay_ms,
            "lastFrameDelay": {
                "enabled": self.final_frame_delay.enabled,
                "value": self.final_frame_delay.value_ms,
            },
            "looping": {"mode": self.loop.mode.value, "loops": self.loop.count},
            "size": self.output_max_dimension,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RenderConfiguration":
        defaults = cls()
        last = data.get("lastFrameDelay") or {}
        looping = data.get("looping") or {}
        return cls(
            frame_count=int(data.get("numberOfFrames", defaults.frame_count)),
            frame_delay_ms=int(data.get("frameDelay", defaults.frame_delay_ms)),
            final_frame_delay=FinalFrameDelay(
                enabled=_as_bool(
                    last.get("enabled", defaults.final_frame_delay.enabled),
                    "lastFrameDelay.enabled",
                ),
                value_ms=int(last.get("value", defaults.final_frame_delay.value_ms)),
            ),
            loop=LoopSettings(
                mode=LoopMode(looping.get("mode", defaults.loop.mode.value)),
                count=int(looping.get("loops", defaults.loop.count)),
            ),
            output_max_dimension=int(data.get("size", defaults.output_max_dimension)),
        )


@dataclass(frozen=True)
class DisplayMetrics:
    """Size the source image is displayed at; overlay coordinates live in this space."""
    rendered_width: float
    rendered_height: float


@dataclass(frozen=True)
class RenderJob:
    source_image: bytes
    image_options: ImageTransformOptions
    overlays: Tuple[Overlay, ...]
    configuration: RenderConfiguration
    display_metrics: Optional[DisplayMetrics] = None

    @classmethod
    def snapshot(
        cls,
        source_image: bytes,
        image_options: ImageTransformOptions,
        overlays,
        configuration: RenderConfiguration,
        display_metrics: Optional[DisplayMetrics] = None,
    ) -> "RenderJob":
        """Copy the live overlays so later edits cannot reach the job."""
        return cls(
            source_image=bytes(source_image),
            image_options=image_options,
            overlays=tuple(overlay.copy() for overlay in overlays),
            configuration=configuration,
            display_metrics=display_metrics,
        )


@dataclass(frozen=True)
class RenderResult:
    final_asset: bytes
    preview_data_url: str
