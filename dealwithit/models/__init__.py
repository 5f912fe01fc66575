"""Data models and type definitions"""
from .domain import (
    Direction,
    DisplayMetrics,
    FinalFrameDelay,
    FlipAxis,
    ImageTransformOptions,
    LoopMode,
    LoopSettings,
    Overlay,
    Point,
    RenderConfiguration,
    RenderConfigurationError,
    RenderJob,
    RenderResult,
    Size,
)

__all__ = [
    'Direction',
    'DisplayMetrics',
    'FinalFrameDelay',
    'FlipAxis',
    'ImageTransformOptions',
    'LoopMode',
    'LoopSettings',
    'Overlay',
    'Point',
    'RenderConfiguration',
    'RenderConfigurationError',
    'RenderJob',
    'RenderResult',
    'Size',
]
