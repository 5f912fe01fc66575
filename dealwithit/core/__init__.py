"""Overlay placement, editing and rendering"""
from .coordinator import RenderCoordinator, RenderHandle
from .geometry import default_overlay, resolve_overlays
from .overlays import OverlayCollection
from .session import EditingSession
from .styles import StyleCatalog, UnknownStyleError, catalog
from .worker import create_channel
from .workflow import InvalidTransitionError, WorkflowEvent, WorkflowState, WorkflowStateMachine

__all__ = [
    'EditingSession',
    'InvalidTransitionError',
    'OverlayCollection',
    'RenderCoordinator',
    'RenderHandle',
    'StyleCatalog',
    'UnknownStyleError',
    'WorkflowEvent',
    'WorkflowState',
    'WorkflowStateMachine',
    'catalog',
    'create_channel',
    'default_overlay',
    'resolve_overlays'
]
