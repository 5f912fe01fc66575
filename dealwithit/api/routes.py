"""Overlay editing API routes.

This module provides the API endpoints for the editing workflow: uploading
a source image, editing the overlays placed on the detected faces, and
rendering, polling and downloading the animated result.
"""

import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, HTTPException, Request, Response, status

from ..core.session import EditingSession
from ..core.styles import UnknownStyleError
from ..core.workflow import InvalidTransitionError, WorkflowState
from ..models.domain import (
    Direction,
    DisplayMetrics,
    FlipAxis,
    Point,
    RenderConfiguration,
    Size,
)
from ..models.types import (
    CreateSessionRequest,
    ErrorResponse,
    FlipRequest,
    OverlayUpdateRequest,
    RenderStatus,
    ReorderRequest,
    SessionView,
)
from ..utils.image import ImageProcessingError, decode_base64_bytes
from .store import SessionNotFoundError, SessionStore

# Configure logging
logger = logging.getLogger(__name__)

router = APIRouter()


def get_store(request: Request) -> SessionStore:
    return request.app.state.store


def get_detector(request: Request):
    """Landmark detector shared by all sessions, built on first use."""
    if request.app.state.detector is None:
        from ..core.face_detection import FaceLandmarkDetector
        request.app.state.detector = FaceLandmarkDetector()
    return request.app.state.detector


def get_session(request: Request, session_id: str) -> EditingSession:
    try:
        return get_store(request).get(session_id)
    except SessionNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown session {session_id}"
        )


def require_editable(session: EditingSession) -> None:
    if not session.workflow.is_editable:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Session is {session.state.value}, overlays can only be edited when READY"
        )


def session_view(session: EditingSession) -> SessionView:
    return {
        'id': session.id,
        'state': session.state.value,
        'mode': session.mode,
        'warning': session.workflow.warning,
        'overlays': session.overlays.to_list(),
        'imageOptions': session.image_options.to_dict(),
        'renderConfiguration': session.configuration.to_dict(),
    }


def render_status(session: EditingSession) -> RenderStatus:
    coordinator = session.coordinator
    return {
        'state': session.state.value,
        'jobId': coordinator.active.job_id if coordinator.active else None,
        'progress': coordinator.progress,
        'failure': coordinator.failure,
        'successCount': coordinator.success_count,
        'successMessage': session.success_message,
        'resultIsCurrent': session.result_is_current,
    }


def parse_axis(value: str) -> FlipAxis:
    try:
        return FlipAxis(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown flip axis {value!r}"
        )


@router.get("/styles")
async def list_styles(request: Request) -> Dict:
    return {'styles': get_store(request).catalog.describe()}


@router.post("/sessions", response_model=SessionView, status_code=status.HTTP_201_CREATED)
async def create_session(request: Request, request_data: CreateSessionRequest) -> Dict:
    """Upload a source image and place overlays on the faces found in it.

    Args:
        request_data: Dictionary containing the base64-encoded image.
            - image: Base64 string or data URL of the photo
            - filename: Original file name (optional)
            - renderedWidth / renderedHeight: Size the image is displayed at
              (optional, defaults to its natural size)

    Returns:
        The session view with its overlays, in READY state.

    Raises:
        HTTPException: If the image cannot be decoded or analysed.
    """
    store = get_store(request)
    metrics, image_bytes = parse_upload(request_data)
    session = store.create()
    try:
        return await load_source_image(request, session, request_data, image_bytes, metrics)
    except HTTPException:
        store.delete(session.id)
        raise


@router.post("/sessions/{session_id}/image", response_model=SessionView)
async def replace_image(request: Request, session_id: str, request_data: CreateSessionRequest) -> Dict:
    """Load a new source image into a session that is back at START."""
    session = get_session(request, session_id)
    if session.state is not WorkflowState.START:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Session is {session.state.value}, remove the current image first"
        )
    metrics, image_bytes = parse_upload(request_data)
    return await load_source_image(request, session, request_data, image_bytes, metrics)


def parse_upload(request_data: CreateSessionRequest):
    metrics = None
    rendered_width = request_data.get('renderedWidth')
    rendered_height = request_data.get('renderedHeight')
    if rendered_width is not None or rendered_height is not None:
        if not rendered_width or not rendered_height or rendered_width <= 0 or rendered_height <= 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="renderedWidth and renderedHeight must both be positive"
            )
        metrics = DisplayMetrics(float(rendered_width), float(rendered_height))

    try:
        logger.info("Decoding input image...")
        image_bytes = decode_base64_bytes(request_data['image'])
    except ImageProcessingError as e:
        logger.warning(f"Validation error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    return metrics, image_bytes


async def load_source_image(
    request: Request,
    session: EditingSession,
    request_data: CreateSessionRequest,
    image_bytes: bytes,
    metrics: Optional[DisplayMetrics],
) -> SessionView:
    try:
        if not session.load_image(image_bytes, request_data.get('filename', ''), metrics):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=session.workflow.warning
            )

        logger.info("Detecting faces...")
        await session.detect_faces(get_detector(request))
        if session.state is not WorkflowState.READY:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=session.workflow.warning
            )
        return session_view(session)

    except HTTPException:
        raise
    except Exception as e:
        session.reset()
        error_details: ErrorResponse = {
            'error': str(e),
            'traceback': traceback.format_exc()
        }
        logger.error("Error details:", extra=error_details)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=error_details
        )


@router.get("/sessions/{session_id}", response_model=SessionView)
async def read_session(request: Request, session_id: str) -> Dict:
    session = get_session(request, session_id)
    session.poll()
    return session_view(session)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(request: Request, session_id: str) -> Response:
    """Remove the source image and discard the session."""
    session = get_session(request, session_id)
    if session.workflow.is_editable:
        session.remove_image()
    get_store(request).delete(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/sessions/{session_id}/reset", response_model=SessionView)
async def reset_session(request: Request, session_id: str) -> Dict:
    session = get_session(request, session_id)
    session.reset()
    return session_view(session)


@router.post("/sessions/{session_id}/overlays", response_model=SessionView)
async def add_overlay(request: Request, session_id: str) -> Dict:
    session = get_session(request, session_id)
    require_editable(session)
    session.overlays.add()
    return session_view(session)


@router.delete("/sessions/{session_id}/overlays/{overlay_id}", response_model=SessionView)
async def remove_overlay(request: Request, session_id: str, overlay_id: str) -> Dict:
    session = get_session(request, session_id)
    require_editable(session)
    session.overlays.remove(overlay_id)
    return session_view(session)


@router.post("/sessions/{session_id}/overlays/reorder", response_model=SessionView)
async def reorder_overlays(request: Request, session_id: str, request_data: ReorderRequest) -> Dict:
    session = get_session(request, session_id)
    require_editable(session)
    session.overlays.reorder(request_data['activeId'], request_data['overId'])
    return session_view(session)


@router.patch("/sessions/{session_id}/overlays/{overlay_id}", response_model=SessionView)
async def update_overlay(
    request: Request,
    session_id: str,
    overlay_id: str,
    request_data: OverlayUpdateRequest,
) -> Dict:
    """Apply drag, resize, style and direction edits to one overlay.

    Unknown overlay ids leave the session unchanged.
    """
    session = get_session(request, session_id)
    require_editable(session)
    overlays = session.overlays
    try:
        if 'delta' in request_data:
            delta = request_data['delta']
            overlays.move(overlay_id, Point(float(delta['x']), float(delta['y'])))
        if 'position' in request_data:
            position = request_data['position']
            overlays.place(overlay_id, Point(float(position['x']), float(position['y'])))
        if 'size' in request_data:
            size = request_data['size']
            overlays.set_size(overlay_id, Size(float(size['width']), float(size['height'])))
        if 'style' in request_data:
            overlays.set_style(overlay_id, request_data['style'])
        if 'direction' in request_data:
            overlays.set_direction(overlay_id, Direction(request_data['direction']))
    except UnknownStyleError as e:
        logger.warning(f"Unknown style: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown style {request_data.get('style')!r}"
        )
    except ValueError as e:
        logger.warning(f"Validation error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    return session_view(session)


@router.post("/sessions/{session_id}/overlays/{overlay_id}/flip", response_model=SessionView)
async def flip_overlay(
    request: Request,
    session_id: str,
    overlay_id: str,
    request_data: FlipRequest,
) -> Dict:
    session = get_session(request, session_id)
    require_editable(session)
    session.overlays.toggle_flip(overlay_id, parse_axis(request_data['axis']))
    return session_view(session)


@router.post("/sessions/{session_id}/overlays/{overlay_id}/select", response_model=SessionView)
async def select_overlay(request: Request, session_id: str, overlay_id: str) -> Dict:
    session = get_session(request, session_id)
    require_editable(session)
    session.overlays.select(overlay_id)
    return session_view(session)


@router.post("/sessions/{session_id}/image-options/flip", response_model=SessionView)
async def flip_image(request: Request, session_id: str, request_data: FlipRequest) -> Dict:
    session = get_session(request, session_id)
    require_editable(session)
    session.toggle_image_flip(parse_axis(request_data['axis']))
    return session_view(session)


@router.post("/sessions/{session_id}/render", status_code=status.HTTP_202_ACCEPTED)
async def start_render(
    request: Request,
    session_id: str,
    configuration: Optional[Dict[str, Any]] = Body(None),
) -> Dict:
    """Dispatch a render job for the session's current overlays.

    Args:
        configuration: Render configuration overrides (optional), using the
            keys numberOfFrames, frameDelay, lastFrameDelay, looping, size.

    Raises:
        HTTPException: 409 if the job was rejected (wrong state, no overlays
            or configuration out of bounds).
    """
    session = get_session(request, session_id)
    try:
        render_configuration = (
            RenderConfiguration.from_dict({**session.configuration.to_dict(), **configuration})
            if configuration else None
        )
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Validation error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    handle = session.render(render_configuration)
    if handle is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Render rejected: the session must be READY with at least one overlay and a valid configuration"
        )
    return {'jobId': handle.job_id, 'state': session.state.value}


@router.get("/sessions/{session_id}/render", response_model=RenderStatus)
async def read_render_status(request: Request, session_id: str) -> Dict:
    session = get_session(request, session_id)
    session.poll()
    return render_status(session)


@router.post("/sessions/{session_id}/render/cancel", response_model=RenderStatus)
async def cancel_render(request: Request, session_id: str) -> Dict:
    session = get_session(request, session_id)
    session.poll()
    if not session.cancel_render():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="No render in progress"
        )
    return render_status(session)


@router.post("/sessions/{session_id}/result/dismiss", response_model=SessionView)
async def dismiss_result(request: Request, session_id: str) -> Dict:
    session = get_session(request, session_id)
    session.poll()
    try:
        session.dismiss_result()
    except InvalidTransitionError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e)
        )
    return session_view(session)


@router.get("/sessions/{session_id}/result")
async def download_result(request: Request, session_id: str) -> Response:
    session = get_session(request, session_id)
    session.poll()
    result = session.coordinator.result
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No result rendered yet"
        )
    return Response(
        content=result.final_asset,
        media_type="image/gif",
        headers={'Content-Disposition': f'attachment; filename="{session.output_filename}"'}
    )
