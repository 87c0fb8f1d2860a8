"""
Wizard session endpoints.

Responsibilities:
- Start and discard post-creation sessions
- Media step: drop files, camera capture, crop, rotate, clear
- Drive the wizard (next, back, selections, complete)
- Stream upload progress over a WebSocket
"""

from typing import List

from fastapi import (
    APIRouter,
    Depends,
    File,
    HTTPException,
    UploadFile,
    WebSocket,
    WebSocketDisconnect,
)

from engageperfect.core.exceptions import PostCreationError
from engageperfect.core.logger import logger
from engageperfect.models.request_models import CropRequest, SelectionRequest
from engageperfect.models.response_models import SessionResponse
from engageperfect.routes.deps import get_owner_id, get_sessions, http_error
from engageperfect.services.media_capture import DroppedFile
from engageperfect.services.session_manager import PostCreationSession, SessionManager

router = APIRouter(prefix="/sessions", tags=["Sessions"])


async def _session(
    session_id: str,
    owner_id: str = Depends(get_owner_id),
    manager: SessionManager = Depends(get_sessions),
) -> PostCreationSession:
    try:
        return manager.get(session_id, owner_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")


@router.post("/", response_model=SessionResponse, status_code=201)
async def create_session(
    owner_id: str = Depends(get_owner_id),
    manager: SessionManager = Depends(get_sessions),
):
    """Starts a new post-creation session on the media step."""
    return manager.create(owner_id).snapshot()


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session: PostCreationSession = Depends(_session)):
    return session.snapshot()


@router.delete("/{session_id}", status_code=204)
async def discard_session(
    session: PostCreationSession = Depends(_session),
    manager: SessionManager = Depends(get_sessions),
):
    """The user navigated away; drop everything collected so far."""
    manager.discard(session.id)


# ==================== MEDIA STEP ====================

@router.post("/{session_id}/media", response_model=SessionResponse)
async def drop_media(
    files: List[UploadFile] = File(...),
    session: PostCreationSession = Depends(_session),
):
    """
    Selects the first image/video among the dropped files.
    Dropping nothing usable leaves the session unchanged.
    """
    dropped = [DroppedFile(f.filename or "upload", f.content_type, await f.read()) for f in files]
    try:
        await session.drop(dropped)
    except PostCreationError as e:
        raise http_error(e)
    return session.snapshot()


@router.post("/{session_id}/camera", response_model=SessionResponse)
async def capture_photo(session: PostCreationSession = Depends(_session)):
    try:
        await session.take_photo()
    except PostCreationError as e:
        logger.error(f"Camera capture for session {session.id} failed: {str(e)}")
        raise http_error(e)
    return session.snapshot()


@router.delete("/{session_id}/media", response_model=SessionResponse)
async def clear_media(session: PostCreationSession = Depends(_session)):
    try:
        session.clear_media()
    except PostCreationError as e:
        raise http_error(e)
    return session.snapshot()


@router.put("/{session_id}/crop", response_model=SessionResponse)
async def set_crop(request: CropRequest, session: PostCreationSession = Depends(_session)):
    try:
        session.set_crop(request.to_region())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PostCreationError as e:
        raise http_error(e)
    return session.snapshot()


@router.post("/{session_id}/rotate", response_model=SessionResponse)
async def rotate_media(session: PostCreationSession = Depends(_session)):
    try:
        session.rotate()
    except PostCreationError as e:
        raise http_error(e)
    return session.snapshot()


# ==================== TRANSITIONS ====================

@router.post("/{session_id}/next", response_model=SessionResponse)
async def next_step(session: PostCreationSession = Depends(_session)):
    """
    Advances the wizard. On the media step this uploads the media and
    only returns once the upload has finished. A call made while an
    upload is running returns immediately with `advanced: false`.
    """
    try:
        advanced = await session.wizard.next()
    except PostCreationError as e:
        logger.error(f"next() failed for session {session.id}: {str(e)}")
        raise http_error(e)

    if advanced:
        session.publish("step_changed", {"step": session.wizard.step_name})
    return {**session.snapshot(), "advanced": advanced}


@router.post("/{session_id}/back", response_model=SessionResponse)
async def previous_step(session: PostCreationSession = Depends(_session)):
    try:
        session.wizard.back()
    except PostCreationError as e:
        raise http_error(e)
    session.publish("step_changed", {"step": session.wizard.step_name})
    return session.snapshot()


@router.put("/{session_id}/selections", response_model=SessionResponse)
async def set_selection(request: SelectionRequest, session: PostCreationSession = Depends(_session)):
    try:
        session.wizard.select(request.field, request.value)
    except PostCreationError as e:
        raise http_error(e)
    return session.snapshot()


@router.post("/{session_id}/complete", response_model=SessionResponse)
async def complete_wizard(session: PostCreationSession = Depends(_session)):
    """Saves platform, niche, goal and tone on the uploaded post."""
    try:
        await session.wizard.complete()
    except PostCreationError as e:
        logger.error(f"complete() failed for session {session.id}: {str(e)}")
        raise http_error(e)
    return session.snapshot()


# ==================== EVENTS ====================

@router.websocket("/{session_id}/ws")
async def session_events(
    websocket: WebSocket,
    session_id: str,
    manager: SessionManager = Depends(get_sessions),
):
    """
    Pushes upload progress and step changes for a session.
    Browsers cannot set headers on WebSockets, so the session id alone
    identifies the stream.
    """
    try:
        session = manager.get(session_id)
    except KeyError:
        await websocket.close(code=4404)
        return

    await manager.connections.connect(websocket, session_id)
    await websocket.send_json({"event": "state", **session.snapshot()})
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.connections.disconnect(websocket, session_id)
