"""
Shared router dependencies.

Every collaborator a router needs is provided through a small getter so
tests can swap it with `app.dependency_overrides`.
"""

from fastapi import Header, HTTPException

from engageperfect.core.database import DatabaseManager
from engageperfect.core.exceptions import (
    PermissionDenied,
    PersistenceFailed,
    PostCreationError,
    TransformFailed,
    UploadFailed,
    UpstreamFailed,
    ValidationFailed,
)
from engageperfect.services.caption_generator import CaptionGenerator
from engageperfect.services.post_composer import PostComposer
from engageperfect.services.session_manager import SessionManager, sessions
from engageperfect.services.transform_engine import TransformEngine
from engageperfect.services.upload_coordinator import UploadCoordinator
from engageperfect.services.vision_analyzer import VisionAnalyzer

_STATUS_CODES = (
    (PermissionDenied, 403),
    (ValidationFailed, 400),
    (TransformFailed, 422),
    (UploadFailed, 502),
    (PersistenceFailed, 502),
    (UpstreamFailed, 502),
)

_caption_generator = None
_vision_analyzer = None


def http_error(error: PostCreationError) -> HTTPException:
    """Map a pipeline error onto an HTTP error the client can retry from."""
    for error_type, status_code in _STATUS_CODES:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))


def get_owner_id(x_user_id: str = Header(..., alias="X-User-Id")) -> str:
    if not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing user id")
    return x_user_id.strip()


def get_sessions() -> SessionManager:
    return sessions


def get_repository():
    return DatabaseManager


def get_engine() -> TransformEngine:
    return TransformEngine()


def get_coordinator() -> UploadCoordinator:
    return UploadCoordinator()


def get_caption_generator() -> CaptionGenerator:
    global _caption_generator
    if _caption_generator is None:
        _caption_generator = CaptionGenerator()
    return _caption_generator


def get_vision_analyzer() -> VisionAnalyzer:
    global _vision_analyzer
    if _vision_analyzer is None:
        _vision_analyzer = VisionAnalyzer()
    return _vision_analyzer


def get_composer() -> PostComposer:
    return PostComposer()
