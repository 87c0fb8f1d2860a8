"""
Handles one-shot media upload.

Responsibilities:
- Accept an image/video file with optional crop and rotation
- Run the transform engine on it
- Store the result and create the post record
- Return the post and the final media metadata
"""

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from engageperfect.core.exceptions import PostCreationError
from engageperfect.core.logger import logger
from engageperfect.models.media_models import VALID_ROTATIONS
from engageperfect.models.request_models import CropRequest
from engageperfect.models.response_models import MediaMetadata, PostResponse, UploadResponse
from engageperfect.routes.deps import get_coordinator, get_engine, get_owner_id, http_error
from engageperfect.services.media_capture import DroppedFile, MediaCaptureSource
from engageperfect.services.transform_engine import TransformEngine
from engageperfect.services.upload_coordinator import UploadCoordinator

router = APIRouter(prefix="/upload", tags=["Upload"])


@router.post("/", response_model=UploadResponse)
async def upload_media(
    file: UploadFile = File(...),
    x: Optional[float] = Form(None),
    y: Optional[float] = Form(None),
    width: Optional[float] = Form(None),
    height: Optional[float] = Form(None),
    rotation: int = Form(0),
    owner_id: str = Depends(get_owner_id),
    engine: TransformEngine = Depends(get_engine),
    coordinator: UploadCoordinator = Depends(get_coordinator),
):
    """
    Crops/rotates the uploaded media, stores it and registers the post.
    """
    if rotation % 360 not in VALID_ROTATIONS:
        raise HTTPException(status_code=400, detail=f"Rotation must be one of {VALID_ROTATIONS}")

    try:
        crop = CropRequest(x=x, y=y, width=width, height=height).to_region()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    data = await file.read()
    capture = MediaCaptureSource()
    source = await capture.acquire_from_drop([DroppedFile(file.filename or "upload", file.content_type, data)])
    if source is None:
        raise HTTPException(status_code=400, detail="Only image and video files can be uploaded")

    try:
        result = await asyncio.to_thread(engine.transform, source, crop, rotation % 360)
        record = await coordinator.upload(result, owner_id)
    except PostCreationError as e:
        logger.error(f"Upload of {source.original_file_name} failed: {str(e)}")
        raise http_error(e)
    finally:
        capture.clear()

    return UploadResponse(post=PostResponse.from_record(record), media=MediaMetadata.from_result(result))
