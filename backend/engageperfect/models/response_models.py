"""
Pydantic models for API response schemas.

Responsibilities:
- Define standard response structures
- Ensure consistent API output
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from engageperfect.models.media_models import PostRecord, TransformResult


class PostResponse(BaseModel):
    id: str
    image_url: Optional[str] = None
    platform: str
    niche: Optional[str] = None
    goal: Optional[str] = None
    tone: Optional[str] = None
    user_id: str
    selected_caption: Optional[str] = None
    hashtags: List[str] = []
    created_at: Optional[str] = None

    @classmethod
    def from_record(cls, record: PostRecord) -> "PostResponse":
        return cls(**vars(record))


class MediaMetadata(BaseModel):
    file_name: str
    content_type: str
    width: Optional[int] = None
    height: Optional[int] = None
    size: int

    @classmethod
    def from_result(cls, result: TransformResult) -> "MediaMetadata":
        return cls(
            file_name=result.original_name,
            content_type=result.content_type,
            width=result.width,
            height=result.height,
            size=len(result.final_bytes),
        )


class UploadResponse(BaseModel):
    """Response from a successful one-shot upload."""
    post: PostResponse
    media: MediaMetadata


class MediaInfo(BaseModel):
    file_name: str
    mime_type: str
    size: int
    preview_url: Optional[str] = None


class CropInfo(BaseModel):
    x: float
    y: float
    width: float
    height: float


class SessionResponse(BaseModel):
    """Snapshot of a wizard session."""
    session_id: str
    step: str = Field(..., description="Current step name, or 'complete'")
    step_index: int
    completed: bool
    selections: Dict[str, str]
    post_id: Optional[str] = None
    uploading: bool
    upload_progress: int = Field(..., ge=0, le=100)
    media: Optional[MediaInfo] = None
    crop: Optional[CropInfo] = None
    rotation: int
    advanced: Optional[bool] = Field(None, description="Set by next(): whether the step changed")


class CaptionResponse(BaseModel):
    captions: List[str]


class ShareTextResponse(BaseModel):
    text: str
