"""
Pydantic models for API request validation.

Responsibilities:
- Define schemas for incoming JSON payloads
- Validate data types and required fields
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from engageperfect.models.media_models import CropRegion


class CropRequest(BaseModel):
    """Crop rectangle in source-image pixels; all fields null removes the crop."""
    x: Optional[float] = Field(None, ge=0)
    y: Optional[float] = Field(None, ge=0)
    width: Optional[float] = Field(None, ge=0)
    height: Optional[float] = Field(None, ge=0)

    def to_region(self) -> Optional[CropRegion]:
        values = (self.x, self.y, self.width, self.height)
        if all(v is None for v in values):
            return None
        if any(v is None for v in values):
            raise ValueError("x, y, width and height must be given together")
        return CropRegion(x=self.x, y=self.y, width=self.width, height=self.height)


class SelectionRequest(BaseModel):
    field: str = Field(..., description="platform, niche, goal or tone")
    value: str = ""


class CaptionRequest(BaseModel):
    platform: Optional[str] = None
    niche: Optional[str] = None
    goal: Optional[str] = None
    tone: Optional[str] = None
    imageMetadata: Optional[Dict[str, Any]] = None

    def missing_fields(self):
        return [name for name in ("platform", "niche", "goal", "tone") if not getattr(self, name)]


class CaptionSelectRequest(BaseModel):
    caption: str = Field(..., min_length=1)
