"""
Domain types for the media capture, transform and upload pipeline.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

ROTATION_STEP = 90
VALID_ROTATIONS = (0, 90, 180, 270)


@dataclass
class PreviewHandle:
    """Locally resolvable preview of a media source (a data URL)."""
    url: Optional[str]
    released: bool = False

    def release(self):
        """Drop the preview payload. Safe to call more than once."""
        self.url = None
        self.released = True


@dataclass(frozen=True)
class MediaSource:
    """The user's selected or captured media, before any transform."""
    raw_bytes: bytes = field(repr=False)
    mime_type: str
    original_file_name: str
    preview: PreviewHandle = field(compare=False, repr=False)

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    @property
    def is_video(self) -> bool:
        return self.mime_type.startswith("video/")


@dataclass(frozen=True)
class CropRegion:
    """Rectangle to keep, in source-image pixel space."""
    x: float
    y: float
    width: float
    height: float

    def box(self) -> Tuple[int, int, int, int]:
        """Integer (left, upper, right, lower) box as Pillow expects it."""
        left = int(round(self.x))
        upper = int(round(self.y))
        return (left, upper, left + int(round(self.width)), upper + int(round(self.height)))

    def fits_within(self, width: int, height: int) -> bool:
        left, upper, right, lower = self.box()
        if min(self.x, self.y, self.width, self.height) < 0:
            return False
        return right > left and lower > upper and right <= width and lower <= height


def next_rotation(current: int) -> int:
    """Rotation after one more clockwise quarter turn."""
    return (current + ROTATION_STEP) % 360


@dataclass
class MediaEdits:
    """Crop and rotation the user has applied to the current source."""
    crop: Optional[CropRegion] = None
    rotation: int = 0

    def rotate(self) -> int:
        self.rotation = next_rotation(self.rotation)
        return self.rotation

    def reset(self):
        self.crop = None
        self.rotation = 0


@dataclass(frozen=True)
class TransformResult:
    """Final encoded media plus metadata describing those bytes."""
    final_bytes: bytes = field(repr=False)
    content_type: str
    width: Optional[int]
    height: Optional[int]
    original_name: str


@dataclass
class UploadProgress:
    """
    Byte-level progress for a single upload attempt.

    The percentage never decreases and stays below 100 until the
    storage put has been confirmed via complete().
    """
    bytes_sent: int = 0
    bytes_total: int = 0
    percentage: int = 0
    completed: bool = False

    def report(self, bytes_sent: int, bytes_total: int) -> int:
        if self.completed:
            return self.percentage
        if bytes_total > 0:
            self.bytes_total = bytes_total
            self.bytes_sent = max(self.bytes_sent, min(bytes_sent, bytes_total))
            self.percentage = max(self.percentage, min(99, (self.bytes_sent * 100) // bytes_total))
        return self.percentage

    def complete(self) -> int:
        self.bytes_sent = self.bytes_total
        self.percentage = 100
        self.completed = True
        return self.percentage


@dataclass
class PostRecord:
    """A row of the posts table."""
    id: str
    image_url: Optional[str]
    platform: str
    user_id: str
    niche: Optional[str] = None
    goal: Optional[str] = None
    tone: Optional[str] = None
    selected_caption: Optional[str] = None
    hashtags: List[str] = field(default_factory=list)
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "PostRecord":
        return cls(
            id=str(row["id"]),
            image_url=row.get("image_url"),
            platform=row.get("platform") or "",
            user_id=str(row.get("user_id") or ""),
            niche=row.get("niche"),
            goal=row.get("goal"),
            tone=row.get("tone"),
            selected_caption=row.get("selected_caption"),
            hashtags=list(row.get("hashtags") or []),
            created_at=row.get("created_at"),
        )
