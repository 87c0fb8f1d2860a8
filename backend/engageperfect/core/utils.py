"""
General utility functions.

Responsibilities:
- File name / MIME type helpers
- Data URL encoding for previews
- Caption text helpers
"""

import base64
import mimetypes
import re
from pathlib import PurePosixPath
from typing import List, Optional

ACCEPTED_MEDIA_PREFIXES = ("image/", "video/")

_HASHTAG_RE = re.compile(r"#\w+", re.UNICODE)

# mimetypes picks odd defaults for a few common types
_PREFERRED_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "video/mp4": "mp4",
    "video/quicktime": "mov",
}


def is_accepted_media(mime_type: Optional[str]) -> bool:
    """True for image/* and video/* MIME types."""
    return bool(mime_type) and mime_type.lower().startswith(ACCEPTED_MEDIA_PREFIXES)


def guess_mime_type(filename: str) -> Optional[str]:
    mime, _ = mimetypes.guess_type(filename)
    return mime


def file_extension(filename: str, content_type: Optional[str] = None) -> str:
    """
    Extension (without dot, lowercase) of a file name, falling back to
    the content type when the name has none.
    """
    suffix = PurePosixPath(filename or "").suffix.lstrip(".").lower()
    if suffix:
        return suffix
    if content_type:
        preferred = _PREFERRED_EXTENSIONS.get(content_type.lower())
        if preferred:
            return preferred
        guessed = mimetypes.guess_extension(content_type)
        if guessed:
            return guessed.lstrip(".")
    return "bin"


def replace_extension(filename: str, extension: str) -> str:
    path = PurePosixPath(filename or "media")
    return str(path.with_suffix(f".{extension}"))


def to_data_url(data: bytes, mime_type: str) -> str:
    """Encode bytes as a data URL usable as an <img>/<video> source."""
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def extract_hashtags(text: str) -> List[str]:
    """Hashtags in order of first appearance, without duplicates."""
    seen = []
    for tag in _HASHTAG_RE.findall(text or ""):
        if tag not in seen:
            seen.append(tag)
    return seen
