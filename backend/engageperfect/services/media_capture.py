"""
Media Capture Source

Responsibilities:
- Turn a file drop into a MediaSource (first image/video file wins)
- Capture a single still from the camera device
- Own the preview handle and release it when the selection is cleared

The camera is an exclusive resource: it is opened in a scoped block and
released on every path, including failures.
"""

import asyncio
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Sequence

import cv2

from engageperfect.core.config import settings
from engageperfect.core.exceptions import CameraAccessDenied
from engageperfect.core.logger import logger
from engageperfect.core.utils import guess_mime_type, is_accepted_media, to_data_url
from engageperfect.models.media_models import MediaSource, PreviewHandle

CAMERA_FILE_NAME = "camera-capture.jpg"
CAMERA_MIME_TYPE = "image/jpeg"


@dataclass
class DroppedFile:
    """A candidate file handed over by the client."""
    filename: str
    content_type: Optional[str]
    data: bytes

    @property
    def mime_type(self) -> Optional[str]:
        return self.content_type or guess_mime_type(self.filename)


@contextmanager
def open_camera(
    device_index: int,
    factory: Callable[[int], "cv2.VideoCapture"] = cv2.VideoCapture,
) -> Iterator["cv2.VideoCapture"]:
    """
    Open a capture device and guarantee it is released.

    Raises:
        CameraAccessDenied: If the device cannot be opened
    """
    capture = factory(device_index)
    try:
        if not capture.isOpened():
            raise CameraAccessDenied(f"Camera {device_index} is unavailable or access was refused")
        yield capture
    finally:
        capture.release()
        logger.debug(f"Camera {device_index} released")


class MediaCaptureSource:
    """Holds the currently selected media for one post-creation session."""

    def __init__(
        self,
        camera_index: Optional[int] = None,
        camera_factory: Callable[[int], "cv2.VideoCapture"] = cv2.VideoCapture,
    ):
        self.camera_index = settings.CAMERA_DEVICE_INDEX if camera_index is None else camera_index
        self.camera_factory = camera_factory
        self.source: Optional[MediaSource] = None
        # Bumped on every acquisition and clear so in-flight work can tell
        # whether the source it started from is still current.
        self.generation = 0

    @property
    def has_media(self) -> bool:
        return self.source is not None

    async def acquire_from_drop(self, files: Sequence[DroppedFile]) -> Optional[MediaSource]:
        """
        Select the first acceptable file of a drop.

        Returns:
            The new MediaSource, or None if nothing acceptable was dropped
        """
        accepted = [f for f in files if is_accepted_media(f.mime_type)]
        if not accepted:
            logger.info(f"Ignoring drop of {len(files)} file(s): no image or video")
            return None

        chosen = accepted[0]
        return await self._build_source(chosen.data, chosen.mime_type, chosen.filename)

    async def acquire_from_camera(self) -> MediaSource:
        """
        Capture one still frame from the camera.

        Raises:
            CameraAccessDenied: If the camera is missing, refused, or
                delivers no frame. The user may retry.
        """
        data = await asyncio.to_thread(self._capture_still)
        return await self._build_source(data, CAMERA_MIME_TYPE, CAMERA_FILE_NAME)

    def clear(self):
        """Release the preview and return to the empty state."""
        if self.source is not None:
            self.source.preview.release()
            logger.info(f"Cleared media {self.source.original_file_name}")
        self.source = None
        self.generation += 1

    def _capture_still(self) -> bytes:
        with open_camera(self.camera_index, self.camera_factory) as camera:
            ok, frame = camera.read()
            if not ok or frame is None:
                raise CameraAccessDenied("Camera delivered no frame")

            encoded, buffer = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, settings.JPEG_QUALITY])
            if not encoded:
                raise CameraAccessDenied("Captured frame could not be encoded")

            logger.info(f"Captured still {frame.shape[1]}x{frame.shape[0]} from camera {self.camera_index}")
            return buffer.tobytes()

    async def _build_source(self, data: bytes, mime_type: str, filename: str) -> MediaSource:
        preview_url = await asyncio.to_thread(to_data_url, data, mime_type)
        source = MediaSource(
            raw_bytes=data,
            mime_type=mime_type,
            original_file_name=filename,
            preview=PreviewHandle(url=preview_url),
        )

        if self.source is not None:
            self.source.preview.release()
        self.source = source
        self.generation += 1

        logger.info(f"Selected media {filename} ({mime_type}, {len(data)} bytes)")
        return source
