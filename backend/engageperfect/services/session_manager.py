"""
In-memory registry of post-creation sessions.

A session lives from the moment the user opens the upload page until the
wizard completes or the user navigates away (explicit discard). It owns
the capture source, the crop/rotation edits and the wizard, and relays
upload progress to WebSocket watchers.
"""

import asyncio
import time
import uuid
from typing import Any, Callable, Dict, Optional, Sequence, Set

from engageperfect.core.config import settings
from engageperfect.core.exceptions import ValidationFailed
from engageperfect.core.logger import logger
from engageperfect.models.media_models import CropRegion, MediaEdits, MediaSource, UploadProgress
from engageperfect.services.media_capture import DroppedFile, MediaCaptureSource
from engageperfect.services.post_wizard import MEDIA_STEP, PostWizard
from engageperfect.services.websocket_manager import ConnectionManager, manager as default_connections


class PostCreationSession:
    """One user's pass through upload + wizard."""

    def __init__(self, session_id: str, owner_id: str, wizard: PostWizard, connections: ConnectionManager):
        self.id = session_id
        self.owner_id = owner_id
        self.wizard = wizard
        self.connections = connections
        self._pending_events: Set[asyncio.Task] = set()
        self.last_active = 0.0

        wizard.on_progress = self._relay_progress

    @property
    def capture(self) -> MediaCaptureSource:
        return self.wizard.capture

    @property
    def edits(self) -> MediaEdits:
        return self.wizard.edits

    # ==================== MEDIA STEP ====================

    async def drop(self, files: Sequence[DroppedFile]) -> Optional[MediaSource]:
        self._require_media_step()
        source = await self.capture.acquire_from_drop(files)
        if source is not None:
            self._media_replaced()
        return source

    async def take_photo(self) -> MediaSource:
        self._require_media_step()
        source = await self.capture.acquire_from_camera()
        self._media_replaced()
        return source

    def clear_media(self):
        self._require_media_step()
        self.wizard.clear_media()
        self.publish("media_cleared")

    def set_crop(self, crop: Optional[CropRegion]):
        self._require_media_step()
        self.edits.crop = crop

    def rotate(self) -> int:
        self._require_media_step()
        return self.edits.rotate()

    def _require_media_step(self):
        if self.wizard.step_name != MEDIA_STEP.name:
            raise ValidationFailed("Media can only be changed on the media step")

    def _media_replaced(self):
        self.edits.reset()
        source = self.capture.source
        self.publish("media_selected", {"file_name": source.original_file_name, "mime_type": source.mime_type})

    # ==================== STATE ====================

    def snapshot(self) -> Dict[str, Any]:
        wizard = self.wizard
        source = self.capture.source
        progress = wizard.progress
        return {
            "session_id": self.id,
            "step": wizard.step_name,
            "step_index": wizard.state.current_step,
            "completed": wizard.state.completed,
            "selections": dict(wizard.state.selections),
            "post_id": wizard.state.post_id,
            "uploading": wizard.upload_in_flight,
            "upload_progress": progress.percentage if progress else 0,
            "media": None if source is None else {
                "file_name": source.original_file_name,
                "mime_type": source.mime_type,
                "size": len(source.raw_bytes),
                "preview_url": source.preview.url,
            },
            "crop": None if self.edits.crop is None else vars(self.edits.crop),
            "rotation": self.edits.rotation,
        }

    def publish(self, event: str, payload: Optional[Dict[str, Any]] = None):
        """Fire-and-forget event to the session's watchers."""
        self._schedule(self.connections.publish(self.id, event, payload or {}))

    def close(self):
        self.capture.clear()
        self._schedule(self.connections.close_session(self.id, {
            "completed": self.wizard.state.completed,
            "post_id": self.wizard.state.post_id,
        }))

    def _schedule(self, coroutine):
        task = asyncio.get_running_loop().create_task(coroutine)
        self._pending_events.add(task)
        task.add_done_callback(self._pending_events.discard)

    def _relay_progress(self, progress: UploadProgress):
        self.publish("upload_progress", {
            "percentage": progress.percentage,
            "bytes_sent": progress.bytes_sent,
            "bytes_total": progress.bytes_total,
        })


def _default_wizard(owner_id: str) -> PostWizard:
    return PostWizard(capture=MediaCaptureSource(), owner_id=owner_id)


class SessionManager:
    """
    Creates, looks up and destroys sessions.

    Sessions nobody has touched for `idle_timeout` seconds are evicted on
    the next create/get, unless an upload is running or a WebSocket
    watcher is still attached. Must be used from the event loop.
    """

    def __init__(
        self,
        wizard_factory: Callable[[str], PostWizard] = _default_wizard,
        connections: ConnectionManager = default_connections,
        idle_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.wizard_factory = wizard_factory
        self.connections = connections
        self.idle_timeout = settings.SESSION_IDLE_SECONDS if idle_timeout is None else idle_timeout
        self.clock = clock
        self.sessions: Dict[str, PostCreationSession] = {}

    def create(self, owner_id: str) -> PostCreationSession:
        self.evict_idle()
        session_id = str(uuid.uuid4())
        wizard = self.wizard_factory(owner_id)
        session = PostCreationSession(session_id, owner_id, wizard, self.connections)
        wizard.on_complete = lambda _: self.discard(session_id)
        session.last_active = self.clock()
        self.sessions[session_id] = session
        logger.info(f"Session {session_id} started for user {owner_id}")
        return session

    def get(self, session_id: str, owner_id: Optional[str] = None) -> PostCreationSession:
        """
        Raises:
            KeyError: Unknown, evicted, or someone else's session
        """
        self.evict_idle()
        session = self.sessions.get(session_id)
        if session is None or (owner_id is not None and session.owner_id != owner_id):
            raise KeyError(session_id)
        session.last_active = self.clock()
        return session

    def evict_idle(self) -> int:
        """Discard abandoned sessions; returns how many were dropped."""
        if not self.idle_timeout:
            return 0

        cutoff = self.clock() - self.idle_timeout
        stale = [
            session_id for session_id, session in self.sessions.items()
            if session.last_active < cutoff
            and not session.wizard.upload_in_flight
            and not self.connections.active_connections.get(session_id)
        ]
        for session_id in stale:
            logger.info(f"Session {session_id} idle for over {self.idle_timeout}s, evicting")
            self.discard(session_id)
        return len(stale)

    def discard(self, session_id: str):
        session = self.sessions.pop(session_id, None)
        if session is not None:
            session.close()
            logger.info(f"Session {session_id} closed")


sessions = SessionManager()
