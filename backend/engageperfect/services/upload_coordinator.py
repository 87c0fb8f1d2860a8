"""
Upload Coordinator

Stores a TransformResult in object storage and registers the post record
that points at it. The steps run strictly in order and any failure aborts
the rest:

1. Generate a fresh storage key (128 random bits + original extension)
2. Non-overwriting put of the final bytes, reporting progress
3. Resolve the public URL
4. Insert the post record with the placeholder platform

A record is never inserted for bytes that were not confirmed stored. A
stored object whose record insert failed is left behind.
"""

import asyncio
import secrets
from typing import Callable, Optional

from engageperfect.core.config import settings
from engageperfect.core.database import DatabaseManager
from engageperfect.core.exceptions import UploadFailed
from engageperfect.core.logger import logger
from engageperfect.core.storage import StorageManager
from engageperfect.core.utils import file_extension
from engageperfect.models.media_models import PostRecord, TransformResult, UploadProgress

ProgressListener = Callable[[UploadProgress], None]


def build_storage_key(original_name: str, content_type: Optional[str] = None) -> str:
    """Random object key that keeps the media's file extension."""
    return f"{secrets.token_hex(16)}.{file_extension(original_name, content_type)}"


class UploadCoordinator:
    """Runs the store-then-register sequence for one media upload."""

    def __init__(self, store=StorageManager, repository=DatabaseManager, placeholder_platform: str = None):
        self.store = store
        self.repository = repository
        self.placeholder_platform = placeholder_platform or settings.PLACEHOLDER_PLATFORM

    async def upload(
        self,
        result: TransformResult,
        owner_id: str,
        on_progress: Optional[ProgressListener] = None,
    ) -> PostRecord:
        """
        Upload final media bytes and create the post record.

        Args:
            result: Output of the transform engine
            owner_id: User the post belongs to
            on_progress: Receives the UploadProgress after every change

        Returns:
            The created PostRecord (with its generated id)

        Raises:
            UploadFailed: If any step fails
        """
        loop = asyncio.get_running_loop()
        progress = UploadProgress(bytes_total=len(result.final_bytes))
        self._notify(on_progress, progress)

        def on_transport_event(sent: int, total: int):
            # Storage calls run on a worker thread; progress is applied on the loop
            loop.call_soon_threadsafe(self._advance, progress, sent, total, on_progress)

        key = build_storage_key(result.original_name, result.content_type)

        try:
            await asyncio.to_thread(
                self.store.upload_file, key, result.final_bytes, result.content_type, on_transport_event
            )
        except Exception as e:
            logger.error(f"Storage upload of {key} failed: {str(e)}")
            raise UploadFailed(f"Storing {result.original_name} failed", cause=e) from e

        progress.complete()
        self._notify(on_progress, progress)

        try:
            public_url = await asyncio.to_thread(self.store.get_public_url, key)
        except Exception as e:
            logger.error(f"Could not resolve public URL for {key}: {str(e)}")
            raise UploadFailed(f"Resolving the URL of {result.original_name} failed", cause=e) from e

        try:
            row = await asyncio.to_thread(
                self.repository.create_post,
                image_url=public_url,
                user_id=owner_id,
                platform=self.placeholder_platform,
            )
            record = PostRecord.from_row(row)
        except Exception as e:
            logger.error(f"Post insert for {key} failed, stored object is orphaned: {str(e)}")
            raise UploadFailed("Registering the uploaded media failed", cause=e) from e

        logger.info(f"Upload complete: {key} -> post {record.id}")
        return record

    def _advance(self, progress: UploadProgress, sent: int, total: int, on_progress: Optional[ProgressListener]):
        before = progress.percentage
        progress.report(sent, total)
        if progress.percentage != before:
            self._notify(on_progress, progress)

    @staticmethod
    def _notify(on_progress: Optional[ProgressListener], progress: UploadProgress):
        if on_progress is None:
            return
        try:
            on_progress(progress)
        except Exception as e:
            logger.error(f"Progress listener failed: {str(e)}")
