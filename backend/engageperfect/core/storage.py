"""
Supabase Storage helper functions for media uploads.

Handles all interactions with the Supabase Storage bucket holding
post media. Uploads never overwrite: storing under an existing key
is an error.
"""

from typing import Callable, Optional
from engageperfect.core.config import settings
from engageperfect.core.supabase_client import get_supabase
from engageperfect.core.logger import logger

ProgressCallback = Callable[[int, int], None]


class StorageManager:
    """Handles file uploads to Supabase Storage buckets."""

    BUCKET_MEDIA = settings.MEDIA_BUCKET

    @staticmethod
    def get_public_url(file_path: str, bucket: str = BUCKET_MEDIA) -> str:
        """
        Get the public URL for a file in storage.

        Args:
            file_path: File path within bucket
            bucket: Bucket name

        Returns:
            Public URL to access the file
        """
        supabase = get_supabase()
        url = supabase.storage.from_(bucket).get_public_url(file_path)
        # Some client versions append an empty query string
        return url.rstrip("?")

    @staticmethod
    def upload_file(
        file_path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        on_progress: Optional[ProgressCallback] = None,
        bucket: str = BUCKET_MEDIA,
    ) -> str:
        """
        Upload bytes to Supabase Storage without overwriting.

        The Supabase client sends the body in a single request, so the
        transport delivers two progress events: nothing sent, and
        everything sent once the request has been accepted.

        Args:
            file_path: Destination path within bucket
            data: File contents
            content_type: MIME type of the file
            on_progress: Called with (bytes_sent, bytes_total)
            bucket: Bucket name

        Returns:
            The stored object's path

        Raises:
            Exception: If the upload fails or the key already exists
        """
        supabase = get_supabase()
        total = len(data)

        if on_progress:
            on_progress(0, total)

        try:
            supabase.storage.from_(bucket).upload(
                path=file_path,
                file=data,
                file_options={
                    "content-type": content_type,
                    "cache-control": settings.STORAGE_CACHE_CONTROL,
                    "upsert": "false",
                },
            )
        except Exception as e:
            logger.error(f"Failed to upload file to {bucket}/{file_path}: {str(e)}")
            raise

        if on_progress:
            on_progress(total, total)

        logger.info(f"Uploaded {total} bytes to {bucket}/{file_path}")
        return file_path
