"""
Error taxonomy for the post-creation pipeline.

Every error here is recoverable: the caller shows a notification and the
user retries from the step that failed.
"""

from typing import Optional


class PostCreationError(Exception):
    """Base class for pipeline errors."""

    retryable = True

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


class PermissionDenied(PostCreationError):
    """Access to a user-controlled resource was refused."""


class CameraAccessDenied(PermissionDenied):
    """Camera permission refused, no device present, or no frame delivered."""


class TransformFailed(PostCreationError):
    """Decoding, cropping, rotating or encoding the media failed."""


class UploadFailed(PostCreationError):
    """Storing the media or registering its record failed."""


class ValidationFailed(PostCreationError):
    """A wizard transition was attempted without satisfying its requirement."""


class UpstreamFailed(PostCreationError):
    """The caption or vision collaborator failed or answered malformed data."""


class PersistenceFailed(PostCreationError):
    """Updating an existing post record failed."""
