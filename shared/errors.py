"""Error taxonomy for storage, authentication and image handling."""

import math
from typing import Optional


class HomebaseError(Exception):
    """Base class for all application errors."""


class StorageError(HomebaseError):
    """Base class for storage failures."""


class RemoteStorageError(StorageError):
    """A remote storage attempt failed. Always recovered by local fallback."""


class NetworkFailure(RemoteStorageError):
    """The remote endpoint could not be reached."""


class RemoteTimeout(RemoteStorageError):
    """The remote attempt exceeded its time bound."""


class RemoteRejected(RemoteStorageError):
    """The remote endpoint answered with a non-2xx or malformed response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class LocalQuotaExceeded(StorageError):
    """The local store cannot accommodate a write."""

    DEFAULT_MESSAGE = (
        "Local storage is full. Reduce the image size or clear site data "
        "in the browser settings and try again."
    )

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.DEFAULT_MESSAGE)


class LocalWriteFailure(StorageError):
    """A local write failed after all fallback attempts."""


class MalformedDocument(StorageError, ValueError):
    """A document does not match the schema registered for its key."""

    def __init__(self, key: str, detail: str):
        super().__init__(f"Malformed document for key '{key}': {detail}")
        self.key = key


class OversizeInput(HomebaseError, ValueError):
    """An input file is above the hard upload ceiling."""

    def __init__(self, size: int, limit: int):
        super().__init__(
            f"File is too large ({size / 1024 / 1024:.1f}MB). "
            f"Choose an image of {limit // (1024 * 1024)}MB or less."
        )
        self.size = size
        self.limit = limit


class DecodeFailure(HomebaseError):
    """An image could not be decoded."""


class AuthFailure(HomebaseError):
    """The shared password did not match."""

    def __init__(self, remaining_attempts: int):
        super().__init__(
            f"Incorrect password. ({remaining_attempts} attempts remaining)"
        )
        self.remaining_attempts = remaining_attempts


class LockoutActive(HomebaseError):
    """Authentication is locked after repeated failures."""

    def __init__(self, remaining_seconds: float):
        minutes = max(1, math.ceil(remaining_seconds / 60))
        super().__init__(
            f"Too many failed login attempts. Locked for {minutes} more minutes."
        )
        self.remaining_seconds = remaining_seconds
