"""Error types raised by gallerysync."""


class GallerySyncError(Exception):
    """Base exception for all sync failures."""


class ConfigError(GallerySyncError):
    """Raised when required configuration or credentials are missing or unreadable."""


class DriveApiError(GallerySyncError):
    """Raised when a Drive API call fails."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class TransientDriveError(DriveApiError):
    """Timeouts, connection drops, throttling and 5xx responses; safe to retry."""


class DriveAuthError(DriveApiError):
    """401/403 responses; never retried."""


class DriveNotFoundError(DriveApiError):
    """404 responses; never retried."""


class EmptyCollectionError(GallerySyncError):
    """Raised when a folder listing yields no images at all."""


class SyncCancelled(Exception):
    """Raised inside a worker once the run has been interrupted; not a collection failure."""
