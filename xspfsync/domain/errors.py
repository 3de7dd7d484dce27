from typing import Optional


class SyncError(Exception):
    """Base class for synchronization errors."""


class InputError(SyncError):
    """Playlist could not be read or parsed. Fatal, raised before any network call."""


class NotFound(SyncError):
    """Remote search returned an empty result set."""


class TransientError(SyncError):
    """Network or deserialization failure on a single remote call."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PlatformError(SyncError):
    """Remote playlist creation failed."""


class AuthorizationError(SyncError):
    """Token exchange failed or the access token is missing or rejected."""

    # Set when the token was rejected during creation, after resolution finished
    sync_run = None
