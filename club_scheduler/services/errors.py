"""
Error taxonomy for the Spond integration.

Remote failures carry the HTTP status and response body so callers can log
them without re-issuing the request. Local failures describe what is missing
or inconsistent in the club database.
"""


class SpondSyncError(Exception):
    """Base class for every error raised by the Spond integration."""


# ==================== Remote service errors ====================

class SpondAPIError(SpondSyncError):
    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class AuthError(SpondAPIError):
    """Bad credentials or a session the remote service no longer accepts."""


class RateLimitError(SpondAPIError):
    pass


class NetworkError(SpondAPIError):
    """The remote host could not be reached."""


class ProtocolError(SpondAPIError):
    """Unexpected status code or response shape."""


# ==================== Local data errors ====================

class ValidationError(SpondSyncError):
    """A required local mapping or field is missing."""


class NotFoundError(SpondSyncError):
    pass


class ConflictError(SpondSyncError):
    """The event is already linked, or its link points at a deleted remote event."""


# Failures that hit every request of a run, so batches stop instead of
# recording them once per item
SESSION_ERRORS = (AuthError, NetworkError, RateLimitError)
