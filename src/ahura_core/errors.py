"""Typed failures raised by the consistency engine.

Each error carries the HTTP status it maps to. The API layer installs a
single exception handler that renders ``{"detail": message}``.
"""


class TrackerError(Exception):
    """Base class for expected, user-facing failures."""

    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(TrackerError):
    """Raised when a resource does not exist or is hidden from the caller."""

    status_code = 404


class PermissionDeniedError(TrackerError):
    """Raised when the resource exists but the caller may not act on it."""

    status_code = 403


class InvariantViolationError(TrackerError):
    """Raised when a mutation would break a board, hierarchy or sprint rule."""

    status_code = 400


class ConflictError(TrackerError):
    """Raised on uniqueness violations (project key, status name, membership)."""

    status_code = 409
