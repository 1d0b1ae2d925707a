"""Error taxonomy shared by every service.

Each error carries a stable ``code`` naming the rule that failed, so the
caller can render a specific message instead of a bare failure.
"""


class TimeTrackerError(Exception):
    """Base class for domain errors."""

    status_code = 400
    default_code = "error"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def __str__(self) -> str:
        return self.message


class ConflictError(TimeTrackerError):
    """State conflict, e.g. a timer is already running for the user."""

    status_code = 409
    default_code = "conflict"


class ValidationError(TimeTrackerError):
    """Invalid input: bad interval, missing fields, finished project."""

    status_code = 422
    default_code = "invalid"


class NotFoundError(TimeTrackerError):
    """Target entry, project, organization or timer does not exist."""

    status_code = 404
    default_code = "not_found"


class PermissionDenied(TimeTrackerError):
    """Caller's role does not grant the required capability."""

    status_code = 403
    default_code = "permission_denied"
