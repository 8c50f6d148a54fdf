"""
core/errors.py -- Typed error taxonomy and the public messages that go with it.

Services (password hashing, tokens, accounts, stores) raise these; they never
build HTTP responses themselves. api/main.py registers a single exception
handler that turns any TrackerError into the {"message", "code"} envelope using
status_code.

Message constants are shared by every route. Enumeration resistance depends on
two cases producing byte-identical responses (unknown email vs wrong password,
missing record vs someone else's record), so routes must import these rather
than writing their own strings.
"""

from typing import Optional

# ---------------------------------------------------------------------------
# Public messages
# ---------------------------------------------------------------------------

INVALID_CREDENTIALS = "Invalid email or password"
NO_TOKEN = "No token provided"
INVALID_TOKEN = "Invalid or expired token"
EMAIL_TAKEN = "Email already registered"
TASK_NOT_FOUND = "Task not found"
PROJECT_NOT_FOUND = "Project not found"
INTERNAL_ERROR = "Internal server error"
REQUEST_TIMEOUT = "Request timed out"


class TrackerError(Exception):
    """Base class for every error the service reports to clients."""

    status_code: int = 500
    default_code: str = "internal_error"

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class ValidationError(TrackerError):
    """Malformed input."""

    status_code = 400
    default_code = "validation_error"


class ConflictError(TrackerError):
    """A uniqueness rule was violated (duplicate email).

    Reported as 400 to match the signup contract clients already depend on.
    """

    status_code = 400
    default_code = "conflict"


class AuthenticationError(TrackerError):
    """Missing, invalid or expired credentials."""

    status_code = 401
    default_code = "unauthorized"


class NotFoundError(TrackerError):
    """No record matches (id, owner). Also covers records owned by someone else."""

    status_code = 404
    default_code = "not_found"


class InternalError(TrackerError):
    """A cryptographic or storage primitive failed."""

    status_code = 500
    default_code = "internal_error"
