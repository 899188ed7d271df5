from typing import Any, Optional


class LostFoundError(Exception):
    """Base class for expected, caller-recoverable failures.

    Rendered by the app as ``{"detail": ..., "code": ...}`` with ``status_code``.
    """

    status_code = 500
    code = "internal_error"
    default_detail = "Internal server error"

    def __init__(self, detail: Optional[Any] = None):
        self.detail = detail if detail is not None else self.default_detail
        super().__init__(self.detail)


class Unauthenticated(LostFoundError):
    status_code = 401
    code = "unauthenticated"
    default_detail = "Authentication required"


class InvalidCredential(Unauthenticated):
    code = "invalid_credential"
    default_detail = "Invalid or expired token"


class Forbidden(LostFoundError):
    status_code = 403
    code = "forbidden"
    default_detail = "Not authorized to perform this action"


class NotFound(LostFoundError):
    status_code = 404
    code = "not_found"
    default_detail = "Resource not found"


class ValidationError(LostFoundError):
    status_code = 400
    code = "validation_error"
    default_detail = "Invalid input"


class InvalidState(LostFoundError):
    status_code = 409
    code = "invalid_state"
    default_detail = "Operation not allowed in the current state"


class Conflict(InvalidState):
    code = "conflict"
    default_detail = "Conflicting request"


class Unavailable(LostFoundError):
    status_code = 503
    code = "unavailable"
    default_detail = "Service temporarily unavailable, please retry"
