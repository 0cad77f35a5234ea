"""
Error taxonomy for the access-control core.

Every error carries the HTTP status it maps to and a ``detail`` message that
is safe to show to the client. Internal errors never expose their cause; the
original exception is logged server-side by the exception handlers in
``main.py``.
"""

from typing import Any, Dict, List, Optional


class AppError(Exception):
    status_code = 500
    detail = "Internal server error"

    def __init__(self, detail: Optional[str] = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class ValidationError(AppError):
    status_code = 400
    detail = "Invalid request"

    def __init__(self, detail: Optional[str] = None, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(detail)
        self.errors = errors or []


class Unauthorized(AppError):
    status_code = 401
    detail = "Unauthorized"


class TokenExpired(Unauthorized):
    detail = "Token expired"


class TokenInvalid(Unauthorized):
    detail = "Invalid token"


class UserNotFound(Unauthorized):
    detail = "User not found or invalid token"


class Forbidden(AppError):
    status_code = 403
    detail = "Forbidden"


class NotFound(AppError):
    status_code = 404
    detail = "Not found"


class Conflict(AppError):
    status_code = 409
    detail = "Conflict"


class InvalidState(AppError):
    status_code = 400
    detail = "Operation not valid in the current state"


class Expired(AppError):
    status_code = 400
    detail = "Expired"


class InternalError(AppError):
    """Never shown to the client; the handler replaces the detail with a generic message."""
    status_code = 500


class ConfigurationError(InternalError):
    """A required secret or key is missing or malformed."""


class DecryptionError(InternalError):
    """Ciphertext is truncated, tampered with, or encrypted under another key."""
