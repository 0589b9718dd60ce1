# Overview: Error taxonomy shared by services and routes.

"""
Every failure the API can report maps to exactly one subclass of AppError.

Each class carries the HTTP status and a stable, non-leaking error code.
The message passed to the constructor is for logs only; responses render
the code, never str(exc).
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for classified application errors."""
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)


class InvalidInput(AppError):
    """400-level input problem (malformed or missing field)."""
    status_code = 400
    code = "invalid_input"


class InvalidCredentials(AppError):
    """Unknown user and wrong password are deliberately the same error."""
    status_code = 401
    code = "invalid_credentials"


class TokenInvalid(AppError):
    status_code = 401
    code = "unauthorized"


class TokenExpired(TokenInvalid):
    pass


class Unauthorized(AppError):
    status_code = 401
    code = "unauthorized"


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"


class NotFound(AppError):
    status_code = 404
    code = "not_found"


class ItemNotFound(NotFound):
    pass


class UserNotFound(NotFound):
    pass


class Conflict(AppError):
    """409-level business rule conflict (e.g., duplicate SKU)."""
    status_code = 409
    code = "conflict"


class DatabaseError(AppError):
    status_code = 500
    code = "database_error"


class InternalError(AppError):
    status_code = 500
    code = "internal_error"


def classify(exc: BaseException) -> AppError:
    """
    Return a classified error for exc.

    Classified errors pass through unchanged. Anything else is wrapped in
    InternalError with the original exception attached as __cause__.
    """
    if isinstance(exc, AppError):
        return exc
    wrapped = InternalError(f"{type(exc).__name__}: {exc}")
    wrapped.__cause__ = exc
    return wrapped
