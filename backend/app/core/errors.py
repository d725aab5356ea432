"""Error taxonomy. Every error is an HTTPException so FastAPI can render it, and
app.main turns all of them into {"error": ..., "code": ...} bodies."""

from typing import Optional

from fastapi import HTTPException, status


class AppError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INTERNAL_ERROR"
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(status_code=self.status_code, detail=message or self.default_message)

    @property
    def message(self) -> str:
        return self.detail


class Unauthorized(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"
    default_message = "Unauthorized"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"
    default_message = "Forbidden"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    default_message = "Not found"


class InvalidOrExpiredToken(AppError):
    # never-existed, already-used and expired all map here
    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVALID_OR_EXPIRED_TOKEN"
    default_message = "Invalid or expired token"


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"
    default_message = "Invalid request"


class OrderNotModifiable(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "ORDER_NOT_MODIFIABLE"
    default_message = "Can only modify pending orders"


class RsvpRequired(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "RSVP_REQUIRED"
    default_message = "Must RSVP before placing order"


class InternalError(AppError):
    pass


STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    500: "INTERNAL_ERROR",
}


def error_code_for(exc: HTTPException) -> str:
    if isinstance(exc, AppError):
        return exc.code
    return STATUS_CODES.get(exc.status_code, "ERROR")
