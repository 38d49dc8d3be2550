"""
Typed failures raised by the booking admission core.

Each failure carries the kind of problem, a human readable message and
optional details. The HTTP layer turns them into responses with
``to_http_exception``; the core never deals with status codes itself.
"""

from enum import Enum
from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    MISMATCH = "mismatch"
    INVALID_INTERVAL = "invalid_interval"
    INVALID_TITLE = "invalid_title"
    CONFLICT = "conflict"
    FORBIDDEN = "forbidden"


class BookingError(Exception):
    """Base class for all admission failures."""

    kind: ErrorKind
    status_code: int

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    @property
    def code(self) -> str:
        return self.kind.value

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class NotFoundError(BookingError):
    kind = ErrorKind.NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND


class InactiveError(BookingError):
    kind = ErrorKind.INACTIVE
    status_code = HTTP_422_UNPROCESSABLE


class MismatchError(BookingError):
    """The room does not belong to the office named in the request."""

    kind = ErrorKind.MISMATCH
    status_code = HTTP_422_UNPROCESSABLE


class InvalidIntervalError(BookingError):
    kind = ErrorKind.INVALID_INTERVAL
    status_code = HTTP_422_UNPROCESSABLE


class InvalidTitleError(BookingError):
    kind = ErrorKind.INVALID_TITLE
    status_code = HTTP_422_UNPROCESSABLE


class ConflictError(BookingError):
    """Another active booking already holds an overlapping slot."""

    kind = ErrorKind.CONFLICT
    status_code = status.HTTP_409_CONFLICT


class ForbiddenError(BookingError):
    kind = ErrorKind.FORBIDDEN
    status_code = status.HTTP_403_FORBIDDEN
