"""Application errors and their HTTP representation."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base of all errors that map onto an HTTP error response."""

    status: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR
    label: str = "Internal error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.label}: {self.message}"

    @property
    def public_message(self) -> str:
        """The text shown to clients."""
        return self.message

    def to_response(self) -> tuple[int, dict[str, Any]]:
        """Return the status code and JSON body for this error."""
        logger.error(
            "Error response: %d %s - %s", self.status.value, self.status.phrase, self
        )
        return int(self.status), {"error": self.public_message}


class DatabaseError(AppError):
    label = "Database error"

    @property
    def public_message(self) -> str:
        return "Database error"


class NotFoundError(AppError):
    status = HTTPStatus.NOT_FOUND
    label = "Not found"


class UnauthorizedError(AppError):
    status = HTTPStatus.UNAUTHORIZED
    label = "Unauthorized"


class ForbiddenError(AppError):
    status = HTTPStatus.FORBIDDEN
    label = "Forbidden"


class BadRequestError(AppError):
    status = HTTPStatus.BAD_REQUEST
    label = "Bad request"


class InternalError(AppError):
    label = "Internal error"


class ExternalServiceError(AppError):
    status = HTTPStatus.BAD_GATEWAY
    label = "External service error"


class StorageError(AppError):
    label = "Storage error"