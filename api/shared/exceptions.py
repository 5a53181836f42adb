"""Shared exceptions for the chat API.

Every exception carries the HTTP status and error code rendered in the
``{"error": {"code", "message"}}`` envelope.
"""
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional


class ChatDeskException(Exception):
    """Base exception for the chat API."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(ChatDeskException):
    """Raised when input validation fails."""

    status_code = 400

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: str = "VALIDATION_ERROR",
    ):
        super().__init__(message, error_code, details)


class AuthenticationError(ChatDeskException):
    """Raised when the bearer token is missing or rejected."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, "UNAUTHORIZED")


class AuthorizationError(ChatDeskException):
    """Raised when the caller lacks the required role."""

    status_code = 403

    def __init__(self, message: str = "Admin access required"):
        super().__init__(message, "FORBIDDEN")


class NotFoundError(ChatDeskException):
    """Raised when a resource is not found."""

    status_code = 404

    def __init__(self, resource: str, identifier: str):
        message = f"{resource} with identifier '{identifier}' not found"
        super().__init__(
            message, "NOT_FOUND", {"resource": resource, "identifier": identifier}
        )


class ConflictError(ChatDeskException):
    """Raised when there's a conflict with existing data."""

    status_code = 409

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CONFLICT", details)


class PayloadTooLargeError(ChatDeskException):
    """Raised when an upload exceeds the configured size limit."""

    status_code = 413

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "FILE_TOO_LARGE", details)


class LockedError(ChatDeskException):
    """Raised when a resource is temporarily locked, e.g. a paused bot."""

    status_code = 423

    def __init__(self, message: str, error_code: str = "LOCKED"):
        super().__init__(message, error_code)


class RateLimitError(ChatDeskException):
    """Raised when the caller exceeded its request budget."""

    status_code = 429

    def __init__(self, message: str = "Rate limit exceeded"):
        super().__init__(message, "RATE_LIMITED")


class StorageError(ChatDeskException):
    """Raised when storage operations fail."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "STORAGE_ERROR", details)


class ExternalServiceError(ChatDeskException):
    """Raised when external service calls fail."""

    status_code = 502

    def __init__(
        self, service: str, message: str, details: Optional[Dict[str, Any]] = None
    ):
        full_message = f"{service} service error: {message}"
        super().__init__(full_message, "EXTERNAL_SERVICE_ERROR", details)
        self.service = service


class HandlerError(ChatDeskException):
    """Unexpected failure inside a handler, reported with the handler's code."""

    def __init__(self, error_code: str, message: str):
        super().__init__(message, error_code)


@contextmanager
def handler_errors(error_code: str, logger: logging.Logger) -> Iterator[None]:
    """Let domain errors through; log anything else and re-raise it as ``error_code``."""
    try:
        yield
    except ChatDeskException:
        raise
    except Exception as e:
        logger.exception("Unhandled error (%s)", error_code)
        raise HandlerError(error_code, str(e) or e.__class__.__name__) from e
