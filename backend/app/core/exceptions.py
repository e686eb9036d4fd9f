# backend/app/core/exceptions.py
"""
Domain-specific exceptions for the chat platform.

The same exception surfaces on two transports: HTTP routes turn it into a
problem-details response (``to_http_exception``), WebSocket handlers turn it
into an ``{"error", "code"}`` payload on the failing event
(``to_error_payload``). ``code`` is the machine-readable reason; it defaults
to the exception class name.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "An error occurred processing your request"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message or self.default_message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )

    def to_error_payload(self) -> Dict[str, Any]:
        """Payload sent back on a WebSocket event that failed."""
        return {"error": self.message, "code": self.code}


class ValidationException(DomainException):
    """Malformed input or a business rule the request breaks."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Conversation, room, message, attachment or user does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """The change collides with existing data (e.g. already a member)."""

    status_code = status.HTTP_409_CONFLICT


class UnauthorizedException(DomainException):
    """Missing or invalid credentials."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenException(DomainException):
    """Authenticated, but not a member/admin/owner for this action."""

    status_code = status.HTTP_403_FORBIDDEN


class ServiceException(DomainException):
    """A service operation failed for reasons the caller cannot fix."""


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    Used when data access fails: connection issues, query failures or
    constraint violations. Services translate it; it never reaches clients.
    """
