# backend/servicespot/core/exceptions.py
"""
Domain-specific exceptions for the ServiceSpot bookings core.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
Each carries a human-readable ``message`` and a machine-checkable ``code``.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        """Convert to the HTTPException the presentation layer returns."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class InvalidTransitionException(DomainException):
    """Raised when a booking status change is not permitted from its current state."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current_status: str, event: str):
        super().__init__(
            message=f"Cannot {event.lower()} a booking that is {current_status}",
            code="INVALID_TRANSITION",
            details={"current_status": current_status, "event": event},
        )


class StateConflictException(DomainException):
    """Raised when a delete is attempted while dependent state exists."""

    status_code = status.HTTP_409_CONFLICT


class ForbiddenException(DomainException):
    """Raised when the acting user does not own the resource being mutated."""

    status_code = status.HTTP_403_FORBIDDEN


class ServiceUnavailableException(DomainException):
    """Raised when the backing store is temporarily overloaded."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def to_http_exception(self) -> HTTPException:
        exc = super().to_http_exception()
        exc.headers = {"Retry-After": "2"}
        return exc


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class SlotFullyBookedException(ConflictException):
    """Raised when a slot has no remaining capacity."""

    def __init__(self, slot_id: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message="This availability slot is fully booked",
            code="SLOT_FULLY_BOOKED",
            details={"slot_id": slot_id, **(details or {})},
        )


class AvailabilityOverlapException(ConflictException):
    """Raised when an availability slot overlaps with an existing slot."""

    def __init__(
        self,
        scope: str,
        new_range: str,
        conflicting_range: str,
    ):
        super().__init__(
            message=f"Overlapping slot on {scope}: {new_range} conflicts with {conflicting_range}",
            code="AVAILABILITY_OVERLAP",
            details={
                "scope": scope,
                "new_slot": new_range,
                "conflicting_slot": conflicting_range,
            },
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """


def is_db_pool_exhaustion(exc: Exception) -> bool:
    """
    Check if an exception indicates DB connection pool exhaustion.

    This is a common failure mode under high load when all database
    connections are in use and new requests time out waiting.
    """
    error_str = str(exc).lower()
    return "queuepool" in error_str or (
        "timeout" in error_str and ("connection" in error_str or "pool" in error_str)
    )
