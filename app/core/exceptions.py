"""
Base exception classes for application-wide error handling.

This module provides a standardized exception hierarchy that enables:
- Consistent error payloads across the application
- Machine-readable error codes for callers
- A clear split between recoverable business-rule rejections and
  fatal defects (broken invariants, misconfiguration)

Exception Hierarchy:
    BaseApplicationError (base, fatal unless a subclass says otherwise)
    ├── ValidationError - Input validation failures (recoverable)
    ├── NotFoundError - Resource not found (recoverable)
    ├── ConflictError - State conflicts, concurrent modifications (recoverable)
    ├── BusinessRuleViolation - Domain rule rejected the request (recoverable)
    └── ConfigurationError - Deployment/setup problem (fatal)

Usage:
    from core.exceptions import BusinessRuleViolation, NotFoundError

    # Raise with message only
    raise NotFoundError("Donation not found")

    # Raise with error code and details
    raise BusinessRuleViolation(
        "Not enough nights available",
        error_code="INSUFFICIENT_CAPACITY",
        details={"requested": 3, "available": 2},
    )

    # Branch on recoverability
    try:
        ...
    except BaseApplicationError as e:
        if e.recoverable:
            return ServiceResult.rejected(e.message, e.error_code)
        raise

Note:
    These exceptions are for domain/business logic errors. Unexpected
    failures (database errors, bugs) propagate as plain exceptions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Provides a consistent interface for error handling across the application.
    All custom exceptions should inherit from this class.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, metadata, etc.)
        recoverable: Whether the caller can correct the request and retry.
            Fatal errors (recoverable=False) indicate a defect or a
            deployment problem rather than bad input.

    Example:
        try:
            engine.allocate(...)
        except BaseApplicationError as e:
            logger.warning(f"Allocation refused: {e.error_code}")
            return e.to_dict()
    """

    default_error_code: str = "APPLICATION_ERROR"
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (defaults to class default)
            details: Additional error context
        """
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to a dictionary payload.

        Returns:
            Dict with error, error_code, and details keys

        Example:
            {
                "error": "Donation not found",
                "error_code": "DONATION_NOT_FOUND",
                "details": {"donation_id": "..."}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Use for:
    - Non-positive amounts or night counts
    - Malformed identifiers
    - Missing required fields

    Example:
        raise ValidationError(
            "nights must be positive",
            error_code="INVALID_NIGHTS",
            details={"nights": nights},
        )
    """

    default_error_code: str = "VALIDATION_ERROR"
    recoverable = True


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Use for single-resource lookups where existence is expected.
    For list queries, return empty results instead.

    Example:
        donation = Donation.objects.filter(id=donation_id).first()
        if not donation:
            raise NotFoundError(
                f"Donation {donation_id} not found",
                error_code="DONATION_NOT_FOUND",
                details={"donation_id": str(donation_id)},
            )
    """

    default_error_code: str = "NOT_FOUND"
    recoverable = True


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for:
    - Invalid state transitions
    - Concurrent modification conflicts
    - Operations repeated on an already-finalized record

    Example:
        if donation.status == DonationStatus.CANCELLED:
            raise ConflictError(
                "Cannot allocate a cancelled donation",
                error_code="INVALID_STATE_TRANSITION",
                details={"current_status": donation.status, "action": "allocate"},
            )
    """

    default_error_code: str = "CONFLICT"
    recoverable = True


class BusinessRuleViolation(BaseApplicationError):
    """
    Raised when a domain rule refuses an otherwise well-formed request.

    The request was understood but cannot be honoured in the current
    state of the books (e.g. not enough funded nights remain).
    """

    default_error_code: str = "BUSINESS_RULE_VIOLATION"
    recoverable = True


class ConfigurationError(BaseApplicationError):
    """
    Raised when the deployment is missing something the code relies on.

    Use for:
    - Well-known records that should have been seeded at startup
    - Settings with impossible values

    These are surfaced separately from business-rule rejections: the
    operator has to fix the environment, the end user cannot.
    """

    default_error_code: str = "CONFIGURATION_ERROR"
