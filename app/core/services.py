"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Tagged result wrapper (ok / rejected / fatal)
- unit_of_work: Run a callable as one atomic database unit
- BaseService: Base class with common service utilities

Pattern Comparison:
    - ServiceResult.rejected: expected failures (business rules, bad input)
    - ServiceResult.fatal: broken invariants, missing configuration
    - Exceptions: raised inside a unit of work so the whole unit rolls back

Usage:
    from core.services import BaseService, ServiceResult, unit_of_work

    class AllocationEngine(BaseService):
        def allocate(self, ...) -> ServiceResult[SituationFunding]:
            try:
                funding = unit_of_work(lambda: self._allocate(...))
            except Exception as exc:
                return self.handle_exception(exc, "allocation")
            return ServiceResult.ok(funding)

    result = engine.allocate(...)
    if result.is_rejected:
        show_message(result.error)
    elif result.is_fatal:
        page_operator(result.error_code)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import models, transaction

from core.exceptions import BaseApplicationError

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any

# Generic type for ServiceResult data
T = TypeVar("T")


class ResultStatus(models.TextChoices):
    """
    Outcome categories for a service call.

    OK: The operation completed.
    REJECTED: A business rule or input check refused the request.
        The caller may correct the request and retry.
    FATAL: An invariant or the deployment is broken. Nothing was
        persisted and retrying the same request will not help.
    """

    OK = "ok", "Ok"
    REJECTED = "rejected", "Rejected"
    FATAL = "fatal", "Fatal"


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        status: One of ResultStatus
        data: Result data if successful (None otherwise)
        error: Error message if not successful
        error_code: Machine-readable error code for client handling
        details: Extra context copied from the originating exception

    Usage:
        # Success
        return ServiceResult.ok(funding)

        # Business-rule rejection
        return ServiceResult.rejected("Only 2 nights remain", "INSUFFICIENT_CAPACITY")

        # Fatal
        return ServiceResult.fatal("Transaction not balanced", "UNBALANCED_TRANSACTION")
    """

    status: str
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, data: T) -> ServiceResult[T]:
        """Create a successful result."""
        return cls(status=ResultStatus.OK, data=data)

    @classmethod
    def rejected(
        cls,
        error: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a recoverable failure.

        Args:
            error: Human-readable reason
            error_code: Machine-readable code
            details: Optional structured context
        """
        return cls(
            status=ResultStatus.REJECTED,
            error=error,
            error_code=error_code,
            details=details or {},
        )

    @classmethod
    def fatal(
        cls,
        error: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> ServiceResult[T]:
        """Create a non-recoverable failure."""
        return cls(
            status=ResultStatus.FATAL,
            error=error,
            error_code=error_code,
            details=details or {},
        )

    @classmethod
    def from_exception(cls, exc: Exception) -> ServiceResult[T]:
        """
        Create a failed result from an exception.

        Recoverable application errors become REJECTED; everything else,
        including unexpected exceptions, becomes FATAL.
        """
        if isinstance(exc, BaseApplicationError):
            factory = cls.rejected if exc.recoverable else cls.fatal
            return factory(exc.message, exc.error_code, dict(exc.details))
        return cls.fatal(str(exc), exc.__class__.__name__.upper())

    @property
    def success(self) -> bool:
        return self.status == ResultStatus.OK

    @property
    def is_rejected(self) -> bool:
        return self.status == ResultStatus.REJECTED

    @property
    def is_fatal(self) -> bool:
        return self.status == ResultStatus.FATAL

    def to_response(self) -> dict[str, Any]:
        """
        Convert to a plain dictionary.

        Returns:
            Dict with status and data or error details
        """
        if self.success:
            return {"status": self.status, "data": self.data}

        response: dict[str, Any] = {
            "status": self.status,
            "error": self.error,
        }
        if self.error_code:
            response["error_code"] = self.error_code
        if self.details:
            response["details"] = self.details
        return response

    def map(self, func) -> ServiceResult:
        """
        Transform the data if successful.

        Example:
            codes = result.map(lambda txn: txn.code)
        """
        if self.success and self.data is not None:
            return ServiceResult.ok(func(self.data))
        return self  # type: ignore

    def __bool__(self) -> bool:
        """Allow using result in boolean context (truthy only when OK)."""
        return self.success


def unit_of_work(work: Callable[[], T]) -> T:
    """
    Run ``work`` as a single atomic unit against the database.

    Every write performed by ``work`` becomes visible together when it
    returns. If it raises, all of its writes are discarded and the
    exception propagates unchanged.

    Nested calls join the outer unit through a savepoint, so a recorder
    posting made inside an allocation is rolled back with the allocation.

    Args:
        work: Zero-argument callable performing the writes

    Returns:
        Whatever ``work`` returns
    """
    with transaction.atomic():
        return work()


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Exception to ServiceResult conversion

    Design Notes:
        - Collaborators are passed to __init__ explicitly
        - Use ServiceResult at the workflow boundary
        - Raise exceptions inside a unit of work so it rolls back
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    def handle_exception(
        cls,
        exc: Exception,
        context: str = "",
    ) -> ServiceResult:
        """
        Convert exception to ServiceResult with logging.

        Recoverable application errors are logged at WARNING and returned
        as REJECTED. Anything else is logged with its traceback at ERROR
        and returned as FATAL.

        Args:
            exc: The caught exception
            context: Operation name for the log line
        """
        logger = cls.get_logger()
        message = f"{context}: {exc}" if context else str(exc)
        result = ServiceResult.from_exception(exc)
        if result.is_rejected:
            logger.warning(message, extra={"error_code": result.error_code})
        else:
            logger.error(
                message,
                exc_info=exc,
                extra={"error_code": result.error_code},
            )
        return result
