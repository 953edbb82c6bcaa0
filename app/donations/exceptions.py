"""
Donation workflow exceptions.

Every error here is a recoverable business-rule rejection: the caller
can correct the request (fewer nights, another donation) and retry.

Exception Hierarchy:
    DonationError (base, recoverable)
    ├── DonationNotFound - Donation lookup failures
    ├── FundingNotFound - Situation funding lookup failures
    ├── SituationNotFound - Situation unknown to the directory
    ├── CharityMismatch - Donation and situation belong to different charities
    ├── InsufficientCapacity - Not enough funded nights remain
    ├── InsufficientFunds - Not enough money remains
    ├── UsageExceedsAllocation - Usage beyond a funding's nights
    ├── InvalidDonationState - Operation not allowed in the current status
    └── InvalidAmount - Non-positive nights or amounts, broken fee breakdown

Each one also derives from the matching core category (NotFoundError,
BusinessRuleViolation, ConflictError, ValidationError) so generic
handlers can branch on the kind of refusal.

Usage:
    from donations.exceptions import InsufficientCapacity

    if nights > remaining:
        raise InsufficientCapacity(requested=nights, available=remaining)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    BusinessRuleViolation,
    ConflictError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from decimal import Decimal
    from typing import Any


class DonationError(BaseApplicationError):
    """Base exception for donation and allocation operations."""

    default_error_code: str = "DONATION_ERROR"
    recoverable = True


class DonationNotFound(DonationError, NotFoundError):
    default_error_code: str = "DONATION_NOT_FOUND"


class FundingNotFound(DonationError, NotFoundError):
    default_error_code: str = "FUNDING_NOT_FOUND"


class SituationNotFound(DonationError, NotFoundError):
    default_error_code: str = "SITUATION_NOT_FOUND"


class CharityMismatch(DonationError, BusinessRuleViolation):
    """
    Raised when a donation is allocated to another charity's situation.

    Example:
        raise CharityMismatch(
            "Situation belongs to a different charity",
            details={"donation_charity_id": 1, "situation_charity_id": 2},
        )
    """

    default_error_code: str = "CHARITY_MISMATCH"


class InsufficientCapacity(DonationError, BusinessRuleViolation):
    """
    Raised when more nights are requested than a donation has left.

    Attributes:
        requested: Nights asked for
        available: Nights still unallocated on the donation
    """

    default_error_code: str = "INSUFFICIENT_CAPACITY"

    def __init__(
        self,
        requested: int,
        available: int,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.requested = requested
        self.available = available

        full_details = {"requested_nights": requested, "available_nights": available}
        if details:
            full_details.update(details)

        super().__init__(
            message=(
                f"Cannot allocate {requested} nights: only {available} remain "
                f"on this donation"
            ),
            error_code=error_code,
            details=full_details,
        )


class InsufficientFunds(DonationError, BusinessRuleViolation):
    """
    Raised when an amount exceeds what is left to allocate.

    Attributes:
        required: Amount asked for
        available: Amount still available
    """

    default_error_code: str = "INSUFFICIENT_FUNDS"

    def __init__(
        self,
        required: Decimal,
        available: Decimal,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.required = required
        self.available = available

        full_details = {"required": str(required), "available": str(available)}
        if details:
            full_details.update(details)

        super().__init__(
            message=f"Insufficient funds: required {required}, available {available}",
            error_code=error_code,
            details=full_details,
        )


class UsageExceedsAllocation(DonationError, BusinessRuleViolation):
    """Raised when recorded usage would pass a funding's allocated nights."""

    default_error_code: str = "USAGE_EXCEEDS_ALLOCATION"


class InvalidDonationState(DonationError, ConflictError):
    """
    Raised when a donation is not in a status that allows the operation.

    Example:
        raise InvalidDonationState(
            "Only verified donations can be allocated",
            details={"current_status": donation.status, "action": "allocate"},
        )
    """

    default_error_code: str = "INVALID_DONATION_STATE"


class InvalidAmount(DonationError, ValidationError):
    default_error_code: str = "INVALID_AMOUNT"
