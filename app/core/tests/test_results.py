"""
Tests for ServiceResult, unit_of_work and BaseService.handle_exception.

These tests verify that:
- Recoverable application errors become REJECTED results
- Fatal application errors and unexpected exceptions become FATAL results
- unit_of_work discards every write when the callable raises
"""

from __future__ import annotations

import logging
from decimal import Decimal

import pytest

from core.exceptions import (
    BaseApplicationError,
    BusinessRuleViolation,
    ConfigurationError,
    NotFoundError,
)
from core.services import BaseService, ResultStatus, ServiceResult, unit_of_work
from donations.exceptions import DonationNotFound, InsufficientFunds
from ledger.exceptions import AccountNotFound, SystemAccountMissing


class TestServiceResult:
    """Tests for the ok / rejected / fatal result tags."""

    def test_ok_result_is_truthy(self):
        """An OK result carries its data and is truthy."""
        result = ServiceResult.ok({"code": "TXN-20250101-00001"})

        assert result.status == ResultStatus.OK
        assert result.success is True
        assert result.data == {"code": "TXN-20250101-00001"}
        assert bool(result) is True

    def test_rejected_result(self):
        """A rejected result is falsy and not fatal."""
        result = ServiceResult.rejected("Only 2 nights remain", "INSUFFICIENT_CAPACITY")

        assert result.is_rejected is True
        assert result.is_fatal is False
        assert result.error_code == "INSUFFICIENT_CAPACITY"
        assert not result

    def test_fatal_result(self):
        """A fatal result is falsy and not rejected."""
        result = ServiceResult.fatal("Transaction not balanced", "UNBALANCED_TRANSACTION")

        assert result.is_fatal is True
        assert result.is_rejected is False
        assert not result

    def test_recoverable_exception_becomes_rejected(self):
        """Recoverable application errors map to REJECTED with their details."""
        exc = BusinessRuleViolation("Nope", details={"nights": 3})

        result = ServiceResult.from_exception(exc)

        assert result.is_rejected
        assert result.error == "Nope"
        assert result.error_code == "BUSINESS_RULE_VIOLATION"
        assert result.details == {"nights": 3}

    def test_fatal_application_error_becomes_fatal(self):
        """Application errors are fatal unless they say otherwise."""
        result = ServiceResult.from_exception(ConfigurationError("Missing account"))

        assert result.is_fatal
        assert result.error_code == "CONFIGURATION_ERROR"

    def test_unexpected_exception_becomes_fatal(self):
        """Anything that is not an application error is fatal."""
        result = ServiceResult.from_exception(KeyError("boom"))

        assert result.is_fatal
        assert result.error_code == "KEYERROR"

    def test_to_response_for_failure(self):
        """Failures expose error, code and details."""
        result = ServiceResult.rejected("Not found", "NOT_FOUND", {"id": "x"})

        assert result.to_response() == {
            "status": ResultStatus.REJECTED,
            "error": "Not found",
            "error_code": "NOT_FOUND",
            "details": {"id": "x"},
        }

    def test_map_transforms_only_successes(self):
        """map() applies to OK results and passes failures through."""
        ok = ServiceResult.ok(2).map(lambda value: value * 10)
        rejected = ServiceResult.rejected("no").map(lambda value: value * 10)

        assert ok.data == 20
        assert rejected.is_rejected
        assert rejected.data is None


class TestHandleException:
    """Tests for BaseService.handle_exception()."""

    class ExampleService(BaseService):
        pass

    def test_rejection_logged_as_warning(self, caplog):
        """Recoverable errors are logged at WARNING."""
        with caplog.at_level(logging.WARNING):
            result = self.ExampleService.handle_exception(
                NotFoundError("Donation not found"), "verify"
            )

        assert result.is_rejected
        assert any(record.levelno == logging.WARNING for record in caplog.records)

    def test_fatal_logged_as_error(self, caplog):
        """Fatal errors are logged at ERROR."""
        with caplog.at_level(logging.WARNING):
            result = self.ExampleService.handle_exception(
                BaseApplicationError("Broken"), "post"
            )

        assert result.is_fatal
        assert any(record.levelno == logging.ERROR for record in caplog.records)


class TestUnitOfWork:
    """Tests for unit_of_work()."""

    def test_returns_callable_result(self, db):
        """The callable's return value is passed through."""
        assert unit_of_work(lambda: 42) == 42

    def test_rolls_back_all_writes_on_error(self, db):
        """Nothing written inside a failing unit survives."""
        from ledger.models import Account, AccountType

        def work():
            Account.objects.create(code="9990", name="Scratch", type=AccountType.ASSET)
            raise ConfigurationError("abort")

        with pytest.raises(ConfigurationError):
            unit_of_work(work)

        assert not Account.objects.filter(code="9990").exists()


class TestDomainErrorCategories:
    """Domain errors map onto the generic categories handlers branch on."""

    @pytest.mark.parametrize(
        ("exc", "category", "expected_status"),
        [
            (DonationNotFound("Donation not found"), NotFoundError, ResultStatus.REJECTED),
            (
                InsufficientFunds(required=Decimal("10.00"), available=Decimal("5.00")),
                BusinessRuleViolation,
                ResultStatus.REJECTED,
            ),
            (AccountNotFound("Account 9999 not found"), NotFoundError, ResultStatus.REJECTED),
            (SystemAccountMissing("1000"), ConfigurationError, ResultStatus.FATAL),
        ],
    )
    def test_category_and_result_status(self, exc, category, expected_status):
        assert isinstance(exc, category)
        assert ServiceResult.from_exception(exc).status == expected_status
