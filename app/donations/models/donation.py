"""
Donation model.

A Donation is money given to one charity. Its gross amount is split into
fees and a net amount at intake; the net amount is converted into a
whole number of funded nights using the charity's average nightly rate
on that day.

Usage:
    from donations.models import Donation
    from donations.state_machines import DonationStatus

    donation.verify(actor="staff:7")  # pending -> verified
    donation.save()

    donation.sync_usage_status(nights_allocated=4, nights_used=0)
    donation.status  # DonationStatus.ALLOCATED
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.db.models import Q, Sum
from django.utils import timezone

from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from donations.exceptions import InvalidAmount
from donations.state_machines import DonationStatus, VerificationStatus

ZERO = Decimal("0.00")


class Donation(UUIDPrimaryKeyMixin, BaseModel):
    """
    Money given by a donor to a charity.

    State Flow:
        PENDING -> VERIFIED -> ALLOCATED -> PARTIALLY_USED -> FULLY_USED
        PENDING -> CANCELLED (reject)
        VERIFIED/ALLOCATED -> CANCELLED (refund)

    Fields:
        donor_id / charity_id: External identifiers
        gross_amount: Amount given
        platform_fee / facilitator_fee / processing_fee: Fee split
        net_amount: gross - all fees
        nights_funded: floor(net / average nightly rate at donation time)
        avg_nightly_rate_at_donation: Rate used for nights_funded
        fee_structure_version: Version of the fee rules applied
        status: Lifecycle state (FSM)
        verification_status: Independent verification outcome
        ledger_transaction: DONATION_RECEIVED posting, once made
        refund_transaction: DONATION_REFUND posting, once made

    Note:
        platform_fee + facilitator_fee + processing_fee + net_amount
        always equals gross_amount exactly; save() refuses anything else.
    """

    # ==========================================================================
    # Parties
    # ==========================================================================

    donor_id = models.PositiveBigIntegerField(
        db_index=True,
        help_text="Donor user identifier",
    )

    charity_id = models.PositiveBigIntegerField(
        db_index=True,
        help_text="Charity receiving the donation",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    gross_amount = models.DecimalField(max_digits=15, decimal_places=2)
    platform_fee = models.DecimalField(max_digits=15, decimal_places=2, default=ZERO)
    facilitator_fee = models.DecimalField(max_digits=15, decimal_places=2, default=ZERO)
    processing_fee = models.DecimalField(
        max_digits=15,
        decimal_places=2,
        default=ZERO,
        help_text="Reserved; always 0.00 under the current fee structure",
    )
    net_amount = models.DecimalField(max_digits=15, decimal_places=2)

    nights_funded = models.PositiveIntegerField(
        default=0,
        help_text="Whole nights the net amount pays for",
    )

    avg_nightly_rate_at_donation = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Charity-wide average active nightly rate when donated",
    )

    fee_structure_version = models.CharField(max_length=20, default="v1.0")

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=DonationStatus.PENDING,
        choices=DonationStatus.choices,
        db_index=True,
        protected=False,
        help_text="Lifecycle state (managed by FSM)",
    )

    verification_status = models.CharField(
        max_length=20,
        choices=VerificationStatus.choices,
        default=VerificationStatus.PENDING,
        db_index=True,
    )

    # ==========================================================================
    # Audit
    # ==========================================================================

    donated_at = models.DateTimeField(default=timezone.now)
    recorded_by = models.CharField(max_length=255, null=True, blank=True)
    verified_at = models.DateTimeField(null=True, blank=True)
    verified_by = models.CharField(max_length=255, null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True, default="")
    notes = models.TextField(blank=True, default="")

    # ==========================================================================
    # Ledger links
    # ==========================================================================

    ledger_transaction = models.ForeignKey(
        "ledger.LedgerTransaction",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="+",
        help_text="DONATION_RECEIVED transaction",
    )

    refund_transaction = models.ForeignKey(
        "ledger.LedgerTransaction",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="+",
        help_text="DONATION_REFUND transaction",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-donated_at"]
        indexes = [
            models.Index(
                fields=["charity_id", "status"],
                name="donations_d_charity_3a1f0e_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(gross_amount__gt=0),
                name="donation_gross_positive",
            ),
            models.CheckConstraint(
                condition=Q(platform_fee__gte=0)
                & Q(facilitator_fee__gte=0)
                & Q(processing_fee__gte=0),
                name="donation_fees_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Donation({self.id}, {self.status}, {self.gross_amount:,.2f})"

    def save(self, *args, **kwargs):
        self.validate_fee_breakdown()
        super().save(*args, **kwargs)

    def validate_fee_breakdown(self) -> None:
        """
        Raises:
            InvalidAmount: If fees plus net do not add up to gross
        """
        total = self.platform_fee + self.facilitator_fee + self.processing_fee + self.net_amount
        if total != self.gross_amount:
            raise InvalidAmount(
                "Fees plus net amount must equal the gross amount",
                error_code="FEE_BREAKDOWN_MISMATCH",
                details={"gross_amount": str(self.gross_amount), "sum": str(total)},
            )

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(field=status, source=DonationStatus.PENDING, target=DonationStatus.VERIFIED)
    def verify(self, actor: str | None = None):
        """
        Confirm the money arrived.

        Transition: PENDING -> VERIFIED
        """
        self.verification_status = VerificationStatus.VERIFIED
        self.verified_at = timezone.now()
        self.verified_by = actor

    @transition(field=status, source=DonationStatus.PENDING, target=DonationStatus.CANCELLED)
    def reject(self, reason: str = "", actor: str | None = None):
        """
        Reject a donation whose money never arrived.

        Transition: PENDING -> CANCELLED
        """
        self.verification_status = VerificationStatus.REJECTED
        self.verified_at = timezone.now()
        self.verified_by = actor
        self.cancelled_at = self.verified_at
        self.cancellation_reason = reason

    @transition(field=status, source=DonationStatus.VERIFIED, target=DonationStatus.ALLOCATED)
    def mark_allocated(self):
        """Transition: VERIFIED -> ALLOCATED"""

    @transition(
        field=status,
        source=DonationStatus.ALLOCATED,
        target=DonationStatus.PARTIALLY_USED,
    )
    def mark_partially_used(self):
        """Transition: ALLOCATED -> PARTIALLY_USED"""

    @transition(
        field=status,
        source=[DonationStatus.ALLOCATED, DonationStatus.PARTIALLY_USED],
        target=DonationStatus.FULLY_USED,
    )
    def mark_fully_used(self):
        """Transition: ALLOCATED/PARTIALLY_USED -> FULLY_USED"""

    @transition(
        field=status,
        source=[DonationStatus.VERIFIED, DonationStatus.ALLOCATED],
        target=DonationStatus.CANCELLED,
    )
    def refund(self, reason: str = ""):
        """
        Administrative reversal of a verified donation.

        Transition: VERIFIED/ALLOCATED -> CANCELLED

        Not a normal lifecycle edge: the caller must already have posted
        the reversing ledger transaction.
        """
        self.cancelled_at = timezone.now()
        self.cancellation_reason = reason

    def sync_usage_status(self, nights_allocated: int, nights_used: int) -> None:
        """
        Move status forward to match allocation and usage totals.

        Rules, first match wins:
            used >= funded          -> FULLY_USED
            used > 0                -> PARTIALLY_USED
            allocated > 0           -> ALLOCATED

        Only forward transitions are taken; a status already past the
        target is left as is. Does not save.
        """
        if nights_allocated > 0 and self.status == DonationStatus.VERIFIED:
            self.mark_allocated()
        if nights_used <= 0:
            return
        if nights_used >= self.nights_funded:
            if self.status in (DonationStatus.ALLOCATED, DonationStatus.PARTIALLY_USED):
                self.mark_fully_used()
        elif self.status == DonationStatus.ALLOCATED:
            self.mark_partially_used()

    # ==========================================================================
    # Summary helpers
    # ==========================================================================

    @property
    def total_fees(self) -> Decimal:
        return self.platform_fee + self.facilitator_fee + self.processing_fee

    @property
    def is_posted(self) -> bool:
        """True once the DONATION_RECEIVED transaction exists."""
        return self.ledger_transaction_id is not None

    def _live_funding_totals(self) -> dict:
        return self.fundings.filter(deallocated_at__isnull=True).aggregate(
            nights_allocated=Sum("nights_allocated"),
            nights_used=Sum("nights_used"),
            amount_allocated=Sum("amount_allocated"),
        )

    def get_nights_allocated(self) -> int:
        return self._live_funding_totals()["nights_allocated"] or 0

    def get_nights_used(self) -> int:
        return self._live_funding_totals()["nights_used"] or 0

    def get_nights_remaining(self) -> int:
        return self.nights_funded - self.get_nights_allocated()

    def get_amount_allocated(self) -> Decimal:
        return self._live_funding_totals()["amount_allocated"] or ZERO
