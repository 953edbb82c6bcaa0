"""
Django admin configuration for donation models.

Donations and fundings are read-mostly here: status changes and amounts
go through the donation and allocation services so the ledger stays in
step.
"""

from django.contrib import admin

from .models import Donation, LedgerPosting, NightlyRate, SituationFunding, SituationRef


class SituationFundingInline(admin.TabularInline):
    model = SituationFunding
    extra = 0
    can_delete = False
    fields = [
        "situation_id",
        "nights_allocated",
        "nights_used",
        "amount_allocated",
        "allocated_at",
        "deallocated_at",
    ]
    readonly_fields = fields

    def has_add_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Donation)
class DonationAdmin(admin.ModelAdmin):
    """
    Admin configuration for Donation.

    Amounts, status and ledger links are read-only; use the services
    to verify, allocate or refund.
    """

    list_display = [
        "id",
        "charity_id",
        "donor_id",
        "gross_amount",
        "net_amount",
        "nights_funded",
        "status",
        "verification_status",
        "donated_at",
    ]
    list_filter = ["status", "verification_status", "fee_structure_version"]
    search_fields = ["id", "charity_id", "donor_id"]
    date_hierarchy = "donated_at"
    ordering = ["-donated_at"]
    inlines = [SituationFundingInline]
    readonly_fields = [
        "id",
        "donor_id",
        "charity_id",
        "gross_amount",
        "platform_fee",
        "facilitator_fee",
        "processing_fee",
        "net_amount",
        "nights_funded",
        "avg_nightly_rate_at_donation",
        "fee_structure_version",
        "status",
        "verification_status",
        "donated_at",
        "recorded_by",
        "verified_at",
        "verified_by",
        "cancelled_at",
        "cancellation_reason",
        "ledger_transaction",
        "refund_transaction",
        "created_at",
        "updated_at",
    ]

    def has_add_permission(self, request) -> bool:
        """Donations are recorded through the donation service."""
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(SituationFunding)
class SituationFundingAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "donation",
        "situation_id",
        "charity_id",
        "nights_allocated",
        "nights_used",
        "amount_allocated",
        "deallocated_at",
    ]
    list_filter = ["charity_id"]
    search_fields = ["situation_id", "donation__id"]

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(NightlyRate)
class NightlyRateAdmin(admin.ModelAdmin):
    list_display = ["location_id", "charity_id", "rate", "effective_date", "end_date"]
    list_filter = ["charity_id"]
    ordering = ["charity_id", "location_id", "-effective_date"]


@admin.register(SituationRef)
class SituationRefAdmin(admin.ModelAdmin):
    list_display = ["situation_id", "charity_id", "published_at"]
    search_fields = ["situation_id"]


@admin.register(LedgerPosting)
class LedgerPostingAdmin(admin.ModelAdmin):
    """Outbox visibility: what is still waiting for the ledger and why."""

    list_display = [
        "donation",
        "operation",
        "status",
        "attempts",
        "last_attempt_at",
        "posted_at",
    ]
    list_filter = ["status", "operation"]
    readonly_fields = [
        "donation",
        "operation",
        "status",
        "attempts",
        "last_error",
        "last_attempt_at",
        "posted_at",
        "actor",
        "ledger_transaction",
    ]

    def has_add_permission(self, request) -> bool:
        return False
