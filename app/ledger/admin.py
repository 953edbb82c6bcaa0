"""
Django admin configuration for ledger models.

Key features:
- Transactions and entries are immutable (no add/change/delete)
- Entries shown inline on their transaction
- Cached and replayed balance shown side by side on accounts
"""

from django.contrib import admin

from .models import Account, LedgerEntry, LedgerTransaction
from .services import balances


@admin.register(Account)
class AccountAdmin(admin.ModelAdmin):
    """
    Admin configuration for Account.

    Accounts can be renamed or deactivated here, but type, code and
    balance are read-only.
    """

    list_display = [
        "code",
        "name",
        "type",
        "charity_id",
        "current_balance",
        "is_system_account",
        "is_active",
    ]
    list_filter = ["type", "is_system_account", "is_active"]
    search_fields = ["code", "name", "charity_id"]
    readonly_fields = [
        "id",
        "code",
        "type",
        "parent",
        "charity_id",
        "is_system_account",
        "current_balance",
        "replayed_balance",
        "created_at",
        "updated_at",
    ]
    ordering = ["code"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "code", "name", "type", "parent", "charity_id"),
            },
        ),
        (
            "Status",
            {
                "fields": ("is_system_account", "is_active", "description"),
            },
        ),
        (
            "Balance",
            {
                "fields": ("current_balance", "replayed_balance"),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    @admin.display(description="Replayed balance")
    def replayed_balance(self, obj: Account) -> str:
        """Balance recomputed from entries (one query)."""
        return f"{balances.get_account_balance(obj):,.2f}"

    def has_delete_permission(self, request, obj=None) -> bool:
        """Accounts are deactivated, never deleted."""
        return False


class LedgerEntryInline(admin.TabularInline):
    model = LedgerEntry
    extra = 0
    can_delete = False
    fields = ["account", "entry_type", "amount", "running_balance", "memo"]
    readonly_fields = fields

    def has_add_permission(self, request, obj=None) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False


@admin.register(LedgerTransaction)
class LedgerTransactionAdmin(admin.ModelAdmin):
    """
    Admin configuration for LedgerTransaction.

    Read-only. Corrections are posted as new reversing transactions
    through the recorder.
    """

    list_display = [
        "code",
        "transaction_type",
        "transaction_date",
        "total_amount",
        "charity_id",
        "reference_type",
        "reference_id",
        "is_reversed",
    ]
    list_filter = ["transaction_type", "is_reversed", "reference_type"]
    search_fields = ["code", "reference_id", "description", "created_by"]
    date_hierarchy = "transaction_date"
    ordering = ["-transaction_date"]
    inlines = [LedgerEntryInline]

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(LedgerEntry)
class LedgerEntryAdmin(admin.ModelAdmin):
    """
    Admin configuration for LedgerEntry.

    Ledger entries are immutable - they cannot be added, edited or
    deleted through the admin interface.
    """

    list_display = [
        "created_at",
        "transaction",
        "account",
        "entry_type",
        "amount",
        "running_balance",
        "memo",
    ]
    list_filter = ["entry_type", "account__type"]
    search_fields = ["transaction__code", "account__code", "memo"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_delete_permission(self, request, obj=None) -> bool:
        """
        Ledger entries are immutable - disable delete.

        Corrections should be made via new reversing transactions.
        """
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_add_permission(self, request) -> bool:
        """Entries are only created by the transaction recorder."""
        return False
