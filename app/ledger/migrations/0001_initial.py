import uuid
from decimal import Decimal

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Account",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "code",
                    models.CharField(
                        help_text="Unique account code shown in reports",
                        max_length=50,
                        unique=True,
                    ),
                ),
                ("name", models.CharField(help_text="Display name", max_length=200)),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("asset", "Asset"),
                            ("liability", "Liability"),
                            ("equity", "Equity"),
                            ("revenue", "Revenue"),
                            ("expense", "Expense"),
                        ],
                        help_text="Accounting category; decides which side increases the balance",
                        max_length=20,
                    ),
                ),
                (
                    "charity_id",
                    models.PositiveBigIntegerField(
                        blank=True,
                        db_index=True,
                        help_text="Charity owning this account (charity fund accounts only)",
                        null=True,
                    ),
                ),
                (
                    "is_system_account",
                    models.BooleanField(
                        default=False,
                        help_text="Well-known account seeded at startup",
                    ),
                ),
                (
                    "is_active",
                    models.BooleanField(
                        db_index=True,
                        default=True,
                        help_text="Inactive accounts reject new entries",
                    ),
                ),
                ("description", models.TextField(blank=True, default="")),
                (
                    "current_balance",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Cached balance, refreshed after each posted transaction",
                        max_digits=15,
                    ),
                ),
                (
                    "parent",
                    models.ForeignKey(
                        blank=True,
                        help_text="Parent account for charity-scoped sub-accounts",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="children",
                        to="ledger.account",
                    ),
                ),
            ],
            options={
                "ordering": ["code"],
                "indexes": [
                    models.Index(
                        fields=["type", "is_active"],
                        name="ledger_acco_type_5e2a1c_idx",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="LedgerTransaction",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "code",
                    models.CharField(
                        help_text="Human-sortable transaction code (TXN-YYYYMMDD-NNNNN)",
                        max_length=50,
                        unique=True,
                    ),
                ),
                (
                    "transaction_type",
                    models.CharField(
                        choices=[
                            ("donation_received", "Donation Received"),
                            ("donation_refund", "Donation Refund"),
                            ("fund_allocated", "Fund Allocated to Situation"),
                            ("fund_deallocated", "Fund Deallocated from Situation"),
                            ("fund_disbursed", "Fund Disbursed for Booking"),
                            ("fee_collected", "Fee Collected"),
                            ("adjustment", "Manual Adjustment"),
                            ("opening_balance", "Opening Balance"),
                            ("transfer", "Fund Transfer"),
                        ],
                        db_index=True,
                        max_length=50,
                    ),
                ),
                (
                    "transaction_date",
                    models.DateTimeField(
                        db_index=True,
                        default=django.utils.timezone.now,
                        help_text="When the financial event happened",
                    ),
                ),
                ("description", models.CharField(max_length=500)),
                (
                    "reference_type",
                    models.CharField(
                        blank=True,
                        help_text="Type of the business event (donation, booking, situation_funding)",
                        max_length=50,
                        null=True,
                    ),
                ),
                (
                    "reference_id",
                    models.CharField(
                        blank=True,
                        help_text="Identifier of the business event",
                        max_length=64,
                        null=True,
                    ),
                ),
                (
                    "charity_id",
                    models.PositiveBigIntegerField(blank=True, db_index=True, null=True),
                ),
                (
                    "total_amount",
                    models.DecimalField(decimal_places=2, max_digits=15),
                ),
                ("notes", models.TextField(blank=True, default="")),
                ("is_reversed", models.BooleanField(default=False)),
                (
                    "created_by",
                    models.CharField(
                        blank=True,
                        help_text="Identifier of the user/service that posted this",
                        max_length=255,
                        null=True,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "reversal_of",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="reversals",
                        to="ledger.ledgertransaction",
                    ),
                ),
            ],
            options={
                "ordering": ["transaction_date", "code"],
                "indexes": [
                    models.Index(
                        fields=["reference_type", "reference_id"],
                        name="ledger_ledg_referen_8b7f3d_idx",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="LedgerEntry",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "entry_type",
                    models.CharField(
                        choices=[("debit", "Dr"), ("credit", "Cr")],
                        max_length=10,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Always positive; the side is given by entry_type",
                        max_digits=15,
                    ),
                ),
                (
                    "running_balance",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Account balance snapshot after the transaction posted",
                        max_digits=15,
                        null=True,
                    ),
                ),
                ("memo", models.CharField(blank=True, default="", max_length=500)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="entries",
                        to="ledger.account",
                    ),
                ),
                (
                    "transaction",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="entries",
                        to="ledger.ledgertransaction",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "ledger entries",
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(
                        fields=["account", "entry_type"],
                        name="ledger_ledg_account_4c9e2b_idx",
                    )
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="ledger_entry_amount_positive",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="TransactionCodeSequence",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("prefix", models.CharField(max_length=20, unique=True)),
                ("last_value", models.PositiveIntegerField(default=0)),
            ],
        ),
    ]
