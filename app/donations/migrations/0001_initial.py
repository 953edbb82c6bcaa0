import uuid
from decimal import Decimal

import django.db.models.deletion
import django.utils.timezone
import django_fsm
from django.db import migrations, models


def uuid_pk():
    return (
        "id",
        models.UUIDField(
            default=uuid.uuid4,
            editable=False,
            help_text="Unique identifier for this record",
            primary_key=True,
            serialize=False,
        ),
    )


def timestamps():
    return [
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
    ]


def ledger_link(**kwargs):
    return models.ForeignKey(
        blank=True,
        null=True,
        on_delete=django.db.models.deletion.PROTECT,
        related_name="+",
        to="ledger.ledgertransaction",
        **kwargs,
    )


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("ledger", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Donation",
            fields=timestamps()
            + [
                uuid_pk(),
                (
                    "donor_id",
                    models.PositiveBigIntegerField(
                        db_index=True, help_text="Donor user identifier"
                    ),
                ),
                (
                    "charity_id",
                    models.PositiveBigIntegerField(
                        db_index=True, help_text="Charity receiving the donation"
                    ),
                ),
                ("gross_amount", models.DecimalField(decimal_places=2, max_digits=15)),
                (
                    "platform_fee",
                    models.DecimalField(
                        decimal_places=2, default=Decimal("0.00"), max_digits=15
                    ),
                ),
                (
                    "facilitator_fee",
                    models.DecimalField(
                        decimal_places=2, default=Decimal("0.00"), max_digits=15
                    ),
                ),
                (
                    "processing_fee",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Reserved; always 0.00 under the current fee structure",
                        max_digits=15,
                    ),
                ),
                ("net_amount", models.DecimalField(decimal_places=2, max_digits=15)),
                (
                    "nights_funded",
                    models.PositiveIntegerField(
                        default=0, help_text="Whole nights the net amount pays for"
                    ),
                ),
                (
                    "avg_nightly_rate_at_donation",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Charity-wide average active nightly rate when donated",
                        max_digits=10,
                        null=True,
                    ),
                ),
                (
                    "fee_structure_version",
                    models.CharField(default="v1.0", max_length=20),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("verified", "Verified"),
                            ("allocated", "Allocated"),
                            ("partially_used", "Partially Used"),
                            ("fully_used", "Fully Used"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Lifecycle state (managed by FSM)",
                        max_length=50,
                    ),
                ),
                (
                    "verification_status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("verified", "Verified"),
                            ("rejected", "Rejected"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("donated_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("recorded_by", models.CharField(blank=True, max_length=255, null=True)),
                ("verified_at", models.DateTimeField(blank=True, null=True)),
                ("verified_by", models.CharField(blank=True, max_length=255, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("cancellation_reason", models.TextField(blank=True, default="")),
                ("notes", models.TextField(blank=True, default="")),
                (
                    "ledger_transaction",
                    ledger_link(help_text="DONATION_RECEIVED transaction"),
                ),
                (
                    "refund_transaction",
                    ledger_link(help_text="DONATION_REFUND transaction"),
                ),
            ],
            options={
                "ordering": ["-donated_at"],
                "indexes": [
                    models.Index(
                        fields=["charity_id", "status"],
                        name="donations_d_charity_3a1f0e_idx",
                    )
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("gross_amount__gt", 0)),
                        name="donation_gross_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("platform_fee__gte", 0),
                            ("facilitator_fee__gte", 0),
                            ("processing_fee__gte", 0),
                        ),
                        name="donation_fees_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="NightlyRate",
            fields=timestamps()
            + [
                uuid_pk(),
                ("location_id", models.PositiveBigIntegerField(db_index=True)),
                ("charity_id", models.PositiveBigIntegerField(db_index=True)),
                ("rate", models.DecimalField(decimal_places=2, max_digits=10)),
                ("effective_date", models.DateField()),
                ("end_date", models.DateField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, default="")),
            ],
            options={
                "ordering": ["location_id", "-effective_date"],
                "indexes": [
                    models.Index(
                        fields=["charity_id", "effective_date"],
                        name="donations_n_charity_9e5b12_idx",
                    )
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("rate__gt", 0)),
                        name="nightly_rate_positive",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="SituationRef",
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
                ("situation_id", models.PositiveBigIntegerField(unique=True)),
                ("charity_id", models.PositiveBigIntegerField(db_index=True)),
                (
                    "published_at",
                    models.DateTimeField(default=django.utils.timezone.now),
                ),
            ],
            options={
                "ordering": ["situation_id"],
            },
        ),
        migrations.CreateModel(
            name="SituationFunding",
            fields=timestamps()
            + [
                uuid_pk(),
                ("situation_id", models.PositiveBigIntegerField(db_index=True)),
                ("charity_id", models.PositiveBigIntegerField(db_index=True)),
                (
                    "amount_allocated",
                    models.DecimalField(decimal_places=2, max_digits=15),
                ),
                ("nights_allocated", models.PositiveIntegerField()),
                ("nights_used", models.PositiveIntegerField(default=0)),
                (
                    "allocated_at",
                    models.DateTimeField(default=django.utils.timezone.now),
                ),
                ("allocated_by", models.CharField(blank=True, max_length=255, null=True)),
                ("usage_explanation", models.TextField(blank=True, default="")),
                ("deallocated_at", models.DateTimeField(blank=True, null=True)),
                (
                    "donation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="fundings",
                        to="donations.donation",
                    ),
                ),
                ("ledger_transaction", ledger_link()),
                ("deallocation_transaction", ledger_link()),
            ],
            options={
                "ordering": ["allocated_at"],
                "indexes": [
                    models.Index(
                        fields=["donation", "deallocated_at"],
                        name="donations_s_donatio_7c2d41_idx",
                    )
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            ("nights_used__lte", models.F("nights_allocated"))
                        ),
                        name="funding_used_within_allocated",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("nights_allocated__gt", 0)),
                        name="funding_nights_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("amount_allocated__gt", 0)),
                        name="funding_amount_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="LedgerPosting",
            fields=timestamps()
            + [
                uuid_pk(),
                (
                    "operation",
                    models.CharField(
                        choices=[("donation_received", "Donation Received")],
                        default="donation_received",
                        max_length=50,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("posted", "Posted"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("attempts", models.PositiveSmallIntegerField(default=0)),
                ("last_error", models.TextField(blank=True, null=True)),
                ("last_attempt_at", models.DateTimeField(blank=True, null=True)),
                ("posted_at", models.DateTimeField(blank=True, null=True)),
                ("actor", models.CharField(blank=True, max_length=255, null=True)),
                (
                    "donation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="ledger_postings",
                        to="donations.donation",
                    ),
                ),
                ("ledger_transaction", ledger_link()),
            ],
            options={
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "attempts"],
                        name="donations_l_status_b4f8a3_idx",
                    )
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("donation", "operation"),
                        name="ledger_posting_unique_operation",
                    )
                ],
            },
        ),
    ]
