import django.db.models.deletion
import django.utils.timezone
import uuid
from decimal import Decimal
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="POSSession",
            fields=[
                ("version", models.PositiveIntegerField(default=1)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now, editable=False)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("terminal_id", models.CharField(max_length=50)),
                ("operator_id", models.CharField(max_length=100)),
                (
                    "status",
                    models.CharField(
                        choices=[("open", "Open"), ("closed", "Closed")], default="open", max_length=10
                    ),
                ),
                ("currency", models.CharField(default="INR", max_length=3)),
                ("opening_cash", models.DecimalField(decimal_places=3, default=Decimal("0"), max_digits=12)),
                ("closing_cash", models.DecimalField(blank=True, decimal_places=3, max_digits=12, null=True)),
                (
                    "expected_cash",
                    models.DecimalField(
                        blank=True,
                        decimal_places=3,
                        help_text="Opening cash plus captured cash minus voided captured cash.",
                        max_digits=12,
                        null=True,
                    ),
                ),
                (
                    "cash_variance",
                    models.DecimalField(
                        blank=True,
                        decimal_places=3,
                        help_text="Closing cash minus expected cash. Informational only.",
                        max_digits=12,
                        null=True,
                    ),
                ),
                ("total_sales", models.DecimalField(decimal_places=3, default=Decimal("0"), max_digits=12)),
                ("total_transactions", models.PositiveIntegerField(default=0)),
                ("notes", models.TextField(blank=True, default="")),
                ("opened_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("closed_at", models.DateTimeField(blank=True, null=True)),
                ("closed_by", models.CharField(blank=True, default="", max_length=100)),
            ],
            options={
                "verbose_name": "POS Session",
                "verbose_name_plural": "POS Sessions",
                "ordering": ["-opened_at"],
                "indexes": [
                    models.Index(fields=["terminal_id", "status"], name="session_terminal_status_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "open")),
                        fields=("terminal_id",),
                        name="uniq_open_session_per_terminal",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="POSTransaction",
            fields=[
                ("version", models.PositiveIntegerField(default=1)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now, editable=False)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("transaction_number", models.CharField(max_length=30, unique=True)),
                (
                    "status",
                    models.CharField(
                        choices=[("open", "Open"), ("captured", "Captured"), ("voided", "Voided")],
                        default="open",
                        max_length=10,
                    ),
                ),
                (
                    "payment_method",
                    models.CharField(
                        blank=True,
                        choices=[("cash", "Cash"), ("card", "Card"), ("upi", "UPI")],
                        default="",
                        max_length=10,
                    ),
                ),
                ("currency", models.CharField(default="INR", max_length=3)),
                (
                    "discount",
                    models.DecimalField(
                        decimal_places=3,
                        default=Decimal("0"),
                        help_text="Transaction-level discount on top of the orders' own totals.",
                        max_digits=12,
                    ),
                ),
                ("total", models.DecimalField(decimal_places=3, default=Decimal("0"), max_digits=12)),
                ("amount_tendered", models.DecimalField(blank=True, decimal_places=3, max_digits=12, null=True)),
                ("change_amount", models.DecimalField(decimal_places=3, default=Decimal("0"), max_digits=12)),
                ("opened_by", models.CharField(blank=True, default="", max_length=100)),
                ("captured_by", models.CharField(blank=True, default="", max_length=100)),
                ("voided_by", models.CharField(blank=True, default="", max_length=100)),
                ("void_reason", models.CharField(blank=True, default="", max_length=255)),
                ("captured_at", models.DateTimeField(blank=True, null=True)),
                ("voided_at", models.DateTimeField(blank=True, null=True)),
                (
                    "session",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="payments.possession",
                    ),
                ),
            ],
            options={
                "verbose_name": "POS Transaction",
                "verbose_name_plural": "POS Transactions",
                "ordering": ["-created_at", "transaction_number"],
                "indexes": [
                    models.Index(fields=["session", "status"], name="txn_session_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SettlementLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=3,
                        help_text="Order total when attached, refreshed at capture.",
                        max_digits=12,
                    ),
                ),
                ("status_before_capture", models.CharField(blank=True, default="", max_length=10)),
                ("attached_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("released_at", models.DateTimeField(blank=True, null=True)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="settlement_lines",
                        to="orders.order",
                    ),
                ),
                (
                    "transaction",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="lines",
                        to="payments.postransaction",
                    ),
                ),
            ],
            options={
                "ordering": ["attached_at", "id"],
                "constraints": [
                    models.UniqueConstraint(fields=("transaction", "order"), name="uniq_settlement_line"),
                ],
            },
        ),
    ]
