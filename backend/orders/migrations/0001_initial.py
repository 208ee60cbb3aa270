import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("version", models.PositiveIntegerField(default=1)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now, editable=False)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("order_number", models.CharField(max_length=40, unique=True)),
                (
                    "order_type",
                    models.CharField(
                        choices=[("dine_in", "Dine In"), ("takeaway", "Takeaway"), ("delivery", "Delivery")],
                        default="dine_in",
                        max_length=10,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Draft"),
                            ("confirmed", "Confirmed"),
                            ("preparing", "Preparing"),
                            ("ready", "Ready"),
                            ("served", "Served"),
                            ("settled", "Settled"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="draft",
                        max_length=10,
                    ),
                ),
                ("table_ref", models.CharField(blank=True, default="", max_length=50)),
                ("customer_name", models.CharField(blank=True, default="", max_length=150)),
                ("customer_phone", models.CharField(blank=True, default="", max_length=20)),
                ("special_instructions", models.TextField(blank=True, default="")),
                ("currency", models.CharField(default="INR", max_length=3)),
                ("subtotal", models.DecimalField(decimal_places=3, default=Decimal("0"), max_digits=12)),
                ("tax", models.DecimalField(decimal_places=3, default=Decimal("0"), max_digits=12)),
                ("discount", models.DecimalField(decimal_places=3, default=Decimal("0"), max_digits=12)),
                ("total", models.DecimalField(decimal_places=3, default=Decimal("0"), max_digits=12)),
                ("amendment_round", models.PositiveIntegerField(default=1)),
                ("created_by", models.CharField(blank=True, default="", max_length=100)),
                ("last_actor", models.CharField(blank=True, default="", max_length=100)),
                ("cancel_reason", models.CharField(blank=True, default="", max_length=255)),
                ("confirmed_at", models.DateTimeField(blank=True, null=True)),
                ("preparing_at", models.DateTimeField(blank=True, null=True)),
                ("ready_at", models.DateTimeField(blank=True, null=True)),
                ("served_at", models.DateTimeField(blank=True, null=True)),
                ("settled_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "verbose_name": "Order",
                "verbose_name_plural": "Orders",
                "ordering": ["-created_at", "order_number"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="order_status_created_idx"),
                    models.Index(fields=["table_ref", "status"], name="order_table_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("line_number", models.PositiveIntegerField()),
                ("catalog_item_id", models.CharField(max_length=100)),
                ("name", models.CharField(max_length=200)),
                (
                    "unit_price",
                    models.DecimalField(
                        decimal_places=3,
                        help_text="Catalog price at the time the line was taken.",
                        max_digits=12,
                    ),
                ),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("station_id", models.CharField(max_length=50)),
                ("prep_sequence", models.PositiveIntegerField(default=100)),
                ("prep_minutes", models.PositiveIntegerField(default=15)),
                ("special_instructions", models.TextField(blank=True, default="")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("queued", "Queued"),
                            ("in_progress", "In Progress"),
                            ("completed", "Completed"),
                            ("voided", "Voided"),
                        ],
                        default="pending",
                        max_length=12,
                    ),
                ),
                ("added_in_round", models.PositiveIntegerField(default=1)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now, editable=False)),
                ("voided_at", models.DateTimeField(blank=True, null=True)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "verbose_name": "Order Item",
                "verbose_name_plural": "Order Items",
                "ordering": ["order", "line_number"],
                "indexes": [models.Index(fields=["order", "status"], name="item_order_status_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("order", "line_number"), name="uniq_order_line_number"),
                ],
            },
        ),
    ]
