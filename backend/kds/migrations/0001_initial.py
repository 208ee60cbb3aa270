import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="KitchenTicket",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("version", models.PositiveIntegerField(default=1)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now, editable=False)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("ticket_number", models.CharField(max_length=80, unique=True)),
                ("station_id", models.CharField(max_length=50)),
                ("round", models.PositiveIntegerField(default=1)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("queued", "Queued"),
                            ("in_progress", "In Progress"),
                            ("completed", "Completed"),
                            ("voided", "Voided"),
                        ],
                        default="queued",
                        max_length=20,
                    ),
                ),
                (
                    "priority",
                    models.CharField(
                        choices=[("normal", "Normal"), ("rush", "Rush")],
                        default="normal",
                        max_length=10,
                    ),
                ),
                ("estimated_minutes", models.PositiveIntegerField(default=15)),
                ("assigned_to", models.CharField(blank=True, default="", max_length=100)),
                ("started_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("voided_at", models.DateTimeField(blank=True, null=True)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="tickets",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "ticket_number"],
                "indexes": [
                    models.Index(fields=["station_id", "status"], name="ticket_station_status_idx"),
                    models.Index(fields=["status", "completed_at"], name="ticket_status_completed_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("order", "station_id", "round"), name="uniq_ticket_order_station_round"
                    ),
                ],
            },
        ),
    ]
