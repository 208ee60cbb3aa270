import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="IdempotencyRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("scope", models.CharField(max_length=100)),
                ("key", models.CharField(max_length=255)),
                ("outcome", models.JSONField(default=dict)),
                ("actor_id", models.CharField(blank=True, default="", max_length=100)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("expires_at", models.DateTimeField()),
            ],
            options={
                "db_table": "idempotency_records",
                "indexes": [models.Index(fields=["expires_at"], name="idempotency_expires_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("scope", "key"), name="uniq_idempotency_scope_key"),
                ],
            },
        ),
    ]
