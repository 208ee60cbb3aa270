from datetime import timedelta
from django.db import models
from django.utils import timezone


class VersionedModel(models.Model):
    """
    Base for every aggregate root. ``version`` is bumped by each committed
    mutation; the entity store uses it for compare-and-swap, and the event
    publisher ships it so consumers can drop stale notifications.
    """

    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(default=timezone.now, editable=False)
    updated_at = models.DateTimeField(default=timezone.now)

    # Stable name used in notifications and error messages
    entity_type = None

    class Meta:
        abstract = True

    @property
    def entity_id(self):
        return str(self.pk)


class IdempotencyRecordManager(models.Manager):
    def live(self, scope, key):
        return self.filter(scope=scope, key=key, expires_at__gt=timezone.now()).first()

    def purge_expired(self):
        deleted, _ = self.filter(expires_at__lte=timezone.now()).delete()
        return deleted


class IdempotencyRecord(models.Model):
    """
    Outcome of an externally triggered operation, keyed by the caller's
    idempotency key within an operation scope (e.g. ``kds.derive_tickets``).
    Written in the same database transaction as the effect it records.
    """

    scope = models.CharField(max_length=100)
    key = models.CharField(max_length=255)
    outcome = models.JSONField(default=dict)
    actor_id = models.CharField(max_length=100, blank=True, default="")
    created_at = models.DateTimeField(default=timezone.now)
    expires_at = models.DateTimeField()

    objects = IdempotencyRecordManager()

    class Meta:
        db_table = "idempotency_records"
        constraints = [
            models.UniqueConstraint(fields=["scope", "key"], name="uniq_idempotency_scope_key"),
        ]
        indexes = [
            models.Index(fields=["expires_at"], name="idempotency_expires_idx"),
        ]

    def __str__(self):
        return f"{self.scope}:{self.key}"

    @classmethod
    def expiry_from_now(cls, ttl_seconds):
        return timezone.now() + timedelta(seconds=ttl_seconds)
