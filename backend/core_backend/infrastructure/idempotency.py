"""
Idempotency guard for externally triggered mutations.

A caller-supplied key is recorded together with the outcome of the first
successful execution, inside the same database transaction as the effect.
Replays within the retention window return the recorded outcome; a crash
before commit leaves no record, so a retry simply runs again.
"""

import logging
from typing import Any, Callable, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from core_backend.config import engine_settings
from core_backend.exceptions import ValidationError
from core_backend.models import IdempotencyRecord

logger = logging.getLogger(__name__)

MAX_KEY_LENGTH = 255


class IdempotencyGuard:
    """Deduplicates operations by (scope, key)."""

    @staticmethod
    def _validate_key(key: str) -> str:
        key = key.strip()
        if not key:
            raise ValidationError("Idempotency key must not be blank")
        if len(key) > MAX_KEY_LENGTH:
            raise ValidationError(f"Idempotency key longer than {MAX_KEY_LENGTH} characters")
        return key

    @classmethod
    def execute(
        cls,
        scope: str,
        key: Optional[str],
        operation: Callable[[], Any],
        encode: Callable[[Any], Any],
        decode: Callable[[Any], Any],
        actor_id: str = "",
    ) -> Any:
        """
        Run ``operation`` at most once per (scope, key).

        ``encode`` turns the operation result into JSON for the record and
        ``decode`` rebuilds a result from it on replay. With no key the
        operation just runs.
        """
        if key is None:
            return operation()

        key = cls._validate_key(key)

        cached = IdempotencyRecord.objects.live(scope, key)
        if cached is not None:
            logger.info(f"Idempotent replay of {scope} for key {key}")
            return decode(cached.outcome)

        try:
            with transaction.atomic():
                result = operation()
                # An expired record for this key would block the insert below
                IdempotencyRecord.objects.filter(
                    scope=scope, key=key, expires_at__lte=timezone.now()
                ).delete()
                IdempotencyRecord.objects.create(
                    scope=scope,
                    key=key,
                    outcome=encode(result),
                    actor_id=actor_id or "",
                    expires_at=IdempotencyRecord.expiry_from_now(
                        engine_settings.idempotency_ttl_seconds
                    ),
                )
        except IntegrityError:
            # A concurrent call with the same key committed first; our effects
            # were rolled back with the outer atomic block.
            cached = IdempotencyRecord.objects.live(scope, key)
            if cached is None:
                raise
            logger.info(f"Concurrent duplicate of {scope} for key {key}; returning first outcome")
            return decode(cached.outcome)

        return result


idempotency_guard = IdempotencyGuard()
