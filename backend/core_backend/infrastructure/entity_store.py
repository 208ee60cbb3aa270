"""
Versioned entity store.

Every aggregate (Order, KitchenTicket, POSSession, POSTransaction) is a row
with a ``version`` column. Mutation is an optimistic compare-and-swap::

    UPDATE ... SET version = version + 1, ... WHERE pk = %s AND version = %s

Zero affected rows means someone else committed first: ``VersionConflict``.
``run_with_retry`` is the loop every service wraps around read → compute →
commit; a conflict re-runs the read so fan-in state is always redone
together with the write it gates.
"""

import logging
import random
import time
from typing import Callable, TypeVar

from django.db import OperationalError, transaction
from django.db.models import F
from django.utils import timezone

from core_backend.config import engine_settings
from core_backend.exceptions import Conflict, NotFound, StoreUnavailable, VersionConflict

logger = logging.getLogger(__name__)

S = TypeVar("S")
T = TypeVar("T")


def _entity_type(model):
    return getattr(model, "entity_type", None) or model.__name__


class EntityStore:
    """Read and compare-and-swap access to versioned aggregates."""

    @staticmethod
    def get(model, **lookup):
        """
        Fetch one aggregate by its identity lookup (``pk=...``,
        ``order_number=...``). Raises NotFound instead of DoesNotExist.
        """
        try:
            return model._default_manager.get(**lookup)
        except model.DoesNotExist:
            identity = next(iter(lookup.values()), "?")
            raise NotFound(_entity_type(model), identity)
        except OperationalError as e:
            raise StoreUnavailable(f"Store read failed for {_entity_type(model)}: {e}")

    @staticmethod
    def commit(instance, expected_version: int, **changes):
        """
        Apply ``changes`` to ``instance`` iff its stored version still equals
        ``expected_version``. Returns the instance with the new field values
        and version; raises VersionConflict otherwise.
        """
        model = type(instance)
        now = timezone.now()
        changes.setdefault("updated_at", now)

        try:
            rows = model._default_manager.filter(
                pk=instance.pk, version=expected_version
            ).update(version=F("version") + 1, **changes)
        except OperationalError as e:
            raise StoreUnavailable(f"Store write failed for {_entity_type(model)}: {e}")

        if rows == 0:
            raise VersionConflict(_entity_type(model), instance.pk, expected_version)

        for field, value in changes.items():
            setattr(instance, field, value)
        instance.version = expected_version + 1
        return instance

    @staticmethod
    def create(model, **fields):
        try:
            return model._default_manager.create(**fields)
        except OperationalError as e:
            raise StoreUnavailable(f"Store insert failed for {_entity_type(model)}: {e}")


entity_store = EntityStore()


def backoff_delay(attempt: int) -> float:
    """Exponential backoff with full jitter, capped."""
    base = engine_settings.cas_base_delay_seconds
    cap = engine_settings.cas_max_delay_seconds
    return random.uniform(0, min(cap, base * (2 ** attempt)))


def run_with_retry(
    description: str,
    read: Callable[[], S],
    apply: Callable[[S], T],
    max_attempts: int = None,
) -> T:
    """
    Optimistic read → apply loop.

    Each attempt calls ``read()`` for a fresh snapshot (including any fan-in
    state the write depends on), then ``apply(snapshot)`` inside an atomic
    block. ``apply`` commits through ``EntityStore.commit``; a
    VersionConflict rolls back that attempt's partial writes and the loop
    starts over from ``read``. After ``max_attempts`` the conflict surfaces
    as ``Conflict``.
    """
    attempts = max_attempts or engine_settings.cas_max_attempts
    last_conflict = None

    for attempt in range(attempts):
        try:
            snapshot = read()
            with transaction.atomic():
                return apply(snapshot)
        except VersionConflict as e:
            last_conflict = e
            if attempt + 1 < attempts:
                delay = backoff_delay(attempt)
                logger.warning(
                    f"{description}: version conflict on attempt {attempt + 1}/{attempts} "
                    f"({e}); retrying in {delay:.3f}s"
                )
                time.sleep(delay)
        except OperationalError as e:
            raise StoreUnavailable(f"{description}: store unavailable ({e})")

    logger.error(f"{description}: giving up after {attempts} conflicting attempts")
    raise Conflict(
        f"{description} could not be applied due to concurrent updates; try again",
        {"attempts": attempts, "last_conflict": str(last_conflict)},
    )
