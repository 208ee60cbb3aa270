"""
Human-facing reference numbers for orders, kitchen tickets and POS
transactions.

Order and transaction numbers carry a random part and are backed by a unique
column; ``create_with_reference`` retries the insert on the rare collision.
Ticket numbers are derived from the order number, station and round, so the
same ticket always gets the same number.
"""

import hashlib
import logging
import secrets
import string
import time

from django.db import IntegrityError, transaction
from django.utils import timezone

logger = logging.getLogger(__name__)

BASE36_ALPHABET = string.digits + string.ascii_uppercase
MAX_REFERENCE_ATTEMPTS = 5
STATION_LABEL_LENGTH = 32


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 encoding requires a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def random_base36(length: int) -> str:
    return "".join(secrets.choice(BASE36_ALPHABET) for _ in range(length))


def generate_order_number() -> str:
    """
    ``ORD-<millis in base36>-<5 random>``, e.g. ``ORD-LZ3K9Q1A-7XK2P``.
    """
    timestamp = to_base36(int(time.time() * 1000))
    return f"ORD-{timestamp}-{random_base36(5)}"


def generate_transaction_number() -> str:
    """``TXN<yyyymmdd>-<6 random>``, dated in the active timezone."""
    today = timezone.localdate().strftime("%Y%m%d")
    return f"TXN{today}-{random_base36(6)}"


def kitchen_ticket_number(order_number: str, station_id: str, round_number: int) -> str:
    """
    ``KOT-<order>-<STATION>`` for the first round, with ``-R<n>`` appended
    for amendment rounds.

    Station ids that are not short lower-case ``[a-z0-9_]`` words are
    upper-cased, sanitized and followed by a hash of the raw id, so
    ``grill-1`` and ``grill_1`` (or ``Bar`` and ``bar``) never share a number.
    """
    station = "".join(c if c.isalnum() else "_" for c in station_id.upper())
    if station.lower() != station_id or len(station) > STATION_LABEL_LENGTH:
        digest = hashlib.sha1(station_id.encode("utf-8")).hexdigest()[:8]
        station = f"{station[:STATION_LABEL_LENGTH]}-{digest}"
    number = f"KOT-{order_number}-{station}"
    if round_number > 1:
        number += f"-R{round_number}"
    return number


def create_with_reference(model, field: str, generator, **fields):
    """
    Insert a row whose ``field`` is a generated unique reference, retrying
    with a fresh reference if another writer took the same one.
    """
    for attempt in range(MAX_REFERENCE_ATTEMPTS):
        reference = generator()
        try:
            with transaction.atomic():
                return model._default_manager.create(**{field: reference}, **fields)
        except IntegrityError:
            if not model._default_manager.filter(**{field: reference}).exists():
                raise
            logger.warning(f"{model.__name__}.{field} collision on {reference}, retrying")

    raise IntegrityError(
        f"Failed to generate a unique {model.__name__}.{field} after {MAX_REFERENCE_ATTEMPTS} attempts"
    )
