"""
Idempotency Guard Tests

The outcome of a keyed operation is recorded in the same transaction as its
effect: replays return the first outcome, and a crash before commit leaves
nothing behind so a retry simply runs again.
"""
import pytest
from datetime import timedelta
from unittest.mock import patch

from django.utils import timezone

from core_backend.exceptions import ValidationError
from core_backend.infrastructure.idempotency import idempotency_guard
from core_backend.models import IdempotencyRecord
from orders.models import Order


def _counter_operation(calls):
    def operation():
        calls.append(1)
        return {"call": len(calls)}
    return operation


def _execute(scope, key, operation):
    return idempotency_guard.execute(
        scope=scope,
        key=key,
        operation=operation,
        encode=lambda result: result,
        decode=lambda outcome: outcome,
        actor_id="tester",
    )


@pytest.mark.django_db
class TestIdempotencyGuard:
    """Test (scope, key) deduplication."""

    def test_without_key_operation_always_runs(self):
        calls = []
        _execute("test.op", None, _counter_operation(calls))
        _execute("test.op", None, _counter_operation(calls))

        assert len(calls) == 2
        assert IdempotencyRecord.objects.count() == 0

    def test_same_key_replays_first_outcome(self):
        calls = []
        first = _execute("test.op", "key-1", _counter_operation(calls))
        second = _execute("test.op", "key-1", _counter_operation(calls))

        assert first == second == {"call": 1}
        assert len(calls) == 1
        record = IdempotencyRecord.objects.get(scope="test.op", key="key-1")
        assert record.actor_id == "tester"
        assert record.expires_at > timezone.now()

    def test_same_key_in_other_scope_runs_again(self):
        calls = []
        _execute("test.op:A", "key-1", _counter_operation(calls))
        _execute("test.op:B", "key-1", _counter_operation(calls))

        assert len(calls) == 2

    def test_expired_record_does_not_replay(self):
        calls = []
        _execute("test.op", "key-1", _counter_operation(calls))
        IdempotencyRecord.objects.update(expires_at=timezone.now() - timedelta(seconds=1))

        result = _execute("test.op", "key-1", _counter_operation(calls))

        assert result == {"call": 2}
        assert IdempotencyRecord.objects.filter(scope="test.op", key="key-1").count() == 1

    @pytest.mark.parametrize("key", ["", "   ", "k" * 256])
    def test_invalid_keys_are_rejected(self, key):
        with pytest.raises(ValidationError):
            _execute("test.op", key, _counter_operation([]))

    def test_failed_operation_records_nothing(self):
        def operation():
            raise RuntimeError("kitchen printer on fire")

        with pytest.raises(RuntimeError):
            _execute("test.op", "key-1", operation)

        assert not IdempotencyRecord.objects.exists()


@pytest.mark.django_db
class TestCrashMidCommit:
    """
    CRITICAL: An effect and its idempotency record commit together.

    Scenario:
    - Confirm an order with a key; the record insert fails after tickets
      were written
    - Expected: nothing persists; retrying with the same key produces the
      same ticket set as one clean call, and a further retry replays it
    """

    def test_retry_after_crash_yields_single_ticket_set(self, make_order, actor):
        from kds.models import KitchenTicket
        from orders.services import OrderService

        order = make_order([("burger", 1), ("fries", 2)])
        real_create = IdempotencyRecord.objects.create
        failures = []

        def crash_once(**kwargs):
            if not failures:
                failures.append(kwargs["scope"])
                raise RuntimeError("process killed")
            return real_create(**kwargs)

        with patch.object(IdempotencyRecord.objects, "create", side_effect=crash_once):
            with pytest.raises(RuntimeError):
                OrderService.confirm(order.order_number, actor, idempotency_key="confirm-1")

            stored = Order.objects.get(pk=order.pk)
            assert stored.status == Order.OrderStatus.DRAFT
            assert not KitchenTicket.objects.filter(order=order).exists()

            confirmed = OrderService.confirm(order.order_number, actor, idempotency_key="confirm-1")
            replayed = OrderService.confirm(order.order_number, actor, idempotency_key="confirm-1")

        assert failures == [f"orders.confirm:{order.order_number}"]
        assert confirmed.status == Order.OrderStatus.CONFIRMED
        assert replayed.version == confirmed.version
        tickets = KitchenTicket.objects.filter(order=order)
        assert sorted(t.station_id for t in tickets) == ["fryer", "grill"]
        assert IdempotencyRecord.objects.filter(key="confirm-1").count() == 1
