"""
Background Job Tests

The hourly Celery task and the management command that purge expired
idempotency records, plus the demo seeding command.
"""
import pytest
from datetime import timedelta
from io import StringIO

from django.core.management import call_command
from django.utils import timezone

from core_backend.infrastructure.tasks import purge_expired_idempotency_records
from core_backend.models import IdempotencyRecord


def _record(key, expires_in):
    return IdempotencyRecord.objects.create(
        scope="orders.confirm:ORD-1",
        key=key,
        outcome={"order_number": "ORD-1"},
        expires_at=timezone.now() + timedelta(seconds=expires_in),
    )


@pytest.mark.django_db
class TestPurgeExpiredIdempotencyRecords:
    """Test the Celery beat task."""

    def test_deletes_only_expired_records(self):
        _record("old", -60)
        _record("older", -3600)
        _record("live", 3600)

        deleted = purge_expired_idempotency_records()

        assert deleted == 2
        assert list(IdempotencyRecord.objects.values_list("key", flat=True)) == ["live"]

    def test_runs_eagerly_through_celery(self):
        _record("old", -60)

        result = purge_expired_idempotency_records.apply()

        assert result.successful()
        assert result.get() == 1

    def test_task_is_scheduled(self, settings):
        schedule = settings.CELERY_BEAT_SCHEDULE["purge-expired-idempotency-records"]
        assert schedule["task"] == "core_backend.infrastructure.tasks.purge_expired_idempotency_records"


@pytest.mark.django_db
class TestPurgeCommand:
    """Test manage.py purge_idempotency_records."""

    def test_dry_run_reports_without_deleting(self):
        _record("old", -60)
        out = StringIO()

        call_command("purge_idempotency_records", "--dry-run", stdout=out)

        assert "1 expired idempotency record(s) would be deleted" in out.getvalue()
        assert IdempotencyRecord.objects.count() == 1

    def test_purge_deletes(self):
        _record("old", -60)
        _record("live", 60)
        out = StringIO()

        call_command("purge_idempotency_records", stdout=out)

        assert "Deleted 1 expired" in out.getvalue()
        assert IdempotencyRecord.objects.count() == 1


@pytest.mark.django_db
class TestSeedDemoCommand:
    """Test manage.py seed_demo against the test catalog."""

    def test_settles_one_order_and_closes_session(self, settings):
        from orders.models import Order
        from payments.models import POSSession

        settings.ORDER_ENGINE = {
            **settings.ORDER_ENGINE,
            "CATALOG": {
                **settings.ORDER_ENGINE["CATALOG"],
                "paneer-tikka": {"name": "Paneer Tikka", "price": "260.00", "station": "tandoor"},
                "masala-chai": {"name": "Masala Chai", "price": "40.00", "station": "beverages"},
            },
        }
        out = StringIO()

        call_command("seed_demo", "--terminal", "DEMO-9", stdout=out)

        order = Order.objects.get()
        assert order.status == Order.OrderStatus.SETTLED
        session = POSSession.objects.get(terminal_id="DEMO-9")
        assert session.status == POSSession.SessionStatus.CLOSED
        assert session.cash_variance == 0
        assert "Settled" in out.getvalue()
