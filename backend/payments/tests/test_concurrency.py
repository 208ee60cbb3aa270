"""
Session close racing the other settlement writes.

Attach, capture and void read the session as open before they write; close
reads the session's open transactions before it voids them. Each test
forces the interleaving by running the competing operation between one
side's read and its write.
"""
import pytest
from decimal import Decimal
from unittest.mock import patch

from core_backend.exceptions import InvalidTransition
from orders.models import Order
from payments.models import POSSession, POSTransaction
from payments.services import SettlementService


def _closing_during_read(original_read, session_id, actor):
    """Wrap a read so the first call closes the session before returning its stale view."""
    calls = []

    def interleaving_read(*args):
        snapshot = original_read(*args)
        calls.append(args)
        if len(calls) == 1:
            SettlementService.close_session(session_id, Decimal("1000.00"), actor)
        return snapshot

    return interleaving_read, calls


@pytest.mark.django_db
class TestCloseBeforeWrite:
    """A close that commits first leaves nothing behind in the closed session"""

    def test_attach_after_close_is_rejected(self, served_order, pos_session, cashier):
        order = served_order()
        read, calls = _closing_during_read(SettlementService._read_attach, pos_session.id, "manager-1")

        with patch.object(SettlementService, "_read_attach", side_effect=read):
            with pytest.raises(InvalidTransition):
                SettlementService.attach(pos_session.id, [order.order_number], cashier)

        # stale read, then the re-read that sees the session closed
        assert len(calls) == 2
        session = SettlementService.get_session(pos_session.id)
        assert session.status == POSSession.SessionStatus.CLOSED
        assert not POSTransaction.objects.filter(session=session).exists()
        order = Order.objects.get(pk=order.pk)
        assert order.transaction_id is None
        assert order.status == Order.OrderStatus.SERVED

    def test_void_after_close_is_rejected(self, served_order, pos_session, cashier):
        order = served_order()
        txn = SettlementService.attach(pos_session.id, [order.order_number], cashier)
        SettlementService.capture(txn.id, Decimal("357.00"), "cash", cashier)
        read, calls = _closing_during_read(SettlementService._read_settlement, pos_session.id, "manager-1")

        with patch.object(SettlementService, "_read_settlement", side_effect=read):
            with pytest.raises(InvalidTransition):
                SettlementService.void(txn.id, cashier, reason="late refund")

        assert len(calls) == 2
        txn = SettlementService.get_transaction(txn.id)
        assert txn.status == POSTransaction.TransactionStatus.CAPTURED
        assert Order.objects.get(pk=order.pk).status == Order.OrderStatus.SETTLED
        session = SettlementService.get_session(pos_session.id)
        assert session.status == POSSession.SessionStatus.CLOSED
        assert session.expected_cash == Decimal("1357.00")

    def test_capture_after_close_is_rejected(self, served_order, pos_session, cashier):
        order = served_order()
        txn = SettlementService.attach(pos_session.id, [order.order_number], cashier)
        read, calls = _closing_during_read(SettlementService._read_settlement, pos_session.id, "manager-1")

        with patch.object(SettlementService, "_read_settlement", side_effect=read):
            with pytest.raises(InvalidTransition):
                SettlementService.capture(txn.id, Decimal("357.00"), "cash", cashier)

        assert len(calls) == 2
        # close voided the transaction it found open
        txn = SettlementService.get_transaction(txn.id)
        assert txn.status == POSTransaction.TransactionStatus.VOIDED
        assert txn.captured_at is None
        order = Order.objects.get(pk=order.pk)
        assert order.status == Order.OrderStatus.SERVED
        assert order.transaction_id is None
        assert SettlementService.get_session(pos_session.id).total_sales == Decimal("0.00")


@pytest.mark.django_db
class TestWriteBeforeClose:
    """A write that commits first makes the close retry and see it"""

    def test_close_voids_transaction_opened_after_its_read(self, served_order, pos_session, cashier):
        first = served_order()
        second = served_order()
        first_txn = SettlementService.attach(pos_session.id, [first.order_number], cashier)
        original_read = SettlementService._read_close
        late = []

        def interleaving_read(session_id):
            snapshot = original_read(session_id)
            if not late:
                # A second ticket is rung up while the close holds a stale view
                late.append(SettlementService.attach(session_id, [second.order_number], cashier))
            return snapshot

        with patch.object(SettlementService, "_read_close", side_effect=interleaving_read):
            session = SettlementService.close_session(pos_session.id, Decimal("1000.00"), "manager-1")

        assert session.status == POSSession.SessionStatus.CLOSED
        assert not POSTransaction.objects.filter(
            session=session, status=POSTransaction.TransactionStatus.OPEN
        ).exists()
        for txn in (first_txn, late[0]):
            assert SettlementService.get_transaction(txn.id).status == POSTransaction.TransactionStatus.VOIDED
        for order in (first, second):
            assert Order.objects.get(pk=order.pk).transaction_id is None

    def test_close_counts_cash_captured_after_its_read(self, served_order, pos_session, cashier):
        order = served_order()
        txn = SettlementService.attach(pos_session.id, [order.order_number], cashier)
        original_read = SettlementService._read_close
        captured = []

        def interleaving_read(session_id):
            snapshot = original_read(session_id)
            if not captured:
                captured.append(SettlementService.capture(txn.id, Decimal("400.00"), "cash", cashier))
            return snapshot

        with patch.object(SettlementService, "_read_close", side_effect=interleaving_read):
            session = SettlementService.close_session(pos_session.id, Decimal("1357.00"), "manager-1")

        assert SettlementService.get_transaction(txn.id).status == POSTransaction.TransactionStatus.CAPTURED
        assert Order.objects.get(pk=order.pk).status == Order.OrderStatus.SETTLED
        assert session.expected_cash == Decimal("1357.00")
        assert session.cash_variance == Decimal("0.00")
        assert session.total_transactions == 1
