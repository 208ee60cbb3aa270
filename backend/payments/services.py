from decimal import Decimal
from django.db import IntegrityError, transaction
from django.utils import timezone
from typing import Dict, List, Optional, Tuple, Any
import logging

from core_backend.config import engine_settings
from core_backend.exceptions import (
    AlreadySettled,
    AmountMismatch,
    InvalidTransition,
    ValidationError,
)
from core_backend.infrastructure.entity_store import entity_store, run_with_retry
from core_backend.infrastructure.idempotency import idempotency_guard
from core_backend.utils.numbering import create_with_reference, generate_transaction_number
from notifications.services import event_publisher
from orders.models import Order
from orders.services import OrderService
from .models import POSSession, POSTransaction, SettlementLine

# Import the money precision helpers
from .money import format_money, from_minor, quantize, sum_minor, to_decimal, to_minor, within_tolerance

logger = logging.getLogger(__name__)


def _amount(value, field: str, allow_none: bool = False) -> Optional[Decimal]:
    if value is None and allow_none:
        return None
    try:
        amount = to_decimal(value)
    except ValueError as e:
        raise ValidationError(str(e), {field: str(value)})
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative.", {field: str(value)})
    return amount


class SettlementService:
    """
    Settlement of served orders through POS sessions and transactions.

    A transaction collects one or more orders, is captured against a tendered
    amount, and can be voided while its session is open. Every write goes
    through the entity store, so an order can never be bound to two live
    transactions even under concurrent attaches.
    """

    # State transition map for POSTransaction.TransactionStatus
    VALID_TRANSITIONS = {
        POSTransaction.TransactionStatus.OPEN: [
            POSTransaction.TransactionStatus.CAPTURED,
            POSTransaction.TransactionStatus.VOIDED,
        ],
        POSTransaction.TransactionStatus.CAPTURED: [
            POSTransaction.TransactionStatus.VOIDED,
        ],
        POSTransaction.TransactionStatus.VOIDED: [],  # Terminal state
    }

    @staticmethod
    def _validate_transition(txn: POSTransaction, target_status: str) -> None:
        if target_status not in SettlementService.VALID_TRANSITIONS.get(txn.status, []):
            raise InvalidTransition(
                f"Transaction {txn.transaction_number} cannot go from {txn.status} to {target_status}.",
                current_status=txn.status,
                target_status=target_status,
            )

    @staticmethod
    def _require_open_session(session: POSSession) -> None:
        if session.status != POSSession.SessionStatus.OPEN:
            raise InvalidTransition(
                f"Session {session.id} is {session.status}.",
                current_status=session.status,
            )

    @classmethod
    def _hold_open_session(cls, session: POSSession) -> None:
        """
        Require the session open and bump its version in the caller's atomic
        unit. A close that read the session earlier then loses its
        compare-and-swap, and a close that already committed makes the caller
        retry into InvalidTransition.
        """
        cls._require_open_session(session)
        entity_store.commit(session, session.version)

    @staticmethod
    def get_session(session_id) -> POSSession:
        return entity_store.get(POSSession, pk=session_id)

    @staticmethod
    def get_transaction(transaction_id) -> POSTransaction:
        return entity_store.get(POSTransaction, pk=transaction_id)

    @staticmethod
    def _attached_orders(txn: POSTransaction) -> List[Order]:
        return list(Order.objects.filter(transaction_id=txn.pk).order_by("order_number"))

    @classmethod
    def _read_settlement(cls, transaction_id) -> Tuple[POSTransaction, POSSession, List[Order]]:
        txn = entity_store.get(POSTransaction, pk=transaction_id)
        session = entity_store.get(POSSession, pk=txn.session_id)
        return txn, session, cls._attached_orders(txn)

    @classmethod
    def _read_close(cls, session_id):
        """The session and each of its open transactions with their orders."""
        session = entity_store.get(POSSession, pk=session_id)
        open_txns = [
            (txn, cls._attached_orders(txn))
            for txn in session.transactions.filter(status=POSTransaction.TransactionStatus.OPEN)
        ]
        return session, open_txns

    @staticmethod
    def _read_attach(session_id, transaction_id, order_numbers: List[str]):
        session = entity_store.get(POSSession, pk=session_id)
        txn = entity_store.get(POSTransaction, pk=transaction_id) if transaction_id else None
        orders = [entity_store.get(Order, order_number=number) for number in order_numbers]
        return session, txn, orders

    # ------------------------------------------------------------------ #
    # Sessions
    # ------------------------------------------------------------------ #

    @staticmethod
    def open_session(
        terminal_id: str,
        operator_id: str,
        opening_cash=Decimal("0"),
        actor: str = "",
        notes: str = "",
        currency: str = None,
    ) -> POSSession:
        """
        Open a cashier session on a terminal.

        Raises:
            ValidationError: Blank terminal/operator or negative opening cash
            InvalidTransition: The terminal already has an open session
        """
        if not terminal_id or not str(terminal_id).strip():
            raise ValidationError("terminal_id is required.")
        if not operator_id or not str(operator_id).strip():
            raise ValidationError("operator_id is required.")
        currency = (currency or engine_settings.currency).upper()
        opening_cash = quantize(currency, _amount(opening_cash, "opening_cash"))

        if POSSession.objects.filter(terminal_id=terminal_id, status=POSSession.SessionStatus.OPEN).exists():
            raise InvalidTransition(f"Terminal {terminal_id} already has an open session.")

        try:
            with transaction.atomic():
                session = entity_store.create(
                    POSSession,
                    terminal_id=terminal_id,
                    operator_id=operator_id,
                    opening_cash=opening_cash,
                    currency=currency,
                    notes=notes or "",
                )
                event_publisher.entity_changed(session)
        except IntegrityError:
            # Lost the race against another open on the same terminal
            raise InvalidTransition(f"Terminal {terminal_id} already has an open session.")

        logger.info(
            f"Session {session.id} opened on {terminal_id} by {operator_id or actor} "
            f"with {format_money(currency, to_minor(currency, opening_cash))}"
        )
        return session

    @staticmethod
    def _cash_figures(session: POSSession) -> Dict[str, Any]:
        """Session money figures from its transactions, in minor units."""
        currency = session.currency
        txns = list(session.transactions.all())
        captured_cash = [
            t for t in txns
            if t.was_captured and t.payment_method == POSTransaction.PaymentMethod.CASH
        ]

        cash_in = sum_minor(currency, [t.total for t in captured_cash])
        voided_cash = sum_minor(
            currency,
            [t.total for t in captured_cash if t.status == POSTransaction.TransactionStatus.VOIDED],
        )
        captured = [t for t in txns if t.status == POSTransaction.TransactionStatus.CAPTURED]

        by_method = {}
        for method in POSTransaction.PaymentMethod.values:
            method_txns = [t for t in captured if t.payment_method == method]
            by_method[method] = {
                "count": len(method_txns),
                "amount_minor": sum_minor(currency, [t.total for t in method_txns]),
            }

        return {
            "expected_cash_minor": to_minor(currency, session.opening_cash) + cash_in - voided_cash,
            "cash_in_minor": cash_in,
            "voided_cash_minor": voided_cash,
            "total_sales_minor": sum_minor(currency, [t.total for t in captured]),
            "captured_count": len(captured),
            "voided_count": sum(1 for t in txns if t.status == POSTransaction.TransactionStatus.VOIDED),
            "open_count": sum(1 for t in txns if t.status == POSTransaction.TransactionStatus.OPEN),
            "by_method": by_method,
        }

    @classmethod
    def close_session(cls, session_id, closing_cash, actor: str, notes: str = "") -> POSSession:
        """
        Close a session. Transactions still open are voided first. The cash
        variance (counted minus expected) is recorded and logged but never
        blocks the close.

        Raises:
            InvalidTransition: Session already closed
        """
        closing_cash = _amount(closing_cash, "closing_cash")

        def read():
            return cls._read_close(session_id)

        def apply(snapshot):
            session, open_txns = snapshot
            cls._require_open_session(session)
            currency = session.currency

            released = []
            for txn, orders in open_txns:
                released.extend(cls._void_in_transaction(txn, orders, actor, "Session closed"))

            figures = cls._cash_figures(session)
            closing_minor = to_minor(currency, closing_cash)
            variance_minor = closing_minor - figures["expected_cash_minor"]

            entity_store.commit(
                session,
                session.version,
                status=POSSession.SessionStatus.CLOSED,
                closing_cash=from_minor(currency, closing_minor),
                expected_cash=from_minor(currency, figures["expected_cash_minor"]),
                cash_variance=from_minor(currency, variance_minor),
                total_sales=from_minor(currency, figures["total_sales_minor"]),
                total_transactions=figures["captured_count"],
                notes=notes or session.notes,
                closed_at=timezone.now(),
                closed_by=actor or "",
            )

            if variance_minor:
                logger.warning(
                    f"Session {session.id} on {session.terminal_id} closed with cash variance "
                    f"{format_money(currency, variance_minor)} "
                    f"(expected {format_money(currency, figures['expected_cash_minor'])}, "
                    f"counted {format_money(currency, closing_minor)})"
                )
            logger.info(
                f"Session {session.id} closed by {actor}: {figures['captured_count']} transaction(s), "
                f"sales {format_money(currency, figures['total_sales_minor'])}, "
                f"{len(open_txns)} open transaction(s) voided"
            )

            for txn, _orders in open_txns:
                event_publisher.entity_changed(txn)
            for order in released:
                event_publisher.entity_changed(order)
            event_publisher.entity_changed(session)
            return session

        return run_with_retry(f"Close session {session_id}", read, apply)

    @classmethod
    def session_summary(cls, session_id) -> Dict[str, Any]:
        """Totals by payment method plus expected drawer cash so far."""
        session = cls.get_session(session_id)
        currency = session.currency
        figures = cls._cash_figures(session)

        return {
            "session_id": str(session.id),
            "terminal_id": session.terminal_id,
            "operator_id": session.operator_id,
            "status": session.status,
            "currency": currency,
            "opening_cash": str(session.opening_cash),
            "expected_cash": str(from_minor(currency, figures["expected_cash_minor"])),
            "total_sales": str(from_minor(currency, figures["total_sales_minor"])),
            "captured_transactions": figures["captured_count"],
            "voided_transactions": figures["voided_count"],
            "open_transactions": figures["open_count"],
            "by_method": {
                method: {
                    "count": data["count"],
                    "amount": str(from_minor(currency, data["amount_minor"])),
                }
                for method, data in figures["by_method"].items()
            },
        }

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #

    @staticmethod
    def _transaction_total(txn: POSTransaction, discount: Decimal) -> Tuple[Decimal, Decimal]:
        """(gross of attached orders, total after discount), quantized."""
        currency = txn.currency
        gross_minor = sum_minor(currency, Order.objects.filter(transaction_id=txn.pk).values_list("total", flat=True))
        discount_minor = to_minor(currency, discount)
        if discount_minor > gross_minor:
            raise ValidationError(
                f"Discount {discount} exceeds the attached orders' total {from_minor(currency, gross_minor)}.",
                {"discount": str(discount)},
            )
        return from_minor(currency, gross_minor), from_minor(currency, gross_minor - discount_minor)

    @classmethod
    def attach(
        cls,
        session_id,
        order_numbers: List[str],
        actor: str,
        transaction_id=None,
        discount=None,
    ) -> POSTransaction:
        """
        Attach orders to a transaction, creating one when ``transaction_id``
        is not given.

        Raises:
            InvalidTransition: Session closed, transaction not open, or an
                order is still a draft or cancelled
            AlreadySettled: An order is settled or bound to another live transaction
            ValidationError: No orders, currency mismatch, or a discount larger
                than the orders' total
        """
        numbers = list(dict.fromkeys(str(n) for n in (order_numbers or [])))
        if not numbers:
            raise ValidationError("At least one order number is required.")
        discount = _amount(discount, "discount", allow_none=True)

        def read():
            return cls._read_attach(session_id, transaction_id, numbers)

        def apply(snapshot):
            session, txn, orders = snapshot
            cls._hold_open_session(session)

            if txn is None:
                txn = create_with_reference(
                    POSTransaction,
                    "transaction_number",
                    generate_transaction_number,
                    session=session,
                    currency=session.currency,
                    opened_by=actor or "",
                )
                logger.info(f"Transaction {txn.transaction_number} opened in session {session.id}")
            else:
                if txn.session_id != session.pk:
                    raise ValidationError(
                        f"Transaction {txn.transaction_number} belongs to another session.",
                        {"transaction_id": str(txn.pk)},
                    )
                if txn.status != POSTransaction.TransactionStatus.OPEN:
                    raise InvalidTransition(
                        f"Transaction {txn.transaction_number} is {txn.status}; orders can only be attached while open.",
                        current_status=txn.status,
                    )

            attached = []
            for order in orders:
                if order.transaction_id == txn.pk:
                    continue
                if order.status == Order.OrderStatus.SETTLED or order.transaction_id:
                    raise AlreadySettled(order.order_number)
                if order.status in (Order.OrderStatus.DRAFT, Order.OrderStatus.CANCELLED):
                    raise InvalidTransition(
                        f"Order {order.order_number} is {order.status} and cannot be settled.",
                        current_status=order.status,
                        target_status=Order.OrderStatus.SETTLED,
                    )
                if order.currency != txn.currency:
                    raise ValidationError(
                        f"Order {order.order_number} is in {order.currency}, transaction in {txn.currency}."
                    )

                entity_store.commit(order, order.version, transaction=txn, last_actor=actor or "")
                SettlementLine.objects.create(transaction=txn, order=order, amount=order.total)
                attached.append(order.order_number)

            new_discount = txn.discount if discount is None else quantize(txn.currency, discount)
            _gross, total = cls._transaction_total(txn, new_discount)
            entity_store.commit(txn, txn.version, discount=new_discount, total=total)

            logger.info(
                f"Attached {attached or 'no new orders'} to {txn.transaction_number} by {actor}; total {total}"
            )
            event_publisher.entity_changed(txn)
            return txn

        return run_with_retry(f"Attach orders to session {session_id}", read, apply)

    @classmethod
    def capture(
        cls,
        transaction_id,
        amount_tendered,
        method: str,
        actor: str,
        idempotency_key: str = None,
    ) -> POSTransaction:
        """
        Capture a transaction and settle every attached order atomically.

        A shortfall of even one minor unit is rejected. Cash may exceed the
        total (change is recorded); card and UPI may exceed it only by
        ``SETTLEMENT_TOLERANCE_MINOR``.

        Raises:
            AmountMismatch: Tendered amount short, or non-cash overpayment
            InvalidTransition: Transaction not open, session closed, or an
                order not yet servable for settlement
            AlreadySettled: An attached order was settled elsewhere
        """
        if method not in POSTransaction.PaymentMethod.values:
            raise ValidationError(f"'{method}' is not a valid payment method.", {"method": method})
        tendered = _amount(amount_tendered, "amount_tendered")

        def read():
            return cls._read_settlement(transaction_id)

        def apply(snapshot):
            txn, session, orders = snapshot
            cls._validate_transition(txn, POSTransaction.TransactionStatus.CAPTURED)
            cls._hold_open_session(session)
            if not orders:
                raise ValidationError(f"Transaction {txn.transaction_number} has no orders attached.")
            for order in orders:
                OrderService.assert_settleable(order)

            currency = txn.currency
            gross_minor = sum_minor(currency, [order.total for order in orders])
            total_minor = max(gross_minor - to_minor(currency, txn.discount), 0)
            tendered_minor = to_minor(currency, tendered)

            if tendered_minor < total_minor:
                raise AmountMismatch(
                    from_minor(currency, total_minor),
                    from_minor(currency, tendered_minor),
                    f"Tendered {format_money(currency, tendered_minor)} is short of "
                    f"{format_money(currency, total_minor)} for {txn.transaction_number}",
                )
            overpaid_minor = tendered_minor - total_minor
            if method != POSTransaction.PaymentMethod.CASH and not within_tolerance(
                total_minor, tendered_minor, engine_settings.settlement_tolerance_minor
            ):
                raise AmountMismatch(
                    from_minor(currency, total_minor),
                    from_minor(currency, tendered_minor),
                    f"{method} payment of {format_money(currency, tendered_minor)} must equal "
                    f"{format_money(currency, total_minor)} for {txn.transaction_number}",
                )
            change_minor = overpaid_minor if method == POSTransaction.PaymentMethod.CASH else 0

            now = timezone.now()
            entity_store.commit(
                txn,
                txn.version,
                status=POSTransaction.TransactionStatus.CAPTURED,
                payment_method=method,
                total=from_minor(currency, total_minor),
                amount_tendered=from_minor(currency, tendered_minor),
                change_amount=from_minor(currency, change_minor),
                captured_at=now,
                captured_by=actor or "",
            )

            for order in orders:
                previous = order.status
                entity_store.commit(
                    order,
                    order.version,
                    status=Order.OrderStatus.SETTLED,
                    settled_at=now,
                    last_actor=actor or "",
                )
                SettlementLine.objects.filter(transaction=txn, order=order).update(
                    amount=order.total, status_before_capture=previous
                )

            logger.info(
                f"Transaction {txn.transaction_number} captured by {actor}: {method} "
                f"{format_money(currency, tendered_minor)}, change {format_money(currency, change_minor)}, "
                f"{len(orders)} order(s) settled"
            )
            event_publisher.entity_changed(txn)
            for order in orders:
                event_publisher.entity_changed(order)
            return txn

        return idempotency_guard.execute(
            scope=f"payments.capture:{transaction_id}",
            key=idempotency_key,
            operation=lambda: run_with_retry(f"Capture transaction {transaction_id}", read, apply),
            encode=lambda txn: {"transaction_id": str(txn.pk)},
            decode=lambda outcome: cls.get_transaction(outcome["transaction_id"]),
            actor_id=actor,
        )

    @classmethod
    def _void_in_transaction(cls, txn: POSTransaction, orders: List[Order], actor: str, reason: str) -> List[Order]:
        """
        Void ``txn`` and release its orders; settled orders go back to the
        status they were settled from. Runs inside the caller's retry loop.
        """
        cls._validate_transition(txn, POSTransaction.TransactionStatus.VOIDED)
        now = timezone.now()
        entity_store.commit(
            txn,
            txn.version,
            status=POSTransaction.TransactionStatus.VOIDED,
            voided_at=now,
            voided_by=actor or "",
            void_reason=(reason or "")[:255],
        )

        lines = {line.order_id: line for line in txn.lines.all()}
        for order in orders:
            changes = {"transaction": None, "last_actor": actor or ""}
            if order.status == Order.OrderStatus.SETTLED:
                line = lines.get(order.pk)
                changes["status"] = (line.status_before_capture if line else "") or Order.OrderStatus.SERVED
                changes["settled_at"] = None
            entity_store.commit(order, order.version, **changes)

        txn.lines.filter(released_at__isnull=True).update(released_at=now)
        return orders

    @classmethod
    def void(cls, transaction_id, actor: str, reason: str = "") -> POSTransaction:
        """
        Void a transaction while its session is open. All or nothing:
        every attached order is released, and captured ones revert from
        SETTLED.

        Raises:
            InvalidTransition: Already voided, or the session is closed
        """

        def read():
            return cls._read_settlement(transaction_id)

        def apply(snapshot):
            txn, session, orders = snapshot
            cls._hold_open_session(session)
            was_captured = txn.status == POSTransaction.TransactionStatus.CAPTURED
            cls._void_in_transaction(txn, orders, actor, reason)

            logger.info(
                f"Transaction {txn.transaction_number} voided by {actor}"
                f"{' after capture' if was_captured else ''}; {len(orders)} order(s) released"
            )
            event_publisher.entity_changed(txn)
            for order in orders:
                event_publisher.entity_changed(order)
            return txn

        return run_with_retry(f"Void transaction {transaction_id}", read, apply)
