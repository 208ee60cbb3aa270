from django.db import transaction
from django.utils import timezone
from typing import Iterable, List
import logging

from core_backend.config import engine_settings
from core_backend.exceptions import AlreadySettled, InvalidTransition, NotFound, ValidationError
from core_backend.infrastructure.entity_store import entity_store, run_with_retry
from core_backend.infrastructure.idempotency import idempotency_guard
from core_backend.utils.numbering import create_with_reference, generate_order_number
from notifications.services import event_publisher
from orders.models import Order, OrderItem

logger = logging.getLogger(__name__)

# Statuses in which the order's status follows its kitchen tickets
KITCHEN_PHASE = (
    Order.OrderStatus.CONFIRMED,
    Order.OrderStatus.PREPARING,
    Order.OrderStatus.READY,
)


class OrderService:
    """Core service for the order lifecycle: create, confirm, serve, cancel."""

    # Valid status transitions for the order state machine
    VALID_STATUS_TRANSITIONS = {
        Order.OrderStatus.DRAFT: [
            Order.OrderStatus.CONFIRMED,
            Order.OrderStatus.CANCELLED,
        ],
        Order.OrderStatus.CONFIRMED: [
            Order.OrderStatus.PREPARING,
            Order.OrderStatus.READY,
            Order.OrderStatus.CANCELLED,
        ],
        Order.OrderStatus.PREPARING: [
            Order.OrderStatus.READY,
            Order.OrderStatus.CANCELLED,
        ],
        Order.OrderStatus.READY: [
            Order.OrderStatus.PREPARING,  # amendment
            Order.OrderStatus.SERVED,
            Order.OrderStatus.SETTLED,  # delivery only
            Order.OrderStatus.CANCELLED,
        ],
        Order.OrderStatus.SERVED: [
            Order.OrderStatus.SETTLED,
        ],
        # Only a void of the settling transaction leaves SETTLED
        Order.OrderStatus.SETTLED: [
            Order.OrderStatus.SERVED,
            Order.OrderStatus.READY,
        ],
        Order.OrderStatus.CANCELLED: [],
    }

    # Statuses an order may be settled from, per order type
    SETTLEABLE_FROM = {
        Order.OrderType.DINE_IN: (Order.OrderStatus.SERVED,),
        Order.OrderType.TAKEAWAY: (Order.OrderStatus.SERVED,),
        Order.OrderType.DELIVERY: (Order.OrderStatus.READY, Order.OrderStatus.SERVED),
    }

    @staticmethod
    def get_order(order_number: str) -> Order:
        return entity_store.get(Order, order_number=order_number)

    @staticmethod
    def validate_transition(order: Order, new_status: str) -> None:
        if new_status not in OrderService.VALID_STATUS_TRANSITIONS.get(order.status, []):
            raise InvalidTransition(
                f"Cannot transition order {order.order_number} from {order.status} to {new_status}.",
                current_status=order.status,
                target_status=new_status,
            )

    @staticmethod
    def aggregate_kitchen_status(current_status: str, ticket_statuses: Iterable[str]) -> str:
        """
        Order status implied by its tickets while in the kitchen phase.

        READY iff every non-voided ticket is completed; PREPARING once any
        ticket has started; otherwise CONFIRMED. Outside the kitchen phase,
        or with no live tickets, the current status stands.
        """
        from kds.models import TicketStatus

        if current_status not in KITCHEN_PHASE:
            return current_status

        live = [s for s in ticket_statuses if s != TicketStatus.VOIDED]
        if not live:
            return current_status
        if all(s == TicketStatus.COMPLETED for s in live):
            return Order.OrderStatus.READY
        if any(s in (TicketStatus.IN_PROGRESS, TicketStatus.COMPLETED) for s in live):
            return Order.OrderStatus.PREPARING
        return Order.OrderStatus.CONFIRMED

    @staticmethod
    def status_timestamps(order: Order, new_status: str) -> dict:
        """Timestamp fields to set when ``order`` enters ``new_status``."""
        if new_status == order.status:
            return {}
        now = timezone.now()
        field = {
            Order.OrderStatus.CONFIRMED: "confirmed_at",
            Order.OrderStatus.PREPARING: "preparing_at",
            Order.OrderStatus.READY: "ready_at",
            Order.OrderStatus.SERVED: "served_at",
            Order.OrderStatus.SETTLED: "settled_at",
            Order.OrderStatus.CANCELLED: "cancelled_at",
        }.get(new_status)
        if field is None or (field == "preparing_at" and order.preparing_at):
            return {}
        return {field: now}

    @staticmethod
    def assert_settleable(order: Order) -> None:
        """Raise unless ``order`` may be settled right now."""
        if order.status == Order.OrderStatus.SETTLED:
            raise AlreadySettled(order.order_number)
        allowed = OrderService.SETTLEABLE_FROM.get(order.order_type, (Order.OrderStatus.SERVED,))
        if order.status not in allowed:
            raise InvalidTransition(
                f"Order {order.order_number} ({order.order_type}) cannot be settled from {order.status}.",
                current_status=order.status,
                target_status=Order.OrderStatus.SETTLED,
            )

    @staticmethod
    def create_order(
        order_type: str,
        items: List[dict],
        actor: str,
        table_ref: str = "",
        customer_name: str = "",
        customer_phone: str = "",
        special_instructions: str = "",
        currency: str = None,
    ) -> Order:
        """
        Creates a draft order, resolving every line through the catalog.

        Args:
            order_type: dine_in, takeaway or delivery
            items: dicts with item_id, quantity and optional special_instructions
            actor: Opaque id recorded as created_by
            table_ref: Table reference for dine-in orders

        Raises:
            ValidationError: Unknown order type, unknown catalog item or bad quantity
        """
        from orders.services.item_service import OrderItemService

        if order_type not in Order.OrderType.values:
            raise ValidationError(f"'{order_type}' is not a valid order type.", {"order_type": order_type})

        currency = (currency or engine_settings.currency).upper()
        lines = [OrderItemService.resolve_line(line) for line in (items or [])]
        totals = OrderItemService.totals_for_lines(currency, lines)

        with transaction.atomic():
            order = create_with_reference(
                Order,
                "order_number",
                generate_order_number,
                order_type=order_type,
                currency=currency,
                table_ref=table_ref or "",
                customer_name=customer_name or "",
                customer_phone=customer_phone or "",
                special_instructions=special_instructions or "",
                created_by=actor or "",
                last_actor=actor or "",
                **totals.as_dict(),
            )
            for line_number, line in enumerate(lines, start=1):
                OrderItemService.create_item(order, line_number, line, round_number=1)

            logger.info(f"Order {order.order_number} created by {actor} with {len(lines)} item(s)")
            event_publisher.entity_changed(order)
        return order

    @staticmethod
    def confirm(order_number: str, actor: str, idempotency_key: str = None) -> Order:
        """
        DRAFT → CONFIRMED, deriving kitchen tickets in the same atomic unit.

        Raises:
            InvalidTransition: Order is not a draft
            ValidationError: No items, an item no longer in the catalog, or a bad
                quantity
        """
        from kds.services.ticket_router import TicketRouter
        from orders.services.calculation_service import OrderCalculationService

        def read():
            return entity_store.get(Order, order_number=order_number)

        def apply(order):
            OrderService.validate_transition(order, Order.OrderStatus.CONFIRMED)

            items = list(order.active_items())
            if not items:
                raise ValidationError(f"Order {order_number} has no items to confirm.")
            for item in items:
                if item.quantity < 1:
                    raise ValidationError(
                        f"Line {item.line_number} of order {order_number} has quantity {item.quantity}.",
                        {"line_number": item.line_number},
                    )
                OrderService._refresh_from_catalog(order_number, item)

            entity_store.commit(
                order,
                order.version,
                status=Order.OrderStatus.CONFIRMED,
                last_actor=actor or "",
                **OrderService.status_timestamps(order, Order.OrderStatus.CONFIRMED),
                **OrderCalculationService.total_fields(order),
            )
            logger.info(f"Order {order_number} confirmed by {actor}")

            TicketRouter.derive_in_transaction(order, actor)
            event_publisher.entity_changed(order)
            return order

        return idempotency_guard.execute(
            scope=f"orders.confirm:{order_number}",
            key=idempotency_key,
            operation=lambda: run_with_retry(f"Confirm order {order_number}", read, apply),
            encode=lambda order: {"order_number": order.order_number},
            decode=lambda outcome: OrderService.get_order(outcome["order_number"]),
            actor_id=actor,
        )

    @staticmethod
    def _refresh_from_catalog(order_number: str, item: OrderItem) -> None:
        """Re-snapshot a draft line's price, station and prep hints from the catalog."""
        from orders.catalog import get_catalog

        try:
            current = get_catalog().resolve_item(item.catalog_item_id)
        except NotFound:
            raise ValidationError(
                f"Line {item.line_number} of order {order_number} refers to "
                f"'{item.catalog_item_id}', which is no longer in the catalog.",
                {"line_number": item.line_number, "item_id": item.catalog_item_id},
            )

        changes = {
            "name": current.name,
            "unit_price": current.price,
            "station_id": current.station_id,
            "prep_sequence": current.prep_sequence,
            "prep_minutes": current.prep_minutes,
        }
        if any(getattr(item, field) != value for field, value in changes.items()):
            OrderItem.objects.filter(pk=item.pk).update(**changes)
            logger.info(
                f"Line {item.line_number} of order {order_number} refreshed from catalog "
                f"({item.unit_price} -> {current.price} at {current.station_id})"
            )

    @staticmethod
    def serve(order_number: str, actor: str) -> Order:
        """READY → SERVED."""

        def read():
            return entity_store.get(Order, order_number=order_number)

        def apply(order):
            OrderService.validate_transition(order, Order.OrderStatus.SERVED)
            entity_store.commit(
                order,
                order.version,
                status=Order.OrderStatus.SERVED,
                last_actor=actor or "",
                **OrderService.status_timestamps(order, Order.OrderStatus.SERVED),
            )
            logger.info(f"Order {order_number} served by {actor}")
            event_publisher.entity_changed(order)
            return order

        return run_with_retry(f"Serve order {order_number}", read, apply)

    @staticmethod
    def cancel(order_number: str, actor: str, reason: str = "") -> Order:
        """
        Cancels an order before it is served. Open kitchen tickets are voided
        in the same atomic unit; completed tickets and items keep their
        history.

        Raises:
            InvalidTransition: Order already served, settled or cancelled, or
                bound to a POS transaction
        """
        from kds.models import KitchenTicket, OPEN_TICKET_STATUSES, TicketStatus

        def read():
            order = entity_store.get(Order, order_number=order_number)
            tickets = list(KitchenTicket.objects.filter(order=order).open())
            return order, tickets

        def apply(snapshot):
            order, tickets = snapshot
            OrderService.validate_transition(order, Order.OrderStatus.CANCELLED)
            if order.transaction_id:
                raise InvalidTransition(
                    f"Order {order_number} is attached to a POS transaction; void it first.",
                    current_status=order.status,
                    target_status=Order.OrderStatus.CANCELLED,
                )

            now = timezone.now()
            entity_store.commit(
                order,
                order.version,
                status=Order.OrderStatus.CANCELLED,
                cancel_reason=(reason or "")[:255],
                last_actor=actor or "",
                **OrderService.status_timestamps(order, Order.OrderStatus.CANCELLED),
            )

            voided = []
            for ticket in tickets:
                if ticket.status not in OPEN_TICKET_STATUSES:
                    continue
                entity_store.commit(ticket, ticket.version, status=TicketStatus.VOIDED, voided_at=now)
                voided.append(ticket)

            order.items.filter(
                status__in=[
                    OrderItem.ItemStatus.PENDING,
                    OrderItem.ItemStatus.QUEUED,
                    OrderItem.ItemStatus.IN_PROGRESS,
                ]
            ).update(status=OrderItem.ItemStatus.VOIDED, voided_at=now)

            logger.info(
                f"Order {order_number} cancelled by {actor}; {len(voided)} open ticket(s) voided"
            )
            event_publisher.entity_changed(order)
            for ticket in voided:
                event_publisher.entity_changed(ticket)
            return order

        return run_with_retry(f"Cancel order {order_number}", read, apply)
