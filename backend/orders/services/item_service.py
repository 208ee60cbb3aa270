from dataclasses import dataclass
from decimal import Decimal
from django.db.models import Max
from django.utils import timezone
from typing import List
import logging

from core_backend.config import engine_settings
from core_backend.exceptions import InvalidTransition, NotFound, ValidationError
from core_backend.infrastructure.entity_store import entity_store, run_with_retry
from notifications.services import event_publisher
from orders.calculators import OrderCalculator, OrderTotals
from orders.catalog import CatalogItem, get_catalog
from orders.models import Order, OrderItem

logger = logging.getLogger(__name__)

MAX_QUANTITY_PER_LINE = 999


@dataclass(frozen=True)
class ResolvedLine:
    catalog_item: CatalogItem
    quantity: int
    special_instructions: str = ""


class OrderItemService:
    """Service for order lines: catalog resolution, adding (and amending), removing."""

    @staticmethod
    def validate_quantity(quantity) -> int:
        try:
            quantity = int(quantity)
        except (TypeError, ValueError):
            raise ValidationError(f"Quantity '{quantity}' is not a whole number.")
        if quantity < 1 or quantity > MAX_QUANTITY_PER_LINE:
            raise ValidationError(
                f"Quantity must be between 1 and {MAX_QUANTITY_PER_LINE}.", {"quantity": quantity}
            )
        return quantity

    @staticmethod
    def resolve_line(line: dict) -> ResolvedLine:
        """
        Validate a requested line and resolve it against the catalog.

        Raises:
            ValidationError: Missing item id, unknown catalog item or bad quantity
        """
        item_id = line.get("item_id")
        if not item_id:
            raise ValidationError("Each item needs an item_id.")
        quantity = OrderItemService.validate_quantity(line.get("quantity", 1))

        try:
            catalog_item = get_catalog().resolve_item(str(item_id))
        except NotFound:
            raise ValidationError(f"Catalog item '{item_id}' does not exist.", {"item_id": item_id})

        return ResolvedLine(
            catalog_item=catalog_item,
            quantity=quantity,
            special_instructions=line.get("special_instructions") or "",
        )

    @staticmethod
    def totals_for_lines(currency: str, lines: List[ResolvedLine], discount=Decimal("0")) -> OrderTotals:
        calculator = OrderCalculator(currency, Decimal(engine_settings.tax_rate))
        return calculator.calculate_totals(
            [(line.catalog_item.price, line.quantity) for line in lines], discount
        )

    @staticmethod
    def create_item(order: Order, line_number: int, line: ResolvedLine, round_number: int) -> OrderItem:
        """Snapshot a resolved line onto the order."""
        item = line.catalog_item
        return OrderItem.objects.create(
            order=order,
            line_number=line_number,
            catalog_item_id=item.item_id,
            name=item.name,
            unit_price=item.price,
            quantity=line.quantity,
            station_id=item.station_id,
            prep_sequence=item.prep_sequence,
            prep_minutes=item.prep_minutes,
            special_instructions=line.special_instructions,
            added_in_round=round_number,
        )

    @staticmethod
    def _next_line_number(order: Order) -> int:
        current = order.items.aggregate(max_line=Max("line_number"))["max_line"]
        return (current or 0) + 1

    @staticmethod
    def add_item(
        order_number: str,
        item_id: str,
        quantity: int,
        actor: str,
        special_instructions: str = "",
    ) -> OrderItem:
        """
        Add a line to an order.

        On a draft this is a plain edit. On a confirmed, preparing or ready
        order it is an amendment: a new round is opened and tickets are
        derived for the new line only, which drops a ready order back to
        preparing.

        Raises:
            ValidationError: Unknown catalog item or bad quantity
            InvalidTransition: Order is served, settled or cancelled
        """
        from kds.services.ticket_router import TicketRouter
        from orders.services.calculation_service import OrderCalculationService
        from orders.services.order_service import KITCHEN_PHASE

        line = OrderItemService.resolve_line(
            {"item_id": item_id, "quantity": quantity, "special_instructions": special_instructions}
        )

        def read():
            return entity_store.get(Order, order_number=order_number)

        def apply(order):
            is_draft = order.status == Order.OrderStatus.DRAFT
            if not is_draft and order.status not in KITCHEN_PHASE:
                raise InvalidTransition(
                    f"Cannot add items to order {order_number} in status {order.status}.",
                    current_status=order.status,
                )

            round_number = order.amendment_round if is_draft else order.amendment_round + 1
            created = OrderItemService.create_item(
                order, OrderItemService._next_line_number(order), line, round_number
            )

            entity_store.commit(
                order,
                order.version,
                amendment_round=round_number,
                last_actor=actor or "",
                **OrderCalculationService.total_fields(order),
            )

            if is_draft:
                logger.info(f"Added {line.quantity} x {line.catalog_item.item_id} to draft {order_number}")
            else:
                logger.info(
                    f"Amendment round {round_number} on order {order_number}: "
                    f"{line.quantity} x {line.catalog_item.item_id} by {actor}"
                )
                TicketRouter.derive_in_transaction(order, actor)

            event_publisher.entity_changed(order)
            created.refresh_from_db()
            return created

        return run_with_retry(f"Add item to order {order_number}", read, apply)

    @staticmethod
    def remove_item(order_number: str, line_number: int, actor: str) -> Order:
        """
        Remove a line from an order.

        Draft lines are deleted outright. After confirmation only a line whose
        ticket has not started can be removed; it is voided, and its ticket is
        voided too once no live lines remain on it.

        Raises:
            NotFound: No such line
            InvalidTransition: Line completed or being prepared, order past the
                kitchen phase, or the line is the order's last live line
        """
        from kds.models import TicketStatus
        from kds.services.ticket_router import TicketRouter
        from orders.services.calculation_service import OrderCalculationService
        from orders.services.order_service import KITCHEN_PHASE

        def read():
            order = entity_store.get(Order, order_number=order_number)
            try:
                item = order.items.select_related("ticket").get(line_number=line_number)
            except OrderItem.DoesNotExist:
                raise NotFound("OrderItem", f"{order_number}#{line_number}")
            return order, item

        def apply(snapshot):
            order, item = snapshot

            if item.status == OrderItem.ItemStatus.COMPLETED:
                raise InvalidTransition(
                    f"Line {line_number} of order {order_number} is already completed.",
                    current_status=item.status,
                    target_status=OrderItem.ItemStatus.VOIDED,
                )
            if item.status == OrderItem.ItemStatus.IN_PROGRESS:
                raise InvalidTransition(
                    f"Line {line_number} of order {order_number} is already being prepared.",
                    current_status=item.status,
                    target_status=OrderItem.ItemStatus.VOIDED,
                )
            if item.status == OrderItem.ItemStatus.VOIDED:
                raise InvalidTransition(
                    f"Line {line_number} of order {order_number} was already removed.",
                    current_status=item.status,
                    target_status=OrderItem.ItemStatus.VOIDED,
                )

            if order.status == Order.OrderStatus.DRAFT:
                item.delete()
                entity_store.commit(
                    order,
                    order.version,
                    last_actor=actor or "",
                    **OrderCalculationService.total_fields(order),
                )
                logger.info(f"Removed line {line_number} from draft {order_number}")
                event_publisher.entity_changed(order)
                return order

            if order.status not in KITCHEN_PHASE:
                raise InvalidTransition(
                    f"Cannot remove items from order {order_number} in status {order.status}.",
                    current_status=order.status,
                )
            if order.active_items().count() <= 1:
                raise InvalidTransition(
                    f"Line {line_number} is the last item on order {order_number}; cancel the order instead.",
                    current_status=order.status,
                )

            now = timezone.now()
            OrderItem.objects.filter(pk=item.pk).update(
                status=OrderItem.ItemStatus.VOIDED, voided_at=now
            )

            ticket = item.ticket
            if ticket is not None and ticket.status == TicketStatus.QUEUED:
                live_lines = ticket.items.exclude(status=OrderItem.ItemStatus.VOIDED).count()
                if live_lines == 0:
                    entity_store.commit(ticket, ticket.version, status=TicketStatus.VOIDED, voided_at=now)
                    logger.info(f"Ticket {ticket.ticket_number} voided: no items left")
                    event_publisher.entity_changed(ticket)
                else:
                    entity_store.commit(
                        ticket,
                        ticket.version,
                        estimated_minutes=TicketRouter.estimate_minutes(
                            ticket.items.exclude(status=OrderItem.ItemStatus.VOIDED)
                        ),
                    )

            # Voiding the only unfinished ticket can make the order ready
            TicketRouter.recompute_order_status(
                order, actor, **OrderCalculationService.total_fields(order)
            )

            logger.info(f"Removed line {line_number} from order {order_number} by {actor}")
            event_publisher.entity_changed(order)
            return order

        return run_with_retry(f"Remove line {line_number} from order {order_number}", read, apply)
