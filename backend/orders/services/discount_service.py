import logging

from core_backend.exceptions import InvalidTransition, ValidationError
from core_backend.infrastructure.entity_store import entity_store, run_with_retry
from notifications.services import event_publisher
from orders.models import Order
from payments.money import quantize, to_decimal, to_minor

logger = logging.getLogger(__name__)


class OrderDiscountService:
    """Service for the order-level discount."""

    # A discount may be changed until the order is settled or cancelled
    DISCOUNTABLE_STATUSES = (
        Order.OrderStatus.DRAFT,
        Order.OrderStatus.CONFIRMED,
        Order.OrderStatus.PREPARING,
        Order.OrderStatus.READY,
        Order.OrderStatus.SERVED,
    )

    @staticmethod
    def apply_discount(order_number: str, amount, actor: str) -> Order:
        """
        Set the order-level discount and recompute totals.

        Args:
            order_number: Order to discount
            amount: Discount in currency units; 0 removes the discount
            actor: Opaque id recorded as last_actor

        Raises:
            ValidationError: Negative amount, or more than subtotal + tax
            InvalidTransition: Order settled, cancelled, or bound to a POS transaction
        """
        from orders.services.calculation_service import OrderCalculationService

        try:
            requested = to_decimal(amount)
        except ValueError as e:
            raise ValidationError(str(e), {"amount": str(amount)})
        if requested < 0:
            raise ValidationError("Discount cannot be negative.", {"amount": str(amount)})

        def read():
            return entity_store.get(Order, order_number=order_number)

        def apply(order):
            if order.status not in OrderDiscountService.DISCOUNTABLE_STATUSES:
                raise InvalidTransition(
                    f"Cannot discount order {order_number} in status {order.status}.",
                    current_status=order.status,
                )
            if order.transaction_id:
                raise InvalidTransition(
                    f"Order {order_number} is attached to a POS transaction; discount the transaction instead.",
                    current_status=order.status,
                )

            discount = quantize(order.currency, requested)
            gross = OrderCalculationService.calculate(order, discount=0)
            if to_minor(order.currency, discount) > to_minor(order.currency, gross.total):
                raise ValidationError(
                    f"Discount {discount} exceeds the order amount {gross.total}.",
                    {"amount": str(discount), "order_total": str(gross.total)},
                )

            entity_store.commit(
                order,
                order.version,
                last_actor=actor or "",
                **OrderCalculationService.total_fields(order, discount=discount),
            )
            logger.info(f"Discount {discount} applied to order {order_number} by {actor}")
            event_publisher.entity_changed(order)
            return order

        return run_with_retry(f"Discount order {order_number}", read, apply)
