from decimal import Decimal
import logging

from core_backend.config import engine_settings
from orders.calculators import OrderCalculator, OrderTotals
from orders.models import Order

logger = logging.getLogger(__name__)


class OrderCalculationService:
    """Recomputes stored order totals from the order's non-voided lines."""

    @staticmethod
    def calculator_for(order: Order) -> OrderCalculator:
        return OrderCalculator(order.currency, Decimal(engine_settings.tax_rate))

    @staticmethod
    def calculate(order: Order, discount=None) -> OrderTotals:
        """
        Totals for the order's current lines as stored in this transaction.

        Args:
            order: Order instance
            discount: New discount amount; defaults to the order's current one
        """
        lines = [(item.unit_price, item.quantity) for item in order.active_items()]
        if discount is None:
            discount = order.discount
        totals = OrderCalculationService.calculator_for(order).calculate_totals(lines, discount)
        logger.debug(
            f"Totals for {order.order_number}: subtotal={totals.subtotal} tax={totals.tax} "
            f"discount={totals.discount} total={totals.total}"
        )
        return totals

    @staticmethod
    def total_fields(order: Order, discount=None) -> dict:
        """``calculate`` as keyword arguments for ``EntityStore.commit``."""
        return OrderCalculationService.calculate(order, discount).as_dict()
