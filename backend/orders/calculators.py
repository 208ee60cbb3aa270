"""
Order financial calculators.

Pure functions over snapshot data: no catalog or database access. The order
state machine calls ``OrderCalculator.calculate_totals`` whenever items or
the discount change and stores the result on the order.

Invariant: total == subtotal + tax - discount, each quantized to the
currency minor unit.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Tuple

from payments.money import to_minor, from_minor, quantize

ZERO = Decimal("0")


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal

    def as_dict(self):
        return {
            "subtotal": self.subtotal,
            "tax": self.tax,
            "discount": self.discount,
            "total": self.total,
        }


class OrderCalculator:
    """
    Calculates subtotal, tax and total for a set of (unit_price, quantity)
    lines.

    Tax is computed per line in minor units and summed, so the order tax is
    always the sum of what each line would print on a receipt.
    """

    def __init__(self, currency: str, tax_rate: Decimal):
        self.currency = currency
        self.tax_rate = Decimal(tax_rate)

    def line_total(self, unit_price, quantity: int) -> Decimal:
        return quantize(self.currency, Decimal(unit_price) * quantity)

    def calculate_subtotal(self, lines: Iterable[Tuple[Decimal, int]]) -> Decimal:
        minor = sum(to_minor(self.currency, self.line_total(price, qty)) for price, qty in lines)
        return from_minor(self.currency, minor)

    def calculate_tax(self, lines: Iterable[Tuple[Decimal, int]]) -> Decimal:
        minor = sum(
            to_minor(self.currency, self.line_total(price, qty) * self.tax_rate)
            for price, qty in lines
        )
        return from_minor(self.currency, minor)

    def calculate_totals(self, lines: Iterable[Tuple[Decimal, int]], discount=ZERO) -> OrderTotals:
        """
        Args:
            lines: (unit_price, quantity) pairs for the non-voided items
            discount: order-level discount amount (already validated >= 0)

        Returns:
            OrderTotals with every component quantized
        """
        lines = list(lines)
        subtotal = self.calculate_subtotal(lines)
        tax = self.calculate_tax(lines)
        discount = quantize(self.currency, discount)

        # Discount can bring the order to zero but never below
        gross_minor = to_minor(self.currency, subtotal) + to_minor(self.currency, tax)
        discount_minor = min(to_minor(self.currency, discount), gross_minor)

        return OrderTotals(
            subtotal=subtotal,
            tax=tax,
            discount=from_minor(self.currency, discount_minor),
            total=from_minor(self.currency, gross_minor - discount_minor),
        )
