"""
Order Calculator Tests

Pure arithmetic over (unit_price, quantity) lines. Totals must satisfy
total == subtotal + tax - discount in every currency.
"""
import pytest
from decimal import Decimal

from orders.calculators import OrderCalculator

pytestmark = pytest.mark.django_db(transaction=False)


class TestOrderCalculator:
    """Test subtotal, tax and total computation"""

    def test_simple_totals(self):
        calc = OrderCalculator("INR", Decimal("0.05"))
        totals = calc.calculate_totals([(Decimal("250.00"), 1), (Decimal("90.00"), 2)])

        assert totals.subtotal == Decimal("430.00")
        assert totals.tax == Decimal("21.50")
        assert totals.discount == Decimal("0.00")
        assert totals.total == Decimal("451.50")

    def test_tax_is_summed_per_line(self):
        """
        Two lines of 0.10 at 5% tax round to 0.00 + 0.00 (banker's rounding on
        0.005), not 0.01 computed on the 0.20 subtotal.
        """
        calc = OrderCalculator("INR", Decimal("0.05"))
        totals = calc.calculate_totals([(Decimal("0.10"), 1), (Decimal("0.10"), 1)])

        assert totals.subtotal == Decimal("0.20")
        assert totals.tax == Decimal("0.00")

    def test_discount_is_subtracted(self):
        calc = OrderCalculator("INR", Decimal("0.18"))
        totals = calc.calculate_totals([(Decimal("100.00"), 1)], discount=Decimal("18.00"))

        assert totals.total == Decimal("100.00")
        assert totals.total == totals.subtotal + totals.tax - totals.discount

    def test_discount_never_drives_total_negative(self):
        calc = OrderCalculator("INR", Decimal("0.18"))
        totals = calc.calculate_totals([(Decimal("100.00"), 1)], discount=Decimal("500"))

        assert totals.discount == Decimal("118.00")
        assert totals.total == Decimal("0.00")

    def test_zero_decimal_currency(self):
        calc = OrderCalculator("JPY", Decimal("0.10"))
        totals = calc.calculate_totals([(Decimal("980"), 3)])

        assert totals.subtotal == Decimal("2940")
        assert totals.tax == Decimal("294")
        assert totals.total == Decimal("3234")

    def test_three_decimal_currency(self):
        calc = OrderCalculator("KWD", Decimal("0.05"))
        totals = calc.calculate_totals([(Decimal("1.250"), 1)])

        assert totals.tax == Decimal("0.062")
        assert totals.total == Decimal("1.312")

    def test_empty_order(self):
        totals = OrderCalculator("INR", Decimal("0.05")).calculate_totals([])
        assert totals.total == Decimal("0.00")
