"""
Unit tests for payments.money module.

Settlement compares totals in integer minor units; these tests pin the
quantization and conversion rules that comparison relies on.
"""

import pytest
from decimal import Decimal

from payments.money import (
    currency_exponent,
    quantize_decimal,
    to_decimal,
    quantize,
    to_minor,
    from_minor,
    sum_minor,
    within_tolerance,
    format_money,
)


class TestCurrencyExponent:
    """Test currency exponent lookup."""

    def test_inr_exponent(self):
        assert currency_exponent("INR") == 2

    def test_jpy_exponent(self):
        assert currency_exponent("JPY") == 0

    def test_kwd_exponent(self):
        assert currency_exponent("KWD") == 3

    def test_case_insensitive(self):
        assert currency_exponent("inr") == 2

    def test_unknown_currency_defaults_to_2(self):
        assert currency_exponent("XXX") == 2

    def test_quantize_decimal(self):
        assert quantize_decimal("INR") == Decimal("0.01")
        assert quantize_decimal("JPY") == Decimal("1")


class TestToDecimal:

    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")

    def test_invalid_amount(self):
        with pytest.raises(ValueError):
            to_decimal("twelve")


class TestQuantize:
    """Test Decimal quantization with banker's rounding."""

    def test_bankers_rounding_down(self):
        # 10.125 → 10.12 (round to even)
        assert quantize("INR", "10.125") == Decimal("10.12")

    def test_bankers_rounding_up(self):
        assert quantize("INR", "10.135") == Decimal("10.14")

    def test_jpy_no_decimals(self):
        assert quantize("JPY", "1234.56") == Decimal("1235")

    def test_kwd_three_decimals(self):
        assert quantize("KWD", "10.1234") == Decimal("10.123")


class TestMinorUnits:
    """Test conversion to and from minor units (paise)."""

    def test_rounds_before_converting(self):
        # 10.127 → quantize → 10.13 → 1013 paise
        assert to_minor("INR", "10.127") == 1013

    def test_three_place_storage_value(self):
        # Totals are stored with three places
        assert to_minor("INR", Decimal("357.000")) == 35700

    def test_negative_amount(self):
        assert to_minor("INR", "-10.50") == -1050

    def test_from_minor(self):
        assert from_minor("INR", 1013) == Decimal("10.13")
        assert from_minor("KWD", 10123) == Decimal("10.123")

    def test_sum_quantizes_each_amount(self):
        # 0.005 rounds to 0.00 on its own, so three of them add nothing
        assert sum_minor("INR", ["0.005", "0.005", "0.005"]) == 0
        assert sum_minor("INR", [Decimal("357.000"), Decimal("126.000")]) == 48300

    def test_sum_of_nothing(self):
        assert sum_minor("INR", []) == 0


class TestTolerance:

    @pytest.mark.parametrize("expected,actual,tolerance,result", [
        (35700, 35700, 0, True),
        (35700, 35699, 0, False),
        (35700, 35701, 0, False),
        (35700, 35701, 1, True),
        (35700, 35702, 1, False),
    ])
    def test_within_tolerance(self, expected, actual, tolerance, result):
        assert within_tolerance(expected, actual, tolerance) is result


class TestFormatMoney:

    def test_inr(self):
        assert format_money("INR", 105050) == "₹1,050.50"

    def test_jpy(self):
        assert format_money("JPY", 1235) == "¥1,235"

    def test_currency_without_symbol(self):
        assert format_money("KWD", 10123) == "KWD 10.123"

    def test_negative_variance(self):
        assert format_money("INR", -700) == "₹-7.00"
