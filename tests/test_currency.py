"""
Test suite for currency module

Tests Money precision, rounding, arithmetic and amount coercion.
"""

import pytest
from decimal import Decimal

from account_core.currency import (
    Money, Currency, decimal_from_string, to_decimal, to_exact_money, to_money
)


class TestMoney:
    """Test Money value object"""

    def test_rounds_half_up_to_currency_precision(self):
        """Test amounts are quantized on construction"""
        assert Money(Decimal('10.005'), Currency.USD).amount == Decimal('10.01')
        assert Money(Decimal('10.004'), Currency.USD).amount == Decimal('10.00')
        assert Money(Decimal('1234.5'), Currency.JPY).amount == Decimal('1235')

    def test_non_finite_amount_rejected(self):
        """Test NaN and Infinity cannot become money"""
        with pytest.raises(ValueError, match="finite"):
            Money(Decimal('NaN'), Currency.USD)
        with pytest.raises(ValueError, match="finite"):
            Money(Decimal('Infinity'), Currency.USD)

    def test_arithmetic(self):
        a = Money(Decimal('100.00'), Currency.USD)
        b = Money(Decimal('35.50'), Currency.USD)

        assert a + b == Money(Decimal('135.50'), Currency.USD)
        assert a - b == Money(Decimal('64.50'), Currency.USD)
        assert a * Decimal('0.05') == Money(Decimal('5.00'), Currency.USD)
        assert -b == Money(Decimal('-35.50'), Currency.USD)

    def test_currency_mismatch(self):
        """Test mixing currencies is rejected"""
        usd = Money(Decimal('1.00'), Currency.USD)
        eur = Money(Decimal('1.00'), Currency.EUR)

        with pytest.raises(ValueError, match="Cannot add"):
            usd + eur
        with pytest.raises(ValueError, match="Cannot compare"):
            usd < eur

    def test_predicates(self):
        assert Money.zero(Currency.USD).is_zero()
        assert Money(Decimal('0.01'), Currency.USD).is_positive()
        assert Money(Decimal('-0.01'), Currency.USD).is_negative()

    def test_to_string(self):
        """Test display formatting with thousands separators"""
        assert Money(Decimal('1050'), Currency.USD).to_string() == "USD 1,050.00"
        assert Money(Decimal('-85'), Currency.USD).to_string() == "USD -85.00"
        assert Money(Decimal('5000'), Currency.JPY).to_string() == "JPY 5,000"


class TestAmountCoercion:
    """Test conversion of caller-supplied amounts"""

    def test_decimal_from_string_plain_numbers(self):
        assert decimal_from_string("1234.56") == Decimal('1234.56')
        assert decimal_from_string("  -12.50 ") == Decimal('-12.50')
        assert decimal_from_string("1e3") == Decimal('1000')

    @pytest.mark.parametrize("text", ["12abc34", "$5", "1,000", "12,50", "1_000", "abc", "", "   "])
    def test_decimal_from_string_rejects_stray_characters(self, text):
        """Test malformed input fails instead of becoming another number"""
        with pytest.raises(ValueError):
            decimal_from_string(text)

    def test_to_decimal_float_goes_through_str(self):
        """Test 0.1 becomes Decimal('0.1')"""
        assert to_decimal(0.1) == Decimal('0.1')

    def test_to_decimal_rejects_bool_and_non_finite(self):
        with pytest.raises(ValueError):
            to_decimal(True)
        with pytest.raises(ValueError, match="finite"):
            to_decimal(float('nan'))
        with pytest.raises(ValueError, match="finite"):
            to_decimal(Decimal('Infinity'))
        with pytest.raises(ValueError):
            to_decimal(None)

    def test_to_money(self):
        assert to_money("100", Currency.USD) == Money(Decimal('100.00'), Currency.USD)
        assert to_money(50, Currency.USD).amount == Decimal('50.00')

        money = Money(Decimal('10'), Currency.USD)
        assert to_money(money, Currency.USD) is money

        with pytest.raises(ValueError, match="does not match"):
            to_money(Money(Decimal('10'), Currency.EUR), Currency.USD)

    def test_to_exact_money(self):
        assert to_exact_money("0.01", Currency.USD) == Money(Decimal('0.01'), Currency.USD)
        assert to_exact_money("1.000", Currency.USD) == Money(Decimal('1.00'), Currency.USD)
        assert to_exact_money("1e3", Currency.USD) == Money(Decimal('1000.00'), Currency.USD)

        with pytest.raises(ValueError, match="decimal places"):
            to_exact_money("0.005", Currency.USD)
        with pytest.raises(ValueError, match="decimal places"):
            to_exact_money("1.5", Currency.JPY)
