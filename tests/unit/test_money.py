"""
Unit tests for Money and decimal handling.

Verifies:
- Decimal construction from strings
- Rounding determinism (ROUND_HALF_UP, configurable places)
- Float rejection
- Tolerance comparison
"""

from decimal import ROUND_HALF_EVEN, Decimal

import pytest

from settlement_kernel.db.types import (
    DEFAULT_TOLERANCE,
    MONEY_DECIMAL_PLACES,
    ZERO,
    amounts_match,
    money_from_str,
    round_money,
    to_money,
)


class TestMoneyFromStr:
    """Tests for money_from_str function."""

    def test_simple_decimal(self):
        assert money_from_str("100.50") == Decimal("100.50")

    def test_large_number(self):
        result = money_from_str("123456789012345678901234567890.123456789")
        assert result == Decimal("123456789012345678901234567890.123456789")

    def test_invalid_string_raises(self):
        with pytest.raises(Exception):  # Decimal raises InvalidOperation
            money_from_str("not a number")


class TestToMoney:
    """Coercion of optional caller amounts."""

    def test_none_is_zero(self):
        assert to_money(None) == ZERO

    def test_int_and_str(self):
        assert to_money(250000) == Decimal("250000")
        assert to_money("0.01") == Decimal("0.01")

    def test_decimal_passthrough(self):
        value = Decimal("12.345")
        assert to_money(value) is value

    def test_float_rejected(self):
        with pytest.raises(TypeError):
            to_money(0.1)


class TestRoundMoney:
    """Tests for round_money function."""

    def test_default_places(self):
        assert MONEY_DECIMAL_PLACES == 2
        assert round_money(Decimal("33.333333")) == Decimal("33.33")

    def test_half_up(self):
        assert round_money(Decimal("0.125")) == Decimal("0.13")
        assert round_money(Decimal("-0.125")) == Decimal("-0.13")

    def test_explicit_rounding_mode(self):
        assert round_money(Decimal("0.125"), rounding=ROUND_HALF_EVEN) == Decimal("0.12")

    def test_zero_places(self):
        assert round_money(Decimal("66.5"), 0) == Decimal("67")

    def test_deterministic(self):
        values = {round_money(Decimal("1") / Decimal("3") * 100) for _ in range(50)}
        assert values == {Decimal("33.33")}


class TestAmountsMatch:
    """Tolerance comparison used by every settlement invariant."""

    def test_default_tolerance_is_one_cent(self):
        assert DEFAULT_TOLERANCE == Decimal("0.01")

    def test_within_tolerance(self):
        assert amounts_match(Decimal("100.00"), Decimal("100.01"))
        assert amounts_match(Decimal("100.01"), Decimal("100.00"))

    def test_outside_tolerance(self):
        assert not amounts_match(Decimal("100.00"), Decimal("100.02"))

    def test_custom_tolerance(self):
        assert amounts_match(Decimal("100"), Decimal("101"), Decimal("1"))
        assert not amounts_match(Decimal("100"), Decimal("101"), ZERO)
