"""
Unit tests for ledger amount arithmetic.

Verifies:
- Boundary conversion (str, int, float, Decimal, None)
- ROUND_HALF_UP at two places
- Balance tolerance
- Rejection of non-numeric and non-finite values
"""

from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from ledger_kernel.domain.amounts import (
    BALANCE_TOLERANCE,
    ZERO,
    InvalidAmountError,
    format_amount,
    is_balanced,
    round_amount,
    sum_amounts,
    to_amount,
)


class TestToAmount:
    """Tests for to_amount."""

    def test_string(self):
        assert to_amount("100.50") == Decimal("100.50")

    def test_int(self):
        assert to_amount(150) == Decimal("150")

    def test_float_goes_through_str(self):
        """0.1 must become Decimal('0.1'), not the binary expansion."""
        assert to_amount(0.1) == Decimal("0.1")
        assert to_amount(0.1) + to_amount(0.2) == Decimal("0.3")

    def test_decimal_passthrough(self):
        value = Decimal("12.345")
        assert to_amount(value) is value

    def test_none_and_blank_are_zero(self):
        assert to_amount(None) == 0
        assert to_amount("") == 0
        assert to_amount("   ") == 0

    def test_whitespace_stripped(self):
        assert to_amount(" 42.10 ") == Decimal("42.10")

    def test_not_rounded(self):
        assert to_amount("1.005") == Decimal("1.005")

    @pytest.mark.parametrize("value", ["abc", "1,000.00", object(), [1]])
    def test_invalid_values_raise(self, value):
        with pytest.raises(InvalidAmountError):
            to_amount(value)

    @pytest.mark.parametrize("value", ["NaN", "Infinity", float("inf"), Decimal("NaN")])
    def test_non_finite_values_raise(self, value):
        with pytest.raises(InvalidAmountError):
            to_amount(value)

    def test_bool_rejected(self):
        with pytest.raises(InvalidAmountError):
            to_amount(True)

    def test_invalid_amount_error_is_value_error(self):
        with pytest.raises(ValueError):
            to_amount("x")


class TestRoundAmount:
    """Tests for round_amount (ROUND_HALF_UP, 2dp)."""

    def test_half_rounds_up(self):
        assert round_amount(Decimal("10.555")) == Decimal("10.56")
        assert round_amount(Decimal("0.005")) == Decimal("0.01")

    def test_below_half_rounds_down(self):
        assert round_amount(Decimal("10.554")) == Decimal("10.55")

    def test_negative_half_rounds_away_from_zero(self):
        assert round_amount(Decimal("-10.555")) == Decimal("-10.56")

    def test_pads_to_two_places(self):
        result = round_amount(Decimal("150"))
        assert result == Decimal("150.00")
        assert str(result) == "150.00"


class TestSumAmounts:
    """Tests for sum_amounts."""

    def test_exact_sum_then_round(self):
        values = [Decimal("0.004"), Decimal("0.004"), Decimal("0.004")]
        # 0.012 rounds to 0.01; rounding each value first would give 0.00
        assert sum_amounts(values) == Decimal("0.01")

    def test_empty_is_zero(self):
        assert sum_amounts([]) == ZERO

    def test_generator_input(self):
        assert sum_amounts(Decimal(n) for n in range(1, 5)) == Decimal("10.00")


class TestIsBalanced:
    """Tests for the balance tolerance."""

    def test_equal_totals(self):
        assert is_balanced(Decimal("150.00"), Decimal("150.00"))

    def test_within_tolerance(self):
        assert is_balanced(Decimal("100.00"), Decimal("99.99"))

    def test_outside_tolerance(self):
        assert not is_balanced(Decimal("100.00"), Decimal("99.98"))

    def test_tolerance_is_one_cent(self):
        assert BALANCE_TOLERANCE == Decimal("0.01")

    def test_rounds_before_comparing(self):
        assert is_balanced(Decimal("100.004"), Decimal("100.00"))


class TestFormatAmount:

    def test_two_decimals(self):
        assert format_amount(Decimal("150")) == "150.00"

    def test_negative(self):
        assert format_amount(Decimal("-0.02")) == "-0.02"


class TestAmountProperties:
    """Two-decimal values survive any boundary encoding unchanged."""

    @given(cents=st.integers(min_value=-10**12, max_value=10**12))
    def test_float_boundary_round_trip(self, cents):
        expected = Decimal(cents).scaleb(-2)
        assert round_amount(to_amount(cents / 100)) == expected
        assert round_amount(to_amount(str(expected))) == expected

    @given(st.lists(st.integers(min_value=0, max_value=10**9), max_size=20))
    def test_sum_matches_integer_cents(self, cents):
        assert sum_amounts(Decimal(c).scaleb(-2) for c in cents) == Decimal(sum(cents)).scaleb(-2)
