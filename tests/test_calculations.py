"""
Tests for ledger arithmetic and error reporting.
"""

from decimal import Decimal

import pytest

from ledger_engine import (
    ErrorKind,
    InsufficientFundsError,
    NotFoundError,
    PriceTooLowError,
    TradeDirection,
    ValidationError,
)
from ledger_engine.calculations import (
    quantize_asset,
    quantize_cash,
    realized_profit_loss,
    require_positive,
    to_decimal,
    trade_notional,
)
from ledger_engine.errors import get_error_info


class TestConversion:
    """Tests for decimal input handling."""

    def test_strings_and_ints(self):
        """Test exact inputs are accepted as-is."""
        assert to_decimal("0.1") == Decimal("0.1")
        assert to_decimal(5) == Decimal("5")
        assert to_decimal(Decimal("2.50")) == Decimal("2.50")

    @pytest.mark.parametrize("value", [0.1, True, None, "abc", "NaN", "Infinity", [1]])
    def test_rejected(self, value):
        """Test floats, bools and non-numbers are rejected."""
        with pytest.raises(ValidationError):
            to_decimal(value)

    def test_positive_and_scale(self):
        """Test positivity and precision checks."""
        assert require_positive("1.00000001", "qty") == Decimal("1.00000001")
        assert require_positive("1000", "price", places=2) == Decimal("1000")
        with pytest.raises(ValidationError):
            require_positive("1.001", "price", places=2)
        with pytest.raises(ValidationError):
            require_positive("0", "qty")

    def test_trailing_zeros_do_not_count_as_precision(self):
        """Test 1.5000 has the precision of 1.5."""
        assert require_positive("1.5000", "price", places=2) == Decimal("1.5000")


class TestArithmetic:
    """Tests for notional and profit/loss."""

    def test_rounding_half_up(self):
        """Test cash rounding is half up."""
        assert quantize_cash(Decimal("0.125")) == Decimal("0.13")
        assert quantize_cash(Decimal("-0.125")) == Decimal("-0.13")
        assert quantize_asset(Decimal("0.000000005")) == Decimal("0.00000001")

    def test_notional(self):
        """Test quantity * price at cash precision."""
        assert trade_notional(Decimal("0.5"), Decimal("50000")) == Decimal("25000.00")

    @pytest.mark.parametrize(
        "direction,entry,exit_price,expected",
        [
            (TradeDirection.BUY, "50000", "55000", "2500.00"),
            (TradeDirection.BUY, "50000", "45000", "-2500.00"),
            (TradeDirection.SELL, "50000", "45000", "2500.00"),
            (TradeDirection.SELL, "50000", "55000", "-2500.00"),
        ],
    )
    def test_profit_loss(self, direction, entry, exit_price, expected):
        """Test the sign of profit/loss for each direction."""
        result = realized_profit_loss(direction, Decimal("0.5"), Decimal(entry), Decimal(exit_price))
        assert result == Decimal(expected)


class TestErrors:
    """Tests for error kinds and serialization."""

    def test_kinds_and_statuses(self):
        """Test each error maps to its kind and HTTP status."""
        assert NotFoundError("Trade", 1).kind == ErrorKind.NOT_FOUND
        assert NotFoundError("Trade", 1).http_status == 404
        assert InsufficientFundsError(1, Decimal("5")).http_status == 422
        assert PriceTooLowError(Decimal("1"), Decimal("2")).kind == ErrorKind.PRICE_TOO_LOW

    def test_to_dict(self):
        """Test the serialized error carries kind, code and context."""
        body = InsufficientFundsError(7, Decimal("50.00"), Decimal("10.00")).to_dict()
        assert body["kind"] == "InsufficientFunds"
        assert body["code"] == "FN_INSUFFICIENT_BALANCE"
        assert body["context"] == {"account_id": "7", "required": "50.00", "available": "10.00"}

    def test_unknown_code(self):
        """Test an unregistered code still resolves."""
        info = get_error_info("NOPE")
        assert info.kind == ErrorKind.VALIDATION
        assert info.http_status == 400
