"""
Tests for Trade Execution and Trade Closure.

============================================================
PURPOSE
============================================================
1. Buys debit and sells credit quantity * entry_price
2. Closure realizes profit/loss into the owner's balance
3. A trade is closed at most once
4. Rejected operations leave no trace

============================================================
"""

from decimal import Decimal

import pytest

from ledger_engine import (
    InsufficientFundsError,
    InvalidStateError,
    NotFoundError,
    TradeDirection,
    TradeStatus,
    ValidationError,
)
from storage.database import transaction_scope
from storage.repositories import TradeRepository


# ============================================================
# TRADE EXECUTION TESTS
# ============================================================

class TestExecuteTrade:
    """Tests for opening positions."""

    def test_buy_debits_notional(self, ledger, make_account, balance_of):
        """Test a buy debits quantity * entry_price."""
        account_id = make_account(balance="100000.00")

        trade = ledger.execute_trade(account_id, "BTC", "crypto", "buy", "0.5", "50000")

        assert trade.status == TradeStatus.EXECUTED
        assert trade.direction == TradeDirection.BUY
        assert trade.quantity == Decimal("0.5")
        assert trade.entry_price == Decimal("50000")
        assert trade.exit_price is None
        assert trade.profit_loss is None
        assert trade.closed_at is None
        assert balance_of(account_id) == Decimal("75000.00")

    def test_sell_credits_notional(self, ledger, make_account, balance_of):
        """Test a sell credits quantity * entry_price."""
        account_id = make_account(balance="1000.00")

        ledger.execute_trade(account_id, "ETH", "crypto", "sell", "2", "3000")

        assert balance_of(account_id) == Decimal("7000.00")

    def test_sell_has_no_balance_precondition(self, ledger, make_account, balance_of):
        """Test a sell larger than the balance still executes."""
        account_id = make_account(balance="0.00")

        trade = ledger.execute_trade(account_id, "ETH", "crypto", "sell", "10", "3000")

        assert trade.status == TradeStatus.EXECUTED
        assert balance_of(account_id) == Decimal("30000.00")

    def test_buy_exactly_balance_allowed(self, ledger, make_account, balance_of):
        """Test a buy equal to the balance empties it."""
        account_id = make_account(balance="500.00")

        ledger.execute_trade(account_id, "AAPL", "stock", "buy", "5", "100")

        assert balance_of(account_id) == Decimal("0.00")

    def test_buy_insufficient_funds(self, ledger, make_account, balance_of):
        """Test a buy above the balance is rejected with no trade."""
        account_id = make_account(balance="100.00")

        with pytest.raises(InsufficientFundsError) as exc_info:
            ledger.execute_trade(account_id, "BTC", "crypto", "buy", "1", "50000")

        assert exc_info.value.required == Decimal("50000.00")
        assert exc_info.value.available == Decimal("100.00")
        assert balance_of(account_id) == Decimal("100.00")
        assert ledger.list_trades(account_id) == []

    def test_unknown_account(self, ledger):
        """Test executing for a missing account."""
        with pytest.raises(NotFoundError) as exc_info:
            ledger.execute_trade(999, "BTC", "crypto", "buy", "1", "1")
        assert exc_info.value.code == "NF_ACCOUNT"

    @pytest.mark.parametrize("quantity,price", [("0", "100"), ("-1", "100"), ("1", "0"), ("1", "-5")])
    def test_non_positive_amounts_rejected(self, ledger, make_account, quantity, price):
        """Test quantity and entry price must be > 0."""
        account_id = make_account()
        with pytest.raises(ValidationError):
            ledger.execute_trade(account_id, "BTC", "crypto", "buy", quantity, price)

    def test_float_input_rejected(self, ledger, make_account):
        """Test binary floats never enter the ledger."""
        account_id = make_account()
        with pytest.raises(ValidationError) as exc_info:
            ledger.execute_trade(account_id, "BTC", "crypto", "buy", 0.1, "100")
        assert exc_info.value.code == "VAL_NOT_DECIMAL"

    def test_unknown_direction_rejected(self, ledger, make_account):
        """Test only buy and sell are accepted."""
        account_id = make_account()
        with pytest.raises(ValidationError):
            ledger.execute_trade(account_id, "BTC", "crypto", "hold", "1", "100")

    def test_notional_rounds_half_up_to_cents(self, ledger, make_account, balance_of):
        """Test a sub-cent notional is rounded once, half up."""
        account_id = make_account(balance="100.00")

        # 0.125 * 1 = 0.125 -> 0.13
        ledger.execute_trade(account_id, "XRP", "crypto", "buy", "0.125", "1")

        assert balance_of(account_id) == Decimal("99.87")

    @pytest.mark.parametrize("direction", ["buy", "sell"])
    def test_zero_cent_notional_rejected(self, ledger, make_account, balance_of, direction):
        """Test a trade worth less than half a cent opens nothing."""
        account_id = make_account(balance="100.00")

        # 0.004 * 1 = 0.004 -> 0.00
        with pytest.raises(ValidationError) as excinfo:
            ledger.execute_trade(account_id, "XRP", "crypto", direction, "0.004", "1")

        assert excinfo.value.code == "VAL_NOTIONAL_ZERO"
        assert balance_of(account_id) == Decimal("100.00")
        assert ledger.list_trades(account_id) == []
        assert ledger.list_transactions(account_id) == []

    def test_execution_is_audited(self, ledger, make_account):
        """Test execution writes one completed trade transaction."""
        account_id = make_account(balance="1000.00")

        trade = ledger.execute_trade(account_id, "BTC", "crypto", "buy", "0.5", "100")

        txns = [t for t in ledger.list_transactions(account_id) if t.type.value == "trade"]
        assert len(txns) == 1
        assert txns[0].amount == Decimal("-50")
        assert txns[0].status.value == "completed"
        assert txns[0].reference_id == f"trade:{trade.id}:open"


# ============================================================
# TRADE CLOSURE TESTS
# ============================================================

class TestCloseTrade:
    """Tests for closing positions."""

    @pytest.mark.parametrize(
        "direction,entry,exit_price,expected",
        [
            ("buy", "100", "120", Decimal("20.00")),
            ("buy", "100", "80", Decimal("-20.00")),
            ("sell", "100", "80", Decimal("20.00")),
            ("sell", "100", "120", Decimal("-20.00")),
        ],
    )
    def test_conservation(self, ledger, make_account, balance_of, direction, entry, exit_price, expected):
        """Test balance moves by exactly profit_loss for every sign case."""
        account_id = make_account(balance="5000.00")
        trade = ledger.execute_trade(account_id, "SOL", "crypto", direction, "1", entry)
        before = balance_of(account_id)

        closed = ledger.close_trade(trade.id, exit_price)

        assert closed.profit_loss == expected
        assert balance_of(account_id) - before == closed.profit_loss

    def test_close_sets_terminal_fields(self, ledger, make_account):
        """Test status, exit price, profit/loss and close time are set together."""
        account_id = make_account(balance="5000.00")
        trade = ledger.execute_trade(account_id, "SOL", "crypto", "buy", "2", "100")

        closed = ledger.close_trade(trade.id, "110")

        assert closed.status == TradeStatus.CLOSED
        assert closed.exit_price == Decimal("110")
        assert closed.profit_loss == Decimal("20.00")
        assert closed.closed_at is not None

    def test_second_close_rejected(self, ledger, make_account, balance_of):
        """Test a closed trade cannot be closed again."""
        account_id = make_account(balance="5000.00")
        trade = ledger.execute_trade(account_id, "SOL", "crypto", "buy", "1", "100")
        ledger.close_trade(trade.id, "150")
        after_first = balance_of(account_id)

        with pytest.raises(InvalidStateError) as exc_info:
            ledger.close_trade(trade.id, "200")

        assert exc_info.value.code == "ST_TRADE_CLOSED"
        assert exc_info.value.current_state == "closed"
        assert balance_of(account_id) == after_first
        assert ledger.get_trade(trade.id).exit_price == Decimal("150")

    def test_cancelled_trade_rejected_distinctly(self, ledger, make_account, session_factory):
        """Test closing a cancelled trade reports the cancelled state."""
        account_id = make_account()
        with transaction_scope(session_factory) as session:
            trade = TradeRepository(session).create_trade(
                account_id, "SOL", "crypto", "buy", Decimal("1"), Decimal("10"), "cancelled"
            )
            trade_id = trade.id

        with pytest.raises(InvalidStateError) as exc_info:
            ledger.close_trade(trade_id, "20")
        assert exc_info.value.code == "ST_TRADE_CANCELLED"

    def test_pending_trade_cannot_be_closed(self, ledger, make_account, session_factory):
        """Test pending -> closed is not a valid shortcut."""
        account_id = make_account()
        with transaction_scope(session_factory) as session:
            trade = TradeRepository(session).create_trade(
                account_id, "SOL", "crypto", "buy", Decimal("1"), Decimal("10"), "pending"
            )
            trade_id = trade.id

        with pytest.raises(InvalidStateError) as exc_info:
            ledger.close_trade(trade_id, "20")
        assert exc_info.value.code == "ST_TRADE_PENDING"

    def test_unknown_trade(self, ledger):
        """Test closing a missing trade."""
        with pytest.raises(NotFoundError) as exc_info:
            ledger.close_trade(12345, "10")
        assert exc_info.value.code == "NF_TRADE"

    def test_non_positive_exit_price(self, ledger, make_account):
        """Test exit price must be > 0."""
        account_id = make_account()
        trade = ledger.execute_trade(account_id, "SOL", "crypto", "buy", "1", "10")
        with pytest.raises(ValidationError):
            ledger.close_trade(trade.id, "0")
        assert ledger.get_trade(trade.id).status == TradeStatus.EXECUTED

    def test_closure_is_audited(self, ledger, make_account):
        """Test closure writes the realized profit/loss as a transaction."""
        account_id = make_account()
        trade = ledger.execute_trade(account_id, "SOL", "crypto", "sell", "1", "100")

        ledger.close_trade(trade.id, "90")

        refs = {t.reference_id: t.amount for t in ledger.list_transactions(account_id)}
        assert refs[f"trade:{trade.id}:close"] == Decimal("10")


class TestListTrades:
    """Tests for trade reads."""

    def test_filter_by_status(self, ledger, make_account):
        """Test listing trades by status."""
        account_id = make_account()
        first = ledger.execute_trade(account_id, "A", "stock", "buy", "1", "10")
        ledger.execute_trade(account_id, "B", "stock", "buy", "1", "10")
        ledger.close_trade(first.id, "11")

        closed = ledger.list_trades(account_id, status="closed")
        executed = ledger.list_trades(account_id, status="executed")

        assert [t.symbol for t in closed] == ["A"]
        assert [t.symbol for t in executed] == ["B"]

    def test_unknown_status_filter(self, ledger, make_account):
        """Test an unknown status is a validation error."""
        account_id = make_account()
        with pytest.raises(ValidationError):
            ledger.list_trades(account_id, status="open")
