"""
End-to-end ledger scenarios.

============================================================
PURPOSE
============================================================
Walk one account through the life of a position, a paid
subscription, a wallet funding and a stale copy request,
checking balances and the transaction log after each step.

============================================================
"""

from decimal import Decimal

import pytest

from ledger_engine import (
    InvalidStateError,
    TradeStatus,
    TransactionStatus,
    TransactionType,
)


class TestPositionLifecycle:
    """Tests for open, close and double close of one position."""

    @pytest.fixture
    def opened(self, ledger, make_account):
        account_id = make_account(balance="100000.00")
        trade = ledger.execute_trade(account_id, "BTC", "crypto", "buy", "0.5", "50000")
        return account_id, trade

    def test_buy_debits_notional(self, opened, balance_of):
        """Test buying 0.5 @ 50000 leaves 75000."""
        account_id, trade = opened
        assert trade.status == TradeStatus.EXECUTED
        assert balance_of(account_id) == Decimal("75000.00")

    def test_close_credits_profit(self, ledger, opened, balance_of):
        """Test closing @ 55000 realizes 2500."""
        account_id, trade = opened

        closed = ledger.close_trade(trade.id, "55000")

        assert closed.status == TradeStatus.CLOSED
        assert closed.profit_loss == Decimal("2500.00")
        assert closed.closed_at is not None
        assert balance_of(account_id) == Decimal("77500.00")

    def test_second_close_rejected(self, ledger, opened, balance_of):
        """Test a second close fails and leaves the balance alone."""
        account_id, trade = opened
        ledger.close_trade(trade.id, "55000")

        with pytest.raises(InvalidStateError):
            ledger.close_trade(trade.id, "60000")

        assert balance_of(account_id) == Decimal("77500.00")
        assert ledger.get_trade(trade.id).exit_price == Decimal("55000")


class TestSubscriptionPurchase:
    """Tests for a paid subscription."""

    def test_subscription_debits_price(self, ledger, make_account, make_trader, balance_of):
        """Test a 150 subscription leaves 350 of 500."""
        trader = make_trader(subscription_price="150.00")
        subscriber = make_account(balance="500.00")

        subscription = ledger.create_subscription(subscriber, trader.id, "150")

        assert subscription.price_paid == Decimal("150")
        assert balance_of(subscriber) == Decimal("350.00")
        assert [s.id for s in ledger.list_subscriptions(subscriber)] == [subscription.id]


class TestWalletFunding:
    """Tests for first funding of a currency."""

    def test_first_funding_creates_wallet(self, ledger, make_account):
        """Test funding 1.5 BTC creates the wallet and one log row."""
        account_id = make_account()

        wallet = ledger.fund_wallet(account_id, "BTC", "1.5")

        assert wallet.currency == "BTC"
        assert wallet.balance == Decimal("1.5")
        assert wallet.available_balance == Decimal("1.5")
        assert wallet.locked_balance == Decimal("0")

        transactions = ledger.list_transactions(account_id)
        assert len(transactions) == 1
        assert transactions[0].type == TransactionType.FUND_WALLET
        assert transactions[0].status == TransactionStatus.COMPLETED
        assert transactions[0].amount == Decimal("1.5")
        assert transactions[0].currency == "BTC"


class TestStaleSignal:
    """Tests for copying a withdrawn signal."""

    def test_inactive_signal_creates_nothing(self, ledger, make_account, make_trader):
        """Test copying an inactive signal writes no trade or copy row."""
        trader = make_trader(subscription_price="10.00")
        follower = make_account(balance="1000.00")
        ledger.create_subscription(follower, trader.id, "10")
        signal = ledger.create_signal(trader.id, "ETH", "crypto", "sell", "3000")
        ledger.deactivate_signal(signal.id)

        with pytest.raises(InvalidStateError) as exc_info:
            ledger.copy_trade(follower, trader.id, signal.id)

        assert exc_info.value.code == "ST_SIGNAL_INACTIVE"
        assert ledger.list_trades(follower) == []
        assert ledger.get_copy_trade_history(follower) == []
