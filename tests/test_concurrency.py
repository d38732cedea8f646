"""
Concurrency regression tests.

============================================================
PURPOSE
============================================================
Concurrent operations against one account or wallet must not
lose each other's updates:
1. M concurrent fundings of a leave balance == M * a
2. Concurrent closures of different trades all land
3. Concurrent closures of one trade apply once
4. Concurrent buys never overdraw

============================================================
"""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

from ledger_engine import InsufficientFundsError, InvalidStateError


WORKERS = 8


def _run_all(fn, args_list):
    """Run fn over args_list in parallel and return (results, errors)."""
    results, errors = [], []
    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        futures = [pool.submit(fn, *args) for args in args_list]
        for future in futures:
            try:
                results.append(future.result())
            except Exception as e:
                errors.append(e)
    return results, errors


class TestConcurrentFunding:
    """Tests for parallel wallet funding."""

    def test_fresh_wallet_no_lost_updates(self, ledger, make_account):
        """Test M parallel fundings of a fresh wallet sum exactly."""
        account_id = make_account()
        m = 20

        _, errors = _run_all(ledger.fund_wallet, [(account_id, "BTC", "0.5")] * m)

        assert errors == []
        wallet = {w.currency: w for w in ledger.list_wallets(account_id)}["BTC"]
        assert wallet.balance == Decimal("0.5") * m
        assert wallet.available_balance == Decimal("0.5") * m
        assert wallet.locked_balance == Decimal("0")
        assert len(ledger.list_transactions(account_id)) == m

    def test_same_reference_applies_once(self, ledger, make_account):
        """Test parallel replays of one reference credit once."""
        account_id = make_account()

        _, errors = _run_all(
            ledger.fund_wallet,
            [(account_id, "ETH", "2", "deposit-1")] * 10,
        )

        assert errors == []
        wallet = {w.currency: w for w in ledger.list_wallets(account_id)}["ETH"]
        assert wallet.balance == Decimal("2")


class TestConcurrentTrades:
    """Tests for parallel trade operations on one account."""

    def test_parallel_closures_all_land(self, ledger, make_account, balance_of):
        """Test closing different trades in parallel loses no profit."""
        account_id = make_account(balance="10000.00")
        trades = [
            ledger.execute_trade(account_id, "SOL", "crypto", "buy", "1", "100")
            for _ in range(10)
        ]
        before = balance_of(account_id)

        results, errors = _run_all(ledger.close_trade, [(t.id, "110") for t in trades])

        assert errors == []
        assert sum(r.profit_loss for r in results) == Decimal("100.00")
        assert balance_of(account_id) == before + Decimal("100.00")

    def test_parallel_double_close_applies_once(self, ledger, make_account, balance_of):
        """Test racing closures of one trade credit once."""
        account_id = make_account(balance="1000.00")
        trade = ledger.execute_trade(account_id, "SOL", "crypto", "buy", "1", "100")
        before = balance_of(account_id)

        results, errors = _run_all(ledger.close_trade, [(trade.id, "150")] * 6)

        assert len(results) == 1
        assert len(errors) == 5
        assert all(isinstance(e, InvalidStateError) for e in errors)
        assert balance_of(account_id) == before + Decimal("50.00")

    def test_parallel_buys_never_overdraw(self, ledger, make_account, balance_of):
        """Test racing buys stop exactly when the balance runs out."""
        account_id = make_account(balance="1000.00")

        results, errors = _run_all(
            ledger.execute_trade,
            [(account_id, "AAPL", "stock", "buy", "1", "150")] * 10,
        )

        assert len(results) == 6
        assert len(errors) == 4
        assert all(isinstance(e, InsufficientFundsError) for e in errors)
        assert balance_of(account_id) == Decimal("100.00")
