"""
Tests for the storage layer: atomic updates, guards and
constraint translation.
"""

from decimal import Decimal

import pytest
from sqlalchemy import text

from storage.database import REQUIRED_TABLES, transaction_scope, verify_required_tables
from storage.models.base import ASSET, CASH, utc_now
from storage.repositories import (
    AccountRepository,
    DuplicateRecordError,
    ImmutableRecordError,
    RecordNotFoundError,
    SignalRepository,
    StoreError,
    TradeRepository,
    TransactionRepository,
    WalletRepository,
)


class TestSchema:
    """Tests for schema creation."""

    def test_all_tables_created(self, engine):
        """Test every ledger table exists."""
        assert verify_required_tables(engine) == []
        assert "wallets" in REQUIRED_TABLES


class TestAccountRepository:
    """Tests for balance statements."""

    def test_adjust_balance(self, session_factory):
        """Test increments are applied in the store."""
        with transaction_scope(session_factory) as session:
            accounts = AccountRepository(session)
            account = accounts.create_account("a@example.com", "a", Decimal("100.00"))
            accounts.adjust_balance(account.id, Decimal("-30.25"))
            assert accounts.get_balance(account.id) == Decimal("69.75")

    def test_adjust_missing_account(self, session_factory):
        """Test adjusting an unknown account raises."""
        with pytest.raises(RecordNotFoundError):
            with transaction_scope(session_factory) as session:
                AccountRepository(session).adjust_balance(99, Decimal("1"))

    def test_conditional_debit(self, session_factory):
        """Test a debit applies only when covered."""
        with transaction_scope(session_factory) as session:
            accounts = AccountRepository(session)
            account = accounts.create_account("b@example.com", "b", Decimal("50.00"))

            assert accounts.debit_if_sufficient(account.id, Decimal("50.00"))
            assert not accounts.debit_if_sufficient(account.id, Decimal("0.01"))
            assert accounts.get_balance(account.id) == Decimal("0.00")

    def test_duplicate_username(self, session_factory):
        """Test uniqueness is reported by the store."""
        with transaction_scope(session_factory) as session:
            AccountRepository(session).create_account("c@example.com", "c", Decimal("0"))

        with pytest.raises(DuplicateRecordError) as exc_info:
            with transaction_scope(session_factory) as session:
                AccountRepository(session).create_account("other@example.com", "c", Decimal("0"))
        assert "username" in exc_info.value.constraint

    def test_rollback_on_error(self, session_factory):
        """Test nothing from a failed scope is committed."""
        with pytest.raises(RuntimeError):
            with transaction_scope(session_factory) as session:
                AccountRepository(session).create_account("d@example.com", "d", Decimal("1"))
                raise RuntimeError("boom")

        with transaction_scope(session_factory) as session:
            from sqlalchemy import select
            from storage.models import User
            assert session.execute(select(User)).scalars().all() == []


class TestTradeRepository:
    """Tests for the status-guarded close."""

    def test_mark_closed_once(self, session_factory):
        """Test the second guarded close matches no row."""
        with transaction_scope(session_factory) as session:
            account = AccountRepository(session).create_account("e@example.com", "e", Decimal("0"))
            trades = TradeRepository(session)
            trade = trades.create_trade(account.id, "X", "stock", "buy", Decimal("1"), Decimal("1"), "executed")

            assert trades.mark_closed(trade.id, "executed", "closed", Decimal("2"), Decimal("1"), utc_now())
            assert not trades.mark_closed(trade.id, "executed", "closed", Decimal("3"), Decimal("2"), utc_now())
            assert trades.get_trade(trade.id, refresh=True).exit_price == Decimal("2")


class TestFundsRepositories:
    """Tests for wallets and the transaction log."""

    def test_credit_missing_wallet(self, session_factory):
        """Test crediting reports a missing wallet."""
        with transaction_scope(session_factory) as session:
            account = AccountRepository(session).create_account("f@example.com", "f", Decimal("0"))
            assert not WalletRepository(session).credit(account.id, "BTC", Decimal("1"))

    def test_credit_leaves_locked(self, session_factory):
        """Test locked balance is untouched by credits."""
        with transaction_scope(session_factory) as session:
            account = AccountRepository(session).create_account("g@example.com", "g", Decimal("0"))
            wallets = WalletRepository(session)
            wallets.create_wallet(account.id, "BTC", Decimal("3"), locked_balance=Decimal("1"))

            assert wallets.credit(account.id, "BTC", Decimal("2"))
            wallet = wallets.get_wallet(account.id, "BTC", refresh=True)
            assert wallet.balance == Decimal("5")
            assert wallet.available_balance == Decimal("4")
            assert wallet.locked_balance == Decimal("1")

    def test_duplicate_wallet(self, session_factory):
        """Test one wallet per (account, currency)."""
        with transaction_scope(session_factory) as session:
            account = AccountRepository(session).create_account("h@example.com", "h", Decimal("0"))
            account_id = account.id
            WalletRepository(session).create_wallet(account_id, "BTC", Decimal("1"))

        with pytest.raises(DuplicateRecordError):
            with transaction_scope(session_factory) as session:
                WalletRepository(session).create_wallet(account_id, "BTC", Decimal("1"))

    def test_processed_transaction_is_immutable(self, session_factory):
        """Test a processed transaction cannot change status."""
        with transaction_scope(session_factory) as session:
            account = AccountRepository(session).create_account("i@example.com", "i", Decimal("0"))
            txns = TransactionRepository(session)
            pending = txns.record_transaction(account.id, "deposit", Decimal("5"), "USD", "pending")
            done = txns.record_transaction(
                account.id, "deposit", Decimal("5"), "USD", "completed", processed_at=utc_now()
            )

            updated = txns.update_status(pending.id, "completed", processed_at=utc_now())
            assert updated.status == "completed"
            with pytest.raises(ImmutableRecordError):
                txns.update_status(done.id, "cancelled")


class TestExactDecimalColumns:
    """Tests for amount storage without float."""

    def test_sqlite_stores_decimal_text(self, session_factory):
        """Test SQLite keeps the full-scale decimal text of a balance."""
        with transaction_scope(session_factory) as session:
            account = AccountRepository(session).create_account(
                "j@example.com", "j", Decimal("9999999999999999.99")
            )
            account_id = account.id

        with transaction_scope(session_factory) as session:
            row = session.execute(
                text("SELECT virtual_balance, typeof(virtual_balance) FROM users WHERE id = :id"),
                {"id": account_id},
            ).one()
            assert tuple(row) == ("9999999999999999.99", "text")
            assert AccountRepository(session).get_balance(account_id) == Decimal("9999999999999999.99")

    def test_sqlite_increment_is_exact(self, session_factory):
        """Test an increment on a 20-digit wallet keeps the last satoshi."""
        with transaction_scope(session_factory) as session:
            account = AccountRepository(session).create_account("k@example.com", "k", Decimal("0"))
            wallets = WalletRepository(session)
            wallets.create_wallet(account.id, "BTC", Decimal("123456789012.12345678"))

            assert wallets.credit(account.id, "BTC", Decimal("0.00000001"))
            wallet = wallets.get_wallet(account.id, "BTC", refresh=True)
            assert wallet.balance == Decimal("123456789012.12345679")
            assert wallet.available_balance == Decimal("123456789012.12345679")

    def test_bind_rounds_half_up_to_scale(self, engine):
        """Test values are quantized to the column scale on the way in."""
        assert CASH.process_bind_param(Decimal("1.005"), engine.dialect) == "1.01"
        assert ASSET.process_bind_param("2", engine.dialect) == "2.00000000"
        assert CASH.process_result_value("0.10", engine.dialect) == Decimal("0.10")

    def test_float_rejected(self, session_factory):
        """Test a float never reaches an amount column."""
        with pytest.raises(StoreError):
            with transaction_scope(session_factory) as session:
                AccountRepository(session).create_account("l@example.com", "l", 0.1)


class TestUpdateStatements:
    """Tests for profile and signal updates."""

    def test_update_profile(self, session_factory):
        """Test profile columns change and the balance does not."""
        with transaction_scope(session_factory) as session:
            accounts = AccountRepository(session)
            account = accounts.create_account("m@example.com", "m", Decimal("42.00"))

            assert accounts.update_profile(account.id, country="VN", is_verified=True) == 1
            stored = accounts.get_account(account.id, refresh=True)
            assert (stored.country, stored.is_verified) == ("VN", True)
            assert stored.virtual_balance == Decimal("42.00")

    def test_update_profile_missing_account(self, session_factory):
        """Test a missing account matches no row."""
        with transaction_scope(session_factory) as session:
            assert AccountRepository(session).update_profile(99, country="VN") == 0

    def test_balance_is_not_a_profile_field(self, session_factory):
        """Test the balance cannot be written through a profile update."""
        with transaction_scope(session_factory) as session:
            with pytest.raises(ValueError):
                AccountRepository(session).update_profile(1, virtual_balance=Decimal("1"))

    def test_entry_price_is_not_mutable(self, session_factory):
        """Test published entry prices cannot be rewritten."""
        with transaction_scope(session_factory) as session:
            with pytest.raises(ValueError):
                SignalRepository(session).update_signal(1, entry_price=Decimal("1"))
