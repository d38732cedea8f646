"""
Tests for Accounts and Trader Profiles.

============================================================
PURPOSE
============================================================
1. New accounts open with the starting balance and a wallet
2. Profile updates never move the balance
3. Trader profiles are one per account

============================================================
"""

from decimal import Decimal

import pytest

from ledger_engine import ConflictError, NotFoundError, ValidationError


# ============================================================
# ACCOUNT TESTS
# ============================================================

class TestCreateAccount:
    """Tests for opening accounts."""

    def test_starting_balance_and_wallet(self, ledger):
        """Test a new account gets the configured balance in both places."""
        account = ledger.create_account("carol@example.com", "carol", first_name="Carol")

        assert account.virtual_balance == Decimal("10000.00")
        assert account.is_verified is False
        wallets = ledger.list_wallets(account.id)
        assert [(w.currency, w.balance) for w in wallets] == [("USD", Decimal("10000"))]

    def test_duplicate_email(self, ledger):
        """Test a taken email is a conflict."""
        ledger.create_account("dup@example.com", "first")
        with pytest.raises(ConflictError) as exc_info:
            ledger.create_account("dup@example.com", "second")
        assert exc_info.value.code == "CF_DUPLICATE_ACCOUNT"


class TestUpdateAccount:
    """Tests for profile updates."""

    def test_update_profile_fields(self, ledger, make_account, balance_of):
        """Test names, phone and country change; the balance does not."""
        account_id = make_account(balance="123.45")

        account = ledger.update_account(
            account_id, first_name="Dana", last_name="Nguyen", phone="+84 90 000", country="VN"
        )

        assert (account.first_name, account.last_name) == ("Dana", "Nguyen")
        assert account.phone == "+84 90 000"
        assert account.country == "VN"
        assert balance_of(account_id) == Decimal("123.45")

    def test_verify_account(self, ledger, make_account):
        """Test the verified flag can be set and cleared."""
        account_id = make_account()

        assert ledger.update_account(account_id, is_verified=True).is_verified is True
        assert ledger.update_account(account_id, is_verified=False).is_verified is False

    def test_omitted_fields_kept(self, ledger):
        """Test None arguments leave stored values alone."""
        account = ledger.create_account("erin@example.com", "erin", first_name="Erin", country="DE")

        updated = ledger.update_account(account.id, last_name="Roe")

        assert updated.first_name == "Erin"
        assert updated.country == "DE"
        assert updated.last_name == "Roe"

    def test_unknown_account(self, ledger):
        """Test updating a missing account raises NotFound."""
        with pytest.raises(NotFoundError):
            ledger.update_account(404, country="VN")
        with pytest.raises(NotFoundError):
            ledger.update_account(404)

    def test_overlong_field_rejected(self, ledger, make_account):
        """Test field lengths are checked before writing."""
        account_id = make_account()
        with pytest.raises(ValidationError):
            ledger.update_account(account_id, country="X" * 65)
        assert ledger.get_account(account_id).country is None


# ============================================================
# TRADER PROFILE TESTS
# ============================================================

class TestCreateTrader:
    """Tests for trader profiles."""

    def test_one_profile_per_account(self, ledger, make_account):
        """Test a second profile for the same account is a conflict."""
        account_id = make_account()
        trader = ledger.create_trader(account_id, "Frank", "25.00")
        assert ledger.get_trader(trader.id).subscription_price == Decimal("25.00")

        with pytest.raises(ConflictError) as exc_info:
            ledger.create_trader(account_id, "Frank again", "30.00")
        assert exc_info.value.code == "CF_DUPLICATE_TRADER"

    def test_unknown_account(self, ledger):
        """Test a profile needs an existing account."""
        with pytest.raises(NotFoundError):
            ledger.create_trader(404, "Ghost", "10")
