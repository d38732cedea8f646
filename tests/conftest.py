"""
Shared fixtures for ledger tests.

Every test gets its own SQLite file under tmp_path so that
several connections (and threads) can share one database.
"""

import itertools
from decimal import Decimal

import pytest

from ledger_engine import LedgerConfig, LedgerService
from storage.database import (
    create_all_tables,
    create_database_engine,
    create_session_factory,
    transaction_scope,
)
from storage.repositories import AccountRepository


# ============================================================
# DATABASE
# ============================================================

@pytest.fixture
def database_url(tmp_path):
    """URL of a fresh SQLite file."""
    return f"sqlite:///{tmp_path / 'ledger.db'}"


@pytest.fixture
def engine(database_url):
    """Engine with the full schema created."""
    engine = create_database_engine(database_url)
    create_all_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def ledger(session_factory):
    """Ledger service bound to the test database."""
    return LedgerService(session_factory, LedgerConfig.for_testing())


# ============================================================
# FACTORIES
# ============================================================

@pytest.fixture
def set_balance(session_factory):
    """Force an account's virtual balance to an exact value."""
    def _set(account_id, balance):
        with transaction_scope(session_factory) as session:
            accounts = AccountRepository(session)
            current = accounts.get_balance(account_id)
            accounts.adjust_balance(account_id, Decimal(balance) - current)
    return _set


@pytest.fixture
def make_account(ledger, set_balance):
    """Create an account, optionally with a given balance. Returns its id."""
    counter = itertools.count(1)

    def _make(balance=None, username=None):
        name = username or f"user{next(counter)}"
        record = ledger.create_account(email=f"{name}@example.com", username=name)
        if balance is not None:
            set_balance(record.id, balance)
        return record.id
    return _make


@pytest.fixture
def make_trader(ledger, make_account):
    """Create an account with a trader profile. Returns the TraderRecord."""
    def _make(subscription_price="150.00", username=None):
        account_id = make_account(username=username)
        return ledger.create_trader(account_id, f"Trader {account_id}", subscription_price)
    return _make


@pytest.fixture
def balance_of(ledger):
    """Current virtual balance of an account."""
    def _balance(account_id):
        return ledger.get_account(account_id).virtual_balance
    return _balance
