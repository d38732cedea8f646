"""
Storage Models Package.

This package contains all ORM models for the ledger database.
Models are organized by domain.

============================================================
MODEL ORGANIZATION
============================================================

Domain 1: Accounts (accounts.py)
- User
- Trader

Domain 2: Trading (trading.py)
- Trade
- Signal
- Subscription
- CopyTrade

Domain 3: Funds (funds.py)
- Wallet
- Transaction

============================================================
DESIGN PRINCIPLES
============================================================

- All models use explicit column definitions
- Monetary columns are fixed-point NUMERIC, never FLOAT
- Uniqueness is enforced by the database, not by pre-queries
- No business logic in models

============================================================
"""

from storage.models.base import ASSET, CASH, Base, TimestampMixin, utc_now

from storage.models.accounts import (
    User,
    Trader,
)

from storage.models.trading import (
    Trade,
    Signal,
    Subscription,
    CopyTrade,
)

from storage.models.funds import (
    Wallet,
    Transaction,
)

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "CASH",
    "ASSET",
    "utc_now",
    # Accounts
    "User",
    "Trader",
    # Trading
    "Trade",
    "Signal",
    "Subscription",
    "CopyTrade",
    # Funds
    "Wallet",
    "Transaction",
]
