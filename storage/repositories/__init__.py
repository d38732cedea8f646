"""
Storage Repositories Package.

Data access layer for the ledger store. Repositories never
commit; the caller's transaction_scope() owns the boundary.
"""

from storage.repositories.base import BaseRepository, describe_constraint
from storage.repositories.exceptions import (
    RepositoryException,
    RecordNotFoundError,
    DuplicateRecordError,
    StoreError,
    ImmutableRecordError,
)
from storage.repositories.accounts import AccountRepository, TraderRepository
from storage.repositories.trading import (
    TradeRepository,
    SignalRepository,
    SubscriptionRepository,
    CopyTradeRepository,
)
from storage.repositories.funds import WalletRepository, TransactionRepository

__all__ = [
    "BaseRepository",
    "describe_constraint",
    # Exceptions
    "RepositoryException",
    "RecordNotFoundError",
    "DuplicateRecordError",
    "StoreError",
    "ImmutableRecordError",
    # Repositories
    "AccountRepository",
    "TraderRepository",
    "TradeRepository",
    "SignalRepository",
    "SubscriptionRepository",
    "CopyTradeRepository",
    "WalletRepository",
    "TransactionRepository",
]
