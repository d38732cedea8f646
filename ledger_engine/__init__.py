"""
Ledger Engine Package.

Balance-and-ledger operations of the trading simulator.

Modules:
- types: Status enums and records
- errors: Error taxonomy
- calculations: Decimal arithmetic and input checks
- state_machine: Status transition tables
- config: Configuration
- service: LedgerService (all operations)
"""

from .config import ApiConfig, DatabaseConfig, LedgerConfig
from .errors import (
    ConflictError,
    ErrorKind,
    InsufficientFundsError,
    InvalidStateError,
    LedgerError,
    MismatchError,
    NotFoundError,
    PriceTooLowError,
    UnauthorizedError,
    ValidationError,
)
from .service import LedgerService
from .state_machine import TransitionGuard
from .types import (
    AccountRecord,
    CopyTradeRecord,
    CopyTradeStatus,
    SignalRecord,
    SubscriptionRecord,
    SubscriptionStatus,
    TradeDirection,
    TradeRecord,
    TradeStatus,
    TraderRecord,
    TransactionRecord,
    TransactionStatus,
    TransactionType,
    WalletRecord,
)

__all__ = [
    # Service
    "LedgerService",
    # Config
    "ApiConfig",
    "DatabaseConfig",
    "LedgerConfig",
    # Errors
    "ErrorKind",
    "LedgerError",
    "NotFoundError",
    "InvalidStateError",
    "InsufficientFundsError",
    "PriceTooLowError",
    "MismatchError",
    "UnauthorizedError",
    "ConflictError",
    "ValidationError",
    # State machine
    "TransitionGuard",
    # Types
    "TradeDirection",
    "TradeStatus",
    "SubscriptionStatus",
    "CopyTradeStatus",
    "TransactionType",
    "TransactionStatus",
    "AccountRecord",
    "TraderRecord",
    "TradeRecord",
    "SubscriptionRecord",
    "SignalRecord",
    "CopyTradeRecord",
    "WalletRecord",
    "TransactionRecord",
]
