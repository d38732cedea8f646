"""
Ledger Engine - Types.

============================================================
PURPOSE
============================================================
Status enums and plain records returned by ledger operations.

Records are detached snapshots built from ORM rows inside the
operation's transaction. Monetary fields are Decimal end to end.

============================================================
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any
from dataclasses import dataclass, asdict
from enum import Enum


# ============================================================
# ENUMS
# ============================================================

class TradeDirection(Enum):
    """Trade direction."""

    BUY = "buy"
    SELL = "sell"


class TradeStatus(Enum):
    """
    Trade lifecycle state.

    State Machine:

        PENDING
           │
           ▼
        EXECUTED ──────► CANCELLED
           │
           ▼
         CLOSED
    """

    PENDING = "pending"
    EXECUTED = "executed"
    CLOSED = "closed"
    CANCELLED = "cancelled"

    def is_terminal(self) -> bool:
        return self in (TradeStatus.CLOSED, TradeStatus.CANCELLED)


class SubscriptionStatus(Enum):
    """Subscription lifecycle state."""

    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"

    def is_terminal(self) -> bool:
        return self is not SubscriptionStatus.ACTIVE


class CopyTradeStatus(Enum):
    """Copy-trade outcome."""

    PENDING = "pending"
    EXECUTED = "executed"
    FAILED = "failed"

    def is_terminal(self) -> bool:
        return self is not CopyTradeStatus.PENDING


class TransactionType(Enum):
    """Kind of monetary event."""

    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRADE = "trade"
    SUBSCRIPTION = "subscription"
    FUND_WALLET = "fund_wallet"


class TransactionStatus(Enum):
    """Transaction processing state."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


# ============================================================
# RECORDS
# ============================================================

class _Record:
    """Shared serialization for record dataclasses."""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Enum):
                data[key] = value.value
        return data


@dataclass(frozen=True)
class AccountRecord(_Record):
    """User account snapshot."""

    id: int
    email: str
    username: str
    first_name: str
    last_name: str
    virtual_balance: Decimal
    is_verified: bool
    created_at: datetime
    updated_at: datetime
    phone: Optional[str] = None
    country: Optional[str] = None

    @classmethod
    def from_model(cls, model) -> "AccountRecord":
        return cls(
            id=model.id,
            email=model.email,
            username=model.username,
            first_name=model.first_name,
            last_name=model.last_name,
            virtual_balance=Decimal(model.virtual_balance),
            is_verified=model.is_verified,
            created_at=model.created_at,
            updated_at=model.updated_at,
            phone=model.phone,
            country=model.country,
        )


@dataclass(frozen=True)
class TraderRecord(_Record):
    """Trader profile snapshot."""

    id: int
    user_id: int
    display_name: str
    subscription_price: Decimal
    total_followers: int
    trades_won: int
    trades_lost: int
    profit_percentage: Decimal
    win_rate: Decimal
    created_at: datetime
    bio: Optional[str] = None

    @classmethod
    def from_model(cls, model) -> "TraderRecord":
        return cls(
            id=model.id,
            user_id=model.user_id,
            display_name=model.display_name,
            subscription_price=Decimal(model.subscription_price),
            total_followers=model.total_followers,
            trades_won=model.trades_won,
            trades_lost=model.trades_lost,
            profit_percentage=Decimal(model.profit_percentage),
            win_rate=Decimal(model.win_rate),
            created_at=model.created_at,
            bio=model.bio,
        )


@dataclass(frozen=True)
class TradeRecord(_Record):
    """Trade snapshot. Terminal fields are None until closed."""

    id: int
    user_id: int
    symbol: str
    asset_type: str
    direction: TradeDirection
    quantity: Decimal
    entry_price: Decimal
    status: TradeStatus
    created_at: datetime
    exit_price: Optional[Decimal] = None
    profit_loss: Optional[Decimal] = None
    closed_at: Optional[datetime] = None

    @property
    def notional(self) -> Decimal:
        return self.quantity * self.entry_price

    @classmethod
    def from_model(cls, model) -> "TradeRecord":
        return cls(
            id=model.id,
            user_id=model.user_id,
            symbol=model.symbol,
            asset_type=model.asset_type,
            direction=TradeDirection(model.trade_type),
            quantity=Decimal(model.quantity),
            entry_price=Decimal(model.entry_price),
            status=TradeStatus(model.status),
            created_at=model.created_at,
            exit_price=Decimal(model.exit_price) if model.exit_price is not None else None,
            profit_loss=Decimal(model.profit_loss) if model.profit_loss is not None else None,
            closed_at=model.closed_at,
        )


@dataclass(frozen=True)
class SubscriptionRecord(_Record):
    """Subscription snapshot."""

    id: int
    subscriber_id: int
    trader_id: int
    status: SubscriptionStatus
    price_paid: Decimal
    start_date: datetime
    end_date: Optional[datetime] = None

    @classmethod
    def from_model(cls, model) -> "SubscriptionRecord":
        return cls(
            id=model.id,
            subscriber_id=model.subscriber_id,
            trader_id=model.trader_id,
            status=SubscriptionStatus(model.status),
            price_paid=Decimal(model.price_paid),
            start_date=model.start_date,
            end_date=model.end_date,
        )


@dataclass(frozen=True)
class SignalRecord(_Record):
    """Signal snapshot."""

    id: int
    trader_id: int
    symbol: str
    asset_type: str
    direction: TradeDirection
    entry_price: Decimal
    is_active: bool
    created_at: datetime
    target_price: Optional[Decimal] = None
    stop_loss: Optional[Decimal] = None
    description: Optional[str] = None
    expires_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, model) -> "SignalRecord":
        return cls(
            id=model.id,
            trader_id=model.trader_id,
            symbol=model.symbol,
            asset_type=model.asset_type,
            direction=TradeDirection(model.signal_type),
            entry_price=Decimal(model.entry_price),
            is_active=model.is_active,
            created_at=model.created_at,
            target_price=Decimal(model.target_price) if model.target_price is not None else None,
            stop_loss=Decimal(model.stop_loss) if model.stop_loss is not None else None,
            description=model.description,
            expires_at=model.expires_at,
        )


@dataclass(frozen=True)
class CopyTradeRecord(_Record):
    """Copy-trade link snapshot."""

    id: int
    subscriber_id: int
    trader_id: int
    signal_id: int
    copied_trade_id: Optional[int]
    status: CopyTradeStatus
    created_at: datetime
    executed_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, model) -> "CopyTradeRecord":
        return cls(
            id=model.id,
            subscriber_id=model.subscriber_id,
            trader_id=model.trader_id,
            signal_id=model.signal_id,
            copied_trade_id=model.copied_trade_id,
            status=CopyTradeStatus(model.status),
            created_at=model.created_at,
            executed_at=model.executed_at,
        )


@dataclass(frozen=True)
class WalletRecord(_Record):
    """Wallet snapshot."""

    id: int
    user_id: int
    currency: str
    balance: Decimal
    available_balance: Decimal
    locked_balance: Decimal
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, model) -> "WalletRecord":
        return cls(
            id=model.id,
            user_id=model.user_id,
            currency=model.currency,
            balance=Decimal(model.balance),
            available_balance=Decimal(model.available_balance),
            locked_balance=Decimal(model.locked_balance),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


@dataclass(frozen=True)
class TransactionRecord(_Record):
    """Transaction audit snapshot."""

    id: int
    user_id: int
    type: TransactionType
    amount: Decimal
    currency: str
    status: TransactionStatus
    created_at: datetime
    description: Optional[str] = None
    reference_id: Optional[str] = None
    processed_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, model) -> "TransactionRecord":
        return cls(
            id=model.id,
            user_id=model.user_id,
            type=TransactionType(model.type),
            amount=Decimal(model.amount),
            currency=model.currency,
            status=TransactionStatus(model.status),
            created_at=model.created_at,
            description=model.description,
            reference_id=model.reference_id,
            processed_at=model.processed_at,
        )


__all__ = [
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
