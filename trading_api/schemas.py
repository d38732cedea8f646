"""
Pydantic Schemas for the Ledger API.

Amounts are Decimal in both directions. Requests accept JSON
numbers or decimal strings; responses render decimals as exact
decimal text.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from enum import Enum

from pydantic import BaseModel, Field


# =============================================================
# ENUMS
# =============================================================

class DirectionEnum(str, Enum):
    BUY = "buy"
    SELL = "sell"


class TradeStatusEnum(str, Enum):
    PENDING = "pending"
    EXECUTED = "executed"
    CLOSED = "closed"
    CANCELLED = "cancelled"


# =============================================================
# REQUEST SCHEMAS
# =============================================================

class ExecuteTradeRequest(BaseModel):
    """Open a position."""
    account_id: int
    symbol: str = Field(..., min_length=1, max_length=32)
    asset_type: str = Field(..., min_length=1, max_length=32)
    direction: DirectionEnum
    quantity: Decimal = Field(..., gt=0)
    entry_price: Decimal = Field(..., gt=0)


class CloseTradeRequest(BaseModel):
    """Close an executed trade."""
    trade_id: int
    exit_price: Decimal = Field(..., gt=0)


class CreateSubscriptionRequest(BaseModel):
    """Buy a subscription to a trader."""
    subscriber_id: int
    trader_id: int
    price_paid: Decimal = Field(..., gt=0)


class CancelSubscriptionRequest(BaseModel):
    subscription_id: int


class FundWalletRequest(BaseModel):
    """Credit a per-currency wallet."""
    account_id: int
    currency: str = Field(..., min_length=1, max_length=16)
    amount: Decimal = Field(..., gt=0)
    external_reference: Optional[str] = Field(None, max_length=128)


class CopyTradeRequest(BaseModel):
    """Copy a trader's signal into the subscriber's account."""
    subscriber_id: int
    trader_id: int
    signal_id: int


class CreateAccountRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    username: str = Field(..., min_length=1, max_length=64)
    first_name: str = ""
    last_name: str = ""
    phone: Optional[str] = None
    country: Optional[str] = None


class UpdateAccountRequest(BaseModel):
    account_id: int
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=32)
    country: Optional[str] = Field(None, max_length=64)
    is_verified: Optional[bool] = None


class CreateTraderRequest(BaseModel):
    user_id: int
    display_name: str = Field(..., min_length=1, max_length=100)
    subscription_price: Decimal = Field(..., ge=0)
    bio: Optional[str] = None


class CreateSignalRequest(BaseModel):
    trader_id: int
    symbol: str = Field(..., min_length=1, max_length=32)
    asset_type: str = Field(..., min_length=1, max_length=32)
    direction: DirectionEnum
    entry_price: Decimal = Field(..., gt=0)
    target_price: Optional[Decimal] = Field(None, gt=0)
    stop_loss: Optional[Decimal] = Field(None, gt=0)
    description: Optional[str] = None
    expires_at: Optional[datetime] = None


class UpdateSignalRequest(BaseModel):
    signal_id: int
    target_price: Optional[Decimal] = Field(None, gt=0)
    stop_loss: Optional[Decimal] = Field(None, gt=0)
    description: Optional[str] = None
    expires_at: Optional[datetime] = None
    is_active: Optional[bool] = None


class DeactivateSignalRequest(BaseModel):
    signal_id: int


# =============================================================
# RESPONSE SCHEMAS
# =============================================================

class AccountResponse(BaseModel):
    """Account with its virtual balance."""
    id: int
    email: str
    username: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    country: Optional[str] = None
    is_verified: bool
    virtual_balance: Decimal
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TraderResponse(BaseModel):
    id: int
    user_id: int
    display_name: str
    bio: Optional[str] = None
    subscription_price: Decimal
    total_followers: int
    trades_won: int
    trades_lost: int
    profit_percentage: Decimal
    win_rate: Decimal
    created_at: datetime

    class Config:
        from_attributes = True


class TradeResponse(BaseModel):
    """Trade; exit fields are null until closed."""
    id: int
    user_id: int
    symbol: str
    asset_type: str
    direction: str
    quantity: Decimal
    entry_price: Decimal
    exit_price: Optional[Decimal] = None
    status: str
    profit_loss: Optional[Decimal] = None
    created_at: datetime
    closed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SubscriptionResponse(BaseModel):
    id: int
    subscriber_id: int
    trader_id: int
    status: str
    price_paid: Decimal
    start_date: datetime
    end_date: Optional[datetime] = None

    class Config:
        from_attributes = True


class SignalResponse(BaseModel):
    id: int
    trader_id: int
    symbol: str
    asset_type: str
    direction: str
    entry_price: Decimal
    target_price: Optional[Decimal] = None
    stop_loss: Optional[Decimal] = None
    description: Optional[str] = None
    is_active: bool
    expires_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CopyTradeResponse(BaseModel):
    id: int
    subscriber_id: int
    trader_id: int
    signal_id: int
    copied_trade_id: Optional[int] = None
    status: str
    created_at: datetime
    executed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WalletResponse(BaseModel):
    """Per-currency wallet."""
    id: int
    user_id: int
    currency: str
    balance: Decimal
    available_balance: Decimal
    locked_balance: Decimal
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TransactionResponse(BaseModel):
    id: int
    user_id: int
    type: str
    amount: Decimal
    currency: str
    status: str
    description: Optional[str] = None
    reference_id: Optional[str] = None
    created_at: datetime
    processed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ErrorBody(BaseModel):
    """Tagged error returned for rejected operations."""
    kind: str
    code: str
    message: str
    context: Dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    detail: ErrorBody


class HealthResponse(BaseModel):
    status: str
    database: str
    missing_tables: List[str] = Field(default_factory=list)
