"""
Trading Domain ORM Models.

============================================================
PURPOSE
============================================================
Models for positions and the copy-trading relationship:
trades, trader signals, paid subscriptions and the copy-trade
audit links between them.

============================================================
DATA LIFECYCLE ROLE
============================================================
- Stage: OPERATIONAL
- Mutability: STATE TRANSITIONS ONLY (status columns)
- Source: Ledger service
- Consumers: API, reporting

============================================================
MODELS
============================================================
- Trade: Directional position owned by one account
- Signal: Trade idea published by a trader
- Subscription: Paid access grant subscriber -> trader
- CopyTrade: Link signal -> copied trade

============================================================
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import ASSET, CASH, Base, TimestampMixin, utc_now


class Trade(Base):
    """
    Trade record.

    Lifecycle: pending -> executed -> {closed | cancelled}.
    ``exit_price``, ``profit_loss`` and ``closed_at`` stay null until
    the closing update, which sets all three in one statement.
    """

    __tablename__ = "trades"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        comment="Owning account"
    )

    # Instrument
    symbol: Mapped[str] = mapped_column(String(32), nullable=False)
    asset_type: Mapped[str] = mapped_column(String(32), nullable=False)

    # Position
    trade_type: Mapped[str] = mapped_column(
        String(8),
        nullable=False,
        comment="Direction: buy | sell"
    )
    quantity: Mapped[Decimal] = mapped_column(ASSET, nullable=False)
    entry_price: Mapped[Decimal] = mapped_column(ASSET, nullable=False)
    exit_price: Mapped[Optional[Decimal]] = mapped_column(ASSET, nullable=True)

    # Lifecycle
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", index=True)
    profit_loss: Mapped[Optional[Decimal]] = mapped_column(CASH, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("trade_type IN ('buy', 'sell')", name="ck_trades_direction"),
        CheckConstraint(
            "status IN ('pending', 'executed', 'closed', 'cancelled')",
            name="ck_trades_status",
        ),
        CheckConstraint("quantity > 0", name="ck_trades_quantity_positive"),
        CheckConstraint("entry_price > 0", name="ck_trades_entry_price_positive"),
        Index("ix_trades_user_status", "user_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Trade id={self.id} {self.trade_type} {self.quantity} {self.symbol} status={self.status}>"


class Signal(Base, TimestampMixin):
    """
    Trading signal published by a trader.

    Read-only input to the copy relay.
    """

    __tablename__ = "signals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    trader_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("traders.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        comment="Authoring trader"
    )

    symbol: Mapped[str] = mapped_column(String(32), nullable=False)
    asset_type: Mapped[str] = mapped_column(String(32), nullable=False)
    signal_type: Mapped[str] = mapped_column(String(8), nullable=False, comment="buy | sell")
    entry_price: Mapped[Decimal] = mapped_column(ASSET, nullable=False)
    target_price: Mapped[Optional[Decimal]] = mapped_column(ASSET, nullable=True)
    stop_loss: Mapped[Optional[Decimal]] = mapped_column(ASSET, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("signal_type IN ('buy', 'sell')", name="ck_signals_direction"),
        Index("ix_signals_trader_active", "trader_id", "is_active"),
    )


class Subscription(Base, TimestampMixin):
    """
    Subscription of an account to a trader.

    ``price_paid`` is captured at creation; ``end_date`` is only set
    when the subscription is cancelled or expires.
    """

    __tablename__ = "subscriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    subscriber_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    trader_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("traders.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    price_paid: Mapped[Decimal] = mapped_column(CASH, nullable=False)

    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'expired', 'cancelled')",
            name="ck_subscriptions_status",
        ),
        Index("ix_subscriptions_pair_status", "subscriber_id", "trader_id", "status"),
    )


class CopyTrade(Base):
    """
    Copy-trade audit link.

    Ties a signal, its trader and the subscriber to the trade that
    was materialized in the subscriber's account.
    """

    __tablename__ = "copy_trades"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    subscriber_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    trader_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("traders.id", ondelete="RESTRICT"),
        nullable=False,
    )
    signal_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("signals.id", ondelete="RESTRICT"),
        nullable=False,
    )
    copied_trade_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("trades.id", ondelete="RESTRICT"),
        nullable=True,
    )

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    executed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'executed', 'failed')",
            name="ck_copy_trades_status",
        ),
    )
