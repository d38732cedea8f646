"""
Funds Domain ORM Models.

============================================================
PURPOSE
============================================================
Per-currency wallets and the append-only transaction audit log.

============================================================
DATA LIFECYCLE ROLE
============================================================
- Wallet: MUTABLE through atomic increments only
- Transaction: IMMUTABLE once processed_at is set

============================================================
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import ASSET, Base, TimestampMixin, utc_now


class Wallet(Base, TimestampMixin):
    """
    Per-currency balance container.

    Unique per (user, currency). Created lazily on the first funding
    of a currency; concurrent first fundings collide on the unique
    constraint and the loser retries as an increment.
    """

    __tablename__ = "wallets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    currency: Mapped[str] = mapped_column(String(16), nullable=False)

    balance: Mapped[Decimal] = mapped_column(ASSET, nullable=False, default=Decimal("0"))
    available_balance: Mapped[Decimal] = mapped_column(ASSET, nullable=False, default=Decimal("0"))
    locked_balance: Mapped[Decimal] = mapped_column(ASSET, nullable=False, default=Decimal("0"))

    __table_args__ = (
        UniqueConstraint("user_id", "currency", name="uq_wallets_user_currency"),
    )

    def __repr__(self) -> str:
        return f"<Wallet id={self.id} user_id={self.user_id} {self.currency}={self.balance}>"


class Transaction(Base):
    """
    Append-only monetary audit record.

    ``reference_id`` is unique per (user, type) so that a replayed
    external funding reference is detected by the store. NULL
    references never collide.
    """

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    type: Mapped[str] = mapped_column(String(16), nullable=False)
    amount: Mapped[Decimal] = mapped_column(ASSET, nullable=False, comment="Signed amount")
    currency: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reference_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "type IN ('deposit', 'withdrawal', 'trade', 'subscription', 'fund_wallet')",
            name="ck_transactions_type",
        ),
        CheckConstraint(
            "status IN ('pending', 'completed', 'failed', 'cancelled')",
            name="ck_transactions_status",
        ),
        UniqueConstraint("user_id", "type", "reference_id", name="uq_transactions_reference"),
        Index("ix_transactions_user_created", "user_id", "created_at"),
    )
