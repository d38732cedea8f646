"""
Account Domain ORM Models.

============================================================
PURPOSE
============================================================
Models for platform participants: user accounts holding the
virtual balance, and the trader profiles that other accounts
can subscribe to.

============================================================
DATA LIFECYCLE ROLE
============================================================
- Stage: OPERATIONAL
- Mutability: MUTABLE (virtual_balance via ledger operations only)
- Consumers: Ledger service, API

============================================================
MODELS
============================================================
- User: Account identity and virtual balance
- Trader: Followable trader profile (one per account)

============================================================
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import CASH, Base, TimestampMixin


class User(Base, TimestampMixin):
    """
    User account.

    ``virtual_balance`` is the simulated cash position. It is only
    changed through atomic increment statements issued by the
    account repository, never by assigning a value computed in
    application code.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Identity (each globally unique)
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        comment="Login email"
    )

    username: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        comment="Public handle"
    )

    # Profile
    first_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Ledger
    virtual_balance: Mapped[Decimal] = mapped_column(
        CASH,
        nullable=False,
        default=Decimal("10000.00"),
        comment="Simulated cash position"
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r}>"


class Trader(Base, TimestampMixin):
    """
    Trader profile.

    At most one per account, enforced by the unique constraint on
    ``user_id`` so that concurrent creation surfaces as a conflict.
    Statistics are stored counters, not derived.
    """

    __tablename__ = "traders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        unique=True,
        nullable=False,
        comment="Owning account"
    )

    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    subscription_price: Mapped[Decimal] = mapped_column(
        CASH,
        nullable=False,
        comment="Minimum price for a subscription"
    )

    # Stored stats
    total_followers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    trades_won: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    trades_lost: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    profit_percentage: Mapped[Decimal] = mapped_column(CASH, nullable=False, default=Decimal("0"))
    win_rate: Mapped[Decimal] = mapped_column(CASH, nullable=False, default=Decimal("0"))

    __table_args__ = (
        CheckConstraint("subscription_price >= 0", name="ck_traders_price_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Trader id={self.id} user_id={self.user_id}>"
