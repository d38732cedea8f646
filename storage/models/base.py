"""
Declarative base, timestamp mixin and money column types shared
by every ledger table.
"""

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class ExactDecimal(TypeDecorator):
    """
    Fixed-point amount that never passes through float.

    NUMERIC(precision, scale) where the dialect has a native
    decimal type. Elsewhere (SQLite) the value is stored as its
    decimal text at full scale, so SQL arithmetic and comparisons
    on these columns are only valid on native dialects; see
    BaseRepository.native_decimal.
    """

    impl = Numeric
    cache_ok = True

    def __init__(self, precision: int, scale: int):
        super().__init__(precision, scale, asdecimal=True)
        self.precision = precision
        self.scale = scale
        self._quantum = Decimal(1).scaleb(-scale)

    def load_dialect_impl(self, dialect):
        if dialect.supports_native_decimal:
            return dialect.type_descriptor(Numeric(self.precision, self.scale, asdecimal=True))
        # sign, point and digits
        return dialect.type_descriptor(String(self.precision + 2))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, float):
            raise TypeError(f"float bound to exact decimal column: {value!r}")
        amount = Decimal(value).quantize(self._quantum, rounding=ROUND_HALF_UP)
        if dialect.supports_native_decimal:
            return amount
        return format(amount, "f")

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, Decimal):
            return value
        return Decimal(value)


# Virtual balance, subscription prices, profit/loss
CASH = ExactDecimal(18, 2)

# Trade quantities and prices, wallet balances
ASSET = ExactDecimal(24, 8)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """One metadata for the whole ledger schema."""

    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


class TimestampMixin:
    """
    created_at / updated_at, both UTC.

    Set from Python on insert and update; the server default only
    covers rows written outside the ORM.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=func.now(),
        onupdate=utc_now,
    )
