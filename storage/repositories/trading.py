"""
Trading Repositories.

============================================================
PURPOSE
============================================================
Data access for trades, signals, subscriptions and copy trades.

============================================================
STATUS UPDATES
============================================================
Lifecycle changes are conditional updates guarded by the
expected current status:

    UPDATE trades SET status = 'closed', ...
    WHERE id = :id AND status = 'executed'

A row count of zero means another operation already moved the
record on; the caller decides how to report it.

============================================================
REPOSITORIES
============================================================
- TradeRepository
- SignalRepository
- SubscriptionRepository
- CopyTradeRepository

============================================================
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import desc, select, update
from sqlalchemy.orm import Session

from storage.models.base import utc_now
from storage.models.trading import CopyTrade, Signal, Subscription, Trade
from storage.repositories.base import BaseRepository


_SIGNAL_FIELDS = frozenset({"target_price", "stop_loss", "description", "expires_at", "is_active"})


class TradeRepository(BaseRepository[Trade]):
    """Repository for trades."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, Trade, "TradeRepository")

    def create_trade(
        self,
        user_id: int,
        symbol: str,
        asset_type: str,
        trade_type: str,
        quantity: Decimal,
        entry_price: Decimal,
        status: str,
    ) -> Trade:
        """Insert a trade with null exit fields."""
        entity = Trade(
            user_id=user_id,
            symbol=symbol,
            asset_type=asset_type,
            trade_type=trade_type,
            quantity=quantity,
            entry_price=entry_price,
            status=status,
            created_at=utc_now(),
        )
        return self._add(entity, "create_trade")

    def get_trade(self, trade_id: int, refresh: bool = False) -> Optional[Trade]:
        """Get trade by ID."""
        return self._get_by_id(trade_id, refresh=refresh)

    def mark_closed(
        self,
        trade_id: int,
        expected_status: str,
        closed_status: str,
        exit_price: Decimal,
        profit_loss: Decimal,
        closed_at: datetime,
    ) -> bool:
        """
        Set the terminal close fields in one statement.

        Returns:
            True if the trade was still in ``expected_status``
        """
        stmt = (
            update(Trade)
            .where(Trade.id == trade_id, Trade.status == expected_status)
            .values(
                status=closed_status,
                exit_price=exit_price,
                profit_loss=profit_loss,
                closed_at=closed_at,
            )
        )
        matched = self._execute_update(stmt, "mark_closed", {"trade_id": trade_id})
        if matched:
            self._logger.info(f"Trade {trade_id}: {expected_status} -> {closed_status}")
        return matched == 1

    def list_trades(
        self,
        user_id: int,
        status: Optional[str] = None,
        limit: int = 100,
    ) -> List[Trade]:
        """List an account's trades, newest first."""
        stmt = select(Trade).where(Trade.user_id == user_id)
        if status is not None:
            stmt = stmt.where(Trade.status == status)
        stmt = stmt.order_by(desc(Trade.created_at), desc(Trade.id)).limit(limit)
        return self._execute_query(stmt)


class SignalRepository(BaseRepository[Signal]):
    """Repository for trader signals."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, Signal, "SignalRepository")

    def create_signal(
        self,
        trader_id: int,
        symbol: str,
        asset_type: str,
        signal_type: str,
        entry_price: Decimal,
        target_price: Optional[Decimal] = None,
        stop_loss: Optional[Decimal] = None,
        description: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> Signal:
        """Insert an active signal."""
        entity = Signal(
            trader_id=trader_id,
            symbol=symbol,
            asset_type=asset_type,
            signal_type=signal_type,
            entry_price=entry_price,
            target_price=target_price,
            stop_loss=stop_loss,
            description=description,
            is_active=True,
            expires_at=expires_at,
        )
        return self._add(entity, "create_signal")

    def get_signal(self, signal_id: int, refresh: bool = False) -> Optional[Signal]:
        """Get signal by ID."""
        return self._get_by_id(signal_id, refresh=refresh)

    def deactivate(self, signal_id: int) -> int:
        """Clear the active flag. Returns matched row count."""
        stmt = (
            update(Signal)
            .where(Signal.id == signal_id)
            .values(is_active=False, updated_at=utc_now())
        )
        return self._execute_update(stmt, "deactivate", {"signal_id": signal_id})

    def update_signal(self, signal_id: int, **fields) -> int:
        """Overwrite mutable signal columns. Returns matched row count."""
        unknown = set(fields) - _SIGNAL_FIELDS
        if unknown:
            raise ValueError(f"not mutable signal fields: {sorted(unknown)}")
        stmt = (
            update(Signal)
            .where(Signal.id == signal_id)
            .values(updated_at=utc_now(), **fields)
        )
        return self._execute_update(stmt, "update_signal", {"signal_id": signal_id, "fields": sorted(fields)})


class SubscriptionRepository(BaseRepository[Subscription]):
    """Repository for subscriptions."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, Subscription, "SubscriptionRepository")

    def create_subscription(
        self,
        subscriber_id: int,
        trader_id: int,
        price_paid: Decimal,
        status: str,
    ) -> Subscription:
        """Insert a subscription starting now."""
        entity = Subscription(
            subscriber_id=subscriber_id,
            trader_id=trader_id,
            price_paid=price_paid,
            status=status,
            start_date=utc_now(),
            end_date=None,
        )
        return self._add(entity, "create_subscription")

    def get_subscription(self, subscription_id: int, refresh: bool = False) -> Optional[Subscription]:
        """Get subscription by ID."""
        return self._get_by_id(subscription_id, refresh=refresh)

    def find_with_status(
        self,
        subscriber_id: int,
        trader_id: int,
        status: str,
    ) -> Optional[Subscription]:
        """First subscription of the pair in ``status``, if any."""
        stmt = (
            select(Subscription)
            .where(
                Subscription.subscriber_id == subscriber_id,
                Subscription.trader_id == trader_id,
                Subscription.status == status,
            )
            .order_by(desc(Subscription.start_date))
            .limit(1)
        )
        return self._execute_scalar(stmt)

    def transition(
        self,
        subscription_id: int,
        expected_status: str,
        new_status: str,
        end_date: Optional[datetime] = None,
    ) -> bool:
        """Move a subscription between statuses, guarded by the current one."""
        stmt = (
            update(Subscription)
            .where(Subscription.id == subscription_id, Subscription.status == expected_status)
            .values(status=new_status, end_date=end_date, updated_at=utc_now())
        )
        matched = self._execute_update(stmt, "transition", {"subscription_id": subscription_id})
        return matched == 1

    def list_subscriptions(self, subscriber_id: int) -> List[Subscription]:
        """List an account's subscriptions, newest first."""
        stmt = (
            select(Subscription)
            .where(Subscription.subscriber_id == subscriber_id)
            .order_by(desc(Subscription.start_date), desc(Subscription.id))
        )
        return self._execute_query(stmt)


class CopyTradeRepository(BaseRepository[CopyTrade]):
    """Repository for copy-trade links."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, CopyTrade, "CopyTradeRepository")

    def create_copy_trade(
        self,
        subscriber_id: int,
        trader_id: int,
        signal_id: int,
        copied_trade_id: int,
        status: str,
        executed_at: Optional[datetime],
    ) -> CopyTrade:
        """Insert a copy-trade link."""
        entity = CopyTrade(
            subscriber_id=subscriber_id,
            trader_id=trader_id,
            signal_id=signal_id,
            copied_trade_id=copied_trade_id,
            status=status,
            created_at=utc_now(),
            executed_at=executed_at,
        )
        return self._add(entity, "create_copy_trade")

    def list_copy_trades(self, subscriber_id: int) -> List[CopyTrade]:
        """Copy-trade history for a subscriber, newest first."""
        stmt = (
            select(CopyTrade)
            .where(CopyTrade.subscriber_id == subscriber_id)
            .order_by(desc(CopyTrade.created_at), desc(CopyTrade.id))
        )
        return self._execute_query(stmt)
