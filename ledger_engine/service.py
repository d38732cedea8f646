"""
Ledger Engine - Ledger Service.

============================================================
PURPOSE
============================================================
Main entry point for every operation that reads or changes
ledger state: accounts, trades, subscriptions, wallets and the
copy-trade relay.

============================================================
DESIGN PRINCIPLES
============================================================
- ONE UNIT PER OPERATION: every operation runs inside a single
  transaction_scope(); either all of its writes commit or none
- ATOMIC DELTAS: balances change only through the repositories'
  delta methods, inside the operation's transaction; the service
  never writes back a balance it read
- GUARDED TRANSITIONS: status changes are checked against the
  transition table, then applied with a status-guarded UPDATE
- AUDITABLE: every balance change is recorded as a completed
  Transaction row
- DECIMAL: amounts never pass through float

============================================================
PRECONDITION ORDER
============================================================
Each operation checks its preconditions in a fixed order and
raises the first one that fails. The order is part of the
contract (callers and tests rely on which error wins).

============================================================
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, List, Optional

from sqlalchemy.orm import sessionmaker

from storage.database import transaction_scope
from storage.models.base import utc_now
from storage.repositories import (
    AccountRepository,
    CopyTradeRepository,
    DuplicateRecordError,
    SignalRepository,
    SubscriptionRepository,
    TradeRepository,
    TraderRepository,
    TransactionRepository,
    WalletRepository,
)

from .calculations import (
    CASH_PLACES,
    realized_profit_loss,
    require_positive,
    require_scale,
    to_decimal,
    trade_notional,
)
from .config import LedgerConfig
from .errors import (
    ConflictError,
    InsufficientFundsError,
    InvalidStateError,
    MismatchError,
    NotFoundError,
    PriceTooLowError,
    UnauthorizedError,
    ValidationError,
)
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


logger = logging.getLogger(__name__)


# ============================================================
# INPUT HELPERS
# ============================================================

def _parse_direction(value: Any) -> TradeDirection:
    if isinstance(value, TradeDirection):
        return value
    try:
        return TradeDirection(str(value).lower())
    except ValueError:
        raise ValidationError(f"direction must be 'buy' or 'sell', got {value!r}", field="direction")


def _require_text(value: Optional[str], field: str, max_length: int) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field} must not be empty", field=field)
    if len(text) > max_length:
        raise ValidationError(f"{field} is longer than {max_length} characters", field=field)
    return text


def _as_utc(moment: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo; they were written as UTC
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


# ============================================================
# LEDGER SERVICE
# ============================================================

class LedgerService:
    """
    Ledger service.

    Stateless apart from its configuration; safe to share across
    threads and requests. Concurrency control lives in the store.

    AUTHORITY BOUNDARIES:
    - CAN: Move virtual balance, open and close trades, sell
      subscriptions, fund wallets, relay signals
    - MUST NOT: Change a balance outside an audited operation
    - MUST NOT: Move a record out of a terminal state
    """

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        config: Optional[LedgerConfig] = None,
    ):
        """
        Initialize ledger service.

        Args:
            session_factory: Session factory (defaults to the
                process-wide factory from storage.database)
            config: Ledger configuration
        """
        self._session_factory = session_factory
        self._config = config or LedgerConfig()

        problems = self._config.validate()
        if problems:
            raise ValueError(f"Invalid ledger configuration: {problems}")

    @property
    def config(self) -> LedgerConfig:
        return self._config

    def _scope(self):
        return transaction_scope(self._session_factory)

    def _audit(
        self,
        session,
        user_id: int,
        txn_type: TransactionType,
        amount: Decimal,
        description: str,
        reference_id: str,
    ) -> None:
        """Record a completed cash movement if auditing is enabled."""
        if not self._config.audit_all_balance_changes:
            return
        TransactionRepository(session).record_transaction(
            user_id=user_id,
            type=txn_type.value,
            amount=amount,
            currency=self._config.default_currency,
            status=TransactionStatus.COMPLETED.value,
            description=description,
            reference_id=reference_id,
            processed_at=utc_now(),
        )

    # --------------------------------------------------------
    # ACCOUNTS
    # --------------------------------------------------------

    def create_account(
        self,
        email: str,
        username: str,
        first_name: str = "",
        last_name: str = "",
        phone: Optional[str] = None,
        country: Optional[str] = None,
    ) -> AccountRecord:
        """
        Open an account with the starting balance and a funded
        wallet in the default currency.

        Raises:
            ConflictError: email or username already taken
        """
        email = _require_text(email, "email", 255)
        username = _require_text(username, "username", 64)
        if "@" not in email:
            raise ValidationError(f"email is not an address: {email!r}", field="email")

        balance = self._config.starting_balance
        with self._scope() as session:
            accounts = AccountRepository(session)
            try:
                account = accounts.create_account(
                    email=email,
                    username=username,
                    starting_balance=balance,
                    first_name=first_name,
                    last_name=last_name,
                    phone=phone,
                    country=country,
                )
                WalletRepository(session).create_wallet(
                    account.id, self._config.default_currency, balance
                )
            except DuplicateRecordError as e:
                logger.warning(f"Account creation rejected: {e.constraint} already taken")
                raise ConflictError(
                    "Email or username already taken",
                    code="CF_DUPLICATE_ACCOUNT",
                    context={"constraint": e.constraint},
                ) from e
            record = AccountRecord.from_model(account)

        logger.info(f"Account {record.id} created ({record.username}) with balance {balance}")
        return record

    def get_account(self, account_id: int) -> AccountRecord:
        """Get account by ID."""
        with self._scope() as session:
            account = AccountRepository(session).get_account(account_id)
            if account is None:
                raise NotFoundError("Account", account_id)
            return AccountRecord.from_model(account)

    def update_account(
        self,
        account_id: int,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
        country: Optional[str] = None,
        is_verified: Optional[bool] = None,
    ) -> AccountRecord:
        """
        Change profile fields of an account. Arguments left as None
        keep their stored value; the balance is never touched.

        Raises:
            NotFoundError: account does not exist
        """
        fields = {}
        for name, value, max_length in (
            ("first_name", first_name, 100),
            ("last_name", last_name, 100),
            ("phone", phone, 32),
            ("country", country, 64),
        ):
            if value is None:
                continue
            value = value.strip()
            if len(value) > max_length:
                raise ValidationError(f"{name} is longer than {max_length} characters", field=name)
            fields[name] = value
        if is_verified is not None:
            fields["is_verified"] = bool(is_verified)

        with self._scope() as session:
            accounts = AccountRepository(session)
            if fields and accounts.update_profile(account_id, **fields) == 0:
                raise NotFoundError("Account", account_id)
            account = accounts.get_account(account_id, refresh=True)
            if account is None:
                raise NotFoundError("Account", account_id)
            record = AccountRecord.from_model(account)

        logger.info(f"Account {account_id} updated: {sorted(fields)}")
        return record

    def create_trader(
        self,
        user_id: int,
        display_name: str,
        subscription_price: Any,
        bio: Optional[str] = None,
    ) -> TraderRecord:
        """
        Create the trader profile of an account.

        Raises:
            NotFoundError: account does not exist
            ConflictError: account already has a profile
        """
        display_name = _require_text(display_name, "display_name", 100)
        price = to_decimal(subscription_price, "subscription_price")
        if price < 0:
            raise ValidationError("subscription_price must not be negative", field="subscription_price")
        require_scale(price, CASH_PLACES, "subscription_price")

        with self._scope() as session:
            if AccountRepository(session).get_account(user_id) is None:
                raise NotFoundError("Account", user_id)
            try:
                trader = TraderRepository(session).create_trader(user_id, display_name, price, bio)
            except DuplicateRecordError as e:
                raise ConflictError(
                    "Account already has a trader profile",
                    code="CF_DUPLICATE_TRADER",
                    context={"user_id": user_id},
                ) from e
            record = TraderRecord.from_model(trader)

        logger.info(f"Trader {record.id} created for account {user_id} at price {price}")
        return record

    def get_trader(self, trader_id: int) -> TraderRecord:
        """Get trader by ID."""
        with self._scope() as session:
            trader = TraderRepository(session).get_trader(trader_id)
            if trader is None:
                raise NotFoundError("Trader", trader_id)
            return TraderRecord.from_model(trader)

    # --------------------------------------------------------
    # TRADES
    # --------------------------------------------------------

    def execute_trade(
        self,
        account_id: int,
        symbol: str,
        asset_type: str,
        direction: Any,
        quantity: Any,
        entry_price: Any,
    ) -> TradeRecord:
        """
        Open a position at ``entry_price``.

        A buy debits ``quantity * entry_price`` and requires the
        balance to cover it. A sell credits the same amount with no
        balance precondition.

        Raises:
            ValidationError: value rounds to zero cents
            NotFoundError: account does not exist
            InsufficientFundsError: buy exceeds the balance
        """
        symbol = _require_text(symbol, "symbol", 32)
        asset_type = _require_text(asset_type, "asset_type", 32)
        side = _parse_direction(direction)
        quantity = require_positive(quantity, "quantity")
        entry_price = require_positive(entry_price, "entry_price")
        notional = trade_notional(quantity, entry_price)
        if notional == 0:
            raise ValidationError(
                f"{quantity} @ {entry_price} is worth less than one cent",
                field="quantity",
                code="VAL_NOTIONAL_ZERO",
            )

        with self._scope() as session:
            accounts = AccountRepository(session)
            if accounts.get_account(account_id) is None:
                raise NotFoundError("Account", account_id)

            if side == TradeDirection.BUY:
                if not accounts.debit_if_sufficient(account_id, notional):
                    available = accounts.get_balance(account_id)
                    logger.warning(
                        f"Trade rejected for account {account_id}: "
                        f"needs {notional}, has {available}"
                    )
                    raise InsufficientFundsError(account_id, notional, available)
                delta = -notional
            else:
                accounts.adjust_balance(account_id, notional)
                delta = notional

            trade = TradeRepository(session).create_trade(
                user_id=account_id,
                symbol=symbol,
                asset_type=asset_type,
                trade_type=side.value,
                quantity=quantity,
                entry_price=entry_price,
                status=TradeStatus.EXECUTED.value,
            )
            self._audit(
                session,
                account_id,
                TransactionType.TRADE,
                delta,
                f"{side.value} {quantity} {symbol} @ {entry_price}",
                f"trade:{trade.id}:open",
            )
            record = TradeRecord.from_model(trade)

        logger.info(
            f"Trade {record.id} executed: account={account_id} {side.value} "
            f"{quantity} {symbol} @ {entry_price} balance {delta:+}"
        )
        return record

    def close_trade(self, trade_id: int, exit_price: Any) -> TradeRecord:
        """
        Close an executed trade and realize its profit or loss.

        Status, exit price, profit/loss, close time and the owner's
        balance change together or not at all. A trade can be
        closed once.

        Raises:
            NotFoundError: trade does not exist
            InvalidStateError: trade is not executed (closed,
                cancelled and pending report distinct codes)
        """
        exit_price = require_positive(exit_price, "exit_price")

        with self._scope() as session:
            trades = TradeRepository(session)
            trade = trades.get_trade(trade_id)
            if trade is None:
                raise NotFoundError("Trade", trade_id)

            TransitionGuard.ensure_transition(TradeStatus(trade.status), TradeStatus.CLOSED, trade_id)

            profit_loss = realized_profit_loss(
                TradeDirection(trade.trade_type),
                Decimal(trade.quantity),
                Decimal(trade.entry_price),
                exit_price,
            )

            closed = trades.mark_closed(
                trade_id,
                expected_status=TradeStatus.EXECUTED.value,
                closed_status=TradeStatus.CLOSED.value,
                exit_price=exit_price,
                profit_loss=profit_loss,
                closed_at=utc_now(),
            )
            if not closed:
                # Another closure committed between our read and our write
                latest = trades.get_trade(trade_id, refresh=True)
                TransitionGuard.ensure_transition(TradeStatus(latest.status), TradeStatus.CLOSED, trade_id)
                raise InvalidStateError(
                    "Trade is no longer executed",
                    current_state=latest.status,
                    trade_id=trade_id,
                )

            AccountRepository(session).adjust_balance(trade.user_id, profit_loss)
            self._audit(
                session,
                trade.user_id,
                TransactionType.TRADE,
                profit_loss,
                f"close {trade.symbol} @ {exit_price}",
                f"trade:{trade_id}:close",
            )
            record = TradeRecord.from_model(trades.get_trade(trade_id, refresh=True))

        logger.info(
            f"Trade {trade_id} closed @ {exit_price}: "
            f"profit_loss={profit_loss} account={record.user_id}"
        )
        return record

    def get_trade(self, trade_id: int) -> TradeRecord:
        """Get trade by ID."""
        with self._scope() as session:
            trade = TradeRepository(session).get_trade(trade_id)
            if trade is None:
                raise NotFoundError("Trade", trade_id)
            return TradeRecord.from_model(trade)

    def list_trades(
        self,
        account_id: int,
        status: Optional[Any] = None,
        limit: Optional[int] = None,
    ) -> List[TradeRecord]:
        """An account's trades, newest first, optionally by status."""
        status_value = None
        if status is not None:
            try:
                status_value = TradeStatus(status).value
            except ValueError:
                raise ValidationError(f"Unknown trade status {status!r}", field="status")

        with self._scope() as session:
            if AccountRepository(session).get_account(account_id) is None:
                raise NotFoundError("Account", account_id)
            rows = TradeRepository(session).list_trades(
                account_id, status=status_value, limit=limit or self._config.default_list_limit
            )
            return [TradeRecord.from_model(row) for row in rows]

    # --------------------------------------------------------
    # SUBSCRIPTIONS
    # --------------------------------------------------------

    def create_subscription(self, subscriber_id: int, trader_id: int, price_paid: Any) -> SubscriptionRecord:
        """
        Buy a subscription to a trader.

        Preconditions, first failure wins:
        1. subscriber exists
        2. trader exists
        3. balance covers price_paid
        4. price_paid is at least the trader's subscription price

        Raises:
            NotFoundError, InsufficientFundsError, PriceTooLowError
        """
        price = require_positive(price_paid, "price_paid", places=CASH_PLACES)

        with self._scope() as session:
            accounts = AccountRepository(session)
            subscriber = accounts.get_account(subscriber_id)
            if subscriber is None:
                raise NotFoundError("Account", subscriber_id)

            trader = TraderRepository(session).get_trader(trader_id)
            if trader is None:
                raise NotFoundError("Trader", trader_id)

            balance = Decimal(subscriber.virtual_balance)
            if balance < price:
                logger.warning(f"Subscription rejected for account {subscriber_id}: needs {price}, has {balance}")
                raise InsufficientFundsError(subscriber_id, price, balance)

            floor = Decimal(trader.subscription_price)
            if price < floor:
                logger.warning(f"Subscription rejected for account {subscriber_id}: {price} below {floor}")
                raise PriceTooLowError(price, floor)

            if not accounts.debit_if_sufficient(subscriber_id, price):
                raise InsufficientFundsError(subscriber_id, price, accounts.get_balance(subscriber_id))

            subscription = SubscriptionRepository(session).create_subscription(
                subscriber_id=subscriber_id,
                trader_id=trader_id,
                price_paid=price,
                status=SubscriptionStatus.ACTIVE.value,
            )
            self._audit(
                session,
                subscriber_id,
                TransactionType.SUBSCRIPTION,
                -price,
                f"subscription to trader {trader_id}",
                f"subscription:{subscription.id}",
            )
            record = SubscriptionRecord.from_model(subscription)

        logger.info(
            f"Subscription {record.id} created: account={subscriber_id} "
            f"trader={trader_id} paid={price}"
        )
        return record

    def cancel_subscription(self, subscription_id: int) -> SubscriptionRecord:
        """
        Cancel an active subscription. The price paid is not refunded.

        Raises:
            NotFoundError: subscription does not exist
            InvalidStateError: subscription already ended
        """
        with self._scope() as session:
            subscriptions = SubscriptionRepository(session)
            subscription = subscriptions.get_subscription(subscription_id)
            if subscription is None:
                raise NotFoundError("Subscription", subscription_id)

            TransitionGuard.ensure_transition(
                SubscriptionStatus(subscription.status), SubscriptionStatus.CANCELLED, subscription_id
            )
            moved = subscriptions.transition(
                subscription_id,
                expected_status=SubscriptionStatus.ACTIVE.value,
                new_status=SubscriptionStatus.CANCELLED.value,
                end_date=utc_now(),
            )
            latest = subscriptions.get_subscription(subscription_id, refresh=True)
            if not moved:
                TransitionGuard.ensure_transition(
                    SubscriptionStatus(latest.status), SubscriptionStatus.CANCELLED, subscription_id
                )
            record = SubscriptionRecord.from_model(latest)

        logger.info(f"Subscription {subscription_id} cancelled")
        return record

    def list_subscriptions(self, subscriber_id: int) -> List[SubscriptionRecord]:
        """An account's subscriptions, newest first."""
        with self._scope() as session:
            rows = SubscriptionRepository(session).list_subscriptions(subscriber_id)
            return [SubscriptionRecord.from_model(row) for row in rows]

    # --------------------------------------------------------
    # WALLETS
    # --------------------------------------------------------

    def fund_wallet(
        self,
        account_id: int,
        currency: str,
        amount: Any,
        external_reference: Optional[str] = None,
    ) -> WalletRecord:
        """
        Add ``amount`` to the account's wallet in ``currency``.

        The wallet is created on first funding. Every applied
        funding writes one completed ``fund_wallet`` Transaction.

        A repeated ``external_reference`` with the recorded currency
        and amount is a replay: the wallet is returned unchanged.
        The same reference with another currency or amount is a
        conflict. With reference de-duplication disabled every
        repeat is a conflict.

        Raises:
            NotFoundError: account does not exist
            ConflictError: reference reused for a different funding,
                or repeated with de-duplication off
        """
        currency = _require_text(currency, "currency", 16).upper()
        amount = require_positive(amount, "amount")
        reference = external_reference.strip() if external_reference else None
        if reference is not None and len(reference) > 128:
            raise ValidationError("external_reference is longer than 128 characters", field="external_reference")

        attempts = self._config.funding_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return self._fund_wallet_once(account_id, currency, amount, reference)
            except DuplicateRecordError as e:
                if e.repository_name == "TransactionRepository":
                    return self._replayed_funding(account_id, currency, amount, reference, e)
                if attempt == attempts:
                    raise ConflictError(
                        f"Wallet {currency} for account {account_id} could not be created",
                        context={"constraint": e.constraint},
                    ) from e
                # Lost the race to create the wallet; it exists now
                logger.info(f"Wallet {currency} for account {account_id} created concurrently, retrying")

    def _fund_wallet_once(
        self,
        account_id: int,
        currency: str,
        amount: Decimal,
        reference: Optional[str],
    ) -> WalletRecord:
        with self._scope() as session:
            if AccountRepository(session).get_account(account_id) is None:
                raise NotFoundError("Account", account_id)

            wallets = WalletRepository(session)
            transactions = TransactionRepository(session)

            if reference is not None and self._config.dedupe_funding_references:
                seen = transactions.find_by_reference(account_id, TransactionType.FUND_WALLET.value, reference)
                if seen is not None:
                    logger.info(f"Funding {reference} for account {account_id} already applied")
                    return self._replay_result(session, seen, account_id, currency, amount)

            # Reference row first: a replay fails here before any balance moves
            transactions.record_transaction(
                user_id=account_id,
                type=TransactionType.FUND_WALLET.value,
                amount=amount,
                currency=currency,
                status=TransactionStatus.COMPLETED.value,
                description=f"Wallet funding {amount} {currency}",
                reference_id=reference,
                processed_at=utc_now(),
            )

            if not wallets.credit(account_id, currency, amount):
                wallets.create_wallet(account_id, currency, amount)

            record = WalletRecord.from_model(wallets.get_wallet(account_id, currency, refresh=True))

        logger.info(f"Wallet {currency} of account {account_id} funded {amount}: balance={record.balance}")
        return record

    def _replayed_funding(
        self,
        account_id: int,
        currency: str,
        amount: Decimal,
        reference: Optional[str],
        error: DuplicateRecordError,
    ) -> WalletRecord:
        if not self._config.dedupe_funding_references:
            raise ConflictError(
                f"Funding reference {reference} already recorded",
                context={"account_id": account_id, "reference": reference},
            ) from error

        with self._scope() as session:
            logger.info(f"Funding {reference} for account {account_id} applied concurrently")
            seen = TransactionRepository(session).find_by_reference(
                account_id, TransactionType.FUND_WALLET.value, reference
            )
            if seen is None:
                raise ConflictError(
                    f"Funding reference {reference} already recorded",
                    context={"account_id": account_id, "reference": reference},
                ) from error
            return self._replay_result(session, seen, account_id, currency, amount)

    def _replay_result(self, session, seen, account_id: int, currency: str, amount: Decimal) -> WalletRecord:
        """
        Wallet state for a repeated funding reference.

        Only a request with the recorded currency and amount is a
        replay; any other use of the reference is a conflict and
        moves nothing.
        """
        recorded = Decimal(seen.amount)
        if seen.currency != currency or recorded != amount:
            logger.warning(
                f"Funding reference {seen.reference_id} of account {account_id} reused: "
                f"recorded {recorded} {seen.currency}, requested {amount} {currency}"
            )
            raise ConflictError(
                f"Funding reference {seen.reference_id} was used for {recorded} {seen.currency}",
                code="CF_REFERENCE_REUSED",
                context={
                    "reference": seen.reference_id,
                    "recorded_currency": seen.currency,
                    "recorded_amount": str(recorded),
                    "requested_currency": currency,
                    "requested_amount": str(amount),
                },
            )

        wallet = WalletRepository(session).get_wallet(account_id, currency)
        if wallet is None:
            raise NotFoundError("Wallet", f"{account_id}/{currency}")
        return WalletRecord.from_model(wallet)

    def list_wallets(self, account_id: int) -> List[WalletRecord]:
        """All wallets of an account."""
        with self._scope() as session:
            if AccountRepository(session).get_account(account_id) is None:
                raise NotFoundError("Account", account_id)
            return [WalletRecord.from_model(w) for w in WalletRepository(session).list_wallets(account_id)]

    def list_transactions(self, account_id: int, limit: Optional[int] = None) -> List[TransactionRecord]:
        """An account's transactions, newest first."""
        with self._scope() as session:
            if AccountRepository(session).get_account(account_id) is None:
                raise NotFoundError("Account", account_id)
            rows = TransactionRepository(session).list_transactions(
                account_id, limit=limit or self._config.default_list_limit
            )
            return [TransactionRecord.from_model(row) for row in rows]

    # --------------------------------------------------------
    # SIGNALS AND COPY TRADING
    # --------------------------------------------------------

    def create_signal(
        self,
        trader_id: int,
        symbol: str,
        asset_type: str,
        direction: Any,
        entry_price: Any,
        target_price: Any = None,
        stop_loss: Any = None,
        description: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> SignalRecord:
        """
        Publish a signal for a trader.

        Raises:
            NotFoundError: trader does not exist
        """
        symbol = _require_text(symbol, "symbol", 32)
        asset_type = _require_text(asset_type, "asset_type", 32)
        side = _parse_direction(direction)
        entry_price = require_positive(entry_price, "entry_price")
        if target_price is not None:
            target_price = require_positive(target_price, "target_price")
        if stop_loss is not None:
            stop_loss = require_positive(stop_loss, "stop_loss")

        with self._scope() as session:
            if TraderRepository(session).get_trader(trader_id) is None:
                raise NotFoundError("Trader", trader_id)
            signal = SignalRepository(session).create_signal(
                trader_id=trader_id,
                symbol=symbol,
                asset_type=asset_type,
                signal_type=side.value,
                entry_price=entry_price,
                target_price=target_price,
                stop_loss=stop_loss,
                description=description,
                expires_at=expires_at,
            )
            record = SignalRecord.from_model(signal)

        logger.info(f"Signal {record.id} published by trader {trader_id}: {side.value} {symbol} @ {entry_price}")
        return record

    def deactivate_signal(self, signal_id: int) -> SignalRecord:
        """Withdraw a signal so it can no longer be copied."""
        with self._scope() as session:
            signals = SignalRepository(session)
            if signals.deactivate(signal_id) == 0:
                raise NotFoundError("Signal", signal_id)
            record = SignalRecord.from_model(signals.get_signal(signal_id, refresh=True))

        logger.info(f"Signal {signal_id} deactivated")
        return record

    def update_signal(
        self,
        signal_id: int,
        target_price: Any = None,
        stop_loss: Any = None,
        description: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        is_active: Optional[bool] = None,
    ) -> SignalRecord:
        """
        Revise a published signal. Arguments left as None keep their
        stored value. Symbol, side and entry price are fixed once
        published.

        Raises:
            NotFoundError: signal does not exist
        """
        fields = {}
        if target_price is not None:
            fields["target_price"] = require_positive(target_price, "target_price")
        if stop_loss is not None:
            fields["stop_loss"] = require_positive(stop_loss, "stop_loss")
        if description is not None:
            fields["description"] = description
        if expires_at is not None:
            fields["expires_at"] = _as_utc(expires_at)
        if is_active is not None:
            fields["is_active"] = bool(is_active)

        with self._scope() as session:
            signals = SignalRepository(session)
            if fields and signals.update_signal(signal_id, **fields) == 0:
                raise NotFoundError("Signal", signal_id)
            signal = signals.get_signal(signal_id, refresh=True)
            if signal is None:
                raise NotFoundError("Signal", signal_id)
            record = SignalRecord.from_model(signal)

        logger.info(f"Signal {signal_id} updated: {sorted(fields)}")
        return record

    def _signal_is_active(self, signal) -> bool:
        if not signal.is_active:
            return False
        if self._config.enforce_signal_expiry and signal.expires_at is not None:
            return _as_utc(signal.expires_at) > utc_now()
        return True

    def copy_trade(self, subscriber_id: int, trader_id: int, signal_id: int) -> CopyTradeRecord:
        """
        Materialize a trader's signal as a trade in the subscriber's
        account.

        Preconditions, first failure wins:
        1. signal exists
        2. signal is active
        3. signal belongs to ``trader_id``
        4. subscriber exists
        5. subscriber has an active subscription to the trader

        The copied trade uses the configured fixed quantity and is
        opened without a balance check or balance change.

        Raises:
            NotFoundError, InvalidStateError, MismatchError,
            UnauthorizedError
        """
        with self._scope() as session:
            signal = SignalRepository(session).get_signal(signal_id)
            if signal is None:
                raise NotFoundError("Signal", signal_id)

            if not self._signal_is_active(signal):
                logger.warning(f"Copy of signal {signal_id} rejected: signal inactive")
                raise InvalidStateError(
                    "Signal is no longer active",
                    current_state="active" if signal.is_active else "inactive",
                    code="ST_SIGNAL_INACTIVE",
                    signal_id=signal_id,
                )

            if signal.trader_id != trader_id:
                raise MismatchError(
                    "Trader ID does not match signal trader",
                    context={"signal_id": signal_id, "trader_id": trader_id, "signal_trader_id": signal.trader_id},
                )

            if AccountRepository(session).get_account(subscriber_id) is None:
                raise NotFoundError("Account", subscriber_id)

            subscription = SubscriptionRepository(session).find_with_status(
                subscriber_id, trader_id, SubscriptionStatus.ACTIVE.value
            )
            if subscription is None:
                logger.warning(f"Copy of signal {signal_id} rejected: account {subscriber_id} not subscribed")
                raise UnauthorizedError(
                    "No active subscription found for this trader",
                    context={"subscriber_id": subscriber_id, "trader_id": trader_id},
                )

            trade = TradeRepository(session).create_trade(
                user_id=subscriber_id,
                symbol=signal.symbol,
                asset_type=signal.asset_type,
                trade_type=signal.signal_type,
                quantity=self._config.copy_trade_quantity,
                entry_price=Decimal(signal.entry_price),
                status=TradeStatus.EXECUTED.value,
            )
            copy = CopyTradeRepository(session).create_copy_trade(
                subscriber_id=subscriber_id,
                trader_id=trader_id,
                signal_id=signal_id,
                copied_trade_id=trade.id,
                status=CopyTradeStatus.EXECUTED.value,
                executed_at=utc_now(),
            )
            record = CopyTradeRecord.from_model(copy)

        logger.info(
            f"Signal {signal_id} copied into trade {record.copied_trade_id} "
            f"for account {subscriber_id}"
        )
        return record

    def get_copy_trade_history(self, subscriber_id: int) -> List[CopyTradeRecord]:
        """Copy trades made for a subscriber, newest first."""
        with self._scope() as session:
            rows = CopyTradeRepository(session).list_copy_trades(subscriber_id)
            return [CopyTradeRecord.from_model(row) for row in rows]


__all__ = ["LedgerService"]
