"""
Funds Repositories.

============================================================
PURPOSE
============================================================
Data access for per-currency wallets and the transaction
audit log.

============================================================
DATA LIFECYCLE
============================================================
- Wallet: balances change only inside the funding transaction
  (SQL increment on PostgreSQL, locked read-then-write on SQLite)
- Transaction: APPEND-ONLY once processed

============================================================
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import desc, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storage.models.base import utc_now
from storage.models.funds import Transaction, Wallet
from storage.repositories.base import BaseRepository
from storage.repositories.exceptions import ImmutableRecordError, RecordNotFoundError


class WalletRepository(BaseRepository[Wallet]):
    """Repository for wallets, keyed by (user, currency)."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, Wallet, "WalletRepository")

    def get_wallet(self, user_id: int, currency: str, refresh: bool = False) -> Optional[Wallet]:
        """Get the wallet for a (user, currency) pair."""
        stmt = select(Wallet).where(Wallet.user_id == user_id, Wallet.currency == currency)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        return self._execute_scalar(stmt)

    def create_wallet(
        self,
        user_id: int,
        currency: str,
        balance: Decimal,
        locked_balance: Decimal = Decimal("0"),
    ) -> Wallet:
        """
        Insert a wallet with ``available = balance - locked``.

        Raises:
            DuplicateRecordError: the pair already has a wallet
        """
        entity = Wallet(
            user_id=user_id,
            currency=currency,
            balance=balance,
            available_balance=balance - locked_balance,
            locked_balance=locked_balance,
        )
        return self._add(entity, "create_wallet")

    def credit(self, user_id: int, currency: str, amount: Decimal) -> bool:
        """
        Add ``amount`` to balance and available balance.

        Locked balance is untouched.

        Returns:
            True if a wallet for the pair existed
        """
        pair = (Wallet.user_id == user_id, Wallet.currency == currency)
        if self.native_decimal:
            values = {
                "balance": Wallet.balance + amount,
                "available_balance": Wallet.available_balance + amount,
            }
        else:
            try:
                current = self._session.execute(
                    select(Wallet.balance, Wallet.available_balance).where(*pair)
                ).first()
            except SQLAlchemyError as e:
                self._raise_store_error(e, "credit")
            if current is None:
                return False
            values = {
                "balance": current.balance + amount,
                "available_balance": current.available_balance + amount,
            }

        stmt = update(Wallet).where(*pair).values(updated_at=utc_now(), **values)
        matched = self._execute_update(
            stmt, "credit", {"user_id": user_id, "currency": currency, "amount": str(amount)}
        )
        return matched == 1

    def list_wallets(self, user_id: int) -> List[Wallet]:
        """All wallets of an account, by currency."""
        stmt = select(Wallet).where(Wallet.user_id == user_id).order_by(Wallet.currency)
        return self._execute_query(stmt)


class TransactionRepository(BaseRepository[Transaction]):
    """
    Repository for the transaction audit log.

    Records are inserted, never deleted. A record can change
    status only while it has not been processed.
    """

    def __init__(self, session: Session) -> None:
        super().__init__(session, Transaction, "TransactionRepository")

    def record_transaction(
        self,
        user_id: int,
        type: str,
        amount: Decimal,
        currency: str,
        status: str,
        description: Optional[str] = None,
        reference_id: Optional[str] = None,
        processed_at: Optional[datetime] = None,
    ) -> Transaction:
        """
        Append a transaction.

        Raises:
            DuplicateRecordError: reference already recorded for
                this user and type
        """
        entity = Transaction(
            user_id=user_id,
            type=type,
            amount=amount,
            currency=currency,
            status=status,
            description=description,
            reference_id=reference_id,
            created_at=utc_now(),
            processed_at=processed_at,
        )
        txn = self._add(entity, "record_transaction")
        self._logger.info(
            f"Persist transactions: inserted=1 (user={user_id} type={type} amount={amount} {currency})"
        )
        return txn

    def find_by_reference(self, user_id: int, type: str, reference_id: str) -> Optional[Transaction]:
        """Look up a transaction by its external reference."""
        stmt = select(Transaction).where(
            Transaction.user_id == user_id,
            Transaction.type == type,
            Transaction.reference_id == reference_id,
        )
        return self._execute_scalar(stmt)

    def update_status(self, transaction_id: int, status: str, processed_at: Optional[datetime] = None) -> Transaction:
        """
        Change the status of an unprocessed transaction.

        Raises:
            RecordNotFoundError: no such transaction
            ImmutableRecordError: transaction already processed
        """
        txn = self._get_by_id(transaction_id)
        if txn is None:
            raise RecordNotFoundError(self._repository_name, transaction_id, "transaction_id", "update_status")
        if txn.processed_at is not None:
            raise ImmutableRecordError(self._repository_name, transaction_id, "update_status")

        txn.status = status
        txn.processed_at = processed_at
        self._session.flush()
        return txn

    def list_transactions(self, user_id: int, limit: int = 100) -> List[Transaction]:
        """An account's transactions, newest first."""
        stmt = (
            select(Transaction)
            .where(Transaction.user_id == user_id)
            .order_by(desc(Transaction.created_at), desc(Transaction.id))
            .limit(limit)
        )
        return self._execute_query(stmt)
