"""
Account Repositories.

============================================================
PURPOSE
============================================================
Data access for user accounts and trader profiles.

============================================================
BALANCE UPDATES
============================================================
Every change to the virtual balance is applied inside the
operation's transaction so concurrent operations cannot lose
each other's update:

    PostgreSQL: UPDATE users SET virtual_balance = virtual_balance + :delta
                WHERE id = :id [AND virtual_balance >= :amount]

    SQLite:     read, add in Decimal, write back, all under the
                write lock taken by BEGIN IMMEDIATE

============================================================
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storage.models.accounts import Trader, User
from storage.models.base import utc_now
from storage.repositories.base import BaseRepository
from storage.repositories.exceptions import RecordNotFoundError


_PROFILE_FIELDS = frozenset({"first_name", "last_name", "phone", "country", "is_verified"})


class AccountRepository(BaseRepository[User]):
    """Repository for user accounts."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, User, "AccountRepository")

    def create_account(
        self,
        email: str,
        username: str,
        starting_balance: Decimal,
        first_name: str = "",
        last_name: str = "",
        phone: Optional[str] = None,
        country: Optional[str] = None,
    ) -> User:
        """
        Insert a new account.

        Raises:
            DuplicateRecordError: email or username already taken
        """
        entity = User(
            email=email,
            username=username,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            country=country,
            virtual_balance=starting_balance,
        )
        return self._add(entity, "create_account")

    def get_account(self, user_id: int, refresh: bool = False) -> Optional[User]:
        """Get account by ID."""
        return self._get_by_id(user_id, refresh=refresh)

    def get_balance(self, user_id: int) -> Optional[Decimal]:
        """Read the current balance straight from the table."""
        return self._execute_scalar(
            select(User.virtual_balance).where(User.id == user_id)
        )

    def adjust_balance(self, user_id: int, delta: Decimal) -> None:
        """
        Add ``delta`` (may be negative) to the account balance.

        Raises:
            RecordNotFoundError: account does not exist
        """
        if self.native_decimal:
            new_balance = User.virtual_balance + delta
        else:
            current = self.get_balance(user_id)
            if current is None:
                raise RecordNotFoundError(self._repository_name, user_id, "user_id", "adjust_balance")
            new_balance = current + delta

        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(virtual_balance=new_balance, updated_at=utc_now())
        )
        matched = self._execute_update(stmt, "adjust_balance", {"user_id": user_id, "delta": str(delta)})
        if matched == 0:
            raise RecordNotFoundError(self._repository_name, user_id, "user_id", "adjust_balance")
        self._logger.debug(f"Account {user_id}: balance {delta:+}")

    def debit_if_sufficient(self, user_id: int, amount: Decimal) -> bool:
        """
        Subtract ``amount`` only if the balance covers it.

        On native-decimal stores the check and the write are one
        statement; on SQLite the write lock taken at BEGIN keeps
        them together.

        Returns:
            True if the debit was applied
        """
        if self.native_decimal:
            stmt = (
                update(User)
                .where(User.id == user_id, User.virtual_balance >= amount)
                .values(virtual_balance=User.virtual_balance - amount, updated_at=utc_now())
            )
        else:
            current = self.get_balance(user_id)
            if current is None or current < amount:
                return False
            stmt = (
                update(User)
                .where(User.id == user_id)
                .values(virtual_balance=current - amount, updated_at=utc_now())
            )
        matched = self._execute_update(stmt, "debit_if_sufficient", {"user_id": user_id, "amount": str(amount)})
        return matched == 1

    def update_profile(self, user_id: int, **fields) -> int:
        """
        Overwrite profile columns (names, phone, country, is_verified).

        Balance and identity columns are not accepted here.

        Returns:
            matched row count
        """
        unknown = set(fields) - _PROFILE_FIELDS
        if unknown:
            raise ValueError(f"not profile fields: {sorted(unknown)}")
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(updated_at=utc_now(), **fields)
        )
        return self._execute_update(stmt, "update_profile", {"user_id": user_id, "fields": sorted(fields)})


class TraderRepository(BaseRepository[Trader]):
    """Repository for trader profiles."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, Trader, "TraderRepository")

    def create_trader(
        self,
        user_id: int,
        display_name: str,
        subscription_price: Decimal,
        bio: Optional[str] = None,
    ) -> Trader:
        """
        Insert a trader profile.

        Raises:
            DuplicateRecordError: account already has a profile
        """
        entity = Trader(
            user_id=user_id,
            display_name=display_name,
            bio=bio,
            subscription_price=subscription_price,
        )
        return self._add(entity, "create_trader")

    def get_trader(self, trader_id: int) -> Optional[Trader]:
        """Get trader by ID."""
        return self._get_by_id(trader_id)
