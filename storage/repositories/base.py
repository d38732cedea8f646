"""
Base Repository Class.

============================================================
PURPOSE
============================================================
Shared plumbing for the ledger repositories:
- Insert with immediate flush so unique keys fail at the call site
- Primary-key reads that can bypass the identity map
- Guarded UPDATE statements that report their matched row count
- Translation of driver errors into repository exceptions

Repositories receive a session and never commit. The caller's
transaction_scope() owns the boundary.

============================================================
"""

import logging
from abc import ABC
from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from storage.models.base import Base
from storage.repositories.exceptions import (
    DuplicateRecordError,
    StoreError,
)


T = TypeVar("T", bound=Base)

_UNIQUE_MARKERS = ("unique", "duplicate key")


def describe_constraint(error: IntegrityError) -> str:
    """
    Name of the constraint behind an integrity error.

    psycopg2 exposes it on ``diag``; sqlite3 only puts the column
    list in the message (``UNIQUE constraint failed: users.email``).
    """
    orig = getattr(error, "orig", None)
    name = getattr(getattr(orig, "diag", None), "constraint_name", None)
    if name:
        return name

    text = str(orig if orig is not None else error)
    _, sep, columns = text.partition("constraint failed:")
    return columns.strip() if sep else "unknown"


class BaseRepository(ABC, Generic[T]):
    """
    Base for repositories managing one ORM model.

    Subclasses pass the model and a name used for the
    ``repository.<name>`` logger and in raised exceptions:

        class WalletRepository(BaseRepository[Wallet]):
            def __init__(self, session: Session):
                super().__init__(session, Wallet, "WalletRepository")
    """

    def __init__(
        self,
        session: Session,
        model_class: Type[T],
        repository_name: str
    ) -> None:
        self._session = session
        self._model_class = model_class
        self._repository_name = repository_name
        self._logger = logging.getLogger(f"repository.{repository_name}")

    @property
    def session(self) -> Session:
        return self._session

    @property
    def repository_name(self) -> str:
        return self._repository_name

    @property
    def native_decimal(self) -> bool:
        """
        True when the store does exact NUMERIC arithmetic.

        Without it (SQLite) amounts are stored as decimal text: an
        increment must be computed in Python from a value read in
        the same transaction. SQLite transactions begin IMMEDIATE,
        so no other writer can interleave between read and write.
        """
        return self._session.get_bind().dialect.supports_native_decimal

    # =========================================================
    # ERROR TRANSLATION
    # =========================================================

    def _raise_store_error(self, error: SQLAlchemyError, operation: str, context: Optional[dict] = None) -> None:
        """
        Re-raise a driver error as a repository exception.

        Raises:
            DuplicateRecordError: unique key violation
            StoreError: everything else
        """
        if isinstance(error, IntegrityError):
            constraint = describe_constraint(error)
            if any(marker in str(error).lower() for marker in _UNIQUE_MARKERS):
                # Losing an insert race is routine; the service decides
                self._logger.info(f"{operation}: unique key taken ({constraint})")
                raise DuplicateRecordError(self._repository_name, constraint, operation) from error
            self._logger.error(f"{operation}: integrity violation on {constraint}: {error.orig} context={context}")
            raise StoreError(self._repository_name, operation, str(error.orig)) from error

        retryable = isinstance(error, OperationalError)
        self._logger.error(f"{operation} failed (retryable={retryable}): {error} context={context}", exc_info=True)
        raise StoreError(self._repository_name, operation, str(error), retryable=retryable) from error

    # =========================================================
    # STATEMENT HELPERS
    # =========================================================

    def _add(self, entity: T, operation: str = "add") -> T:
        """Add and flush, so constraint violations surface here."""
        try:
            self._session.add(entity)
            self._session.flush()
        except SQLAlchemyError as e:
            self._raise_store_error(e, operation)
        self._logger.debug(f"{operation}: {entity}")
        return entity

    def _get_by_id(self, record_id: Any, refresh: bool = False) -> Optional[T]:
        """
        Primary-key read.

        ``refresh=True`` reloads the row even when the instance is
        already in the identity map; needed after a guarded UPDATE.
        """
        try:
            return self._session.get(self._model_class, record_id, populate_existing=refresh)
        except SQLAlchemyError as e:
            self._raise_store_error(e, "get_by_id")

    def _execute_query(self, stmt: Any) -> List[T]:
        try:
            return list(self._session.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            self._raise_store_error(e, "query")

    def _execute_scalar(self, stmt: Any) -> Optional[Any]:
        try:
            return self._session.execute(stmt).scalars().first()
        except SQLAlchemyError as e:
            self._raise_store_error(e, "query_scalar")

    def _execute_update(self, stmt: Any, operation: str, context: Optional[dict] = None) -> int:
        """
        Run an UPDATE and return how many rows it matched.

        The session is not synchronized; reload touched rows with
        ``refresh=True``. A WHERE clause on the expected status or
        balance turns the row count into the guard.
        """
        try:
            result = self._session.execute(stmt, execution_options={"synchronize_session": False})
        except SQLAlchemyError as e:
            self._raise_store_error(e, operation, context)
        return result.rowcount
