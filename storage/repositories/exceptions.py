"""
Repository Layer Exceptions.

Repositories never leak SQLAlchemy exceptions. Every driver error
is re-raised as one of:

- DuplicateRecordError: a unique key is already taken (an expected
  outcome of racing inserts; the ledger service decides what it means)
- RecordNotFoundError: a targeted read or update matched no row
- ImmutableRecordError: a write to a processed transaction
- StoreError: anything else (foreign keys, locks, lost connections)

Only the first three are translated by the ledger service; a
StoreError propagates to the caller after rollback.
"""

from typing import Any, Optional


class RepositoryException(Exception):
    """Base class; carries the repository and operation that failed."""

    def __init__(
        self,
        message: str,
        repository_name: str,
        operation: str,
        details: Optional[dict] = None
    ) -> None:
        self.message = message
        self.repository_name = repository_name
        self.operation = operation
        self.details = details or {}
        super().__init__(f"[{repository_name}] {operation}: {message}")


class RecordNotFoundError(RepositoryException):
    """A record addressed by key does not exist."""

    def __init__(
        self,
        repository_name: str,
        record_id: Any,
        id_field: str = "id",
        operation: str = "get",
    ) -> None:
        super().__init__(
            f"no row with {id_field}={record_id}",
            repository_name,
            operation,
            {id_field: str(record_id)},
        )
        self.record_id = record_id
        self.id_field = id_field


class DuplicateRecordError(RepositoryException):
    """
    An insert hit a unique constraint.

    ``constraint`` is the constraint name on PostgreSQL, or the
    column list SQLite reports (``wallets.user_id, wallets.currency``).
    """

    def __init__(
        self,
        repository_name: str,
        constraint: str,
        operation: str = "create",
    ) -> None:
        super().__init__(
            f"unique key taken ({constraint})",
            repository_name,
            operation,
            {"constraint": constraint},
        )
        self.constraint = constraint


class ImmutableRecordError(RepositoryException):
    """A processed transaction was asked to change."""

    def __init__(
        self,
        repository_name: str,
        record_id: Any,
        attempted_operation: str
    ) -> None:
        super().__init__(
            f"record {record_id} is already processed",
            repository_name,
            attempted_operation,
            {"record_id": str(record_id)},
        )
        self.record_id = record_id


class StoreError(RepositoryException):
    """
    Any other database failure.

    ``retryable`` is set for operational errors (lock timeouts,
    dropped connections) where the whole operation may be re-run.
    """

    def __init__(
        self,
        repository_name: str,
        operation: str,
        original_error: str,
        retryable: bool = False,
    ) -> None:
        super().__init__(
            original_error,
            repository_name,
            operation,
            {"original_error": original_error, "retryable": retryable},
        )
        self.retryable = retryable
