"""
Storage Package.

This package manages all ledger persistence.

Modules:
- database: Engine, sessions and transaction scopes
- models/: ORM models
- repositories/: Data access layer
"""

from storage.database import (
    get_engine,
    get_session_factory,
    init_engine,
    initialize_database,
    transaction_scope,
)

__all__ = [
    "get_engine",
    "get_session_factory",
    "init_engine",
    "initialize_database",
    "transaction_scope",
]
