"""
Storage - Database.

============================================================
RESPONSIBILITY
============================================================
Owns the engine, the session factory and the unit of work for
the ledger store:
- One process-wide engine, built lazily from DATABASE_URL
- transaction_scope(): commit everything or nothing
- Schema creation and the startup check used by /healthcheck

============================================================
CONCURRENCY
============================================================
Each ledger operation is one transaction_scope(). On PostgreSQL
balances move through increment statements.

SQLite has no exact numeric type, so amounts are stored as
decimal text and balance changes read, add and write back in
Python. SQLite engines open every transaction with BEGIN
IMMEDIATE: the write lock is held from the first read, so no
other writer interleaves, and writers wait on the busy timeout
in arrival order.

============================================================
"""

import os
import logging
from typing import Optional, Generator
from contextlib import contextmanager

from sqlalchemy import create_engine, inspect, text, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.exc import SQLAlchemyError, OperationalError
from sqlalchemy.pool import QueuePool, StaticPool

from dotenv import load_dotenv

from storage.models import Base

load_dotenv()

logger = logging.getLogger(__name__)


DEFAULT_DATABASE_URL = "sqlite:///./trading_sim.db"

REQUIRED_TABLES = [
    "users",
    "traders",
    "trades",
    "signals",
    "subscriptions",
    "copy_trades",
    "wallets",
    "transactions",
]

# =============================================================
# ENGINE
# =============================================================

_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


def get_database_url() -> str:
    """DATABASE_URL, or a local SQLite file when unset."""
    url = os.getenv("DATABASE_URL")
    if not url:
        logger.warning(f"DATABASE_URL not set, falling back to {DEFAULT_DATABASE_URL}")
        return DEFAULT_DATABASE_URL

    if url.startswith("postgresql+asyncpg"):
        # Ledger sessions are synchronous
        url = url.replace("postgresql+asyncpg", "postgresql+psycopg2", 1)
    return url


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _install_sqlite_hooks(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def on_connect(dbapi_conn, connection_record):
        # pysqlite's own BEGIN handling is disabled; on_begin issues it
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_database_engine(
    database_url: Optional[str] = None,
    pool_size: int = 10,
    max_overflow: int = 20,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    echo: bool = False,
) -> Engine:
    """
    Build an engine for ``database_url`` (default: environment).

    Pool settings apply to server databases. For SQLite,
    ``pool_timeout`` doubles as the busy timeout a writer waits
    for the database lock; in-memory URLs share one connection.
    """
    url = database_url or get_database_url()
    logger.info(f"Ledger store: {url.split('@')[-1]}")

    if _is_sqlite(url):
        in_memory = url in ("sqlite://", "sqlite:///:memory:")
        engine = create_engine(
            url,
            poolclass=StaticPool if in_memory else QueuePool,
            connect_args={"check_same_thread": False, "timeout": pool_timeout},
            echo=echo,
        )
        _install_sqlite_hooks(engine)
        return engine

    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        pool_pre_ping=True,
        echo=echo,
    )


def init_engine(database_url: Optional[str] = None, **engine_kwargs) -> Engine:
    """
    Replace the process-wide engine and session factory.

    Called by run_api.py at startup and by tests that point the
    API at their own database.
    """
    global _engine

    reset_engine()
    _engine = create_database_engine(database_url, **engine_kwargs)
    return _engine


def reset_engine() -> None:
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = create_database_engine()
    return _engine


def create_session_factory(engine: Engine) -> sessionmaker:
    # Records are copied out of the session before commit returns
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_session_factory() -> sessionmaker:
    global _SessionFactory

    if _SessionFactory is None:
        _SessionFactory = create_session_factory(get_engine())
    return _SessionFactory


# =============================================================
# UNIT OF WORK
# =============================================================


@contextmanager
def transaction_scope(
    session_factory: Optional[sessionmaker] = None,
) -> Generator[Session, None, None]:
    """
    One ledger operation's transaction.

    Commits when the block exits normally. Any exception rolls
    back every write made in the block and is re-raised as is, so
    domain errors keep their type.

    Usage:
        with transaction_scope() as session:
            AccountRepository(session).adjust_balance(user_id, delta)
            TradeRepository(session).mark_closed(trade_id, ...)
    """
    factory = session_factory or get_session_factory()
    session = factory()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Ledger transaction rolled back on store error: {e}")
        session.rollback()
        raise
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# =============================================================
# SCHEMA
# =============================================================


def verify_database_connection(engine: Optional[Engine] = None) -> bool:
    """
    Round-trip ``SELECT 1``.

    Raises:
        DatabaseConnectionError: the store is unreachable
    """
    engine = engine or get_engine()

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
    except OperationalError as e:
        logger.error(f"Ledger store unreachable: {e}")
        raise DatabaseConnectionError(f"Cannot reach the ledger store: {e}") from e
    return True


def create_all_tables(engine: Optional[Engine] = None) -> None:
    """Create missing ledger tables; existing ones are left alone."""
    engine = engine or get_engine()

    try:
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError as e:
        logger.error(f"Schema creation failed: {e}")
        raise DatabaseInitializationError(f"Schema creation failed: {e}") from e
    logger.info(f"Ledger schema ready ({len(Base.metadata.tables)} tables)")


def verify_required_tables(engine: Optional[Engine] = None) -> list:
    """Names of REQUIRED_TABLES absent from the store."""
    engine = engine or get_engine()
    existing = set(inspect(engine).get_table_names())

    missing = [table for table in REQUIRED_TABLES if table not in existing]
    for table in missing:
        logger.warning(f"Ledger table missing: {table}")
    return missing


def initialize_database(engine: Optional[Engine] = None) -> None:
    """
    Startup sequence: connect, create the schema, verify it.

    Any failure is fatal; the API must not serve on a partial
    schema.
    """
    try:
        verify_database_connection(engine)
        create_all_tables(engine)

        missing = verify_required_tables(engine)
        if missing:
            raise DatabaseInitializationError(f"Tables still missing after create_all: {missing}")
    except DatabasePersistenceError as e:
        logger.critical(f"Ledger store initialization failed: {e}")
        raise
    logger.info("Ledger store initialized")


# =============================================================
# EXCEPTIONS
# =============================================================


class DatabasePersistenceError(Exception):
    """Store setup failed."""


class DatabaseConnectionError(DatabasePersistenceError):
    pass


class DatabaseInitializationError(DatabasePersistenceError):
    pass


__all__ = [
    "DEFAULT_DATABASE_URL",
    "REQUIRED_TABLES",
    "get_database_url",
    "create_database_engine",
    "create_session_factory",
    "init_engine",
    "reset_engine",
    "get_engine",
    "get_session_factory",
    "transaction_scope",
    "initialize_database",
    "verify_database_connection",
    "verify_required_tables",
    "create_all_tables",
    "DatabasePersistenceError",
    "DatabaseConnectionError",
    "DatabaseInitializationError",
]
