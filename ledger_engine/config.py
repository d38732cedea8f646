"""
Ledger Engine - Configuration.

============================================================
PURPOSE
============================================================
All configuration for the ledger service and its store.

Values come from dataclass defaults, overridden from the
environment by ``from_env()`` (a ``.env`` file is honored).

============================================================
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List

from dotenv import load_dotenv


load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


# ============================================================
# DATABASE CONFIGURATION
# ============================================================

@dataclass
class DatabaseConfig:
    """
    Store connection configuration.

    The URL itself is resolved by storage.database.get_database_url().
    """

    pool_size: int = 10
    """Number of connections to keep in pool."""

    max_overflow: int = 20
    """Max connections beyond pool_size."""

    pool_timeout: int = 30
    """Seconds to wait for a connection (SQLite busy timeout too)."""

    pool_recycle: int = 1800
    """Recycle connections after N seconds."""

    echo: bool = False
    """Log SQL statements."""

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        """Load configuration from environment variables."""
        return cls(
            pool_size=int(os.getenv("DB_POOL_SIZE", "10")),
            max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "20")),
            pool_timeout=int(os.getenv("DB_POOL_TIMEOUT", "30")),
            pool_recycle=int(os.getenv("DB_POOL_RECYCLE", "1800")),
            echo=_env_flag("DB_ECHO", "false"),
        )

    def engine_kwargs(self) -> dict:
        """Keyword arguments for create_database_engine()."""
        return {
            "pool_size": self.pool_size,
            "max_overflow": self.max_overflow,
            "pool_timeout": self.pool_timeout,
            "pool_recycle": self.pool_recycle,
            "echo": self.echo,
        }


# ============================================================
# LEDGER CONFIGURATION
# ============================================================

@dataclass
class LedgerConfig:
    """
    Business settings for ledger operations.
    """

    starting_balance: Decimal = Decimal("10000.00")
    """Virtual balance of a new account."""

    default_currency: str = "USD"
    """Currency of the wallet opened with every account."""

    copy_trade_quantity: Decimal = Decimal("1.00000000")
    """Fixed quantity of a copied trade (no position sizing)."""

    audit_all_balance_changes: bool = True
    """Write a Transaction row for trades and subscriptions too."""

    dedupe_funding_references: bool = True
    """Treat a repeated external funding reference as a replay."""

    enforce_signal_expiry: bool = True
    """Treat a signal past expires_at as inactive."""

    funding_retries: int = 2
    """Retries when two first fundings race to create one wallet."""

    default_list_limit: int = 100
    """Page size for list reads."""

    @classmethod
    def from_env(cls) -> "LedgerConfig":
        """Load configuration from environment variables."""
        return cls(
            starting_balance=Decimal(os.getenv("LEDGER_STARTING_BALANCE", "10000.00")),
            default_currency=os.getenv("LEDGER_DEFAULT_CURRENCY", "USD").upper(),
            copy_trade_quantity=Decimal(os.getenv("LEDGER_COPY_TRADE_QUANTITY", "1.00000000")),
            audit_all_balance_changes=_env_flag("LEDGER_AUDIT_ALL", "true"),
            dedupe_funding_references=_env_flag("LEDGER_DEDUPE_FUNDING_REFERENCES", "true"),
            enforce_signal_expiry=_env_flag("LEDGER_ENFORCE_SIGNAL_EXPIRY", "true"),
        )

    @classmethod
    def for_testing(cls) -> "LedgerConfig":
        """Get configuration for testing."""
        return cls(funding_retries=5)

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = []
        if self.starting_balance < 0:
            errors.append("starting_balance must be >= 0")
        if self.copy_trade_quantity <= 0:
            errors.append("copy_trade_quantity must be > 0")
        if not self.default_currency:
            errors.append("default_currency must not be empty")
        if self.funding_retries < 0:
            errors.append("funding_retries must be >= 0")
        return errors


@dataclass
class ApiConfig:
    """HTTP server settings."""

    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "ApiConfig":
        """Load configuration from environment variables."""
        origins = os.getenv("API_CORS_ORIGINS", "*")
        return cls(
            host=os.getenv("API_HOST", "0.0.0.0"),
            port=int(os.getenv("API_PORT", "8000")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )


__all__ = [
    "DatabaseConfig",
    "LedgerConfig",
    "ApiConfig",
]
