#!/usr/bin/env python
"""
Ledger API Server Runner.

Usage:
    python run_api.py

Or with PM2:
    pm2 start run_api.py --interpreter python
"""

import os
import sys
import logging
import uvicorn

from ledger_engine import ApiConfig, DatabaseConfig
from storage.database import init_engine, initialize_database, DatabasePersistenceError

# Setup logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

logger = logging.getLogger(__name__)


def main():
    """Run the ledger API server."""
    config = ApiConfig.from_env()
    reload = os.getenv("ENVIRONMENT", "production") == "development"

    try:
        engine = init_engine(**DatabaseConfig.from_env().engine_kwargs())
        initialize_database(engine)
    except DatabasePersistenceError as e:
        logger.error(f"Database not ready: {e}")
        sys.exit(1)

    logger.info(f"Starting Ledger API on {config.host}:{config.port}")

    try:
        uvicorn.run(
            "trading_api.main:app",
            host=config.host,
            port=config.port,
            reload=reload,
            log_level=config.log_level.lower(),
            access_log=True,
        )
    except Exception as e:
        logger.error(f"Failed to start ledger API: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
