#!/usr/bin/env python3
"""Initialize the ledger database schema.

Creates the portfolio, position and snapshot tables (if missing) in the
database pointed to by DATABASE_URL (default: a local SQLite file).

Usage:
  python -m db.init_db
"""

from __future__ import annotations

import logging

from core.config import LedgerConfig
from core.storage import SqlConfig, create_ledger_engine, create_schema

logger = logging.getLogger(__name__)


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    config = LedgerConfig.from_env()
    engine = create_ledger_engine(SqlConfig(database_url=config.database_url))
    try:
        create_schema(engine)
    finally:
        engine.dispose()

    logger.info(f"Database schema applied ({engine.url.get_backend_name()})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
