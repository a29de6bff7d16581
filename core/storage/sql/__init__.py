"""SQL storage for the portfolio ledger.

SQLite (file databases) for development and tests, PostgreSQL in production.

Notes
- We avoid logging connection URLs to prevent accidental secret leakage.
- Every lifecycle operation runs in a single transaction on one engine.
"""

from .config import SqlConfig
from .engine import create_ledger_engine, create_schema
from .stores import SqlStores
