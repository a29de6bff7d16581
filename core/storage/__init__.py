"""Storage implementations of the persistence interfaces."""

from .sql import SqlConfig, SqlStores, create_ledger_engine, create_schema
