"""Persistence interfaces.

These protocols define the persistence boundary. The store must support
atomic, rollback-capable multi-statement transactions; the SQLAlchemy
implementation lives in `core.storage.sql`.
"""

from .interfaces import (
    LedgerStore,
    PortfolioStore,
    PositionStore,
    ReconcileFn,
    SettleFn,
    SnapshotStore,
)
