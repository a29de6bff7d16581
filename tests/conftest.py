"""Shared test fixtures for pytest.

Every test gets a fresh SQLite file database under `tmp_path`, the real
SQLAlchemy store, and a simulated price oracle.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Iterator

import pytest

from core.automation import AuditLogger, AutomationMonitor
from core.config import LedgerConfig
from core.market_data import InMemoryPriceOracle
from core.portfolio import PortfolioRegistry, PortfolioService, PositionLedger, ValuationEngine
from core.storage import SqlConfig, SqlStores, create_schema


@pytest.fixture
def ledger_config() -> LedgerConfig:
    """Config with a short oracle timeout so slow-feed tests stay fast."""
    return LedgerConfig(price_timeout_seconds=0.2, monitor_interval_seconds=0.05, valuation_interval_seconds=0.05)


@pytest.fixture
def stores(tmp_path: Path) -> Iterator[SqlStores]:
    """SQL store on a temporary SQLite file with the schema created."""
    stores = SqlStores(config=SqlConfig(database_url=f"sqlite:///{tmp_path / 'ledger.db'}"))
    create_schema(stores.engine)
    yield stores
    stores.dispose()


@pytest.fixture
def oracle() -> InMemoryPriceOracle:
    return InMemoryPriceOracle()


@pytest.fixture
def ledger(stores: SqlStores) -> PositionLedger:
    return PositionLedger(stores)


@pytest.fixture
def registry(stores: SqlStores) -> PortfolioRegistry:
    return PortfolioRegistry(stores)


@pytest.fixture
def valuation(stores: SqlStores, oracle: InMemoryPriceOracle, ledger_config: LedgerConfig) -> ValuationEngine:
    return ValuationEngine(stores, oracle, ledger_config)


@pytest.fixture
def service(stores: SqlStores, oracle: InMemoryPriceOracle, ledger_config: LedgerConfig) -> PortfolioService:
    return PortfolioService(stores, oracle, ledger_config)


@pytest.fixture
def audit_logger() -> AuditLogger:
    return AuditLogger()


@pytest.fixture
def monitor(
    stores: SqlStores,
    ledger: PositionLedger,
    oracle: InMemoryPriceOracle,
    ledger_config: LedgerConfig,
    audit_logger: AuditLogger,
) -> AutomationMonitor:
    return AutomationMonitor(
        store=stores,
        ledger=ledger,
        oracle=oracle,
        config=ledger_config,
        audit_logger=audit_logger,
    )


@pytest.fixture
def portfolio_id(registry: PortfolioRegistry) -> str:
    """A balanced portfolio with $10,000 initial capital."""
    return registry.create_portfolio("alice", "Main", Decimal("10000"))
