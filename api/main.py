"""FastAPI application for portfolio ledger and risk analytics endpoints.

This module provides a thin HTTP surface over `PortfolioService`:
- GET /health - Database connectivity check
- /portfolios/... - Portfolios, positions, metrics, allocation, risk
- PUT/DELETE /prices/{token} - Feed the simulated price oracle
- GET /automation/audit - Stop-loss / take-profit audit trail

Requirements:
- DATABASE_URL selects the ledger database (defaults to a local SQLite file)
- No authentication (local network only)
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.routes import automation, portfolios, prices
from core.automation import AutomationMonitor
from core.config import LedgerConfig
from core.errors import AlreadyClosedError, InvalidArgumentError, LedgerError, NotFoundError
from core.market_data import InMemoryPriceOracle, PriceOracle
from core.portfolio import PortfolioService
from core.storage import SqlConfig, SqlStores, create_schema

logger = logging.getLogger(__name__)


def _error_response(status_code: int, error: str, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": {"error": error, "message": str(exc)}})


def create_app(
    service: PortfolioService,
    oracle: Optional[PriceOracle] = None,
    *,
    monitor: Optional[AutomationMonitor] = None,
    start_background: bool = False,
) -> FastAPI:
    """Build the API around an already-constructed service.

    With `start_background`, periodic valuation and the automation monitor
    run for the lifetime of the app.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if start_background:
            service.valuation.run_periodic()
            if monitor is not None:
                monitor.start()
            logger.info("Background valuation and monitoring started")
        try:
            yield
        finally:
            if start_background:
                await service.valuation.stop()
                if monitor is not None:
                    await monitor.stop()

    app = FastAPI(
        title="Tokenfolio API",
        description="Simulated token portfolios: ledger, valuation and risk analytics",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.service = service
    app.state.oracle = oracle if oracle is not None else service.oracle
    app.state.monitor = monitor

    app.include_router(portfolios.router)
    app.include_router(prices.router)
    app.include_router(automation.router)

    @app.exception_handler(NotFoundError)
    async def not_found_handler(_request: Request, exc: NotFoundError) -> JSONResponse:
        return _error_response(404, "not_found", exc)

    @app.exception_handler(AlreadyClosedError)
    async def already_closed_handler(_request: Request, exc: AlreadyClosedError) -> JSONResponse:
        return _error_response(409, "already_closed", exc)

    @app.exception_handler(InvalidArgumentError)
    async def invalid_argument_handler(_request: Request, exc: InvalidArgumentError) -> JSONResponse:
        return _error_response(400, "validation_error", exc)

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(_request: Request, exc: LedgerError) -> JSONResponse:
        logger.error(f"Unhandled ledger error: {exc}")
        return _error_response(400, "ledger_error", exc)

    @app.get("/health")
    async def health() -> Any:
        """Database connectivity check."""
        try:
            await asyncio.to_thread(service.store.ping)
        except Exception as e:
            logger.error(f"Health check failed: {type(e).__name__}")
            return JSONResponse(
                status_code=503,
                content={"status": "error", "database": {"connected": False, "error": type(e).__name__}},
            )
        return {"status": "ok", "database": {"connected": True}}

    return app


def create_app_from_env() -> FastAPI:
    """uvicorn factory: wire the service from environment configuration."""
    config = LedgerConfig.from_env()
    stores = SqlStores(config=SqlConfig(database_url=config.database_url))
    create_schema(stores.engine)

    oracle = InMemoryPriceOracle()
    service = PortfolioService(stores, oracle, config)
    monitor = AutomationMonitor(store=stores, ledger=service.ledger, oracle=oracle, config=config)
    return create_app(service, oracle, monitor=monitor, start_background=True)
