"""Valuation engine.

Re-marks active positions from the price oracle and reconciles portfolio
cash, positions value and total value from persisted state.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from core.automation.scheduler import PeriodicTask
from core.config import LedgerConfig
from core.errors import NotFoundError
from core.market_data.oracle import PriceOracle, fetch_price
from core.persistence.interfaces import LedgerStore
from core.types import Position, ValuationResult

from . import accounting

logger = logging.getLogger(__name__)


class ValuationEngine:
    """Recomputes portfolio state on demand and periodically."""

    def __init__(self, store: LedgerStore, oracle: PriceOracle, config: Optional[LedgerConfig] = None) -> None:
        self.store = store
        self.oracle = oracle
        self.config = config or LedgerConfig()
        self._periodic: Optional[PeriodicTask] = None

    async def _mark(self, position: Position) -> bool:
        price = await fetch_price(self.oracle, position.token, timeout=self.config.price_timeout_seconds)
        if price is None:
            return False

        pnl = accounting.calculate_pnl(position.entry_price, price, position.quantity, position.position_type)
        marked = await asyncio.to_thread(
            self.store.mark_position,
            position_id=position.id,
            current_price=price,
            unrealized_pnl=pnl,
        )
        if not marked:
            logger.debug(f"Position {position.id} closed before it could be marked")
        return marked

    async def update_portfolio_values(self, portfolio_id: str) -> ValuationResult:
        """Re-mark active positions and reconcile the portfolio.

        Raises:
            NotFoundError: If the portfolio does not exist
        """
        portfolio = await asyncio.to_thread(self.store.get_portfolio, portfolio_id=portfolio_id)
        if portfolio is None:
            raise NotFoundError("Portfolio", portfolio_id)

        positions = await asyncio.to_thread(self.store.list_positions, portfolio_id=portfolio_id, active_only=True)

        priced = 0
        skipped: list[str] = []
        for position in positions:
            if await self._mark(position):
                priced += 1
            else:
                skipped.append(position.id)

        updated = await asyncio.to_thread(
            self.store.apply_valuation, portfolio_id=portfolio_id, reconcile=accounting.reconcile_portfolio
        )

        logger.info(
            f"Portfolio {portfolio_id} valued: total={updated.current_value:.2f} "
            f"cash={updated.cash_balance:.2f} positions={updated.positions_value:.2f} "
            f"(priced={priced}, skipped={len(skipped)})"
        )
        return ValuationResult(
            portfolio_id=portfolio_id,
            cash_balance=updated.cash_balance,
            positions_value=updated.positions_value,
            total_value=updated.current_value,
            priced=priced,
            skipped=tuple(skipped),
        )

    async def update_all_portfolios(self) -> list[ValuationResult]:
        """Value every portfolio concurrently; failures are logged per portfolio."""
        portfolios = await asyncio.to_thread(self.store.list_portfolios)
        outcomes = await asyncio.gather(
            *(self.update_portfolio_values(p.id) for p in portfolios),
            return_exceptions=True,
        )

        results: list[ValuationResult] = []
        for portfolio, outcome in zip(portfolios, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.error(f"Valuation failed for portfolio {portfolio.id}: {outcome}")
                continue
            results.append(outcome)
        return results

    def run_periodic(self, interval: Optional[float] = None) -> asyncio.Task[None]:
        """Start periodic valuation of all portfolios on the running loop."""
        if self._periodic is None:
            self._periodic = PeriodicTask(
                "valuation",
                interval or self.config.valuation_interval_seconds,
                self.update_all_portfolios,
            )
        return self._periodic.start()

    async def stop(self) -> None:
        if self._periodic is not None:
            await self._periodic.stop()
