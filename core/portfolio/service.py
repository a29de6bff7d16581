"""Portfolio service.

Async facade over the registry, ledger, valuation engine and risk
analytics. Blocking store work runs in worker threads.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Sequence

from core.config import LedgerConfig
from core.errors import InvalidArgumentError
from core.market_data.oracle import PriceOracle
from core.persistence.interfaces import LedgerStore
from core.risk import analytics
from core.risk.returns import build_return_series
from core.types import (
    AllocationEntry,
    ClosedPosition,
    Portfolio,
    PortfolioComparison,
    PortfolioComparisonEntry,
    PortfolioMetrics,
    PortfolioSummary,
    Position,
    PositionType,
    RiskMetrics,
    StrategyType,
)

from .allocation import allocation_weights, compute_allocation
from .ledger import PositionLedger
from .registry import PortfolioRegistry
from .valuation import ValuationEngine

logger = logging.getLogger(__name__)


def _money(value: Decimal | float) -> float:
    return round(float(value), 2)


class PortfolioService:
    """Exposed portfolio operations.

    Constructed explicitly with its collaborators; one instance per process
    is expected but not enforced.
    """

    def __init__(
        self,
        store: LedgerStore,
        oracle: PriceOracle,
        config: Optional[LedgerConfig] = None,
        *,
        ledger: Optional[PositionLedger] = None,
        registry: Optional[PortfolioRegistry] = None,
        valuation: Optional[ValuationEngine] = None,
    ) -> None:
        self.store = store
        self.oracle = oracle
        self.config = config or LedgerConfig()
        self.ledger = ledger or PositionLedger(store)
        self.registry = registry or PortfolioRegistry(store)
        self.valuation = valuation or ValuationEngine(store, oracle, self.config)

    # ---- Registry

    async def create_portfolio(
        self,
        owner: str,
        name: str,
        initial_capital: Decimal,
        strategy_type: StrategyType | str = StrategyType.BALANCED,
        description: str = "",
    ) -> str:
        return await asyncio.to_thread(
            self.registry.create_portfolio, owner, name, initial_capital, strategy_type, description
        )

    async def get_portfolio(self, portfolio_id: str) -> Portfolio:
        return await asyncio.to_thread(self.registry.get_portfolio, portfolio_id)

    async def list_portfolios(self, owner: Optional[str] = None) -> Sequence[Portfolio]:
        return await asyncio.to_thread(self.registry.list_portfolios, owner)

    async def list_portfolio_summaries(self, owner: str) -> Sequence[PortfolioSummary]:
        return await asyncio.to_thread(self.registry.list_portfolio_summaries, owner)

    async def get_positions(self, portfolio_id: str, active_only: bool = False) -> Sequence[Position]:
        return await asyncio.to_thread(self.registry.get_positions, portfolio_id, active_only)

    # ---- Ledger

    async def open_position(
        self,
        portfolio_id: str,
        token: str,
        entry_price: Decimal,
        quantity: Decimal,
        position_type: PositionType | str = PositionType.LONG,
        stop_loss: Optional[Decimal] = None,
        take_profit: Optional[Decimal] = None,
        reason: str = "Manual entry",
        token_symbol: Optional[str] = None,
        token_name: Optional[str] = None,
    ) -> str:
        return await asyncio.to_thread(
            self.ledger.open_position,
            portfolio_id,
            token,
            entry_price,
            quantity,
            position_type,
            stop_loss,
            take_profit,
            reason,
            token_symbol,
            token_name,
        )

    async def close_position(
        self,
        position_id: str,
        exit_price: Decimal,
        reason: str = "Manual exit",
    ) -> ClosedPosition:
        return await asyncio.to_thread(self.ledger.close_position, position_id, exit_price, reason)

    # ---- Reports

    async def get_portfolio_metrics(self, portfolio_id: str) -> PortfolioMetrics:
        """Value the portfolio, then compute performance metrics.

        Raises:
            NotFoundError: If the portfolio does not exist
        """
        await self.valuation.update_portfolio_values(portfolio_id)

        portfolio = await self.get_portfolio(portfolio_id)
        positions = await asyncio.to_thread(self.store.list_positions, portfolio_id=portfolio_id)
        returns = await asyncio.to_thread(
            build_return_series, self.store, portfolio_id, self.config.lookback_days
        )

        active = [p for p in positions if p.is_active]
        closed = [p for p in positions if not p.is_active]
        unrealized = sum((p.unrealized_pnl for p in active), Decimal("0"))
        realized = sum((p.realized_pnl for p in closed), Decimal("0"))
        total_value = portfolio.current_value
        total_pnl_pct = (total_value - portfolio.initial_capital) / portfolio.initial_capital * 100
        day_pnl, day_pnl_pct = await self._day_pnl(portfolio_id, total_value)

        trades = analytics.summarize_trades([float(p.realized_pnl) for p in closed])
        volatility = analytics.calculate_volatility(returns, self.config.periods_per_year)
        sharpe = analytics.calculate_sharpe_ratio(returns, self.config.risk_free_rate, self.config.periods_per_year)
        max_drawdown = analytics.calculate_max_drawdown(returns)

        return PortfolioMetrics(
            total_value=_money(total_value),
            cash_balance=_money(portfolio.cash_balance),
            positions_value=_money(portfolio.positions_value),
            total_pnl=_money(unrealized + realized),
            total_pnl_pct=_money(total_pnl_pct),
            day_pnl=_money(day_pnl),
            day_pnl_pct=_money(day_pnl_pct),
            unrealized_pnl=_money(unrealized),
            realized_pnl=_money(realized),
            active_positions=len(active),
            total_positions=len(positions),
            win_rate=round(trades.win_rate, 2),
            avg_win=round(trades.avg_win, 2),
            avg_loss=round(trades.avg_loss, 2),
            largest_win=round(trades.largest_win, 2),
            largest_loss=round(trades.largest_loss, 2),
            sharpe_ratio=round(sharpe, 3),
            max_drawdown=round(max_drawdown * 100, 2),
            volatility=round(volatility * 100, 2),
            # No benchmark attached to the performance report.
            beta=1.0,
            alpha=0.0,
        )

    async def _day_pnl(self, portfolio_id: str, total_value: Decimal) -> tuple[Decimal, Decimal]:
        """Change since the last snapshot at or before today's UTC midnight."""
        day_start = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
        baseline = await asyncio.to_thread(
            self.store.latest_snapshot, portfolio_id=portfolio_id, at_or_before=day_start
        )
        if baseline is None or baseline.total_value <= 0:
            return Decimal("0"), Decimal("0")
        day_pnl = total_value - baseline.total_value
        return day_pnl, day_pnl / baseline.total_value * 100

    async def get_portfolio_allocation(self, portfolio_id: str) -> list[AllocationEntry]:
        positions = await self.get_positions(portfolio_id, active_only=True)
        return compute_allocation(positions)

    async def get_risk_metrics(
        self,
        portfolio_id: str,
        lookback_days: Optional[int] = None,
        benchmark_returns: Optional[Sequence[float]] = None,
    ) -> RiskMetrics:
        """Value the portfolio, then compute risk metrics.

        Beta and alpha are measured against `benchmark_returns` when given
        (aligned to the most recent periods of the portfolio series); without
        a benchmark beta is 1.0 and alpha 0.0.

        Raises:
            InvalidArgumentError: If lookback_days is less than 1
            NotFoundError: If the portfolio does not exist
        """
        if lookback_days is None:
            lookback_days = self.config.lookback_days
        elif lookback_days < 1:
            raise InvalidArgumentError(f"lookback_days must be at least 1, got {lookback_days}")

        await self.valuation.update_portfolio_values(portfolio_id)

        portfolio = await self.get_portfolio(portfolio_id)
        returns = await asyncio.to_thread(build_return_series, self.store, portfolio_id, lookback_days)
        active = await self.get_positions(portfolio_id, active_only=True)

        var_1d = analytics.calculate_value_at_risk(returns)
        expected_shortfall = analytics.calculate_expected_shortfall(returns)
        concentration = analytics.calculate_herfindahl(allocation_weights(active))

        beta, alpha = 1.0, 0.0
        if benchmark_returns:
            n = min(len(returns), len(benchmark_returns))
            if n >= 2:
                aligned = list(returns[-n:])
                bench = [float(b) for b in benchmark_returns[-n:]]
                beta = analytics.calculate_beta(aligned, bench)
                alpha = analytics.calculate_alpha(
                    aligned, bench, self.config.risk_free_rate, self.config.periods_per_year
                )

        return RiskMetrics(
            portfolio_beta=round(beta, 4),
            alpha=round(alpha, 4),
            value_at_risk_1d=round(var_1d * 100, 2),
            value_at_risk_7d=round(analytics.scale_var(var_1d, 7) * 100, 2),
            expected_shortfall=round(expected_shortfall * 100, 2),
            concentration_risk=round(concentration, 4),
            leverage_ratio=1.0,
            margin_used=0.0,
            buying_power=_money(portfolio.cash_balance),
        )

    async def compare_portfolios(self, portfolio_ids: Sequence[str]) -> PortfolioComparison:
        """Metrics for several portfolios plus rankings (best first).

        Raises:
            NotFoundError: If any portfolio does not exist
        """
        entries = []
        for portfolio_id in dict.fromkeys(portfolio_ids):
            metrics = await self.get_portfolio_metrics(portfolio_id)
            portfolio = await self.get_portfolio(portfolio_id)
            entries.append(
                PortfolioComparisonEntry(portfolio_id=portfolio_id, portfolio_name=portfolio.name, metrics=metrics)
            )

        def rank(key: str) -> tuple[str, ...]:
            ordered = sorted(entries, key=lambda e: getattr(e.metrics, key), reverse=True)
            return tuple(e.portfolio_id for e in ordered)

        return PortfolioComparison(
            portfolios=tuple(entries),
            ranking={
                "by_return": rank("total_pnl_pct"),
                "by_sharpe": rank("sharpe_ratio"),
                "by_win_rate": rank("win_rate"),
            },
        )
