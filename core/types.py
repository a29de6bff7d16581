from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


class StrategyType(str, Enum):
    """Portfolio strategy profile."""

    CONSERVATIVE = "conservative"
    BALANCED = "balanced"
    AGGRESSIVE = "aggressive"
    CUSTOM = "custom"


class PositionType(str, Enum):
    """Position direction."""

    LONG = "long"
    SHORT = "short"


@dataclass(frozen=True)
class Portfolio:
    id: str
    owner: str
    name: str
    strategy_type: StrategyType
    initial_capital: Decimal
    current_value: Decimal
    cash_balance: Decimal
    positions_value: Decimal
    created_at: datetime
    updated_at: datetime
    description: str = ""
    valued_at: Optional[datetime] = None


@dataclass(frozen=True)
class Position:
    id: str
    portfolio_id: str
    token: str
    entry_price: Decimal
    entry_time: datetime
    quantity: Decimal
    position_type: PositionType
    current_price: Decimal
    unrealized_pnl: Decimal
    realized_pnl: Decimal
    is_active: bool
    entry_reason: str
    stop_loss: Optional[Decimal] = None
    take_profit: Optional[Decimal] = None
    exit_price: Optional[Decimal] = None
    exit_time: Optional[datetime] = None
    exit_reason: Optional[str] = None
    token_symbol: Optional[str] = None
    token_name: Optional[str] = None

    @property
    def cost_basis(self) -> Decimal:
        """Notional at entry."""
        return self.entry_price * self.quantity

    @property
    def market_value(self) -> Decimal:
        """Gross notional at the last marked price."""
        return self.current_price * self.quantity


@dataclass(frozen=True)
class PortfolioSummary:
    """Portfolio with aggregated position counts and P&L."""

    portfolio: Portfolio
    total_positions: int
    active_positions: int
    total_unrealized_pnl: Decimal
    total_realized_pnl: Decimal


@dataclass(frozen=True)
class PortfolioSnapshot:
    """Portfolio value recorded by a valuation pass."""

    portfolio_id: str
    taken_at: datetime
    total_value: Decimal
    cash_balance: Decimal
    positions_value: Decimal


@dataclass(frozen=True)
class ClosedPosition:
    """Outcome of a successful close."""

    position_id: str
    portfolio_id: str
    token: str
    position_type: PositionType
    exit_price: Decimal
    exit_time: datetime
    realized_pnl: Decimal
    exit_reason: str


@dataclass(frozen=True)
class ValuationResult:
    """Outcome of one valuation pass over a portfolio."""

    portfolio_id: str
    cash_balance: Decimal
    positions_value: Decimal
    total_value: Decimal
    priced: int
    skipped: tuple[str, ...] = ()


@dataclass(frozen=True)
class PortfolioMetrics:
    """Performance report.

    total_pnl_pct, day_pnl_pct, win_rate, max_drawdown and volatility are
    percentages. Day P&L is measured against the last snapshot taken at or
    before the start of the current UTC day.
    """

    total_value: float
    cash_balance: float
    positions_value: float
    total_pnl: float
    total_pnl_pct: float
    day_pnl: float
    day_pnl_pct: float
    unrealized_pnl: float
    realized_pnl: float
    active_positions: int
    total_positions: int
    win_rate: float
    avg_win: float
    avg_loss: float
    largest_win: float
    largest_loss: float
    sharpe_ratio: float
    max_drawdown: float
    volatility: float
    beta: float
    alpha: float


@dataclass(frozen=True)
class AllocationEntry:
    token: str
    token_symbol: Optional[str]
    token_name: Optional[str]
    position_type: PositionType
    allocation_pct: float
    value_usd: float
    pnl_usd: float
    pnl_pct: float
    weight: float


@dataclass(frozen=True)
class RiskMetrics:
    """Risk report. VaR and expected shortfall are percentages."""

    portfolio_beta: float
    alpha: float
    value_at_risk_1d: float
    value_at_risk_7d: float
    expected_shortfall: float
    concentration_risk: float
    leverage_ratio: float
    margin_used: float
    buying_power: float


@dataclass(frozen=True)
class PortfolioComparisonEntry:
    portfolio_id: str
    portfolio_name: str
    metrics: PortfolioMetrics


@dataclass(frozen=True)
class PortfolioComparison:
    portfolios: tuple[PortfolioComparisonEntry, ...]
    ranking: dict[str, tuple[str, ...]] = field(default_factory=dict)
