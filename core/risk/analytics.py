"""Risk and performance statistics.

Pure functions over per-period return series (fractions, e.g. 0.01 = 1%).
All statistics are population statistics and return 0.0 (or 1.0 for beta)
for degenerate inputs rather than raising.
"""

from __future__ import annotations

import math
import statistics
from dataclasses import dataclass
from typing import Sequence

PERIODS_PER_YEAR = 252
DEFAULT_RISK_FREE_RATE = 0.02


def _mean(values: Sequence[float]) -> float:
    return statistics.fmean(values)


def _pvariance(values: Sequence[float]) -> float:
    # Exact arithmetic: a constant series has exactly zero variance.
    return statistics.pvariance(values)


def calculate_volatility(returns: Sequence[float], periods_per_year: int = PERIODS_PER_YEAR) -> float:
    """Annualised volatility.

    Volatility = population std dev of returns * sqrt(periods_per_year)

    Returns:
        Volatility as a fraction (0.0 for empty or constant series)
    """
    if not returns:
        return 0.0
    variance = _pvariance(returns)
    if variance <= 0:
        return 0.0
    return math.sqrt(variance) * math.sqrt(periods_per_year)


def calculate_sharpe_ratio(
    returns: Sequence[float],
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
    periods_per_year: int = PERIODS_PER_YEAR,
) -> float:
    """Annualised Sharpe ratio.

    Sharpe Ratio = (mean return * periods_per_year - risk_free_rate) / volatility

    Args:
        returns: Per-period returns
        risk_free_rate: Annual risk-free rate (default 2%)
        periods_per_year: Annualisation factor (default 252)

    Returns:
        Sharpe ratio (0.0 when volatility is zero)
    """
    volatility = calculate_volatility(returns, periods_per_year)
    if volatility == 0:
        return 0.0
    annual_return = _mean(returns) * periods_per_year
    return (annual_return - risk_free_rate) / volatility


def calculate_max_drawdown(returns: Sequence[float]) -> float:
    """Maximum drawdown of the compounded return path.

    The running peak starts at 0 (the initial value); each period
    drawdown = (peak - cumulative) / (1 + peak).

    Returns:
        Maximum drawdown as a fraction (0.0 to 1.0)
    """
    cumulative = 0.0
    peak = 0.0
    max_dd = 0.0

    for r in returns:
        cumulative = (1 + cumulative) * (1 + r) - 1
        if cumulative > peak:
            peak = cumulative
        dd = (peak - cumulative) / (1 + peak)
        if dd > max_dd:
            max_dd = dd

    return max_dd


def _tail_index(n: int, confidence: float) -> int:
    return min(int(math.floor((1 - confidence) * n + 1e-9)), n - 1)


def calculate_value_at_risk(returns: Sequence[float], confidence: float = 0.95) -> float:
    """Historical Value at Risk.

    VaR = |sorted(returns)[floor((1 - confidence) * n)]|

    Returns:
        VaR as a positive fraction (0.0 for empty input)
    """
    if not returns:
        return 0.0
    ordered = sorted(returns)
    return abs(ordered[_tail_index(len(ordered), confidence)])


def calculate_expected_shortfall(returns: Sequence[float], confidence: float = 0.95) -> float:
    """Expected shortfall (conditional VaR).

    Mean of all returns at or below the VaR percentile return, as a positive
    fraction.
    """
    if not returns:
        return 0.0
    ordered = sorted(returns)
    cutoff = ordered[_tail_index(len(ordered), confidence)]
    tail = [r for r in ordered if r <= cutoff]
    return abs(_mean(tail))


def calculate_beta(returns: Sequence[float], benchmark_returns: Sequence[float]) -> float:
    """Beta against a benchmark series of the same length.

    Beta = cov(returns, benchmark) / var(benchmark)

    Returns 1.0 (market-neutral assumption) when the series lengths differ,
    there are fewer than 2 points, or the benchmark has no variance.
    """
    n = len(returns)
    if n != len(benchmark_returns) or n < 2:
        return 1.0

    bench_var = _pvariance(benchmark_returns)
    if bench_var == 0:
        return 1.0

    mean_r = _mean(returns)
    mean_b = _mean(benchmark_returns)
    covariance = sum((r - mean_r) * (b - mean_b) for r, b in zip(returns, benchmark_returns)) / n
    return covariance / bench_var


def calculate_alpha(
    returns: Sequence[float],
    benchmark_returns: Sequence[float],
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
    periods_per_year: int = PERIODS_PER_YEAR,
) -> float:
    """Jensen's alpha, annualised.

    Alpha = R_p - (rf + beta * (R_b - rf)) using annualised mean returns.
    0.0 for empty input or a benchmark of a different length.
    """
    if not returns or len(returns) != len(benchmark_returns):
        return 0.0

    beta = calculate_beta(returns, benchmark_returns)
    portfolio_return = _mean(returns) * periods_per_year
    benchmark_return = _mean(benchmark_returns) * periods_per_year
    return portfolio_return - (risk_free_rate + beta * (benchmark_return - risk_free_rate))


def calculate_herfindahl(weights: Sequence[float]) -> float:
    """Herfindahl concentration index: sum of squared weights (0 when empty)."""
    return sum(w * w for w in weights)


def scale_var(var: float, days: int) -> float:
    """Scale a one-period VaR to `days` periods (square-root-of-time rule)."""
    return var * math.sqrt(days)


@dataclass(frozen=True)
class TradeStats:
    """Closed-trade statistics. win_rate is a percentage."""

    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    avg_win: float
    avg_loss: float
    largest_win: float
    largest_loss: float


def summarize_trades(realized_pnls: Sequence[float]) -> TradeStats:
    """Summarise realized P&L of closed trades.

    A trade with P&L <= 0 counts as a loss. avg_loss and largest_loss are
    reported as (non-positive) P&L values.
    """
    wins = [p for p in realized_pnls if p > 0]
    losses = [p for p in realized_pnls if p <= 0]
    total = len(realized_pnls)

    return TradeStats(
        total_trades=total,
        winning_trades=len(wins),
        losing_trades=len(losses),
        win_rate=(len(wins) / total * 100) if total else 0.0,
        avg_win=_mean(wins) if wins else 0.0,
        avg_loss=_mean(losses) if losses else 0.0,
        largest_win=max(wins) if wins else 0.0,
        largest_loss=min(losses) if losses else 0.0,
    )
