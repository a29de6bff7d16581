"""Return series for risk analytics.

The preferred source is the snapshot history written by each valuation pass
(true portfolio values, resampled to one value per UTC day). Portfolios
without enough history fall back to per-trade returns spread evenly over the
lookback window.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

import pandas as pd

from core.persistence.interfaces import LedgerStore
from core.types import PortfolioSnapshot, Position

logger = logging.getLogger(__name__)

MIN_DAILY_POINTS = 3


def daily_returns_from_snapshots(snapshots: Sequence[PortfolioSnapshot]) -> list[float]:
    """Daily percentage changes of the last snapshot value per UTC day.

    Days without a snapshot are skipped (no forward fill). Returns an empty
    list when fewer than two days are covered.
    """
    if not snapshots:
        return []

    series = pd.Series(
        [float(s.total_value) for s in snapshots],
        index=pd.DatetimeIndex([pd.Timestamp(s.taken_at) for s in snapshots]),
    ).sort_index()
    if series.index.tz is None:
        series.index = series.index.tz_localize("UTC")
    else:
        series.index = series.index.tz_convert("UTC")

    daily = series.resample("1D").last().dropna()
    daily = daily[daily > 0]
    if len(daily) < 2:
        return []
    return [float(r) for r in daily.pct_change().dropna().tolist()]


def resample_trade_returns(trade_returns: Sequence[float], periods: int) -> list[float]:
    """Spread per-trade returns evenly across `periods` periods.

    Each trade gets an equal share of the periods (earlier trades absorb the
    remainder) and its return is split geometrically so the compounded total
    of the output equals the compounded total of the input.
    """
    if not trade_returns or periods <= 0:
        return []

    n = len(trade_returns)
    if periods <= n:
        return [float(r) for r in trade_returns]

    base, extra = divmod(periods, n)
    series: list[float] = []
    for i, r in enumerate(trade_returns):
        slots = base + (1 if i < extra else 0)
        growth = 1.0 + r
        if growth <= 0:
            # Total loss cannot be split geometrically; book it in one period.
            series.extend([0.0] * (slots - 1))
            series.append(float(r))
            continue
        per_period = growth ** (1.0 / slots) - 1.0
        series.extend([per_period] * slots)
    return series


def trade_returns(positions: Sequence[Position]) -> list[float]:
    """Per-position returns ordered by entry time."""
    returns = []
    for position in sorted(positions, key=lambda p: p.entry_time):
        basis = position.cost_basis
        if basis <= 0:
            continue
        pnl = position.unrealized_pnl if position.is_active else position.realized_pnl
        returns.append(float(pnl / basis))
    return returns


def build_return_series(
    store: LedgerStore,
    portfolio_id: str,
    lookback_days: int = 30,
    *,
    now: Optional[datetime] = None,
) -> list[float]:
    """Return the daily return series for a portfolio over `lookback_days`.

    Blocking (reads the store); call via `asyncio.to_thread` from async code.
    """
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(days=lookback_days)

    snapshots = store.list_snapshots(portfolio_id=portfolio_id, since=since)
    daily = daily_returns_from_snapshots(snapshots)
    if len(daily) + 1 >= MIN_DAILY_POINTS:
        return daily

    positions = [p for p in store.list_positions(portfolio_id=portfolio_id) if p.entry_time >= since]
    returns = trade_returns(positions)
    logger.debug(
        f"Portfolio {portfolio_id}: {len(snapshots)} snapshots, using {len(returns)} trade returns"
    )
    return resample_trade_returns(returns, lookback_days)
