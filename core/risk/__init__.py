"""Risk analytics module.

Volatility, Sharpe, drawdown, VaR / expected shortfall, beta / alpha and
concentration over portfolio return series.
"""

from .analytics import (
    TradeStats,
    calculate_alpha,
    calculate_beta,
    calculate_expected_shortfall,
    calculate_herfindahl,
    calculate_max_drawdown,
    calculate_sharpe_ratio,
    calculate_value_at_risk,
    calculate_volatility,
    scale_var,
    summarize_trades,
)
from .returns import build_return_series, daily_returns_from_snapshots, resample_trade_returns

__all__ = [
    # Statistics
    "calculate_alpha",
    "calculate_beta",
    "calculate_expected_shortfall",
    "calculate_herfindahl",
    "calculate_max_drawdown",
    "calculate_sharpe_ratio",
    "calculate_value_at_risk",
    "calculate_volatility",
    "scale_var",
    # Trades
    "TradeStats",
    "summarize_trades",
    # Return series
    "build_return_series",
    "daily_returns_from_snapshots",
    "resample_trade_returns",
]
