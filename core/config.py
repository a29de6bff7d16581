"""Runtime configuration.

Values come from the environment; every field has a default suitable for
local paper trading. `database_url` may contain credentials and must not be
logged.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_DATABASE_URL = "sqlite:///tokenfolio.db"


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class LedgerConfig:
    """Ledger, valuation and automation settings.

    Attributes:
        database_url: SQLAlchemy URL (sqlite file or postgresql)
        risk_free_rate: Annual risk-free rate used by Sharpe and alpha
        periods_per_year: Annualisation factor for per-period returns
        lookback_days: Default return-series window for metrics
        price_timeout_seconds: Upper bound on a single oracle lookup
        monitor_interval_seconds: Stop-loss / take-profit sweep interval
        valuation_interval_seconds: Periodic valuation interval
        mirror_short_triggers: Evaluate SL/TP for shorts with inverted comparisons
        audit_max_events: Most recent automation audit events kept in memory
    """

    database_url: str = DEFAULT_DATABASE_URL
    risk_free_rate: float = 0.02
    periods_per_year: int = 252
    lookback_days: int = 30
    price_timeout_seconds: float = 5.0
    monitor_interval_seconds: float = 30.0
    valuation_interval_seconds: float = 60.0
    mirror_short_triggers: bool = False
    audit_max_events: int = 1000

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> LedgerConfig:
        """Build config from environment variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        defaults = cls()

        return cls(
            database_url=env.get("DATABASE_URL", defaults.database_url),
            risk_free_rate=float(env.get("RISK_FREE_RATE", defaults.risk_free_rate)),
            periods_per_year=int(env.get("PERIODS_PER_YEAR", defaults.periods_per_year)),
            lookback_days=int(env.get("LOOKBACK_DAYS", defaults.lookback_days)),
            price_timeout_seconds=float(env.get("PRICE_TIMEOUT_SECONDS", defaults.price_timeout_seconds)),
            monitor_interval_seconds=float(env.get("MONITOR_INTERVAL_SECONDS", defaults.monitor_interval_seconds)),
            valuation_interval_seconds=float(
                env.get("VALUATION_INTERVAL_SECONDS", defaults.valuation_interval_seconds)
            ),
            mirror_short_triggers=_env_bool(env.get("MIRROR_SHORT_TRIGGERS", "false")),
            audit_max_events=int(env.get("AUDIT_MAX_EVENTS", defaults.audit_max_events)),
        )
