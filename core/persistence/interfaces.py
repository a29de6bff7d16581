from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional, Protocol, Sequence

from core.types import (
    ClosedPosition,
    Portfolio,
    PortfolioSnapshot,
    PortfolioSummary,
    Position,
    PositionType,
    StrategyType,
)

# Given the locked active position, return its realized P&L.
SettleFn = Callable[[Position], Decimal]

# Given the locked portfolio and all of its positions, return (cash_balance, positions_value).
ReconcileFn = Callable[[Portfolio, Sequence[Position]], tuple[Decimal, Decimal]]


class PortfolioStore(Protocol):
    def create_portfolio(
        self,
        *,
        owner: str,
        name: str,
        initial_capital: Decimal,
        strategy_type: StrategyType,
        description: str = "",
    ) -> Portfolio:
        """Insert a portfolio whose value starts at its initial capital."""

    def get_portfolio(self, *, portfolio_id: str) -> Optional[Portfolio]:
        """Fetch a single portfolio by id."""

    def list_portfolios(self, *, owner: str | None = None) -> Sequence[Portfolio]:
        """List portfolios, newest first, optionally for one owner."""

    def list_portfolio_summaries(self, *, owner: str) -> Sequence[PortfolioSummary]:
        """List an owner's portfolios with aggregated position counts and P&L."""

    def apply_valuation(self, *, portfolio_id: str, reconcile: ReconcileFn) -> Portfolio:
        """Recompute and persist portfolio totals in one transaction.

        Locks the portfolio row, passes it and its positions to `reconcile`,
        writes cash, positions value and total value, and records a snapshot.
        Raises NotFoundError for an unknown portfolio.
        """


class PositionStore(Protocol):
    def open_position(
        self,
        *,
        portfolio_id: str,
        token: str,
        entry_price: Decimal,
        quantity: Decimal,
        position_type: PositionType,
        entry_reason: str,
        value_debit: Decimal,
        stop_loss: Decimal | None = None,
        take_profit: Decimal | None = None,
        token_symbol: str | None = None,
        token_name: str | None = None,
    ) -> Position:
        """Insert an active position and debit the portfolio value atomically.

        Raises NotFoundError if the portfolio does not exist.
        """

    def close_position(
        self,
        *,
        position_id: str,
        exit_price: Decimal,
        exit_reason: str,
        settle: SettleFn,
        reconcile: ReconcileFn,
    ) -> ClosedPosition:
        """Close an active position and reconcile its portfolio atomically.

        After the position is flipped, the portfolio's cash, positions value
        and total value are rewritten from `reconcile` in the same
        transaction; no snapshot is recorded.

        Raises NotFoundError for an unknown position and AlreadyClosedError
        if it is inactive or loses a race against a concurrent close.
        """

    def get_position(self, *, position_id: str) -> Optional[Position]:
        """Fetch a single position by id."""

    def list_positions(self, *, portfolio_id: str, active_only: bool = False) -> Sequence[Position]:
        """List a portfolio's positions, newest first."""

    def list_trigger_candidates(self) -> Sequence[Position]:
        """List active positions with a stop loss or take profit set."""

    def mark_position(self, *, position_id: str, current_price: Decimal, unrealized_pnl: Decimal) -> bool:
        """Persist a mark for an active position. Returns False if it is no longer active."""


class SnapshotStore(Protocol):
    def list_snapshots(self, *, portfolio_id: str, since: datetime | None = None) -> Sequence[PortfolioSnapshot]:
        """List snapshots in chronological order."""

    def latest_snapshot(self, *, portfolio_id: str, at_or_before: datetime) -> Optional[PortfolioSnapshot]:
        """Most recent snapshot taken at or before `at_or_before`, if any."""


class LedgerStore(PortfolioStore, PositionStore, SnapshotStore, Protocol):
    """Everything the ledger services need from one store instance."""

    def ping(self) -> None:
        """Round-trip to the backing database; raises if it is unreachable."""
