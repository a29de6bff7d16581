"""Portfolio registry: creation and lookup."""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Optional, Sequence

from core.errors import InvalidArgumentError, NotFoundError
from core.persistence.interfaces import LedgerStore
from core.types import Portfolio, PortfolioSummary, Position, StrategyType

logger = logging.getLogger(__name__)


class PortfolioRegistry:
    def __init__(self, store: LedgerStore) -> None:
        self._store = store

    def create_portfolio(
        self,
        owner: str,
        name: str,
        initial_capital: Decimal,
        strategy_type: StrategyType | str = StrategyType.BALANCED,
        description: str = "",
    ) -> str:
        """Create a portfolio and return its id.

        Raises:
            InvalidArgumentError: For capital <= 0, an empty name or owner,
                or an unknown strategy type
        """
        try:
            capital = Decimal(str(initial_capital))
        except InvalidOperation as exc:
            raise InvalidArgumentError(f"initial_capital must be a number, got {initial_capital!r}") from exc
        if not capital.is_finite() or capital <= 0:
            raise InvalidArgumentError(f"initial_capital must be positive, got {capital}")
        if not name or not name.strip():
            raise InvalidArgumentError("name is required")
        if not owner:
            raise InvalidArgumentError("owner is required")
        try:
            strategy = StrategyType(strategy_type)
        except ValueError as exc:
            raise InvalidArgumentError(f"Unknown strategy type: {strategy_type!r}") from exc

        portfolio = self._store.create_portfolio(
            owner=owner,
            name=name.strip(),
            initial_capital=capital,
            strategy_type=strategy,
            description=description,
        )
        logger.info(f"Portfolio created: {portfolio.name} ({portfolio.id}) for {owner} with ${capital}")
        return portfolio.id

    def get_portfolio(self, portfolio_id: str) -> Portfolio:
        portfolio = self._store.get_portfolio(portfolio_id=portfolio_id)
        if portfolio is None:
            raise NotFoundError("Portfolio", portfolio_id)
        return portfolio

    def list_portfolios(self, owner: Optional[str] = None) -> Sequence[Portfolio]:
        return self._store.list_portfolios(owner=owner)

    def list_portfolio_summaries(self, owner: str) -> Sequence[PortfolioSummary]:
        return self._store.list_portfolio_summaries(owner=owner)

    def get_positions(self, portfolio_id: str, active_only: bool = False) -> Sequence[Position]:
        """Positions of a portfolio, newest first.

        Raises:
            NotFoundError: If the portfolio does not exist
        """
        self.get_portfolio(portfolio_id)
        return self._store.list_positions(portfolio_id=portfolio_id, active_only=active_only)
