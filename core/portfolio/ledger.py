"""Position ledger.

Opens and closes positions; the only writer of lifecycle state. Each
operation is one store transaction, so a close either fully applies
(position flipped, P&L fixed, portfolio totals reconciled) or not at all.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from core.errors import InvalidArgumentError, NotFoundError
from core.persistence.interfaces import LedgerStore
from core.types import ClosedPosition, Position, PositionType

from .accounting import calculate_pnl, entry_debit, reconcile_portfolio

logger = logging.getLogger(__name__)


def _require_positive(name: str, value: Decimal) -> Decimal:
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except ArithmeticError as exc:
            raise InvalidArgumentError(f"{name} must be a number, got {value!r}") from exc
    if not value.is_finite() or value <= 0:
        raise InvalidArgumentError(f"{name} must be positive, got {value}")
    return value


def _coerce_position_type(value: PositionType | str) -> PositionType:
    try:
        return PositionType(value)
    except ValueError as exc:
        raise InvalidArgumentError(f"Unknown position type: {value!r}") from exc


class PositionLedger:
    """Opens and closes positions against a ledger store.

    Thread-safety: safe for concurrent use; serialisation per position is
    delegated to the store's row-level locking.
    """

    def __init__(self, store: LedgerStore) -> None:
        self._store = store

    def open_position(
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
        """Open a position.

        Longs debit `entry_price * quantity` from the portfolio value; shorts
        record the entry with no cash effect until close.

        Args:
            portfolio_id: Owning portfolio
            token: Token identifier (e.g. mint address)
            entry_price: Entry price (must be > 0)
            quantity: Quantity (must be > 0)
            position_type: LONG or SHORT
            stop_loss: Optional stop-loss price (must be > 0)
            take_profit: Optional take-profit price (must be > 0)
            reason: Entry reason
            token_symbol: Optional display symbol
            token_name: Optional display name

        Returns:
            New position id

        Raises:
            InvalidArgumentError: On non-positive prices or quantity
            NotFoundError: If the portfolio does not exist
        """
        entry_price = _require_positive("entry_price", entry_price)
        quantity = _require_positive("quantity", quantity)
        position_type = _coerce_position_type(position_type)
        if stop_loss is not None:
            stop_loss = _require_positive("stop_loss", stop_loss)
        if take_profit is not None:
            take_profit = _require_positive("take_profit", take_profit)
        if not token:
            raise InvalidArgumentError("token is required")

        position = self._store.open_position(
            portfolio_id=portfolio_id,
            token=token,
            entry_price=entry_price,
            quantity=quantity,
            position_type=position_type,
            entry_reason=reason,
            value_debit=entry_debit(entry_price, quantity, position_type),
            stop_loss=stop_loss,
            take_profit=take_profit,
            token_symbol=token_symbol,
            token_name=token_name,
        )

        logger.info(
            f"Position opened: {token_symbol or token} {position_type.value} {quantity} @ {entry_price} "
            f"(portfolio={portfolio_id}, position={position.id})"
        )
        return position.id

    def close_position(
        self,
        position_id: str,
        exit_price: Decimal,
        reason: str = "Manual exit",
    ) -> ClosedPosition:
        """Close an active position at `exit_price`.

        Returns:
            Close outcome with realized P&L

        Raises:
            InvalidArgumentError: If exit_price <= 0
            NotFoundError: If the position does not exist
            AlreadyClosedError: If the position is already closed
        """
        exit_price = _require_positive("exit_price", exit_price)

        def settle(position: Position) -> Decimal:
            return calculate_pnl(position.entry_price, exit_price, position.quantity, position.position_type)

        closed = self._store.close_position(
            position_id=position_id,
            exit_price=exit_price,
            exit_reason=reason,
            settle=settle,
            reconcile=reconcile_portfolio,
        )

        logger.info(
            f"Position closed: {closed.token} {closed.position_type.value} @ {exit_price} "
            f"P&L: {closed.realized_pnl:.2f} ({reason})"
        )
        return closed

    def get_position(self, position_id: str) -> Position:
        """Fetch a position.

        Raises:
            NotFoundError: If the position does not exist
        """
        position = self._store.get_position(position_id=position_id)
        if position is None:
            raise NotFoundError("Position", position_id)
        return position
