"""Ledger accounting rules.

Sign conventions shared by the ledger, the valuation engine and the
reporters. Shorts carry no cash commitment at entry; when a portfolio is
valued the short's entry proceeds sit in cash and its mark is a liability in
positions value, so total value moves only by the short's P&L.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Sequence

from core.types import Portfolio, Position, PositionType

ZERO = Decimal("0")


def calculate_pnl(
    entry_price: Decimal,
    exit_price: Decimal,
    quantity: Decimal,
    position_type: PositionType,
) -> Decimal:
    """Calculate P&L for a position at a given exit (or mark) price.

    Args:
        entry_price: Entry price
        exit_price: Exit or current mark price
        quantity: Position size (positive)
        position_type: LONG or SHORT

    Returns:
        P&L (positive = profit)
    """
    if position_type == PositionType.LONG:
        return (exit_price - entry_price) * quantity
    return (entry_price - exit_price) * quantity


def entry_debit(entry_price: Decimal, quantity: Decimal, position_type: PositionType) -> Decimal:
    """Amount taken out of portfolio value when a position opens."""
    if position_type == PositionType.LONG:
        return entry_price * quantity
    return ZERO


def signed_market_value(position: Position) -> Decimal:
    """Contribution of an active position to positions value."""
    if position.position_type == PositionType.LONG:
        return position.market_value
    return -position.market_value


def cash_balance(initial_capital: Decimal, positions: Iterable[Position]) -> Decimal:
    """Derive cash from initial capital and the position history."""
    cash = initial_capital
    for position in positions:
        if not position.is_active:
            cash += position.realized_pnl
        elif position.position_type == PositionType.LONG:
            cash -= position.cost_basis
        else:
            cash += position.cost_basis
    return cash


def positions_value(positions: Iterable[Position]) -> Decimal:
    """Net mark of active positions (shorts count negative)."""
    return sum((signed_market_value(p) for p in positions if p.is_active), ZERO)


def gross_exposure(positions: Iterable[Position]) -> Decimal:
    """Absolute mark of active positions, the base for allocation weights."""
    return sum((p.market_value for p in positions if p.is_active), ZERO)


def reconcile(initial_capital: Decimal, positions: Iterable[Position]) -> tuple[Decimal, Decimal]:
    """Return (cash_balance, positions_value) for a portfolio."""
    positions = list(positions)
    return cash_balance(initial_capital, positions), positions_value(positions)


def reconcile_portfolio(portfolio: Portfolio, positions: Sequence[Position]) -> tuple[Decimal, Decimal]:
    """Store callback: (cash_balance, positions_value) from the portfolio's rows."""
    return reconcile(portfolio.initial_capital, positions)
