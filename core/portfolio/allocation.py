"""Allocation reporter."""

from __future__ import annotations

from typing import Sequence

from core.types import AllocationEntry, Position, PositionType

from .accounting import gross_exposure


def _pnl_pct(position: Position) -> float:
    if position.entry_price == 0:
        return 0.0
    move = (position.current_price - position.entry_price) / position.entry_price * 100
    if position.position_type == PositionType.SHORT:
        move = -move
    return float(move)


def allocation_weights(positions: Sequence[Position]) -> list[float]:
    """Unrounded share of gross exposure for each active position."""
    active = [p for p in positions if p.is_active]
    total = gross_exposure(active)
    if total == 0:
        return []
    return [float(p.market_value / total) for p in active]


def compute_allocation(positions: Sequence[Position]) -> list[AllocationEntry]:
    """Per-position share of gross exposure, largest first.

    Only active positions are included. Returns an empty list when the
    gross positions value is zero.
    """
    active = [p for p in positions if p.is_active]
    total = gross_exposure(active)
    if total == 0:
        return []

    entries = []
    for position in active:
        value = position.market_value
        pct = float(value / total * 100)
        entries.append(
            AllocationEntry(
                token=position.token,
                token_symbol=position.token_symbol,
                token_name=position.token_name,
                position_type=position.position_type,
                allocation_pct=round(pct, 2),
                value_usd=round(float(value), 2),
                pnl_usd=round(float(position.unrealized_pnl), 2),
                pnl_pct=round(_pnl_pct(position), 2),
                weight=round(pct / 100, 4),
            )
        )

    entries.sort(key=lambda e: e.allocation_pct, reverse=True)
    return entries
