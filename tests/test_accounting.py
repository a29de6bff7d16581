"""Tests for ledger accounting rules."""

from datetime import datetime, timezone
from decimal import Decimal

from core.portfolio.accounting import (
    calculate_pnl,
    cash_balance,
    entry_debit,
    gross_exposure,
    positions_value,
    reconcile,
    reconcile_portfolio,
)
from core.types import Portfolio, Position, PositionType, StrategyType


def _position(
    position_type: PositionType,
    entry: str,
    current: str,
    qty: str,
    *,
    active: bool = True,
    realized: str = "0",
) -> Position:
    entry_price = Decimal(entry)
    current_price = Decimal(current)
    quantity = Decimal(qty)
    return Position(
        id="p",
        portfolio_id="pf",
        token="TOKEN",
        entry_price=entry_price,
        entry_time=datetime(2024, 1, 1, tzinfo=timezone.utc),
        quantity=quantity,
        position_type=position_type,
        current_price=current_price,
        unrealized_pnl=calculate_pnl(entry_price, current_price, quantity, position_type) if active else Decimal("0"),
        realized_pnl=Decimal(realized),
        is_active=active,
        entry_reason="Manual entry",
    )


class TestCalculatePnl:
    """Tests for the P&L sign rule."""

    def test_long_profit(self) -> None:
        pnl = calculate_pnl(Decimal("10"), Decimal("15"), Decimal("1"), PositionType.LONG)
        assert pnl == Decimal("5")

    def test_short_loss(self) -> None:
        pnl = calculate_pnl(Decimal("10"), Decimal("15"), Decimal("1"), PositionType.SHORT)
        assert pnl == Decimal("-5")

    def test_quantity_scales_pnl(self) -> None:
        pnl = calculate_pnl(Decimal("2.0"), Decimal("3.0"), Decimal("100"), PositionType.LONG)
        assert pnl == Decimal("100")


class TestCashFlows:
    """Tests for open debits."""

    def test_long_entry_debits_notional(self) -> None:
        assert entry_debit(Decimal("2"), Decimal("100"), PositionType.LONG) == Decimal("200")

    def test_short_entry_has_no_cash_effect(self) -> None:
        assert entry_debit(Decimal("2"), Decimal("100"), PositionType.SHORT) == Decimal("0")


class TestReconcile:
    """Tests for derived cash and positions value."""

    def test_no_positions(self) -> None:
        cash, value = reconcile(Decimal("1000"), [])
        assert cash == Decimal("1000")
        assert value == Decimal("0")

    def test_active_long(self) -> None:
        positions = [_position(PositionType.LONG, "2", "3", "100")]
        cash, value = reconcile(Decimal("10000"), positions)
        assert cash == Decimal("9800")
        assert value == Decimal("300")
        assert cash + value == Decimal("10100")

    def test_closed_position_adds_realized(self) -> None:
        positions = [_position(PositionType.LONG, "2", "3", "100", active=False, realized="100")]
        assert cash_balance(Decimal("10000"), positions) == Decimal("10100")
        assert positions_value(positions) == Decimal("0")

    def test_active_short_total_moves_by_pnl(self) -> None:
        positions = [_position(PositionType.SHORT, "10", "12", "5")]
        cash, value = reconcile(Decimal("1000"), positions)
        assert cash == Decimal("1050")
        assert value == Decimal("-60")
        # Total = initial + unrealized (-10)
        assert cash + value == Decimal("990")

    def test_mixed_book_total_is_initial_plus_pnl(self) -> None:
        positions = [
            _position(PositionType.LONG, "2", "2.5", "100"),
            _position(PositionType.SHORT, "10", "8", "10"),
            _position(PositionType.LONG, "5", "5", "10", active=False, realized="-12.5"),
        ]
        cash, value = reconcile(Decimal("5000"), positions)
        unrealized = sum(p.unrealized_pnl for p in positions if p.is_active)
        realized = sum(p.realized_pnl for p in positions if not p.is_active)
        assert cash + value == Decimal("5000") + unrealized + realized

    def test_gross_exposure_counts_shorts_positive(self) -> None:
        positions = [
            _position(PositionType.LONG, "2", "3", "100"),
            _position(PositionType.SHORT, "10", "12", "5"),
        ]
        assert gross_exposure(positions) == Decimal("360")
        assert positions_value(positions) == Decimal("240")

    def test_reconcile_portfolio_ignores_stored_value(self) -> None:
        # Stored current_value is stale on purpose; only capital and rows count.
        portfolio = Portfolio(
            id="pf",
            owner="alice",
            name="Main",
            strategy_type=StrategyType.BALANCED,
            initial_capital=Decimal("10000"),
            current_value=Decimal("12345"),
            cash_balance=Decimal("0"),
            positions_value=Decimal("0"),
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            updated_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        positions = [
            _position(PositionType.LONG, "2", "3", "100", active=False, realized="100"),
            _position(PositionType.LONG, "5", "6", "10"),
        ]
        cash, value = reconcile_portfolio(portfolio, positions)
        assert cash == Decimal("10050")
        assert value == Decimal("60")
