"""Tests for the stop-loss / take-profit automation monitor."""

import asyncio
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from core.automation import AuditEvent, AuditLogger, AutomationMonitor, evaluate_trigger
from core.config import LedgerConfig
from core.market_data import InMemoryPriceOracle
from core.portfolio import PortfolioRegistry, PositionLedger
from core.storage import SqlStores
from core.types import Position, PositionType


def _position(position_type: PositionType, *, stop_loss: str | None, take_profit: str | None) -> Position:
    return Position(
        id="p1",
        portfolio_id="pf",
        token="TOKEN",
        entry_price=Decimal("10"),
        entry_time=datetime(2024, 1, 1, tzinfo=timezone.utc),
        quantity=Decimal("1"),
        position_type=position_type,
        current_price=Decimal("10"),
        unrealized_pnl=Decimal("0"),
        realized_pnl=Decimal("0"),
        is_active=True,
        entry_reason="Manual entry",
        stop_loss=Decimal(stop_loss) if stop_loss else None,
        take_profit=Decimal(take_profit) if take_profit else None,
    )


class TestEvaluateTrigger:
    """Tests for trigger evaluation."""

    def test_long_stop_loss(self) -> None:
        position = _position(PositionType.LONG, stop_loss="8", take_profit="15")
        assert evaluate_trigger(position, Decimal("8")) == "Stop loss triggered"
        assert evaluate_trigger(position, Decimal("7.5")) == "Stop loss triggered"

    def test_long_take_profit(self) -> None:
        position = _position(PositionType.LONG, stop_loss="8", take_profit="15")
        assert evaluate_trigger(position, Decimal("15")) == "Take profit triggered"

    def test_long_between_levels(self) -> None:
        position = _position(PositionType.LONG, stop_loss="8", take_profit="15")
        assert evaluate_trigger(position, Decimal("10")) is None

    def test_take_profit_wins_when_both_hit(self) -> None:
        # Inverted levels: any price crosses both.
        position = _position(PositionType.LONG, stop_loss="12", take_profit="9")
        assert evaluate_trigger(position, Decimal("10")) == "Take profit triggered"

    def test_short_ignored_by_default(self) -> None:
        position = _position(PositionType.SHORT, stop_loss="12", take_profit="8")
        assert evaluate_trigger(position, Decimal("20")) is None
        assert evaluate_trigger(position, Decimal("1")) is None

    def test_short_mirrored(self) -> None:
        position = _position(PositionType.SHORT, stop_loss="12", take_profit="8")
        assert evaluate_trigger(position, Decimal("12"), mirror_short=True) == "Stop loss triggered"
        assert evaluate_trigger(position, Decimal("8"), mirror_short=True) == "Take profit triggered"
        assert evaluate_trigger(position, Decimal("10"), mirror_short=True) is None


class TestSweep:
    """Tests for AutomationMonitor.sweep."""

    @pytest.mark.asyncio
    async def test_stop_loss_closes_position(
        self,
        monitor: AutomationMonitor,
        ledger: PositionLedger,
        registry: PortfolioRegistry,
        oracle: InMemoryPriceOracle,
        audit_logger: AuditLogger,
        portfolio_id: str,
    ) -> None:
        position_id = ledger.open_position(
            portfolio_id, "TOKEN_X", Decimal("2.0"), Decimal("100"), stop_loss=Decimal("1.5")
        )
        oracle.set_price("TOKEN_X", Decimal("1.4"))

        decisions = await monitor.sweep()

        assert len(decisions) == 1
        assert decisions[0].closed is not None
        assert decisions[0].reason == "Stop loss triggered"
        position = ledger.get_position(position_id)
        assert position.is_active is False
        assert position.exit_reason == "Stop loss triggered"
        assert position.realized_pnl == Decimal("-60")
        assert registry.get_portfolio(portfolio_id).current_value == Decimal("9940")
        assert len(audit_logger.get_events(event_type="auto_close")) == 1

    @pytest.mark.asyncio
    async def test_take_profit_closes_position(
        self, monitor: AutomationMonitor, ledger: PositionLedger, oracle: InMemoryPriceOracle, portfolio_id: str
    ) -> None:
        position_id = ledger.open_position(
            portfolio_id, "TOKEN_X", Decimal("2.0"), Decimal("100"), take_profit=Decimal("3")
        )
        oracle.set_price("TOKEN_X", Decimal("3.1"))

        await monitor.sweep()

        position = ledger.get_position(position_id)
        assert position.exit_reason == "Take profit triggered"
        assert position.exit_price == Decimal("3.1")

    @pytest.mark.asyncio
    async def test_no_trigger_leaves_position_open(
        self, monitor: AutomationMonitor, ledger: PositionLedger, oracle: InMemoryPriceOracle, portfolio_id: str
    ) -> None:
        position_id = ledger.open_position(
            portfolio_id, "TOKEN_X", Decimal("2.0"), Decimal("100"), stop_loss=Decimal("1"), take_profit=Decimal("3")
        )
        oracle.set_price("TOKEN_X", Decimal("2.2"))

        assert await monitor.sweep() == []
        assert ledger.get_position(position_id).is_active is True

    @pytest.mark.asyncio
    async def test_missing_price_skips(
        self,
        monitor: AutomationMonitor,
        ledger: PositionLedger,
        audit_logger: AuditLogger,
        portfolio_id: str,
    ) -> None:
        position_id = ledger.open_position(
            portfolio_id, "TOKEN_X", Decimal("2.0"), Decimal("100"), stop_loss=Decimal("1.5")
        )

        assert await monitor.sweep() == []
        assert ledger.get_position(position_id).is_active is True
        assert len(audit_logger.get_events(event_type="price_unavailable")) == 1

    @pytest.mark.asyncio
    async def test_shorts_skipped_unless_mirrored(
        self,
        stores: SqlStores,
        ledger: PositionLedger,
        oracle: InMemoryPriceOracle,
        ledger_config: LedgerConfig,
        portfolio_id: str,
    ) -> None:
        position_id = ledger.open_position(
            portfolio_id, "TOKEN_Y", Decimal("10"), Decimal("5"), position_type="short", stop_loss=Decimal("12")
        )
        oracle.set_price("TOKEN_Y", Decimal("13"))

        default_monitor = AutomationMonitor(store=stores, ledger=ledger, oracle=oracle, config=ledger_config)
        assert await default_monitor.sweep() == []
        assert ledger.get_position(position_id).is_active is True

        mirrored = AutomationMonitor(
            store=stores,
            ledger=ledger,
            oracle=oracle,
            config=replace(ledger_config, mirror_short_triggers=True),
        )
        decisions = await mirrored.sweep()

        assert len(decisions) == 1
        position = ledger.get_position(position_id)
        assert position.is_active is False
        assert position.realized_pnl == Decimal("-15")

    @pytest.mark.asyncio
    async def test_racing_manual_close_is_tolerated(
        self,
        monitor: AutomationMonitor,
        ledger: PositionLedger,
        oracle: InMemoryPriceOracle,
        audit_logger: AuditLogger,
        portfolio_id: str,
    ) -> None:
        position_id = ledger.open_position(
            portfolio_id, "TOKEN_X", Decimal("2.0"), Decimal("100"), stop_loss=Decimal("1.5")
        )
        oracle.set_price("TOKEN_X", Decimal("1.0"))

        # Close manually after the scan but before the monitor's close.
        real_close = ledger.close_position

        def close_after_manual(pid, price, reason):
            real_close(pid, Decimal("1.8"), "Manual exit")
            return real_close(pid, price, reason)

        monitor.ledger = type("RacingLedger", (), {"close_position": staticmethod(close_after_manual)})()

        decisions = await monitor.sweep()

        assert decisions[0].closed is None
        assert "already closed" in decisions[0].rejected
        position = ledger.get_position(position_id)
        assert position.exit_reason == "Manual exit"
        assert position.exit_price == Decimal("1.8")
        assert len(audit_logger.get_events(event_type="close_rejected")) == 1

    @pytest.mark.asyncio
    async def test_start_and_stop(self, monitor: AutomationMonitor, ledger: PositionLedger, oracle, portfolio_id: str) -> None:
        position_id = ledger.open_position(
            portfolio_id, "TOKEN_X", Decimal("2.0"), Decimal("100"), take_profit=Decimal("2.5")
        )
        oracle.set_price("TOKEN_X", Decimal("3"))

        monitor.start()
        for _ in range(50):
            await asyncio.sleep(0.02)
            if not ledger.get_position(position_id).is_active:
                break
        await monitor.stop()

        assert ledger.get_position(position_id).is_active is False

    @pytest.mark.asyncio
    async def test_audit_log_is_capped_by_config(
        self,
        stores: SqlStores,
        ledger: PositionLedger,
        oracle: InMemoryPriceOracle,
        ledger_config: LedgerConfig,
        portfolio_id: str,
    ) -> None:
        ledger.open_position(portfolio_id, "TOKEN_X", Decimal("2.0"), Decimal("100"), stop_loss=Decimal("1.5"))
        monitor = AutomationMonitor(
            store=stores,
            ledger=ledger,
            oracle=oracle,
            config=replace(ledger_config, audit_max_events=5),
        )

        for _ in range(20):
            await monitor.sweep()

        events = monitor.audit_logger.get_events(event_type="price_unavailable")
        assert len(events) == 5


class TestAuditLogger:
    """Tests for the bounded audit log."""

    def test_oldest_events_are_dropped(self) -> None:
        audit = AuditLogger(max_events=3)
        for i in range(5):
            audit.log(AuditEvent(event_type="error", message=f"event {i}"))

        assert [e.message for e in audit.events] == ["event 2", "event 3", "event 4"]

    def test_rejects_non_positive_cap(self) -> None:
        with pytest.raises(ValueError):
            AuditLogger(max_events=0)

    def test_to_json_list(self) -> None:
        audit = AuditLogger()
        audit.log_price_unavailable("p1", "TOKEN_X")

        [entry] = audit.to_json_list()
        assert entry["event_type"] == "price_unavailable"
        assert entry["severity"] == "warning"
        assert entry["context"] == {"position_id": "p1", "token": "TOKEN_X"}
        assert isinstance(entry["timestamp"], str)
