"""Automation monitor - stop-loss / take-profit sweeper.

Periodically scans active positions with a stop-loss or take-profit set and
closes those whose trigger has been hit, through the position ledger.

Shorts are not evaluated unless `mirror_short_triggers` is enabled, in which
case comparisons are inverted (stop-loss when price rises to the level,
take-profit when it falls to it).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from core.automation.audit import AuditLogger
from core.automation.scheduler import PeriodicTask
from core.config import LedgerConfig
from core.errors import AlreadyClosedError, NotFoundError
from core.market_data.oracle import PriceOracle, fetch_price
from core.persistence.interfaces import PositionStore
from core.portfolio.ledger import PositionLedger
from core.types import ClosedPosition, Position, PositionType

logger = logging.getLogger(__name__)

STOP_LOSS_REASON = "Stop loss triggered"
TAKE_PROFIT_REASON = "Take profit triggered"


def evaluate_trigger(position: Position, price: Decimal, *, mirror_short: bool = False) -> Optional[str]:
    """Return the close reason if `price` hits a trigger, else None.

    Take-profit is checked last and wins when both levels are crossed.
    """
    reason = None

    if position.position_type == PositionType.LONG:
        if position.stop_loss is not None and price <= position.stop_loss:
            reason = STOP_LOSS_REASON
        if position.take_profit is not None and price >= position.take_profit:
            reason = TAKE_PROFIT_REASON
        return reason

    if not mirror_short:
        return None

    if position.stop_loss is not None and price >= position.stop_loss:
        reason = STOP_LOSS_REASON
    if position.take_profit is not None and price <= position.take_profit:
        reason = TAKE_PROFIT_REASON
    return reason


@dataclass
class TriggerDecision:
    """A trigger hit and what became of it."""

    position_id: str
    token: str
    price: Decimal
    reason: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    closed: Optional[ClosedPosition] = None
    rejected: str = ""


class AutomationMonitor:
    """Closes positions whose stop-loss or take-profit has been hit."""

    def __init__(
        self,
        *,
        store: PositionStore,
        ledger: PositionLedger,
        oracle: PriceOracle,
        config: Optional[LedgerConfig] = None,
        audit_logger: Optional[AuditLogger] = None,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.oracle = oracle
        self.config = config or LedgerConfig()
        self.audit_logger = audit_logger or AuditLogger(max_events=self.config.audit_max_events)
        self._task = PeriodicTask("automation-monitor", self.config.monitor_interval_seconds, self.sweep)

    async def _close(self, position: Position, price: Decimal, reason: str) -> TriggerDecision:
        decision = TriggerDecision(position_id=position.id, token=position.token, price=price, reason=reason)
        self.audit_logger.log_trigger(position.id, position.token, reason, str(price))

        try:
            closed = await asyncio.to_thread(self.ledger.close_position, position.id, price, reason)
        except (AlreadyClosedError, NotFoundError) as e:
            # Closed (or removed) by someone else since the scan.
            logger.info(f"Skipping {position.id}: {e}")
            self.audit_logger.log_close_rejected(position.id, position.token, str(e))
            decision.rejected = str(e)
            return decision

        decision.closed = closed
        self.audit_logger.log_auto_close(position.id, position.token, str(closed.realized_pnl), context={"reason": reason})
        return decision

    async def sweep(self) -> list[TriggerDecision]:
        """Run one pass over trigger candidates."""
        candidates = await asyncio.to_thread(self.store.list_trigger_candidates)
        mirror = self.config.mirror_short_triggers

        shorts_ignored = 0
        decisions: list[TriggerDecision] = []
        for position in candidates:
            if position.position_type == PositionType.SHORT and not mirror:
                shorts_ignored += 1
                continue

            try:
                price = await fetch_price(self.oracle, position.token, timeout=self.config.price_timeout_seconds)
                if price is None:
                    self.audit_logger.log_price_unavailable(position.id, position.token)
                    continue

                reason = evaluate_trigger(position, price, mirror_short=mirror)
                if reason is None:
                    continue

                logger.info(f"{reason}: {position.token_symbol or position.token} @ {price} (position={position.id})")
                decisions.append(await self._close(position, price, reason))
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"Error processing position {position.id}: {e}")
                self.audit_logger.log_error(
                    f"Error processing position {position.id}: {e}",
                    context={"position_id": position.id, "token": position.token},
                )

        if shorts_ignored:
            logger.debug(f"Skipped {shorts_ignored} short position(s) with triggers (mirroring disabled)")
        return decisions

    def start(self) -> asyncio.Task[None]:
        """Start sweeping on the running loop."""
        return self._task.start()

    async def stop(self) -> None:
        await self._task.stop()

    async def run(self) -> None:
        """Sweep in the current task until stopped or cancelled."""
        await self._task.run()
