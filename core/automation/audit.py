"""Audit logging for the automation monitor.

Structured, in-memory record of every trigger decision, automatic close and
rejected close, with context for replay and debugging.

All timestamps use timezone-aware UTC datetimes for consistency. The log keeps
only the most recent `max_events` entries.
"""

from __future__ import annotations

from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Optional


EventType = Literal[
    "trigger",
    "auto_close",
    "close_rejected",
    "price_unavailable",
    "error",
]

Severity = Literal["debug", "info", "warning", "error"]

DEFAULT_MAX_EVENTS = 1000


@dataclass
class AuditEvent:
    """Structured audit event for automation decisions and actions."""

    event_type: EventType
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    severity: Severity = "info"
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        result = asdict(self)
        result["timestamp"] = self.timestamp.isoformat()
        return result


class AuditLogger:
    """In-memory audit logger for automation events, bounded to `max_events`."""

    def __init__(self, max_events: int = DEFAULT_MAX_EVENTS) -> None:
        if max_events <= 0:
            raise ValueError(f"max_events must be positive, got {max_events}")
        self.events: deque[AuditEvent] = deque(maxlen=max_events)

    def log(self, event: AuditEvent) -> None:
        self.events.append(event)

    def log_trigger(
        self,
        position_id: str,
        token: str,
        reason: str,
        price: str,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        """Log a stop-loss / take-profit trigger."""
        self.log(
            AuditEvent(
                event_type="trigger",
                message=f"{reason} for {token} at {price}",
                context={"position_id": position_id, "token": token, "reason": reason, "price": price, **(context or {})},
            )
        )

    def log_auto_close(
        self,
        position_id: str,
        token: str,
        realized_pnl: str,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        """Log a completed automatic close."""
        self.log(
            AuditEvent(
                event_type="auto_close",
                message=f"Position {position_id} ({token}) closed, P&L {realized_pnl}",
                context={"position_id": position_id, "token": token, "realized_pnl": realized_pnl, **(context or {})},
            )
        )

    def log_close_rejected(
        self,
        position_id: str,
        token: str,
        reason: str,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        """Log a close that lost a race or found nothing to close."""
        self.log(
            AuditEvent(
                event_type="close_rejected",
                message=f"Close rejected for {position_id} ({token}): {reason}",
                severity="warning",
                context={"position_id": position_id, "token": token, "reason": reason, **(context or {})},
            )
        )

    def log_price_unavailable(self, position_id: str, token: str) -> None:
        self.log(
            AuditEvent(
                event_type="price_unavailable",
                message=f"No price for {token}, skipped position {position_id}",
                severity="warning",
                context={"position_id": position_id, "token": token},
            )
        )

    def log_error(self, error_message: str, context: Optional[dict[str, Any]] = None) -> None:
        """Log an error."""
        self.log(
            AuditEvent(
                event_type="error",
                message=error_message,
                severity="error",
                context=context or {},
            )
        )

    def get_events(
        self,
        event_type: Optional[EventType] = None,
        severity: Optional[Severity] = None,
        token: Optional[str] = None,
    ) -> list[AuditEvent]:
        """Get filtered audit events."""
        return [
            e
            for e in self.events
            if (event_type is None or e.event_type == event_type)
            and (severity is None or e.severity == severity)
            and (token is None or e.context.get("token") == token)
        ]

    def clear(self) -> None:
        """Clear all events (for testing)."""
        self.events.clear()

    def to_json_list(self) -> list[dict[str, Any]]:
        """Export all events as JSON-serializable list."""
        return [event.to_dict() for event in self.events]
