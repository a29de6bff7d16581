"""Automation.

Periodic stop-loss / take-profit monitoring over the position ledger, with an
in-memory audit trail of every decision.
"""

from .audit import AuditEvent, AuditLogger
from .scheduler import PeriodicTask
from .monitor import AutomationMonitor, TriggerDecision, evaluate_trigger

__all__ = [
    # Monitor
    "AutomationMonitor",
    "TriggerDecision",
    "evaluate_trigger",
    # Scheduling
    "PeriodicTask",
    # Audit
    "AuditEvent",
    "AuditLogger",
]
