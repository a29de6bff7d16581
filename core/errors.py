"""Ledger error types.

Raised by the ledger, registry and valuation layers and surfaced verbatim to
callers (the HTTP layer maps them to status codes).
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for portfolio ledger errors."""


class NotFoundError(LedgerError, LookupError):
    """A portfolio or position does not exist."""

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


class AlreadyClosedError(LedgerError):
    """The position was closed by an earlier (or concurrent) close."""

    def __init__(self, position_id: str) -> None:
        super().__init__(f"Position already closed: {position_id}")
        self.position_id = position_id


class InvalidArgumentError(LedgerError, ValueError):
    """Input rejected before any state mutation."""
