"""Automation monitor endpoints.

Exposes the stop-loss / take-profit audit trail. Only available when the app
was built with an `AutomationMonitor`.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query, Request

from core.automation import AutomationMonitor

router = APIRouter(prefix="/automation", tags=["automation"])


def _monitor(request: Request) -> AutomationMonitor:
    monitor = request.app.state.monitor
    if monitor is None:
        raise HTTPException(
            status_code=404,
            detail={"error": "not_found", "message": "Automation monitor is not enabled"},
        )
    return monitor


@router.get("/audit")
async def list_audit_events(
    request: Request,
    event_type: Optional[str] = Query(None),
    token: Optional[str] = Query(None),
) -> dict[str, Any]:
    """Recent audit events, oldest first, optionally filtered."""
    audit = _monitor(request).audit_logger
    events = audit.to_json_list()
    if event_type is not None:
        events = [e for e in events if e["event_type"] == event_type]
    if token is not None:
        events = [e for e in events if e["context"].get("token") == token]
    return {"events": events, "count": len(events)}
