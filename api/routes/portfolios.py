"""Portfolio, position and analytics endpoints."""

from __future__ import annotations

from dataclasses import asdict
from decimal import Decimal
from typing import Any, Literal, Optional

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel, Field

from core.portfolio import PortfolioService
from core.types import ClosedPosition, Portfolio, Position

router = APIRouter(prefix="/portfolios", tags=["portfolios"])


class CreatePortfolioRequest(BaseModel):
    owner: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    initial_capital: Decimal = Field(..., gt=0)
    strategy_type: Literal["conservative", "balanced", "aggressive", "custom"] = "balanced"
    description: str = ""


class OpenPositionRequest(BaseModel):
    token: str = Field(..., min_length=1)
    entry_price: Decimal = Field(..., gt=0)
    quantity: Decimal = Field(..., gt=0)
    position_type: Literal["long", "short"] = "long"
    stop_loss: Optional[Decimal] = Field(None, gt=0)
    take_profit: Optional[Decimal] = Field(None, gt=0)
    reason: str = "Manual entry"
    token_symbol: Optional[str] = None
    token_name: Optional[str] = None


class ClosePositionRequest(BaseModel):
    exit_price: Decimal = Field(..., gt=0)
    reason: str = "Manual exit"


class CompareRequest(BaseModel):
    portfolio_ids: list[str] = Field(..., min_length=1)


class RiskRequest(BaseModel):
    lookback_days: Optional[int] = Field(None, ge=1, le=365)
    benchmark_returns: Optional[list[float]] = None


def _service(request: Request) -> PortfolioService:
    return request.app.state.service


def _iso(value: Any) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _portfolio_to_response(portfolio: Portfolio) -> dict[str, Any]:
    return {
        "id": portfolio.id,
        "owner": portfolio.owner,
        "name": portfolio.name,
        "description": portfolio.description,
        "strategy_type": portfolio.strategy_type.value,
        "initial_capital": str(portfolio.initial_capital),
        "current_value": str(portfolio.current_value),
        "cash_balance": str(portfolio.cash_balance),
        "positions_value": str(portfolio.positions_value),
        "created_at": _iso(portfolio.created_at),
        "updated_at": _iso(portfolio.updated_at),
        "valued_at": _iso(portfolio.valued_at),
    }


def _position_to_response(position: Position) -> dict[str, Any]:
    return {
        "id": position.id,
        "portfolio_id": position.portfolio_id,
        "token": position.token,
        "token_symbol": position.token_symbol,
        "token_name": position.token_name,
        "position_type": position.position_type.value,
        "entry_price": str(position.entry_price),
        "entry_time": _iso(position.entry_time),
        "quantity": str(position.quantity),
        "current_price": str(position.current_price),
        "stop_loss": str(position.stop_loss) if position.stop_loss is not None else None,
        "take_profit": str(position.take_profit) if position.take_profit is not None else None,
        "exit_price": str(position.exit_price) if position.exit_price is not None else None,
        "exit_time": _iso(position.exit_time),
        "unrealized_pnl": str(position.unrealized_pnl),
        "realized_pnl": str(position.realized_pnl),
        "is_active": position.is_active,
        "entry_reason": position.entry_reason,
        "exit_reason": position.exit_reason,
    }


def _closed_to_response(closed: ClosedPosition) -> dict[str, Any]:
    return {
        "position_id": closed.position_id,
        "portfolio_id": closed.portfolio_id,
        "token": closed.token,
        "position_type": closed.position_type.value,
        "exit_price": str(closed.exit_price),
        "exit_time": _iso(closed.exit_time),
        "realized_pnl": str(closed.realized_pnl),
        "exit_reason": closed.exit_reason,
    }


@router.post("", status_code=201)
async def create_portfolio(request: Request, payload: CreatePortfolioRequest) -> dict[str, Any]:
    """Create a portfolio."""
    service = _service(request)
    portfolio_id = await service.create_portfolio(
        owner=payload.owner,
        name=payload.name,
        initial_capital=payload.initial_capital,
        strategy_type=payload.strategy_type,
        description=payload.description,
    )
    portfolio = await service.get_portfolio(portfolio_id)
    return {"success": True, "portfolio": _portfolio_to_response(portfolio)}


@router.get("")
async def list_portfolios(
    request: Request,
    owner: Optional[str] = Query(None, description="Filter by owner"),
) -> dict[str, Any]:
    """List portfolios, newest first."""
    service = _service(request)
    if owner is None:
        portfolios = await service.list_portfolios()
        return {"portfolios": [_portfolio_to_response(p) for p in portfolios]}

    summaries = await service.list_portfolio_summaries(owner)
    return {
        "portfolios": [
            {
                **_portfolio_to_response(s.portfolio),
                "total_positions": s.total_positions,
                "active_positions": s.active_positions,
                "total_unrealized_pnl": str(s.total_unrealized_pnl),
                "total_realized_pnl": str(s.total_realized_pnl),
            }
            for s in summaries
        ]
    }


@router.post("/compare")
async def compare_portfolios(request: Request, payload: CompareRequest) -> dict[str, Any]:
    """Compare metrics across portfolios with rankings (best first)."""
    comparison = await _service(request).compare_portfolios(payload.portfolio_ids)
    return {
        "portfolios": [
            {"portfolio_id": e.portfolio_id, "portfolio_name": e.portfolio_name, "metrics": asdict(e.metrics)}
            for e in comparison.portfolios
        ],
        "ranking": {key: list(ids) for key, ids in comparison.ranking.items()},
    }


@router.get("/{portfolio_id}")
async def get_portfolio(request: Request, portfolio_id: str) -> dict[str, Any]:
    portfolio = await _service(request).get_portfolio(portfolio_id)
    return {"portfolio": _portfolio_to_response(portfolio)}


@router.get("/{portfolio_id}/positions")
async def list_positions(
    request: Request,
    portfolio_id: str,
    active_only: bool = Query(False, description="Only active positions"),
) -> dict[str, Any]:
    positions = await _service(request).get_positions(portfolio_id, active_only=active_only)
    return {"positions": [_position_to_response(p) for p in positions]}


@router.post("/{portfolio_id}/positions", status_code=201)
async def open_position(request: Request, portfolio_id: str, payload: OpenPositionRequest) -> dict[str, Any]:
    """Open a long or short position."""
    service = _service(request)
    position_id = await service.open_position(
        portfolio_id=portfolio_id,
        token=payload.token,
        entry_price=payload.entry_price,
        quantity=payload.quantity,
        position_type=payload.position_type,
        stop_loss=payload.stop_loss,
        take_profit=payload.take_profit,
        reason=payload.reason,
        token_symbol=payload.token_symbol,
        token_name=payload.token_name,
    )
    return {"success": True, "position_id": position_id}


@router.post("/positions/{position_id}/close")
async def close_position(request: Request, position_id: str, payload: ClosePositionRequest) -> dict[str, Any]:
    """Close an active position at `exit_price`.

    Returns 409 if the position is already closed.
    """
    closed = await _service(request).close_position(position_id, payload.exit_price, payload.reason)
    return {"success": True, "closed": _closed_to_response(closed)}


@router.get("/{portfolio_id}/metrics")
async def get_metrics(request: Request, portfolio_id: str) -> dict[str, Any]:
    """Value the portfolio and return performance metrics."""
    metrics = await _service(request).get_portfolio_metrics(portfolio_id)
    return {"portfolio_id": portfolio_id, "metrics": asdict(metrics)}


@router.get("/{portfolio_id}/allocation")
async def get_allocation(request: Request, portfolio_id: str) -> dict[str, Any]:
    allocation = await _service(request).get_portfolio_allocation(portfolio_id)
    return {
        "portfolio_id": portfolio_id,
        "allocation": [{**asdict(e), "position_type": e.position_type.value} for e in allocation],
    }


@router.get("/{portfolio_id}/risk")
async def get_risk(
    request: Request,
    portfolio_id: str,
    lookback_days: Optional[int] = Query(None, ge=1, le=365, description="Return-series window in days"),
) -> dict[str, Any]:
    """Value the portfolio and return risk metrics (no benchmark)."""
    risk = await _service(request).get_risk_metrics(portfolio_id, lookback_days=lookback_days)
    return {"portfolio_id": portfolio_id, "risk": asdict(risk)}


@router.post("/{portfolio_id}/risk")
async def get_risk_with_benchmark(request: Request, portfolio_id: str, payload: RiskRequest) -> dict[str, Any]:
    """Risk metrics with beta/alpha against the supplied benchmark returns."""
    risk = await _service(request).get_risk_metrics(
        portfolio_id,
        lookback_days=payload.lookback_days,
        benchmark_returns=payload.benchmark_returns,
    )
    return {"portfolio_id": portfolio_id, "risk": asdict(risk)}
