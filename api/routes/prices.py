"""Simulated price feed endpoints.

Only available when the app runs with an `InMemoryPriceOracle`.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from core.market_data import InMemoryPriceOracle

router = APIRouter(prefix="/prices", tags=["prices"])


class SetPriceRequest(BaseModel):
    price: Decimal = Field(..., gt=0)


def _oracle(request: Request) -> InMemoryPriceOracle:
    oracle = request.app.state.oracle
    if not isinstance(oracle, InMemoryPriceOracle):
        raise HTTPException(
            status_code=404,
            detail={"error": "not_found", "message": "Simulated price feed is not enabled"},
        )
    return oracle


@router.get("")
async def list_prices(request: Request) -> dict[str, Any]:
    return {"prices": {token: str(price) for token, price in _oracle(request).snapshot().items()}}


@router.put("/{token}")
async def set_price(request: Request, token: str, payload: SetPriceRequest) -> dict[str, Any]:
    """Set the simulated price for a token."""
    _oracle(request).set_price(token, payload.price)
    return {"success": True, "token": token, "price": str(payload.price)}


@router.delete("/{token}")
async def remove_price(request: Request, token: str) -> dict[str, Any]:
    """Drop a token from the simulated feed; lookups then return no price."""
    _oracle(request).remove(token)
    return {"success": True, "token": token}
