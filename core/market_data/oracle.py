"""Price oracle boundary.

Live price acquisition is owned by an external collaborator; the ledger only
needs "latest price for a token, or nothing". `InMemoryPriceOracle` is the
simulated feed used by the API runner and the tests.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Mapping, Optional, Protocol

logger = logging.getLogger(__name__)


class PriceOracle(Protocol):
    """Protocol for getting the current market price of a token."""

    async def get_current_price(self, token: str) -> Optional[Decimal]:
        """Return the latest price, or None when the token is unknown."""
        ...


class InMemoryPriceOracle:
    """Simulated price feed backed by a dict.

    Prices are set explicitly (`set_price`) by tests or the HTTP price route.
    An optional `delay` makes lookups slow, which is handy for exercising
    caller timeouts.
    """

    def __init__(self, prices: Optional[Mapping[str, Decimal]] = None, *, delay: float = 0.0) -> None:
        self._prices: dict[str, Decimal] = {k: Decimal(str(v)) for k, v in (prices or {}).items()}
        self._failing: set[str] = set()
        self.delay = delay

    def set_price(self, token: str, price: Decimal) -> None:
        price = Decimal(str(price))
        if price <= 0:
            raise ValueError(f"Price must be positive, got {price}")
        self._prices[token] = price
        self._failing.discard(token)
        logger.debug(f"Simulated price set: {token} = {price}")

    def remove(self, token: str) -> None:
        self._prices.pop(token, None)

    def fail(self, token: str) -> None:
        """Make lookups for `token` raise until a price is set again."""
        self._failing.add(token)

    def snapshot(self) -> dict[str, Decimal]:
        return dict(self._prices)

    async def get_current_price(self, token: str) -> Optional[Decimal]:
        if self.delay:
            await asyncio.sleep(self.delay)
        if token in self._failing:
            raise ConnectionError(f"Price feed unavailable for {token}")
        return self._prices.get(token)


async def fetch_price(
    oracle: PriceOracle,
    token: str,
    *,
    timeout: float,
) -> Optional[Decimal]:
    """Query the oracle with a timeout.

    Returns None (after logging) on timeout, error, a missing price or a
    non-positive price.
    """
    try:
        price = await asyncio.wait_for(oracle.get_current_price(token), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Price lookup timed out for {token} after {timeout}s")
        return None
    except Exception as e:
        logger.warning(f"Price lookup failed for {token}: {e}")
        return None

    if price is None:
        logger.warning(f"No price available for {token}")
        return None
    price = Decimal(str(price))
    if price <= 0:
        logger.warning(f"Ignoring non-positive price for {token}: {price}")
        return None
    return price
