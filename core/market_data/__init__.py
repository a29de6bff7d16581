"""Market data boundary (price oracle)."""

from core.market_data.oracle import InMemoryPriceOracle, PriceOracle, fetch_price

__all__ = [
    "InMemoryPriceOracle",
    "PriceOracle",
    "fetch_price",
]
