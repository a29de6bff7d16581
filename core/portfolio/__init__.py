"""Portfolio ledger module.

Registry, position ledger, valuation, allocation and the service facade.
"""

from .accounting import calculate_pnl, reconcile
from .allocation import allocation_weights, compute_allocation
from .ledger import PositionLedger
from .registry import PortfolioRegistry
from .service import PortfolioService
from .valuation import ValuationEngine

__all__ = [
    # Accounting
    "calculate_pnl",
    "reconcile",
    # Ledger
    "PositionLedger",
    # Registry
    "PortfolioRegistry",
    "allocation_weights",
    "compute_allocation",
    # Valuation
    "ValuationEngine",
    # Facade
    "PortfolioService",
]
