"""Core domain modules.

- portfolio: registry, position ledger, valuation, allocation, service facade
- risk: return series and risk / performance statistics
- automation: stop-loss / take-profit monitor and periodic scheduling
- market_data: price oracle boundary (simulated feed included)
- persistence: persistence boundary (interfaces)
- storage: SQLAlchemy implementation of the persistence interfaces
"""
