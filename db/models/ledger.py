"""SQLAlchemy models for the portfolio ledger tables.

- portfolios
- portfolio_positions
- portfolio_snapshots
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, Numeric, Text
from sqlalchemy.orm import DeclarativeBase

# Prices of micro-cap tokens need the extra scale.
MONEY = Numeric(28, 10, asdecimal=True)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class PortfolioModel(Base):
    """Simulated portfolio.

    Table: portfolios
    """

    __tablename__ = "portfolios"

    id = Column(Text, primary_key=True)
    owner = Column(Text, nullable=False)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=False, default="")
    strategy_type = Column(Text, nullable=False, default="balanced")  # conservative|balanced|aggressive|custom
    initial_capital = Column(MONEY, nullable=False)
    current_value = Column(MONEY, nullable=False)
    cash_balance = Column(MONEY, nullable=False)
    positions_value = Column(MONEY, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    valued_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("idx_portfolios_owner", "owner"),)

    def __repr__(self) -> str:
        return f"<PortfolioModel(id={self.id}, name={self.name}, value={self.current_value})>"


class PositionModel(Base):
    """Long or short exposure to one token.

    Table: portfolio_positions
    """

    __tablename__ = "portfolio_positions"

    id = Column(Text, primary_key=True)
    portfolio_id = Column(Text, ForeignKey("portfolios.id", ondelete="CASCADE"), nullable=False)
    token = Column(Text, nullable=False)
    token_symbol = Column(Text, nullable=True)
    token_name = Column(Text, nullable=True)
    entry_price = Column(MONEY, nullable=False)
    entry_time = Column(DateTime(timezone=True), nullable=False)
    quantity = Column(MONEY, nullable=False)
    position_type = Column(Text, nullable=False)  # long|short
    stop_loss = Column(MONEY, nullable=True)
    take_profit = Column(MONEY, nullable=True)
    exit_price = Column(MONEY, nullable=True)
    exit_time = Column(DateTime(timezone=True), nullable=True)
    current_price = Column(MONEY, nullable=False)
    unrealized_pnl = Column(MONEY, nullable=False, default=0)
    realized_pnl = Column(MONEY, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    entry_reason = Column(Text, nullable=False, default="Manual entry")
    exit_reason = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_positions_portfolio_active", "portfolio_id", "is_active"),
        Index("idx_positions_active_triggers", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<PositionModel(id={self.id}, token={self.token}, {self.position_type}, active={self.is_active})>"


class PortfolioSnapshotModel(Base):
    """Portfolio value recorded by a valuation pass.

    Table: portfolio_snapshots
    """

    __tablename__ = "portfolio_snapshots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    portfolio_id = Column(Text, ForeignKey("portfolios.id", ondelete="CASCADE"), nullable=False)
    taken_at = Column(DateTime(timezone=True), nullable=False)
    total_value = Column(MONEY, nullable=False)
    cash_balance = Column(MONEY, nullable=False)
    positions_value = Column(MONEY, nullable=False)

    __table_args__ = (Index("idx_snapshots_portfolio_time", "portfolio_id", "taken_at"),)
