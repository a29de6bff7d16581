"""SQLAlchemy models for the tokenfolio database."""

from db.models.ledger import Base, PortfolioModel, PortfolioSnapshotModel, PositionModel

__all__ = ["Base", "PortfolioModel", "PortfolioSnapshotModel", "PositionModel"]
