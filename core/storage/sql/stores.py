from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional, Sequence
from uuid import uuid4

from sqlalchemy import case, func, or_, select, text, update
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from core.errors import AlreadyClosedError, NotFoundError
from core.persistence.interfaces import LedgerStore, ReconcileFn, SettleFn
from core.storage.sql.config import SqlConfig
from core.storage.sql.engine import create_ledger_engine
from core.types import (
    ClosedPosition,
    Portfolio,
    PortfolioSnapshot,
    PortfolioSummary,
    Position,
    PositionType,
    StrategyType,
)
from db.models.ledger import PortfolioModel, PortfolioSnapshotModel, PositionModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _dec(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _opt_dec(value: Any) -> Decimal | None:
    return None if value is None else _dec(value)


def _to_portfolio(model: PortfolioModel) -> Portfolio:
    return Portfolio(
        id=model.id,
        owner=model.owner,
        name=model.name,
        description=model.description or "",
        strategy_type=StrategyType(model.strategy_type),
        initial_capital=_dec(model.initial_capital),
        current_value=_dec(model.current_value),
        cash_balance=_dec(model.cash_balance),
        positions_value=_dec(model.positions_value),
        created_at=_as_utc(model.created_at),
        updated_at=_as_utc(model.updated_at),
        valued_at=_as_utc(model.valued_at),
    )


def _to_position(model: PositionModel) -> Position:
    return Position(
        id=model.id,
        portfolio_id=model.portfolio_id,
        token=model.token,
        token_symbol=model.token_symbol,
        token_name=model.token_name,
        entry_price=_dec(model.entry_price),
        entry_time=_as_utc(model.entry_time),
        quantity=_dec(model.quantity),
        position_type=PositionType(model.position_type),
        stop_loss=_opt_dec(model.stop_loss),
        take_profit=_opt_dec(model.take_profit),
        exit_price=_opt_dec(model.exit_price),
        exit_time=_as_utc(model.exit_time),
        current_price=_dec(model.current_price),
        unrealized_pnl=_dec(model.unrealized_pnl),
        realized_pnl=_dec(model.realized_pnl),
        is_active=bool(model.is_active),
        entry_reason=model.entry_reason,
        exit_reason=model.exit_reason,
    )


def _to_snapshot(model: PortfolioSnapshotModel) -> PortfolioSnapshot:
    return PortfolioSnapshot(
        portfolio_id=model.portfolio_id,
        taken_at=_as_utc(model.taken_at),
        total_value=_dec(model.total_value),
        cash_balance=_dec(model.cash_balance),
        positions_value=_dec(model.positions_value),
    )


class SqlStores(LedgerStore):
    """SQLAlchemy-backed ledger store.

    Each public method is one transaction (`sessionmaker.begin()` commits on
    success and rolls back on any exception). Safe to share across threads.
    """

    def __init__(self, *, config: SqlConfig | None = None, engine: Engine | None = None) -> None:
        if engine is None:
            if config is None:
                raise ValueError("Either config or engine is required")
            engine = create_ledger_engine(config)
        self._engine = engine
        self._session_factory = sessionmaker(engine, expire_on_commit=False)

    @property
    def engine(self) -> Engine:
        return self._engine

    def dispose(self) -> None:
        self._engine.dispose()

    def ping(self) -> None:
        with self._engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    # ---- PortfolioStore

    def create_portfolio(
        self,
        *,
        owner: str,
        name: str,
        initial_capital: Decimal,
        strategy_type: StrategyType,
        description: str = "",
    ) -> Portfolio:
        now = _utcnow()
        model = PortfolioModel(
            id=str(uuid4()),
            owner=owner,
            name=name,
            description=description,
            strategy_type=strategy_type.value,
            initial_capital=initial_capital,
            current_value=initial_capital,
            cash_balance=initial_capital,
            positions_value=Decimal("0"),
            created_at=now,
            updated_at=now,
        )
        with self._session_factory.begin() as session:
            session.add(model)
        return _to_portfolio(model)

    def get_portfolio(self, *, portfolio_id: str) -> Optional[Portfolio]:
        with self._session_factory() as session:
            model = session.get(PortfolioModel, portfolio_id)
            return None if model is None else _to_portfolio(model)

    def list_portfolios(self, *, owner: str | None = None) -> Sequence[Portfolio]:
        stmt = select(PortfolioModel).order_by(PortfolioModel.created_at.desc())
        if owner is not None:
            stmt = stmt.where(PortfolioModel.owner == owner)

        with self._session_factory() as session:
            return [_to_portfolio(m) for m in session.execute(stmt).scalars().all()]

    def list_portfolio_summaries(self, *, owner: str) -> Sequence[PortfolioSummary]:
        stmt = (
            select(
                PortfolioModel,
                func.count(PositionModel.id),
                func.coalesce(func.sum(case((PositionModel.is_active.is_(True), 1), else_=0)), 0),
                func.coalesce(func.sum(PositionModel.unrealized_pnl), 0),
                func.coalesce(func.sum(PositionModel.realized_pnl), 0),
            )
            .outerjoin(PositionModel, PositionModel.portfolio_id == PortfolioModel.id)
            .where(PortfolioModel.owner == owner)
            .group_by(PortfolioModel.id)
            .order_by(PortfolioModel.created_at.desc())
        )

        with self._session_factory() as session:
            rows = session.execute(stmt).all()

        return [
            PortfolioSummary(
                portfolio=_to_portfolio(model),
                total_positions=int(total or 0),
                active_positions=int(active or 0),
                total_unrealized_pnl=_dec(unrealized),
                total_realized_pnl=_dec(realized),
            )
            for model, total, active, unrealized, realized in rows
        ]

    def apply_valuation(self, *, portfolio_id: str, reconcile: ReconcileFn) -> Portfolio:
        now = _utcnow()
        with self._session_factory.begin() as session:
            model = self._reconcile_locked(session, portfolio_id, reconcile, now)
            model.valued_at = now

            session.add(
                PortfolioSnapshotModel(
                    portfolio_id=portfolio_id,
                    taken_at=now,
                    total_value=model.current_value,
                    cash_balance=model.cash_balance,
                    positions_value=model.positions_value,
                )
            )
            portfolio = _to_portfolio(model)

        return portfolio

    def _reconcile_locked(
        self, session: Session, portfolio_id: str, reconcile: ReconcileFn, now: datetime
    ) -> PortfolioModel:
        """Lock the portfolio row and rewrite its totals from its position rows."""
        model = session.execute(
            select(PortfolioModel).where(PortfolioModel.id == portfolio_id).with_for_update()
        ).scalar_one_or_none()
        if model is None:
            raise NotFoundError("Portfolio", portfolio_id)

        # Bulk updates earlier in the transaction bypass the identity map.
        position_models = (
            session.execute(
                select(PositionModel)
                .where(PositionModel.portfolio_id == portfolio_id)
                .execution_options(populate_existing=True)
            )
            .scalars()
            .all()
        )
        cash_balance, positions_value = reconcile(
            _to_portfolio(model),
            [_to_position(p) for p in position_models],
        )

        model.cash_balance = cash_balance
        model.positions_value = positions_value
        model.current_value = cash_balance + positions_value
        model.updated_at = now
        return model

    # ---- PositionStore

    def open_position(
        self,
        *,
        portfolio_id: str,
        token: str,
        entry_price: Decimal,
        quantity: Decimal,
        position_type: PositionType,
        entry_reason: str,
        value_debit: Decimal,
        stop_loss: Decimal | None = None,
        take_profit: Decimal | None = None,
        token_symbol: str | None = None,
        token_name: str | None = None,
    ) -> Position:
        now = _utcnow()
        model = PositionModel(
            id=str(uuid4()),
            portfolio_id=portfolio_id,
            token=token,
            token_symbol=token_symbol,
            token_name=token_name,
            entry_price=entry_price,
            entry_time=now,
            quantity=quantity,
            position_type=position_type.value,
            stop_loss=stop_loss,
            take_profit=take_profit,
            current_price=entry_price,
            unrealized_pnl=Decimal("0"),
            realized_pnl=Decimal("0"),
            is_active=True,
            entry_reason=entry_reason,
            updated_at=now,
        )

        with self._session_factory.begin() as session:
            result = session.execute(
                update(PortfolioModel)
                .where(PortfolioModel.id == portfolio_id)
                .values(current_value=PortfolioModel.current_value - value_debit, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise NotFoundError("Portfolio", portfolio_id)
            session.add(model)

        return _to_position(model)

    def close_position(
        self,
        *,
        position_id: str,
        exit_price: Decimal,
        exit_reason: str,
        settle: SettleFn,
        reconcile: ReconcileFn,
    ) -> ClosedPosition:
        now = _utcnow()
        with self._session_factory.begin() as session:
            model = session.execute(
                select(PositionModel).where(PositionModel.id == position_id).with_for_update()
            ).scalar_one_or_none()
            if model is None:
                raise NotFoundError("Position", position_id)
            if not model.is_active:
                raise AlreadyClosedError(position_id)

            position = _to_position(model)
            realized_pnl = settle(position)

            # Guarded flip: only the transaction that still sees the row active wins.
            result = session.execute(
                update(PositionModel)
                .where(PositionModel.id == position_id, PositionModel.is_active.is_(True))
                .values(
                    is_active=False,
                    exit_price=exit_price,
                    exit_time=now,
                    exit_reason=exit_reason,
                    realized_pnl=realized_pnl,
                    unrealized_pnl=Decimal("0"),
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise AlreadyClosedError(position_id)

            self._reconcile_locked(session, position.portfolio_id, reconcile, now)

        return ClosedPosition(
            position_id=position.id,
            portfolio_id=position.portfolio_id,
            token=position.token,
            position_type=position.position_type,
            exit_price=exit_price,
            exit_time=now,
            realized_pnl=realized_pnl,
            exit_reason=exit_reason,
        )

    def get_position(self, *, position_id: str) -> Optional[Position]:
        with self._session_factory() as session:
            model = session.get(PositionModel, position_id)
            return None if model is None else _to_position(model)

    def list_positions(self, *, portfolio_id: str, active_only: bool = False) -> Sequence[Position]:
        stmt = (
            select(PositionModel)
            .where(PositionModel.portfolio_id == portfolio_id)
            .order_by(PositionModel.entry_time.desc())
        )
        if active_only:
            stmt = stmt.where(PositionModel.is_active.is_(True))

        with self._session_factory() as session:
            return [_to_position(m) for m in session.execute(stmt).scalars().all()]

    def list_trigger_candidates(self) -> Sequence[Position]:
        stmt = (
            select(PositionModel)
            .where(
                PositionModel.is_active.is_(True),
                or_(PositionModel.stop_loss.is_not(None), PositionModel.take_profit.is_not(None)),
            )
            .order_by(PositionModel.entry_time.asc())
        )
        with self._session_factory() as session:
            return [_to_position(m) for m in session.execute(stmt).scalars().all()]

    def mark_position(self, *, position_id: str, current_price: Decimal, unrealized_pnl: Decimal) -> bool:
        with self._session_factory.begin() as session:
            result = session.execute(
                update(PositionModel)
                .where(PositionModel.id == position_id, PositionModel.is_active.is_(True))
                .values(current_price=current_price, unrealized_pnl=unrealized_pnl, updated_at=_utcnow())
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    # ---- SnapshotStore

    def list_snapshots(self, *, portfolio_id: str, since: datetime | None = None) -> Sequence[PortfolioSnapshot]:
        stmt = (
            select(PortfolioSnapshotModel)
            .where(PortfolioSnapshotModel.portfolio_id == portfolio_id)
            .order_by(PortfolioSnapshotModel.taken_at.asc(), PortfolioSnapshotModel.id.asc())
        )
        if since is not None:
            stmt = stmt.where(PortfolioSnapshotModel.taken_at >= since)

        with self._session_factory() as session:
            return [_to_snapshot(m) for m in session.execute(stmt).scalars().all()]

    def latest_snapshot(self, *, portfolio_id: str, at_or_before: datetime) -> Optional[PortfolioSnapshot]:
        stmt = (
            select(PortfolioSnapshotModel)
            .where(
                PortfolioSnapshotModel.portfolio_id == portfolio_id,
                PortfolioSnapshotModel.taken_at <= at_or_before,
            )
            .order_by(PortfolioSnapshotModel.taken_at.desc(), PortfolioSnapshotModel.id.desc())
            .limit(1)
        )
        with self._session_factory() as session:
            model = session.execute(stmt).scalar_one_or_none()
            return None if model is None else _to_snapshot(model)
