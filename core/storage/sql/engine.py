"""Engine construction.

SQLite is switched to `BEGIN IMMEDIATE` so every transaction takes the write
lock up front. pysqlite otherwise defers BEGIN until the first write, and two
concurrent closes of the same position could both read it as active before
either writes.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url

from core.storage.sql.config import SqlConfig
from db.models.ledger import Base


def create_ledger_engine(config: SqlConfig) -> Engine:
    """Create a SQLAlchemy engine for the ledger database."""
    url = make_url(config.database_url)

    if url.get_backend_name() != "sqlite":
        # Do not log the URL (it may contain secrets).
        return create_engine(url, echo=config.echo, pool_pre_ping=True)

    engine = create_engine(
        url,
        echo=config.echo,
        connect_args={"timeout": config.sqlite_timeout_seconds, "check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        # Hand transaction control to the "begin" hook below.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def create_schema(engine: Engine) -> None:
    """Create ledger tables if they don't exist."""
    Base.metadata.create_all(engine)
