from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SqlConfig:
    """Connection configuration.

    `database_url` should come from environment (e.g. DATABASE_URL).
    Do not log it.
    """

    database_url: str
    echo: bool = False
    # Seconds a SQLite writer waits for the database lock.
    sqlite_timeout_seconds: float = 30.0
