"""
core/database.py -- Engine construction shared by the SQLAlchemy Core stores.

Both auth/store.py and catalog/store.py own their own Engine (one repository,
one engine), but they need the same SQLite tuning: cross-thread connections,
WAL journaling and a busy timeout so concurrent writers queue instead of
failing immediately.

The timeout is the per-call bound on store access. For SQLite it is the busy
timeout; for other backends it is passed through as the driver's connect
timeout.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def create_store_engine(db_url: str, timeout: float = 5.0) -> Engine:
    """Create an Engine for db_url with the store defaults applied."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        # Route handlers run on Starlette's threadpool, so a pooled
        # connection may be used from a different thread than created it.
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = timeout
    else:
        connect_args["connect_timeout"] = int(max(1, timeout))
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


def now_iso() -> str:
    """Current UTC time as a fixed-width ISO 8601 string.

    timespec="microseconds" keeps every value the same length, so string
    ordering in SQL matches chronological ordering.
    """
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")
