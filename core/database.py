"""
core/database.py -- Shared SQLAlchemy engine construction for the stores.

Both UserStore and SubscriptionStore build their engine here so connection
settings (SQLite thread checks, WAL mode, acquisition timeouts) stay identical.

Timeouts: the caller must never hang waiting for the database. For pooled
backends pool_timeout bounds the wait for a free connection; SQLite uses a
SingletonThreadPool for in-memory URIs (which rejects pool_timeout), so there
the driver's busy timeout bounds the wait for a write lock instead. Either
way the wait surfaces as a SQLAlchemyError the service layer maps to a
storage error.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    WAL (Write-Ahead Logging) allows readers to proceed without blocking
    during writes. Set per-connection because SQLite PRAGMAs are not
    inherited by new connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def create_store_engine(db_url: str, timeout_seconds: float = 2.0) -> Engine:
    """Return an Engine for db_url with fail-fast connection acquisition."""
    if db_url.startswith("sqlite"):
        engine = create_engine(
            db_url,
            connect_args={"check_same_thread": False, "timeout": timeout_seconds},
        )
        event.listen(engine, "connect", _set_wal_mode)
        return engine
    return create_engine(db_url, pool_timeout=timeout_seconds, pool_pre_ping=True)
