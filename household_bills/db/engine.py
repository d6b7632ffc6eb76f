"""
Module: household_bills.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and the transactional scope helper.  The single point of database
    connection configuration for the package.
Architecture position: DB layer.  May import from db/base.py.  MUST NOT import
    from services/ or selectors/ (create_tables imports models lazily).

Backends:
    - PostgreSQL (production): QueuePool with pre-ping, READ COMMITTED,
      ``SELECT ... FOR UPDATE`` row locks serialize same-series writers.
    - SQLite (tests, local use): StaticPool for in-memory URLs so every
      session sees the same database; foreign keys switched on per
      connection.  Row locks are a no-op there (SQLite serializes writers).

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory called before
      init_engine_from_url().
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from household_bills.config import EngineConfig
from household_bills.db.base import Base
from household_bills.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

# Module-level engine and session factory
_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Initialize the SQLAlchemy engine from a database URL.

    Postconditions: Module-level _engine and _SessionFactory are initialized.
        A second call disposes and replaces the first.

    Args:
        database_url: PostgreSQL or SQLite connection URL.
        echo: If True, log all SQL statements.
        pool_size: Connections kept in the pool (PostgreSQL only).
        max_overflow: Max connections beyond pool_size (PostgreSQL only).
        pool_pre_ping: Test connections before use (PostgreSQL only).
        pool_timeout: Seconds to wait for a pooled connection (PostgreSQL only).
        pool_recycle: Seconds after which a connection is recycled (PostgreSQL only).

    Returns:
        SQLAlchemy Engine instance.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()

    url = make_url(database_url)
    dialect = url.get_backend_name()

    if dialect == "sqlite":
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
        _engine = create_engine(url, echo=echo, **kwargs)
        event.listen(_engine, "connect", _enable_sqlite_foreign_keys)
    else:
        _engine = create_engine(
            url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )

    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={"dialect": dialect, "echo": echo},
    )

    return _engine


def init_engine_from_config(config: EngineConfig) -> Engine:
    """
    Configure logging at ``config.log_level`` and initialize the engine for
    ``config.database_url``.

    Logging configuration is idempotent; an earlier ``configure_logging``
    call wins.
    """
    configure_logging(level=config.log_level)
    return init_engine_from_url(config.database_url, echo=config.echo_sql)


def _require_factory() -> sessionmaker[Session]:
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


def get_engine() -> Engine:
    """
    Get the current engine instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    """A new session from the current factory (one per request or thread)."""
    return _require_factory()()


def get_session_factory() -> sessionmaker[Session]:
    return _require_factory()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Postconditions: On normal exit, session is committed and closed.
        On exception, session is rolled back and closed, and the exception
        is re-raised.

    Usage:
        with session_scope() as session:
            PaymentService(session).record_payment(instance_id, paid_on)
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create every bill table on the current engine (no-op for existing ones)."""
    Base.metadata.create_all(get_engine(), tables=_bill_tables())


def drop_tables() -> None:
    """Drop every bill table. Tests and local resets only."""
    Base.metadata.drop_all(get_engine(), tables=_bill_tables())


def _bill_tables():
    import household_bills.models  # noqa: F401  (registers tables)

    return list(Base.metadata.sorted_tables)


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


atexit.register(reset_engine)


def is_postgres() -> bool:
    """True when the current engine talks to PostgreSQL (row locks are real)."""
    return _engine is not None and _engine.dialect.name == "postgresql"
