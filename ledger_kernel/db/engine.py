"""
Module: ledger_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and transactional scope utilities.  This is the single point of database
    connection configuration for the ledger kernel.
Architecture position: Kernel > DB.  May import from db/base.py.
    MUST NOT import from services/, selectors/, domain/, or outer layers
    (except for create_tables/drop_tables which import models and triggers,
    and the inline import of db/immutability.py).

Invariants enforced:
    - PostgreSQL is the production backend.  Sessions run at READ COMMITTED;
      period transitions rely on compare-and-set updates, not on isolation.
    - SQLite is accepted for local runs and tests (no pool, no isolation
      override; SELECT ... FOR UPDATE is a no-op there).

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory called before
      init_engine_from_url().
    - Connection pool exhaustion if pool_size + max_overflow is exceeded.

Audit relevance:
    All database transactions flow through sessions created by this module.
    session_scope() guarantees commit-or-rollback semantics.
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from ledger_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


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

    Preconditions: database_url is a valid PostgreSQL or SQLite URL.
    Postconditions: Module-level _engine and _SessionFactory are initialized.
        A second call overwrites the first.

    Args:
        database_url: Connection URL (postgresql://... or sqlite:///...).
        echo: If True, log all SQL statements.
        pool_size: Number of connections to keep in the pool (PostgreSQL).
        max_overflow: Max connections beyond pool_size (PostgreSQL).
        pool_pre_ping: If True, test connections before use.
        pool_timeout: Seconds to wait for a pooled connection.
        pool_recycle: Seconds after which a connection is recycled.

    Returns:
        SQLAlchemy Engine instance.
    """
    global _engine, _SessionFactory

    dialect = make_url(database_url).get_backend_name()

    if dialect == "sqlite":
        _engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"timeout": 30},
        )
    else:
        _engine = create_engine(
            database_url,
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

    from ledger_kernel.db.immutability import register_immutability_listeners

    register_immutability_listeners()

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": dialect,
            "pool_size": pool_size if dialect != "sqlite" else None,
            "echo": echo,
        },
    )

    return _engine


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
    """
    Get a new session instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory()


def get_session_factory() -> sessionmaker[Session]:
    """
    Get the session factory for creating sessions.

    Useful for multi-threaded scenarios where each thread needs its own session.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Postconditions: On normal exit, session is committed and closed.
        On exception, session is rolled back and closed.  The exception
        is re-raised to the caller.

    Usage:
        with session_scope() as session:
            session.add(entity)
    """
    session = get_session()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables(install_triggers: bool = True) -> None:
    """
    Create all tables defined in the models and install the write protection.

    Postconditions: All kernel tables exist in the database and the ORM
        listeners are registered.  On PostgreSQL, with install_triggers=True,
        the audit-trail triggers are installed as well.
    """
    from ledger_kernel.db.base import Base
    from ledger_kernel.db.immutability import register_immutability_listeners
    from ledger_kernel.db.triggers import install_immutability_triggers, supports_triggers
    from ledger_kernel.models import import_all_models

    engine = get_engine()
    import_all_models()
    Base.metadata.create_all(engine)
    register_immutability_listeners()

    if install_triggers and supports_triggers(engine):
        install_immutability_triggers(engine)
        logger.info("immutability_triggers_installed")


def drop_tables() -> None:
    """
    Drop all tables. Use with caution - primarily for testing.
    """
    from ledger_kernel.db.base import Base
    from ledger_kernel.db.triggers import supports_triggers, uninstall_immutability_triggers
    from ledger_kernel.models import import_all_models

    engine = get_engine()
    import_all_models()
    if supports_triggers(engine):
        uninstall_immutability_triggers(engine)
    Base.metadata.drop_all(engine)


def reset_engine() -> None:
    """
    Reset the engine and session factory.

    Useful for test cleanup.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionFactory = None


def _atexit_dispose():
    """Dispose the engine on process exit to release all pooled connections."""
    if _engine is not None:
        try:
            _engine.dispose()
        except SQLAlchemyError:
            logger.warning("engine_dispose_failed", exc_info=True)


atexit.register(_atexit_dispose)


def is_postgres() -> bool:
    """Check if the current engine is PostgreSQL."""
    if _engine is None:
        return False
    return _engine.dialect.name == "postgresql"
