"""
Module: expense_workflow.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and transactional scope utilities.  This is the single point of database
    connection configuration for the engine.
Architecture position: Engine > DB.  May import from db/base.py.
    MUST NOT import from services/, selectors/, domain/, or outer layers
    (except create_tables, which imports models so metadata is complete).

Invariants enforced:
    - Writers on the same report are serialized.  PostgreSQL runs at
      READ COMMITTED with explicit row locks (SELECT ... FOR UPDATE) taken
      by the services.  SQLite ignores FOR UPDATE, so every transaction is
      opened with BEGIN IMMEDIATE, which takes the database write lock up
      front and serializes writers database-wide.
    - Connection pooling with pre-ping to handle stale connections.

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory called before
      init_engine_from_url().
    - OperationalError ("database is locked") if a SQLite writer waits longer
      than the configured busy timeout.
"""

import atexit
from contextlib import contextmanager
from typing import TYPE_CHECKING, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from expense_workflow.exceptions import WorkflowEngineError
from expense_workflow.logging_config import configure_logging, get_logger

if TYPE_CHECKING:
    from workflow_config import WorkflowConfig

logger = get_logger("db.engine")

# Module-level engine and session factory
_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    sqlite_busy_timeout_seconds: float = 30.0,
) -> Engine:
    """
    Create (but do not register) an engine for ``database_url``.

    SQLite URLs get the pysqlite transaction recipe: the driver's implicit
    BEGIN is disabled and SQLAlchemy emits BEGIN IMMEDIATE itself.  An
    in-memory SQLite URL uses a single shared connection (StaticPool).
    """
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        in_memory = url.database in (None, "", ":memory:")
        kwargs: dict = {
            "echo": echo,
            "connect_args": {
                "check_same_thread": False,
                "timeout": sqlite_busy_timeout_seconds,
            },
        }
        if in_memory:
            kwargs["poolclass"] = StaticPool
        else:
            kwargs.update(
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_timeout=pool_timeout,
                pool_pre_ping=pool_pre_ping,
            )
        engine = create_engine(url, **kwargs)
        _install_sqlite_listeners(engine)
        return engine

    return create_engine(
        url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        isolation_level="READ COMMITTED",
    )


def _install_sqlite_listeners(engine: Engine) -> None:
    """Serialize SQLite writers and enforce foreign keys."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy, not pysqlite, decide when a transaction begins.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    sqlite_busy_timeout_seconds: float = 30.0,
) -> Engine:
    """
    Initialize the module-level engine and session factory.

    Postconditions: All subsequent get_engine/get_session calls use this
        engine.  A second call replaces the first.

    Returns:
        SQLAlchemy Engine instance.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()

    _engine = build_engine(
        database_url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        sqlite_busy_timeout_seconds=sqlite_busy_timeout_seconds,
    )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": _engine.dialect.name,
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "echo": echo,
        },
    )

    return _engine


def init_engine_from_config(config: "WorkflowConfig") -> Engine:
    """Initialize logging and the engine from a loaded ``WorkflowConfig``."""
    configure_logging(level=config.logging.level_number)
    db = config.database
    return init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
        sqlite_busy_timeout_seconds=db.sqlite_busy_timeout_seconds,
    )


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
def session_scope(
    factory: sessionmaker[Session] | None = None,
) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Postconditions: On normal exit, session is committed and closed.
        On exception, session is rolled back and closed.  The exception
        is re-raised to the caller.  Domain refusals (WorkflowEngineError)
        roll back at INFO without a traceback; anything else at WARNING.

    Usage:
        with session_scope() as session:
            session.add(entity)
            # Commits on successful exit, rolls back on exception
    """
    session = factory() if factory is not None else get_session()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except WorkflowEngineError as exc:
        session.rollback()
        logger.info("transaction_rolled_back", extra={"error_code": exc.code})
        raise
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables(engine: Engine | None = None) -> None:
    """
    Create all tables defined in the models.

    All ORM models are imported first so Base.metadata is complete.
    """
    from expense_workflow.db.base import Base
    import expense_workflow.models  # noqa: F401

    Base.metadata.create_all(engine or get_engine())


def drop_tables(engine: Engine | None = None) -> None:
    """
    Drop all tables. Use with caution - primarily for testing.
    """
    from expense_workflow.db.base import Base
    import expense_workflow.models  # noqa: F401

    Base.metadata.drop_all(engine or get_engine())


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
        _engine.dispose()


atexit.register(_atexit_dispose)

