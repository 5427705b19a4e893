"""
Engine and session handling for the cafe back-office core.

A SQLAlchemy Session is the store object every service operation works
through. Callers that want several operations to succeed or fail together
open one session (usually via session_scope()) and pass it to each call;
a call made without a session opens and commits its own.

This module provides:
- Engine creation from configuration (file or in-memory SQLite)
- The process-wide session factory
- Table creation, verification and reset
- Foreign key enforcement on SQLite connections
"""

from typing import Any, Dict, Optional
from contextlib import contextmanager
import logging

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from ..utils.config import get_config
from ..models.base import Base

logger = logging.getLogger(__name__)

# Tables the services cannot work without
MANAGED_TABLES = (
    "inventory_items",
    "inventory_transactions",
    "recipes",
    "recipe_ingredients",
    "menu_items",
)

# Process-wide engine and session factory, created lazily
_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    """Turn on foreign key enforcement for each new SQLite connection."""
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _is_memory_url(database_url: str) -> bool:
    return ":memory:" in database_url or "mode=memory" in database_url


def _engine_options(database_url: str, echo: bool) -> Dict[str, Any]:
    config = get_config()
    options: Dict[str, Any] = {"echo": echo}
    if _is_memory_url(database_url):
        # Every session must see the same in-memory database
        options["connect_args"] = {"check_same_thread": False}
        options["poolclass"] = StaticPool
    else:
        config.ensure_directories()
        options["connect_args"] = {"check_same_thread": False, "timeout": config.db_timeout}
    return options


def create_database_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Build an engine for a database URL.

    Args:
        database_url: SQLAlchemy URL; defaults to the configured one
        echo: Log every SQL statement

    Returns:
        Engine
    """
    if database_url is None:
        database_url = get_config().database_url

    logger.info(f"Creating database engine: {database_url}")
    return create_engine(database_url, **_engine_options(database_url, echo))


def init_database(engine: Optional[Engine] = None) -> None:
    """
    Create any missing tables. Existing tables and data are kept.

    Args:
        engine: Engine to use (defaults to the process-wide engine)
    """
    if engine is None:
        engine = get_engine()

    # Registers every model with Base.metadata
    from .. import models  # noqa: F401

    Base.metadata.create_all(engine)
    logger.info("Database tables ready")


def get_engine(force_recreate: bool = False) -> Engine:
    """Return the process-wide engine, creating it on first use."""
    global _engine

    if _engine is None or force_recreate:
        _engine = create_database_engine()

    return _engine


def get_session_factory() -> sessionmaker:
    """
    Return the process-wide session factory.

    Sessions keep attribute values after commit so returned entities stay
    readable once their session is closed.
    """
    global _SessionFactory

    if _SessionFactory is None:
        _SessionFactory = sessionmaker(bind=get_engine(), expire_on_commit=False)

    return _SessionFactory


def get_session() -> Session:
    """Open a new session from the process-wide factory."""
    return get_session_factory()()


@contextmanager
def session_scope():
    """
    Run a block in one database transaction.

    Commits when the block finishes, rolls back if it raises (so a failed
    operation leaves every entity as it was) and always closes the session.

    Yields:
        Session

    Example:
        with session_scope() as session:
            item = inventory_service.create_item({...}, session=session)
            ledger_service.record_transaction({...}, session=session)
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def verify_database() -> bool:
    """
    Check that the database answers and holds every managed table.

    Returns:
        True if all tables exist, False otherwise (errors are logged)
    """
    try:
        existing = set(inspect(get_engine()).get_table_names())
    except Exception as e:
        logger.error(f"Database verification failed: {e}")
        return False

    missing = [table for table in MANAGED_TABLES if table not in existing]
    if missing:
        logger.warning(f"Database is missing tables: {', '.join(missing)}")
    return not missing


def reset_database(confirm: bool = False) -> None:
    """
    Drop and recreate every table. All data is lost.

    Args:
        confirm: Must be True

    Raises:
        ValueError: If confirm is not True
    """
    if not confirm:
        raise ValueError("Must pass confirm=True to reset database. This will delete all data!")

    logger.warning("RESETTING DATABASE - ALL DATA WILL BE LOST")

    from .. import models  # noqa: F401

    engine = get_engine()
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    logger.info("Database reset complete")


def close_connections() -> None:
    """Dispose of the process-wide engine and forget the session factory."""
    global _engine, _SessionFactory

    _SessionFactory = None
    if _engine is not None:
        _engine.dispose()
        _engine = None

    logger.info("Database connections closed")


def initialize_app_database() -> None:
    """
    Prepare the database for a hosting process.

    Creates the database and its tables when missing, then verifies them.
    """
    config = get_config()
    state = "existing" if config.database_exists() else "new"
    logger.info(f"Using {state} database at: {config.database_url}")

    init_database(get_engine())

    if verify_database():
        logger.info("Database initialized and verified")
    else:
        logger.warning("Database verification failed - tables may not exist")
