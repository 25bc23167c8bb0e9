"""
Database Persistence Layer - Core Engine.

============================================================
RISK HISTORY PERSISTENCE
============================================================

SQLAlchemy engine, session and transaction management for
the risk engine's history, regression fits and prediction
snapshots.

Requirements:
- SQLAlchemy ORM (SQLite by default, any SQLAlchemy URL)
- Explicit transaction management
- Structured logging
- Hard failures on persistence errors

============================================================
"""

import os
import logging
from typing import Generator, List, Optional
from contextlib import contextmanager

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from sqlalchemy.exc import SQLAlchemyError, OperationalError
from sqlalchemy.pool import StaticPool

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# =============================================================
# DECLARATIVE BASE
# =============================================================

Base = declarative_base()

# =============================================================
# DATABASE ENGINE
# =============================================================

DEFAULT_DATABASE_URL = "sqlite:///risk_engine.db"

_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


def get_database_url() -> str:
    """Get database URL from environment."""
    url = os.getenv("RISK_DATABASE_URL")
    if not url:
        url = DEFAULT_DATABASE_URL
        logger.info(f"RISK_DATABASE_URL not set, using default: {url}")
    return url


def _is_in_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:")


def create_database_engine(
    url: Optional[str] = None,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_recycle: int = 1800,
    echo: bool = False,
) -> Engine:
    """
    Create the shared SQLAlchemy engine.

    Args:
        url: Database URL. Defaults to get_database_url().
        pool_size: Connections kept in the pool (server databases only)
        max_overflow: Connections beyond pool_size (server databases only)
        pool_recycle: Recycle connections after N seconds
        echo: Log SQL statements

    Returns:
        SQLAlchemy Engine
    """
    global _engine

    if _engine is not None:
        return _engine

    database_url = url or get_database_url()
    logger.info(f"Creating database engine for: {database_url.split('@')[-1]}")

    if _is_in_memory_sqlite(database_url):
        # One shared connection, otherwise every checkout sees an empty database
        _engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo,
        )
    elif database_url.startswith("sqlite"):
        _engine = create_engine(database_url, echo=echo)
    else:
        _engine = create_engine(
            database_url,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_recycle=pool_recycle,
            echo=echo,
        )

    @event.listens_for(_engine, "connect")
    def on_connect(dbapi_conn, connection_record):
        logger.debug("Database connection established")

    return _engine


def get_engine() -> Engine:
    """Get the database engine, creating if necessary."""
    global _engine
    if _engine is None:
        _engine = create_database_engine()
    return _engine


def get_session_factory() -> sessionmaker:
    """Get session factory, creating if necessary."""
    global _SessionFactory

    if _SessionFactory is None:
        _SessionFactory = sessionmaker(
            bind=get_engine(),
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )

    return _SessionFactory


def reset_engine() -> None:
    """Dispose the shared engine so the next call builds a fresh one."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


# =============================================================
# SESSION MANAGEMENT
# =============================================================


def get_session() -> Session:
    """
    Get a new database session.

    IMPORTANT: Caller is responsible for committing/closing.
    Prefer using get_db_session() context manager instead.
    """
    return get_session_factory()()


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions with automatic cleanup.

    Meant for read paths: nothing is committed. On error the
    session is rolled back and the original exception re-raised,
    unlike transaction_scope which wraps it.

    Usage:
        with get_db_session() as session:
            history = RiskHistoryRepository(session).get_risk_history("BTC")
    """
    session = get_session()
    try:
        yield session
    except Exception as e:
        logger.error(f"Session error, rolling back: {e}")
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def transaction_scope() -> Generator[Session, None, None]:
    """
    Context manager for explicit transaction boundaries.

    Commits only if no exception occurs.
    Rolls back on ANY exception.

    Usage:
        with transaction_scope() as session:
            RiskHistoryRepository(session).save_risk_points("BTC", series.points)
            # Commits automatically at end
    """
    session = get_session()
    try:
        yield session
        session.commit()
        logger.debug("Database transaction committed successfully")
    except SQLAlchemyError as e:
        logger.error(f"Database transaction failed, rolling back: {e}")
        session.rollback()
        raise DatabasePersistenceError(f"Transaction failed: {e}") from e
    except Exception as e:
        logger.error(f"Transaction failed with unexpected error: {e}")
        session.rollback()
        raise DatabasePersistenceError(f"Transaction failed: {e}") from e
    finally:
        session.close()


# =============================================================
# DATABASE INITIALIZATION
# =============================================================


REQUIRED_TABLES = [
    "risk_points",
    "risk_point_factors",
    "regression_fits",
    "prediction_snapshots",
]


def verify_database_connection() -> bool:
    """
    Verify database connection is working.

    Raises:
        DatabaseConnectionError if connection fails
    """
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
            logger.info("Database connection verified successfully")
            return True
    except OperationalError as e:
        logger.error(f"Database connection failed: {e}")
        raise DatabaseConnectionError(f"Cannot connect to database: {e}") from e


def create_all_tables() -> None:
    """
    Create all tables defined in ORM models.

    Raises:
        DatabaseInitializationError if table creation fails
    """
    # Register the risk engine models with Base
    from risk_engine import models  # noqa: F401

    try:
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=get_engine())
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        logger.error(f"Failed to create database tables: {e}")
        raise DatabaseInitializationError(f"Table creation failed: {e}") from e


def verify_required_tables() -> List[str]:
    """
    Check that every required table exists.

    Returns:
        Names of missing tables (empty when all exist)
    """
    existing = set(inspect(get_engine()).get_table_names())
    missing = []
    for table in REQUIRED_TABLES:
        if table in existing:
            logger.info(f"  [OK] Table verified: {table}")
        else:
            logger.warning(f"  [!!] Table missing: {table}")
            missing.append(table)
    return missing


def initialize_database() -> None:
    """
    Full database initialization sequence.

    1. Verify connection
    2. Create tables if not exist
    3. Verify tables
    """
    logger.info("=" * 60)
    logger.info("INITIALIZING RISK HISTORY DATABASE")
    logger.info("=" * 60)

    verify_database_connection()
    create_all_tables()
    missing = verify_required_tables()
    if missing:
        raise DatabaseInitializationError(f"Missing tables after initialization: {missing}")

    logger.info("DATABASE INITIALIZATION COMPLETE")


# =============================================================
# CUSTOM EXCEPTIONS
# =============================================================


class DatabasePersistenceError(Exception):
    """Raised when database persistence fails."""
    pass


class DatabaseConnectionError(DatabasePersistenceError):
    """Raised when database connection fails."""
    pass


class DatabaseInitializationError(DatabasePersistenceError):
    """Raised when database initialization fails."""
    pass


class PersistenceValidationError(DatabasePersistenceError):
    """Raised when data validation fails before persistence."""
    pass


# =============================================================
# EXPORTS
# =============================================================

__all__ = [
    # Base
    "Base",
    # Engine & Session
    "DEFAULT_DATABASE_URL",
    "get_database_url",
    "create_database_engine",
    "get_engine",
    "get_session",
    "get_db_session",
    "get_session_factory",
    "reset_engine",
    "transaction_scope",
    # Initialization
    "initialize_database",
    "verify_database_connection",
    "verify_required_tables",
    "create_all_tables",
    "REQUIRED_TABLES",
    # Exceptions
    "DatabasePersistenceError",
    "DatabaseConnectionError",
    "DatabaseInitializationError",
    "PersistenceValidationError",
]
