"""
Database Package Initialization.

============================================================
RISK HISTORY PERSISTENCE LAYER
============================================================

Engine, session and transaction management shared by the
risk engine's repository. ORM models live in
risk_engine.models and register on this package's Base.

REQUIRED:
- Every failure raises hard exceptions
- All transactions are explicit with commit/rollback

============================================================
"""

from .engine import (
    # Declarative base
    Base,

    # Engine creation
    DEFAULT_DATABASE_URL,
    get_database_url,
    create_database_engine,
    get_engine,
    reset_engine,

    # Session management
    get_session,
    get_session_factory,
    get_db_session,
    transaction_scope,

    # Database initialization
    initialize_database,
    verify_database_connection,
    verify_required_tables,
    create_all_tables,
    REQUIRED_TABLES,

    # Exceptions
    DatabasePersistenceError,
    DatabaseConnectionError,
    DatabaseInitializationError,
    PersistenceValidationError,
)


__all__ = [
    "Base",
    "DEFAULT_DATABASE_URL",
    "get_database_url",
    "create_database_engine",
    "get_engine",
    "reset_engine",
    "get_session",
    "get_session_factory",
    "get_db_session",
    "transaction_scope",
    "initialize_database",
    "verify_database_connection",
    "verify_required_tables",
    "create_all_tables",
    "REQUIRED_TABLES",
    "DatabasePersistenceError",
    "DatabaseConnectionError",
    "DatabaseInitializationError",
    "PersistenceValidationError",
]
