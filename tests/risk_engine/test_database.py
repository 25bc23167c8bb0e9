"""
Tests for the database engine and initialization helpers.
"""

from datetime import date

import pytest
from sqlalchemy import text

import database
from database import (
    REQUIRED_TABLES,
    DatabasePersistenceError,
    create_all_tables,
    create_database_engine,
    get_db_session,
    get_engine,
    initialize_database,
    reset_engine,
    transaction_scope,
    verify_required_tables,
)
from risk_engine import MultiFactorRiskEngine, RiskHistoryRepository

from conftest import exponential_prices


@pytest.fixture
def memory_engine():
    reset_engine()
    engine = create_database_engine("sqlite://")
    yield engine
    reset_engine()


# ============================================================
# ENGINE
# ============================================================

class TestEngine:

    def test_engine_is_shared(self, memory_engine):
        assert get_engine() is memory_engine
        assert create_database_engine("sqlite://") is memory_engine

    def test_default_url_from_environment(self, monkeypatch):
        monkeypatch.setenv("RISK_DATABASE_URL", "sqlite:///custom.db")
        assert database.get_database_url() == "sqlite:///custom.db"

    def test_default_url(self, monkeypatch):
        monkeypatch.delenv("RISK_DATABASE_URL", raising=False)
        assert database.get_database_url() == database.DEFAULT_DATABASE_URL


# ============================================================
# INITIALIZATION
# ============================================================

class TestInitialization:

    def test_tables_missing_before_create(self, memory_engine):
        assert verify_required_tables() == REQUIRED_TABLES

    def test_create_all_tables(self, memory_engine):
        create_all_tables()
        assert verify_required_tables() == []

    def test_initialize_database(self, memory_engine):
        initialize_database()
        with memory_engine.connect() as conn:
            count = conn.execute(text("SELECT COUNT(*) FROM risk_points")).scalar()
        assert count == 0


# ============================================================
# TRANSACTIONS
# ============================================================

class TestTransactionScope:

    def test_commit(self, memory_engine):
        create_all_tables()
        with transaction_scope() as session:
            RiskHistoryRepository(session).record_prediction("BTC", 0.8, 100.0, date(2024, 1, 1))

        with transaction_scope() as session:
            assert len(RiskHistoryRepository(session).get_predictions("BTC")) == 1

    def test_failure_is_wrapped_and_rolled_back(self, memory_engine):
        create_all_tables()
        with pytest.raises(DatabasePersistenceError):
            with transaction_scope() as session:
                RiskHistoryRepository(session).record_prediction("BTC", 0.8, 100.0, date(2024, 1, 1))
                raise RuntimeError("boom")

        with transaction_scope() as session:
            assert RiskHistoryRepository(session).get_predictions("BTC") == []


# ============================================================
# READ SESSIONS
# ============================================================

class TestReadSession:

    def test_reads_committed_history(self, memory_engine):
        create_all_tables()
        series = MultiFactorRiskEngine().calculate_multi_factor_history(
            exponential_prices(days=10), "BTC"
        )
        with transaction_scope() as session:
            RiskHistoryRepository(session).save_risk_points("BTC", series.points)

        with get_db_session() as session:
            history = RiskHistoryRepository(session).get_risk_history("BTC")

        assert [p.date for p in history] == [p.date for p in series.points]

    def test_error_is_reraised_unwrapped(self, memory_engine):
        create_all_tables()
        with pytest.raises(RuntimeError):
            with get_db_session() as session:
                RiskHistoryRepository(session).record_prediction("BTC", 0.8, 100.0, date(2024, 1, 1))
                raise RuntimeError("boom")

        with get_db_session() as session:
            assert RiskHistoryRepository(session).get_predictions("BTC") == []
