"""
Shared fixtures for the risk engine tests.
"""

from datetime import date, timedelta
from typing import List

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database.engine import Base
from risk_engine import PricePoint, models  # noqa: F401


BTC_ORIGIN = date(2009, 1, 3)

# log10(price) = TREND_SLOPE * days + TREND_INTERCEPT
TREND_SLOPE = 0.0015
TREND_INTERCEPT = 0.5


def exponential_prices(
    origin: date = BTC_ORIGIN,
    days: int = 1000,
    slope: float = TREND_SLOPE,
    intercept: float = TREND_INTERCEPT,
    start_day: int = 1,
) -> List[PricePoint]:
    """Clean exponential trend, one point per day."""
    return [
        PricePoint(origin + timedelta(days=d), 10 ** (slope * d + intercept))
        for d in range(start_day, start_day + days)
    ]


@pytest.fixture
def btc_prices() -> List[PricePoint]:
    """1000 days of a clean exponential BTC trend."""
    return exponential_prices()


@pytest.fixture
def alternating_history() -> List[float]:
    """20 values alternating 10 / 12: mean 11, sample sd sqrt(20/19)."""
    return [10.0, 12.0] * 10


@pytest.fixture
def db_session():
    """Session on a fresh in-memory SQLite database."""
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine)
    session = Session(engine)
    try:
        yield session
    finally:
        session.close()
        engine.dispose()
