"""
Risk Engine - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts for the Multi-Factor Risk Engine.

This module defines the enums, value types and error
taxonomy shared by the regression model, the factor
normalizers, the composite calculator and the persistence
layer.

============================================================
DESIGN PRINCIPLES
============================================================
- All value types are frozen dataclasses
- Enums for closed sets (factor types, categories, tiers)
- Factor availability is an explicit tagged variant,
  never a magic default
- One category taxonomy for every consumer

============================================================
RISK CATEGORIES
============================================================
Lower bound inclusive, upper bound exclusive:

    [0.00, 0.20)  Very Low Risk
    [0.20, 0.40)  Low Risk
    [0.40, 0.55)  Neutral
    [0.55, 0.70)  Elevated Risk
    [0.70, 0.90)  High Risk
    [0.90, 1.00]  Extreme Risk

============================================================
"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


# ============================================================
# DATE HELPERS
# ============================================================


DateLike = Union[date, datetime]

SECONDS_PER_DAY = 86400.0


def to_utc_datetime(value: DateLike) -> datetime:
    """
    Normalize a date or datetime to an aware UTC datetime.

    Plain dates map to midnight UTC. Naive datetimes are
    treated as UTC.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


def days_between(start: DateLike, end: DateLike) -> float:
    """Fractional days from start to end (negative if end precedes start)."""
    delta = to_utc_datetime(end) - to_utc_datetime(start)
    return delta.total_seconds() / SECONDS_PER_DAY


def date_key(value: DateLike) -> date:
    """Calendar day (UTC) of a date or datetime."""
    return to_utc_datetime(value).date()


# ============================================================
# ENUMS
# ============================================================


class RiskFactorType(str, Enum):
    """
    The seven factors of the multi-factor model.

    Order matches evaluation and display order.
    """

    LOG_REGRESSION = "log_regression"
    RSI = "rsi"
    SMA_POSITION = "sma_position"
    BULL_MARKET_BANDS = "bull_market_bands"
    FUNDING_RATE = "funding_rate"
    FEAR_GREED = "fear_greed"
    MACRO_RISK = "macro_risk"

    @classmethod
    def all_factors(cls) -> List["RiskFactorType"]:
        """Return all factor types in evaluation order."""
        return list(cls)

    @classmethod
    def supplementary_factors(cls) -> List["RiskFactorType"]:
        """Every factor except the log regression base factor."""
        return [f for f in cls if f != cls.LOG_REGRESSION]

    @property
    def label(self) -> str:
        return _FACTOR_LABELS[self]


_FACTOR_LABELS = {
    RiskFactorType.LOG_REGRESSION: "Log Regression",
    RiskFactorType.RSI: "RSI",
    RiskFactorType.SMA_POSITION: "SMA Position",
    RiskFactorType.BULL_MARKET_BANDS: "Bull Market Bands",
    RiskFactorType.FUNDING_RATE: "Funding Rate",
    RiskFactorType.FEAR_GREED: "Fear & Greed",
    RiskFactorType.MACRO_RISK: "Macro Risk",
}


class RiskCategory(str, Enum):
    """
    Six-tier classification of a [0, 1] risk level.

    This is the single source of truth for category strings.
    """

    VERY_LOW = "Very Low Risk"
    LOW = "Low Risk"
    NEUTRAL = "Neutral"
    ELEVATED = "Elevated Risk"
    HIGH = "High Risk"
    EXTREME = "Extreme Risk"

    @classmethod
    def from_risk_level(cls, level: float) -> "RiskCategory":
        """
        Classify a risk level.

        Each tier includes its lower bound and excludes its upper
        bound, e.g. 0.20 is LOW and 0.55 is ELEVATED.
        """
        for upper, category in _CATEGORY_UPPER_BOUNDS:
            if level < upper:
                return category
        return cls.EXTREME

    @property
    def severity_order(self) -> int:
        """Numeric ordering for severity comparison."""
        return list(RiskCategory).index(self)


_CATEGORY_UPPER_BOUNDS: Tuple[Tuple[float, RiskCategory], ...] = (
    (0.20, RiskCategory.VERY_LOW),
    (0.40, RiskCategory.LOW),
    (0.55, RiskCategory.NEUTRAL),
    (0.70, RiskCategory.ELEVATED),
    (0.90, RiskCategory.HIGH),
)


class FearGreedLevel(str, Enum):
    """
    Five-tier Fear & Greed classification.

    Index ranges:
    - EXTREME_FEAR: 0-24
    - FEAR: 25-44
    - NEUTRAL: 45-55
    - GREED: 56-75
    - EXTREME_GREED: 76-100
    """

    EXTREME_FEAR = "Extreme Fear"
    FEAR = "Fear"
    NEUTRAL = "Neutral"
    GREED = "Greed"
    EXTREME_GREED = "Extreme Greed"

    @classmethod
    def from_value(cls, value: float) -> "FearGreedLevel":
        if value < 25:
            return cls.EXTREME_FEAR
        elif value < 45:
            return cls.FEAR
        elif value <= 55:
            return cls.NEUTRAL
        elif value <= 75:
            return cls.GREED
        return cls.EXTREME_GREED


class MarketSignal(str, Enum):
    """Three-tier signal used for VIX and DXY readings."""

    BULLISH = "bullish"
    NEUTRAL = "neutral"
    BEARISH = "bearish"


class BandPosition(str, Enum):
    """Price position relative to the bull market support bands."""

    ABOVE_BOTH = "Above Support"
    IN_BAND = "Testing Support"
    BELOW_BOTH = "Below Support"


# ============================================================
# INPUT DATA CONTRACTS
# ============================================================


@dataclass(frozen=True)
class PricePoint:
    """A single (date, price) observation."""

    date: DateLike
    price: float

    @property
    def is_valid(self) -> bool:
        return self.price > 0 and not math.isnan(self.price)


@dataclass(frozen=True)
class BullMarketBands:
    """
    20-week SMA and 21-week EMA support band snapshot.
    """

    sma_20_week: float
    ema_21_week: float
    current_price: float

    @property
    def position(self) -> BandPosition:
        above_sma = self.current_price > self.sma_20_week
        above_ema = self.current_price > self.ema_21_week
        if above_sma and above_ema:
            return BandPosition.ABOVE_BOTH
        if not above_sma and not above_ema:
            return BandPosition.BELOW_BOTH
        return BandPosition.IN_BAND

    @property
    def band_average(self) -> float:
        return (self.sma_20_week + self.ema_21_week) / 2.0


@dataclass(frozen=True)
class MacroReading:
    """Current value of a macro series plus its historical window."""

    current: float
    history: Tuple[float, ...] = ()

    def __post_init__(self) -> None:
        # Accept any sequence but store a tuple so the reading stays hashable
        object.__setattr__(self, "history", tuple(self.history))


@dataclass(frozen=True)
class RiskFactorData:
    """
    Snapshot of supplementary indicator readings for one date.

    Every field is optional. A missing field makes the
    corresponding factor unavailable for that date.
    """

    rsi: Optional[float] = None
    sma_200: Optional[float] = None
    current_price: Optional[float] = None
    bull_market_bands: Optional[BullMarketBands] = None
    funding_rate: Optional[float] = None
    fear_greed_value: Optional[float] = None
    vix: Optional[MacroReading] = None
    dxy: Optional[MacroReading] = None

    @property
    def has_any_data(self) -> bool:
        return self.available_count > 0

    @property
    def available_count(self) -> int:
        fields = [
            self.rsi,
            self.sma_200,
            self.bull_market_bands,
            self.funding_rate,
            self.fear_greed_value,
            self.vix,
            self.dxy,
        ]
        return sum(1 for value in fields if value is not None)


EMPTY_FACTOR_DATA = RiskFactorData()


# ============================================================
# FACTOR VALUES
# ============================================================


@dataclass(frozen=True)
class Available:
    """A factor reading that was computed for this date."""

    normalized: float
    raw: Optional[float] = None


@dataclass(frozen=True)
class Unavailable:
    """A factor whose source data was missing or unusable."""

    reason: str = "data unavailable"


FactorValue = Union[Available, Unavailable]


@dataclass(frozen=True)
class RiskFactor:
    """
    One factor's contribution to the composite.

    Unavailable factors keep their weight for display but are
    excluded from both sides of the weighted average.
    """

    type: RiskFactorType
    value: FactorValue
    weight: float

    @classmethod
    def available(
        cls,
        factor_type: RiskFactorType,
        normalized: float,
        weight: float,
        raw: Optional[float] = None,
    ) -> "RiskFactor":
        return cls(type=factor_type, value=Available(normalized, raw), weight=weight)

    @classmethod
    def unavailable(
        cls,
        factor_type: RiskFactorType,
        weight: float,
        reason: str = "data unavailable",
    ) -> "RiskFactor":
        return cls(type=factor_type, value=Unavailable(reason), weight=weight)

    @property
    def is_available(self) -> bool:
        return isinstance(self.value, Available)

    @property
    def normalized_value(self) -> Optional[float]:
        if isinstance(self.value, Available):
            return self.value.normalized
        return None

    @property
    def raw_value(self) -> Optional[float]:
        if isinstance(self.value, Available):
            return self.value.raw
        return None

    @property
    def unavailable_reason(self) -> Optional[str]:
        if isinstance(self.value, Unavailable):
            return self.value.reason
        return None

    @property
    def weighted_contribution(self) -> Optional[float]:
        if isinstance(self.value, Available):
            return self.value.normalized * self.weight
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "label": self.type.label,
            "available": self.is_available,
            "raw_value": self.raw_value,
            "normalized_value": self.normalized_value,
            "weight": self.weight,
            "unavailable_reason": self.unavailable_reason,
        }


# ============================================================
# WEIGHTS
# ============================================================


WEIGHT_SUM_TOLERANCE = 0.001


@dataclass(frozen=True)
class RiskFactorWeights:
    """
    Weight vector for the seven factors.

    Validity (sum within 0.001 of 1.0) is reported by
    `is_valid`, not enforced at construction.
    """

    log_regression: float = 0.35
    rsi: float = 0.12
    sma_position: float = 0.12
    bull_market_bands: float = 0.11
    funding_rate: float = 0.10
    fear_greed: float = 0.10
    macro_risk: float = 0.10

    def weight_for(self, factor_type: RiskFactorType) -> float:
        return getattr(self, factor_type.value)

    @property
    def total(self) -> float:
        return math.fsum(self.weight_for(t) for t in RiskFactorType)

    @property
    def is_valid(self) -> bool:
        # Small epsilon so that a vector summing to exactly 0.999 is not
        # rejected by binary floating point representation.
        return abs(self.total - 1.0) <= WEIGHT_SUM_TOLERANCE + 1e-9

    def to_dict(self) -> Dict[str, float]:
        return {t.value: self.weight_for(t) for t in RiskFactorType}


# ============================================================
# OUTPUT DATA CONTRACTS
# ============================================================


@dataclass(frozen=True)
class RiskHistoryPoint:
    """Log-regression-only risk reading for one date."""

    date: DateLike
    risk_level: float
    price: float
    fair_value: float
    deviation: float

    @property
    def category(self) -> RiskCategory:
        return RiskCategory.from_risk_level(self.risk_level)

    @property
    def is_overvalued(self) -> bool:
        return self.deviation > 0

    @property
    def deviation_percentage(self) -> float:
        """Percentage distance of price from fair value."""
        if self.fair_value <= 0:
            return 0.0
        return (self.price - self.fair_value) / self.fair_value * 100


@dataclass(frozen=True)
class MultiFactorRiskPoint:
    """
    Composite risk reading for one date with full factor breakdown.

    ============================================================
    OUTPUT GUARANTEES
    ============================================================
    - risk_level: Always within [0, 1]
    - factors: Every factor evaluated, available or not
    - fair_value / deviation: None only when the log regression
      factor was unavailable for this date

    ============================================================
    """

    date: DateLike
    risk_level: float
    price: float
    fair_value: Optional[float]
    deviation: Optional[float]
    factors: Tuple[RiskFactor, ...]
    weights: RiskFactorWeights = field(default_factory=RiskFactorWeights)

    @property
    def category(self) -> RiskCategory:
        return RiskCategory.from_risk_level(self.risk_level)

    @property
    def date_string(self) -> str:
        return date_key(self.date).isoformat()

    @property
    def available_factors(self) -> List[RiskFactor]:
        return [f for f in self.factors if f.is_available]

    @property
    def available_factor_count(self) -> int:
        return len(self.available_factors)

    @property
    def available_weight(self) -> float:
        return math.fsum(f.weight for f in self.available_factors)

    @property
    def has_supplementary_factors(self) -> bool:
        return any(
            f.is_available and f.type != RiskFactorType.LOG_REGRESSION
            for f in self.factors
        )

    def factor(self, factor_type: RiskFactorType) -> Optional[RiskFactor]:
        for f in self.factors:
            if f.type == factor_type:
                return f
        return None

    def effective_weight(self, factor_type: RiskFactorType) -> float:
        """Weight actually applied after redistribution (0 if unavailable)."""
        f = self.factor(factor_type)
        total = self.available_weight
        if f is None or not f.is_available or total <= 0:
            return 0.0
        return f.weight / total

    def to_history_point(self) -> RiskHistoryPoint:
        """Collapse to the log-regression history shape."""
        return RiskHistoryPoint(
            date=self.date,
            risk_level=self.risk_level,
            price=self.price,
            fair_value=self.fair_value if self.fair_value is not None else 0.0,
            deviation=self.deviation if self.deviation is not None else 0.0,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "date": self.date_string,
            "risk_level": self.risk_level,
            "category": self.category.value,
            "price": self.price,
            "fair_value": self.fair_value,
            "deviation": self.deviation,
            "available_factor_count": self.available_factor_count,
            "factors": [f.to_dict() for f in self.factors],
            "weights": self.weights.to_dict(),
        }


@dataclass(frozen=True)
class RiskGap:
    """A date for which no risk point could be produced."""

    date: DateLike
    error_type: str
    message: str


# ============================================================
# ERROR TYPES
# ============================================================


class RiskEngineError(Exception):
    """
    Base exception for risk engine errors.

    Every engine error is local to one asset or one date and
    is recoverable by the caller.
    """

    recoverable: bool = True

    def __init__(
        self,
        message: str,
        factor: Optional[RiskFactorType] = None,
        at: Optional[DateLike] = None,
    ) -> None:
        super().__init__(message)
        self.factor = factor
        self.at = at


class InsufficientDataError(RiskEngineError):
    """Too few usable observations for the requested computation."""
    pass


class DegenerateInputError(RiskEngineError):
    """Regression time axis has zero variance."""
    pass


class InvalidFairValueError(RiskEngineError):
    """Fair value is non-positive; the date's regression factor must be skipped."""
    pass


class InvalidPriceError(RiskEngineError):
    """Price is non-positive or NaN."""
    pass


class ZeroVarianceError(RiskEngineError):
    """
    Historical series is constant.

    NOTE: Callers treat this as "not significant" rather
    than propagating NaN or infinity.
    """
    pass


class NoFactorsAvailableError(RiskEngineError):
    """No factor contributed to the composite for this date."""
    pass


class UnsupportedAssetError(RiskEngineError):
    """Asset is not present in the registry."""

    def __init__(self, symbol: str) -> None:
        super().__init__(f"Unsupported asset: {symbol}")
        self.symbol = symbol
