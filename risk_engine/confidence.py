"""
Risk Engine - Adaptive Confidence.

============================================================
PURPOSE
============================================================
Adjusts an asset's static confidence level (1-9) using the
quality of the latest regression fit, the amount of price
history and the hit rate of past directional readings.

============================================================
PREDICTION TRACKING
============================================================
A directional reading (risk < 0.45 or > 0.55) is stored as
a PredictionSnapshot, at most one per asset per day. After
30, 60 and 90 days the price is compared to the snapshot
price:

    risk >= 0.55  correct if price fell at least 5%
    risk <  0.45  correct if price rose at least 5%

Only the 30-day outcome feeds the accuracy bonus.

============================================================
ADAPTIVE CONFIDENCE
============================================================
    r2 bonus        clamp((r2 - 0.85) * 5, -0.5, 1.0)
    data bonus      min(1, log2(n / 365) / 4)   when n > 365
    accuracy bonus  clamp((acc - 0.5) * 2, -1, 1)
                    with 5+ validated outcomes
    result          round(static + bonuses)
                    clamped to [max(1, static - 1), 9]

============================================================
"""

import math
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from .config import AssetRiskConfig
from .types import DateLike, RiskCategory, days_between, to_utc_datetime


DIRECTIONAL_LOW = 0.45
DIRECTIONAL_HIGH = 0.55
OUTCOME_MOVE_THRESHOLD = 0.05

VALIDATION_HORIZONS = (30, 60, 90)
MIN_VALIDATED_FOR_ACCURACY = 5

MAX_CONFIDENCE = 9


# ============================================================
# PREDICTIONS
# ============================================================


@dataclass(frozen=True)
class PredictionSnapshot:
    """A directional risk reading awaiting its 30/60/90-day outcomes."""

    asset_id: str
    snapshot_date: datetime
    risk_level: float
    risk_category: str
    price_at_snapshot: float

    price_at_30_days: Optional[float] = None
    price_at_60_days: Optional[float] = None
    price_at_90_days: Optional[float] = None
    is_correct_30_day: Optional[bool] = None
    is_correct_60_day: Optional[bool] = None
    is_correct_90_day: Optional[bool] = None
    validated_at: Optional[datetime] = None

    @classmethod
    def create(
        cls,
        asset_id: str,
        snapshot_date: DateLike,
        risk_level: float,
        price: float,
    ) -> "PredictionSnapshot":
        return cls(
            asset_id=asset_id,
            snapshot_date=to_utc_datetime(snapshot_date),
            risk_level=risk_level,
            risk_category=RiskCategory.from_risk_level(risk_level).value,
            price_at_snapshot=price,
        )

    @property
    def is_fully_validated(self) -> bool:
        return self.is_correct_90_day is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset_id": self.asset_id,
            "snapshot_date": self.snapshot_date.isoformat(),
            "risk_level": self.risk_level,
            "risk_category": self.risk_category,
            "price_at_snapshot": self.price_at_snapshot,
            "price_at_30_days": self.price_at_30_days,
            "price_at_60_days": self.price_at_60_days,
            "price_at_90_days": self.price_at_90_days,
            "is_correct_30_day": self.is_correct_30_day,
            "is_correct_60_day": self.is_correct_60_day,
            "is_correct_90_day": self.is_correct_90_day,
            "validated_at": self.validated_at.isoformat() if self.validated_at else None,
        }


def is_directional(risk_level: float) -> bool:
    """Readings in the 0.45-0.55 neutral zone are not tracked."""
    return risk_level < DIRECTIONAL_LOW or risk_level > DIRECTIONAL_HIGH


def evaluate_prediction(risk_level: float, snapshot_price: float, outcome_price: float) -> bool:
    price_change = (outcome_price - snapshot_price) / snapshot_price

    if risk_level >= DIRECTIONAL_HIGH:
        return price_change <= -OUTCOME_MOVE_THRESHOLD
    elif risk_level < DIRECTIONAL_LOW:
        return price_change >= OUTCOME_MOVE_THRESHOLD
    return False


def validate_prediction(
    snapshot: PredictionSnapshot,
    current_price: float,
    current_date: DateLike,
) -> PredictionSnapshot:
    """
    Fill in every outcome horizon that has elapsed and is still empty.

    Returns the snapshot unchanged if nothing is due.
    """
    if snapshot.is_fully_validated:
        return snapshot

    days_since = math.floor(days_between(snapshot.snapshot_date, current_date))
    updates: Dict[str, Any] = {}

    for horizon in VALIDATION_HORIZONS:
        if days_since < horizon or getattr(snapshot, f"price_at_{horizon}_days") is not None:
            continue
        updates[f"price_at_{horizon}_days"] = current_price
        updates[f"is_correct_{horizon}_day"] = evaluate_prediction(
            snapshot.risk_level, snapshot.price_at_snapshot, current_price
        )

    if "is_correct_90_day" in updates:
        updates["validated_at"] = to_utc_datetime(current_date)

    return replace(snapshot, **updates) if updates else snapshot


# ============================================================
# ADAPTIVE CONFIDENCE
# ============================================================


@dataclass(frozen=True)
class AdaptiveConfidenceResult:
    asset_id: str
    static_confidence: int
    adaptive_confidence: int
    r_squared: Optional[float]
    data_point_count: int
    prediction_accuracy: Optional[float]
    validated_prediction_count: int
    r_squared_bonus: float
    data_point_bonus: float
    accuracy_bonus: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset_id": self.asset_id,
            "static_confidence": self.static_confidence,
            "adaptive_confidence": self.adaptive_confidence,
            "r_squared": self.r_squared,
            "data_point_count": self.data_point_count,
            "prediction_accuracy": self.prediction_accuracy,
            "validated_prediction_count": self.validated_prediction_count,
            "r_squared_bonus": self.r_squared_bonus,
            "data_point_bonus": self.data_point_bonus,
            "accuracy_bonus": self.accuracy_bonus,
        }


def r_squared_bonus(r_squared: Optional[float]) -> float:
    if r_squared is None:
        return 0.0
    return max(-0.5, min(1.0, (r_squared - 0.85) * 5.0))


def data_point_bonus(data_point_count: int) -> float:
    if data_point_count <= 365:
        return 0.0
    return min(1.0, math.log2(data_point_count / 365.0) / 4.0)


def compute_adaptive_confidence(
    asset: AssetRiskConfig,
    r_squared: Optional[float],
    data_point_count: int,
    validated_outcomes: Sequence[bool],
) -> AdaptiveConfidenceResult:
    """
    Adaptive confidence for an asset.

    Args:
        asset: Supplies the static confidence level
        r_squared: Latest regression fit quality, if any
        data_point_count: Points used by the latest fit
        validated_outcomes: 30-day correctness of past predictions
    """
    static = asset.confidence_level

    r2_bonus = r_squared_bonus(r_squared)
    points_bonus = data_point_bonus(data_point_count)

    accuracy: Optional[float] = None
    accuracy_bonus = 0.0
    if len(validated_outcomes) >= MIN_VALIDATED_FOR_ACCURACY:
        accuracy = sum(1 for outcome in validated_outcomes if outcome) / len(validated_outcomes)
        accuracy_bonus = max(-1.0, min(1.0, (accuracy - 0.5) * 2.0))

    raw = static + r2_bonus + points_bonus + accuracy_bonus
    floor = max(1, static - 1)
    # Half-up rounding; the clamped value is always positive
    adaptive = int(math.floor(max(floor, min(MAX_CONFIDENCE, raw)) + 0.5))

    return AdaptiveConfidenceResult(
        asset_id=asset.asset_id,
        static_confidence=static,
        adaptive_confidence=adaptive,
        r_squared=r_squared,
        data_point_count=data_point_count,
        prediction_accuracy=accuracy,
        validated_prediction_count=len(validated_outcomes),
        r_squared_bonus=r2_bonus,
        data_point_bonus=points_bonus,
        accuracy_bonus=accuracy_bonus,
    )
