"""
Risk Engine - Macro Indicator Analysis.

============================================================
PURPOSE
============================================================
Standalone z-score analysis of macro series (VIX, DXY, M2)
with market implications for crypto.

The macro risk FACTOR lives in normalizers.py. This module
is the descriptive side: SD bands, direction, implication
and a plain-language interpretation per indicator.

============================================================
CORRELATION WITH CRYPTO
============================================================
    VIX  inverse   (risk-off equity fear is bearish)
    DXY  inverse   (strong dollar is a headwind)
    M2   positive  (liquidity expansion is bullish)

============================================================
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence

from .statistics import EXTREME_Z, SIGNIFICANT_Z, SDBands, ZScoreResult, sd_bands, z_score
from .types import InsufficientDataError, MacroReading, MarketSignal, RiskEngineError


logger = logging.getLogger(__name__)


DEFAULT_MIN_HISTORY_POINTS = 20


# ============================================================
# ENUMS
# ============================================================


class IndicatorCorrelation(str, Enum):
    POSITIVE = "positive"
    INVERSE = "inverse"
    NEUTRAL = "neutral"


class ExtremeDirection(str, Enum):
    HIGH = "high"
    LOW = "low"


class MarketImplication(str, Enum):
    """Market implication derived from a z-score and its correlation."""

    BULLISH = "bullish"
    FAVORABLE = "favorable"
    NEUTRAL = "neutral"
    CAUTIOUS = "cautious"
    BEARISH = "bearish"

    @property
    def description(self) -> str:
        return {
            MarketImplication.BULLISH: "Bullish for crypto",
            MarketImplication.FAVORABLE: "Favorable conditions",
            MarketImplication.NEUTRAL: "Neutral conditions",
            MarketImplication.CAUTIOUS: "Exercise caution",
            MarketImplication.BEARISH: "Bearish for crypto",
        }[self]


class MacroIndicatorType(str, Enum):
    VIX = "VIX"
    DXY = "DXY"
    M2 = "M2"

    @property
    def display_name(self) -> str:
        return _INDICATOR_INFO[self]["display_name"]

    @property
    def full_name(self) -> str:
        return _INDICATOR_INFO[self]["full_name"]

    @property
    def crypto_correlation(self) -> IndicatorCorrelation:
        return _INDICATOR_INFO[self]["correlation"]

    @property
    def high_z_interpretation(self) -> str:
        return _INDICATOR_INFO[self]["high"]

    @property
    def low_z_interpretation(self) -> str:
        return _INDICATOR_INFO[self]["low"]


_INDICATOR_INFO = {
    MacroIndicatorType.VIX: {
        "display_name": "VIX",
        "full_name": "CBOE Volatility Index",
        "correlation": IndicatorCorrelation.INVERSE,
        "high": (
            "Elevated fear in equity markets - historically bearish for crypto in "
            "short term but can signal capitulation bottoms"
        ),
        "low": (
            "Complacency in equity markets - favorable for risk assets but watch "
            "for volatility expansion"
        ),
    },
    MacroIndicatorType.DXY: {
        "display_name": "US Dollar",
        "full_name": "US Dollar Index",
        "correlation": IndicatorCorrelation.INVERSE,
        "high": "Unusually strong dollar - creates headwind for risk assets including crypto",
        "low": "Unusually weak dollar - historically bullish for crypto and risk assets",
    },
    MacroIndicatorType.M2: {
        "display_name": "M2 Supply",
        "full_name": "M2 Money Supply",
        "correlation": IndicatorCorrelation.POSITIVE,
        "high": "Rapid liquidity expansion - historically bullish for crypto with 2-3 month lag",
        "low": "Liquidity contraction - historically creates headwinds for crypto",
    },
}


# ============================================================
# ANALYSIS RESULT
# ============================================================


@dataclass(frozen=True)
class MacroZScoreAnalysis:
    """Complete z-score analysis of one macro indicator."""

    indicator: MacroIndicatorType
    current_value: float
    z_score: ZScoreResult
    sd_bands: SDBands
    sample_size: int
    calculated_at: datetime

    @property
    def is_extreme(self) -> bool:
        return self.z_score.is_extreme

    @property
    def is_significant(self) -> bool:
        return self.z_score.is_significant

    @property
    def band_index(self) -> int:
        return self.sd_bands.classify(self.current_value)

    @property
    def direction(self) -> Optional[ExtremeDirection]:
        if not self.is_significant:
            return None
        return ExtremeDirection.HIGH if self.z_score.z_score > 0 else ExtremeDirection.LOW

    @property
    def market_implication(self) -> MarketImplication:
        z = self.z_score.z_score
        high_is_bearish = self.indicator.crypto_correlation == IndicatorCorrelation.INVERSE
        adverse = (z > 0 and high_is_bearish) or (z < 0 and not high_is_bearish)

        if self.is_extreme:
            return MarketImplication.BEARISH if adverse else MarketImplication.BULLISH
        if self.is_significant:
            return MarketImplication.CAUTIOUS if adverse else MarketImplication.FAVORABLE
        return MarketImplication.NEUTRAL

    @property
    def interpretation(self) -> str:
        z = self.z_score.z_score
        if z > SIGNIFICANT_Z:
            return self.indicator.high_z_interpretation
        if z < -SIGNIFICANT_Z:
            return self.indicator.low_z_interpretation
        return f"{self.indicator.display_name} is within normal historical range"

    def to_dict(self) -> Dict:
        return {
            "indicator": self.indicator.value,
            "current_value": self.current_value,
            "z_score": self.z_score.z_score,
            "mean": self.z_score.mean,
            "standard_deviation": self.z_score.standard_deviation,
            "sample_size": self.sample_size,
            "direction": self.direction.value if self.direction else None,
            "market_implication": self.market_implication.value,
            "interpretation": self.interpretation,
            "calculated_at": self.calculated_at.isoformat(),
        }


# ============================================================
# ANALYSIS
# ============================================================


def analyze_macro_indicator(
    indicator: MacroIndicatorType,
    current: float,
    history: Sequence[float],
    window: Optional[int] = None,
    min_points: int = DEFAULT_MIN_HISTORY_POINTS,
    calculated_at: Optional[datetime] = None,
) -> MacroZScoreAnalysis:
    """
    Z-score analysis of an indicator's current value.

    Args:
        window: Use only the most recent `window` history values
        min_points: Minimum history length

    Raises:
        InsufficientDataError: History shorter than min_points
        ZeroVarianceError: Constant history
        ValueError: window below 2
    """
    values = list(history)
    if window is not None:
        if window < 2:
            raise ValueError("Window must be at least 2")
        values = values[-window:]
    if len(values) < min_points:
        raise InsufficientDataError(
            f"{indicator.value} needs {min_points} history points, got {len(values)}"
        )

    result = z_score(current, values)
    return MacroZScoreAnalysis(
        indicator=indicator,
        current_value=current,
        z_score=result,
        sd_bands=sd_bands(result.mean, result.standard_deviation),
        sample_size=len(values),
        calculated_at=calculated_at or datetime.now(timezone.utc),
    )


def analyze_all(
    readings: Mapping[MacroIndicatorType, MacroReading],
    window: Optional[int] = None,
    min_points: int = DEFAULT_MIN_HISTORY_POINTS,
) -> Dict[MacroIndicatorType, MacroZScoreAnalysis]:
    """
    Analyze several indicators; failures are logged and omitted.
    """
    results: Dict[MacroIndicatorType, MacroZScoreAnalysis] = {}
    for indicator, reading in readings.items():
        try:
            results[indicator] = analyze_macro_indicator(
                indicator,
                reading.current,
                reading.history,
                window=window,
                min_points=min_points,
            )
        except RiskEngineError as e:
            logger.warning(f"Could not analyze {indicator.value}: {e}")
    return results


def extreme_indicators(
    analyses: Mapping[MacroIndicatorType, MacroZScoreAnalysis],
) -> List[MacroZScoreAnalysis]:
    """Analyses at or beyond the extreme threshold, largest |z| first."""
    extremes = [a for a in analyses.values() if abs(a.z_score.z_score) >= EXTREME_Z]
    return sorted(extremes, key=lambda a: abs(a.z_score.z_score), reverse=True)


# ============================================================
# SIGNAL TIERS
# ============================================================


def vix_signal(value: float) -> MarketSignal:
    if value < 15:
        return MarketSignal.BULLISH
    elif value < 20:
        return MarketSignal.NEUTRAL
    return MarketSignal.BEARISH


def vix_signal_description(value: float) -> str:
    if value < 15:
        return "Complacent"
    elif value < 20:
        return "Normal"
    elif value < 25:
        return "Elevated"
    elif value < 30:
        return "High Fear"
    return "Extreme Fear"


def dxy_signal(change_pct: float) -> MarketSignal:
    """Signal from the DXY daily change in percent."""
    if change_pct > 0.3:
        return MarketSignal.BEARISH
    elif change_pct < -0.3:
        return MarketSignal.BULLISH
    return MarketSignal.NEUTRAL
