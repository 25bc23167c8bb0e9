"""
Risk Engine - Factor Normalizers.

============================================================
PURPOSE
============================================================
Maps each raw indicator reading onto a [0, 1] risk value.

Each normalizer:
1. Takes the per-date RiskFactorData snapshot
2. Applies a deterministic, threshold-based mapping
3. Returns Available(normalized, raw) or Unavailable(reason)

============================================================
DESIGN PRINCIPLES
============================================================
- Pure functions: same input = same output
- Higher output always means higher market risk
- Missing or NaN input is Unavailable, never a default
- All thresholds come from config.py

============================================================
DIRECTION PER FACTOR
============================================================
    log_regression     price above fair value    -> higher
    rsi                overbought                -> higher
    sma_position       price far below 200D SMA  -> higher
    bull_market_bands  price below support bands -> higher
    funding_rate       longs paying shorts       -> higher
    fear_greed         greed                     -> higher
    macro_risk         VIX / DXY above average   -> higher

============================================================
"""

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Type

from .config import (
    BullMarketBandsConfig,
    FearGreedConfig,
    FundingRateConfig,
    MacroRiskConfig,
    RSIConfig,
    RiskEngineConfig,
    SMAPositionConfig,
)
from .statistics import z_score
from .types import (
    Available,
    BandPosition,
    FactorValue,
    FearGreedLevel,
    InsufficientDataError,
    InvalidFairValueError,
    InvalidPriceError,
    MacroReading,
    RiskFactor,
    RiskFactorData,
    RiskFactorType,
    Unavailable,
    ZeroVarianceError,
)


logger = logging.getLogger(__name__)


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def _is_missing(value: Optional[float]) -> bool:
    return value is None or math.isnan(value)


# ============================================================
# LOG REGRESSION DEVIATION
# ============================================================


def log_deviation(price: float, fair_value: float) -> float:
    """
    log10(price) - log10(fair_value).

    Raises:
        InvalidPriceError: price <= 0 or NaN
        InvalidFairValueError: fair_value <= 0, NaN or infinite
    """
    if _is_missing(price) or price <= 0:
        raise InvalidPriceError(
            f"Price must be positive, got {price}",
            factor=RiskFactorType.LOG_REGRESSION,
        )
    if _is_missing(fair_value) or fair_value <= 0 or math.isinf(fair_value):
        raise InvalidFairValueError(
            f"Fair value must be positive and finite, got {fair_value}",
            factor=RiskFactorType.LOG_REGRESSION,
        )
    return math.log10(price) - math.log10(fair_value)


class DeviationNormalizer:
    """
    Converts a log10 deviation into a [0, 1] risk value.

    Deviation 0 (price on the curve) is 0.5. A deviation at
    the asset's high bound is 1.0, at the low bound 0.0.
    Beyond either bound the risk saturates.
    """

    def __init__(self, deviation_bounds: Tuple[float, float]):
        low, high = deviation_bounds
        if not low < 0 < high:
            raise ValueError(f"Deviation bounds must satisfy low < 0 < high, got {deviation_bounds}")
        self._low = low
        self._high = high

    @property
    def bounds(self) -> Tuple[float, float]:
        return self._low, self._high

    def normalize(self, deviation: float) -> float:
        if deviation >= 0:
            risk = 0.5 + 0.5 * min(1.0, deviation / self._high)
        else:
            # deviation / low is positive here since both are negative
            risk = 0.5 - 0.5 * min(1.0, deviation / self._low)
        return clamp(risk)

    def evaluate(self, price: float, fair_value: float) -> Tuple[float, float]:
        """
        Deviation and risk for a price against its fair value.

        Returns:
            (deviation, risk)
        """
        deviation = log_deviation(price, fair_value)
        return deviation, self.normalize(deviation)


# ============================================================
# BASE NORMALIZER
# ============================================================


class BaseFactorNormalizer(ABC):
    """
    Abstract base class for the supplementary factor normalizers.

    Subclasses implement evaluate(); to_factor() wraps the
    result with the factor's weight.
    """

    @property
    @abstractmethod
    def factor_type(self) -> RiskFactorType:
        """Return the factor this normalizer handles."""
        pass

    @abstractmethod
    def evaluate(self, data: RiskFactorData) -> FactorValue:
        """Normalize the factor's reading from the snapshot."""
        pass

    def to_factor(self, data: RiskFactorData, weight: float) -> RiskFactor:
        value = self.evaluate(data)
        if isinstance(value, Unavailable):
            logger.debug(f"{self.factor_type.label} unavailable: {value.reason}")
        return RiskFactor(type=self.factor_type, value=value, weight=weight)


# ============================================================
# RSI
# ============================================================


class RSINormalizer(BaseFactorNormalizer):
    """
    RSI 30 (oversold) maps to 0.0, RSI 70 (overbought) to 1.0.
    """

    def __init__(self, config: Optional[RSIConfig] = None):
        self.config = config or RSIConfig()

    @property
    def factor_type(self) -> RiskFactorType:
        return RiskFactorType.RSI

    def evaluate(self, data: RiskFactorData) -> FactorValue:
        if _is_missing(data.rsi):
            return Unavailable("RSI not provided")

        span = self.config.overbought - self.config.oversold
        normalized = clamp((data.rsi - self.config.oversold) / span)
        return Available(normalized, raw=data.rsi)


# ============================================================
# SMA POSITION
# ============================================================


class SMAPositionNormalizer(BaseFactorNormalizer):
    """
    Tiered risk from the price's distance to the 200-day SMA.

    Raw value is the fractional distance (0.15 = 15% above).
    """

    def __init__(self, config: Optional[SMAPositionConfig] = None):
        self.config = config or SMAPositionConfig()

    @property
    def factor_type(self) -> RiskFactorType:
        return RiskFactorType.SMA_POSITION

    def evaluate(self, data: RiskFactorData) -> FactorValue:
        if _is_missing(data.sma_200):
            return Unavailable("200-day SMA not provided")
        if _is_missing(data.current_price):
            return Unavailable("Current price not provided")
        if data.sma_200 <= 0:
            return Unavailable(f"Non-positive 200-day SMA: {data.sma_200}")

        pct = (data.current_price - data.sma_200) / data.sma_200
        return Available(self.risk_for(pct), raw=pct)

    def risk_for(self, pct: float) -> float:
        for lower_bound, risk in self.config.tiers:
            if pct > lower_bound:
                return risk
        return self.config.floor_risk


# ============================================================
# BULL MARKET SUPPORT BANDS
# ============================================================


class BullMarketBandsNormalizer(BaseFactorNormalizer):
    """
    Risk from price position relative to the 20W SMA / 21W EMA.

    Raw value is the fractional distance from the band average.
    """

    def __init__(self, config: Optional[BullMarketBandsConfig] = None):
        self.config = config or BullMarketBandsConfig()

    @property
    def factor_type(self) -> RiskFactorType:
        return RiskFactorType.BULL_MARKET_BANDS

    def evaluate(self, data: RiskFactorData) -> FactorValue:
        bands = data.bull_market_bands
        if bands is None:
            return Unavailable("Bull market bands not provided")
        if any(_is_missing(v) for v in (bands.sma_20_week, bands.ema_21_week, bands.current_price)):
            return Unavailable("Bull market bands contain NaN")

        average = bands.band_average
        if average <= 0:
            return Unavailable(f"Non-positive band average: {average}")

        pct = (bands.current_price - average) / average
        return Available(self.risk_for(bands.position, pct), raw=pct)

    def risk_for(self, position: BandPosition, pct: float) -> float:
        c = self.config
        if position == BandPosition.ABOVE_BOTH:
            if pct > c.above_far_pct:
                return c.above_far_risk
            if pct > c.above_near_pct:
                return c.above_near_risk
            return c.above_risk
        if position == BandPosition.BELOW_BOTH:
            if pct < c.below_far_pct:
                return c.below_far_risk
            if pct < c.below_near_pct:
                return c.below_near_risk
            return c.below_risk
        return c.in_band_risk


# ============================================================
# FUNDING RATE
# ============================================================


class FundingRateNormalizer(BaseFactorNormalizer):
    """
    Linear map of [-saturation, +saturation] onto [0, 1].
    """

    def __init__(self, config: Optional[FundingRateConfig] = None):
        self.config = config or FundingRateConfig()

    @property
    def factor_type(self) -> RiskFactorType:
        return RiskFactorType.FUNDING_RATE

    def evaluate(self, data: RiskFactorData) -> FactorValue:
        if _is_missing(data.funding_rate):
            return Unavailable("Funding rate not provided")

        s = self.config.saturation
        normalized = clamp((data.funding_rate + s) / (2 * s))
        return Available(normalized, raw=data.funding_rate)


# ============================================================
# FEAR & GREED
# ============================================================


class FearGreedNormalizer(BaseFactorNormalizer):
    """
    Tier-based: the index is classified into its five tiers
    and each tier carries a configured risk value.
    """

    def __init__(self, config: Optional[FearGreedConfig] = None):
        self.config = config or FearGreedConfig()

    @property
    def factor_type(self) -> RiskFactorType:
        return RiskFactorType.FEAR_GREED

    def evaluate(self, data: RiskFactorData) -> FactorValue:
        if _is_missing(data.fear_greed_value):
            return Unavailable("Fear & Greed index not provided")

        level = FearGreedLevel.from_value(data.fear_greed_value)
        return Available(self.config.risk_for(level), raw=data.fear_greed_value)


# ============================================================
# MACRO (VIX + DXY)
# ============================================================


class MacroRiskNormalizer(BaseFactorNormalizer):
    """
    Average z-score risk of VIX and DXY.

    Per indicator: risk = 0.5 + z / (2 * saturation_z), clamped.
    A constant history counts as z = 0. An indicator with too
    little history is left out of the average.

    Raw value is the average z-score of the indicators used.
    """

    def __init__(self, config: Optional[MacroRiskConfig] = None):
        self.config = config or MacroRiskConfig()

    @property
    def factor_type(self) -> RiskFactorType:
        return RiskFactorType.MACRO_RISK

    def evaluate(self, data: RiskFactorData) -> FactorValue:
        z_scores: List[float] = []
        for name, reading in (("VIX", data.vix), ("DXY", data.dxy)):
            z = self._indicator_z(name, reading)
            if z is not None:
                z_scores.append(z)

        if not z_scores:
            return Unavailable("No macro indicator with sufficient history")

        risks = [self.risk_for_z(z) for z in z_scores]
        return Available(
            math.fsum(risks) / len(risks),
            raw=math.fsum(z_scores) / len(z_scores),
        )

    def risk_for_z(self, z: float) -> float:
        return clamp(0.5 + z / (2 * self.config.saturation_z))

    def _indicator_z(self, name: str, reading: Optional[MacroReading]) -> Optional[float]:
        if reading is None or _is_missing(reading.current):
            return None

        history = [v for v in reading.history if not math.isnan(v)]
        if self.config.window is not None:
            history = history[-self.config.window:]
        if len(history) < self.config.min_history_points:
            logger.debug(
                f"{name} history too short: {len(history)} < {self.config.min_history_points}"
            )
            return None

        try:
            return z_score(reading.current, history).z_score
        except ZeroVarianceError:
            return 0.0
        except InsufficientDataError:
            return None


# ============================================================
# FACTOR DISPATCH TABLE
# ============================================================


@dataclass(frozen=True)
class FactorDefinition:
    """Description and normalizer class of one factor."""

    description: str
    normalizer: Optional[Type[BaseFactorNormalizer]] = None
    config_section: Optional[str] = None


# LOG_REGRESSION has no snapshot normalizer: it needs a fitted
# model and goes through DeviationNormalizer.
FACTOR_DEFINITIONS: Dict[RiskFactorType, FactorDefinition] = {
    RiskFactorType.LOG_REGRESSION: FactorDefinition(
        description="Deviation of price from the log regression fair value",
    ),
    RiskFactorType.RSI: FactorDefinition(
        description="14-period RSI, overbought is higher risk",
        normalizer=RSINormalizer,
        config_section="rsi",
    ),
    RiskFactorType.SMA_POSITION: FactorDefinition(
        description="Price distance to the 200-day SMA",
        normalizer=SMAPositionNormalizer,
        config_section="sma_position",
    ),
    RiskFactorType.BULL_MARKET_BANDS: FactorDefinition(
        description="Price position versus the 20W SMA / 21W EMA support bands",
        normalizer=BullMarketBandsNormalizer,
        config_section="bull_market_bands",
    ),
    RiskFactorType.FUNDING_RATE: FactorDefinition(
        description="Perpetual futures funding rate",
        normalizer=FundingRateNormalizer,
        config_section="funding_rate",
    ),
    RiskFactorType.FEAR_GREED: FactorDefinition(
        description="Crypto Fear & Greed index tier",
        normalizer=FearGreedNormalizer,
        config_section="fear_greed",
    ),
    RiskFactorType.MACRO_RISK: FactorDefinition(
        description="VIX and DXY z-scores against their history",
        normalizer=MacroRiskNormalizer,
        config_section="macro",
    ),
}


def build_supplementary_normalizers(
    config: Optional[RiskEngineConfig] = None,
) -> Dict[RiskFactorType, BaseFactorNormalizer]:
    """Instantiate every snapshot normalizer with its config section."""
    config = config or RiskEngineConfig()
    return {
        factor_type: definition.normalizer(getattr(config, definition.config_section))
        for factor_type, definition in FACTOR_DEFINITIONS.items()
        if definition.normalizer is not None
    }
