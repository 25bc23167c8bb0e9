"""
Risk Engine - Configuration.

============================================================
PURPOSE
============================================================
Defines the asset registry, normalizer thresholds, weight
presets and the master engine configuration.

All thresholds are documented with rationale and can be
tuned without touching the normalizer code.

============================================================
DESIGN PRINCIPLES
============================================================
- Immutable configurations (frozen dataclasses)
- Asset lookups go through an explicit registry object
  that is passed into the engine
- Each config exposes to_dict() for audit and persistence
- Environment overrides via .env (python-dotenv)

============================================================
"""

import os
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from dotenv import load_dotenv

from .types import (
    FearGreedLevel,
    RiskFactorWeights,
    UnsupportedAssetError,
)


# ============================================================
# ASSET CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class AssetRiskConfig:
    """
    Per-asset parameters for the log regression model.

    ============================================================
    FIELDS
    ============================================================
    origin_date:
        Day zero of the regression time axis (first
        tradeable date of the asset).
    deviation_bounds:
        (low, high) in log10 units. A deviation at `high`
        maps to risk 1.0, at `low` to risk 0.0.
    confidence_level:
        1-9, informational only. Reflects how much history
        backs the regression.

    ============================================================
    """

    asset_id: str
    gecko_id: str
    display_name: str
    origin_date: date
    deviation_bounds: Tuple[float, float]
    confidence_level: int
    binance_symbol: Optional[str] = None

    def __post_init__(self) -> None:
        low, high = self.deviation_bounds
        if not low < 0 < high:
            raise ValueError(
                f"{self.asset_id}: deviation bounds must satisfy low < 0 < high, "
                f"got ({low}, {high})"
            )
        if not 1 <= self.confidence_level <= 9:
            raise ValueError(
                f"{self.asset_id}: confidence level must be 1-9, got {self.confidence_level}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset_id": self.asset_id,
            "gecko_id": self.gecko_id,
            "display_name": self.display_name,
            "origin_date": self.origin_date.isoformat(),
            "deviation_bounds": list(self.deviation_bounds),
            "confidence_level": self.confidence_level,
            "binance_symbol": self.binance_symbol,
        }


BTC_CONFIG = AssetRiskConfig(
    asset_id="BTC",
    gecko_id="bitcoin",
    display_name="Bitcoin",
    origin_date=date(2009, 1, 3),
    deviation_bounds=(-0.8, 0.8),
    confidence_level=9,
    binance_symbol="BTCUSDT",
)

ETH_CONFIG = AssetRiskConfig(
    asset_id="ETH",
    gecko_id="ethereum",
    display_name="Ethereum",
    origin_date=date(2015, 7, 30),
    deviation_bounds=(-0.7, 0.7),
    confidence_level=8,
    binance_symbol="ETHUSDT",
)

SOL_CONFIG = AssetRiskConfig(
    asset_id="SOL",
    gecko_id="solana",
    display_name="Solana",
    origin_date=date(2020, 4, 10),
    deviation_bounds=(-0.6, 0.6),
    confidence_level=6,
    binance_symbol="SOLUSDT",
)


class AssetRegistry:
    """
    Read-only lookup of supported assets.

    Lookups are case-insensitive. Anything outside the
    registry raises UnsupportedAssetError.
    """

    def __init__(self, configs: Iterable[AssetRiskConfig]):
        self._configs: Tuple[AssetRiskConfig, ...] = tuple(configs)
        self._by_symbol: Dict[str, AssetRiskConfig] = {}
        self._by_gecko_id: Dict[str, AssetRiskConfig] = {}

        for config in self._configs:
            symbol = config.asset_id.upper()
            gecko_id = config.gecko_id.lower()
            if symbol in self._by_symbol or gecko_id in self._by_gecko_id:
                raise ValueError(f"Duplicate asset in registry: {config.asset_id}")
            self._by_symbol[symbol] = config
            self._by_gecko_id[gecko_id] = config

    def __len__(self) -> int:
        return len(self._configs)

    def __contains__(self, symbol: str) -> bool:
        return self.is_supported(symbol)

    @property
    def all_configs(self) -> List[AssetRiskConfig]:
        return list(self._configs)

    @property
    def symbols(self) -> List[str]:
        return [c.asset_id for c in self._configs]

    def for_symbol(self, symbol: str) -> AssetRiskConfig:
        config = self._by_symbol.get(symbol.upper())
        if config is None:
            raise UnsupportedAssetError(symbol)
        return config

    def for_gecko_id(self, gecko_id: str) -> AssetRiskConfig:
        config = self._by_gecko_id.get(gecko_id.lower())
        if config is None:
            raise UnsupportedAssetError(gecko_id)
        return config

    def gecko_id_for(self, symbol: str) -> str:
        return self.for_symbol(symbol).gecko_id

    def is_supported(self, symbol: str) -> bool:
        return symbol.upper() in self._by_symbol


def get_default_registry() -> AssetRegistry:
    """Registry of the three supported assets: BTC, ETH, SOL."""
    return AssetRegistry([BTC_CONFIG, ETH_CONFIG, SOL_CONFIG])


# ============================================================
# REGRESSION CONFIGURATION
# ============================================================


TIME_SCALE_LINEAR = "linear"
TIME_SCALE_LOG = "log"


@dataclass(frozen=True)
class RegressionConfig:
    """
    Configuration for the log regression fit.

    time_scale:
        "linear": log10(price) = slope * days + intercept
        "log":    log10(price) = slope * log10(days) + intercept
                  (power-law form)
    """

    min_points: int = 2
    time_scale: str = TIME_SCALE_LINEAR

    def __post_init__(self) -> None:
        if self.time_scale not in (TIME_SCALE_LINEAR, TIME_SCALE_LOG):
            raise ValueError(f"Unknown regression time scale: {self.time_scale}")
        if self.min_points < 2:
            raise ValueError("Regression needs at least 2 points")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min_points": self.min_points,
            "time_scale": self.time_scale,
        }


# ============================================================
# SUPPLEMENTARY FACTOR CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class RSIConfig:
    """
    RSI (14-period) normalization.

    ============================================================
    THRESHOLD RATIONALE
    ============================================================
    - RSI ~30 at major bottoms (Dec 2018, Nov 2022) -> 0.0
    - RSI ~70+ at major tops (Dec 2017, Nov 2021)   -> 1.0
    - Linear in between, so RSI 50 -> 0.5

    ============================================================
    """

    oversold: float = 30.0
    overbought: float = 70.0

    def __post_init__(self) -> None:
        if self.overbought <= self.oversold:
            raise ValueError("RSI overbought level must be above oversold")

    def to_dict(self) -> Dict[str, Any]:
        return {"oversold": self.oversold, "overbought": self.overbought}


@dataclass(frozen=True)
class SMAPositionConfig:
    """
    Price position relative to the 200-day SMA.

    Tiers are (lower bound of % distance, risk), checked
    top-down with strict ">" comparison. Anything at or
    below the last bound gets `floor_risk`.

    Above the SMA historically means bull market (lower risk).
    """

    tiers: Tuple[Tuple[float, float], ...] = (
        (0.20, 0.2),
        (0.10, 0.3),
        (0.0, 0.4),
        (-0.10, 0.6),
        (-0.20, 0.7),
    )
    floor_risk: float = 0.8

    def to_dict(self) -> Dict[str, Any]:
        return {"tiers": [list(t) for t in self.tiers], "floor_risk": self.floor_risk}


@dataclass(frozen=True)
class BullMarketBandsConfig:
    """
    20W SMA / 21W EMA support band normalization.

    Distance is measured from the band average.
    - Above both bands: healthy bull structure, low risk
    - Between the bands: testing support
    - Below both bands: structure broken, high risk
    """

    above_far_pct: float = 0.20
    above_near_pct: float = 0.10
    above_far_risk: float = 0.1
    above_near_risk: float = 0.2
    above_risk: float = 0.3

    in_band_risk: float = 0.5

    below_far_pct: float = -0.20
    below_near_pct: float = -0.10
    below_far_risk: float = 0.9
    below_near_risk: float = 0.8
    below_risk: float = 0.7

    def to_dict(self) -> Dict[str, Any]:
        return {
            "above_far_pct": self.above_far_pct,
            "above_near_pct": self.above_near_pct,
            "above_far_risk": self.above_far_risk,
            "above_near_risk": self.above_near_risk,
            "above_risk": self.above_risk,
            "in_band_risk": self.in_band_risk,
            "below_far_pct": self.below_far_pct,
            "below_near_pct": self.below_near_pct,
            "below_far_risk": self.below_far_risk,
            "below_near_risk": self.below_near_risk,
            "below_risk": self.below_risk,
        }


@dataclass(frozen=True)
class FundingRateConfig:
    """
    Perpetual funding rate normalization.

    Maps [-saturation, +saturation] linearly onto [0, 1]:
    - Negative funding (shorts paying)  -> low risk
    - Zero                              -> 0.5
    - Positive funding (longs paying)   -> high risk
    """

    saturation: float = 0.001

    def __post_init__(self) -> None:
        if self.saturation <= 0:
            raise ValueError("Funding rate saturation must be positive")

    def to_dict(self) -> Dict[str, Any]:
        return {"saturation": self.saturation}


@dataclass(frozen=True)
class FearGreedConfig:
    """
    Risk contribution per Fear & Greed tier.

    The index is first classified into its five tiers, then
    the tier is translated to a risk value.
    """

    extreme_fear_risk: float = 0.10
    fear_risk: float = 0.30
    neutral_risk: float = 0.50
    greed_risk: float = 0.70
    extreme_greed_risk: float = 0.90

    def risk_for(self, level: FearGreedLevel) -> float:
        return {
            FearGreedLevel.EXTREME_FEAR: self.extreme_fear_risk,
            FearGreedLevel.FEAR: self.fear_risk,
            FearGreedLevel.NEUTRAL: self.neutral_risk,
            FearGreedLevel.GREED: self.greed_risk,
            FearGreedLevel.EXTREME_GREED: self.extreme_greed_risk,
        }[level]

    def to_dict(self) -> Dict[str, Any]:
        return {level.value: self.risk_for(level) for level in FearGreedLevel}


@dataclass(frozen=True)
class MacroRiskConfig:
    """
    VIX + DXY z-score normalization.

    Each indicator's z-score maps to 0.5 + z / (2 * saturation_z),
    clamped to [0, 1], so |z| at the extreme threshold
    saturates. Both indicators are risk-positive.
    """

    min_history_points: int = 20
    saturation_z: float = 3.0
    window: Optional[int] = None

    def __post_init__(self) -> None:
        if self.min_history_points < 2:
            raise ValueError("Macro z-scores need at least 2 history points")
        if self.saturation_z <= 0:
            raise ValueError("Macro saturation z must be positive")
        if self.window is not None and self.window < 2:
            raise ValueError("Macro window must be at least 2")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min_history_points": self.min_history_points,
            "saturation_z": self.saturation_z,
            "window": self.window,
        }


# ============================================================
# WEIGHT PRESETS
# ============================================================


def get_default_weights() -> RiskFactorWeights:
    """Standard seven-factor weights."""
    return RiskFactorWeights()


def get_conservative_weights() -> RiskFactorWeights:
    """More emphasis on the log regression base factor."""
    return RiskFactorWeights(
        log_regression=0.50,
        rsi=0.10,
        sma_position=0.10,
        bull_market_bands=0.10,
        funding_rate=0.08,
        fear_greed=0.06,
        macro_risk=0.06,
    )


def get_sentiment_focused_weights() -> RiskFactorWeights:
    """More emphasis on funding and Fear & Greed."""
    return RiskFactorWeights(
        log_regression=0.25,
        rsi=0.12,
        sma_position=0.12,
        bull_market_bands=0.11,
        funding_rate=0.15,
        fear_greed=0.15,
        macro_risk=0.10,
    )


WEIGHT_PRESETS = {
    "default": get_default_weights,
    "conservative": get_conservative_weights,
    "sentiment_focused": get_sentiment_focused_weights,
}


# ============================================================
# MASTER CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class RiskEngineConfig:
    """
    Master configuration for the Multi-Factor Risk Engine.

    Aggregates the regression, normalizer and weight configs.
    """

    regression: RegressionConfig = field(default_factory=RegressionConfig)
    rsi: RSIConfig = field(default_factory=RSIConfig)
    sma_position: SMAPositionConfig = field(default_factory=SMAPositionConfig)
    bull_market_bands: BullMarketBandsConfig = field(default_factory=BullMarketBandsConfig)
    funding_rate: FundingRateConfig = field(default_factory=FundingRateConfig)
    fear_greed: FearGreedConfig = field(default_factory=FearGreedConfig)
    macro: MacroRiskConfig = field(default_factory=MacroRiskConfig)

    weights: RiskFactorWeights = field(default_factory=RiskFactorWeights)

    engine_version: str = "1.0.0"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "regression": self.regression.to_dict(),
            "rsi": self.rsi.to_dict(),
            "sma_position": self.sma_position.to_dict(),
            "bull_market_bands": self.bull_market_bands.to_dict(),
            "funding_rate": self.funding_rate.to_dict(),
            "fear_greed": self.fear_greed.to_dict(),
            "macro": self.macro.to_dict(),
            "weights": self.weights.to_dict(),
            "engine_version": self.engine_version,
        }


def get_default_config() -> RiskEngineConfig:
    """Return the default engine configuration."""
    return RiskEngineConfig()


def get_conservative_config() -> RiskEngineConfig:
    """Regression-heavy weighting."""
    return RiskEngineConfig(weights=get_conservative_weights())


def get_sentiment_focused_config() -> RiskEngineConfig:
    """Sentiment-heavy weighting."""
    return RiskEngineConfig(weights=get_sentiment_focused_weights())


def load_config_from_env() -> RiskEngineConfig:
    """
    Build a configuration from environment variables.

    Reads a .env file if present. Recognized variables:
        RISK_WEIGHT_PRESET          default | conservative | sentiment_focused
        RISK_REGRESSION_TIME_SCALE  linear | log
        RISK_REGRESSION_MIN_POINTS  int
        RISK_MACRO_MIN_HISTORY      int
        RISK_FUNDING_SATURATION     float

    Raises:
        ValueError: On an unknown preset or malformed value
    """
    load_dotenv()

    preset = os.getenv("RISK_WEIGHT_PRESET", "default").strip().lower()
    if preset not in WEIGHT_PRESETS:
        raise ValueError(f"Unknown weight preset: {preset}")

    regression = RegressionConfig(
        min_points=int(os.getenv("RISK_REGRESSION_MIN_POINTS", "2")),
        time_scale=os.getenv("RISK_REGRESSION_TIME_SCALE", TIME_SCALE_LINEAR).strip().lower(),
    )
    macro = MacroRiskConfig(
        min_history_points=int(os.getenv("RISK_MACRO_MIN_HISTORY", "20")),
    )
    funding = FundingRateConfig(
        saturation=float(os.getenv("RISK_FUNDING_SATURATION", "0.001")),
    )

    return RiskEngineConfig(
        regression=regression,
        funding_rate=funding,
        macro=macro,
        weights=WEIGHT_PRESETS[preset](),
    )
