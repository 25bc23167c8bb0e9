"""
Multi-Factor Risk Engine - Package.

============================================================
PURPOSE
============================================================
Computes a bounded, categorized market-risk level per date
for BTC, ETH and SOL.

============================================================
WHAT IT IS
============================================================
- A log regression fair-value model over full price history
- Six supplementary indicator normalizers
- A weighted composite with availability-aware reweighting
- Deterministic, pure computation on in-memory data

============================================================
WHAT IT IS NOT
============================================================
- NOT a data fetcher (callers supply prices and readings)
- NOT a trade decision maker
- NOT a charting or presentation layer

============================================================
SEVEN FACTORS
============================================================
1. LOG_REGRESSION: Price deviation from regression fair value
2. RSI: 14-period relative strength
3. SMA_POSITION: Distance to the 200-day SMA
4. BULL_MARKET_BANDS: Position versus 20W SMA / 21W EMA
5. FUNDING_RATE: Perpetual funding
6. FEAR_GREED: Fear & Greed index tier
7. MACRO_RISK: VIX and DXY z-scores

============================================================
SCORING
============================================================
Each factor: 0.0 (low risk) to 1.0 (high risk)
Composite: weighted average over available factors only

Classification:
- Very Low Risk [0.00, 0.20)
- Low Risk      [0.20, 0.40)
- Neutral       [0.40, 0.55)
- Elevated Risk [0.55, 0.70)
- High Risk     [0.70, 0.90)
- Extreme Risk  [0.90, 1.00]

============================================================
USAGE
============================================================
    from datetime import date
    from risk_engine import (
        MultiFactorRiskEngine,
        PricePoint,
        RiskFactorData,
        format_risk_summary,
    )

    engine = MultiFactorRiskEngine()

    model = engine.fit_regression("BTC", prices)

    point = engine.calculate_multi_factor_risk(
        price=64000.0,
        at=date(2024, 6, 1),
        asset="BTC",
        factor_data=RiskFactorData(rsi=58.0, funding_rate=0.0002, fear_greed_value=71),
        model=model,
    )

    print(f"Risk Level: {point.risk_level:.3f} ({point.category.value})")
    print(format_risk_summary(point))

============================================================
"""

# Types
from .types import (
    # Enums
    RiskFactorType,
    RiskCategory,
    FearGreedLevel,
    MarketSignal,
    BandPosition,

    # Input types
    PricePoint,
    BullMarketBands,
    MacroReading,
    RiskFactorData,
    EMPTY_FACTOR_DATA,

    # Factor types
    Available,
    Unavailable,
    FactorValue,
    RiskFactor,
    RiskFactorWeights,

    # Output types
    RiskHistoryPoint,
    MultiFactorRiskPoint,
    RiskGap,

    # Exceptions
    RiskEngineError,
    InsufficientDataError,
    DegenerateInputError,
    InvalidFairValueError,
    InvalidPriceError,
    ZeroVarianceError,
    NoFactorsAvailableError,
    UnsupportedAssetError,
)

# Configuration
from .config import (
    AssetRiskConfig,
    AssetRegistry,
    BTC_CONFIG,
    ETH_CONFIG,
    SOL_CONFIG,
    get_default_registry,
    RegressionConfig,
    RSIConfig,
    SMAPositionConfig,
    BullMarketBandsConfig,
    FundingRateConfig,
    FearGreedConfig,
    MacroRiskConfig,
    RiskEngineConfig,
    get_default_weights,
    get_conservative_weights,
    get_sentiment_focused_weights,
    get_default_config,
    get_conservative_config,
    get_sentiment_focused_config,
    load_config_from_env,
)

# Components
from .regression import (
    RegressionModel,
    RegressionEngine,
    fit_regression,
)

from .normalizers import (
    DeviationNormalizer,
    BaseFactorNormalizer,
    RSINormalizer,
    SMAPositionNormalizer,
    BullMarketBandsNormalizer,
    FundingRateNormalizer,
    FearGreedNormalizer,
    MacroRiskNormalizer,
    FACTOR_DEFINITIONS,
    log_deviation,
)

from .statistics import (
    StatisticsCalculator,
    ZScoreResult,
    SDBands,
    SIGNIFICANT_Z,
    EXTREME_Z,
)

from .composite import (
    CompositeRiskCalculator,
    CompositeResult,
    calculate_composite_risk,
)

# Engine
from .engine import (
    MultiFactorRiskEngine,
    RiskSeries,
    sample_history,
    score_multi_factor_risk,
    format_risk_summary,
)

# Macro analysis
from .macro import (
    MacroIndicatorType,
    MacroZScoreAnalysis,
    MarketImplication,
    analyze_macro_indicator,
    analyze_all,
    extreme_indicators,
    vix_signal,
    vix_signal_description,
    dxy_signal,
)

# Confidence
from .confidence import (
    PredictionSnapshot,
    AdaptiveConfidenceResult,
    evaluate_prediction,
    is_directional,
    validate_prediction,
    compute_adaptive_confidence,
)

# Persistence
from .models import (
    RiskPointRecord,
    RiskPointFactorRecord,
    RegressionFitRecord,
    PredictionSnapshotRecord,
)

from .repository import (
    RiskHistoryRepository,
)


__all__ = [
    # Enums
    "RiskFactorType",
    "RiskCategory",
    "FearGreedLevel",
    "MarketSignal",
    "BandPosition",

    # Input types
    "PricePoint",
    "BullMarketBands",
    "MacroReading",
    "RiskFactorData",
    "EMPTY_FACTOR_DATA",

    # Factor types
    "Available",
    "Unavailable",
    "FactorValue",
    "RiskFactor",
    "RiskFactorWeights",

    # Output types
    "RiskHistoryPoint",
    "MultiFactorRiskPoint",
    "RiskGap",

    # Exceptions
    "RiskEngineError",
    "InsufficientDataError",
    "DegenerateInputError",
    "InvalidFairValueError",
    "InvalidPriceError",
    "ZeroVarianceError",
    "NoFactorsAvailableError",
    "UnsupportedAssetError",

    # Configuration
    "AssetRiskConfig",
    "AssetRegistry",
    "BTC_CONFIG",
    "ETH_CONFIG",
    "SOL_CONFIG",
    "get_default_registry",
    "RegressionConfig",
    "RSIConfig",
    "SMAPositionConfig",
    "BullMarketBandsConfig",
    "FundingRateConfig",
    "FearGreedConfig",
    "MacroRiskConfig",
    "RiskEngineConfig",
    "get_default_weights",
    "get_conservative_weights",
    "get_sentiment_focused_weights",
    "get_default_config",
    "get_conservative_config",
    "get_sentiment_focused_config",
    "load_config_from_env",

    # Components
    "RegressionModel",
    "RegressionEngine",
    "fit_regression",
    "DeviationNormalizer",
    "BaseFactorNormalizer",
    "RSINormalizer",
    "SMAPositionNormalizer",
    "BullMarketBandsNormalizer",
    "FundingRateNormalizer",
    "FearGreedNormalizer",
    "MacroRiskNormalizer",
    "FACTOR_DEFINITIONS",
    "log_deviation",
    "StatisticsCalculator",
    "ZScoreResult",
    "SDBands",
    "SIGNIFICANT_Z",
    "EXTREME_Z",
    "CompositeRiskCalculator",
    "CompositeResult",
    "calculate_composite_risk",

    # Engine
    "MultiFactorRiskEngine",
    "RiskSeries",
    "sample_history",
    "score_multi_factor_risk",
    "format_risk_summary",

    # Macro analysis
    "MacroIndicatorType",
    "MacroZScoreAnalysis",
    "MarketImplication",
    "analyze_macro_indicator",
    "analyze_all",
    "extreme_indicators",
    "vix_signal",
    "vix_signal_description",
    "dxy_signal",

    # Confidence
    "PredictionSnapshot",
    "AdaptiveConfidenceResult",
    "evaluate_prediction",
    "is_directional",
    "validate_prediction",
    "compute_adaptive_confidence",

    # Persistence
    "RiskPointRecord",
    "RiskPointFactorRecord",
    "RegressionFitRecord",
    "PredictionSnapshotRecord",
    "RiskHistoryRepository",
]


__version__ = "1.0.0"
