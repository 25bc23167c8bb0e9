"""
Risk Engine - Main Orchestrator.

============================================================
PURPOSE
============================================================
The MultiFactorRiskEngine is the main entry point for risk
computation.

It orchestrates:
1. Asset lookup through the injected registry
2. Log regression fit over the full price history
3. Deviation and supplementary factor normalization
4. Weighted composite aggregation
5. Batch history with per-date gap recording

============================================================
DESIGN PRINCIPLES
============================================================
- Orchestration only: math lives in the component modules
- Deterministic and stateless per call
- Per-date failures never abort a batch
- Fit failures propagate so the caller skips the asset

============================================================
USAGE
============================================================
    from risk_engine import MultiFactorRiskEngine, PricePoint

    engine = MultiFactorRiskEngine()

    series = engine.calculate_multi_factor_history(
        prices=[PricePoint(date(2024, 1, 1), 42000.0), ...],
        asset="BTC",
        factor_data_by_date={date(2024, 1, 1): RiskFactorData(rsi=61.0)},
    )

    latest = series.latest
    print(format_risk_summary(latest))

============================================================
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar, Union

from .composite import CompositeRiskCalculator
from .config import AssetRegistry, AssetRiskConfig, RiskEngineConfig, get_default_registry
from .normalizers import DeviationNormalizer, build_supplementary_normalizers
from .regression import RegressionEngine, RegressionModel
from .types import (
    DateLike,
    EMPTY_FACTOR_DATA,
    InvalidFairValueError,
    InvalidPriceError,
    MultiFactorRiskPoint,
    PricePoint,
    RiskEngineError,
    RiskFactor,
    RiskFactorData,
    RiskFactorType,
    RiskFactorWeights,
    RiskGap,
    RiskHistoryPoint,
    date_key,
    to_utc_datetime,
)


logger = logging.getLogger(__name__)


AssetRef = Union[str, AssetRiskConfig]


# ============================================================
# BATCH RESULT
# ============================================================


@dataclass(frozen=True)
class RiskSeries:
    """
    Result of a batch history computation for one asset.

    points: Time-sorted risk points
    gaps:   Dates that could not be scored, with the reason
    model:  Regression fitted once over the full history
    """

    asset_id: str
    points: Tuple[MultiFactorRiskPoint, ...]
    gaps: Tuple[RiskGap, ...]
    model: RegressionModel

    @property
    def latest(self) -> Optional[MultiFactorRiskPoint]:
        return self.points[-1] if self.points else None

    @property
    def is_empty(self) -> bool:
        return not self.points

    def to_history(self) -> List[RiskHistoryPoint]:
        return [p.to_history_point() for p in self.points]


# ============================================================
# ENGINE
# ============================================================


class MultiFactorRiskEngine:
    """
    Main orchestrator for the Multi-Factor Risk Engine.

    ============================================================
    RESPONSIBILITIES
    ============================================================
    1. Resolve assets through the registry
    2. Fit regression models
    3. Evaluate all seven factors for a date
    4. Aggregate into a composite risk point
    5. Run batches, turning per-date errors into gaps

    ============================================================
    """

    def __init__(
        self,
        config: Optional[RiskEngineConfig] = None,
        registry: Optional[AssetRegistry] = None,
    ):
        """
        Initialize the engine.

        Args:
            config: Thresholds, weights and regression settings.
                    Uses defaults if not provided.
            registry: Supported assets. Defaults to BTC / ETH / SOL.
        """
        self.config = config or RiskEngineConfig()
        self.registry = registry or get_default_registry()

        self._regression = RegressionEngine(self.config.regression)
        self._normalizers = build_supplementary_normalizers(self.config)
        self._composite = CompositeRiskCalculator()

    def resolve_asset(self, asset: AssetRef) -> AssetRiskConfig:
        """
        Raises:
            UnsupportedAssetError: Symbol not in the registry
        """
        if isinstance(asset, AssetRiskConfig):
            return asset
        return self.registry.for_symbol(asset)

    # --------------------------------------------------------
    # Regression
    # --------------------------------------------------------

    def fit_regression(self, asset: AssetRef, prices: Iterable[PricePoint]) -> RegressionModel:
        """
        Fit the asset's log regression over the full history.

        Raises:
            UnsupportedAssetError, InsufficientDataError, DegenerateInputError
        """
        asset_config = self.resolve_asset(asset)
        return self._regression.fit(
            prices,
            origin_date=asset_config.origin_date,
            asset_id=asset_config.asset_id,
        )

    def calculate_risk(
        self,
        price: float,
        at: DateLike,
        asset: AssetRef,
        model: RegressionModel,
    ) -> RiskHistoryPoint:
        """
        Log-regression-only risk for one date.

        Raises:
            InvalidPriceError: price <= 0
            InvalidFairValueError: fair value <= 0 at this date
        """
        asset_config = self.resolve_asset(asset)
        fair_value = model.fair_value(at)
        normalizer = DeviationNormalizer(asset_config.deviation_bounds)
        deviation, risk_level = normalizer.evaluate(price, fair_value)

        return RiskHistoryPoint(
            date=at,
            risk_level=risk_level,
            price=price,
            fair_value=fair_value,
            deviation=deviation,
        )

    def calculate_risk_history(
        self,
        prices: Sequence[PricePoint],
        asset: AssetRef,
        model: Optional[RegressionModel] = None,
    ) -> List[RiskHistoryPoint]:
        """
        Log-regression-only history, sorted by date.

        Dates with an invalid price or fair value are skipped.
        """
        asset_config = self.resolve_asset(asset)
        model = model or self.fit_regression(asset_config, prices)

        history: List[RiskHistoryPoint] = []
        for point in _sorted_by_date(prices):
            try:
                history.append(self.calculate_risk(point.price, point.date, asset_config, model))
            except (InvalidPriceError, InvalidFairValueError) as e:
                logger.debug(f"Skipping {asset_config.asset_id} at {date_key(point.date)}: {e}")
        return history

    # --------------------------------------------------------
    # Multi-factor
    # --------------------------------------------------------

    def calculate_multi_factor_risk(
        self,
        price: float,
        at: DateLike,
        asset: AssetRef,
        factor_data: Optional[RiskFactorData] = None,
        model: Optional[RegressionModel] = None,
        weights: Optional[RiskFactorWeights] = None,
    ) -> MultiFactorRiskPoint:
        """
        Composite risk for one date.

        Args:
            price: Close price for the date
            at: The date being scored
            asset: Symbol or AssetRiskConfig
            factor_data: Supplementary readings (all optional)
            model: Fitted regression. Without one the log
                   regression factor is unavailable.
            weights: Overrides the configured weights

        Raises:
            InvalidPriceError: price <= 0 or NaN
            NoFactorsAvailableError: No factor could be computed
        """
        asset_config = self.resolve_asset(asset)
        weights = weights or self.config.weights

        if not PricePoint(at, price).is_valid:
            raise InvalidPriceError(f"Price must be positive, got {price}", at=at)

        # --------------------------------------------------
        # Step 1: Log regression factor
        # --------------------------------------------------
        regression_factor, fair_value, deviation = self._regression_factor(
            price, at, asset_config, model, weights
        )

        # --------------------------------------------------
        # Step 2: Supplementary factors
        # --------------------------------------------------
        data = factor_data or EMPTY_FACTOR_DATA
        if data.current_price is None:
            data = replace(data, current_price=price)

        factors: List[RiskFactor] = [regression_factor]
        for factor_type, normalizer in self._normalizers.items():
            factors.append(normalizer.to_factor(data, weights.weight_for(factor_type)))

        # --------------------------------------------------
        # Step 3: Composite
        # --------------------------------------------------
        try:
            result = self._composite.calculate(factors, weights)
        except RiskEngineError as e:
            e.at = at
            raise

        return MultiFactorRiskPoint(
            date=at,
            risk_level=result.risk_level,
            price=price,
            fair_value=fair_value,
            deviation=deviation,
            factors=result.factors,
            weights=weights,
        )

    def calculate_multi_factor_history(
        self,
        prices: Sequence[PricePoint],
        asset: AssetRef,
        factor_data_by_date: Optional[Mapping[DateLike, RiskFactorData]] = None,
        weights: Optional[RiskFactorWeights] = None,
    ) -> RiskSeries:
        """
        Composite risk for every date of a price history.

        The regression is fitted once over the full history.
        Dates that fail are recorded as gaps.

        Raises:
            UnsupportedAssetError, InsufficientDataError, DegenerateInputError
        """
        asset_config = self.resolve_asset(asset)
        model = self.fit_regression(asset_config, prices)

        data_by_day: Dict = {
            date_key(k): v for k, v in (factor_data_by_date or {}).items()
        }

        points: List[MultiFactorRiskPoint] = []
        gaps: List[RiskGap] = []

        for point in _sorted_by_date(prices):
            try:
                points.append(self.calculate_multi_factor_risk(
                    price=point.price,
                    at=point.date,
                    asset=asset_config,
                    factor_data=data_by_day.get(date_key(point.date)),
                    model=model,
                    weights=weights,
                ))
            except RiskEngineError as e:
                gaps.append(RiskGap(date=point.date, error_type=type(e).__name__, message=str(e)))
                logger.warning(
                    f"No risk point for {asset_config.asset_id} at {date_key(point.date)}: {e}"
                )

        logger.info(
            f"Risk history for {asset_config.asset_id}: "
            f"{len(points)} points, {len(gaps)} gaps"
        )
        return RiskSeries(
            asset_id=asset_config.asset_id,
            points=tuple(points),
            gaps=tuple(gaps),
            model=model,
        )

    def _regression_factor(
        self,
        price: float,
        at: DateLike,
        asset_config: AssetRiskConfig,
        model: Optional[RegressionModel],
        weights: RiskFactorWeights,
    ) -> Tuple[RiskFactor, Optional[float], Optional[float]]:
        weight = weights.weight_for(RiskFactorType.LOG_REGRESSION)
        if model is None:
            return (
                RiskFactor.unavailable(RiskFactorType.LOG_REGRESSION, weight, "No regression model"),
                None,
                None,
            )

        fair_value = model.fair_value(at)
        normalizer = DeviationNormalizer(asset_config.deviation_bounds)
        try:
            deviation, risk = normalizer.evaluate(price, fair_value)
        except InvalidFairValueError as e:
            logger.debug(f"Log regression unavailable for {asset_config.asset_id} at {date_key(at)}: {e}")
            return (
                RiskFactor.unavailable(RiskFactorType.LOG_REGRESSION, weight, str(e)),
                None,
                None,
            )

        factor = RiskFactor.available(RiskFactorType.LOG_REGRESSION, risk, weight, raw=deviation)
        return factor, fair_value, deviation

    def get_config(self) -> RiskEngineConfig:
        return self.config


# ============================================================
# HISTORY SAMPLING
# ============================================================


P = TypeVar("P", RiskHistoryPoint, MultiFactorRiskPoint)


def _sorted_by_date(points: Iterable[PricePoint]) -> List[PricePoint]:
    return sorted(points, key=lambda p: to_utc_datetime(p.date))


def sample_history(
    history: Sequence[P],
    days: Optional[int] = None,
    max_points: int = 100,
    as_of: Optional[DateLike] = None,
) -> List[P]:
    """
    Downsample a time-sorted history for charting.

    Args:
        history: Points sorted by date
        days: Keep only the trailing window, measured from as_of
        max_points: Target size; every len // max_points-th
                    point is kept and the last point always is
        as_of: End of the trailing window (default: now, UTC)
    """
    if max_points <= 0:
        raise ValueError("max_points must be positive")

    points = list(history)
    if days is not None:
        end = to_utc_datetime(as_of) if as_of is not None else datetime.now(timezone.utc)
        cutoff = end - timedelta(days=days)
        points = [p for p in points if to_utc_datetime(p.date) >= cutoff]

    if len(points) <= max_points:
        return points

    step = len(points) // max_points
    sampled = points[::step]
    if sampled[-1] is not points[-1]:
        sampled.append(points[-1])
    return sampled


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================


def score_multi_factor_risk(
    price: float,
    at: DateLike,
    asset: AssetRef,
    factor_data: Optional[RiskFactorData] = None,
    model: Optional[RegressionModel] = None,
    weights: Optional[RiskFactorWeights] = None,
    config: Optional[RiskEngineConfig] = None,
) -> MultiFactorRiskPoint:
    """
    Convenience function to score one date in one call.

    For repeated scoring, prefer creating a persistent
    MultiFactorRiskEngine instance.
    """
    engine = MultiFactorRiskEngine(config=config)
    return engine.calculate_multi_factor_risk(
        price=price,
        at=at,
        asset=asset,
        factor_data=factor_data,
        model=model,
        weights=weights,
    )


def format_risk_summary(point: MultiFactorRiskPoint) -> str:
    """
    Format a human-readable risk summary.

    Useful for logging, alerts, and dashboards.
    """
    fair_value = f"{point.fair_value:,.2f}" if point.fair_value is not None else "N/A"
    deviation = f"{point.deviation:+.4f}" if point.deviation is not None else "N/A"

    lines = [
        "=" * 50,
        "MULTI-FACTOR RISK SUMMARY",
        "=" * 50,
        f"Date: {point.date_string}",
        f"Risk Level: {point.risk_level:.3f} ({point.category.value})",
        f"Price: {point.price:,.2f}",
        f"Fair Value: {fair_value}",
        f"Deviation: {deviation}",
        f"Factors Available: {point.available_factor_count}/{len(point.factors)}",
        "",
        "Factor Breakdown:",
    ]
    for factor in point.factors:
        if factor.is_available:
            lines.append(
                f"  {factor.type.label:<18} {factor.normalized_value:.3f}"
                f"  (weight {point.effective_weight(factor.type):.1%})"
            )
        else:
            lines.append(f"  {factor.type.label:<18} N/A  ({factor.unavailable_reason})")
    lines.append("=" * 50)

    return "\n".join(lines)
