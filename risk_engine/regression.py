"""
Risk Engine - Log Regression.

============================================================
PURPOSE
============================================================
Fits a least-squares line to log10(price) against time
since the asset's origin date and exposes the fitted curve
as an immutable RegressionModel.

Fitting and evaluating are separate: the engine fits once
per history and evaluates the model for every date.

============================================================
TIME SCALES
============================================================
linear (default):
    log10(price) = slope * days + intercept
    fair_value   = 10 ^ (slope * days + intercept)

log (power law):
    log10(price) = slope * log10(days) + intercept
    fair_value   = 10 ^ (slope * log10(days) + intercept)
    Undefined on and before the origin day, where the
    model reports a fair value of 0.0.

============================================================
"""

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .config import RegressionConfig, TIME_SCALE_LINEAR, TIME_SCALE_LOG
from .types import (
    DateLike,
    DegenerateInputError,
    InsufficientDataError,
    PricePoint,
    days_between,
)


logger = logging.getLogger(__name__)


# ============================================================
# MODEL
# ============================================================


@dataclass(frozen=True)
class RegressionModel:
    """
    Fitted log regression for one asset.

    Pure value object: evaluating it has no side effects and
    two models with the same coefficients are interchangeable.
    """

    slope: float
    intercept: float
    origin_date: date
    r_squared: float
    sample_count: int
    time_scale: str = TIME_SCALE_LINEAR
    asset_id: Optional[str] = None

    def days_since_origin(self, at: DateLike) -> float:
        return days_between(self.origin_date, at)

    def _regressor(self, at: DateLike) -> Optional[float]:
        days = self.days_since_origin(at)
        if self.time_scale == TIME_SCALE_LOG:
            if days <= 0:
                return None
            return math.log10(days)
        return days

    def log_fair_value(self, at: DateLike) -> Optional[float]:
        """log10 of the fair value, or None where the curve is undefined."""
        x = self._regressor(at)
        if x is None:
            return None
        return self.slope * x + self.intercept

    def fair_value(self, at: DateLike) -> float:
        """Fair price; 0.0 where undefined, inf when the curve overflows a float."""
        log_value = self.log_fair_value(at)
        if log_value is None:
            return 0.0
        try:
            return 10 ** log_value
        except OverflowError:
            return math.inf

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset_id": self.asset_id,
            "slope": self.slope,
            "intercept": self.intercept,
            "origin_date": self.origin_date.isoformat(),
            "r_squared": self.r_squared,
            "sample_count": self.sample_count,
            "time_scale": self.time_scale,
        }


# ============================================================
# FITTING
# ============================================================


class RegressionEngine:
    """
    Ordinary least squares fit of log10(price) over time.

    Usage:
        engine = RegressionEngine()
        model = engine.fit(prices, origin_date=date(2009, 1, 3))
        model.fair_value(date(2024, 1, 1))
    """

    def __init__(self, config: Optional[RegressionConfig] = None):
        self._config = config or RegressionConfig()

    @property
    def config(self) -> RegressionConfig:
        return self._config

    def fit(
        self,
        prices: Iterable[PricePoint],
        origin_date: date,
        asset_id: Optional[str] = None,
    ) -> RegressionModel:
        """
        Fit the regression over a full price history.

        Raises:
            InsufficientDataError: Fewer than min_points usable points
            DegenerateInputError: All usable points share one time value
        """
        xs, ys = self._prepare(prices, origin_date)

        n = len(xs)
        if n < self._config.min_points:
            raise InsufficientDataError(
                f"Regression needs at least {self._config.min_points} valid price points, got {n}"
            )

        mean_x = math.fsum(xs) / n
        mean_y = math.fsum(ys) / n

        sxx = math.fsum((x - mean_x) ** 2 for x in xs)
        if sxx == 0:
            raise DegenerateInputError("Time axis has zero variance")

        sxy = math.fsum((x - mean_x) * (y - mean_y) for x, y in zip(xs, ys))
        slope = sxy / sxx
        intercept = mean_y - slope * mean_x

        ss_tot = math.fsum((y - mean_y) ** 2 for y in ys)
        ss_res = math.fsum((y - (slope * x + intercept)) ** 2 for x, y in zip(xs, ys))
        r_squared = 0.0 if ss_tot == 0 else 1.0 - ss_res / ss_tot

        model = RegressionModel(
            slope=slope,
            intercept=intercept,
            origin_date=origin_date,
            r_squared=r_squared,
            sample_count=n,
            time_scale=self._config.time_scale,
            asset_id=asset_id,
        )

        logger.info(
            f"Regression fitted for {asset_id or 'asset'}: slope={slope:.6g}, "
            f"intercept={intercept:.6g}, r2={r_squared:.4f}, n={n}"
        )
        return model

    def _prepare(
        self,
        prices: Iterable[PricePoint],
        origin_date: date,
    ) -> Tuple[List[float], List[float]]:
        """Filter usable points and map them onto (x, log10 price)."""
        xs: List[float] = []
        ys: List[float] = []
        skipped = 0
        log_scale = self._config.time_scale == TIME_SCALE_LOG

        for point in prices:
            if not point.is_valid:
                skipped += 1
                continue
            days = days_between(origin_date, point.date)
            if days < 0 or (log_scale and days == 0):
                skipped += 1
                continue
            xs.append(math.log10(days) if log_scale else days)
            ys.append(math.log10(point.price))

        if skipped:
            logger.debug(f"Excluded {skipped} price points from regression fit")
        return xs, ys


def fit_regression(
    prices: Iterable[PricePoint],
    origin_date: date,
    config: Optional[RegressionConfig] = None,
    asset_id: Optional[str] = None,
) -> RegressionModel:
    """Convenience function to fit a regression with a one-off engine."""
    return RegressionEngine(config).fit(prices, origin_date, asset_id=asset_id)
