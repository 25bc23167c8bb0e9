"""
Risk Engine - Statistics Calculator.

============================================================
PURPOSE
============================================================
Z-scores, standard deviation bands and rolling statistics
for macro indicator series (VIX, DXY, M2).

Consumed by the macro risk factor normalizer and by the
standalone macro analysis in macro.py.

============================================================
SIGNIFICANCE THRESHOLDS
============================================================
One canonical pair, used everywhere z-scores are classified:
- |z| >= 2.0  significant
- |z| >= 3.0  extreme

============================================================
"""

import math
import statistics
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .types import InsufficientDataError, ZeroVarianceError


SIGNIFICANT_Z = 2.0
EXTREME_Z = 3.0

DEFAULT_ROLLING_WINDOW = 90


# ============================================================
# RESULT TYPES
# ============================================================


@dataclass(frozen=True)
class ZScoreResult:
    """Frozen z-score result, reusable by multiple consumers."""

    mean: float
    standard_deviation: float
    z_score: float

    @property
    def is_significant(self) -> bool:
        return abs(self.z_score) >= SIGNIFICANT_Z

    @property
    def is_extreme(self) -> bool:
        return abs(self.z_score) >= EXTREME_Z

    @property
    def description(self) -> str:
        if self.is_extreme:
            return "Extremely High" if self.z_score > 0 else "Extremely Low"
        if self.is_significant:
            return "Significantly High" if self.z_score > 0 else "Significantly Low"
        if abs(self.z_score) >= 1.0:
            return "Above Average" if self.z_score > 0 else "Below Average"
        return "Normal Range"

    @property
    def percentile(self) -> float:
        """Percentile under a normal distribution assumption."""
        return normal_cdf(self.z_score) * 100

    @property
    def rarity(self) -> Optional[int]:
        """How rare the reading is, as "1 in N" (two-tailed)."""
        p = (1 - normal_cdf(abs(self.z_score))) * 2
        if p <= 0:
            return None
        return int(1.0 / p)

    @property
    def formatted(self) -> str:
        return f"{self.z_score:+.1f}σ"


@dataclass(frozen=True)
class SDBands:
    """Mean plus/minus 1, 2 and 3 standard deviations."""

    mean: float
    plus_1sd: float
    plus_2sd: float
    plus_3sd: float
    minus_1sd: float
    minus_2sd: float
    minus_3sd: float

    def classify(self, value: float) -> int:
        """
        Signed band index of a value.

        0 inside +/-1 SD, +1/-1 between 1 and 2 SD, +2/-2
        between 2 and 3 SD, +3/-3 beyond 3 SD.
        """
        if value >= self.plus_3sd:
            return 3
        if value >= self.plus_2sd:
            return 2
        if value >= self.plus_1sd:
            return 1
        if value <= self.minus_3sd:
            return -3
        if value <= self.minus_2sd:
            return -2
        if value <= self.minus_1sd:
            return -1
        return 0


@dataclass(frozen=True)
class RollingStat:
    mean: float
    standard_deviation: float


# ============================================================
# CALCULATIONS
# ============================================================


def normal_cdf(x: float) -> float:
    """Standard normal cumulative distribution."""
    return 0.5 * (1.0 + math.erf(x / math.sqrt(2.0)))


def mean(values: Sequence[float]) -> float:
    if not values:
        raise InsufficientDataError("Mean of an empty series")
    return statistics.fmean(values)


def standard_deviation(values: Sequence[float]) -> float:
    """Sample standard deviation (n - 1)."""
    if len(values) < 2:
        raise InsufficientDataError(
            f"Sample standard deviation needs 2 values, got {len(values)}"
        )
    return statistics.stdev(values)


def population_standard_deviation(values: Sequence[float]) -> float:
    if not values:
        raise InsufficientDataError("Standard deviation of an empty series")
    return statistics.pstdev(values)


def z_score_from_moments(current: float, mean_value: float, sd: float) -> ZScoreResult:
    """
    Z-score of a value against a known mean and standard deviation.

    Raises:
        ZeroVarianceError: If sd is 0
    """
    if sd <= 0:
        raise ZeroVarianceError("Standard deviation is zero")
    return ZScoreResult(
        mean=mean_value,
        standard_deviation=sd,
        z_score=(current - mean_value) / sd,
    )


def z_score(current: float, history: Sequence[float]) -> ZScoreResult:
    """
    Z-score of `current` against the full `history` window.

    The caller decides the window length.

    Raises:
        InsufficientDataError: Fewer than 2 history values
        ZeroVarianceError: History is constant
    """
    values = list(history)
    return z_score_from_moments(current, mean(values), standard_deviation(values))


def rolling_z_score(
    current: float,
    history: Sequence[float],
    window: int = DEFAULT_ROLLING_WINDOW,
) -> ZScoreResult:
    """Z-score against the most recent `window` history values."""
    if window < 2:
        raise ValueError("Rolling window must be at least 2")
    return z_score(current, list(history)[-window:])


def sd_bands(mean_value: float, sd: float) -> SDBands:
    return SDBands(
        mean=mean_value,
        plus_1sd=mean_value + sd,
        plus_2sd=mean_value + 2 * sd,
        plus_3sd=mean_value + 3 * sd,
        minus_1sd=mean_value - sd,
        minus_2sd=mean_value - 2 * sd,
        minus_3sd=mean_value - 3 * sd,
    )


def sd_bands_from(values: Sequence[float]) -> SDBands:
    """
    SD bands of a series.

    Raises:
        InsufficientDataError: Fewer than 2 values
        ZeroVarianceError: Constant series
    """
    sd = standard_deviation(values)
    if sd <= 0:
        raise ZeroVarianceError("Standard deviation is zero")
    return sd_bands(mean(values), sd)


def rolling_statistics(values: Sequence[float], window: int) -> List[Optional[RollingStat]]:
    """
    Rolling sample mean / standard deviation.

    Entry i covers values[i - window + 1 : i + 1]; entries
    before the window fills are None.
    """
    if window < 2:
        raise ValueError("Rolling window must be at least 2")

    data = list(values)
    result: List[Optional[RollingStat]] = []
    for i in range(len(data)):
        if i + 1 < window:
            result.append(None)
            continue
        chunk = data[i + 1 - window:i + 1]
        result.append(RollingStat(
            mean=statistics.fmean(chunk),
            standard_deviation=statistics.stdev(chunk),
        ))
    return result


class StatisticsCalculator:
    """
    Namespace wrapper over the module-level functions.

    Kept as a class so consumers can take it as an injected
    collaborator.
    """

    mean = staticmethod(mean)
    standard_deviation = staticmethod(standard_deviation)
    population_standard_deviation = staticmethod(population_standard_deviation)
    z_score = staticmethod(z_score)
    z_score_from_moments = staticmethod(z_score_from_moments)
    rolling_z_score = staticmethod(rolling_z_score)
    sd_bands = staticmethod(sd_bands)
    sd_bands_from = staticmethod(sd_bands_from)
    rolling_statistics = staticmethod(rolling_statistics)
