"""
Risk Engine - Composite Risk Calculator.

============================================================
PURPOSE
============================================================
Blends the per-factor risk values into one [0, 1] level.

============================================================
AGGREGATION RULE
============================================================
    risk = sum(n_i * w_i) / sum(w_i)

over factors that are available AND carry a positive
weight. Unavailable factors drop out of both sums, so a
date with only the regression factor still gets an
undiluted risk level equal to that factor's value.

============================================================
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

from .types import (
    NoFactorsAvailableError,
    RiskFactor,
    RiskFactorWeights,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompositeResult:
    """Composite risk level plus the weight-stamped factor breakdown."""

    risk_level: float
    factors: Tuple[RiskFactor, ...]
    contributing_weight: float


class CompositeRiskCalculator:
    """
    Stateless weighted-average aggregator.

    Usage:
        calculator = CompositeRiskCalculator()
        result = calculator.calculate(factors, RiskFactorWeights())
    """

    def calculate(
        self,
        factors: Sequence[RiskFactor],
        weights: Optional[RiskFactorWeights] = None,
    ) -> CompositeResult:
        """
        Aggregate factors under a weight vector.

        Each factor's weight is replaced by the vector's weight
        for its type before aggregation.

        Raises:
            ValueError: Two factors share a type
            NoFactorsAvailableError: Nothing contributes
        """
        weights = weights or RiskFactorWeights()
        if not weights.is_valid:
            logger.warning(f"Weight vector sums to {weights.total:.4f}, not 1.0")

        stamped = self._stamp(factors, weights)
        risk_level, contributing_weight = self.weighted_average(stamped)

        return CompositeResult(
            risk_level=risk_level,
            factors=tuple(stamped),
            contributing_weight=contributing_weight,
        )

    @staticmethod
    def weighted_average(factors: Sequence[RiskFactor]) -> Tuple[float, float]:
        """
        Weighted average over available, positively weighted factors.

        Returns:
            (risk_level clamped to [0, 1], total contributing weight)
        """
        contributing = [f for f in factors if f.is_available and f.weight > 0]
        if not contributing:
            raise NoFactorsAvailableError("No risk factors available for this date")

        numerator = math.fsum(f.normalized_value * f.weight for f in contributing)
        denominator = math.fsum(f.weight for f in contributing)
        risk_level = max(0.0, min(1.0, numerator / denominator))
        return risk_level, denominator

    @staticmethod
    def _stamp(
        factors: Sequence[RiskFactor],
        weights: RiskFactorWeights,
    ) -> List[RiskFactor]:
        seen = set()
        stamped: List[RiskFactor] = []
        for factor in factors:
            if factor.type in seen:
                raise ValueError(f"Duplicate risk factor: {factor.type.value}")
            seen.add(factor.type)
            stamped.append(replace(factor, weight=weights.weight_for(factor.type)))
        return stamped


def calculate_composite_risk(
    factors: Sequence[RiskFactor],
    weights: Optional[RiskFactorWeights] = None,
) -> float:
    """Convenience function returning just the composite level."""
    return CompositeRiskCalculator().calculate(factors, weights).risk_level
