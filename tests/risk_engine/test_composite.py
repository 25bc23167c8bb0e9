"""
Tests for the Composite Risk Calculator.

============================================================
PURPOSE
============================================================
Covers the availability-aware weighted average:
1. Unavailable factors excluded from both sums
2. Weight stamping from the weight vector
3. Failure on zero contributing factors
4. Duplicate factor rejection

============================================================
"""

import pytest

from risk_engine import (
    CompositeRiskCalculator,
    NoFactorsAvailableError,
    RiskFactor,
    RiskFactorType,
    RiskFactorWeights,
    calculate_composite_risk,
)


def _all_unavailable_except(**available):
    """Seven factors, only the named ones available."""
    factors = []
    for factor_type in RiskFactorType:
        if factor_type.value in available:
            factors.append(RiskFactor.available(factor_type, available[factor_type.value], weight=0.0))
        else:
            factors.append(RiskFactor.unavailable(factor_type, weight=0.0))
    return factors


# ============================================================
# AGGREGATION TESTS
# ============================================================

class TestCompositeAggregation:

    def test_regression_and_fear_greed_only(self):
        factors = _all_unavailable_except(log_regression=0.92, fear_greed=0.30)
        result = CompositeRiskCalculator().calculate(factors, RiskFactorWeights())

        expected = (0.92 * 0.35 + 0.30 * 0.10) / (0.35 + 0.10)
        assert result.risk_level == pytest.approx(expected, rel=1e-12)
        assert result.risk_level == pytest.approx(0.782222, abs=1e-6)
        assert result.contributing_weight == pytest.approx(0.45)

    def test_single_factor_is_undiluted(self):
        factors = _all_unavailable_except(log_regression=0.6)
        assert calculate_composite_risk(factors) == pytest.approx(0.6, rel=1e-12)

    def test_all_available(self):
        values = {t.value: 0.4 for t in RiskFactorType}
        factors = _all_unavailable_except(**values)
        assert calculate_composite_risk(factors) == pytest.approx(0.4, rel=1e-12)

    def test_weights_are_stamped(self):
        factors = _all_unavailable_except(rsi=0.5)
        result = CompositeRiskCalculator().calculate(factors, RiskFactorWeights())

        stamped = {f.type: f.weight for f in result.factors}
        assert stamped[RiskFactorType.LOG_REGRESSION] == 0.35
        assert stamped[RiskFactorType.RSI] == 0.12
        assert stamped[RiskFactorType.MACRO_RISK] == 0.10

    def test_zero_weight_factor_does_not_contribute(self):
        weights = RiskFactorWeights(fear_greed=0.0)
        factors = _all_unavailable_except(log_regression=0.2, fear_greed=1.0)
        result = CompositeRiskCalculator().calculate(factors, weights)
        assert result.risk_level == pytest.approx(0.2, rel=1e-12)

    def test_dropping_unavailable_factors_changes_nothing(self):
        weights = RiskFactorWeights()
        full = _all_unavailable_except(log_regression=0.92, rsi=0.4, fear_greed=0.30)
        available_only = [f for f in full if f.is_available]

        calculator = CompositeRiskCalculator()
        assert len(available_only) == 3
        assert (
            calculator.calculate(available_only, weights).risk_level
            == calculator.calculate(full, weights).risk_level
        )

    def test_order_preserved(self):
        factors = _all_unavailable_except(rsi=0.5)
        result = CompositeRiskCalculator().calculate(factors)
        assert [f.type for f in result.factors] == RiskFactorType.all_factors()


# ============================================================
# FAILURE TESTS
# ============================================================

class TestCompositeFailures:

    def test_no_available_factors(self):
        with pytest.raises(NoFactorsAvailableError):
            CompositeRiskCalculator().calculate(_all_unavailable_except())

    def test_empty_factor_list(self):
        with pytest.raises(NoFactorsAvailableError):
            CompositeRiskCalculator().calculate([])

    def test_only_zero_weight_factors(self):
        weights = RiskFactorWeights(rsi=0.0)
        with pytest.raises(NoFactorsAvailableError):
            CompositeRiskCalculator().calculate(_all_unavailable_except(rsi=0.9), weights)

    def test_duplicate_factor_type(self):
        factors = [
            RiskFactor.available(RiskFactorType.RSI, 0.5, weight=0.12),
            RiskFactor.available(RiskFactorType.RSI, 0.7, weight=0.12),
        ]
        with pytest.raises(ValueError):
            CompositeRiskCalculator().calculate(factors)
