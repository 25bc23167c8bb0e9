"""
Tests for the Factor Normalizers.

============================================================
PURPOSE
============================================================
Covers every raw -> [0, 1] mapping:
1. Log regression deviation
2. RSI
3. SMA position
4. Bull market support bands
5. Funding rate
6. Fear & Greed
7. Macro (VIX / DXY z-scores)

============================================================
"""

import math

import pytest

from risk_engine import (
    BandPosition,
    BullMarketBands,
    BullMarketBandsNormalizer,
    DeviationNormalizer,
    FACTOR_DEFINITIONS,
    FearGreedLevel,
    FearGreedNormalizer,
    FundingRateConfig,
    FundingRateNormalizer,
    InvalidFairValueError,
    InvalidPriceError,
    MacroReading,
    MacroRiskConfig,
    MacroRiskNormalizer,
    RiskFactorData,
    RiskFactorType,
    RSINormalizer,
    SMAPositionNormalizer,
    Unavailable,
    log_deviation,
)
from risk_engine.normalizers import build_supplementary_normalizers


# ============================================================
# DEVIATION TESTS
# ============================================================

class TestDeviationNormalizer:
    """Tests for the log regression factor."""

    @pytest.fixture
    def normalizer(self):
        return DeviationNormalizer((-0.8, 0.8))

    @pytest.mark.parametrize("deviation, expected", [
        (0.0, 0.5),
        (0.4, 0.75),
        (0.8, 1.0),
        (2.0, 1.0),
        (-0.4, 0.25),
        (-0.8, 0.0),
        (-2.0, 0.0),
    ])
    def test_mapping(self, normalizer, deviation, expected):
        assert normalizer.normalize(deviation) == expected

    def test_monotonic(self, normalizer):
        values = [normalizer.normalize(d / 10) for d in range(-10, 11)]
        assert values == sorted(values)

    def test_price_on_fair_value(self, normalizer):
        deviation, risk = normalizer.evaluate(42000.0, 42000.0)
        assert deviation == 0.0
        assert risk == 0.5

    def test_ten_times_fair_value(self, normalizer):
        deviation, risk = normalizer.evaluate(1000.0, 100.0)
        assert deviation == pytest.approx(1.0)
        assert risk == 1.0

    def test_non_positive_fair_value(self):
        with pytest.raises(InvalidFairValueError):
            log_deviation(100.0, 0.0)
        with pytest.raises(InvalidFairValueError):
            log_deviation(100.0, -1.0)

    def test_non_positive_price(self):
        with pytest.raises(InvalidPriceError):
            log_deviation(0.0, 100.0)
        with pytest.raises(InvalidPriceError):
            log_deviation(float("nan"), 100.0)

    def test_invalid_bounds(self):
        with pytest.raises(ValueError):
            DeviationNormalizer((0.2, 0.8))


# ============================================================
# RSI TESTS
# ============================================================

class TestRSINormalizer:

    @pytest.mark.parametrize("rsi, expected", [
        (30.0, 0.0),
        (50.0, 0.5),
        (70.0, 1.0),
        (10.0, 0.0),
        (90.0, 1.0),
    ])
    def test_mapping(self, rsi, expected):
        value = RSINormalizer().evaluate(RiskFactorData(rsi=rsi))
        assert value.normalized == expected
        assert value.raw == rsi

    def test_missing(self):
        assert isinstance(RSINormalizer().evaluate(RiskFactorData()), Unavailable)

    def test_nan_is_unavailable(self):
        assert isinstance(RSINormalizer().evaluate(RiskFactorData(rsi=float("nan"))), Unavailable)


# ============================================================
# SMA POSITION TESTS
# ============================================================

class TestSMAPositionNormalizer:

    @pytest.mark.parametrize("price, expected", [
        (130.0, 0.2),
        (115.0, 0.3),
        (110.0, 0.4),
        (105.0, 0.4),
        (100.0, 0.6),
        (95.0, 0.6),
        (85.0, 0.7),
        (80.0, 0.8),
        (70.0, 0.8),
    ])
    def test_tiers(self, price, expected):
        data = RiskFactorData(sma_200=100.0, current_price=price)
        assert SMAPositionNormalizer().evaluate(data).normalized == expected

    def test_raw_is_fractional_distance(self):
        data = RiskFactorData(sma_200=100.0, current_price=130.0)
        assert SMAPositionNormalizer().evaluate(data).raw == pytest.approx(0.3)

    def test_non_positive_sma(self):
        data = RiskFactorData(sma_200=0.0, current_price=100.0)
        assert isinstance(SMAPositionNormalizer().evaluate(data), Unavailable)

    def test_missing_price(self):
        data = RiskFactorData(sma_200=100.0)
        assert isinstance(SMAPositionNormalizer().evaluate(data), Unavailable)


# ============================================================
# BULL MARKET BANDS TESTS
# ============================================================

class TestBullMarketBandsNormalizer:

    @pytest.mark.parametrize("price, expected", [
        (125.0, 0.1),
        (115.0, 0.2),
        (105.0, 0.3),
        (95.0, 0.7),
        (85.0, 0.8),
        (75.0, 0.9),
    ])
    def test_outside_bands(self, price, expected):
        bands = BullMarketBands(sma_20_week=100.0, ema_21_week=100.0, current_price=price)
        value = BullMarketBandsNormalizer().evaluate(RiskFactorData(bull_market_bands=bands))
        assert value.normalized == expected

    def test_in_band(self):
        bands = BullMarketBands(sma_20_week=100.0, ema_21_week=110.0, current_price=105.0)
        assert bands.position == BandPosition.IN_BAND

        value = BullMarketBandsNormalizer().evaluate(RiskFactorData(bull_market_bands=bands))
        assert value.normalized == 0.5
        assert value.raw == 0.0

    def test_positions(self):
        assert BullMarketBands(100.0, 110.0, 120.0).position == BandPosition.ABOVE_BOTH
        assert BullMarketBands(100.0, 110.0, 90.0).position == BandPosition.BELOW_BOTH

    def test_missing(self):
        assert isinstance(BullMarketBandsNormalizer().evaluate(RiskFactorData()), Unavailable)

    def test_non_positive_average(self):
        bands = BullMarketBands(sma_20_week=0.0, ema_21_week=0.0, current_price=10.0)
        value = BullMarketBandsNormalizer().evaluate(RiskFactorData(bull_market_bands=bands))
        assert isinstance(value, Unavailable)


# ============================================================
# FUNDING RATE TESTS
# ============================================================

class TestFundingRateNormalizer:

    @pytest.mark.parametrize("rate, expected", [
        (0.0, 0.5),
        (0.001, 1.0),
        (-0.001, 0.0),
        (0.01, 1.0),
        (-0.01, 0.0),
    ])
    def test_mapping(self, rate, expected):
        value = FundingRateNormalizer().evaluate(RiskFactorData(funding_rate=rate))
        assert value.normalized == pytest.approx(expected)

    def test_half_saturation(self):
        value = FundingRateNormalizer().evaluate(RiskFactorData(funding_rate=0.0005))
        assert value.normalized == pytest.approx(0.75)

    def test_custom_saturation(self):
        normalizer = FundingRateNormalizer(FundingRateConfig(saturation=0.01))
        value = normalizer.evaluate(RiskFactorData(funding_rate=0.005))
        assert value.normalized == pytest.approx(0.75)

    def test_invalid_saturation(self):
        with pytest.raises(ValueError):
            FundingRateConfig(saturation=0.0)


# ============================================================
# FEAR & GREED TESTS
# ============================================================

class TestFearGreedNormalizer:

    @pytest.mark.parametrize("index, level", [
        (0, FearGreedLevel.EXTREME_FEAR),
        (24, FearGreedLevel.EXTREME_FEAR),
        (25, FearGreedLevel.FEAR),
        (44, FearGreedLevel.FEAR),
        (45, FearGreedLevel.NEUTRAL),
        (55, FearGreedLevel.NEUTRAL),
        (56, FearGreedLevel.GREED),
        (75, FearGreedLevel.GREED),
        (76, FearGreedLevel.EXTREME_GREED),
        (100, FearGreedLevel.EXTREME_GREED),
    ])
    def test_tiers(self, index, level):
        assert FearGreedLevel.from_value(index) == level

    @pytest.mark.parametrize("index, expected", [
        (10, 0.10),
        (30, 0.30),
        (50, 0.50),
        (65, 0.70),
        (90, 0.90),
    ])
    def test_tier_risk(self, index, expected):
        value = FearGreedNormalizer().evaluate(RiskFactorData(fear_greed_value=index))
        assert value.normalized == expected
        assert value.raw == index

    def test_missing(self):
        assert isinstance(FearGreedNormalizer().evaluate(RiskFactorData()), Unavailable)


# ============================================================
# MACRO TESTS
# ============================================================

class TestMacroRiskNormalizer:

    def test_both_extremes_average_out(self, alternating_history):
        data = RiskFactorData(
            vix=MacroReading(current=100.0, history=alternating_history),
            dxy=MacroReading(current=-100.0, history=alternating_history),
        )
        value = MacroRiskNormalizer().evaluate(data)
        assert value.normalized == 0.5

    def test_high_vix_saturates(self, alternating_history):
        data = RiskFactorData(vix=MacroReading(current=100.0, history=alternating_history))
        assert MacroRiskNormalizer().evaluate(data).normalized == 1.0

    def test_moderate_z(self, alternating_history):
        sd = math.sqrt(20 / 19)
        data = RiskFactorData(vix=MacroReading(current=11.0 + 1.5 * sd, history=alternating_history))
        value = MacroRiskNormalizer().evaluate(data)

        assert value.raw == pytest.approx(1.5)
        assert value.normalized == pytest.approx(0.75)

    def test_constant_history_is_neutral(self):
        data = RiskFactorData(dxy=MacroReading(current=104.0, history=[100.0] * 30))
        value = MacroRiskNormalizer().evaluate(data)
        assert value.normalized == 0.5
        assert value.raw == 0.0

    def test_short_history_is_unavailable(self, alternating_history):
        data = RiskFactorData(vix=MacroReading(current=15.0, history=alternating_history[:19]))
        assert isinstance(MacroRiskNormalizer().evaluate(data), Unavailable)

    def test_short_indicator_left_out(self, alternating_history):
        data = RiskFactorData(
            vix=MacroReading(current=100.0, history=alternating_history),
            dxy=MacroReading(current=-100.0, history=alternating_history[:5]),
        )
        assert MacroRiskNormalizer().evaluate(data).normalized == 1.0

    def test_window_uses_recent_values(self, alternating_history):
        history = [1000.0] * 50 + alternating_history
        normalizer = MacroRiskNormalizer(MacroRiskConfig(window=20))
        data = RiskFactorData(vix=MacroReading(current=11.0, history=history))
        assert normalizer.evaluate(data).normalized == pytest.approx(0.5)

    def test_missing(self):
        assert isinstance(MacroRiskNormalizer().evaluate(RiskFactorData()), Unavailable)


# ============================================================
# DISPATCH TABLE
# ============================================================

class TestFactorDefinitions:

    def test_every_factor_described(self):
        assert set(FACTOR_DEFINITIONS) == set(RiskFactorType)
        assert all(d.description for d in FACTOR_DEFINITIONS.values())

    def test_regression_has_no_snapshot_normalizer(self):
        assert FACTOR_DEFINITIONS[RiskFactorType.LOG_REGRESSION].normalizer is None

    def test_built_normalizers_match_types(self):
        normalizers = build_supplementary_normalizers()
        assert list(normalizers) == RiskFactorType.supplementary_factors()
        for factor_type, normalizer in normalizers.items():
            assert normalizer.factor_type == factor_type

    def test_to_factor_carries_weight(self):
        factor = RSINormalizer().to_factor(RiskFactorData(rsi=50.0), weight=0.12)
        assert factor.type == RiskFactorType.RSI
        assert factor.weight == 0.12
        assert factor.weighted_contribution == pytest.approx(0.06)
