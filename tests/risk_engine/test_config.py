"""
Tests for Risk Engine Configuration.

============================================================
PURPOSE
============================================================
Covers:
1. Asset registry lookups
2. Asset config validation
3. Weight presets and validity
4. Environment loading

============================================================
"""

from datetime import date

import pytest

from risk_engine import (
    AssetRegistry,
    AssetRiskConfig,
    MacroRiskConfig,
    RegressionConfig,
    RiskCategory,
    RiskFactorType,
    RiskFactorWeights,
    RSIConfig,
    UnsupportedAssetError,
    get_conservative_config,
    get_default_config,
    get_default_registry,
    get_sentiment_focused_config,
    load_config_from_env,
)


ENV_VARS = [
    "RISK_WEIGHT_PRESET",
    "RISK_REGRESSION_TIME_SCALE",
    "RISK_REGRESSION_MIN_POINTS",
    "RISK_MACRO_MIN_HISTORY",
    "RISK_FUNDING_SATURATION",
]


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every risk engine variable from the environment."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


# ============================================================
# ASSET REGISTRY TESTS
# ============================================================

class TestAssetRegistry:
    """Tests for asset lookups."""

    def test_default_registry_has_three_assets(self):
        registry = get_default_registry()
        assert len(registry) == 3
        assert registry.symbols == ["BTC", "ETH", "SOL"]

    def test_btc_parameters(self):
        btc = get_default_registry().for_symbol("BTC")
        assert btc.gecko_id == "bitcoin"
        assert btc.origin_date == date(2009, 1, 3)
        assert btc.deviation_bounds == (-0.8, 0.8)
        assert btc.confidence_level == 9

    def test_eth_and_sol_parameters(self):
        registry = get_default_registry()
        eth = registry.for_symbol("ETH")
        sol = registry.for_symbol("SOL")

        assert eth.origin_date == date(2015, 7, 30)
        assert eth.deviation_bounds == (-0.7, 0.7)
        assert eth.confidence_level == 8
        assert sol.origin_date == date(2020, 4, 10)
        assert sol.deviation_bounds == (-0.6, 0.6)
        assert sol.confidence_level == 6

    def test_lookup_is_case_insensitive(self):
        registry = get_default_registry()
        assert registry.for_symbol("btc").asset_id == "BTC"
        assert registry.for_gecko_id("Ethereum").asset_id == "ETH"
        assert registry.gecko_id_for("sol") == "solana"

    def test_unsupported_symbol_raises(self):
        registry = get_default_registry()
        with pytest.raises(UnsupportedAssetError) as exc_info:
            registry.for_symbol("DOGE")
        assert exc_info.value.symbol == "DOGE"

    def test_unsupported_gecko_id_raises(self):
        with pytest.raises(UnsupportedAssetError):
            get_default_registry().for_gecko_id("dogecoin")

    def test_is_supported(self):
        registry = get_default_registry()
        assert registry.is_supported("eth")
        assert not registry.is_supported("XRP")
        assert "SOL" in registry

    def test_duplicate_asset_rejected(self):
        btc = get_default_registry().for_symbol("BTC")
        with pytest.raises(ValueError):
            AssetRegistry([btc, btc])


class TestAssetRiskConfig:
    """Tests for asset config validation."""

    def _config(self, **overrides):
        params = dict(
            asset_id="TST",
            gecko_id="test",
            display_name="Test",
            origin_date=date(2020, 1, 1),
            deviation_bounds=(-0.5, 0.5),
            confidence_level=5,
        )
        params.update(overrides)
        return AssetRiskConfig(**params)

    def test_valid_config(self):
        assert self._config().confidence_level == 5

    def test_bounds_must_straddle_zero(self):
        with pytest.raises(ValueError):
            self._config(deviation_bounds=(0.1, 0.5))
        with pytest.raises(ValueError):
            self._config(deviation_bounds=(-0.5, -0.1))

    def test_confidence_range(self):
        with pytest.raises(ValueError):
            self._config(confidence_level=0)
        with pytest.raises(ValueError):
            self._config(confidence_level=10)

    def test_to_dict(self):
        data = self._config().to_dict()
        assert data["origin_date"] == "2020-01-01"
        assert data["deviation_bounds"] == [-0.5, 0.5]


# ============================================================
# WEIGHTS AND CATEGORIES
# ============================================================

class TestWeights:
    """Tests for weight presets and validity."""

    def test_default_weights(self):
        weights = RiskFactorWeights()
        assert weights.weight_for(RiskFactorType.LOG_REGRESSION) == 0.35
        assert weights.weight_for(RiskFactorType.BULL_MARKET_BANDS) == 0.11
        assert weights.is_valid

    def test_presets_are_valid(self):
        for config in (get_default_config(), get_conservative_config(), get_sentiment_focused_config()):
            assert config.weights.is_valid

    def test_conservative_emphasizes_regression(self):
        weights = get_conservative_config().weights
        assert weights.log_regression == 0.50
        assert weights.fear_greed == 0.06

    def test_sentiment_focused_emphasizes_sentiment(self):
        weights = get_sentiment_focused_config().weights
        assert weights.funding_rate == 0.15
        assert weights.fear_greed == 0.15

    def test_sum_within_tolerance_is_valid(self):
        # Sums to 0.999
        assert RiskFactorWeights(log_regression=0.349).is_valid

    def test_sum_outside_tolerance_is_invalid(self):
        # Sums to 0.990
        assert not RiskFactorWeights(log_regression=0.34).is_valid

    def test_validity_not_enforced_at_construction(self):
        weights = RiskFactorWeights(log_regression=0.9)
        assert not weights.is_valid


class TestRiskCategory:
    """Category boundaries: lower bound inclusive."""

    @pytest.mark.parametrize("level, expected", [
        (0.0, RiskCategory.VERY_LOW),
        (0.199999, RiskCategory.VERY_LOW),
        (0.20, RiskCategory.LOW),
        (0.40, RiskCategory.NEUTRAL),
        (0.549999, RiskCategory.NEUTRAL),
        (0.55, RiskCategory.ELEVATED),
        (0.70, RiskCategory.HIGH),
        (0.899999, RiskCategory.HIGH),
        (0.90, RiskCategory.EXTREME),
        (1.0, RiskCategory.EXTREME),
    ])
    def test_boundaries(self, level, expected):
        assert RiskCategory.from_risk_level(level) == expected

    def test_category_strings(self):
        assert RiskCategory.from_risk_level(0.2).value == "Low Risk"
        assert RiskCategory.from_risk_level(0.55).value == "Elevated Risk"

    def test_severity_order(self):
        assert RiskCategory.VERY_LOW.severity_order < RiskCategory.EXTREME.severity_order


# ============================================================
# REGRESSION CONFIG
# ============================================================

class TestRegressionConfig:

    def test_defaults(self):
        config = RegressionConfig()
        assert config.min_points == 2
        assert config.time_scale == "linear"

    def test_unknown_time_scale(self):
        with pytest.raises(ValueError):
            RegressionConfig(time_scale="quadratic")

    def test_min_points_floor(self):
        with pytest.raises(ValueError):
            RegressionConfig(min_points=1)


# ============================================================
# FACTOR CONFIG VALIDATION
# ============================================================

class TestFactorConfigValidation:

    @pytest.mark.parametrize("oversold, overbought", [(50.0, 50.0), (70.0, 30.0)])
    def test_rsi_levels_must_be_ordered(self, oversold, overbought):
        with pytest.raises(ValueError):
            RSIConfig(oversold=oversold, overbought=overbought)

    def test_rsi_custom_levels(self):
        assert RSIConfig(oversold=20.0, overbought=80.0).to_dict() == {"oversold": 20.0, "overbought": 80.0}

    @pytest.mark.parametrize("window", [0, 1])
    def test_macro_window_floor(self, window):
        with pytest.raises(ValueError):
            MacroRiskConfig(window=window)


# ============================================================
# ENVIRONMENT LOADING
# ============================================================

class TestLoadConfigFromEnv:
    """Tests for .env / environment driven configuration."""

    def test_defaults_without_variables(self, clean_env):
        config = load_config_from_env()
        assert config.weights == RiskFactorWeights()
        assert config.regression.time_scale == "linear"
        assert config.macro.min_history_points == 20
        assert config.funding_rate.saturation == 0.001

    def test_weight_preset(self, clean_env):
        clean_env.setenv("RISK_WEIGHT_PRESET", "conservative")
        assert load_config_from_env().weights == get_conservative_config().weights

    def test_regression_and_thresholds(self, clean_env):
        clean_env.setenv("RISK_REGRESSION_TIME_SCALE", "log")
        clean_env.setenv("RISK_REGRESSION_MIN_POINTS", "30")
        clean_env.setenv("RISK_MACRO_MIN_HISTORY", "60")
        clean_env.setenv("RISK_FUNDING_SATURATION", "0.002")

        config = load_config_from_env()
        assert config.regression.time_scale == "log"
        assert config.regression.min_points == 30
        assert config.macro.min_history_points == 60
        assert config.funding_rate.saturation == 0.002

    def test_unknown_preset_raises(self, clean_env):
        clean_env.setenv("RISK_WEIGHT_PRESET", "yolo")
        with pytest.raises(ValueError):
            load_config_from_env()

    def test_malformed_number_raises(self, clean_env):
        clean_env.setenv("RISK_REGRESSION_MIN_POINTS", "many")
        with pytest.raises(ValueError):
            load_config_from_env()

    def test_to_dict_round_trips_weights(self, clean_env):
        data = load_config_from_env().to_dict()
        assert data["weights"]["log_regression"] == 0.35
        assert data["engine_version"] == "1.0.0"
