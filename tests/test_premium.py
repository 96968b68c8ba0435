"""
tests/test_premium.py

Premium formula: deterministic integer pricing from the risk table.
"""

import pytest

from paraclaim.core.config import RiskTable
from paraclaim.core.models import ComparisonOperator, WeatherParameter, to_fixed
from paraclaim.core.time import DAY_SECONDS, YEAR_SECONDS
from paraclaim.registry.premium import (
    MAX_LIKELIHOOD_PCT,
    MIN_LIKELIHOOD_PCT,
    PremiumCalculator,
)


GT = ComparisonOperator.GREATER_THAN
LT = ComparisonOperator.LESS_THAN
EQ = ComparisonOperator.EQUAL_TO


@pytest.fixture
def calc():
    return PremiumCalculator(RiskTable())


class TestLikelihood:

    def test_threshold_at_reference_is_neutral(self, calc):
        assert calc.likelihood_pct(WeatherParameter.TEMPERATURE, to_fixed(20), GT) == 100

    def test_rare_trigger_is_cheaper(self, calc):
        # 30°C is 10 above the 20°C reference with a 15° tail: 100 - 67
        assert calc.likelihood_pct(WeatherParameter.TEMPERATURE, to_fixed(30), GT) == 33

    def test_common_trigger_is_dearer(self, calc):
        assert calc.likelihood_pct(WeatherParameter.TEMPERATURE, to_fixed(10), GT) == 166

    def test_less_than_mirrors_greater_than(self, calc):
        assert calc.likelihood_pct(WeatherParameter.TEMPERATURE, to_fixed(30), LT) == 166

    def test_clamped_both_ends(self, calc):
        assert calc.likelihood_pct(WeatherParameter.TEMPERATURE, to_fixed(90), GT) == MIN_LIKELIHOOD_PCT
        assert calc.likelihood_pct(WeatherParameter.TEMPERATURE, to_fixed(-90), GT) == MAX_LIKELIHOOD_PCT

    def test_equal_to_never_above_neutral(self, calc):
        assert calc.likelihood_pct(WeatherParameter.HUMIDITY, to_fixed(60), EQ) == 100
        assert calc.likelihood_pct(WeatherParameter.HUMIDITY, to_fixed(90), EQ) == MIN_LIKELIHOOD_PCT
        assert calc.likelihood_pct(WeatherParameter.HUMIDITY, to_fixed(30), EQ) == MIN_LIKELIHOOD_PCT


class TestRequiredPremium:

    def test_full_year_at_reference(self, calc):
        premium = calc.required_premium(
            YEAR_SECONDS, 1_000_000, WeatherParameter.TEMPERATURE, to_fixed(20), GT,
        )
        assert premium == 80_000

    def test_thirty_days_rainfall_rounds_up(self, calc):
        premium = calc.required_premium(
            30 * DAY_SECONDS, 1_000_000, WeatherParameter.RAINFALL, to_fixed(30), GT,
        )
        assert premium == 9_864

    def test_equal_to_discount(self, calc):
        gt = calc.required_premium(YEAR_SECONDS, 1_000_000, WeatherParameter.HUMIDITY, to_fixed(60), GT)
        eq = calc.required_premium(YEAR_SECONDS, 1_000_000, WeatherParameter.HUMIDITY, to_fixed(60), EQ)
        assert eq * 4 == gt

    def test_minimum_premium_floor(self, calc):
        premium = calc.required_premium(
            DAY_SECONDS, 10_000, WeatherParameter.TEMPERATURE, to_fixed(90), GT,
        )
        assert premium == RiskTable().min_premium

    def test_monotonic_in_payout_and_duration(self, calc):
        base = calc.required_premium(30 * DAY_SECONDS, 100_000, WeatherParameter.WIND_SPEED, to_fixed(25), GT)
        assert calc.required_premium(30 * DAY_SECONDS, 200_000, WeatherParameter.WIND_SPEED, to_fixed(25), GT) >= base
        assert calc.required_premium(60 * DAY_SECONDS, 100_000, WeatherParameter.WIND_SPEED, to_fixed(25), GT) >= base

    def test_deterministic(self, calc):
        args = (45 * DAY_SECONDS, 777_777, WeatherParameter.RAINFALL, to_fixed("12.5"), LT)
        assert calc.required_premium(*args) == calc.required_premium(*args)
        assert isinstance(calc.required_premium(*args), int)
