"""
Tests for the pricing and scoring functions.
"""

import math
from datetime import datetime, timezone

import pytest

from optionstrike.strategy import pricing

NOW = datetime(2025, 7, 11, tzinfo=timezone.utc)


@pytest.mark.parametrize("x", [-3.0, -1.2, -0.5, 0.0, 0.3, 1.0, 2.5])
def test_erf_matches_math_erf(x):
    assert pricing.erf(x) == pytest.approx(math.erf(x), abs=2e-7)


def test_normal_cdf_is_symmetric():
    assert pricing.normal_cdf(0.0) == pytest.approx(0.5, abs=1e-7)
    assert pricing.normal_cdf(1.0) + pricing.normal_cdf(-1.0) == pytest.approx(1.0, abs=1e-7)


def test_probability_of_profit_matches_black_scholes_d2():
    years = 7 / 365.25
    d2 = (math.log(100 / 95) + (0.05 - 0.5 * 0.3 ** 2) * years) / (0.3 * math.sqrt(years))
    expected = 0.5 * (1 + math.erf(d2 / math.sqrt(2))) * 100

    pop = pricing.probability_of_profit(100.0, 95.0, years, 0.05, 0.30)

    assert pop == pytest.approx(expected, abs=1e-4)
    assert 87.0 <= pop <= 93.0


@pytest.mark.parametrize("args", [
    (100.0, 95.0, 0.0, 0.05, 0.3),     # expired
    (100.0, 95.0, -0.1, 0.05, 0.3),
    (100.0, 95.0, 0.05, 0.05, 0.0),    # no volatility
    (0.0, 95.0, 0.05, 0.05, 0.3),      # no stock price
    (100.0, 0.0, 0.05, 0.05, 0.3),
])
def test_probability_of_profit_degenerate_inputs_return_zero(args):
    assert pricing.probability_of_profit(*args) == 0.0


def test_probability_of_profit_falls_as_strike_rises():
    years = 14 / 365.25
    far = pricing.probability_of_profit(100.0, 85.0, years, 0.05, 0.4)
    near = pricing.probability_of_profit(100.0, 98.0, years, 0.05, 0.4)
    assert 0.0 <= near < far <= 100.0


def test_time_to_expiry_never_negative():
    assert pricing.time_to_expiry("2025-07-18", NOW) == pytest.approx(7 / 365.25)
    assert pricing.time_to_expiry("2025-07-01", NOW) == 0.0


def test_days_to_expiry_rounds_up():
    later = datetime(2025, 7, 11, 12, 0, tzinfo=timezone.utc)
    assert pricing.days_to_expiry("2025-07-18", NOW) == 7
    assert pricing.days_to_expiry("2025-07-18", later) == 7
    assert pricing.days_to_expiry("2025-07-05", NOW) == -6


def test_confidence_score_stays_in_range():
    best = pricing.confidence_score(0.0, 1e9, 1e9, 500.0, 100.0, 50.0)
    worst = pricing.confidence_score(5.0, 0, 0, -500.0, 0.0, 0.0)
    assert best == pytest.approx(100.0)
    assert worst == pytest.approx(0.0)


def test_confidence_score_treats_nan_and_none_as_zero():
    score = pricing.confidence_score(float("nan"), 1000, 100, None, 90.0, 4.0)
    expected = pricing.confidence_score(0.0, 1000, 100, 0.0, 90.0, 4.0)
    assert score == pytest.approx(expected)


def test_confidence_score_saturates_on_infinities():
    inf = float("inf")
    # infinite IV is the worst IV score, infinite liquidity the best
    assert pricing.confidence_score(inf, 1000, 100, 0.0, 90.0, 4.0) == pytest.approx(
        pricing.confidence_score(0.5, 1000, 100, 0.0, 90.0, 4.0)
    )
    assert pricing.confidence_score(0.30, inf, inf, 0.0, 90.0, 4.0) == pytest.approx(
        pricing.confidence_score(0.30, 1e4, 1e5, 0.0, 90.0, 4.0)
    )
    assert pricing.confidence_score(inf, inf, inf, inf, inf, inf) == pytest.approx(75.0)
    assert pricing.confidence_score(-inf, -inf, -inf, -inf, -inf, -inf) == pytest.approx(25.0)


def test_confidence_score_weights():
    # iv 0.3 -> 40, oi 1000 -> 75, volume 100 -> 40, eps 0 -> 66.5, pop 90, premium 4% -> 80
    score = pricing.confidence_score(0.30, 1000, 100, 0.0, 90.0, 4.0)
    expected = 40 * 0.25 + 75 * 0.20 + 40 * 0.20 + 66.5 * 0.15 + 90 * 0.10 + 80 * 0.10
    assert score == pytest.approx(expected)


def test_breakeven_and_max_loss():
    assert pricing.breakeven(95.0, 4.0) == 91.0
    assert pricing.max_loss(95.0, 4.0) == 9100.0


def test_premium_percentage():
    assert pricing.premium_percentage(4.0, 100.0) == pytest.approx(4.0)
    assert pricing.premium_percentage(4.0, 0.0) == 0.0
