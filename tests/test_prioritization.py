import pytest

from optionstrike.engine.criteria import RecommendationCriteria
from optionstrike.engine.prioritization import MEGA_CAP_BONUS, prioritize_symbols, priority_score
from optionstrike.models.earnings import EarningsEvent


def event(symbol, market_cap=10e9, revenue=1e9, eps_growth=0.0, day="2025-07-15"):
    return EarningsEvent(symbol=symbol, date=day, revenue=revenue, market_cap=market_cap, eps_growth=eps_growth)


def test_filters_bad_tickers_and_small_caps():
    earnings = [
        event("ABC"),
        event("BRK.B"),
        event("AB1"),
        event("^VIX"),
        event("abc"),
        event("TOOLONG"),
        event("TINY", market_cap=5e8),
    ]
    assert prioritize_symbols(earnings, RecommendationCriteria()) == ["ABC"]


def test_unknown_market_cap_is_kept():
    assert prioritize_symbols([event("XYZ", market_cap=None)], RecommendationCriteria()) == ["XYZ"]


def test_first_event_per_symbol_wins():
    earnings = [event("ABC", day="2025-07-15"), event("ABC", day="2025-07-22"), event("DEF")]
    assert sorted(prioritize_symbols(earnings, RecommendationCriteria())) == ["ABC", "DEF"]


def test_orders_by_score_and_truncates():
    earnings = [
        event("SMAL", market_cap=2e9, revenue=1e8),
        event("BIGCO", market_cap=500e9, revenue=50e9, eps_growth=40.0),
        event("AAPL", market_cap=50e9),
    ]
    criteria = RecommendationCriteria(max_symbols_to_process=2)
    assert prioritize_symbols(earnings, criteria) == ["AAPL", "BIGCO"]


def test_equal_scores_keep_calendar_order():
    earnings = [event("ABC"), event("DEF"), event("GHI")]
    assert prioritize_symbols(earnings, RecommendationCriteria()) == ["ABC", "DEF", "GHI"]


def test_mega_cap_bonus():
    plain = priority_score(event("ABCD"))
    mega = priority_score(event("META"))
    assert mega - plain == pytest.approx(MEGA_CAP_BONUS)


def test_eps_growth_contribution_is_clamped():
    base = priority_score(event("ABC"))
    assert priority_score(event("ABC", eps_growth=1000.0)) - base == pytest.approx(20.0)
    assert priority_score(event("ABC", eps_growth=-1000.0)) - base == pytest.approx(-10.0)
