"""
Pricing and scoring for short put candidates.

All functions here are pure: no I/O and no state. They never raise on odd
inputs; zero guards and clamps keep outputs in range instead.
"""

from __future__ import annotations
from datetime import datetime
from typing import Optional
import math

from optionstrike.utils.timestamp import DateLike, to_utc_datetime, utc_now

RISK_FREE_RATE = 0.05
DAYS_PER_YEAR = 365.25
SECONDS_PER_DAY = 86400.0
SHARES_PER_CONTRACT = 100

# Abramowitz and Stegun 7.1.26
_A1 = 0.254829592
_A2 = -0.284496736
_A3 = 1.421413741
_A4 = -1.453152027
_A5 = 1.061405429
_P = 0.3275911

# Confidence score weights
IV_WEIGHT = 0.25
OPEN_INTEREST_WEIGHT = 0.20
VOLUME_WEIGHT = 0.20
EPS_WEIGHT = 0.15
POP_WEIGHT = 0.10
PREMIUM_WEIGHT = 0.10


def erf(x: float) -> float:
    """Error function approximation (max error ~1.5e-7)."""
    sign = 1.0 if x >= 0 else -1.0
    x = abs(x)
    t = 1.0 / (1.0 + _P * x)
    y = 1.0 - (((((_A5 * t + _A4) * t) + _A3) * t + _A2) * t + _A1) * t * math.exp(-x * x)
    return sign * y


def normal_cdf(x: float) -> float:
    return 0.5 * (1.0 + erf(x / math.sqrt(2.0)))


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def _number(value: Optional[float]) -> float:
    """None and NaN count as 0; infinities pass through and clamp at the score bounds."""
    if value is None:
        return 0.0
    value = float(value)
    return 0.0 if math.isnan(value) else value


def _seconds_to_expiry(expiration: DateLike, now: Optional[datetime]) -> float:
    now = to_utc_datetime(now) if now is not None else utc_now()
    return (to_utc_datetime(expiration) - now).total_seconds()


def time_to_expiry(expiration: DateLike, now: Optional[datetime] = None) -> float:
    """Years until expiration, never negative."""
    days = _seconds_to_expiry(expiration, now) / SECONDS_PER_DAY
    return max(0.0, days / DAYS_PER_YEAR)


def days_to_expiry(expiration: DateLike, now: Optional[datetime] = None) -> int:
    """Whole days until expiration, rounded up (can be negative)."""
    return math.ceil(_seconds_to_expiry(expiration, now) / SECONDS_PER_DAY)


def probability_of_profit(
    stock_price: float,
    strike: float,
    time_to_expiry_years: float,
    risk_free_rate: float = RISK_FREE_RATE,
    implied_volatility: float = 0.0,
) -> float:
    """
    Probability (percent) that a short put expires worthless.

    Uses the Black-Scholes d2 term, i.e. the risk-neutral probability that the
    stock finishes above the strike.
    """
    if time_to_expiry_years <= 0 or implied_volatility <= 0:
        return 0.0
    if stock_price <= 0 or strike <= 0:
        return 0.0

    sigma_sqrt_t = implied_volatility * math.sqrt(time_to_expiry_years)
    d2 = (
        math.log(stock_price / strike)
        + (risk_free_rate - 0.5 * implied_volatility ** 2) * time_to_expiry_years
    ) / sigma_sqrt_t
    return normal_cdf(d2) * 100.0


def confidence_score(
    implied_volatility: float,
    open_interest: float,
    volume: float,
    eps_growth: float,
    pop: float,
    premium_percentage: float,
) -> float:
    """
    Composite 0-100 ranking score.

    Lower IV, deeper liquidity, positive EPS growth, higher POP and richer
    premium all score higher.
    """
    implied_volatility = _number(implied_volatility)
    open_interest = _number(open_interest)
    volume = _number(volume)
    eps_growth = _number(eps_growth)
    pop = _number(pop)
    premium_percentage = _number(premium_percentage)

    iv_score = _clamp(100.0 - implied_volatility * 200.0)
    oi_score = _clamp(math.log10(max(1.0, open_interest)) * 25.0)
    volume_score = _clamp(math.log10(max(1.0, volume)) * 20.0)
    eps_score = _clamp((eps_growth + 50.0) * 1.33)
    pop_score = _clamp(pop)
    premium_score = _clamp(premium_percentage * 20.0)

    confidence = (
        iv_score * IV_WEIGHT
        + oi_score * OPEN_INTEREST_WEIGHT
        + volume_score * VOLUME_WEIGHT
        + eps_score * EPS_WEIGHT
        + pop_score * POP_WEIGHT
        + premium_score * PREMIUM_WEIGHT
    )
    return _clamp(confidence)


def breakeven(strike: float, premium: float) -> float:
    return strike - premium


def max_loss(strike: float, premium: float) -> float:
    """Loss if assigned and the stock goes to zero, per contract."""
    return (strike - premium) * SHARES_PER_CONTRACT


def premium_percentage(premium: float, stock_price: float) -> float:
    if stock_price <= 0:
        return 0.0
    return premium / stock_price * 100.0
