"""
Filtering criteria for put candidates.

RecommendationCriteria is immutable: updating it produces a new value, so a
pipeline run keeps the criteria it started with even if they change mid-run.
"""

from __future__ import annotations
from dataclasses import asdict, dataclass, fields, replace
from datetime import datetime
from typing import Any, Dict, Mapping, Optional
import logging

from optionstrike.models.option import OptionContract
from optionstrike.strategy.pricing import days_to_expiry, premium_percentage
from optionstrike.utils.timestamp import DateLike, to_utc_datetime

logger = logging.getLogger(__name__)

# Premiums above this fraction of the stock price are treated as bad quotes
MAX_PREMIUM_FRACTION = 0.10

# camelCase names used by dashboard clients
_CAMEL_CASE_ALIASES = {
    "minDelta": "min_delta",
    "minPremiumPercentage": "min_premium_percentage",
    "minPOP": "min_pop",
    "maxPOP": "max_pop",
    "maxDaysToExpiry": "max_days_to_expiry",
    "minDaysToExpiry": "min_days_to_expiry",
    "maxSymbolsToProcess": "max_symbols_to_process",
    "minMarketCap": "min_market_cap",
    "minVolume": "min_volume",
    "minOpenInterest": "min_open_interest",
    "batchSize": "batch_size",
    "maxRecommendations": "max_recommendations",
    "riskFreeRate": "risk_free_rate",
}


def _coerce(name: str, current: Any, value: Any) -> Any:
    """Convert value to the field's type; whole-number fields reject fractions."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number, got {value!r}")
    if isinstance(current, int):
        if not number.is_integer():
            raise ValueError(f"{name} must be a whole number, got {value!r}")
        return int(number)
    return number


@dataclass(frozen=True)
class RecommendationCriteria:
    min_delta: float = 0.2                 # max |delta|; only far OTM puts
    min_premium_percentage: float = 3.5    # premium as % of stock price
    min_pop: float = 87.0
    max_pop: float = 93.0
    max_days_to_expiry: int = 14
    min_days_to_expiry: int = 1
    max_symbols_to_process: int = 50
    min_market_cap: float = 1e9
    min_volume: int = 10
    min_open_interest: int = 50
    batch_size: int = 10
    max_recommendations: int = 30
    risk_free_rate: float = 0.05

    def __post_init__(self):
        if self.min_pop > self.max_pop:
            raise ValueError(f"min_pop ({self.min_pop}) must not exceed max_pop ({self.max_pop})")
        if self.min_days_to_expiry > self.max_days_to_expiry:
            raise ValueError(
                f"min_days_to_expiry ({self.min_days_to_expiry}) must not exceed "
                f"max_days_to_expiry ({self.max_days_to_expiry})"
            )
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {self.batch_size}")
        if self.max_symbols_to_process < 0 or self.max_recommendations < 0:
            raise ValueError("max_symbols_to_process and max_recommendations must not be negative")

    def updated(self, partial: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> "RecommendationCriteria":
        """
        Return a copy with only the explicitly given fields replaced.

        Keys may use snake_case or the camelCase names dashboard clients
        send. None values are ignored.

        Raises:
            ValueError: for unknown keys, non-numeric or fractional values
                where a whole number is expected, or inconsistent bounds.
        """
        changes: Dict[str, Any] = {}
        known = {f.name for f in fields(self)}
        for key, value in {**(partial or {}), **kwargs}.items():
            if value is None:
                continue
            name = _CAMEL_CASE_ALIASES.get(key, key)
            if name not in known:
                raise ValueError(f"Unknown criteria field: '{key}'")
            current = getattr(self, name)
            changes[name] = _coerce(name, current, value)

        if not changes:
            return self

        new_criteria = replace(self, **changes)
        logger.info(f"[Engine] Updated filtering criteria: {changes}")
        return new_criteria

    @classmethod
    def from_config(cls, config: Optional[Mapping[str, Any]]) -> "RecommendationCriteria":
        """Build from a `criteria:` section of a YAML config (missing keys keep defaults)."""
        return cls().updated(config or {})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def meets_basic_criteria(
    option: OptionContract,
    stock_price: float,
    earnings_date: DateLike,
    criteria: RecommendationCriteria,
    now: Optional[datetime] = None,
) -> bool:
    """All liquidity, pricing and timing checks that don't need POP."""
    if abs(option.delta) > criteria.min_delta:
        logger.debug(f"[Engine] {option.symbol} {option.strike}P: delta too high ({abs(option.delta)} > {criteria.min_delta})")
        return False

    pct = premium_percentage(option.premium, stock_price)
    if pct < criteria.min_premium_percentage:
        logger.debug(f"[Engine] {option.symbol} {option.strike}P: premium {pct:.2f}% < {criteria.min_premium_percentage}%")
        return False

    days = days_to_expiry(option.expiration, now)
    if days < criteria.min_days_to_expiry or days > criteria.max_days_to_expiry:
        logger.debug(
            f"[Engine] {option.symbol} {option.strike}P: {days} days to expiry outside "
            f"{criteria.min_days_to_expiry}-{criteria.max_days_to_expiry}"
        )
        return False

    # the trade must carry the earnings event
    if to_utc_datetime(option.expiration) <= to_utc_datetime(earnings_date):
        logger.debug(f"[Engine] {option.symbol} {option.strike}P: expires {option.expiration} before earnings {earnings_date}")
        return False

    if option.volume < criteria.min_volume or option.open_interest < criteria.min_open_interest:
        logger.debug(f"[Engine] {option.symbol} {option.strike}P: volume/OI too low ({option.volume}/{option.open_interest})")
        return False

    if option.premium <= 0 or option.premium > stock_price * MAX_PREMIUM_FRACTION:
        logger.debug(f"[Engine] {option.symbol} {option.strike}P: premium {option.premium} unreasonable for stock {stock_price}")
        return False

    return True
