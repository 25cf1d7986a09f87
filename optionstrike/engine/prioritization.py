from __future__ import annotations
from typing import Iterable, List, Tuple
import logging
import math

from optionstrike.data.earnings import is_standard_ticker
from optionstrike.engine.criteria import RecommendationCriteria
from optionstrike.models.earnings import EarningsEvent

logger = logging.getLogger(__name__)

# Known liquid names get a flat bonus
MEGA_CAP_SYMBOLS = frozenset({"AAPL", "MSFT", "GOOGL", "AMZN", "TSLA", "NVDA", "META", "NFLX"})
MEGA_CAP_BONUS = 30.0


def priority_score(event: EarningsEvent) -> float:
    """
    Rank a symbol for options analysis.

    Larger market cap, stronger EPS growth, larger revenue and shorter
    tickers (presumed more liquid) all score higher.
    """
    score = 0.0

    if event.market_cap and event.market_cap > 0:
        score += min(50.0, math.log10(event.market_cap / 1e9) * 10)

    if event.eps_growth:
        score += max(-10.0, min(20.0, event.eps_growth / 5))

    if event.revenue and event.revenue > 0:
        score += min(20.0, math.log10(event.revenue / 1000) * 5)

    score += (6 - len(event.symbol)) * 2

    if event.symbol.upper() in MEGA_CAP_SYMBOLS:
        score += MEGA_CAP_BONUS

    return score


def prioritize_symbols(
    earnings: Iterable[EarningsEvent],
    criteria: RecommendationCriteria,
) -> List[str]:
    """
    Filter and rank earnings symbols; keep the top max_symbols_to_process.

    Symbols failing ticker syntax or below min_market_cap (when a market cap
    is known) are dropped. The first event seen for a symbol is used.
    """
    scored: List[Tuple[str, float]] = []
    seen = set()

    for event in earnings:
        symbol = event.symbol
        if symbol in seen:
            continue
        seen.add(symbol)

        if not is_standard_ticker(symbol):
            logger.debug(f"[Engine] Filtered out {symbol!r} - not a standard ticker")
            continue
        if event.market_cap and event.market_cap < criteria.min_market_cap:
            logger.debug(f"[Engine] Filtered out {symbol} - market cap too low: {event.market_cap}")
            continue

        scored.append((symbol, priority_score(event)))

    # stable sort keeps calendar order among equal scores
    scored.sort(key=lambda item: item[1], reverse=True)
    selected = scored[:criteria.max_symbols_to_process]

    if selected:
        top = ", ".join(f"{symbol} ({score:.1f})" for symbol, score in selected[:10])
        logger.info(f"[Engine] Prioritized {len(selected)} of {len(scored)} symbols. Top: {top}")
    return [symbol for symbol, _ in selected]
