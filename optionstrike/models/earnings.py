from __future__ import annotations
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


@dataclass
class EarningsEvent:
    symbol: str
    date: str                              # announcement date, YYYY-MM-DD
    eps: Optional[float] = None
    eps_estimated: Optional[float] = None
    revenue: Optional[float] = None
    revenue_estimated: Optional[float] = None
    eps_growth: float = 0.0                # year-over-year, percent
    market_cap: Optional[float] = None
    time: str = "bmo"                      # "bmo" before open, "amc" after close

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EarningsEvent":
        return cls(
            symbol=data["symbol"],
            date=data["date"],
            eps=_optional_float(data.get("eps")),
            eps_estimated=_optional_float(data.get("eps_estimated")),
            revenue=_optional_float(data.get("revenue")),
            revenue_estimated=_optional_float(data.get("revenue_estimated")),
            eps_growth=float(data.get("eps_growth") or 0.0),
            market_cap=_optional_float(data.get("market_cap")),
            time=data.get("time") or "bmo",
        )

    @classmethod
    def from_vendor(cls, raw: Dict[str, Any], eps_growth: float = 0.0) -> "EarningsEvent":
        """Build from an earnings-calendar row (camelCase vendor keys)."""
        market_cap = _optional_float(raw.get("marketCap"))
        return cls(
            symbol=raw["symbol"],
            date=str(raw["date"])[:10],
            eps=_optional_float(raw.get("eps")),
            eps_estimated=_optional_float(raw.get("epsEstimated")),
            revenue=_optional_float(raw.get("revenue")),
            revenue_estimated=_optional_float(raw.get("revenueEstimated")),
            eps_growth=eps_growth,
            market_cap=market_cap if market_cap else None,
            time=raw.get("time") or "bmo",
        )
