from __future__ import annotations
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from optionstrike.utils.timestamp import to_utc_datetime, utc_now


@dataclass
class Recommendation:
    symbol: str
    strike_price: float
    expiration_date: str         # YYYY-MM-DD
    premium: float
    confidence_score: float      # 0-100
    pop: float                   # probability of profit, 0-100
    delta: float                 # magnitude
    implied_volatility: float
    premium_percentage: float
    max_loss: float              # per contract
    breakeven: float
    earnings_date: Optional[str] = None
    volume: int = 0
    open_interest: int = 0
    stock_price: float = 0.0
    eps_growth: float = 0.0
    created_at: datetime = field(default_factory=utc_now)
    is_active: bool = True
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat() if self.created_at else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Recommendation":
        created_at = data.get("created_at")
        return cls(
            symbol=data["symbol"],
            strike_price=float(data["strike_price"]),
            expiration_date=str(data["expiration_date"])[:10],
            premium=float(data["premium"]),
            confidence_score=float(data["confidence_score"]),
            pop=float(data["pop"]),
            delta=float(data.get("delta") or 0.0),
            implied_volatility=float(data.get("implied_volatility") or 0.0),
            premium_percentage=float(data.get("premium_percentage") or 0.0),
            max_loss=float(data.get("max_loss") or 0.0),
            breakeven=float(data.get("breakeven") or 0.0),
            earnings_date=str(data["earnings_date"])[:10] if data.get("earnings_date") else None,
            volume=int(data.get("volume") or 0),
            open_interest=int(data.get("open_interest") or 0),
            stock_price=float(data.get("stock_price") or 0.0),
            eps_growth=float(data.get("eps_growth") or 0.0),
            created_at=to_utc_datetime(created_at) if created_at else utc_now(),
            is_active=bool(data.get("is_active", True)),
            id=data.get("id"),
        )
