from __future__ import annotations
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List


@dataclass
class OptionContract:
    symbol: str                  # underlying ticker
    strike: float
    expiration: str              # YYYY-MM-DD
    premium: float               # bid/ask mid when market open, else last trade
    delta: float                 # signed, negative for puts
    implied_volatility: float    # fraction, 0.30 == 30%
    volume: int = 0
    open_interest: int = 0
    bid: float = 0.0
    ask: float = 0.0
    stock_price: float = 0.0
    option_type: str = "put"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OptionContract":
        return cls(
            symbol=data["symbol"],
            strike=float(data["strike"]),
            expiration=data["expiration"],
            premium=float(data.get("premium") or 0.0),
            delta=float(data.get("delta") or 0.0),
            implied_volatility=float(data.get("implied_volatility") or 0.0),
            volume=int(data.get("volume") or 0),
            open_interest=int(data.get("open_interest") or 0),
            bid=float(data.get("bid") or 0.0),
            ask=float(data.get("ask") or 0.0),
            stock_price=float(data.get("stock_price") or 0.0),
            option_type=data.get("option_type", "put"),
        )


@dataclass
class OptionsChain:
    symbol: str
    underlying_price: float
    options: List[OptionContract] = field(default_factory=list)
    timestamp: str = ""
    status: str = "OK"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "underlying_price": self.underlying_price,
            "options": [o.to_dict() for o in self.options],
            "timestamp": self.timestamp,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OptionsChain":
        return cls(
            symbol=data["symbol"],
            underlying_price=float(data.get("underlying_price") or 0.0),
            options=[OptionContract.from_dict(o) for o in data.get("options") or []],
            timestamp=data.get("timestamp", ""),
            status=data.get("status", "OK"),
        )
