from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Direction(str, Enum):
    UP = "UP"
    DOWN = "DOWN"


def parse_timestamp(value: Any) -> dt.datetime:
    """
    Accept datetimes, unix seconds or ISO strings (both ...+00:00 and ...Z).
    Naive values are treated as UTC.
    """
    if isinstance(value, dt.datetime):
        ts = value
    elif isinstance(value, (int, float)):
        ts = dt.datetime.fromtimestamp(value, tz=dt.timezone.utc)
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text.replace("Z", "+00:00")
        ts = dt.datetime.fromisoformat(text)

    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=dt.timezone.utc)
    return ts


@dataclass(frozen=True)
class MinuteCandle:
    timestamp: dt.datetime
    open: float
    high: float
    low: float
    close: float
    volume: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "MinuteCandle":
        return cls(
            timestamp=parse_timestamp(raw["timestamp"]),
            open=float(raw["open"]),
            high=float(raw["high"]),
            low=float(raw["low"]),
            close=float(raw["close"]),
            volume=float(raw.get("volume", 0.0)),
        )


@dataclass(frozen=True)
class PriceBar:
    timestamp: dt.datetime
    current_price: float
    yes_price: float     # cents to buy YES (price goes up)
    no_price: float      # cents to buy NO (price goes down)
    volume: float
    minute_candles: Tuple[MinuteCandle, ...] = ()

    def price_for(self, direction: Direction) -> float:
        return self.yes_price if direction == Direction.UP else self.no_price

    def with_prices(self, yes_price: float, no_price: float) -> "PriceBar":
        return replace(self, yes_price=yes_price, no_price=no_price)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "current_price": self.current_price,
            "yes_price": self.yes_price,
            "no_price": self.no_price,
            "volume": self.volume,
            "minute_candles": [c.to_dict() for c in self.minute_candles],
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "PriceBar":
        return cls(
            timestamp=parse_timestamp(raw["timestamp"]),
            current_price=float(raw["current_price"]),
            yes_price=float(raw["yes_price"]),
            no_price=float(raw["no_price"]),
            volume=float(raw.get("volume", 0.0)),
            minute_candles=tuple(
                MinuteCandle.from_dict(c) for c in raw.get("minute_candles") or []
            ),
        )


@dataclass
class Position:
    direction: Direction
    quantity: int
    average_price: float
    total_cost: float

    def add(self, quantity: int, cost: float) -> None:
        """Average a new fill into the position."""
        self.total_cost += cost
        self.quantity += quantity
        self.average_price = self.total_cost / self.quantity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "direction": self.direction.value,
            "quantity": self.quantity,
            "average_price": self.average_price,
            "total_cost": self.total_cost,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Position":
        return cls(
            direction=Direction(raw["direction"]),
            quantity=int(raw["quantity"]),
            average_price=float(raw["average_price"]),
            total_cost=float(raw["total_cost"]),
        )


@dataclass(frozen=True)
class Trade:
    id: str
    timestamp: dt.datetime
    direction: Direction
    price: float
    quantity: int
    cost: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "direction": self.direction.value,
            "price": self.price,
            "quantity": self.quantity,
            "cost": self.cost,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Trade":
        return cls(
            id=str(raw["id"]),
            timestamp=parse_timestamp(raw["timestamp"]),
            direction=Direction(raw["direction"]),
            price=float(raw["price"]),
            quantity=int(raw["quantity"]),
            cost=float(raw["cost"]),
        )


@dataclass(frozen=True)
class BalancePoint:
    timestamp: dt.datetime
    balance: float

    def to_dict(self) -> Dict[str, Any]:
        return {"timestamp": self.timestamp.isoformat(), "balance": self.balance}


@dataclass(frozen=True)
class PerformanceRecord:
    strategy_id: str
    date: str              # YYYY-MM-DD
    starting_balance: float
    ending_balance: float
    daily_return: float
    total_trades: int
    total_pnl: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy_id": self.strategy_id,
            "date": self.date,
            "starting_balance": self.starting_balance,
            "ending_balance": self.ending_balance,
            "daily_return": self.daily_return,
            "total_trades": self.total_trades,
            "total_pnl": self.total_pnl,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "PerformanceRecord":
        return cls(
            strategy_id=raw["strategy_id"],
            date=raw["date"],
            starting_balance=float(raw["starting_balance"]),
            ending_balance=float(raw["ending_balance"]),
            daily_return=float(raw["daily_return"]),
            total_trades=int(raw["total_trades"]),
            total_pnl=float(raw["total_pnl"]),
        )


def _finite_or_none(value: float) -> Optional[float]:
    # JSON has no Infinity; profit factor may be inf
    return value if math.isfinite(value) else None


@dataclass(frozen=True)
class BacktestResult:
    strategy_id: str
    strategy_name: str
    starting_balance: float
    ending_balance: float
    total_return: float
    total_return_percent: float
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    total_pnl: float       # engine settlement P&L, not reconciled with win/loss
    average_win: float
    average_loss: float
    profit_factor: float
    max_drawdown: float
    max_drawdown_percent: float
    sharpe_ratio: float
    trades: Tuple[Trade, ...] = ()
    balance_history: Tuple[BalancePoint, ...] = ()
    daily_returns: Tuple[float, ...] = ()

    def to_dict(
        self,
        max_trades: Optional[int] = None,
        balance_every: int = 1,
    ) -> Dict[str, Any]:
        trades = list(self.trades)
        if max_trades is not None:
            trades = trades[-max_trades:] if max_trades > 0 else []
        history = list(self.balance_history)[::max(1, balance_every)]

        return {
            "strategy_id": self.strategy_id,
            "strategy_name": self.strategy_name,
            "starting_balance": self.starting_balance,
            "ending_balance": self.ending_balance,
            "total_return": self.total_return,
            "total_return_percent": self.total_return_percent,
            "total_trades": self.total_trades,
            "winning_trades": self.winning_trades,
            "losing_trades": self.losing_trades,
            "win_rate": self.win_rate,
            "total_pnl": self.total_pnl,
            "average_win": self.average_win,
            "average_loss": self.average_loss,
            "profit_factor": _finite_or_none(self.profit_factor),
            "max_drawdown": self.max_drawdown,
            "max_drawdown_percent": self.max_drawdown_percent,
            "sharpe_ratio": self.sharpe_ratio,
            "trades": [t.to_dict() for t in trades],
            "balance_history": [p.to_dict() for p in history],
            "daily_returns": list(self.daily_returns),
        }


@dataclass(frozen=True)
class BacktestPeriod:
    start: dt.datetime
    end: dt.datetime
    total_bars: int
    days: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "total_bars": self.total_bars,
            "days": self.days,
        }


@dataclass(frozen=True)
class BacktestSummary:
    period: BacktestPeriod
    results: List[BacktestResult] = field(default_factory=list)
    best: Optional[BacktestResult] = None
    worst: Optional[BacktestResult] = None
    average_return: float = 0.0
    average_win_rate: float = 0.0

    def to_dict(
        self,
        max_trades: Optional[int] = None,
        balance_every: int = 1,
    ) -> Dict[str, Any]:
        def _ref(r: Optional[BacktestResult]) -> Optional[Dict[str, Any]]:
            if r is None:
                return None
            return {
                "id": r.strategy_id,
                "name": r.strategy_name,
                "return": r.total_return_percent,
                "win_rate": r.win_rate,
            }

        return {
            "period": self.period.to_dict(),
            "results": [
                r.to_dict(max_trades=max_trades, balance_every=balance_every)
                for r in self.results
            ],
            "best": _ref(self.best),
            "worst": _ref(self.worst),
            "average_return": self.average_return,
            "average_win_rate": self.average_win_rate,
        }
