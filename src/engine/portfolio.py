from typing import Any, Dict, List

from .models import Direction, Position, Trade

INITIAL_BALANCE = 100.0


class StrategyState:
    def __init__(self, initial_balance: float = INITIAL_BALANCE):
        self.initial_balance: float = initial_balance
        self.balance: float = initial_balance
        self.positions: Dict[Direction, Position] = {}
        self.trades: List[Trade] = []
        self.total_pnl: float = 0.0
        self.daily_return: float = 0.0

    def return_percent(self) -> float:
        if not self.initial_balance:
            return 0.0
        return (self.balance - self.initial_balance) / self.initial_balance * 100

    def get_state_view(self) -> Dict[str, Any]:
        """
        Snapshot used for persistence and reporting.
        {
            "balance": float,
            "initial_balance": float,
            "positions": [{"direction", "quantity", "average_price", "total_cost"}],
            "trades": [{"id", "timestamp", "direction", "price", "quantity", "cost"}],
            "total_pnl": float,
            "daily_return": float,
        }
        """
        return {
            "balance": self.balance,
            "initial_balance": self.initial_balance,
            "positions": [p.to_dict() for p in self.positions.values()],
            "trades": [t.to_dict() for t in self.trades],
            "total_pnl": self.total_pnl,
            "daily_return": self.daily_return,
        }

    @classmethod
    def from_state_view(cls, view: Dict[str, Any]) -> "StrategyState":
        state = cls(float(view.get("initial_balance", INITIAL_BALANCE)))
        state.balance = float(view["balance"])
        for raw in view.get("positions") or []:
            pos = Position.from_dict(raw)
            state.positions[pos.direction] = pos
        state.trades = [Trade.from_dict(t) for t in view.get("trades") or []]
        state.total_pnl = float(view.get("total_pnl", 0.0))
        state.daily_return = float(view.get("daily_return", 0.0))
        return state
