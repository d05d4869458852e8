from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from engine.models import Direction, PriceBar


class Action(str, Enum):
    BUY_YES = "BUY_YES"
    BUY_NO = "BUY_NO"
    SELL = "SELL"
    HOLD = "HOLD"


@dataclass(frozen=True)
class Decision:
    action: Action
    quantity: int = 0     # contracts; only meaningful for BUY_*

    @classmethod
    def hold(cls) -> "Decision":
        return cls(Action.HOLD)

    @classmethod
    def sell(cls) -> "Decision":
        return cls(Action.SELL)

    @classmethod
    def buy_yes(cls, quantity: int = 1) -> "Decision":
        return cls(Action.BUY_YES, quantity)

    @classmethod
    def buy_no(cls, quantity: int = 1) -> "Decision":
        return cls(Action.BUY_NO, quantity)

    @property
    def direction(self) -> Optional[Direction]:
        if self.action == Action.BUY_YES:
            return Direction.UP
        if self.action == Action.BUY_NO:
            return Direction.DOWN
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {"action": self.action.value, "quantity": self.quantity}


class Strategy:
    id: str = ""
    name: str = ""
    description: str = ""

    def __init__(self, params: Dict[str, Any] | None = None):
        self.params = params or {}

    def decide(
        self,
        bar: PriceBar,            # current bar, decision made at its open
        history: List[PriceBar],  # preceding bars, oldest first
    ) -> Decision:
        """
        Called once per bar.
        Must not mutate the bars; returns a single Decision.
        """
        raise NotImplementedError

    def describe(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.name, "description": self.description}
