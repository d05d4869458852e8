# src/strategies/random_bets.py

from typing import Any, Dict, List

import numpy as np

from engine.models import PriceBar
from .strategy import Decision, Strategy


class RandomStrategy(Strategy):
    """
    Coin-flip baseline: trade on ~30% of bars, random side, random size.
    Pass params={"seed": n} for a reproducible sequence.
    """

    id = "random"
    name = "Random Strategy"
    description = "Makes random trading decisions"

    def __init__(self, params: Dict[str, Any] | None = None):
        super().__init__(params)
        self.trade_probability: float = float(self.params.get("trade_probability", 0.3))
        self.max_quantity: int = int(self.params.get("max_quantity", 10))
        self.rng = np.random.default_rng(self.params.get("seed"))

    def decide(self, bar: PriceBar, history: List[PriceBar]) -> Decision:
        if self.rng.random() < self.trade_probability:
            quantity = int(self.rng.integers(1, self.max_quantity + 1))
            if self.rng.random() < 0.5:
                return Decision.buy_yes(quantity)
            return Decision.buy_no(quantity)
        return Decision.hold()
