from typing import Any, Dict, List

from engine.models import PriceBar
from .strategy import Decision, Strategy


class MeanReversionStrategy(Strategy):
    id = "mean-reversion"
    name = "Mean Reversion Strategy"
    description = "Bets on price returning to average"

    def __init__(self, params: Dict[str, Any] | None = None):
        super().__init__(params)
        self.quantity: int = int(self.params.get("quantity", 5))
        self.min_history: int = int(self.params.get("min_history", 10))
        self.max_deviation: float = float(self.params.get("max_deviation", 0.02))

    def decide(self, bar: PriceBar, history: List[PriceBar]) -> Decision:
        if len(history) < self.min_history:
            return Decision.hold()

        prices = [h.current_price for h in history]
        avg = sum(prices) / len(prices)
        deviation = (bar.current_price - avg) / avg

        # stretched above the mean -> bet it comes back down
        if deviation > self.max_deviation:
            return Decision.buy_no(self.quantity)
        if deviation < -self.max_deviation:
            return Decision.buy_yes(self.quantity)

        return Decision.hold()
