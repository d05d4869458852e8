# src/strategies/rsi.py

from typing import Any, Dict, List

from engine.models import PriceBar
from .indicators import compute_rsi, price_points
from .strategy import Decision, Strategy


class RSIStrategy(Strategy):
    """
    Fade RSI extremes: overbought (>70) bets NO, oversold (<30) bets YES.
    """

    id = "rsi"
    name = "RSI Strategy"
    description = "Uses Relative Strength Index indicator"

    def __init__(self, params: Dict[str, Any] | None = None):
        super().__init__(params)
        self.quantity: int = int(self.params.get("quantity", 5))
        self.period: int = int(self.params.get("period", 14))
        self.overbought: float = float(self.params.get("overbought", 70.0))
        self.oversold: float = float(self.params.get("oversold", 30.0))

    def decide(self, bar: PriceBar, history: List[PriceBar]) -> Decision:
        min_points = self.period + 1

        prices = price_points(bar, history)
        if not prices:
            if len(history) < min_points:
                return Decision.hold()
            prices = [h.current_price for h in history]
            prices.append(bar.current_price)

        if len(prices) < min_points:
            return Decision.hold()

        rsi = compute_rsi(prices, self.period)

        if rsi > self.overbought:
            return Decision.buy_no(self.quantity)
        if rsi < self.oversold:
            return Decision.buy_yes(self.quantity)

        return Decision.hold()
