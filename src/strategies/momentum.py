# src/strategies/momentum.py

from typing import Any, Dict, List

from engine.models import PriceBar
from .indicators import price_points
from .strategy import Decision, Strategy


class MomentumStrategy(Strategy):
    """
    Follow the recent drift: bet YES after a rise, NO after a fall.

    With minute candles the lookback covers the last few minutes and the
    trigger is tighter (0.2%); on plain 15-minute bars it needs a 1% move.
    """

    id = "momentum"
    name = "Momentum Strategy"
    description = "Follows price momentum trends"

    def __init__(self, params: Dict[str, Any] | None = None):
        super().__init__(params)
        self.quantity: int = int(self.params.get("quantity", 5))
        self.max_lookback: int = int(self.params.get("max_lookback", 10))
        self.minute_threshold: float = float(self.params.get("minute_threshold", 0.002))
        self.bar_threshold: float = float(self.params.get("bar_threshold", 0.01))

    def _points(self, bar: PriceBar, history: List[PriceBar]) -> List[float]:
        points = price_points(bar, history)
        if points:
            return points

        if len(history) < 3:
            return []
        points = [h.current_price for h in history[-10:]]
        points.append(bar.current_price)
        return points

    def decide(self, bar: PriceBar, history: List[PriceBar]) -> Decision:
        points = self._points(bar, history)
        if len(points) < 5:
            return Decision.hold()

        lookback = min(self.max_lookback, len(points) // 2)
        recent = points[-lookback:]
        momentum = (recent[-1] - recent[0]) / recent[0]

        # more than 15 points only happens on the minute-candle path
        threshold = self.minute_threshold if len(points) > 15 else self.bar_threshold

        if abs(momentum) > threshold:
            if momentum > 0:
                return Decision.buy_yes(self.quantity)
            return Decision.buy_no(self.quantity)

        return Decision.hold()
