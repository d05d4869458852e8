from typing import Any, Dict, List

from engine.models import PriceBar
from .indicators import return_volatility
from .strategy import Decision, Strategy


class VolatilityStrategy(Strategy):
    """
    When short-term volatility spikes above the longer baseline, bet on the
    latest move continuing.
    """

    id = "volatility"
    name = "Volatility Strategy"
    description = "Trades based on volatility patterns"

    def __init__(self, params: Dict[str, Any] | None = None):
        super().__init__(params)
        self.quantity: int = int(self.params.get("quantity", 5))
        self.min_history: int = int(self.params.get("min_history", 10))
        self.recent_window: int = int(self.params.get("recent_window", 5))
        self.spike_factor: float = float(self.params.get("spike_factor", 1.5))

    def decide(self, bar: PriceBar, history: List[PriceBar]) -> Decision:
        if len(history) < self.min_history:
            return Decision.hold()

        prices = [h.current_price for h in history]
        recent_vol = return_volatility(prices[-self.recent_window:])
        long_vol = return_volatility(prices)

        if recent_vol > long_vol * self.spike_factor:
            recent_change = prices[-1] - prices[-2]
            if recent_change > 0:
                return Decision.buy_yes(self.quantity)
            return Decision.buy_no(self.quantity)

        return Decision.hold()
