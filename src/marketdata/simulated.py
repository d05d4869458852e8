import datetime as dt
from typing import List, Optional

import numpy as np

from engine.models import PriceBar

BASE_PRICE = 50000.0
VOLATILITY = 0.02
BAR_INTERVAL = dt.timedelta(minutes=15)


def _quote(rng: np.random.Generator, change: float, timestamp: dt.datetime) -> PriceBar:
    current_price = BASE_PRICE * (1 + change)
    yes_price = 50 + change * 1000
    no_price = 100 - yes_price

    return PriceBar(
        timestamp=timestamp,
        current_price=float(round(current_price)),
        yes_price=max(1.0, min(99.0, round(yes_price, 2))),
        no_price=max(1.0, min(99.0, round(no_price, 2))),
        volume=float(rng.integers(1000, 11000)),
    )


class SimulatedMarket:
    """
    Random-walk-ish BTC quotes around 50k. Stands in for the real feed
    when it is unavailable; seed it for reproducible series.
    """

    def __init__(self, seed: Optional[int] = None):
        self.rng = np.random.default_rng(seed)

    def current_bar(self, now: Optional[dt.datetime] = None) -> PriceBar:
        now = now or dt.datetime.now(dt.timezone.utc)
        change = (self.rng.random() - 0.5) * VOLATILITY
        return _quote(self.rng, change, now)

    def history(self, count: int = 20, now: Optional[dt.datetime] = None) -> List[PriceBar]:
        now = now or dt.datetime.now(dt.timezone.utc)
        bars: List[PriceBar] = []
        for i in range(count):
            trend = (self.rng.random() - 0.5) * 0.001
            change = (self.rng.random() - 0.5) * VOLATILITY + trend * i
            bars.append(_quote(self.rng, change, now - (count - i) * BAR_INTERVAL))
        return bars
