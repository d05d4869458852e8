# src/strategies/indicators.py

from typing import List, Sequence

import numpy as np

from engine.models import PriceBar


def price_points(
    bar: PriceBar,
    history: Sequence[PriceBar],
    recent_bars: int = 5,
) -> List[float]:
    """
    Minute-level price points for a decision on `bar`:
      current bar's minute closes, then for each of the last `recent_bars`
      history bars its minute closes (or its bar price if it has none).

    Returns [] when the current bar carries no minute candles; callers
    fall back to bar-level prices.
    """
    if not bar.minute_candles:
        return []

    points = [c.close for c in bar.minute_candles]
    for h in list(history)[-recent_bars:]:
        if h.minute_candles:
            points.extend(c.close for c in h.minute_candles)
        else:
            points.append(h.current_price)
    return points


def compute_rsi(prices: Sequence[float], period: int = 14) -> float:
    """
    RSI from summed gains / losses over every change, each divided by `period`.
    """
    if len(prices) < period + 1:
        return 50.0

    changes = np.diff(np.asarray(prices, dtype=float))
    avg_gain = changes[changes > 0].sum() / period
    avg_loss = -changes[changes < 0].sum() / period

    if avg_loss == 0:
        return 100.0

    rs = avg_gain / avg_loss
    return float(100.0 - (100.0 / (1.0 + rs)))


def return_volatility(prices: Sequence[float]) -> float:
    """Population std-dev of simple bar-to-bar returns."""
    if len(prices) < 2:
        return 0.0
    arr = np.asarray(prices, dtype=float)
    returns = np.diff(arr) / arr[:-1]
    return float(np.std(returns))
