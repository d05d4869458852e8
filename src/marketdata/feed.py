from typing import Any, Callable, List, Optional

from engine.models import PriceBar, parse_timestamp
from .bars import aggregate_minutes, bars_to_price_bars
from .client import DEFAULT_SYMBOL, MarketDataError, fetch_fxverify_bars


class MarketDataFeed:
    """
    Live / historical PriceBars from fxverify, with an optional substitute
    source used when the real feed fails.

    `fallback` is any object exposing `current_bar()` and `history(count)`
    (e.g. marketdata.simulated.SimulatedMarket). The engine never sees which
    source produced the bars.
    """

    def __init__(
        self,
        symbol: str = DEFAULT_SYMBOL,
        resolution: int = 15,
        fallback: Optional[Any] = None,
    ):
        self.symbol = symbol
        self.resolution = resolution
        self.fallback = fallback

    # -------------------------
    # Public API
    # -------------------------

    def current_bar(self) -> PriceBar:
        try:
            raw = fetch_fxverify_bars(self.symbol, self.resolution, countback=1)
            if not raw:
                raise MarketDataError("no data received from fxverify")
            latest = raw[-1]
            # neutral 50/50 market until real contract quotes are wired in
            return PriceBar(
                timestamp=parse_timestamp(latest["time"]),
                current_price=float(round(latest["close"])),
                yes_price=50.0,
                no_price=50.0,
                volume=float(round(latest["volume"])),
            )
        except MarketDataError as e:
            return self._use_fallback("current bar", e, lambda f: f.current_bar())

    def history(self, count: int = 20) -> List[PriceBar]:
        try:
            raw = fetch_fxverify_bars(self.symbol, self.resolution, countback=count)
            if not raw:
                raise MarketDataError("no historical data from fxverify")
            return bars_to_price_bars(raw)
        except MarketDataError as e:
            return self._use_fallback("history", e, lambda f: f.history(count))

    def minute_history(self, minutes: int = 1000) -> List[PriceBar]:
        """
        Fetch 1-minute candles and roll them into 15-minute PriceBars that
        carry their minute candles. No fallback: simulated data has no
        minute detail, callers should use history() instead.
        """
        raw_minutes = fetch_fxverify_bars(self.symbol, 1, countback=minutes)
        return bars_to_price_bars(aggregate_minutes(raw_minutes, self.resolution))

    # -------------------------
    # Internal helpers
    # -------------------------

    def _use_fallback(self, what: str, error: Exception, produce: Callable[[Any], Any]):
        if self.fallback is None:
            raise error

        print(f"[marketdata] WARNING: fxverify {what} failed ({error}); using fallback source")
        try:
            return produce(self.fallback)
        except Exception as e:  # noqa: BLE001
            raise MarketDataError(f"fallback source failed for {what}: {e}") from e
