import datetime as dt

import pytest

from engine.models import MinuteCandle, PriceBar
from strategies.strategy import Decision, Strategy

T0 = dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc)
BAR = dt.timedelta(minutes=15)


class ScriptedStrategy(Strategy):
    """Test strategy whose decisions come from a callable(bar, history)."""

    name = "Scripted"
    description = "Decisions supplied by the test"

    def __init__(self, script, strategy_id="scripted"):
        super().__init__()
        self.id = strategy_id
        self.script = script

    def decide(self, bar, history):
        return self.script(bar, history)


class FakeFeed:
    """current_bar/history over a fixed bar list."""

    def __init__(self, bars):
        self.bars = list(bars)
        self.history_calls = []

    def current_bar(self):
        return self.bars[-1]

    def history(self, count=20):
        self.history_calls.append(count)
        return self.bars[:count]

    def minute_history(self, minutes=1000):
        from marketdata.client import MarketDataError

        raise MarketDataError("no minute data in tests")


@pytest.fixture
def make_bar():
    def _make(i, price, yes=50.0, no=50.0, volume=1000.0, candles=()):
        return PriceBar(
            timestamp=T0 + i * BAR,
            current_price=float(price),
            yes_price=yes,
            no_price=no,
            volume=volume,
            minute_candles=tuple(candles),
        )
    return _make


@pytest.fixture
def make_bars(make_bar):
    def _make(prices, **kwargs):
        return [make_bar(i, p, **kwargs) for i, p in enumerate(prices)]
    return _make


@pytest.fixture
def make_candles():
    def _make(start, closes):
        return [
            MinuteCandle(start + dt.timedelta(minutes=k), c, c, c, c, 10.0)
            for k, c in enumerate(closes)
        ]
    return _make


@pytest.fixture
def rising_bars(make_bars):
    return make_bars([50000 + 100 * i for i in range(25)])


@pytest.fixture
def falling_bars(make_bars):
    return make_bars([50000 - 100 * i for i in range(25)])


@pytest.fixture
def scripted():
    def _make(script, strategy_id="scripted"):
        return ScriptedStrategy(script, strategy_id)
    return _make


@pytest.fixture
def always_yes(scripted):
    return scripted(lambda bar, history: Decision.buy_yes(1), "always-yes")


@pytest.fixture
def fake_feed():
    return FakeFeed
