import datetime as dt

import pytest
import requests

from marketdata import feed as feed_module
from marketdata.bars import (
    aggregate_minutes,
    bars_to_price_bars,
    binary_quotes,
    load_price_bars_csv,
    save_price_bars_csv,
)
from marketdata.client import MarketDataError, fetch_fxverify_bars
from marketdata.feed import MarketDataFeed
from marketdata.simulated import SimulatedMarket

START = 1704067200  # 2024-01-01T00:00:00Z


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")

    def json(self):
        return self.payload


@pytest.fixture
def fake_get(monkeypatch):
    calls = []

    def _install(response):
        def _get(url, params=None, timeout=None):
            calls.append({"url": url, "params": params, "timeout": timeout})
            if isinstance(response, Exception):
                raise response
            return response

        monkeypatch.setattr(requests, "get", _get)
        return calls

    return _install


def test_fetch_bars_sorts_and_fills_gaps(fake_get):
    calls = fake_get(FakeResponse({
        "s": "ok",
        "t": [START + 900, START],
        "o": [101.0],
        "c": [102.0, 100.0],
        "v": [5, 0],
    }))

    bars = fetch_fxverify_bars("IC Markets:BTCUSD", resolution=15, end_ts=START + 900, countback=2)

    assert [b["time"] for b in bars] == [START, START + 900]
    assert bars[0] == {"time": START, "open": 100.0, "high": 100.0, "low": 100.0, "close": 100.0, "volume": 0}
    assert bars[1]["open"] == 101.0
    assert bars[1]["volume"] == 5

    [call] = calls
    assert call["url"].endswith("/bars")
    assert call["params"]["symbol"] == "IC Markets:BTCUSD"
    assert call["params"]["resolution"] == 15
    assert call["params"]["countback"] == 2
    assert call["params"]["from"] == START + 900 - 2 * 15 * 60
    assert call["timeout"] is not None


def test_fetch_bars_error_status(fake_get):
    fake_get(FakeResponse({"s": "error", "errmsg": "unknown symbol"}))
    with pytest.raises(MarketDataError, match="unknown symbol"):
        fetch_fxverify_bars("nope")


def test_fetch_bars_missing_closes(fake_get):
    fake_get(FakeResponse({"s": "ok", "t": [START]}))
    with pytest.raises(MarketDataError, match="invalid response"):
        fetch_fxverify_bars()


def test_fetch_bars_http_failure(fake_get):
    fake_get(FakeResponse({}, status=503))
    with pytest.raises(MarketDataError):
        fetch_fxverify_bars()

    fake_get(requests.ConnectionError("down"))
    with pytest.raises(MarketDataError, match="down"):
        fetch_fxverify_bars()


def test_binary_quotes_clamped():
    assert binary_quotes(0.0) == (50.0, 50.0)
    assert binary_quotes(1.5) == (65.0, 35.0)
    assert binary_quotes(-10.0) == (1.0, 99.0)
    assert binary_quotes(10.0) == (99.0, 1.0)


def test_bars_to_price_bars_quotes_from_close_changes():
    raw = [
        {"time": START, "close": 100.4, "volume": 10.6},
        {"time": START + 900, "close": 101.404, "volume": 0},
    ]
    first, second = bars_to_price_bars(raw)

    assert first.timestamp == dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc)
    assert (first.current_price, first.yes_price, first.no_price) == (100.0, 50.0, 50.0)
    assert first.volume == 11.0
    assert (second.yes_price, second.no_price) == (60.0, 40.0)


def test_bars_after_zero_close_quote_neutral():
    raw = [{"time": START, "close": 0.0}, {"time": START + 900, "close": 5.0}]
    _, bar = bars_to_price_bars(raw)
    assert (bar.yes_price, bar.no_price) == (50.0, 50.0)


def test_aggregate_minutes_into_fifteen_minute_bars():
    minutes = [
        {"time": START + 60 * k, "open": 100.0 + k, "high": 100.5 + k, "low": 99.5 + k,
         "close": 100.0 + k, "volume": 1.0}
        for k in range(30)
    ]

    first, second = aggregate_minutes(minutes)

    assert first["time"] == START
    assert second["time"] == START + 900
    assert (first["open"], first["high"], first["low"], first["close"]) == (100.0, 114.5, 99.5, 114.0)
    assert first["volume"] == 15.0
    assert len(first["minute_candles"]) == 15
    assert first["minute_candles"][-1].close == 114.0
    assert second["minute_candles"][0].close == 115.0

    [bar, _] = bars_to_price_bars([first, second])
    assert len(bar.minute_candles) == 15


def test_feed_uses_fallback_when_fxverify_fails(monkeypatch, capsys):
    def _fail(*args, **kwargs):
        raise MarketDataError("offline")

    monkeypatch.setattr(feed_module, "fetch_fxverify_bars", _fail)

    feed = MarketDataFeed(fallback=SimulatedMarket(seed=3))
    assert len(feed.history(5)) == 5
    assert feed.current_bar().current_price > 0
    assert "using fallback source" in capsys.readouterr().out

    with pytest.raises(MarketDataError, match="offline"):
        MarketDataFeed().history(5)


def test_feed_reports_when_fallback_also_fails(monkeypatch):
    class Broken:
        def history(self, count):
            raise RuntimeError("generator broke")

    def _fail(*args, **kwargs):
        raise MarketDataError("offline")

    monkeypatch.setattr(feed_module, "fetch_fxverify_bars", _fail)
    with pytest.raises(MarketDataError, match="fallback source failed"):
        MarketDataFeed(fallback=Broken()).history(5)


def test_feed_current_bar_is_neutral(monkeypatch):
    monkeypatch.setattr(
        feed_module,
        "fetch_fxverify_bars",
        lambda *a, **kw: [{"time": START, "open": 1, "high": 1, "low": 1, "close": 42123.6, "volume": 7.2}],
    )
    bar = MarketDataFeed().current_bar()
    assert (bar.current_price, bar.yes_price, bar.no_price, bar.volume) == (42124.0, 50.0, 50.0, 7.0)


def test_simulated_market_is_seedable():
    now = dt.datetime(2024, 1, 2, tzinfo=dt.timezone.utc)
    a = SimulatedMarket(seed=11).history(30, now=now)
    b = SimulatedMarket(seed=11).history(30, now=now)
    assert a == b

    assert all(1.0 <= bar.yes_price <= 99.0 and 1.0 <= bar.no_price <= 99.0 for bar in a)
    assert all(later.timestamp - earlier.timestamp == dt.timedelta(minutes=15) for earlier, later in zip(a, a[1:]))
    assert a[-1].timestamp < now


def test_csv_bars(tmp_path, rising_bars):
    path = tmp_path / "bars" / "btc.csv"
    save_price_bars_csv(list(reversed(rising_bars)), path)

    loaded = load_price_bars_csv(path)
    assert [b.timestamp for b in loaded] == [b.timestamp for b in rising_bars]
    assert loaded[3].current_price == rising_bars[3].current_price

    bad = tmp_path / "bad.csv"
    bad.write_text("timestamp,current_price\n2024-01-01T00:00:00Z,1\n")
    with pytest.raises(ValueError, match="missing columns"):
        load_price_bars_csv(bad)
