import os
import time
from typing import Any, Dict, List, Optional

import requests
from dotenv import load_dotenv

# Load .env from repo root
load_dotenv()

FXVERIFY_BASE_URL = os.environ.get(
    "FXVERIFY_BASE_URL", "https://fxverify.com/api/live-chart/datafeed"
)
DEFAULT_SYMBOL = os.environ.get("FXVERIFY_SYMBOL", "IC Markets:BTCUSD")
REQUEST_TIMEOUT = float(os.environ.get("FXVERIFY_TIMEOUT", "15"))


class MarketDataError(RuntimeError):
    kind = "market_data"

    def to_dict(self):
        return {"kind": self.kind, "message": str(self)}


def fetch_fxverify_bars(
    symbol: str = DEFAULT_SYMBOL,
    resolution: int = 15,
    start_ts: Optional[int] = None,
    end_ts: Optional[int] = None,
    countback: int = 300,
) -> List[Dict[str, Any]]:
    """
    Call the fxverify datafeed bars endpoint.

    Returns raw OHLCV dicts sorted by time:
      [{"time": unix_s, "open", "high", "low", "close", "volume"}, ...]
    """
    end_ts = end_ts or int(time.time())
    start_ts = start_ts or end_ts - countback * resolution * 60

    url = f"{FXVERIFY_BASE_URL}/bars"
    params = {
        "symbol": symbol,
        "resolution": resolution,
        "from": start_ts,
        "to": end_ts,
        "countback": countback,
    }

    try:
        resp = requests.get(url, params=params, timeout=REQUEST_TIMEOUT)
        resp.raise_for_status()
        data = resp.json()
    except (requests.RequestException, ValueError) as e:
        raise MarketDataError(f"fxverify request failed: {e}") from e

    if data.get("s") == "error":
        raise MarketDataError(data.get("errmsg") or "fxverify returned an error")

    times = data.get("t")
    closes = data.get("c")
    if not times or not closes:
        raise MarketDataError("invalid response format from fxverify")

    opens = data.get("o") or []
    highs = data.get("h") or []
    lows = data.get("l") or []
    volumes = data.get("v") or []

    def _at(arr, idx, default):
        # missing / zero entries fall back like the upstream chart does
        return arr[idx] if idx < len(arr) and arr[idx] else default

    bars = []
    for idx, ts in enumerate(times):
        close = closes[idx]
        bars.append(
            {
                "time": int(ts),
                "open": _at(opens, idx, close),
                "high": _at(highs, idx, close),
                "low": _at(lows, idx, close),
                "close": close,
                "volume": _at(volumes, idx, 0),
            }
        )

    return sorted(bars, key=lambda b: b["time"])
