# src/marketdata/bars.py

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import pandas as pd

from engine.models import MinuteCandle, PriceBar, parse_timestamp

PERIOD_MINUTES = 15


def binary_quotes(change_pct: float) -> tuple[float, float]:
    """
    Map a percent move to a YES/NO quote pair in cents.
    yes = clamp(50 + 10 * change%, 1, 99), no = 100 - yes.
    """
    yes_price = max(1.0, min(99.0, 50 + change_pct * 10))
    return round(yes_price, 2), round(100 - yes_price, 2)


def bars_to_price_bars(raw_bars: List[Dict[str, Any]]) -> List[PriceBar]:
    """
    Convert raw OHLCV dicts (see client.fetch_fxverify_bars) into PriceBars,
    quoting YES/NO from each bar's close-to-close change.
    """
    out: List[PriceBar] = []
    for idx, bar in enumerate(raw_bars):
        close = float(bar["close"])
        prev = float(raw_bars[idx - 1]["close"]) if idx > 0 else 0.0
        change_pct = (close - prev) / prev * 100 if prev else 0.0
        yes_price, no_price = binary_quotes(change_pct)

        out.append(
            PriceBar(
                timestamp=parse_timestamp(bar["time"]),
                current_price=float(round(close)),
                yes_price=yes_price,
                no_price=no_price,
                volume=float(round(bar.get("volume") or 0)),
                minute_candles=tuple(bar.get("minute_candles") or ()),
            )
        )
    return out


def aggregate_minutes(
    minute_bars: List[Dict[str, Any]],
    period_minutes: int = PERIOD_MINUTES,
) -> List[Dict[str, Any]]:
    """
    Roll 1-minute OHLCV dicts up into `period_minutes` buckets (floored to the
    period start) and attach each bucket's minute candles.
    """
    if not minute_bars:
        return []

    df = pd.DataFrame(minute_bars)
    df["ts"] = pd.to_datetime(df["time"], unit="s", utc=True)
    df = df.set_index("ts").sort_index()

    freq = f"{period_minutes}min"
    agg = (
        df.resample(freq)
        .agg({"open": "first", "high": "max", "low": "min", "close": "last", "volume": "sum"})
        .dropna(subset=["close"])
    )

    buckets = df.index.floor(freq)
    candles_by_period: Dict[pd.Timestamp, List[MinuteCandle]] = {}
    for bucket, (ts, row) in zip(buckets, df.iterrows()):
        candles_by_period.setdefault(bucket, []).append(
            MinuteCandle(
                timestamp=ts.to_pydatetime(),
                open=float(row["open"]),
                high=float(row["high"]),
                low=float(row["low"]),
                close=float(row["close"]),
                volume=float(row["volume"]),
            )
        )

    rows = []
    for ts, row in agg.iterrows():
        rows.append(
            {
                "time": int(ts.timestamp()),
                "open": float(row["open"]),
                "high": float(row["high"]),
                "low": float(row["low"]),
                "close": float(row["close"]),
                "volume": float(row["volume"]),
                "minute_candles": candles_by_period.get(ts, []),
            }
        )
    return rows


def load_price_bars_csv(path: Path) -> List[PriceBar]:
    """
    Load bars from CSV with columns:
      timestamp, current_price, yes_price, no_price[, volume]
    """
    df = pd.read_csv(path)
    missing = {"timestamp", "current_price", "yes_price", "no_price"} - set(df.columns)
    if missing:
        raise ValueError(f"{path}: missing columns {sorted(missing)}")

    if "volume" not in df.columns:
        df["volume"] = 0.0

    bars = [
        PriceBar(
            timestamp=parse_timestamp(row.timestamp),
            current_price=float(row.current_price),
            yes_price=float(row.yes_price),
            no_price=float(row.no_price),
            volume=float(row.volume),
        )
        for row in df.itertuples(index=False)
    ]
    bars.sort(key=lambda b: b.timestamp)
    print(f"[marketdata] Loaded {len(bars)} bars from {path}")
    return bars


def save_price_bars_csv(bars: List[PriceBar], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    df = pd.DataFrame(
        [
            {
                "timestamp": b.timestamp.isoformat(),
                "current_price": b.current_price,
                "yes_price": b.yes_price,
                "no_price": b.no_price,
                "volume": b.volume,
            }
            for b in bars
        ]
    )
    df.to_csv(path, index=False)
