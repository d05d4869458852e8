from __future__ import annotations

import argparse
import json
from pathlib import Path

from marketdata.bars import load_price_bars_csv
from marketdata.feed import MarketDataFeed
from marketdata.simulated import SimulatedMarket
from persistence.store import RUNS_DIR, save_backtest_run
from strategies.registry import STRATEGY_REGISTRY, create_all_strategies
from .backtest import BARS_PER_DAY, run_backtest
from .errors import EngineError
from .portfolio import INITIAL_BALANCE


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Backtest the binary UP/DOWN strategies over 15-minute bars."
    )
    src = p.add_mutually_exclusive_group()
    src.add_argument("--csv", type=Path, help="Bars CSV (timestamp,current_price,yes_price,no_price,volume).")
    src.add_argument("--days", type=int, default=30, help="Days of fxverify history to fetch (default: 30).")
    p.add_argument(
        "--strategies",
        nargs="+",
        choices=sorted(STRATEGY_REGISTRY),
        help="Subset of strategies to run (default: all).",
    )
    p.add_argument("--initial-balance", type=float, default=INITIAL_BALANCE)
    p.add_argument("--seed", type=int, help="Seed for the random strategy and simulated fallback.")
    p.add_argument("--no-minute-data", action="store_true", help="Ignore minute candles.")
    p.add_argument("--save", action="store_true", help=f"Persist the run under {RUNS_DIR}.")
    return p.parse_args()


def main() -> None:
    args = _parse_args()

    if args.csv:
        bars = load_price_bars_csv(args.csv)
    else:
        feed = MarketDataFeed(fallback=SimulatedMarket(args.seed))
        bars = feed.history(args.days * BARS_PER_DAY)

    params = {"random": {"seed": args.seed}} if args.seed is not None else {}
    strategies = create_all_strategies(args.strategies, params)

    try:
        summary = run_backtest(
            strategies,
            bars,
            initial_balance=args.initial_balance,
            use_minute_data=not args.no_minute_data,
        )
    except EngineError as e:
        print(f"[backtest] ERROR {e.kind}: {e}")
        raise SystemExit(2)

    print(json.dumps(summary.to_dict(max_trades=0, balance_every=len(bars)), indent=2))

    if args.save:
        config = {
            "source": str(args.csv) if args.csv else f"fxverify:{args.days}d",
            "strategies": [s.id for s in strategies],
            "initial_balance": args.initial_balance,
            "use_minute_data": not args.no_minute_data,
            "seed": args.seed,
        }
        save_backtest_run(summary, config)


if __name__ == "__main__":
    main()
