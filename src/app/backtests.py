# src/app/backtests.py

from flask import Blueprint, current_app, jsonify

from engine.backtest import BARS_PER_DAY, run_backtest
from engine.errors import InsufficientDataError
from engine.portfolio import INITIAL_BALANCE
from marketdata.client import MarketDataError
from persistence.store import save_backtest_run
from strategies.registry import create_all_strategies
from .common import (
    BadRequest,
    float_field,
    get_feed,
    int_field,
    json_body,
    read_only_response,
)

bp = Blueprint("backtests", __name__)

# Response trimming: full series are persisted with the run
MAX_TRADES_IN_RESPONSE = 50
BALANCE_SAMPLE_EVERY = 10


def _load_bars(feed, total_bars: int, use_minute_data: bool):
    if use_minute_data:
        try:
            return feed.minute_history(total_bars * 15)
        except MarketDataError as e:
            print(f"[backtests] WARNING: minute data unavailable ({e}); using 15-minute bars")
    return feed.history(total_bars)


@bp.route("/backtests", methods=["POST"])
def create_backtest():
    denied = read_only_response()
    if denied:
        return denied

    data = json_body()
    days = int_field(data, "days", 30)
    bars_per_day = int_field(data, "bars_per_day", BARS_PER_DAY)
    initial_balance = float_field(data, "initial_balance", INITIAL_BALANCE)
    use_minute_data = bool(data.get("use_minute_data", False))

    strategy_ids = data.get("strategies")
    if strategy_ids is not None and not isinstance(strategy_ids, list):
        raise BadRequest("'strategies' must be a list of strategy ids")
    params = data.get("params") or {}
    if not isinstance(params, dict):
        raise BadRequest("'params' must be an object keyed by strategy id")

    strategies = create_all_strategies(strategy_ids, params)

    total_bars = days * bars_per_day
    print(f"[backtests] running backtest with {total_bars} bars ({days} days of data)")
    bars = _load_bars(get_feed(), total_bars, use_minute_data)
    if len(bars) < 20:
        raise InsufficientDataError(
            f"Insufficient historical data for backtesting (need at least 20 bars, got {len(bars)})"
        )

    summary = run_backtest(
        strategies,
        bars,
        initial_balance=initial_balance,
        use_minute_data=use_minute_data,
    )

    run_id = None
    if current_app.config.get("SAVE_RUNS", True):
        config = {
            "days": days,
            "bars_per_day": bars_per_day,
            "initial_balance": initial_balance,
            "use_minute_data": use_minute_data,
            "strategies": [s.id for s in strategies],
            "params": params,
        }
        run_id = save_backtest_run(summary, config, current_app.config["RUNS_DIR"])

    return jsonify({
        "success": True,
        "run_id": run_id,
        "backtest": summary.to_dict(
            max_trades=MAX_TRADES_IN_RESPONSE,
            balance_every=BALANCE_SAMPLE_EVERY,
        ),
    })


@bp.route("/backtests", methods=["GET"])
def backtest_usage():
    return jsonify({
        "message": "Backtesting endpoint - POST to test strategies on historical data",
        "usage": {
            "method": "POST",
            "body": {
                "days": "Number of days of historical data to use (default: 30)",
                "bars_per_day": "Number of 15-minute bars per day (default: 96)",
                "initial_balance": "Starting balance for each strategy (default: 100)",
                "strategies": "Optional list of strategy ids (default: all)",
                "params": "Optional {strategy_id: {param: value}} overrides",
                "use_minute_data": "Use 1-minute candles inside each bar (default: false)",
            },
        },
    })
