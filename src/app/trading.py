from flask import Blueprint, jsonify

from engine.session import open_session, roll_over, run_live_cycle, today_str
from engine.simulation import SimulationEngine
from engine.training import run_training_replay
from strategies.registry import create_all_strategies
from .common import BadRequest, get_feed, get_store, int_field, json_body, read_only_response

bp = Blueprint("trading", __name__)


@bp.route("/strategies", methods=["GET"])
def list_strategies():
    engine = open_session(get_store())
    return jsonify({
        "strategies": engine.snapshots(),
        "performance": engine.performance(),
    })


@bp.route("/trade", methods=["POST"])
def trade():
    denied = read_only_response()
    if denied:
        return denied

    result = run_live_cycle(get_store(), get_feed())
    return jsonify({"success": True, **result})


@bp.route("/market", methods=["GET"])
def market():
    feed = get_feed()
    current = feed.current_bar()
    history = feed.history(20)
    return jsonify({
        "current": current.to_dict(),
        "history": [b.to_dict() for b in history],
    })


@bp.route("/reset", methods=["POST"])
def reset():
    """Manual reset of one strategy (body: {"strategy_id": ...}) or all."""
    denied = read_only_response()
    if denied:
        return denied

    store = get_store()
    today = today_str()
    engine = open_session(store, today)

    strategy_id = json_body().get("strategy_id")
    if strategy_id:
        engine.reset(strategy_id)
    else:
        engine.reset_all()
    store.save(engine.snapshots(), today)

    return jsonify({"success": True, "reset": strategy_id or "all"})


@bp.route("/reset-daily", methods=["POST"])
def reset_daily():
    """Cron hook: close out yesterday's performance if the date changed."""
    denied = read_only_response()
    if denied:
        return denied

    store = get_store()
    today = today_str()
    _, last_reset_date = store.load()

    records = []
    if last_reset_date is not None and last_reset_date != today:
        engine = open_session(store, last_reset_date)
        records = roll_over(engine, store, last_reset_date, today)
    elif last_reset_date is None:
        open_session(store, today)

    return jsonify({
        "success": True,
        "message": "Daily reset check completed",
        "date": today,
        "rolled_over": [r.to_dict() for r in records],
    })


@bp.route("/train", methods=["POST"])
def train():
    denied = read_only_response()
    if denied:
        return denied

    data = json_body()
    days = int_field(data, "days", 7)
    bars_per_day = int_field(data, "bars_per_day", 96)

    bars = get_feed().history(days * bars_per_day)
    if not bars:
        raise BadRequest("No historical data available")

    # trained strategies replace the live session
    engine = SimulationEngine(create_all_strategies())
    progress = run_training_replay(engine, bars)
    get_store().save(engine.snapshots(), today_str())

    return jsonify({
        "success": True,
        "bars": len(bars),
        "progress": progress,
        "performance": engine.performance(),
    })
