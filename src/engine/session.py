import datetime as dt
from typing import Any, Dict, List, Optional

from persistence.store import JsonStateStore
from strategies.registry import STRATEGY_REGISTRY, create_strategy
from .models import PerformanceRecord
from .portfolio import INITIAL_BALANCE
from .simulation import SimulationEngine


def today_str(now: Optional[dt.datetime] = None) -> str:
    now = now or dt.datetime.now(dt.timezone.utc)
    return now.date().isoformat()


def open_session(
    store: JsonStateStore,
    today: Optional[str] = None,
    initial_balance: float = INITIAL_BALANCE,
) -> SimulationEngine:
    """
    Load the live engine from `store`, creating every registered strategy on
    first use and rolling over to a fresh day when the date changed.
    """
    today = today or today_str()
    snapshots, last_reset_date = store.load()

    engine = SimulationEngine.from_snapshots(snapshots, initial_balance=initial_balance)
    for sid in STRATEGY_REGISTRY:
        if sid not in engine.strategies:
            engine.add_strategy(create_strategy(sid))

    if last_reset_date is None:
        store.save(engine.snapshots(), today)
    elif last_reset_date != today:
        roll_over(engine, store, last_reset_date, today)

    return engine


def roll_over(
    engine: SimulationEngine,
    store: JsonStateStore,
    closing_date: str,
    today: str,
) -> List[PerformanceRecord]:
    """
    Record each strategy's day under `closing_date`, then reset all state.
    """
    records = []
    for row in engine.performance():
        record = PerformanceRecord(
            strategy_id=row["strategy_id"],
            date=closing_date,
            starting_balance=row["starting_balance"],
            ending_balance=row["current_balance"],
            daily_return=row["daily_return"],
            total_trades=row["total_trades"],
            total_pnl=row["total_pnl"],
        )
        store.save_performance(record)
        records.append(record)

    engine.reset_all()
    store.save(engine.snapshots(), today)
    print(f"[session] rolled over {len(records)} strategies from {closing_date} to {today}")
    return records


def run_live_cycle(
    store: JsonStateStore,
    feed: Any,
    today: Optional[str] = None,
    history_count: int = 20,
) -> Dict[str, Any]:
    """
    One live step: fetch the current bar and recent history, let every
    strategy decide, settle at the current quotes, persist.
    """
    today = today or today_str()
    engine = open_session(store, today)

    bar = feed.current_bar()
    history = feed.history(history_count)

    decisions = engine.execute_cycle(bar, history)
    engine.settle_positions(bar)
    store.save(engine.snapshots(), today)

    return {
        "bar": bar.to_dict(),
        "decisions": {sid: d.to_dict() for sid, d in decisions.items()},
        "strategies": engine.snapshots(),
    }
