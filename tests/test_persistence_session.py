import csv
import json

from engine.backtest import run_backtest
from engine.execution import apply_decision
from engine.models import PerformanceRecord
from engine.session import open_session, run_live_cycle
from engine.simulation import SimulationEngine
from engine.training import run_training_replay
from persistence.store import JsonStateStore, save_backtest_run
from strategies.registry import STRATEGY_REGISTRY
from strategies.strategy import Decision


def _record(sid="momentum", date="2024-01-01", ending=110.0):
    return PerformanceRecord(sid, date, 100.0, ending, ending - 100.0, 3, ending - 100.0)


def test_empty_store_loads_nothing(tmp_path):
    assert JsonStateStore(tmp_path).load() == ([], None)
    assert JsonStateStore(tmp_path).load_performance() == []


def test_store_save_and_load(tmp_path):
    store = JsonStateStore(tmp_path / "state")
    store.save([{"id": "rsi", "balance": 90.0}], "2024-01-01")

    snapshots, last_reset = store.load()
    assert snapshots == [{"id": "rsi", "balance": 90.0}]
    assert last_reset == "2024-01-01"
    assert not list((tmp_path / "state").glob("*.tmp"))


def test_performance_history_upserts_per_day(tmp_path):
    store = JsonStateStore(tmp_path)
    store.save_performance(_record(ending=110.0))
    store.save_performance(_record(ending=120.0))
    store.save_performance(_record(date="2024-01-02"))

    records = store.load_performance()
    assert [(r.date, r.ending_balance) for r in records] == [("2024-01-01", 120.0), ("2024-01-02", 110.0)]


def test_save_backtest_run_layout(tmp_path, rising_bars, always_yes):
    summary = run_backtest([always_yes], rising_bars)
    run_id = save_backtest_run(summary, {"days": 1}, tmp_path)
    run_dir = tmp_path / run_id

    with open(run_dir / "summary.json") as f:
        payload = json.load(f)
    [result] = payload["results"]
    assert "trades" not in result
    assert "balance_history" not in result
    assert result["ending_balance"] == 300.0
    assert json.loads((run_dir / "config.json").read_text()) == {"days": 1}

    with open(run_dir / "trades_always-yes.csv") as f:
        assert len(list(csv.DictReader(f))) == 5
    with open(run_dir / "balance_history_always-yes.csv") as f:
        assert len(list(csv.DictReader(f))) == 6


def test_open_session_initializes_every_strategy(tmp_path):
    store = JsonStateStore(tmp_path)
    engine = open_session(store, "2024-01-01")

    assert list(engine.strategies) == list(STRATEGY_REGISTRY)
    snapshots, last_reset = store.load()
    assert last_reset == "2024-01-01"
    assert {s["id"] for s in snapshots} == set(STRATEGY_REGISTRY)


def test_new_day_records_performance_and_resets(tmp_path, make_bar):
    store = JsonStateStore(tmp_path)
    engine = open_session(store, "2024-01-01")
    apply_decision("rsi", Decision.buy_yes(1), make_bar(0, 1.0), engine.get_state("rsi"))
    engine.settle_positions(make_bar(1, 1.0, yes=100.0, no=0.0))
    store.save(engine.snapshots(), "2024-01-01")

    # same day: state survives
    assert open_session(store, "2024-01-01").get_state("rsi").balance == 150.0

    engine = open_session(store, "2024-01-02")
    assert all(s.balance == 100.0 for s in engine.states.values())
    assert store.load()[1] == "2024-01-02"

    history = {r.strategy_id: r for r in store.load_performance()}
    assert set(history) == set(STRATEGY_REGISTRY)
    assert history["rsi"].date == "2024-01-01"
    assert history["rsi"].ending_balance == 150.0
    assert history["rsi"].daily_return == 50.0
    assert history["rsi"].total_trades == 1


def test_live_cycle_persists(tmp_path, rising_bars, fake_feed):
    store = JsonStateStore(tmp_path)
    feed = fake_feed(rising_bars)

    result = run_live_cycle(store, feed, today="2024-01-01")

    assert result["bar"]["current_price"] == rising_bars[-1].current_price
    assert set(result["decisions"]) <= set(STRATEGY_REGISTRY)
    assert feed.history_calls == [20]
    # positions are settled at the bar's own quotes within the cycle
    assert all(s["positions"] == [] for s in result["strategies"])
    assert store.load()[0] == result["strategies"]


def test_training_replay_batches(make_bars, always_yes):
    bars = make_bars([50000 + i for i in range(220)])
    engine = SimulationEngine([always_yes])

    progress = run_training_replay(engine, bars)

    # cycles at bars 20, 40, ..., 200; snapshot every 10 batches
    assert [p["bar"] for p in progress] == [200]
    [row] = progress[0]["strategies"]
    assert row["id"] == "always-yes"
    # buys at 20, 40 | settle 80 | 100, 120 | settle 160 | 180, 200
    assert row["total_trades"] == 6
    assert row["balance"] == 0.0

    # the bar-200 buys are settled at the last bar's 50c quote
    state = engine.get_state("always-yes")
    assert state.positions == {}
    assert state.balance == 100.0


def test_training_replay_leaves_no_open_positions(make_bars, always_yes):
    bars = make_bars([50000 + 10 * i for i in range(130)])
    engine = SimulationEngine([always_yes])

    assert run_training_replay(engine, bars) == []

    state = engine.get_state("always-yes")
    assert state.positions == {}
    assert state.balance == 100.0
    assert len(state.trades) == 4
