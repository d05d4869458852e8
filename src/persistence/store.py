from __future__ import annotations

import csv
import datetime as dt
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from engine.models import BacktestSummary, PerformanceRecord

STATE_DIR = Path(os.environ.get("PAPERBETS_STATE_DIR", "data/state"))
RUNS_DIR = Path(os.environ.get("PAPERBETS_RUNS_DIR", "data/backtest_runs"))


class JsonStateStore:
    """
    File-backed store for live strategy state.

    Layout under `root`:
      strategies.json           {"last_reset_date": "YYYY-MM-DD", "strategies": [snapshot, ...]}
      performance_history.json  [PerformanceRecord, ...] unique per (strategy_id, date)
    """

    def __init__(self, root: Path | str = STATE_DIR):
        self.root = Path(root)
        self.state_path = self.root / "strategies.json"
        self.history_path = self.root / "performance_history.json"

    # -------------------------
    # Strategy snapshots
    # -------------------------

    def load(self) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        """Returns (snapshots, last_reset_date); ([], None) when nothing is stored."""
        raw = self._read_json(self.state_path)
        if raw is None:
            return [], None

        if not isinstance(raw, dict):
            print(f"[store] WARNING: {self.state_path} is not an object; ignoring")
            return [], None

        snapshots = [s for s in raw.get("strategies") or [] if isinstance(s, dict)]
        return snapshots, raw.get("last_reset_date")

    def save(self, snapshots: List[Dict[str, Any]], last_reset_date: str) -> None:
        self._write_json(
            self.state_path,
            {"last_reset_date": last_reset_date, "strategies": snapshots},
        )

    # -------------------------
    # Performance history
    # -------------------------

    def load_performance(self) -> List[PerformanceRecord]:
        raw = self._read_json(self.history_path) or []
        return [PerformanceRecord.from_dict(r) for r in raw if isinstance(r, dict)]

    def save_performance(self, record: PerformanceRecord) -> None:
        """Upsert keyed by (strategy_id, date)."""
        records = {
            (r.strategy_id, r.date): r for r in self.load_performance()
        }
        records[(record.strategy_id, record.date)] = record

        ordered = sorted(records.values(), key=lambda r: (r.date, r.strategy_id))
        self._write_json(self.history_path, [r.to_dict() for r in ordered])

    # -------------------------
    # Internal helpers
    # -------------------------

    def _read_json(self, path: Path) -> Any:
        if not path.exists():
            return None
        with open(path, "r") as f:
            return json.load(f)

    def _write_json(self, path: Path, payload: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        with open(tmp, "w") as f:
            json.dump(payload, f, indent=2)
        os.replace(tmp, path)


def save_backtest_run(
    summary: BacktestSummary,
    config: Dict[str, Any],
    runs_dir: Path | str = RUNS_DIR,
) -> str:
    """
    Persist a backtest run under:

      <runs_dir>/<run_id>/

    Files:
      - summary.json                      (period, per-strategy metrics, best/worst)
      - config.json                       (what was run)
      - trades_<strategy_id>.csv          (full trade log per strategy)
      - balance_history_<strategy_id>.csv (timestamp, balance)
    """
    base_dir = Path(runs_dir)
    base_dir.mkdir(parents=True, exist_ok=True)

    # Run ID: UTC timestamp, filesystem-safe (no colons)
    run_id = dt.datetime.now(dt.timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    run_dir = base_dir / run_id
    run_dir.mkdir(parents=True, exist_ok=True)

    # 1) summary.json (series live in the CSVs)
    payload = summary.to_dict()
    for r in payload["results"]:
        r.pop("trades", None)
        r.pop("balance_history", None)
    with open(run_dir / "summary.json", "w") as f:
        json.dump(payload, f, indent=2)

    # 2) config.json
    with open(run_dir / "config.json", "w") as f:
        json.dump(config or {}, f, indent=2)

    for result in summary.results:
        # 3) trades
        with open(run_dir / f"trades_{result.strategy_id}.csv", "w", newline="") as f:
            fieldnames = ["id", "timestamp", "direction", "price", "quantity", "cost"]
            writer = csv.DictWriter(f, fieldnames=fieldnames)
            writer.writeheader()
            for t in result.trades:
                writer.writerow(t.to_dict())

        # 4) balance history
        with open(run_dir / f"balance_history_{result.strategy_id}.csv", "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=["timestamp", "balance"])
            writer.writeheader()
            for p in result.balance_history:
                writer.writerow(p.to_dict())

    print(f"[store] saved backtest run {run_id} to {run_dir}")
    return run_id
