import json
import sys

import pytest

from engine import cli
from marketdata.bars import save_price_bars_csv


def test_cli_backtests_csv(tmp_path, rising_bars, monkeypatch, capsys):
    path = tmp_path / "bars.csv"
    save_price_bars_csv(rising_bars, path)

    monkeypatch.setattr(
        sys, "argv",
        ["paperbets-backtest", "--csv", str(path), "--strategies", "momentum", "rsi", "--seed", "3"],
    )
    cli.main()

    out = capsys.readouterr().out
    summary = json.loads(out[out.index("{"):])
    assert [r["strategy_id"] for r in summary["results"]] == ["momentum", "rsi"]
    assert summary["period"]["total_bars"] == 25
    assert all(r["trades"] == [] for r in summary["results"])


def test_cli_exits_on_short_csv(tmp_path, make_bars, monkeypatch):
    path = tmp_path / "bars.csv"
    save_price_bars_csv(make_bars([100.0] * 5), path)
    monkeypatch.setattr(sys, "argv", ["paperbets-backtest", "--csv", str(path)])

    with pytest.raises(SystemExit) as exc:
        cli.main()
    assert exc.value.code == 2
