import bisect
import datetime as dt
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from .models import BalancePoint, Direction, PriceBar, Trade

WIN_THRESHOLD_PCT = 0.01              # 0.01% minimum move, filters noise
MATCH_WINDOW = dt.timedelta(minutes=15)
PAYOUT = 100.0                        # binary contract pays 100 cents
ANNUALIZATION = 252


@dataclass
class DrawdownTracker:
    peak: float
    max_drawdown: float = 0.0
    max_drawdown_percent: float = 0.0

    def update(self, balance: float) -> None:
        if balance > self.peak:
            self.peak = balance
        drawdown = self.peak - balance
        drawdown_percent = (drawdown / self.peak) * 100 if self.peak > 0 else 0.0
        self.max_drawdown = max(self.max_drawdown, drawdown)
        self.max_drawdown_percent = max(self.max_drawdown_percent, drawdown_percent)


@dataclass(frozen=True)
class TradeOutcomes:
    winning_trades: int
    losing_trades: int
    total_wins: float
    total_losses: float


def find_bar_index(stamps: Sequence[dt.datetime], timestamp: dt.datetime) -> Optional[int]:
    """
    Index of the first bar time strictly within MATCH_WINDOW of `timestamp`.
    `stamps` must be sorted.
    """
    idx = bisect.bisect_right(stamps, timestamp - MATCH_WINDOW)
    if idx < len(stamps) and abs(stamps[idx] - timestamp) < MATCH_WINDOW:
        return idx
    return None


def classify_trades(trades: Sequence[Trade], bars: Sequence[PriceBar]) -> TradeOutcomes:
    """
    Score each trade against the move from its bar to the next one.

    Reporting only: this does not look at the engine's settlement P&L, and
    the two figures are not expected to reconcile.
    """
    stamps = [b.timestamp for b in bars]
    wins = losses = 0
    total_wins = total_losses = 0.0

    for trade in trades:
        idx = find_bar_index(stamps, trade.timestamp)

        is_win = False
        if idx is not None and idx < len(bars) - 1 and bars[idx].current_price:
            start = bars[idx].current_price
            end = bars[idx + 1].current_price
            change_pct = (end - start) / start * 100

            if trade.direction == Direction.UP:
                is_win = change_pct > WIN_THRESHOLD_PCT
            else:
                is_win = change_pct < -WIN_THRESHOLD_PCT

        # unlocatable, final-bar and zero-price trades count as losses
        if is_win:
            wins += 1
            total_wins += (PAYOUT - trade.price) * trade.quantity
        else:
            losses += 1
            total_losses += trade.cost

    return TradeOutcomes(wins, losses, total_wins, total_losses)


def profit_factor(total_wins: float, total_losses: float) -> float:
    if total_losses > 0:
        return total_wins / total_losses
    return math.inf if total_wins > 0 else 0.0


def sharpe_ratio(balance_history: Sequence[BalancePoint]) -> float:
    balances = [p.balance for p in balance_history]
    if len(balances) < 2:
        return 0.0

    returns = np.array([
        (curr - prev) / prev if prev > 0 else 0.0
        for prev, curr in zip(balances[:-1], balances[1:])
    ])
    if len(returns) < 2:
        return 0.0

    std = float(np.std(returns, ddof=1))
    if std <= 0:
        return 0.0
    return float(returns.mean() / std * math.sqrt(ANNUALIZATION))


def daily_returns(
    balance_history: Sequence[BalancePoint],
    initial_balance: float,
) -> List[float]:
    """
    Percent change between consecutive calendar days' closing balances (UTC).
    """
    if not balance_history:
        return []

    df = pd.DataFrame(
        {
            "timestamp": [p.timestamp for p in balance_history],
            "balance": [p.balance for p in balance_history],
        }
    )
    df["day"] = pd.to_datetime(df["timestamp"], utc=True).dt.date

    day_end = df.groupby("day", sort=True)["balance"].last()
    # zero balance days are measured against the starting balance
    day_end = day_end.mask(day_end == 0, initial_balance)

    returns = (day_end / day_end.shift(1) - 1).dropna() * 100
    return [float(r) for r in returns]


def compute_metrics(
    trades: Sequence[Trade],
    bars: Sequence[PriceBar],
    balance_history: Sequence[BalancePoint],
    initial_balance: float,
) -> Dict[str, float]:
    outcomes = classify_trades(trades, bars)
    total = len(trades)

    return {
        "total_trades": total,
        "winning_trades": outcomes.winning_trades,
        "losing_trades": outcomes.losing_trades,
        "win_rate": (outcomes.winning_trades / total) * 100 if total else 0.0,
        "average_win": (
            outcomes.total_wins / outcomes.winning_trades if outcomes.winning_trades else 0.0
        ),
        "average_loss": (
            outcomes.total_losses / outcomes.losing_trades if outcomes.losing_trades else 0.0
        ),
        "profit_factor": profit_factor(outcomes.total_wins, outcomes.total_losses),
        "sharpe_ratio": sharpe_ratio(balance_history),
        "daily_returns": daily_returns(balance_history, initial_balance),
    }
