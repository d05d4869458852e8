import math
import threading
from typing import List, Optional, Sequence

from strategies.strategy import Strategy
from .errors import BacktestCancelled, InsufficientDataError
from .metrics import DrawdownTracker, compute_metrics
from .models import BacktestPeriod, BacktestResult, BacktestSummary, BalancePoint, PriceBar
from .portfolio import INITIAL_BALANCE
from .simulation import SimulationEngine

LOOKBACK_BARS = 20
BARS_PER_DAY = 96   # 15-minute bars


def run_backtest(
    strategies: Sequence[Strategy],
    bars: Sequence[PriceBar],
    initial_balance: float = INITIAL_BALANCE,
    use_minute_data: bool = True,
    cancel_event: Optional[threading.Event] = None,
) -> BacktestSummary:
    """
    Backtest each strategy in isolation over the same bar series.

    Decisions are made at the start of each 15-minute bar and settled
    binary-style against the next bar's close.
    """
    bars = list(bars)
    if len(bars) < LOOKBACK_BARS:
        raise InsufficientDataError(
            f"Insufficient historical data for backtesting "
            f"(need at least {LOOKBACK_BARS} bars, got {len(bars)})"
        )

    if use_minute_data and any(not b.minute_candles for b in bars):
        print("[backtest] WARNING: some bars have no minute candles, "
              "using bar-level data for those periods")

    results: List[BacktestResult] = []
    for strategy in strategies:
        result = backtest_strategy(
            strategy,
            bars,
            initial_balance=initial_balance,
            use_minute_data=use_minute_data,
            cancel_event=cancel_event,
        )
        print(f"[backtest] strategy={result.strategy_id} bars={len(bars)} "
              f"trades={result.total_trades} return={result.total_return_percent:.2f}%")
        results.append(result)

    return summarize(bars, results)


def backtest_strategy(
    strategy: Strategy,
    bars: Sequence[PriceBar],
    initial_balance: float = INITIAL_BALANCE,
    use_minute_data: bool = True,
    cancel_event: Optional[threading.Event] = None,
) -> BacktestResult:
    if len(bars) < LOOKBACK_BARS:
        raise InsufficientDataError(
            f"Insufficient historical data for backtesting "
            f"(need at least {LOOKBACK_BARS} bars, got {len(bars)})"
        )

    engine = SimulationEngine([strategy], initial_balance=initial_balance)
    state = engine.get_state(strategy.id)

    balance_history: List[BalancePoint] = [BalancePoint(bars[0].timestamp, initial_balance)]
    drawdown = DrawdownTracker(peak=initial_balance)

    last = len(bars) - 1
    for i in range(LOOKBACK_BARS, len(bars)):
        if cancel_event is not None and cancel_event.is_set():
            raise BacktestCancelled(
                f"backtest for strategy={strategy.id} cancelled at bar {i}/{len(bars)}"
            )

        bar = bars[i]
        history = build_history(bars, i, use_minute_data)
        engine.execute_cycle(bar, history)

        if i < last:
            engine.settle_positions(settlement_bar(bar, bars[i + 1]))
        else:
            # no look-ahead on the final bar
            engine.settle_positions(bar)

        balance_history.append(BalancePoint(bar.timestamp, state.balance))
        drawdown.update(state.balance)

    engine.settle_positions(bars[-1])

    final_balance = state.balance
    total_return = final_balance - initial_balance
    stats = compute_metrics(state.trades, bars, balance_history, initial_balance)

    return BacktestResult(
        strategy_id=strategy.id,
        strategy_name=strategy.name,
        starting_balance=initial_balance,
        ending_balance=final_balance,
        total_return=total_return,
        total_return_percent=(total_return / initial_balance) * 100 if initial_balance else 0.0,
        total_trades=stats["total_trades"],
        winning_trades=stats["winning_trades"],
        losing_trades=stats["losing_trades"],
        win_rate=stats["win_rate"],
        total_pnl=state.total_pnl,
        average_win=stats["average_win"],
        average_loss=stats["average_loss"],
        profit_factor=stats["profit_factor"],
        max_drawdown=drawdown.max_drawdown,
        max_drawdown_percent=drawdown.max_drawdown_percent,
        sharpe_ratio=stats["sharpe_ratio"],
        trades=tuple(state.trades),
        balance_history=tuple(balance_history),
        daily_returns=tuple(stats["daily_returns"]),
    )


def summarize(bars: Sequence[PriceBar], results: List[BacktestResult]) -> BacktestSummary:
    best = worst = None
    for r in results:
        if best is None or r.total_return_percent > best.total_return_percent:
            best = r
        if worst is None or r.total_return_percent < worst.total_return_percent:
            worst = r

    n = len(results)
    return BacktestSummary(
        period=BacktestPeriod(
            start=bars[0].timestamp,
            end=bars[-1].timestamp,
            total_bars=len(bars),
            days=math.ceil(len(bars) / BARS_PER_DAY),
        ),
        results=results,
        best=best,
        worst=worst,
        average_return=sum(r.total_return_percent for r in results) / n if n else 0.0,
        average_win_rate=sum(r.win_rate for r in results) / n if n else 0.0,
    )


def settlement_bar(bar: PriceBar, next_bar: PriceBar) -> PriceBar:
    """
    Winner-take-all settlement of `bar`'s contracts using the next close.
    A flat move pays NO.
    """
    if next_bar.current_price > bar.current_price:
        return next_bar.with_prices(yes_price=100.0, no_price=0.0)
    return next_bar.with_prices(yes_price=0.0, no_price=100.0)


def build_history(
    bars: Sequence[PriceBar],
    i: int,
    use_minute_data: bool = True,
) -> List[PriceBar]:
    """
    The LOOKBACK_BARS bars before `i`. When the current bar has minute
    candles, history bars that have them are expanded to one bar per minute.
    """
    window = list(bars[max(0, i - LOOKBACK_BARS):i])
    if not (use_minute_data and bars[i].minute_candles):
        return window

    expanded: List[PriceBar] = []
    for period in window:
        if not period.minute_candles:
            expanded.append(period)
            continue

        for candle in period.minute_candles:
            prev_price = expanded[-1].current_price if expanded else 0.0
            if prev_price:
                change_pct = (candle.close - prev_price) / prev_price * 100
            else:
                change_pct = 0.0
            yes_price = max(1.0, min(99.0, 50 + change_pct * 10))

            expanded.append(
                PriceBar(
                    timestamp=candle.timestamp,
                    current_price=float(round(candle.close)),
                    yes_price=round(yes_price, 2),
                    no_price=round(100 - yes_price, 2),
                    volume=candle.volume,
                    minute_candles=(candle,),
                )
            )

    return expanded
