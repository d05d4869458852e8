from typing import Any, Dict, List, Sequence

from .models import PriceBar
from .simulation import SimulationEngine


def run_training_replay(
    engine: SimulationEngine,
    bars: Sequence[PriceBar],
    batch: int = 20,
) -> List[Dict[str, Any]]:
    """
    Warm an engine up on historical bars, all strategies together.

    Steps `batch` bars at a time, settles every 4 batches at that bar's own
    quotes, and records a progress snapshot every 10 batches. Everything
    still open is settled at the last bar's quotes.
    """
    progress: List[Dict[str, Any]] = []

    for i in range(batch, len(bars), batch):
        bar = bars[i]
        history = list(bars[max(0, i - batch):i])
        engine.execute_cycle(bar, history)

        if i % (batch * 4) == 0:
            engine.settle_positions(bar)

        if i % (batch * 10) == 0:
            progress.append({
                "bar": i,
                "timestamp": bar.timestamp.isoformat(),
                "strategies": [
                    {
                        "id": row["strategy_id"],
                        "balance": row["current_balance"],
                        "total_pnl": row["total_pnl"],
                        "total_trades": row["total_trades"],
                    }
                    for row in engine.performance()
                ],
            })

    if bars:
        engine.settle_positions(bars[-1])

    print(f"[training] replayed {len(bars)} bars, {len(progress)} progress points")
    return progress
