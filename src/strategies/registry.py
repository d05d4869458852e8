from typing import Any, Dict, Iterable, List, Optional, Type

from engine.errors import UnknownStrategyError
from .mean_reversion import MeanReversionStrategy
from .momentum import MomentumStrategy
from .random_bets import RandomStrategy
from .rsi import RSIStrategy
from .strategy import Strategy
from .volatility import VolatilityStrategy

# Order matters: it is the display / evaluation order.
STRATEGY_REGISTRY: Dict[str, Type[Strategy]] = {
    RandomStrategy.id: RandomStrategy,
    MomentumStrategy.id: MomentumStrategy,
    MeanReversionStrategy.id: MeanReversionStrategy,
    RSIStrategy.id: RSIStrategy,
    VolatilityStrategy.id: VolatilityStrategy,
}


def create_strategy(strategy_id: str, params: Dict[str, Any] | None = None) -> Strategy:
    StrategyClass = STRATEGY_REGISTRY.get(strategy_id)
    if StrategyClass is None:
        raise UnknownStrategyError(f"unknown strategy: {strategy_id}")
    return StrategyClass(params)


def create_all_strategies(
    strategy_ids: Optional[Iterable[str]] = None,
    params: Dict[str, Dict[str, Any]] | None = None,
) -> List[Strategy]:
    """
    Fresh instances for the given ids (default: every registered strategy).
    `params` maps strategy id -> constructor params.
    """
    params = params or {}
    ids = list(strategy_ids) if strategy_ids else list(STRATEGY_REGISTRY)
    return [create_strategy(sid, params.get(sid)) for sid in ids]
