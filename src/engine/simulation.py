from typing import Any, Dict, Iterable, List

from strategies.registry import STRATEGY_REGISTRY, create_strategy
from strategies.strategy import Decision, Strategy
from .errors import UnknownStrategyError
from .execution import apply_decision, settle
from .models import PriceBar
from .portfolio import INITIAL_BALANCE, StrategyState


class SimulationEngine:
    """
    Paper-trading engine for a set of independent strategies.

    Each strategy owns one StrategyState; nothing is shared between them, so
    a failing strategy only loses its own cycle.
    """

    def __init__(
        self,
        strategies: Iterable[Strategy],
        initial_balance: float = INITIAL_BALANCE,
    ):
        self.initial_balance = initial_balance
        self.strategies: Dict[str, Strategy] = {}
        self.states: Dict[str, StrategyState] = {}

        for strategy in strategies:
            self.add_strategy(strategy)

    def add_strategy(self, strategy: Strategy) -> None:
        self.strategies[strategy.id] = strategy
        self.states[strategy.id] = StrategyState(self.initial_balance)

    # -------------------------
    # Trading cycle
    # -------------------------

    def execute_cycle(
        self,
        bar: PriceBar,
        history: List[PriceBar],
    ) -> Dict[str, Decision]:
        """
        One decision per strategy for `bar`. Returns the decisions that were
        produced (failed strategies are absent).
        """
        decisions: Dict[str, Decision] = {}

        for sid, strategy in self.strategies.items():
            try:
                decision = strategy.decide(bar, history)
                apply_decision(sid, decision, bar, self.states[sid])
            except Exception as e:  # noqa: BLE001
                print(f"[engine] ERROR strategy={sid} decision failed: {e!r}")
                continue
            decisions[sid] = decision

        return decisions

    def settle_positions(self, bar: PriceBar) -> Dict[str, float]:
        return {sid: settle(bar, state) for sid, state in self.states.items()}

    # -------------------------
    # Lifecycle
    # -------------------------

    def reset(self, strategy_id: str) -> None:
        if strategy_id not in self.states:
            raise UnknownStrategyError(f"unknown strategy: {strategy_id}")
        self.states[strategy_id] = StrategyState(self.initial_balance)

    def reset_all(self) -> None:
        for sid in list(self.states):
            self.reset(sid)

    def get_state(self, strategy_id: str) -> StrategyState:
        try:
            return self.states[strategy_id]
        except KeyError:
            raise UnknownStrategyError(f"unknown strategy: {strategy_id}") from None

    # -------------------------
    # Persistence boundary
    # -------------------------

    def snapshots(self) -> List[Dict[str, Any]]:
        """State only; decision logic is re-attached by id on load."""
        out = []
        for sid, strategy in self.strategies.items():
            snap = {"id": sid, "name": strategy.name, "description": strategy.description}
            snap.update(self.states[sid].get_state_view())
            out.append(snap)
        return out

    @classmethod
    def from_snapshots(
        cls,
        snapshots: List[Dict[str, Any]],
        initial_balance: float = INITIAL_BALANCE,
        params: Dict[str, Dict[str, Any]] | None = None,
    ) -> "SimulationEngine":
        params = params or {}
        engine = cls([], initial_balance=initial_balance)

        for snap in snapshots:
            sid = snap["id"]
            if sid not in STRATEGY_REGISTRY:
                print(f"[engine] WARNING: skipping stored state for unknown strategy={sid}")
                continue
            engine.strategies[sid] = create_strategy(sid, params.get(sid))
            engine.states[sid] = StrategyState.from_state_view(snap)

        return engine

    def performance(self) -> List[Dict[str, Any]]:
        rows = []
        for sid, strategy in self.strategies.items():
            state = self.states[sid]
            rows.append({
                "strategy_id": sid,
                "strategy_name": strategy.name,
                "starting_balance": state.initial_balance,
                "current_balance": state.balance,
                "total_pnl": state.total_pnl,
                "daily_return": state.daily_return,
                "total_trades": len(state.trades),
            })
        return rows

