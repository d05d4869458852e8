from typing import Optional

from strategies.strategy import Action, Decision
from .models import Position, PriceBar, Trade
from .portfolio import StrategyState


def apply_decision(
    strategy_id: str,
    decision: Decision,
    bar: PriceBar,
    state: StrategyState,
) -> Optional[Trade]:
    """
    Execute one decision against `state` at the bar's quoted prices.
    Returns the Trade when a buy was filled, else None.
    """
    if decision.action == Action.HOLD:
        return None

    if decision.action == Action.SELL:
        close_positions(state)
        return None

    direction = decision.direction
    if direction is None:
        return None

    price = bar.price_for(direction)
    quantity = decision.quantity or 1
    cost = price * quantity

    # all-or-nothing: unaffordable buys are dropped
    if cost > state.balance:
        return None

    return _open_or_add(strategy_id, direction, price, quantity, cost, bar, state)


def close_positions(state: StrategyState) -> float:
    """
    Close everything at each position's own average price.
    Realized P&L is zero by construction of the averaging.
    """
    pnl = 0.0
    for pos in state.positions.values():
        exit_value = pos.average_price * pos.quantity
        pnl += exit_value - pos.total_cost
        state.balance += exit_value

    state.total_pnl += pnl
    state.positions = {}
    return pnl


def settle(bar: PriceBar, state: StrategyState) -> float:
    """
    Pay out every open position at the bar's yes/no price and clear them.
    """
    pnl = 0.0
    for pos in state.positions.values():
        exit_value = bar.price_for(pos.direction) * pos.quantity
        pnl += exit_value - pos.total_cost
        state.balance += exit_value

    state.total_pnl += pnl
    state.daily_return = state.return_percent()
    state.positions = {}
    return pnl


# -------------------------
# Internal helpers
# -------------------------

def _trade_id(strategy_id: str, bar: PriceBar, seq: int) -> str:
    return f"{strategy_id}-{bar.timestamp.strftime('%Y%m%dT%H%M%S')}-{seq}"


def _open_or_add(strategy_id, direction, price, quantity, cost, bar, state: StrategyState):
    trade = Trade(
        id=_trade_id(strategy_id, bar, len(state.trades) + 1),
        timestamp=bar.timestamp,
        direction=direction,
        price=price,
        quantity=quantity,
        cost=cost,
    )

    state.balance -= cost
    state.trades.append(trade)

    pos = state.positions.get(direction)
    if pos is not None:
        pos.add(quantity, cost)
    else:
        state.positions[direction] = Position(
            direction=direction,
            quantity=quantity,
            average_price=price,
            total_cost=cost,
        )

    return trade
