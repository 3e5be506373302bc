"""Order-book reconstruction from a pool's tick-indexed liquidity.

The current price sits inside the grid band ``[base, base + spacing)``. Walking
up the grid adds each crossed tick's ``liquidity_net`` to the active
liquidity, walking down subtracts it. Bands above the current tick price below
mid (bids) and bands below price above mid (asks), each level at the band edge
farthest from mid.

Depth is always in token0, the base token: ``L * (1/sqrt(r_lo) - 1/sqrt(r_hi))``
for the band ``[lo, hi]``, scaled by token0's decimals. For asks this is the
token0 the band absorbs when price trades through it.

Liquidity beyond the sampled window is not seen, so the outermost depths are
lower bounds.
"""

import logging
from itertools import accumulate
from typing import Iterable, List, Sequence, Tuple

from poolbook.pricing import Q96, align_tick, sqrt_ratio, tick_to_price
from poolbook.types import OrderBook, OrderBookLevel, PoolState, TickLiquidity

logger = logging.getLogger(__name__)


def _running_liquidity(start: int, deltas: Sequence[int]) -> List[int]:
    """Active liquidity in each band of a walk, starting band first."""
    return list(accumulate(deltas, initial=start))


def _token0_amount(liquidity: int, sqrt_lower: float, sqrt_upper: float, decimals: int) -> float:
    return liquidity * (1.0 / sqrt_lower - 1.0 / sqrt_upper) / 10 ** decimals


def _current_sqrt(state: PoolState) -> float:
    if state.sqrt_price_x96 is not None:
        return state.sqrt_price_x96 / Q96
    return sqrt_ratio(state.current_tick)


def _bid_levels(
    state: PoolState, net: dict, upper: int
) -> Tuple[List[OrderBookLevel], bool]:
    spacing = state.tick_spacing
    base = align_tick(state.current_tick, spacing)
    edges = list(range(base + spacing, upper + 1, spacing))
    if not edges:
        return [], False
    liquidity = _running_liquidity(state.active_liquidity, [net.get(e, 0) for e in edges[:-1]])
    lowers = [_current_sqrt(state)] + [sqrt_ratio(e) for e in edges[:-1]]

    levels = []
    clamped = False
    for edge, sqrt_lower, band_liquidity in zip(edges, lowers, liquidity):
        if band_liquidity < 0:
            clamped = True
            band_liquidity = 0
        depth = _token0_amount(band_liquidity, sqrt_lower, sqrt_ratio(edge), state.token0_decimals)
        levels.append(
            OrderBookLevel(
                price=tick_to_price(edge, state.token0_decimals, state.token1_decimals),
                depth=max(depth, 0.0),
                tick=edge,
            )
        )
    return levels, clamped


def _ask_levels(
    state: PoolState, net: dict, lower: int
) -> Tuple[List[OrderBookLevel], bool]:
    spacing = state.tick_spacing
    base = align_tick(state.current_tick, spacing)
    levels = []
    clamped = False

    if state.current_tick > base:
        depth = _token0_amount(
            state.active_liquidity, sqrt_ratio(base), _current_sqrt(state), state.token0_decimals
        )
        levels.append(
            OrderBookLevel(
                price=tick_to_price(base, state.token0_decimals, state.token1_decimals),
                depth=max(depth, 0.0),
                tick=base,
            )
        )

    edges = list(range(base - spacing, lower - 1, -spacing))
    tops = [base] + edges[:-1]
    liquidity = _running_liquidity(state.active_liquidity, [-net.get(t, 0) for t in tops])[1:]
    for edge, top, band_liquidity in zip(edges, tops, liquidity):
        if band_liquidity < 0:
            clamped = True
            band_liquidity = 0
        depth = _token0_amount(band_liquidity, sqrt_ratio(edge), sqrt_ratio(top), state.token0_decimals)
        levels.append(
            OrderBookLevel(
                price=tick_to_price(edge, state.token0_decimals, state.token1_decimals),
                depth=max(depth, 0.0),
                tick=edge,
            )
        )
    return levels, clamped


def build_order_book(state: PoolState, ticks: Iterable[TickLiquidity]) -> OrderBook:
    """Fold pool state and sampled ticks into an ``OrderBook``.

    The sampled ticks bound the walk on both sides. Negative accumulated
    liquidity from inconsistent samples is treated as zero and flagged on the
    result.
    """
    samples = list(ticks)
    mid_price = tick_to_price(state.current_tick, state.token0_decimals, state.token1_decimals)
    if not samples:
        return OrderBook(bids=(), asks=(), mid_tick=state.current_tick, mid_price=mid_price)

    net = {t.tick: t.liquidity_net for t in samples if t.initialized}
    sampled = [t.tick for t in samples]
    bids, bids_clamped = _bid_levels(state, net, max(sampled))
    asks, asks_clamped = _ask_levels(state, net, min(sampled))

    clamped = bids_clamped or asks_clamped
    if clamped:
        logger.warning(
            "Negative accumulated liquidity around tick %d, clamped to zero", state.current_tick
        )
    return OrderBook(
        bids=tuple(sorted(bids, key=lambda level: level.price, reverse=True)),
        asks=tuple(sorted(asks, key=lambda level: level.price)),
        mid_tick=state.current_tick,
        mid_price=mid_price,
        clamped=clamped,
    )
