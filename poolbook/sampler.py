import logging
from typing import List

from poolbook.errors import RefreshError
from poolbook.pricing import MAX_TICK, MIN_TICK, align_tick
from poolbook.protocols.uniswap_v3 import UniswapV3Pool
from poolbook.types import TickLiquidity, TickSample

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SIZE = 50


def sample_ticks(center_tick: int, tick_spacing: int, window_size: int = DEFAULT_WINDOW_SIZE) -> List[int]:
    """Grid ticks within ``window_size`` spacings of ``center_tick``, ascending.

    The center is floored onto the spacing grid first; ticks outside the
    protocol bounds are dropped.
    """
    if tick_spacing <= 0:
        raise ValueError(f"tick_spacing must be positive, got {tick_spacing}")
    if window_size < 0:
        raise ValueError(f"window_size must be non-negative, got {window_size}")
    center = align_tick(center_tick, tick_spacing)
    candidates = {center + step * tick_spacing for step in range(-window_size, window_size + 1)}
    return sorted(t for t in candidates if MIN_TICK <= t <= MAX_TICK)


class TickSampler:
    def __init__(self, reader, pool: UniswapV3Pool):
        self.reader = reader
        self.pool = pool

    async def fetch(
        self, center_tick: int, tick_spacing: int, window_size: int = DEFAULT_WINDOW_SIZE
    ) -> TickSample:
        tick_indices = sample_ticks(center_tick, tick_spacing, window_size)
        try:
            results = await self.reader.try_call_many([self.pool.ticks(t) for t in tick_indices])
        except Exception as exc:
            raise RefreshError(f"Batch tick read failed for pool {self.pool.pool_address}: {exc}") from exc
        if len(results) != len(tick_indices):
            raise RefreshError(
                f"Batch tick read returned {len(results)} results for {len(tick_indices)} ticks"
            )

        ticks: List[TickLiquidity] = []
        failures = 0
        for tick_index, result in zip(tick_indices, results):
            if not result.success:
                failures += 1
                logger.warning("Tick %s read failed, treating as uninitialized: %s", tick_index, result.error)
                ticks.append(TickLiquidity.uninitialized(tick_index))
                continue
            ticks.append(self.pool.parse_tick(tick_index, result.result))
        logger.debug(
            "Sampled %d ticks around %d (spacing %d), %d failed",
            len(ticks),
            center_tick,
            tick_spacing,
            failures,
        )
        return TickSample(ticks=tuple(ticks), failures=failures)
