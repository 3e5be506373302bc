from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple


@dataclass(frozen=True)
class TickLiquidity:
    tick: int
    liquidity_net: int
    initialized: bool

    @classmethod
    def uninitialized(cls, tick: int) -> "TickLiquidity":
        return cls(tick=tick, liquidity_net=0, initialized=False)


@dataclass(frozen=True)
class TickSample:
    ticks: Tuple[TickLiquidity, ...]
    failures: int = 0

    @property
    def initialized_count(self) -> int:
        return sum(1 for t in self.ticks if t.initialized)


@dataclass(frozen=True)
class PoolState:
    current_tick: int
    active_liquidity: int
    tick_spacing: int
    token0_decimals: int
    token1_decimals: int
    sqrt_price_x96: Optional[int] = None

    def __post_init__(self) -> None:
        if self.tick_spacing <= 0:
            raise ValueError(f"tick_spacing must be positive, got {self.tick_spacing}")
        if self.active_liquidity < 0:
            raise ValueError(f"active_liquidity must be non-negative, got {self.active_liquidity}")


@dataclass(frozen=True)
class OrderBookLevel:
    price: float
    depth: float
    tick: int


@dataclass(frozen=True)
class OrderBook:
    """Reconstructed ladder.

    Bids sit on the bands above the current tick and are sized in token0,
    asks sit on the bands below and are sized in token1 (the reserve each band
    holds). Prices follow ``tick_to_price`` so bids are below ``mid_price`` and
    asks above it.
    """

    bids: Tuple[OrderBookLevel, ...]
    asks: Tuple[OrderBookLevel, ...]
    mid_tick: int
    mid_price: float
    clamped: bool = False

    @property
    def best_bid(self) -> Optional[float]:
        return self.bids[0].price if self.bids else None

    @property
    def best_ask(self) -> Optional[float]:
        return self.asks[0].price if self.asks else None


@dataclass(frozen=True)
class PoolMetadata:
    token0: str
    token1: str
    token0_decimals: int
    token1_decimals: int


@dataclass(frozen=True)
class SwapEvent:
    sender: str
    recipient: str
    amount0: int
    amount1: int
    sqrt_price_x96: int
    liquidity: int
    tick: int
    block_number: Optional[int] = None
    transaction_hash: Optional[str] = None
    log_index: Optional[int] = None


@dataclass(frozen=True)
class CallResult:
    success: bool
    result: Optional[tuple] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class PriceUpdate:
    price: float
    raw_event: SwapEvent
    pool_address: str
    chain_id: int
    market_id: str
    timestamp: int


@dataclass(frozen=True)
class ErrorNotice:
    message: str
    phase: str
    error: Optional[BaseException] = field(default=None, compare=False)


@dataclass
class DepthRow:
    side: str
    price_label: str
    depth: float
    bar: str


@dataclass
class DepthTable:
    rows: List[DepthRow]
    mid_price: float
    as_of: Any = None
