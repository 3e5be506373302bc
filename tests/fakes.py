"""In-memory stand-ins for the chain reader, registry and log transport."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple

from eth_abi import encode
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3

from poolbook.abis import SWAP_DATA_TYPES, SWAP_TOPIC
from poolbook.config import ChainConfig, ListenerConfig
from poolbook.types import CallResult

POOL = Web3.to_checksum_address("0x" + "11" * 20)
TOKEN0 = Web3.to_checksum_address("0x" + "22" * 20)
TOKEN1 = Web3.to_checksum_address("0x" + "33" * 20)
MARKET = Web3.to_checksum_address("0x" + "44" * 20)
SENDER = Web3.to_checksum_address("0x" + "55" * 20)
RECIPIENT = Web3.to_checksum_address("0x" + "66" * 20)

CHAINS = {8453: ChainConfig(chain_id=8453, name="base", rpc_url="https://rpc.test", wss_url="wss://rpc.test")}


def listener_config(**overrides: Any) -> ListenerConfig:
    values = dict(chain_id=8453, market_address=MARKET, market_id="7")
    values.update(overrides)
    return ListenerConfig(**values)


def _key(fn) -> Tuple[str, str, tuple]:
    return (fn.address, fn.fn_name, tuple(fn.args or ()))


class FakeReader:
    """Answers contract calls from a table keyed by (address, function name, args)."""

    def __init__(self, responses: Optional[Dict[Tuple[str, str, tuple], Any]] = None):
        # never connected; only builds contracts and encodes calls
        self.web3 = AsyncWeb3(AsyncHTTPProvider("http://localhost:8545"))
        self.responses: Dict[Tuple[str, str, tuple], Any] = dict(responses or {})
        self.calls: List[Tuple[str, str, tuple]] = []
        self.batches: List[List[Tuple[str, str, tuple]]] = []
        self.batch_error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None

    def contract(self, address: str, abi: list):
        return self.web3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    def set(self, target: str, name: str, args: tuple, value: Any) -> None:
        self.responses[(Web3.to_checksum_address(target), name, args)] = value

    def _answer(self, key):
        if key not in self.responses:
            raise RuntimeError(f"no response for {key}")
        value = self.responses[key]
        if isinstance(value, Exception):
            raise value
        return value

    async def call(self, call) -> tuple:
        key = _key(call)
        self.calls.append(key)
        await asyncio.sleep(0)
        return self._answer(key)

    async def try_call_many(self, calls) -> List[CallResult]:
        keys = [_key(c) for c in calls]
        self.batches.append(keys)
        if self.gate is not None:
            await self.gate.wait()
        await asyncio.sleep(0)
        if self.batch_error is not None:
            raise self.batch_error
        results = []
        for key in keys:
            try:
                results.append(CallResult(success=True, result=self._answer(key)))
            except Exception as exc:
                results.append(CallResult(success=False, error=str(exc)))
        return results

    async def call_many(self, calls) -> List[tuple]:
        results = await self.try_call_many(calls)
        for result in results:
            if not result.success:
                raise RuntimeError(result.error)
        return [result.result for result in results]


def pool_reader(
    current_tick: int = 0,
    liquidity: int = 1_000_000,
    tick_spacing: int = 60,
    nets: Optional[Dict[int, int]] = None,
    window_size: int = 2,
    decimals: Tuple[int, int] = (18, 18),
    sqrt_price_x96: int = 2**96,
) -> FakeReader:
    reader = FakeReader()
    reader.set(POOL, "token0", (), (TOKEN0,))
    reader.set(POOL, "token1", (), (TOKEN1,))
    reader.set(TOKEN0, "decimals", (), (decimals[0],))
    reader.set(TOKEN1, "decimals", (), (decimals[1],))
    reader.set(POOL, "slot0", (), (sqrt_price_x96, current_tick, 0, 1, 1, 0, True))
    reader.set(POOL, "liquidity", (), (liquidity,))
    reader.set(POOL, "tickSpacing", (), (tick_spacing,))
    base = (current_tick // tick_spacing) * tick_spacing
    for step in range(-window_size, window_size + 1):
        tick = base + step * tick_spacing
        net = (nets or {}).get(tick)
        if net is None:
            reader.set(POOL, "ticks", (tick,), (0, 0, 0, 0, 0, 0, 0, False))
        else:
            reader.set(POOL, "ticks", (tick,), (abs(net), net, 0, 0, 0, 0, 0, True))
    return reader


class FakeResolver:
    def __init__(self, result: Any = POOL):
        self.result = result
        self.calls: List[Tuple[int, str, str]] = []
        self.gate: Optional[asyncio.Event] = None

    async def resolve(self, chain_id: int, market_address: str, market_id: str) -> str:
        self.calls.append((chain_id, market_address, market_id))
        if self.gate is not None:
            await self.gate.wait()
        await asyncio.sleep(0)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class FakeSubscription:
    def __init__(self) -> None:
        self.closed = False

    @property
    def active(self) -> bool:
        return not self.closed

    async def close(self) -> None:
        self.closed = True


class FakeSubscriber:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.subscriptions: List[FakeSubscription] = []
        self.address: Optional[str] = None
        self.topics: Optional[List[str]] = None
        self.on_log: Optional[Callable[[dict], None]] = None
        self.on_error: Optional[Callable[[Exception], None]] = None

    async def subscribe(self, address, topics, on_log, on_error) -> FakeSubscription:
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        self.address, self.topics = address, topics
        self.on_log, self.on_error = on_log, on_error
        subscription = FakeSubscription()
        self.subscriptions.append(subscription)
        return subscription

    def push(self, raw_log: dict) -> None:
        self.on_log(raw_log)

    def fail(self, exc: Exception) -> None:
        self.on_error(exc)


def _address_topic(address: str) -> str:
    return "0x" + "00" * 12 + address[2:].lower()


def swap_log(
    sqrt_price_x96: int = 2**96,
    tick: int = 0,
    liquidity: int = 1_000_000,
    amount0: int = -5_000,
    amount1: int = 5_010,
    block_number: str = "0x10",
) -> dict:
    data = encode(SWAP_DATA_TYPES, [amount0, amount1, sqrt_price_x96, liquidity, tick])
    return {
        "address": POOL,
        "topics": [SWAP_TOPIC, _address_topic(SENDER), _address_topic(RECIPIENT)],
        "data": "0x" + data.hex(),
        "blockNumber": block_number,
        "transactionHash": "0x" + "ab" * 32,
        "logIndex": "0x1",
        "removed": False,
    }
