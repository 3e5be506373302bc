from typing import List, Mapping, Optional

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from eth_utils import encode_hex, to_bytes, to_checksum_address
from web3 import AsyncWeb3, Web3
from web3.contract.async_contract import AsyncContractFunction

from poolbook.abis import SWAP_DATA_TYPES, SWAP_TOPIC, UNISWAP_V3_POOL_ABI
from poolbook.types import SwapEvent, TickLiquidity


def _as_bytes(value) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return to_bytes(hexstr=value)


def _as_int(value) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, str):
        return int(value, 16)
    return int(value)


class UniswapV3Pool:
    """Read requests and log decoding for a single Uniswap v3 pool."""

    def __init__(self, web3: AsyncWeb3, pool_address: str):
        self.pool_address = Web3.to_checksum_address(pool_address)
        self.pool_contract = web3.eth.contract(address=self.pool_address, abi=UNISWAP_V3_POOL_ABI)

    def slot0(self) -> AsyncContractFunction:
        return self.pool_contract.functions.slot0()

    def liquidity(self) -> AsyncContractFunction:
        return self.pool_contract.functions.liquidity()

    def tick_spacing(self) -> AsyncContractFunction:
        return self.pool_contract.functions.tickSpacing()

    def token0(self) -> AsyncContractFunction:
        return self.pool_contract.functions.token0()

    def token1(self) -> AsyncContractFunction:
        return self.pool_contract.functions.token1()

    def ticks(self, tick_index: int) -> AsyncContractFunction:
        return self.pool_contract.functions.ticks(tick_index)

    @staticmethod
    def parse_tick(tick_index: int, tick_data: tuple) -> TickLiquidity:
        _, liquidity_net, *_, initialized = tick_data
        if not initialized:
            return TickLiquidity.uninitialized(tick_index)
        return TickLiquidity(tick=tick_index, liquidity_net=int(liquidity_net), initialized=True)

    @property
    def swap_topics(self) -> List[str]:
        return [SWAP_TOPIC]

    def decode_swap(self, raw_log: Mapping) -> SwapEvent:
        topics = raw_log.get("topics") or []
        if len(topics) != 3:
            raise ValueError(f"Swap log must carry 3 topics, got {len(topics)}")
        topic0 = _as_bytes(topics[0])
        if topic0 != _as_bytes(SWAP_TOPIC):
            raise ValueError(f"Not a Swap log: topic0={topic0.hex()}")
        try:
            (sender,) = decode(["address"], _as_bytes(topics[1]))
            (recipient,) = decode(["address"], _as_bytes(topics[2]))
            amount0, amount1, sqrt_price_x96, liquidity, tick = decode(
                SWAP_DATA_TYPES, _as_bytes(raw_log.get("data", "0x"))
            )
        except DecodingError as exc:
            raise ValueError(f"Unable to decode Swap log payload: {exc}") from exc
        tx_hash = raw_log.get("transactionHash")
        return SwapEvent(
            sender=to_checksum_address(sender),
            recipient=to_checksum_address(recipient),
            amount0=amount0,
            amount1=amount1,
            sqrt_price_x96=sqrt_price_x96,
            liquidity=liquidity,
            tick=tick,
            block_number=_as_int(raw_log.get("blockNumber")),
            transaction_hash=encode_hex(tx_hash) if isinstance(tx_hash, (bytes, bytearray)) else tx_hash,
            log_index=_as_int(raw_log.get("logIndex")),
        )
