from __future__ import annotations

import asyncio
import logging
from typing import List, Sequence

from eth_abi.exceptions import DecodingError
from eth_utils import get_abi_output_types
from web3 import AsyncWeb3, Web3
from web3.contract.async_contract import AsyncContract, AsyncContractFunction

from poolbook.abis import MULTICALL3_ABI, MULTICALL3_ADDRESS
from poolbook.types import CallResult

logger = logging.getLogger(__name__)


class ChainReader:
    """Contract reads over ``eth_call``; batches go through Multicall3 ``tryAggregate``."""

    def __init__(
        self,
        web3: AsyncWeb3,
        multicall_address: str = MULTICALL3_ADDRESS,
        batch_size: int = 500,
    ):
        self.web3 = web3
        self.multicall = self.contract(multicall_address, MULTICALL3_ABI)
        self.batch_size = batch_size

    def contract(self, address: str, abi: list) -> AsyncContract:
        return self.web3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    @staticmethod
    def _encode_call(fn: AsyncContractFunction) -> bytes:
        return bytes.fromhex(fn._encode_transaction_data()[2:])

    def _decode_output(self, fn: AsyncContractFunction, data: bytes) -> tuple:
        return tuple(self.web3.codec.decode(get_abi_output_types(fn.abi), bytes(data)))

    async def _eth_call(self, target: str, data: bytes) -> bytes:
        raw = await self.web3.eth.call({"to": target, "data": data})
        return bytes(raw)

    async def call(self, fn: AsyncContractFunction) -> tuple:
        raw = await self._eth_call(fn.address, self._encode_call(fn))
        return self._decode_output(fn, raw)

    async def try_call_many(self, functions: Sequence[AsyncContractFunction]) -> List[CallResult]:
        """Read every function in one round trip per batch.

        A reverted or undecodable item becomes a failed ``CallResult``; a
        failure of the multicall itself propagates.
        """
        if not functions:
            return []
        chunks = [functions[i : i + self.batch_size] for i in range(0, len(functions), self.batch_size)]
        decoded = await asyncio.gather(*(self._try_aggregate(chunk) for chunk in chunks))
        return [result for chunk in decoded for result in chunk]

    async def call_many(self, functions: Sequence[AsyncContractFunction]) -> List[tuple]:
        results = await self.try_call_many(functions)
        for fn, result in zip(functions, results):
            if not result.success:
                raise RuntimeError(f"{fn.fn_name} on {fn.address} failed: {result.error}")
        return [result.result for result in results]

    async def _try_aggregate(self, functions: Sequence[AsyncContractFunction]) -> List[CallResult]:
        aggregate = self.multicall.functions.tryAggregate(
            False, [(fn.address, self._encode_call(fn)) for fn in functions]
        )
        raw = await self._eth_call(self.multicall.address, self._encode_call(aggregate))
        (entries,) = self._decode_output(aggregate, raw)
        if len(entries) != len(functions):
            raise RuntimeError(f"multicall returned {len(entries)} results for {len(functions)} calls")
        return [self._decode_entry(fn, success, data) for fn, (success, data) in zip(functions, entries)]

    def _decode_entry(self, fn: AsyncContractFunction, success: bool, data: bytes) -> CallResult:
        if not success:
            return CallResult(success=False, error=f"{fn.fn_name} reverted")
        try:
            return CallResult(success=True, result=self._decode_output(fn, data))
        except DecodingError as exc:
            logger.debug("Undecodable %s result from %s: %s", fn.fn_name, fn.address, exc)
            return CallResult(success=False, error=str(exc))
