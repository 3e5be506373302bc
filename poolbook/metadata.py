import asyncio
import logging
from typing import Dict

from web3 import Web3

from poolbook.abis import ERC20_ABI
from poolbook.errors import MetadataError
from poolbook.protocols.uniswap_v3 import UniswapV3Pool
from poolbook.types import PoolMetadata

logger = logging.getLogger(__name__)


class PoolMetadataLoader:
    """Token addresses and decimals for a pool, loaded once per session."""

    def __init__(self, reader):
        self.reader = reader
        self._cache: Dict[str, PoolMetadata] = {}

    async def load(self, pool_address: str) -> PoolMetadata:
        pool = UniswapV3Pool(self.reader.web3, pool_address)
        cached = self._cache.get(pool.pool_address)
        if cached is not None:
            return cached

        logger.info("Fetching token details for pool %s", pool.pool_address)
        try:
            (token0,), (token1,) = await asyncio.gather(
                self.reader.call(pool.token0()), self.reader.call(pool.token1())
            )
            token0 = Web3.to_checksum_address(token0)
            token1 = Web3.to_checksum_address(token1)
            (decimals0,), (decimals1,) = await asyncio.gather(
                self.reader.call(self.reader.contract(token0, ERC20_ABI).functions.decimals()),
                self.reader.call(self.reader.contract(token1, ERC20_ABI).functions.decimals()),
            )
        except Exception as exc:
            raise MetadataError(f"Failed to fetch token details for pool {pool.pool_address}: {exc}") from exc

        metadata = PoolMetadata(
            token0=token0,
            token1=token1,
            token0_decimals=int(decimals0),
            token1_decimals=int(decimals1),
        )
        logger.info(
            "Token0 %s (%d decimals), token1 %s (%d decimals)",
            metadata.token0,
            metadata.token0_decimals,
            metadata.token1,
            metadata.token1_decimals,
        )
        self._cache[pool.pool_address] = metadata
        return metadata
