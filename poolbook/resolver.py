import logging

from web3 import Web3

from poolbook.abis import EPOCH_POOL_INDEX, MARKET_REGISTRY_ABI
from poolbook.errors import ResolutionError

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class RegistryResolver:
    """Resolves a market id to its pool through the registry's ``getEpoch``."""

    def __init__(self, reader):
        self.reader = reader

    async def resolve(self, chain_id: int, market_address: str, market_id: str) -> str:
        if not Web3.is_address(market_address):
            raise ResolutionError(f"Invalid market contract address: {market_address!r}")
        try:
            epoch_id = int(market_id)
        except (TypeError, ValueError) as exc:
            raise ResolutionError(f"Market id must be an integer epoch id, got {market_id!r}") from exc

        logger.info(
            "Querying getEpoch(%d) on %s (chain %d)", epoch_id, market_address, chain_id
        )
        registry = self.reader.contract(market_address, MARKET_REGISTRY_ABI)
        try:
            epoch_data, _params = await self.reader.call(registry.functions.getEpoch(epoch_id))
        except Exception as exc:
            raise ResolutionError(
                f"Registry lookup failed for market {market_id} on chain {chain_id}: {exc}"
            ) from exc

        pool_address = epoch_data[EPOCH_POOL_INDEX] if epoch_data else None
        if not pool_address or not Web3.is_address(pool_address):
            raise ResolutionError(
                f"Pool address not found for market {market_id} on chain {chain_id}: {pool_address!r}"
            )
        if pool_address.lower() == ZERO_ADDRESS:
            raise ResolutionError(
                f"Resolved pool address for market {market_id} on chain {chain_id} is the zero address"
            )
        pool_address = Web3.to_checksum_address(pool_address)
        logger.info("Resolved pool %s for market %s on chain %d", pool_address, market_id, chain_id)
        return pool_address
