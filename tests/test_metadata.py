import pytest

from fakes import POOL, TOKEN0, TOKEN1, pool_reader
from poolbook.errors import MetadataError
from poolbook.metadata import PoolMetadataLoader
from poolbook.types import PoolMetadata


@pytest.mark.asyncio
async def test_load_reads_addresses_then_decimals():
    reader = pool_reader(decimals=(6, 18))
    metadata = await PoolMetadataLoader(reader).load(POOL)

    assert metadata == PoolMetadata(token0=TOKEN0, token1=TOKEN1, token0_decimals=6, token1_decimals=18)
    names = [name for _, name, _ in reader.calls]
    assert sorted(names[:2]) == ["token0", "token1"]
    assert names[2:] == ["decimals", "decimals"]


@pytest.mark.asyncio
async def test_load_is_cached():
    reader = pool_reader()
    loader = PoolMetadataLoader(reader)

    first = await loader.load(POOL)
    second = await loader.load(POOL.lower())

    assert first is second
    assert len(reader.calls) == 4


@pytest.mark.asyncio
async def test_load_failure_is_fatal():
    reader = pool_reader()
    reader.set(TOKEN1, "decimals", (), RuntimeError("execution reverted"))

    with pytest.raises(MetadataError, match="execution reverted"):
        await PoolMetadataLoader(reader).load(POOL)


@pytest.mark.asyncio
async def test_load_failure_is_not_cached():
    reader = pool_reader()
    reader.set(POOL, "token0", (), RuntimeError("timeout"))
    loader = PoolMetadataLoader(reader)

    with pytest.raises(MetadataError):
        await loader.load(POOL)
    reader.set(POOL, "token0", (), (TOKEN0,))
    assert (await loader.load(POOL)).token0 == TOKEN0
