import pytest

from fakes import POOL, FakeReader, pool_reader
from poolbook.errors import RefreshError
from poolbook.protocols.uniswap_v3 import UniswapV3Pool
from poolbook.sampler import TickSampler, sample_ticks
from poolbook.types import TickLiquidity


def test_sample_ticks_window():
    assert sample_ticks(0, 60, 2) == [-120, -60, 0, 60, 120]


def test_sample_ticks_aligns_center():
    assert sample_ticks(70, 60, 1) == [0, 60, 120]
    assert sample_ticks(-1, 60, 1) == [-120, -60, 0]


def test_sample_ticks_zero_window():
    assert sample_ticks(125, 10, 0) == [120]


def test_sample_ticks_drops_out_of_range():
    assert sample_ticks(887220, 60, 2) == [887100, 887160, 887220]


def test_sample_ticks_default_window():
    ticks = sample_ticks(0, 10)
    assert len(ticks) == 101
    assert ticks == sorted(set(ticks))


def test_sample_ticks_rejects_bad_spacing():
    with pytest.raises(ValueError):
        sample_ticks(0, 0, 2)


@pytest.mark.asyncio
async def test_fetch_uses_single_batch():
    reader = pool_reader(nets={60: 500, -60: -200})
    sampler = TickSampler(reader, UniswapV3Pool(reader.web3, POOL))

    sample = await sampler.fetch(0, 60, 2)

    assert len(reader.batches) == 1
    assert [key[2][0] for key in reader.batches[0]] == [-120, -60, 0, 60, 120]
    assert sample.failures == 0
    assert sample.initialized_count == 2
    by_tick = {t.tick: t for t in sample.ticks}
    assert by_tick[60] == TickLiquidity(60, 500, True)
    assert by_tick[-60] == TickLiquidity(-60, -200, True)
    assert by_tick[0] == TickLiquidity(0, 0, False)


@pytest.mark.asyncio
async def test_fetch_degrades_failed_tick():
    reader = pool_reader(nets={60: 500})
    reader.set(POOL, "ticks", (60,), RuntimeError("execution reverted"))
    sampler = TickSampler(reader, UniswapV3Pool(reader.web3, POOL))

    sample = await sampler.fetch(0, 60, 2)

    assert sample.failures == 1
    assert len(sample.ticks) == 5
    assert TickLiquidity(60, 0, False) in sample.ticks


@pytest.mark.asyncio
async def test_fetch_batch_failure_raises():
    reader = FakeReader()
    reader.batch_error = ConnectionError("connection reset")
    sampler = TickSampler(reader, UniswapV3Pool(reader.web3, POOL))

    with pytest.raises(RefreshError):
        await sampler.fetch(0, 60, 2)
