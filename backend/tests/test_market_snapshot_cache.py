import asyncio
from decimal import Decimal

import pytest

from walletrates.currency import CurrencyManager
from walletrates.errors import TransportError
from walletrates.favorites import InMemoryFavorites, favorites_filter
from walletrates.market.snapshot import MarketSnapshotCache
from walletrates.providers.base import RateSource
from walletrates.schemas.market import MarketEntry, TimePeriod


def entry(asset_id: str, rank: int) -> MarketEntry:
    return MarketEntry(
        asset_id=asset_id,
        coin_code=asset_id.upper(),
        coin_name=asset_id.title(),
        rank=rank,
        rate=Decimal(rank * 10),
    )


class FakeMarketSource(RateSource):
    def __init__(self, entries: list[MarketEntry]) -> None:
        self.entries = entries
        self.calls: list[tuple[str, TimePeriod]] = []
        self.failures: list[Exception] = []
        self.gate: asyncio.Event | None = None

    def cached_rate(self, asset_id, currency_code, timestamp):
        return None

    async def fetch_rate(self, asset_id, currency_code, timestamp):
        raise AssertionError("not used")

    async def current_market_snapshot(self, currency_code: str, period: TimePeriod) -> list[MarketEntry]:
        self.calls.append((currency_code, period))
        if self.gate is not None:
            await self.gate.wait()
        if self.failures:
            raise self.failures.pop(0)
        return list(self.entries)


ENTRIES = [entry("btc", 1), entry("eth", 2), entry("sol", 3)]


def test_snapshot_is_fetched_once() -> None:
    source = FakeMarketSource(ENTRIES)
    cache = MarketSnapshotCache(source, CurrencyManager("USD"))

    async def run():
        first = await cache.query(lambda item: True)
        second = await cache.query(lambda item: item.rank <= 2)
        return first, second

    first, second = asyncio.run(run())

    assert source.calls == [("USD", TimePeriod.HOUR_24)]
    assert [item.asset_id for item in first] == ["btc", "eth", "sol"]
    assert [item.asset_id for item in second] == ["btc", "eth"]
    assert cache.snapshot is not None
    assert cache.snapshot.currency_code == "USD"


def test_predicates_filter_the_same_entries_independently() -> None:
    source = FakeMarketSource(ENTRIES)
    cache = MarketSnapshotCache(source, CurrencyManager("USD"), period=TimePeriod.DAY_7)
    odd = lambda item: item.rank % 2 == 1
    even = lambda item: item.rank % 2 == 0

    async def run():
        return await cache.query(odd), await cache.query(even)

    odd_result, even_result = asyncio.run(run())

    assert odd_result == [item for item in ENTRIES if odd(item)]
    assert even_result == [item for item in ENTRIES if even(item)]
    assert source.calls == [("USD", TimePeriod.DAY_7)]


def test_concurrent_cold_queries_share_one_fetch() -> None:
    source = FakeMarketSource(ENTRIES)
    cache = MarketSnapshotCache(source, CurrencyManager("USD"))

    async def run():
        source.gate = asyncio.Event()
        first = asyncio.ensure_future(cache.query(lambda item: item.asset_id == "btc"))
        second = asyncio.ensure_future(cache.query(lambda item: item.asset_id == "eth"))
        await asyncio.sleep(0)
        source.gate.set()
        return await asyncio.gather(first, second)

    first, second = asyncio.run(run())

    assert len(source.calls) == 1
    assert [item.asset_id for item in first] == ["btc"]
    assert [item.asset_id for item in second] == ["eth"]


def test_fetch_failure_propagates_and_next_query_retries() -> None:
    source = FakeMarketSource(ENTRIES)
    source.failures.append(TransportError("unreachable"))
    cache = MarketSnapshotCache(source, CurrencyManager("USD"))

    with pytest.raises(TransportError):
        asyncio.run(cache.query(lambda item: True))
    assert cache.snapshot is None

    result = asyncio.run(cache.query(lambda item: True))

    assert len(result) == 3
    assert len(source.calls) == 2


def test_invalidate_forces_a_new_fetch() -> None:
    source = FakeMarketSource(ENTRIES)
    cache = MarketSnapshotCache(source, CurrencyManager("USD"))

    asyncio.run(cache.query(lambda item: True))
    cache.invalidate()
    asyncio.run(cache.query(lambda item: True))

    assert len(source.calls) == 2


def test_snapshot_for_previous_currency_is_refetched() -> None:
    source = FakeMarketSource(ENTRIES)
    currency = CurrencyManager("USD")
    cache = MarketSnapshotCache(source, currency)

    asyncio.run(cache.query(lambda item: True))
    currency.set_base_currency("eur")
    asyncio.run(cache.query(lambda item: True))

    assert source.calls == [("USD", TimePeriod.HOUR_24), ("EUR", TimePeriod.HOUR_24)]
    assert cache.snapshot.currency_code == "EUR"


def test_favorites_filter_and_change_passthrough() -> None:
    source = FakeMarketSource(ENTRIES)
    favorites = InMemoryFavorites(["eth"])
    cache = MarketSnapshotCache(source, CurrencyManager("USD"), favorites=favorites)
    updates: list[int] = []
    cache.data_updated.connect(lambda: updates.append(1))

    before = asyncio.run(cache.query(favorites_filter(favorites)))
    favorites.add("sol")
    after = asyncio.run(cache.query(favorites_filter(favorites)))

    assert [item.asset_id for item in before] == ["eth"]
    assert [item.asset_id for item in after] == ["eth", "sol"]
    assert updates == [1]
    assert len(source.calls) == 1


def test_fetch_cancelled_with_its_loop_does_not_block_later_queries() -> None:
    source = FakeMarketSource(ENTRIES)
    cache = MarketSnapshotCache(source, CurrencyManager("USD"))

    async def abandoned() -> None:
        source.gate = asyncio.Event()
        await asyncio.wait_for(cache.query(lambda item: True), 0.01)

    with pytest.raises(asyncio.TimeoutError):
        asyncio.run(abandoned())
    assert cache.snapshot is None

    source.gate = None
    result = asyncio.run(cache.query(lambda item: item.asset_id == "btc"))

    assert [item.asset_id for item in result] == ["btc"]
    assert len(source.calls) == 2
