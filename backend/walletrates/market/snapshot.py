from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable

from walletrates.currency import CurrencyConfig
from walletrates.favorites import FavoritesSet
from walletrates.providers.base import RateSource
from walletrates.schemas.market import MarketEntry, MarketSnapshot, TimePeriod
from walletrates.signals import Signal

logger = logging.getLogger(__name__)

EntryFilter = Callable[[MarketEntry], bool]


class MarketSnapshotCache:
    """Memoizes one market snapshot and filters it per query.

    The snapshot is kept until ``invalidate`` is called. A snapshot fetched
    for another currency than the active one is treated as missing. Queries
    arriving while a fetch is in flight wait for that fetch.
    """

    def __init__(
        self,
        rate_source: RateSource,
        currency_config: CurrencyConfig,
        *,
        favorites: FavoritesSet | None = None,
        period: TimePeriod = TimePeriod.HOUR_24,
    ) -> None:
        self.rate_source = rate_source
        self.currency_config = currency_config
        self.period = period
        self._favorites = favorites
        self._own_updates = Signal("market_data_updated")

        self._snapshot: MarketSnapshot | None = None
        self._inflight: asyncio.Task | None = None
        self._inflight_currency: str | None = None
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def data_updated(self) -> Signal:
        if self._favorites is not None:
            return self._favorites.changed
        return self._own_updates

    @property
    def snapshot(self) -> MarketSnapshot | None:
        with self._lock:
            return self._snapshot

    def invalidate(self) -> None:
        with self._lock:
            self._generation += 1
            self._snapshot = None
            self._inflight = None

    async def query(self, predicate: EntryFilter) -> list[MarketEntry]:
        snapshot = await self._get_snapshot()
        return [entry for entry in snapshot.entries if predicate(entry)]

    async def _get_snapshot(self) -> MarketSnapshot:
        currency = self.currency_config.active_currency()
        with self._lock:
            snapshot = self._snapshot
            if snapshot is not None and snapshot.currency_code == currency:
                return snapshot
            inflight = self._inflight
            if inflight is None or inflight.done() or self._inflight_currency != currency:
                inflight = asyncio.get_running_loop().create_task(
                    self._fetch(currency, self._generation)
                )
                self._inflight = inflight
                self._inflight_currency = currency
        return await asyncio.shield(inflight)

    async def _fetch(self, currency: str, generation: int) -> MarketSnapshot:
        try:
            entries = await self.rate_source.current_market_snapshot(currency, self.period)
        except Exception as exc:
            logger.warning("Market snapshot fetch for %s failed: %s", currency, exc)
            raise
        finally:
            with self._lock:
                if self._inflight is asyncio.current_task():
                    self._inflight = None

        snapshot = MarketSnapshot(currency_code=currency, period=self.period, entries=tuple(entries))
        active = self.currency_config.active_currency()
        with self._lock:
            if generation == self._generation and currency == active:
                self._snapshot = snapshot
        logger.debug("Cached %d market entries for %s", len(snapshot.entries), currency)
        return snapshot
