from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from typing import Callable, Iterable

from walletrates.currency import CurrencyConfig
from walletrates.errors import TransportError
from walletrates.providers.base import RateSource
from walletrates.schemas.rates import RateEntry, RateKey, TransactionRecord, normalize_rate
from walletrates.signals import Signal

logger = logging.getLogger(__name__)

ErrorReporter = Callable[[RateKey, BaseException], None]


def _log_fetch_error(key: RateKey, error: BaseException) -> None:
    logger.warning(
        "Could not fetch rate for %s:%s, %s: %s",
        key.asset_id,
        key.timestamp,
        error.__class__.__name__,
        error,
    )


class HistoricalRateCache:
    """Rates of the assets in the displayed transactions, at transaction time.

    ``rates`` holds one slot per key of the current record set. A slot is
    ``None`` while the rate is unknown, otherwise a ``RateEntry``. The key set
    only changes through ``set_records``; its size is bounded by the number of
    displayed records.

    Each ``set_records`` call starts a new generation and forgets pending
    fetches; results of fetches from an earlier generation are dropped. A base
    currency change keeps pending fetches, so a key never has two fetches
    running for the same generation. A fetch that completes for a currency
    that is no longer active is dropped and announced through
    ``rates_changed`` so callers request the rate again.

    State is guarded by a lock and fetch tasks run on the event loop that was
    running when ``fetch_historical_rate`` was called.
    """

    def __init__(
        self,
        rate_source: RateSource,
        currency_config: CurrencyConfig,
        *,
        error_reporter: ErrorReporter | None = None,
    ) -> None:
        self.rate_source = rate_source
        self.currency_config = currency_config
        self.error_reporter = error_reporter or _log_fetch_error
        self.rates_changed = Signal("rates_changed")

        self._rates: dict[RateKey, RateEntry | None] = {}
        # key -> id of the fetch that owns the pending marker
        self._pending: dict[RateKey, int] = {}
        self._fetch_ids = itertools.count(1)
        self._tasks: set[asyncio.Task] = set()
        self._generation = 0
        self._lock = threading.Lock()
        self._closed = False
        self._subscription = currency_config.currency_changed.connect(
            self._handle_currency_changed
        )

    @property
    def base_currency(self) -> str:
        return self.currency_config.active_currency()

    @property
    def pending(self) -> frozenset[RateKey]:
        with self._lock:
            return frozenset(self._pending)

    def snapshot(self) -> dict[RateKey, RateEntry | None]:
        with self._lock:
            return dict(self._rates)

    def set_records(self, records: Iterable[TransactionRecord]) -> None:
        keys = [key for key in (record.rate_key() for record in records) if key is not None]
        currency = self.base_currency

        rates: dict[RateKey, RateEntry | None] = {}
        for key in keys:
            rates[key] = self._cached_entry(key, currency)

        with self._lock:
            self._generation += 1
            self._rates = rates
            self._pending = {}
        logger.debug("Tracking %d historical rates in %s", len(rates), currency)

    def get_historical_rate(self, asset_id: str, timestamp: int) -> RateEntry | None:
        key = RateKey(asset_id=asset_id, timestamp=timestamp)
        with self._lock:
            return self._rates.get(key)

    def fetch_historical_rate(self, asset_id: str, timestamp: int) -> asyncio.Task | None:
        """Resolve a rate from the network in the background.

        Returns the scheduled task, or ``None`` when a fetch for the key is
        already outstanding or the key is not part of the current records.
        Must be called with a running event loop.
        """
        key = RateKey(asset_id=asset_id, timestamp=timestamp)
        loop = asyncio.get_running_loop()
        with self._lock:
            if self._closed or key in self._pending or key not in self._rates:
                return None
            fetch_id = next(self._fetch_ids)
            self._pending[key] = fetch_id
            generation = self._generation

        task = loop.create_task(self._fetch(key, self.base_currency, generation, fetch_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _fetch(self, key: RateKey, currency: str, generation: int, fetch_id: int) -> None:
        try:
            rate = await self.rate_source.fetch_rate(key.asset_id, currency, key.timestamp)
        except TransportError as exc:
            self.error_reporter(key, exc)
            return
        except Exception as exc:
            logger.exception("Unexpected failure fetching rate for %s:%s", key.asset_id, key.timestamp)
            self.error_reporter(key, exc)
            return
        finally:
            with self._lock:
                if self._pending.get(key) == fetch_id:
                    del self._pending[key]

        entry = normalize_rate(rate)
        if entry is None:
            self.error_reporter(key, TransportError(f"Invalid rate {rate!r}"))
            return

        active = self.base_currency
        with self._lock:
            if generation != self._generation or key not in self._rates:
                logger.debug("Dropping stale rate for %s:%s", key.asset_id, key.timestamp)
                return
            if currency == active:
                self._rates[key] = entry
            else:
                logger.debug("Dropping %s rate for %s:%s", currency, key.asset_id, key.timestamp)
        self.rates_changed.emit()

    def _cached_entry(self, key: RateKey, currency: str) -> RateEntry | None:
        return normalize_rate(self.rate_source.cached_rate(key.asset_id, currency, key.timestamp))

    def _handle_currency_changed(self) -> None:
        currency = self.base_currency
        with self._lock:
            keys = list(self._rates)

        refreshed = {key: self._cached_entry(key, currency) for key in keys}

        with self._lock:
            for key, entry in refreshed.items():
                if key in self._rates:
                    self._rates[key] = entry
        logger.debug("Refreshed %d historical rates for %s", len(refreshed), currency)
        self.rates_changed.emit()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._generation += 1
            self._pending = {}
        self._subscription.dispose()
        for task in list(self._tasks):
            task.cancel()
