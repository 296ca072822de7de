from __future__ import annotations

import logging
from decimal import Decimal

from walletrates.cache import RateStore
from walletrates.errors import RateCacheError, TransportError
from walletrates.providers.base import RateProvider, RateSource
from walletrates.schemas.market import MarketEntry, TimePeriod
from walletrates.schemas.rates import RateKey

logger = logging.getLogger(__name__)


class CachingRateSource(RateSource):
    def __init__(self, provider: RateProvider, store: RateStore) -> None:
        self.provider = provider
        self.store = store

    def cached_rate(self, asset_id: str, currency_code: str, timestamp: int) -> Decimal | None:
        return self.store.get(RateKey(asset_id=asset_id, timestamp=timestamp), currency_code)

    async def fetch_rate(self, asset_id: str, currency_code: str, timestamp: int) -> Decimal:
        try:
            rate = await self.provider.fetch_rate(asset_id, currency_code, timestamp)
        except RateCacheError:
            raise
        except (OSError, TimeoutError, ValueError) as exc:
            raise TransportError(str(exc), provider=self.provider.name) from exc

        if not rate.is_finite() or rate < 0:
            raise TransportError(
                f"Invalid rate {rate} for {asset_id}/{currency_code}",
                provider=self.provider.name,
            )
        self.store.set(RateKey(asset_id=asset_id, timestamp=timestamp), currency_code, rate)
        logger.debug("Fetched %s/%s@%s = %s", asset_id, currency_code, timestamp, rate)
        return rate

    async def current_market_snapshot(
        self, currency_code: str, period: TimePeriod
    ) -> list[MarketEntry]:
        try:
            return await self.provider.top_markets(currency_code, period)
        except RateCacheError:
            raise
        except (OSError, TimeoutError, ValueError) as exc:
            raise TransportError(str(exc), provider=self.provider.name) from exc
