from __future__ import annotations

from dataclasses import dataclass

from walletrates.cache import build_rate_store
from walletrates.config.settings import Settings, settings as default_settings
from walletrates.currency import CurrencyManager
from walletrates.favorites import FavoritesSet
from walletrates.logging.logger import configure_logging
from walletrates.market.snapshot import MarketSnapshotCache
from walletrates.providers.base import RateProvider
from walletrates.providers.caching import CachingRateSource
from walletrates.rates.historical import HistoricalRateCache


@dataclass
class RateCaches:
    currency: CurrencyManager
    rate_source: CachingRateSource
    historical: HistoricalRateCache
    market: MarketSnapshotCache

    def close(self) -> None:
        self.historical.close()
        self.market.invalidate()


def build_rate_caches(
    provider: RateProvider,
    *,
    favorites: FavoritesSet | None = None,
    settings: Settings | None = None,
) -> RateCaches:
    settings = settings or default_settings
    configure_logging(settings)
    currency = CurrencyManager.from_settings(settings)
    rate_source = CachingRateSource(provider, build_rate_store(settings))
    return RateCaches(
        currency=currency,
        rate_source=rate_source,
        historical=HistoricalRateCache(rate_source, currency),
        market=MarketSnapshotCache(
            rate_source, currency, favorites=favorites, period=settings.market_period
        ),
    )
