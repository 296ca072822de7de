from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal

from walletrates.schemas.market import MarketEntry, TimePeriod


class RateSource(ABC):
    """What the caches consume: a fast local lookup plus network fetches."""

    @abstractmethod
    def cached_rate(self, asset_id: str, currency_code: str, timestamp: int) -> Decimal | None:
        """Return a locally known rate without blocking on the network."""

    @abstractmethod
    async def fetch_rate(self, asset_id: str, currency_code: str, timestamp: int) -> Decimal:
        """Fetch a historical rate; zero means no rate exists.

        Raises ``TransportError`` when the rate could not be retrieved.
        """

    @abstractmethod
    async def current_market_snapshot(
        self, currency_code: str, period: TimePeriod
    ) -> list[MarketEntry]:
        pass


class RateProvider(ABC):
    """Upstream market data service."""

    name: str = "provider"

    @abstractmethod
    async def fetch_rate(self, asset_id: str, currency_code: str, timestamp: int) -> Decimal:
        pass

    @abstractmethod
    async def top_markets(self, currency_code: str, period: TimePeriod) -> list[MarketEntry]:
        pass
