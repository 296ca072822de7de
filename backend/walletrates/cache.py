from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation

from redis import Redis

from walletrates.config.settings import Settings
from walletrates.schemas.rates import RateKey

logger = logging.getLogger(__name__)


class RateStore(ABC):
    """Fast local storage for historical rates, queried without network I/O.

    A stored zero means the provider confirmed there is no rate.
    """

    @abstractmethod
    def get(self, key: RateKey, currency_code: str) -> Decimal | None:
        pass

    @abstractmethod
    def set(self, key: RateKey, currency_code: str, rate: Decimal) -> None:
        pass


class MemoryRateStore(RateStore):
    def __init__(self) -> None:
        self._rates: dict[tuple[str, str, int], Decimal] = {}
        self._lock = threading.Lock()

    def get(self, key: RateKey, currency_code: str) -> Decimal | None:
        with self._lock:
            return self._rates.get((currency_code, key.asset_id, key.timestamp))

    def set(self, key: RateKey, currency_code: str, rate: Decimal) -> None:
        with self._lock:
            self._rates[(currency_code, key.asset_id, key.timestamp)] = rate


class RedisRateStore(RateStore):
    def __init__(
        self,
        redis_url: str | None = None,
        *,
        client: Redis | None = None,
        prefix: str = "walletrates",
        ttl_seconds: int | None = None,
    ) -> None:
        if client is None and redis_url is None:
            raise ValueError("RedisRateStore needs a redis_url or a client.")
        self._redis_url = redis_url
        self._client = client
        self.prefix = prefix
        self.ttl_seconds = ttl_seconds

    def _get_client(self) -> Redis:
        if self._client is None:
            self._client = Redis.from_url(self._redis_url)
        return self._client

    def cache_key(self, key: RateKey, currency_code: str) -> str:
        return f"{self.prefix}:rate:{currency_code}:{key.asset_id}:{key.timestamp}"

    def get(self, key: RateKey, currency_code: str) -> Decimal | None:
        cache_key = self.cache_key(key, currency_code)
        try:
            raw = self._get_client().get(cache_key)
        except Exception as exc:
            logger.warning("Rate cache read failed for %s: %s", cache_key, exc)
            return None

        if not raw:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")

        try:
            rate = Decimal(raw)
        except InvalidOperation:
            rate = None
        if rate is None or not rate.is_finite():
            logger.warning("Discarding malformed cached rate %r for %s", raw, cache_key)
            return None
        return rate

    def set(self, key: RateKey, currency_code: str, rate: Decimal) -> None:
        cache_key = self.cache_key(key, currency_code)
        try:
            client = self._get_client()
            if self.ttl_seconds:
                client.setex(cache_key, self.ttl_seconds, str(rate))
            else:
                client.set(cache_key, str(rate))
        except Exception as exc:
            logger.warning("Rate cache write failed for %s: %s", cache_key, exc)


def build_rate_store(settings: Settings) -> RateStore:
    if settings.redis_url:
        return RedisRateStore(
            settings.redis_url,
            prefix=settings.rate_cache_prefix,
            ttl_seconds=settings.rate_cache_ttl_seconds,
        )
    return MemoryRateStore()
