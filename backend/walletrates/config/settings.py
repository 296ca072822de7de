from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from walletrates.schemas.market import TimePeriod


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="WALLETRATES_",
        env_file=("../.env", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    base_currency: str = "USD"
    market_period: TimePeriod = TimePeriod.HOUR_24

    redis_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("REDIS_URL", "WALLETRATES_REDIS_URL"),
    )
    rate_cache_prefix: str = "walletrates"
    # Historical rates never change once published.
    rate_cache_ttl_seconds: int | None = None

    log_level: Literal["debug", "info", "warning", "error", "critical"] = "info"
    log_json: bool = False


settings = Settings()
