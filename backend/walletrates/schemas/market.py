from __future__ import annotations

import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TimePeriod(str, Enum):
    ALL = "all"
    HOUR_1 = "1h"
    HOUR_24 = "24h"
    DAY_7 = "7d"
    DAY_14 = "14d"
    DAY_30 = "30d"
    DAY_200 = "200d"
    YEAR_1 = "1y"


class MarketEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    asset_id: str
    coin_code: str
    coin_name: str = ""
    rank: Optional[int] = None
    rate: Optional[Decimal] = None
    diff: Optional[Decimal] = None
    market_cap: Optional[Decimal] = None
    volume: Optional[Decimal] = None


class MarketSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    currency_code: str
    period: TimePeriod
    entries: tuple[MarketEntry, ...] = ()
    fetched_at: datetime.datetime = Field(
        default_factory=lambda: datetime.datetime.now(datetime.UTC)
    )
