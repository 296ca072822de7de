from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RateKey(BaseModel):
    """Identifies a historical rate within one base-currency generation."""

    model_config = ConfigDict(frozen=True)

    asset_id: str
    timestamp: int


class RateEntry(BaseModel):
    """A resolved rate: either a positive value or the known-none marker.

    An unresolved rate is represented by the absence of an entry (``None``),
    never by a ``RateEntry``.
    """

    model_config = ConfigDict(frozen=True)

    rate: Optional[Decimal] = None

    @classmethod
    def known(cls, rate: Decimal) -> "RateEntry":
        return cls(rate=rate)

    @classmethod
    def none(cls) -> "RateEntry":
        return cls(rate=None)

    @property
    def is_none(self) -> bool:
        return self.rate is None


def normalize_rate(value: Decimal | None) -> RateEntry | None:
    """Map a raw rate to an entry; zero means known-none.

    Missing, non-finite and negative values are not usable rates and stay
    unknown.
    """
    if value is None or not value.is_finite():
        return None
    if value.is_zero():
        return RateEntry.none()
    if value < 0:
        return None
    return RateEntry.known(value)


class TransactionValue(BaseModel):
    asset_id: str
    amount: Decimal


class TransactionRecord(BaseModel):
    uid: str
    timestamp: int
    main_value: Optional[TransactionValue] = None
    tags: list[str] = Field(default_factory=list)

    def rate_key(self) -> RateKey | None:
        if self.main_value is None:
            return None
        return RateKey(asset_id=self.main_value.asset_id, timestamp=self.timestamp)
