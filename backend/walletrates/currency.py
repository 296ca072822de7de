from __future__ import annotations

import logging
import threading
from typing import Protocol

from walletrates.config.settings import Settings
from walletrates.signals import Signal

logger = logging.getLogger(__name__)


class CurrencyConfig(Protocol):
    currency_changed: Signal

    def active_currency(self) -> str: ...


def _normalize_code(code: str) -> str:
    cleaned = code.strip().upper()
    if not cleaned:
        raise ValueError("Currency code must not be empty.")
    return cleaned


class CurrencyManager:
    """Holds the process-wide base currency and announces changes."""

    def __init__(self, base_currency: str = "USD") -> None:
        self._base_currency = _normalize_code(base_currency)
        self._lock = threading.Lock()
        self.currency_changed = Signal("currency_changed")

    @classmethod
    def from_settings(cls, settings: Settings) -> "CurrencyManager":
        return cls(settings.base_currency)

    def active_currency(self) -> str:
        with self._lock:
            return self._base_currency

    def set_base_currency(self, code: str) -> None:
        code = _normalize_code(code)
        with self._lock:
            if code == self._base_currency:
                return
            previous = self._base_currency
            self._base_currency = code
        logger.info("Base currency changed from %s to %s", previous, code)
        self.currency_changed.emit()
