from __future__ import annotations

import threading
from typing import Callable, Iterable, Protocol

from walletrates.schemas.market import MarketEntry
from walletrates.signals import Signal


class FavoritesSet(Protocol):
    changed: Signal

    def contains(self, asset_id: str) -> bool: ...


class InMemoryFavorites:
    def __init__(self, asset_ids: Iterable[str] = ()) -> None:
        self._asset_ids = set(asset_ids)
        self._lock = threading.Lock()
        self.changed = Signal("favorites_changed")

    def contains(self, asset_id: str) -> bool:
        with self._lock:
            return asset_id in self._asset_ids

    def all(self) -> list[str]:
        with self._lock:
            return sorted(self._asset_ids)

    def add(self, asset_id: str) -> None:
        with self._lock:
            if asset_id in self._asset_ids:
                return
            self._asset_ids.add(asset_id)
        self.changed.emit()

    def remove(self, asset_id: str) -> None:
        with self._lock:
            if asset_id not in self._asset_ids:
                return
            self._asset_ids.discard(asset_id)
        self.changed.emit()


def favorites_filter(favorites: FavoritesSet) -> Callable[[MarketEntry], bool]:
    """Predicate keeping market entries whose asset is a favorite."""
    return lambda entry: favorites.contains(entry.asset_id)
