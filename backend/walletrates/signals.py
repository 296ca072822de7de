from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


class Subscription:
    def __init__(self, signal: "Signal", callback: Callback) -> None:
        self._signal = signal
        self._callback = callback
        self.disposed = False

    def dispose(self) -> None:
        if self.disposed:
            return
        self.disposed = True
        self._signal._disconnect(self)


class Signal:
    """Payload-less broadcast notification.

    Subscribers are invoked synchronously in connection order. Emissions are
    not replayed, so a late subscriber only sees what is emitted after it
    connects. A failing subscriber is logged and skipped.
    """

    def __init__(self, name: str = "signal") -> None:
        self.name = name
        self._subscriptions: list[Subscription] = []
        self._lock = threading.Lock()

    def connect(self, callback: Callback) -> Subscription:
        subscription = Subscription(self, callback)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def _disconnect(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def emit(self) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            if subscription.disposed:
                continue
            try:
                subscription._callback()
            except Exception:
                logger.exception("Subscriber of %s failed", self.name)
