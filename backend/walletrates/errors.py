from __future__ import annotations


class RateCacheError(Exception):
    """Base class for errors raised by rate sources and caches."""


class TransportError(RateCacheError):
    """A rate provider could not be reached or returned an unusable payload."""

    def __init__(self, message: str, *, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider
