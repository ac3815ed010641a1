from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, Hashable, TypeVar

from fiscal_assistant.config import settings

from .base import FiscalRegistry
from .records import FiscalRegistration

V = TypeVar("V")


@dataclass
class _Entry(Generic[V]):
    value: V
    checked_at: float


class TimeBoundedCache(Generic[V]):
    """Key/value cache whose entries expire ``ttl_s`` seconds after the check.

    The clock is injected so callers (and tests) decide what "now" is.
    """

    def __init__(self, ttl_s: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_s = ttl_s
        self._clock = clock
        self._entries: dict[Hashable, _Entry[V]] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> V | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.checked_at >= self.ttl_s:
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: Hashable, value: V) -> None:
        with self._lock:
            self._entries[key] = _Entry(value, self._clock())

    def last_checked(self, key: Hashable) -> float | None:
        with self._lock:
            entry = self._entries.get(key)
            return entry.checked_at if entry else None

    def invalidate(self, key: Hashable | None = None) -> None:
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def get_or_load(self, key: Hashable, loader: Callable[[], V | None]) -> V | None:
        cached = self.get(key)
        if cached is not None:
            return cached
        value = loader()
        if value is not None:
            self.set(key, value)
        return value


class CachedFiscalRegistry:
    """Wraps a ``FiscalRegistry`` and caches registration state per tenant."""

    def __init__(
        self,
        inner: FiscalRegistry,
        cache: TimeBoundedCache[FiscalRegistration] | None = None,
    ) -> None:
        self.inner = inner
        self.cache = cache or TimeBoundedCache(settings.CONNECTION_CACHE_TTL_S)

    def registration(self, tenant_id: str) -> FiscalRegistration | None:
        return self.cache.get_or_load(tenant_id, lambda: self.inner.registration(tenant_id))
