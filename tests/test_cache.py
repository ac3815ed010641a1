from conftest import TENANT
from fiscal_assistant.collaborators.cache import CachedFiscalRegistry, TimeBoundedCache
from fiscal_assistant.collaborators.memory import InMemoryFiscalRegistry
from fiscal_assistant.collaborators.records import FiscalRegistration


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_entries_expire_after_ttl() -> None:
    clock = FakeClock()
    cache: TimeBoundedCache[str] = TimeBoundedCache(ttl_s=300, clock=clock)
    cache.set("t1", "healthy")
    clock.now += 299
    assert cache.get("t1") == "healthy"
    assert cache.last_checked("t1") == 1000.0
    clock.now += 1
    assert cache.get("t1") is None
    assert cache.last_checked("t1") is None


def test_invalidate() -> None:
    cache: TimeBoundedCache[int] = TimeBoundedCache(ttl_s=60)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.invalidate("a")
    assert cache.get("a") is None
    assert cache.get("b") == 2
    cache.invalidate()
    assert cache.get("b") is None


def test_cached_registry_hits_inner_once_per_ttl(registration: FiscalRegistration) -> None:
    clock = FakeClock()
    inner = InMemoryFiscalRegistry([registration])
    cached = CachedFiscalRegistry(inner, TimeBoundedCache(ttl_s=300, clock=clock))

    assert cached.registration(TENANT) is registration
    assert cached.registration(TENANT) is registration
    assert inner.calls == 1

    clock.now += 301
    cached.registration(TENANT)
    assert inner.calls == 2


def test_missing_registration_is_not_cached() -> None:
    inner = InMemoryFiscalRegistry([])
    cached = CachedFiscalRegistry(inner)
    assert cached.registration("nobody") is None
    assert cached.registration("nobody") is None
    assert inner.calls == 2
