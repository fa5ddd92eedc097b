import pytest

from app.core.cache import TTLCache
from app.services import content_service


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_entries_expire_after_ttl():
    clock = Clock()
    cache = TTLCache(30, clock=clock)
    cache.set("cities:list", ["sydney"])

    clock.now = 29
    assert cache.get("cities:list") == ["sydney"]

    clock.now = 30
    assert cache.get("cities:list") is None
    assert len(cache) == 0


def test_lookup_counts_empty_values_as_hits():
    cache = TTLCache(30)
    cache.set("paths:city-service", [])
    assert cache.lookup("paths:city-service") == (True, [])
    assert cache.lookup("cities:list") == (False, None)


def test_invalidate_by_prefix():
    cache = TTLCache(30)
    cache.set("cities:list", [])
    cache.set("cities:sydney", {})
    cache.set("services:list", [])

    assert cache.invalidate("cities:") == 2
    assert cache.lookup("services:list")[0] is True
    assert cache.invalidate() == 1


@pytest.mark.asyncio
async def test_reference_reads_are_cached(db, store):
    await content_service.list_cities(db)
    await content_service.list_cities(db)
    assert store.calls.count(("select", "cities")) == 1


@pytest.mark.asyncio
async def test_reference_writes_invalidate_cache(db, store):
    await content_service.list_services(db)
    await content_service.update_service(db, "deep-cleaning", {"price": "From $199"})

    services = await content_service.list_services(db)

    assert {s.slug: s.price for s in services}["deep-cleaning"] == "From $199"
