from context_forge_mcp.db import QueryCache, clear_cache, invalidate_cache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_set_and_get():
    cache = QueryCache(60)
    cache.set("tasks:p1", [1, 2])
    assert cache.get("tasks:p1") == [1, 2]
    assert cache.get("tasks:p2") is None
    assert len(cache) == 1


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = QueryCache(10, clock=clock)
    cache.set("tasks:p1", "value")
    clock.now += 9.9
    assert cache.get("tasks:p1") == "value"
    clock.now += 0.1
    assert cache.get("tasks:p1") is None
    # Expired entries are dropped on read
    assert len(cache) == 0


def test_zero_ttl_disables_caching():
    cache = QueryCache(0)
    cache.set("tasks:p1", "value")
    assert cache.get("tasks:p1") is None
    assert len(cache) == 0


def test_delete():
    cache = QueryCache()
    cache.set("tasks:p1", "value")
    assert cache.delete("tasks:p1") is True
    assert cache.delete("tasks:p1") is False


def test_delete_by_prefix():
    cache = QueryCache()
    cache.set("tasks:p1", 1)
    cache.set("tasks:p2", 2)
    cache.set("projects:p1", 3)
    assert cache.delete_by_prefix("tasks:") == 2
    assert cache.get("projects:p1") == 3
    assert cache.delete_by_prefix("tasks:") == 0


def test_invalidate_cache_single_key():
    cache = QueryCache()
    cache.set("tasks:p1", 1)
    cache.set("tasks:p2", 2)
    invalidate_cache(cache, "tasks:", "p1")
    assert cache.get("tasks:p1") is None
    assert cache.get("tasks:p2") == 2


def test_invalidate_cache_whole_type():
    cache = QueryCache()
    cache.set("tasks:p1", 1)
    cache.set("tasks:p2", 2)
    cache.set("projects:p1", 3)
    invalidate_cache(cache, "tasks:")
    assert len(cache) == 1
    assert cache.get("projects:p1") == 3


def test_clear_cache():
    cache = QueryCache()
    cache.set("tasks:p1", 1)
    cache.set("projects:p1", 2)
    clear_cache(cache)
    assert len(cache) == 0


def test_set_drops_expired_entries():
    clock = FakeClock()
    cache = QueryCache(1, clock=clock)
    for i in range(1000):
        cache.set(f"tasks:p{i}", [])
        clock.now += 0.5
    # Only entries younger than the TTL survive
    assert len(cache) == 2
    assert cache.get("tasks:p999") == []
    assert cache.get("tasks:p0") is None


def test_refreshed_key_does_not_shield_older_entries():
    clock = FakeClock()
    cache = QueryCache(10, clock=clock)
    cache.set("tasks:p1", 1)
    clock.now += 1
    cache.set("tasks:p2", 2)
    clock.now += 4
    cache.set("tasks:p1", 11)
    clock.now += 7
    cache.set("tasks:p3", 3)
    assert len(cache) == 2
    assert cache.get("tasks:p1") == 11
    assert cache.get("tasks:p2") is None
