import fnmatch

from hiring_pipeline.core.cache import RedisCache, get_cache_key


class FakeRedis:
    def __init__(self, broken=False):
        self.store = {}
        self.ttls = {}
        self.broken = broken
        self.closed = False

    def _check(self):
        if self.broken:
            raise ConnectionError("redis unavailable")

    async def get(self, key):
        self._check()
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        self._check()
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    async def delete(self, *keys):
        self._check()
        removed = [k for k in keys if self.store.pop(k, None) is not None]
        return len(removed)

    async def scan_iter(self, match=None):
        self._check()
        for key in list(self.store):
            if match is None or fnmatch.fnmatch(key, match):
                yield key

    async def aclose(self):
        self.closed = True


def test_cache_key():
    assert get_cache_key("round_candidates", "tpl-1", 2, 100) == "round_candidates:tpl-1:2:100"


async def test_round_trip_with_ttl():
    redis_client = FakeRedis()
    cache = RedisCache(ttl=60, client=redis_client)

    assert await cache.set("k", {"candidates": [{"id": "a"}]})
    assert await cache.get("k") == {"candidates": [{"id": "a"}]}
    assert redis_client.ttls["k"] == 60
    assert await cache.get("missing") is None


async def test_invalidate_pattern_only_touches_matching_keys():
    redis_client = FakeRedis()
    cache = RedisCache(client=redis_client)
    await cache.set("round_candidates:tpl-1:1:100", {})
    await cache.set("round_candidates:tpl-1:2:100", {})
    await cache.set("round_candidates:tpl-2:1:100", {})

    removed = await cache.invalidate_pattern("round_candidates:tpl-1:*")

    assert removed == 2
    assert list(redis_client.store) == ["round_candidates:tpl-2:1:100"]


async def test_errors_are_cache_misses():
    cache = RedisCache(client=FakeRedis(broken=True))

    assert await cache.get("k") is None
    assert await cache.set("k", 1) is False
    assert await cache.invalidate_pattern("k*") == 0


async def test_close_releases_client():
    redis_client = FakeRedis()
    cache = RedisCache(client=redis_client)
    await cache.close()
    assert redis_client.closed
