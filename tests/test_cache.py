import time

from anisync_app.cache import MemoryBackend, ResponseCache


def test_memory_cache_json_roundtrip():
    cache = ResponseCache()
    assert not cache.is_redis
    cache.set_json("k", {"a": [1, 2]})
    assert cache.get_json("k") == {"a": [1, 2]}
    cache.delete("k")
    assert cache.get_json("k") is None
    assert cache.stats() == {"backend": "memory", "hits": 1, "misses": 1}


def test_unserializable_value_is_not_cached():
    cache = ResponseCache()
    cache.set_json("k", {"bad": object()})
    assert cache.get_json("k") is None


def test_lru_eviction():
    backend = MemoryBackend(max_size=2)
    backend.set("a", "1")
    backend.set("b", "2")
    backend.get("a")
    backend.set("c", "3")
    assert backend.get("b") is None
    assert backend.get("a") == "1"
    assert len(backend) == 2


def test_ttl_expiry(monkeypatch):
    backend = MemoryBackend()
    backend.set("a", "1", ttl=1)
    later = time.time() + 5
    monkeypatch.setattr(time, "time", lambda: later)
    assert backend.get("a") is None
    assert len(backend) == 0


def test_unreachable_redis_falls_back_to_memory():
    cache = ResponseCache("redis://127.0.0.1:1/0")
    assert not cache.is_redis
    cache.set_json("x", 1)
    assert cache.get_json("x") == 1
