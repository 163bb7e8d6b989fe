"""
================================================================================
AniSync v1.0 - Response Cache
================================================================================
Keeps AniList GraphQL responses between calls so crawls and repeated API
lookups do not spend the canonical service's rate limit twice.

BACKENDS:
  - Redis when REDIS_URL is set and answers PING (shared between workers)
  - In-process LRU with per-entry expiry otherwise

Redis errors after startup are logged and read as misses; the cache never
fails a lookup.
================================================================================
"""

import json
import time
import logging
import threading
from typing import Any, Dict, Optional, Tuple
from collections import OrderedDict

import redis

logger = logging.getLogger(__name__)


class RedisBackend:
    """Redis storage; every command failure degrades to a no-op."""
    name = "redis"

    def __init__(self, url: str):
        self.client = redis.from_url(url, decode_responses=True)
        self.client.ping()

    def _run(self, command: str, *args, **kwargs) -> Any:
        try:
            return getattr(self.client, command)(*args, **kwargs)
        except redis.RedisError as e:
            logger.error(f"Redis {command.upper()} failed: {e}")
            return None

    def get(self, key: str) -> Optional[str]:
        return self._run('get', key)

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        self._run('set', key, value, ex=ttl)

    def delete(self, key: str) -> None:
        self._run('delete', key)


class MemoryBackend:
    """Thread-safe LRU of (value, expires_at) entries."""
    name = "memory"

    def __init__(self, max_size: int = 2048):
        self.max_size = max_size
        self._entries: "OrderedDict[str, Tuple[str, Optional[float]]]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and time.time() > expires_at:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return value

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        expires_at = time.time() + ttl if ttl else None
        with self._lock:
            self._entries[key] = (value, expires_at)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


class ResponseCache:
    """
    JSON cache for canonical responses.

    Usage:
        cache = ResponseCache(settings.redis_url)
        cache.set_json("anilist:abc", payload, ttl=3600)
        payload = cache.get_json("anilist:abc")
    """

    def __init__(self, redis_url: Optional[str] = None, prefix: str = "anisync:"):
        self.prefix = prefix
        self.hits = 0
        self.misses = 0
        self.backend = self._make_backend(redis_url)

    @staticmethod
    def _make_backend(redis_url: Optional[str]):
        if redis_url:
            try:
                backend = RedisBackend(redis_url)
                logger.info(f"Response cache using Redis at {redis_url}")
                return backend
            except redis.RedisError as e:
                logger.warning(f"Redis unavailable ({e}), response cache kept in memory")
        return MemoryBackend()

    @property
    def is_redis(self) -> bool:
        return isinstance(self.backend, RedisBackend)

    def get_json(self, key: str) -> Optional[Any]:
        raw = self.backend.get(self.prefix + key)
        if raw:
            try:
                value = json.loads(raw)
                self.hits += 1
                return value
            except ValueError:
                logger.warning(f"Dropping undecodable cache entry {key}")
                self.backend.delete(self.prefix + key)
        self.misses += 1
        return None

    def set_json(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        try:
            raw = json.dumps(value, separators=(',', ':'))
        except (TypeError, ValueError) as e:
            logger.error(f"Not caching {key}: {e}")
            return
        self.backend.set(self.prefix + key, raw, ttl)

    def delete(self, key: str) -> None:
        self.backend.delete(self.prefix + key)

    def stats(self) -> Dict[str, Any]:
        return {'backend': self.backend.name, 'hits': self.hits, 'misses': self.misses}


_response_cache: Optional[ResponseCache] = None


def get_response_cache() -> ResponseCache:
    """Process-wide cache built from settings on first use."""
    global _response_cache
    if _response_cache is None:
        from .config import get_settings
        _response_cache = ResponseCache(get_settings().redis_url)
    return _response_cache
