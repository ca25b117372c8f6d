"""
Redis cache for sessions and processing status, with an in-memory fallback
"""
import json
import os
import time
from typing import Any, Dict, Optional, Tuple

import redis
import structlog

logger = structlog.get_logger()

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")


class CacheService:
    def __init__(self, redis_url: str = REDIS_URL):
        self._memory_cache: Dict[str, Tuple[Any, Optional[float]]] = {}
        try:
            self.redis_client = redis.from_url(redis_url, decode_responses=True, socket_connect_timeout=1)
            self.redis_client.ping()
            logger.info("cache_connected", backend="redis")
        except redis.RedisError as e:
            logger.warning("cache_redis_unavailable", backend="memory", error=str(e))
            self.redis_client = None

    def _memory_get(self, key: str) -> Optional[Any]:
        entry = self._memory_cache.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= time.monotonic():
            self._memory_cache.pop(key, None)
            return None
        return value

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        if self.redis_client is None:
            return self._memory_get(key)
        try:
            value = self.redis_client.get(key)
            return json.loads(value) if value else None
        except redis.RedisError as e:
            logger.error("cache_get_failed", key=key, error=str(e))
            return None

    def set(self, key: str, value: Any, expire: Optional[int] = 3600) -> bool:
        """Set value in cache; ``expire`` is in seconds, None keeps it forever"""
        if self.redis_client is None:
            expires_at = time.monotonic() + expire if expire else None
            self._memory_cache[key] = (value, expires_at)
            return True
        try:
            if expire:
                return bool(self.redis_client.setex(key, expire, json.dumps(value)))
            return bool(self.redis_client.set(key, json.dumps(value)))
        except redis.RedisError as e:
            logger.error("cache_set_failed", key=key, error=str(e))
            return False

    def delete(self, key: str) -> bool:
        """Delete value from cache"""
        if self.redis_client is None:
            return self._memory_cache.pop(key, None) is not None
        try:
            return bool(self.redis_client.delete(key))
        except redis.RedisError as e:
            logger.error("cache_delete_failed", key=key, error=str(e))
            return False

    def clear_pattern(self, pattern: str) -> int:
        """Clear all keys matching a ``prefix*`` pattern"""
        if self.redis_client is None:
            prefix = pattern.rstrip("*")
            keys_to_delete = [k for k in self._memory_cache if k.startswith(prefix)]
            for key in keys_to_delete:
                del self._memory_cache[key]
            return len(keys_to_delete)
        try:
            keys = list(self.redis_client.scan_iter(match=pattern))
            return self.redis_client.delete(*keys) if keys else 0
        except redis.RedisError as e:
            logger.error("cache_clear_failed", pattern=pattern, error=str(e))
            return 0


# Global cache instance
cache = CacheService()
