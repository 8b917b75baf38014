"""
Redis cache client.

A read-through and dedup helper, never a correctness gate: every call fails
open, so an unreachable or unconfigured Redis behaves like an empty cache.
"""

import json
import logging
from typing import Any, Optional

import redis


class CacheService:
    """Redis-backed key/value cache with TTL support."""

    # Key prefixes for organization
    PREFIX_ENROLLMENT = "enrollment:"
    PREFIX_PAYMENT = "payment:"

    def __init__(self, app=None):
        self.client: Optional[redis.Redis] = None
        self.logger = logging.getLogger('cache_service')

        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        """Create the connection pool from REDIS_URL (lazy, no I/O here)."""
        url = app.config.get('REDIS_URL')
        if not url:
            self.client = None
            self.logger.info("REDIS_URL not set, cache disabled")
            return

        timeout = app.config.get('REDIS_SOCKET_TIMEOUT', 0.5)
        self.client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
        )
        self.logger.info("Redis cache client configured")

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def get(self, key: str) -> Optional[Any]:
        """Get a JSON value, or None on miss or failure."""
        if not self.enabled:
            return None
        try:
            data = self.client.get(key)
            if data is None:
                self.logger.debug(f"Cache MISS: {key}")
                return None
            self.logger.debug(f"Cache HIT: {key}")
            return json.loads(data)
        except (redis.RedisError, ValueError) as e:
            self.logger.warning(f"Cache error (get {key}): {e}")
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store a JSON-serializable value, optionally with a TTL in seconds."""
        if not self.enabled:
            return False
        try:
            serialized = json.dumps(value)
            if ttl:
                self.client.setex(key, ttl, serialized)
            else:
                self.client.set(key, serialized)
            return True
        except (redis.RedisError, TypeError, ValueError) as e:
            self.logger.warning(f"Cache error (set {key}): {e}")
            return False

    def delete(self, key: str) -> bool:
        if not self.enabled:
            return False
        try:
            return self.client.delete(key) > 0
        except redis.RedisError as e:
            self.logger.warning(f"Cache error (delete {key}): {e}")
            return False

    def invalidate_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern. Returns the number removed."""
        if not self.enabled:
            return 0
        try:
            keys = list(self.client.scan_iter(match=pattern, count=100))
            if not keys:
                return 0
            removed = self.client.delete(*keys)
            self.logger.debug(f"Invalidated {removed} cache keys matching {pattern}")
            return removed
        except redis.RedisError as e:
            self.logger.warning(f"Cache error (invalidate {pattern}): {e}")
            return 0
