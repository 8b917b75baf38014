# services/idempotency_service.py
"""
Request deduplication over the cache.

A hit returns the result stored by the first successful call; a miss or any
cache failure means "proceed as if no key was given". Correctness never
depends on this layer: the workflows re-check state inside their transaction.
"""

import logging

from flask import current_app, has_app_context


class IdempotencyCache:

    def __init__(self, cache, prefix=None, ttl=None):
        self.cache = cache
        self._prefix = prefix
        self._ttl = ttl
        self.logger = logging.getLogger('idempotency')

    @property
    def prefix(self):
        if self._prefix:
            return self._prefix
        if has_app_context():
            return current_app.config.get('IDEMPOTENCY_PREFIX', 'idempotency')
        return 'idempotency'

    @property
    def ttl(self):
        if self._ttl:
            return self._ttl
        if has_app_context():
            return current_app.config.get('IDEMPOTENCY_TTL', 3600)
        return 3600

    def _key(self, key):
        return f"{self.prefix}:{key}"

    def check(self, key):
        """Return the cached result for ``key`` or None."""
        if not key:
            return None
        cached = self.cache.get(self._key(key))
        if cached is not None:
            self.logger.info(f"Idempotency hit for key {key}")
        return cached

    def store(self, key, result, ttl=None):
        """Remember ``result`` under ``key``. Failures are logged by the cache and ignored."""
        if not key:
            return False
        return self.cache.set(self._key(key), result, ttl or self.ttl)
