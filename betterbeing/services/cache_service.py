"""
Redis read cache for the catalog and per-user order history.

Keys are namespaced as {prefix}:{scope}:{module}:{key}. Cached values are the
JSON payloads the blueprints return, so money fields are already strings.
Any Redis failure turns the cache into a pass-through.
"""

import logging
import json
from typing import Any, Optional, Callable

import redis
from redis.exceptions import RedisError
from flask import Flask, current_app

logger = logging.getLogger(__name__)

CATALOG_SCOPE = 'catalog'


def user_scope(user_id: int) -> str:
    """Cache scope holding one user's private reads."""
    return f"user:{user_id}"


class CacheService:

    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self._prefix: str = 'betterbeing'

        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """Connect to REDIS_URL unless CACHE_ENABLED is off."""
        self._prefix = app.config.get('CACHE_KEY_PREFIX', 'betterbeing')

        if not app.config.get('CACHE_ENABLED', True):
            logger.info("[CACHE] Cache is DISABLED via config")
            return

        redis_url = app.config.get('REDIS_URL', 'redis://redis:6379/0')
        try:
            client = redis.from_url(redis_url, decode_responses=True, socket_timeout=3)
            client.ping()
        except RedisError as e:
            logger.warning(f"[CACHE] Redis connection failed: {e}. Cache DISABLED.")
            return

        self.client = client
        logger.info(f"[CACHE] Redis connected: {redis_url}")

    def is_available(self) -> bool:
        if self.client is None:
            return False
        try:
            return bool(self.client.ping())
        except RedisError:
            return False

    def build_key(self, scope: str, module: str, key: str) -> str:
        return f"{self._prefix}:{scope}:{module}:{key}"

    def memoize(self, scope: str, module: str, key: str, loader_fn: Callable[[], Any],
                ttl: Optional[int] = None) -> Any:
        """Return the cached value, or call loader_fn and cache its result."""
        if self.client is None:
            return loader_fn()

        cache_key = self.build_key(scope, module, key)
        try:
            cached = self.client.get(cache_key)
            if cached is not None:
                return json.loads(cached)
        except (RedisError, ValueError) as e:
            logger.warning(f"[CACHE] Get error on {cache_key}: {e}")

        value = loader_fn()
        if ttl is None:
            ttl = current_app.config.get('CACHE_DEFAULT_TTL', 60)
        try:
            self.client.setex(cache_key, ttl, json.dumps(value))
        except RedisError as e:
            logger.warning(f"[CACHE] Set error on {cache_key}: {e}")
        return value

    def invalidate_module(self, scope: str, module: str) -> int:
        """Delete every key under scope/module. Returns the number removed."""
        if self.client is None:
            return 0

        pattern = self.build_key(scope, module, '*')
        try:
            keys = list(self.client.scan_iter(match=pattern, count=100))
            if keys:
                self.client.delete(*keys)
                logger.info(f"[CACHE] INVALIDATE: {pattern} ({len(keys)} keys)")
            return len(keys)
        except RedisError as e:
            logger.warning(f"[CACHE] Invalidate error on {pattern}: {e}")
            return 0


_cache_service: Optional[CacheService] = None


def init_cache(app: Flask) -> None:
    global _cache_service
    _cache_service = CacheService(app)
    app.extensions['cache'] = _cache_service


def get_cache() -> CacheService:
    if _cache_service is None:
        raise RuntimeError("Cache not initialized.")
    return _cache_service


def invalidate_after_stock_change(user_id: int) -> None:
    """Drop the cached catalog and the user's order history after checkout/cancel."""
    try:
        cache = get_cache()
    except RuntimeError as e:
        logger.debug(f"[CACHE] Skipping invalidation: {e}")
        return
    cache.invalidate_module(CATALOG_SCOPE, 'products')
    cache.invalidate_module(user_scope(user_id), 'orders')
