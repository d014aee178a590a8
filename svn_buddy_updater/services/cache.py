import json
import time
import logging
import contextlib
from typing import Generator, Protocol, Any, TypeAlias, Literal

import redis.asyncio as aioredis

from svn_buddy_updater.db.redis import get_redis_client
from svn_buddy_updater.exceptions import CacheBackendError
from svn_buddy_updater.settings import get_app_settings
from svn_buddy_updater.utils import singleton, cut_string

logger = logging.getLogger(__name__)
DEFAULT_CACHE_TTL: int = 3600
CacheValueType: TypeAlias = str | list[dict[str, Any]] | dict[str, Any]
type CacheOperation = Literal["get", "set", "invalidate"]
type CacheBackend = Literal["redis", "memory"]


class CacheProtocol(Protocol):
    async def get(self, key: str) -> CacheValueType | None:
        pass

    async def set(self, key: str, value: CacheValueType, ttl: int | None = None) -> None:
        pass

    async def invalidate(
        self,
        key: str | None = None,
        pattern: str | Literal["*"] | None = None,
    ) -> None:
        pass


@contextlib.contextmanager
def cache_wrap_error(
    operation: CacheOperation,
    backend: CacheBackend = "redis",
) -> Generator[None, None, None]:
    """
    Context manager to wrap cache operations and raise CacheBackendError
    if any error occurs.

    :param operation: Cache operation to wrap
    :param backend: Cache backend to use (redis or memory)
    :raises: CacheBackendError: If any error occurs while using the cache
    """
    logger.debug("Cache[%s:%s] start execution...", backend, operation)
    try:
        yield
    except aioredis.RedisError as exc:
        logger.error("Cache[%s:%s] execution error: %s", backend, operation, exc)
        raise CacheBackendError(f"Redis execution error: {exc}") from exc

    except (TypeError, ValueError) as exc:
        logger.error("Cache[%s:%s] common error: %s", backend, operation, exc)
        raise CacheBackendError(f"Common error: {exc}") from exc


@singleton
class InMemoryCache(CacheProtocol):
    """Simple memory cache with TTL per key."""

    def __init__(self) -> None:
        self._ttl: float = DEFAULT_CACHE_TTL
        self._data: dict[str, CacheValueType] = {}
        self._expires_at: dict[str, float] = {}

    async def get(self, key: str) -> CacheValueType | None:
        """
        Get cached value for a key if not expired.

        :param key: Cache key to look up
        :return: Cached value if exists and not expired, None otherwise
        """
        if key not in self._data:
            return None

        if time.monotonic() > self._expires_at[key]:
            self._drop(key)
            return None

        logger.debug("Cache[memory]: got value for key %s", key)
        return self._data[key]

    async def set(self, key: str, value: CacheValueType, ttl: int | None = None) -> None:
        """
        Set new cache value for key.

        :param key: Cache key to store value
        :param value: Value to cache
        :param ttl: TTL in seconds (uses default TTL if None)
        """
        self._data[key] = value
        self._expires_at[key] = time.monotonic() + (ttl or self._ttl)
        logger.debug("Cache[memory]: set value for key %s | value: %s", key, value)

    async def invalidate(
        self,
        key: str | None = None,
        pattern: str | Literal["*"] | None = None,
    ) -> None:
        """
        Force cache invalidation for a specific key or pattern.

        :param key: Specific key to invalidate
        :param pattern: Prefix pattern to invalidate ("*" invalidates everything)
        :raises: ValueError: If key or pattern is not provided
        """
        if pattern == "*":
            logger.debug("Cache[memory]: invalidated all keys")
            self._data.clear()
            self._expires_at.clear()

        elif pattern:
            prefix = pattern.removesuffix("*")
            keys_to_remove = [key for key in self._data if key.startswith(prefix)]
            for key_to_remove in keys_to_remove:
                self._drop(key_to_remove)

            logger.debug(
                "Cache[memory]: invalidated %i keys with prefix %s", len(keys_to_remove), prefix
            )

        elif key:
            self._drop(key)

        else:
            raise ValueError("Cache[memory]: key or pattern is required for invalidation")

    def _drop(self, key: str) -> None:
        self._data.pop(key, None)
        self._expires_at.pop(key, None)


@singleton
class RedisCache(CacheProtocol):
    """Redis-based cache implementation with JSON serialization and async operations."""

    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client
        self._default_ttl: int = DEFAULT_CACHE_TTL

    async def get(self, key: str) -> CacheValueType | None:
        """
        Get cached value for a key from Redis.

        :param key: Cache key to look up
        :return: Cached value if exists and not expired, None otherwise
        """
        with cache_wrap_error("get", backend="redis"):
            value = await self._client.get(key)
            if value is None:
                return None

            decoded: CacheValueType = json.loads(value)

        logger.debug(
            "Cache[redis:get] got value for key %s | value: %s",
            key,
            cut_string(str(decoded), max_length=64),
        )
        return decoded

    async def set(self, key: str, value: CacheValueType, ttl: int | None = None) -> None:
        """
        Set new cache value for key in Redis.

        :param key: Cache key to store value
        :param value: Value to cache
        :param ttl: TTL in seconds (uses default if None)
        """
        ttl_seconds = ttl or self._default_ttl
        with cache_wrap_error("set", backend="redis"):
            serialized = json.dumps(value)
            await self._client.setex(key, ttl_seconds, serialized)

        logger.debug(
            "Cache[redis:set] key %s | ttl: %i | value: %s",
            key,
            ttl_seconds,
            cut_string(serialized, max_length=64),
        )

    async def invalidate(
        self,
        key: str | None = None,
        pattern: str | Literal["*"] | None = None,
    ) -> None:
        """
        Force cache invalidation for a specific key or pattern in Redis.

        :param key: Specific key to invalidate
        :param pattern: Pattern to invalidate ("*" flushes the whole DB)
        :raises: ValueError: If key or pattern is not provided
        """
        with cache_wrap_error("invalidate", backend="redis"):
            if pattern == "*":
                logger.info("Cache[redis]: invalidating all keys")
                await self._client.flushdb()

            elif pattern:
                keys_to_remove = list(await self._client.keys(pattern))
                if keys_to_remove:
                    await self._client.delete(*keys_to_remove)

                logger.debug(
                    "Cache[redis]: invalidated %i keys by pattern %s", len(keys_to_remove), pattern
                )

            elif key:
                logger.debug("Cache[redis]: invalidating key %s", key)
                await self._client.delete(key)

            else:
                raise ValueError("Cache[redis]: key or pattern is required for invalidation")


def get_cache(backend: CacheBackend = "redis") -> CacheProtocol:
    """Get cache instance based on configuration.

    :param backend: Cache backend to use (redis or memory)
    :return: CacheProtocol instance (InMemoryCache or RedisCache)
    """
    if backend == "memory":
        logger.debug("Cache: requested InMemoryCache")
        return InMemoryCache()

    settings = get_app_settings()
    if settings.flags.use_redis:
        logger.debug("Cache: requested RedisCache and redis is enabled")
        return RedisCache(get_redis_client())

    logger.debug("Cache: redis is disabled, returning InMemoryCache")
    return InMemoryCache()

