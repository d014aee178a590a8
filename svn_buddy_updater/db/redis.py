import logging

import redis.asyncio as aioredis

from svn_buddy_updater.settings.db import RedisSettings, get_redis_settings
from svn_buddy_updater.utils import singleton

logger = logging.getLogger(__name__)

__all__ = (
    "initialize_redis",
    "close_redis",
    "get_redis_client",
)


@singleton
class AsyncRedisConnectors:
    """
    Singleton class that handles redis connections
    """

    def __init__(self) -> None:
        self._client: aioredis.Redis | None = None

    @property
    def redis_settings(self) -> RedisSettings:
        return get_redis_settings()

    async def init_connection(self) -> None:
        """
        Initialize the Redis connection

        Raises:
            RuntimeError: If the Redis connection can't be pinged
        """
        settings = self.redis_settings
        logger.info("Redis: Initializing connection to %s...", settings.info)
        if self._client is None:
            self._client = aioredis.Redis(
                host=settings.host,
                port=settings.port,
                db=settings.db,
                decode_responses=settings.decode_responses,
                socket_connect_timeout=settings.socket_connect_timeout,
                socket_timeout=settings.socket_timeout,
                max_connections=settings.max_connections,
            )

        await self._ping_connection()

    async def _ping_connection(self) -> None:
        """Ping the Redis connection"""
        connection_info = self.redis_settings.info
        logger.info("Redis: Pinging connection to %s...", connection_info)

        try:
            await self.client.ping()
            logger.info("Redis: Connection to %s pinged successfully", connection_info)
        except aioredis.ConnectionError as e:
            logger.error("Redis: Failed to ping connection to %s: %s", connection_info, e)
            raise RuntimeError(f"Redis: Failed to ping connection: {e}") from e

    async def close_connection(self) -> None:
        """Close the Redis connection"""
        if self._client is None:
            logger.warning("Redis: Connection is not initialized, cannot close connection")
            return

        await self._client.aclose()
        self._client = None
        logger.info("Redis: Connection to %s closed successfully", self.redis_settings.info)

    @property
    def client(self) -> aioredis.Redis:
        """Get the Redis client instance from current context"""
        if self._client is None:
            logger.warning("Redis: Client is not initialized!")
            raise RuntimeError("Client is not initialized. Make sure lifespan is properly set up.")

        return self._client


_redis_connectors = AsyncRedisConnectors()


async def initialize_redis() -> None:
    """Initialize the Redis connection"""
    await _redis_connectors.init_connection()


async def close_redis() -> None:
    """Close the Redis connection"""
    await _redis_connectors.close_connection()


def get_redis_client() -> aioredis.Redis:
    """Get the Redis client instance from current context"""
    return _redis_connectors.client
