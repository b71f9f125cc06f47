"""Shared Redis connection

One client (and connection pool) per process. It is opened by the auth
flow factory on startup and closed on application shutdown. The user
directory and the session store share it.
"""

import logging
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from session_auth.config.settings import Settings, get_settings
from session_auth.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Global client instance (connected on first call)
_redis: Optional[redis.Redis] = None


def create_redis(settings: Settings) -> redis.Redis:
    """Build a client for the configured server without connecting

    Environment Variables:
        REDIS_HOST, REDIS_PORT, REDIS_DB, REDIS_PASSWORD, REDIS_SOCKET_TIMEOUT_SECONDS
    """
    return redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_timeout=settings.redis_socket_timeout_seconds,
        socket_connect_timeout=settings.redis_socket_timeout_seconds,
    )


async def get_redis() -> redis.Redis:
    """Get the process-wide Redis client, connecting on first use

    Returns:
        Connected Redis client

    Raises:
        ConfigurationError: If the server cannot be reached
    """
    global _redis
    if _redis is not None:
        return _redis

    settings = get_settings()
    client = create_redis(settings)
    try:
        await client.ping()
    except RedisError as e:
        await client.aclose()
        raise ConfigurationError(
            f"Cannot reach Redis at {settings.redis_host}:{settings.redis_port}: {e}"
        ) from e

    logger.info(
        f"Connected to Redis: {settings.redis_host}:{settings.redis_port}/{settings.redis_db}"
    )
    _redis = client
    return _redis


async def close_redis() -> None:
    """Close the process-wide client, if one was opened"""
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None
        logger.info("Disconnected from Redis")
