"""
Redis Connection Manager
Pooled Redis client holding persisted story submissions for retries.
"""

import logging
import time
from functools import lru_cache
from typing import Optional

from redis import ConnectionPool, Redis
from redis.exceptions import RedisError

from storystudio.core.config import settings

logger = logging.getLogger(__name__)


class RedisManager:
    """Lazily creates one connection pool and client per URL."""

    def __init__(self, url: Optional[str] = None, max_connections: int = 10):
        self.url = url or settings.REDIS_URL
        self.max_connections = max_connections
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = None

    def get_connection(self) -> Redis:
        if self._client is None:
            self._pool = ConnectionPool.from_url(
                self.url,
                max_connections=self.max_connections,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                decode_responses=True,
            )
            self._client = Redis(connection_pool=self._pool)
            logger.info(f"Created Redis connection pool for {self.masked_url}")
        return self._client

    @property
    def masked_url(self) -> str:
        """URL with credentials hidden, safe for logs and health output."""
        if "@" not in self.url:
            return self.url
        scheme, _, rest = self.url.partition("://")
        return f"{scheme}://***@{rest.rsplit('@', 1)[-1]}"

    def health_check(self) -> dict:
        """
        Ping Redis and report version and round-trip latency.

        Returns:
            dict with status, connected, url and either redis_version/latency_ms or error
        """
        try:
            client = self.get_connection()
            started = time.perf_counter()
            client.ping()
            latency_ms = round((time.perf_counter() - started) * 1000, 1)
            version = client.info("server").get("redis_version", "unknown")
        except RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            return {"status": "unhealthy", "connected": False, "error": str(e), "url": self.masked_url}

        return {
            "status": "healthy",
            "connected": True,
            "redis_version": version,
            "latency_ms": latency_ms,
            "url": self.masked_url,
        }

    def close(self):
        """Disconnect the pool; the next get_connection() builds a new one."""
        if self._pool is not None:
            self._pool.disconnect()
            logger.info("Redis connection pool closed")
        self._pool = None
        self._client = None


@lru_cache()
def get_redis_manager() -> RedisManager:
    """Process-wide Redis manager."""
    return RedisManager()


def get_redis() -> Redis:
    return get_redis_manager().get_connection()


def redis_health_check() -> dict:
    return get_redis_manager().health_check()


__all__ = [
    "RedisManager",
    "get_redis_manager",
    "get_redis",
    "redis_health_check",
]
