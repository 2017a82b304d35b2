"""
Async Redis connection manager.

This module provides the RedisClient shared by the Redis alert store and the
Redis container source: connection pooling, health checks, key namespacing
and pub/sub publishing. Data-specific reads and writes live with the store
and source that own the keys.

Key Patterns (all prefixed with the configured key prefix):
    - Alerts: `alert:{alert_id}` (JSON string), `alerts:active` (set),
              `alerts:by_subject:{subject_id}` (set), `alerts:all` (set)
    - Containers: `containers` (set), `container:{id}` (hash)
    - Readings: `reading:{device_id}` (hash)
    - Pub/Sub channels: `updates:alerts`

Example:
    >>> from fillwatch.config.models import RedisConnectionConfig
    >>> from fillwatch.storage.redis_client import RedisClient
    >>>
    >>> client = RedisClient(RedisConnectionConfig(url="redis://localhost:6379"))
    >>> await client.connect()
    >>> try:
    ...     assert await client.ping()
    ... finally:
    ...     await client.disconnect()
"""

from __future__ import annotations

from typing import Optional

import structlog
from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, TimeoutError as RedisTimeoutError

from fillwatch.config.models import RedisConnectionConfig
from fillwatch.interfaces.alert_store import StoreUnavailableError

logger = structlog.get_logger(__name__)


class RedisClientError(StoreUnavailableError):
    """Base exception for Redis client errors."""

    pass


class RedisConnectionException(RedisClientError):
    """Raised when Redis connection fails."""

    pass


class RedisOperationError(RedisClientError):
    """Raised when a Redis operation fails."""

    pass


class RedisClient:
    """
    Async Redis connection manager.

    Attributes:
        config: Redis connection configuration.
        key_prefix: Namespace prepended to every key.
        _pool: Connection pool for efficient connection reuse.
        _client: Redis client instance.
        _connected: Whether the client is connected.

    Example:
        >>> client = RedisClient(config, key_prefix="fillwatch")
        >>> client.key("alert", "bin:bin-A:fill_level:high:1735689600000")
        'fillwatch:alert:bin:bin-A:fill_level:high:1735689600000'
    """

    CHANNEL_ALERTS = "updates:alerts"

    def __init__(
        self,
        config: Optional[RedisConnectionConfig] = None,
        key_prefix: str = "fillwatch",
        client: Optional[Redis] = None,  # type: ignore[type-arg]
    ) -> None:
        """
        Initialize the Redis client.

        Args:
            config: Redis connection configuration containing URL, db, and pool settings.
            key_prefix: Namespace prepended to every key.
            client: An already constructed Redis instance (e.g. fakeredis in
                tests). When given, the client counts as connected and
                disconnect() leaves it open.
        """
        self.config = config or RedisConnectionConfig()
        self.key_prefix = key_prefix
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = client  # type: ignore[type-arg]
        self._owns_client = client is None
        self._connected: bool = client is not None

        logger.info(
            "redis_client_initialized",
            url=self.config.url,
            db=self.config.db,
            max_connections=self.config.max_connections,
            key_prefix=key_prefix,
            injected=client is not None,
        )

    @property
    def is_connected(self) -> bool:
        """
        Check if the client is connected to Redis.

        Returns:
            bool: True if connected, False otherwise.
        """
        return self._connected and self._client is not None

    def key(self, *parts: str) -> str:
        """Build a namespaced key from its parts."""
        return ":".join((self.key_prefix, *parts))

    async def connect(self) -> None:
        """
        Establish connection to Redis.

        Creates a connection pool and verifies it with PING.

        Raises:
            RedisConnectionException: If connection fails.
        """
        if self._connected:
            logger.warning("redis_already_connected")
            return

        try:
            self._pool = ConnectionPool.from_url(
                self.config.url,
                db=self.config.db,
                max_connections=self.config.max_connections,
                socket_timeout=self.config.socket_timeout,
                socket_connect_timeout=self.config.socket_timeout,
                decode_responses=True,
            )
            self._client = Redis(connection_pool=self._pool)

            # Verify connection with ping
            await self._client.ping()
            self._connected = True

            logger.info(
                "redis_connected",
                url=self.config.url,
                db=self.config.db,
            )

        except (RedisConnectionError, RedisTimeoutError, OSError) as e:
            self._connected = False
            logger.error(
                "redis_connection_failed",
                url=self.config.url,
                error=str(e),
            )
            raise RedisConnectionException(
                f"Failed to connect to Redis at {self.config.url}: {e}"
            ) from e

    async def disconnect(self) -> None:
        """
        Close Redis connection and release resources.

        Safe to call multiple times. Injected clients are left open.
        """
        if self._client is not None and self._owns_client:
            try:
                await self._client.aclose()
            except RedisError as e:
                logger.warning("redis_close_error", error=str(e))
            finally:
                self._client = None

        if self._pool is not None:
            try:
                await self._pool.aclose()
            except Exception as e:
                logger.warning("redis_pool_close_error", error=str(e))
            finally:
                self._pool = None

        self._connected = False
        logger.info("redis_disconnected")

    async def ping(self) -> bool:
        """
        Check Redis connection health.

        Returns:
            bool: True if Redis responds to PING, False otherwise.
        """
        if not self._client:
            return False

        try:
            await self._client.ping()
            return True
        except RedisError as e:
            logger.warning("redis_ping_failed", error=str(e))
            return False

    def _require_connection(self) -> Redis:  # type: ignore[type-arg]
        """
        Ensure client is connected and return the Redis instance.

        Returns:
            Redis: The Redis client instance.

        Raises:
            RedisConnectionException: If not connected.
        """
        if not self._connected or self._client is None:
            raise RedisConnectionException("Redis client is not connected")
        return self._client

    @property
    def redis(self) -> Redis:  # type: ignore[type-arg]
        """The connected Redis instance (raises if not connected)."""
        return self._require_connection()

    async def publish(self, channel: str, message: str) -> int:
        """
        Publish a message on a namespaced channel.

        Args:
            channel: Channel name without prefix (e.g. "updates:alerts").
            message: Serialized message.

        Returns:
            int: Number of subscribers that received the message.

        Raises:
            RedisConnectionException: If not connected.
            RedisOperationError: If the operation fails.
        """
        client = self._require_connection()

        try:
            count = await client.publish(self.key(channel), message)
            return int(count)
        except RedisError as e:
            logger.error("redis_publish_failed", channel=channel, error=str(e))
            raise RedisOperationError(f"Failed to publish on {channel}: {e}") from e


def create_redis_client(
    config: RedisConnectionConfig,
    key_prefix: str = "fillwatch",
) -> RedisClient:
    """
    Factory function to create a RedisClient.

    Args:
        config: Redis connection configuration.
        key_prefix: Namespace prepended to every key.

    Returns:
        RedisClient: A new, not yet connected client.
    """
    return RedisClient(config, key_prefix=key_prefix)
