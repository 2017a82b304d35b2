"""
Alert store implementations.

Modules:
    memory: InMemoryAlertStore (tests and the `memory` backend)
    redis_client: RedisClient connection manager
    redis_store: RedisAlertStore

Example:
    >>> from fillwatch.storage import RedisClient, RedisAlertStore
    >>> client = RedisClient(config.redis, key_prefix=config.storage.key_prefix)
    >>> await client.connect()
    >>> store = RedisAlertStore(client)
"""

from fillwatch.storage.memory import InMemoryAlertStore
from fillwatch.storage.redis_client import (
    RedisClient,
    RedisClientError,
    RedisConnectionException,
    RedisOperationError,
    create_redis_client,
)
from fillwatch.storage.redis_store import RedisAlertStore, create_redis_alert_store

__all__ = [
    "InMemoryAlertStore",
    "RedisClient",
    "RedisClientError",
    "RedisConnectionException",
    "RedisOperationError",
    "create_redis_client",
    "RedisAlertStore",
    "create_redis_alert_store",
]
