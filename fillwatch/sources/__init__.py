"""
Container sources.

Modules:
    static: StaticContainerSource (configuration or code)
    redis_source: RedisContainerSource (ingestion pipeline hashes)
"""

from fillwatch.sources.redis_source import RedisContainerSource
from fillwatch.sources.static import StaticContainerSource

__all__ = [
    "StaticContainerSource",
    "RedisContainerSource",
]
