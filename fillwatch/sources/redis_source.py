"""
Redis container source.

Reads container definitions and their latest normalized readings from the
keys written by the ingestion pipeline:

    - `containers`: Set of container ids
    - `container:{id}`: Hash with name, type, parent_bin_id, height,
      fill_threshold, location, device_id, enabled
    - `reading:{device_id}`: Hash with distance, battery, timestamp

A missing or unparsable reading yields a snapshot with distance=None; the
source never fabricates a fill level. A container whose definition hash is
missing or invalid yields a bare snapshot without a height, so the pass
reports it as skipped instead of losing it.
"""

import math
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from pydantic import ValidationError
from redis.exceptions import RedisError

from fillwatch.interfaces.container_source import ContainerSource
from fillwatch.models.alerts import SubjectType
from fillwatch.models.containers import DEFAULT_FILL_THRESHOLD, ContainerSnapshot
from fillwatch.storage.redis_client import RedisClient, RedisOperationError

logger = structlog.get_logger(__name__)

_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_float(value: Optional[str]) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        parsed = float(value)
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


class RedisContainerSource(ContainerSource):
    """
    ContainerSource backed by Redis hashes.

    Attributes:
        client: Connected RedisClient.
        default_fill_threshold: Threshold for containers that set none.
    """

    KEY_CONTAINERS = "containers"
    KEY_CONTAINER = "container"
    KEY_READING = "reading"

    def __init__(
        self,
        client: RedisClient,
        default_fill_threshold: int = DEFAULT_FILL_THRESHOLD,
    ) -> None:
        self.client = client
        self.default_fill_threshold = default_fill_threshold

    async def list_containers(self) -> List[ContainerSnapshot]:
        """
        Read every registered container with its latest reading.

        Returns:
            List[ContainerSnapshot]: Snapshots sorted by container id.

        Raises:
            RedisOperationError: If Redis fails.
        """
        redis = self.client.redis

        try:
            members = await redis.smembers(self.client.key(self.KEY_CONTAINERS))
            container_ids = sorted(member for member in members if member)

            async with redis.pipeline(transaction=False) as pipe:
                for container_id in container_ids:
                    pipe.hgetall(self.client.key(self.KEY_CONTAINER, container_id))
                definitions = await pipe.execute()

            device_ids = {
                definition.get("device_id")
                for definition in definitions
                if definition and definition.get("device_id")
            }
            readings = await self._load_readings(sorted(device_ids))

        except RedisError as e:
            logger.error("container_source_read_failed", error=str(e))
            raise RedisOperationError(f"Failed to read containers: {e}") from e

        snapshots: List[ContainerSnapshot] = []
        for container_id, definition in zip(container_ids, definitions):
            if not definition:
                logger.warning("container_definition_missing", container_id=container_id)
                snapshots.append(ContainerSnapshot(container_id=container_id))
                continue
            snapshot = self._build_snapshot(container_id, definition, readings)
            if snapshot is not None:
                snapshots.append(snapshot)

        logger.debug("containers_loaded", count=len(snapshots))
        return snapshots

    async def _load_readings(self, device_ids: List[str]) -> Dict[str, Dict[str, Any]]:
        """Latest reading hash per device id."""
        if not device_ids:
            return {}

        async with self.client.redis.pipeline(transaction=False) as pipe:
            for device_id in device_ids:
                pipe.hgetall(self.client.key(self.KEY_READING, device_id))
            values = await pipe.execute()

        return {device_id: value for device_id, value in zip(device_ids, values) if value}

    def _build_snapshot(
        self,
        container_id: str,
        definition: Dict[str, str],
        readings: Dict[str, Dict[str, Any]],
    ) -> Optional[ContainerSnapshot]:
        """Turn a container hash and its reading into a snapshot."""
        if definition.get("enabled", "true").lower() in _FALSE_VALUES:
            return None

        device_id = definition.get("device_id") or None
        reading = readings.get(device_id, {}) if device_id else {}

        distance = _parse_float(reading.get("distance"))
        if reading and distance is None:
            logger.warning(
                "reading_unparsable",
                container_id=container_id,
                device_id=device_id,
                distance=reading.get("distance"),
            )

        threshold = _parse_float(definition.get("fill_threshold"))

        try:
            return ContainerSnapshot(
                container_id=container_id,
                name=definition.get("name", ""),
                subject_type=SubjectType(definition.get("type", SubjectType.BIN.value)),
                parent_bin_id=definition.get("parent_bin_id") or None,
                height=_parse_float(definition.get("height")),
                distance=distance,
                fill_threshold=(
                    int(threshold) if threshold is not None else self.default_fill_threshold
                ),
                location=definition.get("location") or None,
                device_id=device_id,
                battery=_parse_float(reading.get("battery")),
                reading_at=_parse_timestamp(reading.get("timestamp")),
            )
        except (ValidationError, ValueError) as e:
            logger.warning(
                "container_definition_invalid",
                container_id=container_id,
                error=str(e),
            )
            return ContainerSnapshot(container_id=container_id, name=definition.get("name", ""))
