"""
Static container source.

Serves container snapshots from configuration (containers.yaml) or from
code. Readings are fed in with update_reading(), which makes this source
the natural fit for tests and for manual or scripted feeds.

Example:
    >>> source = StaticContainerSource.from_config(config.get_enabled_containers())
    >>> source.update_reading("bin-A", distance=6)
    >>> snapshots = await source.list_containers()
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional

import structlog

from fillwatch.config.models import ContainerConfig
from fillwatch.interfaces.container_source import ContainerSource
from fillwatch.models.containers import DEFAULT_FILL_THRESHOLD, ContainerSnapshot

logger = structlog.get_logger(__name__)


class StaticContainerSource(ContainerSource):
    """
    ContainerSource holding snapshots in memory.

    Attributes:
        _snapshots: Current snapshot per container id, in insertion order.
    """

    def __init__(self, snapshots: Optional[Iterable[ContainerSnapshot]] = None) -> None:
        self._snapshots: Dict[str, ContainerSnapshot] = {}
        for snapshot in snapshots or []:
            self.add_container(snapshot)

    @classmethod
    def from_config(
        cls,
        containers: Iterable[ContainerConfig],
        default_fill_threshold: int = DEFAULT_FILL_THRESHOLD,
    ) -> "StaticContainerSource":
        """
        Build a source from container configuration.

        Disabled containers are left out. Configured containers start
        without a reading.

        Args:
            containers: Container configurations.
            default_fill_threshold: Threshold for containers that set none.

        Returns:
            StaticContainerSource: The populated source.
        """
        snapshots = [
            ContainerSnapshot(
                container_id=c.id,
                name=c.name,
                subject_type=c.type,
                parent_bin_id=c.parent_bin_id,
                height=c.height,
                fill_threshold=(
                    c.fill_threshold if c.fill_threshold is not None else default_fill_threshold
                ),
                location=c.location,
                device_id=c.device_id,
            )
            for c in containers
            if c.enabled
        ]
        logger.info("static_container_source_loaded", containers=len(snapshots))
        return cls(snapshots)

    def add_container(self, snapshot: ContainerSnapshot) -> None:
        """Add or replace a container snapshot."""
        self._snapshots[snapshot.container_id] = snapshot

    def remove_container(self, container_id: str) -> None:
        """Stop monitoring a container."""
        self._snapshots.pop(container_id, None)

    def update_reading(
        self,
        container_id: str,
        distance: Optional[float],
        battery: Optional[float] = None,
        reading_at: Optional[datetime] = None,
    ) -> ContainerSnapshot:
        """
        Record the latest reading for a container.

        Args:
            container_id: The container to update.
            distance: Sensor distance in centimetres (None clears the reading).
            battery: Sensor battery level in percent.
            reading_at: Timestamp of the reading.

        Returns:
            ContainerSnapshot: The updated snapshot.

        Raises:
            KeyError: If the container is unknown.
        """
        current = self._snapshots.get(container_id)
        if current is None:
            raise KeyError(f"Unknown container: {container_id}")

        updated = current.model_copy(
            update={
                "distance": distance,
                "battery": battery if battery is not None else current.battery,
                "reading_at": reading_at,
            }
        )
        self._snapshots[container_id] = updated
        return updated

    async def list_containers(self) -> List[ContainerSnapshot]:
        return list(self._snapshots.values())
