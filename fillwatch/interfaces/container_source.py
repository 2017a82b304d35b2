"""
Abstract base class for container sources.

A ContainerSource supplies the containers the operator wants monitored,
each with its latest normalized sensor reading. Sources are read fresh on
every monitoring pass; the engine never caches them.
"""

from abc import ABC, abstractmethod
from typing import List

from fillwatch.models.containers import ContainerSnapshot


class ContainerSource(ABC):
    """
    Abstract base class for container snapshot providers.

    Implementations must report a missing or unusable reading as
    distance=None rather than fabricating a fill level.
    """

    @abstractmethod
    async def list_containers(self) -> List[ContainerSnapshot]:
        """
        Return all monitored containers with their latest readings.

        Returns:
            List[ContainerSnapshot]: One snapshot per monitored bin or compartment.

        Raises:
            Exception: Implementation-specific errors when the source is unavailable.
        """
        pass
