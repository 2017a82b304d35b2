"""
Container snapshot model.

A ContainerSnapshot is the read-only view of one monitored container for a
single monitoring pass: its physical configuration plus the most recent
normalized sensor reading, if any.
"""

import math
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from fillwatch.models.alerts import AlertSubject, SubjectType

DEFAULT_FILL_THRESHOLD = 90


class ContainerSnapshot(BaseModel):
    """
    Snapshot of a monitored container.

    Produced fresh each monitoring pass by a ContainerSource. The engine
    never mutates it. A missing distance or height means there is no valid
    reading, which is not the same as an empty container.

    Attributes:
        container_id: Bin or compartment identifier.
        name: Display name.
        subject_type: Whether this is a standalone bin or a compartment.
        parent_bin_id: Owning multi-compartment unit (compartments only).
        height: Physical height in centimetres.
        distance: Sensor distance to the fill surface in centimetres.
        fill_threshold: Configured fill threshold in percent.
        location: Location label.
        device_id: Sensor device identifier.
        battery: Sensor battery level in percent.
        reading_at: Timestamp of the sensor reading.

    Example:
        >>> snapshot = ContainerSnapshot(
        ...     container_id="bin-A",
        ...     name="Lobby bin",
        ...     height=100,
        ...     distance=6,
        ... )
        >>> snapshot.has_reading
        True
    """

    model_config = {"frozen": True, "extra": "forbid"}

    container_id: str = Field(
        ...,
        description="Bin or compartment identifier",
        min_length=1,
    )
    name: str = Field(
        default="",
        description="Display name",
    )
    subject_type: SubjectType = Field(
        default=SubjectType.BIN,
        description="Whether this is a standalone bin or a compartment",
    )
    parent_bin_id: Optional[str] = Field(
        default=None,
        description="Owning multi-compartment unit (compartments only)",
    )
    height: Optional[float] = Field(
        default=None,
        description="Physical height in centimetres",
    )
    distance: Optional[float] = Field(
        default=None,
        description="Sensor distance to the fill surface in centimetres",
    )
    fill_threshold: int = Field(
        default=DEFAULT_FILL_THRESHOLD,
        description="Configured fill threshold in percent",
        ge=0,
        le=100,
    )
    location: Optional[str] = Field(
        default=None,
        description="Location label",
    )
    device_id: Optional[str] = Field(
        default=None,
        description="Sensor device identifier",
    )
    battery: Optional[float] = Field(
        default=None,
        description="Sensor battery level in percent",
    )
    reading_at: Optional[datetime] = Field(
        default=None,
        description="Timestamp of the sensor reading",
    )

    @property
    def subject(self) -> AlertSubject:
        """The alert subject for this container."""
        return AlertSubject(subject_type=self.subject_type, subject_id=self.container_id)

    @property
    def has_height(self) -> bool:
        """Check if the configured height is a finite positive number."""
        return self.height is not None and math.isfinite(self.height) and self.height > 0

    @property
    def has_reading(self) -> bool:
        """Check if the snapshot carries a usable distance and height."""
        return (
            self.has_height and self.distance is not None and math.isfinite(self.distance)
        )
