"""
Fill level calculation.

Converts a raw ultrasonic distance reading and a container's physical
height into a 0-100 fill percentage.

Note:
    A result of 0 is ambiguous: it is also returned when distance or height
    is missing. Callers must check ContainerSnapshot.has_reading before
    trusting a 0 as a real reading.
"""

import math
from typing import Optional


def fill_percent(distance: Optional[float], height: Optional[float]) -> int:
    """
    Compute the fill percentage of a container.

    Formula: clamp(round((height - max(distance, 0)) / height * 100), 0, 100)

    Halves round up (62.5 -> 63), unlike the built-in round.

    Args:
        distance: Sensor distance to the fill surface (cm), or None.
        height: Physical container height (cm), or None.

    Returns:
        int: Fill percentage in [0, 100]; 0 when the reading is unusable.

    Example:
        >>> fill_percent(6, 100)
        94
        >>> fill_percent(3, 8)
        63
        >>> fill_percent(None, 100)
        0
        >>> fill_percent(120, 100)
        0
    """
    if distance is None or height is None or height <= 0:
        return 0

    raw = (height - max(distance, 0)) / height * 100
    return max(0, min(100, math.floor(raw + 0.5)))
