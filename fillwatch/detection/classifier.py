"""
Severity classifier for fill levels.

This module provides the SeverityClassifier which maps a fill percentage and
a container's configured threshold to a severity band.

Policy (threshold T):
    - fill >= critical ceiling (95)  -> critical, regardless of T
    - fill >= T                      -> high
    - fill >= T - early warning band -> medium
    - otherwise                      -> None (no alert condition)

Example:
    >>> classifier = SeverityClassifier()
    >>> classifier.classify(94, 90)
    <Severity.HIGH: 'high'>
    >>> classifier.classify(80, 90) is None
    True
"""

from typing import Optional

import structlog

from fillwatch.models.alerts import Severity

logger = structlog.get_logger(__name__)

DEFAULT_CRITICAL_CEILING = 95
DEFAULT_EARLY_WARNING_BAND = 5
DEFAULT_CLEAR_HYSTERESIS = 10


class SeverityClassifier:
    """
    Classifies fill levels into severity bands.

    Stateless apart from its policy constants.

    Attributes:
        critical_ceiling: Fill percentage that is always critical.
        early_warning_band: Width of the medium band below the threshold.
        clear_hysteresis: Points below the threshold at which alerts clear.
    """

    def __init__(
        self,
        critical_ceiling: int = DEFAULT_CRITICAL_CEILING,
        early_warning_band: int = DEFAULT_EARLY_WARNING_BAND,
        clear_hysteresis: int = DEFAULT_CLEAR_HYSTERESIS,
    ) -> None:
        self.critical_ceiling = critical_ceiling
        self.early_warning_band = early_warning_band
        self.clear_hysteresis = clear_hysteresis

    def classify(self, fill: int, threshold: int) -> Optional[Severity]:
        """
        Classify a fill percentage against a threshold.

        Args:
            fill: Fill percentage (0-100).
            threshold: Configured fill threshold in percent.

        Returns:
            Optional[Severity]: The severity band, or None below every band.

        Example:
            >>> SeverityClassifier().classify(97, 99)
            <Severity.CRITICAL: 'critical'>
            >>> SeverityClassifier().classify(86, 90)
            <Severity.MEDIUM: 'medium'>
        """
        if fill >= self.critical_ceiling:
            return Severity.CRITICAL
        if fill >= threshold:
            return Severity.HIGH
        if fill >= threshold - self.early_warning_band:
            return Severity.MEDIUM
        return None

    def clear_level(self, threshold: int) -> int:
        """
        Fill level at or below which active alerts auto-resolve.

        Args:
            threshold: Configured fill threshold in percent.

        Returns:
            int: threshold minus the hysteresis band.
        """
        return threshold - self.clear_hysteresis

    def is_cleared(self, fill: int, threshold: int) -> bool:
        """
        Check if a fill level has dropped far enough to clear alerts.

        With the default policy the clear level sits below the medium band,
        so this only decides on its own for custom classifiers whose
        hysteresis is narrower than the early warning band.

        Args:
            fill: Fill percentage (0-100).
            threshold: Configured fill threshold in percent.

        Returns:
            bool: True when fill <= threshold - clear_hysteresis.
        """
        return fill <= self.clear_level(threshold)


def create_classifier(
    critical_ceiling: int = DEFAULT_CRITICAL_CEILING,
    early_warning_band: int = DEFAULT_EARLY_WARNING_BAND,
    clear_hysteresis: int = DEFAULT_CLEAR_HYSTERESIS,
) -> SeverityClassifier:
    """
    Factory function to create a SeverityClassifier.

    Returns:
        SeverityClassifier: A new classifier instance.
    """
    classifier = SeverityClassifier(
        critical_ceiling=critical_ceiling,
        early_warning_band=early_warning_band,
        clear_hysteresis=clear_hysteresis,
    )
    logger.debug(
        "severity_classifier_initialized",
        critical_ceiling=critical_ceiling,
        early_warning_band=early_warning_band,
        clear_hysteresis=clear_hysteresis,
    )
    return classifier


_default_classifier = SeverityClassifier()


def classify(fill: int, threshold: int = 90) -> Optional[Severity]:
    """Classify with the default policy (ceiling 95, band 5)."""
    return _default_classifier.classify(fill, threshold)
