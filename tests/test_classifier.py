"""Tests for severity classification."""

import pytest

from fillwatch.detection.classifier import SeverityClassifier, classify, create_classifier
from fillwatch.models.alerts import Severity


class TestClassify:
    """Test the default policy (ceiling 95, band 5)."""

    @pytest.mark.parametrize(
        "fill, threshold, expected",
        [
            (100, 90, Severity.CRITICAL),
            (95, 90, Severity.CRITICAL),
            (94, 90, Severity.HIGH),
            (90, 90, Severity.HIGH),
            (89, 90, Severity.MEDIUM),
            (85, 90, Severity.MEDIUM),
            (84, 90, None),
            (0, 90, None),
        ],
    )
    def test_bands(self, fill, threshold, expected):
        assert classify(fill, threshold) == expected

    def test_ceiling_ignores_threshold(self):
        assert classify(96, 99) == Severity.CRITICAL

    def test_low_threshold(self):
        assert classify(60, 60) == Severity.HIGH
        assert classify(56, 60) == Severity.MEDIUM
        assert classify(54, 60) is None


class TestSeverityClassifier:
    """Test configurable policy and clearing."""

    def test_custom_ceiling_and_band(self):
        classifier = SeverityClassifier(critical_ceiling=98, early_warning_band=10)
        assert classifier.classify(97, 90) == Severity.HIGH
        assert classifier.classify(80, 90) == Severity.MEDIUM
        assert classifier.classify(98, 90) == Severity.CRITICAL

    def test_clear_level(self):
        assert SeverityClassifier().clear_level(90) == 80
        assert SeverityClassifier(clear_hysteresis=20).clear_level(90) == 70

    @pytest.mark.parametrize(
        "fill, cleared",
        [(81, False), (80, True), (78, True), (85, False)],
    )
    def test_is_cleared(self, fill, cleared):
        assert SeverityClassifier().is_cleared(fill, 90) is cleared

    def test_factory(self):
        classifier = create_classifier(critical_ceiling=99)
        assert classifier.critical_ceiling == 99
        assert classifier.classify(97, 90) == Severity.HIGH


class TestSeverityOrder:
    """Test the total order on Severity."""

    def test_ordering(self):
        assert Severity.MEDIUM < Severity.HIGH < Severity.CRITICAL
        assert Severity.CRITICAL > Severity.MEDIUM
        assert Severity.HIGH >= Severity.HIGH
        assert Severity.HIGH <= Severity.HIGH

    def test_max_of(self):
        assert Severity.max_of([Severity.HIGH, Severity.MEDIUM]) == Severity.HIGH
        assert Severity.max_of([]) is None

    def test_sorted(self):
        assert sorted([Severity.CRITICAL, Severity.MEDIUM, Severity.HIGH]) == [
            Severity.MEDIUM,
            Severity.HIGH,
            Severity.CRITICAL,
        ]
