"""Tests for sticky client detection."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from signal_doctor.analysis.sticky import StickyClientDetector
from signal_doctor.models.results import StickyClientMetrics, StickyEvent, StickySeverity
from signal_doctor.models.types import StickySettings
from tests.conftest import make_bss, make_cluster

A, B, C = "aa:bb:cc:dd:ee:01", "aa:bb:cc:dd:ee:02", "aa:bb:cc:dd:ee:03"


def _cluster(current_rssi, *others):
    return make_cluster(make_bss(A, rssi=current_rssi), *(make_bss(b, rssi=r) for b, r in others))


# ---------------------------------------------------------------------------
# Current stickiness
# ---------------------------------------------------------------------------


def test_detects_sticky_client():
    cluster = _cluster(-80, (B, -65), (C, -68))
    metrics = StickyClientDetector().detect_current_sticky("TestNet", A, -80, cluster)

    assert metrics is not None
    assert metrics.currently_sticky
    assert metrics.sticky_events_count == 1
    assert metrics.total_sticky_duration_millis == 0
    assert metrics.avg_sticky_rssi_dbm == -80.0
    assert metrics.avg_better_ap_rssi_dbm == pytest.approx(-66.5)
    assert metrics.worst_sticky_rssi_dbm == -80
    assert metrics.severity == StickySeverity.MEDIUM
    assert metrics.performance_impact == pytest.approx(0.3567, abs=1e-3)
    assert metrics.estimated_throughput_loss_percent == 35


def test_acceptable_signal_is_not_sticky():
    cluster = _cluster(-70, (B, -50))
    detector = StickyClientDetector()
    assert detector.detect_current_sticky("TestNet", A, -70, cluster) is None
    assert not detector.should_roam(-70, A, cluster)


def test_threshold_itself_is_eligible():
    detector = StickyClientDetector()
    assert detector.detect_current_sticky("TestNet", A, -75, _cluster(-75, (B, -65))) is not None
    assert detector.detect_current_sticky("TestNet", A, -74, _cluster(-74, (B, -60))) is None


def test_alternative_must_clear_differential():
    detector = StickyClientDetector()
    assert detector.detect_current_sticky("TestNet", A, -80, _cluster(-80, (B, -71))) is None
    assert detector.detect_current_sticky("TestNet", A, -80, _cluster(-80, (B, -70))) is not None


def test_unknown_rssi_alternatives_are_ignored():
    cluster = _cluster(-85, (B, None), (C, -60))
    metrics = StickyClientDetector().detect_current_sticky("TestNet", A, -85, cluster)
    assert metrics.avg_better_ap_rssi_dbm == -60.0


def test_single_bss_cluster_is_never_sticky():
    cluster = make_cluster(make_bss(A, rssi=-90))
    detector = StickyClientDetector()
    assert detector.detect_current_sticky("TestNet", A, -90, cluster) is None
    assert not detector.should_roam(-90, A, cluster)


@pytest.mark.parametrize(
    "current,alternative",
    [(-90, -60), (-80, -72), (-76, -66), (-75, -65), (-74, -50), (-60, -40), (-85, None)],
)
def test_should_roam_agrees_with_detection(current, alternative):
    cluster = _cluster(current, (B, alternative))
    detector = StickyClientDetector()
    detected = detector.detect_current_sticky("TestNet", A, current, cluster) is not None
    assert detector.should_roam(current, A, cluster) == detected


def test_overrides_change_thresholds():
    detector = StickyClientDetector(sticky_rssi_threshold=-65, better_ap_differential=5)
    assert detector.should_roam(-70, A, _cluster(-70, (B, -64)))

    from_settings = StickyClientDetector(StickySettings(better_ap_differential=20))
    assert not from_settings.should_roam(-80, A, _cluster(-80, (B, -65)))


def test_invalid_settings():
    with pytest.raises(ValidationError):
        StickyClientDetector(better_ap_differential=0)
    with pytest.raises(ValidationError):
        StickyClientDetector(sticky_rssi_threshold=5)
    with pytest.raises(ValidationError):
        StickyClientDetector(unknown_option=1)


# ---------------------------------------------------------------------------
# Historical patterns
# ---------------------------------------------------------------------------


def test_empty_pattern():
    metrics = StickyClientDetector().analyze_sticky_pattern("TestNet", [])
    assert metrics.sticky_events_count == 0
    assert metrics.total_sticky_duration_millis == 0
    assert not metrics.has_sticky_behavior
    assert not metrics.currently_sticky
    assert metrics.severity == StickySeverity.NONE
    assert metrics.recommendations == []
    assert metrics.summary == "No sticky client behavior detected"


def test_critical_pattern():
    events = [
        StickyEvent(timestamp_millis=1_000, duration_millis=120_000, sticky_rssi=-90, better_ap_rssi=-70),
        StickyEvent(timestamp_millis=200_000, duration_millis=60_000, sticky_rssi=-88, better_ap_rssi=-68),
    ]
    metrics = StickyClientDetector().analyze_sticky_pattern("TestNet", events)

    assert metrics.sticky_events_count == 2
    assert metrics.total_sticky_duration_millis == 180_000
    assert metrics.avg_sticky_event_duration_millis == 90_000
    assert metrics.avg_sticky_rssi_dbm == -89.0
    assert metrics.worst_sticky_rssi_dbm == -90
    assert metrics.avg_rssi_differential_db == pytest.approx(20.0)
    assert not metrics.currently_sticky
    assert metrics.severity == StickySeverity.CRITICAL
    assert len(metrics.recommendations) == 4
    assert metrics.summary == "Sticky client detected: 2 events, 3min total"


def test_last_event_decides_currently_sticky():
    events = [
        StickyEvent(timestamp_millis=1_000, duration_millis=1_000, sticky_rssi=-78, better_ap_rssi=-70),
        StickyEvent(
            timestamp_millis=5_000, duration_millis=1_000, sticky_rssi=-78, better_ap_rssi=-70, is_ongoing=True
        ),
    ]
    metrics = StickyClientDetector().analyze_sticky_pattern("TestNet", events)
    assert metrics.currently_sticky
    assert metrics.severity == StickySeverity.MEDIUM
    assert metrics.summary.endswith("[CURRENTLY STICKY]")


@pytest.mark.parametrize(
    "sticky,better,expected",
    [
        (-88, -70, StickySeverity.CRITICAL),
        (-82, -70, StickySeverity.HIGH),
        (-78, -70, StickySeverity.MEDIUM),
        (-70, -64, StickySeverity.LOW),
        (-70, -67, StickySeverity.NONE),
    ],
)
def test_severity_grid(sticky, better, expected):
    metrics = StickyClientMetrics(
        ssid="TestNet",
        total_sticky_duration_millis=0,
        sticky_events_count=1,
        avg_sticky_rssi_dbm=sticky,
        avg_better_ap_rssi_dbm=better,
        worst_sticky_rssi_dbm=sticky,
    )
    assert metrics.severity == expected


def test_metrics_reject_out_of_range_rssi():
    with pytest.raises(ValidationError):
        StickyClientMetrics(
            ssid="TestNet",
            total_sticky_duration_millis=0,
            sticky_events_count=1,
            avg_sticky_rssi_dbm=5.0,
            avg_better_ap_rssi_dbm=-60.0,
            worst_sticky_rssi_dbm=-80,
        )
