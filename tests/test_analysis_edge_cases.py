"""Edge-case tests across all analyzers."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from signal_doctor.analysis.anomaly import AnomalyDetector
from signal_doctor.analysis.prediction import PerformancePredictor
from signal_doctor.analysis.roaming import RoamingScorer
from signal_doctor.analysis.stats import linear_fit
from signal_doctor.analysis.sticky import StickyClientDetector
from signal_doctor.analysis.trend import TrendAnalyzer
from signal_doctor.models.types import (
    RSSI_MAX_DBM,
    RSSI_MIN_DBM,
    ApCluster,
    ApHistory,
    Band,
    ClusteredBss,
    NetworkTrend,
    RoamingEvent,
    ScanSnapshot,
    SignalObservation,
    SignalTrend,
)

# ---------------------------------------------------------------------------
# Inline helpers: no dependency on conftest.py
# ---------------------------------------------------------------------------

BSSIDS = [f"aa:bb:cc:dd:ee:{i:02x}" for i in range(1, 7)]


def _history(bssid, values, start=1_000, step=30_000, **extra):
    observations = tuple(
        SignalObservation(bssid=bssid, timestamp_millis=start + i * step, rssi_dbm=v) for i, v in enumerate(values)
    )
    return ApHistory(
        bssid=bssid,
        ssid="Edge",
        first_seen_timestamp=observations[0].timestamp_millis,
        last_seen_timestamp=observations[-1].timestamp_millis,
        observations=observations,
        **extra,
    )


def _wavy(seed, count=40):
    """Deterministic noisy RSSI series inside [-95, -35]."""
    return [-65 + ((seed * 7 + i * 13) % 61) - 30 for i in range(count)]


def _cluster(rssis):
    return ApCluster(
        id="c1",
        ssid="Edge",
        bssids=tuple(
            ClusteredBss(bssid=b, band=Band.BAND_5G, channel=36, frequency_mhz=5180, rssi_dbm=r)
            for b, r in zip(BSSIDS, rssis)
        ),
    )


def _network():
    roams = tuple(
        RoamingEvent(
            timestamp_millis=100_000 + i * 20_000,
            from_bssid=BSSIDS[i % 2],
            to_bssid=BSSIDS[(i + 1) % 2],
            ssid="Edge",
            duration_millis=4_000 + i * 1_000,
            rssi_before_dbm=-82,
            rssi_after_dbm=-64,
        )
        for i in range(4)
    )
    histories = [
        _history(BSSIDS[0], _wavy(1), roaming_events=roams),
        _history(BSSIDS[1], _wavy(2), roaming_events=roams),
        _history(BSSIDS[2], [-70 - i // 2 for i in range(40)]),
    ]
    snapshots = [
        ScanSnapshot(id="s1", timestamp_millis=10_000, clusters=(_cluster([-60, -62, -70]),)),
        ScanSnapshot(id="s2", timestamp_millis=400_000, clusters=(_cluster([-85, -61]),)),
    ]
    return NetworkTrend.create("Edge", histories, snapshots)


# ---------------------------------------------------------------------------
# Determinism
# ---------------------------------------------------------------------------


def test_anomaly_detection_is_deterministic():
    detector = AnomalyDetector()
    first = detector.detect_all_anomalies(_network())
    second = detector.detect_all_anomalies(_network())
    assert first == second
    assert first.total_count > 0


def test_trend_analysis_is_deterministic():
    network = _network()
    analyzer = TrendAnalyzer()
    assert analyzer.analyze_network_signal_trend(network, network.end_timestamp) == (
        analyzer.analyze_network_signal_trend(network, network.end_timestamp)
    )


def test_predictions_are_deterministic():
    history = _history(BSSIDS[0], _wavy(3))
    predictor = PerformancePredictor()
    now = history.last_seen_timestamp
    assert predictor.predict_ap_signal_strength(history, 600_000, now) == (
        predictor.predict_ap_signal_strength(history, 600_000, now)
    )


# ---------------------------------------------------------------------------
# Properties over many inputs
# ---------------------------------------------------------------------------


def test_prediction_bounds_always_bracket_prediction():
    predictor = PerformancePredictor()
    for seed in range(20):
        history = _history(BSSIDS[0], _wavy(seed))
        for horizon in (60_000, 3_600_000, 86_400_000):
            prediction = predictor.predict_ap_signal_strength(history, horizon, history.last_seen_timestamp)
            assert (
                RSSI_MIN_DBM
                <= prediction.lower_bound_rssi_dbm
                <= prediction.predicted_rssi_dbm
                <= prediction.upper_bound_rssi_dbm
                <= RSSI_MAX_DBM
            )


def test_trend_sign_matches_rate():
    analyzer = TrendAnalyzer()
    for seed in range(20):
        history = _history(BSSIDS[0], _wavy(seed))
        result = analyzer.analyze_ap_signal_trend(history, history.last_seen_timestamp)
        if result.trend.is_positive:
            assert result.change_rate_db_per_hour > 0
        elif result.trend.indicates_problem:
            assert result.change_rate_db_per_hour < 0
        else:
            assert result.trend == SignalTrend.STABLE


def test_roaming_scores_bounded_and_sorted():
    scorer = RoamingScorer()
    for seed in range(20):
        rssis = _wavy(seed, count=6)
        ranked = scorer.score_roaming_candidates(BSSIDS[0], _cluster(rssis), rssis[0])
        assert len(ranked) == 5
        assert all(0.0 <= c.score <= 100.0 for c in ranked)
        assert [c.score for c in ranked] == sorted((c.score for c in ranked), reverse=True)


def test_sticky_detection_agrees_with_should_roam():
    detector = StickyClientDetector()
    for seed in range(20):
        rssis = _wavy(seed, count=4)
        cluster = _cluster(rssis)
        detected = detector.detect_current_sticky("Edge", BSSIDS[0], rssis[0], cluster) is not None
        assert detector.should_roam(rssis[0], BSSIDS[0], cluster) == detected


def test_anomalies_are_sorted_by_severity():
    anomalies = AnomalyDetector().detect_network_anomalies(_network())
    ranks = [a.severity.rank for a in anomalies]
    assert ranks == sorted(ranks)
    keys = [(a.type, a.timestamp_millis, a.affected_bssids) for a in anomalies]
    assert len(keys) == len(set(keys))


# ---------------------------------------------------------------------------
# Degenerate inputs
# ---------------------------------------------------------------------------


def test_single_observation_history():
    history = _history(BSSIDS[0], [-67])
    now = history.last_seen_timestamp

    assert TrendAnalyzer().analyze_ap_signal_trend(history, now).trend == SignalTrend.INSUFFICIENT_DATA
    assert AnomalyDetector().detect_ap_history_anomalies(history) == []
    prediction = PerformancePredictor().predict_ap_signal_strength(history, 60_000, now)
    assert prediction.predicted_rssi_dbm == -67


def test_simultaneous_observations_have_zero_rate():
    history = _history(BSSIDS[0], [-60, -70, -80] * 5, step=0)
    result = TrendAnalyzer(min_observations_for_trend=5).analyze_ap_signal_trend(history, 1_000)
    assert result.change_rate_db_per_hour == 0.0
    assert result.trend == SignalTrend.STABLE


def test_network_requires_histories():
    with pytest.raises(ValueError):
        NetworkTrend.create("Edge", [], [])


def test_history_rejects_unsorted_range():
    observation = SignalObservation(bssid=BSSIDS[0], timestamp_millis=5_000, rssi_dbm=-60)
    with pytest.raises(ValidationError):
        ApHistory(
            bssid=BSSIDS[0],
            ssid="Edge",
            first_seen_timestamp=5_000,
            last_seen_timestamp=4_000,
            observations=(observation,),
        )


def test_linear_fit_on_exact_line():
    # -80 dBm at t=2000, rising 1 dB per second
    observations = [
        SignalObservation(bssid=BSSIDS[0], timestamp_millis=2_000 + i * 1_000, rssi_dbm=-80 + i) for i in range(5)
    ]
    slope, intercept = linear_fit(observations)
    assert slope == pytest.approx(0.001)
    assert intercept == pytest.approx(-80.0)


def test_linear_fit_single_instant_uses_mean():
    single = [SignalObservation(bssid=BSSIDS[0], timestamp_millis=1_000, rssi_dbm=-61)]
    assert linear_fit(single) == (0.0, -61.0)

    shared = [SignalObservation(bssid=BSSIDS[0], timestamp_millis=1_000, rssi_dbm=v) for v in (-60, -70)]
    assert linear_fit(shared) == (0.0, -65.0)
    assert linear_fit([]) == (0.0, 0.0)
