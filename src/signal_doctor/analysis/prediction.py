"""Performance prediction — linear extrapolation of signal and health with confidence bounds."""

from __future__ import annotations

import logging
import statistics
from typing import Any

from signal_doctor.analysis import rules, stats
from signal_doctor.models.results import (
    ConnectionTimeRecommendation,
    ConnectionTiming,
    CoveragePrediction,
    CoverageQuality,
    IssuesPrediction,
    NetworkHealthPrediction,
    RiskLevel,
    SignalPrediction,
)
from signal_doctor.models.types import (
    ApHistory,
    NetworkHealth,
    NetworkTrend,
    PredictionConfidence,
    PredictionSettings,
    SignalStability,
    merge_settings,
)

logger = logging.getLogger(__name__)

_STABILITY_RISK = {
    SignalStability.VERY_UNSTABLE: 0.3,
    SignalStability.UNSTABLE: 0.2,
    SignalStability.MODERATE: 0.1,
}


class PerformancePredictor:
    def __init__(self, settings: PredictionSettings | None = None, **overrides: Any) -> None:
        self.settings = merge_settings(PredictionSettings, settings, overrides)
        self._z = stats.z_score(self.settings.confidence_interval)

    def _check_horizon(self, horizon_millis: int) -> None:
        if horizon_millis <= 0:
            raise ValueError(f"Horizon must be positive, got {horizon_millis}")
        if horizon_millis > self.settings.max_prediction_horizon_millis:
            raise ValueError(
                f"Horizon {horizon_millis} exceeds maximum {self.settings.max_prediction_horizon_millis}"
            )

    # ------- single AP -------

    def predict_ap_signal_strength(
        self, history: ApHistory, horizon_millis: int, current_time_millis: int
    ) -> SignalPrediction:
        """Extrapolate the latest in-window RSSI by the least-squares rate.

        Below ``min_historical_data_points`` the prediction falls back to the
        history average with min/peak as bounds and LOW confidence.
        """
        self._check_horizon(horizon_millis)
        target_time = current_time_millis + horizon_millis
        window = history.recent_observations(self.settings.history_window_millis, current_time_millis)

        if len(window) < self.settings.min_historical_data_points:
            logger.debug(
                "%s: %d recent observations, falling back to history average",
                history.bssid,
                len(window),
            )
            average = rules.clamp_rssi(history.average_rssi_dbm)
            return SignalPrediction(
                bssid=history.bssid,
                prediction_time_millis=target_time,
                predicted_rssi_dbm=average,
                lower_bound_rssi_dbm=min(history.min_rssi_dbm, average),
                upper_bound_rssi_dbm=max(history.peak_rssi_dbm, average),
                confidence=PredictionConfidence.LOW,
                baseline_rssi_dbm=average,
            )

        rate = stats.rate_db_per_hour(window)
        baseline = window[-1].rssi_dbm
        predicted = rules.clamp_rssi(baseline + rate * horizon_millis / rules.MILLIS_PER_HOUR)

        spread = stats.std_dev(window)
        margin = self._z * spread
        if (
            len(window) >= rules.PREDICTION_HIGH_CONFIDENCE_OBSERVATIONS
            and spread < rules.PREDICTION_HIGH_CONFIDENCE_STD_DEV
        ):
            confidence = PredictionConfidence.HIGH
        elif (
            len(window) >= rules.PREDICTION_MEDIUM_CONFIDENCE_OBSERVATIONS
            and spread < rules.PREDICTION_MEDIUM_CONFIDENCE_STD_DEV
        ):
            confidence = PredictionConfidence.MEDIUM
        else:
            confidence = PredictionConfidence.LOW

        return SignalPrediction(
            bssid=history.bssid,
            prediction_time_millis=target_time,
            predicted_rssi_dbm=predicted,
            lower_bound_rssi_dbm=rules.clamp_rssi(predicted - margin),
            upper_bound_rssi_dbm=rules.clamp_rssi(predicted + margin),
            confidence=confidence,
            baseline_rssi_dbm=baseline,
        )

    # ------- network -------

    def predict_network_health(
        self, network_trend: NetworkTrend, horizon_millis: int, current_time_millis: int | None = None
    ) -> NetworkHealthPrediction:
        self._check_horizon(horizon_millis)
        now = current_time_millis if current_time_millis is not None else network_trend.end_timestamp

        direction = network_trend.recent_network_trend(self.settings.history_window_millis, now)
        change = rules.HEALTH_CHANGE_PER_HOUR[direction.value] * horizon_millis / rules.MILLIS_PER_HOUR
        current = network_trend.health_score
        predicted = int(rules.clamp(current + int(change), 0, 100))

        observations = network_trend.total_observation_count
        if observations >= rules.NETWORK_HIGH_CONFIDENCE_OBSERVATIONS:
            confidence = PredictionConfidence.HIGH
        elif observations >= rules.NETWORK_MEDIUM_CONFIDENCE_OBSERVATIONS:
            confidence = PredictionConfidence.MEDIUM
        else:
            confidence = PredictionConfidence.LOW

        return NetworkHealthPrediction(
            ssid=network_trend.ssid,
            prediction_time_millis=now + horizon_millis,
            current_health_score=current,
            predicted_health_score=predicted,
            current_health=NetworkHealth.from_score(current),
            predicted_health=NetworkHealth.from_score(predicted),
            confidence=confidence,
            trend=direction,
        )

    def predict_coverage_quality(
        self, network_trend: NetworkTrend, horizon_millis: int, current_time_millis: int
    ) -> CoveragePrediction:
        """Expected visible AP count and average signal after ``horizon_millis``.

        APs that disappeared during the last hour set the expected loss rate.
        """
        self._check_horizon(horizon_millis)
        visible = network_trend.currently_visible_aps(current_time_millis, rules.VISIBILITY_THRESHOLD_MILLIS)
        current_count = len(visible)

        disappeared = len(
            network_trend.recently_disappeared_aps(
                current_time_millis,
                window_millis=rules.DISAPPEARANCE_WINDOW_MILLIS,
                threshold_millis=rules.VISIBILITY_THRESHOLD_MILLIS,
            )
        )
        expected_losses = int(disappeared / rules.DISAPPEARANCE_WINDOW_MILLIS * horizon_millis)
        predicted_count = max(1, current_count - expected_losses) if current_count else 0

        predictions = [self.predict_ap_signal_strength(h, horizon_millis, current_time_millis) for h in visible]
        if predictions:
            predicted_avg = statistics.fmean(p.predicted_rssi_dbm for p in predictions)
        else:
            predicted_avg = network_trend.average_network_rssi_dbm

        if predicted_avg >= -60 and predicted_count >= current_count:
            quality = CoverageQuality.EXCELLENT
        elif predicted_avg >= -70 and predicted_count >= current_count * 0.8:
            quality = CoverageQuality.GOOD
        elif predicted_avg >= -80:
            quality = CoverageQuality.FAIR
        else:
            quality = CoverageQuality.POOR

        acceptable = bool(predictions) and all(p.confidence.is_acceptable for p in predictions)
        return CoveragePrediction(
            prediction_time_millis=current_time_millis + horizon_millis,
            current_ap_count=current_count,
            predicted_ap_count=predicted_count,
            current_avg_signal_dbm=int(network_trend.average_network_rssi_dbm),
            predicted_avg_signal_dbm=int(predicted_avg),
            quality=quality,
            confidence=PredictionConfidence.MEDIUM if acceptable else PredictionConfidence.LOW,
        )

    # ------- connection advice -------

    def recommend_optimal_connection_time(
        self, history: ApHistory, look_ahead_hours: int = 4, current_time_millis: int | None = None
    ) -> ConnectionTimeRecommendation:
        if look_ahead_hours <= 0:
            raise ValueError(f"Look ahead hours must be positive, got {look_ahead_hours}")
        now = current_time_millis if current_time_millis is not None else history.last_seen_timestamp

        hourly = [
            (hour, self.predict_ap_signal_strength(history, hour * rules.MILLIS_PER_HOUR, now).predicted_rssi_dbm)
            for hour in range(1, look_ahead_hours + 1)
        ]
        best_hour, best_rssi = max(hourly, key=lambda item: item[1])
        worst_hour, worst_rssi = min(hourly, key=lambda item: item[1])

        recent = history.recent_average_rssi(rules.CURRENT_SIGNAL_WINDOW_MILLIS, now)
        current = int(recent if recent is not None else history.average_rssi_dbm)

        if best_rssi - current >= rules.TIMING_SIGNIFICANT_CHANGE_DB:
            timing = ConnectionTiming.WAIT_FOR_IMPROVEMENT
        elif current >= rules.GOOD_SIGNAL_DBM:
            timing = ConnectionTiming.IMMEDIATE
        elif worst_rssi - current <= -rules.TIMING_SIGNIFICANT_CHANGE_DB:
            # it only gets worse from here
            timing = ConnectionTiming.IMMEDIATE
        else:
            timing = ConnectionTiming.FLEXIBLE

        return ConnectionTimeRecommendation(
            bssid=history.bssid,
            current_signal_dbm=current,
            best_time_hours_ahead=best_hour,
            best_predicted_signal_dbm=best_rssi,
            worst_time_hours_ahead=worst_hour,
            worst_predicted_signal_dbm=worst_rssi,
            recommendation=timing,
        )

    def predict_connection_issues(
        self, history: ApHistory, horizon_millis: int, current_time_millis: int | None = None
    ) -> IssuesPrediction:
        now = current_time_millis if current_time_millis is not None else history.last_seen_timestamp
        signal = self.predict_ap_signal_strength(history, horizon_millis, now)
        predicted = signal.predicted_rssi_dbm

        probability = 0.0
        if predicted < -85:
            probability += 0.4
        elif predicted < -75:
            probability += 0.2
        elif predicted < -65:
            probability += 0.1
        probability += _STABILITY_RISK.get(history.signal_stability, 0.0)
        if history.connection_count > 0:
            probability += history.disconnection_count / history.connection_count * 0.3
        probability = min(probability, 1.0)

        issues = []
        if predicted < rules.WEAK_SIGNAL_ISSUE_DBM:
            issues.append(f"Weak signal ({predicted}dBm)")
        if history.signal_stability not in (SignalStability.VERY_STABLE, SignalStability.STABLE):
            issues.append("Unstable connection")
        if history.disconnection_count >= rules.FREQUENT_DISCONNECT_ISSUE_COUNT:
            issues.append("Frequent disconnections")

        return IssuesPrediction(
            bssid=history.bssid,
            prediction_time_millis=now + horizon_millis,
            issue_probability=probability,
            risk_level=RiskLevel.from_probability(probability),
            likely_issues=tuple(issues),
            signal_prediction=signal,
        )
