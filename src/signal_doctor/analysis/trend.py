"""Signal, churn and roaming trends over AP histories and scan snapshots."""

from __future__ import annotations

import logging
import statistics
from collections.abc import Sequence
from typing import Any

from signal_doctor.analysis import rules, stats
from signal_doctor.models.results import (
    ApChurnAnalysis,
    ApSignalTrendAnalysis,
    ChurnPattern,
    NetworkSignalTrendAnalysis,
    RoamingQualityTrend,
    RoamingTrendAnalysis,
)
from signal_doctor.models.types import (
    ApHistory,
    EnvironmentStability,
    NetworkTrend,
    NetworkTrendDirection,
    RoamingEventQuality,
    ScanSnapshot,
    SignalTrend,
    TrendConfidence,
    TrendSettings,
    merge_settings,
)

logger = logging.getLogger(__name__)


def classify_rate(rate_db_per_hour: float) -> SignalTrend:
    if rate_db_per_hour > rules.TREND_STRONG_DB_PER_HOUR:
        return SignalTrend.STRONGLY_IMPROVING
    if rate_db_per_hour > rules.TREND_DEAD_BAND_DB_PER_HOUR:
        return SignalTrend.IMPROVING
    if rate_db_per_hour >= -rules.TREND_DEAD_BAND_DB_PER_HOUR:
        return SignalTrend.STABLE
    if rate_db_per_hour >= -rules.TREND_STRONG_DB_PER_HOUR:
        return SignalTrend.DEGRADING
    return SignalTrend.STRONGLY_DEGRADING


def confidence_for(sample_count: int) -> TrendConfidence:
    if sample_count >= rules.TREND_HIGH_CONFIDENCE_OBSERVATIONS:
        return TrendConfidence.HIGH
    if sample_count >= rules.TREND_MEDIUM_CONFIDENCE_OBSERVATIONS:
        return TrendConfidence.MEDIUM
    return TrendConfidence.LOW


class TrendAnalyzer:
    """Classifies the direction of RSSI over a trailing time window.

    The rate of change is the least-squares slope of RSSI against timestamp
    across every observation in ``[now - trend_window_millis, now]``.
    """

    def __init__(self, settings: TrendSettings | None = None, **overrides: Any) -> None:
        self.settings = merge_settings(TrendSettings, settings, overrides)

    @property
    def window_hours(self) -> float:
        return self.settings.trend_window_millis / rules.MILLIS_PER_HOUR

    # ------- per AP -------

    def analyze_ap_signal_trend(self, history: ApHistory, current_time_millis: int) -> ApSignalTrendAnalysis:
        window = history.recent_observations(self.settings.trend_window_millis, current_time_millis)

        if len(window) < self.settings.min_observations_for_trend:
            logger.debug(
                "%s: %d observations in window, need %d",
                history.bssid,
                len(window),
                self.settings.min_observations_for_trend,
            )
            return ApSignalTrendAnalysis(
                bssid=history.bssid,
                trend=SignalTrend.INSUFFICIENT_DATA,
                change_rate_db_per_hour=0.0,
                confidence=TrendConfidence.LOW,
                observations=len(window),
                is_significant=False,
            )

        rate = stats.rate_db_per_hour(window)
        return ApSignalTrendAnalysis(
            bssid=history.bssid,
            trend=classify_rate(rate),
            change_rate_db_per_hour=rate,
            confidence=confidence_for(len(window)),
            observations=len(window),
            is_significant=abs(rate) * self.window_hours > self.settings.significant_change_threshold_db,
        )

    # ------- per network -------

    def analyze_network_signal_trend(
        self, network_trend: NetworkTrend, current_time_millis: int
    ) -> NetworkSignalTrendAnalysis:
        ap_trends = [self.analyze_ap_signal_trend(h, current_time_millis) for h in network_trend.ap_histories]

        degrading = sum(1 for t in ap_trends if t.trend.indicates_problem)
        improving = sum(1 for t in ap_trends if t.trend.is_positive)
        stable = sum(1 for t in ap_trends if t.trend == SignalTrend.STABLE)

        reliable_rates = [t.change_rate_db_per_hour for t in ap_trends if t.confidence != TrendConfidence.LOW]
        average_rate = statistics.fmean(reliable_rates) if reliable_rates else 0.0

        if degrading > improving and degrading > stable:
            overall = NetworkTrendDirection.DEGRADING
        elif improving > degrading and improving > stable:
            overall = NetworkTrendDirection.IMPROVING
        else:
            overall = NetworkTrendDirection.STABLE

        return NetworkSignalTrendAnalysis(
            ssid=network_trend.ssid,
            overall_trend=overall,
            average_change_rate_db_per_hour=average_rate,
            degrading_ap_count=degrading,
            improving_ap_count=improving,
            stable_ap_count=stable,
            ap_trends=tuple(ap_trends),
        )

    # ------- churn -------

    def analyze_ap_churn(self, snapshots: Sequence[ScanSnapshot], current_time_millis: int) -> ApChurnAnalysis:
        """Additions and removals per hour between consecutive in-window snapshots.

        Counts are spread over the whole trend window, however closely the
        snapshots inside it are spaced.
        """
        cutoff = current_time_millis - self.settings.trend_window_millis
        recent = sorted(
            (s for s in snapshots if cutoff <= s.timestamp_millis <= current_time_millis),
            key=lambda s: s.timestamp_millis,
        )
        if len(recent) < 2:
            logger.debug("Churn: %d snapshots in window, need 2", len(recent))
            return ApChurnAnalysis.empty()

        comparisons = [newer.compare_with(older) for older, newer in zip(recent, recent[1:])]
        additions = sum(len(c.added_bssids) for c in comparisons)
        removals = sum(len(c.removed_bssids) for c in comparisons)

        additions_per_hour = additions / self.window_hours
        removals_per_hour = removals / self.window_hours
        churn_rate = additions_per_hour + removals_per_hour

        return ApChurnAnalysis(
            churn_rate=churn_rate,
            average_additions_per_hour=additions_per_hour,
            average_removals_per_hour=removals_per_hour,
            stability=EnvironmentStability.from_churn_rate(churn_rate),
            pattern=_churn_pattern(additions_per_hour, removals_per_hour, churn_rate),
        )

    # ------- roaming -------

    def analyze_roaming_trend(self, network_trend: NetworkTrend, current_time_millis: int) -> RoamingTrendAnalysis:
        cutoff = current_time_millis - self.settings.trend_window_millis
        events = [e for e in network_trend.roaming_events if cutoff <= e.timestamp_millis <= current_time_millis]

        if not events:
            return RoamingTrendAnalysis(
                event_count=0,
                average_latency_ms=None,
                seamless_percentage=0.0,
                appropriate_roam_percentage=0.0,
                sticky_client_percentage=0.0,
                trend=RoamingQualityTrend.UNKNOWN,
            )

        def pct(count: int) -> float:
            return count / len(events) * 100.0

        seamless = pct(sum(1 for e in events if e.has_11r or e.roaming_quality == RoamingEventQuality.EXCELLENT))
        appropriate = pct(sum(1 for e in events if e.was_appropriate_roam))
        sticky = pct(sum(1 for e in events if e.indicates_sticky_client))

        if seamless >= rules.ROAMING_EXCELLENT_SEAMLESS_PCT and appropriate >= rules.ROAMING_EXCELLENT_APPROPRIATE_PCT:
            trend = RoamingQualityTrend.EXCELLENT
        elif seamless >= rules.ROAMING_GOOD_SEAMLESS_PCT and appropriate >= rules.ROAMING_GOOD_APPROPRIATE_PCT:
            trend = RoamingQualityTrend.GOOD
        elif sticky >= rules.ROAMING_POOR_STICKY_PCT:
            trend = RoamingQualityTrend.POOR
        else:
            trend = RoamingQualityTrend.FAIR

        return RoamingTrendAnalysis(
            event_count=len(events),
            average_latency_ms=statistics.fmean(e.duration_millis for e in events),
            seamless_percentage=seamless,
            appropriate_roam_percentage=appropriate,
            sticky_client_percentage=sticky,
            trend=trend,
        )


def _churn_pattern(additions_per_hour: float, removals_per_hour: float, churn_rate: float) -> ChurnPattern:
    if additions_per_hour > removals_per_hour * rules.CHURN_DIRECTION_RATIO:
        return ChurnPattern.RAPID_GROWTH
    if removals_per_hour > additions_per_hour * rules.CHURN_DIRECTION_RATIO:
        return ChurnPattern.RAPID_DECLINE
    if churn_rate > rules.CHURN_HIGH_VOLATILITY_PER_HOUR:
        return ChurnPattern.HIGH_VOLATILITY
    if churn_rate < rules.CHURN_STABLE_PER_HOUR:
        return ChurnPattern.STABLE
    return ChurnPattern.MODERATE_CHANGE
