"""Anomaly detection — snapshot churn, signal jumps, variance, roaming latency and ping-pong."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from signal_doctor.analysis import rules
from signal_doctor.analysis.trend import TrendAnalyzer
from signal_doctor.models.results import (
    Anomaly,
    AnomalyReport,
    AnomalySeverity,
    AnomalyType,
    sort_by_severity,
)
from signal_doctor.models.types import (
    AnomalySettings,
    ApHistory,
    ConfigChangeType,
    NetworkHealth,
    NetworkTrend,
    RoamingEvent,
    ScanSnapshot,
    SnapshotComparison,
    merge_settings,
)

logger = logging.getLogger(__name__)


def _involved(event: RoamingEvent) -> frozenset[str]:
    return frozenset(b for b in (event.from_bssid, event.to_bssid) if b is not None)


def _deduplicate(anomalies: list[Anomaly]) -> list[Anomaly]:
    seen: set[tuple[AnomalyType, int, frozenset[str]]] = set()
    unique = []
    for anomaly in anomalies:
        key = (anomaly.type, anomaly.timestamp_millis, anomaly.affected_bssids)
        if key in seen:
            continue
        seen.add(key)
        unique.append(anomaly)
    return unique


class AnomalyDetector:
    def __init__(
        self,
        settings: AnomalySettings | None = None,
        trend_analyzer: TrendAnalyzer | None = None,
        **overrides: Any,
    ) -> None:
        self.settings = merge_settings(AnomalySettings, settings, overrides)
        self.trend_analyzer = trend_analyzer or TrendAnalyzer()

    # ------- snapshots -------

    def detect_snapshot_anomalies(self, comparison: SnapshotComparison) -> list[Anomaly]:
        anomalies: list[Anomaly] = []
        timestamp = comparison.newer_snapshot.timestamp_millis

        # ------- 1. Churn relative to the older snapshot -------
        total_before = comparison.total_before
        if total_before > 0:
            churn_pct = comparison.churn_count / total_before * 100.0
            if churn_pct > self.settings.churn_threshold_percentage:
                anomalies.append(
                    Anomaly(
                        type=AnomalyType.MASSIVE_AP_CHURN,
                        severity=(
                            AnomalySeverity.CRITICAL
                            if churn_pct >= rules.CHURN_CRITICAL_PCT
                            else AnomalySeverity.HIGH
                        ),
                        timestamp_millis=timestamp,
                        description=(
                            f"Massive AP churn: {int(churn_pct)}% of {total_before} BSSIDs changed "
                            f"(+{len(comparison.added_bssids)}, -{len(comparison.removed_bssids)})"
                        ),
                        affected_bssids=comparison.added_bssids | comparison.removed_bssids,
                        value=churn_pct,
                    )
                )

        # ------- 2. Per-BSSID signal jumps -------
        for change in comparison.signal_changes():
            delta = change.change_dbm
            if delta < -self.settings.sudden_drop_threshold_db:
                drop = abs(delta)
                if drop >= rules.DROP_CRITICAL_DB:
                    severity = AnomalySeverity.CRITICAL
                elif drop >= rules.DROP_HIGH_DB:
                    severity = AnomalySeverity.HIGH
                else:
                    severity = AnomalySeverity.MEDIUM
                anomalies.append(
                    Anomaly(
                        type=AnomalyType.SUDDEN_SIGNAL_DROP,
                        severity=severity,
                        timestamp_millis=timestamp,
                        description=(
                            f"Sudden signal drop: {change.bssid} fell {drop}dB "
                            f"({change.old_rssi_dbm} → {change.new_rssi_dbm} dBm)"
                        ),
                        affected_bssids=frozenset({change.bssid}),
                        value=float(delta),
                    )
                )
            elif delta > self.settings.sudden_spike_threshold_db:
                anomalies.append(
                    Anomaly(
                        type=AnomalyType.SUDDEN_SIGNAL_SPIKE,
                        severity=AnomalySeverity.LOW,
                        timestamp_millis=timestamp,
                        description=(
                            f"Sudden signal spike: {change.bssid} rose {delta}dB (possible measurement error)"
                        ),
                        affected_bssids=frozenset({change.bssid}),
                        value=float(delta),
                    )
                )

        return sort_by_severity(anomalies)

    # ------- single AP history -------

    def detect_ap_history_anomalies(self, history: ApHistory) -> list[Anomaly]:
        anomalies: list[Anomaly] = []

        std_dev = history.rssi_standard_deviation
        if (
            std_dev >= rules.EXTREME_VARIANCE_STD_DEV_DB
            and history.observation_count >= rules.EXTREME_VARIANCE_MIN_OBSERVATIONS
        ):
            anomalies.append(
                Anomaly(
                    type=AnomalyType.EXTREME_SIGNAL_VARIANCE,
                    severity=AnomalySeverity.MEDIUM,
                    timestamp_millis=history.last_seen_timestamp,
                    description=f"Extreme signal variance: {history.bssid} has {std_dev:.1f}dB std dev",
                    affected_bssids=frozenset({history.bssid}),
                    value=std_dev,
                )
            )

        disconnects, connects = history.disconnection_count, history.connection_count
        if disconnects >= rules.FREQUENT_DISCONNECT_MIN_COUNT and connects > 0:
            rate = disconnects / connects
            if rate >= rules.FREQUENT_DISCONNECT_RATE:
                anomalies.append(
                    Anomaly(
                        type=AnomalyType.FREQUENT_DISCONNECTIONS,
                        severity=AnomalySeverity.HIGH,
                        timestamp_millis=history.last_seen_timestamp,
                        description=(
                            f"Frequent disconnections: {history.bssid} has {disconnects} disconnects "
                            f"vs {connects} connections"
                        ),
                        affected_bssids=frozenset({history.bssid}),
                        value=rate * 100.0,
                    )
                )

        for change in history.configuration_changes:
            if not change.is_security_change:
                continue
            anomalies.append(
                Anomaly(
                    type=AnomalyType.SECURITY_CONFIGURATION_CHANGE,
                    severity=(
                        AnomalySeverity.CRITICAL
                        if change.change_type == ConfigChangeType.SECURITY_DOWNGRADE
                        else AnomalySeverity.LOW
                    ),
                    timestamp_millis=change.timestamp_millis,
                    description=f"{change.change_type.display_name}: {change.description}",
                    affected_bssids=frozenset({history.bssid}),
                )
            )

        return sort_by_severity(anomalies)

    # ------- roaming events -------

    def detect_roaming_anomalies(self, events: Sequence[RoamingEvent]) -> list[Anomaly]:
        anomalies: list[Anomaly] = []

        for event in events:
            if event.is_actual_roam and event.duration_millis > self.settings.roaming_latency_anomaly_ms:
                if event.duration_millis >= rules.LATENCY_CRITICAL_MS:
                    severity = AnomalySeverity.CRITICAL
                elif event.duration_millis >= rules.LATENCY_HIGH_MS:
                    severity = AnomalySeverity.HIGH
                else:
                    severity = AnomalySeverity.MEDIUM
                anomalies.append(
                    Anomaly(
                        type=AnomalyType.EXCESSIVE_ROAMING_LATENCY,
                        severity=severity,
                        timestamp_millis=event.timestamp_millis,
                        description=(
                            f"Excessive roaming latency: {event.duration_millis}ms "
                            f"({event.from_bssid} → {event.to_bssid})"
                        ),
                        affected_bssids=_involved(event),
                        value=float(event.duration_millis),
                    )
                )

            if (
                event.is_actual_roam
                and not event.was_appropriate_roam
                and event.rssi_before_dbm is not None
                and event.rssi_before_dbm >= rules.INAPPROPRIATE_ROAM_STRONG_RSSI
            ):
                anomalies.append(
                    Anomaly(
                        type=AnomalyType.INAPPROPRIATE_ROAMING,
                        severity=AnomalySeverity.LOW,
                        timestamp_millis=event.timestamp_millis,
                        description=(
                            f"Roamed away from strong signal: {event.rssi_before_dbm}dBm → "
                            f"{event.rssi_after_dbm}dBm"
                        ),
                        affected_bssids=_involved(event),
                        value=float(event.rssi_before_dbm),
                    )
                )

            if event.was_forced_disconnect:
                anomalies.append(
                    Anomaly(
                        type=AnomalyType.FORCED_DISCONNECT,
                        severity=AnomalySeverity.MEDIUM,
                        timestamp_millis=event.timestamp_millis,
                        description=f"Forced disconnect during roaming: {event.from_bssid} → {event.to_bssid}",
                        affected_bssids=_involved(event),
                    )
                )

        return sort_by_severity(anomalies)

    def detect_roaming_ping_pong(
        self,
        events: Sequence[RoamingEvent],
        window_millis: int | None = None,
        min_occurrences: int | None = None,
    ) -> list[Anomaly]:
        """A→B→A→B switching: ``min_occurrences`` consecutive roams within ``window_millis``.

        Each BSSID pair is reported once, at the first window that matches.
        A non-positive window or fewer than two occurrences finds nothing.
        """
        window_millis = window_millis if window_millis is not None else self.settings.ping_pong_window_millis
        min_occurrences = min_occurrences if min_occurrences is not None else self.settings.ping_pong_min_occurrences
        if window_millis <= 0 or min_occurrences < 2:
            return []

        roams = sorted((e for e in events if e.is_actual_roam), key=lambda e: e.timestamp_millis)
        anomalies: list[Anomaly] = []
        reported: set[frozenset[str]] = set()

        for start in range(len(roams) - min_occurrences + 1):
            run = roams[start : start + min_occurrences]
            if run[-1].timestamp_millis - run[0].timestamp_millis > window_millis:
                continue
            pair = frozenset().union(*(_involved(e) for e in run))
            if len(pair) != 2 or pair in reported:
                continue
            targets = [e.to_bssid for e in run]
            if any(a == b for a, b in zip(targets, targets[1:])):
                continue
            reported.add(pair)
            anomalies.append(
                Anomaly(
                    type=AnomalyType.ROAMING_PING_PONG,
                    severity=AnomalySeverity.HIGH,
                    timestamp_millis=run[-1].timestamp_millis,
                    description=(
                        f"Roaming ping-pong: {min_occurrences} rapid switches between "
                        f"{' ↔ '.join(sorted(pair))}"
                    ),
                    affected_bssids=pair,
                    value=float(min_occurrences),
                )
            )

        return anomalies

    # ------- whole network -------

    def detect_network_anomalies(
        self, network_trend: NetworkTrend, snapshots: Sequence[ScanSnapshot] = ()
    ) -> list[Anomaly]:
        """Every detector applied across the network, deduplicated, most severe first.

        ``snapshots`` defaults to the ones carried by ``network_trend``.
        """
        anomalies: list[Anomaly] = []
        now = network_trend.end_timestamp
        all_bssids = frozenset(h.bssid for h in network_trend.ap_histories)
        ap_count = network_trend.unique_ap_count

        degrading = sum(
            1
            for h in network_trend.ap_histories
            if self.trend_analyzer.analyze_ap_signal_trend(h, now).trend.indicates_problem
        )
        if ap_count >= rules.NETWORK_DEGRADATION_MIN_APS and degrading / ap_count >= rules.NETWORK_DEGRADATION_FRACTION:
            anomalies.append(
                Anomaly(
                    type=AnomalyType.NETWORK_WIDE_DEGRADATION,
                    severity=AnomalySeverity.CRITICAL,
                    timestamp_millis=now,
                    description=f"Network-wide signal degradation: {degrading}/{ap_count} APs degrading",
                    affected_bssids=all_bssids,
                    value=degrading / ap_count * 100.0,
                )
            )

        if network_trend.ap_histories and network_trend.health == NetworkHealth.CRITICAL:
            anomalies.append(
                Anomaly(
                    type=AnomalyType.CRITICAL_NETWORK_HEALTH,
                    severity=AnomalySeverity.CRITICAL,
                    timestamp_millis=now,
                    description=f"Critical network health: score {network_trend.health_score}/100",
                    affected_bssids=all_bssids,
                    value=float(network_trend.health_score),
                )
            )

        for history in network_trend.ap_histories:
            anomalies.extend(self.detect_ap_history_anomalies(history))

        ordered = sorted(snapshots or network_trend.snapshots, key=lambda s: s.timestamp_millis)
        for older, newer in zip(ordered, ordered[1:]):
            anomalies.extend(self.detect_snapshot_anomalies(newer.compare_with(older)))

        events = network_trend.recorded_roaming_events
        anomalies.extend(self.detect_roaming_anomalies(events))
        anomalies.extend(self.detect_roaming_ping_pong(events))

        result = sort_by_severity(_deduplicate(anomalies))
        if result:
            logger.info("%s: %d anomalies detected", network_trend.ssid, len(result))
        return result

    def detect_all_anomalies(
        self, network_trend: NetworkTrend, snapshots: Sequence[ScanSnapshot] = ()
    ) -> AnomalyReport:
        return AnomalyReport.from_anomalies(
            ssid=network_trend.ssid,
            timestamp_millis=network_trend.end_timestamp,
            anomalies=self.detect_network_anomalies(network_trend, snapshots),
        )
