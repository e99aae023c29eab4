"""Immutable result records produced by the analyzers."""

from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field

from signal_doctor.models.types import (
    RSSI_MAX_DBM,
    RSSI_MIN_DBM,
    Band,
    EnvironmentStability,
    NetworkHealth,
    NetworkTrendDirection,
    PredictionConfidence,
    RoamingCapabilities,
    SignalStrength,
    SignalTrend,
    TrendConfidence,
)

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ChurnPattern(enum.StrEnum):
    RAPID_GROWTH = "rapid_growth"
    RAPID_DECLINE = "rapid_decline"
    HIGH_VOLATILITY = "high_volatility"
    MODERATE_CHANGE = "moderate_change"
    STABLE = "stable"
    UNKNOWN = "unknown"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


class RoamingQualityTrend(enum.StrEnum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    UNKNOWN = "unknown"

    @property
    def is_acceptable(self) -> bool:
        return self in (RoamingQualityTrend.EXCELLENT, RoamingQualityTrend.GOOD)


class AnomalyType(enum.StrEnum):
    SUDDEN_SIGNAL_DROP = "sudden_signal_drop"
    SUDDEN_SIGNAL_SPIKE = "sudden_signal_spike"
    EXTREME_SIGNAL_VARIANCE = "extreme_signal_variance"
    MASSIVE_AP_CHURN = "massive_ap_churn"
    FREQUENT_DISCONNECTIONS = "frequent_disconnections"
    EXCESSIVE_ROAMING_LATENCY = "excessive_roaming_latency"
    INAPPROPRIATE_ROAMING = "inappropriate_roaming"
    ROAMING_PING_PONG = "roaming_ping_pong"
    FORCED_DISCONNECT = "forced_disconnect"
    SECURITY_CONFIGURATION_CHANGE = "security_configuration_change"
    NETWORK_WIDE_DEGRADATION = "network_wide_degradation"
    CRITICAL_NETWORK_HEALTH = "critical_network_health"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


class AnomalySeverity(enum.StrEnum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """0 for CRITICAL up to 3 for LOW; sort ascending for most severe first."""
        return list(AnomalySeverity).index(self)

    @property
    def requires_notification(self) -> bool:
        return self in (AnomalySeverity.CRITICAL, AnomalySeverity.HIGH)


class StickySeverity(enum.StrEnum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def requires_action(self) -> bool:
        return self in (StickySeverity.MEDIUM, StickySeverity.HIGH, StickySeverity.CRITICAL)

    @property
    def is_urgent(self) -> bool:
        return self in (StickySeverity.HIGH, StickySeverity.CRITICAL)


class CoverageQuality(enum.StrEnum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class ConnectionTiming(enum.StrEnum):
    IMMEDIATE = "immediate"
    WAIT_FOR_IMPROVEMENT = "wait_for_improvement"
    FLEXIBLE = "flexible"

    @property
    def display_name(self) -> str:
        return {
            "immediate": "Connect Now",
            "wait_for_improvement": "Wait for Better Signal",
            "flexible": "Flexible Timing",
        }[self.value]


class RiskLevel(enum.StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    MINIMAL = "minimal"

    @classmethod
    def from_probability(cls, probability: float) -> RiskLevel:
        if probability >= 0.7:
            return cls.HIGH
        if probability >= 0.4:
            return cls.MEDIUM
        if probability >= 0.2:
            return cls.LOW
        return cls.MINIMAL


# ---------------------------------------------------------------------------
# Trend results
# ---------------------------------------------------------------------------


class ApSignalTrendAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    bssid: str
    trend: SignalTrend
    change_rate_db_per_hour: float
    confidence: TrendConfidence
    observations: int = Field(ge=0)
    is_significant: bool

    @property
    def is_reliable(self) -> bool:
        return self.confidence.is_acceptable

    @property
    def indicates_problem(self) -> bool:
        return self.trend.indicates_problem and self.is_significant and self.is_reliable

    @property
    def summary(self) -> str:
        text = f"{self.bssid}: {self.trend.display_name}"
        if self.is_significant:
            text += f" ({self.change_rate_db_per_hour:+.0f}dB/hr)"
        return f"{text} [{self.confidence.value}]"


class NetworkSignalTrendAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    ssid: str
    overall_trend: NetworkTrendDirection
    average_change_rate_db_per_hour: float
    degrading_ap_count: int = Field(ge=0)
    improving_ap_count: int = Field(ge=0)
    stable_ap_count: int = Field(ge=0)
    ap_trends: tuple[ApSignalTrendAnalysis, ...] = ()

    @property
    def total_ap_count(self) -> int:
        return len(self.ap_trends)

    @property
    def degrading_percentage(self) -> float:
        if not self.ap_trends:
            return 0.0
        return self.degrading_ap_count / self.total_ap_count * 100.0

    @property
    def is_network_declining(self) -> bool:
        return (
            self.degrading_percentage > 50.0
            or self.overall_trend == NetworkTrendDirection.STRONGLY_DEGRADING
        )

    @property
    def summary(self) -> str:
        return (
            f"{self.ssid}: {self.overall_trend.value.replace('_', ' ')} "
            f"({self.average_change_rate_db_per_hour:+.1f}dB/hr avg) - "
            f"{self.degrading_ap_count} degrading, {self.improving_ap_count} improving"
        )


class ApChurnAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    churn_rate: float = Field(ge=0)
    average_additions_per_hour: float = Field(ge=0)
    average_removals_per_hour: float = Field(ge=0)
    stability: EnvironmentStability
    pattern: ChurnPattern

    @classmethod
    def empty(cls) -> ApChurnAnalysis:
        return cls(
            churn_rate=0.0,
            average_additions_per_hour=0.0,
            average_removals_per_hour=0.0,
            stability=EnvironmentStability.VERY_STABLE,
            pattern=ChurnPattern.UNKNOWN,
        )

    @property
    def is_stable_environment(self) -> bool:
        return self.stability.is_acceptable

    @property
    def summary(self) -> str:
        return (
            f"Churn: {self.churn_rate:.1f}/hr (+{self.average_additions_per_hour:.1f}, "
            f"-{self.average_removals_per_hour:.1f}) - {self.pattern.display_name}"
        )


class RoamingTrendAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_count: int = Field(ge=0)
    average_latency_ms: float | None = None
    seamless_percentage: float = Field(ge=0, le=100)
    appropriate_roam_percentage: float = Field(ge=0, le=100)
    sticky_client_percentage: float = Field(ge=0, le=100)
    trend: RoamingQualityTrend

    @property
    def is_healthy(self) -> bool:
        return self.trend.is_acceptable

    @property
    def has_sticky_client_issues(self) -> bool:
        return self.sticky_client_percentage > 30.0

    @property
    def summary(self) -> str:
        text = f"Roaming: {self.trend.value} ({self.event_count} events"
        if self.average_latency_ms is not None:
            text += f", {int(self.average_latency_ms)}ms avg"
        text += ")"
        if self.has_sticky_client_issues:
            text += f" [STICKY: {int(self.sticky_client_percentage)}%]"
        return text


# ---------------------------------------------------------------------------
# Anomalies
# ---------------------------------------------------------------------------


class Anomaly(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: AnomalyType
    severity: AnomalySeverity
    timestamp_millis: int = Field(ge=0)
    description: str = Field(min_length=1)
    affected_bssids: frozenset[str] = frozenset()
    value: float | None = None

    @property
    def requires_immediate_attention(self) -> bool:
        return self.severity.requires_notification

    @property
    def summary(self) -> str:
        return f"[{self.severity.value.upper()}] {self.type.display_name}: {self.description}"


def sort_by_severity(anomalies: list[Anomaly]) -> list[Anomaly]:
    """Most severe first; insertion order is kept within a severity."""
    return sorted(anomalies, key=lambda a: a.severity.rank)


class AnomalyReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    ssid: str
    timestamp_millis: int = Field(ge=0)
    anomalies: tuple[Anomaly, ...] = ()
    critical_count: int = Field(0, ge=0)
    high_count: int = Field(0, ge=0)
    medium_count: int = Field(0, ge=0)
    low_count: int = Field(0, ge=0)

    @classmethod
    def from_anomalies(cls, ssid: str, timestamp_millis: int, anomalies: list[Anomaly]) -> AnomalyReport:
        ordered = sort_by_severity(anomalies)
        counts = {severity: 0 for severity in AnomalySeverity}
        for anomaly in ordered:
            counts[anomaly.severity] += 1
        return cls(
            ssid=ssid,
            timestamp_millis=timestamp_millis,
            anomalies=tuple(ordered),
            critical_count=counts[AnomalySeverity.CRITICAL],
            high_count=counts[AnomalySeverity.HIGH],
            medium_count=counts[AnomalySeverity.MEDIUM],
            low_count=counts[AnomalySeverity.LOW],
        )

    @property
    def total_count(self) -> int:
        return len(self.anomalies)

    @property
    def has_critical_issues(self) -> bool:
        return self.critical_count > 0

    @property
    def has_high_severity_issues(self) -> bool:
        return self.high_count > 0

    @property
    def is_healthy(self) -> bool:
        return self.critical_count == 0 and self.high_count == 0

    @property
    def urgent_anomalies(self) -> list[Anomaly]:
        return [a for a in self.anomalies if a.requires_immediate_attention]

    @property
    def summary(self) -> str:
        text = f"{self.ssid} Anomaly Report: {self.total_count} anomalies"
        if self.critical_count:
            text += f" ({self.critical_count} CRITICAL)"
        if self.high_count:
            text += f" ({self.high_count} HIGH)"
        if self.is_healthy:
            text += " - Network healthy"
        return text


# ---------------------------------------------------------------------------
# Sticky clients
# ---------------------------------------------------------------------------


class StickyEvent(BaseModel):
    """One episode of a client staying on a weak AP."""

    model_config = ConfigDict(frozen=True)

    timestamp_millis: int = Field(ge=0)
    duration_millis: int = Field(ge=0)
    sticky_rssi: int = Field(ge=RSSI_MIN_DBM, le=RSSI_MAX_DBM)
    better_ap_rssi: int = Field(ge=RSSI_MIN_DBM, le=RSSI_MAX_DBM)
    is_ongoing: bool = False


class StickyClientMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    ssid: str = Field(min_length=1)
    total_sticky_duration_millis: int = Field(ge=0)
    sticky_events_count: int = Field(ge=0)
    avg_sticky_rssi_dbm: float = Field(ge=RSSI_MIN_DBM, le=RSSI_MAX_DBM)
    avg_better_ap_rssi_dbm: float = Field(ge=RSSI_MIN_DBM, le=RSSI_MAX_DBM)
    worst_sticky_rssi_dbm: int = Field(ge=RSSI_MIN_DBM, le=RSSI_MAX_DBM)
    currently_sticky: bool = False

    @property
    def has_sticky_behavior(self) -> bool:
        return self.sticky_events_count > 0

    @property
    def avg_sticky_event_duration_millis(self) -> int:
        if not self.sticky_events_count:
            return 0
        return self.total_sticky_duration_millis // self.sticky_events_count

    @property
    def avg_rssi_differential_db(self) -> float:
        return self.avg_better_ap_rssi_dbm - self.avg_sticky_rssi_dbm

    @property
    def severity(self) -> StickySeverity:
        if not self.has_sticky_behavior:
            return StickySeverity.NONE
        differential = self.avg_rssi_differential_db
        if self.worst_sticky_rssi_dbm < -85 and differential >= 15:
            return StickySeverity.CRITICAL
        if self.avg_sticky_rssi_dbm < -80 and differential >= 10:
            return StickySeverity.HIGH
        if self.avg_sticky_rssi_dbm < -75 and differential >= 8:
            return StickySeverity.MEDIUM
        if differential >= 5:
            return StickySeverity.LOW
        return StickySeverity.NONE

    @property
    def performance_impact(self) -> float:
        """0.0 (none) to 1.0 (severe), weighting signal 40%, differential 40%, frequency 20%."""

        def clamp(value: float) -> float:
            return max(0.0, min(1.0, value))

        rssi_impact = clamp((-75 - self.avg_sticky_rssi_dbm) / 30.0)
        differential_impact = clamp(self.avg_rssi_differential_db / 20.0)
        frequency_impact = clamp(self.sticky_events_count / 10.0)
        return clamp(rssi_impact * 0.4 + differential_impact * 0.4 + frequency_impact * 0.2)

    @property
    def estimated_throughput_loss_percent(self) -> int:
        return int(self.performance_impact * 100)

    @property
    def recommendations(self) -> list[str]:
        severity = self.severity
        if severity.is_urgent:
            return [
                "Enable 802.11k/r/v (fast roaming) on all access points",
                "Reduce AP transmit power to encourage roaming",
                "Update device WiFi driver/firmware",
                "Consider adjusting AP placement for better coverage overlap",
            ]
        if severity == StickySeverity.MEDIUM:
            return [
                "Enable 802.11k/v if not already active",
                "Check AP transmit power settings",
                "Monitor for driver updates",
            ]
        if severity == StickySeverity.LOW:
            return ["Enable 802.11k for improved roaming hints"]
        return []

    @property
    def summary(self) -> str:
        if not self.has_sticky_behavior:
            return "No sticky client behavior detected"
        minutes = self.total_sticky_duration_millis // 60_000
        text = f"Sticky client detected: {self.sticky_events_count} events, {minutes}min total"
        if self.currently_sticky:
            text += " [CURRENTLY STICKY]"
        return text


# ---------------------------------------------------------------------------
# Roaming candidates
# ---------------------------------------------------------------------------


class RoamingCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    bssid: str
    band: Band
    channel: int
    rssi: int
    rssi_improvement: int
    roaming_capabilities: RoamingCapabilities
    score: float = Field(ge=0, le=100)
    reason: str


# ---------------------------------------------------------------------------
# Predictions
# ---------------------------------------------------------------------------


class SignalPrediction(BaseModel):
    model_config = ConfigDict(frozen=True)

    bssid: str
    prediction_time_millis: int
    predicted_rssi_dbm: int = Field(ge=RSSI_MIN_DBM, le=RSSI_MAX_DBM)
    lower_bound_rssi_dbm: int = Field(ge=RSSI_MIN_DBM, le=RSSI_MAX_DBM)
    upper_bound_rssi_dbm: int = Field(ge=RSSI_MIN_DBM, le=RSSI_MAX_DBM)
    confidence: PredictionConfidence
    baseline_rssi_dbm: int

    @property
    def expected_change_dbm(self) -> int:
        return self.predicted_rssi_dbm - self.baseline_rssi_dbm

    @property
    def expects_improvement(self) -> bool:
        return self.expected_change_dbm > 0

    @property
    def expects_degradation(self) -> bool:
        return self.expected_change_dbm < 0

    @property
    def predicted_strength(self) -> SignalStrength:
        return SignalStrength.from_rssi(self.predicted_rssi_dbm)

    @property
    def summary(self) -> str:
        text = f"{self.predicted_rssi_dbm}dBm"
        if self.expected_change_dbm:
            text += f" ({self.expected_change_dbm:+d}dB)"
        return f"{text} [{self.confidence.value}]"


class NetworkHealthPrediction(BaseModel):
    model_config = ConfigDict(frozen=True)

    ssid: str
    prediction_time_millis: int
    current_health_score: int = Field(ge=0, le=100)
    predicted_health_score: int = Field(ge=0, le=100)
    current_health: NetworkHealth
    predicted_health: NetworkHealth
    confidence: PredictionConfidence
    trend: NetworkTrendDirection

    @property
    def expected_change(self) -> int:
        return self.predicted_health_score - self.current_health_score

    @property
    def expects_improvement(self) -> bool:
        return self.predicted_health.min_score > self.current_health.min_score

    @property
    def expects_degradation(self) -> bool:
        return self.predicted_health.min_score < self.current_health.min_score


class CoveragePrediction(BaseModel):
    model_config = ConfigDict(frozen=True)

    prediction_time_millis: int
    current_ap_count: int = Field(ge=0)
    predicted_ap_count: int = Field(ge=0)
    current_avg_signal_dbm: int
    predicted_avg_signal_dbm: int
    quality: CoverageQuality
    confidence: PredictionConfidence

    @property
    def expects_improvement(self) -> bool:
        return (
            self.predicted_ap_count > self.current_ap_count
            or self.predicted_avg_signal_dbm > self.current_avg_signal_dbm
        )

    @property
    def expects_degradation(self) -> bool:
        return (
            self.predicted_ap_count < self.current_ap_count
            or self.predicted_avg_signal_dbm < self.current_avg_signal_dbm
        )


class ConnectionTimeRecommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    bssid: str
    current_signal_dbm: int
    best_time_hours_ahead: int
    best_predicted_signal_dbm: int
    worst_time_hours_ahead: int
    worst_predicted_signal_dbm: int
    recommendation: ConnectionTiming


class IssuesPrediction(BaseModel):
    model_config = ConfigDict(frozen=True)

    bssid: str
    prediction_time_millis: int
    issue_probability: float = Field(ge=0, le=1)
    risk_level: RiskLevel
    likely_issues: tuple[str, ...] = ()
    signal_prediction: SignalPrediction

    @property
    def summary(self) -> str:
        return f"{self.risk_level.value.title()} risk ({int(self.issue_probability * 100)}%)"
