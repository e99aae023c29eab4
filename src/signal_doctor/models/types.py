"""Pydantic models for observations, histories, clusters, snapshots and analyzer settings."""

from __future__ import annotations

import enum
import math
import statistics
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

RSSI_MIN_DBM = -120
RSSI_MAX_DBM = 0

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Band(enum.StrEnum):
    BAND_2G = "2g"
    BAND_5G = "5g"
    BAND_6G = "6g"

    @property
    def display_name(self) -> str:
        return {"2g": "2.4 GHz", "5g": "5 GHz", "6g": "6 GHz"}[self.value]


class WifiStandard(enum.StrEnum):
    LEGACY = "legacy"
    WIFI_4 = "wifi4"
    WIFI_5 = "wifi5"
    WIFI_6 = "wifi6"
    WIFI_6E = "wifi6e"
    WIFI_7 = "wifi7"

    @property
    def generation(self) -> int:
        return {
            "legacy": 3,
            "wifi4": 4,
            "wifi5": 5,
            "wifi6": 6,
            "wifi6e": 6,
            "wifi7": 7,
        }[self.value]


class ChannelWidth(enum.IntEnum):
    WIDTH_20 = 20
    WIDTH_40 = 40
    WIDTH_80 = 80
    WIDTH_160 = 160
    WIDTH_320 = 320


class SignalStrength(enum.StrEnum):
    EXCELLENT = "excellent"
    VERY_GOOD = "very_good"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"

    @classmethod
    def from_rssi(cls, rssi_dbm: float) -> SignalStrength:
        if rssi_dbm >= -50:
            return cls.EXCELLENT
        if rssi_dbm >= -60:
            return cls.VERY_GOOD
        if rssi_dbm >= -70:
            return cls.GOOD
        if rssi_dbm >= -80:
            return cls.FAIR
        return cls.POOR

    @property
    def is_adequate(self) -> bool:
        return self in (SignalStrength.EXCELLENT, SignalStrength.VERY_GOOD, SignalStrength.GOOD)


class SignalStability(enum.StrEnum):
    VERY_STABLE = "very_stable"
    STABLE = "stable"
    MODERATE = "moderate"
    UNSTABLE = "unstable"
    VERY_UNSTABLE = "very_unstable"

    @classmethod
    def from_std_dev(cls, std_dev: float) -> SignalStability:
        if std_dev < 2.0:
            return cls.VERY_STABLE
        if std_dev < 5.0:
            return cls.STABLE
        if std_dev < 10.0:
            return cls.MODERATE
        if std_dev < 15.0:
            return cls.UNSTABLE
        return cls.VERY_UNSTABLE

    @property
    def is_acceptable(self) -> bool:
        return self in (SignalStability.VERY_STABLE, SignalStability.STABLE, SignalStability.MODERATE)


class SignalTrend(enum.StrEnum):
    STRONGLY_IMPROVING = "strongly_improving"
    IMPROVING = "improving"
    STABLE = "stable"
    DEGRADING = "degrading"
    STRONGLY_DEGRADING = "strongly_degrading"
    INSUFFICIENT_DATA = "insufficient_data"

    @property
    def is_positive(self) -> bool:
        return self in (SignalTrend.IMPROVING, SignalTrend.STRONGLY_IMPROVING)

    @property
    def indicates_problem(self) -> bool:
        return self in (SignalTrend.DEGRADING, SignalTrend.STRONGLY_DEGRADING)

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


class TrendConfidence(enum.StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def is_acceptable(self) -> bool:
        return self in (TrendConfidence.HIGH, TrendConfidence.MEDIUM)


class PredictionConfidence(enum.StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def is_acceptable(self) -> bool:
        return self in (PredictionConfidence.HIGH, PredictionConfidence.MEDIUM)


class EnvironmentStability(enum.StrEnum):
    VERY_STABLE = "very_stable"
    STABLE = "stable"
    MODERATE = "moderate"
    UNSTABLE = "unstable"
    VERY_UNSTABLE = "very_unstable"

    @classmethod
    def from_churn_rate(cls, churn_per_hour: float) -> EnvironmentStability:
        if churn_per_hour < 0.5:
            return cls.VERY_STABLE
        if churn_per_hour < 2.0:
            return cls.STABLE
        if churn_per_hour < 5.0:
            return cls.MODERATE
        if churn_per_hour < 10.0:
            return cls.UNSTABLE
        return cls.VERY_UNSTABLE

    @property
    def is_acceptable(self) -> bool:
        return self in (
            EnvironmentStability.VERY_STABLE,
            EnvironmentStability.STABLE,
            EnvironmentStability.MODERATE,
        )


class NetworkTrendDirection(enum.StrEnum):
    STRONGLY_IMPROVING = "strongly_improving"
    IMPROVING = "improving"
    STABLE = "stable"
    DEGRADING = "degrading"
    STRONGLY_DEGRADING = "strongly_degrading"
    INSUFFICIENT_DATA = "insufficient_data"

    @property
    def is_positive(self) -> bool:
        return self in (NetworkTrendDirection.IMPROVING, NetworkTrendDirection.STRONGLY_IMPROVING)

    @property
    def indicates_problem(self) -> bool:
        return self in (NetworkTrendDirection.DEGRADING, NetworkTrendDirection.STRONGLY_DEGRADING)


class NetworkHealth(enum.StrEnum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    CRITICAL = "critical"

    @classmethod
    def from_score(cls, score: int) -> NetworkHealth:
        if score >= 85:
            return cls.EXCELLENT
        if score >= 70:
            return cls.GOOD
        if score >= 50:
            return cls.FAIR
        if score >= 30:
            return cls.POOR
        return cls.CRITICAL

    @property
    def min_score(self) -> int:
        return {"excellent": 85, "good": 70, "fair": 50, "poor": 30, "critical": 0}[self.value]

    @property
    def is_acceptable(self) -> bool:
        return self in (NetworkHealth.EXCELLENT, NetworkHealth.GOOD, NetworkHealth.FAIR)


class RoamingEventQuality(enum.StrEnum):
    EXCELLENT = "excellent"
    VERY_GOOD = "very_good"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    UNKNOWN = "unknown"

    @property
    def rank(self) -> int:
        """Ordering used for medians: lower is better."""
        return list(RoamingEventQuality).index(self)


class ConfigChangeType(enum.StrEnum):
    SECURITY_UPGRADE = "security_upgrade"
    SECURITY_DOWNGRADE = "security_downgrade"
    ENCRYPTION_CHANGE = "encryption_change"
    CHANNEL_CHANGE = "channel_change"
    CHANNEL_WIDTH_CHANGE = "channel_width_change"
    STANDARD_UPGRADE = "standard_upgrade"
    ROAMING_CAPABILITY_CHANGE = "roaming_capability_change"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


# ---------------------------------------------------------------------------
# Analyzer settings
# ---------------------------------------------------------------------------


class TrendSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    min_observations_for_trend: int = Field(10, ge=3)
    trend_window_millis: int = Field(3_600_000, gt=0)
    significant_change_threshold_db: float = Field(5.0, gt=0)


class AnomalySettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    sudden_drop_threshold_db: float = Field(15.0, gt=0)
    sudden_spike_threshold_db: float = Field(20.0, gt=0)
    churn_threshold_percentage: float = Field(50.0, ge=0, le=100)
    roaming_latency_anomaly_ms: int = Field(3000, gt=0)
    ping_pong_window_millis: int = Field(60_000, gt=0)
    ping_pong_min_occurrences: int = Field(3, ge=2)


class StickySettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    sticky_rssi_threshold: int = Field(-75, ge=RSSI_MIN_DBM, le=RSSI_MAX_DBM)
    better_ap_differential: int = Field(10, gt=0)


class PredictionSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    min_historical_data_points: int = Field(20, ge=3)
    max_prediction_horizon_millis: int = Field(86_400_000, gt=0)
    confidence_interval: float = Field(0.95, gt=0, le=1)
    history_window_millis: int = Field(3_600_000, gt=0)


class Config(BaseModel):
    model_config = ConfigDict(extra="forbid")

    trend: TrendSettings = Field(default_factory=TrendSettings)
    anomaly: AnomalySettings = Field(default_factory=AnomalySettings)
    sticky: StickySettings = Field(default_factory=StickySettings)
    prediction: PredictionSettings = Field(default_factory=PredictionSettings)


S = TypeVar("S", bound=BaseModel)


def merge_settings(model: type[S], settings: S | None, overrides: dict[str, Any]) -> S:
    """Apply keyword overrides on top of a settings instance, re-validating the result."""
    base = settings if settings is not None else model()
    if not overrides:
        return base
    return model.model_validate({**base.model_dump(), **overrides})


# ---------------------------------------------------------------------------
# Observations and events
# ---------------------------------------------------------------------------


class SignalObservation(BaseModel):
    """One RSSI sample for one BSSID."""

    model_config = ConfigDict(frozen=True)

    bssid: str = Field(min_length=1)
    timestamp_millis: int = Field(ge=0)
    rssi_dbm: int = Field(ge=RSSI_MIN_DBM, le=RSSI_MAX_DBM)

    @property
    def strength(self) -> SignalStrength:
        return SignalStrength.from_rssi(self.rssi_dbm)

    def age_millis(self, current_time_millis: int) -> int:
        return current_time_millis - self.timestamp_millis


class ConnectionEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    bssid: str = Field(min_length=1)
    timestamp_millis: int = Field(gt=0)
    is_connection: bool
    duration_millis: int | None = Field(None, ge=0)
    rssi_at_event_dbm: int | None = Field(None, ge=RSSI_MIN_DBM, le=RSSI_MAX_DBM)
    reason: str | None = None

    @property
    def is_disconnection(self) -> bool:
        return not self.is_connection


class ConfigurationChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp_millis: int = Field(gt=0)
    change_type: ConfigChangeType
    old_value: str | None = None
    new_value: str | None = None
    description: str = Field(min_length=1)

    @property
    def is_security_change(self) -> bool:
        return self.change_type in (
            ConfigChangeType.SECURITY_UPGRADE,
            ConfigChangeType.SECURITY_DOWNGRADE,
            ConfigChangeType.ENCRYPTION_CHANGE,
        )


class RoamingEvent(BaseModel):
    """A client transition between two BSSIDs of the same SSID.

    ``from_bssid`` is None for an initial connection and ``to_bssid`` is None
    for a disconnection; only events with both set and different are roams.
    """

    model_config = ConfigDict(frozen=True)

    timestamp_millis: int = Field(ge=0)
    from_bssid: str | None = None
    to_bssid: str | None = None
    ssid: str = Field(min_length=1)
    duration_millis: int = Field(0, ge=0)
    rssi_before_dbm: int | None = Field(None, ge=RSSI_MIN_DBM, le=RSSI_MAX_DBM)
    rssi_after_dbm: int | None = Field(None, ge=RSSI_MIN_DBM, le=RSSI_MAX_DBM)
    was_forced_disconnect: bool = False
    has_11r: bool = False
    has_11k: bool = False
    has_11v: bool = False

    @property
    def is_actual_roam(self) -> bool:
        return self.from_bssid is not None and self.to_bssid is not None and self.from_bssid != self.to_bssid

    @property
    def rssi_improvement_db(self) -> int | None:
        if self.rssi_before_dbm is None or self.rssi_after_dbm is None:
            return None
        return self.rssi_after_dbm - self.rssi_before_dbm

    @property
    def has_fast_roaming_support(self) -> bool:
        return self.has_11k or self.has_11r or self.has_11v

    @property
    def roaming_quality(self) -> RoamingEventQuality:
        if self.was_forced_disconnect:
            return RoamingEventQuality.POOR
        if not self.is_actual_roam:
            return RoamingEventQuality.UNKNOWN
        if self.duration_millis <= 50 and self.has_11r:
            return RoamingEventQuality.EXCELLENT
        if self.duration_millis <= 100 and self.has_11r:
            return RoamingEventQuality.VERY_GOOD
        if self.duration_millis <= 300 and self.has_fast_roaming_support:
            return RoamingEventQuality.GOOD
        if self.duration_millis <= 500:
            return RoamingEventQuality.FAIR
        return RoamingEventQuality.POOR

    @property
    def was_appropriate_roam(self) -> bool:
        """Roamed away from a weak signal, or to a materially stronger one."""
        if not self.is_actual_roam:
            return False
        if self.rssi_before_dbm is not None and self.rssi_before_dbm < -75:
            return True
        improvement = self.rssi_improvement_db
        return improvement is not None and improvement >= 5

    @property
    def indicates_sticky_client(self) -> bool:
        return self.is_actual_roam and self.rssi_before_dbm is not None and self.rssi_before_dbm < -80


# ---------------------------------------------------------------------------
# AP history
# ---------------------------------------------------------------------------


class ApHistory(BaseModel):
    """Time-ordered observations and events for one BSSID.

    Instances are immutable; the ``add_*`` methods return a new history.
    """

    model_config = ConfigDict(frozen=True)

    bssid: str = Field(min_length=1)
    ssid: str = Field(min_length=1)
    first_seen_timestamp: int = Field(gt=0)
    last_seen_timestamp: int
    observations: tuple[SignalObservation, ...]
    connection_events: tuple[ConnectionEvent, ...] = ()
    roaming_events: tuple[RoamingEvent, ...] = ()
    configuration_changes: tuple[ConfigurationChange, ...] = ()

    @field_validator("observations")
    @classmethod
    def _non_empty(cls, v: tuple[SignalObservation, ...]) -> tuple[SignalObservation, ...]:
        if not v:
            raise ValueError("observations must not be empty")
        return v

    @model_validator(mode="after")
    def _check_invariants(self) -> ApHistory:
        if self.last_seen_timestamp < self.first_seen_timestamp:
            raise ValueError(
                f"last_seen_timestamp ({self.last_seen_timestamp}) must be >= "
                f"first_seen_timestamp ({self.first_seen_timestamp})"
            )
        foreign = {o.bssid for o in self.observations if o.bssid != self.bssid}
        if foreign:
            raise ValueError(f"observations for {sorted(foreign)} do not belong to {self.bssid}")
        return self

    @classmethod
    def create(cls, observation: SignalObservation, ssid: str) -> ApHistory:
        return cls(
            bssid=observation.bssid,
            ssid=ssid,
            first_seen_timestamp=observation.timestamp_millis,
            last_seen_timestamp=observation.timestamp_millis,
            observations=(observation,),
        )

    # ------- copy-on-write updates -------

    def add_observation(self, observation: SignalObservation) -> ApHistory:
        if observation.bssid != self.bssid:
            raise ValueError(f"Observation BSSID {observation.bssid} does not match history BSSID {self.bssid}")
        observations = tuple(sorted((*self.observations, observation), key=lambda o: o.timestamp_millis))
        return self.model_copy(
            update={
                "observations": observations,
                "last_seen_timestamp": max(self.last_seen_timestamp, observation.timestamp_millis),
            }
        )

    def add_connection_event(self, event: ConnectionEvent) -> ApHistory:
        if event.bssid != self.bssid:
            raise ValueError(f"Connection event BSSID {event.bssid} does not match history BSSID {self.bssid}")
        events = tuple(sorted((*self.connection_events, event), key=lambda e: e.timestamp_millis))
        return self.model_copy(update={"connection_events": events})

    def add_roaming_event(self, event: RoamingEvent) -> ApHistory:
        if self.bssid not in (event.from_bssid, event.to_bssid):
            raise ValueError(f"Roaming event does not involve BSSID {self.bssid}")
        events = tuple(sorted((*self.roaming_events, event), key=lambda e: e.timestamp_millis))
        return self.model_copy(update={"roaming_events": events})

    def add_configuration_change(self, change: ConfigurationChange) -> ApHistory:
        changes = tuple(sorted((*self.configuration_changes, change), key=lambda c: c.timestamp_millis))
        return self.model_copy(update={"configuration_changes": changes})

    # ------- signal statistics -------

    @property
    def observation_count(self) -> int:
        return len(self.observations)

    @property
    def tracking_duration_millis(self) -> int:
        return self.last_seen_timestamp - self.first_seen_timestamp

    @property
    def average_rssi_dbm(self) -> float:
        return statistics.fmean(o.rssi_dbm for o in self.observations)

    @property
    def median_rssi_dbm(self) -> int:
        ordered = sorted(o.rssi_dbm for o in self.observations)
        return ordered[len(ordered) // 2]

    @property
    def peak_rssi_dbm(self) -> int:
        return max(o.rssi_dbm for o in self.observations)

    @property
    def min_rssi_dbm(self) -> int:
        return min(o.rssi_dbm for o in self.observations)

    @property
    def rssi_standard_deviation(self) -> float:
        return statistics.pstdev(o.rssi_dbm for o in self.observations)

    @property
    def signal_stability(self) -> SignalStability:
        return SignalStability.from_std_dev(self.rssi_standard_deviation)

    @property
    def latest_observation(self) -> SignalObservation:
        return self.observations[-1]

    def recent_observations(self, window_millis: int, current_time_millis: int) -> list[SignalObservation]:
        """Observations inside ``[current_time_millis - window_millis, current_time_millis]``."""
        cutoff = current_time_millis - window_millis
        return [o for o in self.observations if cutoff <= o.timestamp_millis <= current_time_millis]

    def recent_average_rssi(self, window_millis: int, current_time_millis: int) -> float | None:
        recent = self.recent_observations(window_millis, current_time_millis)
        if not recent:
            return None
        return statistics.fmean(o.rssi_dbm for o in recent)

    def observations_in_range(self, start_millis: int, end_millis: int) -> list[SignalObservation]:
        return [o for o in self.observations if start_millis <= o.timestamp_millis <= end_millis]

    def is_currently_visible(self, current_time_millis: int, threshold_millis: int = 60_000) -> bool:
        return (current_time_millis - self.last_seen_timestamp) < threshold_millis

    def estimate_rssi_at(self, timestamp_millis: int) -> int | None:
        """Linear interpolation between the surrounding observations."""
        first = self.observations[0].timestamp_millis
        last = self.observations[-1].timestamp_millis
        if timestamp_millis < first or timestamp_millis > last:
            return None
        before = max((o for o in self.observations if o.timestamp_millis <= timestamp_millis),
                     key=lambda o: o.timestamp_millis)
        after = min((o for o in self.observations if o.timestamp_millis >= timestamp_millis),
                    key=lambda o: o.timestamp_millis)
        if before.timestamp_millis == after.timestamp_millis:
            return before.rssi_dbm
        ratio = (timestamp_millis - before.timestamp_millis) / (after.timestamp_millis - before.timestamp_millis)
        return int(before.rssi_dbm + (after.rssi_dbm - before.rssi_dbm) * ratio)

    # ------- connection / roaming statistics -------

    @property
    def connection_count(self) -> int:
        return sum(1 for e in self.connection_events if e.is_connection)

    @property
    def disconnection_count(self) -> int:
        return sum(1 for e in self.connection_events if e.is_disconnection)

    @property
    def actual_roams(self) -> list[RoamingEvent]:
        return [e for e in self.roaming_events if e.is_actual_roam]

    @property
    def summary(self) -> str:
        text = (
            f"{self.bssid} ({self.ssid}): {self.observation_count} observations, "
            f"avg {int(self.average_rssi_dbm)}dBm, {self.signal_stability.value.replace('_', ' ')}"
        )
        if self.connection_count:
            text += f", {self.connection_count} connections"
        return text


# ---------------------------------------------------------------------------
# Topology: clusters and snapshots
# ---------------------------------------------------------------------------


class RoamingCapabilities(BaseModel):
    model_config = ConfigDict(frozen=True)

    k_supported: bool = False  # 802.11k
    v_supported: bool = False  # 802.11v
    r_supported: bool = False  # 802.11r
    ft_psk_supported: bool = False
    ft_eap_supported: bool = False
    ft_sae_supported: bool = False

    @property
    def has_fast_roaming(self) -> bool:
        return self.k_supported or self.v_supported or self.r_supported

    @property
    def has_full_suite(self) -> bool:
        return self.k_supported and self.v_supported and self.r_supported

    @classmethod
    def full_suite(cls) -> RoamingCapabilities:
        return cls(k_supported=True, v_supported=True, r_supported=True)


class ClusteredBss(BaseModel):
    """One radio interface of an access point."""

    model_config = ConfigDict(frozen=True)

    bssid: str = Field(min_length=1)
    band: Band
    channel: int = Field(gt=0)
    frequency_mhz: int = Field(gt=0)
    channel_width: ChannelWidth = ChannelWidth.WIDTH_20
    wifi_standard: WifiStandard = WifiStandard.WIFI_5
    rssi_dbm: int | None = Field(None, ge=RSSI_MIN_DBM, le=RSSI_MAX_DBM)
    roaming_capabilities: RoamingCapabilities = Field(default_factory=RoamingCapabilities)
    last_seen_timestamp: int = Field(0, ge=0)

    @property
    def signal_strength(self) -> SignalStrength | None:
        return SignalStrength.from_rssi(self.rssi_dbm) if self.rssi_dbm is not None else None

    def with_updated_signal(self, rssi_dbm: int, timestamp_millis: int) -> ClusteredBss:
        return self.model_copy(update={"rssi_dbm": rssi_dbm, "last_seen_timestamp": timestamp_millis})


class ApCluster(BaseModel):
    """BSSIDs sharing one SSID and security fingerprint."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    ssid: str = Field(min_length=1)
    bssids: tuple[ClusteredBss, ...] = Field(min_length=1)

    @property
    def ap_count(self) -> int:
        return len(self.bssids)

    @property
    def is_multi_ap(self) -> bool:
        return len(self.bssids) > 1

    @property
    def strongest_bssid(self) -> ClusteredBss | None:
        with_signal = [b for b in self.bssids if b.rssi_dbm is not None]
        return max(with_signal, key=lambda b: b.rssi_dbm) if with_signal else None

    def find_bssid(self, bssid: str) -> ClusteredBss | None:
        return next((b for b in self.bssids if b.bssid.lower() == bssid.lower()), None)


class SignalChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    bssid: str
    old_rssi_dbm: int
    new_rssi_dbm: int
    time_elapsed_millis: int = Field(ge=0)

    @property
    def change_dbm(self) -> int:
        return self.new_rssi_dbm - self.old_rssi_dbm

    @property
    def is_degradation(self) -> bool:
        return self.change_dbm < 0

    @property
    def is_improvement(self) -> bool:
        return self.change_dbm > 0


class ScanSnapshot(BaseModel):
    """All clusters visible at one point in time."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    timestamp_millis: int = Field(gt=0)
    clusters: tuple[ApCluster, ...] = ()
    connected_bssid: str | None = None

    @property
    def all_bssids(self) -> list[ClusteredBss]:
        return [bss for cluster in self.clusters for bss in cluster.bssids]

    @property
    def bssid_set(self) -> frozenset[str]:
        return frozenset(bss.bssid for bss in self.all_bssids)

    @property
    def total_ap_count(self) -> int:
        return len(self.all_bssids)

    @property
    def connected_bss(self) -> ClusteredBss | None:
        if self.connected_bssid is None:
            return None
        return next((b for b in self.all_bssids if b.bssid == self.connected_bssid), None)

    @property
    def connected_cluster(self) -> ApCluster | None:
        if self.connected_bssid is None:
            return None
        return next((c for c in self.clusters if c.find_bssid(self.connected_bssid)), None)

    def compare_with(self, older: ScanSnapshot) -> SnapshotComparison:
        """Diff this (newer) snapshot against an older one."""
        current, previous = self.bssid_set, older.bssid_set
        return SnapshotComparison(
            older_snapshot=older,
            newer_snapshot=self,
            added_bssids=current - previous,
            removed_bssids=previous - current,
            persistent_bssids=current & previous,
            time_elapsed_millis=self.timestamp_millis - older.timestamp_millis,
        )


class SnapshotComparison(BaseModel):
    model_config = ConfigDict(frozen=True)

    older_snapshot: ScanSnapshot
    newer_snapshot: ScanSnapshot
    added_bssids: frozenset[str]
    removed_bssids: frozenset[str]
    persistent_bssids: frozenset[str]
    time_elapsed_millis: int = Field(ge=0)

    @property
    def total_before(self) -> int:
        return len(self.persistent_bssids) + len(self.removed_bssids)

    @property
    def churn_count(self) -> int:
        return len(self.added_bssids) + len(self.removed_bssids)

    @property
    def has_changes(self) -> bool:
        return self.churn_count > 0

    def signal_changes(self) -> list[SignalChange]:
        old = {b.bssid: b.rssi_dbm for b in self.older_snapshot.all_bssids}
        new = {b.bssid: b.rssi_dbm for b in self.newer_snapshot.all_bssids}
        changes = []
        for bssid in sorted(self.persistent_bssids):
            if old.get(bssid) is None or new.get(bssid) is None:
                continue
            changes.append(
                SignalChange(
                    bssid=bssid,
                    old_rssi_dbm=old[bssid],
                    new_rssi_dbm=new[bssid],
                    time_elapsed_millis=self.time_elapsed_millis,
                )
            )
        return changes


# ---------------------------------------------------------------------------
# Network trend (ESS-level aggregate)
# ---------------------------------------------------------------------------


class NetworkTrend(BaseModel):
    """Histories of every AP advertising one SSID over a time period."""

    model_config = ConfigDict(frozen=True)

    ssid: str = Field(min_length=1)
    start_timestamp: int = Field(gt=0)
    end_timestamp: int
    ap_histories: tuple[ApHistory, ...] = ()
    snapshots: tuple[ScanSnapshot, ...] = ()

    @model_validator(mode="after")
    def _check_invariants(self) -> NetworkTrend:
        if self.end_timestamp < self.start_timestamp:
            raise ValueError("end_timestamp must be >= start_timestamp")
        strays = [h.bssid for h in self.ap_histories if h.ssid != self.ssid]
        if strays:
            raise ValueError(f"AP histories {strays} do not belong to SSID {self.ssid}")
        return self

    @classmethod
    def create(
        cls,
        ssid: str,
        ap_histories: list[ApHistory],
        snapshots: list[ScanSnapshot] | None = None,
    ) -> NetworkTrend:
        if not ap_histories:
            raise ValueError("AP histories must not be empty")
        relevant = [s for s in snapshots or [] if any(c.ssid == ssid for c in s.clusters)]
        return cls(
            ssid=ssid,
            start_timestamp=min(h.first_seen_timestamp for h in ap_histories),
            end_timestamp=max(h.last_seen_timestamp for h in ap_histories),
            ap_histories=tuple(ap_histories),
            snapshots=tuple(sorted(relevant, key=lambda s: s.timestamp_millis)),
        )

    @property
    def unique_ap_count(self) -> int:
        return len(self.ap_histories)

    @property
    def total_observation_count(self) -> int:
        return sum(h.observation_count for h in self.ap_histories)

    @property
    def average_network_rssi_dbm(self) -> float:
        if not self.ap_histories:
            return 0.0
        return statistics.fmean(h.average_rssi_dbm for h in self.ap_histories)

    @property
    def network_stability(self) -> SignalStability:
        if not self.ap_histories:
            return SignalStability.VERY_STABLE
        return SignalStability.from_std_dev(statistics.fmean(h.rssi_standard_deviation for h in self.ap_histories))

    @property
    def recorded_roaming_events(self) -> list[RoamingEvent]:
        """Every roaming event across all histories, deduplicated and time-ordered.

        An event is usually recorded in both the source and target history.
        """
        unique = {
            (e.timestamp_millis, e.from_bssid, e.to_bssid): e for h in self.ap_histories for e in h.roaming_events
        }
        return sorted(unique.values(), key=lambda e: e.timestamp_millis)

    @property
    def roaming_events(self) -> list[RoamingEvent]:
        """Actual roams only (see ``RoamingEvent.is_actual_roam``)."""
        return [e for e in self.recorded_roaming_events if e.is_actual_roam]

    @property
    def average_roaming_quality(self) -> RoamingEventQuality | None:
        qualities = sorted((e.roaming_quality for e in self.roaming_events), key=lambda q: q.rank)
        if not qualities:
            return None
        return qualities[len(qualities) // 2]

    @property
    def seamless_roaming_percentage(self) -> float:
        events = self.roaming_events
        if not events:
            return 0.0
        return sum(1 for e in events if e.has_11r) / len(events) * 100.0

    @property
    def connection_success_rate(self) -> float:
        total = sum(len(h.connection_events) for h in self.ap_histories)
        if total == 0:
            return 0.0
        return sum(h.connection_count for h in self.ap_histories) / total

    @property
    def health_score(self) -> int:
        """0-100: signal 40, stability 30, roaming 20, connection success 10."""
        avg = self.average_network_rssi_dbm
        if avg >= -50:
            signal = 40.0
        elif avg >= -60:
            signal = 35.0
        elif avg >= -70:
            signal = 25.0
        elif avg >= -80:
            signal = 15.0
        else:
            signal = 5.0

        stability = {
            SignalStability.VERY_STABLE: 30.0,
            SignalStability.STABLE: 25.0,
            SignalStability.MODERATE: 15.0,
            SignalStability.UNSTABLE: 8.0,
            SignalStability.VERY_UNSTABLE: 2.0,
        }[self.network_stability]

        roaming = {
            RoamingEventQuality.EXCELLENT: 20.0,
            RoamingEventQuality.VERY_GOOD: 17.0,
            RoamingEventQuality.GOOD: 13.0,
            RoamingEventQuality.FAIR: 8.0,
            RoamingEventQuality.POOR: 3.0,
        }.get(self.average_roaming_quality, 10.0)  # unknown quality is neutral

        connection = self.connection_success_rate * 10.0
        return max(0, min(100, math.floor(signal + stability + roaming + connection)))

    @property
    def health(self) -> NetworkHealth:
        return NetworkHealth.from_score(self.health_score)

    def recent_network_trend(self, window_millis: int, current_time_millis: int) -> NetworkTrendDirection:
        """Compare the recent average RSSI against the all-time average."""
        recent = [
            avg
            for h in self.ap_histories
            if (avg := h.recent_average_rssi(window_millis, current_time_millis)) is not None
        ]
        if not recent:
            return NetworkTrendDirection.INSUFFICIENT_DATA
        difference = statistics.fmean(recent) - self.average_network_rssi_dbm
        if difference > 5.0:
            return NetworkTrendDirection.STRONGLY_IMPROVING
        if difference > 2.0:
            return NetworkTrendDirection.IMPROVING
        if difference > -2.0:
            return NetworkTrendDirection.STABLE
        if difference > -5.0:
            return NetworkTrendDirection.DEGRADING
        return NetworkTrendDirection.STRONGLY_DEGRADING

    def currently_visible_aps(self, current_time_millis: int, threshold_millis: int = 60_000) -> list[ApHistory]:
        return [h for h in self.ap_histories if h.is_currently_visible(current_time_millis, threshold_millis)]

    def recently_disappeared_aps(
        self,
        current_time_millis: int,
        window_millis: int = 300_000,
        threshold_millis: int = 60_000,
    ) -> list[ApHistory]:
        """APs last seen inside the window but no longer visible."""
        cutoff = current_time_millis - window_millis
        return [
            h for h in self.ap_histories if cutoff <= h.last_seen_timestamp < current_time_millis - threshold_millis
        ]

    @property
    def summary(self) -> str:
        return (
            f"{self.ssid}: {self.unique_ap_count} APs, avg {int(self.average_network_rssi_dbm)}dBm, "
            f"{self.health.value} health ({self.health_score}/100)"
        )
