"""Shared test fixtures and factories."""

from __future__ import annotations

from signal_doctor.models.types import (
    ApCluster,
    ApHistory,
    Band,
    ClusteredBss,
    NetworkTrend,
    RoamingCapabilities,
    RoamingEvent,
    ScanSnapshot,
    SignalObservation,
    WifiStandard,
)

HOUR = 3_600_000
MINUTE = 60_000


def make_history(
    rssi_values=(-60, -60, -60),
    bssid="aa:bb:cc:dd:ee:01",
    ssid="TestNet",
    start=1_000,
    step=1_000,
    **extra,
) -> ApHistory:
    """History with one observation per ``step`` millis starting at ``start``."""
    observations = tuple(
        SignalObservation(bssid=bssid, timestamp_millis=start + i * step, rssi_dbm=rssi)
        for i, rssi in enumerate(rssi_values)
    )
    return ApHistory(
        bssid=bssid,
        ssid=ssid,
        first_seen_timestamp=observations[0].timestamp_millis,
        last_seen_timestamp=observations[-1].timestamp_millis,
        observations=observations,
        **extra,
    )


def make_bss(
    bssid="aa:bb:cc:dd:ee:01",
    rssi=-60,
    band=Band.BAND_5G,
    channel=36,
    standard=WifiStandard.WIFI_6,
    caps=None,
) -> ClusteredBss:
    frequency = {Band.BAND_2G: 2412, Band.BAND_5G: 5180, Band.BAND_6G: 5955}[band]
    return ClusteredBss(
        bssid=bssid,
        band=band,
        channel=channel,
        frequency_mhz=frequency,
        wifi_standard=standard,
        rssi_dbm=rssi,
        roaming_capabilities=caps or RoamingCapabilities(),
        last_seen_timestamp=1_000,
    )


def make_cluster(*bsses, ssid="TestNet", cluster_id="cluster-1") -> ApCluster:
    return ApCluster(id=cluster_id, ssid=ssid, bssids=tuple(bsses))


def make_snapshot(bssids=(), timestamp=1_000, rssi=-60, ssid="TestNet", snapshot_id=None) -> ScanSnapshot:
    """Snapshot with one cluster holding ``bssids``; ``rssi`` may be a dict per BSSID."""
    clusters = ()
    if bssids:
        bsses = [make_bss(bssid=b, rssi=rssi[b] if isinstance(rssi, dict) else rssi) for b in bssids]
        clusters = (make_cluster(*bsses, ssid=ssid),)
    return ScanSnapshot(id=snapshot_id or f"snap-{timestamp}", timestamp_millis=timestamp, clusters=clusters)


def make_roam(
    timestamp=10_000,
    from_bssid="aa:bb:cc:dd:ee:01",
    to_bssid="aa:bb:cc:dd:ee:02",
    duration=200,
    before=-78,
    after=-60,
    ssid="TestNet",
    **flags,
) -> RoamingEvent:
    return RoamingEvent(
        timestamp_millis=timestamp,
        from_bssid=from_bssid,
        to_bssid=to_bssid,
        ssid=ssid,
        duration_millis=duration,
        rssi_before_dbm=before,
        rssi_after_dbm=after,
        **flags,
    )


def make_network(*histories, ssid="TestNet", snapshots=None) -> NetworkTrend:
    return NetworkTrend.create(ssid, list(histories), snapshots)
