"""Sticky client detection — a client holding on to a weak AP while a stronger one is in range."""

from __future__ import annotations

import logging
import statistics
from collections.abc import Sequence
from typing import Any

from signal_doctor.models.results import StickyClientMetrics, StickyEvent
from signal_doctor.models.types import ApCluster, ClusteredBss, StickySettings, merge_settings

logger = logging.getLogger(__name__)


class StickyClientDetector:
    def __init__(self, settings: StickySettings | None = None, **overrides: Any) -> None:
        self.settings = merge_settings(StickySettings, settings, overrides)

    def _better_alternatives(self, current_bssid: str, current_rssi: int, cluster: ApCluster) -> list[ClusteredBss]:
        """Other BSSes at least ``better_ap_differential`` dB stronger, or [] if the signal is acceptable."""
        if current_rssi > self.settings.sticky_rssi_threshold:
            return []
        return [
            bss
            for bss in cluster.bssids
            if bss.bssid != current_bssid
            and bss.rssi_dbm is not None
            and bss.rssi_dbm - current_rssi >= self.settings.better_ap_differential
        ]

    def detect_current_sticky(
        self, ssid: str, current_bssid: str, current_rssi: int, cluster: ApCluster
    ) -> StickyClientMetrics | None:
        better = self._better_alternatives(current_bssid, current_rssi, cluster)
        if not better:
            return None

        logger.debug(
            "%s stuck on %s at %d dBm with %d stronger BSSIDs available",
            ssid,
            current_bssid,
            current_rssi,
            len(better),
        )
        return StickyClientMetrics(
            ssid=ssid,
            total_sticky_duration_millis=0,
            sticky_events_count=1,
            avg_sticky_rssi_dbm=float(current_rssi),
            avg_better_ap_rssi_dbm=statistics.fmean(b.rssi_dbm for b in better),
            worst_sticky_rssi_dbm=current_rssi,
            currently_sticky=True,
        )

    def analyze_sticky_pattern(self, ssid: str, recent_sticky_events: Sequence[StickyEvent]) -> StickyClientMetrics:
        """Aggregate past episodes; the last one decides whether the client is still sticky."""
        if not recent_sticky_events:
            return StickyClientMetrics(
                ssid=ssid,
                total_sticky_duration_millis=0,
                sticky_events_count=0,
                avg_sticky_rssi_dbm=0.0,
                avg_better_ap_rssi_dbm=0.0,
                worst_sticky_rssi_dbm=0,
                currently_sticky=False,
            )

        return StickyClientMetrics(
            ssid=ssid,
            total_sticky_duration_millis=sum(e.duration_millis for e in recent_sticky_events),
            sticky_events_count=len(recent_sticky_events),
            avg_sticky_rssi_dbm=statistics.fmean(e.sticky_rssi for e in recent_sticky_events),
            avg_better_ap_rssi_dbm=statistics.fmean(e.better_ap_rssi for e in recent_sticky_events),
            worst_sticky_rssi_dbm=min(e.sticky_rssi for e in recent_sticky_events),
            currently_sticky=recent_sticky_events[-1].is_ongoing,
        )

    def should_roam(self, current_rssi: int, current_bssid: str, cluster: ApCluster) -> bool:
        return bool(self._better_alternatives(current_bssid, current_rssi, cluster))
