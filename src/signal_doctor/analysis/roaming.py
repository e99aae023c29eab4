"""Roaming candidate scoring — rank the other BSSes of a cluster as roam targets."""

from __future__ import annotations

from signal_doctor.analysis import rules
from signal_doctor.models.results import RoamingCandidate
from signal_doctor.models.types import ApCluster, Band, ClusteredBss


def signal_points(rssi: int) -> float:
    span = rules.SCORE_SIGNAL_CEILING_DBM - rules.SCORE_SIGNAL_FLOOR_DBM
    fraction = (rssi - rules.SCORE_SIGNAL_FLOOR_DBM) / span
    return rules.clamp(fraction, 0.0, 1.0) * rules.SCORE_SIGNAL_MAX


def score_candidate(candidate: ClusteredBss, current_rssi: int) -> float:
    """Weighted sum of signal, improvement, band, generation and fast roaming, clamped to [0, 100]."""
    rssi = candidate.rssi_dbm if candidate.rssi_dbm is not None else rules.MISSING_CANDIDATE_RSSI_DBM
    improvement = rssi - current_rssi

    score = signal_points(rssi)
    score += rules.clamp(
        improvement * rules.SCORE_IMPROVEMENT_PER_DB, -rules.SCORE_IMPROVEMENT_CAP, rules.SCORE_IMPROVEMENT_CAP
    )
    score += rules.SCORE_BAND[candidate.band.value]
    score += rules.SCORE_GENERATION.get(candidate.wifi_standard.generation, 0.0)

    caps = candidate.roaming_capabilities
    if caps.has_fast_roaming:
        score += rules.SCORE_FAST_ROAMING
    if caps.has_full_suite:
        score += rules.SCORE_FULL_SUITE

    if rssi < rules.SCORE_WEAK_RSSI_DBM:
        score -= rules.SCORE_WEAK_PENALTY

    return rules.clamp(score, 0.0, 100.0)


def describe(candidate: ClusteredBss, improvement: int) -> str:
    if improvement > 10:
        parts = [f"Much better signal (+{improvement}dB)"]
    elif improvement > 5:
        parts = [f"Better signal (+{improvement}dB)"]
    elif improvement < -5:
        parts = [f"Weaker signal ({improvement}dB)"]
    else:
        parts = ["Similar signal"]

    if candidate.roaming_capabilities.has_fast_roaming:
        parts.append("supports fast roaming")
    if candidate.band in (Band.BAND_5G, Band.BAND_6G):
        parts.append(candidate.band.display_name)
    return ", ".join(parts)


class RoamingScorer:
    def score_roaming_candidates(
        self, current_bssid: str, cluster: ApCluster, current_rssi: int
    ) -> list[RoamingCandidate]:
        """Every other BSS in the cluster, best score first, ties by BSSID."""
        candidates = []
        for bss in cluster.bssids:
            if bss.bssid == current_bssid:
                continue
            rssi = bss.rssi_dbm if bss.rssi_dbm is not None else rules.MISSING_CANDIDATE_RSSI_DBM
            candidates.append(
                RoamingCandidate(
                    bssid=bss.bssid,
                    band=bss.band,
                    channel=bss.channel,
                    rssi=rssi,
                    rssi_improvement=rssi - current_rssi,
                    roaming_capabilities=bss.roaming_capabilities,
                    score=score_candidate(bss, current_rssi),
                    reason=describe(bss, rssi - current_rssi),
                )
            )
        return sorted(candidates, key=lambda c: (-c.score, c.bssid))

    def find_best_candidate(self, current_bssid: str, cluster: ApCluster, current_rssi: int) -> RoamingCandidate | None:
        ranked = self.score_roaming_candidates(current_bssid, cluster, current_rssi)
        return ranked[0] if ranked else None
