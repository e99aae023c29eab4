"""Fixed thresholds used by the analyzers.

Values that callers may tune live in the settings models instead; these are
the classification breakpoints that define what the qualitative buckets mean.
"""

from __future__ import annotations

MILLIS_PER_HOUR = 3_600_000

# ---------------------------------------------------------------------------
# Signal trend
# ---------------------------------------------------------------------------
TREND_DEAD_BAND_DB_PER_HOUR = 1.0  # |rate| at or below this is STABLE
TREND_STRONG_DB_PER_HOUR = 5.0  # |rate| beyond this is STRONGLY_*
TREND_HIGH_CONFIDENCE_OBSERVATIONS = 100
TREND_MEDIUM_CONFIDENCE_OBSERVATIONS = 30

# ---------------------------------------------------------------------------
# AP churn (additions + removals per hour)
# ---------------------------------------------------------------------------
CHURN_HIGH_VOLATILITY_PER_HOUR = 5.0
CHURN_STABLE_PER_HOUR = 1.0
CHURN_DIRECTION_RATIO = 2.0  # additions vs removals dominance for growth/decline

# ---------------------------------------------------------------------------
# Roaming trend (percentages of actual roams)
# ---------------------------------------------------------------------------
ROAMING_EXCELLENT_SEAMLESS_PCT = 80.0
ROAMING_EXCELLENT_APPROPRIATE_PCT = 80.0
ROAMING_GOOD_SEAMLESS_PCT = 50.0
ROAMING_GOOD_APPROPRIATE_PCT = 60.0
ROAMING_POOR_STICKY_PCT = 40.0

# ---------------------------------------------------------------------------
# Anomaly severities
# ---------------------------------------------------------------------------
CHURN_CRITICAL_PCT = 75.0
DROP_CRITICAL_DB = 30
DROP_HIGH_DB = 20
EXTREME_VARIANCE_STD_DEV_DB = 20.0
EXTREME_VARIANCE_MIN_OBSERVATIONS = 10
FREQUENT_DISCONNECT_MIN_COUNT = 5
FREQUENT_DISCONNECT_RATE = 0.5  # disconnections per connection
LATENCY_CRITICAL_MS = 10_000
LATENCY_HIGH_MS = 5_000
INAPPROPRIATE_ROAM_STRONG_RSSI = -60  # roaming away from this or better is suspicious
NETWORK_DEGRADATION_FRACTION = 0.5
NETWORK_DEGRADATION_MIN_APS = 3

# ---------------------------------------------------------------------------
# Roaming candidate scoring (points)
# ---------------------------------------------------------------------------
SCORE_SIGNAL_MAX = 30.0
SCORE_SIGNAL_FLOOR_DBM = -100  # 0 points at or below
SCORE_SIGNAL_CEILING_DBM = -30  # full points at or above
SCORE_IMPROVEMENT_PER_DB = 2.0
SCORE_IMPROVEMENT_CAP = 20.0
SCORE_BAND = {"6g": 15.0, "5g": 10.0, "2g": 0.0}
SCORE_GENERATION = {7: 15.0, 6: 10.0, 5: 5.0}
SCORE_FAST_ROAMING = 10.0
SCORE_FULL_SUITE = 5.0
SCORE_WEAK_PENALTY = 15.0
SCORE_WEAK_RSSI_DBM = -75
MISSING_CANDIDATE_RSSI_DBM = -100

# ---------------------------------------------------------------------------
# Prediction
# ---------------------------------------------------------------------------
PREDICTION_HIGH_CONFIDENCE_OBSERVATIONS = 100
PREDICTION_HIGH_CONFIDENCE_STD_DEV = 3.0
PREDICTION_MEDIUM_CONFIDENCE_OBSERVATIONS = 50
PREDICTION_MEDIUM_CONFIDENCE_STD_DEV = 7.0
NETWORK_HIGH_CONFIDENCE_OBSERVATIONS = 500
NETWORK_MEDIUM_CONFIDENCE_OBSERVATIONS = 100
VISIBILITY_THRESHOLD_MILLIS = 60_000
DISAPPEARANCE_WINDOW_MILLIS = MILLIS_PER_HOUR
CURRENT_SIGNAL_WINDOW_MILLIS = 60_000
GOOD_SIGNAL_DBM = -60
TIMING_SIGNIFICANT_CHANGE_DB = 10
WEAK_SIGNAL_ISSUE_DBM = -80
FREQUENT_DISCONNECT_ISSUE_COUNT = 3

# Health score change per hour of horizon, by recent network direction
HEALTH_CHANGE_PER_HOUR = {
    "strongly_improving": 5.0,
    "improving": 2.0,
    "stable": 0.0,
    "degrading": -2.0,
    "strongly_degrading": -5.0,
    "insufficient_data": 0.0,
}


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def clamp_rssi(value: float) -> int:
    """Truncate to an integer dBm value inside [-120, 0]."""
    return int(clamp(int(value), -120, 0))
