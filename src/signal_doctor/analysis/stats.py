"""Small numeric helpers shared by the trend and prediction analyzers."""

from __future__ import annotations

import statistics
from collections.abc import Sequence

from signal_doctor.analysis.rules import MILLIS_PER_HOUR
from signal_doctor.models.types import SignalObservation


def linear_fit(observations: Sequence[SignalObservation]) -> tuple[float, float]:
    """Least-squares fit of RSSI against time since the first observation.

    Returns ``(slope_db_per_ms, intercept_dbm)``. With fewer than two points,
    or all points at the same instant, the slope is 0 and the intercept is
    the mean RSSI.
    """
    if not observations:
        return 0.0, 0.0
    origin = observations[0].timestamp_millis
    xs = [float(o.timestamp_millis - origin) for o in observations]
    ys = [float(o.rssi_dbm) for o in observations]
    if len(set(xs)) < 2:
        return 0.0, statistics.fmean(ys)
    slope, intercept = statistics.linear_regression(xs, ys)
    return slope, intercept


def rate_db_per_hour(observations: Sequence[SignalObservation]) -> float:
    slope, _ = linear_fit(observations)
    return slope * MILLIS_PER_HOUR


def std_dev(observations: Sequence[SignalObservation]) -> float:
    """Population standard deviation of RSSI, 0 for an empty sequence."""
    if not observations:
        return 0.0
    return statistics.pstdev(o.rssi_dbm for o in observations)


def z_score(confidence_interval: float) -> float:
    """Two-sided standard normal quantile, e.g. 1.96 for 0.95."""
    # inv_cdf needs p < 1; an interval of 1.0 maps to a very wide band
    p = min((1.0 + confidence_interval) / 2.0, 1.0 - 1e-9)
    return statistics.NormalDist().inv_cdf(p)
