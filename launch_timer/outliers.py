"""
Outlier detection for speed samples using the Modified Z-Score.

A speed trace has a trend (the vehicle accelerates), so raw speeds are not
scored against their own median; at the point where a standstill turns into a
ramp the zeros still in the window would make every genuine ramp sample look
anomalous. Instead each point is scored by the rate of change leading into it:

    rate_i = (speed_i - speed_i-1) / (time_i - time_i-1)      km/h per second
    z_i    = 0.6745 * (rate_i - median(rate)) / max(MAD(rate), min_spread)

`min_spread` stops a perfectly steady window (MAD near zero) from flagging
every change in acceleration. A point is flagged when its incoming rate is
extreme and the rate out of it swings back the other way (a spike against
both neighbours). The last point of a window has no outgoing rate and is
judged on its incoming rate alone; the first point is never flagged.

Outlier-ness is local, so callers pass a short trailing window (10-15
points) rather than a whole run; the rolling variant applies the same rule
point by point over a long trace.
"""

import numpy as np

MAD_SCALE = 0.6745


class OutlierDetector:
    """Flags anomalous speed points against the local speed trend of a window."""

    def __init__(self, threshold=3.5, window_size=15, min_spread=15.0):
        """
        Args:
            threshold (float): |z| above which a rate counts as extreme
            window_size (int): Trailing window length in points
            min_spread (float): Lower bound for the rate MAD (km/h per second)
        """
        if threshold <= 0:
            raise ValueError(f"Outlier threshold must be positive, got {threshold}")
        if window_size < 3:
            raise ValueError(f"Outlier window must hold at least 3 points, got {window_size}")
        if min_spread <= 0:
            raise ValueError(f"Minimum rate spread must be positive, got {min_spread}")
        self.threshold = threshold
        self.window_size = window_size
        self.min_spread = min_spread

    def _rate_scores(self, points):
        speeds = np.array([p.speed for p in points], dtype=float)
        times = np.array([p.time for p in points], dtype=float)
        dt = np.diff(times)
        rates = np.divide(np.diff(speeds), dt, out=np.zeros(len(dt)), where=dt > 0)

        median = np.median(rates)
        mad = np.median(np.abs(rates - median))
        return MAD_SCALE * (rates - median) / max(mad, self.min_spread)

    def detect_outliers(self, points):
        """
        Flag outliers in `points` (SpeedPoint sequence).

        Returns:
            list[bool]: One flag per point. A window of equal speeds flags nothing.
        """
        points = list(points)
        flags = [False] * len(points)
        if len(points) < 3:
            return flags

        scores = self._rate_scores(points)
        extreme = np.abs(scores) > self.threshold
        last = len(points) - 1
        for i in range(1, len(points)):
            incoming = i - 1
            if not extreme[incoming]:
                continue
            if i == last:
                flags[i] = True
            else:
                flags[i] = bool(extreme[i] and np.sign(scores[i]) != np.sign(scores[incoming]))
        return flags

    def remove_outliers(self, points):
        flags = self.detect_outliers(points)
        return [p for p, flag in zip(points, flags) if not flag]

    def is_latest_outlier(self, points):
        """Whether the last point is an outlier within the trailing window."""
        window = list(points)[-self.window_size:]
        if len(window) < 3:
            return False
        return self.detect_outliers(window)[-1]

    def detect_outliers_rolling(self, points):
        """Flag each point against its own trailing window plus the point after it."""
        points = list(points)
        flags = []
        for i in range(len(points)):
            start = max(0, i + 1 - self.window_size)
            window = points[start:i + 2]
            flags.append(self.detect_outliers(window)[i - start])
        return flags

    def remove_outliers_rolling(self, points):
        points = list(points)
        flags = self.detect_outliers_rolling(points)
        return [p for p, flag in zip(points, flags) if not flag]
