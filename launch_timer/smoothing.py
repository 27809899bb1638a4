"""
Savitzky-Golay smoothing for speed traces.

Fits a quadratic over 5-point windows (scipy.signal.savgol_filter). Interior
points use the centred fit; with mode='interp' the first and last two points
are evaluated from the fit of the first/last full window, so the output keeps
the input length. Times are passed through untouched.
"""

from scipy.signal import savgol_filter

from .samples import SpeedPoint

WINDOW = 5
POLYORDER = 2


class SavitzkyGolaySmoother:

    def smooth(self, points):
        """
        Args:
            points: Sequence of SpeedPoint

        Returns:
            list[SpeedPoint]: Smoothed points (input returned unchanged if < 5 points)
        """
        points = list(points)
        if len(points) < WINDOW:
            return points

        smoothed = savgol_filter([p.speed for p in points], WINDOW, POLYORDER, mode='interp')
        return [SpeedPoint(p.time, float(s)) for p, s in zip(points, smoothed)]
