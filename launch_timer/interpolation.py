"""
Post-run crossing time interpolation.

Given a finished speed trace and a target speed, estimate the precise time
the target was crossed:

1. Rolling outlier removal (stricter threshold than live processing)
2. Savitzky-Golay smoothing
3. Method A: linear interpolation on every bracketing pair of points
4. Method B: least-squares quadratic fit around the target speed
5. Median of all accepted roots

Each method fails independently (flat segment, singular system, no real
root in range); the median only needs one accepted root. None means the
target was not reached.
"""

import logging
import math

import numpy as np

from .outliers import OutlierDetector
from .smoothing import SavitzkyGolaySmoother

logger = logging.getLogger(__name__)

MIN_SPEED_DELTA = 0.1    # km/h, below this a segment is treated as flat
SINGULAR_PIVOT = 1e-10
BAND_LOW = 0.8
BAND_HIGH = 1.2
BAND_EXTENSION = 2


def solve_linear_system(A, B):
    """
    Gaussian elimination with partial pivoting.

    Args:
        A: n x n coefficient matrix
        B: right-hand side of length n

    Returns:
        numpy.ndarray or None: Solution vector, None if the matrix is singular
    """
    A = np.array(A, dtype=float)
    B = np.array(B, dtype=float)
    n = len(B)

    for i in range(n):
        pivot = i + int(np.argmax(np.abs(A[i:, i])))
        if abs(A[pivot, i]) < SINGULAR_PIVOT:
            return None
        if pivot != i:
            A[[i, pivot]] = A[[pivot, i]]
            B[[i, pivot]] = B[[pivot, i]]

        for k in range(i + 1, n):
            factor = A[k, i] / A[i, i]
            A[k, i:] -= factor * A[i, i:]
            B[k] -= factor * B[i]

    solution = np.zeros(n)
    for i in range(n - 1, -1, -1):
        solution[i] = (B[i] - A[i, i + 1:] @ solution[i + 1:]) / A[i, i]
    return solution


def solve_quadratic(a, b, c):
    """Real roots of a*t² + b*t + c = 0 (linear if a is negligible)."""
    if abs(a) < 1e-12 * max(abs(b), 1.0):
        if b == 0:
            return []
        return [-c / b]

    discriminant = b * b - 4 * a * c
    if discriminant < 0:
        return []

    # Numerically stable form
    q = -0.5 * (b + math.copysign(math.sqrt(discriminant), b))
    roots = [q / a]
    if q != 0:
        roots.append(c / q)
    return roots


class MultiPassInterpolator:
    """Combines outlier removal, smoothing and two interpolation methods."""

    def __init__(self, outlier_threshold=3.0, window_size=15, min_spread=15.0):
        self.outlier_detector = OutlierDetector(outlier_threshold, window_size, min_spread)
        self.smoother = SavitzkyGolaySmoother()

    def find_time_for_speed(self, points, target_speed):
        """
        Args:
            points: SpeedPoint sequence (time-ascending)
            target_speed (float): km/h

        Returns:
            float or None: Crossing time in seconds
        """
        points = list(points)
        if len(points) < 2:
            return None

        cleaned = self.outlier_detector.remove_outliers_rolling(points)
        if len(cleaned) < 2:
            return None

        smoothed = self.smoother.smooth(cleaned)

        results = self.linear_crossings(smoothed, target_speed)

        if len(smoothed) >= 4:
            root = self.polynomial_crossing(smoothed, target_speed)
            if root is not None:
                results.append(root)

        if not results:
            logger.debug("No crossing found for %.1f km/h", target_speed)
            return None

        return float(np.median(results))

    def linear_crossings(self, points, target_speed):
        results = []
        for current, nxt in zip(points, points[1:]):
            brackets = (
                (current.speed <= target_speed <= nxt.speed) or
                (current.speed >= target_speed >= nxt.speed)
            )
            if not brackets:
                continue
            if abs(nxt.speed - current.speed) < MIN_SPEED_DELTA:
                continue  # near-flat

            ratio = (target_speed - current.speed) / (nxt.speed - current.speed)
            results.append(current.time + ratio * (nxt.time - current.time))
        return results

    def polynomial_crossing(self, points, target_speed):
        """Quadratic least-squares fit around the target, solved for time."""
        subset = self._select_subset(points, target_speed)
        if len(subset) < 3:
            return None

        # Centre time on the subset start to keep the normal equations well conditioned
        t0 = subset[0].time
        t = np.array([p.time - t0 for p in subset])
        s = np.array([p.speed for p in subset])

        A = [
            [len(t), t.sum(), (t**2).sum()],
            [t.sum(), (t**2).sum(), (t**3).sum()],
            [(t**2).sum(), (t**3).sum(), (t**4).sum()],
        ]
        B = [s.sum(), (s * t).sum(), (s * t**2).sum()]

        coeffs = solve_linear_system(A, B)
        if coeffs is None:
            logger.debug("Quadratic fit singular for %.1f km/h", target_speed)
            return None

        c, b, a = coeffs
        max_t = t[-1]
        for root in sorted(solve_quadratic(a, b, c - target_speed)):
            if 0 <= root <= max_t:
                return float(root + t0)
        return None

    def _select_subset(self, points, target_speed):
        start = 0
        for i, p in enumerate(points):
            if p.speed >= target_speed * BAND_LOW:
                start = max(0, i - BAND_EXTENSION)
                break

        end = len(points) - 1
        for i in range(len(points) - 1, -1, -1):
            if points[i].speed <= target_speed * BAND_HIGH:
                end = min(len(points) - 1, i + BAND_EXTENSION)
                break

        return points[start:end + 1]
