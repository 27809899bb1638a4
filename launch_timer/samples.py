"""
Sample and result types shared by the launch timing pipeline.

All sensor samples carry a monotonic timestamp in milliseconds. Speed points
use seconds since run start and km/h, the canonical output units.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional


@dataclass(frozen=True)
class Vector3:
    """Three-axis reading (accelerometer or gyroscope)."""
    x: float
    y: float
    z: float

    @property
    def magnitude(self) -> float:
        return math.sqrt(self.x**2 + self.y**2 + self.z**2)

    @property
    def horizontal(self) -> float:
        return math.sqrt(self.x**2 + self.y**2)


@dataclass(frozen=True)
class AccelSample:
    """Single accelerometer reading in the device frame (m/s²)"""
    x: float
    y: float
    z: float
    timestamp: float

    def vector(self) -> Vector3:
        return Vector3(self.x, self.y, self.z)

    def __str__(self):
        return f"x={self.x:.3f} y={self.y:.3f} z={self.z:.3f} t={self.timestamp}"


@dataclass(frozen=True)
class GpsFix:
    """
    Position fix as delivered by the location provider.

    reported_speed is the receiver's own speed estimate (m/s) and
    horizontal_accuracy the reported accuracy radius (meters). Either may be
    missing depending on platform.
    """
    latitude: float
    longitude: float
    timestamp: float
    reported_speed: Optional[float] = None
    horizontal_accuracy: Optional[float] = None


@dataclass(frozen=True)
class SpeedPoint:
    time: float   # seconds since run start
    speed: float  # km/h


class RunTrace:
    """
    Ordered (time, speed) points of one run.

    Append-only while the run is active and frozen once it stops. Points
    whose time does not strictly increase are refused.
    """

    def __init__(self, points: Optional[Iterable[SpeedPoint]] = None):
        self._points: List[SpeedPoint] = []
        self.frozen = False
        for point in points or []:
            self.append(point)

    def append(self, point: SpeedPoint) -> bool:
        if self.frozen:
            return False
        if self._points and point.time <= self._points[-1].time:
            return False
        self._points.append(point)
        return True

    def freeze(self):
        self.frozen = True

    @property
    def points(self) -> List[SpeedPoint]:
        return list(self._points)

    @property
    def times(self) -> List[float]:
        return [p.time for p in self._points]

    @property
    def speeds(self) -> List[float]:
        return [p.speed for p in self._points]

    @property
    def max_speed(self) -> float:
        return max((p.speed for p in self._points), default=0.0)

    @property
    def last(self) -> Optional[SpeedPoint]:
        return self._points[-1] if self._points else None

    def reached(self, speed: float) -> bool:
        return any(p.speed >= speed for p in self._points)

    def until(self, time: float, extra_points: int = 0) -> List[SpeedPoint]:
        """Points up to `time`, plus `extra_points` following points."""
        end = 0
        while end < len(self._points) and self._points[end].time <= time:
            end += 1
        return self._points[:end + extra_points]

    def __len__(self):
        return len(self._points)

    def __iter__(self):
        return iter(list(self._points))


def speed_label(speed_kmh: float) -> str:
    return f"0-{speed_kmh:g}"


QUARTER_MILE = 'quarterMile'
HALF_MILE = 'halfMile'


class TimingResults:
    """
    Milestone label -> crossing time in seconds, or None if not reached.

    Entries are write-once for the lifetime of a run. Speed milestones are
    first marked as crossed during the run (coarse sample time) and get their
    final value when the run is finalized.
    """

    def __init__(self, labels: Iterable[str]):
        self._times: Dict[str, Optional[float]] = {label: None for label in labels}
        self._crossed: Dict[str, float] = {}

    def record(self, label: str, time: float) -> bool:
        if self._times.get(label) is not None:
            return False
        self._times[label] = time
        return True

    def mark_crossed(self, label: str, time: float) -> bool:
        if label in self._crossed or self._times.get(label) is not None:
            return False
        self._crossed[label] = time
        return True

    def crossed_time(self, label: str) -> Optional[float]:
        return self._crossed.get(label)

    def is_crossed(self, label: str) -> bool:
        return label in self._crossed or self._times.get(label) is not None

    def untimed_crossings(self) -> Dict[str, float]:
        return {label: t for label, t in self._crossed.items()
                if self._times.get(label) is None}

    def get(self, label: str) -> Optional[float]:
        return self._times.get(label)

    def labels(self) -> List[str]:
        return list(self._times)

    def as_dict(self) -> Dict[str, Optional[float]]:
        return dict(self._times)

    def __getitem__(self, label: str) -> Optional[float]:
        return self._times[label]

    def __contains__(self, label: str) -> bool:
        return label in self._times
