"""
Position-derived speed from consecutive GPS fixes.

Speed = haversine distance / elapsed time between the previous accepted fix
and the current one, cross-checked against the receiver's own speed:

- Fixes with accuracy worse than the threshold are discarded entirely
  (no speed, previous position untouched)
- Out-of-order fixes are discarded
- The derived speed is only computed for 0.05 s <= dt <= 2 s
- A valid receiver speed is preferred; when both disagree by more than 25 %
  at driving speeds the lower one wins
- Anything outside the plausible vehicle range becomes 0
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .config import GpsConfig
from .filters.utils import haversine_distance, ms_to_kmh

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpeedEstimate:
    speed_ms: float
    source: str                  # 'reported', 'position', 'conservative', 'none'
    timestamp: float
    dt_s: Optional[float] = None
    distance_m: Optional[float] = None
    position_speed_ms: Optional[float] = None

    @property
    def speed_kmh(self) -> float:
        return ms_to_kmh(self.speed_ms)


class PositionSpeedEstimator:
    """Turns a stream of GpsFix objects into SpeedEstimate objects."""

    def __init__(self, config=None):
        self.config = config or GpsConfig()
        self.last_fix = None
        self.rejected = {'accuracy': 0, 'out_of_order': 0, 'implausible': 0}
        self.last_rejection = None

    def max_accuracy(self, running):
        return self.config.max_accuracy_running_m if running else self.config.max_accuracy_m

    def estimate(self, fix, running=False):
        """
        Args:
            fix (GpsFix): New fix
            running (bool): Use the stricter accuracy threshold of an active run

        Returns:
            SpeedEstimate or None: None when the fix was discarded
        """
        accuracy = fix.horizontal_accuracy
        if accuracy is not None and accuracy > self.max_accuracy(running):
            self.rejected['accuracy'] += 1
            logger.debug("GPS fix rejected - poor accuracy: %.1f m (max %.1f m)",
                         accuracy, self.max_accuracy(running))
            self.last_rejection = 'accuracy'
            return None

        previous = self.last_fix
        if previous is not None and fix.timestamp <= previous.timestamp:
            self.rejected['out_of_order'] += 1
            logger.debug("GPS fix rejected - out of order (%.0f <= %.0f)",
                         fix.timestamp, previous.timestamp)
            self.last_rejection = 'out_of_order'
            return None

        self.last_rejection = None
        self.last_fix = fix

        position_speed = None
        distance = None
        dt = None
        if previous is not None:
            dt = (fix.timestamp - previous.timestamp) / 1000.0
            distance = haversine_distance(previous.latitude, previous.longitude,
                                          fix.latitude, fix.longitude)
            if self.config.min_dt_s <= dt <= self.config.max_dt_s:
                position_speed = distance / dt

        speed, source = self._reconcile(position_speed, fix.reported_speed)

        if speed < 0 or ms_to_kmh(speed) > self.config.max_plausible_speed_kmh:
            self.rejected['implausible'] += 1
            logger.debug("Implausible GPS speed %.1f m/s treated as zero", speed)
            speed, source = 0.0, 'none'

        return SpeedEstimate(speed_ms=speed, source=source, timestamp=fix.timestamp,
                             dt_s=dt, distance_m=distance, position_speed_ms=position_speed)

    def _reconcile(self, position_speed, reported_speed):
        reported_valid = reported_speed is not None and reported_speed >= 0

        if not reported_valid:
            if position_speed is None:
                return 0.0, 'none'
            return position_speed, 'position'

        if position_speed is None:
            return reported_speed, 'reported'

        mean_speed = (position_speed + reported_speed) / 2
        if mean_speed > self.config.divergence_min_speed_ms:
            divergence = abs(position_speed - reported_speed) / mean_speed
            if divergence > self.config.divergence_ratio:
                logger.debug("Speed validation failed (%.0f%% apart) - using conservative estimate",
                             divergence * 100)
                return min(position_speed, reported_speed), 'conservative'

        return reported_speed, 'reported'

    def reset(self):
        self.last_fix = None
        self.last_rejection = None
        self.rejected = {key: 0 for key in self.rejected}
