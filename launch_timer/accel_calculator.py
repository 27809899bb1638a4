"""
Accelerometer Acceleration Calculator - Handles gravity-inclusive and gravity-free sources

Motion providers differ in what they deliver:

1. GRAVITY-EXCLUDED (native linear acceleration)
   The platform already removed gravity. Motion magnitude is simply |a|.

2. GRAVITY-INCLUDED (raw accelerometer fallback)
   |a| contains ~9.81 m/s² of gravity. Motion magnitude is |a| - baseline,
   where the baseline is calibrated continuously from samples that look
   stationary (|a| between 8.5 and 10.5 m/s²). Works at any device tilt
   because only magnitudes are compared.

The result feeds the acceleration channel of the speed filter and the run
summary; directional launch detection works on the Butterworth-filtered
components instead (see launch_detector.py).
"""

import logging
from collections import deque
from statistics import mean

from .config import GravityConfig

logger = logging.getLogger(__name__)


class AccelerationCalculator:
    """Calculate motion acceleration magnitude from accelerometer samples."""

    def __init__(self, includes_gravity=False, config=None):
        """
        Initialize calculator.

        Args:
            includes_gravity (bool): Whether samples contain the gravity vector
            config (GravityConfig): Calibration window and acceptance band
        """
        self.includes_gravity = includes_gravity
        self.config = config or GravityConfig()
        self.gravity_magnitude = self.config.gravity_magnitude
        self.calibration_samples = deque(maxlen=self.config.calibration_buffer)
        self.calibration_count = 0

    def observe(self, sample):
        """
        Feed a sample to the gravity baseline calibration.

        Only gravity-inclusive sources are calibrated. Once enough stationary
        looking samples are buffered, the baseline becomes their mean and the
        buffer starts over.
        """
        if not self.includes_gravity:
            return

        magnitude = sample.vector().magnitude
        if not self.config.calibration_min < magnitude < self.config.calibration_max:
            return

        self.calibration_samples.append(magnitude)
        if len(self.calibration_samples) >= self.config.calibration_min_samples:
            self.gravity_magnitude = mean(self.calibration_samples)
            self.calibration_samples.clear()
            self.calibration_count += 1
            logger.debug("Gravity baseline calibrated to %.3f m/s²", self.gravity_magnitude)

    def calculate_motion_magnitude(self, sample):
        """
        Motion acceleration magnitude in m/s², orientation independent.

        Args:
            sample: AccelSample (or any object with vector())

        Returns:
            float: Motion magnitude, clamped to >= 0
        """
        magnitude = sample.vector().magnitude
        if self.includes_gravity:
            return max(0.0, magnitude - self.gravity_magnitude)
        return magnitude

    def reset(self):
        self.gravity_magnitude = self.config.gravity_magnitude
        self.calibration_samples.clear()
        self.calibration_count = 0
