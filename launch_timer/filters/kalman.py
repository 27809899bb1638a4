"""
Two-state Kalman filter fusing GPS speed with accelerometer magnitude.

State vector: [speed (km/h), acceleration (m/s²)], diagonal 2x2 covariance.

The model is deliberately conservative: predict() only grows the covariance
and never integrates acceleration into speed, so accelerometer noise cannot
accumulate into a drifting speed. Both channels are updated independently
(identity measurement matrix, diagonal noise), which makes the per-channel
gain K_i = P_ii / (P_ii + R_ii) exact and allows single-channel updates when
only one sensor produced a sample.

Uses filterpy's functional predict/update (Joseph form covariance update).
"""

import logging

import numpy as np
from filterpy.kalman import predict as kf_predict
from filterpy.kalman import update as kf_update

from ..config import EstimatorConfig
from .base import SpeedFusionBase

logger = logging.getLogger(__name__)

SPEED = 0
ACCEL = 1


class SpeedKalmanFilter(SpeedFusionBase):
    """
    Speed/acceleration estimator fed at irregular intervals by two streams.

    Example:
        kf = SpeedKalmanFilter()
        kf.predict(0.1)
        speed = kf.update([42.0, 1.3])
    """

    def __init__(self, config=None, gps_only=False):
        """
        Args:
            config (EstimatorConfig): Q/R tuning, fixed for the lifetime of the instance
            gps_only (bool): Ignore the acceleration channel in update()
        """
        self.config = config or EstimatorConfig()
        self.gps_only = gps_only

        # Process noise rate, scaled by dt on every predict
        self.Q_rate = np.diag([self.config.q_speed, self.config.q_accel])
        self.R = np.diag([self.config.r_speed, self.config.r_accel])
        self.F = np.eye(2)
        self.H = np.eye(2)

        self.x = np.zeros(2)
        self.P = np.eye(2) * self.config.initial_covariance
        self.update_count = 0

    def predict(self, dt):
        """Grow covariance by Q*dt. The speed state is not extrapolated."""
        if dt <= 0:
            return
        self.x, self.P = kf_predict(self.x, self.P, F=self.F, Q=self.Q_rate * dt)

    def update(self, measurement):
        """
        Update both channels.

        Args:
            measurement: [speed_kmh, accel_magnitude]

        Returns:
            float: Filtered speed (km/h)
        """
        speed, accel = measurement
        if self.gps_only:
            return self.update_speed(speed)

        z = np.array([speed, accel], dtype=float)
        self.x, self.P = kf_update(self.x, self.P, z, self.R, self.H)
        self.update_count += 1
        return float(self.x[SPEED])

    def update_speed(self, speed_kmh):
        return self._update_channel(SPEED, speed_kmh)

    def update_acceleration(self, accel_magnitude):
        if self.gps_only:
            return float(self.x[SPEED])
        return self._update_channel(ACCEL, accel_magnitude)

    def _update_channel(self, index, value):
        H = self.H[index:index + 1]
        R = self.R[index:index + 1, index:index + 1]
        self.x, self.P = kf_update(self.x, self.P, float(value), R, H)
        self.update_count += 1
        return float(self.x[SPEED])

    def gain(self):
        """Kalman gain each channel would get on the next update."""
        p = np.diag(self.P)
        return p / (p + np.diag(self.R))

    @property
    def speed(self):
        return float(self.x[SPEED])

    @property
    def acceleration(self):
        return float(self.x[ACCEL])

    def get_state(self):
        return {
            'speed': self.speed,
            'acceleration': self.acceleration,
            'covariance': self.P.tolist(),
            'updates': self.update_count,
            'mode': 'gps-only' if self.gps_only else 'fused',
        }

    def reset(self):
        self.x = np.zeros(2)
        self.P = np.eye(2) * self.config.initial_covariance
        self.update_count = 0
        logger.debug("Speed filter reset")
