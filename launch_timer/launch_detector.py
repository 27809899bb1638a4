#!/usr/bin/env python3
"""
Launch Detection Module

Decides when a vehicle launches from (near) standstill by watching filtered
accelerometer samples together with the current speed:

- Horizontal acceleration sqrt(x² + y²) above threshold (default 2.0 m/s²)
- Vertical acceleration |z| below limit (default 3.0 m/s²), rejecting a phone
  that is being picked up or dropped
- Speed below threshold (default 3 km/h)
- All of the above sustained for a minimum duration (default 250 ms)

States:
    IDLE -> CANDIDATE -> CONFIRMED

CONFIRMED is terminal until reset(); a confirmation is reported exactly once
per armed period.

Usage:
    detector = LaunchDetector(LaunchConfig(sustained_duration_ms=300))
    if detector.process_data(sample, current_speed_kmh):
        start_timing(detector.launch_start_time)
"""

import dataclasses
import logging
from collections import deque
from enum import Enum

from .config import DenoiseConfig, LaunchConfig
from .filters.butterworth import AccelerationDenoiser

logger = logging.getLogger(__name__)


class LaunchState(Enum):
    IDLE = 'idle'
    CANDIDATE = 'candidate'
    CONFIRMED = 'confirmed'


class LaunchDetector:
    """
    Small state machine over filtered acceleration + speed.

    Timing uses sample timestamps (ms), never the wall clock, so replays and
    live runs behave identically.
    """

    def __init__(self, config=None, denoise_config=None, includes_gravity=False):
        """
        Args:
            config (LaunchConfig): Thresholds and timing
            denoise_config (DenoiseConfig): Butterworth sections used when
                config.enable_filtering is set
            includes_gravity (bool): Samples carry gravity, so the denoiser
                high-passes them before the low-pass section
        """
        self.config = config or LaunchConfig()
        self.denoise_config = denoise_config or DenoiseConfig(
            sampling_rate_hz=self.config.sampling_rate_hz)
        self.denoiser = AccelerationDenoiser(self.denoise_config, includes_gravity)

        self.state = LaunchState.IDLE
        self.launch_start_time = None
        self.confirmed_time = None
        self.last_processed_time = None

        self._init_history()

    def _init_history(self):
        history_length = max(1, int(self.config.sampling_rate_hz * self.config.history_seconds))
        self.acceleration_history = deque(maxlen=history_length)
        self.filtered_history = deque(maxlen=history_length)

    @property
    def min_interval_ms(self):
        return 1000.0 / self.config.sampling_rate_hz

    def process_data(self, sample, current_speed_kmh):
        """
        Process a new accelerometer sample.

        Args:
            sample (AccelSample): Raw acceleration (m/s²) with timestamp (ms)
            current_speed_kmh (float or None): Latest speed; None means no
                speed reading is available yet, which keeps the detector idle

        Returns:
            bool: True exactly once, on the sample that confirms the launch
        """
        # Rate limit to the nominal sampling frequency
        if (self.last_processed_time is not None and
                sample.timestamp - self.last_processed_time < self.min_interval_ms):
            return False
        self.last_processed_time = sample.timestamp

        if self.state is LaunchState.CONFIRMED:
            # Terminal until reset(): one launch per armed period
            return False

        if current_speed_kmh is not None and current_speed_kmh > self.config.speed_threshold_kmh:
            self._return_to_idle()
            return False

        self.acceleration_history.append(sample)
        if self.config.enable_filtering:
            processed = self.denoiser.filter(sample)
            self.filtered_history.append(processed)
        else:
            processed = sample.vector()

        return self._check_launch_conditions(processed, sample.timestamp, current_speed_kmh)

    def _check_launch_conditions(self, acceleration, timestamp, current_speed_kmh):
        horizontal = acceleration.horizontal
        vertical = abs(acceleration.z)

        has_horizontal = horizontal > self.config.horizontal_accel_threshold
        has_low_vertical = vertical < self.config.vertical_accel_limit
        near_stationary = (current_speed_kmh is not None and
                           current_speed_kmh < self.config.speed_threshold_kmh)

        if not (has_horizontal and has_low_vertical and near_stationary):
            if self.state is LaunchState.CANDIDATE:
                logger.debug("Launch candidate dropped (h=%.2f v=%.2f)", horizontal, vertical)
            self.state = LaunchState.IDLE
            self.launch_start_time = None
            return False

        if self.state is LaunchState.IDLE:
            self.state = LaunchState.CANDIDATE
            self.launch_start_time = timestamp
            logger.debug("Potential launch at %.0f ms (h=%.2f m/s²)", timestamp, horizontal)
            return False

        sustained = timestamp - self.launch_start_time
        if sustained >= self.config.sustained_duration_ms:
            self.state = LaunchState.CONFIRMED
            self.confirmed_time = timestamp
            logger.info("Launch confirmed after %.0f ms of sustained acceleration", sustained)
            return True

        return False

    def _return_to_idle(self):
        if self.state is not LaunchState.IDLE:
            logger.debug("Launch detector back to idle: vehicle already moving")
        self.state = LaunchState.IDLE
        self.launch_start_time = None

    def is_launched(self):
        return self.state is LaunchState.CONFIRMED

    def reset(self):
        """Back to IDLE with empty histories and fresh filter state."""
        self.state = LaunchState.IDLE
        self.launch_start_time = None
        self.confirmed_time = None
        self.last_processed_time = None
        self.acceleration_history.clear()
        self.filtered_history.clear()
        self.denoiser.reset()

    def get_stats(self):
        """Latest horizontal/vertical acceleration and candidate duration, for debugging."""
        if not self.acceleration_history:
            return {'horizontal_accel': 0.0, 'vertical_accel': 0.0,
                    'sustained_time': 0.0, 'sample_count': 0,
                    'state': self.state.value}

        if self.config.enable_filtering and self.filtered_history:
            latest = self.filtered_history[-1]
        else:
            latest = self.acceleration_history[-1].vector()

        sustained = 0.0
        if self.launch_start_time is not None and self.last_processed_time is not None:
            sustained = self.last_processed_time - self.launch_start_time

        return {
            'horizontal_accel': latest.horizontal,
            'vertical_accel': abs(latest.z),
            'sustained_time': sustained,
            'sample_count': len(self.acceleration_history),
            'state': self.state.value,
        }

    def update_config(self, **changes):
        """Apply threshold changes; history lengths follow the new sampling rate."""
        self.config = dataclasses.replace(self.config, **changes)
        if 'sampling_rate_hz' in changes or 'history_seconds' in changes:
            self._init_history()
        logger.info("Launch detector config updated: %s", changes)
