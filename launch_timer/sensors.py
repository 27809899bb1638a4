"""
Sensor source boundary.

The core never talks to platform APIs directly. Location and motion
providers push samples into a single consumer callback; the orchestrator
starts them when a run is armed and stops them when it ends.

Motion comes in two variants chosen once at startup:
- NativeMotionProvider: platform linear acceleration, gravity removed
- FallbackMotionProvider: raw accelerometer, gravity included

Both are in-process push sources: whatever adapter owns the real sensor
(or a replay) calls push() for every sample.
"""

import logging

logger = logging.getLogger(__name__)


class SensorUnavailableError(RuntimeError):
    """Raised by start() when a sensor is missing or permission was denied."""

    def __init__(self, sensor, reason='unavailable'):
        super().__init__(f"{sensor} sensor {reason}")
        self.sensor = sensor
        self.reason = reason


class _PushProvider:
    """Common start/stop/push handling. Not thread-safe, one consumer."""

    sensor = 'generic'

    def __init__(self, available=True):
        self.available = available
        self._callback = None
        self.delivered = 0

    @property
    def is_active(self):
        return self._callback is not None

    def start(self, callback):
        if not self.available:
            raise SensorUnavailableError(self.sensor)
        self._callback = callback
        logger.debug("%s provider started", self.sensor)

    def stop(self):
        if self._callback is not None:
            logger.debug("%s provider stopped", self.sensor)
        self._callback = None

    def push(self, sample):
        """Deliver one sample. Returns False when nobody is subscribed."""
        if self._callback is None:
            return False
        self.delivered += 1
        self._callback(sample)
        return True


class LocationProvider(_PushProvider):
    """GpsFix source. Options mirror the platform's watch parameters."""

    sensor = 'location'

    def __init__(self, available=True, high_accuracy=True, maximum_age_ms=50, timeout_ms=15000):
        super().__init__(available)
        self.high_accuracy = high_accuracy
        self.maximum_age_ms = maximum_age_ms
        self.timeout_ms = timeout_ms

    @classmethod
    def from_config(cls, gps_config, available=True):
        return cls(available=available,
                   high_accuracy=gps_config.high_accuracy,
                   maximum_age_ms=gps_config.maximum_age_ms,
                   timeout_ms=gps_config.timeout_ms)


class MotionProvider(_PushProvider):
    """AccelSample source."""

    sensor = 'motion'
    includes_gravity = False


class NativeMotionProvider(MotionProvider):
    includes_gravity = False


class FallbackMotionProvider(MotionProvider):
    includes_gravity = True


def select_motion_provider(native_available, available=True):
    """
    Pick the motion source variant once, at startup.

    Args:
        native_available (bool): Platform offers gravity-free linear acceleration
        available (bool): Any accelerometer at all

    Returns:
        MotionProvider
    """
    if native_available:
        return NativeMotionProvider(available=available)
    logger.info("Native motion source not available, falling back to raw accelerometer")
    return FallbackMotionProvider(available=available)
