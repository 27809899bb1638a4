"""
Abstract base class for speed fusion filters.

All filter implementations must inherit from SpeedFusionBase and implement
the required methods.
"""

from abc import ABC, abstractmethod


class SpeedFusionBase(ABC):
    """
    Abstract base class for GPS speed + accelerometer fusion filters.

    All subclasses must implement:
    - predict(dt) -> None
    - update([speed_kmh, accel_ms2]) -> speed_kmh
    - update_speed(speed_kmh) -> speed_kmh
    - update_acceleration(accel_ms2) -> speed_kmh
    - get_state() -> dict
    - reset() -> None

    The orchestrator calls predict() with whatever dt elapsed since the last
    event of either sensor stream, so implementations must not assume a
    fixed tick.
    """

    @abstractmethod
    def predict(self, dt):
        """
        Advance the filter by dt seconds.

        Args:
            dt (float): Elapsed time in seconds (>= 0)
        """
        pass

    @abstractmethod
    def update(self, measurement):
        """
        Update filter with a combined measurement.

        Args:
            measurement (sequence): [speed in km/h, acceleration magnitude in m/s²]

        Returns:
            float: Filtered speed in km/h
        """
        pass

    @abstractmethod
    def update_speed(self, speed_kmh):
        """Update the speed channel only. Returns filtered speed (km/h)."""
        pass

    @abstractmethod
    def update_acceleration(self, accel_magnitude):
        """Update the acceleration channel only. Returns filtered speed (km/h)."""
        pass

    @abstractmethod
    def get_state(self):
        """
        Get current filter state.

        Returns:
            dict: State dictionary with at least:
                - 'speed': filtered speed (km/h)
                - 'acceleration': filtered acceleration (m/s²)
                - 'covariance': [[P00, P01], [P10, P11]]
        """
        pass

    @abstractmethod
    def reset(self):
        """Return state and covariance to their initial values."""
        pass
