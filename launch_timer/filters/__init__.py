"""
Filter implementations used by the launch timing pipeline.

A single factory hands out the speed estimator (one canonical Kalman
implementation, fused or GPS-only) and the Butterworth sections used to
denoise motion samples.

Example usage:
    estimator = get_filter('kalman', config=EstimatorConfig())
    estimator = get_filter('gps-only')
    low_pass = get_filter('lowpass', cutoff_hz=8.0, sampling_rate_hz=60.0)

    estimator.predict(dt)
    speed = estimator.update([speed_kmh, accel_magnitude])
"""

from .base import SpeedFusionBase
from .butterworth import AccelerationDenoiser, ButterworthFilter, gyroscope_low_pass
from .kalman import SpeedKalmanFilter


def get_filter(filter_type='kalman', **kwargs):
    """
    Factory function to get filter implementation by name.

    Args:
        filter_type (str): Filter type - options:
            - 'kalman': Speed/acceleration Kalman filter fusing GPS + accelerometer
            - 'gps-only': Same filter, acceleration channel ignored
            - 'lowpass': 2nd order Butterworth low-pass (3-axis)
            - 'highpass': 2nd order Butterworth high-pass (3-axis)
        **kwargs: Additional arguments passed to filter constructor

    Returns:
        Filter instance

    Raises:
        ValueError: If filter_type is not recognized
    """
    if filter_type == 'kalman':
        return SpeedKalmanFilter(**kwargs)
    elif filter_type == 'gps-only':
        return SpeedKalmanFilter(gps_only=True, **kwargs)
    elif filter_type in ('lowpass', 'highpass'):
        return ButterworthFilter(filter_type=filter_type, **kwargs)
    else:
        raise ValueError(f"Unknown filter type: {filter_type}. Use 'kalman', 'gps-only', 'lowpass' or 'highpass'")


__all__ = [
    'AccelerationDenoiser',
    'ButterworthFilter',
    'SpeedFusionBase',
    'SpeedKalmanFilter',
    'get_filter',
    'gyroscope_low_pass',
]
