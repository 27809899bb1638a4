"""
Butterworth IIR filters for motion sensor denoising.

Coefficients come from scipy.signal.butter (bilinear transform with
pre-warping); samples are filtered one at a time with scipy.signal.lfilter,
carrying the delay-line state (`zi`) of each axis between calls. Nothing is
shared between instances.

Typical chains:
    accelerometer, gravity-inclusive: high-pass 0.05 Hz -> low-pass 8 Hz
    accelerometer, linear:            low-pass 8 Hz
    gyroscope:                        low-pass 15 Hz
"""

import numpy as np
from scipy.signal import butter, lfilter

from ..config import DenoiseConfig
from ..samples import Vector3

FILTER_TYPES = ('lowpass', 'highpass')
AXES = 3


class ButterworthFilter:
    """
    Recursive Butterworth filter applied independently to x, y and z.

    Coefficients are computed once from (order, cutoff, sampling rate, type).
    Output depends only on the filter state and the coefficients; a poor
    parameter choice degrades the output but never fails.
    """

    def __init__(self, order=2, cutoff_hz=10.0, sampling_rate_hz=60.0, filter_type='lowpass'):
        """
        Args:
            order (int): Filter order
            cutoff_hz (float): -3 dB cutoff frequency
            sampling_rate_hz (float): Assumed sample rate of the input stream
            filter_type (str): 'lowpass' or 'highpass'

        Raises:
            ValueError: On an invalid order/type or a cutoff outside (0, Nyquist)
        """
        if not isinstance(order, int) or order < 1:
            raise ValueError(f"Filter order must be a positive integer, got {order}")
        if filter_type not in FILTER_TYPES:
            raise ValueError(f"Unknown filter type: {filter_type}. Use 'lowpass' or 'highpass'")

        self.order = order
        self.filter_type = filter_type
        self.cutoff_hz = cutoff_hz
        self.sampling_rate_hz = sampling_rate_hz

        self._calculate_coefficients()
        self.reset()

    def _calculate_coefficients(self):
        nyquist = self.sampling_rate_hz / 2
        if not 0 < self.cutoff_hz < nyquist:
            raise ValueError(
                f"Cutoff {self.cutoff_hz} Hz must lie between 0 and Nyquist ({nyquist} Hz)"
            )
        self.b, self.a = butter(self.order, self.cutoff_hz, btype=self.filter_type,
                                fs=self.sampling_rate_hz)

    def filter(self, sample):
        """
        Filter one 3-axis sample.

        Args:
            sample: Vector3 or any object with x, y, z attributes

        Returns:
            Vector3: Filtered sample
        """
        values = np.array([[sample.x], [sample.y], [sample.z]], dtype=float)
        out, self._zi = lfilter(self.b, self.a, values, axis=-1, zi=self._zi)
        return Vector3(float(out[0, 0]), float(out[1, 0]), float(out[2, 0]))

    def reset(self):
        """Zero the delay-line state of every axis."""
        self._zi = np.zeros((AXES, max(len(self.a), len(self.b)) - 1))

    def update_parameters(self, cutoff_hz, sampling_rate_hz=None):
        """Recompute coefficients for a new cutoff (and optionally rate), then reset."""
        self.cutoff_hz = cutoff_hz
        if sampling_rate_hz:
            self.sampling_rate_hz = sampling_rate_hz
        self._calculate_coefficients()
        self.reset()


class AccelerationDenoiser:
    """
    Denoising chain for accelerometer samples.

    Gravity-inclusive sources go through the high-pass section first so the
    low-pass never has to settle on a 9.8 m/s² offset. Linear acceleration
    sources carry no offset and only get the low-pass section, which keeps a
    sustained push at full strength.
    """

    def __init__(self, config=None, includes_gravity=False):
        config = config or DenoiseConfig()
        self.includes_gravity = includes_gravity
        self.high_pass = None
        if includes_gravity:
            self.high_pass = ButterworthFilter(config.order, config.highpass_cutoff_hz,
                                               config.sampling_rate_hz, 'highpass')
        self.low_pass = ButterworthFilter(config.order, config.lowpass_cutoff_hz,
                                          config.sampling_rate_hz, 'lowpass')

    def filter(self, sample):
        if self.high_pass is not None:
            sample = self.high_pass.filter(sample)
        return self.low_pass.filter(sample)

    def reset(self):
        if self.high_pass is not None:
            self.high_pass.reset()
        self.low_pass.reset()


def gyroscope_low_pass(config=None):
    """Low-pass section for gyroscope rates (15 Hz by default)."""
    config = config or DenoiseConfig()
    return ButterworthFilter(config.order, config.gyro_lowpass_cutoff_hz,
                             config.sampling_rate_hz, 'lowpass')
