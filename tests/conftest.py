"""Synthetic sensor streams shared by the test modules."""

import pytest

from launch_timer.config import LaunchConfig, RunConfig
from launch_timer.filters.utils import kmh_to_ms, meters_north
from launch_timer.samples import AccelSample, GpsFix, SpeedPoint

BASE_LAT = 52.370216
BASE_LON = 4.895168


def ramp_fix(t_s, slope_kmh_s, start_ms=0.0, accuracy=5.0, speed_offset_kmh=0.0):
    """Fix of a car accelerating uniformly from standstill at start_ms, heading north."""
    accel_ms2 = kmh_to_ms(slope_kmh_s)
    distance = 0.5 * accel_ms2 * t_s ** 2
    lat, lon = meters_north(BASE_LAT, BASE_LON, distance)
    speed_kmh = slope_kmh_s * t_s + speed_offset_kmh
    return GpsFix(lat, lon, start_ms + t_s * 1000.0,
                  reported_speed=kmh_to_ms(speed_kmh), horizontal_accuracy=accuracy)


def cruise_fix(t_s, speed_kmh, start_ms=0.0, accuracy=5.0):
    lat, lon = meters_north(BASE_LAT, BASE_LON, kmh_to_ms(speed_kmh) * t_s)
    return GpsFix(lat, lon, start_ms + t_s * 1000.0,
                  reported_speed=kmh_to_ms(speed_kmh), horizontal_accuracy=accuracy)


@pytest.fixture
def linear_trace():
    """speed(t) = k*t sampled at 10 Hz for 8 s."""
    def make(k=16.0, duration_s=8.0, rate_hz=10):
        n = int(duration_s * rate_hz) + 1
        return [SpeedPoint(i / rate_hz, k * i / rate_hz) for i in range(n)]
    return make


@pytest.fixture
def push_samples():
    """Constant acceleration samples every interval_ms."""
    def make(x, y=0.0, z=0.0, count=20, interval_ms=20, start_ms=0):
        return [AccelSample(x, y, z, start_ms + i * interval_ms) for i in range(count)]
    return make


@pytest.fixture
def timing_config():
    """Unfiltered launch detection so synthetic steps are seen as they are."""
    return RunConfig(launch=LaunchConfig(enable_filtering=False))


@pytest.fixture
def make_ramp_fix():
    return ramp_fix


@pytest.fixture
def make_cruise_fix():
    return cruise_fix
