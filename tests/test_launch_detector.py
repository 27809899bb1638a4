import pytest

from launch_timer.config import LaunchConfig
from launch_timer.launch_detector import LaunchDetector, LaunchState
from launch_timer.samples import AccelSample


@pytest.fixture
def detector():
    return LaunchDetector(LaunchConfig(enable_filtering=False, sampling_rate_hz=60.0))


def feed(detector, samples, speed=0.0):
    return [detector.process_data(s, speed) for s in samples]


def test_confirms_after_sustained_duration(detector, push_samples):
    results = feed(detector, push_samples(3.0, count=20))

    # 20 ms grid: candidate at 0 ms, first sample >= 250 ms later is 260 ms
    assert results.index(True) == 13
    assert results.count(True) == 1
    assert detector.launch_start_time == 0
    assert detector.confirmed_time == 260
    assert detector.is_launched()


def test_sustained_duration_is_configurable(push_samples):
    detector = LaunchDetector(LaunchConfig(enable_filtering=False, sustained_duration_ms=100))
    results = feed(detector, push_samples(3.0, count=10))
    assert results.index(True) == 5


def test_never_confirms_above_speed_threshold(detector, push_samples):
    assert not any(feed(detector, push_samples(3.0, count=50), speed=10.0))
    assert detector.state is LaunchState.IDLE


def test_never_confirms_without_speed_context(detector, push_samples):
    assert not any(feed(detector, push_samples(3.0, count=50), speed=None))
    assert detector.state is LaunchState.IDLE


def test_vertical_motion_is_rejected(detector, push_samples):
    # Phone picked up: strong vertical component
    assert not any(feed(detector, push_samples(3.0, z=5.0, count=50)))


def test_weak_acceleration_is_ignored(detector, push_samples):
    assert not any(feed(detector, push_samples(1.0, y=1.0, count=50)))


def test_diagonal_horizontal_acceleration_counts(detector, push_samples):
    # sqrt(1.5² + 1.5²) > 2.0
    assert any(feed(detector, push_samples(1.5, y=1.5, count=20)))


def test_broken_candidate_restarts(detector, push_samples):
    feed(detector, push_samples(3.0, count=5))
    assert detector.state is LaunchState.CANDIDATE

    feed(detector, [AccelSample(0.5, 0.0, 0.0, 100)])
    assert detector.state is LaunchState.IDLE
    assert detector.launch_start_time is None

    results = feed(detector, push_samples(3.0, count=20, start_ms=120))
    assert detector.launch_start_time == 120
    assert results.index(True) == 13


def test_speed_increase_returns_to_idle(detector, push_samples):
    feed(detector, push_samples(3.0, count=5))
    assert detector.process_data(AccelSample(3.0, 0.0, 0.0, 100), 8.0) is False
    assert detector.state is LaunchState.IDLE


def test_rate_limited_by_sample_time(detector, push_samples):
    # 200 Hz input against a 60 Hz limit: only every 4th sample is used
    results = feed(detector, push_samples(3.0, count=80, interval_ms=5))
    assert results.count(True) == 1
    assert detector.confirmed_time == 260
    assert len(detector.acceleration_history) == 14


def test_confirmed_is_sticky_until_reset(detector, push_samples):
    feed(detector, push_samples(3.0, count=20))
    later = push_samples(3.0, count=20, start_ms=1000)
    assert not any(feed(detector, later, speed=50.0))
    assert detector.is_launched()

    detector.reset()
    assert detector.state is LaunchState.IDLE
    assert detector.confirmed_time is None
    assert len(detector.acceleration_history) == 0
    assert any(feed(detector, push_samples(3.0, count=20, start_ms=2000)))


def test_history_is_bounded(push_samples):
    detector = LaunchDetector(LaunchConfig(enable_filtering=False, sampling_rate_hz=50.0))
    feed(detector, push_samples(0.1, count=300), speed=0.0)
    # 2 s at 50 Hz
    assert len(detector.acceleration_history) == 100


def test_stats(detector, push_samples):
    empty = detector.get_stats()
    assert empty['sample_count'] == 0
    assert empty['state'] == 'idle'

    feed(detector, push_samples(3.0, y=4.0, z=1.0, count=6))
    stats = detector.get_stats()
    assert stats['horizontal_accel'] == pytest.approx(5.0)
    assert stats['vertical_accel'] == pytest.approx(1.0)
    assert stats['sustained_time'] == 100
    assert stats['sample_count'] == 6
    assert stats['state'] == 'candidate'


def test_update_config(detector, push_samples):
    detector.update_config(horizontal_accel_threshold=5.0)
    assert not any(feed(detector, push_samples(3.0, count=30)))

    detector.update_config(sampling_rate_hz=10.0)
    assert detector.acceleration_history.maxlen == 20
    assert detector.min_interval_ms == pytest.approx(100.0)


def test_filtering_removes_gravity_offset(push_samples):
    detector = LaunchDetector(LaunchConfig(enable_filtering=True), includes_gravity=True)
    # Phone lying flat: gravity on z only, no motion
    results = feed(detector, push_samples(0.0, z=9.81, count=3000))
    assert not any(results)
    assert len(detector.filtered_history) == 120
    assert abs(detector.filtered_history[-1].z) < 0.05


@pytest.mark.parametrize('push', [3.0, 4.0])
def test_default_detector_confirms_typical_launch(push_samples, push):
    detector = LaunchDetector()
    results = feed(detector, push_samples(push, count=30))

    assert results.count(True) == 1
    # The low-pass section needs a couple of samples to rise past the threshold
    assert detector.launch_start_time <= 40
    sustained = detector.confirmed_time - detector.launch_start_time
    assert 250 <= sustained < 250 + 20


def test_gravity_inclusive_detector_confirms_after_settling(push_samples):
    detector = LaunchDetector(includes_gravity=True)
    assert not any(feed(detector, push_samples(0.0, z=9.81, count=3000)))

    results = feed(detector, push_samples(3.0, z=9.81, count=30, start_ms=60000))
    assert results.count(True) == 1
    assert detector.confirmed_time - detector.launch_start_time < 250 + 20
