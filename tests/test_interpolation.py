import pytest

from launch_timer.interpolation import (MultiPassInterpolator, solve_linear_system,
                                        solve_quadratic)
from launch_timer.samples import SpeedPoint


@pytest.mark.parametrize('target', [20.0, 50.0, 100.0])
def test_linear_trace_round_trip(linear_trace, target):
    k = 16.0
    result = MultiPassInterpolator().find_time_for_speed(linear_trace(k=k), target)
    assert result == pytest.approx(target / k, abs=1e-2)


def test_unreached_target_returns_none(linear_trace):
    assert MultiPassInterpolator().find_time_for_speed(linear_trace(k=10.0), 200.0) is None


def test_too_few_points_returns_none():
    interpolator = MultiPassInterpolator()
    assert interpolator.find_time_for_speed([], 10.0) is None
    assert interpolator.find_time_for_speed([SpeedPoint(0.0, 20.0)], 10.0) is None


def test_two_points_use_linear_method():
    pts = [SpeedPoint(0.0, 0.0), SpeedPoint(1.0, 40.0)]
    assert MultiPassInterpolator().find_time_for_speed(pts, 30.0) == pytest.approx(0.75)


def test_spike_does_not_move_crossing(linear_trace):
    pts = linear_trace(k=16.0)
    pts[40] = SpeedPoint(pts[40].time, 140.0)
    result = MultiPassInterpolator().find_time_for_speed(pts, 100.0)
    assert result == pytest.approx(100.0 / 16.0, abs=0.05)


def test_quadratic_trace():
    pts = [SpeedPoint(i * 0.1, 2.0 * (i * 0.1) ** 2) for i in range(80)]
    interpolator = MultiPassInterpolator()
    assert interpolator.polynomial_crossing(pts, 50.0) == pytest.approx(5.0, abs=1e-6)
    assert interpolator.find_time_for_speed(pts, 50.0) == pytest.approx(5.0, abs=1e-2)


def test_linear_crossings_skip_flat_segments():
    pts = [SpeedPoint(0.0, 10.0), SpeedPoint(0.1, 10.05), SpeedPoint(0.2, 20.0)]
    interpolator = MultiPassInterpolator()
    assert interpolator.linear_crossings(pts, 10.02) == []
    assert interpolator.linear_crossings(pts, 15.0) == [pytest.approx(0.1 + 0.1 * 4.95 / 9.95)]


def test_linear_crossings_report_every_crossing():
    pts = [SpeedPoint(0.0, 0.0), SpeedPoint(1.0, 20.0), SpeedPoint(2.0, 0.0), SpeedPoint(3.0, 20.0)]
    crossings = MultiPassInterpolator().linear_crossings(pts, 10.0)
    assert crossings == [pytest.approx(0.5), pytest.approx(1.5), pytest.approx(2.5)]


def test_solve_linear_system():
    solution = solve_linear_system([[2, 1, -1], [-3, -1, 2], [-2, 1, 2]], [8, -11, -3])
    assert list(solution) == [pytest.approx(2.0), pytest.approx(3.0), pytest.approx(-1.0)]


def test_singular_system_returns_none():
    assert solve_linear_system([[1, 2], [2, 4]], [1, 2]) is None


def test_solve_quadratic():
    assert sorted(solve_quadratic(1.0, -3.0, 2.0)) == [pytest.approx(1.0), pytest.approx(2.0)]
    assert solve_quadratic(1.0, 0.0, 1.0) == []
    # Negligible curvature falls back to the linear root
    assert solve_quadratic(0.0, 2.0, -4.0) == [pytest.approx(2.0)]
    assert solve_quadratic(0.0, 0.0, 1.0) == []
