import gzip

import orjson
import pytest

from launch_timer.config import (HALF_MILE_M, QUARTER_MILE_M, EstimatorConfig, RunConfig,
                                 load_config)


def test_defaults():
    config = RunConfig()
    assert config.fusion_mode == 'fused'
    assert not config.gps_only
    assert config.quarter_mile_m == pytest.approx(402.336)
    assert config.half_mile_m == pytest.approx(804.672)
    assert config.speed_milestones_kmh[0] == 20.0
    assert 100.0 in config.speed_milestones_kmh
    assert config.outliers.post_run_threshold < config.outliers.live_threshold


def test_milestones_are_sorted_floats():
    config = RunConfig(speed_milestones_kmh=(100, 60, 80))
    assert config.speed_milestones_kmh == (60.0, 80.0, 100.0)


def test_with_overrides_returns_copy():
    base = RunConfig()
    gps_only = base.with_overrides(fusion_mode='gps-only')
    assert gps_only.gps_only
    assert not base.gps_only
    assert gps_only.estimator == base.estimator


@pytest.mark.parametrize('kwargs', [
    {'fusion_mode': 'dead-reckoning'},
    {'quarter_mile_m': HALF_MILE_M, 'half_mile_m': QUARTER_MILE_M},
])
def test_invalid_config_raises(kwargs):
    with pytest.raises(ValueError):
        RunConfig(**kwargs)


def test_from_dict_builds_sections():
    config = RunConfig.from_dict({
        'fusion_mode': 'gps-only',
        'speed_milestones_kmh': [50, 100],
        'estimator': {'q_speed': 1.0},
        'launch': {'sustained_duration_ms': 300},
    })
    assert config.gps_only
    assert config.speed_milestones_kmh == (50.0, 100.0)
    assert config.estimator == EstimatorConfig(q_speed=1.0)
    assert config.launch.sustained_duration_ms == 300


@pytest.mark.parametrize('data', [
    {'unknown': 1},
    {'estimator': {'q_velocity': 1.0}},
    {'estimator': 3},
])
def test_from_dict_rejects_bad_input(data):
    with pytest.raises(ValueError):
        RunConfig.from_dict(data)


def test_round_trip_through_dict():
    config = RunConfig(fusion_mode='gps-only', stop_at_half_mile=False)
    assert RunConfig.from_dict(config.to_dict()) == config


@pytest.mark.parametrize('suffix', ['.json', '.json.gz'])
def test_load_config(tmp_path, suffix):
    path = tmp_path / f"tuning{suffix}"
    payload = orjson.dumps({'gps': {'max_accuracy_m': 15.0}})
    if suffix.endswith('.gz'):
        with gzip.open(path, 'wb') as fh:
            fh.write(payload)
    else:
        path.write_bytes(payload)

    assert load_config(path).gps.max_accuracy_m == 15.0
