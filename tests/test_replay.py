import gzip

import orjson
import pytest

from launch_timer.config import RunConfig
from launch_timer.replay import build_events, load_session, main, replay_session


def session_dict(fixes, accel=()):
    return {
        'gps_samples': [
            {'latitude': f.latitude, 'longitude': f.longitude, 'timestamp': f.timestamp,
             'speed': f.reported_speed, 'accuracy': f.horizontal_accuracy}
            for f in fixes
        ],
        'accel_samples': [
            {'x': s.x, 'y': s.y, 'z': s.z, 'timestamp': s.timestamp} for s in accel
        ],
    }


@pytest.fixture
def ramp_session(tmp_path, make_ramp_fix):
    fixes = [make_ramp_fix(i * 0.1, 20.0) for i in range(70)]
    path = tmp_path / 'session.json.gz'
    with gzip.open(path, 'wb') as fh:
        fh.write(orjson.dumps(session_dict(fixes)))
    return path


def test_build_events_merges_streams_in_time_order(make_ramp_fix, push_samples):
    fixes = [make_ramp_fix(i * 0.1, 20.0) for i in range(3)]
    data = session_dict(fixes, push_samples(0.5, count=10, interval_ms=25))
    data['gps_samples'].append({'latitude': 1.0})   # incomplete, skipped

    events = build_events(data)
    assert len(events) == 13
    assert [e.timestamp for e in events] == sorted(e.timestamp for e in events)
    assert {e.kind for e in events} == {'gps', 'accel'}


def test_empty_session_raises():
    with pytest.raises(RuntimeError):
        build_events({'gps_samples': [], 'accel_samples': []})


def test_load_session_reads_gzip(ramp_session):
    data = load_session(ramp_session)
    assert len(data['gps_samples']) == 70


def test_replay_session_times_the_run(ramp_session):
    events = build_events(load_session(ramp_session))
    orchestrator = replay_session(events, RunConfig(fusion_mode='gps-only'))
    summary = orchestrator.last_summary

    # Fallback start at the 6 km/h fix (0.3 s), 100 km/h at 5.0 s
    assert summary.timings['0-100'] == pytest.approx(4.7, abs=0.2)
    assert summary.max_speed_kmh > 130.0


def test_main_prints_results(ramp_session, capsys):
    assert main([str(ramp_session), '--gps-only']) == 0
    out = capsys.readouterr().out
    assert 'gps-only' in out
    assert '0-100' in out
    assert 'quarterMile' in out


def test_main_writes_summary(ramp_session, tmp_path):
    out_dir = tmp_path / 'runs'
    assert main([str(ramp_session), '--output', str(out_dir)]) == 0
    written = list(out_dir.glob('run_*.json.gz'))
    assert len(written) == 1


def test_main_uses_config_file(ramp_session, tmp_path, capsys):
    config_path = tmp_path / 'tuning.json'
    config_path.write_bytes(orjson.dumps({'speed_milestones_kmh': [50]}))
    assert main([str(ramp_session), '--config', str(config_path)]) == 0
    out = capsys.readouterr().out
    assert '0-50' in out
    assert '0-100' not in out


def test_main_without_run(tmp_path, make_cruise_fix, capsys):
    path = tmp_path / 'parked.json'
    path.write_bytes(orjson.dumps(session_dict([make_cruise_fix(i * 0.1, 0.0) for i in range(30)])))
    assert main([str(path)]) == 1
    assert 'No run detected' in capsys.readouterr().out
