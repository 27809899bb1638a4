"""
Tunable parameters for the launch timing pipeline.

Every threshold lives here instead of inside the components, so different
tuning revisions are just different config objects. Configs are plain
dataclasses; `with_overrides()` returns a modified copy and `from_dict()`
builds a RunConfig from nested dictionaries (e.g. a JSON file).

    config = RunConfig().with_overrides(fusion_mode='gps-only')
    config = load_config('tuning.json')
"""

from __future__ import annotations

import dataclasses
import gzip
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Tuple

import orjson

FUSION_MODES = ('fused', 'gps-only')

QUARTER_MILE_M = 402.336
HALF_MILE_M = 804.672


class _Overridable:

    def with_overrides(self, **changes):
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class DenoiseConfig(_Overridable):
    """Butterworth sections applied to raw motion samples."""
    order: int = 2
    highpass_cutoff_hz: float = 0.05  # gravity / DC removal, gravity-inclusive sources only
    lowpass_cutoff_hz: float = 8.0    # accelerometer noise
    gyro_lowpass_cutoff_hz: float = 15.0
    sampling_rate_hz: float = 60.0


@dataclass(frozen=True)
class EstimatorConfig(_Overridable):
    """
    Process (Q) and measurement (R) noise of the speed/acceleration filter.

    Q is a rate: it is scaled by dt on every predict. A higher r_speed makes
    the filter trust raw GPS speed less and damp sudden jumps, at the price
    of lag on hard launches.
    """
    q_speed: float = 10.0     # (km/h)² per second
    q_accel: float = 0.5      # (m/s²)² per second
    r_speed: float = 0.5      # (km/h)²
    r_accel: float = 0.2      # (m/s²)²
    initial_covariance: float = 1.0

    @classmethod
    def heavy_damping(cls):
        """Very smooth output, lags noticeably behind hard launches."""
        return cls(q_speed=0.001, q_accel=0.005, r_speed=0.5, r_accel=0.2)


@dataclass(frozen=True)
class LaunchConfig(_Overridable):
    horizontal_accel_threshold: float = 2.0   # m/s²
    vertical_accel_limit: float = 3.0         # m/s²
    speed_threshold_kmh: float = 3.0
    sustained_duration_ms: float = 250.0
    sampling_rate_hz: float = 60.0
    enable_filtering: bool = True
    history_seconds: float = 2.0


@dataclass(frozen=True)
class GpsConfig(_Overridable):
    max_accuracy_m: float = 20.0           # while armed / idle
    max_accuracy_running_m: float = 10.0   # during measurement
    min_dt_s: float = 0.05
    max_dt_s: float = 2.0
    divergence_ratio: float = 0.25
    divergence_min_speed_ms: float = 2.78  # ~10 km/h
    max_plausible_speed_kmh: float = 400.0
    # Provider options
    high_accuracy: bool = True
    maximum_age_ms: int = 50
    timeout_ms: int = 15000


@dataclass(frozen=True)
class OutlierConfig(_Overridable):
    live_threshold: float = 3.5
    post_run_threshold: float = 3.0
    window_size: int = 15
    smoothing_window: int = 7
    # Floor for the spread of speed change rates, km/h per second
    min_rate_spread: float = 15.0


@dataclass(frozen=True)
class GravityConfig(_Overridable):
    """Baseline calibration for gravity-inclusive motion sources."""
    gravity_magnitude: float = 9.81
    calibration_min: float = 8.5
    calibration_max: float = 10.5
    calibration_buffer: int = 100
    calibration_min_samples: int = 50


@dataclass(frozen=True)
class RunConfig(_Overridable):
    fusion_mode: str = 'fused'
    speed_milestones_kmh: Tuple[float, ...] = (20, 30, 40, 60, 80, 100, 120, 130, 200, 250, 300)
    quarter_mile_m: float = QUARTER_MILE_M
    half_mile_m: float = HALF_MILE_M
    stop_at_half_mile: bool = True
    # Fallback start while armed: a live speed above this starts the run
    motion_start_speed_kmh: float = 5.0
    enable_speed_fallback: bool = True
    # Launch confirmation needs at least one accepted GPS speed reading
    require_speed_context: bool = True
    denoise: DenoiseConfig = field(default_factory=DenoiseConfig)
    estimator: EstimatorConfig = field(default_factory=EstimatorConfig)
    launch: LaunchConfig = field(default_factory=LaunchConfig)
    gps: GpsConfig = field(default_factory=GpsConfig)
    outliers: OutlierConfig = field(default_factory=OutlierConfig)
    gravity: GravityConfig = field(default_factory=GravityConfig)

    def __post_init__(self):
        if self.fusion_mode not in FUSION_MODES:
            raise ValueError(f"Unknown fusion mode: {self.fusion_mode}. Use 'fused' or 'gps-only'")
        if self.half_mile_m < self.quarter_mile_m:
            raise ValueError("half_mile_m must not be shorter than quarter_mile_m")
        object.__setattr__(self, 'speed_milestones_kmh',
                           tuple(sorted(float(s) for s in self.speed_milestones_kmh)))

    @property
    def gps_only(self) -> bool:
        return self.fusion_mode == 'gps-only'

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RunConfig':
        sections = {
            'denoise': DenoiseConfig,
            'estimator': EstimatorConfig,
            'launch': LaunchConfig,
            'gps': GpsConfig,
            'outliers': OutlierConfig,
            'gravity': GravityConfig,
        }
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")

        kwargs = {}
        for key, value in data.items():
            if key in sections:
                kwargs[key] = _section_from_dict(sections[key], value)
            elif key == 'speed_milestones_kmh':
                kwargs[key] = tuple(value)
            else:
                kwargs[key] = value
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


def _section_from_dict(section_cls, values):
    if not isinstance(values, dict):
        raise ValueError(f"Config section for {section_cls.__name__} must be a mapping")
    known = {f.name for f in dataclasses.fields(section_cls)}
    unknown = set(values) - known
    if unknown:
        raise ValueError(f"Unknown {section_cls.__name__} keys: {', '.join(sorted(unknown))}")
    return section_cls(**values)


def load_config(path) -> RunConfig:
    """Load a RunConfig from a JSON (or JSON.gz) file."""
    path = Path(path)
    opener = gzip.open if path.suffix == '.gz' else open
    with opener(path, 'rb') as fh:
        return RunConfig.from_dict(orjson.loads(fh.read()))
