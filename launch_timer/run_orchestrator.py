"""
Run Orchestrator - drives one timed run from arming to the final results.

    IDLE --arm()--> ARMED --launch / speed fallback--> RUNNING
    RUNNING --stop() / half mile--> STOPPING --finalize--> IDLE

While ARMED the estimator is already fed so its speed is warm when the run
starts, the launch detector watches motion samples and (for gravity-inclusive
sources) the gravity baseline is calibrated. While RUNNING every accepted GPS
fix appends a point to the trace, speed milestones are marked at their first
live crossing and distance milestones are recorded directly. On stop, the
live speed crossings are refined on the frozen trace by the post-run
interpolator, the summary is persisted and `run_finalized` is emitted.

All timing comes from sample timestamps (ms). The estimator gets the dt
elapsed since its previous event of either stream; a late sample gets dt 0.

Usage:
    orchestrator = RunOrchestrator(RunConfig(), location, motion, store)
    orchestrator.events.on('run_finalized', show_results)
    orchestrator.arm()
"""

import logging
from collections import Counter, deque
from enum import Enum

from . import events as ev
from .accel_calculator import AccelerationCalculator
from .config import RunConfig
from .filters import get_filter
from .filters.utils import kmh_to_ms
from .gps_speed import PositionSpeedEstimator
from .interpolation import MultiPassInterpolator
from .launch_detector import LaunchDetector
from .outliers import OutlierDetector
from .persistence import MemoryRunStore, RunSummary
from .samples import (HALF_MILE, QUARTER_MILE, RunTrace, SpeedPoint,
                      TimingResults, speed_label)
from .sensors import SensorUnavailableError
from .smoothing import SavitzkyGolaySmoother

logger = logging.getLogger(__name__)

# Crossing refinement looks this many trace points past the live crossing
REFINE_EXTRA_POINTS = 2


class RunPhase(Enum):
    IDLE = 'idle'
    ARMED = 'armed'
    RUNNING = 'running'
    STOPPING = 'stopping'


class RunState:
    """
    Everything owned by one armed period / run.

    Rebuilt on every arm(), so nothing leaks from one run into the next.
    """

    def __init__(self, config, includes_gravity=False, gps_only=False, armed_at=None):
        self.config = config
        self.gps_only = gps_only or config.gps_only

        self.estimator = get_filter('gps-only' if self.gps_only else 'kalman',
                                    config=config.estimator)
        self.launch_detector = LaunchDetector(config.launch, config.denoise,
                                              includes_gravity=includes_gravity)
        self.position = PositionSpeedEstimator(config.gps)
        self.accel = AccelerationCalculator(includes_gravity, config.gravity)
        self.live_outliers = OutlierDetector(config.outliers.live_threshold,
                                             config.outliers.window_size,
                                             config.outliers.min_rate_spread)
        self.smoother = SavitzkyGolaySmoother()
        self.live_window = deque(maxlen=config.outliers.window_size)
        self.armed_points = deque(maxlen=config.outliers.window_size)

        self.milestones = {speed_label(kmh): kmh for kmh in config.speed_milestones_kmh}
        self.trace = RunTrace()
        self.timings = TimingResults(list(self.milestones) + [QUARTER_MILE, HALF_MILE])

        self.armed_at = armed_at
        self.started_at = None
        self.start_trigger = None
        self.last_event_time = None
        self.last_estimator_time = None
        self.last_motion_time = None
        self.last_distance_time = None

        self.distance_m = 0.0
        # None until the first accepted GPS fix
        self.current_speed_kmh = None
        self.fused_speed_kmh = 0.0
        self.accel_magnitude = 0.0
        self.max_speed_kmh = 0.0
        self.max_accel_ms2 = 0.0
        self.dropped = Counter()

    def advance_clock(self, timestamp):
        """Seconds since the previous estimator event, never negative."""
        if self.last_estimator_time is None:
            self.last_estimator_time = timestamp
            return 0.0
        dt = max(0.0, (timestamp - self.last_estimator_time) / 1000.0)
        self.last_estimator_time = max(self.last_estimator_time, timestamp)
        return dt

    def touch(self, timestamp):
        if self.last_event_time is None or timestamp > self.last_event_time:
            self.last_event_time = timestamp

    def elapsed(self, timestamp):
        return (timestamp - self.started_at) / 1000.0

    @property
    def duration_ms(self):
        if self.started_at is None or self.last_event_time is None:
            return 0.0
        return max(0.0, self.last_event_time - self.started_at)

    def summary(self):
        return RunSummary(
            max_speed_kmh=self.max_speed_kmh,
            max_acceleration_ms2=self.max_accel_ms2,
            duration_ms=self.duration_ms,
            distance_m=self.distance_m,
            started_at_ms=self.started_at,
            timings=self.timings.as_dict(),
            trace=[[p.time, p.speed] for p in self.trace],
        )


class RunOrchestrator:
    """State machine tying sensors, estimator, detector and results together."""

    def __init__(self, config=None, location=None, motion=None, store=None):
        """
        Args:
            config (RunConfig): Tuning for every component
            location (LocationProvider): GPS source, optional when fixes are
                fed directly through handle_fix()
            motion (MotionProvider): Accelerometer source, optional
            store (RunStore): Where finalized summaries go
        """
        self.config = config or RunConfig()
        self.location = location
        self.motion = motion
        self.store = store if store is not None else MemoryRunStore()
        self.events = ev.EventEmitter()

        self.phase = RunPhase.IDLE
        self.run = None
        self.last_summary = None
        self._reported_unavailable = set()

    # ------------------------------------------------------------------ phases

    def _set_phase(self, phase):
        if phase is self.phase:
            return
        previous, self.phase = self.phase, phase
        logger.debug("Run phase %s -> %s", previous.value, phase.value)
        self.events.emit(ev.STATE_CHANGED, {'from': previous.value, 'to': phase.value})

    def arm(self, timestamp=None):
        """
        IDLE -> ARMED. Subscribes the providers and builds a fresh RunState.

        Returns:
            bool: False when not idle or when no location source is available
        """
        if self.phase is not RunPhase.IDLE:
            logger.debug("arm() ignored in phase %s", self.phase.value)
            return False

        if self.location is not None:
            try:
                self.location.start(self.handle_fix)
            except SensorUnavailableError as e:
                self._report_unavailable(e)
                return False

        motion_missing = False
        if self.motion is not None:
            try:
                self.motion.start(self.handle_motion)
            except SensorUnavailableError as e:
                self._report_unavailable(e)
                motion_missing = True

        includes_gravity = bool(self.motion is not None and self.motion.includes_gravity)
        self.run = RunState(self.config, includes_gravity=includes_gravity,
                            gps_only=motion_missing, armed_at=timestamp)
        self._set_phase(RunPhase.ARMED)
        logger.info("Armed (%s mode)", 'gps-only' if self.run.gps_only else 'fused')
        return True

    def _report_unavailable(self, error):
        if error.sensor in self._reported_unavailable:
            return
        self._reported_unavailable.add(error.sensor)
        if error.sensor == 'motion':
            logger.warning("%s - continuing GPS-only", error)
        else:
            logger.warning("%s - cannot arm", error)
        self.events.emit(ev.SENSOR_UNAVAILABLE, {'sensor': error.sensor, 'reason': error.reason})

    def _unsubscribe(self):
        if self.location is not None:
            self.location.stop()
        if self.motion is not None:
            self.motion.stop()

    def _start_run(self, timestamp, trigger):
        run = self.run
        run.started_at = timestamp
        run.start_trigger = trigger
        run.last_distance_time = timestamp
        self._set_phase(RunPhase.RUNNING)
        logger.info("Run started at %.0f ms (%s)", timestamp, trigger)
        self.events.emit(ev.RUN_STARTED, {'started_at': timestamp, 'trigger': trigger})

    def _start_from_launch(self, timestamp):
        """Seed the trace with what happened between candidate start and confirmation."""
        run = self.run
        self._start_run(timestamp, 'launch')

        start_speed = 0.0
        for ts, speed in run.armed_points:
            if ts <= timestamp:
                start_speed = speed
        if not any(ts == timestamp for ts, _ in run.armed_points):
            self._record_point(SpeedPoint(0.0, start_speed))

        for ts, speed in run.armed_points:
            if ts >= timestamp:
                self._record_point(SpeedPoint(run.elapsed(ts), speed))
                run.last_distance_time = ts
        run.armed_points.clear()

    def stop(self):
        """
        End the current armed period or run. Idempotent.

        A run that started is finalized; an armed period without a start is
        simply cancelled.

        Returns:
            RunSummary or None
        """
        if self.phase in (RunPhase.IDLE, RunPhase.STOPPING):
            logger.debug("stop() ignored in phase %s", self.phase.value)
            return None

        self._unsubscribe()

        if self.phase is RunPhase.ARMED:
            logger.info("Disarmed before launch")
            self._set_phase(RunPhase.IDLE)
            return None

        self._set_phase(RunPhase.STOPPING)
        summary = self._finalize()
        self._set_phase(RunPhase.IDLE)
        return summary

    def reset(self):
        """Drop the current run without finalizing it."""
        self._unsubscribe()
        self.run = None
        self._set_phase(RunPhase.IDLE)

    # ----------------------------------------------------------------- samples

    def handle_motion(self, sample):
        """Motion callback: AccelSample with timestamp in ms."""
        if self.phase not in (RunPhase.ARMED, RunPhase.RUNNING):
            logger.debug("Motion sample ignored in phase %s", self.phase.value)
            return

        run = self.run
        if run.last_motion_time is not None and sample.timestamp <= run.last_motion_time:
            run.dropped['motion_out_of_order'] += 1
            logger.debug("Motion sample dropped - out of order (%.0f)", sample.timestamp)
            return
        run.last_motion_time = sample.timestamp
        run.touch(sample.timestamp)

        if self.phase is RunPhase.ARMED:
            run.accel.observe(sample)

        magnitude = run.accel.calculate_motion_magnitude(sample)
        run.accel_magnitude = magnitude

        dt = run.advance_clock(sample.timestamp)
        run.estimator.predict(dt)
        run.fused_speed_kmh = run.estimator.update_acceleration(magnitude)

        if self.phase is RunPhase.RUNNING:
            run.max_accel_ms2 = max(run.max_accel_ms2, magnitude)
            return

        speed = run.current_speed_kmh
        if speed is None and not self.config.require_speed_context:
            speed = 0.0
        if run.launch_detector.process_data(sample, speed):
            start = run.launch_detector.launch_start_time
            self.events.emit(ev.LAUNCH_DETECTED, {
                'started_at': start,
                'confirmed_at': run.launch_detector.confirmed_time,
            })
            self._start_from_launch(start)

    def handle_fix(self, fix):
        """Location callback: GpsFix with timestamp in ms."""
        if self.phase not in (RunPhase.ARMED, RunPhase.RUNNING):
            logger.debug("GPS fix ignored in phase %s", self.phase.value)
            return

        run = self.run
        running = self.phase is RunPhase.RUNNING
        estimate = run.position.estimate(fix, running=running)
        if estimate is None:
            run.dropped[run.position.last_rejection or 'gps'] += 1
            return
        run.touch(fix.timestamp)

        speed = self._live_speed(run, fix.timestamp, estimate.speed_kmh)
        run.current_speed_kmh = speed

        dt = run.advance_clock(fix.timestamp)
        run.estimator.predict(dt)
        fused = run.estimator.update([speed, run.accel_magnitude])
        run.fused_speed_kmh = fused

        if not running:
            run.armed_points.append((fix.timestamp, fused))
            if (self.config.enable_speed_fallback and
                    speed > self.config.motion_start_speed_kmh):
                run.armed_points.clear()
                self._start_run(fix.timestamp, 'speed')
            else:
                return

        self._process_running_fix(run, fix, speed, fused)

    def _live_speed(self, run, timestamp, speed_kmh):
        """Replace a live outlier by the smoothed value of the recent window."""
        run.live_window.append(SpeedPoint(timestamp / 1000.0, speed_kmh))
        if len(run.live_window) < 5 or not run.live_outliers.is_latest_outlier(run.live_window):
            return speed_kmh

        previous = list(run.live_window)[:-1][-self.config.outliers.smoothing_window:]
        replacement = run.smoother.smooth(previous)[-1].speed
        run.live_window[-1] = SpeedPoint(timestamp / 1000.0, replacement)
        run.dropped['outlier'] += 1
        logger.debug("Live speed outlier %.1f km/h replaced by %.1f km/h", speed_kmh, replacement)
        return replacement

    def _process_running_fix(self, run, fix, speed_kmh, fused_kmh):
        previous_distance = run.distance_m
        dt = (fix.timestamp - run.last_distance_time) / 1000.0
        if dt > 0:
            run.distance_m += kmh_to_ms(speed_kmh) * dt
            run.last_distance_time = fix.timestamp

        point = SpeedPoint(run.elapsed(fix.timestamp), fused_kmh)
        self._record_point(point)
        run.max_speed_kmh = max(run.max_speed_kmh, fused_kmh)

        for label, target in ((QUARTER_MILE, self.config.quarter_mile_m),
                              (HALF_MILE, self.config.half_mile_m)):
            if previous_distance < target <= run.distance_m:
                crossed = self._distance_crossing_time(point.time, run.distance_m,
                                                       target, speed_kmh)
                if run.timings.record(label, crossed):
                    logger.info("%s: %.2f s", label, crossed)
                    self.events.emit(ev.MILESTONE_REACHED,
                                     {'label': label, 'time': crossed, 'refined': True})

        if self.config.stop_at_half_mile and run.timings.get(HALF_MILE) is not None:
            self.stop()

    @staticmethod
    def _distance_crossing_time(time, distance, target, speed_kmh):
        speed_ms = kmh_to_ms(speed_kmh)
        if speed_ms <= 0:
            return time
        return time - (distance - target) / speed_ms

    def _record_point(self, point):
        run = self.run
        if not run.trace.append(point):
            run.dropped['trace_order'] += 1
            return
        for label, target in run.milestones.items():
            if point.speed >= target and run.timings.mark_crossed(label, point.time):
                logger.debug("%s crossed live at %.2f s", label, point.time)
                self.events.emit(ev.MILESTONE_REACHED,
                                 {'label': label, 'time': point.time, 'refined': False})

    # ---------------------------------------------------------------- results

    def _finalize(self):
        run = self.run
        run.trace.freeze()

        interpolator = MultiPassInterpolator(self.config.outliers.post_run_threshold,
                                             self.config.outliers.window_size,
                                             self.config.outliers.min_rate_spread)
        for label, crossed in run.timings.untimed_crossings().items():
            points = run.trace.until(crossed, extra_points=REFINE_EXTRA_POINTS)
            refined = interpolator.find_time_for_speed(points, run.milestones[label])
            if refined is None or refined < 0:
                logger.debug("%s: interpolation failed, keeping live crossing", label)
                refined = crossed
            run.timings.record(label, refined)
            self.events.emit(ev.MILESTONE_REACHED,
                             {'label': label, 'time': refined, 'refined': True})

        summary = run.summary()
        try:
            self.store.save(summary)
        except OSError:
            logger.exception("Failed to save run summary")

        self.last_summary = summary
        if run.dropped:
            logger.info("Dropped samples: %s", dict(run.dropped))
        logger.info("Run finalized: %.1f km/h max, %.0f m", summary.max_speed_kmh, summary.distance_m)
        self.events.emit(ev.RUN_FINALIZED, summary.to_dict())
        return summary

    @property
    def timings(self):
        return self.run.timings.as_dict() if self.run is not None else {}
