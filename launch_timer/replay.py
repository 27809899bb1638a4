#!/usr/bin/env python3
"""
Replay a recorded session through the run orchestrator and print the timing
results.

Sessions are JSON (or JSON.gz) files holding `gps_samples` and
`accel_samples` lists with millisecond timestamps. Both streams are merged in
timestamp order and fed with their recorded timing, so tuning changes can be
compared on the same drive without going out again.
"""

from __future__ import annotations

import argparse
import gzip
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import orjson

from .config import RunConfig, load_config
from .persistence import JsonRunStore, MemoryRunStore
from .run_orchestrator import RunOrchestrator
from .samples import AccelSample, GpsFix
from .sensors import FallbackMotionProvider, NativeMotionProvider

logger = logging.getLogger(__name__)


@dataclass
class ReplayEvent:
    timestamp: float
    kind: str
    sample: object


def load_session(path: Path) -> Dict:
    opener = gzip.open if path.suffix == ".gz" else open
    with opener(path, "rb") as handle:
        return orjson.loads(handle.read())


def _gps_fix(payload: Dict) -> Optional[GpsFix]:
    lat = payload.get("latitude")
    lon = payload.get("longitude")
    ts = payload.get("timestamp")
    if lat is None or lon is None or ts is None:
        return None
    return GpsFix(
        latitude=float(lat),
        longitude=float(lon),
        timestamp=float(ts),
        reported_speed=payload.get("speed"),
        horizontal_accuracy=payload.get("accuracy"),
    )


def _accel_sample(payload: Dict) -> Optional[AccelSample]:
    ts = payload.get("timestamp")
    if ts is None:
        return None
    return AccelSample(
        x=float(payload.get("x", 0.0)),
        y=float(payload.get("y", 0.0)),
        z=float(payload.get("z", 0.0)),
        timestamp=float(ts),
    )


def build_events(data: Dict) -> List[ReplayEvent]:
    events: List[ReplayEvent] = []

    def add_events(samples: Iterable[Dict], kind: str, convert) -> None:
        for payload in samples or []:
            sample = convert(payload)
            if sample is None:
                continue
            events.append(ReplayEvent(sample.timestamp, kind, sample))

    add_events(data.get("accel_samples", []), "accel", _accel_sample)
    add_events(data.get("gps_samples", []), "gps", _gps_fix)

    if not events:
        raise RuntimeError("Session has no samples to replay")

    # Stable sort keeps each stream in recorded order on equal timestamps
    events.sort(key=lambda ev: ev.timestamp)
    return events


def replay_session(events: List[ReplayEvent], config: RunConfig,
                   includes_gravity: bool = False, store=None) -> RunOrchestrator:
    """Feed events through a fresh orchestrator; returns it after stop()."""
    motion = FallbackMotionProvider() if includes_gravity else NativeMotionProvider()
    orchestrator = RunOrchestrator(config, motion=motion,
                                   store=store if store is not None else MemoryRunStore())
    orchestrator.arm(events[0].timestamp)

    for event in events:
        if event.kind == "gps":
            orchestrator.handle_fix(event.sample)
        else:
            orchestrator.handle_motion(event.sample)

    orchestrator.stop()
    return orchestrator


def format_results(timings: Dict[str, Optional[float]]) -> List[str]:
    lines = []
    for label, value in timings.items():
        shown = f"{value:6.2f} s" if value is not None else "     --"
        lines.append(f"  {label:<12} {shown}")
    return lines


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "session",
        type=Path,
        help="Path to a recorded session (.json or .json.gz)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="JSON file with RunConfig overrides",
    )
    parser.add_argument(
        "--gps-only",
        action="store_true",
        help="Ignore the accelerometer channel in the speed filter",
    )
    parser.add_argument(
        "--includes-gravity",
        action="store_true",
        help="Recorded accelerometer samples still contain gravity",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Directory to write the run summary to (gzipped JSON)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Debug logging",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(args.config) if args.config else RunConfig()
    if args.gps_only:
        config = config.with_overrides(fusion_mode="gps-only")

    events = build_events(load_session(args.session))
    store = JsonRunStore(args.output) if args.output else None
    orchestrator = replay_session(events, config, args.includes_gravity, store)

    summary = orchestrator.last_summary
    if summary is None:
        print("⚠ No run detected in session")
        return 1

    print(f"Run from {args.session.name} ({config.fusion_mode})")
    print(f"  Max speed:    {summary.max_speed_kmh:.1f} km/h")
    print(f"  Distance:     {summary.distance_m:.0f} m")
    print(f"  Duration:     {summary.duration_ms / 1000:.2f} s")
    for line in format_results(summary.timings):
        print(line)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
