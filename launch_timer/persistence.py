"""
Run summary persistence boundary.

The core only hands a finalized RunSummary to a store; identity, auth and the
storage backend belong to the caller. Two stores are provided: an in-memory
one and a directory of gzipped JSON files.
"""

from __future__ import annotations

import gzip
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import orjson

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    max_speed_kmh: float
    max_acceleration_ms2: float
    duration_ms: float
    distance_m: float
    started_at_ms: Optional[float]
    timings: Dict[str, Optional[float]] = field(default_factory=dict)
    trace: List[List[float]] = field(default_factory=list)

    def to_dict(self):
        return asdict(self)


class RunStore(ABC):

    @abstractmethod
    def save(self, summary):
        """Persist a finalized summary."""
        pass


class MemoryRunStore(RunStore):

    def __init__(self):
        self.summaries = []

    def save(self, summary):
        self.summaries.append(summary)


class JsonRunStore(RunStore):
    """
    One gzipped JSON file per run.

    Filename format: run_STARTEDAT.json.gz
    Example: run_1729721945234.json.gz
    """

    def __init__(self, directory):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def save(self, summary):
        started = int(summary.started_at_ms or 0)
        path = self.directory / f"run_{started}.json.gz"
        temp_path = path.with_name(path.name + '.tmp')
        with gzip.open(temp_path, 'wb') as fh:
            fh.write(orjson.dumps(summary.to_dict()))

        # Atomic rename
        os.replace(temp_path, path)
        logger.info("Run summary saved to %s", path)
        return path

    def load(self, path):
        with gzip.open(path, 'rb') as fh:
            return RunSummary(**orjson.loads(fh.read()))
