"""
Launch timer: 0-to-X km/h and quarter/half mile timing from phone GPS and
accelerometer samples.
"""

from .config import RunConfig, load_config
from .run_orchestrator import RunOrchestrator, RunPhase
from .samples import AccelSample, GpsFix, SpeedPoint

__version__ = '0.1.0'

__all__ = [
    'AccelSample',
    'GpsFix',
    'RunConfig',
    'RunOrchestrator',
    'RunPhase',
    'SpeedPoint',
    'load_config',
]
