"""
Minimal event emitter used to notify a presentation layer.

Payloads are plain data (timing mappings, trace points), never formatted
text. A failing listener is logged and does not interrupt sample processing.
"""

import logging
from collections import defaultdict

logger = logging.getLogger(__name__)

LAUNCH_DETECTED = 'launch_detected'
RUN_STARTED = 'run_started'
MILESTONE_REACHED = 'milestone_reached'
RUN_FINALIZED = 'run_finalized'
SENSOR_UNAVAILABLE = 'sensor_unavailable'
STATE_CHANGED = 'state_changed'

EVENTS = (LAUNCH_DETECTED, RUN_STARTED, MILESTONE_REACHED, RUN_FINALIZED,
          SENSOR_UNAVAILABLE, STATE_CHANGED)


class EventEmitter:

    def __init__(self):
        self._listeners = defaultdict(list)

    def on(self, event, callback):
        if event not in EVENTS:
            raise ValueError(f"Unknown event: {event}")
        self._listeners[event].append(callback)
        return callback

    def off(self, event, callback):
        try:
            self._listeners[event].remove(callback)
        except ValueError:
            pass

    def emit(self, event, payload):
        for callback in list(self._listeners[event]):
            try:
                callback(payload)
            except Exception:
                logger.exception("Listener for %s failed", event)
