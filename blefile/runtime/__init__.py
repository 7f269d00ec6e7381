from blefile.runtime.logging import JsonlLogger
from blefile.runtime.metrics import compute_metrics, load_events
from blefile.runtime.scheduler import Clock, FakeClock, RealClock, SessionWatchdog

__all__ = [
    "Clock",
    "FakeClock",
    "RealClock",
    "SessionWatchdog",
    "JsonlLogger",
    "compute_metrics",
    "load_events",
]
