"""Core infrastructure modules."""

from .global_paths import GlobalPath
from .bus import Bus, BusEvent, EventPayload

__all__ = ["GlobalPath", "Bus", "BusEvent", "EventPayload"]

# Log lives in util to avoid circular imports:
# from thoughtloop.util.log import Log
