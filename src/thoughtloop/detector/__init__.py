"""Thought loop detection for streamed agent reasoning."""

from .control import InterruptError, SessionControl
from .detector import ThoughtLoopDetector
from .events import ReasoningDelta, SessionLifecycle, parse_event
from .state import (
    MAX_HISTORY_SEGMENTS,
    MAX_SEGMENT_LEN,
    MIN_LEVENSHTEIN_DISTANCE,
    SessionState,
)

__all__ = [
    "InterruptError",
    "MAX_HISTORY_SEGMENTS",
    "MAX_SEGMENT_LEN",
    "MIN_LEVENSHTEIN_DISTANCE",
    "ReasoningDelta",
    "SessionControl",
    "SessionLifecycle",
    "SessionState",
    "ThoughtLoopDetector",
    "parse_event",
]
