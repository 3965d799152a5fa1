"""Per-session reasoning trace and loop detection."""

from __future__ import annotations

from collections import deque
from typing import Deque, List, Optional

from .similarity import distance, min_distance as closest_distance, normalize_delta

MAX_SEGMENT_LEN = 300
MAX_HISTORY_SEGMENTS = 20
MIN_LEVENSHTEIN_DISTANCE = 30


class SessionState:
    """Rolling window over one session's recent reasoning text.

    Streamed deltas are normalized and packed into fixed-size segments.
    Every segment but the last is exactly ``max_segment_len`` characters and
    at most ``max_history_segments`` are kept, oldest evicted first.

    The interrupt fields track one abort/redirect cycle: ``interrupt_in_flight``
    opens when a loop is declared and ``pending_interrupt_message_id`` holds
    the id of the injected corrective message until its echo is seen.
    """

    def __init__(
        self,
        *,
        max_segment_len: int = MAX_SEGMENT_LEN,
        max_history_segments: int = MAX_HISTORY_SEGMENTS,
        min_levenshtein_distance: int = MIN_LEVENSHTEIN_DISTANCE,
    ) -> None:
        if max_segment_len < 1:
            raise ValueError("max_segment_len must be positive")
        if max_history_segments < 2:
            raise ValueError("max_history_segments must be at least 2")
        self.max_segment_len = max_segment_len
        self.max_history_segments = max_history_segments
        self.min_levenshtein_distance = min_levenshtein_distance
        self.trace_segments: Deque[str] = deque(maxlen=max_history_segments)
        self.pending_interrupt_message_id: Optional[str] = None
        self.interrupt_in_flight: bool = False
        self.interrupt_started_at: Optional[float] = None
        self.interrupt_cycle: int = 0

    def update_delta(self, delta: Optional[str]) -> None:
        """Append a reasoning delta to the trace."""
        if delta is None:
            return
        normalized = normalize_delta(delta)
        if not normalized:
            return

        segments = self.trace_segments
        combined = (segments.pop() if segments else "") + normalized
        limit = self.max_segment_len
        # deque(maxlen) evicts from the front on append
        while len(combined) > limit:
            segments.append(combined[:limit])
            combined = combined[limit:]
        segments.append(combined)

    def min_similarity_to_history(self) -> int:
        """Edit distance from the latest segment to its closest earlier segment.

        Returns 0 when there is no earlier segment to compare against.
        """
        if len(self.trace_segments) < 2:
            return 0
        *history, latest = self.trace_segments
        result = closest_distance(latest, history)
        return 0 if result is None else result

    def detect_thought_loop(self, min_distance: Optional[int] = None) -> bool:
        """True when the window is full and the latest segment repeats an earlier one.

        ``min_distance`` may be passed when the caller already computed
        :meth:`min_similarity_to_history`.
        """
        if len(self.trace_segments) < self.max_history_segments:
            return False
        if min_distance is not None:
            return min_distance < self.min_levenshtein_distance

        *history, latest = self.trace_segments
        for segment in history:
            if distance(latest, segment) < self.min_levenshtein_distance:
                return True
        return False

    def segments(self) -> List[str]:
        return list(self.trace_segments)

    def reset_trace(self) -> None:
        self.trace_segments.clear()

    def begin_interrupt(self, now: float) -> int:
        """Open a new interrupt cycle and return its number."""
        self.interrupt_cycle += 1
        self.interrupt_in_flight = True
        self.pending_interrupt_message_id = None
        self.interrupt_started_at = now
        return self.interrupt_cycle

    def resolve_interrupt(self) -> None:
        self.interrupt_in_flight = False
        self.pending_interrupt_message_id = None
        self.interrupt_started_at = None

    def interrupt_expired(self, now: float, timeout_ms: Optional[int]) -> bool:
        """Whether the open interrupt has outlived ``timeout_ms``."""
        if not self.interrupt_in_flight or timeout_ms is None:
            return False
        if self.interrupt_started_at is None:
            return False
        return (now - self.interrupt_started_at) * 1000 >= timeout_ms
