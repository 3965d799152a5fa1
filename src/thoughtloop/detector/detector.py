"""Thought loop detection over streamed reasoning.

The detector keeps one :class:`SessionState` per session and feeds it the
reasoning deltas from ``message.part.updated`` events. When the latest
trace segment nearly repeats an earlier one it aborts the session's
generation and injects a corrective message, then ignores that session's
deltas until the reply to the corrective message shows up.

Every event is handled in two phases. :meth:`ThoughtLoopDetector.dispatch`
mutates state synchronously and never awaits; when a loop is declared it
returns the coroutine that waits for the abort and inject calls. The
in-flight flag is raised before that coroutine exists, so deltas that
arrive while the calls are outstanding are dropped instead of refilling
the freshly cleared trace.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Coroutine, Dict, List, Optional, Set

from ..core.bus import Bus, EventPayload
from ..core.config_schema import DetectorConfig
from ..util.error import error_payload, format_error, format_unknown_error
from ..util.log import Log, LogLevel
from .control import InterruptError, SessionControl, corrective_part
from .events import (
    RawEvent,
    ReasoningDelta,
    SessionCreated,
    SessionLifecycle,
    parse_event,
)
from .retry import InterruptRetry
from .state import SessionState

SERVICE = "[ThoughtLoopDetector]"

_LEVELS = {
    "debug": LogLevel.DEBUG,
    "info": LogLevel.INFO,
    "warn": LogLevel.WARN,
    "error": LogLevel.ERROR,
}


class ThoughtLoopDetector:
    """Route session events to per-session state and break thought loops."""

    def __init__(
        self,
        control: SessionControl,
        config: Optional[DetectorConfig] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.control = control
        self.config = config or DetectorConfig()
        self.retry = InterruptRetry(self.config.retry)
        self.log = Log.create({"service": "detector"})
        self._clock = clock
        self._sessions: Dict[str, SessionState] = {}
        self._cycles: Set[asyncio.Task[None]] = set()
        self._forwards: Set[asyncio.Task[None]] = set()
        self._emit("debug", "Successfully loaded")

    # -- registry --

    def session(self, session_id: str) -> Optional[SessionState]:
        return self._sessions.get(session_id)

    def session_ids(self) -> List[str]:
        return list(self._sessions)

    def _new_state(self) -> SessionState:
        return SessionState(
            max_segment_len=self.config.max_segment_len,
            max_history_segments=self.config.max_history_segments,
            min_levenshtein_distance=self.config.min_levenshtein_distance,
        )

    def _ensure(self, session_id: str) -> SessionState:
        state = self._sessions.get(session_id)
        if state is None:
            state = self._new_state()
            self._sessions[session_id] = state
        return state

    # -- event entry points --

    async def handle_event(self, event: RawEvent) -> None:
        """Process one event, waiting for any interrupt it triggers."""
        pending = self.dispatch(event)
        if pending is not None:
            await pending

    def submit(self, event: RawEvent) -> None:
        """Process one event without waiting for the interrupt it triggers.

        Must be called from a running event loop. Use :meth:`drain` to wait
        for outstanding interrupt cycles.
        """
        pending = self.dispatch(event)
        if pending is None:
            return
        task = asyncio.create_task(pending)
        self._cycles.add(task)
        task.add_done_callback(self._cycles.discard)

    async def drain(self) -> None:
        """Wait for outstanding interrupt cycles and forwarded log records."""
        while self._cycles or self._forwards:
            await asyncio.gather(*self._cycles, *self._forwards, return_exceptions=True)

    def attach(self) -> Callable[[], None]:
        """Subscribe to every event on the Bus bound to the current context."""

        def on_event(payload: EventPayload) -> None:
            self.submit(payload)

        return Bus.subscribe_all(on_event)

    def dispatch(self, event: RawEvent) -> Optional[Coroutine[Any, Any, None]]:
        """Apply ``event`` to the registry without awaiting.

        Returns the interrupt cycle to await when the event triggered one.
        """
        parsed = parse_event(event)
        if parsed is None:
            return None
        if isinstance(parsed, SessionLifecycle):
            if parsed.type == SessionCreated.type:
                self._on_session_created(parsed.session_id)
            else:
                self._on_session_deleted(parsed.session_id)
            return None
        return self._on_reasoning_delta(parsed)

    # -- transitions --

    def _on_session_created(self, session_id: str) -> None:
        if session_id in self._sessions:
            return
        self._sessions[session_id] = self._new_state()
        self._emit("debug", f"Session state created for session {session_id}")

    def _on_session_deleted(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is not None:
            self._emit("debug", f"Session state deleted for session {session_id}")

    def _on_reasoning_delta(self, event: ReasoningDelta) -> Optional[Coroutine[Any, Any, None]]:
        session_id = event.session_id
        state = self._ensure(session_id)

        pending_id = state.pending_interrupt_message_id
        if pending_id is not None and event.message_id == pending_id:
            state.resolve_interrupt()
            self._emit("debug", "successfully detected system abort", {"session_id": session_id})
            return None

        if state.interrupt_in_flight:
            if not state.interrupt_expired(self._clock(), self.config.interrupt_timeout_ms):
                self._emit("debug", "pending session abort", {"session_id": session_id})
                return None
            self._emit("warn", "abandoning stale interrupt", {
                "session_id": session_id,
                "pending_message_id": pending_id,
                "timeout_ms": self.config.interrupt_timeout_ms,
            })
            state.resolve_interrupt()

        state.update_delta(event.delta)
        similarity = state.min_similarity_to_history()
        self._emit("debug", f"similarity: {similarity}", {"session_id": session_id})
        if not state.detect_thought_loop(similarity):
            return None

        cycle = state.begin_interrupt(self._clock())
        self._emit("warn", "Thought loop detected", {
            "session_id": session_id,
            "message_id": event.message_id,
            "distance": similarity,
            "segments": len(state.trace_segments),
        })

        parts = [corrective_part(self.config.message, event.part_id)]
        prompt = asyncio.ensure_future(self.retry.run(
            "prompt",
            lambda: self.control.prompt_session(
                session_id,
                reply_to_message_id=event.message_id,
                parts=parts,
                suppress_reply=self.config.suppress_reply,
            ),
        ))
        abort = asyncio.ensure_future(self.retry.run(
            "abort",
            lambda: self.control.abort_session(session_id),
        ))
        state.reset_trace()
        return self._finish_interrupt(session_id, state, cycle, prompt, abort)

    async def _finish_interrupt(
        self,
        session_id: str,
        state: SessionState,
        cycle: int,
        prompt: Awaitable[Optional[str]],
        abort: Awaitable[bool],
    ) -> None:
        prompt_result, abort_result = await asyncio.gather(prompt, abort, return_exceptions=True)
        current = state.interrupt_cycle == cycle and state.interrupt_in_flight

        if isinstance(prompt_result, BaseException) or not prompt_result:
            error = prompt_result if isinstance(prompt_result, BaseException) else InterruptError(
                session_id, "prompt", prompt_result
            )
            self._report("failed to inject prompt", session_id, error)
            if current:
                # nothing will ever echo this cycle
                state.resolve_interrupt()
        else:
            if current:
                state.pending_interrupt_message_id = prompt_result
            self._emit("debug", "successfully injected prompt", {
                "session_id": session_id,
                "message_id": prompt_result,
            })

        if isinstance(abort_result, BaseException) or abort_result is not True:
            error = abort_result if isinstance(abort_result, BaseException) else InterruptError(
                session_id, "abort", abort_result
            )
            self._report("failed to abort session", session_id, error)
            return
        self._emit("debug", "successfully aborted session", {"session_id": session_id})

    # -- diagnostics --

    def _report(self, message: str, session_id: str, error: BaseException) -> None:
        self._emit("error", message, {
            "session_id": session_id,
            "error": format_error(error) or format_unknown_error(error),
            "payload": error_payload(error),
        })

    def _emit(self, level: str, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        log_level = _LEVELS[level]
        self.log.log(log_level, message, extra)
        if not self.config.forward_logs or not self.log.enabled(log_level):
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return
        task = asyncio.create_task(self._forward(level, message, extra))
        self._forwards.add(task)
        task.add_done_callback(self._forwards.discard)

    async def _forward(self, level: str, message: str, extra: Optional[Dict[str, Any]]) -> None:
        try:
            await self.control.log(level, SERVICE, message, extra)
        except Exception as e:
            self.log.warn("failed to forward log record", {"error": e, "record": message})
