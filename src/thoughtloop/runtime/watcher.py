"""Feed the server's event stream into a detector."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any, Optional, Protocol

import httpx

from ..api_client import ApiClientError
from ..detector import ThoughtLoopDetector
from ..detector.retry import InterruptRetry
from ..util.error import format_error, format_unknown_error
from ..util.log import Log

log = Log.create({"service": "watcher"})


class EventSource(Protocol):
    def stream_events(self) -> AsyncIterator[dict[str, Any]]: ...


class EventWatcher:
    """Consume ``/event`` and submit each event to the detector in arrival order.

    Dropped or failed connections are retried with exponential backoff until
    :meth:`stop` is called or ``max_reconnects`` consecutive attempts fail.
    Outstanding interrupt cycles are drained before :meth:`run` returns.
    """

    def __init__(
        self,
        source: EventSource,
        detector: ThoughtLoopDetector,
        *,
        reconnect_delay_ms: int = 1000,
        max_reconnect_delay_ms: int = 30_000,
        max_reconnects: Optional[int] = None,
    ) -> None:
        self.source = source
        self.detector = detector
        self.reconnect_delay_ms = reconnect_delay_ms
        self.max_reconnect_delay_ms = max_reconnect_delay_ms
        self.max_reconnects = max_reconnects
        self.events_seen = 0
        self._stopping = False
        self._task: Optional[asyncio.Task[Any]] = None

    def stop(self) -> None:
        self._stopping = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def _delay_ms(self, failures: int) -> int:
        return min(self.reconnect_delay_ms * (2 ** max(failures - 1, 0)), self.max_reconnect_delay_ms)

    async def _consume(self) -> None:
        async for event in self.source.stream_events():
            self.events_seen += 1
            self.detector.submit(event)

    async def run(self) -> None:
        failures = 0
        try:
            while not self._stopping:
                seen = self.events_seen
                self._task = asyncio.ensure_future(self._consume())
                try:
                    await self._task
                    log.info("event stream closed")
                except asyncio.CancelledError:
                    if not self._stopping:
                        raise
                    break
                except (httpx.TransportError, ApiClientError) as e:
                    if isinstance(e, ApiClientError) and not InterruptRetry.retryable(e):
                        raise
                    log.warn("event stream failed", {"error": format_error(e) or format_unknown_error(e)})
                finally:
                    self._task = None

                failures = 0 if self.events_seen > seen else failures + 1
                if self.max_reconnects is not None and failures > self.max_reconnects:
                    log.error("giving up on event stream", {"failures": failures})
                    break
                if self._stopping:
                    break
                await asyncio.sleep(self._delay_ms(max(failures, 1)) / 1000)
        finally:
            await self.detector.drain()
