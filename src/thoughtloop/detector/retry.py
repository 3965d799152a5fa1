"""Bounded retry with exponential backoff for interrupt calls."""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

import httpx

from ..core.config_schema import RetryConfig
from ..util.log import Log

log = Log.create({"service": "detector.retry"})

T = TypeVar("T")


def _status(error: Exception) -> Optional[int]:
    code = getattr(error, "status_code", None)
    if isinstance(code, int):
        return code
    response = getattr(error, "response", None)
    if response is None:
        return None
    code = getattr(response, "status_code", None)
    if isinstance(code, int):
        return code
    return None


class InterruptRetry:
    """Retry policy for the abort and prompt calls."""

    def __init__(self, config: Optional[RetryConfig] = None) -> None:
        self.config = config or RetryConfig()

    @staticmethod
    async def sleep(ms: int) -> None:
        await asyncio.sleep(max(ms, 0) / 1000)

    def delay_ms(self, attempt: int) -> int:
        turn = max(int(attempt), 1)
        backoff = self.config.initial_delay_ms * (self.config.backoff_factor ** (turn - 1))
        return int(min(backoff, self.config.max_delay_ms))

    @staticmethod
    def retryable(error: Exception) -> bool:
        if isinstance(error, (httpx.TransportError, TimeoutError)):
            return True
        code = _status(error)
        if code is None:
            return False
        if code == 429:
            return True
        return 500 <= code <= 599

    async def run(self, operation: str, fn: Callable[[], Awaitable[T]]) -> T:
        """Call ``fn`` until it succeeds, fails permanently or attempts run out."""
        attempt = 1
        while True:
            try:
                return await fn()
            except Exception as e:
                if attempt >= self.config.attempts or not self.retryable(e):
                    raise
                wait = self.delay_ms(attempt)
                log.warn("retrying interrupt call", {
                    "operation": operation,
                    "attempt": attempt,
                    "delay_ms": wait,
                    "error": e,
                })
                await self.sleep(wait)
                attempt += 1
