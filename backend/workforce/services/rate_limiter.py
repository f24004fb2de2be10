"""
AI Judge Rate Limiter - serialized calls with minimum spacing.

The external AI quota is 2 requests per minute, so dispatches are spaced at
least 30 seconds apart. Every AI call in the process (request handlers and
background jobs alike) goes through one shared RateLimiter, which decouples
job concurrency from AI-call concurrency.

Usage:
    limiter = get_ai_rate_limiter()
    result = await limiter.execute(lambda: client.call(...))
    result = await limiter.execute_with_retry(lambda: client.call(...))

Clock and sleep are injectable so spacing can be tested without real waits.
"""

import asyncio
import logging
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Optional, Tuple, TypeVar

from prometheus_client import Histogram

from workforce.config import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

Task = Callable[[], Awaitable[Any]]

RATE_LIMIT_WAIT = Histogram(
    "ai_rate_limiter_wait_seconds",
    "Time spent waiting for the AI call spacing window",
    buckets=[0, 1, 5, 10, 15, 20, 25, 30, 60],
)


def is_rate_limit_error(error: BaseException) -> bool:
    """True for HTTP 429 style errors (OpenAI, httpx or anything carrying a status)."""
    status = getattr(error, "status_code", None) or getattr(error, "status", None)
    if status is None:
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)
    return status == 429


class RateLimiter:
    """
    Single-consumer FIFO queue enforcing a minimum delay between dispatches.

    Attributes:
        min_interval: Minimum seconds between two dispatched tasks
    """

    def __init__(
        self,
        min_interval: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._queue: Deque[Tuple[Task, asyncio.Future]] = deque()
        self._last_dispatch: Optional[float] = None
        self._drain_task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        return len(self._queue)

    async def execute(self, task: Callable[[], Awaitable[T]]) -> T:
        """Enqueue a task and wait for its result (or exception)."""
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        self._queue.append((task, future))

        drain = self._drain_task
        if drain is None or drain.done() or drain.get_loop() is not loop:
            self._drain_task = loop.create_task(self._drain())

        return await future

    async def _drain(self) -> None:
        while self._queue:
            task, future = self._queue.popleft()
            if future.done():
                # Caller went away (cancelled) before dispatch
                continue

            if self._last_dispatch is not None:
                wait = self.min_interval - (self._clock() - self._last_dispatch)
                if wait > 0:
                    logger.info(f"Rate limiting: waiting {wait:.0f}s before next AI call")
                    RATE_LIMIT_WAIT.observe(wait)
                    await self._sleep(wait)

            self._last_dispatch = self._clock()
            try:
                result = await task()
            except Exception as exc:
                if not future.done():
                    future.set_exception(exc)
            else:
                if not future.done():
                    future.set_result(result)

    async def execute_with_retry(
        self,
        task: Callable[[], Awaitable[T]],
        max_retries: int = 3,
        base_delay: float = 1.0,
    ) -> T:
        """
        Execute with exponential backoff on rate-limit (429) errors only.

        Any other error propagates immediately without retry.

        Args:
            task: Zero-argument coroutine factory
            max_retries: Retries after the first attempt
            base_delay: Delay before the first retry, doubled on each retry
        """
        last_error: Optional[BaseException] = None

        for attempt in range(max_retries + 1):
            try:
                return await self.execute(task)
            except Exception as exc:
                if not is_rate_limit_error(exc):
                    raise
                last_error = exc
                if attempt < max_retries:
                    delay = base_delay * (2 ** attempt)
                    logger.warning(
                        f"Rate limit hit (429), retrying in {delay:.1f}s "
                        f"(attempt {attempt + 1}/{max_retries})"
                    )
                    await self._sleep(delay)

        raise last_error


_ai_rate_limiter: Optional[RateLimiter] = None


def get_ai_rate_limiter() -> RateLimiter:
    """Get the process-wide limiter shared by every AI judge call."""
    global _ai_rate_limiter
    if _ai_rate_limiter is None:
        settings = get_settings()
        _ai_rate_limiter = RateLimiter(min_interval=settings.ai_min_call_interval_seconds)
    return _ai_rate_limiter
