"""Serializing per-instance rate limiter with retries.

Operations are zero-argument coroutine factories. They run one at a time, in
submission order, with at least ``min_interval`` seconds between the starts of
consecutive operations. A failed operation is retried before the next one is
dequeued.
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass
import logging
import time
from typing import Any, Awaitable, Callable, Generic, TypeVar

from .errors import QueueFullError
from .retry import backoff_delay

logger = logging.getLogger("speedrun-leaderboard")

T = TypeVar("T")


@dataclass
class _Entry(Generic[T]):
    operation: Callable[[], Awaitable[T]]
    future: asyncio.Future[T]


class RateLimiter:
    def __init__(
        self,
        min_interval: float,
        max_retries: int = 0,
        retry_delay: float = 1.0,
        *,
        backoff: float = 1.0,
        max_retry_delay: float | None = None,
        retry_if: Callable[[Exception], bool] | None = None,
        max_queue_size: int | None = None,
        now: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        if min_interval < 0:
            raise ValueError("min_interval must be >= 0")
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if retry_delay < 0:
            raise ValueError("retry_delay must be >= 0")
        if backoff < 1:
            raise ValueError("backoff must be >= 1")
        if max_queue_size is not None and max_queue_size < 0:
            raise ValueError("max_queue_size must be >= 0")

        self._min_interval = float(min_interval)
        self._max_retries = int(max_retries)
        self._retry_delay = float(retry_delay)
        self._backoff = float(backoff)
        self._max_retry_delay = max_retry_delay
        self._retry_if = retry_if
        self._max_queue_size = max_queue_size or None
        self._now = now or time.monotonic
        self._sleep = sleep or asyncio.sleep

        self._queue: deque[_Entry[Any]] = deque()
        self._last_execution_time: float | None = None
        self._processing = False
        self._drain_task: asyncio.Task[None] | None = None

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def pending(self) -> int:
        return len(self._queue)

    def submit(self, operation: Callable[[], Awaitable[T]]) -> asyncio.Future[T]:
        """Queue ``operation`` and return a future settled with its outcome.

        Must be called from a running event loop. Failures never raise here;
        they are delivered through the returned future.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[T] = loop.create_future()

        if self._max_queue_size is not None and len(self._queue) >= self._max_queue_size:
            future.set_exception(
                QueueFullError(f"Rate limiter queue is full ({self._max_queue_size} pending)")
            )
            return future

        self._queue.append(_Entry(operation=operation, future=future))
        if not self._processing:
            self._processing = True
            self._drain_task = loop.create_task(self._drain())
        return future

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        return await self.submit(operation)

    async def _drain(self) -> None:
        try:
            while self._queue:
                await self._wait_for_slot()
                entry = self._queue.popleft()
                if entry.future.done():
                    # cancelled by its caller while queued
                    continue
                try:
                    await self._run(entry)
                finally:
                    if not entry.future.done():
                        # interrupted while waiting to retry
                        entry.future.cancel()
        finally:
            self._processing = False
            self._drain_task = None
            self._abandon_pending()

    def _abandon_pending(self) -> None:
        # entries are left behind only when the drain itself was interrupted
        while self._queue:
            entry = self._queue.popleft()
            entry.future.cancel()

    async def _wait_for_slot(self) -> None:
        if self._last_execution_time is None:
            return
        elapsed = self._now() - self._last_execution_time
        if elapsed < self._min_interval:
            await self._sleep(self._min_interval - elapsed)

    async def _run(self, entry: _Entry[Any]) -> None:
        attempt = 0
        while True:
            self._last_execution_time = self._now()
            try:
                result = await entry.operation()
            except asyncio.CancelledError:
                entry.future.cancel()
                task = asyncio.current_task()
                if task is not None and task.cancelling():
                    raise
                return
            except Exception as exc:
                if attempt >= self._max_retries or not self._should_retry(exc):
                    if attempt:
                        logger.debug("Operation failed after %d retries: %s", attempt, exc)
                    if not entry.future.done():
                        entry.future.set_exception(exc)
                    return
                attempt += 1
                delay = backoff_delay(
                    attempt,
                    self._retry_delay,
                    factor=self._backoff,
                    max_delay=self._max_retry_delay,
                )
                logger.debug(
                    "Operation failed (%s); retry %d/%d in %.3fs",
                    exc.__class__.__name__,
                    attempt,
                    self._max_retries,
                    delay,
                )
                await self._sleep(delay)
                continue
            except BaseException as exc:
                # KeyboardInterrupt and SystemExit still stop the drain
                if not entry.future.done():
                    entry.future.set_exception(exc)
                raise
            if not entry.future.done():
                entry.future.set_result(result)
            return

    def _should_retry(self, exc: Exception) -> bool:
        if self._retry_if is None:
            return True
        return bool(self._retry_if(exc))
