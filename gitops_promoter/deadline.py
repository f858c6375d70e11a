"""
Per-event deadline.

An event's workflow awaits blocking GitHub calls through `asyncio.to_thread`.
Cancelling the awaiting task does not stop the thread, so the deadline is also
shared with the threads: waits go through `Deadline.sleep`, which raises once
the deadline has passed or was expired by the event loop.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Awaitable, Callable, TypeVar

from gitops_promoter.errors import DeadlineExceededError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Deadline:
    def __init__(
        self, seconds: float, *, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.seconds = seconds
        self._clock = clock
        self._expires_at = clock() + seconds
        self._expired = threading.Event()

    def remaining(self) -> float:
        if self._expired.is_set():
            return 0.0
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

    def expire(self) -> None:
        """Wake every thread waiting in `sleep`; they raise DeadlineExceededError."""
        self._expired.set()

    def sleep(self, seconds: float) -> None:
        """time.sleep that raises DeadlineExceededError instead of outliving the deadline."""
        budget = self.remaining()
        if seconds >= budget:
            self._expired.wait(budget)
            raise DeadlineExceededError(self.seconds)
        if self._expired.wait(seconds):
            raise DeadlineExceededError(self.seconds)


def run_with_deadline(main: Callable[[], Awaitable[T]], deadline: Deadline) -> T:
    """
    Run `main()` on a private event loop and return its result.

    Raises DeadlineExceededError as soon as the deadline passes. The loop's
    worker threads are abandoned, not joined: a call still in flight finishes
    on its own, and `deadline` is expired so retry loops stop at their next wait.
    """
    loop = asyncio.new_event_loop()
    executor = ThreadPoolExecutor(thread_name_prefix="event-io")
    loop.set_default_executor(executor)
    try:
        return loop.run_until_complete(
            asyncio.wait_for(main(), timeout=deadline.remaining())
        )
    except asyncio.TimeoutError:
        # A socket timeout from a worker thread is also a TimeoutError.
        if not deadline.expired:
            raise
        deadline.expire()
        raise DeadlineExceededError(deadline.seconds) from None
    finally:
        executor.shutdown(wait=False)
        loop.run_until_complete(loop.shutdown_asyncgens())
        loop.close()
