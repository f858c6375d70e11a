from __future__ import annotations

import asyncio
import threading
import time

import pytest

from gitops_promoter.deadline import Deadline, run_with_deadline
from gitops_promoter.errors import DeadlineExceededError


def test_remaining_follows_the_clock() -> None:
    now = [100.0]
    deadline = Deadline(10, clock=lambda: now[0])

    assert deadline.remaining() == 10
    now[0] = 108.0
    assert deadline.remaining() == 2
    assert not deadline.expired
    now[0] = 200.0
    assert deadline.remaining() == 0
    assert deadline.expired


def test_sleep_within_budget_returns() -> None:
    Deadline(5).sleep(0.01)


def test_sleep_past_the_deadline_raises() -> None:
    deadline = Deadline(0.05)

    with pytest.raises(DeadlineExceededError):
        deadline.sleep(10)
    assert deadline.expired


def test_expire_wakes_sleeping_threads() -> None:
    deadline = Deadline(30)
    errors = []

    def sleeper() -> None:
        try:
            deadline.sleep(20)
        except DeadlineExceededError as exc:
            errors.append(exc)

    thread = threading.Thread(target=sleeper)
    thread.start()
    deadline.expire()
    thread.join(2)

    assert not thread.is_alive()
    assert len(errors) == 1
    assert deadline.remaining() == 0


def test_run_with_deadline_returns_result() -> None:
    async def main() -> int:
        return await asyncio.to_thread(lambda: 42)

    assert run_with_deadline(main, Deadline(5)) == 42


def test_run_with_deadline_propagates_errors() -> None:
    async def main() -> None:
        raise ValueError("boom")

    with pytest.raises(ValueError):
        run_with_deadline(main, Deadline(5))


def test_run_with_deadline_does_not_wait_for_blocked_thread() -> None:
    release = threading.Event()
    deadline = Deadline(0.2)

    async def main() -> None:
        await asyncio.to_thread(release.wait, 10)

    started = time.monotonic()
    try:
        with pytest.raises(DeadlineExceededError):
            run_with_deadline(main, deadline)
        elapsed = time.monotonic() - started
    finally:
        release.set()

    assert elapsed < 2
    assert deadline.expired
