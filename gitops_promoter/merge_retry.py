from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from github import GithubException
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_delay,
    wait_exponential_jitter,
)

from gitops_promoter.deadline import Deadline
from gitops_promoter.errors import DeadlineExceededError

logger = logging.getLogger(__name__)

# Roughly the classic exponential backoff defaults: 0.5s start, x1.5 growth,
# 60s cap, give up after 15 minutes.
INITIAL_WAIT_SECONDS = 0.5
BACKOFF_BASE = 1.5
MAX_WAIT_SECONDS = 60.0
MAX_ELAPSED_SECONDS = 15 * 60


def is_merge_error_retryable(exc: BaseException) -> bool:
    """
    GitHub answers 405 "Base branch was modified. Review and try the merge
    again." while another merge lands; every other failure is permanent.
    """
    if not isinstance(exc, GithubException):
        return False
    return exc.status == 405 and "try the merge again" in str(exc)


def _log_retry(pr_number: int) -> Callable[[RetryCallState], None]:
    def before_sleep(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        logger.warning(
            "[merge] PR #%s transient failure (attempt %s), retrying in %.1fs: %s",
            pr_number,
            state.attempt_number,
            state.next_action.sleep if state.next_action else 0,
            exc,
        )

    return before_sleep


def merge_with_retry(
    merge: Callable[[int], None],
    pr_number: int,
    *,
    max_elapsed_seconds: float = MAX_ELAPSED_SECONDS,
    sleep: Optional[Callable[[float], None]] = None,
    deadline: Optional[Deadline] = None,
) -> None:
    """
    Merge PR `pr_number`, retrying only on GitHub's transient merge conflict.

    With a `deadline`, retries stop at whichever comes first of the deadline and
    `max_elapsed_seconds`, and a backoff wait that would outlive the deadline
    raises DeadlineExceededError.
    """
    if deadline is not None:
        max_elapsed_seconds = min(max_elapsed_seconds, deadline.remaining())
        sleep = sleep or deadline.sleep
    retrying = Retrying(
        retry=retry_if_exception(is_merge_error_retryable),
        wait=wait_exponential_jitter(
            initial=INITIAL_WAIT_SECONDS,
            exp_base=BACKOFF_BASE,
            max=MAX_WAIT_SECONDS,
            jitter=INITIAL_WAIT_SECONDS,
        ),
        stop=stop_after_delay(max_elapsed_seconds),
        before_sleep=_log_retry(pr_number),
        sleep=sleep or time.sleep,
        reraise=True,
    )
    try:
        retrying(merge, pr_number)
    except (GithubException, DeadlineExceededError) as exc:
        logger.error("[merge] failed to merge PR #%s: %s", pr_number, exc)
        raise
    logger.info("[merge] merged PR #%s", pr_number)
