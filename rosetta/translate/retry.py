"""
Retry budget and backoff schedule for remote calls.

Two limits apply to every retried operation:

- The sequential-error budget: at most ``max_sequential_errors`` retryable
  failures in a row. The next one is fatal. A success resets the count.
- The backoff schedule: before each retry the caller sleeps for an
  exponentially growing interval plus random jitter (tenacity's
  ``wait_exponential`` + ``wait_random``), and gives up once
  ``max_elapsed`` seconds have passed since the first attempt.

Rate-limit failures of a run only consume the budget when
``count_rate_limits`` is set; otherwise only the schedule bounds them.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_delay,
    wait_exponential,
    wait_random,
)

from rosetta.errors import TRANSIENT_ERRORS, RemoteConnectionError, RemoteError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], None]


@dataclass(frozen=True)
class RetryPolicy:
    """Retry and polling settings for a remote session.

    Defaults mirror a typical exponential backoff: start at half a second,
    grow by 1.5x up to a minute between attempts, give up after 15 minutes.
    """
    max_sequential_errors: int = 5
    initial_interval: float = 0.5
    multiplier: float = 1.5
    max_interval: float = 60.0
    max_elapsed: float = 900.0
    jitter: float = 0.5
    poll_interval: float = 1.0
    count_rate_limits: bool = False

    def wait(self):
        return wait_exponential(
            multiplier=self.initial_interval,
            max=self.max_interval,
            exp_base=self.multiplier,
        ) + wait_random(0, self.jitter)


class RetryableError(Exception):
    """Internal signal that the current attempt should be retried."""


class RateLimited(RetryableError):
    """The remote run failed because of rate limiting."""


class RetryBudget:
    """Counts sequential retryable failures against a limit."""

    def __init__(self, limit: int):
        self.limit = limit
        self.sequential_errors = 0

    def charge(self, message: str, fatal: type[RemoteError], cause: BaseException | None = None) -> None:
        """Record one failure, or raise ``fatal`` if the budget is used up."""
        if self.sequential_errors >= self.limit:
            raise fatal(f"{message} (giving up after {self.sequential_errors} sequential errors)") from cause
        logger.warning(message)
        self.sequential_errors += 1

    def reset(self) -> None:
        self.sequential_errors = 0


def give_up(fatal: type[RemoteError], what: str):
    """Build a tenacity ``retry_error_callback`` raising ``fatal``."""
    def callback(retry_state):
        cause = retry_state.outcome.exception()
        raise fatal(f"{what}: backoff exhausted ({cause})") from cause
    return callback


def retrying(policy: RetryPolicy, fatal: type[RemoteError], what: str, sleep: Sleep = time.sleep) -> Retrying:
    """A tenacity controller retrying RetryableError on the policy's schedule."""
    return Retrying(
        retry=retry_if_exception_type(RetryableError),
        stop=stop_after_delay(policy.max_elapsed),
        wait=policy.wait(),
        sleep=sleep,
        before_sleep=before_sleep_log(logger, logging.INFO),
        retry_error_callback=give_up(fatal, what),
    )


def call_with_retries(fn: Callable[[], T], what: str, policy: RetryPolicy, sleep: Sleep = time.sleep) -> T:
    """Call ``fn``, retrying transport and deserialization failures.

    Every other error propagates on the first occurrence. When the budget or
    the schedule runs out a RemoteConnectionError is raised, chained to the
    last underlying failure.
    """
    budget = RetryBudget(policy.max_sequential_errors)

    def attempt() -> T:
        try:
            return fn()
        except TRANSIENT_ERRORS as e:
            budget.charge(f"{what}: {e}", RemoteConnectionError, cause=e)
            raise RetryableError(str(e)) from e

    return retrying(policy, RemoteConnectionError, what, sleep)(attempt)
