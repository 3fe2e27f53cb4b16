"""
Bounded retries with linear backoff, independent of what is being retried.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

from scenecast.common.errors import DeadlineExceeded, RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

BackoffFunction = Callable[[int], float]
SleepFunction = Callable[[float], None]


def linear_backoff(step_seconds: float = 2.0) -> BackoffFunction:
    """
    Delay before attempt ``k``: ``(k - 1) * step_seconds``.

    Linear on purpose; attempts 2 and 3 wait 2s and 4s with the default step.
    """

    def _delay(attempt: int) -> float:
        return max(attempt - 1, 0) * step_seconds

    return _delay


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff: BackoffFunction = field(default_factory=linear_backoff)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")


class Deadline:
    """
    Wall-clock budget for one generation run, optionally cancelled early.

    A deadline made with :meth:`child` also expires (or counts as cancelled)
    when its parent does.
    """

    def __init__(
        self,
        timeout: float | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        parent: "Deadline | None" = None,
    ) -> None:
        self._clock = clock
        self._expires_at = None if timeout is None else clock() + timeout
        self._cancelled = threading.Event()
        self._parent = parent

    def child(self, timeout: float | None = None) -> "Deadline":
        return Deadline(timeout, clock=self._clock, parent=self)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    @property
    def expired(self) -> bool:
        if self.cancelled:
            return True
        if self._expires_at is not None and self._clock() >= self._expires_at:
            return True
        return self._parent is not None and self._parent.expired

    def remaining(self) -> float | None:
        """Seconds left, or ``None`` for an unbounded deadline."""
        candidates = []
        if self._expires_at is not None:
            candidates.append(max(self._expires_at - self._clock(), 0.0))
        if self._parent is not None:
            inherited = self._parent.remaining()
            if inherited is not None:
                candidates.append(inherited)
        return min(candidates) if candidates else None

    def check(self) -> None:
        if self.cancelled:
            raise DeadlineExceeded("generation was cancelled")
        if self.expired:
            raise DeadlineExceeded("generation deadline exceeded")


def with_retry(
    attempt_fn: Callable[[], T],
    policy: RetryPolicy | None = None,
    *,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: SleepFunction = time.sleep,
    deadline: Deadline | None = None,
    label: str = "call",
) -> T:
    """
    Run ``attempt_fn`` until it succeeds or the policy's attempts are used up.

    Errors outside ``retry_on`` and :class:`DeadlineExceeded` propagate at once.
    Exhaustion raises :class:`RetryExhaustedError` chained to the last error.
    """
    policy = policy or RetryPolicy()
    last_error: BaseException | None = None

    for attempt in range(1, policy.max_attempts + 1):
        if attempt > 1:
            delay = policy.backoff(attempt)
            if deadline is not None:
                remaining = deadline.remaining()
                if remaining is not None:
                    delay = min(delay, remaining)
            logger.info("Retrying %s (attempt %d/%d) in %.1fs.", label, attempt, policy.max_attempts, delay)
            if delay > 0:
                sleep(delay)

        if deadline is not None:
            deadline.check()

        try:
            result = attempt_fn()
        except DeadlineExceeded:
            raise
        except retry_on as exc:
            if deadline is not None and deadline.cancelled:
                raise DeadlineExceeded("generation was cancelled") from exc
            last_error = exc
            logger.warning("%s attempt %d/%d failed: %s", label, attempt, policy.max_attempts, exc)
            continue

        if attempt > 1:
            logger.info("%s succeeded on attempt %d.", label, attempt)
        return result

    assert last_error is not None
    raise RetryExhaustedError(policy.max_attempts, last_error, label=label) from last_error
