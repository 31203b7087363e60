"""Bounded exponential-backoff executor shared by the deploy and read loops."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

import structlog
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from charmsync.core.errors import OperationCancelledError

logger = structlog.get_logger()

T = TypeVar("T")

AttemptHook = Callable[[BaseException, int, float], None]


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff parameters: 1s initial delay, doubling, 30 attempts by default."""

    attempts: int = 30
    initial_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float | None = None

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        from charmsync.config.settings import get_settings

        s = get_settings()
        return cls(
            attempts=s.retry_attempts,
            initial_delay=s.retry_initial_delay,
            multiplier=s.retry_backoff_multiplier,
            max_delay=s.retry_max_delay,
        )

    def wait(self) -> wait_exponential:
        if self.max_delay is None:
            return wait_exponential(multiplier=self.initial_delay, exp_base=self.multiplier)
        return wait_exponential(
            multiplier=self.initial_delay,
            exp_base=self.multiplier,
            max=self.max_delay,
        )


def call_with_retry(
    operation: Callable[[], T],
    *,
    is_retryable: Callable[[BaseException], bool],
    on_attempt: AttemptHook | None = None,
    policy: RetryPolicy | None = None,
    cancel: threading.Event | None = None,
    description: str = "operation",
) -> T:
    """
    Run ``operation`` until it succeeds, fails fatally, or attempts run out.

    Args:
        operation: Zero-argument callable performing one attempt
        is_retryable: Predicate deciding whether a raised error is retried
        on_attempt: Called with (error, attempt number, next delay) before
            each backoff sleep
        policy: Backoff parameters, defaults to the configured policy
        cancel: Optional event; checked before every attempt and while
            sleeping. When set, ``OperationCancelledError`` is raised.
        description: Label used in logs and in the cancellation error

    Returns:
        Whatever ``operation`` returns on its first successful attempt.

    Raises:
        The last error raised by ``operation`` when it is fatal or once the
        attempts are exhausted; ``OperationCancelledError`` on cancellation.
    """
    policy = policy or RetryPolicy.from_settings()

    def _check_cancelled(retry_state: RetryCallState) -> None:
        if cancel is not None and cancel.is_set():
            logger.info(
                "retry_cancelled",
                operation=description,
                attempt=retry_state.attempt_number,
            )
            raise OperationCancelledError(f"{description} cancelled")

    def _sleep(seconds: float) -> None:
        if cancel is None:
            time.sleep(seconds)
            return
        if cancel.wait(seconds):
            logger.info("retry_cancelled", operation=description)
            raise OperationCancelledError(f"{description} cancelled")

    def _before_sleep(retry_state: RetryCallState) -> None:
        if on_attempt is None or retry_state.outcome is None:
            return
        error = retry_state.outcome.exception()
        if error is not None:
            next_delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
            on_attempt(error, retry_state.attempt_number, next_delay)

    retrying = Retrying(
        retry=retry_if_exception(is_retryable),
        stop=stop_after_attempt(policy.attempts),
        wait=policy.wait(),
        sleep=_sleep,
        before=_check_cancelled,
        before_sleep=_before_sleep,
        reraise=True,
    )
    return retrying(operation)
