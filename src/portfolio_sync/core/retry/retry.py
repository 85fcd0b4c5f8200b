"""
Retry Mechanism.

Bounded retry for async network calls. Every attempt gets a fresh coroutine;
only exceptions listed as retryable lead to another attempt.
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Tuple, Type, TypeVar

from ..logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

RetryCallback = Callable[[int, Exception, float], None]


class RetryStrategy(str, Enum):
    """How the wait between attempts grows."""
    FIXED = "fixed"      # same delay every time
    LINEAR = "linear"    # delay * attempt


@dataclass
class RetryConfig:
    """
    Retry policy for one call.

    Attributes:
        max_retries: Attempts allowed after the first one
        delay: Base wait in seconds between attempts
        strategy: FIXED or LINEAR growth of the wait
        retryable_exceptions: Exception types worth another attempt
        on_retry: Hook called as (attempt, error, wait) before each wait
        operation_name: Label for log lines, e.g. "GET /balances"
    """
    max_retries: int = 2
    delay: float = 1.0
    strategy: RetryStrategy = RetryStrategy.FIXED
    retryable_exceptions: Tuple[Type[BaseException], ...] = (Exception,)
    on_retry: Optional[RetryCallback] = None
    operation_name: str = "operation"

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def calculate_delay(self, attempt: int) -> float:
        """Wait after the failed 1-based ``attempt``."""
        if self.strategy == RetryStrategy.LINEAR:
            return self.delay * attempt
        return self.delay

    def should_retry(self, exception: Exception) -> bool:
        return isinstance(exception, self.retryable_exceptions)


@dataclass
class AttemptRecord:
    """One attempt as seen by retry_async."""
    attempt: int
    error: Optional[str] = None
    wait: float = 0.0
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RetryResult:
    """
    Outcome of retry_async.

    ``exception`` holds the error of the last failed attempt; it is kept even
    when a later attempt succeeds.
    """
    success: bool = False
    result: Any = None
    exception: Optional[Exception] = None
    history: List[AttemptRecord] = field(default_factory=list)

    @property
    def attempts(self) -> int:
        return len(self.history)

    @property
    def total_delay(self) -> float:
        return sum(record.wait for record in self.history)


async def retry_async(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    config: Optional[RetryConfig] = None,
    **kwargs: Any,
) -> RetryResult:
    """
    Call ``func(*args, **kwargs)`` until it succeeds or the policy gives up.

    Never raises the call's own errors: the caller inspects the returned
    RetryResult and decides what to raise.

    Example:
        >>> outcome = await retry_async(
        ...     fetch_page, "/balances",
        ...     config=RetryConfig(max_retries=2, retryable_exceptions=(TimeoutError,)),
        ... )
        >>> payload = outcome.result if outcome.success else None
    """
    policy = config or RetryConfig()
    outcome = RetryResult()
    label = policy.operation_name

    for attempt in range(1, policy.max_attempts + 1):
        started = time.monotonic()
        try:
            outcome.result = await func(*args, **kwargs)
        except Exception as e:
            record = AttemptRecord(attempt, error=f"{type(e).__name__}: {e}")
            record.elapsed = time.monotonic() - started
            outcome.history.append(record)
            outcome.exception = e

            if not policy.should_retry(e):
                logger.debug(f"{label}: {record.error} is not retryable")
                return outcome
            if attempt == policy.max_attempts:
                logger.error(f"{label}: giving up after {attempt} attempt(s), last error {record.error}")
                return outcome

            record.wait = policy.calculate_delay(attempt)
            logger.warning(
                f"{label}: attempt {attempt}/{policy.max_attempts} failed ({record.error}), "
                f"retrying in {record.wait:.2f}s"
            )
            if policy.on_retry:
                policy.on_retry(attempt, e, record.wait)
            await asyncio.sleep(record.wait)
            continue

        outcome.history.append(AttemptRecord(attempt, elapsed=time.monotonic() - started))
        outcome.success = True
        return outcome

    return outcome
