"""
Retry with exponential backoff.

RetryExecutor knows nothing about git: it calls a zero-argument operation,
treats a raised exception as a failed attempt, and sleeps between attempts
according to a RetryPolicy. Only network-facing steps (fetch, push,
rebase-pull) go through it; local filesystem work fails fast.

Example:
    >>> policy = RetryPolicy(max_attempts=3, initial_delay=5, backoff_multiplier=2)
    >>> result = RetryExecutor().run(lambda: store.fetch("origin", "main"), policy)
    >>> if not result.success:
    ...     print(f"gave up after {result.attempts} attempts: {result.last_error}")
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy(BaseModel):
    """How many times to try and how long to wait in between."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1, description="Total attempts, including the first")
    initial_delay: float = Field(default=5.0, ge=0.0, description="Seconds before the 2nd attempt")
    backoff_multiplier: float = Field(
        default=2.0, ge=1.0, description="Factor applied to the delay after each failure"
    )

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        return self.initial_delay * self.backoff_multiplier ** (attempt - 1)


@dataclass
class RetryResult(Generic[T]):
    """
    Outcome of a retried operation.

    Attributes:
        success: Whether any attempt succeeded.
        value: Return value of the successful attempt.
        attempts: Number of attempts made.
        last_error: Exception from the final failed attempt.
        delays: Seconds slept between attempts, in order.
    """

    success: bool
    attempts: int
    value: T | None = None
    last_error: BaseException | None = None
    delays: list[float] = field(default_factory=list)

    @property
    def error_message(self) -> str:
        if self.last_error is None:
            return ""
        stderr = getattr(self.last_error, "stderr", "")
        return stderr or str(self.last_error)


class RetryExecutor:
    """Runs operations under a RetryPolicy."""

    def __init__(self, sleep: Callable[[float], None] = time.sleep) -> None:
        self._sleep = sleep

    def run(
        self,
        operation: Callable[[], T],
        policy: RetryPolicy,
        *,
        description: str = "",
        retry_on: tuple[type[BaseException], ...] = (Exception,),
    ) -> RetryResult[T]:
        """
        Call ``operation`` until it succeeds or attempts run out.

        Args:
            operation: Zero-argument callable; raising means failure.
            policy: Attempt count and backoff.
            description: Label for log lines.
            retry_on: Exception types counted as a failed attempt. Anything
                else propagates immediately.

        Returns:
            RetryResult with the value or the last error.
        """
        label = description or getattr(operation, "__name__", "operation")
        delays: list[float] = []
        last_error: BaseException | None = None

        for attempt in range(1, policy.max_attempts + 1):
            logger.info("Attempt %d of %d: %s", attempt, policy.max_attempts, label)
            try:
                value = operation()
            except retry_on as e:
                last_error = e
            else:
                return RetryResult(success=True, attempts=attempt, value=value, delays=delays)

            if attempt == policy.max_attempts:
                break

            delay = policy.delay_for(attempt)
            logger.warning("%s failed (%s), retrying in %gs...", label, last_error, delay)
            delays.append(delay)
            self._sleep(delay)

        logger.error("All %d attempts failed for: %s", policy.max_attempts, label)
        return RetryResult(
            success=False,
            attempts=policy.max_attempts,
            last_error=last_error,
            delays=delays,
        )
