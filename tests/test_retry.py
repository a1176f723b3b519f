"""
Tests for RetryPolicy and RetryExecutor.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from helpers import RecordingSleep
from dotsync.core.retry import RetryExecutor, RetryPolicy
from dotsync.core.vcs import GitError


class Flaky:
    """Fails ``failures`` times, then returns ``value``."""

    def __init__(self, failures: int, value: str = "ok", error: Exception | None = None) -> None:
        self.failures = failures
        self.value = value
        self.error = error or GitError("network down", stderr="fatal: unable to access")
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.value


class TestRetryPolicy:
    def test_defaults(self) -> None:
        policy = RetryPolicy()

        assert policy.max_attempts == 3
        assert policy.initial_delay == 5.0
        assert policy.backoff_multiplier == 2.0

    def test_delay_doubles(self) -> None:
        policy = RetryPolicy(max_attempts=5, initial_delay=5, backoff_multiplier=2)

        assert [policy.delay_for(n) for n in range(1, 5)] == [5, 10, 20, 40]

    def test_rejects_zero_attempts(self) -> None:
        with pytest.raises(ValidationError):
            RetryPolicy(max_attempts=0)

    def test_is_frozen(self) -> None:
        policy = RetryPolicy()
        with pytest.raises(ValidationError):
            policy.max_attempts = 10


class TestRetryExecutor:
    """Tests for the retry loop itself."""

    def test_permanent_failure_delay_sequence(self) -> None:
        """max=3, initial=5, mult=2 sleeps exactly 5s then 10s."""
        sleep = RecordingSleep()
        operation = Flaky(failures=99)

        result = RetryExecutor(sleep=sleep).run(
            operation, RetryPolicy(max_attempts=3, initial_delay=5, backoff_multiplier=2)
        )

        assert not result.success
        assert result.attempts == 3
        assert operation.calls == 3
        assert sleep.calls == [5, 10]
        assert result.delays == [5, 10]
        assert result.error_message == "fatal: unable to access"

    def test_success_first_try_never_sleeps(self) -> None:
        sleep = RecordingSleep()

        result = RetryExecutor(sleep=sleep).run(Flaky(failures=0, value="sha"), RetryPolicy())

        assert result.success
        assert result.value == "sha"
        assert result.attempts == 1
        assert sleep.calls == []

    def test_success_after_one_failure(self) -> None:
        sleep = RecordingSleep()

        result = RetryExecutor(sleep=sleep).run(Flaky(failures=1), RetryPolicy())

        assert result.success
        assert result.attempts == 2
        assert sleep.calls == [5]

    def test_single_attempt_policy(self) -> None:
        sleep = RecordingSleep()

        result = RetryExecutor(sleep=sleep).run(Flaky(failures=1), RetryPolicy(max_attempts=1))

        assert not result.success
        assert result.attempts == 1
        assert sleep.calls == []

    def test_unlisted_exceptions_propagate(self) -> None:
        operation = Flaky(failures=1, error=KeyError("bug"))

        with pytest.raises(KeyError):
            RetryExecutor(sleep=RecordingSleep()).run(
                operation, RetryPolicy(), retry_on=(GitError,)
            )

        assert operation.calls == 1

    def test_none_is_a_valid_value(self) -> None:
        result = RetryExecutor(sleep=RecordingSleep()).run(lambda: None, RetryPolicy())

        assert result.success
        assert result.value is None

    def test_error_message_falls_back_to_str(self) -> None:
        result = RetryExecutor(sleep=RecordingSleep()).run(
            Flaky(failures=99, error=RuntimeError("plain")), RetryPolicy(max_attempts=2)
        )

        assert result.error_message == "plain"
