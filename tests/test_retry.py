"""Tests for RetryPolicy."""

from __future__ import annotations

import pytest

from coprocessor_indexer.exceptions import (
    CatchUpIncompleteError,
    CatchUpInvariantError,
    CheckpointError,
    HandlerRegistrationError,
    TransactionDataError,
)
from coprocessor_indexer.retry import DEFAULT_MAX_ATTEMPTS, RetryPolicy


def test_default_allows_six_attempts() -> None:
    policy = RetryPolicy()
    assert policy.max_attempts == DEFAULT_MAX_ATTEMPTS == 6
    assert policy.should_retry(5) is True
    assert policy.should_retry(6) is False


def test_delay_for_attempt_exponential() -> None:
    policy = RetryPolicy(base_delay=1.0, max_delay=10.0)
    assert [policy.delay_for_attempt(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 8.0, 10.0]
    assert policy.delay_for_attempt(0) == 0.0


def test_delay_with_jitter_in_range() -> None:
    policy = RetryPolicy(base_delay=2.0, max_delay=10.0, jitter=True)
    for _ in range(20):
        assert 2.0 <= policy.delay_for_attempt(2) <= 6.0


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"max_attempts": 0}, "max_attempts"),
        ({"base_delay": -1.0}, "base_delay and max_delay"),
        ({"base_delay": 10.0, "max_delay": 1.0}, "base_delay must be <= max_delay"),
    ],
)
def test_invalid_configuration_raises(kwargs: dict, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        RetryPolicy(**kwargs)


@pytest.mark.parametrize(
    "error",
    [
        TransactionDataError(3),
        CheckpointError("db down"),
        CatchUpIncompleteError("x", 1, 2),
        RuntimeError("boom"),
    ],
)
def test_transient_errors_are_retryable(error: Exception) -> None:
    assert RetryPolicy.is_retryable(error)


@pytest.mark.parametrize(
    "error",
    [HandlerRegistrationError("dup"), CatchUpInvariantError("x", 101, 100)],
)
def test_fatal_errors_are_not_retryable(error: Exception) -> None:
    assert not RetryPolicy.is_retryable(error)


async def test_wait_before_retry_skips_sleep_without_delay() -> None:
    policy = RetryPolicy(base_delay=0.0, max_delay=0.0)
    await policy.wait_before_retry(3)
