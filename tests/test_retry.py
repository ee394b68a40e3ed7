"""Tests for bounded store retries."""

from unittest.mock import MagicMock

import pytest

from riskguard.exceptions import StorageError
from riskguard.storage.retry import RetryPolicy, call_with_retry


def test_returns_after_transient_failures():
    operation = MagicMock(side_effect=[StorageError("a"), StorageError("b"), "ok"])
    sleeps = []

    result = call_with_retry(
        operation,
        "key",
        policy=RetryPolicy(max_attempts=3, backoff_seconds=0.01, backoff_multiplier=2),
        sleep=sleeps.append,
    )

    assert result == "ok"
    assert operation.call_count == 3
    operation.assert_called_with("key")
    assert sleeps == pytest.approx([0.01, 0.02])


def test_raises_when_attempts_run_out():
    operation = MagicMock(side_effect=StorageError("down"))

    with pytest.raises(StorageError, match="after 3 attempt"):
        call_with_retry(
            operation,
            policy=RetryPolicy(max_attempts=3, backoff_seconds=0.0),
            description="profile get",
            sleep=lambda _: None,
        )
    assert operation.call_count == 3


def test_deadline_stops_retrying():
    operation = MagicMock(side_effect=StorageError("slow"))

    with pytest.raises(StorageError):
        call_with_retry(
            operation,
            policy=RetryPolicy(max_attempts=10, backoff_seconds=1.0, timeout_seconds=0.5),
            sleep=lambda _: None,
        )
    assert operation.call_count == 1


def test_other_errors_are_not_retried():
    operation = MagicMock(side_effect=KeyError("bug"))

    with pytest.raises(KeyError):
        call_with_retry(operation, sleep=lambda _: None)
    assert operation.call_count == 1


def test_policy_from_config():
    policy = RetryPolicy.from_config({"max_attempts": 5, "timeout_seconds": 2})
    assert policy.max_attempts == 5
    assert policy.timeout_seconds == 2.0
    assert policy.backoff_seconds == 0.1


def test_policy_needs_one_attempt():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
