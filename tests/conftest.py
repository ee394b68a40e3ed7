"""
Shared fixtures for the pipeline tests.
"""

from datetime import datetime, timedelta

import pytest

from riskguard.alerting.alert_manager import AlertManager
from riskguard.processing.transaction_processor import TransactionProcessor
from riskguard.storage import build_stores
from riskguard.storage.memory import (
    InMemoryAlertRepository,
    InMemoryTransactionRepository,
)
from riskguard.storage.retry import RetryPolicy

from tests.builders import BASE_TIME


class FakeClock:
    """Deterministic clock that advances one second per reading."""

    def __init__(self, start: datetime = BASE_TIME):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + timedelta(seconds=1)
        return current


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fast_retry():
    return RetryPolicy(max_attempts=2, backoff_seconds=0.0, timeout_seconds=1.0)


@pytest.fixture
def alert_manager(clock, fast_retry):
    return AlertManager(
        InMemoryAlertRepository(),
        InMemoryTransactionRepository(),
        retry_policy=fast_retry,
        clock=clock,
    )


@pytest.fixture
def processor(clock, fast_retry):
    stores = build_stores({"backend": "memory"})
    manager = AlertManager(
        stores.alerts, stores.transactions, retry_policy=fast_retry, clock=clock
    )
    return TransactionProcessor(
        {"kafka_topic_dead_letter": "transactions-dead-letter", "max_workers": 4},
        stores,
        alert_manager=manager,
        retry_policy=fast_retry,
    )
