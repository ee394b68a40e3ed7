"""Tests for the Redis-backed stores against a mocked client."""

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
import redis

from riskguard.exceptions import StorageError
from riskguard.models.alert import Alert, AlertStatus
from riskguard.models.fraud_score import RiskLevel, ScoreResult
from riskguard.models.transaction import TransactionRecord
from riskguard.storage.redis_store import (
    RedisAccountProfileStore,
    RedisAlertRepository,
    RedisTransactionRepository,
)
from riskguard.storage.retry import RetryPolicy, call_with_retry

from tests.builders import make_transaction


@pytest.fixture
def client():
    return MagicMock()


def make_alert(alert_id="ALERT0001", status=AlertStatus.PENDING):
    txn = make_transaction()
    return Alert(
        alert_id=alert_id,
        transaction=txn,
        score_result=ScoreResult(txn.transaction_id, 0.8),
        risk_level=RiskLevel.CRITICAL,
        status=status,
        created_at=datetime(2026, 3, 10, 14, 0, tzinfo=timezone.utc),
    )


def test_redis_errors_become_storage_errors(client):
    client.exists.side_effect = redis.ConnectionError("connection refused")

    with pytest.raises(StorageError, match="transaction exists"):
        RedisTransactionRepository(client).exists("TXN001")


def transaction_pipeline(client, existing=0):
    pipe = MagicMock()
    pipe.exists.return_value = existing
    client.pipeline.return_value.__enter__.return_value = pipe
    return pipe


def test_insert_skips_existing_record(client):
    pipe = transaction_pipeline(client, existing=1)
    record = TransactionRecord(make_transaction(), 0.1, "LOW")

    assert RedisTransactionRepository(client).insert(record) is False
    pipe.unwatch.assert_called_once()
    pipe.multi.assert_not_called()
    pipe.execute.assert_not_called()


def test_insert_writes_record_and_indexes_together(client):
    pipe = transaction_pipeline(client)
    record = TransactionRecord(make_transaction(), 0.25, "LOW")

    assert RedisTransactionRepository(client).insert(record) is True

    pipe.watch.assert_called_once_with("txn:TXN001")
    pipe.multi.assert_called_once()
    key = pipe.hset.call_args[0][0]
    data = pipe.hset.call_args[1]["mapping"]["data"]
    assert key == "txn:TXN001"
    assert json.loads(data)["mlScore"] == 0.25
    pipe.incrbyfloat.assert_called_once_with("transactions:score_total", 0.25)
    zadd_keys = [c[0][0] for c in pipe.zadd.call_args_list]
    assert zadd_keys == ["transactions:recent", "account:ACC001:transactions"]
    pipe.execute.assert_called_once()


def test_failed_insert_is_written_in_full_on_retry(client):
    # A failed EXEC applies nothing, so the record is still absent on retry
    pipe = transaction_pipeline(client)
    pipe.execute.side_effect = [redis.ConnectionError("connection reset"), [1]]
    record = TransactionRecord(make_transaction(), 0.25, "LOW")
    policy = RetryPolicy(max_attempts=2, backoff_seconds=0.0)

    inserted = call_with_retry(
        RedisTransactionRepository(client).insert, record, policy=policy
    )

    assert inserted is True
    assert pipe.execute.call_count == 2
    assert pipe.hset.call_count == 2
    assert pipe.incrbyfloat.call_count == 2
    zadd_keys = [c[0][0] for c in pipe.zadd.call_args_list]
    assert zadd_keys.count("transactions:recent") == 2
    assert zadd_keys.count("account:ACC001:transactions") == 2


def test_insert_concurrent_writer_wins(client):
    pipe = transaction_pipeline(client)
    pipe.exists.side_effect = [0, 1]
    pipe.execute.side_effect = redis.WatchError()
    record = TransactionRecord(make_transaction(), 0.25, "LOW")

    assert RedisTransactionRepository(client).insert(record) is False
    assert pipe.execute.call_count == 1


def test_average_score(client):
    client.pipeline.return_value.execute.return_value = ["1.5", 3]
    assert RedisTransactionRepository(client).average_score() == pytest.approx(0.5)


def test_missing_profile(client):
    client.hget.return_value = None
    assert RedisAccountProfileStore(client).get("ACC001") is None


def test_alert_insert_claims_transaction_index(client):
    client.set.return_value = True
    alert = make_alert()

    stored = RedisAlertRepository(client).insert_if_absent(alert)

    assert stored is alert
    client.set.assert_called_once_with("alert:by_txn:TXN001", "ALERT0001", nx=True)
    pipe = client.pipeline.return_value
    pipe.hset.assert_called_once()
    pipe.execute.assert_called_once()


def test_alert_insert_returns_existing(client):
    existing = make_alert("ALERT-EXISTING")
    client.set.return_value = None
    client.get.return_value = "ALERT-EXISTING"
    client.hget.return_value = json.dumps(existing.to_dict())

    stored = RedisAlertRepository(client).insert_if_absent(make_alert("ALERT-NEW"))

    assert stored.alert_id == "ALERT-EXISTING"
    client.pipeline.assert_not_called()


def watched_pipeline(client, current_status):
    pipe = MagicMock()
    pipe.hget.return_value = current_status
    client.pipeline.return_value.__enter__.return_value = pipe
    return pipe


def test_compare_and_update_rejects_stale_status(client):
    pipe = watched_pipeline(client, "APPROVED")
    reviewed = make_alert(status=AlertStatus.BLOCKED)

    applied = RedisAlertRepository(client).compare_and_update(
        reviewed, AlertStatus.PENDING
    )

    assert applied is False
    pipe.unwatch.assert_called_once()
    pipe.execute.assert_not_called()


def test_compare_and_update_moves_status_index(client):
    pipe = watched_pipeline(client, "PENDING")
    reviewed = make_alert(status=AlertStatus.BLOCKED)

    applied = RedisAlertRepository(client).compare_and_update(
        reviewed, AlertStatus.PENDING
    )

    assert applied is True
    pipe.multi.assert_called_once()
    pipe.zrem.assert_called_once_with("alerts:status:PENDING", "ALERT0001")
    pipe.execute.assert_called_once()


def test_compare_and_update_retries_on_watch_error(client):
    pipe = watched_pipeline(client, "PENDING")
    pipe.execute.side_effect = [redis.WatchError(), None]

    applied = RedisAlertRepository(client).compare_and_update(
        make_alert(status=AlertStatus.APPROVED), AlertStatus.PENDING
    )

    assert applied is True
    assert pipe.execute.call_count == 2


def test_count_by_status_and_risk(client):
    client.zrange.return_value = ["A1", "A2", "A3"]
    client.pipeline.return_value.execute.return_value = [1.0, None, 2.0]

    count = RedisAlertRepository(client).count(AlertStatus.PENDING, RiskLevel.HIGH)

    assert count == 2
    client.zrange.assert_called_once_with("alerts:status:PENDING", 0, -1)
