"""
Redis-backed stores for transactions, alerts and account profiles.

Key layout:
    txn:<id>                       hash, "data" holds the JSON record
    transactions:recent            zset, id scored by processing time
    transactions:score_total       float, running sum of scores
    account:<id>:transactions      zset, id scored by transaction time
    profile:<account_id>           hash, "data" holds the JSON profile
    alert:<id>                     hash, "data", "status", "risk_level"
    alert:by_txn:<transaction_id>  string, alert id (SET NX)
    alerts:all                     zset, alert id scored by creation time
    alerts:status:<STATUS>         zset, same scores, one per status
    alerts:risk:<LEVEL>            zset, same scores, one per risk level
    alerts:actions                 list, JSON review actions, newest first
"""

import json
import logging
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

import redis

from ..exceptions import StorageError
from ..models.account_profile import AccountProfile
from ..models.alert import Alert, AlertStatus, ReviewAction
from ..models.fraud_score import RiskLevel
from ..models.transaction import Transaction, TransactionRecord
from .base import AccountProfileStore, AlertRepository, TransactionRepository

logger = logging.getLogger(__name__)

RECENT_TRANSACTIONS_KEY = "transactions:recent"
SCORE_TOTAL_KEY = "transactions:score_total"
ALL_ALERTS_KEY = "alerts:all"
ACTIONS_KEY = "alerts:actions"


def create_redis_client(config: Optional[Dict[str, Any]] = None) -> redis.Redis:
    """Build a Redis client with socket timeouts so calls cannot hang."""
    config = config or {}
    return redis.Redis(
        host=config.get("host", "localhost"),
        port=int(config.get("port", 6379)),
        db=int(config.get("db", 0)),
        password=config.get("password"),
        socket_timeout=float(config.get("socket_timeout", 2.0)),
        socket_connect_timeout=float(config.get("socket_connect_timeout", 2.0)),
        decode_responses=True,
    )


@contextmanager
def _redis_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except redis.RedisError as e:
        raise StorageError(f"Redis {operation} failed: {e}") from e


def _alert_key(alert_id: str) -> str:
    return f"alert:{alert_id}"


def _status_key(status: AlertStatus) -> str:
    return f"alerts:status:{status.value}"


def _risk_key(risk_level: RiskLevel) -> str:
    return f"alerts:risk:{risk_level.value}"


class RedisAccountProfileStore(AccountProfileStore):
    def __init__(self, client: redis.Redis, ttl_seconds: Optional[int] = None):
        self.redis = client
        self.ttl_seconds = ttl_seconds

    def get(self, account_id: str) -> Optional[AccountProfile]:
        with _redis_errors("profile get"):
            data = self.redis.hget(f"profile:{account_id}", "data")
        return AccountProfile.from_dict(json.loads(data)) if data else None

    def put(self, profile: AccountProfile) -> None:
        key = f"profile:{profile.account_id}"
        with _redis_errors("profile put"):
            pipe = self.redis.pipeline()
            pipe.hset(key, mapping={"data": json.dumps(profile.to_dict())})
            if self.ttl_seconds:
                pipe.expire(key, self.ttl_seconds)
            pipe.execute()


class RedisTransactionRepository(TransactionRepository):
    def __init__(
        self,
        client: redis.Redis,
        history_ttl_seconds: int = 86400,
        max_insert_attempts: int = 3,
    ):
        self.redis = client
        self.history_ttl_seconds = history_ttl_seconds
        self.max_insert_attempts = max_insert_attempts

    def exists(self, transaction_id: str) -> bool:
        with _redis_errors("transaction exists"):
            return bool(self.redis.exists(f"txn:{transaction_id}"))

    def insert(self, record: TransactionRecord) -> bool:
        transaction = record.transaction
        transaction_id = transaction.transaction_id
        key = f"txn:{transaction_id}"
        history_key = f"account:{transaction.account_id}:transactions"

        # The record and its indexes are written in one MULTI so a failed
        # attempt leaves nothing behind and a retry writes everything
        with _redis_errors("transaction insert"):
            for _ in range(self.max_insert_attempts):
                with self.redis.pipeline() as pipe:
                    try:
                        pipe.watch(key)
                        if pipe.exists(key):
                            pipe.unwatch()
                            return False

                        pipe.multi()
                        pipe.hset(key, mapping={"data": json.dumps(record.to_dict())})
                        pipe.zadd(
                            RECENT_TRANSACTIONS_KEY,
                            {transaction_id: record.processed_at.timestamp()},
                        )
                        pipe.incrbyfloat(SCORE_TOTAL_KEY, record.score)
                        pipe.zadd(
                            history_key,
                            {transaction_id: transaction.timestamp.timestamp()},
                        )
                        pipe.expire(history_key, self.history_ttl_seconds)
                        pipe.execute()
                        return True
                    except redis.WatchError:
                        logger.debug(f"Transaction {key} written concurrently")
                        continue
        return False

    def get(self, transaction_id: str) -> Optional[TransactionRecord]:
        with _redis_errors("transaction get"):
            data = self.redis.hget(f"txn:{transaction_id}", "data")
        return TransactionRecord.from_dict(json.loads(data)) if data else None

    def _load_many(self, transaction_ids: List[str]) -> List[TransactionRecord]:
        if not transaction_ids:
            return []
        with _redis_errors("transaction load"):
            pipe = self.redis.pipeline()
            for transaction_id in transaction_ids:
                pipe.hget(f"txn:{transaction_id}", "data")
            rows = pipe.execute()
        return [TransactionRecord.from_dict(json.loads(row)) for row in rows if row]

    def recent_for_account(
        self, account_id: str, start: datetime, end: datetime
    ) -> List[Transaction]:
        with _redis_errors("account history"):
            ids = self.redis.zrangebyscore(
                f"account:{account_id}:transactions",
                start.timestamp(),
                end.timestamp(),
            )
        return [record.transaction for record in self._load_many(ids)]

    def list_recent(self, limit: int = 100) -> List[TransactionRecord]:
        with _redis_errors("recent transactions"):
            ids = self.redis.zrevrange(RECENT_TRANSACTIONS_KEY, 0, limit - 1)
        return self._load_many(ids)

    def count(self) -> int:
        with _redis_errors("transaction count"):
            return int(self.redis.zcard(RECENT_TRANSACTIONS_KEY))

    def average_score(self) -> float:
        with _redis_errors("average score"):
            pipe = self.redis.pipeline()
            pipe.get(SCORE_TOTAL_KEY)
            pipe.zcard(RECENT_TRANSACTIONS_KEY)
            total, count = pipe.execute()
        if not count:
            return 0.0
        return float(total or 0.0) / int(count)


class RedisAlertRepository(AlertRepository):
    def __init__(self, client: redis.Redis, max_update_attempts: int = 3):
        self.redis = client
        self.max_update_attempts = max_update_attempts

    def _write(self, pipe: Any, alert: Alert) -> None:
        created = alert.created_at.timestamp()
        pipe.hset(
            _alert_key(alert.alert_id),
            mapping={
                "data": json.dumps(alert.to_dict()),
                "status": alert.status.value,
                "risk_level": alert.risk_level.value,
            },
        )
        pipe.zadd(ALL_ALERTS_KEY, {alert.alert_id: created})
        pipe.zadd(_status_key(alert.status), {alert.alert_id: created})
        pipe.zadd(_risk_key(alert.risk_level), {alert.alert_id: created})

    def insert_if_absent(self, alert: Alert) -> Alert:
        index_key = f"alert:by_txn:{alert.transaction_id}"

        with _redis_errors("alert insert"):
            claimed = self.redis.set(index_key, alert.alert_id, nx=True)
            if not claimed:
                existing_id = self.redis.get(index_key)
                existing = self.get(existing_id) if existing_id else None
                if existing is not None:
                    return existing
                # Index written by an attempt that died before storing the alert
                alert = replace(alert, alert_id=existing_id or alert.alert_id)

            pipe = self.redis.pipeline()
            self._write(pipe, alert)
            pipe.execute()
        return alert

    def get(self, alert_id: str) -> Optional[Alert]:
        with _redis_errors("alert get"):
            data = self.redis.hget(_alert_key(alert_id), "data")
        return Alert.from_dict(json.loads(data)) if data else None

    def get_by_transaction(self, transaction_id: str) -> Optional[Alert]:
        with _redis_errors("alert lookup"):
            alert_id = self.redis.get(f"alert:by_txn:{transaction_id}")
        return self.get(alert_id) if alert_id else None

    def compare_and_update(self, alert: Alert, expected_status: AlertStatus) -> bool:
        key = _alert_key(alert.alert_id)

        with _redis_errors("alert update"):
            for _ in range(self.max_update_attempts):
                with self.redis.pipeline() as pipe:
                    try:
                        pipe.watch(key)
                        current = pipe.hget(key, "status")
                        if current != expected_status.value:
                            pipe.unwatch()
                            return False

                        pipe.multi()
                        pipe.zrem(_status_key(expected_status), alert.alert_id)
                        self._write(pipe, alert)
                        pipe.execute()
                        return True
                    except redis.WatchError:
                        logger.debug(f"Alert {alert.alert_id} changed during update")
                        continue
        return False

    def _load_many(self, alert_ids: List[str]) -> List[Alert]:
        if not alert_ids:
            return []
        with _redis_errors("alert load"):
            pipe = self.redis.pipeline()
            for alert_id in alert_ids:
                pipe.hget(_alert_key(alert_id), "data")
            rows = pipe.execute()
        return [Alert.from_dict(json.loads(row)) for row in rows if row]

    def list_alerts(
        self, status: Optional[AlertStatus] = None, limit: Optional[int] = None
    ) -> List[Alert]:
        key = _status_key(status) if status else ALL_ALERTS_KEY
        end = limit - 1 if limit else -1
        with _redis_errors("alert list"):
            ids = self.redis.zrevrange(key, 0, end)
        return self._load_many(ids)

    def count(
        self,
        status: Optional[AlertStatus] = None,
        risk_level: Optional[RiskLevel] = None,
    ) -> int:
        with _redis_errors("alert count"):
            if status and risk_level:
                ids = self.redis.zrange(_status_key(status), 0, -1)
                if not ids:
                    return 0
                pipe = self.redis.pipeline()
                for alert_id in ids:
                    pipe.zscore(_risk_key(risk_level), alert_id)
                return sum(1 for hit in pipe.execute() if hit is not None)
            if status:
                return int(self.redis.zcard(_status_key(status)))
            if risk_level:
                return int(self.redis.zcard(_risk_key(risk_level)))
            return int(self.redis.zcard(ALL_ALERTS_KEY))

    def append_action(self, action: ReviewAction) -> None:
        with _redis_errors("action append"):
            self.redis.lpush(ACTIONS_KEY, json.dumps(action.to_dict()))

    def list_actions(self, limit: int = 100) -> List[ReviewAction]:
        with _redis_errors("action list"):
            rows = self.redis.lrange(ACTIONS_KEY, 0, limit - 1)
        return [ReviewAction.from_dict(json.loads(row)) for row in rows]
