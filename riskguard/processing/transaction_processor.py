"""
Transaction processor for orchestrating the risk scoring pipeline.
"""

import json
import logging
import threading
import time
from collections import OrderedDict
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Any, Optional, Callable, Iterator, Union
from concurrent.futures import ThreadPoolExecutor, as_completed

from kafka import KafkaConsumer
from kafka.errors import KafkaError

from ..alerting.alert_manager import AlertManager
from ..exceptions import InvalidTransactionError, StorageError
from ..models.account_profile import AccountProfile
from ..models.alert import Alert
from ..models.fraud_score import FeatureVector, ScoreResult, RiskLevel
from ..models.reason_code import ReasonCode
from ..models.transaction import Transaction, TransactionRecord
from ..storage import Stores
from ..storage.retry import RetryPolicy, call_with_retry
from .feature_engine import FeatureEngine
from .risk_scorer import RiskScorer


class AccountLocks:
    """One lock per account id, created on demand and dropped when unused."""

    def __init__(self):
        self._locks: Dict[str, threading.Lock] = {}
        self._users: Dict[str, int] = {}
        self._guard = threading.Lock()

    @contextmanager
    def hold(self, account_id: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(account_id, threading.Lock())
            self._users[account_id] = self._users.get(account_id, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._users[account_id] -= 1
                if not self._users[account_id]:
                    del self._users[account_id]
                    del self._locks[account_id]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


@dataclass
class ProcessingResult:
    """Outcome of running one transaction through the pipeline."""

    transaction_id: str
    score: float
    risk_level: RiskLevel
    features: Optional[FeatureVector] = None
    score_result: Optional[ScoreResult] = None
    reasons: List[ReasonCode] = field(default_factory=list)
    alert: Optional[Alert] = None
    alert_created: bool = False
    duplicate: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transactionId": self.transaction_id,
            "features": self.features.to_dict() if self.features else None,
            "mlScore": self.score_result.to_dict()
            if self.score_result
            else {"score": self.score},
            "riskLevel": self.risk_level.value,
            "reasons": [reason.to_dict() for reason in self.reasons],
            "alertCreated": self.alert_created,
            "alertId": self.alert.alert_id if self.alert else None,
            "duplicate": self.duplicate,
        }


class TransactionProcessor:
    """Main transaction processor for the risk scoring pipeline."""

    def __init__(
        self,
        config: Dict[str, Any],
        stores: Stores,
        feature_engine: Optional[FeatureEngine] = None,
        risk_scorer: Optional[RiskScorer] = None,
        alert_manager: Optional[AlertManager] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        """Initialize the transaction processor."""
        self.config = config
        self.logger = logging.getLogger(__name__)

        # Kafka configuration
        self.kafka_config = {
            "bootstrap_servers": config.get(
                "kafka_bootstrap_servers", "localhost:9092"
            ),
            "group_id": config.get("kafka_consumer_group", "fraud-detection-group"),
            "auto_offset_reset": config.get("kafka_auto_offset_reset", "latest"),
            # Offsets are committed after each batch has been processed
            "enable_auto_commit": False,
            "value_deserializer": lambda x: json.loads(x.decode("utf-8")),
        }
        self.topic = config.get("kafka_topic_transactions", "transactions")
        self.dead_letter_topic = config.get("kafka_topic_dead_letter")

        # Processing configuration
        self.max_workers = config.get("max_workers", 4)
        self.batch_size = config.get("batch_size", 100)
        self.batch_timeout = config.get("batch_timeout", 5.0)  # seconds

        # Pipeline components
        self.stores = stores
        self.retry_policy = retry_policy or RetryPolicy()
        self.feature_engine = feature_engine or FeatureEngine()
        self.risk_scorer = risk_scorer or RiskScorer(self.feature_engine.patterns)
        self.alert_manager = alert_manager or AlertManager(
            stores.alerts, stores.transactions, retry_policy=self.retry_policy
        )
        self.account_locks = AccountLocks()
        self.consumer = None
        self.dead_letter_producer = None
        self.running = False

        # Callbacks
        self.result_callback = None
        self.alert_callback = None

        # Metrics
        self._metrics_lock = threading.Lock()
        self.metrics = {
            "transactions_processed": 0,
            "duplicates_skipped": 0,
            "messages_dropped": 0,
            "alerts_triggered": 0,
            "processing_errors": 0,
            "start_time": datetime.now(timezone.utc),
            "last_processed_time": None,
        }

    def initialize(self) -> bool:
        """Connect the Kafka consumer."""
        try:
            self.consumer = KafkaConsumer(**self.kafka_config)
            self.consumer.subscribe([self.topic])
            self.logger.info(f"Transaction processor subscribed to {self.topic}")
            return True
        except KafkaError as e:
            self.logger.error(f"Error initializing transaction processor: {e}")
            return False

    def set_callbacks(
        self,
        result_callback: Callable[[ProcessingResult], None] = None,
        alert_callback: Callable[[Alert], None] = None,
    ):
        """Set callback functions for processing results and new alerts."""
        self.result_callback = result_callback
        self.alert_callback = alert_callback

    def set_dead_letter_producer(self, producer) -> None:
        """Forward messages that fail processing to the dead-letter topic."""
        self.dead_letter_producer = producer

    def _count(self, metric: str, amount: int = 1):
        with self._metrics_lock:
            self.metrics[metric] += amount

    def _store(self, operation: Callable, *args, description: str):
        return call_with_retry(
            operation, *args, policy=self.retry_policy, description=description
        )

    def process_transaction(
        self, payload: Union[Dict[str, Any], Transaction]
    ) -> Optional[ProcessingResult]:
        """Run one transaction through extraction, scoring and alerting.

        Returns None for payloads without a transaction id. Raises
        InvalidTransactionError for malformed payloads and StorageError when
        a store keeps failing; nothing about the transaction is dropped
        silently in either case.
        """
        if isinstance(payload, Transaction):
            transaction = payload
        else:
            if not Transaction.extract_id(payload):
                self._count("messages_dropped")
                self.logger.warning("Skipping transaction without ID")
                return None
            transaction = Transaction.from_dict(payload)

        with self.account_locks.hold(transaction.account_id):
            result = self._process_locked(transaction)

        with self._metrics_lock:
            if result.duplicate:
                self.metrics["duplicates_skipped"] += 1
            else:
                self.metrics["transactions_processed"] += 1
                if result.alert_created:
                    self.metrics["alerts_triggered"] += 1
            self.metrics["last_processed_time"] = datetime.now(timezone.utc)

        # Trigger callbacks
        if self.result_callback:
            self.result_callback(result)
        if self.alert_callback and result.alert_created:
            self.alert_callback(result.alert)

        return result

    def _process_locked(self, transaction: Transaction) -> ProcessingResult:
        """Pipeline body; the caller holds the account lock."""
        transaction_id = transaction.transaction_id
        stores = self.stores

        if self._store(
            stores.transactions.exists, transaction_id, description="dedupe check"
        ):
            return self._duplicate_result(transaction_id)

        stored_profile = self._store(
            stores.profiles.get, transaction.account_id, description="profile get"
        )
        # A redelivery after the profile write scores against the earlier state
        profile = stored_profile.before(transaction_id) if stored_profile else None
        start, end = self.feature_engine.history_window(transaction)
        candidates = self._store(
            stores.transactions.recent_for_account,
            transaction.account_id,
            start,
            end,
            description="account history",
        )
        history = self.feature_engine.select_recent_history(transaction, candidates)

        features = self.feature_engine.extract(transaction, history, profile)
        score_result, reasons = self.risk_scorer.score(transaction, features)
        risk_level = score_result.risk_level

        self.logger.info(
            f"{transaction_id} | Score: {score_result.score:.3f} | {risk_level.value}"
        )

        # Alert, then profile, then the record. The record marks the
        # transaction as processed, so a redelivery after any earlier
        # failure runs again and finds the alert and profile already written.
        alert, alert_created = self.alert_manager.open_alert(
            transaction, score_result, reasons
        )

        updated_profile = (
            stored_profile or AccountProfile(account_id=transaction.account_id)
        ).updated_with(transaction)
        if updated_profile is not stored_profile:
            self._store(
                stores.profiles.put, updated_profile, description="profile put"
            )

        record = TransactionRecord(
            transaction=transaction,
            score=score_result.score,
            risk_level=risk_level.value,
            fraud_indicators=[reason.message for reason in reasons],
            alert_created=alert is not None,
        )
        self._store(
            stores.transactions.insert,
            record,
            description=f"transaction insert for {transaction_id}",
        )

        return ProcessingResult(
            transaction_id=transaction_id,
            score=score_result.score,
            risk_level=risk_level,
            features=features,
            score_result=score_result,
            reasons=reasons,
            alert=alert,
            alert_created=alert_created,
        )

    def review_alert(
        self, alert_id: str, action: str, comments: Optional[str], reviewer: str
    ) -> Alert:
        return self.alert_manager.review(alert_id, action, comments, reviewer)

    def query_alerts(
        self,
        alert_filter: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Alert]:
        return self.alert_manager.list_alerts(alert_filter, search, limit)

    def query_stats(self) -> Dict[str, Any]:
        return self.alert_manager.stats()

    def _duplicate_result(self, transaction_id: str) -> ProcessingResult:
        self.logger.info(f"Duplicate transaction skipped: {transaction_id}")
        record = self._store(
            self.stores.transactions.get, transaction_id, description="record get"
        )
        alert = self._store(
            self.stores.alerts.get_by_transaction,
            transaction_id,
            description="alert lookup",
        )
        return ProcessingResult(
            transaction_id=transaction_id,
            score=record.score if record else 0.0,
            risk_level=RiskLevel(record.risk_level) if record else RiskLevel.LOW,
            score_result=alert.score_result if alert else None,
            reasons=list(alert.reasons) if alert else [],
            alert=alert,
            duplicate=True,
        )

    def _process_safely(self, payload: Dict[str, Any]) -> Optional[ProcessingResult]:
        """Process one message; failures are reported, never raised."""
        try:
            return self.process_transaction(payload)
        except InvalidTransactionError as e:
            self._handle_failure(payload, f"invalid transaction: {e}")
        except StorageError as e:
            self._handle_failure(payload, f"storage failure: {e}")
        except Exception as e:
            self.logger.exception("Unexpected error processing transaction")
            self._handle_failure(payload, f"unexpected error: {e}")
        return None

    def _handle_failure(self, payload: Any, reason: str):
        self._count("processing_errors")
        transaction_id = (
            Transaction.extract_id(payload) if isinstance(payload, dict) else None
        )
        self.logger.error(f"Failed to process {transaction_id or 'message'}: {reason}")

        if self.dead_letter_producer and self.dead_letter_topic:
            self.dead_letter_producer.send_raw(
                self.dead_letter_topic,
                {"payload": payload, "reason": reason},
                key=transaction_id,
            )

    @staticmethod
    def _partition_key(payload: Any) -> str:
        if isinstance(payload, dict):
            return str(payload.get("accountId") or Transaction.extract_id(payload))
        return ""

    def process_transactions_batch(
        self, transactions_data: List[Dict[str, Any]]
    ) -> List[ProcessingResult]:
        """Process a batch, one worker per account, accounts in parallel.

        Messages for the same account keep their batch order.
        """
        partitions: "OrderedDict[str, List[Dict[str, Any]]]" = OrderedDict()
        for payload in transactions_data:
            partitions.setdefault(self._partition_key(payload), []).append(payload)

        def run_partition(payloads: List[Dict[str, Any]]) -> List[ProcessingResult]:
            results = []
            for payload in payloads:
                result = self._process_safely(payload)
                if result:
                    results.append(result)
            return results

        results: List[ProcessingResult] = []
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [
                executor.submit(run_partition, payloads)
                for payloads in partitions.values()
            ]
            for future in as_completed(futures):
                results.extend(future.result())

        return results

    def start_consuming(self):
        """Start consuming transactions from Kafka."""
        if not self.consumer:
            raise RuntimeError("Transaction processor not initialized")

        self.logger.info(f"Starting to consume transactions from topic: {self.topic}")
        self.running = True
        batch: List[Any] = []
        batch_start_time = time.time()

        try:
            while self.running:
                polled = self.consumer.poll(timeout_ms=int(self.batch_timeout * 1000))
                for records in polled.values():
                    batch.extend(record.value for record in records)

                current_time = time.time()
                if len(batch) >= self.batch_size or (
                    batch and current_time - batch_start_time >= self.batch_timeout
                ):
                    results = self.process_transactions_batch(batch)
                    self._commit_offsets()
                    self.logger.info(
                        f"Processed batch of {len(batch)} transactions, "
                        f"{sum(1 for r in results if r.alert_created)} alerts"
                    )
                    batch = []
                    batch_start_time = current_time
                elif not batch:
                    batch_start_time = current_time

        except KeyboardInterrupt:
            self.logger.info("Transaction consumption interrupted by user")
        except KafkaError as e:
            self.logger.error(f"Error in transaction consumption: {e}")
        finally:
            if batch:
                self.process_transactions_batch(batch)
                self._commit_offsets()
            self.stop_consuming()

    def _commit_offsets(self):
        """Commit consumed offsets once their batch has been processed."""
        try:
            self.consumer.commit()
        except KafkaError as e:
            # Uncommitted records are redelivered and deduplicated
            self.logger.error(f"Error committing consumer offsets: {e}")

    def request_stop(self):
        """Let the consumer loop finish its current batch and exit."""
        self.running = False

    def stop_consuming(self):
        """Stop consuming transactions."""
        self.running = False
        if self.consumer:
            self.consumer.close()
            self.consumer = None
            self.logger.info("Transaction consumption stopped")

    def get_metrics(self) -> Dict[str, Any]:
        """Get processing metrics."""
        with self._metrics_lock:
            metrics = dict(self.metrics)
        uptime = (datetime.now(timezone.utc) - metrics["start_time"]).total_seconds()

        return {
            **metrics,
            "uptime_seconds": uptime,
            "transactions_per_second": metrics["transactions_processed"]
            / max(1, uptime),
            "error_rate": metrics["processing_errors"]
            / max(1, metrics["transactions_processed"]),
            "alert_metrics": self.alert_manager.get_alert_statistics(),
        }

    def health_check(self) -> Dict[str, Any]:
        """Perform health check on the processor."""
        health_status = {
            "status": "healthy",
            "components": {
                "feature_engine": "healthy",
                "risk_scorer": "healthy",
                "alert_manager": "healthy",
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        # Check stores
        try:
            self.stores.transactions.count()
            health_status["components"]["storage"] = "healthy"
        except StorageError as e:
            self.logger.warning(f"Storage health check failed: {e}")
            health_status["components"]["storage"] = "unavailable"
            health_status["status"] = "unhealthy"

        # Kafka consumer is optional when transactions arrive over HTTP
        health_status["components"]["kafka_consumer"] = (
            "healthy" if self.consumer else "not_initialized"
        )

        return health_status

