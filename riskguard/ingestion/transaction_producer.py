"""
Kafka producer for publishing transactions to the scoring pipeline.
"""

import json
import logging
from typing import Dict, Any, Optional, List, Union
from datetime import datetime, timezone

from kafka import KafkaProducer
from kafka.errors import KafkaError, KafkaTimeoutError

from ..models.transaction import Transaction


class TransactionProducer:
    """Kafka producer for transaction and dead-letter messages."""

    def __init__(self, config: Dict[str, Any], producer: Optional[KafkaProducer] = None):
        """Initialize the transaction producer."""
        self.config = config
        self.logger = logging.getLogger(__name__)

        # Kafka configuration
        self.bootstrap_servers = config.get("kafka_bootstrap_servers", "localhost:9092")
        self.topic = config.get("kafka_topic", "transactions")
        self.producer_config = config.get("producer_config", {})
        self.send_timeout = config.get("send_timeout", 10)

        self.producer = producer or self._create_producer()

        # Metrics
        self.messages_sent = 0
        self.messages_failed = 0
        self.start_time = datetime.now(timezone.utc)

    def _create_producer(self) -> KafkaProducer:
        """Create and configure Kafka producer."""
        try:
            producer = KafkaProducer(
                bootstrap_servers=self.bootstrap_servers,
                value_serializer=lambda v: json.dumps(v, default=str).encode("utf-8"),
                key_serializer=lambda k: k.encode("utf-8") if k else None,
                acks="all",  # Wait for all replicas
                retries=3,  # Retry failed sends
                **self.producer_config,
            )
            self.logger.info(
                f"Kafka producer created successfully for topic: {self.topic}"
            )
            return producer
        except KafkaError as e:
            self.logger.error(f"Failed to create Kafka producer: {e}")
            raise

    def send_transaction(
        self, transaction: Union[Transaction, Dict[str, Any]], key: Optional[str] = None
    ) -> bool:
        """Publish one transaction, keyed by account so an account stays on one partition."""
        if isinstance(transaction, Transaction):
            message = transaction.to_dict()
        else:
            message = dict(transaction)

        if key is None:
            key = message.get("accountId")

        return self.send_raw(self.topic, message, key=key)

    def send_raw(
        self, topic: str, message: Dict[str, Any], key: Optional[str] = None
    ) -> bool:
        """Publish an arbitrary JSON message, e.g. to the dead-letter topic."""
        message_id = Transaction.extract_id(message) or key or "message"
        try:
            future = self.producer.send(topic=topic, key=key, value=message)

            # Wait for send to complete
            record_metadata = future.get(timeout=self.send_timeout)

            self.messages_sent += 1
            self.logger.debug(
                f"Message sent successfully: {message_id} to {topic} "
                f"partition {record_metadata.partition} "
                f"at offset {record_metadata.offset}"
            )
            return True

        except KafkaTimeoutError as e:
            self.messages_failed += 1
            self.logger.error(f"Kafka timeout error sending {message_id}: {e}")
            return False
        except KafkaError as e:
            self.messages_failed += 1
            self.logger.error(f"Kafka error sending {message_id}: {e}")
            return False

    def send_transactions_batch(
        self, transactions: List[Union[Transaction, Dict[str, Any]]]
    ) -> Dict[str, int]:
        """Send a batch of transactions to Kafka."""
        results = {"sent": 0, "failed": 0}

        for transaction in transactions:
            if self.send_transaction(transaction):
                results["sent"] += 1
            else:
                results["failed"] += 1

        self.logger.info(
            f"Batch sent: {results['sent']} successful, {results['failed']} failed"
        )
        return results

    def get_metrics(self) -> Dict[str, Any]:
        """Get producer metrics."""
        elapsed = (datetime.now(timezone.utc) - self.start_time).total_seconds()

        return {
            "messages_sent": self.messages_sent,
            "messages_failed": self.messages_failed,
            "success_rate": self.messages_sent
            / max(1, self.messages_sent + self.messages_failed),
            "messages_per_second": self.messages_sent / max(1, elapsed),
            "uptime_seconds": elapsed,
            "start_time": self.start_time.isoformat(),
        }

    def close(self):
        """Close the Kafka producer."""
        if self.producer:
            self.producer.flush()  # Wait for all messages to be sent
            self.producer.close()
            self.producer = None
            self.logger.info("Kafka producer closed")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()


class TransactionProducerConfig:
    """Configuration for transaction producer."""

    def __init__(self, **kwargs):
        """Initialize configuration."""
        self.kafka_bootstrap_servers = kwargs.get(
            "kafka_bootstrap_servers", "localhost:9092"
        )
        self.kafka_topic = kwargs.get("kafka_topic", "transactions")
        self.send_timeout = kwargs.get("send_timeout", 10)
        self.producer_config = kwargs.get("producer_config", {})

        # Default producer settings
        if not self.producer_config:
            self.producer_config = {
                "linger_ms": 10,
                "compression_type": "gzip",
            }

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "kafka_bootstrap_servers": self.kafka_bootstrap_servers,
            "kafka_topic": self.kafka_topic,
            "send_timeout": self.send_timeout,
            "producer_config": self.producer_config,
        }
