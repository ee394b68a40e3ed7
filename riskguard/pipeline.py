"""
Pipeline wiring: config sections to stores, processor, producer and dashboard.
"""

import logging
import threading
from typing import Any, Callable, Dict, Optional

from .alerting.alert_manager import AlertManager
from .config_loader import ConfigLoader
from .ingestion.transaction_producer import (
    TransactionProducer,
    TransactionProducerConfig,
)
from .processing.feature_engine import FeatureEngine, FraudPatterns
from .processing.risk_scorer import RiskScorer
from .processing.transaction_processor import TransactionProcessor, ProcessingResult
from .models.alert import Alert
from .storage import build_stores
from .storage.retry import RetryPolicy


def build_processor(config: ConfigLoader) -> TransactionProcessor:
    """Create a processor with stores and scoring components from config."""
    storage_config = config.get_storage_config()
    stores = build_stores(storage_config, config.get_redis_config())
    retry_policy = RetryPolicy.from_config(storage_config.get("retry"))

    patterns = FraudPatterns.from_config(config.get_detection_config())
    feature_engine = FeatureEngine(patterns)
    alert_manager = AlertManager(
        stores.alerts,
        stores.transactions,
        config=config.get_alert_config(),
        retry_policy=retry_policy,
    )

    return TransactionProcessor(
        config.get_processor_config(),
        stores,
        feature_engine=feature_engine,
        risk_scorer=RiskScorer(patterns),
        alert_manager=alert_manager,
        retry_policy=retry_policy,
    )


def build_producer(config: ConfigLoader) -> TransactionProducer:
    kafka = config.get_kafka_config()
    producer_config = TransactionProducerConfig(
        kafka_bootstrap_servers=kafka.get("bootstrap_servers", "localhost:9092"),
        kafka_topic=kafka.get("topic_transactions", "transactions"),
    )
    return TransactionProducer(producer_config.to_dict())


class FraudDetectionPipeline:
    """Main risk scoring pipeline orchestrator."""

    def __init__(
        self,
        config: ConfigLoader,
        consume: bool = True,
        dashboard_factory: Optional[Callable[..., Any]] = None,
        publish_submissions: bool = False,
    ):
        """Initialize the pipeline."""
        self.config = config
        self.consume = consume
        self.dashboard_factory = dashboard_factory
        self.publish_submissions = publish_submissions
        self.logger = logging.getLogger(__name__)

        # Components
        self.processor: Optional[TransactionProcessor] = None
        self.producer: Optional[TransactionProducer] = None
        self.dashboard = None
        self.dashboard_thread: Optional[threading.Thread] = None

        # Control flags
        self.running = False
        self.shutdown_requested = False

    def initialize(self) -> bool:
        """Initialize all pipeline components."""
        self.logger.info("Initializing risk scoring pipeline")
        self.config.validate_config()

        self.processor = build_processor(self.config)
        self.processor.set_callbacks(
            result_callback=self._on_result, alert_callback=self._on_alert
        )

        needs_producer = self.publish_submissions or (
            self.consume and self.config.get("kafka.topic_dead_letter")
        )
        if needs_producer:
            self.logger.info("Initializing transaction producer")
            self.producer = build_producer(self.config)
            self.processor.set_dead_letter_producer(self.producer)

        if self.consume and not self.processor.initialize():
            self.logger.error("Failed to initialize Kafka consumer")
            return False

        if self.dashboard_factory:
            self.dashboard = self.dashboard_factory(
                self.processor,
                producer=self.producer if self.publish_submissions else None,
                config=self.config.get_dashboard_config(),
            )

        self.logger.info("Pipeline initialization completed successfully")
        return True

    def _on_result(self, result: ProcessingResult):
        """Log high-risk transactions."""
        if result.risk_level.value in ["HIGH", "CRITICAL"]:
            self.logger.warning(
                f"High-risk transaction: {result.transaction_id}, "
                f"risk: {result.risk_level.value}, score: {result.score:.3f}"
            )

    def _on_alert(self, alert: Alert):
        self.logger.info(
            f"Alert {alert.alert_id} pending review for account "
            f"{alert.transaction.account_id}"
        )

    def start(self):
        """Start the dashboard thread and the consumer loop."""
        if self.running:
            return
        self.logger.info("Starting risk scoring pipeline")
        self.running = True

        if self.dashboard:
            self._start_dashboard_background()

        if self.consume:
            self._start_processing()

    def _start_dashboard_background(self):
        """Start the Flask dashboard in a daemon thread."""
        dashboard_config: Dict[str, Any] = self.config.get_dashboard_config()

        self.dashboard_thread = threading.Thread(
            target=self.dashboard.run,
            kwargs={
                "host": dashboard_config.get("host", "0.0.0.0"),
                "port": int(dashboard_config.get("port", 5000)),
                "debug": bool(dashboard_config.get("debug", False)),
            },
            daemon=True,
        )
        self.dashboard_thread.start()
        self.logger.info("Dashboard started in background")

    def _start_processing(self):
        """Run the consumer loop until stopped."""
        try:
            self.logger.info("Starting transaction processing")
            self.processor.start_consuming()
        finally:
            self.running = False

    def stop(self):
        """Ask the consumer loop to finish its current batch and exit."""
        self.logger.info("Stopping risk scoring pipeline")
        self.shutdown_requested = True
        if self.processor:
            self.processor.request_stop()

    def close(self):
        """Release Kafka clients once the loop has exited."""
        self.running = False
        if self.processor:
            self.processor.stop_consuming()
        if self.producer:
            self.producer.close()
        self.logger.info("Pipeline stopped")

    def get_metrics(self) -> Dict[str, Any]:
        """Get pipeline metrics."""
        metrics = {
            "pipeline_status": "running" if self.running else "stopped",
            "shutdown_requested": self.shutdown_requested,
        }

        if self.processor:
            metrics.update(self.processor.get_metrics())

        if self.producer:
            metrics["producer"] = self.producer.get_metrics()

        return metrics
