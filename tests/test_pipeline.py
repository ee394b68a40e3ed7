"""Tests for wiring the pipeline from configuration."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from riskguard.config_loader import ConfigLoader
from riskguard.pipeline import FraudDetectionPipeline, build_processor
from riskguard.storage.memory import InMemoryTransactionRepository

from tests.builders import critical_payload

DEFAULT_CONFIG = Path(__file__).resolve().parents[1] / "config" / "pipeline_config.yaml"


@pytest.fixture
def config(monkeypatch):
    for name in ("STORAGE_BACKEND", "ALERT_THRESHOLD", "VELOCITY_WINDOW_MINUTES"):
        monkeypatch.delenv(name, raising=False)
    return ConfigLoader(str(DEFAULT_CONFIG))


def test_build_processor_from_config(config):
    config.config["alerts"]["alert_threshold"] = 0.95
    config.config["detection"]["velocity_window_minutes"] = 15

    processor = build_processor(config)

    assert isinstance(processor.stores.transactions, InMemoryTransactionRepository)
    assert processor.alert_manager.alert_threshold == 0.95
    assert processor.feature_engine.patterns.velocity_window_minutes == 15
    assert processor.risk_scorer.patterns is processor.feature_engine.patterns
    assert processor.dead_letter_topic == "transactions-dead-letter"

    # 0.89 no longer crosses the raised threshold
    assert not processor.process_transaction(critical_payload()).alert_created


def test_dashboard_only_pipeline(config):
    factory = MagicMock()
    pipeline = FraudDetectionPipeline(config, consume=False, dashboard_factory=factory)

    assert pipeline.initialize()

    factory.assert_called_once()
    assert factory.call_args[0][0] is pipeline.processor
    assert factory.call_args.kwargs["producer"] is None
    assert pipeline.producer is None
    assert pipeline.processor.consumer is None


def test_consumer_failure_stops_initialization(config):
    pipeline = FraudDetectionPipeline(config, consume=True)

    with patch("riskguard.pipeline.build_producer") as build_producer:
        build_producer.return_value = MagicMock()
        with patch(
            "riskguard.processing.transaction_processor.TransactionProcessor.initialize",
            return_value=False,
        ):
            assert pipeline.initialize() is False

    # Dead-letter topic is configured, so the producer was wired in
    assert pipeline.processor.dead_letter_producer is build_producer.return_value


def test_stop_and_close(config):
    pipeline = FraudDetectionPipeline(config, consume=False)
    pipeline.initialize()
    pipeline.producer = MagicMock()
    pipeline.processor.running = True

    pipeline.stop()
    assert pipeline.shutdown_requested
    assert pipeline.processor.running is False

    pipeline.close()
    pipeline.producer.close.assert_called_once()
    assert pipeline.get_metrics()["pipeline_status"] == "stopped"
