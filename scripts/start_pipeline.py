#!/usr/bin/env python3
"""
Script to start the risk scoring pipeline.
"""

import sys
import argparse
import logging
import signal
import time
from pathlib import Path

from dashboard.app import FraudDetectionDashboard
from riskguard.config_loader import ConfigLoader
from riskguard.pipeline import FraudDetectionPipeline


def setup_logging(level: str = "INFO", log_file: str = "logs/pipeline.log"):
    """Setup logging configuration."""
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(), logging.FileHandler(log_file)],
    )


def main():
    """Main pipeline script."""
    parser = argparse.ArgumentParser(description="Start the risk scoring pipeline")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to pipeline YAML config (default: config/pipeline_config.yaml)",
    )
    parser.add_argument(
        "--no-consumer",
        action="store_true",
        help="Do not consume from Kafka; score transactions submitted over HTTP",
    )
    parser.add_argument(
        "--no-dashboard", action="store_true", help="Do not start the HTTP API"
    )
    parser.add_argument(
        "--publish",
        action="store_true",
        help="Publish HTTP submissions to Kafka instead of scoring them inline",
    )
    parser.add_argument("--log-level", default=None, help="Logging level")

    args = parser.parse_args()

    config = ConfigLoader(args.config)
    logging_config = config.get_logging_config()
    setup_logging(
        args.log_level or logging_config.get("level", "INFO"),
        logging_config.get("file", "logs/pipeline.log"),
    )
    logger = logging.getLogger(__name__)

    if args.no_consumer and args.no_dashboard:
        logger.error("Nothing to run: both the consumer and the dashboard are disabled")
        return 1

    serve_dashboard = not args.no_dashboard and config.get("dashboard.enabled", True)

    pipeline = FraudDetectionPipeline(
        config,
        consume=not args.no_consumer,
        dashboard_factory=FraudDetectionDashboard if serve_dashboard else None,
        publish_submissions=args.publish,
    )

    def _signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, initiating shutdown...")
        pipeline.stop()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    try:
        if not pipeline.initialize():
            logger.error("Failed to initialize pipeline")
            return 1

        # Blocks while consuming
        pipeline.start()

        # Dashboard-only mode keeps the main thread alive for signals
        last_report = time.time()
        while (
            not pipeline.shutdown_requested
            and pipeline.dashboard_thread is not None
            and pipeline.dashboard_thread.is_alive()
        ):
            time.sleep(1)
            if time.time() - last_report >= 30:
                logger.info(f"Pipeline metrics: {pipeline.get_metrics()}")
                last_report = time.time()

        return 0

    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1
    finally:
        pipeline.close()


if __name__ == "__main__":
    sys.exit(main())
