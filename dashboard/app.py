"""
Flask dashboard for reviewing alerts raised by the risk scoring pipeline.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from flask import Flask
from flask_cors import CORS

from riskguard import __version__
from riskguard.ingestion.transaction_producer import TransactionProducer
from riskguard.processing.risk_scorer import MODEL_VERSION
from riskguard.processing.transaction_processor import TransactionProcessor

from .api import alerts_bp, transactions_bp
from .api.responses import EXTENSION_KEY, success_response


class FraudDetectionDashboard:
    """Main dashboard application."""

    def __init__(
        self,
        processor: TransactionProcessor,
        producer: Optional[TransactionProducer] = None,
        config: Optional[Dict[str, Any]] = None,
    ):
        """Initialize the dashboard."""
        self.config = config or {}
        self.processor = processor
        self.alert_manager = processor.alert_manager
        self.producer = producer
        self.logger = logging.getLogger(__name__)

        self.app = Flask(__name__)
        CORS(self.app, origins=self.config.get("cors_origins", "*"))

        self.app.extensions[EXTENSION_KEY] = {
            "processor": self.processor,
            "alert_manager": self.alert_manager,
            "producer": self.producer,
        }

        # Register routes
        self.app.register_blueprint(transactions_bp)
        self.app.register_blueprint(alerts_bp)
        self._register_routes()

    def _register_routes(self):
        """Register Flask routes."""

        @self.app.route("/api/health")
        def health():
            """Service health with model version and alert threshold."""
            health_status = self.processor.health_check()
            return success_response(
                {
                    "status": health_status["status"],
                    "version": __version__,
                    "modelVersion": MODEL_VERSION,
                    "alertThreshold": self.alert_manager.alert_threshold,
                    "ingestion": "kafka" if self.producer else "inline",
                    "components": health_status["components"],
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
                message="Transaction risk scoring API",
            )

    def run(self, host: str = "0.0.0.0", port: int = 5000, debug: bool = False):
        """Run the Flask application."""
        self.logger.info(f"Starting dashboard on {host}:{port}")
        self.app.run(host=host, port=port, debug=debug, use_reloader=False)


def create_dashboard_app(
    processor: TransactionProcessor,
    producer: Optional[TransactionProducer] = None,
    config: Optional[Dict[str, Any]] = None,
) -> Flask:
    """Create and configure the dashboard Flask app."""
    dashboard = FraudDetectionDashboard(processor, producer, config)
    return dashboard.app
