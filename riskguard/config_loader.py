"""
Configuration loader for the risk scoring pipeline.
"""

import os
import yaml
from typing import Dict, Any, Optional
from pathlib import Path

DEFAULT_CONFIG_PATH = "config/pipeline_config.yaml"

REQUIRED_SECTIONS = ["kafka", "redis", "storage", "processing", "detection", "alerts"]


class ConfigLoader:
    """Load and manage configuration for the risk scoring pipeline."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize the configuration loader."""
        self.config_path = (
            config_path or os.getenv("RISKGUARD_CONFIG") or DEFAULT_CONFIG_PATH
        )
        self.config = {}
        self.load_config()

    def load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        config_file = Path(self.config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        try:
            with open(config_file, "r") as f:
                self.config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise RuntimeError(f"Error loading configuration: {e}") from e

        # Override with environment variables
        self._override_with_env()

        return self.config

    def _override_with_env(self):
        """Override configuration with environment variables."""
        env_mappings = {
            "KAFKA_BOOTSTRAP_SERVERS": ("kafka", "bootstrap_servers"),
            "KAFKA_TOPIC_TRANSACTIONS": ("kafka", "topic_transactions"),
            "KAFKA_TOPIC_DEAD_LETTER": ("kafka", "topic_dead_letter"),
            "REDIS_HOST": ("redis", "host"),
            "REDIS_PORT": ("redis", "port"),
            "STORAGE_BACKEND": ("storage", "backend"),
            "ALERT_THRESHOLD": ("alerts", "alert_threshold"),
            "VELOCITY_WINDOW_MINUTES": ("detection", "velocity_window_minutes"),
            "DASHBOARD_PORT": ("dashboard", "port"),
        }

        for env_var, config_path in env_mappings.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                self._set_nested_value(self.config, config_path, env_value)

    def _set_nested_value(self, config: Dict[str, Any], path: tuple, value: Any):
        """Set a nested value in the configuration dictionary."""
        current = config
        for key in path[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]

        # Convert value type if needed
        if isinstance(value, str):
            if value.lower() in ("true", "false"):
                value = value.lower() == "true"
            elif value.isdigit():
                value = int(value)
            elif value.count(".") == 1 and value.replace(".", "").isdigit():
                value = float(value)

        current[path[-1]] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value using dot notation."""
        keys = key.split(".")
        value = self.config

        try:
            for k in keys:
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def _section(self, name: str) -> Dict[str, Any]:
        return self.config.get(name) or {}

    def get_kafka_config(self) -> Dict[str, Any]:
        """Get Kafka configuration."""
        return self._section("kafka")

    def get_redis_config(self) -> Dict[str, Any]:
        """Get Redis configuration."""
        return self._section("redis")

    def get_storage_config(self) -> Dict[str, Any]:
        """Get storage backend and retry configuration."""
        return self._section("storage")

    def get_processing_config(self) -> Dict[str, Any]:
        """Get processing configuration."""
        return self._section("processing")

    def get_detection_config(self) -> Dict[str, Any]:
        """Get detection pattern configuration."""
        return self._section("detection")

    def get_alert_config(self) -> Dict[str, Any]:
        """Get alert configuration."""
        return self._section("alerts")

    def get_dashboard_config(self) -> Dict[str, Any]:
        """Get dashboard configuration."""
        return self._section("dashboard")

    def get_logging_config(self) -> Dict[str, Any]:
        """Get logging configuration."""
        return self._section("logging")

    def get_processor_config(self) -> Dict[str, Any]:
        """Flatten kafka and processing sections into the processor's settings."""
        kafka = self.get_kafka_config()
        processing = self.get_processing_config()
        return {
            "kafka_bootstrap_servers": kafka.get("bootstrap_servers", "localhost:9092"),
            "kafka_topic_transactions": kafka.get("topic_transactions", "transactions"),
            "kafka_topic_dead_letter": kafka.get("topic_dead_letter"),
            "kafka_consumer_group": kafka.get(
                "consumer_group", "fraud-detection-group"
            ),
            "kafka_auto_offset_reset": kafka.get("auto_offset_reset", "latest"),
            "max_workers": processing.get("max_workers", 4),
            "batch_size": processing.get("batch_size", 100),
            "batch_timeout": processing.get("batch_timeout", 5.0),
        }

    def validate_config(self) -> bool:
        """Validate the configuration."""
        for section in REQUIRED_SECTIONS:
            if section not in self.config:
                raise ValueError(f"Missing required configuration section: {section}")

        # Validate specific values
        if self.get("kafka.bootstrap_servers") is None:
            raise ValueError("Kafka bootstrap servers not configured")

        backend = self.get("storage.backend", "memory")
        if backend not in ("memory", "redis"):
            raise ValueError(f"Unknown storage backend: {backend}")

        if backend == "redis" and self.get("redis.host") is None:
            raise ValueError("Redis host not configured")

        threshold = self.get("alerts.alert_threshold", 0.4)
        if not isinstance(threshold, (int, float)) or not 0 <= threshold <= 1:
            raise ValueError(f"Alert threshold must be within [0, 1]: {threshold}")

        if int(self.get("detection.velocity_window_minutes", 10)) <= 0:
            raise ValueError("Velocity window must be positive")

        return True

    def to_dict(self) -> Dict[str, Any]:
        """Get the complete configuration as a dictionary."""
        return self.config.copy()

    def save_config(self, path: Optional[str] = None) -> bool:
        """Save the current configuration to a file."""
        save_path = path or self.config_path
        with open(save_path, "w") as f:
            yaml.dump(self.config, f, default_flow_style=False, indent=2)
        return True
