"""
Alerting components for the risk scoring pipeline.
"""

from ..models.alert import Alert, AlertStatus, ReviewAction
from .alert_manager import AlertManager

__all__ = ["AlertManager", "Alert", "AlertStatus", "ReviewAction"]
