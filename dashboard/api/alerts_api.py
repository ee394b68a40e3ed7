"""
Alerts API endpoints for the risk review dashboard.
"""

from flask import Blueprint, request
from typing import Dict, Any, List, Optional
import logging

from riskguard.alerting.alert_manager import AlertManager
from riskguard.exceptions import (
    AlertNotFoundError,
    InvalidTransitionError,
    StorageError,
)

from .responses import error_response, get_service, parse_limit, success_response

logger = logging.getLogger(__name__)

alerts_bp = Blueprint("alerts", __name__)

DEFAULT_REVIEWER = "dashboard_user"


class AlertsAPI:
    """API operations for alert review."""

    def __init__(self, alert_manager: AlertManager):
        """Initialize the alerts API."""
        self.alert_manager = alert_manager

    def get_alerts(
        self,
        alert_filter: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Get alerts with optional filtering, newest first."""
        alerts = self.alert_manager.list_alerts(alert_filter, search, limit)
        return [alert.to_dict() for alert in alerts]

    def get_alert(self, alert_id: str) -> Optional[Dict[str, Any]]:
        """Get a specific alert by ID."""
        alert = self.alert_manager.get_alert(alert_id)
        return alert.to_dict() if alert else None

    def review_alert(self, alert_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply an analyst decision to an alert."""
        action = data.get("action")
        if not action:
            raise ValueError("action is required")

        alert = self.alert_manager.review(
            alert_id,
            action,
            data.get("comments"),
            data.get("assignedTo") or DEFAULT_REVIEWER,
        )
        return alert.to_dict()

    def get_actions(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Get the review action log, newest first."""
        return [
            action.to_dict()
            for action in self.alert_manager.get_review_history(limit)
        ]

    def get_stats(self) -> Dict[str, Any]:
        """Get dashboard statistics."""
        return self.alert_manager.stats()


def _alerts_api() -> AlertsAPI:
    return AlertsAPI(get_service("alert_manager"))


@alerts_bp.route("/api/alerts", methods=["GET"])
def get_alerts():
    """Get alerts endpoint."""
    alerts_api = _alerts_api()
    manager = alerts_api.alert_manager
    try:
        limit = parse_limit(
            request.args.get("limit"),
            manager.default_list_limit,
            manager.max_list_limit,
        )
        alerts = alerts_api.get_alerts(
            alert_filter=request.args.get("filter"),
            search=request.args.get("search"),
            limit=limit,
        )
        return success_response(alerts)
    except ValueError as e:
        return error_response(str(e), 400)
    except StorageError as e:
        logger.error(f"Error in get alerts endpoint: {e}")
        return error_response(str(e), 503)


@alerts_bp.route("/api/alerts/<alert_id>", methods=["GET"])
def get_alert(alert_id):
    """Get specific alert endpoint."""
    try:
        alert = _alerts_api().get_alert(alert_id)
    except StorageError as e:
        logger.error(f"Error in get alert endpoint: {e}")
        return error_response(str(e), 503)

    if alert:
        return success_response(alert)
    return error_response("Alert not found", 404)


@alerts_bp.route("/api/alerts/<alert_id>", methods=["PUT"])
def review_alert(alert_id):
    """Review alert endpoint."""
    data = request.get_json(silent=True) or {}
    try:
        alert = _alerts_api().review_alert(alert_id, data)
        return success_response(alert)
    except AlertNotFoundError as e:
        return error_response(str(e), 404)
    except InvalidTransitionError as e:
        return error_response(str(e), 409)
    except ValueError as e:
        return error_response(str(e), 400)
    except StorageError as e:
        logger.error(f"Error in review alert endpoint: {e}")
        return error_response(str(e), 503)


@alerts_bp.route("/api/actions", methods=["GET"])
def get_actions():
    """Get review action log endpoint."""
    try:
        limit = parse_limit(request.args.get("limit"), 100, 5000)
        return success_response(_alerts_api().get_actions(limit))
    except ValueError as e:
        return error_response(str(e), 400)
    except StorageError as e:
        logger.error(f"Error in actions endpoint: {e}")
        return error_response(str(e), 503)


@alerts_bp.route("/api/stats", methods=["GET"])
def get_stats():
    """Get dashboard statistics endpoint."""
    try:
        return success_response(_alerts_api().get_stats())
    except StorageError as e:
        logger.error(f"Error in stats endpoint: {e}")
        return error_response(str(e), 503)
