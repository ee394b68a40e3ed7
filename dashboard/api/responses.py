"""
Response envelope shared by the dashboard API endpoints.
"""

from typing import Any, Dict, Optional

from flask import current_app, jsonify

EXTENSION_KEY = "riskguard"


def success_response(data: Any = None, status: int = 200, message: Optional[str] = None):
    body: Dict[str, Any] = {"success": True, "data": data}
    if message:
        body["message"] = message
    return jsonify(body), status


def error_response(message: str, status: int):
    return jsonify({"success": False, "message": message}), status


def get_service(name: str) -> Any:
    """Look up a pipeline component registered on the running app."""
    return current_app.extensions[EXTENSION_KEY][name]


def parse_limit(value: Optional[str], default: int, maximum: int) -> int:
    if value is None or value == "":
        return default
    limit = int(value)
    if limit <= 0:
        raise ValueError(f"limit must be positive: {value}")
    return min(limit, maximum)
