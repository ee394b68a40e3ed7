"""
Flask dashboard for the risk scoring pipeline.
"""

from .app import FraudDetectionDashboard, create_dashboard_app

__all__ = ["FraudDetectionDashboard", "create_dashboard_app"]
