"""
Dashboard API package for the risk scoring pipeline.
"""

from .alerts_api import AlertsAPI, alerts_bp
from .transactions_api import TransactionsAPI, transactions_bp

__all__ = ["AlertsAPI", "TransactionsAPI", "alerts_bp", "transactions_bp"]
