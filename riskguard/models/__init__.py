"""
Data models for the risk scoring pipeline.
"""

from .transaction import Transaction, TransactionRecord, Location
from .account_profile import AccountProfile
from .fraud_score import FeatureVector, ScoreResult, RiskLevel
from .reason_code import ReasonCode, ReasonCodeType, Severity
from .alert import Alert, AlertStatus, ReviewAction

__all__ = [
    "Transaction",
    "TransactionRecord",
    "Location",
    "AccountProfile",
    "FeatureVector",
    "ScoreResult",
    "RiskLevel",
    "ReasonCode",
    "ReasonCodeType",
    "Severity",
    "Alert",
    "AlertStatus",
    "ReviewAction",
]
