"""
Processing components for the risk scoring pipeline.
"""

from .feature_engine import FeatureEngine, FraudPatterns, haversine_distance
from .risk_scorer import RiskScorer, MODEL_VERSION
from .transaction_processor import (
    AccountLocks,
    ProcessingResult,
    TransactionProcessor,
)

__all__ = [
    "FeatureEngine",
    "FraudPatterns",
    "haversine_distance",
    "RiskScorer",
    "MODEL_VERSION",
    "AccountLocks",
    "ProcessingResult",
    "TransactionProcessor",
]
