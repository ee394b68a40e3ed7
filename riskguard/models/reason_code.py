"""
Fixed vocabulary of reason codes attached to scored transactions and alerts.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any


class Severity(Enum):
    """Reason severity enumeration."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ReasonCodeType(Enum):
    """Every reason code the scorer can emit, with its severity and impact."""

    VELOCITY_HIGH = ("VELOCITY_HIGH", Severity.HIGH, "Critical")
    IMPOSSIBLE_TRAVEL = ("IMPOSSIBLE_TRAVEL", Severity.HIGH, "Critical")
    CVV_VERIFICATION_FAILED = ("CVV_VERIFICATION_FAILED", Severity.HIGH, "Critical")
    ADDRESS_VERIFICATION_FAILED = (
        "ADDRESS_VERIFICATION_FAILED",
        Severity.MEDIUM,
        "High",
    )
    CARD_TESTING_PATTERN = ("CARD_TESTING_PATTERN", Severity.HIGH, "Critical")
    TOR_NETWORK_DETECTED = ("TOR_NETWORK_DETECTED", Severity.HIGH, "Critical")
    VPN_PROXY_DETECTED = ("VPN_PROXY_DETECTED", Severity.MEDIUM, "Medium")
    SUSPICIOUS_DEVICE = ("SUSPICIOUS_DEVICE", Severity.HIGH, "Critical")
    UNUSUAL_TRANSACTION_AMOUNT = (
        "UNUSUAL_TRANSACTION_AMOUNT",
        Severity.MEDIUM,
        "High",
    )
    UNUSUAL_TRANSACTION_TIME = ("UNUSUAL_TRANSACTION_TIME", Severity.LOW, "Low")
    HIGH_RISK_MERCHANT = ("HIGH_RISK_MERCHANT", Severity.HIGH, "Critical")
    HIGH_RISK_MERCHANT_CATEGORY = (
        "HIGH_RISK_MERCHANT_CATEGORY",
        Severity.MEDIUM,
        "Medium",
    )
    NEW_ACCOUNT_RISK = ("NEW_ACCOUNT_RISK", Severity.MEDIUM, "Medium")
    AMOUNT_DEVIATION = ("AMOUNT_DEVIATION", Severity.LOW, "Medium")
    SPENDING_PATTERN_ANOMALY = ("SPENDING_PATTERN_ANOMALY", Severity.MEDIUM, "High")

    def __init__(self, code: str, severity: Severity, impact: str):
        self.code = code
        self.severity = severity
        self.impact = impact

    @classmethod
    def from_code(cls, code: str) -> "ReasonCodeType":
        return cls[code]


@dataclass(frozen=True)
class ReasonCode:
    """One explanation unit: a code from the vocabulary plus rendered text."""

    kind: ReasonCodeType
    message: str
    explanation: str

    @property
    def code(self) -> str:
        return self.kind.code

    @property
    def severity(self) -> Severity:
        return self.kind.severity

    @property
    def impact(self) -> str:
        return self.kind.impact

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "explanation": self.explanation,
            "severity": self.severity.value,
            "impact": self.impact,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReasonCode":
        return cls(
            kind=ReasonCodeType.from_code(data["code"]),
            message=data.get("message", ""),
            explanation=data.get("explanation", ""),
        )
