"""
Feature vector, score and risk level models.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any


class RiskLevel(Enum):
    """Risk level enumeration."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @classmethod
    def from_score(cls, score: float) -> "RiskLevel":
        """Map a score onto its risk level using the fixed cut points."""
        if score > 0.75:
            return cls.CRITICAL
        elif score > 0.55:
            return cls.HIGH
        elif score > 0.35:
            return cls.MEDIUM
        else:
            return cls.LOW


@dataclass(frozen=True)
class FeatureVector:
    """Signals derived from a transaction, its account history and profile."""

    transaction_id: str
    velocity_count: int
    avg_amount: float
    amount_delta: float
    geo_distance_km: float
    is_night_time: bool
    is_suspicious_merchant: bool
    is_suspicious_category: bool
    is_high_amount: bool
    is_vpn: bool
    is_tor: bool
    cvv_fail: bool
    avs_fail: bool
    is_suspicious_device: bool
    card_testing: bool
    is_new_account: bool
    previous_declines: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transactionId": self.transaction_id,
            "velocityCount": self.velocity_count,
            "avgAmount": round(self.avg_amount, 2),
            "amountDelta": round(self.amount_delta, 2),
            "geoDistance": round(self.geo_distance_km, 2),
            "isNightTime": self.is_night_time,
            "isSuspiciousMerchant": self.is_suspicious_merchant,
            "isSuspiciousCategory": self.is_suspicious_category,
            "isHighAmount": self.is_high_amount,
            "isVPN": self.is_vpn,
            "isTor": self.is_tor,
            "cvvFail": self.cvv_fail,
            "avsFail": self.avs_fail,
            "isSuspiciousDevice": self.is_suspicious_device,
            "cardTesting": self.card_testing,
            "isNewAccount": self.is_new_account,
            "previousDeclines": self.previous_declines,
        }


@dataclass(frozen=True)
class ScoreResult:
    """Clamped risk score together with the contribution of each indicator."""

    transaction_id: str
    score: float
    contributions: Dict[str, float] = field(default_factory=dict)
    model_version: str = ""
    scored_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def risk_level(self) -> RiskLevel:
        return RiskLevel.from_score(self.score)

    @property
    def raw_total(self) -> float:
        """Sum of contributions before clamping."""
        return sum(self.contributions.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transactionId": self.transaction_id,
            "score": self.score,
            "contributions": {k: round(v, 4) for k, v in self.contributions.items()},
            "modelVersion": self.model_version,
            "timestamp": self.scored_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScoreResult":
        scored_at = data.get("timestamp")
        return cls(
            transaction_id=data.get("transactionId", ""),
            score=float(data["score"]),
            contributions=dict(data.get("contributions", {})),
            model_version=data.get("modelVersion", ""),
            scored_at=datetime.fromisoformat(scored_at)
            if scored_at
            else datetime.now(timezone.utc),
        )
