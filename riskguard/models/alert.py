"""
Alert data model and review lifecycle states.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, Optional, Tuple

from .transaction import Transaction, parse_timestamp
from .fraud_score import ScoreResult, RiskLevel
from .reason_code import ReasonCode


class AlertStatus(Enum):
    """Alert status enumeration. PENDING is the only non-terminal state."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    BLOCKED = "BLOCKED"
    ESCALATED = "ESCALATED"

    @property
    def is_terminal(self) -> bool:
        return self is not AlertStatus.PENDING


REVIEW_ACTIONS = (AlertStatus.APPROVED, AlertStatus.BLOCKED, AlertStatus.ESCALATED)


def new_alert_id() -> str:
    return f"ALERT{uuid.uuid4().hex[:16].upper()}"


@dataclass(frozen=True)
class Alert:
    """A human-reviewable case opened for a risky transaction."""

    alert_id: str
    transaction: Transaction
    score_result: ScoreResult
    risk_level: RiskLevel
    reasons: Tuple[ReasonCode, ...] = ()
    status: AlertStatus = AlertStatus.PENDING
    assigned_to: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    reviewed_at: Optional[datetime] = None
    action: Optional[AlertStatus] = None
    comments: str = ""

    @property
    def transaction_id(self) -> str:
        return self.transaction.transaction_id

    @property
    def score(self) -> float:
        return self.score_result.score

    def reviewed(
        self, action: AlertStatus, comments: str, reviewer: str, when: datetime
    ) -> "Alert":
        """Copy of this alert after a reviewer decision."""
        return replace(
            self,
            status=action,
            action=action,
            comments=comments,
            assigned_to=reviewer,
            reviewed_at=when,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert alert to dictionary."""
        return {
            "id": self.alert_id,
            "transactionId": self.transaction_id,
            "transaction": self.transaction.to_dict(),
            "mlScore": self.score_result.to_dict(),
            "riskLevel": self.risk_level.value,
            "reasons": [reason.to_dict() for reason in self.reasons],
            "status": self.status.value,
            "assignedTo": self.assigned_to,
            "createdAt": self.created_at.isoformat(),
            "reviewedAt": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "action": self.action.value if self.action else None,
            "comments": self.comments,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Alert":
        """Create Alert object from data."""
        return cls(
            alert_id=data["id"],
            transaction=Transaction.from_dict(data["transaction"]),
            score_result=ScoreResult.from_dict(data["mlScore"]),
            risk_level=RiskLevel(data["riskLevel"]),
            reasons=tuple(ReasonCode.from_dict(r) for r in data.get("reasons", [])),
            status=AlertStatus(data["status"]),
            assigned_to=data.get("assignedTo"),
            created_at=parse_timestamp(data["createdAt"]),
            reviewed_at=parse_timestamp(data["reviewedAt"])
            if data.get("reviewedAt")
            else None,
            action=AlertStatus(data["action"]) if data.get("action") else None,
            comments=data.get("comments") or "",
        )


@dataclass(frozen=True)
class ReviewAction:
    """One entry of the reviewer action log."""

    alert_id: str
    transaction_id: str
    action: AlertStatus
    comments: str
    reviewer: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alertId": self.alert_id,
            "transactionId": self.transaction_id,
            "action": self.action.value,
            "comments": self.comments,
            "analyst": self.reviewer,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReviewAction":
        return cls(
            alert_id=data["alertId"],
            transaction_id=data["transactionId"],
            action=AlertStatus(data["action"]),
            comments=data.get("comments") or "",
            reviewer=data.get("analyst") or "",
            timestamp=parse_timestamp(data.get("timestamp")),
        )
