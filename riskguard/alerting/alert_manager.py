"""
Alert manager for the risk scoring pipeline.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Any, Optional, Callable, Sequence, Tuple, Union

from ..exceptions import AlertNotFoundError, InvalidTransitionError
from ..models.alert import (
    Alert,
    AlertStatus,
    ReviewAction,
    REVIEW_ACTIONS,
    new_alert_id,
)
from ..models.fraud_score import ScoreResult, RiskLevel
from ..models.reason_code import ReasonCode
from ..models.transaction import Transaction
from ..storage.base import AlertRepository, TransactionRepository
from ..storage.retry import RetryPolicy, call_with_retry

DEFAULT_ALERT_THRESHOLD = 0.4
DEFAULT_ALERT_RISK_LEVELS = ("MEDIUM", "HIGH", "CRITICAL")

FILTER_ALL = "ALL"
FILTER_REVIEWED = "REVIEWED"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AlertManager:
    """Opens alerts for risky transactions and drives their review lifecycle."""

    def __init__(
        self,
        alert_repository: AlertRepository,
        transaction_repository: TransactionRepository,
        config: Optional[Dict[str, Any]] = None,
        retry_policy: Optional[RetryPolicy] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialize the alert manager."""
        self.config = config or {}
        self.alerts = alert_repository
        self.transactions = transaction_repository
        self.retry_policy = retry_policy or RetryPolicy()
        self.clock = clock
        self.logger = logging.getLogger(__name__)

        # Alert configuration
        self.alert_threshold = float(
            self.config.get("alert_threshold", DEFAULT_ALERT_THRESHOLD)
        )
        self.alert_risk_levels = frozenset(
            RiskLevel(level.upper())
            for level in self.config.get("alert_risk_levels", DEFAULT_ALERT_RISK_LEVELS)
        )
        self.default_list_limit = int(self.config.get("default_list_limit", 100))
        self.max_list_limit = int(self.config.get("max_list_limit", 5000))

        # Alert counters for this process
        self.alert_counters = {
            "alerts_created": 0,
            "duplicate_alerts_suppressed": 0,
            "alerts_reviewed": 0,
            "rejected_reviews": 0,
        }

    def _store(self, operation: Callable, *args, description: str):
        return call_with_retry(
            operation, *args, policy=self.retry_policy, description=description
        )

    def should_create_alert(self, score_result: ScoreResult) -> bool:
        """Alert iff the risk level is alertable and the score reaches the threshold."""
        return (
            score_result.risk_level in self.alert_risk_levels
            and score_result.score >= self.alert_threshold
        )

    def evaluate(
        self,
        transaction: Transaction,
        score_result: ScoreResult,
        reasons: Sequence[ReasonCode],
    ) -> Optional[Alert]:
        """Create a PENDING alert when the score crosses the alert threshold."""
        alert, _ = self.open_alert(transaction, score_result, reasons)
        return alert

    def open_alert(
        self,
        transaction: Transaction,
        score_result: ScoreResult,
        reasons: Sequence[ReasonCode],
    ) -> Tuple[Optional[Alert], bool]:
        """Like evaluate, also telling whether this call created the alert.

        The flag is False when an alert for the transaction already existed.
        """
        if not self.should_create_alert(score_result):
            self.logger.debug(
                f"Clean: {transaction.transaction_id} (score {score_result.score:.3f})"
            )
            return None, False

        alert = Alert(
            alert_id=new_alert_id(),
            transaction=transaction,
            score_result=score_result,
            risk_level=score_result.risk_level,
            reasons=tuple(reasons),
            created_at=self.clock(),
        )

        stored = self._store(
            self.alerts.insert_if_absent,
            alert,
            description=f"alert insert for {transaction.transaction_id}",
        )

        created = stored.alert_id == alert.alert_id
        if not created:
            self.alert_counters["duplicate_alerts_suppressed"] += 1
            self.logger.info(
                f"Alert already exists for {transaction.transaction_id}: {stored.alert_id}"
            )
        else:
            self.alert_counters["alerts_created"] += 1
            self.logger.info(
                f"Alert created: {stored.alert_id} | {stored.risk_level.value} "
                f"| score {score_result.score:.3f} for transaction "
                f"{transaction.transaction_id}"
            )
        return stored, created

    def review(
        self,
        alert_id: str,
        action: Union[str, AlertStatus],
        comments: Optional[str],
        reviewer: str,
    ) -> Alert:
        """Apply a reviewer decision to a PENDING alert."""
        action = self._parse_action(action)

        alert = self.get_alert(alert_id)
        if alert is None:
            raise AlertNotFoundError(alert_id)

        if alert.status.is_terminal:
            self.alert_counters["rejected_reviews"] += 1
            self.logger.warning(
                f"Rejected review of {alert_id}: already {alert.status.value}"
            )
            raise InvalidTransitionError(alert_id, alert.status.value, action.value)

        updated = alert.reviewed(action, comments or "", reviewer, self.clock())
        applied = self._store(
            self.alerts.compare_and_update,
            updated,
            AlertStatus.PENDING,
            description=f"alert review for {alert_id}",
        )
        if not applied:
            # Another reviewer got there first
            current = self.get_alert(alert_id)
            current_status = current.status.value if current else "DELETED"
            self.alert_counters["rejected_reviews"] += 1
            raise InvalidTransitionError(alert_id, current_status, action.value)

        self._store(
            self.alerts.append_action,
            ReviewAction(
                alert_id=alert_id,
                transaction_id=alert.transaction_id,
                action=action,
                comments=updated.comments,
                reviewer=reviewer,
                timestamp=updated.reviewed_at,
            ),
            description=f"action log for {alert_id}",
        )

        self.alert_counters["alerts_reviewed"] += 1
        self.logger.info(f"Alert {alert_id} {action.value} by {reviewer}")
        return updated

    @staticmethod
    def _parse_action(action: Union[str, AlertStatus]) -> AlertStatus:
        if isinstance(action, str):
            try:
                action = AlertStatus(action.strip().upper())
            except ValueError:
                raise ValueError(f"Unknown review action: {action!r}")

        if action not in REVIEW_ACTIONS:
            raise ValueError(
                "Review action must be one of "
                + ", ".join(a.value for a in REVIEW_ACTIONS)
            )
        return action

    def get_alert(self, alert_id: str) -> Optional[Alert]:
        return self._store(self.alerts.get, alert_id, description="alert get")

    def list_alerts(
        self,
        alert_filter: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Alert]:
        """Get alerts matching a status/risk filter and free-text search, newest first."""
        limit = min(limit or self.default_list_limit, self.max_list_limit)
        status, predicate = self._parse_filter(alert_filter)

        candidates = self._store(
            self.alerts.list_alerts,
            status,
            self.max_list_limit,
            description="alert list",
        )

        needle = (search or "").strip().lower()
        results = []
        for alert in candidates:
            if predicate and not predicate(alert):
                continue
            if needle and not self._matches_search(alert, needle):
                continue
            results.append(alert)
            if len(results) >= limit:
                break
        return results

    def _parse_filter(self, alert_filter: Optional[str]):
        """Translate a filter name into a status to query and an extra predicate."""
        name = (alert_filter or FILTER_ALL).strip().upper()

        if name == FILTER_ALL:
            return None, None
        if name == FILTER_REVIEWED:
            return None, lambda alert: alert.status.is_terminal
        if name in AlertStatus.__members__:
            return AlertStatus[name], None
        if name in RiskLevel.__members__:
            level = RiskLevel[name]
            return None, lambda alert: alert.risk_level is level

        raise ValueError(f"Unknown alert filter: {alert_filter!r}")

    @staticmethod
    def _matches_search(alert: Alert, needle: str) -> bool:
        transaction = alert.transaction
        return (
            needle in transaction.transaction_id.lower()
            or needle in transaction.account_id.lower()
            or needle in transaction.merchant.lower()
        )

    def get_review_history(self, limit: int = 100) -> List[ReviewAction]:
        return self._store(self.alerts.list_actions, limit, description="action list")

    def stats(self) -> Dict[str, Any]:
        """Aggregate counters over stored transactions and alerts."""
        total_transactions = self._store(
            self.transactions.count, description="transaction count"
        )
        average_score = self._store(
            self.transactions.average_score, description="average score"
        )
        total_alerts = self._store(self.alerts.count, description="alert count")
        critical_alerts = self._store(
            self.alerts.count, None, RiskLevel.CRITICAL, description="alert count"
        )
        high_risk_alerts = self._store(
            self.alerts.count, None, RiskLevel.HIGH, description="alert count"
        )
        pending_alerts = self._store(
            self.alerts.count, AlertStatus.PENDING, description="alert count"
        )
        blocked = self._store(
            self.alerts.list_alerts, AlertStatus.BLOCKED, description="blocked alerts"
        )

        return {
            "totalTransactions": total_transactions,
            "totalAlerts": total_alerts,
            "criticalAlerts": critical_alerts,
            "highRiskAlerts": high_risk_alerts,
            "pendingAlerts": pending_alerts,
            "alertRate": round(total_alerts / total_transactions, 4)
            if total_transactions
            else 0.0,
            "avgScore": round(average_score, 3),
            "blockedAmount": sum(
                alert.transaction.amount
                for alert in blocked
                if alert.action is AlertStatus.BLOCKED
            ),
        }

    def get_alert_statistics(self) -> Dict[str, Any]:
        """Process-local alert counters."""
        return dict(self.alert_counters)
