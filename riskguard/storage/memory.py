"""
In-process stores, used for local runs and tests.
"""

import threading
from datetime import datetime
from typing import Dict, List, Optional

from ..models.account_profile import AccountProfile
from ..models.alert import Alert, AlertStatus, ReviewAction
from ..models.fraud_score import RiskLevel
from ..models.transaction import Transaction, TransactionRecord
from .base import AccountProfileStore, AlertRepository, TransactionRepository


class InMemoryAccountProfileStore(AccountProfileStore):
    def __init__(self):
        self._profiles: Dict[str, AccountProfile] = {}
        self._lock = threading.Lock()

    def get(self, account_id: str) -> Optional[AccountProfile]:
        with self._lock:
            return self._profiles.get(account_id)

    def put(self, profile: AccountProfile) -> None:
        with self._lock:
            self._profiles[profile.account_id] = profile


class InMemoryTransactionRepository(TransactionRepository):
    def __init__(self):
        self._records: Dict[str, TransactionRecord] = {}
        self._by_account: Dict[str, List[Transaction]] = {}
        self._lock = threading.Lock()

    def exists(self, transaction_id: str) -> bool:
        with self._lock:
            return transaction_id in self._records

    def insert(self, record: TransactionRecord) -> bool:
        with self._lock:
            if record.transaction_id in self._records:
                return False
            self._records[record.transaction_id] = record
            self._by_account.setdefault(record.transaction.account_id, []).append(
                record.transaction
            )
            return True

    def get(self, transaction_id: str) -> Optional[TransactionRecord]:
        with self._lock:
            return self._records.get(transaction_id)

    def recent_for_account(
        self, account_id: str, start: datetime, end: datetime
    ) -> List[Transaction]:
        with self._lock:
            return [
                t
                for t in self._by_account.get(account_id, [])
                if start <= t.timestamp <= end
            ]

    def list_recent(self, limit: int = 100) -> List[TransactionRecord]:
        with self._lock:
            records = sorted(
                self._records.values(), key=lambda r: r.processed_at, reverse=True
            )
        return records[:limit]

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def average_score(self) -> float:
        with self._lock:
            if not self._records:
                return 0.0
            return sum(r.score for r in self._records.values()) / len(self._records)


class InMemoryAlertRepository(AlertRepository):
    def __init__(self):
        self._alerts: Dict[str, Alert] = {}
        self._by_transaction: Dict[str, str] = {}
        self._actions: List[ReviewAction] = []
        self._lock = threading.Lock()

    def insert_if_absent(self, alert: Alert) -> Alert:
        with self._lock:
            existing_id = self._by_transaction.get(alert.transaction_id)
            if existing_id:
                return self._alerts[existing_id]
            self._alerts[alert.alert_id] = alert
            self._by_transaction[alert.transaction_id] = alert.alert_id
            return alert

    def get(self, alert_id: str) -> Optional[Alert]:
        with self._lock:
            return self._alerts.get(alert_id)

    def get_by_transaction(self, transaction_id: str) -> Optional[Alert]:
        with self._lock:
            alert_id = self._by_transaction.get(transaction_id)
            return self._alerts.get(alert_id) if alert_id else None

    def compare_and_update(self, alert: Alert, expected_status: AlertStatus) -> bool:
        with self._lock:
            current = self._alerts.get(alert.alert_id)
            if current is None or current.status is not expected_status:
                return False
            self._alerts[alert.alert_id] = alert
            return True

    def list_alerts(
        self, status: Optional[AlertStatus] = None, limit: Optional[int] = None
    ) -> List[Alert]:
        with self._lock:
            alerts = [
                a for a in self._alerts.values() if status is None or a.status is status
            ]
        alerts.sort(key=lambda a: a.created_at, reverse=True)
        return alerts[:limit] if limit is not None else alerts

    def count(
        self,
        status: Optional[AlertStatus] = None,
        risk_level: Optional[RiskLevel] = None,
    ) -> int:
        with self._lock:
            return sum(
                1
                for a in self._alerts.values()
                if (status is None or a.status is status)
                and (risk_level is None or a.risk_level is risk_level)
            )

    def append_action(self, action: ReviewAction) -> None:
        with self._lock:
            self._actions.append(action)

    def list_actions(self, limit: int = 100) -> List[ReviewAction]:
        with self._lock:
            return list(reversed(self._actions))[:limit]
