"""
Store interfaces consumed by the processing pipeline and the alert manager.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from ..models.account_profile import AccountProfile
from ..models.alert import Alert, AlertStatus, ReviewAction
from ..models.fraud_score import RiskLevel
from ..models.transaction import Transaction, TransactionRecord


class AccountProfileStore(ABC):
    """Keyed per-account rolling state. Last write wins."""

    @abstractmethod
    def get(self, account_id: str) -> Optional[AccountProfile]:
        """Return the profile for an account, or None if it has none yet."""

    @abstractmethod
    def put(self, profile: AccountProfile) -> None:
        """Store the profile, replacing any previous one."""


class TransactionRepository(ABC):
    """Processed transaction records, keyed by transaction id."""

    @abstractmethod
    def exists(self, transaction_id: str) -> bool:
        """Whether the transaction has already been recorded."""

    @abstractmethod
    def insert(self, record: TransactionRecord) -> bool:
        """Record a processed transaction. Returns False if it was already there."""

    @abstractmethod
    def get(self, transaction_id: str) -> Optional[TransactionRecord]:
        """Return a stored record by transaction id."""

    @abstractmethod
    def recent_for_account(
        self, account_id: str, start: datetime, end: datetime
    ) -> List[Transaction]:
        """Transactions of one account with start <= timestamp <= end."""

    @abstractmethod
    def list_recent(self, limit: int = 100) -> List[TransactionRecord]:
        """Most recently processed records, newest first."""

    @abstractmethod
    def count(self) -> int:
        """Number of stored transactions."""

    @abstractmethod
    def average_score(self) -> float:
        """Mean score over all stored transactions, 0.0 when empty."""


class AlertRepository(ABC):
    """Alerts and the reviewer action log."""

    @abstractmethod
    def insert_if_absent(self, alert: Alert) -> Alert:
        """Store the alert unless its transaction already has one.

        Returns whichever alert ends up stored for the transaction.
        """

    @abstractmethod
    def get(self, alert_id: str) -> Optional[Alert]:
        """Return an alert by id."""

    @abstractmethod
    def get_by_transaction(self, transaction_id: str) -> Optional[Alert]:
        """Return the alert opened for a transaction, if any."""

    @abstractmethod
    def compare_and_update(self, alert: Alert, expected_status: AlertStatus) -> bool:
        """Replace the stored alert only if it still has the expected status."""

    @abstractmethod
    def list_alerts(
        self, status: Optional[AlertStatus] = None, limit: Optional[int] = None
    ) -> List[Alert]:
        """Alerts ordered by creation time, newest first."""

    @abstractmethod
    def count(
        self,
        status: Optional[AlertStatus] = None,
        risk_level: Optional[RiskLevel] = None,
    ) -> int:
        """Number of alerts, optionally restricted to one status or risk level."""

    @abstractmethod
    def append_action(self, action: ReviewAction) -> None:
        """Add an entry to the reviewer action log."""

    @abstractmethod
    def list_actions(self, limit: int = 100) -> List[ReviewAction]:
        """Reviewer actions, newest first."""
