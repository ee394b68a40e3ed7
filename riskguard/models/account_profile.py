"""
Per-account rolling state consulted by feature extraction.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Any

from .transaction import Location, Transaction, parse_timestamp


@dataclass(frozen=True)
class AccountProfile:
    """Last known location and transaction time for one account.

    The profile also remembers which transaction wrote it and the state it
    replaced, so a transaction redelivered after its profile write can be
    scored against the same profile it saw the first time.
    """

    account_id: str
    last_location: Optional[Location] = None
    last_transaction_time: Optional[datetime] = None
    last_transaction_id: Optional[str] = None
    previous_location: Optional[Location] = None
    previous_transaction_time: Optional[datetime] = None

    def updated_with(self, transaction: Transaction) -> "AccountProfile":
        """Profile after the given transaction has been processed."""
        if transaction.transaction_id == self.last_transaction_id:
            return self
        return AccountProfile(
            account_id=self.account_id,
            # Transactions without a location keep the previous one
            last_location=transaction.location or self.last_location,
            last_transaction_time=transaction.timestamp,
            last_transaction_id=transaction.transaction_id,
            previous_location=self.last_location,
            previous_transaction_time=self.last_transaction_time,
        )

    def before(self, transaction_id: str) -> Optional["AccountProfile"]:
        """Profile as it was before the given transaction was applied."""
        if transaction_id != self.last_transaction_id:
            return self
        if self.previous_location is None and self.previous_transaction_time is None:
            return None
        return AccountProfile(
            account_id=self.account_id,
            last_location=self.previous_location,
            last_transaction_time=self.previous_transaction_time,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accountId": self.account_id,
            "lastLocation": _location_dict(self.last_location),
            "lastTransactionTime": _time_str(self.last_transaction_time),
            "lastTransactionId": self.last_transaction_id,
            "previousLocation": _location_dict(self.previous_location),
            "previousTransactionTime": _time_str(self.previous_transaction_time),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccountProfile":
        return cls(
            account_id=data["accountId"],
            last_location=Location.from_dict(data.get("lastLocation")),
            last_transaction_time=_parse_time(data.get("lastTransactionTime")),
            last_transaction_id=data.get("lastTransactionId"),
            previous_location=Location.from_dict(data.get("previousLocation")),
            previous_transaction_time=_parse_time(data.get("previousTransactionTime")),
        )


def _location_dict(location: Optional[Location]) -> Optional[Dict[str, Any]]:
    return location.to_dict() if location else None


def _time_str(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return parse_timestamp(value) if value else None
