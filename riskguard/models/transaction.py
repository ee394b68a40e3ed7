"""
Transaction data model for the risk scoring pipeline.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Any, List

from ..exceptions import InvalidTransactionError

UNKNOWN = "Unknown"

# Account age assumed when the payload does not carry one
DEFAULT_ACCOUNT_AGE_DAYS = 365


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO string, epoch number or datetime into an aware datetime."""
    if value is None:
        return datetime.now(timezone.utc)

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        # Values this large are epoch milliseconds
        seconds = value / 1000.0 if value > 1e11 else float(value)
        parsed = datetime.fromtimestamp(seconds, tz=timezone.utc)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise InvalidTransactionError(f"Invalid timestamp: {value!r}")
    else:
        raise InvalidTransactionError(f"Invalid timestamp: {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _text(value: Any, default: str = UNKNOWN) -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def _flag(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def _count(value: Any, name: str, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidTransactionError(f"Invalid {name}: {value!r}")


@dataclass(frozen=True)
class Location:
    """Geographic location data."""

    lat: float
    lon: float
    country: Optional[str] = None
    city: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lat": self.lat,
            "lon": self.lon,
            "country": self.country,
            "city": self.city,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["Location"]:
        """Create a location from its wire shape, or None when absent."""
        if not data:
            return None

        # Older producers send latitude/longitude
        lat = data.get("lat", data.get("latitude"))
        lon = data.get("lon", data.get("longitude"))
        try:
            lat = float(lat)
            lon = float(lon)
        except (TypeError, ValueError):
            raise InvalidTransactionError(f"Invalid location: {data!r}")

        if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
            raise InvalidTransactionError(f"Location out of range: {lat}, {lon}")

        return cls(
            lat=lat,
            lon=lon,
            country=data.get("country"),
            city=data.get("city"),
        )


@dataclass(frozen=True)
class Transaction:
    """A payment event submitted for risk evaluation. Never mutated once built."""

    # Core transaction data
    transaction_id: str
    account_id: str
    amount: float
    merchant: str = UNKNOWN
    category: str = UNKNOWN
    currency: Optional[str] = None

    # Location data
    location: Optional[Location] = None

    # Timing
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    # Device and network
    device: str = UNKNOWN
    browser: str = UNKNOWN
    device_id: Optional[str] = None
    ip_address: Optional[str] = None
    channel: Optional[str] = None
    is_vpn: bool = False
    is_tor: bool = False

    # Card verification
    card_last4: Optional[str] = None
    cvv_match: bool = True
    avs_match: bool = True
    previous_declines: int = 0

    # Account
    account_age: int = DEFAULT_ACCOUNT_AGE_DAYS

    def __post_init__(self):
        """Validate transaction data after initialization."""
        if not self.transaction_id:
            raise InvalidTransactionError("Transaction id is required")

        if not self.account_id:
            raise InvalidTransactionError(
                f"Transaction {self.transaction_id} has no account id"
            )

        if not math.isfinite(self.amount) or self.amount <= 0:
            raise InvalidTransactionError(
                f"Transaction {self.transaction_id} amount must be a positive number"
            )

        if self.previous_declines < 0 or self.account_age < 0:
            raise InvalidTransactionError(
                f"Transaction {self.transaction_id} has negative counters"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert transaction to its wire shape."""
        return {
            "id": self.transaction_id,
            "accountId": self.account_id,
            "amount": self.amount,
            "currency": self.currency,
            "merchant": self.merchant,
            "category": self.category,
            "location": self.location.to_dict() if self.location else None,
            "timestamp": self.timestamp.isoformat(),
            "device": self.device,
            "browser": self.browser,
            "deviceId": self.device_id,
            "ipAddress": self.ip_address,
            "channel": self.channel,
            "isVPN": self.is_vpn,
            "isTor": self.is_tor,
            "cardLast4": self.card_last4,
            "cvvMatch": self.cvv_match,
            "avsMatch": self.avs_match,
            "previousDeclines": self.previous_declines,
            "accountAge": self.account_age,
        }

    @staticmethod
    def extract_id(data: Dict[str, Any]) -> Optional[str]:
        """Return the transaction id of a raw payload, if it has one."""
        if not isinstance(data, dict):
            return None
        transaction_id = data.get("id") or data.get("transactionId")
        return str(transaction_id) if transaction_id else None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transaction":
        """Create transaction from its wire shape."""
        transaction_id = cls.extract_id(data)
        if not transaction_id:
            raise InvalidTransactionError("Transaction id is required")

        amount = data.get("amount")
        if isinstance(amount, bool):
            raise InvalidTransactionError(f"Invalid amount: {amount!r}")
        try:
            amount = float(amount)
        except (TypeError, ValueError):
            raise InvalidTransactionError(f"Invalid amount: {amount!r}")

        account_id = data.get("accountId")

        return cls(
            transaction_id=transaction_id,
            account_id=str(account_id) if account_id is not None else "",
            amount=amount,
            merchant=_text(data.get("merchant")),
            category=_text(data.get("category")),
            currency=data.get("currency"),
            location=Location.from_dict(data.get("location")),
            timestamp=parse_timestamp(data.get("timestamp")),
            device=_text(data.get("device")),
            browser=_text(data.get("browser")),
            device_id=data.get("deviceId"),
            ip_address=data.get("ipAddress"),
            channel=data.get("channel"),
            is_vpn=_flag(data.get("isVPN"), False),
            is_tor=_flag(data.get("isTor"), False),
            card_last4=data.get("cardLast4"),
            cvv_match=_flag(data.get("cvvMatch"), True),
            avs_match=_flag(data.get("avsMatch"), True),
            previous_declines=_count(
                data.get("previousDeclines"), "previousDeclines", 0
            ),
            account_age=_count(
                data.get("accountAge"), "accountAge", DEFAULT_ACCOUNT_AGE_DAYS
            ),
        )


@dataclass(frozen=True)
class TransactionRecord:
    """A processed transaction as kept by the transaction store."""

    transaction: Transaction
    score: float
    risk_level: str
    fraud_indicators: List[str] = field(default_factory=list)
    alert_created: bool = False
    processed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def transaction_id(self) -> str:
        return self.transaction.transaction_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transactionId": self.transaction.transaction_id,
            "transaction": self.transaction.to_dict(),
            "mlScore": self.score,
            "riskLevel": self.risk_level,
            "fraudIndicators": list(self.fraud_indicators),
            "alertCreated": self.alert_created,
            "processedAt": self.processed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TransactionRecord":
        return cls(
            transaction=Transaction.from_dict(data["transaction"]),
            score=float(data["mlScore"]),
            risk_level=data["riskLevel"],
            fraud_indicators=list(data.get("fraudIndicators", [])),
            alert_created=bool(data.get("alertCreated", False)),
            processed_at=parse_timestamp(data.get("processedAt")),
        )
