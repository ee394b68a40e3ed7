"""
Feature engineering for transaction risk scoring.
"""

import math
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Any, Optional, Sequence, Tuple

import numpy as np

from ..models.transaction import Transaction, Location
from ..models.account_profile import AccountProfile
from ..models.fraud_score import FeatureVector

EARTH_RADIUS_KM = 6371.0

DEFAULT_SUSPICIOUS_MERCHANTS = (
    "UNKNOWN_MERCHANT",
    "CRYPTO_EXCHANGE",
    "OFFSHORE_CASINO",
    "HIGH_RISK_VENDOR",
)
DEFAULT_SUSPICIOUS_CATEGORIES = ("GAMBLING", "CRYPTO", "WIRE_TRANSFER", "GIFT_CARDS")
DEFAULT_DEVICE_FINGERPRINTS = ("EMULATOR", "ROOTED", "JAILBROKEN")


@dataclass(frozen=True)
class FraudPatterns:
    """Thresholds and denylists used by feature extraction and scoring."""

    velocity_window_minutes: int = 10
    velocity_threshold: int = 5
    amount_threshold: float = 50000.0
    geo_distance_threshold_km: float = 500.0
    night_time_start: int = 23
    night_time_end: int = 5
    new_account_days: int = 30
    card_testing_declines: int = 3
    suspicious_merchants: Tuple[str, ...] = DEFAULT_SUSPICIOUS_MERCHANTS
    suspicious_categories: Tuple[str, ...] = DEFAULT_SUSPICIOUS_CATEGORIES
    device_fingerprints: Tuple[str, ...] = DEFAULT_DEVICE_FINGERPRINTS

    @property
    def velocity_window(self) -> timedelta:
        return timedelta(minutes=self.velocity_window_minutes)

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "FraudPatterns":
        """Build patterns from the `detection` config section."""
        config = config or {}
        defaults = cls()
        return cls(
            velocity_window_minutes=int(
                config.get("velocity_window_minutes", defaults.velocity_window_minutes)
            ),
            velocity_threshold=int(
                config.get("velocity_threshold", defaults.velocity_threshold)
            ),
            amount_threshold=float(
                config.get("amount_threshold", defaults.amount_threshold)
            ),
            geo_distance_threshold_km=float(
                config.get(
                    "geo_distance_threshold_km", defaults.geo_distance_threshold_km
                )
            ),
            night_time_start=int(
                config.get("night_time_start", defaults.night_time_start)
            ),
            night_time_end=int(config.get("night_time_end", defaults.night_time_end)),
            new_account_days=int(
                config.get("new_account_days", defaults.new_account_days)
            ),
            card_testing_declines=int(
                config.get("card_testing_declines", defaults.card_testing_declines)
            ),
            suspicious_merchants=tuple(
                config.get("suspicious_merchants", defaults.suspicious_merchants)
            ),
            suspicious_categories=tuple(
                config.get("suspicious_categories", defaults.suspicious_categories)
            ),
            device_fingerprints=tuple(
                f.upper()
                for f in config.get(
                    "device_fingerprints", defaults.device_fingerprints
                )
            ),
        )


def haversine_distance(origin: Location, destination: Location) -> float:
    """Great-circle distance in kilometres between two locations."""
    lat1_rad = math.radians(origin.lat)
    lat2_rad = math.radians(destination.lat)
    dlat = math.radians(destination.lat - origin.lat)
    dlon = math.radians(destination.lon - origin.lon)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    )
    # Float error can push a slightly outside [0, 1] near antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return max(0.0, EARTH_RADIUS_KM * c)


class FeatureEngine:
    """Turns a transaction plus its account context into a FeatureVector.

    The engine does no I/O. Callers supply the windowed history and the
    account profile, and are responsible for serializing per-account access.
    """

    def __init__(self, patterns: Optional[FraudPatterns] = None):
        """Initialize the feature engine."""
        self.patterns = patterns or FraudPatterns()
        self.logger = logging.getLogger(__name__)

    def history_window(self, transaction: Transaction) -> Tuple[datetime, datetime]:
        """Inclusive time range whose transactions count towards velocity."""
        return (
            transaction.timestamp - self.patterns.velocity_window,
            transaction.timestamp,
        )

    def select_recent_history(
        self, transaction: Transaction, candidates: Sequence[Transaction]
    ) -> List[Transaction]:
        """Keep the account's other transactions that fall inside the window."""
        start, end = self.history_window(transaction)
        return [
            t
            for t in candidates
            if t.account_id == transaction.account_id
            and t.transaction_id != transaction.transaction_id
            and start <= t.timestamp <= end
        ]

    def extract(
        self,
        transaction: Transaction,
        recent_history: Sequence[Transaction],
        profile: Optional[AccountProfile] = None,
    ) -> FeatureVector:
        """Calculate all features for a transaction."""
        velocity_count, avg_amount, amount_delta = self._velocity_and_amount(
            transaction, recent_history
        )

        features = FeatureVector(
            transaction_id=transaction.transaction_id,
            velocity_count=velocity_count,
            avg_amount=avg_amount,
            amount_delta=amount_delta,
            geo_distance_km=self._geo_distance(transaction, profile),
            is_night_time=self._is_night_time(transaction.timestamp),
            is_suspicious_merchant=transaction.merchant
            in self.patterns.suspicious_merchants,
            is_suspicious_category=transaction.category
            in self.patterns.suspicious_categories,
            is_high_amount=transaction.amount > self.patterns.amount_threshold,
            is_vpn=transaction.is_vpn,
            is_tor=transaction.is_tor,
            cvv_fail=not transaction.cvv_match,
            avs_fail=not transaction.avs_match,
            is_suspicious_device=self._is_suspicious_device(transaction.device),
            card_testing=transaction.previous_declines
            >= self.patterns.card_testing_declines,
            is_new_account=transaction.account_age < self.patterns.new_account_days,
            previous_declines=transaction.previous_declines,
        )

        self.logger.debug(
            f"Features for {transaction.transaction_id}: velocity={velocity_count}, "
            f"delta={amount_delta:.2f}, distance={features.geo_distance_km:.1f}km"
        )
        return features

    def _velocity_and_amount(
        self, transaction: Transaction, recent_history: Sequence[Transaction]
    ) -> Tuple[int, float, float]:
        """Calculate velocity and amount-deviation features."""
        velocity_count = len(recent_history)

        if velocity_count:
            avg_amount = float(np.mean([t.amount for t in recent_history]))
        else:
            # First transaction in the window has nothing to deviate from
            avg_amount = transaction.amount

        amount_delta = abs(transaction.amount - avg_amount)
        return velocity_count, avg_amount, amount_delta

    def _geo_distance(
        self, transaction: Transaction, profile: Optional[AccountProfile]
    ) -> float:
        """Distance from the account's last known location."""
        if profile is None or profile.last_location is None:
            return 0.0
        if transaction.location is None:
            return 0.0
        return haversine_distance(profile.last_location, transaction.location)

    def _is_night_time(self, timestamp: datetime) -> bool:
        hour = timestamp.hour
        return (
            hour >= self.patterns.night_time_start
            or hour <= self.patterns.night_time_end
        )

    def _is_suspicious_device(self, device: Optional[str]) -> bool:
        device = (device or "").upper()
        return any(
            fingerprint in device for fingerprint in self.patterns.device_fingerprints
        )
