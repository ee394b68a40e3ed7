"""
Weighted-evidence risk scorer with per-indicator contributions and reason codes.
"""

import logging
from typing import Dict, List, Optional, Tuple

from ..models.transaction import Transaction
from ..models.fraud_score import FeatureVector, ScoreResult
from ..models.reason_code import ReasonCode, ReasonCodeType
from .feature_engine import FraudPatterns

MODEL_VERSION = "v3.2.0"

# Single source of truth for indicator weights
INDICATOR_WEIGHTS: Dict[str, float] = {
    "velocityCount": 0.15,
    "amountDelta": 0.10,
    "geoDistance": 0.18,
    "isNightTime": 0.08,
    "isSuspiciousMerchant": 0.15,
    "isSuspiciousCategory": 0.12,
    "isHighAmount": 0.08,
    "isVPN": 0.05,
    "isTor": 0.10,
    "cvvFail": 0.12,
    "avsFail": 0.08,
    "isSuspiciousDevice": 0.10,
    "cardTesting": 0.12,
    "isNewAccount": 0.07,
}

# Amount deviation activation and the level at which it becomes a spending anomaly
AMOUNT_DELTA_THRESHOLD = 10000.0
SPENDING_ANOMALY_THRESHOLD = 20000.0
AMOUNT_DELTA_SCALE = 50000.0
GEO_DISTANCE_SCALE_KM = 1000.0
VELOCITY_SCALE = 10.0


def _money(amount: float, currency: Optional[str] = None) -> str:
    text = f"{amount:,.0f}"
    return f"{currency} {text}" if currency else text


class RiskScorer:
    """Scores feature vectors and explains the score with reason codes."""

    def __init__(self, patterns: Optional[FraudPatterns] = None):
        """Initialize the risk scorer."""
        self.patterns = patterns or FraudPatterns()
        self.model_version = MODEL_VERSION
        self.logger = logging.getLogger(__name__)

    def score(
        self, transaction: Transaction, features: FeatureVector
    ) -> Tuple[ScoreResult, List[ReasonCode]]:
        """Score a transaction and generate its reason codes."""
        contributions = self.calculate_contributions(features)
        total = sum(contributions.values())
        score = round(min(max(total, 0.0), 1.0), 3)

        result = ScoreResult(
            transaction_id=transaction.transaction_id,
            score=score,
            contributions=contributions,
            model_version=self.model_version,
        )
        reasons = self.generate_reason_codes(transaction, features)

        self.logger.debug(
            f"Scored {transaction.transaction_id}: {score:.3f} "
            f"({result.risk_level.value}) from {len(contributions)} indicators"
        )
        return result, reasons

    def calculate_contributions(self, features: FeatureVector) -> Dict[str, float]:
        """Contribution of every active indicator, before clamping."""
        weights = INDICATOR_WEIGHTS
        contributions: Dict[str, float] = {}

        if features.velocity_count > self.patterns.velocity_threshold:
            contributions["velocityCount"] = (
                features.velocity_count / VELOCITY_SCALE
            ) * weights["velocityCount"]

        if features.amount_delta > AMOUNT_DELTA_THRESHOLD:
            contributions["amountDelta"] = (
                min(features.amount_delta / AMOUNT_DELTA_SCALE, 1.0)
                * weights["amountDelta"]
            )

        if features.geo_distance_km > self.patterns.geo_distance_threshold_km:
            contributions["geoDistance"] = (
                min(features.geo_distance_km / GEO_DISTANCE_SCALE_KM, 1.0)
                * weights["geoDistance"]
            )

        flags = (
            ("isNightTime", features.is_night_time),
            ("isSuspiciousMerchant", features.is_suspicious_merchant),
            ("isSuspiciousCategory", features.is_suspicious_category),
            ("isHighAmount", features.is_high_amount),
            ("isVPN", features.is_vpn),
            ("isTor", features.is_tor),
            ("cvvFail", features.cvv_fail),
            ("avsFail", features.avs_fail),
            ("isSuspiciousDevice", features.is_suspicious_device),
            ("cardTesting", features.card_testing),
            ("isNewAccount", features.is_new_account),
        )
        for name, active in flags:
            if active:
                contributions[name] = weights[name]

        return contributions

    def generate_reason_codes(
        self, transaction: Transaction, features: FeatureVector
    ) -> List[ReasonCode]:
        """Explain every active indicator, always in the same order."""
        patterns = self.patterns
        reasons: List[ReasonCode] = []

        if features.velocity_count > patterns.velocity_threshold:
            reasons.append(
                ReasonCode(
                    ReasonCodeType.VELOCITY_HIGH,
                    f"{features.velocity_count} transactions in "
                    f"{patterns.velocity_window_minutes} minutes "
                    f"(threshold: {patterns.velocity_threshold})",
                    f"Abnormal transaction frequency detected. This account made "
                    f"{features.velocity_count} transactions within "
                    f"{patterns.velocity_window_minutes} minutes, exceeding normal "
                    f"patterns by {features.velocity_count - patterns.velocity_threshold}. "
                    "Such rapid activity often indicates card testing or "
                    "compromised credentials.",
                )
            )

        if features.geo_distance_km > patterns.geo_distance_threshold_km:
            distance = round(features.geo_distance_km)
            reasons.append(
                ReasonCode(
                    ReasonCodeType.IMPOSSIBLE_TRAVEL,
                    f"{distance} km impossible travel distance",
                    f"Transaction location is {distance} kilometers from the "
                    "previous transaction. The time gap makes this travel "
                    "physically impossible, indicating potential card cloning or "
                    "account takeover.",
                )
            )

        if features.cvv_fail:
            reasons.append(
                ReasonCode(
                    ReasonCodeType.CVV_VERIFICATION_FAILED,
                    "CVV verification failed",
                    "The Card Verification Value (CVV) provided does not match "
                    "bank records. This is a strong indicator that the physical "
                    "card is not present and the transaction may be using stolen "
                    "card details.",
                )
            )

        if features.avs_fail:
            reasons.append(
                ReasonCode(
                    ReasonCodeType.ADDRESS_VERIFICATION_FAILED,
                    "AVS (Address Verification System) mismatch",
                    "The billing address provided does not match the address on "
                    "file with the card issuer. This suggests the cardholder "
                    "information may be incomplete or stolen.",
                )
            )

        if features.card_testing:
            reasons.append(
                ReasonCode(
                    ReasonCodeType.CARD_TESTING_PATTERN,
                    f"{features.previous_declines} previous declined attempts",
                    f"This card has been declined {features.previous_declines} "
                    "times recently. Multiple decline patterns often indicate "
                    "fraudsters testing stolen card numbers to find valid ones.",
                )
            )

        if features.is_tor:
            reasons.append(
                ReasonCode(
                    ReasonCodeType.TOR_NETWORK_DETECTED,
                    "Transaction via TOR network",
                    "The transaction originated from the TOR anonymity network. "
                    "While legitimate users may use TOR, it is frequently used by "
                    "fraudsters to mask their real location and identity.",
                )
            )

        if features.is_vpn:
            reasons.append(
                ReasonCode(
                    ReasonCodeType.VPN_PROXY_DETECTED,
                    "VPN or proxy detected",
                    "The transaction came through a VPN or proxy server. This "
                    "masks the true origin of the transaction and is a common "
                    "technique used in fraudulent activities.",
                )
            )

        if features.is_suspicious_device:
            reasons.append(
                ReasonCode(
                    ReasonCodeType.SUSPICIOUS_DEVICE,
                    "Emulator or rooted device detected",
                    "Device fingerprinting indicates an emulator, rooted, or "
                    f"jailbroken device ({transaction.device}). These modified "
                    "devices are commonly used by fraudsters to bypass security "
                    "controls.",
                )
            )

        if features.is_high_amount:
            reasons.append(
                ReasonCode(
                    ReasonCodeType.UNUSUAL_TRANSACTION_AMOUNT,
                    f"High amount: {_money(transaction.amount, transaction.currency)} "
                    "exceeds threshold",
                    "Transaction amount significantly exceeds the normal threshold "
                    f"of {_money(patterns.amount_threshold, transaction.currency)}. "
                    "Large atypical transactions often indicate account takeover "
                    "or fraudulent purchases.",
                )
            )

        if features.is_night_time:
            reasons.append(
                ReasonCode(
                    ReasonCodeType.UNUSUAL_TRANSACTION_TIME,
                    f"Late night transaction ({patterns.night_time_start}:00 - "
                    f"{patterns.night_time_end}:59)",
                    "Transaction occurred during unusual hours when legitimate "
                    "cardholders are typically inactive. Fraudsters often operate "
                    "during these hours to delay detection.",
                )
            )

        if features.is_suspicious_merchant:
            reasons.append(
                ReasonCode(
                    ReasonCodeType.HIGH_RISK_MERCHANT,
                    f"High-risk merchant: {transaction.merchant}",
                    f'The merchant "{transaction.merchant}" is flagged as '
                    "high-risk due to historical fraud patterns, unusual business "
                    "practices, or regulatory concerns. Transactions with such "
                    "merchants require enhanced scrutiny.",
                )
            )

        if features.is_suspicious_category:
            reasons.append(
                ReasonCode(
                    ReasonCodeType.HIGH_RISK_MERCHANT_CATEGORY,
                    f"High-risk category: {transaction.category}",
                    f'Transaction category "{transaction.category}" has '
                    "statistically higher fraud rates. Categories like gambling, "
                    "cryptocurrency, wire transfers, and gift cards are frequently "
                    "targeted by fraudsters.",
                )
            )

        if features.is_new_account:
            reasons.append(
                ReasonCode(
                    ReasonCodeType.NEW_ACCOUNT_RISK,
                    f"New account ({transaction.account_age} days old)",
                    f"Account is only {transaction.account_age} days old. Newly "
                    "created accounts have higher fraud rates as fraudsters often "
                    "create fresh accounts using stolen identities to avoid "
                    "detection.",
                )
            )

        amount_reason = self._amount_deviation_reason(transaction, features)
        if amount_reason:
            reasons.append(amount_reason)

        return reasons

    def _amount_deviation_reason(
        self, transaction: Transaction, features: FeatureVector
    ) -> Optional[ReasonCode]:
        if features.amount_delta <= AMOUNT_DELTA_THRESHOLD:
            return None

        delta = _money(features.amount_delta, transaction.currency)
        average = _money(features.avg_amount, transaction.currency)

        if features.amount_delta > SPENDING_ANOMALY_THRESHOLD:
            return ReasonCode(
                ReasonCodeType.SPENDING_PATTERN_ANOMALY,
                f"{delta} deviation from normal spending",
                f"Transaction deviates by {delta} from the historical average of "
                f"{average}. Sudden spending pattern changes often indicate "
                "account compromise.",
            )

        return ReasonCode(
            ReasonCodeType.AMOUNT_DEVIATION,
            f"{delta} above recent average",
            f"Transaction amount differs by {delta} from the recent average of "
            f"{average} for this account.",
        )
