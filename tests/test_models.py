"""Tests for wire parsing and model defaults."""

from datetime import datetime, timezone

import pytest

from riskguard.exceptions import InvalidTransactionError
from riskguard.models.account_profile import AccountProfile
from riskguard.models.alert import Alert, AlertStatus
from riskguard.models.fraud_score import RiskLevel, ScoreResult
from riskguard.models.reason_code import ReasonCode, ReasonCodeType
from riskguard.models.transaction import Location, Transaction

from tests.builders import DELHI, make_payload, make_transaction


def test_missing_optional_fields_use_safe_defaults():
    txn = Transaction.from_dict({"id": "T1", "accountId": "A1", "amount": 10})

    assert txn.device == "Unknown"
    assert txn.browser == "Unknown"
    assert txn.merchant == "Unknown"
    assert txn.cvv_match is True
    assert txn.avs_match is True
    assert txn.is_vpn is False
    assert txn.is_tor is False
    assert txn.previous_declines == 0
    assert txn.account_age == 365
    assert txn.location is None
    assert txn.timestamp.tzinfo is not None


@pytest.mark.parametrize(
    "overrides",
    [
        {"amount": 0},
        {"amount": -5},
        {"amount": "abc"},
        {"amount": "nan"},
        {"amount": float("inf")},
        {"amount": True},
        {"accountId": None},
        {"location": {"lat": 120, "lon": 0}},
        {"location": {"lat": "north", "lon": 0}},
        {"timestamp": "yesterday"},
        {"previousDeclines": "many"},
    ],
)
def test_malformed_transactions_are_rejected(overrides):
    with pytest.raises(InvalidTransactionError):
        Transaction.from_dict(make_payload(**overrides))


def test_invalid_transaction_is_a_value_error():
    assert issubclass(InvalidTransactionError, ValueError)


def test_extract_id():
    assert Transaction.extract_id({"id": "A"}) == "A"
    assert Transaction.extract_id({"transactionId": 42}) == "42"
    assert Transaction.extract_id({"accountId": "X"}) is None
    assert Transaction.extract_id(["not", "a", "dict"]) is None


def test_timestamp_formats():
    iso = make_transaction(timestamp="2026-03-10T14:00:00Z").timestamp
    millis = make_transaction(timestamp=1773151200000).timestamp
    naive = make_transaction(timestamp="2026-03-10T14:00:00").timestamp

    expected = datetime(2026, 3, 10, 14, 0, tzinfo=timezone.utc)
    assert iso == expected
    assert millis == expected
    assert naive == expected


def test_location_accepts_long_names():
    location = Location.from_dict({"latitude": 19.07, "longitude": 72.87})
    assert (location.lat, location.lon) == (19.07, 72.87)


def test_wire_shape_uses_camel_case():
    data = make_transaction(isVPN=True, cvvMatch=False).to_dict()

    assert data["id"] == "TXN001"
    assert data["accountId"] == "ACC001"
    assert data["isVPN"] is True
    assert data["cvvMatch"] is False
    assert data["location"]["city"] == "Mumbai"


def test_profile_keeps_location_when_transaction_has_none():
    located = make_transaction()
    profile = AccountProfile("ACC001").updated_with(located)

    unlocated = make_transaction(id="T2", location=None)
    updated = profile.updated_with(unlocated)

    assert updated.last_location == located.location
    assert updated.last_transaction_time == unlocated.timestamp


def test_profile_applies_each_transaction_once():
    first = make_transaction()
    second = make_transaction(id="T2", location=dict(DELHI))
    profile = AccountProfile("ACC001").updated_with(first).updated_with(second)

    assert profile.updated_with(second) is profile
    assert profile.last_location.city == "Delhi"
    assert profile.previous_location.city == "Mumbai"


def test_profile_before_transaction():
    first = make_transaction()
    second = make_transaction(id="T2", location=dict(DELHI))
    profile = AccountProfile("ACC001").updated_with(first).updated_with(second)

    earlier = profile.before("T2")
    assert earlier.last_location.city == "Mumbai"
    assert earlier.last_transaction_time == first.timestamp
    assert profile.before("T3") is profile
    assert AccountProfile("ACC001").updated_with(first).before("TXN001") is None


def test_profile_survives_serialization():
    profile = (
        AccountProfile("ACC001")
        .updated_with(make_transaction())
        .updated_with(make_transaction(id="T2", location=dict(DELHI)))
    )
    assert AccountProfile.from_dict(profile.to_dict()) == profile


def test_reason_code_metadata():
    reason = ReasonCode(ReasonCodeType.SPENDING_PATTERN_ANOMALY, "msg", "why")
    assert reason.to_dict() == {
        "code": "SPENDING_PATTERN_ANOMALY",
        "message": "msg",
        "explanation": "why",
        "severity": "medium",
        "impact": "High",
    }
    assert ReasonCodeType.from_code("TOR_NETWORK_DETECTED") is ReasonCodeType.TOR_NETWORK_DETECTED


def test_alert_survives_serialization():
    txn = make_transaction()
    alert = Alert(
        alert_id="ALERT0001",
        transaction=txn,
        score_result=ScoreResult(txn.transaction_id, 0.62, {"cvvFail": 0.12}, "v3.2.0"),
        risk_level=RiskLevel.HIGH,
        reasons=(ReasonCode(ReasonCodeType.CVV_VERIFICATION_FAILED, "m", "e"),),
        created_at=datetime(2026, 3, 10, 14, 0, 5, tzinfo=timezone.utc),
    ).reviewed(
        AlertStatus.BLOCKED,
        "fraud",
        "analyst",
        datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc),
    )

    restored = Alert.from_dict(alert.to_dict())

    assert restored.status is AlertStatus.BLOCKED
    assert restored.reviewed_at == alert.reviewed_at
    assert restored.transaction == alert.transaction
    assert restored.reasons == alert.reasons
    assert restored.score == 0.62
