"""Tests for risk scoring, risk levels and reason codes."""

import pytest

from riskguard.models.fraud_score import RiskLevel
from riskguard.models.reason_code import ReasonCodeType, Severity
from riskguard.processing.feature_engine import FeatureEngine
from riskguard.processing.risk_scorer import MODEL_VERSION, RiskScorer

from tests.builders import critical_payload, make_features, make_transaction


@pytest.fixture
def scorer():
    return RiskScorer()


def score_payload(scorer, transaction):
    features = FeatureEngine().extract(transaction, [], None)
    return scorer.score(transaction, features)


def test_critical_transaction(scorer):
    result, reasons = score_payload(scorer, make_transaction(**critical_payload()))

    assert result.score == pytest.approx(0.89)
    assert result.score >= 0.7
    assert result.risk_level is RiskLevel.CRITICAL
    assert result.model_version == MODEL_VERSION
    codes = [reason.code for reason in reasons]
    assert "HIGH_RISK_MERCHANT" in codes
    assert "CVV_VERIFICATION_FAILED" in codes
    assert "CARD_TESTING_PATTERN" in codes


def test_clean_transaction_scores_zero(scorer):
    result, reasons = score_payload(scorer, make_transaction())

    assert result.score == 0
    assert result.risk_level is RiskLevel.LOW
    assert result.contributions == {}
    assert reasons == []


def test_reason_codes_follow_fixed_order(scorer):
    _, reasons = score_payload(scorer, make_transaction(**critical_payload()))

    assert [reason.kind for reason in reasons] == [
        ReasonCodeType.CVV_VERIFICATION_FAILED,
        ReasonCodeType.CARD_TESTING_PATTERN,
        ReasonCodeType.VPN_PROXY_DETECTED,
        ReasonCodeType.SUSPICIOUS_DEVICE,
        ReasonCodeType.UNUSUAL_TRANSACTION_AMOUNT,
        ReasonCodeType.UNUSUAL_TRANSACTION_TIME,
        ReasonCodeType.HIGH_RISK_MERCHANT,
        ReasonCodeType.HIGH_RISK_MERCHANT_CATEGORY,
        ReasonCodeType.NEW_ACCOUNT_RISK,
    ]


def test_reason_code_text_and_severity(scorer):
    _, reasons = score_payload(scorer, make_transaction(**critical_payload()))
    by_kind = {reason.kind: reason for reason in reasons}

    card_testing = by_kind[ReasonCodeType.CARD_TESTING_PATTERN]
    assert card_testing.message == "4 previous declined attempts"
    assert card_testing.severity is Severity.HIGH
    assert card_testing.impact == "Critical"

    merchant = by_kind[ReasonCodeType.HIGH_RISK_MERCHANT]
    assert merchant.message == "High-risk merchant: CRYPTO_EXCHANGE"

    night = by_kind[ReasonCodeType.UNUSUAL_TRANSACTION_TIME]
    assert night.severity is Severity.LOW


def test_score_is_clamped_to_one(scorer):
    features = make_features(
        velocity_count=20,
        amount_delta=80000,
        geo_distance_km=5000,
        is_night_time=True,
        is_suspicious_merchant=True,
        is_suspicious_category=True,
        is_high_amount=True,
        is_vpn=True,
        is_tor=True,
        cvv_fail=True,
        avs_fail=True,
        is_suspicious_device=True,
        card_testing=True,
        is_new_account=True,
        previous_declines=5,
    )

    result, _ = scorer.score(make_transaction(), features)

    assert result.raw_total > 1
    assert result.score == 1.0
    assert result.risk_level is RiskLevel.CRITICAL


def test_velocity_contribution_scales_with_count(scorer):
    assert "velocityCount" not in scorer.calculate_contributions(
        make_features(velocity_count=5)
    )
    contributions = scorer.calculate_contributions(make_features(velocity_count=6))
    assert contributions["velocityCount"] == pytest.approx(0.09)


def test_geo_contribution_is_capped(scorer):
    assert "geoDistance" not in scorer.calculate_contributions(
        make_features(geo_distance_km=500)
    )
    near = scorer.calculate_contributions(make_features(geo_distance_km=600))
    far = scorer.calculate_contributions(make_features(geo_distance_km=2500))
    assert near["geoDistance"] == pytest.approx(0.108)
    assert far["geoDistance"] == pytest.approx(0.18)


def test_impossible_travel_reason(scorer):
    _, reasons = scorer.score(make_transaction(), make_features(geo_distance_km=1153.4))
    assert reasons[0].kind is ReasonCodeType.IMPOSSIBLE_TRAVEL
    assert reasons[0].message == "1153 km impossible travel distance"


@pytest.mark.parametrize(
    "delta,expected_kind,expected_contribution",
    [
        (10000, None, None),
        (15000, ReasonCodeType.AMOUNT_DEVIATION, 0.03),
        (30000, ReasonCodeType.SPENDING_PATTERN_ANOMALY, 0.06),
        (90000, ReasonCodeType.SPENDING_PATTERN_ANOMALY, 0.10),
    ],
)
def test_amount_deviation(scorer, delta, expected_kind, expected_contribution):
    features = make_features(amount_delta=delta, avg_amount=1000)

    result, reasons = scorer.score(make_transaction(), features)

    if expected_kind is None:
        assert "amountDelta" not in result.contributions
        assert reasons == []
    else:
        assert result.contributions["amountDelta"] == pytest.approx(
            expected_contribution
        )
        assert [reason.kind for reason in reasons] == [expected_kind]


@pytest.mark.parametrize(
    "score,level",
    [
        (0.0, RiskLevel.LOW),
        (0.35, RiskLevel.LOW),
        (0.351, RiskLevel.MEDIUM),
        (0.55, RiskLevel.MEDIUM),
        (0.551, RiskLevel.HIGH),
        (0.75, RiskLevel.HIGH),
        (0.751, RiskLevel.CRITICAL),
        (1.0, RiskLevel.CRITICAL),
    ],
)
def test_risk_level_cut_points(score, level):
    assert RiskLevel.from_score(score) is level


def test_risk_level_is_monotonic():
    order = [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL]
    levels = [order.index(RiskLevel.from_score(i / 1000)) for i in range(1001)]
    assert levels == sorted(levels)


def test_scores_stay_in_unit_interval(scorer):
    for velocity in range(0, 40, 5):
        for delta in (0, 20000, 200000):
            features = make_features(
                velocity_count=velocity,
                amount_delta=delta,
                is_tor=velocity % 2 == 0,
                cvv_fail=delta > 0,
            )
            result, _ = scorer.score(make_transaction(), features)
            assert 0.0 <= result.score <= 1.0
