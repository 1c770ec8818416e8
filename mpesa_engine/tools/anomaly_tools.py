"""Rule-based anomaly and fraud detection for wallet transactions"""

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Union
import pandas as pd
from pydantic import BaseModel, Field
from mpesa_engine.constants import (
    TransactionType,
    Sensitivity,
    RiskLevel,
    SENSITIVITY_MULTIPLIERS,
    RAPID_CONSECUTIVE_SECONDS,
    PENNY_PROBE_AMOUNT,
    LARGE_SEND_AMOUNT,
    LOW_CONFIDENCE_THRESHOLD,
    ROUND_NUMBER_UNIT,
    CROSS_NETWORK_AMOUNT,
    FULIZA_MAX_TRANSACTIONS,
    HIGH_RISK_SCORE,
    CRITICAL_RISK_SCORE,
    SUSPICIOUS_NAME_TOKENS,
    LEGITIMATE_ROUND_KEYWORDS,
    DEFAULT_CHECK_WEIGHT
)
from mpesa_engine.models import Transaction, BusinessProfile, AnomalyFinding, AnomalyReport
from mpesa_engine.utils.config_loader import get_section
from mpesa_engine.utils.logging import get_logger
from mpesa_engine.utils.metrics import anomaly_checks_fired

logger = get_logger(__name__)

DEFAULT_CHECK_WEIGHTS = {
    'fraud_name_pattern': 0.9,
    'rapid_consecutive': 0.8,
    'duplicate_transactions': 0.8,
    'unusual_amount': 0.7,
    'round_number_fraud': 0.6,
    'cross_network_anomaly': 0.5,
    'fuliza_overuse': 0.4,
    'unusual_time': 0.3,
}

CRITICAL_CHECKS = frozenset({
    'fraud_name_pattern',
    'unusual_amount',
    'rapid_consecutive',
    'duplicate_transactions',
})

# Highest priority first; the first fired check picks the recommendation
RECOMMENDATIONS = (
    ('fraud_name_pattern', 'URGENT: Potential fraud detected. Contact M-Pesa customer care immediately.'),
    ('unusual_amount', 'Large transaction detected. Please verify this was authorized.'),
    ('rapid_consecutive', 'Multiple transactions in quick succession. Check for unauthorized access to your M-Pesa.'),
    ('duplicate_transactions', 'Possible duplicate payment. Check with recipient before sending again.'),
    ('round_number_fraud', 'Round-number transfer without a stated purpose. Confirm the recipient before sending more.'),
    ('cross_network_anomaly', 'Large transfer to another network. Verify the destination account.'),
    ('fuliza_overuse', 'Frequent Fuliza borrowing. Review cash flow to reduce overdraft costs.'),
    ('unusual_time', 'Transaction outside business hours. Please verify the details are correct.'),
)
DEFAULT_RECOMMENDATION = 'Transaction flagged for review. Please verify the details are correct.'


class AnomalySettings(BaseModel):
    """Thresholds for the anomaly checks, read from the 'anomaly_detection' config section"""

    default_sensitivity: Sensitivity = Field(default=Sensitivity.MEDIUM)
    sensitivity_multipliers: Dict[Sensitivity, int] = Field(
        default_factory=lambda: dict(SENSITIVITY_MULTIPLIERS)
    )
    rapid_consecutive_seconds: int = Field(default=RAPID_CONSECUTIVE_SECONDS, gt=0)
    penny_probe_amount: Decimal = Field(default=PENNY_PROBE_AMOUNT)
    large_send_amount: Decimal = Field(default=LARGE_SEND_AMOUNT)
    low_confidence_threshold: float = Field(default=LOW_CONFIDENCE_THRESHOLD, ge=0, le=1)
    round_number_unit: Decimal = Field(default=ROUND_NUMBER_UNIT, gt=0)
    cross_network_amount: Decimal = Field(default=CROSS_NETWORK_AMOUNT)
    fuliza_max_transactions: int = Field(default=FULIZA_MAX_TRANSACTIONS, ge=0)
    suspicious_name_tokens: List[str] = Field(default_factory=lambda: list(SUSPICIOUS_NAME_TOKENS))
    legitimate_round_keywords: List[str] = Field(default_factory=lambda: list(LEGITIMATE_ROUND_KEYWORDS))
    check_weights: Dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_CHECK_WEIGHTS))

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "AnomalySettings":
        section = get_section(config, 'anomaly_detection')
        return cls(**{key: value for key, value in section.items() if key in cls.model_fields})

    def multiplier_for(self, sensitivity: Sensitivity) -> int:
        return self.sensitivity_multipliers.get(sensitivity, SENSITIVITY_MULTIPLIERS[sensitivity])

    def weight_for(self, check: str) -> float:
        return self.check_weights.get(check, DEFAULT_CHECK_WEIGHT)


CheckFunction = Callable[[List[Transaction], BusinessProfile, AnomalySettings, Sensitivity], List[bool]]


def check_unusual_amount(transactions, profile, settings, sensitivity) -> List[bool]:
    """Amount above the business average times the sensitivity multiplier"""
    threshold = profile.average_transaction_size * settings.multiplier_for(sensitivity)
    return [t.amount > threshold for t in transactions]


def check_unusual_time(transactions, profile, settings, sensitivity) -> List[bool]:
    """Time outside every declared peak-hour range; transactions without a time never fire"""
    return [t.time is not None and not profile.is_within_peak_hours(t.time) for t in transactions]


def check_duplicate_transactions(transactions, profile, settings, sensitivity) -> List[bool]:
    """Another transaction in the window shares amount, counterparty and date"""
    if not transactions:
        return []
    df = pd.DataFrame(
        [{'amount': t.amount, 'counterparty': t.counterparty, 'date': t.date} for t in transactions]
    )
    return df.duplicated(subset=['amount', 'counterparty', 'date'], keep=False).tolist()


def check_fraud_name_pattern(transactions, profile, settings, sensitivity) -> List[bool]:
    """Suspicious counterparty token, penny probe, or a large low-confidence send"""
    tokens = [token.lower() for token in settings.suspicious_name_tokens]
    results = []
    for t in transactions:
        name = t.counterparty.lower()
        results.append(
            any(token in name for token in tokens)
            or t.amount == settings.penny_probe_amount
            or (
                t.type == TransactionType.SENT
                and t.amount > settings.large_send_amount
                and t.confidence_score < settings.low_confidence_threshold
            )
        )
    return results


def check_rapid_consecutive(transactions, profile, settings, sensitivity) -> List[bool]:
    """Another transaction on the same account within the rapid window"""
    window = settings.rapid_consecutive_seconds
    by_account: Dict[Optional[str], List[tuple]] = defaultdict(list)
    for index, t in enumerate(transactions):
        if t.occurred_at is not None:
            by_account[t.business_id].append((t.occurred_at, index))

    results = [False] * len(transactions)
    for moments in by_account.values():
        moments.sort()
        for (earlier, first), (later, second) in zip(moments, moments[1:]):
            if (later - earlier).total_seconds() < window:
                results[first] = True
                results[second] = True
    return results


def check_round_number_fraud(transactions, profile, settings, sensitivity) -> List[bool]:
    """Round-thousand send with no rent/salary/loan reference"""
    keywords = [keyword.lower() for keyword in settings.legitimate_round_keywords]
    unit = settings.round_number_unit
    results = []
    for t in transactions:
        reference = (t.reference or '').lower()
        results.append(
            t.type == TransactionType.SENT
            and t.amount > unit
            and t.amount % unit == 0
            and not any(keyword in reference for keyword in keywords)
        )
    return results


def check_cross_network_anomaly(transactions, profile, settings, sensitivity) -> List[bool]:
    """Large transaction on a network other than the account's home network"""
    return [
        t.network != profile.home_network and t.amount > settings.cross_network_amount
        for t in transactions
    ]


def check_fuliza_overuse(transactions, profile, settings, sensitivity) -> List[bool]:
    """Fuliza transaction on an account with too many Fuliza transactions in the window"""
    counts: Dict[Optional[str], int] = defaultdict(int)
    for t in transactions:
        if t.type == TransactionType.FULIZA:
            counts[t.business_id] += 1
    return [
        t.type == TransactionType.FULIZA and counts[t.business_id] > settings.fuliza_max_transactions
        for t in transactions
    ]


# Evaluation order; also the order of anomaly_types on a finding
ANOMALY_CHECKS: Dict[str, CheckFunction] = {
    'unusual_amount': check_unusual_amount,
    'unusual_time': check_unusual_time,
    'duplicate_transactions': check_duplicate_transactions,
    'fraud_name_pattern': check_fraud_name_pattern,
    'rapid_consecutive': check_rapid_consecutive,
    'round_number_fraud': check_round_number_fraud,
    'cross_network_anomaly': check_cross_network_anomaly,
    'fuliza_overuse': check_fuliza_overuse,
}


def calculate_risk_score(anomaly_types: List[str], settings: Optional[AnomalySettings] = None) -> float:
    """Mean severity weight of the fired checks, clamped to [0, 1]"""
    if not anomaly_types:
        return 0.0
    settings = settings or AnomalySettings()
    total = sum(settings.weight_for(check) for check in anomaly_types)
    return round(min(max(total / len(anomaly_types), 0.0), 1.0), 4)


def requires_immediate_attention(anomaly_types: List[str]) -> bool:
    return any(check in CRITICAL_CHECKS for check in anomaly_types)


def recommend(anomaly_types: List[str]) -> str:
    for check, recommendation in RECOMMENDATIONS:
        if check in anomaly_types:
            return recommendation
    return DEFAULT_RECOMMENDATION


def detect_anomalies(
    transactions: List[Transaction],
    profile: Optional[BusinessProfile] = None,
    sensitivity: Union[Sensitivity, str, None] = None,
    settings: Optional[AnomalySettings] = None
) -> List[AnomalyFinding]:
    """
    Run every anomaly check over a transaction window.

    Checks are independent and non-exclusive. A transaction with at least one
    fired check becomes a finding.

    Args:
        transactions: Transaction window for one business
        profile: Baseline (average size, peak hours, home network)
        sensitivity: 'high', 'medium' or 'low'; settings default when omitted
        settings: Check thresholds

    Returns:
        Findings sorted by descending risk score

    Raises:
        ValueError: If sensitivity is not a known level
    """
    settings = settings or AnomalySettings()
    profile = profile or BusinessProfile()
    level = Sensitivity(sensitivity.lower()) if sensitivity else settings.default_sensitivity

    if not transactions:
        return []

    fired_by_check = {
        name: check(transactions, profile, settings, level)
        for name, check in ANOMALY_CHECKS.items()
    }

    findings: List[AnomalyFinding] = []
    for index, transaction in enumerate(transactions):
        anomaly_types = [name for name, fired in fired_by_check.items() if fired[index]]
        if not anomaly_types:
            continue

        for name in anomaly_types:
            anomaly_checks_fired.labels(check=name).inc()

        findings.append(AnomalyFinding(
            transaction_id=transaction.transaction_id,
            transaction=transaction,
            anomaly_types=anomaly_types,
            risk_score=calculate_risk_score(anomaly_types, settings),
            requires_immediate_attention=requires_immediate_attention(anomaly_types),
            recommendation=recommend(anomaly_types)
        ))

    findings.sort(key=lambda finding: finding.risk_score, reverse=True)

    logger.info(
        f"Anomaly detection flagged {len(findings)} of {len(transactions)} transactions",
        sensitivity=level.value,
        business_id=profile.business_id
    )
    return findings


def assess_overall_risk(findings: List[AnomalyFinding]) -> RiskLevel:
    """
    Batch risk level.

    'high' when more than half of the findings score above 0.7, 'medium' when
    any do, otherwise 'low'. No findings means 'low'.
    """
    if not findings:
        return RiskLevel.LOW

    high_risk = sum(1 for finding in findings if finding.risk_score > HIGH_RISK_SCORE)
    if high_risk / len(findings) > 0.5:
        return RiskLevel.HIGH
    if high_risk > 0:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def build_anomaly_report(findings: List[AnomalyFinding], business_id: Optional[str] = None) -> AnomalyReport:
    return AnomalyReport(
        anomalies_detected=len(findings),
        high_risk_count=sum(1 for finding in findings if finding.risk_score > CRITICAL_RISK_SCORE),
        immediate_attention_count=sum(1 for finding in findings if finding.requires_immediate_attention),
        risk_level=assess_overall_risk(findings),
        anomalies=sorted(findings, key=lambda finding: finding.risk_score, reverse=True),
        business_id=business_id,
        analysis_timestamp=datetime.now()
    )
