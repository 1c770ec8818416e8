"""Candidate validation, normalization and deduplication"""

import math
import random
import string
import time
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
import pandas as pd
from pydantic import ValidationError
from mpesa_engine.constants import TransactionType, Network, DEFAULT_CONFIDENCE
from mpesa_engine.models import Transaction
from mpesa_engine.tools.normalizers import (
    parse_amount,
    standardize_date,
    parse_time,
    clean_counterparty_name,
    standardize_phone_number
)
from mpesa_engine.utils.logging import get_logger
from mpesa_engine.utils.metrics import candidates_rejected, duplicates_removed

logger = get_logger(__name__)

_VALID_TYPES = {member.value for member in TransactionType}

_NETWORK_ALIASES = {
    'mpesa': Network.MPESA,
    'm-pesa': Network.MPESA,
    'm pesa': Network.MPESA,
    'safaricom': Network.MPESA,
    'airtel': Network.AIRTEL,
    'airtel money': Network.AIRTEL,
    'tkash': Network.TKASH,
    't-kash': Network.TKASH,
    't kash': Network.TKASH,
    'telkom': Network.TKASH,
    'international': Network.INTERNATIONAL,
}

_ROW_ID_ALPHABET = string.ascii_lowercase + string.digits
DEDUP_FIELDS = ['amount', 'party', 'date']


def generate_row_id() -> str:
    """
    Synthetic row identifier: '<epoch-ms>_<9 base36 chars>'.

    Unique enough within a batch; not guaranteed globally unique.
    """
    suffix = ''.join(random.choices(_ROW_ID_ALPHABET, k=9))
    return f"{int(time.time() * 1000)}_{suffix}"


def normalize_network(value: Any) -> Network:
    """Map network spellings ('M-PESA', 'Airtel Money', ...) to Network; unknown means mpesa"""
    if isinstance(value, Network):
        return value
    key = str(value or '').strip().lower()
    return _NETWORK_ALIASES.get(key, Network.MPESA)


def clamp_confidence(value: Any) -> float:
    """Coerce a confidence to [0, 1]; missing or non-numeric means the default"""
    if value is None or isinstance(value, bool):
        return DEFAULT_CONFIDENCE
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    if math.isnan(confidence):
        return DEFAULT_CONFIDENCE
    return min(1.0, max(0.0, confidence))


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _normalize_candidate(candidate: Any, business_id: Optional[str]) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    """Return (fields, None) for a usable candidate or (None, rejection reason)"""
    if not isinstance(candidate, dict):
        return None, 'not_a_mapping'

    transaction_id = _optional_text(candidate.get('transaction_id'))
    if not transaction_id:
        return None, 'missing_transaction_id'

    amount = parse_amount(candidate.get('amount'))
    if amount <= 0:
        return None, 'invalid_amount'

    txn_date = standardize_date(candidate.get('date'))
    if txn_date is None:
        return None, 'invalid_date'

    raw_type = candidate.get('type')
    if isinstance(raw_type, TransactionType):
        raw_type = raw_type.value
    txn_type = str(raw_type or '').strip().lower()
    if txn_type not in _VALID_TYPES:
        return None, 'invalid_type'

    transaction_cost = parse_amount(candidate.get('transaction_cost'))

    return {
        'id': generate_row_id(),
        'transaction_id': transaction_id,
        'date': txn_date,
        'time': parse_time(candidate.get('time')),
        'type': txn_type,
        'amount': amount,
        'transaction_cost': max(transaction_cost, Decimal("0")),
        'counterparty': clean_counterparty_name(candidate.get('counterparty')),
        'counterparty_phone': standardize_phone_number(candidate.get('counterparty_phone')),
        'account_number': _optional_text(candidate.get('account_number')),
        'reference': _optional_text(candidate.get('reference')),
        'balance_after': parse_amount(candidate.get('balance_after')),
        'raw_text': str(candidate.get('raw_text') or ''),
        'confidence_score': clamp_confidence(candidate.get('confidence_score')),
        'network': normalize_network(candidate.get('network')),
        'business_id': business_id or _optional_text(candidate.get('business_id')),
    }, None


def validate_and_normalize(candidates: List[Any], business_id: Optional[str] = None) -> List[Transaction]:
    """
    Turn raw candidates into validated transactions.

    Drops candidates that are not mappings, lack a transaction code, have a
    non-positive or unparseable amount, an unparseable date, or a type outside
    TransactionType. Field normalizers are re-applied, so already-normalized
    pattern candidates pass through unchanged. A record that still fails model
    validation is dropped on its own; the rest of the batch survives.

    Args:
        candidates: Candidate dicts from an extractor
        business_id: Owning business account, stamped on every transaction

    Returns:
        Validated transactions in input order
    """
    validated: List[Transaction] = []

    for index, candidate in enumerate(candidates or []):
        fields, reason = _normalize_candidate(candidate, business_id)

        if fields is not None:
            try:
                validated.append(Transaction(**fields))
                continue
            except ValidationError as e:
                reason = 'schema_violation'
                logger.debug("Candidate failed model validation", index=index, errors=e.error_count())

        candidates_rejected.labels(reason=reason).inc()
        logger.warning(f"Dropped candidate: {reason}", index=index)

    logger.info(
        f"Validated {len(validated)} of {len(candidates or [])} candidates",
        business_id=business_id
    )
    return validated


def deduplicate_transactions(transactions: List[Transaction]) -> List[Transaction]:
    """
    Keep the first transaction per (amount, counterparty or reference, date).

    The wallet transaction code is not part of the key, so two distinct
    payments of the same amount to the same party on the same day collapse
    into one.

    Args:
        transactions: Validated transactions

    Returns:
        Transactions with later duplicates removed, order preserved
    """
    if not transactions:
        return []

    df = pd.DataFrame(
        [dict(zip(DEDUP_FIELDS, transaction.dedup_key)) for transaction in transactions],
        columns=DEDUP_FIELDS
    )
    duplicated = df.duplicated(subset=DEDUP_FIELDS, keep='first').tolist()

    unique = [transaction for transaction, is_duplicate in zip(transactions, duplicated) if not is_duplicate]

    removed = len(transactions) - len(unique)
    if removed:
        duplicates_removed.inc(removed)
        logger.info(f"Removed {removed} duplicate transactions")

    return unique
