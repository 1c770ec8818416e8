"""Reconciliation of wallet transactions against bookkeeping entries"""

from collections import defaultdict, deque
from datetime import date
from decimal import Decimal
from typing import Any, Deque, Dict, List, Tuple, Union
from pydantic import ValidationError
from mpesa_engine.models import Transaction, BookEntry, MatchedPair, ReconciliationResult
from mpesa_engine.utils.errors import ReconciliationError
from mpesa_engine.utils.logging import get_logger
from mpesa_engine.utils.metrics import reconciliation_match_rate

logger = get_logger(__name__)

ACCOUNT_TYPES = ('all', 'revenue', 'expenses')

# Book account types kept by each filter
_BOOK_ACCOUNT_TYPES = {
    'revenue': {'revenue', 'income'},
    'expenses': {'expense', 'expenses'},
}


def _coerce(rows: List[Any], model, label: str) -> List[Any]:
    coerced = []
    for index, row in enumerate(rows or []):
        if isinstance(row, model):
            coerced.append(row)
            continue
        if not isinstance(row, dict):
            raise ReconciliationError(f"{label} row {index} is a {type(row).__name__}, expected a mapping")
        try:
            coerced.append(model(**row))
        except ValidationError as e:
            raise ReconciliationError(f"{label} row {index} is invalid: {e}") from e
    return coerced


def filter_by_account_type(
    transactions: List[Transaction],
    book_entries: List[BookEntry],
    account_type: str = 'all'
) -> Tuple[List[Transaction], List[BookEntry]]:
    """
    Restrict both sides to revenue or expenses.

    'revenue' keeps income transactions and revenue/income entries,
    'expenses' keeps expense transactions and expense entries, 'all' keeps
    everything.

    Raises:
        ReconciliationError: If account_type is not one of ACCOUNT_TYPES
    """
    account_type = (account_type or 'all').lower()
    if account_type not in ACCOUNT_TYPES:
        raise ReconciliationError(f"Unknown account type: {account_type}")
    if account_type == 'all':
        return transactions, book_entries

    wanted = _BOOK_ACCOUNT_TYPES[account_type]
    if account_type == 'revenue':
        kept = [t for t in transactions if t.is_income]
    else:
        kept = [t for t in transactions if t.is_expense]
    entries = [e for e in book_entries if (e.account_type or '').lower() in wanted]
    return kept, entries


def reconcile(
    source_transactions: List[Union[Transaction, Dict[str, Any]]],
    book_entries: List[Union[BookEntry, Dict[str, Any]]],
    account_type: str = 'all'
) -> ReconciliationResult:
    """
    Match wallet transactions to book entries on exact (amount, date).

    Each source transaction consumes at most one entry, oldest first among
    entries sharing a key. reconciliation_rate divides matches by the size of
    both sides together, so a perfect one-to-one match scores 0.5.

    Args:
        source_transactions: Validated wallet transactions (or dicts)
        book_entries: Bookkeeping records (or dicts)
        account_type: 'all', 'revenue' or 'expenses'

    Returns:
        ReconciliationResult

    Raises:
        ReconciliationError: If rows cannot be coerced or account_type is unknown
    """
    transactions = _coerce(source_transactions, Transaction, "Source")
    entries = _coerce(book_entries, BookEntry, "Book entry")
    transactions, entries = filter_by_account_type(transactions, entries, account_type)

    lookup: Dict[Tuple[Decimal, date], Deque[int]] = defaultdict(deque)
    for index, entry in enumerate(entries):
        lookup[(entry.amount, entry.date)].append(index)

    matched_pairs: List[MatchedPair] = []
    unmatched_source: List[Transaction] = []
    consumed = set()

    for transaction in transactions:
        candidates = lookup.get((transaction.amount, transaction.date))
        if candidates:
            index = candidates.popleft()
            consumed.add(index)
            matched_pairs.append(MatchedPair(source=transaction, target=entries[index]))
        else:
            unmatched_source.append(transaction)

    unmatched_target = [entry for index, entry in enumerate(entries) if index not in consumed]

    total = len(transactions) + len(entries)
    rate = len(matched_pairs) / total if total else 0.0
    reconciliation_match_rate.set(rate)

    logger.info(
        "Reconciliation complete",
        matched=len(matched_pairs),
        unmatched_source=len(unmatched_source),
        unmatched_target=len(unmatched_target),
        reconciliation_rate=rate,
        account_type=account_type
    )

    return ReconciliationResult(
        matched_pairs=matched_pairs,
        unmatched_source=unmatched_source,
        unmatched_target=unmatched_target,
        reconciliation_rate=rate
    )
