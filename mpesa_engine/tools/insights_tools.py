"""Revenue, expense and trend insights over a transaction batch"""

import calendar
from datetime import datetime, time
from typing import Any, Dict, Iterable, List, Optional
import pandas as pd
from mpesa_engine.constants import UNCATEGORIZED
from mpesa_engine.models import Transaction
from mpesa_engine.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_METRICS = ('revenue', 'expenses', 'trends')
_COLUMNS = ['date', 'occurred_at', 'type', 'amount', 'category']


def _frame(transactions: List[Transaction]) -> pd.DataFrame:
    rows = [
        {
            'date': t.date,
            'occurred_at': t.occurred_at or datetime.combine(t.date, time.min),
            'type': t.type.value,
            'amount': float(t.amount),
            'category': t.category or UNCATEGORIZED,
        }
        for t in transactions
    ]
    return pd.DataFrame(rows, columns=_COLUMNS)


def calculate_growth_trend(df: pd.DataFrame) -> str:
    """
    Compare the later half of a batch with the earlier half.

    'growing' above +10%, 'declining' below -10%, otherwise 'stable';
    fewer than two transactions is 'insufficient_data'.
    """
    if len(df) < 2:
        return 'insufficient_data'

    ordered = df.sort_values('date', kind='mergesort')['amount'].tolist()
    middle = len(ordered) // 2
    first_half, second_half = sum(ordered[:middle]), sum(ordered[middle:])

    if second_half > first_half * 1.1:
        return 'growing'
    if second_half < first_half * 0.9:
        return 'declining'
    return 'stable'


def revenue_insights(transactions: List[Transaction]) -> Dict[str, Any]:
    df = _frame([t for t in transactions if t.is_income])
    if df.empty:
        return {
            'total_revenue': 0.0,
            'transaction_count': 0,
            'average_transaction': 0.0,
            'peak_day': None,
            'growth_trend': 'insufficient_data'
        }

    daily_totals = df.groupby('date')['amount'].sum()
    total = float(df['amount'].sum())

    return {
        'total_revenue': round(total, 2),
        'transaction_count': len(df),
        'average_transaction': round(total / len(df), 2),
        'peak_day': daily_totals.idxmax().isoformat(),
        'growth_trend': calculate_growth_trend(df)
    }


def expense_insights(transactions: List[Transaction]) -> Dict[str, Any]:
    df = _frame([t for t in transactions if t.is_expense])
    if df.empty:
        return {
            'total_expenses': 0.0,
            'transaction_count': 0,
            'average_expense': 0.0,
            'largest_expense': 0.0,
            'expense_categories': {}
        }

    total = float(df['amount'].sum())
    by_category = df.groupby('category')['amount'].sum()

    return {
        'total_expenses': round(total, 2),
        'transaction_count': len(df),
        'average_expense': round(total / len(df), 2),
        'largest_expense': float(df['amount'].max()),
        'expense_categories': {category: round(float(amount), 2) for category, amount in by_category.items()}
    }


def trend_insights(transactions: List[Transaction]) -> Dict[str, Any]:
    """
    Activity trends.

    Returns:
        {
            'daily_counts': {'2025-01-15': 3, ...},
            'busiest_day': '2025-01-15',
            'transaction_velocity': float,   # transactions per hour between first and last
            'seasonal_patterns': ['peak_in_Jan']
        }
    """
    df = _frame(transactions)
    if df.empty:
        return {
            'daily_counts': {},
            'busiest_day': None,
            'transaction_velocity': 0.0,
            'seasonal_patterns': []
        }

    daily_counts = df.groupby('date').size()

    velocity = 0.0
    if len(df) >= 2:
        span_hours = (df['occurred_at'].max() - df['occurred_at'].min()).total_seconds() / 3600
        if span_hours > 0:
            velocity = round(len(df) / span_hours, 4)

    monthly_totals = df.groupby(df['occurred_at'].dt.month)['amount'].sum()
    peak_month = int(monthly_totals.idxmax())

    return {
        'daily_counts': {day.isoformat(): int(count) for day, count in daily_counts.items()},
        'busiest_day': daily_counts.idxmax().isoformat(),
        'transaction_velocity': velocity,
        'seasonal_patterns': [f"peak_in_{calendar.month_abbr[peak_month]}"]
    }


_INSIGHT_BUILDERS = {
    'revenue': revenue_insights,
    'expenses': expense_insights,
    'trends': trend_insights,
}


def get_transaction_insights(
    transactions: List[Transaction],
    metrics: Optional[Iterable[str]] = None,
    business_id: Optional[str] = None
) -> Dict[str, Any]:
    """
    Build the requested insight sections.

    Args:
        transactions: Validated (ideally categorized) transactions
        metrics: Any of 'revenue', 'expenses', 'trends'; all when omitted
        business_id: Echoed in the result

    Returns:
        {'success': True, 'business_id': ..., 'revenue': {...}, ...}

    Raises:
        ValueError: If an unknown metric is requested
    """
    requested = list(metrics or DEFAULT_METRICS)
    unknown = [metric for metric in requested if metric not in _INSIGHT_BUILDERS]
    if unknown:
        raise ValueError(f"Unknown insight metrics: {unknown}")

    insights: Dict[str, Any] = {'success': True, 'business_id': business_id}
    for metric in requested:
        insights[metric] = _INSIGHT_BUILDERS[metric](transactions)

    logger.info("Transaction insights computed", metrics=requested, transactions=len(transactions))
    return insights
