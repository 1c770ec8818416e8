"""Unit tests for transaction insights"""

import pytest
from datetime import date, time
from decimal import Decimal
from mpesa_engine.constants import TransactionType
from mpesa_engine.models import Transaction
from mpesa_engine.tools.insights_tools import (
    get_transaction_insights,
    revenue_insights,
    expense_insights,
    trend_insights,
    calculate_growth_trend,
    _frame
)


def make_txn(amount, day=15, at=time(10, 0), txn_type=TransactionType.RECEIVED, category=None):
    return Transaction(
        transaction_id=f"QTX{day:02d}{amount:0>5}",
        date=date(2025, 1, day),
        time=at,
        type=txn_type,
        amount=Decimal(amount),
        category=category
    )


@pytest.fixture
def transactions():
    return [
        make_txn("500", day=15, at=time(9, 0)),
        make_txn("2500", day=16, at=time(10, 0)),
        make_txn("1000", day=15, at=time(11, 0), txn_type=TransactionType.PAYBILL,
                 category="expense_utilities_electricity"),
        make_txn("300", day=15, at=time(12, 0), txn_type=TransactionType.BUY_GOODS, category="uncategorized"),
    ]


def test_revenue_insights(transactions):
    """Test revenue totals, peak day and trend"""
    revenue = revenue_insights(transactions)

    assert revenue['total_revenue'] == 3000.0
    assert revenue['transaction_count'] == 2
    assert revenue['average_transaction'] == 1500.0
    assert revenue['peak_day'] == "2025-01-16"
    assert revenue['growth_trend'] == "growing"


def test_expense_insights(transactions):
    """Test expense totals and the category breakdown"""
    expenses = expense_insights(transactions)

    assert expenses['total_expenses'] == 1300.0
    assert expenses['transaction_count'] == 2
    assert expenses['average_expense'] == 650.0
    assert expenses['largest_expense'] == 1000.0
    assert expenses['expense_categories'] == {
        'expense_utilities_electricity': 1000.0,
        'uncategorized': 300.0,
    }


def test_trend_insights(transactions):
    """Test daily counts, velocity and seasonal peak"""
    trends = trend_insights(transactions)

    assert trends['daily_counts'] == {'2025-01-15': 3, '2025-01-16': 1}
    assert trends['busiest_day'] == "2025-01-15"
    # 4 transactions between 15 Jan 09:00 and 16 Jan 10:00
    assert trends['transaction_velocity'] == pytest.approx(4 / 25, abs=1e-4)
    assert trends['seasonal_patterns'] == ["peak_in_Jan"]


@pytest.mark.parametrize("amounts,expected", [
    (["1000"], "insufficient_data"),
    (["1000", "1000"], "stable"),
    (["1000", "1050"], "stable"),
    (["1000", "1200"], "growing"),
    (["1000", "800"], "declining"),
])
def test_calculate_growth_trend(amounts, expected):
    """Test the +/-10% bands"""
    df = _frame([make_txn(amount, day=10 + i) for i, amount in enumerate(amounts)])

    assert calculate_growth_trend(df) == expected


def test_empty_insights():
    """Test zeroed sections for an empty batch"""
    insights = get_transaction_insights([], business_id="biz_001")

    assert insights['success'] is True
    assert insights['business_id'] == "biz_001"
    assert insights['revenue']['total_revenue'] == 0.0
    assert insights['revenue']['growth_trend'] == "insufficient_data"
    assert insights['expenses']['expense_categories'] == {}
    assert insights['trends']['busiest_day'] is None


def test_selected_metrics_only(transactions):
    """Test that only requested sections are built"""
    insights = get_transaction_insights(transactions, metrics=['revenue'])

    assert 'revenue' in insights
    assert 'expenses' not in insights
    assert 'trends' not in insights


def test_unknown_metric_raises(transactions):
    """Test that unknown metric names are rejected"""
    with pytest.raises(ValueError, match="Unknown insight metrics"):
        get_transaction_insights(transactions, metrics=['profit'])


def test_transactions_without_time_use_midnight():
    """Test that a missing time still contributes to trends"""
    trends = trend_insights([make_txn("500", at=None), make_txn("700", day=16, at=None)])

    assert trends['transaction_velocity'] == pytest.approx(2 / 24, abs=1e-4)
