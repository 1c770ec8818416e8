"""Unit tests for categorization and the learned category store"""

import json
import pytest
import redis
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock
from mpesa_engine.constants import TransactionType
from mpesa_engine.models import Transaction, BusinessProfile, LearnedCategory
from mpesa_engine.tools.categorization_tools import (
    categorize_transactions,
    summarize_categorization,
    match_category,
    counterparty_signature,
    suggested_vat_rate,
    TAXONOMY
)
from mpesa_engine.tools.category_store import (
    InMemoryCategoryStore,
    RedisCategoryStore,
    build_category_store,
    store_key
)
from mpesa_engine.utils.errors import CategoryStoreError


@pytest.fixture
def profile():
    return BusinessProfile(business_id="biz_001", name="Mama Mboga Groceries")


def make_txn(counterparty, txn_type=TransactionType.SENT, reference=None, amount="1000"):
    return Transaction(
        transaction_id="QTX0000001",
        date=date(2025, 1, 15),
        type=txn_type,
        amount=Decimal(amount),
        counterparty=counterparty,
        reference=reference
    )


def test_keyword_match_expense(profile):
    """Test a utility paybill lands in electricity"""
    txn = categorize_transactions([make_txn("KENYA POWER", TransactionType.PAYBILL)], profile)[0]

    assert txn.category == "expense_utilities_electricity"
    assert txn.category_confidence == 0.85
    assert txn.vat_applicable is True
    assert suggested_vat_rate(txn) == Decimal("0.16")


def test_keyword_match_income(profile):
    """Test a received payment from a customer is a sale"""
    txn = categorize_transactions([make_txn("CUSTOMER ALICE WANJIRU", TransactionType.RECEIVED)], profile)[0]

    assert txn.category == "income_sales"
    assert txn.vat_applicable is True


def test_income_never_matches_expense_rules(profile):
    """Test that domains are kept apart"""
    txn = categorize_transactions([make_txn("KENYA POWER", TransactionType.RECEIVED)], profile)[0]

    assert txn.category == "uncategorized"


def test_reference_text_is_searched(profile):
    """Test that the reference participates in matching"""
    txn = categorize_transactions([make_txn("JANE WANJIKU", reference="March salary")], profile)[0]

    assert txn.category == "expense_staff_costs_salaries"
    assert txn.vat_applicable is False
    assert suggested_vat_rate(txn) == Decimal("0")


def test_statutory_and_tax_categories_are_not_vat_applicable(profile):
    """Test VAT flags on benefits and tax compliance"""
    benefits = categorize_transactions([make_txn("NSSF", TransactionType.PAYBILL)], profile)[0]
    tax = categorize_transactions([make_txn("KRA", TransactionType.PAYBILL)], profile)[0]

    assert benefits.category == "expense_staff_costs_benefits"
    assert benefits.vat_applicable is False
    assert tax.category == "expense_tax_compliance"
    assert tax.vat_applicable is False


def test_no_match_is_uncategorized(profile):
    """Test the fallback category"""
    txn = categorize_transactions([make_txn("JOHN DOE")], profile)[0]

    assert txn.category == "uncategorized"
    assert txn.category_confidence == 0.3
    assert txn.vat_applicable is False


def test_other_types_are_uncategorized():
    """Test that airtime and deposits are outside both domains"""
    assert match_category(make_txn("KENYA POWER", TransactionType.AIRTIME)) is None
    assert match_category(make_txn("CUSTOMER", TransactionType.DEPOSIT)) is None


def test_taxonomy_declaration_order_wins():
    """Test that the first matching rule is used"""
    # 'supplier' (inventory) is declared before 'power' (electricity)
    rule = match_category(make_txn("POWER SUPPLIER LTD"))

    assert rule.name == "expense_inventory"
    assert [r.domain for r in TAXONOMY[:4]] == ["income"] * 4


def test_categorize_preserves_input(profile):
    """Test that categorization returns copies and keeps order"""
    original = [make_txn("KENYA POWER", TransactionType.PAYBILL), make_txn("JOHN DOE")]

    categorized = categorize_transactions(original, profile)

    assert original[0].category is None
    assert [t.counterparty for t in categorized] == ["KENYA POWER", "JOHN DOE"]


def test_learned_category_takes_precedence(profile):
    """Test that a confident learned association beats keyword matching"""
    store = InMemoryCategoryStore()
    store.put("biz_001", "kenya power", LearnedCategory(category="expense_rent", confidence=0.9))

    txn = categorize_transactions(
        [make_txn("KENYA POWER", TransactionType.PAYBILL)], profile, category_store=store, learning_mode=True
    )[0]

    assert txn.category == "expense_rent"
    assert txn.category_confidence == 0.9
    assert txn.vat_applicable is True


def test_learned_category_ignored_without_learning_mode(profile):
    """Test that the store is not consulted when learning mode is off"""
    store = InMemoryCategoryStore()
    store.put("biz_001", "kenya power", LearnedCategory(category="expense_rent", confidence=0.9))

    txn = categorize_transactions([make_txn("KENYA POWER", TransactionType.PAYBILL)], profile, category_store=store)[0]

    assert txn.category == "expense_utilities_electricity"


def test_low_confidence_learned_category_is_ignored(profile):
    """Test the learned-confidence threshold"""
    store = InMemoryCategoryStore()
    store.put("biz_001", "kenya power", LearnedCategory(category="expense_rent", confidence=0.5))

    txn = categorize_transactions(
        [make_txn("KENYA POWER", TransactionType.PAYBILL)], profile, category_store=store, learning_mode=True
    )[0]

    assert txn.category == "expense_utilities_electricity"


def test_learning_mode_writes_back(profile):
    """Test that categorized results are stored and uncategorized ones are not"""
    store = InMemoryCategoryStore()

    categorize_transactions(
        [make_txn("KENYA POWER", TransactionType.PAYBILL), make_txn("JOHN DOE")],
        profile,
        category_store=store,
        learning_mode=True
    )

    learned = store.get("biz_001", "kenya power")
    assert learned.category == "expense_utilities_electricity"
    assert learned.confidence == 0.85
    assert store.get("biz_001", "john doe") is None
    assert len(store) == 1


def test_counterparty_signature():
    """Test the learned-store key derivation"""
    assert counterparty_signature(make_txn("  KENYA   POWER ")) == "kenya power"
    assert counterparty_signature(make_txn("", reference="Airtime")) == "airtime"


def test_summarize_categorization(profile):
    """Test summary counts"""
    categorized = categorize_transactions(
        [
            make_txn("KENYA POWER", TransactionType.PAYBILL),
            make_txn("JOHN DOE"),
            make_txn("CUSTOMER ALICE", TransactionType.RECEIVED),
            make_txn("JANE", reference="salary"),
        ],
        profile
    )

    summary = summarize_categorization(categorized, learning_updated=True)

    assert summary['categories_found'] == [
        "expense_utilities_electricity", "uncategorized", "income_sales", "expense_staff_costs_salaries"
    ]
    assert summary['high_confidence_count'] == 3
    assert summary['vat_applicable_count'] == 2
    assert summary['learning_updated'] is True


def test_redis_store_round_trip():
    """Test that the Redis store writes JSON and reads it back"""
    client = MagicMock()
    store = RedisCategoryStore(client)
    learned = LearnedCategory(category="expense_rent", confidence=0.9)

    store.put("biz_001", "landlord", learned)
    key, payload = client.set.call_args.args
    assert key == store_key("biz_001", "landlord") == "category:biz_001:landlord"

    client.get.return_value = payload
    assert store.get("biz_001", "landlord") == learned


def test_redis_store_uses_ttl():
    """Test that a TTL switches to SETEX"""
    client = MagicMock()
    store = RedisCategoryStore(client, ttl_seconds=3600)

    store.put("biz_001", "landlord", LearnedCategory(category="expense_rent", confidence=0.9))

    client.setex.assert_called_once()
    assert client.setex.call_args.args[1] == 3600
    client.set.assert_not_called()


def test_redis_store_missing_key():
    """Test that an unknown counterparty returns None"""
    client = MagicMock()
    client.get.return_value = None

    assert RedisCategoryStore(client).get("biz_001", "nobody") is None


def test_redis_store_errors_propagate(profile):
    """Test that Redis failures surface as CategoryStoreError through categorization"""
    client = MagicMock()
    client.get.side_effect = redis.ConnectionError("Connection refused")
    store = RedisCategoryStore(client)

    with pytest.raises(CategoryStoreError):
        categorize_transactions([make_txn("KENYA POWER")], profile, category_store=store, learning_mode=True)


def test_redis_store_write_errors_propagate():
    """Test that write failures are not swallowed"""
    client = MagicMock()
    client.set.side_effect = redis.TimeoutError("Timed out")

    with pytest.raises(CategoryStoreError, match="Failed to write"):
        RedisCategoryStore(client).put("biz_001", "landlord", LearnedCategory(category="expense_rent", confidence=0.9))


@pytest.mark.parametrize("payload", ["not json", json.dumps({"category": "expense_rent", "confidence": 7})])
def test_redis_store_corrupt_value(payload):
    """Test that undecodable values are reported"""
    client = MagicMock()
    client.get.return_value = payload

    with pytest.raises(CategoryStoreError, match="Corrupt"):
        RedisCategoryStore(client).get("biz_001", "landlord")


def test_build_category_store_default(monkeypatch):
    """Test that the in-memory backend is the default"""
    monkeypatch.delenv("CATEGORY_STORE", raising=False)

    assert isinstance(build_category_store(), InMemoryCategoryStore)
