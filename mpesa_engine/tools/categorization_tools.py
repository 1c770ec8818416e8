"""Business categorization of wallet transactions"""

from collections import OrderedDict
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from mpesa_engine.constants import (
    INCOME_TYPES,
    EXPENSE_TYPES,
    UNCATEGORIZED,
    UNCATEGORIZED_CONFIDENCE,
    HIGH_CONFIDENCE_THRESHOLD,
    DEFAULT_LEARNED_CONFIDENCE_THRESHOLD,
    VAT_RATE
)
from mpesa_engine.models import Transaction, BusinessProfile, CategoryRule, LearnedCategory
from mpesa_engine.tools.category_store import CategoryStore
from mpesa_engine.utils.logging import get_logger
from mpesa_engine.utils.metrics import transactions_categorized

logger = get_logger(__name__)

DEFAULT_BUSINESS_ID = "default"


def _rule(name: str, domain: str, keywords: List[str], vat_applicable: bool = True,
          confidence: float = 0.85) -> CategoryRule:
    return CategoryRule(
        name=name,
        domain=domain,
        keywords=keywords,
        vat_applicable=vat_applicable,
        confidence=confidence
    )


# Declaration order is match order; the first rule with a keyword hit wins
INCOME_RULES: Tuple[CategoryRule, ...] = (
    _rule("income_sales", "income", ["customer", "client", "payment", "order", "invoice", "purchase", "sale"]),
    _rule("income_service_income", "income", ["consultation", "service", "repair", "maintenance", "professional"]),
    _rule("income_digital_sales", "income", ["online", "digital", "e-commerce", "jumia", "website"]),
    _rule("income_rental_income", "income", ["rent", "lease", "tenant"]),
)

EXPENSE_RULES: Tuple[CategoryRule, ...] = (
    _rule("expense_inventory", "expense",
          ["wholesaler", "supplier", "stock", "goods", "inventory", "raw materials", "crates", "bags"],
          confidence=0.80),
    _rule("expense_utilities_electricity", "expense", ["kplc", "kenya power", "electricity", "power", "prepaid"]),
    _rule("expense_utilities_water", "expense", ["nairobi water", "water", "sewerage"]),
    _rule("expense_utilities_internet", "expense", ["safaricom", "airtel", "telkom", "zuku", "internet", "wifi", "data"]),
    _rule("expense_utilities_gas", "expense", ["cooking gas", "lpg", "meko", "gas"]),
    _rule("expense_transport", "expense", ["matatu", "fuel", "petrol", "diesel", "uber", "bolt", "little cab", "transport"],
          confidence=0.80),
    _rule("expense_rent", "expense", ["landlord", "rent", "caretaker"], confidence=0.80),
    _rule("expense_staff_costs_salaries", "expense", ["salary", "wage", "payroll", "employee", "staff"],
          vat_applicable=False),
    _rule("expense_staff_costs_benefits", "expense", ["nhif", "nssf", "shif", "housing levy"],
          vat_applicable=False),
    _rule("expense_staff_costs_casual_labor", "expense", ["casual", "labour", "labor", "fundi", "mjengo"],
          vat_applicable=False),
    _rule("expense_tax_compliance", "expense", ["kra", "tax", "paye", "withholding", "itax"],
          vat_applicable=False, confidence=0.80),
    _rule("expense_marketing", "expense", ["advert", "promotion", "flyer", "billboard", "radio", "facebook", "instagram"],
          confidence=0.80),
    _rule("expense_banking_finance", "expense", ["loan", "interest", "bank charges", "processing fee"],
          confidence=0.80),
    _rule("expense_digital_services", "expense",
          ["google", "microsoft", "zoom", "software", "subscription", "hosting", "domain"],
          confidence=0.80),
)

TAXONOMY: Tuple[CategoryRule, ...] = INCOME_RULES + EXPENSE_RULES


def counterparty_signature(transaction: Transaction) -> str:
    """Learned-store key for a transaction's counterparty (lowercased, whitespace collapsed)"""
    text = transaction.counterparty or transaction.counterparty_phone or transaction.reference or ""
    return ' '.join(text.lower().split())


def match_category(transaction: Transaction) -> Optional[CategoryRule]:
    """
    Find the first keyword rule for a transaction.

    Income types only see income rules and expense types only see expense
    rules; other types never match.
    """
    if transaction.is_income:
        rules = INCOME_RULES
    elif transaction.is_expense:
        rules = EXPENSE_RULES
    else:
        return None

    text = f"{transaction.counterparty} {transaction.reference or ''}"
    for rule in rules:
        if rule.matches(text):
            return rule
    return None


def suggested_vat_rate(transaction: Transaction) -> Decimal:
    return VAT_RATE if transaction.vat_applicable else Decimal("0")


def _vat_for(category: str) -> bool:
    for rule in TAXONOMY:
        if rule.name == category:
            return rule.vat_applicable
    return category != UNCATEGORIZED


def categorize_transactions(
    transactions: List[Transaction],
    profile: Optional[BusinessProfile] = None,
    category_store: Optional[CategoryStore] = None,
    learning_mode: bool = False,
    min_learned_confidence: float = DEFAULT_LEARNED_CONFIDENCE_THRESHOLD
) -> List[Transaction]:
    """
    Assign category, category_confidence and vat_applicable.

    With learning mode on and a store supplied, a learned association at or
    above min_learned_confidence wins over keyword matching, and every
    categorized result is written back afterwards.

    Args:
        transactions: Validated transactions
        profile: Business the transactions belong to
        category_store: Learned association collaborator
        learning_mode: Consult and update the store
        min_learned_confidence: Minimum stored confidence to trust

    Returns:
        Updated copies of the transactions, input order preserved

    Raises:
        CategoryStoreError: If the store cannot be read or written
    """
    use_store = learning_mode and category_store is not None
    categorized: List[Transaction] = []

    for transaction in transactions:
        business_id = (profile.business_id if profile else None) or transaction.business_id or DEFAULT_BUSINESS_ID
        signature = counterparty_signature(transaction)

        learned = None
        if use_store and signature:
            learned = category_store.get(business_id, signature)
            if learned is not None and learned.confidence < min_learned_confidence:
                learned = None

        if learned is not None:
            update = {
                'category': learned.category,
                'category_confidence': learned.confidence,
                'vat_applicable': _vat_for(learned.category),
            }
            source = 'learned'
        else:
            rule = match_category(transaction)
            if rule is not None:
                update = {
                    'category': rule.name,
                    'category_confidence': rule.confidence,
                    'vat_applicable': rule.vat_applicable,
                }
                source = 'keyword'
            else:
                update = {
                    'category': UNCATEGORIZED,
                    'category_confidence': UNCATEGORIZED_CONFIDENCE,
                    'vat_applicable': False,
                }
                source = 'uncategorized'

        transactions_categorized.labels(source=source).inc()
        categorized.append(transaction.model_copy(update=update))

    if use_store:
        _write_back(categorized, profile, category_store)

    logger.info(
        f"Categorized {len(categorized)} transactions",
        learning_mode=learning_mode,
        business_id=profile.business_id if profile else None
    )
    return categorized


def _write_back(transactions: List[Transaction], profile: Optional[BusinessProfile], store: CategoryStore) -> None:
    written = 0
    for transaction in transactions:
        signature = counterparty_signature(transaction)
        if not signature or transaction.category == UNCATEGORIZED:
            continue
        business_id = (profile.business_id if profile else None) or transaction.business_id or DEFAULT_BUSINESS_ID
        store.put(
            business_id,
            signature,
            LearnedCategory(category=transaction.category, confidence=transaction.category_confidence)
        )
        written += 1
    logger.info(f"Updated {written} learned category associations")


def summarize_categorization(transactions: List[Transaction], learning_updated: bool = False) -> Dict[str, Any]:
    """
    Summarize a categorization run.

    Returns:
        {
            'categories_found': [...],         # first-seen order
            'high_confidence_count': int,      # category_confidence > 0.8
            'vat_applicable_count': int,
            'learning_updated': bool
        }
    """
    categories = OrderedDict((t.category, None) for t in transactions if t.category)
    return {
        'categories_found': list(categories),
        'high_confidence_count': sum(
            1 for t in transactions if (t.category_confidence or 0) > HIGH_CONFIDENCE_THRESHOLD
        ),
        'vat_applicable_count': sum(1 for t in transactions if t.vat_applicable),
        'learning_updated': learning_updated,
    }
