"""Data models for the statement engine"""

from .transaction import Transaction
from .business_profile import BusinessProfile
from .anomaly import AnomalyFinding, AnomalyReport
from .reconciliation import BookEntry, MatchedPair, ReconciliationResult
from .category import CategoryRule, LearnedCategory

__all__ = [
    "Transaction",
    "BusinessProfile",
    "AnomalyFinding",
    "AnomalyReport",
    "BookEntry",
    "MatchedPair",
    "ReconciliationResult",
    "CategoryRule",
    "LearnedCategory"
]
