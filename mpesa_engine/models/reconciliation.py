"""Reconciliation data models"""

import datetime as dt
from decimal import Decimal
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from .transaction import Transaction


class BookEntry(BaseModel):
    """Bookkeeping record reconciled against wallet transactions"""

    entry_id: str = Field(..., description="Book entry ID")
    date: dt.date = Field(..., description="Entry date")
    amount: Decimal = Field(..., description="Entry amount in KES")
    description: Optional[str] = Field(None)
    account_type: Optional[str] = Field(None, description="revenue, expense, asset or liability")
    reference: Optional[str] = Field(None)

    class Config:
        json_schema_extra = {
            "example": {
                "entry_id": "be_001",
                "date": "2025-01-15",
                "amount": "500.00",
                "description": "Sale to John Doe",
                "account_type": "revenue"
            }
        }


class MatchedPair(BaseModel):
    """Wallet transaction matched to a book entry"""

    source: Transaction
    target: BookEntry


class ReconciliationResult(BaseModel):
    """Outcome of one reconciliation run"""

    matched_pairs: List[MatchedPair] = Field(default_factory=list)
    unmatched_source: List[Transaction] = Field(default_factory=list)
    unmatched_target: List[BookEntry] = Field(default_factory=list)
    reconciliation_rate: float = Field(..., ge=0, le=1)

    @property
    def matched_count(self) -> int:
        return len(self.matched_pairs)

    @property
    def unmatched_source_count(self) -> int:
        return len(self.unmatched_source)

    @property
    def unmatched_target_count(self) -> int:
        return len(self.unmatched_target)

    def to_summary(self) -> Dict[str, Any]:
        """JSON-ready output shape handed to callers"""
        return {
            'matched_count': self.matched_count,
            'unmatched_source_count': self.unmatched_source_count,
            'unmatched_target_count': self.unmatched_target_count,
            'reconciliation_rate': self.reconciliation_rate,
            'matched_pairs': [pair.model_dump(mode='json') for pair in self.matched_pairs],
            'unmatched_source': [txn.model_dump(mode='json') for txn in self.unmatched_source],
            'unmatched_target': [entry.model_dump(mode='json') for entry in self.unmatched_target],
        }
