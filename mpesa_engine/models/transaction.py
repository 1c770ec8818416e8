"""Transaction data model"""

import datetime as dt
from decimal import Decimal
from typing import Optional, Tuple
from pydantic import BaseModel, Field
from mpesa_engine.constants import (
    TransactionType,
    Network,
    INCOME_TYPES,
    EXPENSE_TYPES,
    DEFAULT_CONFIDENCE
)


class Transaction(BaseModel):
    """Validated wallet transaction"""

    id: Optional[str] = Field(None, description="Synthetic row identifier assigned at validation")
    transaction_id: str = Field(..., min_length=1, description="Wallet transaction code")
    date: dt.date = Field(..., description="Transaction date")
    time: Optional[dt.time] = Field(None, description="Local transaction time")
    type: TransactionType = Field(..., description="Transaction type")
    amount: Decimal = Field(..., gt=0, description="Transaction amount in KES")
    transaction_cost: Decimal = Field(default=Decimal("0"), ge=0, description="Charge paid for the transaction")
    counterparty: str = Field(default="", description="Normalized counterparty display name")
    counterparty_phone: str = Field(default="", description="Canonical +254 phone number or empty")
    account_number: Optional[str] = Field(None, description="Paybill/till account number")
    reference: Optional[str] = Field(None, description="Free-text reference")
    balance_after: Decimal = Field(default=Decimal("0"), description="Wallet balance after the transaction")
    raw_text: str = Field(default="", description="Verbatim source fragment")
    confidence_score: float = Field(default=DEFAULT_CONFIDENCE, ge=0, le=1, description="Extraction confidence (0-1)")
    network: Network = Field(default=Network.MPESA, description="Wallet network")
    category: Optional[str] = Field(None, description="Assigned business category")
    category_confidence: Optional[float] = Field(None, ge=0, le=1, description="Categorization confidence (0-1)")
    vat_applicable: Optional[bool] = Field(None, description="Whether VAT applies to the category")
    business_id: Optional[str] = Field(None, description="Owning business account")

    @property
    def dedup_key(self) -> Tuple[Decimal, str, dt.date]:
        """(amount, counterparty or reference, date)"""
        return (self.amount, self.counterparty or self.reference or "", self.date)

    @property
    def occurred_at(self) -> Optional[dt.datetime]:
        if self.time is None:
            return None
        return dt.datetime.combine(self.date, self.time)

    @property
    def is_income(self) -> bool:
        return self.type in INCOME_TYPES

    @property
    def is_expense(self) -> bool:
        return self.type in EXPENSE_TYPES

    class Config:
        json_schema_extra = {
            "example": {
                "id": "1736944200000_k3j9x2m1q",
                "transaction_id": "QCK1234567",
                "date": "2025-01-15",
                "time": "14:30:00",
                "type": "received",
                "amount": "500.00",
                "transaction_cost": "0.00",
                "counterparty": "JOHN DOE",
                "counterparty_phone": "+254712345678",
                "balance_after": "15500.00",
                "confidence_score": 0.75,
                "network": "mpesa",
                "business_id": "biz_001"
            }
        }
