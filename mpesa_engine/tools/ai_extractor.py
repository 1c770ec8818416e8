"""AI-assisted transaction extraction with pattern fallback"""

import json
import re
from decimal import Decimal
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, TypeAdapter, ValidationError
from mpesa_engine.constants import TransactionType, AI_CONFIDENCE
from mpesa_engine.tools.llm_client import LLMClient
from mpesa_engine.tools.pattern_extractor import PatternExtractor
from mpesa_engine.utils.logging import get_logger
from mpesa_engine.utils.metrics import transactions_extracted, extraction_fallbacks

logger = get_logger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)

EXTRACTION_PROMPT = '''You are an expert at parsing Kenyan M-Pesa transaction data. Extract ALL transactions with high accuracy.

M-Pesa Transaction Text:
"""
{raw_text}
"""

Use these M-Pesa message formats as reference:

RECEIVED MONEY:
"QCK1234567 Confirmed. You have received Ksh500.00 from JOHN DOE 254712345678 on 15/1/25 at 2:30 PM. New M-PESA balance is Ksh15,500.00. Transaction cost, Ksh0.00."

SENT MONEY:
"QFL1234567 Confirmed. Ksh200.00 sent to MARY SHOP 254798765432 on 15/1/25 at 3:45 PM. New M-PESA balance is Ksh15,300.00. Transaction cost, Ksh5.00."

PAY BILL:
"QBP1234567 Confirmed. Ksh1,000.00 paid to KENYA POWER. Account number 123456789 on 15/1/25 at 4:00 PM. New M-PESA balance is Ksh14,300.00. Transaction cost, Ksh0.00."

BUY GOODS:
"QBG1234567 Confirmed. Ksh300.00 paid to MAMA MBOGA SHOP - 567890 on 15/1/25 at 5:00 PM. New M-PESA balance is Ksh14,000.00. Transaction cost, Ksh0.00."

WITHDRAW:
"QWD1234567 Confirmed. You have withdrawn Ksh1,500.00 from agent JOHN'S SHOP on 15/1/25 at 6:00 PM. New M-PESA balance is Ksh12,500.00. Transaction cost, Ksh33.00."

AIRTIME:
"QAI1234567 Confirmed. You bought Ksh100.00 of airtime for 254712345678 on 15/1/25 at 7:00 PM. New M-PESA balance is Ksh12,400.00."

Also recognize cross-network transfers (Airtel Money, T-Kash), international
transfers and Fuliza (overdraft) transactions.

Extract with this EXACT JSON structure:
[
  {{
    "transaction_id": "QCK1234567",
    "date": "2025-01-15",
    "time": "14:30",
    "type": "received|sent|withdraw|deposit|paybill|buy_goods|airtime|fuliza",
    "amount": 500.00,
    "transaction_cost": 0.00,
    "counterparty": "JOHN DOE",
    "counterparty_phone": "254712345678",
    "account_number": null,
    "reference": "Payment for goods",
    "balance_after": 15500.00,
    "raw_text": "original transaction text",
    "confidence_score": 0.95,
    "network": "mpesa|airtel|tkash|international"
  }}
]

Return ONLY a valid JSON array, no explanations.'''


class ExtractedTransaction(BaseModel):
    """Shape every element of the AI response must have"""

    transaction_id: str = Field(..., min_length=1)
    date: str = Field(..., description="YYYY-MM-DD")
    time: Optional[str] = Field(None, description="HH:MM")
    type: TransactionType
    amount: Decimal
    transaction_cost: Optional[Decimal] = Field(default=Decimal("0"))
    counterparty: Optional[str] = Field(default="")
    counterparty_phone: Optional[str] = Field(default="")
    account_number: Optional[str] = None
    reference: Optional[str] = None
    balance_after: Optional[Decimal] = Field(default=Decimal("0"))
    raw_text: Optional[str] = Field(default="")
    confidence_score: float = Field(default=AI_CONFIDENCE)
    network: Optional[str] = Field(default="mpesa")

    class Config:
        coerce_numbers_to_str = True
        use_enum_values = True


_RESPONSE_ADAPTER = TypeAdapter(List[ExtractedTransaction])


def build_extraction_prompt(raw_text: str) -> str:
    """Embed statement text into the extraction prompt"""
    return EXTRACTION_PROMPT.format(raw_text=raw_text)


def parse_llm_response(response_text: str) -> List[Dict[str, Any]]:
    """
    Turn an LLM response into candidate dicts.

    Args:
        response_text: Raw response, possibly wrapped in markdown fences

    Returns:
        Candidate dicts in the shared extraction shape

    Raises:
        json.JSONDecodeError: If the response is not JSON
        ValidationError: If any element violates the schema
    """
    cleaned = _FENCE_RE.sub('', response_text).strip()
    data = json.loads(cleaned)
    return [item.model_dump() for item in _RESPONSE_ADAPTER.validate_python(data)]


class AIExtractor:
    """
    Extract transactions with an LLM, degrading to pattern extraction.

    Never raises: a missing client, an API failure (including rate limits
    that outlast the retries), malformed JSON or a schema violation all hand
    the text to the fallback extractor.
    """

    strategy = "ai"

    def __init__(self, llm_client: Optional[LLMClient], fallback: Optional[PatternExtractor] = None):
        self.llm_client = llm_client
        self.fallback = fallback or PatternExtractor()

    def extract(self, raw_text: str) -> List[Dict[str, Any]]:
        if not raw_text or not isinstance(raw_text, str) or not raw_text.strip():
            return []

        if self.llm_client is None or not self.llm_client.is_configured:
            logger.info("No LLM client configured, using pattern extraction")
            return self._fall_back(raw_text, "no_client")

        try:
            response_text = self.llm_client.complete(build_extraction_prompt(raw_text))
        except Exception as e:
            logger.warning(f"AI extraction failed, using pattern extraction: {e}")
            return self._fall_back(raw_text, "llm_error")

        try:
            candidates = parse_llm_response(response_text)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"AI response is not valid JSON, using pattern extraction: {e}")
            return self._fall_back(raw_text, "invalid_json")
        except ValidationError as e:
            logger.warning(
                "AI response violates the extraction schema, using pattern extraction",
                error_count=e.error_count()
            )
            return self._fall_back(raw_text, "schema_violation")

        transactions_extracted.labels(strategy=self.strategy).inc(len(candidates))
        logger.info(f"AI extraction found {len(candidates)} candidates", strategy=self.strategy)
        return candidates

    def _fall_back(self, raw_text: str, reason: str) -> List[Dict[str, Any]]:
        extraction_fallbacks.labels(reason=reason).inc()
        return self.fallback.extract(raw_text)
