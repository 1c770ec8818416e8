"""Named recognizers for M-Pesa confirmation message formats.

Each recognizer is a frozen value pairing a transaction type with a message
template. Templates share building blocks: a 10-character transaction code
followed by "Confirmed", a Ksh amount, a counterparty, a d/m/yy date, a time,
and trailing balance/cost figures. The filler between fields never crosses
another "Confirmed", so one match cannot swallow the next message.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, NamedTuple, Optional, Pattern
from mpesa_engine.constants import TransactionType, Network, PATTERN_CONFIDENCE
from mpesa_engine.tools.normalizers import (
    parse_amount,
    standardize_date,
    format_time,
    clean_counterparty_name,
    standardize_phone_number
)

_CODE = r"(?P<code>\b[A-Z0-9]{10})\s+Confirmed\.?"
_GAP = r"(?:(?!Confirmed)[\s\S])*?"
_KSH = r"(?:Ksh|KES)\s?"
_NUMBER = r"\d[\d,]*(?:\.\d+)?"
_AMOUNT = _KSH + r"(?P<amount>" + _NUMBER + r")"
_NAME = r"(?P<counterparty>[A-Z][A-Z\s\-'.]*?)"
_PHONE = r"(?:\s+(?P<phone>\+?\d[\d*]{8,14}))?"
_WHEN = (
    r"\s+on\s+(?P<date>\d{1,2}/\d{1,2}/\d{2,4})"
    r"\s+at\s+(?P<time>\d{1,2}:\d{2}(?:\s*[AP]\.?M\.?)?)"
)
_BALANCE = _GAP + r"balance\s+(?:is\s+)?" + _KSH + r"(?P<balance>" + _NUMBER + r")"
_COST = r"(?:" + _GAP + r"cost,?\s+" + _KSH + r"(?P<cost>" + _NUMBER + r"))?"


def _compile(*parts: str) -> Pattern:
    return re.compile(''.join(parts), re.IGNORECASE)


class RecognizedFragment(NamedTuple):
    """One recognizer hit: where it sits in the text and the candidate it yields"""
    recognizer: str
    start: int
    end: int
    candidate: Dict[str, Any]


@dataclass(frozen=True)
class Recognizer:
    """A message format bound to one transaction type"""

    name: str
    transaction_type: TransactionType
    pattern: Pattern
    default_reference: Optional[str] = None

    def recognize(self, text: str) -> List[RecognizedFragment]:
        """
        Find every non-overlapping occurrence of this format in text.

        Args:
            text: Raw statement text

        Returns:
            Fragments in order of appearance; empty when nothing matches
        """
        if not text:
            return []
        return [
            RecognizedFragment(self.name, match.start(), match.end(), self._to_candidate(match))
            for match in self.pattern.finditer(text)
        ]

    def _to_candidate(self, match: re.Match) -> Dict[str, Any]:
        groups = match.groupdict()
        return {
            'transaction_id': groups['code'].upper(),
            'date': standardize_date(groups.get('date')),
            'time': format_time(groups.get('time')),
            'type': self.transaction_type.value,
            'amount': parse_amount(groups.get('amount')),
            'transaction_cost': parse_amount(groups.get('cost')),
            'counterparty': clean_counterparty_name(groups.get('counterparty')),
            'counterparty_phone': standardize_phone_number(groups.get('phone')),
            'account_number': groups.get('account'),
            'reference': self.default_reference,
            'balance_after': parse_amount(groups.get('balance')),
            'raw_text': match.group(0),
            'confidence_score': PATTERN_CONFIDENCE,
            'network': Network.MPESA.value,
        }


RECEIVED = Recognizer(
    name="received",
    transaction_type=TransactionType.RECEIVED,
    pattern=_compile(
        _CODE, _GAP, r"received\s+", _AMOUNT, r"\s+from\s+", _NAME, _PHONE, _WHEN, _BALANCE, _COST
    ),
)

SENT = Recognizer(
    name="sent",
    transaction_type=TransactionType.SENT,
    pattern=_compile(
        _CODE, _GAP, _AMOUNT, r"\s+sent\s+to\s+", _NAME, _PHONE,
        r"(?:\s+for\s+account\s+(?P<account>[\w-]+))?", _WHEN, _BALANCE, _COST
    ),
)

PAYBILL = Recognizer(
    name="paybill",
    transaction_type=TransactionType.PAYBILL,
    pattern=_compile(
        _CODE, _GAP, _AMOUNT, r"\s+paid\s+to\s+", _NAME,
        r"\.?\s+(?:for\s+)?account\s+(?:number\s+|no\.?\s+)?(?P<account>[\w-]+)", _WHEN, _BALANCE, _COST
    ),
)

BUY_GOODS = Recognizer(
    name="buy_goods",
    transaction_type=TransactionType.BUY_GOODS,
    pattern=_compile(
        _CODE, _GAP, _AMOUNT, r"\s+paid\s+to\s+", _NAME,
        r"(?:\s+-\s+(?P<account>\d+))?\.?", _WHEN, _BALANCE, _COST
    ),
)

WITHDRAW = Recognizer(
    name="withdraw",
    transaction_type=TransactionType.WITHDRAW,
    pattern=_compile(
        _CODE, _GAP, r"withdrawn\s+", _AMOUNT, r"\s+from\s+(?:agent\s+)?(?:(?P<account>\d+)\s+-\s+)?",
        _NAME, _WHEN, _BALANCE, _COST
    ),
)

AIRTIME = Recognizer(
    name="airtime",
    transaction_type=TransactionType.AIRTIME,
    pattern=_compile(
        _CODE, _GAP, r"bought\s+", _AMOUNT, r"\s+of\s+airtime(?:\s+for\s+(?P<phone>\+?\d{9,15}))?",
        _WHEN, _BALANCE, _COST
    ),
    default_reference="airtime",
)

# Agent deposit: date and time lead, the balance follows the agent name directly
DEPOSIT = Recognizer(
    name="deposit",
    transaction_type=TransactionType.DEPOSIT,
    pattern=_compile(
        _CODE, r"\s+On\s+(?P<date>\d{1,2}/\d{1,2}/\d{2,4})\s+at\s+(?P<time>\d{1,2}:\d{2}(?:\s*[AP]\.?M\.?)?)",
        r"\s+Give\s+", _AMOUNT, r"\s+cash\s+to\s+(?:(?P<account>\d+)\s+-\s+)?", _NAME,
        r"\.?\s+New\s+M-PESA\s+balance\s+is\s+", _KSH, r"(?P<balance>", _NUMBER, r")"
    ),
)

# Registration order is the tie-break order for overlapping matches
RECOGNIZERS = (RECEIVED, SENT, PAYBILL, BUY_GOODS, WITHDRAW, AIRTIME, DEPOSIT)
