"""Field normalizers shared by extraction and validation.

Every function here is pure and idempotent: feeding a normalized value back
in returns it unchanged. Parsers return a neutral value (``Decimal("0")``,
``None`` or ``""``) instead of raising, so a single bad field never aborts a
batch.
"""

import re
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

_CURRENCY_RE = re.compile(r'k\s*sh\.?|kes|\$', re.IGNORECASE)
_SEPARATOR_RE = re.compile(r'[,\s]')
_SLASH_DATE_RE = re.compile(r'(\d{1,2})/(\d{1,2})/(\d{4}|\d{2})')
_TIME_RE = re.compile(r'(\d{1,2}):(\d{2})(?::(\d{2}))?\s*(?:([AaPp])\.?[Mm]\.?)?')
_NAME_STRIP_RE = re.compile(r"[^\w\s\-'.]")
_WHITESPACE_RE = re.compile(r'\s+')
_NON_DIGIT_RE = re.compile(r'\D')

COUNTRY_CODE = '254'


def parse_amount(value: Any) -> Decimal:
    """
    Parse a currency amount.

    Strips thousands separators, whitespace and currency markers
    (Ksh, KES, $). Returns Decimal("0") when the value cannot be parsed.

    Args:
        value: Number or string such as "Ksh15,500.00"

    Returns:
        Decimal amount
    """
    if value is None or isinstance(value, bool):
        return Decimal("0")

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    else:
        cleaned = _SEPARATOR_RE.sub('', _CURRENCY_RE.sub('', str(value)))
        try:
            amount = Decimal(cleaned)
        except InvalidOperation:
            return Decimal("0")

    if not amount.is_finite():
        return Decimal("0")
    return amount


def standardize_date(value: Any) -> Optional[str]:
    """
    Normalize a date to YYYY-MM-DD.

    Accepts d/m/yy, d/m/yyyy, ISO dates and datetimes, and date objects.
    Two-digit years above 50 map to the 1900s, the rest to the 2000s.

    Args:
        value: Raw date

    Returns:
        ISO date string, or None if unparseable
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()

    text = str(value).strip()
    if not text:
        return None

    match = _SLASH_DATE_RE.fullmatch(text)
    if match:
        day, month, year = match.groups()
        year_number = int(year)
        if len(year) == 2:
            year_number += 1900 if year_number > 50 else 2000
        try:
            return date(year_number, int(month), int(day)).isoformat()
        except ValueError:
            return None

    try:
        return datetime.fromisoformat(text.replace('Z', '+00:00')).date().isoformat()
    except ValueError:
        return None


def parse_time(value: Any) -> Optional[time]:
    """Parse '2:30 PM', '14:30' or '14:30:05' into a time; None if unparseable"""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.time()
    if isinstance(value, time):
        return value

    match = _TIME_RE.fullmatch(str(value).strip())
    if not match:
        return None

    hour, minute = int(match.group(1)), int(match.group(2))
    second = int(match.group(3) or 0)
    meridiem = (match.group(4) or '').lower()

    if meridiem:
        if not 1 <= hour <= 12:
            return None
        if meridiem == 'p' and hour != 12:
            hour += 12
        elif meridiem == 'a' and hour == 12:
            hour = 0

    try:
        return time(hour, minute, second)
    except ValueError:
        return None


def format_time(value: Any) -> Optional[str]:
    """Normalize a time to HH:MM (or HH:MM:SS when seconds are present)"""
    parsed = parse_time(value)
    if parsed is None:
        return None
    return parsed.strftime('%H:%M:%S' if parsed.second else '%H:%M')


def clean_counterparty_name(name: Any) -> str:
    """
    Normalize a counterparty display name.

    Drops punctuation other than hyphen, apostrophe and period, collapses
    whitespace and uppercases.
    """
    if not name:
        return ''
    cleaned = _NAME_STRIP_RE.sub('', str(name))
    return _WHITESPACE_RE.sub(' ', cleaned).strip().upper()


def standardize_phone_number(phone: Any) -> str:
    """
    Normalize a Kenyan phone number to +254XXXXXXXXX.

    Handles a leading zero (0712345678), a bare country code (254712345678)
    and a bare subscriber number (712345678). Numbers that fit none of these
    are returned stripped but otherwise untouched.
    """
    if phone is None or phone == '':
        return ''

    text = str(phone).strip()
    digits = _NON_DIGIT_RE.sub('', text)

    if digits.startswith(COUNTRY_CODE) and len(digits) == 12:
        return f'+{digits}'
    if digits.startswith('0') and len(digits) == 10:
        return f'+{COUNTRY_CODE}{digits[1:]}'
    if len(digits) == 9:
        return f'+{COUNTRY_CODE}{digits}'

    return text
